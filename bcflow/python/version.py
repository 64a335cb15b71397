"""The list of supported Python versions, with their features relevant for
decoding and analysis.

A version is described entirely by data: a magic number, a name, and a set of
flags.  The marshal reader, the opcode registry and the instruction decoder
look at flags only, so adding a version means adding a class here and, where
the instruction set changed, opcode registrations keyed on a new flag.

The pyc files start with a signature that determines the version: a unique
number in the low 16 bits and '\\r\\n' in the high 16 bits.  Only final
releases are listed; alpha, beta and rc magic numbers are noted in comments
but not registered, since their bytecode may not match the final one.

We support CPython 3.9 through 3.14.  Versions before 3.9 use block-stack
opcodes (SETUP_LOOP, BREAK_LOOP, CALL_FINALLY) whose targets depend on
runtime state, which this analysis doesn't model.
"""

import logging

from .helpers import UnsupportedVersionError

logger = logging.getLogger(__name__)

PYC_VERSIONS = {}
VERSIONS_BY_NAME = {}

def _v(x):
    """Build a pyc signature."""
    return x | 0x0a0d0000

class PycVersion:
    def __init__(self, name, bases, namespace):
        for base in bases:
            self.__dict__.update(base.__dict__)
        self.__dict__.update(namespace)
        self.__dict__.pop('__doc__', None)
        if hasattr(self, 'code'):
            PYC_VERSIONS[self.code] = self
            VERSIONS_BY_NAME[self.key] = self

    def match(self, flags):
        """Checks a flag spec against this version.  flags is None (always
        matches), a flag name, or a list/tuple of flag names that all have to
        match.  A name prefixed with '!' matches when the flag is false."""
        if flags is None:
            flags = []
        if not isinstance(flags, (list, tuple)):
            flags = [flags]
        for flag in flags:
            if flag.startswith('!'):
                if getattr(self, flag[1:]):
                    return False
            else:
                if not getattr(self, flag):
                    return False
        return True

    @property
    def magic(self):
        return self.code & 0xffff

    def __repr__(self):
        return '<{}>'.format(self.name)


class Pyc39(metaclass=PycVersion):
    # 3400-3424 used in prealpha and betas
    code = _v(3425)
    name = "Python 3.9"
    key = (3, 9)

    # pyc header has a flags word (PEP 552), so it's 16 bytes long
    has_pyc_flags = True
    # code objects have co_posonlyargcount
    has_posonly = True
    # code objects store localsplusnames/kinds instead of varnames,
    # cellvars and freevars, plus qualname and exception table
    has_localsplus = False
    # co_linetable replaces co_lnotab
    has_linetable = False
    # co_linetable is the compact location table
    has_location_table = False
    # jump operands count code units instead of bytes
    has_unit_jumps = False
    # instructions are followed by inline cache entries
    has_cache = False
    # exceptions are described by co_exceptiontable, not SETUP_* opcodes
    has_exception_table = False
    # RERAISE takes an argument
    has_reraise_arg = False
    # structural pattern matching opcodes
    has_pattern_matching = False
    # LOAD_GLOBAL's low operand bit pushes a NULL, calls go through CALL
    has_null_call = False
    # PRECALL before CALL
    has_precall = False
    # LOAD_ATTR's low operand bit does the LOAD_METHOD job
    has_method_attr = False
    # END_FOR after loops, FOR_ITER jumps onto it
    has_end_for = False
    # TO_BOOL before conditional jumps, which get a cache entry
    has_bool_jumps = False
    # MAKE_FUNCTION takes no operand, SET_FUNCTION_ATTRIBUTE does the rest
    has_func_attrs = False
    # END_FOR pops one value (the loop's POP_TOP pops the iterator)
    has_short_end_for = False
    # LOAD_FAST_LOAD_FAST and friends
    has_super_instructions = False
    # FORMAT_SIMPLE/FORMAT_WITH_SPEC/CONVERT_VALUE replace FORMAT_VALUE
    has_format_simple = False
    # marshal has a slice type (':'), used for constant slices
    has_marshal_slice = False
    # GET_ITER leaves an index slot under the iterator, POP_ITER drops both
    has_iter_index = False
    # opcode numberings - exactly one is set
    opmap_39 = True
    opmap_311 = False
    opmap_312 = False
    opmap_313 = False
    opmap_314 = False
    # COMPARE_OP operand bits below the comparison index
    cmp_shift = 0
    # MAKE_FUNCTION pops the qualified name
    has_make_function_qualname = True

class Pyc310(Pyc39):
    # 3430-3438 used in alphas and betas
    code = _v(3439)
    name = "Python 3.10"
    key = (3, 10)
    has_linetable = True
    has_unit_jumps = True
    has_reraise_arg = True
    has_pattern_matching = True

class Pyc311(Pyc310):
    # 3450-3494 used in alphas and betas
    code = _v(3495)
    name = "Python 3.11"
    key = (3, 11)
    has_localsplus = True
    has_location_table = True
    has_cache = True
    has_exception_table = True
    has_null_call = True
    has_precall = True
    has_make_function_qualname = False
    opmap_39 = False
    opmap_311 = True

class Pyc312(Pyc311):
    # 3500-3530 used in alphas and betas
    code = _v(3531)
    name = "Python 3.12"
    key = (3, 12)
    has_precall = False
    has_method_attr = True
    has_end_for = True
    opmap_311 = False
    opmap_312 = True
    cmp_shift = 4

class Pyc313(Pyc312):
    # 3550-3570 used in alphas and betas
    code = _v(3571)
    name = "Python 3.13"
    key = (3, 13)
    has_bool_jumps = True
    has_func_attrs = True
    has_short_end_for = True
    has_super_instructions = True
    has_format_simple = True
    opmap_312 = False
    opmap_313 = True
    cmp_shift = 5

class Pyc314(Pyc313):
    # 3600-3626 used in alphas, betas and release candidates
    code = _v(3627)
    name = "Python 3.14"
    key = (3, 14)
    has_marshal_slice = True
    has_iter_index = True
    opmap_313 = False
    opmap_314 = True


def find_version(token):
    """Finds a version by a loose identifier.

    Accepts a PycVersion, a "3.12"-style string, a (3, 12, ...) tuple such as
    sys.version_info, the 4-byte pyc signature, or the bare 16-bit magic.
    """
    if isinstance(token, PycVersion):
        return token
    version = None
    if isinstance(token, str):
        try:
            key = tuple(int(x) for x in token.strip().split('.')[:2])
        except ValueError:
            key = None
        version = VERSIONS_BY_NAME.get(key)
    elif isinstance(token, tuple):
        version = VERSIONS_BY_NAME.get(tuple(token[:2]))
    elif isinstance(token, int):
        version = PYC_VERSIONS.get(token) or PYC_VERSIONS.get(_v(token))
    if version is None:
        raise UnsupportedVersionError("unsupported python version {!r}".format(token))
    return version
