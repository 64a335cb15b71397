"""Opcode tables.

Opcode meaning is data: every opcode of every supported version is registered
below with make_op_* calls carrying a version flag spec.  resolve() picks, for
each numeric code, the single registration whose flags match the version, and
freezes the result into an OpcodeTable.  Tables are built once per version and
shared by everyone; they're never mutated after construction.

Each registration carries the operand kind, the control flow kind (always
explicit - SEQUENTIAL is the default of make_op, not a missing entry), the
jump addressing mode, the number of inline cache units following the
instruction, and the stack effect as (pop, push) counts for the fall-through
path and, where different, for the jump path.  Counts are ints or functions
of the operand.

Opcode numbering comes in five families: 3.9/3.10 (opmap_39), 3.11
(opmap_311), 3.12 (opmap_312), 3.13 (opmap_313) and 3.14 (opmap_314).  3.11
and 3.12 share most of their numbering, which is why some entries use the
ADAPTIVE flag spec.
"""

import logging
import threading
from enum import Enum
from types import MappingProxyType

from bcflow.meta import Node, Field
from .helpers import AnalysisError
from .version import find_version

logger = logging.getLogger(__name__)


class ArgKind(Enum):
    NONE = 'none'
    NUM = 'num'
    CONST = 'const'
    NAME = 'name'
    LOCAL = 'local'
    # two 4-bit local indices packed in one operand
    LOCAL_PAIR = 'local_pair'
    FREE = 'free'
    CMP = 'cmp'
    BINOP = 'binop'
    JUMP = 'jump'


class JumpKind(Enum):
    ABS = 'abs'
    FORWARD = 'forward'
    BACKWARD = 'backward'


class FlowKind(Enum):
    SEQUENTIAL = 'sequential'
    CALL = 'call'
    JUMP = 'jump'
    BRANCH = 'branch'
    RETURN = 'return'
    RAISE = 'raise'
    # pushes an exception handler (3.9/3.10 SETUP_*); falls through
    SETUP = 'setup'


CMP_OPS = ('<', '<=', '==', '!=', '>', '>=')

BINARY_OPS = (
    '+', '&', '//', '<<', '@', '*', '%', '|', '**', '>>', '-', '/', '^',
    '+=', '&=', '//=', '<<=', '@=', '*=', '%=', '|=', '**=', '>>=', '-=', '/=', '^=',
    # subscription, 3.14+
    '[]',
)


class StackEffect(Node):
    """How many values an instruction pops and pushes.  Each count is an int
    or a function of the operand.  jump_pop/jump_push apply when the
    instruction takes its jump (or, for SETUP_*, when its handler runs)."""
    pop = Field(object)
    push = Field(object)
    jump_pop = Field(object)
    jump_push = Field(object)

    def __init__(self, pop=0, push=0, jump_pop=None, jump_push=None):
        if jump_pop is None:
            jump_pop = pop
        if jump_push is None:
            jump_push = push
        super().__init__(pop, push, jump_pop, jump_push)

    @staticmethod
    def _eval(val, arg):
        if callable(val):
            return val(0 if arg is None else arg)
        return val

    def pops(self, arg, jump=False):
        return self._eval(self.jump_pop if jump else self.pop, arg)

    def pushes(self, arg, jump=False):
        return self._eval(self.jump_push if jump else self.push, arg)

    def net(self, arg, jump=False):
        return self.pushes(arg, jump) - self.pops(arg, jump)

    def __repr__(self):
        return 'StackEffect({}, {}, {}, {})'.format(self.pop, self.push, self.jump_pop, self.jump_push)


class OpcodeInfo(Node):
    """What an opcode means in one version.

    when is set for branches only: the truth value of the tested condition
    under which the jump is taken.  name_shift is how many low operand bits
    to drop before indexing co_names (LOAD_GLOBAL, LOAD_ATTR, ...).
    """
    code = Field(int)
    name = Field(str)
    arg = Field(ArgKind)
    jump = Field(JumpKind, optional=True)
    flow = Field(FlowKind)
    when = Field(bool, optional=True)
    caches = Field(int)
    effect = Field(StackEffect)
    raises = Field(bool)
    name_shift = Field(int)

    @property
    def has_target(self):
        return self.jump is not None

    def __str__(self):
        return self.name


class OpcodeTable:
    """The frozen opcode table of one version.

    by_code and by_name are read-only views.  unit is the size of one
    instruction (and cache entry) in bytes, jump_unit the number of bytes one
    step of a jump operand counts for.
    """
    __slots__ = 'version', 'by_code', 'by_name', 'unit', 'jump_unit', 'extended_arg', 'cmp_shift'

    def __init__(self, version, infos, jump_unit, cmp_shift=0, unit=2):
        by_code = {}
        by_name = {}
        for info in infos:
            if info.code in by_code:
                raise ValueError("opcode {} registered twice".format(info.code))
            if info.name in by_name:
                raise ValueError("mnemonic {} registered twice".format(info.name))
            by_code[info.code] = info
            by_name[info.name] = info
        self.version = version
        self.by_code = MappingProxyType(by_code)
        self.by_name = MappingProxyType(by_name)
        self.unit = unit
        self.jump_unit = jump_unit
        self.cmp_shift = cmp_shift
        ext = by_name.get('EXTENDED_ARG')
        self.extended_arg = None if ext is None else ext.code

    def __getitem__(self, code):
        return self.by_code[code]

    def __contains__(self, code):
        return code in self.by_code

    def __len__(self):
        return len(self.by_code)

    def get(self, code):
        return self.by_code.get(code)

    def opcode(self, name):
        """Numeric code of a mnemonic."""
        return self.by_name[name].code

    def jump_target(self, info, nextpos, arg):
        """Absolute byte offset a jump instruction targets.  nextpos is the
        offset right after the instruction and its caches."""
        if info.jump is JumpKind.ABS:
            return arg * self.jump_unit
        elif info.jump is JumpKind.FORWARD:
            return nextpos + arg * self.jump_unit
        elif info.jump is JumpKind.BACKWARD:
            return nextpos - arg * self.jump_unit
        return None

    def __repr__(self):
        return '<OpcodeTable {} ({} opcodes)>'.format(self.version.name, len(self.by_code))


# opcode registration functions

OPCODES = {}

def op_maker(arg, flow=FlowKind.SEQUENTIAL, jump=None, when=None, raises=True):
    def make_op_any(code, name, flag=None, pop=0, push=0, jump_pop=None, jump_push=None, **kw):
        spec = dict(
            name=name,
            arg=kw.pop('arg', arg),
            jump=kw.pop('jump', jump),
            flow=kw.pop('flow', flow),
            when=kw.pop('when', when),
            caches=kw.pop('caches', 0),
            effect=StackEffect(pop, push, jump_pop, jump_push),
            raises=kw.pop('raises', raises),
            name_shift=kw.pop('name_shift', 0),
        )
        if kw:
            raise TypeError("unknown opcode attributes: {}".format(', '.join(kw)))
        OPCODES.setdefault(code, []).append((spec, flag))
    return make_op_any

make_op = op_maker(ArgKind.NONE)
make_op_num = op_maker(ArgKind.NUM)
make_op_const = op_maker(ArgKind.CONST, raises=False)
make_op_name = op_maker(ArgKind.NAME)
make_op_local = op_maker(ArgKind.LOCAL)
make_op_pair = op_maker(ArgKind.LOCAL_PAIR, raises=False)
make_op_free = op_maker(ArgKind.FREE)
make_op_cmp = op_maker(ArgKind.CMP)
make_op_binop = op_maker(ArgKind.BINOP)
make_op_call = op_maker(ArgKind.NUM, FlowKind.CALL)
make_op_return = op_maker(ArgKind.NONE, FlowKind.RETURN, raises=False)
make_op_raise = op_maker(ArgKind.NUM, FlowKind.RAISE)
make_op_jabs = op_maker(ArgKind.JUMP, FlowKind.JUMP, JumpKind.ABS, raises=False)
make_op_jfwd = op_maker(ArgKind.JUMP, FlowKind.JUMP, JumpKind.FORWARD, raises=False)
make_op_jback = op_maker(ArgKind.JUMP, FlowKind.JUMP, JumpKind.BACKWARD, raises=False)
make_op_babs = op_maker(ArgKind.JUMP, FlowKind.BRANCH, JumpKind.ABS)
make_op_bfwd = op_maker(ArgKind.JUMP, FlowKind.BRANCH, JumpKind.FORWARD)
make_op_bback = op_maker(ArgKind.JUMP, FlowKind.BRANCH, JumpKind.BACKWARD)
make_op_setup = op_maker(ArgKind.JUMP, FlowKind.SETUP, JumpKind.FORWARD, raises=False)


# stack effect helpers

def _plus(n):
    return lambda arg: arg + n

def _times(n):
    return lambda arg: arg * n

def _low_bit_plus(n):
    return lambda arg: (arg & 1) + n

def _fn_args(base):
    """MAKE_FUNCTION pops one value per flag bit on top of base."""
    return lambda arg: base + bin(arg & 0xf).count('1')

def _unpack_ex(arg):
    return (arg & 0xff) + (arg >> 8) + 1

def _build_slice(arg):
    return 3 if arg == 3 else 2

def _format_value(arg):
    return 2 if arg & 4 else 1

_arg = _plus(0)


# numbering families
CLASSIC = 'opmap_39'
ADAPTIVE = ('has_cache', '!opmap_313', '!opmap_314')
ONLY_311 = 'opmap_311'
ONLY_312 = 'opmap_312'
ONLY_313 = 'opmap_313'
ONLY_314 = 'opmap_314'


# 3.9 and 3.10

make_op(1, 'POP_TOP', CLASSIC, 1, 0, raises=False)
make_op(2, 'ROT_TWO', CLASSIC, 2, 2, raises=False)
make_op(3, 'ROT_THREE', CLASSIC, 3, 3, raises=False)
make_op(4, 'DUP_TOP', CLASSIC, 1, 2, raises=False)
make_op(5, 'DUP_TOP_TWO', CLASSIC, 2, 4, raises=False)
make_op(6, 'ROT_FOUR', CLASSIC, 4, 4, raises=False)
make_op(9, 'NOP', CLASSIC, raises=False)
make_op(10, 'UNARY_POSITIVE', CLASSIC, 1, 1)
make_op(11, 'UNARY_NEGATIVE', CLASSIC, 1, 1)
make_op(12, 'UNARY_NOT', CLASSIC, 1, 1)
make_op(15, 'UNARY_INVERT', CLASSIC, 1, 1)
make_op(16, 'BINARY_MATRIX_MULTIPLY', CLASSIC, 2, 1)
make_op(17, 'INPLACE_MATRIX_MULTIPLY', CLASSIC, 2, 1)
make_op(19, 'BINARY_POWER', CLASSIC, 2, 1)
make_op(20, 'BINARY_MULTIPLY', CLASSIC, 2, 1)
make_op(22, 'BINARY_MODULO', CLASSIC, 2, 1)
make_op(23, 'BINARY_ADD', CLASSIC, 2, 1)
make_op(24, 'BINARY_SUBTRACT', CLASSIC, 2, 1)
make_op(25, 'BINARY_SUBSCR', CLASSIC, 2, 1)
make_op(26, 'BINARY_FLOOR_DIVIDE', CLASSIC, 2, 1)
make_op(27, 'BINARY_TRUE_DIVIDE', CLASSIC, 2, 1)
make_op(28, 'INPLACE_FLOOR_DIVIDE', CLASSIC, 2, 1)
make_op(29, 'INPLACE_TRUE_DIVIDE', CLASSIC, 2, 1)
make_op(30, 'GET_LEN', (CLASSIC, 'has_pattern_matching'), 1, 2)
make_op(31, 'MATCH_MAPPING', (CLASSIC, 'has_pattern_matching'), 1, 2)
make_op(32, 'MATCH_SEQUENCE', (CLASSIC, 'has_pattern_matching'), 1, 2)
make_op(33, 'MATCH_KEYS', (CLASSIC, 'has_pattern_matching'), 2, 4)
make_op(34, 'COPY_DICT_WITHOUT_KEYS', (CLASSIC, 'has_pattern_matching'), 2, 2)
make_op_raise(48, 'RERAISE', (CLASSIC, '!has_reraise_arg'), 3, 0)
make_op(49, 'WITH_EXCEPT_START', CLASSIC, 1, 2)
make_op(50, 'GET_AITER', CLASSIC, 1, 1)
make_op(51, 'GET_ANEXT', CLASSIC, 1, 2)
make_op(52, 'BEFORE_ASYNC_WITH', CLASSIC, 1, 2)
make_op(54, 'END_ASYNC_FOR', CLASSIC, 7, 0)
make_op(55, 'INPLACE_ADD', CLASSIC, 2, 1)
make_op(56, 'INPLACE_SUBTRACT', CLASSIC, 2, 1)
make_op(57, 'INPLACE_MULTIPLY', CLASSIC, 2, 1)
make_op(59, 'INPLACE_MODULO', CLASSIC, 2, 1)
make_op(60, 'STORE_SUBSCR', CLASSIC, 3, 0)
make_op(61, 'DELETE_SUBSCR', CLASSIC, 2, 0)
make_op(62, 'BINARY_LSHIFT', CLASSIC, 2, 1)
make_op(63, 'BINARY_RSHIFT', CLASSIC, 2, 1)
make_op(64, 'BINARY_AND', CLASSIC, 2, 1)
make_op(65, 'BINARY_XOR', CLASSIC, 2, 1)
make_op(66, 'BINARY_OR', CLASSIC, 2, 1)
make_op(67, 'INPLACE_POWER', CLASSIC, 2, 1)
make_op(68, 'GET_ITER', CLASSIC, 1, 1)
make_op(69, 'GET_YIELD_FROM_ITER', CLASSIC, 1, 1)
make_op(70, 'PRINT_EXPR', CLASSIC, 1, 0)
make_op(71, 'LOAD_BUILD_CLASS', CLASSIC, 0, 1)
make_op(72, 'YIELD_FROM', CLASSIC, 2, 1)
make_op(73, 'GET_AWAITABLE', CLASSIC, 1, 1)
make_op(74, 'LOAD_ASSERTION_ERROR', CLASSIC, 0, 1, raises=False)
make_op(75, 'INPLACE_LSHIFT', CLASSIC, 2, 1)
make_op(76, 'INPLACE_RSHIFT', CLASSIC, 2, 1)
make_op(77, 'INPLACE_AND', CLASSIC, 2, 1)
make_op(78, 'INPLACE_XOR', CLASSIC, 2, 1)
make_op(79, 'INPLACE_OR', CLASSIC, 2, 1)
make_op(82, 'LIST_TO_TUPLE', CLASSIC, 1, 1)
make_op_return(83, 'RETURN_VALUE', CLASSIC, 1, 0)
make_op(84, 'IMPORT_STAR', CLASSIC, 1, 0)
make_op(85, 'SETUP_ANNOTATIONS', CLASSIC)
make_op(86, 'YIELD_VALUE', CLASSIC, 1, 1)
make_op(87, 'POP_BLOCK', CLASSIC, raises=False)
make_op(89, 'POP_EXCEPT', CLASSIC, 3, 0, raises=False)

# opcodes have an argument from here on

make_op_name(90, 'STORE_NAME', CLASSIC, 1, 0)
make_op_name(91, 'DELETE_NAME', CLASSIC)
make_op_num(92, 'UNPACK_SEQUENCE', CLASSIC, 1, _arg)
# jumps when the iterator is exhausted
make_op_bfwd(93, 'FOR_ITER', CLASSIC, 1, 2, 1, 0, when=False)
make_op_num(94, 'UNPACK_EX', CLASSIC, 1, _unpack_ex)
make_op_name(95, 'STORE_ATTR', CLASSIC, 2, 0)
make_op_name(96, 'DELETE_ATTR', CLASSIC, 1, 0)
make_op_name(97, 'STORE_GLOBAL', CLASSIC, 1, 0)
make_op_name(98, 'DELETE_GLOBAL', CLASSIC)
make_op_num(99, 'ROT_N', (CLASSIC, 'has_pattern_matching'), _arg, _arg, raises=False)
make_op_const(100, 'LOAD_CONST', CLASSIC, 0, 1)
make_op_name(101, 'LOAD_NAME', CLASSIC, 0, 1)
make_op_num(102, 'BUILD_TUPLE', CLASSIC, _arg, 1)
make_op_num(103, 'BUILD_LIST', CLASSIC, _arg, 1)
make_op_num(104, 'BUILD_SET', CLASSIC, _arg, 1)
make_op_num(105, 'BUILD_MAP', CLASSIC, _times(2), 1)
make_op_name(106, 'LOAD_ATTR', CLASSIC, 1, 1)
make_op_cmp(107, 'COMPARE_OP', CLASSIC, 2, 1)
make_op_name(108, 'IMPORT_NAME', CLASSIC, 2, 1)
make_op_name(109, 'IMPORT_FROM', CLASSIC, 1, 2)
make_op_jfwd(110, 'JUMP_FORWARD', CLASSIC)
make_op_babs(111, 'JUMP_IF_FALSE_OR_POP', CLASSIC, 1, 0, 1, 1, when=False)
make_op_babs(112, 'JUMP_IF_TRUE_OR_POP', CLASSIC, 1, 0, 1, 1, when=True)
make_op_jabs(113, 'JUMP_ABSOLUTE', CLASSIC)
make_op_babs(114, 'POP_JUMP_IF_FALSE', CLASSIC, 1, 0, when=False)
make_op_babs(115, 'POP_JUMP_IF_TRUE', CLASSIC, 1, 0, when=True)
make_op_name(116, 'LOAD_GLOBAL', CLASSIC, 0, 1)
make_op_num(117, 'IS_OP', CLASSIC, 2, 1)
make_op_num(118, 'CONTAINS_OP', CLASSIC, 2, 1)
make_op_raise(119, 'RERAISE', (CLASSIC, 'has_reraise_arg'), 3, 0)
make_op_babs(121, 'JUMP_IF_NOT_EXC_MATCH', CLASSIC, 2, 0, when=False)
# the handler runs with the exception, its type and traceback, plus the
# previous exception state, on top of the stack at setup time
make_op_setup(122, 'SETUP_FINALLY', CLASSIC, 0, 0, 0, 6)
make_op_local(124, 'LOAD_FAST', CLASSIC, 0, 1)
make_op_local(125, 'STORE_FAST', CLASSIC, 1, 0, raises=False)
make_op_local(126, 'DELETE_FAST', CLASSIC)
# pops the value sent by the first resume, which the frame starts out with;
# neither shows up in the computed depth
make_op_num(129, 'GEN_START', (CLASSIC, 'has_pattern_matching'), raises=False)
make_op_raise(130, 'RAISE_VARARGS', CLASSIC, _arg, 0)
make_op_call(131, 'CALL_FUNCTION', CLASSIC, _plus(1), 1)
make_op_num(132, 'MAKE_FUNCTION', CLASSIC, _fn_args(2), 1)
make_op_num(133, 'BUILD_SLICE', CLASSIC, _build_slice, 1)
make_op_free(135, 'LOAD_CLOSURE', CLASSIC, 0, 1, raises=False)
make_op_free(136, 'LOAD_DEREF', CLASSIC, 0, 1)
make_op_free(137, 'STORE_DEREF', CLASSIC, 1, 0)
make_op_free(138, 'DELETE_DEREF', CLASSIC)
make_op_call(141, 'CALL_FUNCTION_KW', CLASSIC, _plus(2), 1)
make_op_call(142, 'CALL_FUNCTION_EX', CLASSIC, _low_bit_plus(2), 1)
make_op_setup(143, 'SETUP_WITH', CLASSIC, 1, 2, 1, 7)
make_op_num(144, 'EXTENDED_ARG', CLASSIC, raises=False)
make_op_num(145, 'LIST_APPEND', CLASSIC, _plus(1), _arg)
make_op_num(146, 'SET_ADD', CLASSIC, _plus(1), _arg)
make_op_num(147, 'MAP_ADD', CLASSIC, _plus(2), _arg)
make_op_free(148, 'LOAD_CLASSDEREF', CLASSIC, 0, 1)
make_op_num(152, 'MATCH_CLASS', (CLASSIC, 'has_pattern_matching'), 3, 2)
make_op_setup(154, 'SETUP_ASYNC_WITH', CLASSIC, 1, 1, 1, 6)
make_op_num(155, 'FORMAT_VALUE', CLASSIC, _format_value, 1)
make_op_num(156, 'BUILD_CONST_KEY_MAP', CLASSIC, _plus(1), 1)
make_op_num(157, 'BUILD_STRING', CLASSIC, _arg, 1)
make_op_name(160, 'LOAD_METHOD', CLASSIC, 1, 2)
make_op_call(161, 'CALL_METHOD', CLASSIC, _plus(2), 1)
make_op_num(162, 'LIST_EXTEND', CLASSIC, _plus(1), _arg)
make_op_num(163, 'SET_UPDATE', CLASSIC, _plus(1), _arg)
make_op_num(164, 'DICT_MERGE', CLASSIC, _plus(1), _arg)
make_op_num(165, 'DICT_UPDATE', CLASSIC, _plus(1), _arg)


# 3.11 and 3.12.  Exception handling moved to the exception table, jumps
# became relative, and specializable instructions grew inline caches.

make_op(0, 'CACHE', ADAPTIVE, raises=False)
make_op(1, 'POP_TOP', ADAPTIVE, 1, 0, raises=False)
make_op(2, 'PUSH_NULL', ADAPTIVE, 0, 1, raises=False)
make_op(4, 'END_FOR', ONLY_312, 2, 0, raises=False)
make_op(5, 'END_SEND', ONLY_312, 2, 1, raises=False)
make_op(9, 'NOP', ADAPTIVE, raises=False)
make_op(10, 'UNARY_POSITIVE', ONLY_311, 1, 1)
make_op(11, 'UNARY_NEGATIVE', ADAPTIVE, 1, 1)
make_op(12, 'UNARY_NOT', ADAPTIVE, 1, 1)
make_op(15, 'UNARY_INVERT', ADAPTIVE, 1, 1)
make_op(25, 'BINARY_SUBSCR', ONLY_311, 2, 1, caches=4)
make_op(25, 'BINARY_SUBSCR', ONLY_312, 2, 1, caches=1)
make_op(26, 'BINARY_SLICE', ONLY_312, 3, 1)
make_op(27, 'STORE_SLICE', ONLY_312, 4, 0)
make_op(30, 'GET_LEN', ADAPTIVE, 1, 2)
make_op(31, 'MATCH_MAPPING', ADAPTIVE, 1, 2, raises=False)
make_op(32, 'MATCH_SEQUENCE', ADAPTIVE, 1, 2, raises=False)
make_op(33, 'MATCH_KEYS', ADAPTIVE, 2, 3)
make_op(35, 'PUSH_EXC_INFO', ADAPTIVE, 1, 2, raises=False)
make_op(36, 'CHECK_EXC_MATCH', ADAPTIVE, 2, 2)
make_op(37, 'CHECK_EG_MATCH', ADAPTIVE, 2, 2)
make_op(49, 'WITH_EXCEPT_START', ADAPTIVE, 4, 5)
make_op(50, 'GET_AITER', ADAPTIVE, 1, 1)
make_op(51, 'GET_ANEXT', ADAPTIVE, 1, 2)
make_op(52, 'BEFORE_ASYNC_WITH', ADAPTIVE, 1, 2)
make_op(53, 'BEFORE_WITH', ADAPTIVE, 1, 2)
make_op(54, 'END_ASYNC_FOR', ADAPTIVE, 2, 0)
make_op(55, 'CLEANUP_THROW', ONLY_312, 3, 2)
make_op(60, 'STORE_SUBSCR', ADAPTIVE, 3, 0, caches=1)
make_op(61, 'DELETE_SUBSCR', ADAPTIVE, 2, 0)
make_op(68, 'GET_ITER', ADAPTIVE, 1, 1)
make_op(69, 'GET_YIELD_FROM_ITER', ADAPTIVE, 1, 1)
make_op(70, 'PRINT_EXPR', ONLY_311, 1, 0)
make_op(71, 'LOAD_BUILD_CLASS', ADAPTIVE, 0, 1)
make_op(74, 'LOAD_ASSERTION_ERROR', ADAPTIVE, 0, 1, raises=False)
# the value sent in when the generator is first resumed is left on the stack
make_op(75, 'RETURN_GENERATOR', ADAPTIVE, 0, 1, raises=False)
make_op(82, 'LIST_TO_TUPLE', ONLY_311, 1, 1)
make_op_return(83, 'RETURN_VALUE', ADAPTIVE, 1, 0)
make_op(84, 'IMPORT_STAR', ONLY_311, 1, 0)
make_op(85, 'SETUP_ANNOTATIONS', ADAPTIVE)
make_op(86, 'YIELD_VALUE', ONLY_311, 1, 1)
make_op(87, 'ASYNC_GEN_WRAP', ONLY_311, 1, 1)
make_op(87, 'LOAD_LOCALS', ONLY_312, 0, 1)
make_op(88, 'PREP_RERAISE_STAR', ONLY_311, 2, 1)
make_op(89, 'POP_EXCEPT', ADAPTIVE, 1, 0, raises=False)

make_op_name(90, 'STORE_NAME', ADAPTIVE, 1, 0)
make_op_name(91, 'DELETE_NAME', ADAPTIVE)
make_op_num(92, 'UNPACK_SEQUENCE', ADAPTIVE, 1, _arg, caches=1)
make_op_bfwd(93, 'FOR_ITER', ONLY_311, 1, 2, 1, 0, when=False)
# jumps to the END_FOR, which pops the iterator and the missing value
make_op_bfwd(93, 'FOR_ITER', ONLY_312, 1, 2, when=False, caches=1)
make_op_num(94, 'UNPACK_EX', ADAPTIVE, 1, _unpack_ex)
make_op_name(95, 'STORE_ATTR', ADAPTIVE, 2, 0, caches=4)
make_op_name(96, 'DELETE_ATTR', ADAPTIVE, 1, 0)
make_op_name(97, 'STORE_GLOBAL', ADAPTIVE, 1, 0)
make_op_name(98, 'DELETE_GLOBAL', ADAPTIVE)
make_op_num(99, 'SWAP', ADAPTIVE, _arg, _arg, raises=False)
make_op_const(100, 'LOAD_CONST', ADAPTIVE, 0, 1)
make_op_name(101, 'LOAD_NAME', ADAPTIVE, 0, 1)
make_op_num(102, 'BUILD_TUPLE', ADAPTIVE, _arg, 1)
make_op_num(103, 'BUILD_LIST', ADAPTIVE, _arg, 1)
make_op_num(104, 'BUILD_SET', ADAPTIVE, _arg, 1)
make_op_num(105, 'BUILD_MAP', ADAPTIVE, _times(2), 1)
make_op_name(106, 'LOAD_ATTR', ONLY_311, 1, 1, caches=4)
make_op_name(106, 'LOAD_ATTR', ONLY_312, 1, _low_bit_plus(1), caches=9, name_shift=1)
make_op_cmp(107, 'COMPARE_OP', ONLY_311, 2, 1, caches=2)
make_op_cmp(107, 'COMPARE_OP', ONLY_312, 2, 1, caches=1)
make_op_name(108, 'IMPORT_NAME', ADAPTIVE, 2, 1)
make_op_name(109, 'IMPORT_FROM', ADAPTIVE, 1, 2)
make_op_jfwd(110, 'JUMP_FORWARD', ADAPTIVE)
make_op_bfwd(111, 'JUMP_IF_FALSE_OR_POP', ONLY_311, 1, 0, 1, 1, when=False)
make_op_bfwd(112, 'JUMP_IF_TRUE_OR_POP', ONLY_311, 1, 0, 1, 1, when=True)
make_op_bfwd(114, 'POP_JUMP_FORWARD_IF_FALSE', ONLY_311, 1, 0, when=False)
make_op_bfwd(115, 'POP_JUMP_FORWARD_IF_TRUE', ONLY_311, 1, 0, when=True)
make_op_bfwd(114, 'POP_JUMP_IF_FALSE', ONLY_312, 1, 0, when=False)
make_op_bfwd(115, 'POP_JUMP_IF_TRUE', ONLY_312, 1, 0, when=True)
make_op_name(116, 'LOAD_GLOBAL', ONLY_311, 0, _low_bit_plus(1), caches=5, name_shift=1)
make_op_name(116, 'LOAD_GLOBAL', ONLY_312, 0, _low_bit_plus(1), caches=4, name_shift=1)
make_op_num(117, 'IS_OP', ADAPTIVE, 2, 1, raises=False)
make_op_num(118, 'CONTAINS_OP', ADAPTIVE, 2, 1)
make_op_raise(119, 'RERAISE', ADAPTIVE, 1, 0)
make_op_num(120, 'COPY', ADAPTIVE, _arg, _plus(1), raises=False)
make_op_return(121, 'RETURN_CONST', ONLY_312, arg=ArgKind.CONST)
make_op_binop(122, 'BINARY_OP', ADAPTIVE, 2, 1, caches=1)
# jumps when the sub-iterator is done
make_op_bfwd(123, 'SEND', ONLY_311, 2, 2, 2, 1, when=False)
make_op_bfwd(123, 'SEND', ONLY_312, 2, 2, when=False, caches=1)
make_op_local(124, 'LOAD_FAST', ADAPTIVE, 0, 1, raises=False)
make_op_local(125, 'STORE_FAST', ADAPTIVE, 1, 0, raises=False)
make_op_local(126, 'DELETE_FAST', ADAPTIVE)
make_op_local(127, 'LOAD_FAST_CHECK', ONLY_312, 0, 1)
make_op_bfwd(128, 'POP_JUMP_FORWARD_IF_NOT_NONE', ONLY_311, 1, 0, when=False)
make_op_bfwd(129, 'POP_JUMP_FORWARD_IF_NONE', ONLY_311, 1, 0, when=True)
make_op_bfwd(128, 'POP_JUMP_IF_NOT_NONE', ONLY_312, 1, 0, when=False)
make_op_bfwd(129, 'POP_JUMP_IF_NONE', ONLY_312, 1, 0, when=True)
make_op_raise(130, 'RAISE_VARARGS', ADAPTIVE, _arg, 0)
make_op_num(131, 'GET_AWAITABLE', ADAPTIVE, 1, 1)
make_op_num(132, 'MAKE_FUNCTION', ADAPTIVE, _fn_args(1), 1)
make_op_num(133, 'BUILD_SLICE', ADAPTIVE, _build_slice, 1)
make_op_jback(134, 'JUMP_BACKWARD_NO_INTERRUPT', ADAPTIVE)
make_op_free(135, 'MAKE_CELL', ADAPTIVE, raises=False)
make_op_free(136, 'LOAD_CLOSURE', ADAPTIVE, 0, 1, raises=False)
make_op_free(137, 'LOAD_DEREF', ADAPTIVE, 0, 1)
make_op_free(138, 'STORE_DEREF', ADAPTIVE, 1, 0, raises=False)
make_op_free(139, 'DELETE_DEREF', ADAPTIVE)
make_op_jback(140, 'JUMP_BACKWARD', ADAPTIVE)
make_op_name(141, 'LOAD_SUPER_ATTR', ONLY_312, 3, _low_bit_plus(1), caches=1, name_shift=2)
make_op_call(142, 'CALL_FUNCTION_EX', ADAPTIVE, _low_bit_plus(3), 1)
make_op_local(143, 'LOAD_FAST_AND_CLEAR', ONLY_312, 0, 1, raises=False)
make_op_num(144, 'EXTENDED_ARG', ADAPTIVE, raises=False)
make_op_num(145, 'LIST_APPEND', ADAPTIVE, _plus(1), _arg)
make_op_num(146, 'SET_ADD', ADAPTIVE, _plus(1), _arg)
make_op_num(147, 'MAP_ADD', ADAPTIVE, _plus(2), _arg)
make_op_free(148, 'LOAD_CLASSDEREF', ONLY_311, 0, 1)
make_op_num(149, 'COPY_FREE_VARS', ADAPTIVE, raises=False)
make_op_num(150, 'YIELD_VALUE', ONLY_312, 1, 1)
make_op_num(151, 'RESUME', ADAPTIVE)
make_op_num(152, 'MATCH_CLASS', ADAPTIVE, 3, 1)
make_op_num(155, 'FORMAT_VALUE', ADAPTIVE, _format_value, 1)
make_op_num(156, 'BUILD_CONST_KEY_MAP', ADAPTIVE, _plus(1), 1)
make_op_num(157, 'BUILD_STRING', ADAPTIVE, _arg, 1)
make_op_name(160, 'LOAD_METHOD', ONLY_311, 1, 2, caches=10)
make_op_num(162, 'LIST_EXTEND', ADAPTIVE, _plus(1), _arg)
make_op_num(163, 'SET_UPDATE', ADAPTIVE, _plus(1), _arg)
make_op_num(164, 'DICT_MERGE', ADAPTIVE, _plus(1), _arg)
make_op_num(165, 'DICT_UPDATE', ADAPTIVE, _plus(1), _arg)
# PRECALL leaves the callable and self/NULL for CALL to consume
make_op_num(166, 'PRECALL', ONLY_311, _plus(2), 2, caches=1)
make_op_call(171, 'CALL', ONLY_311, 2, 1, caches=4)
make_op_call(171, 'CALL', ONLY_312, _plus(2), 1, caches=3)
make_op_const(172, 'KW_NAMES', ADAPTIVE)
make_op_bback(173, 'POP_JUMP_BACKWARD_IF_NOT_NONE', ONLY_311, 1, 0, when=False)
make_op_bback(174, 'POP_JUMP_BACKWARD_IF_NONE', ONLY_311, 1, 0, when=True)
make_op_bback(175, 'POP_JUMP_BACKWARD_IF_FALSE', ONLY_311, 1, 0, when=False)
make_op_bback(176, 'POP_JUMP_BACKWARD_IF_TRUE', ONLY_311, 1, 0, when=True)
make_op_call(173, 'CALL_INTRINSIC_1', ONLY_312, 1, 1)
make_op_call(174, 'CALL_INTRINSIC_2', ONLY_312, 2, 1)
make_op_name(175, 'LOAD_FROM_DICT_OR_GLOBALS', ONLY_312, 1, 1)
make_op_free(176, 'LOAD_FROM_DICT_OR_DEREF', ONLY_312, 1, 1)


# 3.13.  Opcodes are numbered alphabetically, no-argument ones first.

make_op(0, 'CACHE', ONLY_313, raises=False)
make_op(1, 'BEFORE_ASYNC_WITH', ONLY_313, 1, 2)
make_op(2, 'BEFORE_WITH', ONLY_313, 1, 2)
make_op(4, 'BINARY_SLICE', ONLY_313, 3, 1)
make_op(5, 'BINARY_SUBSCR', ONLY_313, 2, 1, caches=1)
make_op(6, 'CHECK_EG_MATCH', ONLY_313, 2, 2)
make_op(7, 'CHECK_EXC_MATCH', ONLY_313, 2, 2)
make_op(8, 'CLEANUP_THROW', ONLY_313, 3, 2)
make_op(9, 'DELETE_SUBSCR', ONLY_313, 2, 0)
make_op(10, 'END_ASYNC_FOR', ONLY_313, 2, 0)
make_op(11, 'END_FOR', ONLY_313, 1, 0, raises=False)
make_op(12, 'END_SEND', ONLY_313, 2, 1, raises=False)
make_op(13, 'EXIT_INIT_CHECK', ONLY_313, 1, 0)
make_op(14, 'FORMAT_SIMPLE', ONLY_313, 1, 1)
make_op(15, 'FORMAT_WITH_SPEC', ONLY_313, 2, 1)
make_op(16, 'GET_AITER', ONLY_313, 1, 1)
make_op(18, 'GET_ANEXT', ONLY_313, 1, 2)
make_op(19, 'GET_ITER', ONLY_313, 1, 1)
make_op(20, 'GET_LEN', ONLY_313, 1, 2)
make_op(21, 'GET_YIELD_FROM_ITER', ONLY_313, 1, 1)
make_op(23, 'LOAD_ASSERTION_ERROR', ONLY_313, 0, 1, raises=False)
make_op(24, 'LOAD_BUILD_CLASS', ONLY_313, 0, 1)
make_op(25, 'LOAD_LOCALS', ONLY_313, 0, 1)
make_op(26, 'MAKE_FUNCTION', ONLY_313, 1, 1)
make_op(27, 'MATCH_KEYS', ONLY_313, 2, 3)
make_op(28, 'MATCH_MAPPING', ONLY_313, 1, 2, raises=False)
make_op(29, 'MATCH_SEQUENCE', ONLY_313, 1, 2, raises=False)
make_op(30, 'NOP', ONLY_313, raises=False)
make_op(31, 'POP_EXCEPT', ONLY_313, 1, 0, raises=False)
make_op(32, 'POP_TOP', ONLY_313, 1, 0, raises=False)
make_op(33, 'PUSH_EXC_INFO', ONLY_313, 1, 2, raises=False)
make_op(34, 'PUSH_NULL', ONLY_313, 0, 1, raises=False)
make_op(35, 'RETURN_GENERATOR', ONLY_313, 0, 1, raises=False)
make_op_return(36, 'RETURN_VALUE', ONLY_313, 1, 0)
make_op(37, 'SETUP_ANNOTATIONS', ONLY_313)
make_op(38, 'STORE_SLICE', ONLY_313, 4, 0)
make_op(39, 'STORE_SUBSCR', ONLY_313, 3, 0, caches=1)
make_op(40, 'TO_BOOL', ONLY_313, 1, 1, caches=3)
make_op(41, 'UNARY_INVERT', ONLY_313, 1, 1)
make_op(42, 'UNARY_NEGATIVE', ONLY_313, 1, 1)
make_op(43, 'UNARY_NOT', ONLY_313, 1, 1, raises=False)
make_op(44, 'WITH_EXCEPT_START', ONLY_313, 4, 5)

make_op_binop(45, 'BINARY_OP', ONLY_313, 2, 1, caches=1)
make_op_num(46, 'BUILD_CONST_KEY_MAP', ONLY_313, _plus(1), 1)
make_op_num(47, 'BUILD_LIST', ONLY_313, _arg, 1)
make_op_num(48, 'BUILD_MAP', ONLY_313, _times(2), 1)
make_op_num(49, 'BUILD_SET', ONLY_313, _arg, 1)
make_op_num(50, 'BUILD_SLICE', ONLY_313, _build_slice, 1)
make_op_num(51, 'BUILD_STRING', ONLY_313, _arg, 1)
make_op_num(52, 'BUILD_TUPLE', ONLY_313, _arg, 1)
make_op_call(53, 'CALL', ONLY_313, _plus(2), 1, caches=3)
make_op_call(54, 'CALL_FUNCTION_EX', ONLY_313, _low_bit_plus(3), 1)
make_op_call(55, 'CALL_INTRINSIC_1', ONLY_313, 1, 1)
make_op_call(56, 'CALL_INTRINSIC_2', ONLY_313, 2, 1)
make_op_call(57, 'CALL_KW', ONLY_313, _plus(3), 1)
make_op_cmp(58, 'COMPARE_OP', ONLY_313, 2, 1, caches=1)
make_op_num(59, 'CONTAINS_OP', ONLY_313, 2, 1, caches=1)
make_op_num(60, 'CONVERT_VALUE', ONLY_313, 1, 1)
make_op_num(61, 'COPY', ONLY_313, _arg, _plus(1), raises=False)
make_op_num(62, 'COPY_FREE_VARS', ONLY_313, raises=False)
make_op_name(63, 'DELETE_ATTR', ONLY_313, 1, 0)
make_op_free(64, 'DELETE_DEREF', ONLY_313)
make_op_local(65, 'DELETE_FAST', ONLY_313)
make_op_name(66, 'DELETE_GLOBAL', ONLY_313)
make_op_name(67, 'DELETE_NAME', ONLY_313)
make_op_num(68, 'DICT_MERGE', ONLY_313, _plus(1), _arg)
make_op_num(69, 'DICT_UPDATE', ONLY_313, _plus(1), _arg)
make_op_num(71, 'EXTENDED_ARG', ONLY_313, raises=False)
make_op_bfwd(72, 'FOR_ITER', ONLY_313, 1, 2, when=False, caches=1)
make_op_num(73, 'GET_AWAITABLE', ONLY_313, 1, 1)
make_op_name(74, 'IMPORT_FROM', ONLY_313, 1, 2)
make_op_name(75, 'IMPORT_NAME', ONLY_313, 2, 1)
make_op_num(76, 'IS_OP', ONLY_313, 2, 1, raises=False)
make_op_jback(77, 'JUMP_BACKWARD', ONLY_313, caches=1)
make_op_jback(78, 'JUMP_BACKWARD_NO_INTERRUPT', ONLY_313)
make_op_jfwd(79, 'JUMP_FORWARD', ONLY_313)
make_op_num(80, 'LIST_APPEND', ONLY_313, _plus(1), _arg)
make_op_num(81, 'LIST_EXTEND', ONLY_313, _plus(1), _arg)
make_op_name(82, 'LOAD_ATTR', ONLY_313, 1, _low_bit_plus(1), caches=9, name_shift=1)
make_op_const(83, 'LOAD_CONST', ONLY_313, 0, 1)
make_op_free(84, 'LOAD_DEREF', ONLY_313, 0, 1)
make_op_local(85, 'LOAD_FAST', ONLY_313, 0, 1, raises=False)
make_op_local(86, 'LOAD_FAST_AND_CLEAR', ONLY_313, 0, 1, raises=False)
make_op_local(87, 'LOAD_FAST_CHECK', ONLY_313, 0, 1)
make_op_pair(88, 'LOAD_FAST_LOAD_FAST', ONLY_313, 0, 2)
make_op_free(89, 'LOAD_FROM_DICT_OR_DEREF', ONLY_313, 1, 1)
make_op_name(90, 'LOAD_FROM_DICT_OR_GLOBALS', ONLY_313, 1, 1)
make_op_name(91, 'LOAD_GLOBAL', ONLY_313, 0, _low_bit_plus(1), caches=4, name_shift=1)
make_op_name(92, 'LOAD_NAME', ONLY_313, 0, 1)
make_op_name(93, 'LOAD_SUPER_ATTR', ONLY_313, 3, _low_bit_plus(1), caches=1, name_shift=2)
make_op_free(94, 'MAKE_CELL', ONLY_313, raises=False)
make_op_num(95, 'MAP_ADD', ONLY_313, _plus(2), _arg)
make_op_num(96, 'MATCH_CLASS', ONLY_313, 3, 1)
make_op_bfwd(97, 'POP_JUMP_IF_FALSE', ONLY_313, 1, 0, when=False, caches=1, raises=False)
make_op_bfwd(98, 'POP_JUMP_IF_NONE', ONLY_313, 1, 0, when=True, caches=1, raises=False)
make_op_bfwd(99, 'POP_JUMP_IF_NOT_NONE', ONLY_313, 1, 0, when=False, caches=1, raises=False)
make_op_bfwd(100, 'POP_JUMP_IF_TRUE', ONLY_313, 1, 0, when=True, caches=1, raises=False)
make_op_raise(101, 'RAISE_VARARGS', ONLY_313, _arg, 0)
make_op_raise(102, 'RERAISE', ONLY_313, 1, 0)
make_op_return(103, 'RETURN_CONST', ONLY_313, arg=ArgKind.CONST)
make_op_bfwd(104, 'SEND', ONLY_313, 2, 2, when=False, caches=1)
make_op_num(105, 'SET_ADD', ONLY_313, _plus(1), _arg)
make_op_num(106, 'SET_FUNCTION_ATTRIBUTE', ONLY_313, 2, 1, raises=False)
make_op_num(107, 'SET_UPDATE', ONLY_313, _plus(1), _arg)
make_op_name(108, 'STORE_ATTR', ONLY_313, 2, 0, caches=4)
make_op_free(109, 'STORE_DEREF', ONLY_313, 1, 0, raises=False)
make_op_local(110, 'STORE_FAST', ONLY_313, 1, 0, raises=False)
make_op_pair(111, 'STORE_FAST_LOAD_FAST', ONLY_313, 1, 1)
make_op_pair(112, 'STORE_FAST_STORE_FAST', ONLY_313, 2, 0)
make_op_name(113, 'STORE_GLOBAL', ONLY_313, 1, 0)
make_op_name(114, 'STORE_NAME', ONLY_313, 1, 0)
make_op_num(115, 'SWAP', ONLY_313, _arg, _arg, raises=False)
make_op_num(116, 'UNPACK_EX', ONLY_313, 1, _unpack_ex)
make_op_num(117, 'UNPACK_SEQUENCE', ONLY_313, 1, _arg, caches=1)
make_op_num(118, 'YIELD_VALUE', ONLY_313, 1, 1)
make_op_num(149, 'RESUME', ONLY_313)


# 3.14.  Still alphabetical, renumbered for the new opcodes.  BINARY_SUBSCR
# became a BINARY_OP, small ints have their own load, and GET_ITER leaves an
# index slot below the iterator that POP_ITER drops along with it.

make_op(0, 'CACHE', ONLY_314, raises=False)
make_op(1, 'BINARY_SLICE', ONLY_314, 3, 1)
make_op(2, 'BUILD_TEMPLATE', ONLY_314, 2, 1)
make_op_call(4, 'CALL_FUNCTION_EX', ONLY_314, 4, 1, arg=ArgKind.NONE)
make_op(5, 'CHECK_EG_MATCH', ONLY_314, 2, 2)
make_op(6, 'CHECK_EXC_MATCH', ONLY_314, 2, 2)
make_op(7, 'CLEANUP_THROW', ONLY_314, 3, 2)
make_op(8, 'DELETE_SUBSCR', ONLY_314, 2, 0)
make_op(9, 'END_FOR', ONLY_314, 1, 0, raises=False)
make_op(10, 'END_SEND', ONLY_314, 2, 1, raises=False)
make_op(11, 'EXIT_INIT_CHECK', ONLY_314, 1, 0)
make_op(12, 'FORMAT_SIMPLE', ONLY_314, 1, 1)
make_op(13, 'FORMAT_WITH_SPEC', ONLY_314, 2, 1)
make_op(14, 'GET_AITER', ONLY_314, 1, 1)
make_op(15, 'GET_ANEXT', ONLY_314, 1, 2)
make_op(16, 'GET_ITER', ONLY_314, 1, 2)
make_op(18, 'GET_LEN', ONLY_314, 1, 2)
make_op(19, 'GET_YIELD_FROM_ITER', ONLY_314, 1, 1)
make_op(21, 'LOAD_BUILD_CLASS', ONLY_314, 0, 1)
make_op(22, 'LOAD_LOCALS', ONLY_314, 0, 1)
make_op(23, 'MAKE_FUNCTION', ONLY_314, 1, 1)
make_op(24, 'MATCH_KEYS', ONLY_314, 2, 3)
make_op(25, 'MATCH_MAPPING', ONLY_314, 1, 2, raises=False)
make_op(26, 'MATCH_SEQUENCE', ONLY_314, 1, 2, raises=False)
make_op(27, 'NOP', ONLY_314, raises=False)
make_op(28, 'NOT_TAKEN', ONLY_314, raises=False)
make_op(29, 'POP_EXCEPT', ONLY_314, 1, 0, raises=False)
make_op(30, 'POP_ITER', ONLY_314, 2, 0, raises=False)
make_op(31, 'POP_TOP', ONLY_314, 1, 0, raises=False)
make_op(32, 'PUSH_EXC_INFO', ONLY_314, 1, 2, raises=False)
make_op(33, 'PUSH_NULL', ONLY_314, 0, 1, raises=False)
make_op(34, 'RETURN_GENERATOR', ONLY_314, 0, 1, raises=False)
make_op_return(35, 'RETURN_VALUE', ONLY_314, 1, 0)
make_op(36, 'SETUP_ANNOTATIONS', ONLY_314)
make_op(37, 'STORE_SLICE', ONLY_314, 4, 0)
make_op(38, 'STORE_SUBSCR', ONLY_314, 3, 0, caches=1)
make_op(39, 'TO_BOOL', ONLY_314, 1, 1, caches=3)
make_op(40, 'UNARY_INVERT', ONLY_314, 1, 1)
make_op(41, 'UNARY_NEGATIVE', ONLY_314, 1, 1)
make_op(42, 'UNARY_NOT', ONLY_314, 1, 1, raises=False)
# exit function, its self, lasti, the previous exception and the exception
make_op(43, 'WITH_EXCEPT_START', ONLY_314, 5, 6)

make_op_binop(44, 'BINARY_OP', ONLY_314, 2, 1, caches=5)
make_op_num(45, 'BUILD_INTERPOLATION', ONLY_314, _low_bit_plus(2), 1)
make_op_num(46, 'BUILD_LIST', ONLY_314, _arg, 1)
make_op_num(47, 'BUILD_MAP', ONLY_314, _times(2), 1)
make_op_num(48, 'BUILD_SET', ONLY_314, _arg, 1)
make_op_num(49, 'BUILD_SLICE', ONLY_314, _build_slice, 1)
make_op_num(50, 'BUILD_STRING', ONLY_314, _arg, 1)
make_op_num(51, 'BUILD_TUPLE', ONLY_314, _arg, 1)
make_op_call(52, 'CALL', ONLY_314, _plus(2), 1, caches=3)
make_op_call(53, 'CALL_INTRINSIC_1', ONLY_314, 1, 1)
make_op_call(54, 'CALL_INTRINSIC_2', ONLY_314, 2, 1)
make_op_call(55, 'CALL_KW', ONLY_314, _plus(3), 1, caches=3)
make_op_cmp(56, 'COMPARE_OP', ONLY_314, 2, 1, caches=1)
make_op_num(57, 'CONTAINS_OP', ONLY_314, 2, 1, caches=1)
make_op_num(58, 'CONVERT_VALUE', ONLY_314, 1, 1)
make_op_num(59, 'COPY', ONLY_314, _arg, _plus(1), raises=False)
make_op_num(60, 'COPY_FREE_VARS', ONLY_314, raises=False)
make_op_name(61, 'DELETE_ATTR', ONLY_314, 1, 0)
make_op_free(62, 'DELETE_DEREF', ONLY_314)
make_op_local(63, 'DELETE_FAST', ONLY_314)
make_op_name(64, 'DELETE_GLOBAL', ONLY_314)
make_op_name(65, 'DELETE_NAME', ONLY_314)
make_op_num(66, 'DICT_MERGE', ONLY_314, _plus(1), _arg)
make_op_num(67, 'DICT_UPDATE', ONLY_314, _plus(1), _arg)
make_op_num(68, 'END_ASYNC_FOR', ONLY_314, 2, 0)
make_op_num(69, 'EXTENDED_ARG', ONLY_314, raises=False)
# jumps to the END_FOR, which pops the missing value
make_op_bfwd(70, 'FOR_ITER', ONLY_314, 2, 3, when=False, caches=1)
make_op_num(71, 'GET_AWAITABLE', ONLY_314, 1, 1)
make_op_name(72, 'IMPORT_FROM', ONLY_314, 1, 2)
make_op_name(73, 'IMPORT_NAME', ONLY_314, 2, 1)
make_op_num(74, 'IS_OP', ONLY_314, 2, 1, raises=False)
make_op_jback(75, 'JUMP_BACKWARD', ONLY_314, caches=1)
make_op_jback(76, 'JUMP_BACKWARD_NO_INTERRUPT', ONLY_314)
make_op_jfwd(77, 'JUMP_FORWARD', ONLY_314)
make_op_num(78, 'LIST_APPEND', ONLY_314, _plus(1), _arg)
make_op_num(79, 'LIST_EXTEND', ONLY_314, _plus(1), _arg)
make_op_name(80, 'LOAD_ATTR', ONLY_314, 1, _low_bit_plus(1), caches=9, name_shift=1)
make_op_num(81, 'LOAD_COMMON_CONSTANT', ONLY_314, 0, 1, raises=False)
make_op_const(82, 'LOAD_CONST', ONLY_314, 0, 1)
make_op_free(83, 'LOAD_DEREF', ONLY_314, 0, 1)
make_op_local(84, 'LOAD_FAST', ONLY_314, 0, 1, raises=False)
make_op_local(85, 'LOAD_FAST_AND_CLEAR', ONLY_314, 0, 1, raises=False)
make_op_local(86, 'LOAD_FAST_BORROW', ONLY_314, 0, 1, raises=False)
make_op_pair(87, 'LOAD_FAST_BORROW_LOAD_FAST_BORROW', ONLY_314, 0, 2)
make_op_local(88, 'LOAD_FAST_CHECK', ONLY_314, 0, 1)
make_op_pair(89, 'LOAD_FAST_LOAD_FAST', ONLY_314, 0, 2)
make_op_free(90, 'LOAD_FROM_DICT_OR_DEREF', ONLY_314, 1, 1)
make_op_name(91, 'LOAD_FROM_DICT_OR_GLOBALS', ONLY_314, 1, 1)
make_op_name(92, 'LOAD_GLOBAL', ONLY_314, 0, _low_bit_plus(1), caches=4, name_shift=1)
make_op_name(93, 'LOAD_NAME', ONLY_314, 0, 1)
make_op_num(94, 'LOAD_SMALL_INT', ONLY_314, 0, 1, raises=False)
# the special method and its self, or the function and a NULL
make_op_num(95, 'LOAD_SPECIAL', ONLY_314, 1, 2)
make_op_name(96, 'LOAD_SUPER_ATTR', ONLY_314, 3, _low_bit_plus(1), caches=1, name_shift=2)
make_op_free(97, 'MAKE_CELL', ONLY_314, raises=False)
make_op_num(98, 'MAP_ADD', ONLY_314, _plus(2), _arg)
make_op_num(99, 'MATCH_CLASS', ONLY_314, 3, 1)
make_op_bfwd(100, 'POP_JUMP_IF_FALSE', ONLY_314, 1, 0, when=False, caches=1, raises=False)
make_op_bfwd(101, 'POP_JUMP_IF_NONE', ONLY_314, 1, 0, when=True, caches=1, raises=False)
make_op_bfwd(102, 'POP_JUMP_IF_NOT_NONE', ONLY_314, 1, 0, when=False, caches=1, raises=False)
make_op_bfwd(103, 'POP_JUMP_IF_TRUE', ONLY_314, 1, 0, when=True, caches=1, raises=False)
make_op_raise(104, 'RAISE_VARARGS', ONLY_314, _arg, 0)
make_op_raise(105, 'RERAISE', ONLY_314, 1, 0)
make_op_bfwd(106, 'SEND', ONLY_314, 2, 2, when=False, caches=1)
make_op_num(107, 'SET_ADD', ONLY_314, _plus(1), _arg)
make_op_num(108, 'SET_FUNCTION_ATTRIBUTE', ONLY_314, 2, 1, raises=False)
make_op_num(109, 'SET_UPDATE', ONLY_314, _plus(1), _arg)
make_op_name(110, 'STORE_ATTR', ONLY_314, 2, 0, caches=4)
make_op_free(111, 'STORE_DEREF', ONLY_314, 1, 0, raises=False)
make_op_local(112, 'STORE_FAST', ONLY_314, 1, 0, raises=False)
make_op_pair(113, 'STORE_FAST_LOAD_FAST', ONLY_314, 1, 1)
make_op_pair(114, 'STORE_FAST_STORE_FAST', ONLY_314, 2, 0)
make_op_name(115, 'STORE_GLOBAL', ONLY_314, 1, 0)
make_op_name(116, 'STORE_NAME', ONLY_314, 1, 0)
make_op_num(117, 'SWAP', ONLY_314, _arg, _arg, raises=False)
make_op_num(118, 'UNPACK_EX', ONLY_314, 1, _unpack_ex)
make_op_num(119, 'UNPACK_SEQUENCE', ONLY_314, 1, _arg, caches=1)
make_op_num(120, 'YIELD_VALUE', ONLY_314, 1, 1)
make_op_num(128, 'RESUME', ONLY_314)


# table construction

def build_table(version):
    """Builds the opcode table of a version from the registrations.  Raises
    ValueError if two registrations match the same code."""
    infos = []
    for code in sorted(OPCODES):
        found = None
        for spec, flag in OPCODES[code]:
            if version.match(flag):
                if found is not None:
                    raise ValueError("opcode {} matches both {} and {} on {}".format(
                        code, found['name'], spec['name'], version.name))
                found = spec
        if found is not None:
            infos.append(OpcodeInfo(code=code, **found))
    jump_unit = 2 if version.has_unit_jumps else 1
    table = OpcodeTable(version, infos, jump_unit, version.cmp_shift)
    logger.debug("built opcode table for %s: %d opcodes", version.name, len(table))
    return table


_TABLES = {}
_TABLES_LOCK = threading.Lock()

def resolve(version):
    """Returns the shared opcode table for anything find_version accepts.
    Raises UnsupportedVersionError for unknown versions."""
    version = find_version(version)
    table = _TABLES.get(version)
    if table is not None:
        return table
    with _TABLES_LOCK:
        table = _TABLES.get(version)
        if table is None:
            table = _TABLES[version] = build_table(version)
    return table

def register_table(version, table):
    """Installs a custom table for a version.  Later resolve() calls for that
    version return it."""
    version = find_version(version)
    if not isinstance(table, OpcodeTable):
        raise AnalysisError("not an opcode table: {!r}".format(table))
    with _TABLES_LOCK:
        _TABLES[version] = table
    logger.debug("custom opcode table registered for %s", version.name)
