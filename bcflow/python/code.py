from enum import IntFlag

from bcflow.format.marshal import MarshalCode, deref
from bcflow.format.exctab import parse_exception_table
from bcflow.show import preindent, indent, listing

from .bytecode import decode_stream, parse_linetable
from .helpers import PythonError
from .opcodes import resolve
from .version import find_version


class CodeFlag(IntFlag):
    optimized = 1 << 0
    newlocals = 1 << 1
    varargs = 1 << 2
    varkeywords = 1 << 3
    nested = 1 << 4
    generator = 1 << 5
    nofree = 1 << 6
    coroutine = 1 << 7
    iterable_coroutine = 1 << 8
    async_generator = 1 << 9
    # future flags
    future_division = 1 << 17
    future_absolute_import = 1 << 18
    future_with_statement = 1 << 19
    future_print_function = 1 << 20
    future_unicode_literals = 1 << 21
    future_barry_as_bdfl = 1 << 22
    future_generator_stop = 1 << 23
    future_annotations = 1 << 24
    # 3.14+
    has_docstring = 1 << 26
    method = 1 << 27


class Code:
    """A typed view of a MarshalCode.

    Only the cheap parts are worked out in the constructor (flags and
    argument names).  Nested code objects are wrapped on first access,
    instructions and tables are decoded on request.
    """
    __slots__ = (
        'version',
        'table',
        'raw',

        'name',
        'qualname',
        'filename',
        'flags',

        'args',
        'posonly',
        'kwargs',
        'varargs',
        'varkw',

        '_consts',
    )

    def __init__(self, obj, version):
        obj = deref(obj)
        if not isinstance(obj, MarshalCode):
            raise PythonError("code expected")
        self.version = find_version(version)
        self.table = resolve(self.version)
        self.raw = obj
        self.name = obj.name
        self.qualname = obj.qualname
        self.filename = obj.filename
        # flags
        reflags = 0
        self.flags = set()
        for flag in CodeFlag:
            if obj.flags & flag:
                self.flags.add(flag)
                reflags |= flag
        if reflags != obj.flags:
            raise PythonError("Unk flags {:x}".format(obj.flags & ~reflags))
        self._init_args(obj)
        self._consts = None

    def _init_args(self, obj):
        varnames = obj.varnames
        if obj.argcount + obj.kwonlyargcount > len(varnames):
            raise PythonError("More args than locals")
        if obj.posonlyargcount > obj.argcount:
            raise PythonError("More positional-only args than args")
        argidx = 0
        self.args = varnames[argidx:argidx + obj.argcount]
        self.posonly = self.args[:obj.posonlyargcount]
        argidx += obj.argcount
        self.kwargs = varnames[argidx:argidx + obj.kwonlyargcount]
        argidx += obj.kwonlyargcount
        if CodeFlag.varargs in self.flags:
            if argidx == len(varnames):
                raise PythonError("More args than locals")
            self.varargs = varnames[argidx]
            argidx += 1
        else:
            self.varargs = None
        if CodeFlag.varkeywords in self.flags:
            if argidx == len(varnames):
                raise PythonError("More args than locals")
            self.varkw = varnames[argidx]
            argidx += 1
        else:
            self.varkw = None

    @property
    def consts(self):
        """Constants with references resolved, and code objects wrapped."""
        if self._consts is None:
            consts = []
            for const in self.raw.consts:
                const = deref(const)
                if isinstance(const, MarshalCode):
                    consts.append(Code(const, self.version))
                else:
                    consts.append(const)
            self._consts = consts
        return self._consts

    def nested(self):
        """The code objects in the consts tab, in order."""
        return [const for const in self.consts if isinstance(const, Code)]

    def const(self, idx):
        if idx >= len(self.raw.consts):
            raise PythonError("const index {} out of range".format(idx))
        return self.consts[idx]

    def name_at(self, idx):
        if idx >= len(self.raw.names):
            raise PythonError("name index {} out of range".format(idx))
        return self.raw.names[idx]

    def local(self, idx):
        if self.version.has_localsplus:
            names = self.raw.localsplusnames
        else:
            names = self.raw.varnames
        if idx >= len(names):
            raise PythonError("local index {} out of range".format(idx))
        return names[idx]

    def free(self, idx):
        if self.version.has_localsplus:
            names = self.raw.localsplusnames
        else:
            names = self.raw.cellvars + self.raw.freevars
        if idx >= len(names):
            raise PythonError("cell index {} out of range".format(idx))
        return names[idx]

    def instructions(self):
        return decode_stream(self.raw.code, self.table)

    def exception_table(self):
        if not self.version.has_exception_table:
            return []
        return parse_exception_table(self.raw.exceptiontable)

    def lines(self):
        return parse_linetable(self.version, self.raw.firstlineno, self.raw.linetable, len(self.raw.code))

    def show(self):
        yield 'CODE'
        yield 'name: {} from {}'.format(self.qualname, self.filename)
        yield 'flags: {}'.format(', '.join(sorted(flag.name for flag in self.flags)))
        # args
        args = list(self.args)
        if self.posonly:
            args.insert(len(self.posonly), '/')
        if self.varargs is not None:
            args.append('*{}'.format(self.varargs))
        elif self.kwargs:
            args.append('*')
        args += self.kwargs
        if self.varkw is not None:
            args.append('**{}'.format(self.varkw))
        if args:
            yield 'args: {}'.format(', '.join(args))
        yield from listing('vars', self.raw.varnames)
        yield from listing('freevars', self.raw.freevars)
        yield from listing('cellvars', self.raw.cellvars)
        yield 'consts:'
        for idx, const in enumerate(self.consts):
            if isinstance(const, Code):
                yield from indent(preindent(idx, const.show()))
            else:
                yield '\t{}: {}'.format(idx, const)
        yield from listing('names', self.raw.names)
        yield 'stacksize: {}'.format(self.raw.stacksize)
        yield 'code:'
        for ins in self.instructions():
            yield '\t{}'.format(ins)

    def __repr__(self):
        return '<Code {}>'.format(self.qualname)
