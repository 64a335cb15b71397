"""Reads the marshal format.

Marshal is the serialization format of pyc files.  Its only real job is to
store code objects, but since code objects reference other objects (consts,
names, the bytecode itself), marshal supports every type that can be reached
from one, and a few more that never show up in a pyc file (list, dict, set,
StopIteration).

A marshal stream is a tree of objects: you read a single object, and each
object can contain inner objects.  Every object starts with a byte holding
the type code and the reference flag (0x80).  Further data, if any, is
determined by the type code.  There is no framing, no way to skip an object,
and no end marker: reading stops when the object is complete.

The reference flag says the object is to be stored in the reference table,
so that a later 'r' object can cite it by index.  The table is filled in the
order objects *start* loading: a tuple that gets a slot is registered before
its items are read, which is what makes recursive structures possible:

    >>> a = marshal.loads(b'\\xa8\\x01\\x00\\x00\\x00r\\x00\\x00\\x00\\x00')
    >>> a[0] is a
    True

We keep references as MarshalRef nodes instead of sharing Python objects.
The node cites a slot in the RefTable owned by the tree; deref() looks it
up.  Nothing in the tree points back at the reader.

The code object layout depends on the Python version that wrote the stream,
which is why we have our own reader instead of the marshal module: it'd tie
us to the version we're running on.  The layouts are data (CODE_LAYOUTS),
selected by version flags.

Readers of composite objects are generators: they yield to ask for an inner
object and get it sent back.  load_object drives them off an explicit stack,
so deep nesting costs list entries rather than Python frames.
"""

import binascii
import logging
import math
import struct
from types import GeneratorType

from bcflow.meta import Node, Field, ListField
from bcflow.show import preindent, indent
from bcflow.python.version import find_version
from .helpers import (
    Cursor, MalformedTagError, MalformedDataError, BadReferenceError,
    TooDeepError, TruncatedError,
)

logger = logging.getLogger(__name__)

# Nesting cap for a single stream.  Composites are read off an explicit
# stack, so this is the only limit on nesting.
MAX_DEPTH = 256

FLAG_REF = 0x80

# localspluskinds bits (3.11+)
CO_FAST_LOCAL = 0x20
CO_FAST_CELL = 0x40
CO_FAST_FREE = 0x80


# nodes

class MarshalNode(Node, abstract=True):
    """A marshal object.  Does not include the NULL type - it's represented
    by a None instead.

    Nodes compare structurally: references are followed on both sides, so
    a shared reference equals a duplicated value, and cycles terminate.
    """
    # fields taking part in equality, None for all
    _eq_fields = None

    def show(self):
        yield str(self)

    def __eq__(self, other):
        if not isinstance(other, MarshalNode):
            return NotImplemented
        return _equal(self, other, set())

    def __ne__(self, other):
        res = self.__eq__(other)
        if res is NotImplemented:
            return res
        return not res

    __hash__ = None

    def _same(self, other, seen):
        for field in self._fields:
            if self._eq_fields is not None and field.name not in self._eq_fields:
                continue
            if not _equal_values(getattr(self, field.name), getattr(other, field.name), seen):
                return False
        return True


# singletons

class MarshalNone(MarshalNode):
    """A marshal None singleton."""

    def __str__(self):
        return 'None'


class MarshalBool(MarshalNode):
    """A marshal bool value."""
    val = Field(bool)

    def __str__(self):
        return str(self.val)


class MarshalEllipsis(MarshalNode):
    """A marshal ellipsis singleton."""

    def __str__(self):
        return "..."


class MarshalStopIteration(MarshalNode):
    """The StopIteration singleton.  Never emitted by the compiler."""

    def __str__(self):
        return 'StopIteration'


# primitive types

class MarshalInt(MarshalNode):
    """An int that fit in the 32-bit ('i') or 64-bit ('I') form."""
    val = Field(int)

    def __str__(self):
        return str(self.val)


class MarshalLong(MarshalNode):
    """An int stored as 15-bit digits ('l')."""
    val = Field(int)

    def __str__(self):
        return str(self.val)


class MarshalFloat(MarshalNode):
    """A marshal float value, loaded from text or binary format."""
    val = Field(float)

    def __str__(self):
        return repr(self.val)


class MarshalComplex(MarshalNode):
    """A marshal complex value, loaded from text or binary format."""
    val = Field(complex)

    def __str__(self):
        return repr(self.val)


class MarshalString(MarshalNode):
    """A byte string."""
    val = Field(bytes)

    def __str__(self):
        return repr(self.val)


class MarshalUnicode(MarshalNode):
    """A unicode string.  interned is whether the stream asked for interning;
    it doesn't take part in comparisons."""
    val = Field(str)
    interned = Field(bool)
    _eq_fields = ('val',)

    def __init__(self, val, interned=False):
        super().__init__(val, interned)

    def __str__(self):
        return repr(self.val)


# containers

class MarshalTuple(MarshalNode):
    val = ListField(MarshalNode)

    def __str__(self):
        return '({}{})'.format(', '.join(str(v) for v in self.val), ',' if len(self.val) == 1 else '')


class MarshalList(MarshalNode):
    val = ListField(MarshalNode)

    def __str__(self):
        return '[{}]'.format(', '.join(str(v) for v in self.val))


class MarshalDict(MarshalNode):
    """A marshal dict.  val is a tuple of (key, value) pairs in stream
    order."""
    val = ListField(tuple)

    def __str__(self):
        return '{{{}}}'.format(', '.join('{}: {}'.format(k, v) for k, v in self.val))


class _MarshalSetBase(MarshalNode, abstract=True):
    """Items are kept in stream order, but compared as a set."""
    val = ListField(MarshalNode)

    def _same(self, other, seen):
        if len(self.val) != len(other.val):
            return False
        left = list(other.val)
        for item in self.val:
            for idx, cand in enumerate(left):
                if _equal(item, cand, set(seen)):
                    del left[idx]
                    break
            else:
                return False
        return True


class MarshalSet(_MarshalSetBase):
    def __str__(self):
        if not self.val:
            return 'set()'
        return '{{{}}}'.format(', '.join(str(v) for v in self.val))


class MarshalFrozenset(_MarshalSetBase):
    def __str__(self):
        return 'frozenset([{}])'.format(', '.join(str(v) for v in self.val))


class MarshalSlice(MarshalNode):
    """A constant slice (3.14+), as folded into LOAD_CONST by the compiler."""
    start = Field(MarshalNode)
    stop = Field(MarshalNode)
    step = Field(MarshalNode)

    def __str__(self):
        return "slice({}, {}, {})".format(self.start, self.stop, self.step)


# references

class MarshalRef(MarshalNode):
    """A back-reference: index of a slot in the reference table."""
    index = Field(int)
    table = Field(object)

    def get(self):
        return self.table[self.index]

    def __str__(self):
        return '<ref {}>'.format(self.index)

    def __repr__(self):
        return 'MarshalRef({})'.format(self.index)


def deref(node):
    """Returns the value a MarshalRef cites, or the node itself."""
    if isinstance(node, MarshalRef):
        return node.get()
    return node


class RefTable:
    """The reference table of one decoded stream.  Append-only; the index of
    a slot is its registration order."""
    __slots__ = '_slots',

    def __init__(self):
        self._slots = []

    def __len__(self):
        return len(self._slots)

    def __getitem__(self, index):
        return self._slots[index]

    def reserve(self):
        self._slots.append(None)
        return len(self._slots) - 1

    def fill(self, index, node):
        if self._slots[index] is not None:
            raise ValueError("reference slot {} already filled".format(index))
        self._slots[index] = node


# code

class MarshalCode(MarshalNode):
    """A marshal code object.  Fields are:

    - argcount, posonlyargcount, kwonlyargcount (int)
    - nlocals (int or None): None on 3.11+, where it's derived from
      localspluskinds
    - stacksize, flags (int)
    - code (bytes): the bytecode
    - consts (tuple of MarshalNode): may contain MarshalRef
    - names (tuple of str)
    - varnames, freevars, cellvars (tuple of str): on 3.11+ computed from
      localsplusnames and localspluskinds
    - localsplusnames (tuple of str or None), localspluskinds (bytes or
      None): 3.11+ only
    - filename, name (str)
    - qualname (str): same as name before 3.11
    - firstlineno (int)
    - linetable (bytes): co_lnotab on 3.9, co_linetable after; kept verbatim
    - exceptiontable (bytes): empty before 3.11
    """
    argcount = Field(int)
    posonlyargcount = Field(int)
    kwonlyargcount = Field(int)
    nlocals = Field(int, optional=True)
    stacksize = Field(int)
    flags = Field(int)
    code = Field(bytes)
    consts = ListField(MarshalNode)
    names = ListField(str)
    varnames = ListField(str)
    freevars = ListField(str)
    cellvars = ListField(str)
    localsplusnames = ListField(str, optional=True)
    localspluskinds = Field(bytes, optional=True)
    filename = Field(str)
    name = Field(str)
    qualname = Field(str)
    firstlineno = Field(int)
    linetable = Field(bytes)
    exceptiontable = Field(bytes)

    @classmethod
    def build(cls, fields):
        """Makes a code object from the fields of any layout, filling in the
        ones the layout doesn't store."""
        fields = dict(fields)
        if 'localsplusnames' in fields:
            names = fields['localsplusnames']
            kinds = fields['localspluskinds']
            fields['varnames'] = [n for n, k in zip(names, kinds) if k & CO_FAST_LOCAL]
            fields['cellvars'] = [n for n, k in zip(names, kinds) if k & CO_FAST_CELL]
            fields['freevars'] = [n for n, k in zip(names, kinds) if k & CO_FAST_FREE]
        fields.setdefault('qualname', fields['name'])
        fields.setdefault('exceptiontable', b'')
        return cls(**fields)

    def __str__(self):
        return '<code {}>'.format(self.qualname)

    def show(self):
        yield "CODE {}".format(self.qualname)
        yield "args: {} + {} + {}, locals: {}, stacksize: {}".format(
            self.posonlyargcount, self.argcount - self.posonlyargcount,
            self.kwonlyargcount, self.nlocals, self.stacksize)
        yield "flags: {:x}".format(self.flags)
        yield "code: {}".format(binascii.b2a_hex(self.code).decode())
        yield "consts:"
        for idx, const in enumerate(self.consts):
            yield from indent(preindent(idx, deref(const).show()))
        yield "names: {}".format(', '.join(self.names))
        yield "varnames: {}".format(', '.join(self.varnames))
        yield "freevars: {}".format(', '.join(self.freevars))
        yield "cellvars: {}".format(', '.join(self.cellvars))
        yield "filename: {}".format(self.filename)
        yield "lines: {} then {}".format(self.firstlineno, binascii.b2a_hex(self.linetable).decode())
        if self.exceptiontable:
            yield "exceptions: {}".format(binascii.b2a_hex(self.exceptiontable).decode())


def _same_float(x, y):
    if math.isnan(x) or math.isnan(y):
        return math.isnan(x) and math.isnan(y)
    return x == y and math.copysign(1, x) == math.copysign(1, y)

def _equal_values(x, y, seen):
    if isinstance(x, MarshalNode) and isinstance(y, MarshalNode):
        return _equal(x, y, seen)
    if isinstance(x, tuple) and isinstance(y, tuple):
        return len(x) == len(y) and all(_equal_values(a, b, seen) for a, b in zip(x, y))
    if isinstance(x, float) and isinstance(y, float):
        return _same_float(x, y)
    if isinstance(x, complex) and isinstance(y, complex):
        return _same_float(x.real, y.real) and _same_float(x.imag, y.imag)
    return type(x) is type(y) and x == y

def _equal(a, b, seen):
    a = deref(a)
    b = deref(b)
    if a is b:
        return True
    if type(a) is not type(b):
        return False
    key = id(a), id(b)
    if key in seen:
        return True
    seen.add(key)
    return a._same(b, seen)


# reader functions

MARSHAL_CODES = {}

def _code(code, flag=None):
    """Register a reader function.  code is the type code, passed as string
    for clarity.  flag is a version flag spec (see PycVersion.match) that
    determines whether the function is active; None means always."""
    def inner(function):
        MARSHAL_CODES.setdefault(ord(code), []).append((function, flag))
        return function
    return inner

# all these functions take the reference flag as the second argument

# singletons.  '0' is the NULL marker ending a dict; load_object rejects
# it everywhere else.

@_code('0')
def load_null(ctx, flag):
    return None

@_code('N')
def load_none(ctx, flag):
    return MarshalNone()

@_code('.')
def load_ellipsis(ctx, flag):
    return MarshalEllipsis()

@_code('S')
def load_stop_iteration(ctx, flag):
    return MarshalStopIteration()

@_code('T')
def load_true(ctx, flag):
    return MarshalBool(True)

@_code('F')
def load_false(ctx, flag):
    return MarshalBool(False)

@_code('?')
def load_unknown(ctx, flag):
    raise MalformedTagError("explicit unknown object in stream", ctx.start)

# ints.  'i' covers 32 bits, 'I' is a 64-bit form that modern writers never
# emit but readers still accept, and 'l' is a sign-magnitude bignum in
# 15-bit digits, with the signed digit count first.

@_code('i')
def load_int(ctx, flag):
    return ctx.ref(MarshalInt(ctx.le4s()), flag)

@_code('I')
def load_int64(ctx, flag):
    return ctx.ref(MarshalInt(ctx.cursor.read_le(8, signed=True)), flag)

@_code('l')
def load_long(ctx, flag):
    n = ctx.le4s()
    if abs(n) * 2 > ctx.cursor.remaining():
        raise TruncatedError("long with {} digits doesn't fit".format(abs(n)), ctx.cursor.pos)
    res = 0
    digit = 0
    for x in range(abs(n)):
        digit = ctx.cursor.read_le(2)
        if digit >= 1 << 15:
            raise MalformedDataError("digit out of range in long", ctx.cursor.pos - 2)
        res |= digit << x * 15
    if n and not digit:
        raise MalformedDataError("unnormalized long data", ctx.start)
    if n < 0:
        res = -res
    return ctx.ref(MarshalLong(res), flag)

# float and complex.  The text format has a one-byte length.

def _text_float(ctx):
    pos = ctx.cursor.pos
    text = ctx.cursor.read_bytes(ctx.cursor.read_byte())
    try:
        return float(text.decode('ascii'))
    except ValueError:
        raise MalformedDataError("bad float text {!r}".format(text), pos)

@_code('f')
def load_float(ctx, flag):
    return ctx.ref(MarshalFloat(_text_float(ctx)), flag)

@_code('x')
def load_complex(ctx, flag):
    re = _text_float(ctx)
    im = _text_float(ctx)
    return ctx.ref(MarshalComplex(complex(re, im)), flag)

@_code('g')
def load_bin_float(ctx, flag):
    res, = struct.unpack('<d', ctx.cursor.read_bytes(8))
    return ctx.ref(MarshalFloat(res), flag)

@_code('y')
def load_bin_complex(ctx, flag):
    re, im = struct.unpack('<dd', ctx.cursor.read_bytes(16))
    return ctx.ref(MarshalComplex(complex(re, im)), flag)

# strings

@_code('s')
def load_string(ctx, flag):
    return ctx.ref(MarshalString(ctx.cursor.read_bytes(ctx.le4s())), flag)

def _load_text(ctx, flag, len_, encoding, interned):
    pos = ctx.cursor.pos
    raw = ctx.cursor.read_bytes(len_)
    try:
        res = raw.decode(encoding, 'surrogatepass' if encoding == 'utf-8' else 'strict')
    except UnicodeDecodeError as e:
        raise MalformedDataError("undecodable string: {}".format(e.reason), pos + e.start)
    return ctx.ref(MarshalUnicode(res, interned), flag)

@_code('u')
def load_unicode(ctx, flag):
    return _load_text(ctx, flag, ctx.le4s(), 'utf-8', False)

@_code('t')
def load_interned(ctx, flag):
    return _load_text(ctx, flag, ctx.le4s(), 'utf-8', True)

# ascii strings - optimized storage of unicode strings.

@_code('a')
def load_ascii(ctx, flag):
    return _load_text(ctx, flag, ctx.le4s(), 'ascii', False)

@_code('A')
def load_ascii_interned(ctx, flag):
    return _load_text(ctx, flag, ctx.le4s(), 'ascii', True)

@_code('z')
def load_short_ascii(ctx, flag):
    return _load_text(ctx, flag, ctx.cursor.read_byte(), 'ascii', False)

@_code('Z')
def load_short_ascii_interned(ctx, flag):
    return _load_text(ctx, flag, ctx.cursor.read_byte(), 'ascii', True)

# Count-prefixed containers.  The slot is reserved before the items are
# read, and filled once the node is complete.  Inner objects are asked for
# with a yield; the value yielded says whether NULL is acceptable.

def _load_items(ctx, flag, type_, len_):
    if len_ < 0:
        raise MalformedDataError("negative size {}".format(len_), ctx.start)
    idx = ctx.reserve(flag)
    items = []
    for x in range(len_):
        items.append((yield False))
    return ctx.fill(idx, type_(items))

@_code('(')
def load_tuple(ctx, flag):
    return (yield from _load_items(ctx, flag, MarshalTuple, ctx.le4s()))

@_code(')')
def load_small_tuple(ctx, flag):
    return (yield from _load_items(ctx, flag, MarshalTuple, ctx.cursor.read_byte()))

@_code('[')
def load_list(ctx, flag):
    return (yield from _load_items(ctx, flag, MarshalList, ctx.le4s()))

@_code('<')
def load_set(ctx, flag):
    return (yield from _load_items(ctx, flag, MarshalSet, ctx.le4s()))

@_code('>')
def load_frozenset(ctx, flag):
    return (yield from _load_items(ctx, flag, MarshalFrozenset, ctx.le4s()))

# dict - NULL-terminated key/value pairs

@_code('{')
def load_dict(ctx, flag):
    idx = ctx.reserve(flag)
    pairs = []
    while True:
        key = yield True
        if key is None:
            break
        pairs.append((key, (yield False)))
    return ctx.fill(idx, MarshalDict(pairs))

# slice - start, stop, step

@_code(':', 'has_marshal_slice')
def load_slice(ctx, flag):
    idx = ctx.reserve(flag)
    start = yield False
    stop = yield False
    step = yield False
    return ctx.fill(idx, MarshalSlice(start, stop, step))

# references

@_code('r')
def load_ref(ctx, flag):
    idx = ctx.le4s()
    if not 0 <= idx < len(ctx.refs):
        raise BadReferenceError("invalid reference {} (table has {})".format(idx, len(ctx.refs)), ctx.start)
    return MarshalRef(idx, ctx.refs)

# code.  Field readers are generators too, the ones without inner objects
# just never yield.

def _field_long(ctx):
    yield from ()
    return ctx.le4s()

def _field_object(ctx, type_, what):
    pos = ctx.cursor.pos
    obj = deref((yield False))
    if not isinstance(obj, type_):
        raise MalformedTagError("{} expected, got {}".format(what, type(obj).__name__), pos)
    return obj

def _field_bytes(ctx):
    return (yield from _field_object(ctx, MarshalString, 'bytes')).val

def _field_str(ctx):
    return (yield from _field_object(ctx, MarshalUnicode, 'string')).val

def _field_tuple(ctx):
    return (yield from _field_object(ctx, MarshalTuple, 'tuple')).val

def _field_str_tuple(ctx):
    pos = ctx.cursor.pos
    res = []
    for item in (yield from _field_tuple(ctx)):
        item = deref(item)
        if not isinstance(item, MarshalUnicode):
            raise MalformedTagError("string expected in name tuple", pos)
        res.append(item.val)
    return res

# Code object layouts, in stream order.  The first entry whose flags match
# the version is used.
CODE_LAYOUTS = [
    (('has_posonly', '!has_localsplus'), (
        ('argcount', _field_long),
        ('posonlyargcount', _field_long),
        ('kwonlyargcount', _field_long),
        ('nlocals', _field_long),
        ('stacksize', _field_long),
        ('flags', _field_long),
        ('code', _field_bytes),
        ('consts', _field_tuple),
        ('names', _field_str_tuple),
        ('varnames', _field_str_tuple),
        ('freevars', _field_str_tuple),
        ('cellvars', _field_str_tuple),
        ('filename', _field_str),
        ('name', _field_str),
        ('firstlineno', _field_long),
        ('linetable', _field_bytes),
    )),
    ('has_localsplus', (
        ('argcount', _field_long),
        ('posonlyargcount', _field_long),
        ('kwonlyargcount', _field_long),
        ('stacksize', _field_long),
        ('flags', _field_long),
        ('code', _field_bytes),
        ('consts', _field_tuple),
        ('names', _field_str_tuple),
        ('localsplusnames', _field_str_tuple),
        ('localspluskinds', _field_bytes),
        ('filename', _field_str),
        ('name', _field_str),
        ('qualname', _field_str),
        ('firstlineno', _field_long),
        ('linetable', _field_bytes),
        ('exceptiontable', _field_bytes),
    )),
]

@_code('c')
def load_code(ctx, flag):
    start = ctx.start
    idx = ctx.reserve(flag)
    fields = {}
    for name, reader in ctx.code_layout:
        fields[name] = yield from reader(ctx)
    if 'localspluskinds' in fields and len(fields['localspluskinds']) != len(fields['localsplusnames']):
        raise MalformedDataError("localsplusnames and localspluskinds differ in length", start)
    return ctx.fill(idx, MarshalCode.build(fields))


_RULES_CACHE = {}

def _rules_for(version):
    """Picks the active reader for every type code and the code layout."""
    try:
        return _RULES_CACHE[version]
    except KeyError:
        pass
    rules = {}
    for code, funs in MARSHAL_CODES.items():
        for fun, flags in funs:
            if version.match(flags):
                rules[code] = fun
                break
    for flags, layout in CODE_LAYOUTS:
        if version.match(flags):
            break
    else:
        layout = None
        rules.pop(ord('c'), None)
    res = _RULES_CACHE[version] = rules, layout
    logger.debug("marshal rules for %s: %d type codes", version.name, len(rules))
    return res


class Unmarshaller:
    """The state of one decode: cursor, reference table, and the stack of
    composite readers still waiting for inner objects."""

    def __init__(self, data, version, max_depth=MAX_DEPTH):
        self.cursor = Cursor(data)
        self.version = find_version(version)
        self.refs = RefTable()
        self.max_depth = max_depth
        # offset of the type byte of the object being read
        self.start = 0
        self.rules, self.code_layout = _rules_for(self.version)

    def load_object(self, nullable=False):
        """Loads an object, returns a MarshalNode.

        If nullable is True, NULL is allowed and is returned as None.
        Otherwise, NULL raises an exception.
        """
        # (reader, offset of its type byte, whether it may be NULL)
        stack = []
        while True:
            start = self.cursor.pos
            code = self.cursor.read_byte()
            flag = bool(code & FLAG_REF)
            code &= ~FLAG_REF
            fun = self.rules.get(code)
            if fun is None:
                raise MalformedTagError("marshal type unknown ({!r})".format(bytes([code])), start)
            if len(stack) >= self.max_depth:
                raise TooDeepError("nesting deeper than {}".format(self.max_depth), start)
            self.start = start
            res = fun(self, flag)
            if isinstance(res, GeneratorType):
                reader = res
                try:
                    want = next(reader)
                except StopIteration as e:
                    res = e.value
                else:
                    stack.append((reader, start, nullable))
                    nullable = want
                    continue
            # res is complete; hand it to the readers waiting for it
            while True:
                if res is None and not nullable:
                    raise MalformedTagError("NULL in a funny place", start)
                if not stack:
                    return res
                reader, start, nullable = stack[-1]
                try:
                    want = reader.send(res)
                except StopIteration as e:
                    stack.pop()
                    res = e.value
                else:
                    nullable = want
                    break

    def le4s(self):
        """Reads a raw signed 32-bit int."""
        return self.cursor.read_le(4, signed=True)

    def ref(self, obj, flag):
        """Maybe stores a complete object in the reference table, depending
        on the flag.  Returns the object."""
        if flag:
            idx = self.refs.reserve()
            self.refs.fill(idx, obj)
        return obj

    def reserve(self, flag):
        """Reserves a slot for a composite about to be read, if flagged."""
        if flag:
            return self.refs.reserve()
        return None

    def fill(self, idx, obj):
        if idx is not None:
            self.refs.fill(idx, obj)
        return obj


def loads_partial(data, version, max_depth=MAX_DEPTH):
    """Deserializes one marshal object from the start of data.  Returns
    the MarshalNode and the bytes that follow it."""
    ctx = Unmarshaller(data, version, max_depth)
    res = ctx.load_object()
    logger.debug("decoded %d bytes, %d references", ctx.cursor.pos, len(ctx.refs))
    return res, ctx.cursor.rest()


def loads(data, version, max_depth=MAX_DEPTH):
    """Deserializes a marshal stream that holds exactly one object.  Returns
    a MarshalNode."""
    ctx = Unmarshaller(data, version, max_depth)
    res = ctx.load_object()
    ctx.cursor.read_eof()
    logger.debug("decoded %d bytes, %d references", ctx.cursor.pos, len(ctx.refs))
    return res
