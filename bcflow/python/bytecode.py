import logging

from bcflow.meta import Node, Field
from bcflow.format.helpers import Cursor, TruncatedError, UnknownOpcodeError
from .helpers import PythonError
from .opcodes import ArgKind, OpcodeInfo, CMP_OPS, BINARY_OPS

logger = logging.getLogger(__name__)


class DecodedInstruction(Node):
    """One instruction of a code object.

    offset is in bytes from the start of co_code, length includes the inline
    cache entries.  arg is the full operand with all EXTENDED_ARG prefixes
    folded in, or None for opcodes that take none.  target is the absolute
    byte offset of a jump target.
    """
    offset = Field(int)
    opcode = Field(int)
    name = Field(str)
    arg = Field(int, optional=True)
    length = Field(int)
    info = Field(OpcodeInfo)
    target = Field(int, optional=True)

    @property
    def nextpos(self):
        return self.offset + self.length

    def resolve(self, code):
        """Maps the operand to what it means in the given Code: a const,
        a name, a local or cell name, a comparison, or a jump target."""
        kind = self.info.arg
        arg = self.arg
        if kind is ArgKind.NONE:
            return None
        elif kind is ArgKind.NUM:
            return arg
        elif kind is ArgKind.CONST:
            return code.const(arg)
        elif kind is ArgKind.NAME:
            return code.name_at(arg >> self.info.name_shift)
        elif kind is ArgKind.LOCAL:
            return code.local(arg)
        elif kind is ArgKind.LOCAL_PAIR:
            return code.local(arg >> 4), code.local(arg & 15)
        elif kind is ArgKind.FREE:
            return code.free(arg)
        elif kind is ArgKind.CMP:
            idx = arg >> code.table.cmp_shift
            if idx >= len(CMP_OPS):
                raise PythonError("invalid cmp op {}".format(arg))
            return CMP_OPS[idx]
        elif kind is ArgKind.BINOP:
            if arg >= len(BINARY_OPS):
                raise PythonError("invalid binary op {}".format(arg))
            return BINARY_OPS[arg]
        elif kind is ArgKind.JUMP:
            return self.target
        raise TypeError("unknown operand kind {}".format(kind))

    def __str__(self):
        res = '{:>6} {}'.format(self.offset, self.name)
        if self.arg is not None:
            res += ' {}'.format(self.arg)
        if self.target is not None:
            res += ' (to {})'.format(self.target)
        return res


def decode_stream(code, table):
    """Decodes raw instruction bytes with an opcode table.  Returns the list
    of DecodedInstruction in stream order.

    EXTENDED_ARG shows up as an instruction of its own; the operand it
    accumulates is carried to the next instruction and dropped after it.
    """
    code = bytes(code)
    unit = table.unit
    res = []
    pos = 0
    ext = 0
    ext_pos = None
    while pos != len(code):
        if len(code) - pos < unit:
            raise TruncatedError("bytecode ends in the middle of an instruction", pos)
        opc = code[pos]
        info = table.get(opc)
        if info is None:
            raise UnknownOpcodeError("unknown opcode {}".format(opc), pos)
        length = unit * (1 + info.caches)
        if pos + length > len(code):
            raise TruncatedError("bytecode ends in the inline cache of {}".format(info.name), pos)
        full = ext << 8 | code[pos + 1]
        if opc == table.extended_arg:
            arg = full
            ext = full
            ext_pos = pos
        else:
            arg = None if info.arg is ArgKind.NONE else full
            ext = 0
            ext_pos = None
        nextpos = pos + length
        target = None
        if info.jump is not None:
            target = table.jump_target(info, nextpos, arg)
        res.append(DecodedInstruction(
            offset=pos,
            opcode=opc,
            name=info.name,
            arg=arg,
            length=length,
            info=info,
            target=target,
        ))
        pos = nextpos
    if ext_pos is not None:
        raise TruncatedError("bytecode ends after EXTENDED_ARG", ext_pos)
    logger.debug("decoded %d instructions from %d bytes", len(res), len(code))
    return res


# lineno handling

def _add_range(res, start, end, line):
    if end <= start:
        return
    if res and res[-1][1] == start and res[-1][2] == line:
        res[-1] = (res[-1][0], end, line)
    else:
        res.append((start, end, line))

def _signed_byte(b):
    return b - 0x100 if b & 0x80 else b

def parse_lnotab(firstlineno, lnotab, codelen):
    """Parses a 3.9 co_lnotab: pairs of (address increment, signed line
    increment)."""
    if len(lnotab) % 2:
        raise PythonError("lnotab length not divisible by 2")
    lit = iter(lnotab)
    res = []
    start = 0
    addr = 0
    line = firstlineno
    for addr_inc, line_inc in zip(lit, lit):
        if addr_inc:
            _add_range(res, start, addr + addr_inc, line)
            addr += addr_inc
            start = addr
        line += _signed_byte(line_inc)
    _add_range(res, start, codelen, line)
    return res

def parse_linetable_310(firstlineno, linetable):
    """Parses a 3.10 co_linetable: pairs of (byte delta, signed line delta),
    where a line delta of -128 means no line number."""
    if len(linetable) % 2:
        raise PythonError("linetable length not divisible by 2")
    lit = iter(linetable)
    res = []
    start = 0
    line = firstlineno
    for sdelta, ldelta in zip(lit, lit):
        ldelta = _signed_byte(ldelta)
        if ldelta == -128:
            cur = None
        else:
            line += ldelta
            cur = line
        _add_range(res, start, start + sdelta, cur)
        start += sdelta
    return res

def _read_varint(cursor):
    b = cursor.read_byte()
    val = b & 0x3f
    shift = 0
    while b & 0x40:
        b = cursor.read_byte()
        shift += 6
        val |= (b & 0x3f) << shift
    return val

def _read_svarint(cursor):
    val = _read_varint(cursor)
    if val & 1:
        return -(val >> 1)
    return val >> 1

def parse_location_table(firstlineno, table):
    """Parses a 3.11+ location table, keeping line numbers only."""
    cursor = Cursor(table)
    res = []
    start = 0
    line = firstlineno
    while not cursor.at_eof():
        pos = cursor.pos
        b = cursor.read_byte()
        if not b & 0x80:
            raise PythonError("location table entry doesn't start at {}".format(pos))
        kind = b >> 3 & 15
        end = start + ((b & 7) + 1) * 2
        if kind == 15:
            cur = None
        elif kind == 14:
            line += _read_svarint(cursor)
            cur = line
            # end line, start and end columns
            _read_varint(cursor)
            _read_varint(cursor)
            _read_varint(cursor)
        elif kind == 13:
            line += _read_svarint(cursor)
            cur = line
        elif kind >= 10:
            line += kind - 10
            cur = line
            cursor.read_bytes(2)
        else:
            cur = line
            cursor.read_bytes(1)
        _add_range(res, start, end, cur)
        start = end
    return res

def parse_linetable(version, firstlineno, linetable, codelen):
    """Expands the version-specific line table of a code object into
    (start, end, line) byte ranges.  line is None for ranges without one."""
    if version.has_location_table:
        return parse_location_table(firstlineno, linetable)
    elif version.has_linetable:
        return parse_linetable_310(firstlineno, linetable)
    else:
        return parse_lnotab(firstlineno, linetable, codelen)
