"""Reads the exception table of 3.11+ code objects.

Since 3.11, try blocks don't compile to SETUP_* opcodes anymore.  Instead,
co_exceptiontable lists the instruction ranges covered by a handler.  Each
entry is four varints: start, length, target (all in code units), and
depth_lasti, which is the stack depth to unwind to, shifted left by one, with
the low bit saying whether the offset of the raising instruction is pushed
before the exception.

The varints are big-endian 6-bit chunks, with 0x40 marking that another
chunk follows.  The first byte of an entry additionally has 0x80 set.
"""

from bcflow.meta import Node, Field
from .helpers import Cursor, MalformedDataError

CODE_UNIT = 2


class ExceptionRange(Node):
    """Instructions in [start, end) are covered by the handler at target.
    Offsets are in bytes.  depth is the stack depth the handler unwinds to,
    None if unknown; lasti says whether the raising offset is pushed."""
    start = Field(int)
    end = Field(int)
    target = Field(int)
    depth = Field(int, optional=True)
    lasti = Field(bool)

    def __init__(self, start, end, target, depth=None, lasti=False):
        super().__init__(start, end, target, depth, lasti)

    def covers(self, offset):
        return self.start <= offset < self.end

    def handler_depth(self):
        """Stack depth at the start of the handler, or None if unknown."""
        if self.depth is None:
            return None
        return self.depth + self.lasti + 1

    def __str__(self):
        return '{}-{} -> {} [{}{}]'.format(
            self.start, self.end, self.target,
            '?' if self.depth is None else self.depth,
            ' lasti' if self.lasti else '')


def _read_varint(cursor):
    b = cursor.read_byte()
    val = b & 0x3f
    while b & 0x40:
        val <<= 6
        b = cursor.read_byte()
        val |= b & 0x3f
    return val


def parse_exception_table(data):
    """Parses co_exceptiontable bytes into a list of ExceptionRange."""
    cursor = Cursor(data)
    res = []
    while not cursor.at_eof():
        pos = cursor.pos
        if not cursor.data[pos] & 0x80:
            raise MalformedDataError("exception table entry doesn't start here", pos)
        start = _read_varint(cursor)
        length = _read_varint(cursor)
        target = _read_varint(cursor)
        depth_lasti = _read_varint(cursor)
        res.append(ExceptionRange(
            start * CODE_UNIT,
            (start + length) * CODE_UNIT,
            target * CODE_UNIT,
            depth_lasti >> 1,
            bool(depth_lasti & 1),
        ))
    return res
