class FormatError(Exception):
    """Raised when a byte-level structure can't be read."""

    def __init__(self, msg, offset=None):
        self.msg = msg
        self.offset = offset
        if offset is not None:
            msg = "{} (at offset {})".format(msg, offset)
        super().__init__(msg)


class DecodeError(FormatError):
    pass


class TruncatedError(DecodeError):
    """Input ends before a declared length or fixed-size field."""


class BadReferenceError(DecodeError):
    """A back-reference points outside the reference table."""


class TooDeepError(DecodeError):
    """Nesting exceeds the configured maximum depth."""


class UnknownOpcodeError(DecodeError):
    """An instruction byte has no entry in the active opcode table."""


class MalformedTagError(DecodeError):
    """A type tag is unknown or not allowed where it appears."""


class MalformedDataError(DecodeError):
    """The payload following a valid tag can't be interpreted."""


class TrailingDataError(DecodeError):
    """Bytes remain after the top-level value."""


class Cursor:
    """A read position over an in-memory byte buffer.

    All reads are bounds-checked before slicing; a read that would go past
    the end raises TruncatedError with the offset where the read started.
    """
    __slots__ = 'data', 'pos'

    def __init__(self, data, pos=0):
        self.data = bytes(data)
        self.pos = pos

    def remaining(self):
        return len(self.data) - self.pos

    def at_eof(self):
        return self.pos == len(self.data)

    def read_bytes(self, size):
        if size < 0:
            raise MalformedDataError("negative size {}".format(size), self.pos)
        if size > self.remaining():
            raise TruncatedError("premature EOF: wanted {} bytes, {} left".format(
                size, self.remaining()), self.pos)
        res = self.data[self.pos:self.pos + size]
        self.pos += size
        return res

    def read_byte(self):
        return self.read_bytes(1)[0]

    def read_le(self, size, signed=False):
        return int.from_bytes(self.read_bytes(size), 'little', signed=signed)

    def rest(self):
        res = self.data[self.pos:]
        self.pos = len(self.data)
        return res

    def read_eof(self):
        if not self.at_eof():
            raise TrailingDataError("junk after EOF ({} bytes)".format(self.remaining()), self.pos)
