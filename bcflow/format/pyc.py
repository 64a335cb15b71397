import datetime

from .helpers import Cursor, FormatError
from .marshal import loads, MAX_DEPTH
from bcflow.python.version import PYC_VERSIONS

FLAG_HASH_BASED = 1
FLAG_CHECK_SOURCE = 2


class PycError(FormatError):
    pass


class PycFile:
    """Represents a pyc file in deserialized form.

    A pyc file is signature + flags word + either a timestamp and source
    size, or a source hash (PEP 552) + a marshal object.  Nothing to see here.
    """
    __slots__ = 'version', 'flags', 'timestamp', 'size', 'source_hash', 'payload', 'code'

    def __init__(self, data, max_depth=MAX_DEPTH):
        cursor = Cursor(data)
        version_code = cursor.read_le(4)
        try:
            self.version = PYC_VERSIONS[version_code]
        except KeyError:
            raise PycError("pyc version unknown ({:#x})".format(version_code), 0)
        self.flags = cursor.read_le(4)
        if self.flags & ~(FLAG_HASH_BASED | FLAG_CHECK_SOURCE):
            raise PycError("unknown pyc flags {:#x}".format(self.flags), 4)
        if self.flags & FLAG_HASH_BASED:
            self.source_hash = cursor.read_bytes(8)
            self.timestamp = None
            self.size = None
        else:
            self.source_hash = None
            self.timestamp = cursor.read_le(4)
            self.size = cursor.read_le(4)
        self.payload = cursor.rest()
        self.code = loads(self.payload, self.version, max_depth)

    def show(self):
        yield "pyc version {} ({})".format(self.version.magic, self.version.name)
        if self.source_hash is not None:
            yield "source hash {}{}".format(
                self.source_hash.hex(),
                ', checked' if self.flags & FLAG_CHECK_SOURCE else '')
        else:
            yield "source mtime {}, size {}".format(
                datetime.datetime.fromtimestamp(self.timestamp), self.size)
        yield from self.code.show()
