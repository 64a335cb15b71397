import importlib.util
import marshal
import struct

import pytest

from bcflow.format.helpers import TruncatedError
from bcflow.format.marshal import MarshalCode, MarshalNone, MarshalSlice
from bcflow.format.pyc import PycFile, PycError, FLAG_HASH_BASED, FLAG_CHECK_SOURCE
from bcflow.python.version import Pyc310, Pyc312, Pyc314


def header(version, flags=0, rest=b'\x00' * 8):
    return struct.pack('<II', version.code, flags) + rest


def test_timestamp_pyc():
    pyc = PycFile(header(Pyc312, 0, struct.pack('<II', 1700000000, 123)) + b'N')
    assert pyc.version is Pyc312
    assert pyc.timestamp == 1700000000
    assert pyc.size == 123
    assert pyc.source_hash is None
    assert pyc.code == MarshalNone()
    assert pyc.payload == b'N'


def test_hash_pyc():
    pyc = PycFile(header(Pyc310, FLAG_HASH_BASED | FLAG_CHECK_SOURCE, b'abcdefgh') + b'N')
    assert pyc.version is Pyc310
    assert pyc.source_hash == b'abcdefgh'
    assert pyc.timestamp is None
    lines = list(pyc.show())
    assert lines[0] == 'pyc version 3439 (Python 3.10)'
    assert lines[1] == 'source hash 6162636465666768, checked'


def test_314_pyc():
    pyc = PycFile(header(Pyc314) + b':NNN')
    assert pyc.version is Pyc314
    assert list(pyc.show())[0] == 'pyc version 3627 (Python 3.14)'
    assert isinstance(pyc.code, MarshalSlice)


def test_unknown_magic():
    with pytest.raises(PycError) as exc:
        PycFile(struct.pack('<II', 0x0a0d0000 | 62211, 0) + b'\x00' * 8 + b'N')
    assert exc.value.offset == 0


def test_unknown_flags():
    with pytest.raises(PycError) as exc:
        PycFile(header(Pyc312, 4) + b'N')
    assert exc.value.offset == 4


def test_truncated_header():
    with pytest.raises(TruncatedError):
        PycFile(header(Pyc312)[:12])


def test_host_pyc(host_version):
    code = compile('x = 1\n', '<test>', 'exec')
    data = importlib.util.MAGIC_NUMBER + struct.pack('<III', 0, 0, 6) + marshal.dumps(code)
    pyc = PycFile(data)
    assert pyc.version is host_version
    assert isinstance(pyc.code, MarshalCode)
    assert pyc.code.name == '<module>'
