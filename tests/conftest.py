import sys

import pytest

from bcflow.format.marshal import (
    deref, MarshalNone, MarshalEllipsis, MarshalStopIteration, MarshalBool,
    MarshalInt, MarshalLong, MarshalFloat, MarshalComplex, MarshalString,
    MarshalUnicode, MarshalTuple, MarshalList, MarshalDict, MarshalSet,
    MarshalFrozenset, MarshalSlice,
)
from bcflow.python.helpers import UnsupportedVersionError
from bcflow.python.opcodes import resolve
from bcflow.python.version import find_version


def assemble_ops(version, ops):
    """Builds instruction bytes from (name, arg) pairs, or bare names for
    arg 0.  Inline caches are filled with zero bytes (CACHE 0)."""
    table = resolve(version)
    res = bytearray()
    for op in ops:
        if isinstance(op, tuple):
            name, arg = op
        else:
            name, arg = op, 0
        info = table.by_name[name]
        res += bytes([info.code, arg])
        res += bytes(table.unit * info.caches)
    return bytes(res)


@pytest.fixture
def assemble():
    return assemble_ops


def to_python(node):
    node = deref(node)
    if isinstance(node, MarshalNone):
        return None
    if isinstance(node, MarshalEllipsis):
        return Ellipsis
    if isinstance(node, MarshalStopIteration):
        return StopIteration
    if isinstance(node, (MarshalBool, MarshalInt, MarshalLong, MarshalFloat,
                         MarshalComplex, MarshalString, MarshalUnicode)):
        return node.val
    if isinstance(node, MarshalTuple):
        return tuple(to_python(x) for x in node.val)
    if isinstance(node, MarshalList):
        return [to_python(x) for x in node.val]
    if isinstance(node, MarshalDict):
        return {to_python(k): to_python(v) for k, v in node.val}
    if isinstance(node, MarshalSet):
        return {to_python(x) for x in node.val}
    if isinstance(node, MarshalFrozenset):
        return frozenset(to_python(x) for x in node.val)
    if isinstance(node, MarshalSlice):
        return slice(to_python(node.start), to_python(node.stop), to_python(node.step))
    raise TypeError("can't convert {!r}".format(node))


@pytest.fixture
def host_version():
    """The version of the running interpreter, for tests that use the host
    marshal module to write streams."""
    try:
        return find_version(sys.version_info)
    except UnsupportedVersionError:
        pytest.skip("host python {}.{} not supported".format(*sys.version_info[:2]))
