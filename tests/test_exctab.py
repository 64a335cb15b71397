import marshal

import pytest

from bcflow.format.exctab import parse_exception_table, ExceptionRange
from bcflow.format.helpers import MalformedDataError, TruncatedError
from bcflow.format.marshal import loads
from bcflow.python.code import Code


def test_parse():
    data = bytes([
        0x82, 0x03, 0x0a, 0x03,
        0x80, 0x01, 0x41, 0x24, 0x00,
    ])
    assert parse_exception_table(data) == [
        ExceptionRange(4, 10, 20, 1, True),
        ExceptionRange(0, 2, 200, 0, False),
    ]


def test_empty():
    assert parse_exception_table(b'') == []


def test_entry_start_bit():
    with pytest.raises(MalformedDataError) as exc:
        parse_exception_table(bytes([0x82, 0x03, 0x0a, 0x03, 0x02, 0x01, 0x01, 0x00]))
    assert exc.value.offset == 4


def test_truncated():
    with pytest.raises(TruncatedError):
        parse_exception_table(bytes([0x82, 0x03]))


def test_range():
    rng = ExceptionRange(4, 10, 20, 1, True)
    assert rng.covers(4)
    assert rng.covers(8)
    assert not rng.covers(10)
    assert rng.handler_depth() == 3
    assert ExceptionRange(4, 10, 20).handler_depth() is None
    assert str(rng) == '4-10 -> 20 [1 lasti]'


def test_host_try(host_version):
    if not host_version.has_exception_table:
        pytest.skip("no exception tables before 3.11")
    source = 'try:\n    x()\nexcept E:\n    y()\n'
    code = Code(loads(marshal.dumps(compile(source, '<test>', 'exec')), host_version), host_version)
    table = code.exception_table()
    assert table
    offsets = {ins.offset for ins in code.instructions()}
    for rng in table:
        assert rng.start in offsets
        assert rng.target in offsets
        assert rng.start < rng.end
