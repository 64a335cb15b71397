import pytest

from bcflow.format.helpers import TruncatedError, UnknownOpcodeError
from bcflow.format.marshal import MarshalCode, MarshalNone, MarshalInt
from bcflow.python.bytecode import (
    decode_stream, parse_lnotab, parse_linetable_310, parse_location_table,
)
from bcflow.python.code import Code, CodeFlag
from bcflow.python.helpers import PythonError
from bcflow.python.opcodes import resolve, ArgKind


def test_decode_offsets(assemble):
    table = resolve('3.12')
    ops = decode_stream(assemble('3.12', [
        ('LOAD_CONST', 0),
        ('LOAD_CONST', 1),
        ('COMPARE_OP', 0x28),
        ('RETURN_VALUE', 0),
    ]), table)
    assert [op.name for op in ops] == ['LOAD_CONST', 'LOAD_CONST', 'COMPARE_OP', 'RETURN_VALUE']
    assert [op.offset for op in ops] == [0, 2, 4, 8]
    assert ops[2].length == 4
    assert ops[2].nextpos == 8
    assert ops[0].arg == 0
    assert ops[3].arg is None
    assert ops[0].target is None


def test_extended_arg(assemble):
    table = resolve('3.12')
    ops = decode_stream(assemble('3.12', [
        ('EXTENDED_ARG', 1),
        ('EXTENDED_ARG', 2),
        ('LOAD_CONST', 3),
        ('LOAD_CONST', 4),
    ]), table)
    assert [op.name for op in ops] == ['EXTENDED_ARG', 'EXTENDED_ARG', 'LOAD_CONST', 'LOAD_CONST']
    assert ops[1].arg == 0x102
    assert ops[2].arg == 0x10203
    assert ops[3].arg == 4


def test_extended_jump(assemble):
    table = resolve('3.9')
    ops = decode_stream(assemble('3.9', [
        ('EXTENDED_ARG', 1),
        ('JUMP_ABSOLUTE', 4),
    ]), table)
    assert ops[1].arg == 260
    assert ops[1].target == 260


def test_unit_jumps(assemble):
    table = resolve('3.10')
    ops = decode_stream(assemble('3.10', [
        ('LOAD_CONST', 0),
        ('POP_JUMP_IF_FALSE', 3),
        ('JUMP_FORWARD', 1),
    ]), table)
    assert ops[1].target == 6
    assert ops[2].target == 8


def test_unknown_opcode(assemble):
    code = assemble('3.12', ['NOP', 'NOP']) + bytes([255, 0])
    with pytest.raises(UnknownOpcodeError) as exc:
        decode_stream(code, resolve('3.12'))
    assert exc.value.offset == 4


def test_truncated_instruction(assemble):
    code = assemble('3.12', ['NOP']) + bytes([9])
    with pytest.raises(TruncatedError) as exc:
        decode_stream(code, resolve('3.12'))
    assert exc.value.offset == 2


def test_truncated_cache(assemble):
    code = assemble('3.12', ['NOP', ('COMPARE_OP', 0)])[:-1]
    with pytest.raises(TruncatedError) as exc:
        decode_stream(code, resolve('3.12'))
    assert exc.value.offset == 2


def test_dangling_extended_arg(assemble):
    code = assemble('3.12', ['NOP', ('EXTENDED_ARG', 1)])
    with pytest.raises(TruncatedError) as exc:
        decode_stream(code, resolve('3.12'))
    assert exc.value.offset == 2


def test_empty_stream():
    assert decode_stream(b'', resolve('3.12')) == []


def _code_312(code, **kw):
    fields = dict(
        argcount=1,
        posonlyargcount=0,
        kwonlyargcount=0,
        stacksize=2,
        flags=CodeFlag.optimized | CodeFlag.newlocals,
        code=code,
        consts=[MarshalNone(), MarshalInt(5)],
        names=['print', 'x'],
        localsplusnames=['a', 'b', 'c'],
        localspluskinds=bytes([0x26, 0x20, 0x40]),
        filename='<test>',
        name='f',
        qualname='f',
        firstlineno=1,
        linetable=b'',
        exceptiontable=b'',
    )
    fields.update(kw)
    return MarshalCode.build(fields)


def test_resolve_operands(assemble):
    code = Code(_code_312(assemble('3.12', [
        ('LOAD_GLOBAL', 3),
        ('LOAD_FAST', 1),
        ('COMPARE_OP', 0x28),
        ('LOAD_CONST', 1),
        ('BINARY_OP', 10),
        ('LOAD_DEREF', 2),
        ('POP_JUMP_IF_FALSE', 0),
        ('RETURN_CONST', 0),
    ])), '3.12')
    ops = code.instructions()
    assert [op.resolve(code) for op in ops] == [
        'x', 'b', '==', MarshalInt(5), '-', 'c', ops[-1].offset, MarshalNone(),
    ]
    assert ops[0].info.arg is ArgKind.NAME


def test_resolve_pair(assemble):
    raw = _code_312(assemble('3.13', [('LOAD_FAST_LOAD_FAST', 0x12)]))
    code = Code(raw, '3.13')
    op, = code.instructions()
    assert op.resolve(code) == ('b', 'c')


def test_resolve_out_of_range(assemble):
    code = Code(_code_312(assemble('3.12', [('LOAD_CONST', 7)])), '3.12')
    op, = code.instructions()
    with pytest.raises(PythonError):
        op.resolve(code)


def test_code_view():
    code = Code(_code_312(b''), '3.12')
    assert code.args == ('a',)
    assert code.raw.varnames == ('a', 'b')
    assert code.raw.cellvars == ('c',)
    assert code.flags == {CodeFlag.optimized, CodeFlag.newlocals}
    assert code.nested() == []


def test_code_unknown_flags():
    with pytest.raises(PythonError):
        Code(_code_312(b'', flags=1 << 30), '3.12')


def test_code_314(assemble):
    flags = CodeFlag.optimized | CodeFlag.newlocals | CodeFlag.has_docstring | CodeFlag.method
    code = Code(_code_312(assemble('3.14', [
        ('LOAD_SMALL_INT', 7),
        ('LOAD_FAST_BORROW', 1),
        ('BINARY_OP', 26),
        ('RETURN_VALUE', 0),
    ]), flags=flags), '3.14')
    assert CodeFlag.method in code.flags
    assert [op.resolve(code) for op in code.instructions()] == [7, 'b', '[]', None]


def test_lnotab():
    # 0-6 line 1, 6-10 line 3, 10-14 line 2
    assert parse_lnotab(1, bytes([6, 2, 4, 0xff]), 14) == [(0, 6, 1), (6, 10, 3), (10, 14, 2)]


def test_linetable_310():
    # -128 is "no line"
    table = bytes([4, 0, 2, 0x80, 6, 2])
    assert parse_linetable_310(5, table) == [(0, 4, 5), (4, 6, None), (6, 12, 7)]


def test_location_table():
    table = bytes([
        # one line form, line + 1, 2 units, columns
        0x80 | 11 << 3 | 1, 0, 4,
        # short form, 1 unit
        0x80 | 0 << 3 | 0, 0,
        # no location, 1 unit
        0x80 | 15 << 3 | 0,
        # no columns, line delta -1 (svarint 3), 3 units
        0x80 | 13 << 3 | 2, 3,
    ])
    assert parse_location_table(10, table) == [(0, 6, 11), (6, 8, None), (8, 14, 10)]
