import pytest

from bcflow.python.helpers import AnalysisError, UnsupportedVersionError
from bcflow.python.opcodes import (
    resolve, build_table, register_table, OPCODES, OpcodeTable, ArgKind,
    JumpKind, FlowKind, StackEffect, BINARY_OPS,
)
from bcflow.python.version import (
    find_version, Pyc39, Pyc310, Pyc311, Pyc312, Pyc313, Pyc314, PYC_VERSIONS,
)

ALL = [Pyc39, Pyc310, Pyc311, Pyc312, Pyc313, Pyc314]


@pytest.mark.parametrize('token, version', [
    ('3.9', Pyc39),
    ('3.13', Pyc313),
    ('3.14', Pyc314),
    (3627, Pyc314),
    ((3, 11), Pyc311),
    ((3, 12, 1, 'final', 0), Pyc312),
    (3439, Pyc310),
    (0x0a0d0da7, Pyc311),
    (Pyc312, Pyc312),
])
def test_find_version(token, version):
    assert find_version(token) is version


@pytest.mark.parametrize('token', ['2.7', '3.8', '3.15', 'junk', (2, 7), 1234])
def test_unsupported_version(token):
    with pytest.raises(UnsupportedVersionError):
        resolve(token)


def test_magic_registry():
    for version in ALL:
        assert PYC_VERSIONS[version.code] is version
        assert version.code >> 16 == 0x0a0d


def test_tables_are_shared():
    assert resolve('3.12') is resolve((3, 12))
    assert resolve('3.12') is resolve(Pyc312)
    assert resolve('3.11') is not resolve('3.12')


@pytest.mark.parametrize('version', ALL)
def test_table_consistency(version):
    table = resolve(version)
    assert table.version is version
    assert table.extended_arg is not None
    for code, info in table.by_code.items():
        assert info.code == code
        assert table.by_name[info.name] is info
        assert isinstance(info.flow, FlowKind)
        assert (info.jump is not None) == (info.arg is ArgKind.JUMP)
        if info.flow is FlowKind.BRANCH:
            assert info.when is not None
        if info.flow in (FlowKind.JUMP, FlowKind.BRANCH, FlowKind.SETUP):
            assert info.jump is not None


@pytest.mark.parametrize('version', ALL)
def test_table_read_only(version):
    table = resolve(version)
    with pytest.raises(TypeError):
        table.by_code[0] = None
    with pytest.raises(TypeError):
        table.by_name['NOP'] = None


def test_jump_units():
    assert resolve('3.9').jump_unit == 1
    for version in ALL[1:]:
        assert resolve(version).jump_unit == 2


def test_jump_target():
    table = resolve('3.12')
    fwd = table.by_name['JUMP_FORWARD']
    back = table.by_name['JUMP_BACKWARD']
    assert fwd.jump is JumpKind.FORWARD
    assert table.jump_target(fwd, 10, 3) == 16
    assert table.jump_target(back, 10, 3) == 4
    old = resolve('3.9')
    assert old.jump_target(old.by_name['JUMP_ABSOLUTE'], 10, 7) == 7


def test_numbering_changes():
    assert resolve('3.12').opcode('LOAD_CONST') == 100
    assert resolve('3.13').opcode('LOAD_CONST') == 83
    assert resolve('3.14').opcode('LOAD_CONST') == 82
    assert resolve('3.14').opcode('LOAD_SMALL_INT') == 94
    assert 'LOAD_SMALL_INT' not in resolve('3.13').by_name
    assert 'BINARY_SUBSCR' in resolve('3.13').by_name
    assert 'BINARY_SUBSCR' not in resolve('3.14').by_name
    assert 'CACHE' not in resolve('3.10').by_name
    assert resolve('3.11').opcode('CACHE') == 0
    assert 'PRECALL' in resolve('3.11').by_name
    assert 'PRECALL' not in resolve('3.12').by_name
    assert 'RETURN_CONST' not in resolve('3.11').by_name
    assert 'SETUP_FINALLY' in resolve('3.10').by_name
    assert 'SETUP_FINALLY' not in resolve('3.11').by_name


def test_variadic_effect():
    table = resolve('3.12')
    build = table.by_name['BUILD_TUPLE'].effect
    assert build.pops(3) == 3
    assert build.net(3) == -2
    assert build.net(0) == 1
    call = table.by_name['CALL'].effect
    assert call.net(2) == -3


def test_branch_effects():
    table = resolve('3.9')
    for_iter = table.by_name['FOR_ITER']
    assert for_iter.flow is FlowKind.BRANCH
    assert for_iter.effect.net(0) == 1
    assert for_iter.effect.net(0, jump=True) == -1
    setup = table.by_name['SETUP_FINALLY']
    assert setup.flow is FlowKind.SETUP
    assert setup.effect.net(0) == 0
    assert setup.effect.net(0, jump=True) == 6


def test_stack_effect_defaults():
    effect = StackEffect(2, 1)
    assert effect.net(None) == -1
    assert effect.net(None, jump=True) == -1


def test_conflicting_registrations(monkeypatch):
    spec, flag = OPCODES[9][0]
    monkeypatch.setitem(OPCODES, 250, [
        (dict(spec, name='FIRST'), None),
        (dict(spec, name='SECOND'), None),
    ])
    with pytest.raises(ValueError):
        build_table(Pyc312)


def test_register_table():
    builtin = resolve('3.12')
    custom = OpcodeTable(Pyc312, list(builtin.by_code.values()), builtin.jump_unit, builtin.cmp_shift)
    try:
        register_table('3.12', custom)
        assert resolve((3, 12)) is custom
    finally:
        register_table('3.12', builtin)
    assert resolve('3.12') is builtin
    with pytest.raises(AnalysisError):
        register_table('3.12', {})


@pytest.mark.parametrize('version', [Pyc313, Pyc314])
def test_iter_index(version):
    table = resolve(version)
    index = int(version.has_iter_index)
    assert table.by_name['GET_ITER'].effect.net(0) == index
    assert table.by_name['FOR_ITER'].effect.pops(0) == 1 + index
    assert ('POP_ITER' in table.by_name) == version.has_iter_index


def test_binary_subscript_op():
    assert BINARY_OPS[26] == '[]'
    assert resolve('3.14').by_name['BINARY_OP'].caches == 5
