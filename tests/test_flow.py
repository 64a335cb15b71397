import pytest

from bcflow.format.exctab import ExceptionRange
from bcflow.python.bytecode import decode_stream
from bcflow.python.flow import analyze, EdgeKind
from bcflow.python.helpers import (
    DanglingJumpTargetError, InconsistentStackDepthError, StackUnderflowError,
)
from bcflow.python.opcodes import resolve


def build(assemble, version, ops, exception_table=()):
    table = resolve(version)
    return analyze(decode_stream(assemble(version, ops), table), table, exception_table)


def kinds(block):
    return sorted((edge.kind.value, edge.target) for edge in block.successors)


def test_branch(assemble):
    cfg = build(assemble, '3.12', [
        ('LOAD_CONST', 0),          # 0
        ('LOAD_CONST', 1),          # 2
        ('COMPARE_OP', 0x28),       # 4, cache at 6
        ('POP_JUMP_IF_FALSE', 2),   # 8 -> 14
        ('JUMP_FORWARD', 0),        # 10 -> 12
        ('RETURN_CONST', 0),        # 12
        ('RETURN_CONST', 1),        # 14
    ])
    assert [block.start for block in cfg.blocks] == [0, 10, 14]
    assert len(cfg.exits) == 2
    entry = cfg.entry
    assert entry is cfg.blocks[0]
    assert kinds(entry) == [('false', 14), ('true', 10)]
    assert entry.successors[0].kind is EdgeKind.COND_FALSE
    assert entry.successors[0].jump
    assert cfg.successors(entry) == [cfg.blocks[2], cfg.blocks[1]]
    assert cfg.predecessors(cfg.blocks[2]) == [entry]
    assert set(cfg.exits) == {cfg.blocks[1], cfg.blocks[2]}
    # the unconditional jump into the adjacent block got merged
    assert [op.name for op in cfg.blocks[1].instructions] == ['JUMP_FORWARD', 'RETURN_CONST']
    assert [block.depth for block in cfg.blocks] == [0, 0, 0]
    assert cfg.max_depth == 2
    assert cfg.block_at(6) is entry
    assert cfg.block_at(12) is cfg.blocks[1]
    with pytest.raises(KeyError):
        cfg.block_at(16)


def test_diamond_inconsistent(assemble):
    with pytest.raises(InconsistentStackDepthError) as exc:
        build(assemble, '3.12', [
            ('LOAD_CONST', 0),          # 0
            ('POP_JUMP_IF_FALSE', 2),   # 2 -> 8
            ('LOAD_CONST', 0),          # 4
            ('JUMP_FORWARD', 0),        # 6 -> 8
            ('RETURN_CONST', 0),        # 8
        ])
    assert exc.value.offset == 8
    assert {exc.value.depth, exc.value.other} == {0, 1}


def test_diamond_consistent(assemble):
    cfg = build(assemble, '3.12', [
        ('LOAD_CONST', 0),          # 0
        ('POP_JUMP_IF_FALSE', 3),   # 2 -> 10
        ('LOAD_CONST', 0),          # 4
        ('POP_TOP', 0),             # 6
        ('JUMP_FORWARD', 0),        # 8 -> 10
        ('RETURN_CONST', 0),        # 10
    ])
    assert [block.start for block in cfg.blocks] == [0, 4, 10]
    assert cfg.blocks[2].depth == 0
    assert cfg.blocks[1].exit_depth == 0
    assert cfg.max_depth == 1


def test_underflow(assemble):
    with pytest.raises(StackUnderflowError) as exc:
        build(assemble, '3.12', ['NOP', 'POP_TOP', ('RETURN_CONST', 0)])
    assert exc.value.offset == 2


def test_dangling_target(assemble):
    with pytest.raises(DanglingJumpTargetError) as exc:
        build(assemble, '3.12', [('JUMP_FORWARD', 5), ('RETURN_CONST', 0)])
    assert exc.value.offset == 0


def test_misaligned_target(assemble):
    # 3.9 jumps count bytes, so an odd target lands mid-instruction
    with pytest.raises(DanglingJumpTargetError):
        build(assemble, '3.9', [('JUMP_ABSOLUTE', 3), ('LOAD_CONST', 0), ('RETURN_VALUE', 0)])


def test_loop(assemble):
    cfg = build(assemble, '3.12', [
        ('LOAD_NAME', 0),           # 0
        ('GET_ITER', 0),            # 2
        ('FOR_ITER', 2),            # 4, cache at 6, -> 12
        ('STORE_NAME', 1),          # 8
        ('JUMP_BACKWARD', 4),       # 10 -> 4
        ('END_FOR', 0),             # 12
        ('RETURN_CONST', 0),        # 14
    ])
    assert [block.start for block in cfg.blocks] == [0, 4, 8, 12]
    assert [block.depth for block in cfg.blocks] == [0, 1, 2, 2]
    assert kinds(cfg.blocks[1]) == [('false', 12), ('true', 8)]
    assert kinds(cfg.blocks[2]) == [('jump', 4)]
    assert cfg.exits == [cfg.blocks[3]]
    assert cfg.blocks[3].exit_depth == 0
    assert cfg.max_depth == 2
    depths = {offset: cfg.depth_at(offset) for offset in (0, 2, 4, 8, 10, 12, 14)}
    assert depths == {0: 0, 2: 1, 4: 1, 8: 2, 10: 1, 12: 2, 14: 0}
    assert cfg.blocks[2].depths == {8: 2, 10: 1}
    with pytest.raises(KeyError):
        cfg.depth_at(6)


def test_exception_table_edges(assemble):
    ops = [
        ('LOAD_CONST', 0),          # 0
        ('LOAD_CONST', 1),          # 2
        ('BINARY_OP', 0),           # 4, cache at 6
        ('RETURN_VALUE', 0),        # 8
        ('PUSH_EXC_INFO', 0),       # 10
        ('POP_TOP', 0),             # 12
        ('RERAISE', 0),             # 14
    ]
    cfg = build(assemble, '3.12', ops, [ExceptionRange(0, 10, 10, 0, False)])
    assert [block.start for block in cfg.blocks] == [0, 10]
    assert kinds(cfg.entry) == [('exception', 10)]
    handler = cfg.blocks[1]
    assert handler.depth == 1
    assert handler.exit_depth == 0
    assert len(cfg.exits) == 2
    assert cfg.max_depth == 2

    cfg = build(assemble, '3.12', ops, [ExceptionRange(0, 10, 10, 0, True)])
    assert cfg.blocks[1].depth == 2

    # without the table the handler is unreachable
    cfg = build(assemble, '3.12', ops)
    assert kinds(cfg.entry) == []
    assert cfg.blocks[1].depth is None
    assert cfg.blocks[1].depths == {}
    assert cfg.depth_at(12) is None


def test_exception_range_unknown_depth(assemble):
    cfg = build(assemble, '3.12', [
        ('LOAD_CONST', 0),
        ('LOAD_CONST', 1),
        ('BINARY_OP', 0),
        ('RETURN_VALUE', 0),
        ('PUSH_EXC_INFO', 0),
        ('POP_TOP', 0),
        ('RERAISE', 0),
    ], [ExceptionRange(0, 10, 10)])
    assert kinds(cfg.entry) == [('exception', 10)]
    assert cfg.blocks[1].depth is None


def test_exception_range_splits_blocks(assemble):
    cfg = build(assemble, '3.12', [
        ('LOAD_CONST', 0),          # 0
        ('LOAD_CONST', 1),          # 2
        ('BINARY_OP', 0),           # 4, cache at 6
        ('RETURN_VALUE', 0),        # 8
        ('PUSH_EXC_INFO', 0),       # 10
        ('POP_TOP', 0),             # 12
        ('RERAISE', 0),             # 14
    ], [ExceptionRange(4, 8, 10, 0, False)])
    # the range boundaries split blocks with different handlers
    assert [block.start for block in cfg.blocks] == [0, 4, 8, 10]
    assert kinds(cfg.blocks[0]) == [('fallthrough', 4)]
    assert kinds(cfg.blocks[1]) == [('exception', 10), ('fallthrough', 8)]
    assert cfg.blocks[3].depth == 1


def test_setup_finally(assemble):
    cfg = build(assemble, '3.9', [
        ('SETUP_FINALLY', 6),       # 0 -> 8
        ('POP_BLOCK', 0),           # 2
        ('LOAD_CONST', 0),          # 4
        ('RETURN_VALUE', 0),        # 6
        ('POP_EXCEPT', 0),          # 8
        ('POP_TOP', 0),             # 10
        ('POP_TOP', 0),             # 12
        ('POP_TOP', 0),             # 14
        ('LOAD_CONST', 0),          # 16
        ('RETURN_VALUE', 0),        # 18
    ])
    assert [block.start for block in cfg.blocks] == [0, 8]
    assert kinds(cfg.entry) == [('exception', 8)]
    assert cfg.entry.successors[0].via == 0
    assert cfg.blocks[1].depth == 6
    assert cfg.max_depth == 6
    assert len(cfg.exits) == 2
    assert cfg.entry.depths == {0: 0, 2: 0, 4: 0, 6: 1}
    assert [cfg.depth_at(offset) for offset in range(8, 20, 2)] == [6, 3, 2, 1, 0, 1]


def test_falls_off_the_end(assemble):
    cfg = build(assemble, '3.12', ['NOP', 'NOP'])
    assert len(cfg.blocks) == 1
    assert cfg.exits == [cfg.entry]
    assert cfg.entry.exit_depth == 0


def test_empty():
    cfg = analyze([], resolve('3.12'))
    assert cfg.blocks == []
    assert cfg.entry is None
    assert cfg.max_depth == 0


def test_show(assemble):
    cfg = build(assemble, '3.12', [('LOAD_CONST', 0), ('RETURN_VALUE', 0)])
    lines = list(cfg.show())
    assert lines[0] == 'CFG: 1 blocks, max depth 1'
    assert any('RETURN_VALUE' in line for line in lines)
    assert '\t[0] ' in lines[2]
    assert '\t[1] ' in lines[3]


def test_gen_start(assemble):
    # a 3.10 generator body, starting with the value of the first send()
    cfg = build(assemble, '3.10', [
        ('GEN_START', 0),           # 0
        ('LOAD_CONST', 0),          # 2
        ('YIELD_VALUE', 0),         # 4
        ('POP_TOP', 0),             # 6
        ('LOAD_CONST', 0),          # 8
        ('RETURN_VALUE', 0),        # 10
    ])
    assert len(cfg.blocks) == 1
    assert cfg.entry.depths == {0: 0, 2: 0, 4: 1, 6: 1, 8: 0, 10: 1}
    assert cfg.entry.exit_depth == 0
    assert cfg.max_depth == 1


def test_loop_iter_index(assemble):
    cfg = build(assemble, '3.14', [
        ('LOAD_NAME', 0),           # 0
        ('GET_ITER', 0),            # 2
        ('FOR_ITER', 3),            # 4, cache at 6, -> 14
        ('STORE_NAME', 1),          # 8
        ('JUMP_BACKWARD', 5),       # 10, cache at 12, -> 4
        ('END_FOR', 0),             # 14
        ('POP_ITER', 0),            # 16
        ('LOAD_CONST', 0),          # 18
        ('RETURN_VALUE', 0),        # 20
    ])
    assert [block.start for block in cfg.blocks] == [0, 4, 8, 14]
    assert [block.depth for block in cfg.blocks] == [0, 2, 3, 3]
    assert kinds(cfg.blocks[1]) == [('false', 14), ('true', 8)]
    assert cfg.depth_at(16) == 2
    assert cfg.depth_at(18) == 0
    assert cfg.blocks[3].exit_depth == 0
    assert cfg.max_depth == 3
