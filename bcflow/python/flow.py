"""Control flow graphs with stack depths.

analyze() takes the decoded instructions of one code object and works in
three passes:

1. Partition the stream into basic blocks.  A block starts at offset 0,
   after any jump, branch, return or raise, at every jump or SETUP_* target,
   and at the boundaries and handlers of exception table ranges.
2. Connect the blocks.  The last instruction of a block decides its normal
   successors; SETUP_* instructions and exception table ranges add
   exception edges to their handlers.
3. Merge each block into its predecessor where the split bought nothing:
   the predecessor is adjacent, is its only way in, goes nowhere else, and
   has the same exception handlers.

Then stack depths are propagated from the entry block (depth 0) along the
edges, using each opcode's declared stack effect.  A block reached with two
different depths is an error, as is popping below the bottom of the stack.
"""

import bisect
import logging
from enum import Enum

from bcflow.meta import Node, Field
from bcflow.format.exctab import ExceptionRange
from bcflow.show import indent, maybe, listing

from .helpers import DanglingJumpTargetError, InconsistentStackDepthError, StackUnderflowError
from .opcodes import FlowKind

logger = logging.getLogger(__name__)


class EdgeKind(Enum):
    FALLTHROUGH = 'fallthrough'
    COND_TRUE = 'true'
    COND_FALSE = 'false'
    JUMP = 'jump'
    EXCEPTION = 'exception'


class Edge(Node):
    """An edge between the blocks starting at source and target.

    jump says the edge follows the jump of the source block's last
    instruction, which selects the jump stack effect.  Exception edges name
    either the SETUP_* instruction they come from (via) or the exception
    table range (handler).
    """
    kind = Field(EdgeKind)
    source = Field(int)
    target = Field(int)
    jump = Field(bool)
    via = Field(int, optional=True)
    handler = Field(ExceptionRange, optional=True)

    def __init__(self, kind, source, target, jump=False, via=None, handler=None):
        super().__init__(kind, source, target, jump, via, handler)

    def __str__(self):
        return '{} -> {} ({})'.format(self.source, self.target, self.kind.value)


def _operand(val):
    if isinstance(val, tuple):
        return ', '.join(str(x) for x in val)
    return str(val)


class Block:
    """A basic block.  start and end are byte offsets, end exclusive.  depth
    is the stack depth on entry, exit_depth the depth after the last
    instruction (on the fallthrough path for branches); both stay None if
    the block is never reached.  depths maps the offset of each instruction
    to the depth before it runs, and is empty for unreached blocks."""
    __slots__ = 'start', 'end', 'instructions', 'successors', 'predecessors', 'depth', 'exit_depth', 'depths'

    def __init__(self, instructions):
        self.instructions = list(instructions)
        self.start = self.instructions[0].offset
        self.end = self.instructions[-1].nextpos
        self.successors = []
        self.predecessors = []
        self.depth = None
        self.exit_depth = None
        self.depths = {}

    @property
    def last(self):
        return self.instructions[-1]

    def exception_targets(self):
        return {edge.target for edge in self.successors if edge.kind is EdgeKind.EXCEPTION}

    def show(self, operands=None):
        """operands maps offsets to resolved operands, printed after the
        instructions they belong to."""
        operands = operands or {}
        yield 'BLOCK {}-{} depth {} -> {}'.format(self.start, self.end, maybe(self.depth), maybe(self.exit_depth))
        for ins in self.instructions:
            line = '\t[{}] {}'.format(maybe(self.depths.get(ins.offset)), ins)
            if ins.offset in operands:
                line += ' ({})'.format(_operand(operands[ins.offset]))
            yield line
        for edge in self.successors:
            yield '\t-> {} ({})'.format(edge.target, edge.kind.value)

    def __repr__(self):
        return '<Block {}-{}>'.format(self.start, self.end)


class ControlFlowGraph:
    __slots__ = 'blocks', 'entry', 'exits', 'max_depth', '_starts', '_by_start'

    def __init__(self, blocks, exits, max_depth):
        self.blocks = blocks
        self.entry = blocks[0] if blocks else None
        self.exits = exits
        self.max_depth = max_depth
        self._starts = [block.start for block in blocks]
        self._by_start = {block.start: block for block in blocks}

    def block_at(self, offset):
        """The block containing the instruction at offset."""
        idx = bisect.bisect_right(self._starts, offset) - 1
        if idx < 0 or offset >= self.blocks[idx].end:
            raise KeyError(offset)
        return self.blocks[idx]

    def depth_at(self, offset):
        """The stack depth before the instruction at offset runs, or None if
        it is never reached.  Raises KeyError unless an instruction starts
        at offset."""
        block = self.block_at(offset)
        if all(ins.offset != offset for ins in block.instructions):
            raise KeyError(offset)
        return block.depths.get(offset)

    def successors(self, block):
        return [self._by_start[edge.target] for edge in block.successors]

    def predecessors(self, block):
        return [self._by_start[edge.source] for edge in block.predecessors]

    def show(self, operands=None):
        yield 'CFG: {} blocks, max depth {}'.format(len(self.blocks), self.max_depth)
        for block in self.blocks:
            yield from indent(block.show(operands))
        yield from listing('exits', (block.start for block in self.exits))


# pass 1

def _leaders(instructions, exception_table, offsets, end):
    def check(target, source):
        if target not in offsets:
            raise DanglingJumpTargetError(
                "target {} is not an instruction boundary".format(target), source)

    leaders = {0}
    for ins in instructions:
        flow = ins.info.flow
        if flow in (FlowKind.JUMP, FlowKind.BRANCH, FlowKind.RETURN, FlowKind.RAISE):
            if ins.nextpos != end:
                leaders.add(ins.nextpos)
        if ins.target is not None:
            check(ins.target, ins.offset)
            leaders.add(ins.target)
    for rng in exception_table:
        for pos in rng.start, rng.end:
            if pos != end:
                check(pos, rng.start)
                leaders.add(pos)
        check(rng.target, rng.start)
        leaders.add(rng.target)
    return leaders


def _partition(instructions, leaders):
    blocks = []
    cur = []
    for ins in instructions:
        if ins.offset in leaders and cur:
            blocks.append(Block(cur))
            cur = []
        cur.append(ins)
    if cur:
        blocks.append(Block(cur))
    return blocks


# pass 2

def _link(source, target, kind, **kw):
    edge = Edge(kind, source.start, target.start, **kw)
    source.successors.append(edge)
    target.predecessors.append(edge)


def _connect(blocks, exception_table):
    by_start = {block.start: block for block in blocks}
    exits = []
    for idx, block in enumerate(blocks):
        following = blocks[idx + 1] if idx + 1 < len(blocks) else None
        last = block.last
        flow = last.info.flow
        if flow in (FlowKind.SEQUENTIAL, FlowKind.CALL, FlowKind.SETUP):
            if following is None:
                exits.append(block)
            else:
                _link(block, following, EdgeKind.FALLTHROUGH)
        elif flow is FlowKind.BRANCH:
            if last.info.when:
                taken, other = EdgeKind.COND_TRUE, EdgeKind.COND_FALSE
            else:
                taken, other = EdgeKind.COND_FALSE, EdgeKind.COND_TRUE
            _link(block, by_start[last.target], taken, jump=True)
            if following is None:
                exits.append(block)
            else:
                _link(block, following, other)
        elif flow is FlowKind.JUMP:
            _link(block, by_start[last.target], EdgeKind.JUMP, jump=True)
        else:
            exits.append(block)
        # exception edges
        seen = set()
        for ins in block.instructions:
            if ins.info.flow is FlowKind.SETUP:
                if ins.target not in seen:
                    seen.add(ins.target)
                    _link(block, by_start[ins.target], EdgeKind.EXCEPTION, via=ins.offset)
            elif ins.info.raises:
                for rng in exception_table:
                    if rng.covers(ins.offset):
                        if rng.target not in seen:
                            seen.add(rng.target)
                            _link(block, by_start[rng.target], EdgeKind.EXCEPTION, handler=rng)
                        break
    return exits


# pass 3

def _mergeable(prev, block):
    if prev.end != block.start or len(block.predecessors) != 1:
        return False
    edge = block.predecessors[0]
    if edge.source != prev.start or edge.kind not in (EdgeKind.FALLTHROUGH, EdgeKind.JUMP):
        return False
    normal = [e for e in prev.successors if e.kind is not EdgeKind.EXCEPTION]
    if normal != [edge]:
        return False
    return prev.exception_targets() == block.exception_targets()


def _redundant_leaders(blocks):
    return {
        block.start
        for prev, block in zip(blocks, blocks[1:])
        if _mergeable(prev, block)
    }


# stack depth

def _step(ins, depth, jump=False):
    effect = ins.info.effect
    pops = effect.pops(ins.arg, jump)
    if depth < pops:
        raise StackUnderflowError(
            "{} pops {} values with {} on the stack".format(ins.name, pops, depth), ins.offset)
    return depth - pops + effect.pushes(ins.arg, jump)


def _propagate(blocks):
    by_start = {block.start: block for block in blocks}
    if not blocks:
        return 0
    blocks[0].depth = 0
    max_depth = 0
    worklist = [blocks[0]]
    while worklist:
        block = worklist.pop()
        depth = block.depth
        max_depth = max(max_depth, depth)
        at = {}
        for ins in block.instructions[:-1]:
            at[ins.offset] = depth
            depth = _step(ins, depth, ins.info.flow is FlowKind.JUMP)
            max_depth = max(max_depth, depth)
        last = block.last
        at[last.offset] = depth
        fall = _step(last, depth)
        jump = _step(last, depth, True)
        max_depth = max(max_depth, fall, jump)
        block.exit_depth = jump if last.info.flow is FlowKind.JUMP else fall
        block.depths = at
        for edge in block.successors:
            if edge.kind is EdgeKind.EXCEPTION:
                if edge.handler is not None:
                    new = edge.handler.handler_depth()
                else:
                    setup = next(ins for ins in block.instructions if ins.offset == edge.via)
                    new = _step(setup, at[edge.via], True)
                if new is None:
                    continue
            elif edge.jump:
                new = jump
            else:
                new = fall
            target = by_start[edge.target]
            if target.depth is None:
                target.depth = new
                worklist.append(target)
            elif target.depth != new:
                raise InconsistentStackDepthError(target.start, target.depth, new)
    return max_depth


def analyze(instructions, table, exception_table=()):
    """Builds the control flow graph of one code object's instructions.

    table is the OpcodeTable the instructions were decoded with;
    exception_table is a sequence of ExceptionRange, as read from a 3.11+
    co_exceptiontable.
    """
    instructions = list(instructions)
    exception_table = list(exception_table)
    if not instructions:
        return ControlFlowGraph([], [], 0)
    end = instructions[-1].nextpos
    offsets = {ins.offset for ins in instructions}
    leaders = _leaders(instructions, exception_table, offsets, end)
    blocks = _partition(instructions, leaders)
    exits = _connect(blocks, exception_table)
    redundant = _redundant_leaders(blocks)
    if redundant:
        blocks = _partition(instructions, leaders - redundant)
        exits = _connect(blocks, exception_table)
    max_depth = _propagate(blocks)
    logger.debug("%s: %d instructions, %d blocks, max depth %d",
                 table.version.name, len(instructions), len(blocks), max_depth)
    return ControlFlowGraph(blocks, exits, max_depth)
