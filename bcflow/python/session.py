"""Analysis of whole marshal trees.

An AnalysisSession holds one version's opcode table and remembers what it
has decoded and analyzed, keyed by the identity of the code object.  Every
code object is analyzed on its own: a failure in one is recorded and the
rest of the batch goes on.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from bcflow.format.marshal import (
    MarshalCode, MarshalRef, MarshalTuple, MarshalList, MarshalDict,
    MarshalSet, MarshalFrozenset, MAX_DEPTH, loads,
)
from bcflow.format.exctab import parse_exception_table
from bcflow.format.helpers import FormatError

from .bytecode import decode_stream
from .code import Code
from .flow import analyze
from .helpers import PythonError
from .opcodes import ArgKind, resolve
from .version import find_version

logger = logging.getLogger(__name__)


class Analysis:
    """The result for one code object.  view is the typed Code over it,
    operands maps instruction offsets to what their operands refer to (for
    operands that index one of the code object's tables)."""
    __slots__ = 'code', 'view', 'instructions', 'cfg', 'operands'

    def __init__(self, code, view, instructions, cfg, operands):
        self.code = code
        self.view = view
        self.instructions = instructions
        self.cfg = cfg
        self.operands = operands

    def show(self):
        yield 'CODE {} ({}:{})'.format(self.code.qualname, self.code.filename, self.code.firstlineno)
        yield from self.cfg.show(self.operands)


# operand kinds worth spelling out next to the raw number
RESOLVED = {
    ArgKind.CONST, ArgKind.NAME, ArgKind.LOCAL, ArgKind.LOCAL_PAIR,
    ArgKind.FREE, ArgKind.CMP, ArgKind.BINOP,
}


def resolve_operands(instructions, view):
    return {
        ins.offset: ins.resolve(view)
        for ins in instructions
        if ins.info.arg in RESOLVED
    }


class Failure:
    __slots__ = 'code', 'error'

    def __init__(self, code, error):
        self.code = code
        self.error = error

    def __str__(self):
        return '{}: {}'.format(self.code.qualname, self.error)


class BatchResult:
    """results maps id(code) to Analysis, in tree order; failures lists
    the code objects that couldn't be analyzed."""
    __slots__ = 'results', 'failures'

    def __init__(self, results, failures):
        self.results = results
        self.failures = failures

    def __iter__(self):
        return iter(self.results.values())


def code_objects(root):
    """Yields every code object reachable from a value, each once, in
    preorder.  References are followed; cycles are fine."""
    seen = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, MarshalRef):
            node = node.get()
            if node is None:
                continue
        if id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, MarshalCode):
            yield node
            children = node.consts
        elif isinstance(node, (MarshalTuple, MarshalList, MarshalSet, MarshalFrozenset)):
            children = node.val
        elif isinstance(node, MarshalDict):
            children = [item for pair in node.val for item in pair]
        else:
            continue
        stack.extend(reversed(children))


class AnalysisSession:
    def __init__(self, version, max_workers=None, exceptions=True):
        self.version = find_version(version)
        self.table = resolve(self.version)
        self.max_workers = max_workers
        self.exceptions = exceptions
        self._lock = threading.Lock()
        # id(code) -> (code, value); the code is kept so its id stays unique
        self._instructions = {}
        self._exceptions = {}
        self._analyses = {}

    def _cached(self, cache, code, compute):
        with self._lock:
            hit = cache.get(id(code))
        if hit is not None:
            return hit[1]
        val = compute(code)
        with self._lock:
            return cache.setdefault(id(code), (code, val))[1]

    def instructions(self, code):
        return self._cached(self._instructions, code,
                            lambda code: decode_stream(code.code, self.table))

    def exception_table(self, code):
        if not self.exceptions or not self.version.has_exception_table:
            return []
        return self._cached(self._exceptions, code,
                            lambda code: parse_exception_table(code.exceptiontable))

    def analyze(self, code):
        def compute(code):
            view = Code(code, self.version)
            instructions = self.instructions(code)
            cfg = analyze(instructions, self.table, self.exception_table(code))
            return Analysis(code, view, instructions, cfg, resolve_operands(instructions, view))
        return self._cached(self._analyses, code, compute)

    def _try(self, code):
        try:
            return self.analyze(code), None
        except (FormatError, PythonError) as e:
            logger.warning("%s (%s:%d): analysis failed: %s",
                           code.qualname, code.filename, code.firstlineno, e)
            return None, Failure(code, e)

    def analyze_tree(self, root):
        """Analyzes every code object in a decoded value."""
        codes = list(code_objects(root))
        if self.max_workers is not None and len(codes) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(self._try, codes))
        else:
            outcomes = [self._try(code) for code in codes]
        results = {}
        failures = []
        for code, (analysis, failure) in zip(codes, outcomes):
            if failure is not None:
                failures.append(failure)
            else:
                results[id(code)] = analysis
        logger.debug("analyzed %d code objects, %d failed", len(codes), len(failures))
        return BatchResult(results, failures)


def load_and_analyze(data, version, max_depth=MAX_DEPTH, max_workers=None):
    """Unmarshals data and analyzes every code object in it."""
    root = loads(data, version, max_depth)
    return AnalysisSession(version, max_workers).analyze_tree(root)
