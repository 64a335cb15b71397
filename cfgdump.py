#!/usr/bin/env python3

"""Dumps the control flow graphs of the code objects in pyc files.

General mode of operation is as follows:

1. bcflow.format.pyc and .marshal read the pyc file and deserialize it into
   typed values similar to those used by Python internally at runtime.
2. bcflow.python.bytecode decodes the instructions of each code object, with
   the opcode table of the pyc file's version (bcflow.python.opcodes), and
   bcflow.python.code resolves their operands to consts and names.
3. bcflow.python.flow splits the instructions into basic blocks, connects
   them, and works out the stack depth at the start of every block.

Each code object is analyzed on its own.  If one of them can't be analyzed,
the error is reported with its offset and the rest are still dumped.

Raw marshal payloads (no pyc header, e.g. from marshal.dumps) can be read
with --raw, but then the version has to be given with --version.
"""

import argparse
import logging
import sys

from bcflow.format.helpers import FormatError
from bcflow.format.marshal import MAX_DEPTH, loads
from bcflow.format.pyc import PycFile
from bcflow.python.helpers import PythonError
from bcflow.python.session import AnalysisSession
from bcflow.python.version import find_version

logger = logging.getLogger('cfgdump')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Dump control flow graphs of pyc files.")
    parser.add_argument('files', metavar='FILE', nargs='+')
    parser.add_argument('--raw', action='store_true',
                        help="files are bare marshal payloads, not pyc files")
    parser.add_argument('--version', type=find_version,
                        help="python version of raw payloads, e.g. 3.12")
    parser.add_argument('--max-depth', type=int, default=MAX_DEPTH,
                        help="maximum marshal nesting depth (default %(default)s)")
    parser.add_argument('--jobs', type=int, default=None,
                        help="analyze code objects on this many threads")
    parser.add_argument('--no-exceptions', action='store_true',
                        help="don't add exception table edges")
    parser.add_argument('-v', '--verbose', action='count', default=0)
    args = parser.parse_args(argv)
    if args.raw and args.version is None:
        parser.error("--raw needs --version")
    return args


def dump(fname, args):
    with open(fname, 'rb') as fp:
        data = fp.read()
    if args.raw:
        version = args.version
        root = loads(data, version, args.max_depth)
    else:
        pyc = PycFile(data, args.max_depth)
        version = pyc.version
        root = pyc.code
    session = AnalysisSession(version, args.jobs, exceptions=not args.no_exceptions)
    batch = session.analyze_tree(root)
    for analysis in batch:
        for line in analysis.show():
            print(line)
    for failure in batch.failures:
        print("FAILED {}".format(failure))
    return not batch.failures


def main(argv=None):
    args = parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')
    ok = True
    for fname in args.files:
        print("{}...".format(fname))
        try:
            ok &= dump(fname, args)
        except (OSError, FormatError, PythonError) as e:
            logger.error("%s: %s", fname, e)
            ok = False
    return 0 if ok else 1


if __name__ == '__main__':
    sys.exit(main())
