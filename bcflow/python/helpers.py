class PythonError(Exception):
    """Raised when decoded data doesn't make sense as Python code."""


class AnalysisError(PythonError):
    """Raised when a code object's instruction stream can't be analyzed.

    offset is the byte offset of the instruction or block involved, if any.
    """

    def __init__(self, msg, offset=None):
        self.msg = msg
        self.offset = offset
        if offset is not None:
            msg = "{} (at offset {})".format(msg, offset)
        super().__init__(msg)


class UnsupportedVersionError(AnalysisError):
    pass


class DanglingJumpTargetError(AnalysisError):
    pass


class InconsistentStackDepthError(AnalysisError):
    def __init__(self, offset, depth, other):
        self.depth = depth
        self.other = other
        super().__init__(
            "block reached with stack depth {} and {}".format(depth, other),
            offset)


class StackUnderflowError(AnalysisError):
    pass
