"""Helpers for the line-oriented show() dumps."""


def indent(lines):
    for line in lines:
        yield '\t' + line


def preindent(pref, lines):
    it = iter(lines)
    yield "{}: {}".format(pref, next(it, ''))
    for line in it:
        yield '\t' + line


def maybe(val):
    """Formats a value that stays None until analysis fills it in."""
    return '?' if val is None else str(val)


def listing(label, items):
    """A 'label: a, b, c' line, or nothing if there are no items."""
    items = [str(item) for item in items]
    if items:
        yield '{}: {}'.format(label, ', '.join(items))
