"""
Value semantics for the small event objects: equality by attribute values, and a readable
string form for log messages.
"""
import threading

_comparing = threading.local()


def describe(value):
    """
    >>> describe(None)
    'None'
    >>> describe('uno')
    "'uno'"
    >>> describe(3030)
    '3030'
    """
    return repr(value) if isinstance(value, str) else str(value)


class StringerMixin:
    """ prints as the class name followed by the attributes in name order. """

    def __str__(self):
        fields = ", ".join("%s=%s" % (name, describe(value)) for name, value in sorted(vars(self).items()))
        return "%s(%s)" % (type(self).__name__, fields)


class CommonEqualityMixin:
    """
    Equal to another instance of the same type with equal attributes.
    Comparing objects that refer to each other raises ValueError.
    """

    def __eq__(self, other):
        if not isinstance(other, type(self)):
            return False
        pairs = getattr(_comparing, 'pairs', None)
        if pairs is None:
            pairs = _comparing.pairs = set()
        key = (id(self), id(other))
        if key in pairs:
            raise ValueError("recursive comparison of %s" % type(self).__name__)
        pairs.add(key)
        try:
            return vars(self) == vars(other)
        finally:
            pairs.discard(key)

    def __ne__(self, other):
        return not self == other

    __hash__ = object.__hash__
