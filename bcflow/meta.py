"""Write-once record classes.

A Node subclass declares its fields as class attributes; the metaclass turns
them into slots guarded by type-checking descriptors.  Fields can be set
exactly once (normally in the constructor), which is how decoded values stay
immutable after the decoder hands them out.
"""

from collections import OrderedDict
from enum import Enum

_SIMPLE_TYPES = (int, bool, str, bytes, float, complex, tuple, object)


class BaseField:
    def __init__(self, type_, volatile=False, optional=False):
        self.type = type_
        self.volatile = volatile
        self.optional = optional
        self.sub = isinstance(type_, type) and issubclass(type_, Node)
        types = self.type if isinstance(self.type, tuple) else (self.type,)
        if not self.sub:
            for type_ in types:
                if not (type_ in _SIMPLE_TYPES or issubclass(type_, (Enum, Node))):
                    raise TypeError("weird field type {}".format(type_))

    def __get__(self, obj, type=None):
        return self.slot.__get__(obj, type)

    def __set__(self, obj, val):
        if not self.typecheck(val):
            raise TypeError("wrong type for {}.{}: wanted {}, got {!r}".format(
                self.cls.__name__,
                self.name,
                self.type_name(),
                val
            ))
        val = self.process(val)
        if not self.volatile and hasattr(obj, self.name):
            raise TypeError("field {} already set".format(self.name))
        self.slot.__set__(obj, val)

    def __delete__(self, obj):
        raise TypeError("cannot delete node attribute")

    def type_name(self):
        types = self.type if isinstance(self.type, tuple) else (self.type,)
        return '/'.join(type_.__name__ for type_ in types)

    def process(self, val):
        return val


class Field(BaseField):
    def typecheck(self, val):
        return isinstance(val, self.type) or (val is None and self.optional)


class ListField(BaseField):
    """A sequence of items of the given type, stored as a tuple."""

    def typecheck(self, val):
        if val is None and self.optional:
            return True
        if not isinstance(val, (tuple, list)):
            return False
        return all(isinstance(x, self.type) for x in val)

    def process(self, val):
        if val is not None and not self.volatile:
            return tuple(val)
        else:
            return val


class NodeMeta(type):
    def __prepare__(name, bases, abstract=False):
        return OrderedDict()

    def __new__(meta, name, bases, namespace, abstract=False):
        for base in bases:
            if not issubclass(base, Node):
                raise TypeError("base not derived from node")
        if '__slots__' in namespace:
            raise TypeError("__slots__ already present")
        fields = []
        for k, v in namespace.items():
            if isinstance(v, BaseField):
                v.name = k
                fields.append(v)
        for field in fields:
            del namespace[field.name]
        namespace['__slots__'] = [field.name for field in fields]
        cls = super().__new__(meta, name, bases, namespace)
        for field in fields:
            field.cls = cls
            field.slot = getattr(cls, field.name)
            setattr(cls, field.name, field)
        cls._fields = cls._fields + fields
        cls._abstract = abstract
        return cls

    def __init__(meta, name, bases, namespace, abstract=False):
        return super().__init__(name, bases, namespace)


class Node(metaclass=NodeMeta, abstract=True):
    _fields = []

    def __init__(self, *args, **kwargs):
        if self._abstract:
            raise TypeError("instantiating an abstract node type")
        if len(args) > len(self._fields):
            raise ValueError("arg and field counts don't match")
        for idx, field in enumerate(self._fields):
            if idx < len(args):
                val = args[idx]
            else:
                val = kwargs.pop(field.name, None)
            setattr(self, field.name, val)
        if kwargs:
            raise TypeError("unknown fields: {}".format(', '.join(sorted(kwargs))))

    def fields(self):
        """Yields (name, value) pairs in declaration order."""
        for field in self._fields:
            yield field.name, getattr(self, field.name)

    def __eq__(self, other):
        return type(self) is type(other) and all(
            getattr(self, field.name) == getattr(other, field.name)
            for field in self._fields
        )

    __hash__ = None

    def __repr__(self):
        return '{}({})'.format(type(self).__name__, ', '.join(
            '{}={!r}'.format(name, val) for name, val in self.fields()
        ))
