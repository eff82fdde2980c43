"""Parse values — what a successful match of each node shape produces."""

from __future__ import annotations

from dataclasses import dataclass

from .source import Span


@dataclass
class Value:
    """Base for all parse values. name is the node that produced it."""

    name: str
    span: Span


@dataclass
class Leaf(Value):
    """Span, char, or unit leaf. content is None for unit leaves."""

    content: str | None


@dataclass
class Product(Value):
    """One value per sequence element, in order."""

    fields: list[Value]
    names: list[str]

    def field(self, name: str) -> Value:
        i = 0
        while i < len(self.names):
            if self.names[i] == name:
                return self.fields[i]
            i += 1
        raise KeyError(name)


@dataclass
class Variant(Value):
    """The first alternative of a choice that matched."""

    index: int
    value: Value


@dataclass
class Maybe(Value):
    value: Value | None

    @property
    def present(self) -> bool:
        return self.value is not None


@dataclass
class Many(Value):
    items: list[Value]


def to_plain(value: Value | None) -> object:
    """Reduce a value tree to strings, tuples and lists."""
    if value is None:
        return None
    if isinstance(value, Leaf):
        return value.content
    if isinstance(value, Product):
        return tuple(to_plain(v) for v in value.fields)
    if isinstance(value, Variant):
        return to_plain(value.value)
    if isinstance(value, Maybe):
        return to_plain(value.value)
    if isinstance(value, Many):
        return [to_plain(v) for v in value.items]
    raise TypeError("unhandled value type: " + type(value).__name__)
