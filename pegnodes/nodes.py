"""Node definitions — one class per node shape, each with its matching procedure.

Every node implements `try_new(input, ctx)`: on success it returns the
unconsumed input and a value; on failure it raises a `MatchFailure`. Inputs are
immutable, so a caller that catches the failure still holds its own input
(position and backreference stack) exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .failures import (
    CharOutOfRange,
    FailureTracker,
    GrammarError,
    LiteralMismatch,
    LookaheadFailed,
    MatchFailure,
    StackMismatch,
    UnknownRule,
    exhausted,
)
from .source import Input, LineIndex, Span
from .values import Leaf, Many, Maybe, Product, Value, Variant

if TYPE_CHECKING:
    from .registry import Registry


SHAPE_LEAF: str = "leaf"
SHAPE_PRODUCT: str = "product"
SHAPE_SUM: str = "sum"
SHAPE_OPTIONAL: str = "optional"
SHAPE_LIST: str = "list"
SHAPE_ALIAS: str = "alias"

LEAF_SPAN: str = "span"
LEAF_CHAR: str = "char"
LEAF_UNIT: str = "unit"

SEPARATOR_RULES: list[str] = ["WHITESPACE", "COMMENT"]


# ============================================================
# MATCH CONTEXT
# ============================================================


class MatchContext:
    """State shared by every node during one top-level parse.

    atomic is set while matching inside an atomic or compound-atomic rule and
    cleared by a non-atomic one. Rules called from there inherit it, so no
    implicit separators are skipped until a non-atomic rule resets it.
    """

    def __init__(self, registry: Registry, line_index: LineIndex, tracker: FailureTracker):
        self.registry: Registry = registry
        self.line_index: LineIndex = line_index
        self.tracker: FailureTracker = tracker
        self.separators: list[str] = [n for n in SEPARATOR_RULES if n in registry]
        self.atomic: bool = False
        self._active: set[tuple[str, int]] = set()

    def call(self, name: str, input: Input) -> tuple[Input, Value]:
        node = self.registry.get(name)
        if node is None:
            raise self.fail(UnknownRule("unknown rule '" + name + "'", input.pos, [name]))
        key = (name, input.pos)
        if key in self._active:
            raise GrammarError("left recursion in '" + name + "' at offset " + str(input.pos))
        self._active.add(key)
        try:
            return node.try_new(input, self)
        finally:
            self._active.discard(key)

    def call_scoped(self, name: str, input: Input, atomic: bool) -> tuple[Input, Value]:
        """Call name with the atomic flag set to atomic, restoring it afterwards."""
        saved = self.atomic
        self.atomic = atomic
        try:
            return self.call(name, input)
        finally:
            self.atomic = saved

    def fail(self, failure: MatchFailure) -> MatchFailure:
        self.tracker.record(failure)
        return failure

    def skip(self, input: Input) -> Input:
        """Consume implicit separators: (WHITESPACE | COMMENT)*."""
        if not self.separators or self.atomic:
            return input
        self.tracker.muted += 1
        try:
            advanced = True
            while advanced:
                advanced = False
                for name in self.separators:
                    try:
                        after, _ = self.call_scoped(name, input, True)
                    except MatchFailure:
                        continue
                    if after.pos > input.pos:
                        input = after
                        advanced = True
        finally:
            self.tracker.muted -= 1
        return input
        self.tracker.muted += 1
        try:
            advanced = True
            while advanced:
                advanced = False
                for name in self.separators:
                    try:
                        after, _ = self.call(name, input)
                    except MatchFailure:
                        continue
                    if after.pos > input.pos:
                        input = after
                        advanced = True
        finally:
            self.tracker.muted -= 1
        return input


# ============================================================
# BASE
# ============================================================


@dataclass
class NodeDef:
    """Base for all node definitions. label is the rendered expression."""

    name: str
    label: str

    shape = SHAPE_LEAF
    leaf = LEAF_SPAN

    def children(self) -> list[str]:
        return []

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        raise NotImplementedError

    def describe(self) -> dict[str, object]:
        d: dict[str, object] = {"_type": type(self).__name__, "shape": self.shape}
        if self.shape == SHAPE_LEAF:
            d["leaf"] = self.leaf
        d["children"] = self.children()
        return d

    def _leaf(self, start: Input, end: Input) -> tuple[Input, Leaf]:
        span = start.span_to(end)
        return end, Leaf(self.name, span, span.text)

    def _unit(self, input: Input) -> tuple[Input, Leaf]:
        return input, Leaf(self.name, input.span_to(input), None)


# ============================================================
# LEAVES
# ============================================================


@dataclass
class LiteralNode(NodeDef):
    text: str

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        if input.startswith(self.text):
            return self._leaf(input, input.advance(len(self.text)))
        raise ctx.fail(LiteralMismatch("literal mismatch", input.pos, [self.label]))


@dataclass
class InsensitiveNode(NodeDef):
    text: str

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        chunk = input.peek(len(self.text))
        if len(chunk) == len(self.text) and chunk.casefold() == self.text.casefold():
            return self._leaf(input, input.advance(len(chunk)))
        raise ctx.fail(LiteralMismatch("literal mismatch", input.pos, [self.label]))


@dataclass
class RangeNode(NodeDef):
    lo: str
    hi: str

    leaf = LEAF_CHAR

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        c = input.peek()
        if c == "":
            raise ctx.fail(CharOutOfRange("unexpected end of input", input.pos, [self.label]))
        if not (self.lo <= c <= self.hi):
            raise ctx.fail(CharOutOfRange("character out of range", input.pos, [self.label]))
        return self._leaf(input, input.advance(1))


@dataclass
class LookaheadNode(NodeDef):
    """&inner or !inner. Never consumes input or touches the stack."""

    inner: str
    negative: bool

    leaf = LEAF_UNIT

    def children(self) -> list[str]:
        return [self.inner]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        if self.negative:
            ctx.tracker.muted += 1
            try:
                ctx.call(self.inner, input)
            except MatchFailure:
                return self._unit(input)
            finally:
                ctx.tracker.muted -= 1
            raise ctx.fail(LookaheadFailed("negative lookahead matched", input.pos, [self.label]))
        try:
            ctx.call(self.inner, input)
        except MatchFailure as e:
            raise LookaheadFailed("positive lookahead failed", input.pos, e.expected) from e
        return self._unit(input)


@dataclass
class AtomicNode(NodeDef):
    """Runs body, then exposes only the span it covered."""

    body: str

    def children(self) -> list[str]:
        return [self.body]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        rest, _ = ctx.call_scoped(self.body, input, True)
        return self._leaf(input, rest)


@dataclass
class SkipUntilNode(NodeDef):
    strings: tuple[str, ...]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        stop = len(input.source)
        for s in self.strings:
            i = input.source.find(s, input.pos)
            if i >= 0 and i < stop:
                stop = i
        return self._leaf(input, input.advance(stop - input.pos))


# ============================================================
# BACKREFERENCE STACK
# ============================================================


def stack_slice(stack: tuple[Span, ...], start: int, end: int | None) -> tuple[Span, ...] | None:
    """Resolve start..end against the stack; None if out of range."""
    n = len(stack)
    lo = start if start >= 0 else n + start
    hi = n if end is None else (end if end >= 0 else n + end)
    if lo < 0 or hi > n or lo > hi:
        return None
    return stack[lo:hi]


@dataclass
class PeekSliceNode(NodeDef):
    start: int
    end: int | None

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        entries = stack_slice(input.stack, self.start, self.end)
        if entries is None:
            raise ctx.fail(StackMismatch("stack slice out of range", input.pos, [self.label]))
        text = "".join(span.text for span in entries)
        if not input.startswith(text):
            raise ctx.fail(StackMismatch("stack text mismatch", input.pos, [self.label]))
        return self._leaf(input, input.advance(len(text)))


@dataclass
class StackSkipNode(NodeDef):
    count: int

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        depth = len(input.stack)
        if depth < self.count:
            raise ctx.fail(StackMismatch("stack holds fewer than " + str(self.count) + " entries", input.pos, [self.label]))
        return self._leaf(input, input.with_stack(input.stack[: depth - self.count]))


# ============================================================
# ALIASES
# ============================================================


@dataclass
class AliasNode(NodeDef):
    """Reference to a rule; delegates entirely to the target."""

    target: str

    shape = SHAPE_ALIAS

    def children(self) -> list[str]:
        return [self.target]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        return ctx.call(self.target, input)


@dataclass
class ScopeNode(NodeDef):
    """Runs body with the atomic flag set or cleared; keeps its value."""

    body: str
    atomic: bool

    shape = SHAPE_ALIAS

    def children(self) -> list[str]:
        return [self.body]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        return ctx.call_scoped(self.body, input, self.atomic)


@dataclass
class RestoreNode(NodeDef):
    """Stack effects of inner are undone on failure; the input carries them."""

    inner: str

    shape = SHAPE_ALIAS

    def children(self) -> list[str]:
        return [self.inner]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        rest, value = ctx.call(self.inner, input)
        return rest, value


@dataclass
class PushNode(NodeDef):
    inner: str

    shape = SHAPE_ALIAS

    def children(self) -> list[str]:
        return [self.inner]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        rest, value = ctx.call(self.inner, input)
        return rest.push(input.span_to(rest)), value


# ============================================================
# COMPOSITES
# ============================================================


@dataclass
class ProductNode(NodeDef):
    """Sequence. skip inserts implicit separators between fields."""

    fields: list[str]
    field_names: list[str]
    skip: bool = False

    shape = SHAPE_PRODUCT

    def children(self) -> list[str]:
        return list(self.fields)

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        start = input
        values: list[Value] = []
        for name in self.fields:
            if self.skip and values:
                input = ctx.skip(input)
            input, value = ctx.call(name, input)
            values.append(value)
        return input, Product(self.name, start.span_to(input), values, list(self.field_names))


@dataclass
class SumNode(NodeDef):
    """Ordered choice: the first alternative that matches wins."""

    variants: list[str]

    shape = SHAPE_SUM

    def children(self) -> list[str]:
        return list(self.variants)

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        failures: list[MatchFailure] = []
        for index, name in enumerate(self.variants):
            try:
                rest, value = ctx.call(name, input)
            except MatchFailure as e:
                failures.append(e)
                continue
            return rest, Variant(self.name, input.span_to(rest), index, value)
        raise exhausted(self.label, input.pos, failures)


@dataclass
class OptionalNode(NodeDef):
    inner: str

    shape = SHAPE_OPTIONAL

    def children(self) -> list[str]:
        return [self.inner]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        try:
            rest, value = ctx.call(self.inner, input)
        except MatchFailure:
            return input, Maybe(self.name, input.span_to(input), None)
        return rest, Maybe(self.name, input.span_to(rest), value)


@dataclass
class ListNode(NodeDef):
    """Greedy repetition; always succeeds. Stops on failure or on no progress."""

    inner: str
    skip: bool = False

    shape = SHAPE_LIST

    def children(self) -> list[str]:
        return [self.inner]

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        items: list[Value] = []
        current = input
        while True:
            attempt = current
            if self.skip and items:
                attempt = ctx.skip(current)
            try:
                after, value = ctx.call(self.inner, attempt)
            except MatchFailure:
                break
            if after.pos == attempt.pos:
                break
            items.append(value)
            current = after
        return current, Many(self.name, input.span_to(current), items)

