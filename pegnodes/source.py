"""Input views, spans, and line/column lookup."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field, replace


@dataclass
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


@dataclass(frozen=True)
class Span:
    """A [start, end) slice of the source. Text is sliced on demand."""

    source: str = field(repr=False, compare=False)
    start: int
    end: int

    @property
    def text(self) -> str:
        return self.source[self.start : self.end]

    def __str__(self) -> str:
        return self.text

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Input:
    """Immutable view of the unconsumed suffix of the source.

    stack is the backreference stack, bottom first. It travels with the
    position, so handing back an earlier Input also hands back its stack.
    """

    source: str = field(repr=False)
    pos: int = 0
    stack: tuple[Span, ...] = ()

    def rest(self) -> str:
        return self.source[self.pos :]

    def at_end(self) -> bool:
        return self.pos >= len(self.source)

    def startswith(self, text: str) -> bool:
        return self.source.startswith(text, self.pos)

    def peek(self, n: int = 1) -> str:
        return self.source[self.pos : self.pos + n]

    def advance(self, n: int) -> Input:
        return replace(self, pos=self.pos + n)

    def span_to(self, other: Input) -> Span:
        return Span(self.source, self.pos, other.pos)

    def push(self, span: Span) -> Input:
        return replace(self, stack=self.stack + (span,))

    def with_stack(self, stack: tuple[Span, ...]) -> Input:
        return replace(self, stack=stack)


class LineIndex:
    """Offset to line/column lookup. Read-only once built."""

    def __init__(self, source: str):
        starts: list[int] = [0]
        i = source.find("\n")
        while i >= 0:
            starts.append(i + 1)
            i = source.find("\n", i + 1)
        self.line_starts: list[int] = starts
        self.length: int = len(source)

    def pos_of(self, offset: int) -> Pos:
        if offset < 0 or offset > self.length:
            raise IndexError("offset " + str(offset) + " outside source")
        line = bisect_right(self.line_starts, offset)
        return Pos(line, offset - self.line_starts[line - 1] + 1)
