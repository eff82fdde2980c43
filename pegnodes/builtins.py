"""Built-in leaf nodes every grammar can reference without defining them."""

from __future__ import annotations

from dataclasses import dataclass

from .failures import CharOutOfRange, LiteralMismatch, LookaheadFailed
from .nodes import LEAF_CHAR, LEAF_UNIT, MatchContext, NodeDef
from .registry import Registry
from .source import Input
from .values import Value

ANY: str = "ANY"
SOI: str = "SOI"
EOI: str = "EOI"
NEWLINE: str = "NEWLINE"

RESERVED_NAMES: set[str] = {ANY, SOI, EOI, NEWLINE}


@dataclass
class AnyNode(NodeDef):
    """Any single character."""

    leaf = LEAF_CHAR

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        if input.at_end():
            raise ctx.fail(CharOutOfRange("unexpected end of input", input.pos, [ANY]))
        return self._leaf(input, input.advance(1))


@dataclass
class SoiNode(NodeDef):
    """Zero-width start-of-input assertion."""

    leaf = LEAF_UNIT

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        if input.pos != 0:
            raise ctx.fail(LookaheadFailed("not at start of input", input.pos, [SOI]))
        return self._unit(input)


@dataclass
class EoiNode(NodeDef):
    """Zero-width end-of-input assertion."""

    leaf = LEAF_UNIT

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        if not input.at_end():
            raise ctx.fail(LookaheadFailed("not at end of input", input.pos, [EOI]))
        return self._unit(input)


@dataclass
class NewlineNode(NodeDef):
    """Line terminator: LF, CRLF or CR."""

    def try_new(self, input: Input, ctx: MatchContext) -> tuple[Input, Value]:
        for terminator in ("\n", "\r\n", "\r"):
            if input.startswith(terminator):
                return self._leaf(input, input.advance(len(terminator)))
        raise ctx.fail(LiteralMismatch("expected line terminator", input.pos, [NEWLINE]))


def install_builtins(registry: Registry) -> None:
    registry.insert(AnyNode(ANY, ANY))
    registry.insert(SoiNode(SOI, SOI))
    registry.insert(EoiNode(EOI, EOI))
    registry.insert(NewlineNode(NEWLINE, NEWLINE))
