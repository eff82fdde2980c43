"""Typed parser facade — runs a registry node against a whole input."""

from __future__ import annotations

import logging
import sys

from .assemble import assemble
from .expr import Rule
from .failures import (
    FailureTracker,
    GrammarError,
    IncompleteParse,
    MatchFailure,
    ParseError,
    describe_expected,
)
from .nodes import MatchContext
from .registry import Registry
from .source import Input, LineIndex
from .values import Value

logger = logging.getLogger(__name__)

# Interpreter recursion limit while a parse runs; each nesting level of the
# input costs a handful of Python frames.
DEFAULT_RECURSION_LIMIT: int = 20000


class TypedParser:
    """Parses text into typed values, starting from any node in the registry."""

    def __init__(
        self,
        grammar: Registry | list[Rule],
        validate: bool = True,
        track_failures: bool = True,
        recursion_limit: int = DEFAULT_RECURSION_LIMIT,
    ):
        if isinstance(grammar, Registry):
            self.registry: Registry = grammar
        else:
            self.registry = assemble(grammar, validate=validate)
        self.track_failures: bool = track_failures
        self.recursion_limit: int = recursion_limit

    def try_parse(self, rule: str, text: str) -> tuple[str, Value]:
        """Match rule at the start of text. Returns (remaining text, value)."""
        rest, value = self._run(rule, text, False)
        return rest.rest(), value

    def parse(self, rule: str, text: str) -> Value:
        """Match rule against all of text."""
        _, value = self._run(rule, text, True)
        return value

    def _run(self, rule: str, text: str, full: bool) -> tuple[Input, Value]:
        if rule not in self.registry:
            raise GrammarError("no rule named '" + rule + "'")
        line_index = LineIndex(text)
        tracker = FailureTracker(self.track_failures)
        ctx = MatchContext(self.registry, line_index, tracker)
        saved_limit = sys.getrecursionlimit()
        sys.setrecursionlimit(max(saved_limit, self.recursion_limit))
        try:
            rest, value = ctx.call(rule, Input(text))
            if full and not rest.at_end():
                raise ctx.fail(IncompleteParse("unconsumed input", rest.pos, ["EOI"]))
        except MatchFailure as e:
            raise self._error(e, tracker, line_index) from e
        except RecursionError:
            raise GrammarError("input nested too deeply for rule '" + rule + "'") from None
        finally:
            sys.setrecursionlimit(saved_limit)
        return rest, value

    def _error(self, failure: MatchFailure, tracker: FailureTracker, line_index: LineIndex) -> ParseError:
        pos = failure.pos
        expected = failure.expected
        if tracker.pos >= pos:
            pos = tracker.pos
            expected = tracker.expected
        where = line_index.pos_of(pos)
        logger.debug("parse failed at offset %d: %s", pos, failure.msg)
        return ParseError(describe_expected(expected), pos, where.line, where.col, list(expected))


def parse(rules: list[Rule], rule: str, text: str) -> Value:
    """Assemble rules and parse all of text starting from rule."""
    return TypedParser(rules).parse(rule, text)
