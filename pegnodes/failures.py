"""Diagnostics — match failures, the furthest-failure tracker, and hard errors."""

from __future__ import annotations

from collections.abc import Iterable


# ============================================================
# Recoverable match failures
# ============================================================


class MatchFailure(Exception):
    """A node did not match at pos. Combinators treat this as control data."""

    def __init__(self, msg: str, pos: int, expected: Iterable[str] = ()):
        self.msg: str = msg
        self.pos: int = pos
        self.expected: list[str] = list(expected)
        super().__init__(msg + " at offset " + str(pos))


class LiteralMismatch(MatchFailure):
    """Input does not start with the literal."""


class CharOutOfRange(MatchFailure):
    """Next character is missing or outside the range."""


class UnknownRule(MatchFailure):
    """Reference to a rule the registry does not define."""


class AllAlternativesExhausted(MatchFailure):
    """Every branch of an ordered choice failed."""


class LookaheadFailed(MatchFailure):
    """A predicate or zero-width assertion did not hold."""


class StackMismatch(MatchFailure):
    """Backreference stack is too short or its text does not match."""


class IncompleteParse(MatchFailure):
    """A whole-input parse left unconsumed input."""


def exhausted(label: str, pos: int, failures: list[MatchFailure]) -> AllAlternativesExhausted:
    """Merge the failures of every alternative, keeping only the furthest."""
    furthest = pos
    expected: list[str] = []
    for failure in failures:
        if failure.pos > furthest:
            furthest = failure.pos
            expected = []
        if failure.pos == furthest:
            for label_ in failure.expected:
                if label_ not in expected:
                    expected.append(label_)
    return AllAlternativesExhausted("no alternative of " + label + " matched", furthest, expected)


class FailureTracker:
    """Records the furthest failure position of one parse and what was expected there."""

    def __init__(self, enabled: bool = True):
        self.enabled: bool = enabled
        self.muted: int = 0
        self.pos: int = -1
        self.expected: list[str] = []

    def record(self, failure: MatchFailure) -> None:
        if not self.enabled or self.muted > 0:
            return
        if failure.pos > self.pos:
            self.pos = failure.pos
            self.expected = []
        if failure.pos == self.pos:
            for label in failure.expected:
                if label not in self.expected:
                    self.expected.append(label)


# ============================================================
# Non-recoverable errors
# ============================================================


class AssemblyError(Exception):
    """The rule set handed to the assembler is malformed."""

    def __init__(self, msg: str, rule: str | None = None):
        self.msg: str = msg
        self.rule: str | None = rule
        if rule is None:
            super().__init__(msg)
        else:
            super().__init__(msg + " in rule '" + rule + "'")


class GrammarError(Exception):
    """The grammar cannot be run, e.g. unbounded left recursion."""


class ParseError(Exception):
    """Top-level parse failure, reported at the furthest position reached."""

    def __init__(self, msg: str, pos: int, line: int, col: int, expected: list[str]):
        self.msg: str = msg
        self.pos: int = pos
        self.line: int = line
        self.col: int = col
        self.expected: list[str] = expected
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


def describe_expected(expected: list[str]) -> str:
    if not expected:
        return "unexpected input"
    if len(expected) == 1:
        return "expected " + expected[0]
    return "expected " + ", ".join(expected[:-1]) + " or " + expected[len(expected) - 1]
