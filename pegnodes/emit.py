"""Grammar emitter — renders expressions and rules as pest-style grammar text.

The rendered form of an expression doubles as its diagnostic label: failure
expectations read `"foo"` or `'a'..'z'`, not generated node names.
"""

from __future__ import annotations

from .expr import (
    RT_ATOMIC,
    RT_COMPOUND_ATOMIC,
    RT_NON_ATOMIC,
    RT_NORMAL,
    RT_SILENT,
    Choice,
    Expr,
    Ident,
    Insens,
    NegPred,
    NodeTag,
    Opt,
    PeekSlice,
    PosPred,
    Push,
    Range,
    Rep,
    RestoreOnErr,
    Rule,
    Seq,
    SkipUntil,
    StackSkip,
    Str,
    flatten,
)

_MODIFIERS: dict[str, str] = {
    RT_NORMAL: "",
    RT_SILENT: "_",
    RT_ATOMIC: "@",
    RT_COMPOUND_ATOMIC: "$",
    RT_NON_ATOMIC: "!",
}

# Precedence (higher binds tighter)
_PREC_CHOICE: int = 1
_PREC_SEQ: int = 2
_PREC_PREFIX: int = 3
_PREC_POSTFIX: int = 4


def to_source(rules: list[Rule]) -> str:
    """Render rules one per line."""
    lines: list[str] = []
    for rule in rules:
        lines.append(render_rule(rule))
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def render_rule(rule: Rule) -> str:
    modifier = _MODIFIERS.get(rule.kind)
    if modifier is None:
        raise ValueError("unknown rule type: " + repr(rule.kind))
    return rule.name + " = " + modifier + "{ " + render(rule.expr) + " }"


def render(expr: Expr) -> str:
    """Render one expression."""
    return _render(expr, 0)


def quote(text: str) -> str:
    out: list[str] = ['"']
    for c in text:
        out.append(_escape_char(c, '"'))
    out.append('"')
    return "".join(out)


def _quote_char(c: str) -> str:
    return "'" + _escape_char(c, "'") + "'"


def _escape_char(c: str, delim: str) -> str:
    if c == "\\":
        return "\\\\"
    if c == delim:
        return "\\" + c
    if c == "\n":
        return "\\n"
    if c == "\r":
        return "\\r"
    if c == "\t":
        return "\\t"
    if ord(c) < 0x20 or ord(c) == 0x7F:
        return "\\u{" + format(ord(c), "02X") + "}"
    return c


def _wrap(text: str, prec: int, min_prec: int) -> str:
    if prec < min_prec:
        return "(" + text + ")"
    return text


def _render(expr: Expr, min_prec: int) -> str:
    if isinstance(expr, Str):
        return quote(expr.text)
    if isinstance(expr, Insens):
        return "^" + quote(expr.text)
    if isinstance(expr, Range):
        return _quote_char(expr.lo) + ".." + _quote_char(expr.hi)
    if isinstance(expr, Ident):
        return expr.name
    if isinstance(expr, Seq):
        parts = [_render(e, _PREC_SEQ + 1) for e in flatten(expr, Seq)]
        return _wrap(" ~ ".join(parts), _PREC_SEQ, min_prec)
    if isinstance(expr, Choice):
        parts = [_render(e, _PREC_CHOICE + 1) for e in flatten(expr, Choice)]
        return _wrap(" | ".join(parts), _PREC_CHOICE, min_prec)
    if isinstance(expr, Opt):
        return _wrap(_render(expr.inner, _PREC_POSTFIX) + "?", _PREC_POSTFIX, min_prec)
    if isinstance(expr, Rep):
        return _wrap(_render(expr.inner, _PREC_POSTFIX) + "*", _PREC_POSTFIX, min_prec)
    if isinstance(expr, PosPred):
        return _wrap("&" + _render(expr.inner, _PREC_PREFIX), _PREC_PREFIX, min_prec)
    if isinstance(expr, NegPred):
        return _wrap("!" + _render(expr.inner, _PREC_PREFIX), _PREC_PREFIX, min_prec)
    if isinstance(expr, RestoreOnErr):
        return "RESTORE(" + _render(expr.inner, 0) + ")"
    if isinstance(expr, Push):
        return "PUSH(" + _render(expr.inner, 0) + ")"
    if isinstance(expr, PeekSlice):
        start = "" if expr.start == 0 else str(expr.start)
        end = "" if expr.end is None else str(expr.end)
        return "PEEK[" + start + ".." + end + "]"
    if isinstance(expr, StackSkip):
        if expr.count == 1:
            return "DROP"
        return "DROP(" + str(expr.count) + ")"
    if isinstance(expr, SkipUntil):
        alts = " | ".join(quote(s) for s in expr.strings)
        if len(expr.strings) > 1:
            alts = "(" + alts + ")"
        return _wrap("(!" + alts + " ~ ANY)*", _PREC_POSTFIX, min_prec)
    if isinstance(expr, NodeTag):
        text = "#" + expr.tag + " = " + _render(expr.inner, _PREC_PREFIX)
        return _wrap(text, _PREC_PREFIX, min_prec)
    raise TypeError("unhandled expression type: " + type(expr).__name__)
