"""Expression algebra — the optimized rule trees the node compiler consumes."""

from __future__ import annotations

from dataclasses import dataclass, fields


# ============================================================
# RULE TYPES
# ============================================================

RT_NORMAL: str = "normal"
RT_SILENT: str = "silent"
RT_ATOMIC: str = "atomic"
RT_COMPOUND_ATOMIC: str = "compound_atomic"
RT_NON_ATOMIC: str = "non_atomic"

RULE_TYPES: set[str] = {
    RT_NORMAL,
    RT_SILENT,
    RT_ATOMIC,
    RT_COMPOUND_ATOMIC,
    RT_NON_ATOMIC,
}


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(frozen=True)
class Expr:
    """Base for all expressions."""


@dataclass(frozen=True)
class Str(Expr):
    """Exact literal, `"text"`."""

    text: str


@dataclass(frozen=True)
class Insens(Expr):
    """Case-insensitive literal, `^"text"`."""

    text: str


@dataclass(frozen=True)
class Range(Expr):
    """One character between lo and hi, inclusive by codepoint."""

    lo: str
    hi: str

    def __post_init__(self) -> None:
        if len(self.lo) != 1 or len(self.hi) != 1:
            raise ValueError("range bounds must be single characters")


@dataclass(frozen=True)
class Ident(Expr):
    """Reference to another rule by name."""

    name: str


@dataclass(frozen=True)
class Seq(Expr):
    """Sequence `lhs ~ rhs`. Chains lean right: a ~ (b ~ c)."""

    lhs: Expr
    rhs: Expr


@dataclass(frozen=True)
class Choice(Expr):
    """Ordered choice `lhs | rhs`. Chains lean right like Seq."""

    lhs: Expr
    rhs: Expr


@dataclass(frozen=True)
class Opt(Expr):
    """Optional, `inner?`."""

    inner: Expr


@dataclass(frozen=True)
class Rep(Expr):
    """Zero or more, `inner*`."""

    inner: Expr


@dataclass(frozen=True)
class PosPred(Expr):
    """Positive lookahead, `&inner`."""

    inner: Expr


@dataclass(frozen=True)
class NegPred(Expr):
    """Negative lookahead, `!inner`."""

    inner: Expr


@dataclass(frozen=True)
class RestoreOnErr(Expr):
    """Unwinds stack effects of inner when it fails."""

    inner: Expr


@dataclass(frozen=True)
class Push(Expr):
    """Records the span inner matched on the backreference stack."""

    inner: Expr


@dataclass(frozen=True)
class PeekSlice(Expr):
    """`PEEK[start..end]`: matches stack entries bottom to top. end None = top."""

    start: int
    end: int | None


@dataclass(frozen=True)
class StackSkip(Expr):
    """Discards the top count stack entries."""

    count: int


@dataclass(frozen=True)
class SkipUntil(Expr):
    """Consumes input up to the first occurrence of any of the strings."""

    strings: tuple[str, ...]


@dataclass(frozen=True)
class NodeTag(Expr):
    """`#tag = inner`. Names a field; matches exactly like inner."""

    inner: Expr
    tag: str


@dataclass(frozen=True)
class Rule:
    """A named production. kind is one of RULE_TYPES."""

    name: str
    kind: str
    expr: Expr


# ============================================================
# CHAIN BUILDERS
# ============================================================


def seq(*exprs: Expr) -> Expr:
    """Build a right-leaning Seq chain from a flat list."""
    return _chain(Seq, list(exprs))


def choice(*exprs: Expr) -> Expr:
    """Build a right-leaning Choice chain from a flat list."""
    return _chain(Choice, list(exprs))


def _chain(cls: type, exprs: list[Expr]) -> Expr:
    if len(exprs) == 0:
        raise ValueError(cls.__name__ + " needs at least one expression")
    result = exprs[len(exprs) - 1]
    i = len(exprs) - 2
    while i >= 0:
        result = cls(exprs[i], result)
        i -= 1
    return result


def flatten(expr: Expr, cls: type) -> list[Expr]:
    """Unroll a right-leaning chain of cls. A nested lhs chain stays whole."""
    items: list[Expr] = []
    current = expr
    while isinstance(current, cls):
        items.append(current.lhs)
        current = current.rhs
    items.append(current)
    return items


def rule_refs(expr: Expr) -> list[str]:
    """Names referenced by Ident anywhere under expr, in first-seen order."""
    found: list[str] = []
    stack: list[Expr] = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Ident):
            if node.name not in found:
                found.append(node.name)
            continue
        children: list[Expr] = []
        for f in fields(node):
            value = getattr(node, f.name)
            if isinstance(value, Expr):
                children.append(value)
        stack.extend(reversed(children))
    return found


# ============================================================
# SERIALIZATION
# ============================================================

_EXPR_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        Str,
        Insens,
        Range,
        Ident,
        Seq,
        Choice,
        Opt,
        Rep,
        PosPred,
        NegPred,
        RestoreOnErr,
        Push,
        PeekSlice,
        StackSkip,
        SkipUntil,
        NodeTag,
    )
}


def to_dict(node: Expr | Rule) -> dict[str, object]:
    """Convert an expression or rule to a JSON-compatible dict."""
    if isinstance(node, Rule):
        return {
            "_type": "Rule",
            "name": node.name,
            "kind": node.kind,
            "expr": to_dict(node.expr),
        }
    d: dict[str, object] = {"_type": type(node).__name__}
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, Expr):
            d[f.name] = to_dict(value)
        elif isinstance(value, tuple):
            d[f.name] = list(value)
        else:
            d[f.name] = value
    return d


def from_dict(data: dict[str, object]) -> Expr | Rule:
    """Inverse of to_dict."""
    tag = data.get("_type")
    if tag == "Rule":
        expr = from_dict(data["expr"])
        return Rule(str(data["name"]), str(data["kind"]), expr)
    cls = _EXPR_TYPES.get(str(tag))
    if cls is None:
        raise ValueError("unknown expression type: " + repr(tag))
    kwargs: dict[str, object] = {}
    for f in fields(cls):
        value = data[f.name]
        if isinstance(value, dict):
            kwargs[f.name] = from_dict(value)
        elif isinstance(value, list):
            kwargs[f.name] = tuple(value)
        else:
            kwargs[f.name] = value
    return cls(**kwargs)
