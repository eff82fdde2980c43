"""Node compiler — lowers one expression tree into registry nodes.

Every sub-expression that needs its own identity gets a name derived from its
parent's: `<name>_<i>` for sequence and choice slots, `<name>_o` for an
optional's inner, `<name>_r` for a repetition's inner, `<name>_0` for the inner
of a predicate, push, or restore. Rule references compile to aliases and never
re-enter the referenced rule's body, so cyclic grammars terminate.
"""

from __future__ import annotations

from .emit import render
from .expr import (
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
    Seq,
    SkipUntil,
    StackSkip,
    Str,
    flatten,
)
from .nodes import (
    AliasNode,
    InsensitiveNode,
    ListNode,
    LiteralNode,
    LookaheadNode,
    NodeDef,
    OptionalNode,
    PeekSliceNode,
    ProductNode,
    PushNode,
    RangeNode,
    RestoreNode,
    SkipUntilNode,
    StackSkipNode,
    SumNode,
)
from .registry import Registry


def compile_node(expr: Expr, candidate_name: str, registry: Registry, skip: bool = False) -> str:
    """Compile expr under candidate_name. Returns the name of its node.

    skip marks sequences and repetitions that take implicit separators.
    """
    if isinstance(expr, NodeTag):
        return compile_node(expr.inner, candidate_name, registry, skip)
    label = render(expr)
    if isinstance(expr, Str):
        return _define(registry, LiteralNode(candidate_name, label, expr.text))
    if isinstance(expr, Insens):
        return _define(registry, InsensitiveNode(candidate_name, label, expr.text))
    if isinstance(expr, Range):
        return _define(registry, RangeNode(candidate_name, label, expr.lo, expr.hi))
    if isinstance(expr, Ident):
        return _define(registry, AliasNode(candidate_name, label, expr.name))
    if isinstance(expr, Seq):
        items = flatten(expr, Seq)
        names = _compile_slots(items, candidate_name, registry, skip)
        field_names = [_field_name(item, i) for i, item in enumerate(items)]
        return _define(registry, ProductNode(candidate_name, label, names, field_names, skip))
    if isinstance(expr, Choice):
        names = _compile_slots(flatten(expr, Choice), candidate_name, registry, skip)
        return _define(registry, SumNode(candidate_name, label, names))
    if isinstance(expr, Opt):
        inner = compile_node(expr.inner, candidate_name + "_o", registry, skip)
        return _define(registry, OptionalNode(candidate_name, label, inner))
    if isinstance(expr, Rep):
        inner = compile_node(expr.inner, candidate_name + "_r", registry, skip)
        return _define(registry, ListNode(candidate_name, label, inner, skip))
    if isinstance(expr, PosPred) or isinstance(expr, NegPred):
        inner = compile_node(expr.inner, candidate_name + "_0", registry, skip)
        negative = isinstance(expr, NegPred)
        return _define(registry, LookaheadNode(candidate_name, label, inner, negative))
    if isinstance(expr, RestoreOnErr):
        inner = compile_node(expr.inner, candidate_name + "_0", registry, skip)
        return _define(registry, RestoreNode(candidate_name, label, inner))
    if isinstance(expr, Push):
        inner = compile_node(expr.inner, candidate_name + "_0", registry, skip)
        return _define(registry, PushNode(candidate_name, label, inner))
    if isinstance(expr, PeekSlice):
        return _define(registry, PeekSliceNode(candidate_name, label, expr.start, expr.end))
    if isinstance(expr, StackSkip):
        return _define(registry, StackSkipNode(candidate_name, label, expr.count))
    if isinstance(expr, SkipUntil):
        return _define(registry, SkipUntilNode(candidate_name, label, expr.strings))
    raise TypeError("unhandled expression type: " + type(expr).__name__)


def _define(registry: Registry, node: NodeDef) -> str:
    registry.insert(node)
    return node.name


def _compile_slots(items: list[Expr], candidate_name: str, registry: Registry, skip: bool) -> list[str]:
    names: list[str] = []
    i = 0
    while i < len(items):
        names.append(compile_node(items[i], candidate_name + "_" + str(i), registry, skip))
        i += 1
    return names


def _field_name(item: Expr, index: int) -> str:
    """Tagged elements are named by their tag, the rest by position."""
    if isinstance(item, NodeTag):
        return item.tag
    return "field" + str(index)
