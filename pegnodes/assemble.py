"""Rule assembler — compiles every rule into one registry."""

from __future__ import annotations

import logging

from .builtins import RESERVED_NAMES, install_builtins
from .compile import compile_node
from .emit import render
from .expr import RT_ATOMIC, RT_COMPOUND_ATOMIC, RT_NON_ATOMIC, RULE_TYPES, Rule, rule_refs
from .failures import AssemblyError
from .nodes import SEPARATOR_RULES, AtomicNode, ScopeNode
from .registry import Registry

logger = logging.getLogger(__name__)

# Rule types that set or clear the atomic flag for everything they call.
_SCOPED_TYPES: set[str] = {RT_COMPOUND_ATOMIC, RT_NON_ATOMIC}


def assemble(rules: list[Rule], validate: bool = True) -> Registry:
    """Compile rules, in order, into a fresh registry.

    With validate, a malformed rule set raises AssemblyError. Without it the
    registry is built regardless; a dangling reference then fails at match
    time with UnknownRule.
    """
    if validate:
        check_rules(rules)
    registry = Registry()
    install_builtins(registry)
    for rule in rules:
        if validate and rule.name in registry:
            raise AssemblyError("rule name collides with a generated node", rule.name)
        compiled = compile_rule(rule)
        conflicts = registry.merge(compiled)
        if conflicts:
            if validate:
                raise AssemblyError("generated node names collide: " + ", ".join(conflicts), rule.name)
            logger.warning("rule %s: kept earlier definitions of %s", rule.name, ", ".join(conflicts))
        logger.debug("rule %s (%s): %d nodes", rule.name, rule.kind, len(compiled))
    logger.info("assembled %d rules into %d nodes", len(rules), len(registry))
    return registry


def compile_rule(rule: Rule) -> Registry:
    """Compile one rule into a registry of its own.

    Atomic, compound-atomic and non-atomic rules compile their body under
    `<rule>_a` behind a node that sets the match-time atomic flag; normal and
    silent rules compile in place and inherit the caller's flag.
    """
    registry = Registry()
    label = render(rule.expr)
    if rule.kind == RT_ATOMIC:
        body = compile_node(rule.expr, rule.name + "_a", registry, False)
        registry.insert(AtomicNode(rule.name, label, body))
        return registry
    skip = rule.kind != RT_COMPOUND_ATOMIC and rule.name not in SEPARATOR_RULES
    if rule.kind in _SCOPED_TYPES:
        body = compile_node(rule.expr, rule.name + "_a", registry, skip)
        registry.insert(ScopeNode(rule.name, label, body, rule.kind == RT_COMPOUND_ATOMIC))
        return registry
    compile_node(rule.expr, rule.name, registry, skip)
    return registry


def check_rules(rules: list[Rule]) -> None:
    """Raise AssemblyError unless names are unique and every reference resolves."""
    defined: set[str] = set()
    for rule in rules:
        if rule.kind not in RULE_TYPES:
            raise AssemblyError("unknown rule type " + repr(rule.kind), rule.name)
        if rule.name in RESERVED_NAMES:
            raise AssemblyError("rule name is reserved for a builtin", rule.name)
        if rule.name in defined:
            raise AssemblyError("duplicate rule", rule.name)
        defined.add(rule.name)
    for rule in rules:
        for ref in rule_refs(rule.expr):
            if ref not in defined and ref not in RESERVED_NAMES:
                raise AssemblyError("reference to undefined rule '" + ref + "'", rule.name)
