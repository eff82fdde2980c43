"""pegnodes — compiles grammar rules into typed syntax-tree nodes."""

from __future__ import annotations

from .assemble import assemble as assemble, check_rules as check_rules
from .builtins import RESERVED_NAMES as RESERVED_NAMES
from .compile import compile_node as compile_node
from .emit import render as render, to_source as to_source
from .expr import (
    RT_ATOMIC as RT_ATOMIC,
    RT_COMPOUND_ATOMIC as RT_COMPOUND_ATOMIC,
    RT_NON_ATOMIC as RT_NON_ATOMIC,
    RT_NORMAL as RT_NORMAL,
    RT_SILENT as RT_SILENT,
    Rule as Rule,
    choice as choice,
    seq as seq,
)
from .failures import (
    AssemblyError as AssemblyError,
    GrammarError as GrammarError,
    MatchFailure as MatchFailure,
    ParseError as ParseError,
)
from .parser import TypedParser as TypedParser, parse as parse
from .registry import Registry as Registry
from .values import to_plain as to_plain
