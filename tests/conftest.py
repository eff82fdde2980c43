"""Pytest configuration for the pegnodes test suite."""

import sys
from pathlib import Path

import pytest

# Add the project root to path for pegnodes imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from pegnodes.expr import (  # noqa: E402
    RT_ATOMIC,
    RT_NORMAL,
    Ident,
    Opt,
    Range,
    Rep,
    Rule,
    Str,
    seq,
)


@pytest.fixture
def greeting_rules() -> list[Rule]:
    """greeting = { "hi" ~ " " ~ name }, name = @{ 'a'..'z' ~ 'a'..'z'* }"""
    lower = Range("a", "z")
    return [
        Rule("greeting", RT_NORMAL, seq(Str("hi"), Str(" "), Ident("name"))),
        Rule("name", RT_ATOMIC, seq(lower, Rep(lower))),
    ]


@pytest.fixture
def nested_rules() -> list[Rule]:
    """list = { "(" ~ list? ~ ")" }"""
    return [Rule("list", RT_NORMAL, seq(Str("("), Opt(Ident("list")), Str(")")))]
