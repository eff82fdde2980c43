"""Tests for node matching: leaves, composites, the backreference stack, and separators."""

import pytest

from pegnodes.assemble import assemble
from pegnodes.expr import (
    RT_ATOMIC,
    RT_COMPOUND_ATOMIC,
    RT_NON_ATOMIC,
    RT_NORMAL,
    RT_SILENT,
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
    SkipUntil,
    StackSkip,
    Str,
    choice,
    seq,
)
from pegnodes.failures import (
    AllAlternativesExhausted,
    CharOutOfRange,
    FailureTracker,
    LiteralMismatch,
    LookaheadFailed,
    StackMismatch,
    UnknownRule,
)
from pegnodes.nodes import MatchContext
from pegnodes.registry import Registry
from pegnodes.source import Input, LineIndex
from pegnodes.values import Leaf, Many, Maybe, Product, Variant, to_plain

LOWER = Range("a", "z")


def _ctx(registry: Registry, text: str) -> MatchContext:
    return MatchContext(registry, LineIndex(text), FailureTracker())


def _match(rules: list[Rule], name: str, text: str) -> tuple[Input, object]:
    registry = assemble(rules)
    return _ctx(registry, text).call(name, Input(text))


def _try(rules: list[Rule], name: str, text: str) -> tuple[str, object]:
    rest, value = _match(rules, name, text)
    return rest.rest(), value


def _one(expr, kind: str = RT_NORMAL) -> list[Rule]:
    return [Rule("r", kind, expr)]


# ============================================================
# Leaves
# ============================================================


def test_literal_consumes_prefix():
    rest, value = _try(_one(Str("foo")), "r", "foobar")
    assert rest == "bar"
    assert isinstance(value, Leaf)
    assert value.content == "foo"
    assert value.name == "r"
    assert (value.span.start, value.span.end) == (0, 3)


def test_literal_mismatch():
    with pytest.raises(LiteralMismatch) as exc:
        _try(_one(Str("foo")), "r", "bar")
    assert exc.value.pos == 0
    assert exc.value.expected == ['"foo"']


def test_range_matches_one_char():
    rest, value = _try(_one(LOWER), "r", "bob")
    assert rest == "ob"
    assert value.content == "b"


def test_range_rejects_outside_char():
    with pytest.raises(CharOutOfRange):
        _try(_one(LOWER), "r", "Bob")


def test_range_rejects_end_of_input():
    with pytest.raises(CharOutOfRange, match="end of input"):
        _try(_one(LOWER), "r", "")


def test_insensitive_literal():
    rest, value = _try(_one(Insens("select")), "r", "SELECT *")
    assert rest == " *"
    assert value.content == "SELECT"


def test_insensitive_literal_too_short():
    with pytest.raises(LiteralMismatch):
        _try(_one(Insens("select")), "r", "SEL")


def test_skip_until_stops_before_terminator():
    rules = _one(seq(Str("/*"), SkipUntil(("*/",)), Str("*/")))
    rest, value = _try(rules, "r", "/* hi */x")
    assert rest == "x"
    assert to_plain(value) == ("/*", " hi ", "*/")


def test_skip_until_runs_to_end_without_terminator():
    rest, value = _try(_one(SkipUntil(("*/", "//"))), "r", "abc")
    assert rest == ""
    assert value.content == "abc"


def test_skip_until_earliest_terminator_wins():
    rest, value = _try(_one(SkipUntil(("*/", "//"))), "r", "ab//c*/")
    assert value.content == "ab"
    assert rest == "//c*/"


# ============================================================
# Composites
# ============================================================


def test_sequence(greeting_rules):
    rest, value = _try(greeting_rules, "greeting", "hi bob")
    assert rest == ""
    assert isinstance(value, Product)
    assert to_plain(value) == ("hi", " ", "bob")


def test_sequence_fails_on_any_element(greeting_rules):
    with pytest.raises(CharOutOfRange):
        _try(greeting_rules, "greeting", "hi Bob")


def test_tagged_fields():
    rules = [
        Rule("pair", RT_NORMAL, seq(NodeTag(Ident("word"), "key"), Str("="), NodeTag(Ident("word"), "value"))),
        Rule("word", RT_ATOMIC, seq(LOWER, Rep(LOWER))),
    ]
    _, value = _try(rules, "pair", "ab=cd")
    assert value.field("key").content == "ab"
    assert value.field("value").content == "cd"
    with pytest.raises(KeyError):
        value.field("missing")


def test_choice_reports_branch_index():
    rest, value = _try(_one(choice(Str("true"), Str("false"))), "r", "false")
    assert rest == ""
    assert isinstance(value, Variant)
    assert value.index == 1
    assert value.value.content == "false"


def test_choice_is_ordered():
    rest, value = _try(_one(choice(Str("a"), Str("ab"))), "r", "ab")
    assert value.index == 0
    assert rest == "b"


def test_choice_exhausted():
    with pytest.raises(AllAlternativesExhausted) as exc:
        _try(_one(choice(Str("true"), Str("false"))), "r", "maybe")
    assert exc.value.expected == ['"true"', '"false"']


def test_optional_absent_consumes_nothing():
    rest, value = _try(_one(Opt(Str("x"))), "r", "ok")
    assert rest == "ok"
    assert isinstance(value, Maybe)
    assert not value.present
    assert len(value.span) == 0


def test_optional_present():
    rest, value = _try(_one(Opt(Str("o"))), "r", "ok")
    assert rest == "k"
    assert value.present
    assert value.value.content == "o"


def test_repetition_is_greedy():
    rest, value = _try(_one(Rep(Range("0", "9"))), "r", "123abc")
    assert rest == "abc"
    assert isinstance(value, Many)
    assert to_plain(value) == ["1", "2", "3"]


def test_repetition_of_nothing_succeeds():
    rest, value = _try(_one(Rep(Range("0", "9"))), "r", "abc")
    assert rest == "abc"
    assert value.items == []


def test_repetition_keeps_only_whole_iterations():
    rest, value = _try(_one(Rep(seq(Str("a"), Str("b")))), "r", "ababa")
    assert rest == "a"
    assert len(value.items) == 2


def test_repetition_stops_without_progress():
    rest, value = _try(_one(Rep(Opt(Str("x")))), "r", "xxy")
    assert rest == "y"
    assert len(value.items) == 2


def test_recursive_rule(nested_rules):
    rest, value = _try(nested_rules, "list", "(())")
    assert rest == ""
    assert to_plain(value) == ("(", ("(", None, ")"), ")")


# ============================================================
# Lookahead and builtins
# ============================================================


def test_positive_lookahead_consumes_nothing():
    rest, value = _try(_one(seq(PosPred(Str("a")), Str("ab"))), "r", "abc")
    assert rest == "c"
    assert to_plain(value) == (None, "ab")


def test_positive_lookahead_fails():
    with pytest.raises(LookaheadFailed) as exc:
        _try(_one(seq(PosPred(Str("a")), Str("b"))), "r", "b")
    assert exc.value.expected == ['"a"']


def test_negative_lookahead():
    rest, value = _try(_one(seq(NegPred(Str("b")), Ident("ANY"))), "r", "ab")
    assert rest == "b"
    assert to_plain(value) == (None, "a")
    with pytest.raises(LookaheadFailed):
        _try(_one(seq(NegPred(Str("a")), Ident("ANY"))), "r", "ab")


def test_builtins():
    expr = seq(Ident("SOI"), Rep(seq(NegPred(Ident("NEWLINE")), Ident("ANY"))), Ident("NEWLINE"), Ident("EOI"))
    rest, value = _try([Rule("doc", RT_NORMAL, expr)], "doc", "ab\r\n")
    assert rest == ""
    assert to_plain(value) == (None, [(None, "a"), (None, "b")], "\r\n", None)


def test_eoi_fails_before_end():
    with pytest.raises(LookaheadFailed):
        _try(_one(seq(Str("a"), Ident("EOI"))), "r", "ab")


def test_any_fails_at_end():
    with pytest.raises(CharOutOfRange):
        _try(_one(seq(Str("a"), Ident("ANY"))), "r", "a")


def test_atomic_rule_yields_one_leaf():
    rest, value = _try(_one(seq(LOWER, Rep(LOWER)), RT_ATOMIC), "r", "abc1")
    assert rest == "1"
    assert isinstance(value, Leaf)
    assert value.content == "abc"


def test_unknown_rule_at_match_time():
    registry = assemble([Rule("r", RT_NORMAL, Ident("missing"))], validate=False)
    with pytest.raises(UnknownRule) as exc:
        _ctx(registry, "x").call("r", Input("x"))
    assert exc.value.expected == ["missing"]


# ============================================================
# Backreference stack
# ============================================================


def test_push_then_peek():
    rules = _one(seq(Push(LOWER), Str(":"), PeekSlice(-1, None)))
    rest, value = _match(rules, "r", "x:x")
    assert rest.rest() == ""
    assert to_plain(value) == ("x", ":", "x")
    assert [span.text for span in rest.stack] == ["x"]


def test_peek_mismatch():
    with pytest.raises(StackMismatch):
        _try(_one(seq(Push(LOWER), Str(":"), PeekSlice(-1, None))), "r", "x:y")


def test_peek_whole_stack_bottom_to_top():
    rules = _one(seq(Push(Str("a")), Push(Str("b")), PeekSlice(0, None)))
    rest, value = _try(rules, "r", "abab")
    assert rest == ""
    assert to_plain(value)[2] == "ab"


def test_peek_out_of_range():
    with pytest.raises(StackMismatch, match="out of range"):
        _try(_one(seq(Push(Str("a")), PeekSlice(0, 2))), "r", "aa")


def test_failed_branch_leaves_stack_untouched():
    expr = choice(seq(Push(Str("a")), Str("!")), seq(Str("a"), PeekSlice(0, None)))
    rest, value = _match(_one(expr), "r", "a")
    assert value.index == 1
    assert rest.rest() == ""
    assert rest.stack == ()


def test_restore_on_error():
    expr = seq(Opt(RestoreOnErr(seq(Push(Str("a")), Str("!")))), Str("a"))
    rest, value = _match(_one(expr), "r", "a")
    assert rest.rest() == ""
    assert not value.fields[0].present
    assert rest.stack == ()


def test_restore_keeps_effects_on_success():
    expr = seq(RestoreOnErr(Push(Str("a"))), PeekSlice(0, None))
    rest, _ = _match(_one(expr), "r", "aa")
    assert rest.rest() == ""
    assert len(rest.stack) == 1


def test_stack_skip_drops_entries():
    expr = seq(Push(Str("a")), Push(Str("b")), StackSkip(1), PeekSlice(0, None))
    rest, value = _match(_one(expr), "r", "aba")
    assert rest.rest() == ""
    assert [span.text for span in rest.stack] == ["a"]


def test_stack_skip_on_short_stack():
    with pytest.raises(StackMismatch):
        _try(_one(seq(Str("a"), StackSkip(1))), "r", "a")


def test_raw_string_delimiters():
    # r#"..."# style: the closing run of '#' must repeat the opening run
    hashes = Push(Rep(Str("#")))
    close = seq(Str('"'), PeekSlice(-1, None))
    body = Rep(seq(NegPred(close), Ident("ANY")))
    rules = [Rule("raw", RT_COMPOUND_ATOMIC, seq(Str("r"), hashes, Str('"'), body, close, StackSkip(1)))]
    rest, value = _match(rules, "raw", 'r##"a"#b"##!')
    assert rest.rest() == "!"
    assert rest.stack == ()
    assert value.span.text == 'r##"a"#b"##'


# ============================================================
# Implicit separators
# ============================================================


def _spaced(*rules: Rule) -> list[Rule]:
    return [
        Rule("word", RT_ATOMIC, seq(LOWER, Rep(LOWER))),
        Rule("WHITESPACE", RT_SILENT, choice(Str(" "), Str("\n"))),
        *rules,
    ]


def test_whitespace_between_sequence_elements():
    rules = _spaced(Rule("pair", RT_NORMAL, seq(Ident("word"), Str("="), Ident("word"))))
    rest, value = _try(rules, "pair", "a  =  b ")
    assert to_plain(value) == ("a", "=", "b")
    assert rest == " "


def test_no_leading_whitespace():
    rules = _spaced(Rule("pair", RT_NORMAL, seq(Ident("word"), Str("="), Ident("word"))))
    with pytest.raises(CharOutOfRange):
        _try(rules, "pair", " a=b")


def test_atomic_rule_takes_no_whitespace():
    rest, value = _try(_spaced(), "word", "ab c")
    assert value.content == "ab"
    assert rest == " c"


def test_compound_atomic_rule_takes_no_whitespace():
    rules = _spaced(Rule("kw", RT_COMPOUND_ATOMIC, seq(Str("a"), Str("b"))))
    assert _try(rules, "kw", "ab")[0] == ""
    with pytest.raises(LiteralMismatch):
        _try(rules, "kw", "a b")


def test_whitespace_between_repetitions():
    rules = _spaced(Rule("words", RT_NORMAL, Rep(Ident("word"))))
    rest, value = _try(rules, "words", "a b  c ")
    assert to_plain(value) == ["a", "b", "c"]
    assert rest == " "


def test_comments_are_separators():
    rules = _spaced(
        Rule("pair", RT_NORMAL, seq(Ident("word"), Str("="), Ident("word"))),
        Rule("COMMENT", RT_COMPOUND_ATOMIC, seq(Str("#"), SkipUntil(("\n",)))),
    )
    rest, value = _try(rules, "pair", "a # note\n= b")
    assert to_plain(value) == ("a", "=", "b")
    assert rest == ""


def test_atomic_rule_suppresses_whitespace_in_called_rules():
    rules = _spaced(
        Rule("pair", RT_NORMAL, seq(Str("a"), Str("b"))),
        Rule("tok", RT_ATOMIC, Ident("pair")),
    )
    assert _try(rules, "pair", "a b")[0] == ""
    with pytest.raises(LiteralMismatch):
        _try(rules, "tok", "a b")
    rest, value = _try(rules, "tok", "ab")
    assert rest == ""
    assert value.content == "ab"


def test_compound_atomic_rule_suppresses_whitespace_in_called_rules():
    rules = _spaced(
        Rule("pair", RT_NORMAL, seq(Str("a"), Str("b"))),
        Rule("tok", RT_COMPOUND_ATOMIC, seq(Str("<"), Ident("pair"))),
    )
    with pytest.raises(LiteralMismatch):
        _try(rules, "tok", "<a b")
    assert to_plain(_try(rules, "tok", "<ab")[1]) == ("<", ("a", "b"))


def test_non_atomic_rule_restores_whitespace():
    rules = _spaced(
        Rule("pair", RT_NON_ATOMIC, seq(Str("a"), Str("b"))),
        Rule("tok", RT_ATOMIC, seq(Ident("pair"), Str("!"))),
    )
    rest, value = _try(rules, "tok", "a b!")
    assert rest == ""
    assert value.content == "a b!"
    with pytest.raises(LiteralMismatch):
        _try(rules, "tok", "a b !")


def test_atomic_flag_restored_after_atomic_call():
    rules = _spaced(Rule("pair", RT_NORMAL, seq(Ident("word"), Str("="), Ident("word"))))
    registry = assemble(rules)
    ctx = _ctx(registry, "ab = cd")
    rest, value = ctx.call("pair", Input("ab = cd"))
    assert to_plain(value) == ("ab", "=", "cd")
    assert ctx.atomic is False


def test_repetition_leaves_trailing_whitespace():
    rules = _spaced(Rule("r", RT_NORMAL, Rep(Opt(Str("a")))))
    rest, value = _try(rules, "r", "a a  ")
    assert to_plain(value) == ["a", "a"]
    assert rest == "  "
