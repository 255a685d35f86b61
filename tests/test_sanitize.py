from __future__ import annotations

import pytest
from pydantic import ValidationError

from record_sanitizer.models import SanitizerConfig
from record_sanitizer.rules import CTRL_A
from record_sanitizer.sanitize import (
    CleaningRuleSet,
    ConfigurationError,
    sanitize_field,
    sanitize_line,
    sanitize_record,
)

COMMA = CleaningRuleSet.from_config()
SOH = CleaningRuleSet.from_config(SanitizerConfig(delimiter="ctrl-a"))

SAMPLES = [
    'Hello,"World",Data\x01',
    "  multiple   spaces  ,x",
    "C:\\data,\\\\server\\share",
    "A,,B",
    ",,,",
    "tab\there,cr\rhere,\x00\x1f\x7f",
    "\u201csmart\u201d \u2018quotes\u2019,  \"  \"  ",
    "",
    "unbalanced \"quote,ok",
]


def test_quotes_and_trailing_control_byte() -> None:
    assert sanitize_line('Hello,"World",Data\x01', COMMA) == "Hello,World,Data"


def test_ctrl_a_delimiter_is_untouched() -> None:
    line = f"A{CTRL_A}B\x02C{CTRL_A}D"
    out = sanitize_line(line, SOH)
    assert out == f"A{CTRL_A}B C{CTRL_A}D"
    assert out.count(CTRL_A) == 2


def test_collapse_and_trim() -> None:
    assert sanitize_field("  multiple   spaces  ", COMMA) == "multiple spaces"


def test_backslash_replaced_with_slash() -> None:
    assert sanitize_field("C:\\data", COMMA) == "C:/data"


def test_backslash_delete_policy() -> None:
    rules = CleaningRuleSet.from_config(SanitizerConfig(backslash_policy="delete"))
    assert sanitize_field("C:\\data", rules) == "C:data"


def test_empty_fields_are_preserved() -> None:
    assert sanitize_line("A,,B", COMMA) == "A,,B"
    assert sanitize_record(["", " ", "\x02"], COMMA) == ["", "", ""]


def test_control_delete_policy() -> None:
    rules = CleaningRuleSet.from_config(SanitizerConfig(control_char_policy="delete"))
    assert sanitize_field("B\x02C", rules) == "BC"


def test_tab_delimited_lines() -> None:
    rules = CleaningRuleSet.from_config(SanitizerConfig(delimiter="tab"))
    assert sanitize_line("a\tb  c\t d\r", rules) == "a\tb c\td"


def test_control_exception_kept_when_not_collapsing() -> None:
    rules = CleaningRuleSet.from_config(
        SanitizerConfig(control_char_exceptions={9}, whitespace_collapse=False)
    )
    assert sanitize_field("a\tb\x02c", rules) == "a\tb c"


def test_custom_quote_set() -> None:
    rules = CleaningRuleSet.from_config(SanitizerConfig(quote_chars={"'"}))
    assert sanitize_field("it's \"fine\"", rules) == 'its "fine"'


def test_no_trim_keeps_single_edge_spaces() -> None:
    rules = CleaningRuleSet.from_config(SanitizerConfig(trim_edges=False))
    assert sanitize_field("   a   b   ", rules) == " a b "


RULE_SETS = {
    "comma": COMMA,
    "ctrl-a": SOH,
    "tab": CleaningRuleSet.from_config(SanitizerConfig(delimiter="tab")),
    "delete-control": CleaningRuleSet.from_config(SanitizerConfig(control_char_policy="delete")),
    "no-trim": CleaningRuleSet.from_config(SanitizerConfig(trim_edges=False)),
}

CASES = [
    pytest.param(rules, sample.replace(",", rules.delimiter), id=f"{name}-{i}")
    for name, rules in RULE_SETS.items()
    for i, sample in enumerate(SAMPLES)
]


@pytest.mark.parametrize("rules, line", CASES)
def test_field_count_is_preserved(rules: CleaningRuleSet, line: str) -> None:
    delim = rules.delimiter
    out = sanitize_line(line, rules)
    assert out.count(delim) == line.count(delim)
    assert len(sanitize_record(line.split(delim), rules)) == len(line.split(delim))


@pytest.mark.parametrize("rules, line", CASES)
def test_sanitizing_twice_changes_nothing(rules: CleaningRuleSet, line: str) -> None:
    once = sanitize_line(line, rules)
    assert sanitize_line(once, rules) == once


@pytest.mark.parametrize("rules, line", CASES)
def test_whitespace_is_normalized(rules: CleaningRuleSet, line: str) -> None:
    trims = any(r.name == "trim_edges" for r in rules.rules)
    for field in sanitize_line(line, rules).split(rules.delimiter):
        assert "  " not in field
        if trims:
            assert field == field.strip(" ")


@pytest.mark.parametrize("rules, line", CASES)
def test_no_forbidden_character_in_output(rules: CleaningRuleSet, line: str) -> None:
    for field in sanitize_line(line, rules).split(rules.delimiter):
        assert not set(field) & rules.forbidden


def test_forbidden_characters_never_survive() -> None:
    everything = "".join(chr(c) for c in range(128) if chr(c) not in "\n,") + "\u201c\u201d\u2018\u2019"
    out = sanitize_field(everything, COMMA)
    assert not set(out) & COMMA.forbidden
    assert "\x01" in COMMA.forbidden
    assert "\x01" not in SOH.forbidden


def test_idempotent_with_ctrl_a_delimiter() -> None:
    line = f" x\x02\x02y {CTRL_A}\t\"z\"{CTRL_A}"
    once = sanitize_line(line, SOH)
    assert once == f"x y{CTRL_A}z{CTRL_A}"
    assert sanitize_line(once, SOH) == once


# --- configuration errors ---

def test_quote_set_containing_delimiter_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        CleaningRuleSet.from_config(SanitizerConfig(quote_chars={'"', ","}))


def test_space_delimiter_rejected_when_rules_emit_spaces() -> None:
    with pytest.raises(ConfigurationError):
        CleaningRuleSet.from_config(SanitizerConfig(delimiter=" "))


def test_space_delimiter_allowed_when_nothing_touches_spaces() -> None:
    rules = CleaningRuleSet.from_config(
        SanitizerConfig(
            delimiter=" ",
            control_char_policy="delete",
            whitespace_collapse=False,
            trim_edges=False,
        )
    )
    assert sanitize_line("a\x02b c", rules) == "ab c"


def test_slash_delimiter_rejected_with_backslash_replacement() -> None:
    with pytest.raises(ConfigurationError):
        CleaningRuleSet.from_config(SanitizerConfig(delimiter="/"))
    rules = CleaningRuleSet.from_config(SanitizerConfig(delimiter="/", backslash_policy="delete"))
    assert sanitize_line("a\\b/c", rules) == "ab/c"


@pytest.mark.parametrize("delimiter", ["\\", "\n", "\r"])
def test_unusable_delimiters(delimiter: str) -> None:
    with pytest.raises(ConfigurationError):
        CleaningRuleSet.from_config(SanitizerConfig(delimiter=delimiter))


def test_configuration_error_is_a_value_error() -> None:
    assert issubclass(ConfigurationError, ValueError)


def test_invalid_option_values() -> None:
    with pytest.raises(ValidationError):
        SanitizerConfig(control_char_policy="strip")
    with pytest.raises(ValidationError):
        SanitizerConfig(control_char_exceptions={65})
    with pytest.raises(ValidationError):
        SanitizerConfig(quote_chars={"ab"})
    with pytest.raises(ValidationError):
        SanitizerConfig(delimiter="not-a-delimiter")


@pytest.mark.parametrize(
    "spelling, expected",
    [(",", ","), ("ctrl-a", CTRL_A), ("SOH", CTRL_A), ("0x01", CTRL_A), ("\\x01", CTRL_A),
     (1, CTRL_A), ("tab", "\t"), ("\\t", "\t"), ("pipe", "|"), ("124", "|")],
)
def test_delimiter_spellings(spelling, expected) -> None:
    assert SanitizerConfig(delimiter=spelling).delimiter == expected


def test_rule_order() -> None:
    assert [r.name for r in COMMA.rules] == [
        "control_chars",
        "quotes",
        "backslash",
        "tabs",
        "collapse_spaces",
        "trim_edges",
    ]


def test_rule_cannot_reinsert_what_an_earlier_rule_removed() -> None:
    with pytest.raises(ConfigurationError):
        CleaningRuleSet.from_config(SanitizerConfig(quote_chars={'"', "/"}))
    with pytest.raises(ConfigurationError):
        CleaningRuleSet.from_config(SanitizerConfig(quote_chars={'"', " "}))

    rules = CleaningRuleSet.from_config(SanitizerConfig(quote_chars={'"', "/"}, backslash_policy="delete"))
    out = sanitize_field('C:\\data/"x"', rules)
    assert out == "C:datax"
    assert not set(out) & rules.forbidden


def test_control_exceptions_accept_spellings() -> None:
    config = SanitizerConfig(control_char_exceptions={"tab", "0x0b", 12})
    assert config.control_char_exceptions == frozenset({9, 11, 12})
    with pytest.raises(ValidationError):
        SanitizerConfig(control_char_exceptions={"not-a-byte"})
