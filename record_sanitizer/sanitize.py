"""
Delimiter-safe field cleaning.

Rules (applied to every field, in this order):
- control characters -> space (or deleted), never the delimiter or newline
- quote characters removed, backslash -> "/" (or deleted)
- tabs / carriage returns -> space, runs of spaces -> one space
- leading / trailing spaces trimmed

A rule set refuses to build if any rule could match or emit the delimiter,
or emit a character an earlier rule removes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Pattern, Sequence, Tuple

from .models import SanitizerConfig
from .rules import (
    BACKSLASH,
    BACKSLASH_REPLACEMENT,
    CONTROL_CODEPOINTS,
    CONTROL_REPLACEMENT,
    LINE_TERMINATORS,
    describe_delimiter,
)

log = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """A rule set that would alter record structure."""


@dataclass(frozen=True)
class CleaningRule:
    name: str
    match: FrozenSet[str]
    replacement: str
    # None means a per-character substitution over `match`.
    pattern: Optional[Pattern[str]] = None
    _table: Dict[int, Optional[str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        table = {ord(ch): (self.replacement or None) for ch in self.match}
        object.__setattr__(self, "_table", table)

    def apply(self, text: str) -> str:
        if self.pattern is not None:
            return self.pattern.sub(self.replacement, text)
        return text.translate(self._table)


@dataclass(frozen=True)
class CleaningRuleSet:
    """Immutable, ordered rules bound to one delimiter."""

    delimiter: str
    rules: Tuple[CleaningRule, ...]

    @classmethod
    def from_config(cls, config: Optional[SanitizerConfig] = None) -> "CleaningRuleSet":
        """
        Build and validate the rule pipeline for ``config``.

        Raises:
            ConfigurationError: if the delimiter is unusable, or a rule's
                match class or replacement contains the delimiter, or a rule
                would reinsert a character an earlier rule removes.
        """
        config = config or SanitizerConfig()
        delim = config.delimiter

        if len(delim) != 1:
            raise ConfigurationError(f"delimiter must be one character, got {delim!r}")
        if delim in LINE_TERMINATORS:
            raise ConfigurationError("a line terminator cannot be used as the delimiter")

        rules: List[CleaningRule] = []

        # 1. control characters; delimiter and newline are always exempt
        exempt = set(config.control_char_exceptions) | {ord(delim), ord("\n")}
        control = frozenset(chr(c) for c in CONTROL_CODEPOINTS - exempt)
        if control:
            rules.append(CleaningRule(
                name="control_chars",
                match=control,
                replacement=CONTROL_REPLACEMENT if config.control_char_policy == "replace" else "",
            ))

        # 2. quotes and backslash
        if config.quote_chars:
            rules.append(CleaningRule(name="quotes", match=frozenset(config.quote_chars), replacement=""))
        rules.append(CleaningRule(
            name="backslash",
            match=frozenset({BACKSLASH}),
            replacement=BACKSLASH_REPLACEMENT if config.backslash_policy == "replace" else "",
        ))

        # 3. whitespace
        if config.whitespace_collapse:
            breaking = frozenset({"\t", "\r"} - {delim})
            if breaking:
                rules.append(CleaningRule(name="tabs", match=breaking, replacement=" "))
            rules.append(CleaningRule(
                name="collapse_spaces",
                match=frozenset({" "}),
                replacement=" ",
                pattern=re.compile(r" {2,}"),
            ))

        # 4. edges, always last
        if config.trim_edges:
            rules.append(CleaningRule(
                name="trim_edges",
                match=frozenset({" "}),
                replacement="",
                pattern=re.compile(r"\A +| +\Z"),
            ))

        for i, rule in enumerate(rules):
            if delim in rule.match:
                raise ConfigurationError(
                    f"rule {rule.name!r} would remove the delimiter {describe_delimiter(delim)!r}"
                )
            if delim in rule.replacement:
                raise ConfigurationError(
                    f"rule {rule.name!r} would insert the delimiter {describe_delimiter(delim)!r}"
                )
            # a later rule must not put back what an earlier rule removed
            for earlier in rules[:i]:
                if earlier.pattern is None and set(rule.replacement) & earlier.match:
                    raise ConfigurationError(
                        f"rule {rule.name!r} would reinsert {rule.replacement!r}, "
                        f"which rule {earlier.name!r} removes"
                    )

        log.debug(
            "Built rule set delimiter=%s rules=%s",
            describe_delimiter(delim),
            [r.name for r in rules],
        )
        return cls(delimiter=delim, rules=tuple(rules))

    @property
    def forbidden(self) -> FrozenSet[str]:
        """Characters that can never survive cleaning."""
        out = set()
        for rule in self.rules:
            if rule.pattern is None:
                out |= rule.match
        return frozenset(out)


def sanitize_field(value: str, rules: CleaningRuleSet) -> str:
    for rule in rules.rules:
        value = rule.apply(value)
    return value


def sanitize_record(record: Sequence[str], rules: CleaningRuleSet) -> List[str]:
    """Clean each field of an already-split record; count and order are kept.

    The delimiter is the one ``rules`` was validated against (``rules.delimiter``).
    """
    return [sanitize_field(v, rules) for v in record]


def sanitize_line(line: str, rules: CleaningRuleSet) -> str:
    """Split ``line`` (no terminator) on the delimiter, clean, and rejoin."""
    fields = line.split(rules.delimiter)
    return rules.delimiter.join(sanitize_record(fields, rules))
