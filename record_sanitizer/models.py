from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .rules import CONTROL_CODEPOINTS, DEFAULT_DELIMITER, DEFAULT_QUOTE_CHARS, parse_delimiter


class SanitizerConfig(BaseModel):
    """
    Options a CleaningRuleSet is built from.

    Field-level checks live here; checks that depend on the delimiter and
    the rules together happen in ``CleaningRuleSet.from_config``.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    delimiter: str = DEFAULT_DELIMITER
    control_char_exceptions: FrozenSet[int] = Field(default_factory=frozenset)
    control_char_policy: Literal["replace", "delete"] = "replace"
    quote_chars: FrozenSet[str] = DEFAULT_QUOTE_CHARS
    backslash_policy: Literal["replace", "delete"] = "replace"
    whitespace_collapse: bool = True
    trim_edges: bool = True

    @field_validator("delimiter", mode="before")
    @classmethod
    def _parse_delimiter(cls, v: Union[str, int]) -> str:
        return parse_delimiter(v)

    @field_validator("control_char_exceptions", mode="before")
    @classmethod
    def _exceptions_as_codepoints(cls, v):
        out = set()
        for item in v or ():
            code = ord(parse_delimiter(item)) if isinstance(item, str) else int(item)
            if code not in CONTROL_CODEPOINTS:
                raise ValueError(f"not a control byte: {code:#04x}")
            out.add(code)
        return frozenset(out)

    @field_validator("quote_chars")
    @classmethod
    def _single_characters(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        for ch in v:
            if len(ch) != 1:
                raise ValueError(f"quote_chars entries must be single characters, got {ch!r}")
        return v


class RunStats(BaseModel):
    lines_processed: int = 0
    encoding_fallbacks: int = 0
    encoding: str = "utf-8"


class ScanReport(BaseModel):
    lines_scanned: int = 0
    lines_with_control_chars: int = 0
    first_offending_lines: List[int] = Field(default_factory=list)
    problem_codepoints: List[int] = Field(default_factory=list)
    encoding_fallbacks: int = 0


class SanitizedFile(BaseModel):
    sha256: str
    encoding: str = Field(default="utf-8")
    content_b64: str


class SanitizeReport(BaseModel):
    lines_processed: int
    encoding_fallbacks: int = 0
    delimiter: str
    source_encoding: str
    config: Dict[str, Any] = Field(default_factory=dict)


class SanitizeResponse(BaseModel):
    sanitized_file: SanitizedFile
    report: SanitizeReport


class ScanResponse(BaseModel):
    scan: ScanReport
    field_counts: Dict[int, int] = Field(default_factory=dict)
    delimiter: str


class HealthResponse(BaseModel):
    ok: bool = True
