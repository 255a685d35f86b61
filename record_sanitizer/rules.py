"""
Deterministic sanitization rules.

Constants shared by the rule set, the drivers and the service, plus the
delimiter spelling parser used by every configuration surface.
"""

from __future__ import annotations

from typing import Union

DEFAULT_DELIMITER = ","
CTRL_A = "\x01"

# Non-printing range stripped from field text: 0x00-0x1F and DEL.
CONTROL_CODEPOINTS = frozenset(list(range(0x00, 0x20)) + [0x7F])

DEFAULT_QUOTE_CHARS = frozenset({'"', "“", "”", "‘", "’"})

BACKSLASH = "\\"
BACKSLASH_REPLACEMENT = "/"
CONTROL_REPLACEMENT = " "

LINE_TERMINATORS = frozenset({"\n", "\r"})

OUTPUT_ENCODING = "utf-8"
UTF8_BOM = b"\xef\xbb\xbf"

NAMED_DELIMITERS = {
    "comma": ",",
    "tab": "\t",
    "pipe": "|",
    "semicolon": ";",
    "ctrl-a": CTRL_A,
    "ctrla": CTRL_A,
    "soh": CTRL_A,
}


def parse_delimiter(value: Union[str, int]) -> str:
    """
    Turn a user-supplied delimiter spelling into the single character it names.

    Accepted: an int byte value, a literal character, a name from
    NAMED_DELIMITERS, the escapes ``\\t`` / ``\\xNN``, ``0xNN``, or a decimal
    byte value written with two or more digits.
    """
    if isinstance(value, int):
        if not 0 <= value <= 0x10FFFF:
            raise ValueError(f"delimiter code point out of range: {value}")
        return chr(value)

    if len(value) == 1:
        return value

    lowered = value.strip().lower()
    if lowered in NAMED_DELIMITERS:
        return NAMED_DELIMITERS[lowered]
    if lowered == "\\t":
        return "\t"
    if lowered.startswith(("\\x", "0x")) and len(lowered) > 2:
        try:
            return chr(int(lowered[2:], 16))
        except ValueError:
            pass
    if lowered.isdigit():
        return chr(int(lowered))

    raise ValueError(f"unrecognized delimiter: {value!r}")


def describe_delimiter(delimiter: str) -> str:
    """Printable form of a delimiter for logs and reports."""
    for name, char in NAMED_DELIMITERS.items():
        if char == delimiter and name != "ctrla":
            return name
    if ord(delimiter) in CONTROL_CODEPOINTS:
        return f"0x{ord(delimiter):02x}"
    return delimiter
