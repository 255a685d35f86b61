"""record_sanitizer package.

Delimiter-safe cleaning of delimited text files: control characters,
problematic punctuation and excess whitespace are removed from field text
while the delimiter, the field count and the line count are preserved.
"""

from .models import RunStats, SanitizerConfig
from .sanitize import (
    CleaningRuleSet,
    ConfigurationError,
    sanitize_field,
    sanitize_line,
    sanitize_record,
)
from .stream import sanitize_file, sanitize_lines, sanitize_stream

__all__ = [
    "CleaningRuleSet",
    "ConfigurationError",
    "RunStats",
    "SanitizerConfig",
    "sanitize_field",
    "sanitize_file",
    "sanitize_line",
    "sanitize_lines",
    "sanitize_record",
    "sanitize_stream",
    "__version__",
]
__version__ = "0.1.0"
