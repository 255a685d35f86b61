"""Read-only checks run before or after a sanitize pass."""

from __future__ import annotations

import logging
from collections import Counter
from typing import BinaryIO, Dict, Iterable, Set

from .models import RunStats, ScanReport
from .rules import BACKSLASH, CONTROL_CODEPOINTS, DEFAULT_QUOTE_CHARS
from .stream import decode_line, split_terminator, resolve_encoding

log = logging.getLogger(__name__)


def _lines(source: BinaryIO, encoding: str, stats: RunStats) -> Iterable[str]:
    for raw in source:
        body, _ = split_terminator(raw)
        text, fell_back = decode_line(body, encoding)
        if fell_back:
            stats.encoding_fallbacks += 1
        stats.lines_processed += 1
        yield text


def scan_stream(
    source: BinaryIO,
    delimiter: str = ",",
    encoding: str = "utf-8",
    limit: int = 5,
) -> ScanReport:
    """
    Find lines that still carry control characters.

    The delimiter is never reported. ``problem_codepoints`` also lists quote
    characters and backslashes seen anywhere, since the sanitizer touches them.
    """
    encoding = resolve_encoding(source, encoding)
    stats = RunStats(encoding=encoding)
    report = ScanReport()
    control = {chr(c) for c in CONTROL_CODEPOINTS} - {delimiter}
    suspicious = control | set(DEFAULT_QUOTE_CHARS) | {BACKSLASH}
    seen: Set[str] = set()

    for lineno, text in enumerate(_lines(source, encoding, stats), start=1):
        chars = set(text)
        if chars & control:
            report.lines_with_control_chars += 1
            if len(report.first_offending_lines) < limit:
                report.first_offending_lines.append(lineno)
        seen |= chars & suspicious

    report.lines_scanned = stats.lines_processed
    report.encoding_fallbacks = stats.encoding_fallbacks
    report.problem_codepoints = sorted(ord(c) for c in seen)

    log.info(
        "Scanned %d lines: %d with control characters",
        report.lines_scanned,
        report.lines_with_control_chars,
    )
    return report


def field_count_histogram(
    source: BinaryIO,
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> Dict[int, int]:
    """How many lines have each field count; compare before and after a run."""
    encoding = resolve_encoding(source, encoding)
    stats = RunStats(encoding=encoding)
    counts = Counter(len(text.split(delimiter)) for text in _lines(source, encoding, stats))
    return dict(sorted(counts.items()))
