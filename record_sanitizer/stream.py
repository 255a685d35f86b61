"""
Line-by-line driver around the record sanitizer.

Responsibilities:
- decode each line under the declared encoding, falling back to replacement
  characters (and counting it) instead of aborting the batch
- one output line per input line, written with a single write call
- optional parallel mode: newline-aligned byte-range chunks cleaned by
  independent dask tasks and concatenated in input order
"""

from __future__ import annotations

import codecs
import io
import logging
import os
from itertools import islice
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Iterator, List, Optional, Tuple, cast

from charset_normalizer import from_bytes
from dask import compute, delayed  # type: ignore[attr-defined]

from .models import RunStats
from .rules import OUTPUT_ENCODING, UTF8_BOM, describe_delimiter
from .sanitize import CleaningRuleSet, sanitize_line

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024 * 1024
DETECTION_SAMPLE_SIZE = 64 * 1024


def _normalize_encoding_name(encoding: str) -> str:
    try:
        return codecs.lookup(encoding).name
    except LookupError:
        raise ValueError(f"unknown encoding: {encoding!r}") from None


def _ascii_compatible(encoding: str) -> bool:
    # a leading BOM (utf-8-sig) is fine; newline must stay a single 0x0a byte
    try:
        return "\na".encode(encoding).endswith(b"\na")
    except (LookupError, UnicodeError):
        return False


def detect_encoding(sample: bytes) -> str:
    """
    Best-effort encoding guess for ``sample`` via charset-normalizer.

    Falls back to UTF-8 when nothing is detected or the detected encoding
    cannot be split on newline bytes (UTF-16/32).
    """
    match = from_bytes(sample).best()
    detected = match.encoding if match is not None else None

    if detected is None:
        return OUTPUT_ENCODING
    if not _ascii_compatible(detected):
        log.warning("Detected encoding %s is not line-splittable; using utf-8", detected)
        return OUTPUT_ENCODING
    return _normalize_encoding_name(detected)


def resolve_encoding(source: BinaryIO, encoding: str) -> str:
    """
    Return a concrete encoding; ``"auto"`` sniffs a sample from a seekable source.

    Raises:
        ValueError: for unknown encodings and ones (UTF-16/32) whose newline
            is not the single byte 0x0a.
    """
    if encoding.lower() != "auto":
        name = _normalize_encoding_name(encoding)
        if not _ascii_compatible(name):
            raise ValueError(f"encoding {encoding!r} cannot be split into lines on newline bytes")
        return name

    if not source.seekable():
        log.warning("Cannot sniff encoding of a non-seekable source; using utf-8")
        return OUTPUT_ENCODING

    pos = source.tell()
    sample = source.read(DETECTION_SAMPLE_SIZE)
    source.seek(pos)
    return detect_encoding(sample)


def split_terminator(raw: bytes) -> Tuple[bytes, bytes]:
    if raw.endswith(b"\n"):
        return raw[:-1], b"\n"
    return raw, b""


def decode_line(body: bytes, encoding: str) -> Tuple[str, bool]:
    try:
        return body.decode(encoding), False
    except UnicodeDecodeError:
        return body.decode(encoding, errors="replace"), True


def sanitize_lines(lines: Iterable[str], rules: CleaningRuleSet) -> Iterator[str]:
    """Text-level driver: one cleaned line per input line, terminators kept."""
    for line in lines:
        if line.endswith("\n"):
            yield sanitize_line(line[:-1], rules) + "\n"
        else:
            yield sanitize_line(line, rules)


def sanitize_stream(
    source: BinaryIO,
    sink: BinaryIO,
    rules: CleaningRuleSet,
    encoding: str = "utf-8",
    output_encoding: str = OUTPUT_ENCODING,
    limit: Optional[int] = None,
    strip_bom: bool = True,
    offset: int = 0,
) -> RunStats:
    """
    Clean ``source`` into ``sink`` line by line.

    Args:
        source: Binary input; lines are split on ``b"\\n"``.
        sink: Binary output.
        rules: Validated rule set (carries the delimiter).
        encoding: Input encoding, or ``"auto"`` to sniff it.
        output_encoding: Encoding of the written lines.
        limit: Stop after this many lines (used by previews).
        strip_bom: Drop a UTF-8 BOM in front of the first line.
        offset: Byte offset of ``source`` within the original file, for logs.

    Returns:
        RunStats with line and fallback counts.
    """
    encoding = resolve_encoding(source, encoding)
    utf8_input = encoding == "utf-8"
    stats = RunStats(encoding=encoding)

    lines: Iterable[bytes] = iter(source)
    if limit is not None:
        lines = islice(lines, limit)

    for raw in lines:
        line_offset = offset
        offset += len(raw)

        body, terminator = split_terminator(raw)
        if strip_bom and stats.lines_processed == 0 and utf8_input and body.startswith(UTF8_BOM):
            body = body[len(UTF8_BOM):]

        text, fell_back = decode_line(body, encoding)
        if fell_back:
            stats.encoding_fallbacks += 1
            log.warning("Undecodable bytes at offset %d; replaced with U+FFFD", line_offset)

        cleaned = sanitize_line(text, rules)
        # whole line in one write so an abort never leaves a partial record
        sink.write(cleaned.encode(output_encoding, errors="replace") + terminator)
        stats.lines_processed += 1

    return stats


def chunk_boundaries(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[Tuple[int, int]]:
    """Split ``path`` into ``(start, end)`` byte ranges that end on a newline."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    size = os.path.getsize(path)
    bounds: List[Tuple[int, int]] = []
    start = 0

    with open(path, "rb") as fh:
        while start < size:
            fh.seek(min(start + chunk_size, size))
            fh.readline()
            end = min(fh.tell(), size)
            if end <= start:
                end = size
            bounds.append((start, end))
            start = end

    return bounds


def _sanitize_chunk(
    path: Path,
    start: int,
    end: int,
    rules: CleaningRuleSet,
    encoding: str,
    output_encoding: str,
) -> Tuple[bytes, RunStats]:
    """Runs inside a worker: owns its slice of the input and its own buffer."""
    with open(path, "rb") as fh:
        fh.seek(start)
        data = fh.read(end - start)

    out = io.BytesIO()
    stats = sanitize_stream(
        io.BytesIO(data),
        out,
        rules,
        encoding=encoding,
        output_encoding=output_encoding,
        strip_bom=start == 0,
        offset=start,
    )
    return out.getvalue(), stats


def sanitize_file(
    src: Path,
    dst: Path,
    rules: CleaningRuleSet,
    encoding: str = "utf-8",
    output_encoding: str = OUTPUT_ENCODING,
    workers: int = 1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    scheduler: str = "processes",
) -> RunStats:
    """Driver: clean ``src`` into ``dst``, in parallel chunks when ``workers > 1``."""
    src, dst = Path(src), Path(dst)
    if src.resolve() == dst.resolve():
        raise ValueError("output must not overwrite the input; keep the original as the backup")
    dst.parent.mkdir(parents=True, exist_ok=True)

    with open(src, "rb") as fh:
        encoding = resolve_encoding(fh, encoding)

    log.info(
        "Sanitizing %s -> %s (delimiter=%s encoding=%s workers=%d)",
        src, dst, describe_delimiter(rules.delimiter), encoding, workers,
    )

    if workers <= 1 or os.path.getsize(src) <= chunk_size:
        with open(src, "rb") as fin, open(dst, "wb") as fout:
            stats = sanitize_stream(fin, fout, rules, encoding=encoding, output_encoding=output_encoding)
    else:
        stats = RunStats(encoding=encoding)
        bounds = chunk_boundaries(src, chunk_size)
        log.info("Split %s into %d chunks", src, len(bounds))

        with open(dst, "wb") as fout:
            # one wave of `workers` chunks at a time keeps memory bounded
            for i in range(0, len(bounds), workers):
                wave = bounds[i : i + workers]
                tasks = [
                    delayed(_sanitize_chunk)(src, start, end, rules, encoding, output_encoding)
                    for start, end in wave
                ]
                results = cast(Any, compute)(*tasks, scheduler=scheduler, num_workers=workers)
                for data, part in results:
                    fout.write(data)
                    stats.lines_processed += part.lines_processed
                    stats.encoding_fallbacks += part.encoding_fallbacks

    log.info(
        "Sanitize complete: lines=%d encoding_fallbacks=%d",
        stats.lines_processed,
        stats.encoding_fallbacks,
    )
    return stats
