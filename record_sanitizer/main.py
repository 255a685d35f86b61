from __future__ import annotations

import base64
import hashlib
import io
import logging
from typing import Literal, Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile

from .diagnostics import field_count_histogram, scan_stream
from .models import HealthResponse, SanitizeResponse, SanitizerConfig, ScanResponse
from .rules import DEFAULT_QUOTE_CHARS, OUTPUT_ENCODING, describe_delimiter, parse_delimiter
from .sanitize import CleaningRuleSet
from .stream import sanitize_stream

log = logging.getLogger(__name__)

ACCEPTED_SUFFIXES = (".csv", ".tsv", ".txt", ".dat")

app = FastAPI(
    title="record-sanitizer",
    description="Delimiter-safe cleaning of delimited text files",
    version="0.1.0",
)


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _check_filename(file: UploadFile) -> None:
    if not (file.filename or "").lower().endswith(ACCEPTED_SUFFIXES):
        raise HTTPException(status_code=422, detail="Only .csv, .tsv, .txt or .dat files are supported")


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/sanitize", response_model=SanitizeResponse)
async def sanitize_upload(
    file: UploadFile = File(...),
    delimiter: str = Query(","),
    encoding: str = Query("utf-8"),
    control_policy: Literal["replace", "delete"] = Query("replace"),
    keep_control: list[str] = Query(default=[]),
    quote_chars: Optional[str] = Query(None),
    backslash: Literal["replace", "delete"] = Query("replace"),
    whitespace_collapse: bool = Query(True),
    trim_edges: bool = Query(True),
):
    _check_filename(file)

    try:
        config = SanitizerConfig(
            delimiter=delimiter,
            control_char_exceptions=frozenset(parse_delimiter(v) for v in keep_control),
            control_char_policy=control_policy,
            quote_chars=frozenset(quote_chars) if quote_chars is not None else DEFAULT_QUOTE_CHARS,
            backslash_policy=backslash,
            whitespace_collapse=whitespace_collapse,
            trim_edges=trim_edges,
        )
        rules = CleaningRuleSet.from_config(config)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    raw = await file.read()
    out = io.BytesIO()
    try:
        stats = sanitize_stream(io.BytesIO(raw), out, rules, encoding=encoding)
    except ValueError as exc:
        # unknown encoding name
        raise HTTPException(status_code=422, detail=str(exc))

    cleaned = out.getvalue()
    log.info(
        "Sanitized upload %s: lines=%d encoding_fallbacks=%d",
        file.filename, stats.lines_processed, stats.encoding_fallbacks,
    )

    return {
        "sanitized_file": {
            "sha256": _sha256_hex(cleaned),
            "encoding": OUTPUT_ENCODING,
            "content_b64": base64.b64encode(cleaned).decode("ascii"),
        },
        "report": {
            "lines_processed": stats.lines_processed,
            "encoding_fallbacks": stats.encoding_fallbacks,
            "delimiter": describe_delimiter(rules.delimiter),
            "source_encoding": stats.encoding,
            "config": {
                "control_char_policy": config.control_char_policy,
                "control_char_exceptions": sorted(config.control_char_exceptions),
                "quote_chars": sorted(config.quote_chars),
                "backslash_policy": config.backslash_policy,
                "whitespace_collapse": config.whitespace_collapse,
                "trim_edges": config.trim_edges,
                "rules": [r.name for r in rules.rules],
            },
        },
    }


@app.post("/scan", response_model=ScanResponse)
async def scan_upload(
    file: UploadFile = File(...),
    delimiter: str = Query(","),
    encoding: str = Query("utf-8"),
    limit: int = Query(5, ge=0),
):
    _check_filename(file)
    try:
        delim = parse_delimiter(delimiter)
        raw = await file.read()
        report = scan_stream(io.BytesIO(raw), delim, encoding, limit=limit)
        fields = field_count_histogram(io.BytesIO(raw), delim, encoding)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return {"scan": report, "field_counts": fields, "delimiter": describe_delimiter(delim)}
