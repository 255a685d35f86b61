"""Command-line interface.

Provides subcommands: `clean`, `preview`, `scan` and `fields`. Each command
is implemented as a `cmd_*` function that accepts an argparse namespace and
returns an exit code.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import BinaryIO, List, Optional

from pydantic import ValidationError

from record_sanitizer.config import get_settings
from record_sanitizer.diagnostics import field_count_histogram, scan_stream
from record_sanitizer.logging_config import configure_logging
from record_sanitizer.models import SanitizerConfig
from record_sanitizer.rules import DEFAULT_QUOTE_CHARS, parse_delimiter
from record_sanitizer.sanitize import CleaningRuleSet, ConfigurationError
from record_sanitizer.stream import sanitize_file, sanitize_stream

log = logging.getLogger(__name__)


# --------------------------------------------------
# Helpers
# --------------------------------------------------
def _open_input(stack: ExitStack, path: str) -> BinaryIO:
    if path == "-":
        return sys.stdin.buffer
    return stack.enter_context(open(path, "rb"))


def _open_output(stack: ExitStack, path: str) -> BinaryIO:
    if path == "-":
        return sys.stdout.buffer
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return stack.enter_context(open(path, "wb"))


def _rules_from_args(args: argparse.Namespace) -> CleaningRuleSet:
    """Build the validated rule set; raises before any data is read."""
    config = SanitizerConfig(
        delimiter=args.delimiter,
        control_char_exceptions=frozenset(parse_delimiter(v) for v in args.keep_control),
        control_char_policy=args.control_policy,
        quote_chars=frozenset(args.quote_chars) if args.quote_chars is not None else DEFAULT_QUOTE_CHARS,
        backslash_policy=args.backslash,
        whitespace_collapse=not args.no_collapse,
        trim_edges=not args.no_trim,
    )
    return CleaningRuleSet.from_config(config)


# --------------------------------------------------
# Commands
# --------------------------------------------------
def cmd_clean(args: argparse.Namespace) -> int:
    """Sanitize an input file (or stdin) into an output file (or stdout)."""
    rules = _rules_from_args(args)

    if args.input != "-" and args.output != "-":
        stats = sanitize_file(
            Path(args.input),
            Path(args.output),
            rules,
            encoding=args.encoding,
            workers=args.workers,
            chunk_size=args.chunk_size,
        )
    else:
        with ExitStack() as stack:
            stats = sanitize_stream(
                _open_input(stack, args.input),
                _open_output(stack, args.output),
                rules,
                encoding=args.encoding,
            )

    print(
        f"lines={stats.lines_processed} encoding_fallbacks={stats.encoding_fallbacks}",
        file=sys.stderr,
    )
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    """Sanitize only the first N lines, to stdout by default."""
    rules = _rules_from_args(args)
    with ExitStack() as stack:
        sanitize_stream(
            _open_input(stack, args.input),
            _open_output(stack, args.output),
            rules,
            encoding=args.encoding,
            limit=args.lines,
        )
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    """Report control characters left in a file; exit 1 if any are found."""
    delimiter = parse_delimiter(args.delimiter)
    with ExitStack() as stack:
        report = scan_stream(_open_input(stack, args.input), delimiter, args.encoding, limit=args.limit)
    print(json.dumps(report.model_dump(), indent=2))
    return 1 if report.lines_with_control_chars else 0


def cmd_fields(args: argparse.Namespace) -> int:
    """Print `count field_count` pairs, like `awk '{print NF}' | sort | uniq -c`."""
    delimiter = parse_delimiter(args.delimiter)
    with ExitStack() as stack:
        hist = field_count_histogram(_open_input(stack, args.input), delimiter, args.encoding)
    for fields, lines in hist.items():
        print(f"{lines:>8} {fields}")
    return 0


# --------------------------------------------------
# CLI
# --------------------------------------------------
def _add_common(p: argparse.ArgumentParser, delimiter: str, encoding: str) -> None:
    p.add_argument("input", help="input file, or - for stdin")
    p.add_argument("-d", "--delimiter", default=delimiter,
                   help="field delimiter: a character, comma/tab/pipe/ctrl-a, \\t, 0x01 ...")
    p.add_argument("--encoding", default=encoding, help="input encoding, or 'auto'")


def _add_rule_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--keep-control", action="append", default=[], metavar="BYTE",
                   help="control byte to leave untouched (repeatable), e.g. tab or 0x09")
    p.add_argument("--control-policy", choices=["replace", "delete"], default="replace")
    p.add_argument("--quote-chars", default=None,
                   help="characters to remove instead of the default quote set")
    p.add_argument("--backslash", choices=["replace", "delete"], default="replace")
    p.add_argument("--no-collapse", action="store_true", help="keep runs of spaces")
    p.add_argument("--no-trim", action="store_true", help="keep leading/trailing spaces")


def build_parser() -> argparse.ArgumentParser:
    """Build and return the top-level argument parser for the CLI.

    Defaults for delimiter, encoding, workers and chunk size come from
    `get_settings()`.

    Returns:
        Configured argparse.ArgumentParser instance.
    """
    s = get_settings()

    p = argparse.ArgumentParser(prog="record-sanitizer")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_clean = sub.add_parser("clean", help="sanitize a delimited file")
    _add_common(p_clean, s.delimiter, s.encoding)
    p_clean.add_argument("output", help="output file, or - for stdout")
    _add_rule_options(p_clean)
    p_clean.add_argument("--workers", type=int, default=s.workers)
    p_clean.add_argument("--chunk-size", type=int, default=s.chunk_size)

    p_preview = sub.add_parser("preview", help="sanitize the first lines to stdout")
    _add_common(p_preview, s.delimiter, s.encoding)
    _add_rule_options(p_preview)
    p_preview.add_argument("-n", "--lines", type=int, default=10)
    p_preview.add_argument("-o", "--output", default="-", help="output file, or - for stdout")

    p_scan = sub.add_parser("scan", help="look for control characters")
    _add_common(p_scan, s.delimiter, s.encoding)
    p_scan.add_argument("--limit", type=int, default=5)

    p_fields = sub.add_parser("fields", help="field-count histogram")
    _add_common(p_fields, s.delimiter, s.encoding)

    return p


COMMANDS = {
    "clean": cmd_clean,
    "preview": cmd_preview,
    "scan": cmd_scan,
    "fields": cmd_fields,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point: parse args, configure logging and dispatch commands."""
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_path, logging.DEBUG if args.verbose else logging.INFO)

    try:
        return COMMANDS[args.cmd](args)
    except (ConfigurationError, ValidationError) as exc:
        log.error("Invalid configuration: %s", exc)
        return 2
    except ValueError as exc:
        log.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
