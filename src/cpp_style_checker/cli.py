"""Command line entry point.

Usage: cpp-style-check [--fix] [--rules=...] [--disable=...] <path>...

Exit codes: 0 clean, 1 diagnostics reported, 2 a file could not be checked,
64 usage error.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import ConfigError, load_config
from .engine import CheckEngine
from .report import JsonSink, TextSink
from .rules import available_rules, load_rules
from .runner import DEFAULT_EXTENSIONS, Runner, discover_files

logger = logging.getLogger("cli")

EXIT_USAGE = 64


class UsageError(Exception):
    """Raised for invalid command line arguments."""


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser reporting errors as :class:`UsageError`."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def _split(value: str | None) -> set[str] | None:
    if value is None:
        return None
    return {item.strip() for item in value.split(",") if item.strip()}


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid job count: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"job count must be at least 1: {value!r}")
    return number


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="cpp-style-check",
        description="Check C and C++ sources against the Kodi code guidelines",
    )
    parser.add_argument("paths", nargs="*", type=Path, help="Files or directories")
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Apply whitespace, nullptr and include-order fixes in place",
    )
    parser.add_argument(
        "--rules", help="Comma-separated rule ids to run (default: all)"
    )
    parser.add_argument("--disable", help="Comma-separated rule ids to skip")
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file (default: [tool.cpp-style] in pyproject.toml)",
    )
    parser.add_argument(
        "--jobs", type=_positive_int, help="Number of worker threads (default: CPUs)"
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Check files one at a time in command line order",
    )
    parser.add_argument(
        "--ext",
        default=",".join(DEFAULT_EXTENSIONS),
        help="Comma-separated extensions to pick up in directories "
        "(default: %(default)s)",
    )
    parser.add_argument(
        "--report", choices=("text", "json"), default="text", help="Output format"
    )
    parser.add_argument(
        "--stdin-filename",
        type=Path,
        help="Read one file from standard input, reported under this path",
    )
    parser.add_argument(
        "--list-rules", action="store_true", help="List available rules and exit"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def _usage(parser: ArgumentParser, message: str) -> int:
    parser.print_usage(sys.stderr)
    print(f"{parser.prog}: error: {message}", file=sys.stderr)
    return EXIT_USAGE


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments

    Returns:
        Exit code
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as error:
        return _usage(parser, str(error))

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
    )

    registry = available_rules()
    if args.list_rules:
        print("Available rules:")
        for rule_id, rule_class in registry.items():
            fix = " (fixable)" if rule_class.fixable else ""
            print(f"  - {rule_id}: {rule_class.description}{fix}")
        return 0

    enabled = _split(args.rules)
    disabled = _split(args.disable)
    for selection in (enabled, disabled):
        unknown = (selection or set()) - set(registry)
        if unknown:
            return _usage(parser, f"unknown rules: {', '.join(sorted(unknown))}")

    if args.stdin_filename is None and not args.paths:
        return _usage(parser, "no paths given")
    if args.stdin_filename is not None and args.paths:
        return _usage(parser, "paths cannot be combined with --stdin-filename")
    missing = [str(path) for path in args.paths if not path.exists()]
    if missing:
        return _usage(parser, f"no such file or directory: {', '.join(missing)}")

    try:
        config = load_config(args.config)
    except ConfigError as error:
        return _usage(parser, f"invalid configuration: {error}")

    rules = [
        rule
        for rule in load_rules(enabled=enabled, disabled=disabled)
        if enabled is not None or config.rule_enabled(rule.rule_id)
    ]
    if not rules:
        return _usage(parser, "no rules enabled")
    engine = CheckEngine(rules, config)

    if args.stdin_filename is not None:
        return _run_stdin(args, engine)

    extensions = tuple(_split(args.ext) or DEFAULT_EXTENSIONS)
    files = discover_files(args.paths, extensions)
    sink = JsonSink(sys.stdout) if args.report == "json" else TextSink(sys.stdout)
    runner = Runner(
        engine, sink, fix=args.fix, jobs=args.jobs, sequential=args.sequential
    )
    summary = runner.run(files)
    sink.close()
    logger.debug(
        "Checked %d files: %d diagnostics, %d errors",
        summary.files,
        summary.diagnostics,
        summary.fatal,
    )
    return summary.exit_code


def _run_stdin(args: argparse.Namespace, engine: CheckEngine) -> int:
    """Check standard input; in fix mode the fixed source goes to stdout."""
    raw = sys.stdin.buffer.read()
    stream = sys.stderr if args.fix else sys.stdout
    sink = JsonSink(stream) if args.report == "json" else TextSink(stream)
    runner = Runner(engine, sink, fix=args.fix, sequential=True)
    report = runner.handle(args.stdin_filename, raw=raw)
    sink.close()
    if args.fix:
        sys.stdout.buffer.write(report.output if report.output is not None else raw)
        sys.stdout.flush()
    return runner.summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
