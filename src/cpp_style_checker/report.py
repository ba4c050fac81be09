"""Diagnostic formatting and the shared output sink."""

from __future__ import annotations

import json
import threading
from typing import Any, TextIO

from .engine import FileReport
from .rules import Diagnostic

__all__ = ["JsonSink", "TextSink", "format_text"]


def _position(report: FileReport, offset: int) -> tuple[int, int]:
    if report.source is None:
        return 1, 1
    return report.source.position(offset)


def format_text(report: FileReport, diagnostic: Diagnostic) -> str:
    """Format one diagnostic as ``PATH:LINE:COL: [RULE] MESSAGE``."""
    line, col = _position(report, diagnostic.start)
    prefix = "[FIXED] " if diagnostic.fixed else ""
    return (
        f"{report.path}:{line}:{col}: [{diagnostic.rule_id}] "
        f"{prefix}{diagnostic.message}"
    )


def to_json(report: FileReport, diagnostic: Diagnostic) -> dict[str, Any]:
    """JSON object for one diagnostic; ``fix`` offsets are UTF-8 byte offsets."""
    line, col = _position(report, diagnostic.start)
    end_line, end_col = _position(report, diagnostic.end)
    entry: dict[str, Any] = {
        "path": str(report.path),
        "line": line,
        "col": col,
        "endLine": end_line,
        "endCol": end_col,
        "rule": diagnostic.rule_id,
        "severity": diagnostic.severity.value,
        "message": diagnostic.message,
    }
    if diagnostic.fixed:
        entry["fixed"] = True
    if diagnostic.edit is not None and report.source is not None:
        edit = diagnostic.edit
        entry["fix"] = {
            "start": report.source.byte_offset(edit.start),
            "end": report.source.byte_offset(edit.end),
            "replacement": edit.replacement,
        }
    return entry


class TextSink:
    """Writes each file's diagnostics as one contiguous block.

    Workers call :meth:`emit` concurrently; the lock is held only while one
    block is written.
    """

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._lock = threading.Lock()

    def emit(self, report: FileReport) -> None:
        lines = [format_text(report, d) for d in report.diagnostics]
        if not lines:
            return
        block = "\n".join(lines) + "\n"
        with self._lock:
            self.stream.write(block)
            self.stream.flush()

    def close(self) -> None:
        pass


class JsonSink:
    """Collects diagnostics and writes one JSON array on close."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._lock = threading.Lock()
        self._entries: list[dict[str, Any]] = []

    def emit(self, report: FileReport) -> None:
        entries = [to_json(report, d) for d in report.diagnostics]
        with self._lock:
            self._entries.extend(entries)

    def close(self) -> None:
        with self._lock:
            json.dump(self._entries, self.stream, indent=2)
            self.stream.write("\n")
            self.stream.flush()
