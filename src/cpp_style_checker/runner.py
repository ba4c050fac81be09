"""File discovery and the per-file worker pool."""

from __future__ import annotations

import logging
import os
import signal
import threading
from collections.abc import Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .engine import CheckEngine, FileReport

__all__ = ["DEFAULT_EXTENSIONS", "RunSummary", "Runner", "discover_files"]

logger = logging.getLogger("runner")

DEFAULT_EXTENSIONS = (".h", ".hh", ".hpp", ".c", ".cc", ".cpp", ".cxx")


class Sink(Protocol):
    def emit(self, report: FileReport) -> None: ...

    def close(self) -> None: ...


def discover_files(paths: list[Path], extensions: tuple[str, ...]) -> list[Path]:
    """Expand directories into source files.

    Files named on the command line are always checked. Directories are
    walked in sorted order, skipping hidden directories, and contribute the
    files whose extension is in ``extensions``.
    """
    seen: set[Path] = set()
    files: list[Path] = []

    def add(path: Path) -> None:
        if path not in seen:
            seen.add(path)
            files.append(path)

    for path in paths:
        if not path.is_dir():
            add(path)
            continue
        for root, dirs, names in os.walk(path):
            dirs[:] = sorted(d for d in dirs if not d.startswith("."))
            for name in sorted(names):
                if os.path.splitext(name)[1] in extensions:
                    add(Path(root) / name)
    return files


@dataclass
class RunSummary:
    files: int = 0
    diagnostics: int = 0
    fatal: int = 0
    interrupted: bool = False

    @property
    def exit_code(self) -> int:
        if self.fatal:
            return 2
        if self.diagnostics:
            return 1
        return 0


class Runner:
    """Checks files one per work item and feeds reports to a sink.

    Args:
        engine: Engine shared by all workers; it holds no per-file state
        sink: Receives one report per file
        fix: Write fixed files back
        jobs: Worker count (default: CPU count)
        sequential: Check files one at a time in the given order
    """

    def __init__(
        self,
        engine: CheckEngine,
        sink: Sink,
        fix: bool = False,
        jobs: int | None = None,
        sequential: bool = False,
    ) -> None:
        self.engine = engine
        self.sink = sink
        self.fix = fix
        self.jobs = max(1, jobs or os.cpu_count() or 1)
        self.sequential = sequential
        self.stop = threading.Event()
        self.summary = RunSummary()
        self._lock = threading.Lock()

    def run(self, files: list[Path]) -> RunSummary:
        with self._interrupt_handler():
            if self.sequential or self.jobs == 1 or len(files) < 2:
                for path in files:
                    if self.stop.is_set():
                        break
                    self.handle(path)
            else:
                self._run_pool(files)
        self.summary.interrupted = self.stop.is_set()
        return self.summary

    def _run_pool(self, files: list[Path]) -> None:
        with ThreadPoolExecutor(max_workers=self.jobs) as executor:
            in_flight: set[Future[FileReport]] = set()
            for path in files:
                # Bounded dispatch so an interrupt stops new files promptly
                while len(in_flight) >= self.jobs * 2:
                    done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        future.result()
                if self.stop.is_set():
                    break
                in_flight.add(executor.submit(self.handle, path))
            for future in in_flight:
                future.result()

    def handle(self, path: Path, raw: bytes | None = None) -> FileReport:
        """Check one file, write back fixes and emit its report."""
        report = self.engine.process(path, raw=raw, fix=self.fix)
        if self.fix and raw is None:
            self.engine.write_back(report)
        self.sink.emit(report)
        with self._lock:
            self.summary.files += 1
            self.summary.diagnostics += len(report.diagnostics)
            if report.fatal:
                self.summary.fatal += 1
        return report

    @contextmanager
    def _interrupt_handler(self) -> Iterator[None]:
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def on_interrupt(signum: int, frame: object) -> None:
            logger.warning("Interrupted; finishing files in progress")
            self.stop.set()

        previous = signal.signal(signal.SIGINT, on_interrupt)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)
