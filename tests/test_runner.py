"""Tests for file discovery and the worker pool."""

from __future__ import annotations

from pathlib import Path

import pytest

from cpp_style_checker.config import Config
from cpp_style_checker.engine import CheckEngine, FileReport
from cpp_style_checker.rules import load_rules
from cpp_style_checker.runner import (
    DEFAULT_EXTENSIONS,
    Runner,
    RunSummary,
    discover_files,
)


class CollectingSink:
    def __init__(self) -> None:
        self.reports: list[FileReport] = []

    def emit(self, report: FileReport) -> None:
        self.reports.append(report)

    def close(self) -> None:
        pass


class StoppingSink(CollectingSink):
    """Asks the runner to stop once the first report arrives."""

    def __init__(self) -> None:
        super().__init__()
        self.runner: Runner | None = None

    def emit(self, report: FileReport) -> None:
        super().emit(report)
        assert self.runner is not None
        self.runner.stop.set()


def make_tree(root: Path) -> None:
    (root / "src" / "utils").mkdir(parents=True)
    (root / ".git").mkdir()
    (root / "src" / "b.cpp").write_text("int x;\n")
    (root / "src" / "a.h").write_text("int x;\n")
    (root / "src" / "notes.txt").write_text("not code\n")
    (root / "src" / "utils" / "log.cpp").write_text("int x;\n")
    (root / ".git" / "hook.cpp").write_text("int x;\n")


def test_discover_walks_sorted_and_skips_hidden(tmp_path: Path) -> None:
    make_tree(tmp_path)

    files = discover_files([tmp_path], DEFAULT_EXTENSIONS)

    assert [p.relative_to(tmp_path).as_posix() for p in files] == [
        "src/a.h",
        "src/b.cpp",
        "src/utils/log.cpp",
    ]


def test_discover_filters_extensions(tmp_path: Path) -> None:
    make_tree(tmp_path)

    files = discover_files([tmp_path], (".h",))

    assert [p.name for p in files] == ["a.h"]


def test_explicit_files_are_kept_once(tmp_path: Path) -> None:
    make_tree(tmp_path)
    notes = tmp_path / "src" / "notes.txt"
    header = tmp_path / "src" / "a.h"

    files = discover_files([notes, header, tmp_path / "src"], DEFAULT_EXTENSIONS)

    assert [p.name for p in files] == ["notes.txt", "a.h", "b.cpp", "log.cpp"]


@pytest.mark.parametrize(
    ("summary", "code"),
    [
        (RunSummary(files=3), 0),
        (RunSummary(files=3, diagnostics=2), 1),
        (RunSummary(files=3, diagnostics=2, fatal=1), 2),
    ],
)
def test_exit_code(summary: RunSummary, code: int) -> None:
    assert summary.exit_code == code


@pytest.mark.parametrize("sequential", [True, False])
def test_runner_reports_every_file(tmp_path: Path, sequential: bool) -> None:
    paths = []
    for number in range(6):
        path = tmp_path / f"file{number}.cpp"
        path.write_text("int  x =5;\n" if number % 2 else "int g_x = 5;\n")
        paths.append(path)
    sink = CollectingSink()
    engine = CheckEngine(load_rules(enabled={"R-OP-SPACING"}), Config())

    summary = Runner(engine, sink, jobs=3, sequential=sequential).run(paths)

    assert summary.files == 6
    assert summary.diagnostics == 3
    assert summary.exit_code == 1
    assert not summary.interrupted
    assert sorted(r.path for r in sink.reports) == sorted(paths)
    if sequential:
        assert [r.path for r in sink.reports] == paths


def test_runner_fix_writes_back(tmp_path: Path) -> None:
    path = tmp_path / "test.cpp"
    path.write_text("int  g_x =5;\n")
    engine = CheckEngine(
        load_rules(enabled={"R-OP-SPACING", "R-NO-VERTICAL-ALIGN"}), Config()
    )

    summary = Runner(engine, CollectingSink(), fix=True).run([path])

    assert path.read_text() == "int g_x = 5;\n"
    assert summary.diagnostics == 2


def test_runner_counts_fatal_files(tmp_path: Path) -> None:
    engine = CheckEngine(load_rules(), Config())

    summary = Runner(engine, CollectingSink()).run([tmp_path / "missing.cpp"])

    assert summary.fatal == 1
    assert summary.exit_code == 2


@pytest.mark.parametrize("sequential", [True, False])
def test_stop_skips_remaining_files(tmp_path: Path, sequential: bool) -> None:
    paths = []
    for number in range(20):
        path = tmp_path / f"file{number:02}.cpp"
        path.write_text("int g_x = 5;\n")
        paths.append(path)
    sink = StoppingSink()
    engine = CheckEngine(load_rules(enabled={"R-OP-SPACING"}), Config())
    runner = Runner(engine, sink, jobs=2, sequential=sequential)
    sink.runner = runner

    summary = runner.run(paths)

    assert summary.interrupted
    assert summary.files == len(sink.reports)
    if sequential:
        assert [r.path for r in sink.reports] == paths[:1]
    else:
        # Only files already dispatched before the stop are handled
        assert 1 <= summary.files <= 4
