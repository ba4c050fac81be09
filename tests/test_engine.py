"""Tests for the check and fix engine."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from cpp_style_checker.config import Config, RuleSettings
from cpp_style_checker.engine import INTERNAL_RULE, CheckEngine
from cpp_style_checker.rules import (
    Diagnostic,
    Edit,
    FileContext,
    Severity,
    available_rules,
    load_rules,
)
from cpp_style_checker.source import SourceFile


class AlwaysInsertRule:
    """Proposes the same insertion no matter what the file looks like."""

    rule_id = "T-ALWAYS"
    priority = 1
    severity = Severity.STYLE
    fixable = True
    description = "never converges"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        yield context.diagnostic(self, 0, "always", edit=Edit(0, 0, " "))


class BrokenRule:
    rule_id = "T-BROKEN"
    priority = 1
    severity = Severity.STYLE
    fixable = False
    description = "raises"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        raise RuntimeError("boom")


class UnfixableWithEditRule:
    rule_id = "T-LYING"
    priority = 1
    severity = Severity.STYLE
    fixable = False
    description = "claims not to fix but proposes an edit"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        yield context.diagnostic(self, 0, "lying", edit=Edit(0, 0, " "))


class WideSpaceRule:
    """Collapses the double space at offset 3 to one."""

    rule_id = "T-WIDE"
    priority = 1
    severity = Severity.STYLE
    fixable = True
    description = "collapses a double space"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.source.text[3:5] == "  ":
            yield context.diagnostic(self, 1, "wide", edit=Edit(3, 5, " "))


class NarrowSpaceRule:
    rule_id = "T-NARROW"
    priority = 2
    severity = Severity.STYLE
    fixable = True
    description = "drops the second of two spaces"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.source.text[3:5] == "  ":
            yield context.diagnostic(self, 1, "narrow", edit=Edit(4, 5, ""))


def source(code: str, path: str = "test.cpp") -> SourceFile:
    return SourceFile.from_bytes(path, code.encode())


def all_rules_engine(config: Config | None = None) -> CheckEngine:
    return CheckEngine(load_rules(), config or Config())


def test_every_rule_is_registered() -> None:
    assert set(available_rules()) == {
        "R-INDENT-2",
        "R-NS-INDENT",
        "R-ONE-STMT-PER-LINE",
        "R-BRACE-NEWLINE",
        "R-ELSE-CATCH-WHILE-NEWLINE",
        "R-OP-SPACING",
        "R-KEYWORD-PAREN-SPACE",
        "R-COMMA-SPACE",
        "R-SEMI-NEWLINE",
        "R-NO-VERTICAL-ALIGN",
        "R-SWITCH-STYLE",
        "R-NAMING-NAMESPACE",
        "R-NAMING-CLASS",
        "R-NAMING-METHOD",
        "R-NAMING-MEMBER",
        "R-NAMING-CONST",
        "R-CAST-STYLE",
        "R-NULLPTR",
        "R-INCLUDE-ORDER",
        "R-HEADER-FWD-DECL",
    }


def test_diagnostics_sorted_by_offset() -> None:
    diagnostics = all_rules_engine().check_source(source("int  x =5;\n"))
    starts = [d.start for d in diagnostics]

    assert starts == sorted(starts)
    assert {d.rule_id for d in diagnostics} == {
        "R-NAMING-MEMBER",
        "R-NO-VERTICAL-ALIGN",
        "R-OP-SPACING",
    }


def test_fix_reaches_fixpoint_and_flags_fixed() -> None:
    diagnostics, text = all_rules_engine().fix_source(source("int  x =5;\n"))

    assert text == "int x = 5;\n"
    fixed = {d.rule_id for d in diagnostics if d.fixed}
    assert fixed == {"R-NO-VERTICAL-ALIGN", "R-OP-SPACING"}
    assert not any(d.fixed for d in diagnostics if d.rule_id == "R-NAMING-MEMBER")


def test_fix_is_idempotent() -> None:
    """Test that fixing fixed output changes nothing."""
    engine = all_rules_engine()
    code = "namespace kodi { class logger { int x; }; }\n"

    _, once = engine.fix_source(source(code))
    diagnostics, twice = engine.fix_source(source(once))

    assert once == "namespace kodi\n{\nclass logger\n{\n  int x;\n};\n}\n"
    assert twice == once
    assert not any(d.fixed for d in diagnostics)


def test_non_converging_fix_reverts() -> None:
    engine = CheckEngine([AlwaysInsertRule()], Config())

    diagnostics, text = engine.fix_source(source("int x;\n"))

    assert text == "int x;\n"
    warnings = [d for d in diagnostics if d.severity is Severity.WARNING]
    assert [d.message for d in warnings] == [
        "auto-fix did not converge; file left unchanged"
    ]
    assert warnings[0].rule_id == "T-ALWAYS"


def test_failing_rule_becomes_internal_warning() -> None:
    """Test that one rule's failure does not affect the others."""
    engine = CheckEngine([BrokenRule(), *load_rules(enabled={"R-NULLPTR"})], Config())

    diagnostics = engine.check_source(source("char* p = NULL;\n"))

    assert [(d.rule_id, d.severity) for d in diagnostics] == [
        (INTERNAL_RULE, Severity.WARNING),
        ("R-NULLPTR", Severity.STYLE),
    ]
    assert "T-BROKEN" in diagnostics[0].message


def test_unfixable_rule_proposing_edit_is_rejected() -> None:
    engine = CheckEngine([UnfixableWithEditRule()], Config())

    (diagnostic,) = engine.check_source(source("int x;\n"))

    assert diagnostic.rule_id == INTERNAL_RULE


def test_rule_independence() -> None:
    """Test that a rule reports the same alone as next to all the others."""
    code = "void F(int x)\n{\n  if(x==1){ return; }\n}\n"
    together = all_rules_engine().check_source(source(code))

    for rule in load_rules():
        alone = CheckEngine([rule], Config()).check_source(source(code))
        expected = [d for d in together if d.rule_id == rule.rule_id]
        assert [(d.start, d.message) for d in alone] == [
            (d.start, d.message) for d in expected
        ]


def test_inline_ignore_all() -> None:
    code = "int  x =5; // cpp-style: ignore\n"

    assert all_rules_engine().check_source(source(code)) == []


def test_inline_ignore_selected_rules() -> None:
    code = "int  x =5; // cpp-style: ignore=R-OP-SPACING, R-NAMING-MEMBER\n"
    diagnostics = all_rules_engine().check_source(source(code))

    assert {d.rule_id for d in diagnostics} == {"R-NO-VERTICAL-ALIGN"}


def test_severity_override() -> None:
    config = Config(rules={"R-OP-SPACING": RuleSettings(severity=Severity.WARNING)})
    engine = CheckEngine(load_rules(enabled={"R-OP-SPACING"}), config)

    (diagnostic,) = engine.check_source(source("y = a +b;\n"))

    assert diagnostic.severity is Severity.WARNING


def test_priority_override_changes_conflict_winner() -> None:
    config = Config(rules={"R-NULLPTR": RuleSettings(priority=500)})
    engine = CheckEngine(load_rules(), config)

    assert engine.priority("R-NULLPTR") == 500
    assert engine.priority("R-INDENT-2") == 120
    assert engine.rules[-1].rule_id == "R-NULLPTR"


def test_process_reports_unreadable_file(tmp_path: Path) -> None:
    report = all_rules_engine().process(tmp_path / "missing.cpp")

    assert report.fatal
    assert [d.rule_id for d in report.diagnostics] == ["io"]
    assert report.source is None


def test_process_reports_lex_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.cpp"
    path.write_text('const char* s = "open;\n')

    report = all_rules_engine().process(path)

    assert report.fatal
    assert [(d.rule_id, d.message) for d in report.diagnostics] == [
        ("lex", "unterminated string literal")
    ]


def test_process_reports_encoding_error(tmp_path: Path) -> None:
    path = tmp_path / "latin1.cpp"
    path.write_bytes("// caf\xe9\n".encode("latin-1"))

    report = all_rules_engine().process(path)

    assert [d.rule_id for d in report.diagnostics] == ["encoding"]


def test_process_fix_keeps_crlf(tmp_path: Path) -> None:
    path = tmp_path / "test.cpp"
    path.write_bytes(b"int  g_x =5;\r\n")
    engine = all_rules_engine()

    report = engine.process(path, fix=True)
    assert report.output == b"int g_x = 5;\r\n"
    assert path.read_bytes() == b"int  g_x =5;\r\n"

    assert engine.write_back(report)
    assert path.read_bytes() == b"int g_x = 5;\r\n"


def test_suppressed_edit_logged_as_warning(caplog: pytest.LogCaptureFixture) -> None:
    engine = CheckEngine([WideSpaceRule(), NarrowSpaceRule()], Config())

    with caplog.at_level(logging.WARNING, logger="engine"):
        diagnostics, text = engine.fix_source(source("int  x;\n"))

    assert text == "int x;\n"
    assert {d.rule_id for d in diagnostics if d.fixed} == {"T-WIDE"}
    suppressed = [r for r in caplog.records if "suppressed by" in r.getMessage()]
    assert len(suppressed) == 1
    assert suppressed[0].levelno == logging.WARNING
    message = suppressed[0].getMessage()
    assert "T-NARROW edit at offset 4 suppressed by T-WIDE" in message


def test_non_converging_warning_keeps_offset_order() -> None:
    engine = CheckEngine(
        [AlwaysInsertRule(), *load_rules(enabled={"R-OP-SPACING"})], Config()
    )

    diagnostics, _ = engine.fix_source(source("int x =5;\n"))
    starts = [d.start for d in diagnostics]

    assert starts == sorted(starts)
    assert any(d.severity is Severity.WARNING for d in diagnostics)


def test_write_failure_keeps_offset_order(tmp_path: Path) -> None:
    path = tmp_path / "test.cpp"
    path.write_bytes(b"int  g_x =5;\n")
    engine = all_rules_engine()
    report = engine.process(path, fix=True)
    path.unlink()

    assert not engine.write_back(report)

    assert report.diagnostics[0].rule_id == "io"
    starts = [d.start for d in report.diagnostics]
    assert starts == sorted(starts)
    assert not any(d.fixed for d in report.diagnostics)
