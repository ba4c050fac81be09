"""Tests for indentation, brace placement and switch layout."""

from __future__ import annotations

from cpp_style_checker.config import Config
from cpp_style_checker.engine import CheckEngine
from cpp_style_checker.rules import Diagnostic, load_rules
from cpp_style_checker.source import SourceFile


def check(code: str, *rule_ids: str) -> list[Diagnostic]:
    engine = CheckEngine(load_rules(enabled=set(rule_ids)), Config())
    return engine.check_source(SourceFile.from_bytes("test.cpp", code.encode()))


def fix(code: str, *rule_ids: str) -> str:
    engine = CheckEngine(load_rules(enabled=set(rule_ids)), Config())
    _, text = engine.fix_source(SourceFile.from_bytes("test.cpp", code.encode()))
    return text


def test_four_space_indent() -> None:
    code = "void F()\n{\n    int x;\n}\n"
    diagnostics = check(code, "R-INDENT-2")

    assert [d.message for d in diagnostics] == ["indentation is 4 columns, expected 2"]
    assert fix(code, "R-INDENT-2") == "void F()\n{\n  int x;\n}\n"


def test_tab_indent() -> None:
    diagnostics = check("void F()\n{\n\tint x;\n}\n", "R-INDENT-2")

    assert [d.message for d in diagnostics] == ["tab in indentation"]


def test_class_with_access_labels() -> None:
    code = (
        "class CFoo\n"
        "{\n"
        "public:\n"
        "  void Bar();\n"
        "\n"
        "private:\n"
        "  int m_x;\n"
        "};\n"
    )

    assert check(code, "R-INDENT-2", "R-NS-INDENT") == []


def test_continuation_lines_are_free() -> None:
    code = "void F()\n{\n  G(a,\n        b);\n}\n"

    assert check(code, "R-INDENT-2") == []


def test_indented_namespace_content() -> None:
    """Test that indenting by namespace depth is reported by R-NS-INDENT only."""
    code = "namespace KODI\n{\n  int g_x;\n}\n"

    assert check(code, "R-INDENT-2") == []
    assert [d.rule_id for d in check(code, "R-NS-INDENT")] == ["R-NS-INDENT"]
    assert fix(code, "R-NS-INDENT") == "namespace KODI\n{\nint g_x;\n}\n"


def test_indent_skipped_for_unbalanced_file() -> None:
    assert check("void F()\n{\n      G();\n", "R-INDENT-2", "R-BRACE-NEWLINE") == []


def test_brace_on_same_line() -> None:
    code = "void F() { G(); }\n"
    diagnostics = check(code, "R-BRACE-NEWLINE")

    assert [d.message for d in diagnostics] == [
        "opening brace of function must start a new line",
        "function body must not share a line with its opening brace",
        "closing brace of function must start a new line",
    ]
    assert fix(code, "R-BRACE-NEWLINE") == "void F()\n{\n  G();\n}\n"


def test_empty_braces_may_stay_together() -> None:
    diagnostics = check("void F() {}\n", "R-BRACE-NEWLINE")

    assert [d.message for d in diagnostics] == [
        "opening brace of function must start a new line"
    ]


def test_brace_initializers_and_lambdas_ignored() -> None:
    code = (
        "void F()\n"
        "{\n"
        "  int v[] = {1, 2};\n"
        "  auto g = [](int a) { return a; };\n"
        "}\n"
    )

    assert check(code, "R-BRACE-NEWLINE", "R-INDENT-2") == []


def test_else_after_closing_brace() -> None:
    code = (
        "void F()\n"
        "{\n"
        "  if (a)\n"
        "  {\n"
        "    G();\n"
        "  } else\n"
        "  {\n"
        "    H();\n"
        "  }\n"
        "}\n"
    )

    diagnostics = check(code, "R-ELSE-CATCH-WHILE-NEWLINE")
    assert [d.message for d in diagnostics] == [
        "'else' must start a new line, not follow '}'"
    ]
    assert "  }\n  else\n  {\n" in fix(code, "R-ELSE-CATCH-WHILE-NEWLINE")


def test_do_while_after_closing_brace() -> None:
    code = "void F()\n{\n  do\n  {\n    G();\n  } while (a);\n}\n"

    diagnostics = check(code, "R-ELSE-CATCH-WHILE-NEWLINE")
    assert len(diagnostics) == 1
    assert "'while'" in diagnostics[0].message


def test_case_label_indent() -> None:
    code = (
        "void F(int a)\n"
        "{\n"
        "  switch (a)\n"
        "  {\n"
        "  case 1:\n"
        "    break;\n"
        "  }\n"
        "}\n"
    )

    diagnostics = check(code, "R-SWITCH-STYLE")
    assert [d.message for d in diagnostics] == [
        "'case' label must be indented one level beyond its switch"
    ]
    assert "    case 1:\n" in fix(code, "R-SWITCH-STYLE")


def test_break_after_case_block() -> None:
    code = (
        "void F(int a)\n"
        "{\n"
        "  switch (a)\n"
        "  {\n"
        "    case 1:\n"
        "    {\n"
        "      G();\n"
        "    }\n"
        "    break;\n"
        "  }\n"
        "}\n"
    )

    diagnostics = check(code, "R-SWITCH-STYLE")
    assert [d.message for d in diagnostics] == ["'break' belongs inside the case block"]
    assert diagnostics[0].edit is None


def test_conditional_function_heads_keep_layout_rules() -> None:
    code = (
        "void F()\n"
        "{\n"
        "  if (a) { b(); } else { c(); }\n"
        "}\n"
        "#ifdef X\n"
        "void G() {\n"
        "#else\n"
        "void G(int) {\n"
        "#endif\n"
        "}\n"
    )
    diagnostics = check(code, "R-BRACE-NEWLINE", "R-ELSE-CATCH-WHILE-NEWLINE")

    else_rule = [d for d in diagnostics if d.rule_id == "R-ELSE-CATCH-WHILE-NEWLINE"]
    assert [d.start for d in else_rule] == [code.index("else")]
    function_heads = [
        d.start
        for d in diagnostics
        if d.message == "opening brace of function must start a new line"
    ]
    assert function_heads == [code.index("{\n#else"), code.index("{\n#endif")]
    assert any(d.message.startswith("opening brace of block") for d in diagnostics)


def test_else_rule_runs_on_unbalanced_file() -> None:
    code = "void F()\n{\n  if (a)\n  {\n  } else\n  {\n  }\n"

    diagnostics = check(code, "R-ELSE-CATCH-WHILE-NEWLINE")
    assert [d.start for d in diagnostics] == [code.index("else")]
