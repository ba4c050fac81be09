"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from cpp_style_checker.config import Config, ConfigError, load_config, parse_config
from cpp_style_checker.rules import Severity


def test_parse_rule_settings() -> None:
    config = parse_config(
        "# project overrides\n"
        "rule.R-CAST-STYLE.enabled = false\n"
        "rule.R-NAMING-MEMBER.severity = warning\n"
        "rule.R-NULLPTR.priority = 5\n"
        "\n"
        "include.system-headers = QObject, QString\n"
        "naming.allow-files = third_party/*,*.pb.h\n"
        "cast.allow-files = legacy/*\n"
    )

    assert not config.rule_enabled("R-CAST-STYLE")
    assert config.rule_enabled("R-OP-SPACING")
    assert config.severity_for("R-NAMING-MEMBER", Severity.STYLE) is Severity.WARNING
    assert config.severity_for("R-OP-SPACING", Severity.STYLE) is Severity.STYLE
    assert config.priority_for("R-NULLPTR", 10) == 5
    assert config.priority_for("R-OP-SPACING", 40) == 40
    assert {"QObject", "QString", "vector"} <= config.system_headers
    assert config.naming_allowed(Path("third_party/lib.cpp"))
    assert config.naming_allowed(Path("src/proto/msg.pb.h"))
    assert not config.naming_allowed(Path("xbmc/Application.cpp"))
    assert config.cast_allowed(Path("legacy/old.cpp"))


def test_unsupported_indent_size_is_ignored(caplog: pytest.LogCaptureFixture) -> None:
    config = parse_config("indent.size = 4\n", origin="style.conf")

    assert config.indent_size == 2
    assert "indent.size = 4 is not supported" in caplog.text


@pytest.mark.parametrize(
    ("text", "error"),
    [
        ("rule.R-NULLPTR.enabled = maybe\n", "expected true or false"),
        ("rule.R-NULLPTR.severity = error\n", "expected style or warning"),
        ("rule.R-NULLPTR.priority = high\n", "expected an integer"),
        ("rule.R-NULLPTR.colour = red\n", "unknown rule setting"),
        ("colour = red\n", "unknown key"),
        ("just some words\n", "expected 'key = value'"),
    ],
)
def test_invalid_config(text: str, error: str) -> None:
    with pytest.raises(ConfigError, match=error):
        parse_config(text)


def test_load_explicit_file(tmp_path: Path) -> None:
    path = tmp_path / "style.conf"
    path.write_text("rule.R-INDENT-2.enabled = false\n")

    assert not load_config(path).rule_enabled("R-INDENT-2")


def test_load_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="cannot read"):
        load_config(tmp_path / "missing.conf")


def test_load_from_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "[tool.cpp-style]\n"
        'system-headers = ["QObject"]\n'
        'naming-allow-files = ["third_party/*"]\n'
        "\n"
        "[tool.cpp-style.rules.R-CAST-STYLE]\n"
        "enabled = false\n"
        "\n"
        "[tool.cpp-style.rules.R-NULLPTR]\n"
        'severity = "warning"\n'
    )

    config = load_config(search_dir=tmp_path)

    assert not config.rule_enabled("R-CAST-STYLE")
    assert config.settings("R-NULLPTR").severity is Severity.WARNING
    assert "QObject" in config.system_headers
    assert config.naming_allowed(Path("third_party/x.cpp"))


def test_pyproject_without_table_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')

    assert load_config(search_dir=tmp_path) == Config()


def test_pyproject_unknown_key(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.cpp-style]\ncolour = 1\n")

    with pytest.raises(ConfigError, match="unknown key"):
        load_config(search_dir=tmp_path)
