"""Tests for the naming convention rules."""

from __future__ import annotations

from cpp_style_checker.config import Config
from cpp_style_checker.engine import CheckEngine
from cpp_style_checker.rules import Diagnostic, Severity, load_rules
from cpp_style_checker.source import SourceFile


def check(
    code: str, rule_id: str, path: str = "test.cpp", config: Config | None = None
) -> list[Diagnostic]:
    engine = CheckEngine(load_rules(enabled={rule_id}), config or Config())
    return engine.check_source(SourceFile.from_bytes(path, code.encode()))


def messages(code: str, rule_id: str) -> list[str]:
    return [d.message for d in check(code, rule_id)]


def test_namespace_must_be_upper_case() -> None:
    code = "namespace kodi\n{\nnamespace UTILS\n{\n}\n}\n"

    assert messages(code, "R-NAMING-NAMESPACE") == [
        "namespace 'kodi' must be upper case ('KODI')"
    ]


def test_anonymous_and_linkage_namespaces_ignored() -> None:
    code = 'namespace\n{\n}\nextern "C"\n{\n}\n'

    assert messages(code, "R-NAMING-NAMESPACE") == []


def test_class_prefix() -> None:
    code = "class logger\n{\n};\nclass CLogger\n{\n};\nstruct SPoint\n{\n};\n"

    assert messages(code, "R-NAMING-CLASS") == [
        "class 'logger' must match C[A-Z]... ('CLogger')",
        "class 'SPoint' must match C[A-Z]... ('CSPoint')",
    ]


def test_interface_prefix() -> None:
    """Test that a class of pure virtual methods is named as an interface."""
    code = (
        "class Reader\n"
        "{\n"
        "public:\n"
        "  virtual ~Reader() = default;\n"
        "  virtual int Read() = 0;\n"
        "};\n"
        "class IWriter\n"
        "{\n"
        "public:\n"
        "  virtual void Write() = 0;\n"
        "};\n"
    )

    assert messages(code, "R-NAMING-CLASS") == [
        "interface 'Reader' must match I[A-Z]... ('IReader')"
    ]


def test_enum_and_enumerators() -> None:
    code = "enum class Color\n{\n  red,\n  GREEN = 2,\n};\n"

    assert messages(code, "R-NAMING-CLASS") == [
        "enumerator 'red' must be upper case ('RED')"
    ]


def test_method_names() -> None:
    code = (
        "class CFoo\n"
        "{\n"
        "public:\n"
        "  CFoo();\n"
        "  ~CFoo();\n"
        "  void run();\n"
        "  int begin();\n"
        "};\n"
        "void CFoo::doThing()\n"
        "{\n"
        "}\n"
        "int main()\n"
        "{\n"
        "}\n"
    )

    assert messages(code, "R-NAMING-METHOD") == [
        "function 'run' must start with an upper case letter ('Run')",
        "function 'doThing' must start with an upper case letter ('DoThing')",
    ]


def test_member_prefix() -> None:
    code = (
        "class CFoo\n"
        "{\n"
        "  int value;\n"
        "  int m_ok;\n"
        "  static const int MAX = 1;\n"
        "};\n"
    )

    assert messages(code, "R-NAMING-MEMBER") == [
        "data member 'value' must be prefixed with 'm_' ('m_value')"
    ]


def test_globals_are_prefixed_and_discouraged() -> None:
    code = (
        "int counter = 0;\n"
        "int g_total = 0;\n"
        "extern int shared;\n"
        "const int limit = 1;\n"
    )
    diagnostics = check(code, "R-NAMING-MEMBER")

    assert [d.message for d in diagnostics] == [
        "global variable 'counter' must be prefixed with 'g_' ('g_counter')",
        "global variable 'counter' is discouraged",
        "global variable 'g_total' is discouraged",
    ]
    assert [d.severity for d in diagnostics] == [
        Severity.STYLE,
        Severity.WARNING,
        Severity.WARNING,
    ]


def test_constants_upper_case() -> None:
    code = (
        "const int limit = 1;\n"
        "static constexpr double MAX_RATIO = 0.5;\n"
        "const std::string name = \"x\";\n"
    )

    assert messages(code, "R-NAMING-CONST") == [
        "constant 'limit' must be upper case ('LIMIT')"
    ]


def test_elaborated_types_and_functions_are_not_variables() -> None:
    code = "struct stat st;\nvoid DoWork(int count);\nusing Foo = int;\n"

    assert messages(code, "R-NAMING-MEMBER") == []


def test_naming_allow_files() -> None:
    config = Config(naming_allow_files=("third_party/*",))
    code = "namespace kodi\n{\nint counter;\n}\n"

    for rule_id in ("R-NAMING-NAMESPACE", "R-NAMING-MEMBER"):
        assert check(code, rule_id, path="third_party/lib.cpp", config=config) == []
        assert check(code, rule_id, path="xbmc/lib.cpp", config=config) != []
