"""Tests for the C/C++ lexer."""

from __future__ import annotations

import pytest

from cpp_style_checker.lexer import LexError, Token, TokenKind, tokenize
from cpp_style_checker.source import SourceFile


def lex(code: str) -> list[Token]:
    return tokenize(SourceFile.from_bytes("test.cpp", code.encode()))


def code_tokens(code: str) -> list[tuple[TokenKind, str]]:
    return [(t.kind, t.text) for t in lex(code) if not t.is_trivia]


def test_tokens_cover_every_character() -> None:
    """Test that joining all token texts gives back the input."""
    code = (
        "#include <vector> // std\n"
        "int main(int argc, char** argv)\n"
        "{\n"
        '  const char* s = R"x(a ) " b)x";\n'
        "  /* block\n     comment */\n"
        "  return argc >>= 1;\n"
        "}\n"
    )

    assert "".join(t.text for t in lex(code)) == code


def test_simple_statement() -> None:
    tokens = lex("int x = 5; // c\n")

    assert [(t.kind, t.text) for t in tokens] == [
        (TokenKind.KEYWORD, "int"),
        (TokenKind.WHITESPACE, " "),
        (TokenKind.IDENTIFIER, "x"),
        (TokenKind.WHITESPACE, " "),
        (TokenKind.PUNCT, "="),
        (TokenKind.WHITESPACE, " "),
        (TokenKind.NUMBER, "5"),
        (TokenKind.PUNCT, ";"),
        (TokenKind.WHITESPACE, " "),
        (TokenKind.COMMENT_LINE, "// c"),
        (TokenKind.NEWLINE, "\n"),
    ]


def test_longest_punctuator_wins() -> None:
    assert code_tokens("a>>=b") == [
        (TokenKind.IDENTIFIER, "a"),
        (TokenKind.PUNCT, ">>="),
        (TokenKind.IDENTIFIER, "b"),
    ]


def test_numbers_with_separators_and_exponents() -> None:
    assert [text for _, text in code_tokens("1'000 1e-5 0x1p+3 2.5f")] == [
        "1'000",
        "1e-5",
        "0x1p+3",
        "2.5f",
    ]


def test_raw_string_is_one_token() -> None:
    """Test that quotes and parentheses inside a raw string do not end it."""
    tokens = [t for t in lex('s = R"x(a ) " b)x";') if t.kind is TokenKind.STRING]

    assert len(tokens) == 1
    assert tokens[0].text == 'R"x(a ) " b)x"'
    assert tokens[0].raw_string


def test_prefixed_literals() -> None:
    assert code_tokens("u8\"s\" L'c'") == [
        (TokenKind.STRING, 'u8"s"'),
        (TokenKind.CHAR, "L'c'"),
    ]


def test_preprocessor_line_leaves_trailing_comment() -> None:
    tokens = lex('#include "a.h" // why\n')

    assert tokens[0].kind is TokenKind.PREPROCESSOR
    assert tokens[0].text == '#include "a.h"'
    assert tokens[2].kind is TokenKind.COMMENT_LINE


def test_preprocessor_continuation_lines() -> None:
    tokens = lex("#define MAX(a, b) \\\n  ((a) > (b) ? (a) : (b))\nint x;\n")

    assert tokens[0].kind is TokenKind.PREPROCESSOR
    assert tokens[0].text.endswith("(b))")
    assert [t.text for t in tokens if t.is_code] == ["int", "x", ";"]


def test_line_start_flag() -> None:
    tokens = [t for t in lex("  x = 1;\n  y;\n") if not t.is_trivia]

    assert [t.line_start for t in tokens] == [True, False, False, False, True, False]


def test_unterminated_string_raises_with_offset() -> None:
    with pytest.raises(LexError) as info:
        lex('x = "abc\n')

    assert info.value.message == "unterminated string literal"
    assert info.value.offset == 4


def test_unterminated_block_comment_raises() -> None:
    with pytest.raises(LexError, match="unterminated block comment"):
        lex("int x; /* never closed\n")


def test_unterminated_raw_string_raises() -> None:
    with pytest.raises(LexError, match="unterminated raw string literal"):
        lex('s = R"x(abc)";\n')
