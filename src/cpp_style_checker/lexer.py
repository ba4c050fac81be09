"""Hand-written C/C++ lexer.

The lexer is a character-driven state machine. Every character of the input
ends up in exactly one token, including whitespace and newlines, so rules can
inspect spacing exactly and edits can be expressed as token ranges.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from .source import SourceFile

__all__ = [
    "KEYWORDS",
    "TYPE_KEYWORDS",
    "LexError",
    "Lexer",
    "Token",
    "TokenKind",
    "tokenize",
]


class TokenKind(Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    CHAR = "char"
    PUNCT = "punct"
    COMMENT_LINE = "comment-line"
    COMMENT_BLOCK = "comment-block"
    WHITESPACE = "whitespace"
    NEWLINE = "newline"
    PREPROCESSOR = "preprocessor-line"


TRIVIA = frozenset(
    {
        TokenKind.WHITESPACE,
        TokenKind.NEWLINE,
        TokenKind.COMMENT_LINE,
        TokenKind.COMMENT_BLOCK,
    }
)

COMMENTS = frozenset({TokenKind.COMMENT_LINE, TokenKind.COMMENT_BLOCK})

TYPE_KEYWORDS = frozenset(
    {
        "void",
        "bool",
        "char",
        "char8_t",
        "char16_t",
        "char32_t",
        "wchar_t",
        "short",
        "int",
        "long",
        "signed",
        "unsigned",
        "float",
        "double",
    }
)

KEYWORDS = TYPE_KEYWORDS | frozenset(
    {
        "if",
        "else",
        "for",
        "while",
        "do",
        "switch",
        "case",
        "default",
        "break",
        "continue",
        "return",
        "goto",
        "class",
        "struct",
        "union",
        "enum",
        "namespace",
        "template",
        "typename",
        "typedef",
        "using",
        "const",
        "constexpr",
        "volatile",
        "mutable",
        "static",
        "extern",
        "inline",
        "virtual",
        "override",
        "final",
        "explicit",
        "friend",
        "public",
        "protected",
        "private",
        "operator",
        "this",
        "new",
        "delete",
        "sizeof",
        "alignof",
        "decltype",
        "noexcept",
        "static_assert",
        "try",
        "catch",
        "throw",
        "auto",
        "nullptr",
        "true",
        "false",
    }
)

# Longest first so that ">>=" wins over ">>" and ">"
PUNCTUATORS = (
    "<<=",
    ">>=",
    "<=>",
    "->*",
    "...",
    "::",
    "->",
    "++",
    "--",
    "<<",
    ">>",
    "<=",
    ">=",
    "==",
    "!=",
    "&&",
    "||",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "&=",
    "|=",
    "^=",
    ".*",
    "##",
)

STRING_PREFIXES = frozenset({"u8", "u", "U", "L"})
RAW_STRING_PREFIXES = frozenset({"R", "u8R", "uR", "UR", "LR"})

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_HORIZONTAL_SPACE = re.compile(r"(?:[ \t\f\v]|\\\n)+")
_RAW_DELIMITER = re.compile(r'[^ ()\\\t\n"]{0,16}\(')


class LexError(Exception):
    """Raised for an unterminated string, character, comment or raw string."""

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token.

    Attributes:
        kind: Token category
        text: Exact source text of the token
        start: Offset of the first character
        end: Offset one past the last character
        line: 1-based line of ``start``
        col: 1-based column of ``start``
        line_start: No non-trivia token precedes it on its logical line
        raw_string: Token is a raw string literal
    """

    kind: TokenKind
    text: str
    start: int
    end: int
    line: int
    col: int
    line_start: bool
    raw_string: bool = False

    @property
    def is_trivia(self) -> bool:
        return self.kind in TRIVIA

    @property
    def is_code(self) -> bool:
        """True for tokens that take part in the language grammar."""
        return self.kind not in TRIVIA and self.kind is not TokenKind.PREPROCESSOR

    def is_punct(self, *texts: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text in texts

    def is_keyword(self, *texts: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.text in texts


class Lexer:
    """Lazily produces tokens for one source file."""

    def __init__(self, source: SourceFile) -> None:
        self.source = source
        self.text = source.text
        self.pos = 0
        self.at_line_start = True

    def _make(self, kind: TokenKind, start: int, raw_string: bool = False) -> Token:
        line, col = self.source.position(start)
        token = Token(
            kind=kind,
            text=self.text[start : self.pos],
            start=start,
            end=self.pos,
            line=line,
            col=col,
            line_start=self.at_line_start,
            raw_string=raw_string,
        )
        if kind is TokenKind.NEWLINE:
            self.at_line_start = True
        elif kind not in TRIVIA:
            self.at_line_start = False
        return token

    def tokens(self) -> Iterator[Token]:
        """Yield tokens until the end of input.

        Raises:
            LexError: on an unterminated construct
        """
        text = self.text
        length = len(text)
        while self.pos < length:
            start = self.pos
            char = text[start]
            nxt = text[start + 1] if start + 1 < length else ""

            if char == "\n":
                self.pos += 1
                yield self._make(TokenKind.NEWLINE, start)
            elif char in " \t\f\v" or (char == "\\" and nxt == "\n"):
                match = _HORIZONTAL_SPACE.match(text, start)
                self.pos = match.end() if match else start + 1
                yield self._make(TokenKind.WHITESPACE, start)
            elif char == "/" and nxt == "/":
                end = text.find("\n", start)
                self.pos = length if end == -1 else end
                yield self._make(TokenKind.COMMENT_LINE, start)
            elif char == "/" and nxt == "*":
                self._skip_block_comment(start)
                yield self._make(TokenKind.COMMENT_BLOCK, start)
            elif char == "#" and self.at_line_start:
                self._scan_preprocessor()
                yield self._make(TokenKind.PREPROCESSOR, start)
            elif char == '"':
                self._scan_quoted(start, '"')
                yield self._make(TokenKind.STRING, start)
            elif char == "'":
                self._scan_quoted(start, "'")
                yield self._make(TokenKind.CHAR, start)
            elif char.isdigit() or (char == "." and nxt.isdigit()):
                self._scan_number()
                yield self._make(TokenKind.NUMBER, start)
            elif char.isalpha() or char == "_":
                yield self._identifier_or_literal(start)
            else:
                for punct in PUNCTUATORS:
                    if text.startswith(punct, start):
                        self.pos = start + len(punct)
                        break
                else:
                    self.pos = start + 1
                yield self._make(TokenKind.PUNCT, start)

    def _identifier_or_literal(self, start: int) -> Token:
        match = _IDENTIFIER.match(self.text, start)
        assert match is not None
        word = match.group()
        self.pos = match.end()
        following = self.text[self.pos : self.pos + 1]

        if word in RAW_STRING_PREFIXES and following == '"':
            self._scan_raw_string(start)
            return self._make(TokenKind.STRING, start, raw_string=True)
        if word in STRING_PREFIXES and following in ('"', "'"):
            if following == '"':
                self._scan_quoted(self.pos, '"', literal_start=start)
                return self._make(TokenKind.STRING, start)
            self._scan_quoted(self.pos, "'", literal_start=start)
            return self._make(TokenKind.CHAR, start)

        kind = TokenKind.KEYWORD if word in KEYWORDS else TokenKind.IDENTIFIER
        return self._make(kind, start)

    def _skip_block_comment(self, start: int) -> None:
        end = self.text.find("*/", start + 2)
        if end == -1:
            raise LexError("unterminated block comment", start)
        self.pos = end + 2

    def _scan_quoted(
        self, quote_pos: int, quote: str, literal_start: int | None = None
    ) -> None:
        """Scan a string or character literal whose quote is at ``quote_pos``."""
        text = self.text
        pos = quote_pos + 1
        length = len(text)
        while pos < length:
            char = text[pos]
            if char == "\\":
                pos += 2
                continue
            if char == "\n":
                break
            if char == quote:
                self.pos = pos + 1
                self._skip_literal_suffix()
                return
            pos += 1
        what = "string literal" if quote == '"' else "character literal"
        opening = quote_pos if literal_start is None else literal_start
        raise LexError(f"unterminated {what}", opening)

    def _scan_raw_string(self, start: int) -> None:
        quote = self.pos
        match = _RAW_DELIMITER.match(self.text, quote + 1)
        if match is None:
            raise LexError("invalid raw string delimiter", start)
        delimiter = match.group()[:-1]
        closing = ")" + delimiter + '"'
        end = self.text.find(closing, match.end())
        if end == -1:
            raise LexError("unterminated raw string literal", start)
        self.pos = end + len(closing)
        self._skip_literal_suffix()

    def _skip_literal_suffix(self) -> None:
        match = _IDENTIFIER.match(self.text, self.pos)
        if match is not None:
            self.pos = match.end()

    def _scan_number(self) -> None:
        text = self.text
        pos = self.pos
        length = len(text)
        is_hex = text.startswith(("0x", "0X"), pos)
        while pos < length:
            char = text[pos]
            if char.isalnum() or char in "._":
                pos += 1
            elif char == "'" and pos + 1 < length and text[pos + 1].isalnum():
                pos += 1
            elif (
                char in "+-"
                and pos > self.pos
                and (
                    (text[pos - 1] in "eE" and not is_hex)
                    or (text[pos - 1] in "pP" and is_hex)
                )
            ):
                pos += 1
            else:
                break
        self.pos = pos

    def _scan_preprocessor(self) -> None:
        """Consume a directive up to the first unescaped newline.

        A trailing line comment is left for the comment state so the
        directive text stays clean; block comments are part of the directive.
        """
        text = self.text
        pos = self.pos + 1
        length = len(text)
        while pos < length:
            char = text[pos]
            if char == "\\" and text.startswith("\n", pos + 1):
                pos += 2
            elif char == "\n":
                break
            elif text.startswith("//", pos):
                break
            elif text.startswith("/*", pos):
                end = text.find("*/", pos + 2)
                if end == -1:
                    raise LexError("unterminated block comment", pos)
                pos = end + 2
            elif char in "\"'":
                # Lenient: `#error don't` is legal, so stop at the line end
                close = pos + 1
                while close < length and text[close] not in (char, "\n"):
                    close += 2 if text[close] == "\\" else 1
                pos = close + 1 if close < length and text[close] == char else close
            else:
                pos += 1
        # Trailing whitespace belongs to the whitespace token that follows
        while pos > self.pos + 1 and text[pos - 1] in " \t":
            pos -= 1
        self.pos = pos


def tokenize(source: SourceFile) -> list[Token]:
    """Materialize all tokens of ``source``.

    Raises:
        LexError: on an unterminated construct
    """
    return list(Lexer(source).tokens())
