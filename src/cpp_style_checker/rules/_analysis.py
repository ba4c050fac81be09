"""Token-level analyses shared between rules.

Results are memoized on the :class:`FileContext`, so a file pays for each
analysis once no matter how many rules ask for it.
"""

from __future__ import annotations

import bisect

from ..lexer import TYPE_KEYWORDS, TokenKind
from ._base import FileContext

BLANKS = " \t\f\v"

CAST_TYPE_KEYWORDS = TYPE_KEYWORDS | frozenset(
    {"const", "volatile", "struct", "class", "enum", "union", "typename", "auto"}
)
CAST_OPERAND_KEYWORDS = frozenset(
    {"this", "nullptr", "true", "false", "sizeof", "alignof", "new"}
)
CAST_ALLOWED_BEFORE = frozenset({"return", "case", "throw", "else"})
UNARY_PREFIXES = ("+", "-", "!", "~")
CAST_OPERAND_KINDS = (
    TokenKind.IDENTIFIER,
    TokenKind.NUMBER,
    TokenKind.STRING,
    TokenKind.CHAR,
)


def line_start(context: FileContext, index: int) -> int:
    """Offset of the first character of the line holding token ``index``."""
    token = context.tokens[index]
    return context.source.line_starts[token.line - 1]


def leading_text(context: FileContext, index: int) -> str:
    token = context.tokens[index]
    return context.source.text[line_start(context, index) : token.start]


def first_on_line(context: FileContext, index: int) -> bool:
    """True when only blanks precede token ``index`` on its physical line."""
    return leading_text(context, index).strip(BLANKS) == ""


def plain_gap(context: FileContext, start: int, end: int) -> bool:
    """True when the tokens strictly between ``start`` and ``end`` are blanks."""
    return all(
        context.tokens[k].kind is TokenKind.WHITESPACE for k in range(start + 1, end)
    )


def indent(level: int, size: int = 2) -> str:
    return " " * (level * size)


def in_expression_block(context: FileContext, frame_index: int | None) -> bool:
    """True when the frame is (or sits inside) a lambda or brace initializer."""
    frames = context.structure.frames
    while frame_index is not None:
        frame = frames[frame_index]
        if frame.is_expression_block:
            return True
        frame_index = frame.parent
    return False


def _scan_template(context: FileContext, open_index: int) -> list[int] | None:
    """Return the angle bracket tokens of a template argument list, or None."""
    tokens = context.tokens
    structure = context.structure
    angles = [open_index]
    depth = 1
    parens = 0
    cursor = structure.next_code(open_index)
    while cursor is not None:
        token = tokens[cursor]
        if token.is_punct("(", "["):
            parens += 1
        elif token.is_punct(")", "]"):
            if parens == 0:
                return None
            parens -= 1
        elif parens == 0:
            if token.is_punct(";", "{", "}", "&&", "||"):
                return None
            if token.is_punct("<"):
                depth += 1
                angles.append(cursor)
            elif token.is_punct(">", ">>"):
                depth -= 2 if token.text == ">>" else 1
                angles.append(cursor)
                if depth <= 0:
                    return angles
        cursor = structure.next_code(cursor)
    return None


def _template_tokens(context: FileContext) -> frozenset[int]:
    tokens = context.tokens
    structure = context.structure
    inside: set[int] = set()
    for index in structure.code:
        if index in inside or not tokens[index].is_punct("<"):
            continue
        prev = structure.prev_code(index)
        if prev is None:
            continue
        prev_token = tokens[prev]
        if prev_token.is_keyword("template"):
            pass
        elif prev_token.kind is not TokenKind.IDENTIFIER or prev != index - 1:
            continue
        angles = _scan_template(context, index)
        if angles is None:
            continue
        inside.update(code_between(context, angles[0], angles[-1]))
        inside.update((angles[0], angles[-1]))
    return frozenset(inside)


def template_tokens(context: FileContext) -> frozenset[int]:
    """Indices of code tokens inside template angle brackets (brackets included).

    A ``<`` opens a template argument list when it follows ``template`` or
    is glued to an identifier and a matching ``>`` follows before any
    ``;``, brace, ``&&`` or ``||``.
    """
    return context.memo("template-tokens", lambda: _template_tokens(context))


def _is_type_like(context: FileContext, inner: list[int]) -> bool:
    tokens = context.tokens
    if not inner or tokens[inner[0]].is_punct("*", "&", "&&", "::"):
        return False
    angle = 0
    for k in inner:
        token = tokens[k]
        if token.kind is TokenKind.IDENTIFIER:
            continue
        if token.kind is TokenKind.KEYWORD:
            if token.text not in CAST_TYPE_KEYWORDS:
                return False
        elif token.is_punct("<"):
            angle += 1
        elif token.is_punct(">"):
            angle -= 1
        elif token.is_punct(">>"):
            angle -= 2
        elif token.is_punct(","):
            if angle <= 0:
                return False
        elif not token.is_punct("::", "*", "&", "&&"):
            return False
    return angle == 0


def _clearly_a_type(context: FileContext, inner: list[int]) -> bool:
    tokens = context.tokens
    last = tokens[inner[-1]]
    return (
        last.is_punct("*", "&", ">")
        or any(tokens[k].is_keyword(*CAST_TYPE_KEYWORDS) for k in inner)
        or any(tokens[k].is_punct("::", "<") for k in inner)
    )


def _c_style_casts(context: FileContext) -> dict[int, int]:
    tokens = context.tokens
    structure = context.structure
    opens = {open_index: close for close, open_index in structure.paren_match.items()}
    casts: dict[int, int] = {}
    for open_index, close in opens.items():
        inner = code_between(context, open_index, close)
        if not _is_type_like(context, inner):
            continue

        following = structure.next_code(close)
        if following is None:
            continue
        after = tokens[following]
        if after.is_punct("(", *UNARY_PREFIXES):
            if not _clearly_a_type(context, inner):
                continue
        elif not (
            after.kind in CAST_OPERAND_KINDS
            or after.is_keyword(*CAST_OPERAND_KEYWORDS)
        ):
            continue

        prev = structure.prev_code(open_index)
        if prev is not None:
            before = tokens[prev]
            if before.kind is TokenKind.IDENTIFIER or before.is_punct("]", ">", ">>"):
                continue
            if before.kind is TokenKind.KEYWORD:
                if before.text not in CAST_ALLOWED_BEFORE:
                    continue
            if before.is_punct(")") and not _closes_control_header(context, prev):
                continue
        casts[open_index] = close
    return casts


def _closes_control_header(context: FileContext, close: int) -> bool:
    open_index = context.structure.paren_match.get(close)
    if open_index is None:
        return False
    keyword = context.structure.prev_code(open_index)
    return keyword is not None and context.tokens[keyword].is_keyword(
        "if", "while", "for", "switch"
    )


def code_between(context: FileContext, start: int, end: int) -> list[int]:
    """Code token indices strictly between ``start`` and ``end``."""
    code = context.structure.code
    return code[bisect.bisect_right(code, start) : bisect.bisect_left(code, end)]


def c_style_casts(context: FileContext) -> dict[int, int]:
    """Map the ``(`` of every C-style cast to its ``)``.

    A cast is a parenthesized, type-like token sequence directly followed by
    an identifier or a literal. A sequence that is clearly a type, such as
    ``(char)``, may also be followed by ``(`` or a unary sign. The ``(`` of a
    cast cannot be a call or a parameter list.
    """
    return context.memo("c-style-casts", lambda: _c_style_casts(context))
