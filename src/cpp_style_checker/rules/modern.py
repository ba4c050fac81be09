"""Rules preferring modern C++ spellings: named casts and nullptr."""

from __future__ import annotations

from collections.abc import Iterator

from ..lexer import TokenKind
from . import register_rule
from ._analysis import c_style_casts
from ._base import Diagnostic, Edit, EditKind, FileContext, Severity


@register_rule
class CastStyleRule:
    """R-CAST-STYLE: no C-style casts outside allow-listed files."""

    rule_id = "R-CAST-STYLE"
    priority = 60
    severity = Severity.STYLE
    fixable = False
    description = "use static_cast and friends instead of C-style casts"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.config.cast_allowed(context.source.path):
            return
        for open_index, close in sorted(c_style_casts(context).items()):
            yield context.diagnostic(
                self,
                open_index,
                "C-style cast; use static_cast, dynamic_cast, reinterpret_cast "
                "or const_cast",
                end_index=close,
            )


@register_rule
class NullptrRule:
    """R-NULLPTR: spell the null pointer ``nullptr``.

    ``NULL`` is renamed automatically. A literal ``0`` used as a pointer,
    either through a pointer cast or to initialize a pointer declarator,
    is reported without a fix.
    """

    rule_id = "R-NULLPTR"
    priority = 10
    severity = Severity.STYLE
    fixable = True
    description = "use nullptr instead of NULL or 0"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        tokens = context.tokens
        structure = context.structure
        cast_closes = {
            close
            for close in c_style_casts(context).values()
            if self._to_pointer(context, close)
        }

        for index in structure.code:
            token = tokens[index]
            if token.kind is TokenKind.IDENTIFIER and token.text == "NULL":
                yield context.diagnostic(
                    self,
                    index,
                    "use nullptr instead of NULL",
                    edit=Edit(token.start, token.end, "nullptr", EditKind.RENAME),
                )
                continue
            if token.kind is not TokenKind.NUMBER or token.text != "0":
                continue
            prev = structure.prev_code(index)
            if prev is None:
                continue
            if prev in cast_closes:
                yield context.diagnostic(
                    self, index, "use nullptr instead of a cast of 0", sub=1
                )
            elif self._initializes_pointer(context, index, prev):
                yield context.diagnostic(
                    self, index, "use nullptr to initialize a pointer", sub=1
                )

    def _to_pointer(self, context: FileContext, close: int) -> bool:
        before = context.structure.prev_code(close)
        return before is not None and context.tokens[before].is_punct("*")

    def _initializes_pointer(self, context: FileContext, index: int, prev: int) -> bool:
        tokens = context.tokens
        structure = context.structure
        following = structure.next_code(index)
        if following is None or not tokens[following].is_punct(";", ",", ")"):
            return False
        if not tokens[prev].is_punct("="):
            return False
        name = structure.prev_code(prev)
        if name is None or tokens[name].kind is not TokenKind.IDENTIFIER:
            return False
        sigil = structure.prev_code(name)
        if sigil is None or not tokens[sigil].is_punct("*"):
            return False
        # `a * b = 0` is not a declaration; the sigil must follow a type
        type_end = structure.prev_code(sigil)
        return type_end is not None and (
            tokens[type_end].kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD)
            or tokens[type_end].is_punct(">", "*")
        )
