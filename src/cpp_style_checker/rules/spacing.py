"""Horizontal spacing rules.

R-OP-SPACING: binary operators need a space on both sides.
R-KEYWORD-PAREN-SPACE: exactly one space between a control keyword and ``(``.
R-COMMA-SPACE: no space before a comma, whitespace after it.
R-NO-VERTICAL-ALIGN: no runs of blanks used to align tokens.
"""

from __future__ import annotations

from collections.abc import Iterator

from ..lexer import TYPE_KEYWORDS, TokenKind
from . import register_rule
from ._analysis import c_style_casts, first_on_line, template_tokens
from ._base import Diagnostic, Edit, FileContext, Severity

BINARY_OPERATORS = frozenset(
    "= + - * / % < > <= >= == != && || & | ^ << >> "
    "+= -= *= /= %= &= |= ^= <<= >>=".split()
)
# Operators that are also prefix operators or declarator sigils
AMBIGUOUS_OPERATORS = frozenset({"*", "&", "&&", "+", "-"})
SIGILS = frozenset({"*", "&", "&&"})
CONTROL_KEYWORDS = frozenset({"if", "for", "while", "switch", "catch"})

# Operand-ending keywords after which an ambiguous operator is binary
VALUE_KEYWORDS = frozenset({"this", "true", "false", "nullptr"})
# Tokens that may follow a declarator sigil but never a binary operator
ABSTRACT_DECLARATOR_END = frozenset({")", ",", ">", ">>", "*", "&", "&&", "...", "="})
TYPE_LIKE_KEYWORDS = TYPE_KEYWORDS | frozenset({"const", "volatile", "auto"})
OPERAND_KEYWORDS = VALUE_KEYWORDS | TYPE_LIKE_KEYWORDS


@register_rule
class OperatorSpacingRule:
    """R-OP-SPACING: binary operators are surrounded by single spaces.

    Only missing spaces are reported; extra blanks belong to
    R-NO-VERTICAL-ALIGN. Template angle brackets, operator overload names,
    prefix ``* & + -`` and pointer/reference declarators are skipped.
    """

    rule_id = "R-OP-SPACING"
    priority = 40
    severity = Severity.STYLE
    fixable = True
    description = "binary operators need one space on each side"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        tokens = context.tokens
        structure = context.structure
        templates = template_tokens(context)
        casts = set(c_style_casts(context).values())

        for index in structure.code:
            token = tokens[index]
            if token.kind is not TokenKind.PUNCT or token.text not in BINARY_OPERATORS:
                continue
            if index in templates:
                continue
            prev = structure.prev_code(index)
            following = structure.next_code(index)
            if prev is None or following is None:
                continue
            if tokens[prev].is_keyword("operator"):
                continue
            if token.is_punct("=", "&") and (
                tokens[prev].is_punct("[") or tokens[following].is_punct("]")
            ):
                # Lambda captures: [=], [&], [&x]
                continue
            if token.text in AMBIGUOUS_OPERATORS and not self._is_binary(
                context, index, prev, following, casts
            ):
                continue

            if not tokens[index - 1].is_trivia:
                yield context.diagnostic(
                    self,
                    index,
                    f"missing space before '{token.text}'",
                    edit=Edit(token.start, token.start, " "),
                    sub=0,
                )
            if index + 1 < len(tokens) and not tokens[index + 1].is_trivia:
                yield context.diagnostic(
                    self,
                    index,
                    f"missing space after '{token.text}'",
                    edit=Edit(token.end, token.end, " "),
                    sub=1,
                )

    def _is_binary(
        self,
        context: FileContext,
        index: int,
        prev: int,
        following: int,
        casts: set[int],
    ) -> bool:
        tokens = context.tokens
        token = tokens[index]
        before = tokens[prev]
        after = tokens[following]

        # Prefix use: nothing that ends an operand precedes the operator
        if before.kind is TokenKind.PUNCT:
            if not before.is_punct(")", "]", "++", "--") or prev in casts:
                return False
        elif before.kind is TokenKind.KEYWORD:
            if before.text not in OPERAND_KEYWORDS:
                return False

        if token.text not in SIGILS:
            return True

        if after.kind is TokenKind.PUNCT and after.text in ABSTRACT_DECLARATOR_END:
            return False
        if before.is_keyword(*TYPE_LIKE_KEYWORDS):
            return False
        spaced_before = tokens[index - 1].is_trivia
        spaced_after = index + 1 < len(tokens) and tokens[index + 1].is_trivia
        if spaced_before != spaced_after and (
            before.kind is TokenKind.IDENTIFIER
            and (after.kind is TokenKind.IDENTIFIER or after.is_keyword("const"))
        ):
            # `Foo* bar` or `Foo *bar`: a declarator written one way or the other
            return False
        return True


@register_rule
class KeywordParenSpaceRule:
    rule_id = "R-KEYWORD-PAREN-SPACE"
    priority = 30
    severity = Severity.STYLE
    fixable = True
    description = "control keywords are followed by exactly one space before '('"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        tokens = context.tokens
        structure = context.structure
        for index in structure.code:
            token = tokens[index]
            if not token.is_keyword(*CONTROL_KEYWORDS):
                continue
            paren = structure.next_code(index)
            if paren is None or not tokens[paren].is_punct("("):
                continue
            gap = tokens[index + 1 : paren]
            if not gap:
                yield context.diagnostic(
                    self,
                    index,
                    f"missing space between '{token.text}' and '('",
                    edit=Edit(token.end, token.end, " "),
                )
            elif any(t.kind is not TokenKind.WHITESPACE for t in gap):
                continue
            elif "".join(t.text for t in gap) != " ":
                yield context.diagnostic(
                    self,
                    index,
                    f"use exactly one space between '{token.text}' and '('",
                    edit=Edit(token.end, tokens[paren].start, " "),
                )


@register_rule
class CommaSpaceRule:
    rule_id = "R-COMMA-SPACE"
    priority = 20
    severity = Severity.STYLE
    fixable = True
    description = "no space before a comma, whitespace after it"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        tokens = context.tokens
        for index in context.structure.code:
            token = tokens[index]
            if not token.is_punct(","):
                continue
            before = tokens[index - 1] if index > 0 else None
            if (
                before is not None
                and before.kind is TokenKind.WHITESPACE
                and not first_on_line(context, index)
            ):
                yield context.diagnostic(
                    self,
                    index,
                    "space before ','",
                    edit=Edit(before.start, before.end, ""),
                    sub=0,
                )
            if index + 1 < len(tokens) and tokens[index + 1].kind not in (
                TokenKind.WHITESPACE,
                TokenKind.NEWLINE,
            ):
                yield context.diagnostic(
                    self,
                    index,
                    "missing space after ','",
                    edit=Edit(token.end, token.end, " "),
                    sub=1,
                )


@register_rule
class VerticalAlignRule:
    """R-NO-VERTICAL-ALIGN: a single blank separates tokens on one line.

    Any run of two or more blanks, or a tab, between two tokens of the same
    line is alignment padding. Blanks next to comments are left alone so
    trailing comments may still line up.
    """

    rule_id = "R-NO-VERTICAL-ALIGN"
    priority = 50
    severity = Severity.STYLE
    fixable = True
    description = "no runs of blanks used for vertical alignment"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        tokens = context.tokens
        for index in range(1, len(tokens) - 1):
            token = tokens[index]
            if token.kind is not TokenKind.WHITESPACE or "\\" in token.text:
                continue
            if len(token.text) < 2 and "\t" not in token.text:
                continue
            before = tokens[index - 1]
            after = tokens[index + 1]
            if before.is_trivia or after.is_trivia:
                continue
            if after.is_punct(","):
                continue
            if before.is_keyword(*CONTROL_KEYWORDS) and after.is_punct("("):
                continue
            yield context.diagnostic(
                self,
                index + 1,
                "blanks used for alignment; use a single space",
                edit=Edit(token.start, token.end, " "),
            )
