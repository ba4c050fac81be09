"""Statement separation rules (diagnostics only)."""

from __future__ import annotations

from collections.abc import Iterator

from ..lexer import TokenKind
from . import register_rule
from ._analysis import in_expression_block
from ._base import Diagnostic, FileContext, Severity


def _terminators(context: FileContext) -> list[int]:
    """Semicolons that end a statement.

    Those in ``for`` headers and inside lambda bodies or brace initializers
    do not count.
    """
    structure = context.structure
    return [
        index
        for index in structure.code
        if context.tokens[index].is_punct(";")
        and not structure.in_for_header(index)
        and not in_expression_block(context, structure.owner[index])
    ]


def statement_terminators(context: FileContext) -> list[int]:
    return context.memo("terminators", lambda: _terminators(context))


@register_rule
class SemicolonNewlineRule:
    """R-SEMI-NEWLINE: nothing but a comment may follow ``;`` on its line."""

    rule_id = "R-SEMI-NEWLINE"
    priority = 70
    severity = Severity.STYLE
    fixable = False
    description = "a statement-ending ';' ends its line"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        tokens = context.tokens
        for index in statement_terminators(context):
            cursor = index + 1
            while cursor < len(tokens) and (
                tokens[cursor].kind in (TokenKind.WHITESPACE, TokenKind.COMMENT_LINE)
                or (
                    tokens[cursor].kind is TokenKind.COMMENT_BLOCK
                    and "\n" not in tokens[cursor].text
                )
            ):
                cursor += 1
            if cursor < len(tokens) and tokens[cursor].kind is not TokenKind.NEWLINE:
                yield context.diagnostic(
                    self, index, "';' must be followed by a line break"
                )


@register_rule
class OneStatementPerLineRule:
    rule_id = "R-ONE-STMT-PER-LINE"
    priority = 80
    severity = Severity.STYLE
    fixable = False
    description = "at most one statement per line"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        tokens = context.tokens
        seen_lines: set[int] = set()
        reported: set[int] = set()
        for index in statement_terminators(context):
            line = tokens[index].line
            if line not in seen_lines:
                seen_lines.add(line)
                continue
            if line in reported:
                continue
            reported.add(line)
            yield context.diagnostic(
                self, index, "more than one statement on this line"
            )
