"""Indentation and brace placement rules.

Rules that depend on brace depth stay silent on files whose braces do not
balance. Preprocessor conditionals follow their first branch, so alternate
function heads under ``#ifdef`` do not count as unbalanced.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from ..lexer import COMMENTS, TokenKind
from ..structure import ACCESS_SPECIFIERS, FrameKind
from . import register_rule
from ._analysis import (
    first_on_line,
    in_expression_block,
    indent,
    leading_text,
    line_start,
    plain_gap,
)
from ._base import Diagnostic, Edit, FileContext, Severity

FRAME_NAMES = {
    FrameKind.NAMESPACE: "namespace",
    FrameKind.CLASS: "class",
    FrameKind.ENUM: "enum",
    FrameKind.FUNCTION: "function",
    FrameKind.SWITCH: "switch",
    FrameKind.BLOCK: "block",
}


@dataclass(frozen=True)
class IndentFinding:
    """A line whose leading whitespace differs from the expected indentation.

    ``namespaced`` is set when the line is indented as if namespaces
    counted as a level.
    """

    index: int
    start: int
    expected: str
    namespaced: bool


def case_labels(context: FileContext) -> frozenset[int]:
    return context.memo(
        "case-labels",
        lambda: frozenset(
            frame.open_index
            for frame in context.structure.frames
            if frame.kind is FrameKind.SWITCH_CASE
        ),
    )


def _is_access_label(context: FileContext, index: int) -> bool:
    following = context.structure.next_code(index)
    return (
        context.tokens[index].is_keyword(*ACCESS_SPECIFIERS)
        and following is not None
        and following in context.structure.label_colons
    )


def _ends_statement(context: FileContext, prev: int, frame_index: int) -> bool:
    """True when a new statement may start right after token ``prev``."""
    structure = context.structure
    token = context.tokens[prev]
    if token.is_punct(";"):
        return not structure.in_for_header(prev)
    if token.is_punct("{"):
        opened = structure.opened_by.get(prev)
        return opened is not None and not structure.frames[opened].is_expression_block
    if token.is_punct("}"):
        closed = structure.closed_by.get(prev)
        return closed is not None and not structure.frames[closed].is_expression_block
    if prev in structure.label_colons:
        return True
    return token.is_punct(",") and structure.frames[frame_index].kind is FrameKind.ENUM


def expected_level(context: FileContext, index: int) -> tuple[int, int] | None:
    """Indentation level and enclosing namespace count of a line's first token.

    Returns None for continuation lines and for code whose indentation is
    relative to an expression (lambda bodies, brace initializers).
    """
    structure = context.structure
    frames = structure.frames
    token = context.tokens[index]
    frame_index = structure.owner[index]
    if in_expression_block(context, frame_index):
        return None

    if token.is_punct("{", "}"):
        lookup = structure.opened_by if token.text == "{" else structure.closed_by
        braced = lookup.get(index)
        if braced is None or frames[braced].is_expression_block:
            return None
        return (
            structure.brace_level(braced),
            structure.namespace_depth(frames[braced].parent),
        )

    frame = frames[frame_index]
    if frame.kind is FrameKind.CONTROL_HEADER:
        return None
    prev = structure.prev_code(index)
    if prev is not None and not _ends_statement(context, prev, frame_index):
        return None

    if token.kind in COMMENTS:
        following = structure.next_code(index)
        if frame.kind is FrameKind.SWITCH:
            return None
        if following is not None and (
            following in case_labels(context) or _is_access_label(context, following)
        ):
            return None
    elif index in case_labels(context):
        return structure.content_level(frame_index), 0

    level = structure.content_level(frame_index)
    if frame.kind is FrameKind.CLASS and _is_access_label(context, index):
        level -= 1
    return max(level, 0), structure.namespace_depth(frame_index)


def _indent_findings(context: FileContext) -> list[IndentFinding]:
    tokens = context.tokens
    labels = case_labels(context)
    size = context.config.indent_size
    findings = []
    for index, token in enumerate(tokens):
        if token.kind in (TokenKind.WHITESPACE, TokenKind.NEWLINE):
            continue
        if token.kind is TokenKind.PREPROCESSOR or index in labels:
            continue
        if not first_on_line(context, index):
            continue

        actual = leading_text(context, index)
        start = line_start(context, index)
        result = expected_level(context, index)
        if result is None:
            if "\t" in actual:
                findings.append(
                    IndentFinding(index, start, actual.replace("\t", " " * size), False)
                )
            continue

        level, namespaces = result
        expected = indent(level, size)
        if actual == expected:
            continue
        namespaced = namespaces > 0 and actual == indent(level + namespaces, size)
        findings.append(IndentFinding(index, start, expected, namespaced))
    return findings


def indent_findings(context: FileContext) -> list[IndentFinding]:
    return context.memo("indent-findings", lambda: _indent_findings(context))


def trivia_rank(context: FileContext, index: int) -> int:
    """0 for code; for a comment, its position among the comments before code."""
    tokens = context.tokens
    if tokens[index].kind not in COMMENTS:
        return 0
    rank = 1
    cursor = index - 1
    while cursor >= 0 and tokens[cursor].is_trivia:
        if tokens[cursor].kind in COMMENTS:
            rank += 1
        cursor -= 1
    return rank


@register_rule
class IndentRule:
    """R-INDENT-2: two spaces per level, no tabs.

    Statement lines, braces and comments in statement position get their
    indentation replaced; continuation lines only get their tabs expanded.
    """

    rule_id = "R-INDENT-2"
    priority = 120
    severity = Severity.STYLE
    fixable = True
    description = "indent with two spaces per level, never tabs"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if not context.structure.balanced:
            return
        for finding in indent_findings(context):
            if finding.namespaced:
                continue
            token = context.tokens[finding.index]
            actual = leading_text(context, finding.index)
            if "\t" in actual:
                message = "tab in indentation"
            else:
                message = (
                    f"indentation is {len(actual)} columns, "
                    f"expected {len(finding.expected)}"
                )
            yield context.diagnostic(
                self,
                finding.index,
                message,
                edit=Edit(finding.start, token.start, finding.expected),
                sub=trivia_rank(context, finding.index),
            )


@register_rule
class NamespaceIndentRule:
    rule_id = "R-NS-INDENT"
    priority = 125
    severity = Severity.STYLE
    fixable = True
    description = "namespace content is not indented"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if not context.structure.balanced:
            return
        for finding in indent_findings(context):
            if not finding.namespaced:
                continue
            token = context.tokens[finding.index]
            yield context.diagnostic(
                self,
                finding.index,
                "namespace content must not be indented",
                edit=Edit(finding.start, token.start, finding.expected),
                sub=trivia_rank(context, finding.index),
            )


@register_rule
class BraceNewlineRule:
    """R-BRACE-NEWLINE: braces of scopes and control blocks sit on their own line.

    The opening brace starts a new line, the body does not share a line with
    it, and the closing brace starts a new line. ``{}`` may stay together.
    Brace initializers and lambda bodies are not scopes in this sense.
    """

    rule_id = "R-BRACE-NEWLINE"
    priority = 110
    severity = Severity.STYLE
    fixable = True
    description = "opening and closing braces go on their own lines"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        structure = context.structure
        if not structure.balanced:
            return
        tokens = context.tokens
        size = context.config.indent_size

        for frame in structure.frames[1:]:
            if frame.kind in (FrameKind.SWITCH_CASE, FrameKind.CONTROL_HEADER):
                continue
            if frame.is_expression_block or in_expression_block(context, frame.parent):
                continue
            what = FRAME_NAMES[frame.kind]
            opening = frame.open_index
            closing = frame.close_index
            brace_indent = indent(structure.brace_level(frame.index), size)

            if not first_on_line(context, opening):
                prev = structure.prev_code(opening)
                edit = None
                if prev is not None and plain_gap(context, prev, opening):
                    edit = Edit(
                        tokens[prev].end, tokens[opening].start, "\n" + brace_indent
                    )
                yield context.diagnostic(
                    self,
                    opening,
                    f"opening brace of {what} must start a new line",
                    edit=edit,
                    sub=0,
                )

            body = opening + 1
            while body < len(tokens) and tokens[body].kind is TokenKind.WHITESPACE:
                body += 1
            if (
                body < len(tokens)
                and body != closing
                and tokens[body].kind not in (TokenKind.NEWLINE, TokenKind.COMMENT_LINE)
            ):
                result = expected_level(context, body)
                level = result[0] if result else structure.content_level(frame.index)
                yield context.diagnostic(
                    self,
                    opening,
                    f"{what} body must not share a line with its opening brace",
                    edit=Edit(
                        tokens[opening].end,
                        tokens[body].start,
                        "\n" + indent(level, size),
                    ),
                    sub=1,
                )

            if structure.closed_by.get(closing) != frame.index:
                continue
            if not tokens[closing].is_punct("}"):
                continue
            prev = structure.prev_code(closing)
            if prev is None or prev == opening or first_on_line(context, closing):
                continue
            edit = None
            if plain_gap(context, prev, closing):
                edit = Edit(
                    tokens[prev].end, tokens[closing].start, "\n" + brace_indent
                )
            yield context.diagnostic(
                self,
                closing,
                f"closing brace of {what} must start a new line",
                edit=edit,
                sub=2,
            )


@register_rule
class ElseCatchWhileNewlineRule:
    rule_id = "R-ELSE-CATCH-WHILE-NEWLINE"
    priority = 100
    severity = Severity.STYLE
    fixable = True
    description = "else, catch and the while of do-while start a new line"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        structure = context.structure
        tokens = context.tokens
        for index in structure.code:
            token = tokens[index]
            if not token.is_keyword("else", "catch", "while"):
                continue
            prev = structure.prev_code(index)
            if prev is None or tokens[prev].line != token.line:
                continue
            closed = structure.closed_by.get(prev)
            if closed is None:
                continue
            frame = structure.frames[closed]
            if token.text == "while" and frame.control != "do":
                continue
            if in_expression_block(context, frame.parent):
                continue
            edit = None
            if plain_gap(context, prev, index):
                level = structure.brace_level(closed)
                edit = Edit(
                    tokens[prev].end,
                    token.start,
                    "\n" + indent(level, context.config.indent_size),
                )
            yield context.diagnostic(
                self,
                index,
                f"'{token.text}' must start a new line, not follow '}}'",
                edit=edit,
            )


@register_rule
class SwitchStyleRule:
    """R-SWITCH-STYLE: case labels one level inside the switch.

    When a case body is a braced block, its ``break;`` goes inside the block.
    """

    rule_id = "R-SWITCH-STYLE"
    priority = 130
    severity = Severity.STYLE
    fixable = True
    description = "case labels are indented inside the switch; break inside case blocks"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        structure = context.structure
        if not structure.balanced:
            return
        tokens = context.tokens
        size = context.config.indent_size

        for frame in structure.frames:
            if frame.kind is not FrameKind.SWITCH_CASE or frame.parent is None:
                continue
            label = frame.open_index
            if in_expression_block(context, frame.parent):
                continue
            if not first_on_line(context, label):
                continue
            expected = indent(structure.content_level(frame.parent), size)
            if leading_text(context, label) != expected:
                yield context.diagnostic(
                    self,
                    label,
                    f"'{tokens[label].text}' label must be indented one level "
                    "beyond its switch",
                    edit=Edit(
                        line_start(context, label), tokens[label].start, expected
                    ),
                    sub=0,
                )

        for index in structure.code:
            if not tokens[index].is_keyword("break"):
                continue
            prev = structure.prev_code(index)
            closed = structure.closed_by.get(prev) if prev is not None else None
            if closed is not None and structure.frames[closed].control == "case":
                yield context.diagnostic(
                    self,
                    index,
                    "'break' belongs inside the case block",
                    sub=1,
                )
