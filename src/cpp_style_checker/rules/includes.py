"""Include directive rules.

R-INCLUDE-ORDER: within a group, includes are sorted (own header first);
groups follow own header, project, system, third-party order.
R-HEADER-FWD-DECL: a header including a project header only for pointers
or references could forward declare instead.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import PurePosixPath

from ..includes import (
    Include,
    IncludeBlock,
    IncludeGroup,
    IncludeKind,
    include_sort_key,
)
from ..lexer import TokenKind
from . import register_rule
from ._base import Diagnostic, Edit, EditKind, FileContext, Severity

KIND_NAMES = {
    IncludeKind.OWN_HEADER: "own header",
    IncludeKind.PROJECT: "project",
    IncludeKind.SYSTEM: "system",
    IncludeKind.THIRD_PARTY: "third-party",
}


def _order_key(entry: Include) -> tuple[bool, tuple[tuple[int, str], ...]]:
    return entry.kind is not IncludeKind.OWN_HEADER, include_sort_key(entry.target)


@register_rule
class IncludeOrderRule:
    """R-INCLUDE-ORDER: sorted includes, grouped by origin.

    Only reordering within one group is fixed. The own header is moved to
    the front of its group and, when the block has more groups, split off
    into a group of its own. Mixed groups and misordered groups are
    reported without a fix because fixing them moves lines across groups.
    """

    rule_id = "R-INCLUDE-ORDER"
    priority = 140
    severity = Severity.STYLE
    fixable = True
    description = "includes are sorted and grouped: own, project, system, third-party"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        for number, block in enumerate(context.includes):
            yield from self._check_block(context, block, first_block=number == 0)

    def _check_block(
        self, context: FileContext, block: IncludeBlock, first_block: bool
    ) -> Iterator[Diagnostic]:
        several_groups = len(block.groups) > 1
        previous_rank = -1
        for position, group in enumerate(block.groups):
            anchor = group.entries[0].token_index

            edit, message = self._sort_group(context, group, several_groups)
            if edit is not None:
                yield context.diagnostic(
                    self,
                    anchor,
                    message,
                    edit=edit,
                    end_index=group.entries[-1].token_index,
                )

            kinds = group.kinds - {IncludeKind.OWN_HEADER}
            if len(kinds) > 1:
                ordered = sorted(kinds, key=lambda kind: kind.rank)
                names = ", ".join(KIND_NAMES[kind] for kind in ordered)
                yield context.diagnostic(
                    self, anchor, f"include group mixes {names} headers", sub=1
                )

            rank = min(kind.rank for kind in group.kinds)
            if rank < previous_rank:
                yield context.diagnostic(
                    self,
                    anchor,
                    f"{KIND_NAMES[min(group.kinds, key=lambda k: k.rank)]} includes "
                    "must come before the groups above them",
                    sub=2,
                )
            previous_rank = max(previous_rank, rank)

            if position > 0 and first_block:
                for entry in group.entries:
                    if entry.kind is IncludeKind.OWN_HEADER:
                        yield context.diagnostic(
                            self,
                            entry.token_index,
                            f"own header {entry.spelled} must be the first include",
                            sub=3,
                        )

    def _sort_group(
        self, context: FileContext, group: IncludeGroup, several_groups: bool
    ) -> tuple[Edit | None, str]:
        text = context.source.text
        current = group.entries
        expected = sorted(current, key=_order_key)
        split_own = (
            several_groups
            and len(current) > 1
            and expected[0].kind is IncludeKind.OWN_HEADER
        )
        if expected == current and not split_own:
            return None, ""

        lines = [text[entry.start : entry.end] for entry in expected]
        if split_own:
            lines[0] += "\n"
        edit = Edit(group.start, group.end, "\n".join(lines), EditKind.REORDER)

        if expected[0] is not current[0] and expected[0].kind is IncludeKind.OWN_HEADER:
            return edit, f"own header {expected[0].spelled} must come first"
        if expected == current:
            return edit, f"own header {current[0].spelled} must be alone in its group"
        for have, want in zip(current, expected):
            if have is not want:
                return (
                    edit,
                    f"includes not sorted: {want.spelled} goes before {have.spelled}",
                )
        return edit, "includes not sorted"


@register_rule
class HeaderForwardDeclRule:
    rule_id = "R-HEADER-FWD-DECL"
    priority = 200
    severity = Severity.STYLE
    fixable = False
    description = "headers forward declare types used only by pointer or reference"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if not context.source.is_header:
            return
        tokens = context.tokens
        structure = context.structure
        for block in context.includes:
            for entry in block.entries:
                if entry.kind is not IncludeKind.PROJECT:
                    continue
                stem = PurePosixPath(entry.target).stem
                names = {stem, "C" + stem}
                uses = [
                    index
                    for index in structure.code
                    if tokens[index].kind is TokenKind.IDENTIFIER
                    and tokens[index].text in names
                ]
                if not uses:
                    continue
                if all(self._by_indirection(context, index) for index in uses):
                    yield context.diagnostic(
                        self,
                        entry.token_index,
                        f"{entry.spelled} is only used through pointers or references; "
                        "consider a forward declaration",
                    )

    def _by_indirection(self, context: FileContext, index: int) -> bool:
        following = context.structure.next_code(index)
        if following is None:
            return False
        return context.tokens[following].is_punct("*", "&", "&&")
