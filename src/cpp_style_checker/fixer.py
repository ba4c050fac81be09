"""Edit selection, application and atomic write-back."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .rules import Diagnostic, Edit, EditKind

__all__ = [
    "EditSelection",
    "apply_edits",
    "is_permitted",
    "select_edits",
    "write_atomic",
]

logger = logging.getLogger("fixer")


def _include_lines(text: str) -> list[str]:
    return sorted(line for line in text.split("\n") if line.strip())


def is_permitted(edit: Edit, text: str) -> bool:
    """Check an edit against the shapes that cannot change program meaning.

    Whitespace edits replace blanks with blanks, renames only turn ``NULL``
    into ``nullptr``, and reorderings permute whole lines (blank lines may
    be added or dropped).
    """
    if not 0 <= edit.start <= edit.end <= len(text):
        return False
    original = text[edit.start : edit.end]
    if edit.kind is EditKind.WHITESPACE:
        return original.strip() == "" and edit.replacement.strip() == ""
    if edit.kind is EditKind.RENAME:
        return original == "NULL" and edit.replacement == "nullptr"
    if edit.kind is EditKind.REORDER:
        return _include_lines(original) == _include_lines(edit.replacement)
    return False


@dataclass
class EditSelection:
    """Result of choosing one pass worth of edits.

    Attributes:
        edits: Non-overlapping edits to apply
        applied: Diagnostics whose edit is among ``edits`` (two rules
            proposing the identical edit are both applied)
        suppressed: Pairs of (losing diagnostic, winning diagnostic)
    """

    edits: list[Edit] = field(default_factory=list)
    applied: list[Diagnostic] = field(default_factory=list)
    suppressed: list[tuple[Diagnostic, Diagnostic]] = field(default_factory=list)


def select_edits(
    diagnostics: list[Diagnostic],
    text: str,
    priority: Callable[[str], int],
) -> EditSelection:
    """Pick non-overlapping, permitted edits, lower priority numbers first.

    Args:
        diagnostics: Diagnostics of the current text
        text: The text the edits refer to
        priority: Maps a rule id to its priority

    Returns:
        The selection; refused edits are logged and left out
    """
    selection = EditSelection()
    winners: dict[Edit, Diagnostic] = {}
    candidates = sorted(
        (d for d in diagnostics if d.edit is not None),
        key=lambda d: (priority(d.rule_id), d.start, d.key),
    )
    for diagnostic in candidates:
        edit = diagnostic.edit
        assert edit is not None
        if not is_permitted(edit, text):
            logger.warning(
                "Refusing %s edit from %s at offset %d",
                edit.kind.value,
                diagnostic.rule_id,
                edit.start,
            )
            continue
        if edit in winners:
            selection.applied.append(diagnostic)
            continue
        clash = next((w for e, w in winners.items() if e.overlaps(edit)), None)
        if clash is not None:
            logger.debug(
                "%s edit at offset %d suppressed by %s",
                diagnostic.rule_id,
                edit.start,
                clash.rule_id,
            )
            selection.suppressed.append((diagnostic, clash))
            continue
        winners[edit] = diagnostic
        selection.edits.append(edit)
        selection.applied.append(diagnostic)
    return selection


def apply_edits(text: str, edits: list[Edit]) -> str:
    """Apply non-overlapping edits from the end of the text backwards."""
    for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        text = text[: edit.start] + edit.replacement + text[edit.end :]
    return text


def write_atomic(path: Path, data: bytes) -> None:
    """Atomically replace ``path`` with ``data``.

    Uses temp file + rename in the same directory, keeping the file mode.
    """
    temp_file = path.with_name(f".{path.name}.cpp-style.tmp")
    try:
        with open(temp_file, "wb") as f:
            f.write(data)
        shutil.copymode(path, temp_file)
        os.replace(temp_file, path)
    finally:
        if temp_file.exists():
            temp_file.unlink()
