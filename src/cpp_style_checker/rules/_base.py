"""Base protocols and data structures for style rules."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

if TYPE_CHECKING:
    from ..config import Config
    from ..includes import IncludeBlock
    from ..lexer import Token
    from ..source import SourceFile
    from ..structure import Structure

T = TypeVar("T")


class Severity(Enum):
    STYLE = "style"
    WARNING = "warning"
    # Fatal per-file errors (I/O, encoding, lexing); never produced by rules
    ERROR = "error"


class EditKind(Enum):
    """The only edit shapes the fixer will apply."""

    WHITESPACE = "whitespace"
    RENAME = "rename"
    REORDER = "reorder"


class RuleError(Exception):
    """Raised by a rule whose internal consistency check fails."""


@dataclass(frozen=True)
class Edit:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str
    kind: EditKind = EditKind.WHITESPACE

    def overlaps(self, other: Edit) -> bool:
        if self.start == self.end == other.start == other.end:
            return True
        return self.start < other.end and other.start < self.end


@dataclass
class Diagnostic:
    """A single finding.

    Attributes:
        rule_id: Stable rule identifier (e.g. "R-NULLPTR")
        severity: Style, warning, or error for fatal file problems
        start: Offset of the first character of the offending range
        end: Offset one past the offending range
        message: Human-readable description
        edit: Optional auto-fix
        key: Structural location (non-trivia ordinal plus a sub-position),
            stable across whitespace-only edits
        fixed: Set by the fixer once the edit has been applied
    """

    rule_id: str
    severity: Severity
    start: int
    end: int
    message: str
    edit: Edit | None = None
    key: tuple[int, ...] = ()
    fixed: bool = False

    @property
    def location(self) -> tuple[str, tuple[int, ...]]:
        return self.rule_id, self.key


@dataclass
class FileContext:
    """Everything a rule may look at for one file."""

    source: SourceFile
    tokens: list[Token]
    structure: Structure
    includes: list[IncludeBlock]
    config: Config
    _cache: dict[str, Any] = field(default_factory=dict)

    def memo(self, key: str, factory: Callable[[], T]) -> T:
        """Compute a per-file analysis once and share it between rules."""
        if key not in self._cache:
            self._cache[key] = factory()
        return self._cache[key]

    def diagnostic(
        self,
        rule: StyleRule,
        index: int,
        message: str,
        edit: Edit | None = None,
        sub: int = 0,
        end_index: int | None = None,
        severity: Severity | None = None,
    ) -> Diagnostic:
        """Build a diagnostic anchored at token ``index``."""
        token = self.tokens[index]
        end = self.tokens[end_index].end if end_index is not None else token.end
        return Diagnostic(
            rule_id=rule.rule_id,
            severity=severity or rule.severity,
            start=token.start,
            end=end,
            message=message,
            edit=edit,
            key=(self.structure.ordinal(index), sub),
        )


class StyleRule(Protocol):
    """Protocol that all style rules must implement.

    Rules are independent: each one looks at the shared file context and
    yields its own diagnostics. Rules never write files; edits are applied
    by the fixer.

    Attributes:
        rule_id: Stable identifier, e.g. "R-INDENT-2"
        priority: Lower numbers win when edits overlap. Lexer-level rules
            use numbers below 100, structure-level rules 100 and above.
        severity: Default severity of the rule's diagnostics
        fixable: Whether the rule proposes edits
        description: One-line summary for ``--list-rules``
    """

    rule_id: str
    priority: int
    severity: Severity
    fixable: bool
    description: str

    def check(self, context: FileContext) -> Iterable[Diagnostic]:
        """Yield diagnostics for one file."""
        ...
