"""Per-file checking and fixing.

The engine lexes a file once per pass, derives the structure and include
blocks, and runs every enabled rule on the shared context. In fix mode it
repeats check, select, apply until no edits are left, guarding against
fixes that do not converge.

Inline ignore: ``// cpp-style: ignore`` or ``// cpp-style: ignore=R-NULLPTR``
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from .config import Config
from .fixer import apply_edits, select_edits, write_atomic
from .includes import find_include_blocks
from .lexer import LexError, TokenKind, tokenize
from .rules import Diagnostic, FileContext, RuleError, Severity, StyleRule
from .source import SourceError, SourceFile
from .structure import build_structure

__all__ = ["CheckEngine", "FileReport", "INTERNAL_RULE"]

logger = logging.getLogger("engine")

# Format: // cpp-style: ignore  or  // cpp-style: ignore=R-NULLPTR,R-OP-SPACING
IGNORE_PATTERN = re.compile(
    r"//\s*cpp-style:\s*ignore(?:=(?P<rules>[\w\-]+(?:\s*,\s*[\w\-]+)*))?",
    re.IGNORECASE,
)

INTERNAL_RULE = "internal"
MAX_FIX_PASSES = 10


@dataclass
class FileReport:
    """Everything the driver needs to report one file.

    Attributes:
        path: Path as given (or the ``--stdin-filename``)
        diagnostics: Diagnostics in ascending offset order
        source: The file as read, None when it could not be read
        output: Fixed bytes when fix mode changed the content
    """

    path: Path
    diagnostics: list[Diagnostic] = field(default_factory=list)
    source: SourceFile | None = None
    output: bytes | None = None

    @property
    def fatal(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.diagnostics)


def _fatal(rule_id: str, message: str, offset: int = 0) -> Diagnostic:
    return Diagnostic(rule_id, Severity.ERROR, offset, offset, message)


def sort_diagnostics(diagnostics: list[Diagnostic]) -> None:
    diagnostics.sort(key=lambda d: (d.start, d.end, d.rule_id, d.key))


class CheckEngine:
    """Runs rules over files, optionally fixing them."""

    def __init__(self, rules: list[StyleRule], config: Config) -> None:
        self.config = config
        self._defaults = {rule.rule_id: rule.priority for rule in rules}
        self.rules = sorted(rules, key=lambda rule: self.priority(rule.rule_id))

    def priority(self, rule_id: str) -> int:
        """Configured priority of a rule; lower numbers win edit conflicts."""
        return self.config.priority_for(rule_id, self._defaults.get(rule_id, 1000))

    # Checking

    def analyze(self, source: SourceFile) -> FileContext:
        """Lex and structure a file.

        Raises:
            LexError: on an unterminated construct
        """
        tokens = tokenize(source)
        return FileContext(
            source=source,
            tokens=tokens,
            structure=build_structure(tokens),
            includes=find_include_blocks(tokens, source, self.config.system_headers),
            config=self.config,
        )

    def check_source(self, source: SourceFile) -> list[Diagnostic]:
        """Run all rules on one file.

        Raises:
            LexError: on an unterminated construct
        """
        context = self.analyze(source)
        diagnostics: list[Diagnostic] = []
        for rule in self.rules:
            try:
                found = list(rule.check(context))
                self._validate(rule, found, len(source.text))
            except Exception as error:  # noqa: BLE001
                logger.error(
                    "Rule %s failed on %s: %s", rule.rule_id, source.path, repr(error)
                )
                diagnostics.append(
                    Diagnostic(
                        INTERNAL_RULE,
                        Severity.WARNING,
                        0,
                        0,
                        f"rule {rule.rule_id} failed and was skipped: {error}",
                        key=(0, len(diagnostics)),
                    )
                )
                continue
            override = self.config.settings(rule.rule_id).severity
            if override is not None:
                for diagnostic in found:
                    diagnostic.severity = override
            diagnostics.extend(found)

        diagnostics = self._drop_ignored(context, diagnostics)
        sort_diagnostics(diagnostics)
        return diagnostics

    def _validate(self, rule: StyleRule, found: list[Diagnostic], length: int) -> None:
        for diagnostic in found:
            if not 0 <= diagnostic.start <= diagnostic.end <= length:
                raise RuleError(
                    f"diagnostic range {diagnostic.start}..{diagnostic.end} "
                    "outside the file"
                )
            edit = diagnostic.edit
            if edit is not None and not 0 <= edit.start <= edit.end <= length:
                raise RuleError(f"edit range {edit.start}..{edit.end} outside the file")
            if edit is not None and not rule.fixable:
                raise RuleError(f"{rule.rule_id} is not fixable but proposed an edit")

    def _drop_ignored(
        self, context: FileContext, diagnostics: list[Diagnostic]
    ) -> list[Diagnostic]:
        ignored: dict[int, set[str] | None] = {}
        for token in context.tokens:
            if token.kind is not TokenKind.COMMENT_LINE:
                continue
            match = IGNORE_PATTERN.search(token.text)
            if match is None:
                continue
            rules = match.group("rules")
            ignored[token.line] = (
                {rule.strip() for rule in rules.split(",")} if rules else None
            )
        if not ignored:
            return diagnostics

        kept = []
        for diagnostic in diagnostics:
            line, _ = context.source.position(diagnostic.start)
            if line in ignored:
                rules = ignored[line]
                if rules is None or diagnostic.rule_id in rules:
                    continue
            kept.append(diagnostic)
        return kept

    # Fixing

    def fix_source(self, source: SourceFile) -> tuple[list[Diagnostic], str]:
        """Fix a file until no edits remain.

        Returns:
            The diagnostics of the original text (fixed ones flagged) and the
            fixed text. The text is the original one when the fix did not
            converge; a warning diagnostic says so.

        Raises:
            LexError: when the original text cannot be lexed
        """
        original = self.check_source(source)
        current = source
        diagnostics = original
        fixed: set[tuple[str, tuple[int, ...]]] = set()
        suppressed: list[tuple[Diagnostic, Diagnostic]] = []

        for number in range(MAX_FIX_PASSES):
            selection = select_edits(diagnostics, current.text, self.priority)
            suppressed.extend(selection.suppressed)
            if not selection.edits:
                break
            logger.debug(
                "%s: pass %d applies %d edits",
                source.path,
                number + 1,
                len(selection.edits),
            )
            candidate = current.with_text(apply_edits(current.text, selection.edits))
            try:
                diagnostics = self.check_source(candidate)
            except LexError as error:
                logger.error("Fix broke lexing of %s: %s", source.path, repr(error))
                return original, source.text

            applied = {d.location for d in selection.applied}
            repeated = next((d for d in diagnostics if d.location in applied), None)
            if repeated is not None:
                logger.warning(
                    "%s: %s does not converge, leaving file unchanged",
                    source.path,
                    repeated.rule_id,
                )
                self._log_suppressed(source, suppressed, set())
                result = original + [
                    Diagnostic(
                        repeated.rule_id,
                        Severity.WARNING,
                        repeated.start,
                        repeated.end,
                        "auto-fix did not converge; file left unchanged",
                        key=repeated.key,
                    )
                ]
                sort_diagnostics(result)
                return result, source.text
            fixed |= applied
            current = candidate
        else:
            logger.warning(
                "%s: edits left after %d passes", source.path, MAX_FIX_PASSES
            )

        self._log_suppressed(source, suppressed, fixed)
        for diagnostic in original:
            diagnostic.fixed = diagnostic.location in fixed
        return original, current.text

    def _log_suppressed(
        self,
        source: SourceFile,
        suppressed: list[tuple[Diagnostic, Diagnostic]],
        fixed: set[tuple[str, tuple[int, ...]]],
    ) -> None:
        """Warn once for each edit that lost to an overlapping one on any pass."""
        seen = set()
        for loser, winner in suppressed:
            marker = (loser.location, winner.rule_id)
            if marker in seen:
                continue
            seen.add(marker)
            logger.warning(
                "%s: %s edit at offset %d suppressed by %s%s",
                source.path,
                loser.rule_id,
                loser.start,
                winner.rule_id,
                " (applied on a later pass)" if loser.location in fixed else "",
            )

    # Files

    def process(
        self, path: Path, raw: bytes | None = None, fix: bool = False
    ) -> FileReport:
        """Check (and in fix mode, fix) one file.

        Args:
            path: File path, used for reading unless ``raw`` is given
            raw: File content read elsewhere (standard input)
            fix: Compute fixed output

        Returns:
            The report; per-file failures become one error diagnostic
        """
        report = FileReport(path=path)
        try:
            if raw is None:
                raw = path.read_bytes()
        except OSError as error:
            logger.error("Failed to read %s: %s", path, repr(error))
            message = f"cannot read file: {error.strerror}"
            report.diagnostics.append(_fatal("io", message))
            return report

        try:
            source = SourceFile.from_bytes(path, raw)
        except SourceError as error:
            report.diagnostics.append(_fatal("encoding", str(error)))
            return report
        report.source = source

        try:
            if not fix:
                report.diagnostics = self.check_source(source)
                return report
            report.diagnostics, text = self.fix_source(source)
        except LexError as error:
            logger.debug("Lex error in %s: %s", path, repr(error))
            report.diagnostics = [_fatal("lex", error.message, error.offset)]
            return report

        if text != source.text:
            report.output = source.render(text)
        return report

    def write_back(self, report: FileReport) -> bool:
        """Write fixed output over the file; failures become an error diagnostic."""
        if report.output is None:
            return False
        try:
            write_atomic(report.path, report.output)
        except OSError as error:
            logger.error("Failed to write %s: %s", report.path, repr(error))
            message = f"cannot write file: {error.strerror}"
            report.diagnostics.append(_fatal("io", message))
            sort_diagnostics(report.diagnostics)
            for diagnostic in report.diagnostics:
                diagnostic.fixed = False
            return False
        return True
