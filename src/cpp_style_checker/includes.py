"""Include directive classification and block grouping.

An include block is a run of ``#include`` lines, possibly split into groups
by blank lines. Any other line (code, a comment line, another directive)
ends the block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from .lexer import Token, TokenKind
from .source import HEADER_SUFFIXES, SourceFile

__all__ = [
    "STANDARD_HEADERS",
    "Include",
    "IncludeBlock",
    "IncludeGroup",
    "IncludeKind",
    "find_include_blocks",
    "include_sort_key",
]

_INCLUDE = re.compile(r'#\s*include\s*([<"])([^>"]+)[>"]')

_C_HEADERS = (
    "assert complex ctype errno fenv float inttypes iso646 limits locale math "
    "setjmp signal stdalign stdarg stdatomic stdbool stddef stdint stdio stdlib "
    "stdnoreturn string tgmath threads time uchar wchar wctype"
).split()

_CPP_HEADERS = (
    "algorithm any array atomic barrier bit bitset charconv chrono codecvt "
    "compare complex concepts condition_variable coroutine deque exception "
    "execution expected filesystem format forward_list fstream functional future "
    "initializer_list iomanip ios iosfwd iostream istream iterator latch limits "
    "list locale map memory memory_resource mutex new numbers numeric optional "
    "ostream print queue random ranges ratio regex scoped_allocator semaphore set "
    "shared_mutex source_location span sstream stack stacktrace stdexcept "
    "stop_token streambuf string string_view syncstream system_error thread "
    "tuple type_traits typeindex typeinfo unordered_map unordered_set utility "
    "valarray variant vector version"
).split()

STANDARD_HEADERS = frozenset(
    [f"{name}.h" for name in _C_HEADERS]
    + [f"c{name}" for name in _C_HEADERS]
    + _CPP_HEADERS
)


class IncludeKind(Enum):
    """Include categories in the order their groups must appear."""

    OWN_HEADER = "own-header"
    PROJECT = "project-header"
    SYSTEM = "system-c-cpp"
    THIRD_PARTY = "third-party"

    @property
    def rank(self) -> int:
        return list(IncludeKind).index(self)


@dataclass(frozen=True)
class Include:
    """One ``#include`` line.

    ``start`` and ``end`` span the whole physical line without its newline,
    so reordering lines keeps trailing comments with their directive.
    """

    token_index: int
    target: str
    angled: bool
    kind: IncludeKind
    line: int
    start: int
    end: int

    @property
    def spelled(self) -> str:
        return f"<{self.target}>" if self.angled else f'"{self.target}"'


@dataclass
class IncludeGroup:
    entries: list[Include] = field(default_factory=list)

    @property
    def start(self) -> int:
        return self.entries[0].start

    @property
    def end(self) -> int:
        return self.entries[-1].end

    @property
    def kinds(self) -> set[IncludeKind]:
        return {entry.kind for entry in self.entries}


@dataclass
class IncludeBlock:
    groups: list[IncludeGroup] = field(default_factory=list)

    @property
    def entries(self) -> list[Include]:
        return [entry for group in self.groups for entry in group.entries]


def include_sort_key(target: str) -> tuple[tuple[int, str], ...]:
    """Case-sensitive path order with directories before files at each depth."""
    parts = PurePosixPath(target).parts
    return tuple((0, part) for part in parts[:-1]) + ((1, parts[-1]),)


def classify(
    target: str, angled: bool, source: SourceFile, system_headers: frozenset[str]
) -> IncludeKind:
    if angled:
        if target in system_headers:
            return IncludeKind.SYSTEM
        return IncludeKind.THIRD_PARTY
    included = PurePosixPath(target)
    if (
        included.stem == source.path.stem
        and included.suffix.lower() in HEADER_SUFFIXES
        and not source.is_header
    ):
        return IncludeKind.OWN_HEADER
    return IncludeKind.PROJECT


def _single_line_block(token: Token) -> bool:
    return token.kind is TokenKind.COMMENT_BLOCK and "\n" not in token.text


def _physical_lines(tokens: list[Token]) -> list[list[int]]:
    lines: list[list[int]] = [[]]
    for index, token in enumerate(tokens):
        if token.kind is TokenKind.NEWLINE:
            lines.append([])
        else:
            lines[-1].append(index)
    return lines


def find_include_blocks(
    tokens: list[Token], source: SourceFile, system_headers: frozenset[str]
) -> list[IncludeBlock]:
    """Group the file's include lines into blocks and blank-line groups."""
    blocks: list[IncludeBlock] = []
    current: IncludeBlock | None = None
    group: IncludeGroup | None = None

    for line in _physical_lines(tokens):
        meaningful = [k for k in line if tokens[k].kind is not TokenKind.WHITESPACE]
        if not meaningful:
            # Blank line: closes the group, keeps the block open
            group = None
            continue

        first = tokens[meaningful[0]]
        match = None
        if first.kind is TokenKind.PREPROCESSOR:
            match = _INCLUDE.match(first.text)
        rest = meaningful[1:]
        if match is None or not all(
            tokens[k].kind is TokenKind.COMMENT_LINE
            or _single_line_block(tokens[k])
            for k in rest
        ):
            current = None
            group = None
            continue

        angled = match.group(1) == "<"
        target = match.group(2).strip()
        entry = Include(
            token_index=meaningful[0],
            target=target,
            angled=angled,
            kind=classify(target, angled, source, system_headers),
            line=first.line,
            start=tokens[line[0]].start,
            end=tokens[line[-1]].end,
        )
        if current is None:
            current = IncludeBlock()
            blocks.append(current)
        if group is None:
            group = IncludeGroup()
            current.groups.append(group)
        group.entries.append(entry)

    return blocks
