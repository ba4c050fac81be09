"""Source file loading with line-ending normalization and offset addressing.

Rules work on the normalized text (LF line endings, no BOM). The original
newline convention and BOM are remembered so a fixed file is written back the
way it was read.
"""

from __future__ import annotations

import bisect
import codecs
from dataclasses import dataclass
from pathlib import Path

__all__ = ["HEADER_SUFFIXES", "SourceError", "SourceFile"]

HEADER_SUFFIXES = frozenset({".h", ".hh", ".hpp"})

# UTF-32 first: the UTF-32 LE BOM starts with the UTF-16 LE one
_NON_ASCII_BOMS = (
    (codecs.BOM_UTF32_LE, "UTF-32"),
    (codecs.BOM_UTF32_BE, "UTF-32"),
    (codecs.BOM_UTF16_LE, "UTF-16"),
    (codecs.BOM_UTF16_BE, "UTF-16"),
)


class SourceError(Exception):
    """Raised when a file is not in an ASCII-compatible encoding."""


def _detect_newline(text: str) -> str:
    crlf = text.count("\r\n")
    cr = text.count("\r") - crlf
    lf = text.count("\n") - crlf
    if crlf > lf and crlf >= cr:
        return "\r\n"
    if cr > lf and cr > crlf:
        return "\r"
    return "\n"


@dataclass(frozen=True)
class SourceFile:
    """An immutable, fully loaded source file.

    Attributes:
        path: Path used for reporting and own-header detection
        raw: Original bytes as read
        text: Decoded text with CRLF and CR normalized to LF
        newline: Dominant newline convention of the original
        bom: Whether the original started with a UTF-8 BOM
        line_starts: Offset of the first character of every line in ``text``
    """

    path: Path
    raw: bytes
    text: str
    newline: str
    bom: bool
    line_starts: tuple[int, ...]

    @classmethod
    def from_bytes(cls, path: Path | str, raw: bytes) -> SourceFile:
        """Decode ``raw`` and build the line table.

        Raises:
            SourceError: if the bytes are UTF-16/UTF-32 or not valid UTF-8
        """
        for bom, name in _NON_ASCII_BOMS:
            if raw.startswith(bom):
                raise SourceError(f"{name} encoded files are not supported")

        bom = raw.startswith(codecs.BOM_UTF8)
        body = raw[len(codecs.BOM_UTF8) :] if bom else raw
        try:
            decoded = body.decode("utf-8")
        except UnicodeDecodeError as error:
            raise SourceError(
                f"not valid UTF-8 at byte {error.start}: {error.reason}"
            ) from error

        newline = _detect_newline(decoded)
        text = decoded.replace("\r\n", "\n").replace("\r", "\n")

        starts = [0]
        index = text.find("\n")
        while index != -1:
            starts.append(index + 1)
            index = text.find("\n", index + 1)

        return cls(
            path=Path(path),
            raw=raw,
            text=text,
            newline=newline,
            bom=bom,
            line_starts=tuple(starts),
        )

    @classmethod
    def load(cls, path: Path | str) -> SourceFile:
        """Read and decode a file from disk."""
        return cls.from_bytes(path, Path(path).read_bytes())

    @property
    def is_header(self) -> bool:
        return self.path.suffix.lower() in HEADER_SUFFIXES

    def position(self, offset: int) -> tuple[int, int]:
        """Return the 1-based (line, column) of a character offset."""
        line = bisect.bisect_right(self.line_starts, offset) - 1
        return line + 1, offset - self.line_starts[line] + 1

    def line_text(self, line: int) -> str:
        """Return the text of a 1-based line without its newline."""
        start = self.line_starts[line - 1]
        end = self.text.find("\n", start)
        return self.text[start:] if end == -1 else self.text[start:end]

    def byte_offset(self, offset: int) -> int:
        """Return the UTF-8 byte offset of a character offset in ``text``."""
        prefix = self.text[:offset]
        if prefix.isascii():
            return offset
        return len(prefix.encode("utf-8"))

    def render(self, text: str) -> bytes:
        """Encode normalized ``text`` using the original newline and BOM."""
        if self.newline != "\n":
            text = text.replace("\n", self.newline)
        encoded = text.encode("utf-8")
        return codecs.BOM_UTF8 + encoded if self.bom else encoded

    def with_text(self, text: str) -> SourceFile:
        """Return a copy holding ``text`` (used when re-checking a fix)."""
        return SourceFile.from_bytes(self.path, self.render(text))
