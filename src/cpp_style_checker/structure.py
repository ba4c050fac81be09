"""Shallow structure of a token stream.

This is not a syntax tree. The builder is a pushdown automaton over braces
with side stacks for parentheses (control headers) and switch labels. It
records which scope ("frame") every token belongs to and splits each frame's
content into statements, which is all the style rules need.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field
from enum import Enum

from .lexer import Token, TokenKind

__all__ = ["Frame", "FrameKind", "Statement", "Structure", "build_structure"]

CONTROL_KEYWORDS = frozenset({"if", "for", "while", "switch", "catch"})
CLASS_KEYS = frozenset({"class", "struct", "union", "enum"})
ACCESS_SPECIFIERS = frozenset({"public", "protected", "private"})
LAMBDA_SPECIFIERS = frozenset({"mutable", "noexcept", "constexpr"})
CONDITIONAL_OPEN = frozenset({"if", "ifdef", "ifndef"})
CONDITIONAL_BRANCH = frozenset({"elif", "elifdef", "elifndef", "else"})
_DIRECTIVE = re.compile(r"#\s*(\w+)")


class FrameKind(Enum):
    FILE = "file"
    NAMESPACE = "namespace"
    CLASS = "class"
    ENUM = "enum"
    FUNCTION = "function"
    BLOCK = "block"
    SWITCH = "switch"
    SWITCH_CASE = "switch-case"
    CONTROL_HEADER = "control-header"


DECLARATION_SCOPES = frozenset({FrameKind.FILE, FrameKind.NAMESPACE, FrameKind.CLASS})


@dataclass
class Frame:
    """One scope of the shallow structure.

    ``control`` names the keyword owning a block (``if``, ``else``, ``for``,
    ``while``, ``do``, ``try``, ``catch``, ``switch``, ``case``/``default``
    for switch-case frames) or the flavour of an anonymous block (``init``
    for brace initializers, ``lambda``, ``case`` for a block opened right
    after a case label, ``linkage`` for ``extern "C"``).
    """

    kind: FrameKind
    index: int
    parent: int | None
    open_index: int
    close_index: int = -1
    name: str | None = None
    name_index: int | None = None
    header_index: int | None = None
    control: str | None = None

    @property
    def is_expression_block(self) -> bool:
        return self.kind is FrameKind.BLOCK and self.control in ("init", "lambda")


@dataclass
class Statement:
    """Code tokens of one statement at one frame level.

    Nested frames opened by the statement are listed in ``blocks``; their
    content is not part of ``tokens``. Braces are never part of ``tokens``.
    """

    frame: int
    tokens: list[int] = field(default_factory=list)
    end: int | None = None
    blocks: list[int] = field(default_factory=list)
    label: bool = False


class Structure:
    """Frames, statements and navigation helpers for one token list."""

    def __init__(
        self,
        tokens: list[Token],
        frames: list[Frame],
        owner: list[int],
        statements: list[Statement],
        label_colons: set[int],
        paren_match: dict[int, int],
        balanced: bool,
    ) -> None:
        self.tokens = tokens
        self.frames = frames
        self.owner = owner
        self.statements = statements
        self.label_colons = label_colons
        self.paren_match = paren_match
        self.balanced = balanced

        self.code = [i for i, token in enumerate(tokens) if token.is_code]
        self.opened_by = {
            frame.open_index: frame.index
            for frame in frames
            if frame.kind is not FrameKind.FILE
        }
        self.closed_by = {
            frame.close_index: frame.index
            for frame in frames
            if frame.kind not in (FrameKind.FILE, FrameKind.SWITCH_CASE)
        }

        ordinals = []
        count = 0
        for token in tokens:
            ordinals.append(count)
            if not token.is_trivia:
                count += 1
        self._ordinals = ordinals

        # Parents always precede their children
        levels: list[int] = []
        for frame in frames:
            if frame.parent is None:
                levels.append(0)
                continue
            parent_level = levels[frame.parent]
            if frame.kind in (FrameKind.NAMESPACE, FrameKind.CONTROL_HEADER):
                levels.append(parent_level)
            elif frame.kind is FrameKind.BLOCK and frame.control == "case":
                levels.append(parent_level)
            else:
                levels.append(parent_level + 1)
        self._levels = levels

    def ordinal(self, index: int) -> int:
        """Number of non-trivia tokens before ``index``.

        Whitespace-only edits never change it, which makes it a stable
        structural location across a fix pass.
        """
        return self._ordinals[index]

    def prev_code(self, index: int) -> int | None:
        position = bisect.bisect_left(self.code, index) - 1
        return self.code[position] if position >= 0 else None

    def next_code(self, index: int) -> int | None:
        position = bisect.bisect_right(self.code, index)
        return self.code[position] if position < len(self.code) else None

    def content_level(self, frame_index: int) -> int:
        """Indentation level of the statements inside a frame."""
        return self._levels[frame_index]

    def brace_level(self, frame_index: int) -> int:
        """Indentation level of a frame's own braces."""
        frame = self.frames[frame_index]
        if frame.parent is None:
            return 0
        level = self._levels[frame.parent]
        if frame.kind is FrameKind.BLOCK and frame.control == "case":
            return max(level - 1, 0)
        return level

    def namespace_depth(self, frame_index: int | None) -> int:
        """Count namespace frames from ``frame_index`` up to the file."""
        depth = 0
        while frame_index is not None:
            frame = self.frames[frame_index]
            if frame.kind is FrameKind.NAMESPACE:
                depth += 1
            frame_index = frame.parent
        return depth

    def enclosing(self, index: int, *kinds: FrameKind) -> Frame | None:
        """Innermost frame of one of ``kinds`` containing token ``index``."""
        frame_index: int | None = self.owner[index]
        while frame_index is not None:
            frame = self.frames[frame_index]
            if frame.kind in kinds:
                return frame
            frame_index = frame.parent
        return None

    def in_for_header(self, index: int) -> bool:
        frame = self.enclosing(index, FrameKind.CONTROL_HEADER)
        while frame is not None:
            if frame.control == "for":
                return True
            if frame.parent is None:
                return False
            parent = self.frames[frame.parent]
            frame = parent if parent.kind is FrameKind.CONTROL_HEADER else None
        return False

    def statements_in(self, frame_index: int) -> list[Statement]:
        return [stmt for stmt in self.statements if stmt.frame == frame_index]


@dataclass
class _Conditional:
    """State saved at ``#if``; ``taken`` is the state after the first branch."""

    stack: list[int]
    parens: list[tuple[int, int | None]]
    taken: tuple[list[int], list[tuple[int, int | None]]] | None = None


class _Builder:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.frames = [Frame(FrameKind.FILE, 0, None, 0)]
        self.stack = [0]
        self.owner = [0] * len(tokens)
        self.pending: dict[int, Statement] = {0: Statement(0)}
        self.statements: list[Statement] = []
        self.parens: list[tuple[int, int | None]] = []
        self.paren_base: dict[int, int] = {}
        self.paren_match: dict[int, int] = {}
        self.brackets: list[int] = []
        self.bracket_match: dict[int, int] = {}
        self.closed_headers: dict[int, int] = {}
        self.label_colons: set[int] = set()
        self.label_start: int | None = None
        self.label_parens = 0
        self.header_keyword: int | None = None
        self.prev: int | None = None
        self.balanced = True
        self.conditionals: list[_Conditional] = []

        self.code = [i for i, token in enumerate(tokens) if token.is_code]
        self.code_pos = {index: pos for pos, index in enumerate(self.code)}

    def build(self) -> Structure:
        for index, token in enumerate(self.tokens):
            if token.is_code:
                self._code_token(index, token)
                self.prev = index
            else:
                self.owner[index] = self.stack[-1]
                if token.kind is TokenKind.PREPROCESSOR:
                    self._directive(index, token)

        last = max(len(self.tokens) - 1, 0)
        while len(self.stack) > 1:
            frame_index = self.stack[-1]
            if self.frames[frame_index].kind is not FrameKind.SWITCH_CASE:
                self.balanced = False
            self._flush(frame_index)
            self._pop(frame_index, last)
        self._flush(0)
        self.frames[0].close_index = last
        if self.parens:
            self.balanced = False

        return Structure(
            tokens=self.tokens,
            frames=self.frames,
            owner=self.owner,
            statements=self.statements,
            label_colons=self.label_colons,
            paren_match=self.paren_match,
            balanced=self.balanced,
        )

    # Frame and statement bookkeeping

    def _push(self, kind: FrameKind, open_index: int, **info: object) -> Frame:
        frame = Frame(
            kind, len(self.frames), self.stack[-1], open_index, **info  # type: ignore[arg-type]
        )
        self.frames.append(frame)
        self.stack.append(frame.index)
        if kind is not FrameKind.CONTROL_HEADER:
            self.pending[frame.index] = Statement(frame.index)
        return frame

    def _pop(self, frame_index: int, close_index: int) -> None:
        # A frame closed in one conditional branch keeps its first closing brace.
        frame = self.frames[frame_index]
        if frame.close_index < 0:
            frame.close_index = close_index
        self.stack.pop()

    def _statement_frame(self) -> int:
        for frame_index in reversed(self.stack):
            if self.frames[frame_index].kind is not FrameKind.CONTROL_HEADER:
                return frame_index
        return 0

    def _pending(self) -> Statement:
        frame_index = self._statement_frame()
        return self.pending.setdefault(frame_index, Statement(frame_index))

    def _flush(self, frame_index: int, end: int | None = None) -> None:
        stmt = self.pending.get(frame_index)
        if stmt is not None and (stmt.tokens or stmt.blocks):
            stmt.end = end
            self.statements.append(stmt)
        self.pending[frame_index] = Statement(frame_index)

    def _finish_statement(self, end: int, label: bool = False) -> None:
        frame_index = self._statement_frame()
        stmt = self.pending.get(frame_index)
        if stmt is not None:
            stmt.label = label
        self._flush(frame_index, end)

    def _close_case(self) -> None:
        frame_index = self.stack[-1]
        self._flush(frame_index)
        close = self.prev
        if close is None:
            close = self.frames[frame_index].open_index
        self._pop(frame_index, close)

    def _prev_code(self, index: int) -> int | None:
        position = self.code_pos[index]
        return self.code[position - 1] if position > 0 else None

    def _next_code(self, index: int) -> int | None:
        position = self.code_pos[index] + 1
        return self.code[position] if position < len(self.code) else None

    # Preprocessor conditionals

    def _directive(self, index: int, token: Token) -> None:
        """Follow the first branch of a conditional for brace depth.

        Every branch is still scanned from the depth at its ``#if``; frames a
        later branch leaves open are closed at the next directive.
        """
        match = _DIRECTIVE.match(token.text)
        if match is None:
            return
        name = match.group(1)
        if name in CONDITIONAL_OPEN:
            self.conditionals.append(_Conditional(list(self.stack), list(self.parens)))
        elif name in CONDITIONAL_BRANCH and self.conditionals:
            conditional = self.conditionals[-1]
            if conditional.taken is None:
                conditional.taken = (list(self.stack), list(self.parens))
            else:
                self._drop_branch(conditional.stack, index)
            self.stack = list(conditional.stack)
            self.parens = list(conditional.parens)
        elif name == "endif" and self.conditionals:
            conditional = self.conditionals.pop()
            if conditional.taken is not None:
                self._drop_branch(conditional.stack, index)
                self.stack, self.parens = conditional.taken

    def _drop_branch(self, keep: list[int], index: int) -> None:
        kept = set(keep)
        while len(self.stack) > 1 and self.stack[-1] not in kept:
            frame_index = self.stack[-1]
            self.paren_base.pop(frame_index, None)
            self._flush(frame_index)
            self._pop(frame_index, index)

    # Token handling

    def _code_token(self, index: int, token: Token) -> None:
        if token.is_punct("{"):
            self._open_brace(index)
            return
        if token.is_punct("}"):
            self._close_brace(index)
            return

        top = self.frames[self.stack[-1]]
        stmt = self._pending()
        if self.label_start is None and not stmt.tokens:
            if top.kind in (
                FrameKind.SWITCH,
                FrameKind.SWITCH_CASE,
            ) and token.is_keyword("case", "default"):
                if top.kind is FrameKind.SWITCH_CASE:
                    self._close_case()
                    stmt = self._pending()
                self.label_start = index
                self.label_parens = len(self.parens)
            elif top.kind is FrameKind.CLASS and token.is_keyword(*ACCESS_SPECIFIERS):
                following = self._next_code(index)
                if following is not None and self.tokens[following].is_punct(":"):
                    self.label_start = index
                    self.label_parens = len(self.parens)

        self.owner[index] = self.stack[-1]
        stmt.tokens.append(index)

        if token.is_punct("("):
            header = None
            if self.header_keyword is not None:
                keyword = self.tokens[self.header_keyword]
                header = self._push(
                    FrameKind.CONTROL_HEADER,
                    index,
                    control=keyword.text,
                    header_index=self.header_keyword,
                ).index
                self.header_keyword = None
            self.parens.append((index, header))
            return
        if token.is_punct(")"):
            if not self.parens:
                self.balanced = False
                return
            open_index, header = self.parens.pop()
            self.paren_match[index] = open_index
            if header is not None and self.stack[-1] == header:
                self._pop(header, index)
                self.owner[index] = self.stack[-1]
                self.closed_headers[index] = header
            return
        if token.is_punct("["):
            self.brackets.append(index)
        elif token.is_punct("]") and self.brackets:
            self.bracket_match[index] = self.brackets.pop()

        if token.is_keyword(*CONTROL_KEYWORDS):
            self.header_keyword = index
        elif not token.is_keyword("constexpr"):
            self.header_keyword = None

        if (
            token.is_punct(":")
            and self.label_start is not None
            and len(self.parens) == self.label_parens
        ):
            label = self.tokens[self.label_start]
            self.label_colons.add(index)
            self._finish_statement(index, label=True)
            if label.is_keyword("case", "default"):
                self._push(
                    FrameKind.SWITCH_CASE,
                    self.label_start,
                    control=label.text,
                    header_index=self.label_start,
                )
            self.label_start = None
        elif token.is_punct(";"):
            if self.frames[self.stack[-1]].kind is not FrameKind.CONTROL_HEADER:
                self._finish_statement(index)

    def _open_brace(self, index: int) -> None:
        self.owner[index] = self.stack[-1]
        kind, info = self._classify_brace()
        stmt = self._pending()
        frame = self._push(kind, index, **info)
        stmt.blocks.append(frame.index)
        self.paren_base[frame.index] = len(self.parens)
        self.header_keyword = None

    def _close_brace(self, index: int) -> None:
        if self.frames[self.stack[-1]].kind is FrameKind.SWITCH_CASE:
            self._close_case()
        while self.frames[self.stack[-1]].kind is FrameKind.CONTROL_HEADER:
            self.balanced = False
            self._pop(self.stack[-1], self.prev if self.prev is not None else index)
        if len(self.stack) == 1:
            self.balanced = False
            self.owner[index] = 0
            return

        frame_index = self.stack[-1]
        base = self.paren_base.pop(frame_index, 0)
        if len(self.parens) > base:
            self.balanced = False
            del self.parens[base:]
        self._flush(frame_index)
        self._pop(frame_index, index)
        self.owner[index] = self.stack[-1]
        self.label_start = None

        frame = self.frames[frame_index]
        if frame.kind in (
            FrameKind.NAMESPACE,
            FrameKind.FUNCTION,
            FrameKind.SWITCH,
        ) or (frame.kind is FrameKind.BLOCK and not frame.is_expression_block):
            self._finish_statement(index)

    # Brace classification

    def _classify_brace(self) -> tuple[FrameKind, dict[str, object]]:
        top = self.frames[self.stack[-1]]
        prev = self.prev
        if top.kind is FrameKind.CONTROL_HEADER:
            lambda_body = prev is not None and self._is_lambda(prev)
            return FrameKind.BLOCK, {"control": "lambda" if lambda_body else "init"}
        if prev is None:
            return FrameKind.BLOCK, {}

        prev_token = self.tokens[prev]
        if prev in self.closed_headers:
            header = self.frames[self.closed_headers[prev]]
            kind = FrameKind.SWITCH if header.control == "switch" else FrameKind.BLOCK
            return kind, {
                "control": header.control,
                "header_index": header.header_index,
            }
        if prev_token.is_keyword("else", "do", "try"):
            return FrameKind.BLOCK, {"control": prev_token.text, "header_index": prev}
        if prev in self.label_colons and top.kind is FrameKind.SWITCH_CASE:
            return FrameKind.BLOCK, {"control": "case", "header_index": top.open_index}

        head = self._pending().tokens
        if not head:
            return FrameKind.BLOCK, {}
        return self._classify_head(head, prev, top)

    def _classify_head(
        self, head: list[int], prev: int, top: Frame
    ) -> tuple[FrameKind, dict[str, object]]:
        tokens = self.tokens
        body = self._strip_template(head)
        if not body:
            return FrameKind.BLOCK, {}
        if tokens[body[0]].is_keyword("inline") and len(body) > 1:
            if tokens[body[1]].is_keyword("namespace"):
                body = body[1:]

        first = tokens[body[0]]
        if first.is_keyword("namespace"):
            names = [k for k in body[1:] if tokens[k].kind is TokenKind.IDENTIFIER]
            return FrameKind.NAMESPACE, {
                "name": "::".join(tokens[k].text for k in names) or None,
                "name_index": names[0] if names else None,
                "header_index": body[0],
            }
        if first.is_keyword("extern") and len(body) > 1:
            if tokens[body[1]].kind is TokenKind.STRING:
                return FrameKind.NAMESPACE, {
                    "control": "linkage",
                    "header_index": body[0],
                }

        if self._is_lambda(prev):
            return FrameKind.BLOCK, {"control": "lambda"}

        top_level = self._top_level(body)
        key = next((k for k in top_level if tokens[k].is_keyword(*CLASS_KEYS)), None)
        has_assign = any(tokens[k].is_punct("=") for k in top_level)
        if key is not None and not has_assign:
            if not any(tokens[k].is_punct("(") for k in top_level if k > key):
                is_enum = tokens[key].is_keyword("enum")
                kind = FrameKind.ENUM if is_enum else FrameKind.CLASS
                name, name_index = self._class_name(body, key)
                return kind, {
                    "name": name,
                    "name_index": name_index,
                    "header_index": body[0],
                }
        if has_assign:
            return FrameKind.BLOCK, {"control": "init"}

        prev_token = tokens[prev]
        if top.kind in DECLARATION_SCOPES:
            if not any(tokens[k].is_punct("(") for k in top_level):
                return FrameKind.BLOCK, {"control": "init"}
            if prev_token.kind is TokenKind.IDENTIFIER and self._has_ctor_initializer(
                top_level
            ):
                return FrameKind.BLOCK, {"control": "init"}
            name, name_index = self._function_name(body, top_level)
            return FrameKind.FUNCTION, {
                "name": name,
                "name_index": name_index,
                "header_index": body[0],
            }

        if (
            prev_token.kind
            in (TokenKind.IDENTIFIER, TokenKind.NUMBER, TokenKind.STRING)
            or prev_token.is_punct("=", "(", ",", "[", "<", ">", "{", "?")
            or prev_token.is_keyword("return")
        ):
            return FrameKind.BLOCK, {"control": "init"}
        return FrameKind.BLOCK, {}

    def _is_lambda(self, prev: int) -> bool:
        tokens = self.tokens
        index: int | None = prev
        while index is not None and tokens[index].is_keyword(*LAMBDA_SPECIFIERS):
            index = self._prev_code(index)
        if index is None:
            return False
        if tokens[index].is_punct(")") and index in self.paren_match:
            index = self._prev_code(self.paren_match[index])
            if index is None:
                return False
        if not tokens[index].is_punct("]") or index not in self.bracket_match:
            return False
        before = self._prev_code(self.bracket_match[index])
        if before is None:
            return True
        before_token = tokens[before]
        if before_token.kind in (TokenKind.IDENTIFIER, TokenKind.NUMBER):
            return False
        return not before_token.is_punct(")", "]") and not before_token.is_keyword(
            "this", "operator"
        )

    def _strip_template(self, head: list[int]) -> list[int]:
        tokens = self.tokens
        position = 0
        while (
            position + 1 < len(head)
            and tokens[head[position]].is_keyword("template")
            and tokens[head[position + 1]].is_punct("<")
        ):
            depth = 0
            position += 1
            while position < len(head):
                text = tokens[head[position]].text
                if text == "<":
                    depth += 1
                elif text == ">":
                    depth -= 1
                elif text == ">>":
                    depth -= 2
                position += 1
                if depth <= 0:
                    break
        return head[position:]

    def _top_level(self, body: list[int]) -> list[int]:
        depth = 0
        result = []
        for k in body:
            token = self.tokens[k]
            if token.is_punct(")", "]"):
                depth -= 1
            if depth == 0:
                result.append(k)
            if token.is_punct("(", "["):
                depth += 1
        return result

    def _has_ctor_initializer(self, top_level: list[int]) -> bool:
        for k in top_level:
            if self.tokens[k].is_punct(":"):
                before = self._prev_code(k)
                if before is not None and self.tokens[before].is_punct(")"):
                    return True
        return False

    def _class_name(self, body: list[int], key: int) -> tuple[str | None, int | None]:
        tokens = self.tokens
        depth = 0
        name_index = None
        for k in body[body.index(key) + 1 :]:
            token = tokens[k]
            if token.is_punct("(", "["):
                depth += 1
            elif token.is_punct(")", "]"):
                depth -= 1
            elif depth > 0:
                continue
            elif token.is_punct("<"):
                return None, None
            elif token.is_punct(":") or token.is_keyword("final"):
                break
            elif token.kind is TokenKind.IDENTIFIER:
                name_index = k
        if name_index is None:
            return None, None
        return tokens[name_index].text, name_index

    def _function_name(
        self, body: list[int], top_level: list[int]
    ) -> tuple[str | None, int | None]:
        tokens = self.tokens
        paren = next(k for k in top_level if tokens[k].is_punct("("))
        operator = next(
            (k for k in body if k < paren and tokens[k].is_keyword("operator")), None
        )
        if operator is not None:
            return "operator", operator

        name_index = self._prev_code(paren)
        if name_index is None or tokens[name_index].kind is not TokenKind.IDENTIFIER:
            return None, None
        parts = [tokens[name_index].text]
        cursor = self._prev_code(name_index)
        if cursor is not None and tokens[cursor].is_punct("~"):
            parts[0] = "~" + parts[0]
            cursor = self._prev_code(cursor)
        while cursor is not None and tokens[cursor].is_punct("::"):
            qualifier = self._prev_code(cursor)
            if qualifier is None or tokens[qualifier].kind is not TokenKind.IDENTIFIER:
                break
            parts.insert(0, tokens[qualifier].text)
            cursor = self._prev_code(qualifier)
        return "::".join(parts), name_index


def build_structure(tokens: list[Token]) -> Structure:
    """Derive frames and statements from a token list."""
    return _Builder(tokens).build()
