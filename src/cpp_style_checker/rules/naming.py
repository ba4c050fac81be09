"""Naming convention rules.

Names are checked where they are declared: namespace and class headers come
from the structure's frames, variables and method declarations from the
statements of file, namespace and class scopes. Nothing here is auto-fixed;
renames are not a whitespace-safe edit.

Files matching ``naming.allow-files`` are skipped by every rule here.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from ..lexer import TYPE_KEYWORDS, TokenKind
from ..structure import DECLARATION_SCOPES, Frame, FrameKind, Statement
from . import register_rule
from ._base import Diagnostic, FileContext, Severity

UPPER_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")
CLASS_NAME = re.compile(r"^C[A-Z][A-Za-z0-9]*$")
INTERFACE_NAME = re.compile(r"^I[A-Z][A-Za-z0-9]*$")
ENUM_NAME = re.compile(r"^[A-Z][A-Za-z0-9]*$")
ENUMERATOR_NAME = re.compile(r"^[A-Z_][A-Z0-9_]*$")
MACRO_NAME = re.compile(r"^[A-Z][A-Z0-9_]+$")
STANDARD_TYPEDEF = re.compile(
    r"^(u?int(8|16|32|64|max|ptr)_t|size_t|ssize_t|ptrdiff_t)$"
)

# Names a class must spell this way to work with range-for and std::swap
CONTAINER_METHODS = frozenset(
    {"begin", "end", "cbegin", "cend", "rbegin", "rend", "swap"}
)

# Statements starting with these declare no variable or method
NON_DECLARATIONS = frozenset(
    {
        "using",
        "typedef",
        "template",
        "friend",
        "static_assert",
        "namespace",
        "return",
        "break",
        "continue",
        "goto",
        "delete",
        "throw",
        "operator",
    }
)
TYPE_INTRODUCERS = frozenset({"class", "struct", "union", "enum"})
DECL_SPECIFIERS = frozenset(
    {
        "static",
        "extern",
        "inline",
        "const",
        "constexpr",
        "volatile",
        "mutable",
        "virtual",
        "explicit",
    }
)


@dataclass
class Declaration:
    """Names declared by one statement at file, namespace or class scope.

    Attributes:
        frame: The scope the statement belongs to
        names: Token indices of declared variable names
        function: Token index of the declared function name, if the
            statement declares a function instead of variables
        specifiers: Keywords among the type tokens (static, const, ...)
        type_tokens: Code tokens before the first declared name
        qualified: The first name is qualified (``CFoo::s_bar``)
    """

    frame: Frame
    names: list[int] = field(default_factory=list)
    function: int | None = None
    specifiers: set[str] = field(default_factory=set)
    type_tokens: list[int] = field(default_factory=list)
    qualified: bool = False


def _split_top_level(context: FileContext, indices: list[int]) -> list[list[int]]:
    """Split at commas outside parentheses, brackets and template arguments."""
    tokens = context.tokens
    segments: list[list[int]] = [[]]
    depth = 0
    angle = 0
    assigned = False
    for k in indices:
        token = tokens[k]
        if token.is_punct("(", "[", "{"):
            depth += 1
        elif token.is_punct(")", "]", "}"):
            depth -= 1
        elif token.is_punct("=") and depth == 0 and angle == 0:
            assigned = True
        elif not assigned and depth == 0 and token.is_punct("<"):
            angle += 1
        elif not assigned and depth == 0 and token.is_punct(">", ">>"):
            angle -= 2 if token.text == ">>" else 1
        elif token.is_punct(",") and depth == 0 and angle <= 0:
            segments.append([])
            assigned = False
            continue
        segments[-1].append(k)
    return segments


def _declared_name(
    context: FileContext, segment: list[int]
) -> tuple[int | None, bool, bool]:
    """Find the declarator name of one segment.

    Returns:
        (name index, whether a top-level '(' precedes any '=', whether the
        name is qualified)
    """
    tokens = context.tokens
    name = None
    angle = 0
    for position, k in enumerate(segment):
        token = tokens[k]
        if angle > 0:
            if token.is_punct("<"):
                angle += 1
            elif token.is_punct(">", ">>"):
                angle -= 2 if token.text == ">>" else 1
            continue
        if token.is_punct("<"):
            angle += 1
        elif token.is_punct("(") and name is not None:
            return name, True, _is_qualified(context, segment, position - 1)
        elif token.is_punct("=", "[", ":", "("):
            break
        elif token.kind is TokenKind.IDENTIFIER:
            name = k
    if name is None:
        return None, False, False
    return name, False, _is_qualified(context, segment, segment.index(name))


def _is_qualified(context: FileContext, segment: list[int], position: int) -> bool:
    return position > 0 and context.tokens[segment[position - 1]].is_punct("::")


def _parse_declaration(
    context: FileContext, frame: Frame, statement: Statement
) -> Declaration | None:
    tokens = context.tokens
    structure = context.structure
    if statement.label or statement.end is None:
        return None
    if not tokens[statement.end].is_punct(";"):
        return None
    if any(not structure.frames[b].is_expression_block for b in statement.blocks):
        return None

    body = [k for k in statement.tokens if k != statement.end]
    leading = [k for k in body if not tokens[k].is_keyword(*DECL_SPECIFIERS)]
    if not leading:
        return None
    first = tokens[leading[0]]
    if first.is_keyword(*NON_DECLARATIONS):
        return None
    if first.is_keyword(*TYPE_INTRODUCERS):
        # Forward declarations and elaborated types (`struct stat st;`)
        return None
    if any(tokens[k].is_keyword("operator") for k in body):
        return None

    segments = _split_top_level(context, body)
    name, is_function, qualified = _declared_name(context, segments[0])
    if name is None:
        return None
    type_tokens = [k for k in segments[0] if k < name]
    if not type_tokens or all(tokens[k].is_punct("::", "~") for k in type_tokens):
        # A call or constructor declaration: `Foo(1);`, `CFoo();`
        if is_function and type_tokens == []:
            return Declaration(frame=frame, function=name, qualified=qualified)
        return None

    declaration = Declaration(
        frame=frame,
        specifiers={
            tokens[k].text for k in type_tokens if tokens[k].kind is TokenKind.KEYWORD
        },
        type_tokens=type_tokens,
        qualified=qualified,
    )
    if is_function:
        declaration.function = name
        return declaration

    declaration.names.append(name)
    for segment in segments[1:]:
        extra, _, _ = _declared_name(context, segment)
        if extra is not None:
            declaration.names.append(extra)
    return declaration


def _declarations(context: FileContext) -> list[Declaration]:
    structure = context.structure
    result = []
    for statement in structure.statements:
        frame = structure.frames[statement.frame]
        if frame.kind not in DECLARATION_SCOPES:
            continue
        declaration = _parse_declaration(context, frame, statement)
        if declaration is not None:
            result.append(declaration)
    return result


def declarations(context: FileContext) -> list[Declaration]:
    return context.memo("declarations", lambda: _declarations(context))


def _to_upper_snake(name: str) -> str:
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name)
    return spaced.upper()


def _capitalized(name: str) -> str:
    return name[:1].upper() + name[1:]


def _is_primitive_const(context: FileContext, declaration: Declaration) -> bool:
    tokens = context.tokens
    if not declaration.specifiers & {"const", "constexpr"}:
        return False
    for k in declaration.type_tokens:
        token = tokens[k]
        if token.kind is TokenKind.KEYWORD:
            if token.text not in TYPE_KEYWORDS and token.text not in DECL_SPECIFIERS:
                return False
        elif token.kind is TokenKind.IDENTIFIER:
            if token.text != "std" and not STANDARD_TYPEDEF.match(token.text):
                return False
        elif not token.is_punct("::"):
            return False
    return True


@register_rule
class NamespaceNamingRule:
    rule_id = "R-NAMING-NAMESPACE"
    priority = 150
    severity = Severity.STYLE
    fixable = False
    description = "namespace names are UPPER_CASE"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.config.naming_allowed(context.source.path):
            return
        tokens = context.tokens
        structure = context.structure
        for frame in structure.frames:
            if frame.kind is not FrameKind.NAMESPACE or frame.control == "linkage":
                continue
            if frame.header_index is None:
                continue
            for k in range(frame.header_index + 1, frame.open_index):
                token = tokens[k]
                if token.kind is not TokenKind.IDENTIFIER:
                    continue
                if UPPER_NAME.match(token.text):
                    continue
                yield context.diagnostic(
                    self,
                    k,
                    f"namespace '{token.text}' must be upper case "
                    f"('{_to_upper_snake(token.text)}')",
                )


@register_rule
class ClassNamingRule:
    """R-NAMING-CLASS: CClass, IInterface, EnumType and ENUMERATOR names.

    A class is an interface when its name already starts with ``I`` plus an
    upper case letter, or when every member it declares is pure virtual.
    """

    rule_id = "R-NAMING-CLASS"
    priority = 155
    severity = Severity.STYLE
    fixable = False
    description = "class names start with C, interfaces with I; enums are CamelCase"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.config.naming_allowed(context.source.path):
            return
        tokens = context.tokens
        for frame in context.structure.frames:
            if frame.name_index is None or frame.name is None:
                continue
            if frame.kind is FrameKind.CLASS:
                yield from self._check_class(context, frame)
            elif frame.kind is FrameKind.ENUM:
                if not ENUM_NAME.match(frame.name):
                    yield context.diagnostic(
                        self,
                        frame.name_index,
                        f"enum '{frame.name}' must be CamelCase without prefix",
                    )
        for frame in context.structure.frames:
            if frame.kind is not FrameKind.ENUM:
                continue
            for k in self._enumerators(context, frame):
                if not ENUMERATOR_NAME.match(tokens[k].text):
                    yield context.diagnostic(
                        self,
                        k,
                        f"enumerator '{tokens[k].text}' must be upper case "
                        f"('{_to_upper_snake(tokens[k].text)}')",
                        sub=1,
                    )

    def _check_class(self, context: FileContext, frame: Frame) -> Iterator[Diagnostic]:
        name = frame.name
        assert name is not None and frame.name_index is not None
        if INTERFACE_NAME.match(name) or self._is_interface(context, frame):
            if not INTERFACE_NAME.match(name):
                yield context.diagnostic(
                    self,
                    frame.name_index,
                    f"interface '{name}' must match I[A-Z]... "
                    f"('I{_capitalized(name)}')",
                )
        elif not CLASS_NAME.match(name):
            yield context.diagnostic(
                self,
                frame.name_index,
                f"class '{name}' must match C[A-Z]... ('C{_capitalized(name)}')",
            )

    def _is_interface(self, context: FileContext, frame: Frame) -> bool:
        tokens = context.tokens
        pure = 0
        for statement in context.structure.statements_in(frame.index):
            if statement.label:
                continue
            texts = [tokens[k].text for k in statement.tokens]
            if texts[-3:] == ["=", "0", ";"]:
                pure += 1
            elif "~" not in texts:
                return False
        return pure > 0

    def _enumerators(self, context: FileContext, frame: Frame) -> list[int]:
        tokens = context.tokens
        names = []
        for statement in context.structure.statements_in(frame.index):
            expect_name = True
            depth = 0
            for k in statement.tokens:
                token = tokens[k]
                if token.is_punct("(", "[", "<"):
                    depth += 1
                elif token.is_punct(")", "]", ">"):
                    depth -= 1
                elif depth == 0 and token.is_punct(","):
                    expect_name = True
                    continue
                if expect_name and token.kind is TokenKind.IDENTIFIER:
                    names.append(k)
                expect_name = False
        return names


@register_rule
class MethodNamingRule:
    rule_id = "R-NAMING-METHOD"
    priority = 160
    severity = Severity.STYLE
    fixable = False
    description = "methods and free functions are CamelCase starting upper case"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.config.naming_allowed(context.source.path):
            return
        tokens = context.tokens
        frames = context.structure.frames
        candidates: list[tuple[int, str, str | None]] = []

        for frame in frames:
            if (
                frame.kind is FrameKind.FUNCTION
                and frame.name is not None
                and frame.name_index is not None
            ):
                parts = frame.name.split("::")
                if len(parts) > 1:
                    owner = parts[-2]
                else:
                    owner = self._class_name(context, frame)
                candidates.append((frame.name_index, parts[-1], owner))
        for declaration in declarations(context):
            function = declaration.function
            if function is None or declaration.frame.kind is not FrameKind.CLASS:
                continue
            candidates.append(
                (function, tokens[function].text, declaration.frame.name)
            )

        for index, name, owner in candidates:
            if self._exempt(name, owner):
                continue
            yield context.diagnostic(
                self,
                index,
                f"function '{name}' must start with an upper case letter "
                f"('{_capitalized(name)}')",
            )

    def _class_name(self, context: FileContext, frame: Frame) -> str | None:
        if frame.parent is None:
            return None
        parent = context.structure.frames[frame.parent]
        return parent.name if parent.kind is FrameKind.CLASS else None

    def _exempt(self, name: str, owner: str | None) -> bool:
        return (
            name[:1].isupper()
            or name.startswith("~")
            or name == "operator"
            or name == owner
            or name == "main"
            or name in CONTAINER_METHODS
            or bool(MACRO_NAME.match(name))
        )


@register_rule
class MemberNamingRule:
    """R-NAMING-MEMBER: ``m_`` for data members, ``g_`` for globals.

    Every global variable additionally gets a warning: the guidelines
    discourage them whatever their name. ``extern`` declarations, qualified
    definitions of static members and constants are not globals in this
    sense; constants are R-NAMING-CONST's business.
    """

    rule_id = "R-NAMING-MEMBER"
    priority = 165
    severity = Severity.STYLE
    fixable = False
    description = "data members are prefixed m_, globals g_ (and discouraged)"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.config.naming_allowed(context.source.path):
            return
        tokens = context.tokens
        for declaration in declarations(context):
            if not declaration.names:
                continue
            constant = bool(declaration.specifiers & {"const", "constexpr"})
            if declaration.frame.kind is FrameKind.CLASS:
                for k in declaration.names:
                    name = tokens[k].text
                    if name.startswith("m_"):
                        continue
                    static = "static" in declaration.specifiers
                    if constant and static and UPPER_NAME.match(name):
                        continue
                    yield context.diagnostic(
                        self,
                        k,
                        f"data member '{name}' must be prefixed with 'm_' ('m_{name}')",
                    )
                continue

            if "extern" in declaration.specifiers or declaration.qualified or constant:
                continue
            for k in declaration.names:
                name = tokens[k].text
                if not name.startswith("g_"):
                    yield context.diagnostic(
                        self,
                        k,
                        f"global variable '{name}' must be prefixed with 'g_' "
                        f"('g_{name}')",
                        sub=0,
                    )
                yield context.diagnostic(
                    self,
                    k,
                    f"global variable '{name}' is discouraged",
                    sub=1,
                    severity=Severity.WARNING,
                )


@register_rule
class ConstNamingRule:
    rule_id = "R-NAMING-CONST"
    priority = 170
    severity = Severity.STYLE
    fixable = False
    description = "file-scope primitive constants are UPPER_CASE"

    def check(self, context: FileContext) -> Iterator[Diagnostic]:
        if context.config.naming_allowed(context.source.path):
            return
        tokens = context.tokens
        for declaration in declarations(context):
            if declaration.frame.kind is FrameKind.CLASS or declaration.qualified:
                continue
            if not declaration.names or not _is_primitive_const(context, declaration):
                continue
            for k in declaration.names:
                name = tokens[k].text
                if not UPPER_NAME.match(name):
                    yield context.diagnostic(
                        self,
                        k,
                        f"constant '{name}' must be upper case "
                        f"('{_to_upper_snake(name)}')",
                    )
