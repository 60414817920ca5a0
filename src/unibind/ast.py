"""Spec syntax tree: generic tagged expression nodes produced by the parser.

The parser knows nothing about declaration kinds. A spec file is a list of
top-level expressions; the collector and normalizer give them meaning.
"""

from __future__ import annotations

from dataclasses import dataclass


# ============================================================
# POSITION
# ============================================================


@dataclass
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass
class SExpr:
    """Base for all syntax nodes."""

    pos: Pos


@dataclass
class SIdent(SExpr):
    """Lowercase identifier: int, in_list, my_struct."""

    name: str


@dataclass
class SAlias(SExpr):
    """Capitalized, possibly dotted name: NIF, My.Struct."""

    parts: list[str]

    @property
    def name(self) -> str:
        return ".".join(self.parts)


@dataclass
class SAtom(SExpr):
    """:ok"""

    value: str


@dataclass
class SString(SExpr):
    value: str


@dataclass
class SInt(SExpr):
    value: int


@dataclass
class SCall(SExpr):
    """name(args) or a parenthesis-free command: name arg, arg."""

    name: str
    args: list[SExpr]
    parens: bool


@dataclass
class SBinOp(SExpr):
    """left :: right, left | right."""

    op: str
    left: SExpr
    right: SExpr


@dataclass
class STuple(SExpr):
    """{a, b, ...}"""

    items: list[SExpr]


@dataclass
class SList(SExpr):
    """[a, b, ...]"""

    items: list[SExpr]


@dataclass
class SKeyword(SExpr):
    """key: value"""

    key: str
    value: SExpr


@dataclass
class SStruct(SExpr):
    """%My.Struct{field: type, ...}"""

    alias: SAlias
    fields: list[SKeyword]


@dataclass
class SModule:
    """One parsed spec file: top-level expressions in file order."""

    statements: list[SExpr]


# ============================================================
# RENDERING
# ============================================================


def _join(items: list[SExpr]) -> str:
    return ", ".join(to_source(item) for item in items)


def to_source(node: SExpr) -> str:
    """Render a node back to spec syntax, used for error fragments."""
    if isinstance(node, SIdent):
        return node.name
    if isinstance(node, SAlias):
        return node.name
    if isinstance(node, SAtom):
        return ":" + node.value
    if isinstance(node, SString):
        return '"' + node.value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if isinstance(node, SInt):
        return str(node.value)
    if isinstance(node, SCall):
        if node.parens:
            return node.name + "(" + _join(node.args) + ")"
        if len(node.args) == 0:
            return node.name
        return node.name + " " + _join(node.args)
    if isinstance(node, SBinOp):
        return to_source(node.left) + " " + node.op + " " + to_source(node.right)
    if isinstance(node, STuple):
        return "{" + _join(node.items) + "}"
    if isinstance(node, SList):
        return "[" + _join(node.items) + "]"
    if isinstance(node, SKeyword):
        return node.key + ": " + to_source(node.value)
    if isinstance(node, SStruct):
        return "%" + node.alias.name + "{" + _join(list(node.fields)) + "}"
    raise TypeError("cannot render " + type(node).__name__)
