"""Declaration collection: top-level statements → ordered declaration records."""

from __future__ import annotations

from dataclasses import dataclass

from .ast import Pos, SCall, SExpr, SModule, to_source
from .errors import MalformedDeclaration


@dataclass
class Declaration:
    """An untyped declaration: the command name and its raw arguments."""

    kind: str
    payload: list[SExpr]
    pos: Pos


class DeclarationCollector:
    """Accumulates declarations of one spec file in file order."""

    def __init__(self) -> None:
        self.declarations: list[Declaration] = []

    def add(self, stmt: SExpr) -> None:
        if not isinstance(stmt, SCall):
            raise MalformedDeclaration(
                "declaration", to_source(stmt), stmt.pos.line, stmt.pos.col
            )
        self.declarations.append(Declaration(stmt.name, list(stmt.args), stmt.pos))


def collect_declarations(module: SModule) -> list[Declaration]:
    collector = DeclarationCollector()
    for stmt in module.statements:
        collector.add(stmt)
    return collector.declarations
