"""Type resolution: named type references must point backwards in the file.

There is no second pass. A struct field, argument or result value may name a
struct or enum only if that type was declared earlier in the same spec file.
A struct may hold a list of itself ([self] is size-erased) but not itself.
Primitive names are left for backends to interpret.
"""

from __future__ import annotations

from .errors import UnknownType
from .ir import (
    PRIMITIVE_TYPES,
    EnumDef,
    FunctionSpec,
    ListOf,
    Loc,
    ResultClause,
    SendSpec,
    StructDef,
    TypeName,
    TypeRef,
    leaf_names,
)
from .normalize import Record


class TypeScope:
    """Struct and enum aliases declared so far."""

    def __init__(self) -> None:
        self.structs: set[str] = set()
        self.enums: set[str] = set()

    def declare(self, record: StructDef | EnumDef) -> None:
        if isinstance(record, StructDef):
            self.structs.add(record.alias)
        else:
            self.enums.add(record.alias)

    def knows(self, name: str) -> bool:
        return name in PRIMITIVE_TYPES or name in self.structs or name in self.enums

    def check(self, typ: TypeRef, used_in: str, loc: Loc) -> None:
        for name in leaf_names(typ):
            if not self.knows(name):
                raise UnknownType(name, used_in, loc.line, loc.col)


def _resolve_struct(scope: TypeScope, struct: StructDef) -> None:
    for field in struct.fields:
        used_in = "field '" + field.name + "' of struct '" + struct.alias + "'"
        typ = field.type
        if isinstance(typ, ListOf) and typ.element == TypeName(struct.alias):
            continue
        scope.check(typ, used_in, struct.loc)


def _resolve_clause(scope: TypeScope, clause: ResultClause, used_in: str, loc: Loc) -> None:
    for item in clause.values():
        scope.check(item.type, "result '" + item.name + "' of " + used_in, loc)


def _resolve_function(scope: TypeScope, fun: FunctionSpec) -> None:
    for arg in fun.args:
        scope.check(arg.type, "argument '" + arg.name + "' of function '" + fun.name + "'", fun.loc)
    for clause in fun.results:
        _resolve_clause(scope, clause, "function '" + fun.name + "'", fun.loc)


def resolve_types(records: list[Record]) -> list[Record]:
    """Check every type reference in file order. Returns records unchanged."""
    scope = TypeScope()
    for record in records:
        if isinstance(record, StructDef):
            _resolve_struct(scope, record)
            scope.declare(record)
        elif isinstance(record, EnumDef):
            scope.declare(record)
        elif isinstance(record, FunctionSpec):
            _resolve_function(scope, record)
        elif isinstance(record, SendSpec):
            _resolve_clause(scope, record.clause, "sends", record.loc)
    return records
