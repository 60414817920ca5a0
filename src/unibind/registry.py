"""Specs registry assembly: fold one file's records into the Specs IR."""

from __future__ import annotations

from .errors import DuplicateFunction, DuplicateTypeAlias, MalformedDeclaration
from .ir import (
    CallbackEntry,
    DirtyEntry,
    EnumDef,
    FunctionSpec,
    SendSpec,
    Specs,
    StructDef,
)
from .normalize import (
    CallbackDecl,
    DirtyDecl,
    InterfaceDecl,
    ModuleDecl,
    Record,
    StateTypeDecl,
)


class SpecsBuilder:
    """Mutable accumulator for one spec file, frozen by build().

    Functions must be unique by (name, arity) and type aliases unique across
    structs and enums. Dirty entries, callbacks, sends, module, interface and
    state_type are last-write-wins.
    """

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.module: str | None = None
        self.interface: str | tuple[str, ...] | None = None
        self.state_type: str | None = None
        self.functions: list[FunctionSpec] = []
        self.structs: list[StructDef] = []
        self.enums: list[EnumDef] = []
        self.dirty: dict[tuple[str, int], DirtyEntry] = {}
        self.callbacks: dict[str, CallbackEntry] = {}
        self.sends: SendSpec | None = None
        self._signatures: set[tuple[str, int]] = set()
        self._aliases: set[str] = set()

    def add(self, record: Record) -> None:
        if isinstance(record, ModuleDecl):
            self.module = record.name
        elif isinstance(record, InterfaceDecl):
            self.interface = record.interface
        elif isinstance(record, StateTypeDecl):
            self.state_type = record.name
        elif isinstance(record, FunctionSpec):
            key = (record.name, record.arity)
            if key in self._signatures:
                raise DuplicateFunction(record.name, record.arity, record.loc.line, record.loc.col)
            self._signatures.add(key)
            self.functions.append(record)
        elif isinstance(record, StructDef) or isinstance(record, EnumDef):
            if record.alias in self._aliases:
                raise DuplicateTypeAlias(record.alias, record.loc.line, record.loc.col)
            self._aliases.add(record.alias)
            if isinstance(record, StructDef):
                self.structs.append(record)
            else:
                self.enums.append(record)
        elif isinstance(record, DirtyDecl):
            for entry in record.entries:
                self.dirty[(entry.function_name, entry.arity)] = entry
        elif isinstance(record, CallbackDecl):
            self.callbacks[record.entry.hook] = record.entry
        elif isinstance(record, SendSpec):
            self.sends = record
        else:
            raise TypeError("unexpected record " + type(record).__name__)

    def build(self) -> Specs:
        if self.module is None:
            raise MalformedDeclaration("module", "missing module declaration in '" + self.name + "'")
        return Specs(
            name=self.name,
            module=self.module,
            interface=self.interface,
            state_type=self.state_type,
            functions=tuple(self.functions),
            structs=tuple(self.structs),
            enums=tuple(self.enums),
            dirty=tuple(self.dirty.values()),
            callbacks=tuple(self.callbacks.values()),
            sends=self.sends,
        )


def build_specs(name: str, records: list[Record]) -> Specs:
    builder = SpecsBuilder(name)
    for record in records:
        builder.add(record)
    return builder.build()
