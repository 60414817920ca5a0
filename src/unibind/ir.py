"""unibind IR - the resolved description of one module's native interface.

Architecture:
    Spec source -> parse -> collect -> normalize -> resolve -> index -> [Specs] -> Backend

The IR is built once per spec file and consumed read-only by backends. All
nodes are frozen dataclasses over tuples, so two compilations of the same
declarations compare equal and hash alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


# ============================================================
# SOURCE LOCATIONS
# ============================================================


@dataclass(frozen=True)
class Loc:
    """Position of the declaration a record came from. line 0 = unknown."""

    line: int
    col: int


def loc_unknown() -> Loc:
    return Loc(0, 0)


# ============================================================
# TYPES
# ============================================================


@dataclass(frozen=True)
class TypeRef:
    """Base for type references. Abstract."""


@dataclass(frozen=True)
class TypeName(TypeRef):
    """Leaf type: a primitive name or a previously declared struct/enum alias.

    Primitive names are opaque here; backends decide what they mean.
    """

    name: str


@dataclass(frozen=True)
class ListOf(TypeRef):
    """[T]: a homogeneous list. Size-erased, so [self] in a struct is legal."""

    element: TypeRef


@dataclass(frozen=True)
class LabelType(TypeRef):
    """Pseudo-type of a literal symbolic tag inside a result clause.

    A label carries no payload: the symbol is written verbatim into the
    accessor name and into the constructed return value.
    """


LABEL = LabelType()

LABEL_TYPE_NAME = "label"

PRIMITIVE_TYPES: frozenset[str] = frozenset(
    {
        "atom",
        "bool",
        "int",
        "unsigned",
        "long",
        "int64",
        "uint64",
        "float",
        "string",
        "pid",
        "payload",
        "state",
    }
)


def leaf_names(typ: TypeRef) -> list[str]:
    """Leaf type names referenced by typ, outermost first."""
    if isinstance(typ, TypeName):
        return [typ.name]
    if isinstance(typ, ListOf):
        return leaf_names(typ.element)
    return []


def type_to_str(typ: TypeRef) -> str:
    if isinstance(typ, TypeName):
        return typ.name
    if isinstance(typ, ListOf):
        return "[" + type_to_str(typ.element) + "]"
    if isinstance(typ, LabelType):
        return LABEL_TYPE_NAME
    return "?"


# ============================================================
# FUNCTIONS
# ============================================================


@dataclass(frozen=True)
class Arg:
    """Function argument. `name` alone means type == name; `[name]` means [name]."""

    name: str
    type: TypeRef


@dataclass(frozen=True)
class ResultItem:
    """One element of a result clause.

    Invariants:
    - label is not None iff type is LABEL, and then label == name
    """

    label: str | None
    name: str
    type: TypeRef

    @property
    def is_label(self) -> bool:
        return self.label is not None


@dataclass(frozen=True)
class ResultGroup:
    """A nested tuple inside a clause: {:error :: label, {:recoverable :: label, n :: int}}."""

    items: tuple[ResultItem | ResultGroup, ...]


ClauseItem = ResultItem | ResultGroup


def flatten_items(items: tuple[ClauseItem, ...]) -> list[ResultItem]:
    """Depth-first, declaration-order list of the leaf items of a clause."""
    result: list[ResultItem] = []
    for item in items:
        if isinstance(item, ResultGroup):
            result.extend(flatten_items(item.items))
        else:
            result.append(item)
    return result


@dataclass(frozen=True)
class ResultClause:
    """One alternative return shape of a function.

    accessor_name is empty until the result-clause indexer derives it as
    <function>_result_<labels joined by _>.
    """

    items: tuple[ClauseItem, ...]
    accessor_name: str = ""

    def flat_items(self) -> list[ResultItem]:
        return flatten_items(self.items)

    def labels(self) -> list[str]:
        return [i.label for i in self.flat_items() if i.label is not None]

    def values(self) -> list[ResultItem]:
        """Typed output values: the accessor's parameters, in order."""
        return [i for i in self.flat_items() if not i.is_label]


@dataclass(frozen=True)
class FunctionSpec:
    """A native function. Backends prepend one runtime-context argument.

    Invariants:
    - arity == len(args)
    - (name, arity) is unique within a module
    """

    name: str
    args: tuple[Arg, ...]
    results: tuple[ResultClause, ...]
    loc: Loc = loc_unknown()

    @property
    def arity(self) -> int:
        return len(self.args)


# ============================================================
# TYPE DEFINITIONS
# ============================================================


@dataclass(frozen=True)
class StructField:
    name: str
    type: TypeRef


@dataclass(frozen=True)
class StructDef:
    """A struct type. Field order fixes native layout and access order."""

    alias: str
    backing_name: str
    fields: tuple[StructField, ...]
    loc: Loc = loc_unknown()


@dataclass(frozen=True)
class EnumDef:
    """An enum type. Variant order fixes the integer encoding."""

    alias: str
    variants: tuple[str, ...]
    loc: Loc = loc_unknown()


# ============================================================
# MODULE-LEVEL ENTRIES
# ============================================================

DirtyKind = Literal["cpu", "io"]
Hook = Literal["load", "upgrade", "unload", "main"]

DIRTY_KINDS: tuple[str, ...] = ("cpu", "io")
HOOKS: tuple[str, ...] = ("load", "upgrade", "unload", "main")


@dataclass(frozen=True)
class DirtyEntry:
    function_name: str
    arity: int
    kind: DirtyKind


@dataclass(frozen=True)
class CallbackEntry:
    hook: Hook
    function_name: str


@dataclass(frozen=True)
class SendSpec:
    """The one outbound message shape; function_name is send_<labels joined by _>."""

    clause: ResultClause
    function_name: str = ""
    loc: Loc = loc_unknown()


# ============================================================
# ROOT
# ============================================================


@dataclass(frozen=True)
class Specs:
    """The fully resolved native interface of one spec file.

    interface is None, a single tag, or a non-empty tuple of tags.
    """

    name: str
    module: str
    interface: str | tuple[str, ...] | None
    state_type: str | None
    functions: tuple[FunctionSpec, ...]
    structs: tuple[StructDef, ...]
    enums: tuple[EnumDef, ...]
    dirty: tuple[DirtyEntry, ...]
    callbacks: tuple[CallbackEntry, ...]
    sends: SendSpec | None

    def interfaces(self) -> list[str]:
        if self.interface is None:
            return []
        if isinstance(self.interface, str):
            return [self.interface]
        return list(self.interface)

    def dirty_kind(self, name: str, arity: int) -> str | None:
        for entry in self.dirty:
            if entry.function_name == name and entry.arity == arity:
                return entry.kind
        return None

    def callback(self, hook: str) -> str | None:
        for entry in self.callbacks:
            if entry.hook == hook:
                return entry.function_name
        return None

    def struct(self, alias: str) -> StructDef | None:
        for s in self.structs:
            if s.alias == alias:
                return s
        return None

    def enum(self, alias: str) -> EnumDef | None:
        for e in self.enums:
            if e.alias == alias:
                return e
        return None
