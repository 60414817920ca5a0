"""Grammar normalization: one raw declaration → one canonical record.

Validation here is local to the single declaration. Cross-declaration
invariants (type resolution, accessor uniqueness, duplicate functions and
aliases) are checked by later phases.
"""

from __future__ import annotations

from dataclasses import dataclass

from .ast import (
    SAlias,
    SAtom,
    SBinOp,
    SCall,
    SExpr,
    SIdent,
    SInt,
    SKeyword,
    SList,
    SString,
    SStruct,
    STuple,
    to_source,
)
from .collect import Declaration
from .errors import InvalidDirtyKind, InvalidHook, MalformedDeclaration
from .ir import (
    DIRTY_KINDS,
    HOOKS,
    LABEL,
    LABEL_TYPE_NAME,
    Arg,
    CallbackEntry,
    ClauseItem,
    DirtyEntry,
    EnumDef,
    FunctionSpec,
    ListOf,
    Loc,
    ResultClause,
    ResultGroup,
    ResultItem,
    SendSpec,
    StructDef,
    StructField,
    TypeName,
    TypeRef,
)


# ---------------------------------------------------------------------------
# Records without an IR counterpart of their own
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleDecl:
    name: str
    loc: Loc


@dataclass(frozen=True)
class InterfaceDecl:
    interface: str | tuple[str, ...]
    loc: Loc


@dataclass(frozen=True)
class StateTypeDecl:
    name: str
    loc: Loc


@dataclass(frozen=True)
class DirtyDecl:
    entries: tuple[DirtyEntry, ...]
    loc: Loc


@dataclass(frozen=True)
class CallbackDecl:
    entry: CallbackEntry
    loc: Loc


Record = (
    ModuleDecl
    | InterfaceDecl
    | StateTypeDecl
    | FunctionSpec
    | StructDef
    | EnumDef
    | DirtyDecl
    | CallbackDecl
    | SendSpec
)


def _malformed(kind: str, node: SExpr) -> MalformedDeclaration:
    return MalformedDeclaration(kind, to_source(node), node.pos.line, node.pos.col)


def _decl_malformed(decl: Declaration, detail: str = "") -> MalformedDeclaration:
    fragment = decl.kind
    if len(decl.payload) > 0:
        fragment += " " + ", ".join(to_source(p) for p in decl.payload)
    if detail:
        fragment += " (" + detail + ")"
    return MalformedDeclaration(decl.kind, fragment, decl.pos.line, decl.pos.col)


def _loc(decl: Declaration) -> Loc:
    return Loc(decl.pos.line, decl.pos.col)


def _single(decl: Declaration) -> SExpr:
    if len(decl.payload) != 1:
        raise _decl_malformed(decl, "expected exactly one argument")
    return decl.payload[0]


# ---------------------------------------------------------------------------
# Shared sugar
# ---------------------------------------------------------------------------


def _parse_type(kind: str, node: SExpr) -> TypeRef:
    """int → TypeName(int); [int] → ListOf(int)."""
    if isinstance(node, SIdent):
        return TypeName(node.name)
    if isinstance(node, SList) and len(node.items) == 1 and isinstance(node.items[0], SIdent):
        return ListOf(TypeName(node.items[0].name))
    raise _malformed(kind, node)


def _parse_named(kind: str, node: SExpr) -> tuple[str, TypeRef]:
    """Name/type sugar shared by arguments and result values.

    name :: type, name :: [type], name (type == name), [name] (type == [name]).
    """
    if isinstance(node, SBinOp) and node.op == "::" and isinstance(node.left, SIdent):
        return (node.left.name, _parse_type(kind, node.right))
    if isinstance(node, SIdent):
        return (node.name, TypeName(node.name))
    if isinstance(node, SList) and len(node.items) == 1 and isinstance(node.items[0], SIdent):
        name = node.items[0].name
        return (name, ListOf(TypeName(name)))
    raise _malformed(kind, node)


def _flatten_alternatives(node: SExpr) -> list[SExpr]:
    """a | b | c → [a, b, c], left to right."""
    if isinstance(node, SBinOp) and node.op == "|":
        return _flatten_alternatives(node.left) + _flatten_alternatives(node.right)
    return [node]


def _is_label_type(node: SExpr) -> bool:
    return isinstance(node, SIdent) and node.name == LABEL_TYPE_NAME


# ---------------------------------------------------------------------------
# Result clauses
# ---------------------------------------------------------------------------


def _parse_result_item(kind: str, node: SExpr) -> ClauseItem:
    if isinstance(node, STuple):
        return ResultGroup(tuple(_parse_result_item(kind, child) for child in node.items))
    if isinstance(node, SBinOp) and node.op == "::" and _is_label_type(node.right):
        if not isinstance(node.left, SAtom):
            raise _malformed(kind, node)
        return ResultItem(node.left.value, node.left.value, LABEL)
    name, typ = _parse_named(kind, node)
    return ResultItem(None, name, typ)


def parse_clause(kind: str, node: SExpr) -> ResultClause:
    """A grouping yields one item per child; any other node is a one-item clause."""
    if isinstance(node, STuple):
        items = tuple(_parse_result_item(kind, child) for child in node.items)
        if len(items) == 0:
            raise _malformed(kind, node)
        return ResultClause(items)
    return ResultClause((_parse_result_item(kind, node),))


# ---------------------------------------------------------------------------
# Per-kind rules
# ---------------------------------------------------------------------------


def normalize_function(decl: Declaration) -> FunctionSpec:
    node = _single(decl)
    if not (isinstance(node, SBinOp) and node.op == "::"):
        raise _decl_malformed(decl, "expected name(args) :: results")
    head = node.left
    if isinstance(head, SCall) and head.parens:
        name = head.name
        raw_args = head.args
    elif isinstance(head, SIdent):
        name = head.name
        raw_args = []
    else:
        raise _malformed("spec", head)
    args: list[Arg] = []
    seen: set[str] = set()
    for raw in raw_args:
        arg_name, arg_type = _parse_named("spec", raw)
        if arg_name in seen:
            raise _decl_malformed(decl, "duplicate argument '" + arg_name + "'")
        seen.add(arg_name)
        args.append(Arg(arg_name, arg_type))
    clauses = tuple(parse_clause("spec", c) for c in _flatten_alternatives(node.right))
    return FunctionSpec(name, tuple(args), clauses, _loc(decl))


def _normalize_struct(decl: Declaration, alias: str, body: SStruct) -> StructDef:
    fields: list[StructField] = []
    seen: set[str] = set()
    for kw in body.fields:
        if kw.key in seen:
            raise _decl_malformed(decl, "duplicate field '" + kw.key + "'")
        seen.add(kw.key)
        fields.append(StructField(kw.key, _parse_type("type", kw.value)))
    if len(fields) == 0:
        raise _decl_malformed(decl, "struct needs at least one field")
    return StructDef(alias, body.alias.name, tuple(fields), _loc(decl))


def _normalize_enum(decl: Declaration, alias: str, body: SExpr) -> EnumDef:
    variants: list[str] = []
    for leaf in _flatten_alternatives(body):
        if not isinstance(leaf, SAtom):
            raise _malformed("type", leaf)
        variants.append(leaf.value)
    return EnumDef(alias, tuple(variants), _loc(decl))


def normalize_type(decl: Declaration) -> StructDef | EnumDef:
    node = _single(decl)
    if not (isinstance(node, SBinOp) and node.op == "::" and isinstance(node.left, SIdent)):
        raise _decl_malformed(decl, "expected alias :: definition")
    alias = node.left.name
    body = node.right
    if isinstance(body, SStruct):
        return _normalize_struct(decl, alias, body)
    if isinstance(body, SAtom) or (isinstance(body, SBinOp) and body.op == "|"):
        return _normalize_enum(decl, alias, body)
    raise _malformed("type", body)


def normalize_dirty(decl: Declaration) -> DirtyDecl:
    if len(decl.payload) != 2:
        raise _decl_malformed(decl, "expected kind, function: arity, ...")
    kind_node, funs = decl.payload
    if not isinstance(kind_node, SAtom):
        raise _malformed("dirty", kind_node)
    if kind_node.value not in DIRTY_KINDS:
        raise InvalidDirtyKind(kind_node.value, kind_node.pos.line, kind_node.pos.col)
    if not isinstance(funs, SList):
        raise _malformed("dirty", funs)
    entries: list[DirtyEntry] = []
    for item in funs.items:
        if not (isinstance(item, SKeyword) and isinstance(item.value, SInt)):
            raise _malformed("dirty", item)
        entries.append(DirtyEntry(item.key, item.value.value, kind_node.value))
    return DirtyDecl(tuple(entries), _loc(decl))


def normalize_callback(decl: Declaration) -> CallbackDecl:
    if len(decl.payload) < 1 or len(decl.payload) > 2:
        raise _decl_malformed(decl, "expected hook and optional function name")
    hook_node = decl.payload[0]
    if not isinstance(hook_node, SAtom):
        raise _malformed("callback", hook_node)
    if hook_node.value not in HOOKS:
        raise InvalidHook(hook_node.value, hook_node.pos.line, hook_node.pos.col)
    function_name = "handle_" + hook_node.value
    if len(decl.payload) == 2:
        fun_node = decl.payload[1]
        if isinstance(fun_node, SAtom):
            function_name = fun_node.value
        elif isinstance(fun_node, SIdent):
            function_name = fun_node.name
        else:
            raise _malformed("callback", fun_node)
    return CallbackDecl(CallbackEntry(hook_node.value, function_name), _loc(decl))


def normalize_sends(decl: Declaration) -> SendSpec:
    node = _single(decl)
    if isinstance(node, SBinOp) and node.op == "|":
        raise _decl_malformed(decl, "sends takes a single clause")
    return SendSpec(parse_clause("sends", node), "", _loc(decl))


def normalize_module(decl: Declaration) -> ModuleDecl:
    node = _single(decl)
    if not isinstance(node, SAlias):
        raise _malformed("module", node)
    return ModuleDecl(node.name, _loc(decl))


def _interface_tag(node: SExpr) -> str:
    if isinstance(node, SAlias):
        return node.name
    if isinstance(node, SAtom):
        return node.value
    raise _malformed("interface", node)


def normalize_interface(decl: Declaration) -> InterfaceDecl:
    node = _single(decl)
    if isinstance(node, SList):
        if len(node.items) == 0:
            raise _decl_malformed(decl, "interface list is empty")
        return InterfaceDecl(tuple(_interface_tag(i) for i in node.items), _loc(decl))
    return InterfaceDecl(_interface_tag(node), _loc(decl))


def normalize_state_type(decl: Declaration) -> StateTypeDecl:
    node = _single(decl)
    if isinstance(node, SString):
        return StateTypeDecl(node.value, _loc(decl))
    if isinstance(node, SAlias) or isinstance(node, SIdent):
        return StateTypeDecl(node.name, _loc(decl))
    raise _malformed("state_type", node)


NORMALIZERS = {
    "module": normalize_module,
    "interface": normalize_interface,
    "state_type": normalize_state_type,
    "spec": normalize_function,
    "type": normalize_type,
    "dirty": normalize_dirty,
    "callback": normalize_callback,
    "sends": normalize_sends,
}


def normalize_declaration(decl: Declaration) -> Record:
    rule = NORMALIZERS.get(decl.kind)
    if rule is None:
        raise _decl_malformed(decl, "unknown declaration kind")
    return rule(decl)


def normalize_declarations(decls: list[Declaration]) -> list[Record]:
    return [normalize_declaration(d) for d in decls]
