"""Serialization of syntax trees, declarations and IR to JSON-compatible dicts."""

from __future__ import annotations

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
    SModule,
    SString,
    SStruct,
    STuple,
)
from .collect import Declaration
from .ir import (
    Arg,
    CallbackEntry,
    DirtyEntry,
    EnumDef,
    FunctionSpec,
    LabelType,
    ListOf,
    Loc,
    ResultClause,
    ResultGroup,
    ResultItem,
    SendSpec,
    Specs,
    StructDef,
    StructField,
    TypeName,
)
from .normalize import CallbackDecl, DirtyDecl, InterfaceDecl, ModuleDecl, StateTypeDecl


def serialize(obj: object) -> object:
    """Recursively serialize an object to a JSON-compatible structure."""
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): serialize(v) for k, v in obj.items()}
    if isinstance(obj, SModule):
        return {"_type": "Module", "statements": serialize(obj.statements)}
    if isinstance(obj, SExpr):
        return _serialize_syntax(obj)
    if isinstance(obj, Declaration):
        return {"kind": obj.kind, "payload": serialize(obj.payload), "line": obj.pos.line}
    return _serialize_ir(obj)


def _serialize_syntax(obj: SExpr) -> dict[str, object]:
    if isinstance(obj, SIdent):
        return {"_type": "Ident", "name": obj.name}
    if isinstance(obj, SAlias):
        return {"_type": "Alias", "name": obj.name}
    if isinstance(obj, SAtom):
        return {"_type": "Atom", "value": obj.value}
    if isinstance(obj, SString):
        return {"_type": "String", "value": obj.value}
    if isinstance(obj, SInt):
        return {"_type": "Int", "value": obj.value}
    if isinstance(obj, SCall):
        return {
            "_type": "Call",
            "name": obj.name,
            "args": serialize(obj.args),
            "parens": obj.parens,
        }
    if isinstance(obj, SBinOp):
        return {
            "_type": "BinOp",
            "op": obj.op,
            "left": serialize(obj.left),
            "right": serialize(obj.right),
        }
    if isinstance(obj, STuple):
        return {"_type": "Tuple", "items": serialize(obj.items)}
    if isinstance(obj, SList):
        return {"_type": "List", "items": serialize(obj.items)}
    if isinstance(obj, SKeyword):
        return {"_type": "Keyword", "key": obj.key, "value": serialize(obj.value)}
    if isinstance(obj, SStruct):
        return {
            "_type": "Struct",
            "alias": obj.alias.name,
            "fields": serialize(obj.fields),
        }
    raise TypeError("cannot serialize " + type(obj).__name__)


def _serialize_ir(obj: object) -> object:
    """Serialize IR records via isinstance dispatch."""
    if isinstance(obj, TypeName):
        return obj.name
    if isinstance(obj, ListOf):
        return {"list": serialize(obj.element)}
    if isinstance(obj, LabelType):
        return "label"
    if isinstance(obj, Loc):
        return {"line": obj.line, "col": obj.col}
    if isinstance(obj, Arg):
        return {"name": obj.name, "type": serialize(obj.type)}
    if isinstance(obj, ResultItem):
        return {"label": obj.label, "name": obj.name, "type": serialize(obj.type)}
    if isinstance(obj, ResultGroup):
        return {"group": serialize(obj.items)}
    if isinstance(obj, ResultClause):
        return {"accessor": obj.accessor_name, "items": serialize(obj.items)}
    if isinstance(obj, FunctionSpec):
        return {
            "_type": "Function",
            "name": obj.name,
            "arity": obj.arity,
            "args": serialize(obj.args),
            "results": serialize(obj.results),
        }
    if isinstance(obj, StructField):
        return {"name": obj.name, "type": serialize(obj.type)}
    if isinstance(obj, StructDef):
        return {
            "_type": "Struct",
            "alias": obj.alias,
            "backing_name": obj.backing_name,
            "fields": serialize(obj.fields),
        }
    if isinstance(obj, EnumDef):
        return {"_type": "Enum", "alias": obj.alias, "variants": serialize(obj.variants)}
    if isinstance(obj, DirtyEntry):
        return {"function": obj.function_name, "arity": obj.arity, "kind": obj.kind}
    if isinstance(obj, CallbackEntry):
        return {"hook": obj.hook, "function": obj.function_name}
    if isinstance(obj, SendSpec):
        return {
            "_type": "Sends",
            "function": obj.function_name,
            "items": serialize(obj.clause.items),
        }
    if isinstance(obj, ModuleDecl):
        return {"_type": "Module", "name": obj.name}
    if isinstance(obj, InterfaceDecl):
        return {"_type": "Interface", "interface": serialize(obj.interface)}
    if isinstance(obj, StateTypeDecl):
        return {"_type": "StateType", "name": obj.name}
    if isinstance(obj, DirtyDecl):
        return {"_type": "Dirty", "entries": serialize(obj.entries)}
    if isinstance(obj, CallbackDecl):
        return {"_type": "Callback", "hook": obj.entry.hook, "function": obj.entry.function_name}
    if isinstance(obj, Specs):
        return specs_to_dict(obj)
    raise TypeError("cannot serialize " + type(obj).__name__)


def specs_to_dict(specs: Specs) -> dict[str, object]:
    return {
        "name": specs.name,
        "module": specs.module,
        "interface": serialize(specs.interface),
        "state_type": specs.state_type,
        "functions": serialize(specs.functions),
        "structs": serialize(specs.structs),
        "enums": serialize(specs.enums),
        "dirty": serialize(specs.dirty),
        "callbacks": serialize(specs.callbacks),
        "sends": serialize(specs.sends),
    }


# --- JSON text (keys keep insertion order) ---


def _json_escape(s: str) -> str:
    out: list[str] = []
    for c in s:
        if c == "\\":
            out.append("\\\\")
        elif c == '"':
            out.append('\\"')
        elif c == "\n":
            out.append("\\n")
        elif c == "\r":
            out.append("\\r")
        elif c == "\t":
            out.append("\\t")
        elif c < " ":
            out.append("\\u%04x" % ord(c))
        else:
            out.append(c)
    return "".join(out)


def _to_json(obj: object, level: int) -> str:
    if obj is None:
        return "null"
    if isinstance(obj, bool):
        return "true" if obj else "false"
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, str):
        return '"' + _json_escape(obj) + '"'
    pad = "  " * (level + 1)
    pad_close = "  " * level
    if isinstance(obj, list):
        if len(obj) == 0:
            return "[]"
        parts = [pad + _to_json(v, level + 1) for v in obj]
        return "[\n" + ",\n".join(parts) + "\n" + pad_close + "]"
    if isinstance(obj, dict):
        if len(obj) == 0:
            return "{}"
        parts = [
            pad + '"' + _json_escape(str(k)) + '": ' + _to_json(v, level + 1)
            for k, v in obj.items()
        ]
        return "{\n" + ",\n".join(parts) + "\n" + pad_close + "}"
    return '"<unserializable>"'


def to_json(obj: object) -> str:
    """Serialize a phase result to pretty-printed JSON."""
    return _to_json(serialize(obj), 0)
