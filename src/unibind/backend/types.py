"""C representations of spec types, shared by the NIF and CNode backends.

| Spec type | C type            | Notes                                   |
|-----------|-------------------|-----------------------------------------|
| atom      | char *            | owned copy, freed after the call        |
| bool      | int               |                                         |
| int       | int               |                                         |
| unsigned  | unsigned int      |                                         |
| long      | long              |                                         |
| int64     | int64_t           |                                         |
| uint64    | uint64_t          |                                         |
| float     | double            |                                         |
| string    | char *            | owned copy, freed after the call        |
| pid       | UnibindPid        |                                         |
| payload   | UnibindPayload *  | released after the call                 |
| state     | State *           | resource owned by the runtime           |
| [T]       | T *, unsigned int | pointer plus <name>_length              |
| struct    | <alias>           | generated typedef and helpers           |
| enum      | <alias>           | generated typedef enum and helpers      |

Templates use {value} for the C lvalue and {term} for the runtime term
(NIF) or nothing (CNode, which reads `in_buff` and writes `out_buff`).
"""

from __future__ import annotations

from dataclasses import dataclass

from ..ir import ListOf, Specs, TypeName, TypeRef, flatten_items


@dataclass(frozen=True)
class BaseType:
    """How one primitive is declared, built, parsed and released."""

    name: str
    c_type: str
    nif_make: str
    nif_get: str
    cnode_encode: str
    cnode_decode: str
    free: str | None = None


BASE_TYPES: dict[str, BaseType] = {
    "atom": BaseType(
        "atom",
        "char *",
        "enif_make_atom(env, {value})",
        "unibind_alloc_and_get_atom(env, {term}, &{value})",
        "ei_x_encode_atom(out_buff, {value})",
        "unibind_cnode_alloc_and_decode_atom(in_buff, &{value})",
        "unibind_free({value})",
    ),
    "bool": BaseType(
        "bool",
        "int",
        'enif_make_atom(env, {value} ? "true" : "false")',
        "unibind_get_bool(env, {term}, &{value})",
        "ei_x_encode_boolean(out_buff, {value})",
        "unibind_cnode_decode_bool(in_buff, &{value})",
    ),
    "int": BaseType(
        "int",
        "int",
        "enif_make_int(env, {value})",
        "enif_get_int(env, {term}, &{value})",
        "ei_x_encode_long(out_buff, (long){value})",
        "unibind_cnode_decode_int(in_buff, &{value})",
    ),
    "unsigned": BaseType(
        "unsigned",
        "unsigned int",
        "enif_make_uint(env, {value})",
        "enif_get_uint(env, {term}, &{value})",
        "ei_x_encode_ulong(out_buff, (unsigned long){value})",
        "unibind_cnode_decode_uint(in_buff, &{value})",
    ),
    "long": BaseType(
        "long",
        "long",
        "enif_make_long(env, {value})",
        "enif_get_long(env, {term}, &{value})",
        "ei_x_encode_long(out_buff, {value})",
        "ei_decode_long(in_buff->buff, in_buff->index, &{value})",
    ),
    "int64": BaseType(
        "int64",
        "int64_t",
        "enif_make_int64(env, {value})",
        "enif_get_int64(env, {term}, (ErlNifSInt64 *)&{value})",
        "ei_x_encode_longlong(out_buff, (long long){value})",
        "unibind_cnode_decode_int64(in_buff, &{value})",
    ),
    "uint64": BaseType(
        "uint64",
        "uint64_t",
        "enif_make_uint64(env, {value})",
        "enif_get_uint64(env, {term}, (ErlNifUInt64 *)&{value})",
        "ei_x_encode_ulonglong(out_buff, (unsigned long long){value})",
        "unibind_cnode_decode_uint64(in_buff, &{value})",
    ),
    "float": BaseType(
        "float",
        "double",
        "enif_make_double(env, {value})",
        "enif_get_double(env, {term}, &{value})",
        "ei_x_encode_double(out_buff, {value})",
        "ei_decode_double(in_buff->buff, in_buff->index, &{value})",
    ),
    "string": BaseType(
        "string",
        "char *",
        "unibind_make_string(env, {value})",
        "unibind_alloc_and_get_string(env, {term}, &{value})",
        "ei_x_encode_binary(out_buff, {value}, strlen({value}))",
        "unibind_cnode_alloc_and_decode_string(in_buff, &{value})",
        "unibind_free({value})",
    ),
    "pid": BaseType(
        "pid",
        "UnibindPid",
        "enif_make_pid(env, &{value})",
        "enif_get_local_pid(env, {term}, &{value})",
        "ei_x_encode_pid(out_buff, &{value})",
        "ei_decode_pid(in_buff->buff, in_buff->index, &{value})",
    ),
    "payload": BaseType(
        "payload",
        "UnibindPayload *",
        "unibind_payload_to_term(env, {value})",
        "unibind_payload_from_term(env, {term}, &{value})",
        "unibind_cnode_encode_payload(out_buff, {value})",
        "unibind_cnode_decode_payload(env, in_buff, &{value})",
        "unibind_payload_release_ptr(&{value})",
    ),
    "state": BaseType(
        "state",
        "State *",
        "unibind_make_resource(env, {value})",
        "enif_get_resource(env, {term}, STATE_RESOURCE_TYPE, (void **)&{value})",
        "unibind_cnode_encode_state(env, out_buff, {value})",
        "unibind_cnode_decode_state(env, in_buff, &{value})",
    ),
}

DEFAULT_STATE_TYPE = "UnibindState"


def enum_constant(alias: str, variant: str) -> str:
    return (alias + "_" + variant).upper()


def length_name(value: str) -> str:
    """Companion length lvalue of a list lvalue: data → data_length."""
    return value + "_length"


def type_key(typ: TypeRef) -> str:
    """Identifier fragment naming a type in generated helper names."""
    if isinstance(typ, TypeName):
        return typ.name
    if isinstance(typ, ListOf):
        return "list_" + type_key(typ.element)
    raise TypeError("no helper name for " + type(typ).__name__)


class TypeMapper:
    """Maps IR types to C declarations for one module."""

    def __init__(self, specs: Specs) -> None:
        self.specs: Specs = specs
        self.struct_names: set[str] = {s.alias for s in specs.structs}
        self.enum_names: set[str] = {e.alias for e in specs.enums}

    def base(self, typ: TypeRef) -> BaseType | None:
        if isinstance(typ, TypeName):
            return BASE_TYPES.get(typ.name)
        return None

    def is_struct(self, typ: TypeRef) -> bool:
        return isinstance(typ, TypeName) and typ.name in self.struct_names

    def is_enum(self, typ: TypeRef) -> bool:
        return isinstance(typ, TypeName) and typ.name in self.enum_names

    def c_type(self, typ: TypeRef) -> str:
        if isinstance(typ, ListOf):
            return self.c_type(typ.element) + " *"
        base = self.base(typ)
        if base is not None:
            return base.c_type
        if isinstance(typ, TypeName):
            return typ.name
        raise TypeError("no C type for " + type(typ).__name__)

    def declare(self, name: str, typ: TypeRef) -> list[str]:
        """Parameter or field declarations; a list contributes its length too."""
        decl = self.c_type(typ)
        sep = "" if decl.endswith("*") else " "
        result = [decl + sep + name]
        if isinstance(typ, ListOf):
            result.append("unsigned int " + length_name(name))
        return result

    def needs_free(self, typ: TypeRef) -> bool:
        if isinstance(typ, ListOf):
            return True
        if self.is_struct(typ):
            return True
        base = self.base(typ)
        return base is not None and base.free is not None

    def free(self, typ: TypeRef, value: str) -> str | None:
        """Statement releasing memory owned by `value`, if any."""
        if isinstance(typ, ListOf):
            return "free_" + type_key(typ) + "(" + value + ", " + length_name(value) + ");"
        if self.is_struct(typ):
            return "free_" + type_key(typ) + "(&" + value + ");"
        base = self.base(typ)
        if base is not None and base.free is not None:
            return base.free.format(value=value) + ";"
        return None

    def state_type(self) -> str:
        if self.specs.state_type is not None:
            return self.specs.state_type
        return DEFAULT_STATE_TYPE

    def list_types(self) -> list[ListOf]:
        """Every distinct list type the module uses, in first-use order."""
        found: list[ListOf] = []

        def visit(typ: TypeRef) -> None:
            if isinstance(typ, ListOf) and typ not in found:
                found.append(typ)

        for struct in self.specs.structs:
            for field in struct.fields:
                visit(field.type)
        for fun in self.specs.functions:
            for arg in fun.args:
                visit(arg.type)
            for clause in fun.results:
                for item in clause.values():
                    visit(item.type)
        if self.specs.sends is not None:
            for item in flatten_items(self.specs.sends.clause.items):
                if not item.is_label:
                    visit(item.type)
        return found
