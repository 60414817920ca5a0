"""NIF backend: Specs → in-process native function glue (erl_nif).

Generated exports parse their arguments into C values, call the hand-written
implementation and release what they allocated. Result accessors and the
send function build terms directly in the caller's environment.
"""

from __future__ import annotations

from ..ir import (
    ClauseItem,
    FunctionSpec,
    ListOf,
    ResultClause,
    ResultGroup,
    StructField,
    TypeRef,
    type_to_str,
)
from .base import NativeBackend, c_string, helper_name, is_bare, pointer_to
from .types import enum_constant

DIRTY_FLAGS: dict[str, str] = {
    "cpu": "ERL_NIF_DIRTY_JOB_CPU_BOUND",
    "io": "ERL_NIF_DIRTY_JOB_IO_BOUND",
}


class NifBackend(NativeBackend):
    """Emit erl_nif glue for one module."""

    name = "NIF"
    runtime_header = "unibind/nif/unibind.h"

    # ============================================================
    # HEADER SECTIONS
    # ============================================================

    def _emit_includes(self) -> None:
        self._line("#include <stdint.h>")
        self._line("#include <stdio.h>")
        self._line("#include <string.h>")
        self._line("#include <erl_nif.h>")

    def _emit_runtime_prototypes(self) -> None:
        self._line("extern ErlNifResourceType *STATE_RESOURCE_TYPE;")
        self._line()
        self._line("State *unibind_alloc_state(UnibindEnv *env);")
        self._line("void unibind_release_state(UnibindEnv *env, State *state);")
        self._line("void handle_destroy_state(UnibindEnv *env, State *state);")
        self._line()

    def _emit_helper_prototypes(self) -> None:
        spec = self._spec()
        types = self._mapper()
        for enum in spec.enums:
            self._line("UNIBIND_TERM make_" + enum.alias + "(UnibindEnv *env, " + enum.alias + " value);")
            self._line(
                "int get_" + enum.alias + "(UnibindEnv *env, UNIBIND_TERM term, " + enum.alias + " *value);"
            )
        for struct in spec.structs:
            alias = struct.alias
            self._line("UNIBIND_TERM make_" + alias + "(UnibindEnv *env, const " + alias + " *value);")
            self._line("int get_" + alias + "(UnibindEnv *env, UNIBIND_TERM term, " + alias + " *value);")
            self._line("void free_" + alias + "(" + alias + " *value);")
        for typ in types.list_types():
            self._line(self._make_list_signature(typ) + ";")
            self._line(self._get_list_signature(typ) + ";")
            self._line(self._free_list_signature(typ) + ";")
        if len(spec.enums) + len(spec.structs) + len(types.list_types()) > 0:
            self._line()

    def _emit_callback_prototypes(self) -> None:
        spec = self._spec()
        load = spec.callback("load")
        upgrade = spec.callback("upgrade")
        unload = spec.callback("unload")
        if load is not None:
            self._line("int " + load + "(UnibindEnv *env, void **priv_data);")
        if upgrade is not None:
            self._line("int " + upgrade + "(UnibindEnv *env, void **priv_data, void **old_priv_data);")
        if unload is not None:
            self._line("void " + unload + "(UnibindEnv *env, void *priv_data);")
        if load is not None or upgrade is not None or unload is not None:
            self._line()

    def _make_list_signature(self, typ: ListOf) -> str:
        elem = self._mapper().c_type(typ.element)
        return (
            "UNIBIND_TERM "
            + helper_name("make", typ)
            + "(UnibindEnv *env, "
            + elem
            + " const *items, unsigned int length)"
        )

    def _get_list_signature(self, typ: ListOf) -> str:
        elem = self._mapper().c_type(typ.element)
        return (
            "int "
            + helper_name("get", typ)
            + "(UnibindEnv *env, UNIBIND_TERM term, "
            + pointer_to(pointer_to(elem))
            + "items, unsigned int *length)"
        )

    def _free_list_signature(self, typ: ListOf) -> str:
        elem = self._mapper().c_type(typ.element)
        return "void " + helper_name("free", typ) + "(" + pointer_to(elem) + "items, unsigned int length)"

    # ============================================================
    # TERM CONSTRUCTION AND PARSING
    # ============================================================

    def _make(self, typ: TypeRef, value: str) -> str:
        """Expression building a term from a C lvalue."""
        types = self._mapper()
        if isinstance(typ, ListOf):
            return helper_name("make", typ) + "(env, " + value + ", " + value + "_length)"
        if types.is_struct(typ):
            return helper_name("make", typ) + "(env, &" + value + ")"
        if types.is_enum(typ):
            return helper_name("make", typ) + "(env, " + value + ")"
        base = types.base(typ)
        assert base is not None
        return base.nif_make.format(value=value)

    def _get(self, typ: TypeRef, term: str, value: str) -> str:
        """Expression parsing a term into a C lvalue; non-zero on success."""
        types = self._mapper()
        if isinstance(typ, ListOf):
            return helper_name("get", typ) + "(env, " + term + ", &" + value + ", &" + value + "_length)"
        if types.is_struct(typ) or types.is_enum(typ):
            return helper_name("get", typ) + "(env, " + term + ", &" + value + ")"
        base = types.base(typ)
        assert base is not None
        return base.nif_get.format(term=term, value=value)

    def _item_term(self, item: ClauseItem) -> str:
        if isinstance(item, ResultGroup):
            return self._tuple_term(item.items)
        if item.label is not None:
            return "enif_make_atom(env, " + c_string(item.label) + ")"
        return self._make(item.type, item.name)

    def _tuple_term(self, items: tuple[ClauseItem, ...]) -> str:
        parts = [self._item_term(i) for i in items]
        return "enif_make_tuple(env, " + str(len(parts)) + ", " + ", ".join(parts) + ")"

    def _clause_term(self, clause: ResultClause) -> str:
        if is_bare(clause.items):
            return self._item_term(clause.items[0])
        return self._tuple_term(clause.items)

    # ============================================================
    # SOURCE
    # ============================================================

    def _emit_source_body(self) -> None:
        spec = self._spec()
        self._line("ErlNifResourceType *STATE_RESOURCE_TYPE;")
        self._line()
        self._emit_state_functions()
        for enum in spec.enums:
            self._emit_enum_helpers(enum.alias, enum.variants)
        for struct in spec.structs:
            self._emit_struct_helpers(struct.alias, struct.backing_name, struct.fields)
        for typ in self._mapper().list_types():
            self._emit_list_helpers(typ)
        for fun in spec.functions:
            for clause in fun.results:
                self._emit_accessor(clause)
        if spec.sends is not None:
            self._emit_send()
        for fun in spec.functions:
            self._emit_export(fun)
        self._emit_function_table()
        self._emit_lifecycle()

    def _emit_state_functions(self) -> None:
        self._open("State *unibind_alloc_state(UnibindEnv *env)")
        self._line("UNIBIND_UNUSED(env);")
        self._line("return (State *)enif_alloc_resource(STATE_RESOURCE_TYPE, sizeof(State));")
        self._close()
        self._line()
        self._open("void unibind_release_state(UnibindEnv *env, State *state)")
        self._line("UNIBIND_UNUSED(env);")
        self._line("enif_release_resource(state);")
        self._close()
        self._line()
        self._open("static void destroy_state(UnibindEnv *env, void *value)")
        self._line("State *state = (State *)value;")
        self._line("handle_destroy_state(env, state);")
        self._close()
        self._line()

    def _emit_enum_helpers(self, alias: str, variants: tuple[str, ...]) -> None:
        self._open("UNIBIND_TERM make_" + alias + "(UnibindEnv *env, " + alias + " value)")
        self._line("switch (value) {")
        for variant in variants:
            self._line("case " + enum_constant(alias, variant) + ":")
            self.indent += 1
            self._line("return enif_make_atom(env, " + c_string(variant) + ");")
            self.indent -= 1
        self._line("}")
        self._line("return enif_make_badarg(env);")
        self._close()
        self._line()
        self._open("int get_" + alias + "(UnibindEnv *env, UNIBIND_TERM term, " + alias + " *value)")
        self._line("char atom[256];")
        self._open("if (!enif_get_atom(env, term, atom, sizeof(atom), ERL_NIF_LATIN1))")
        self._line("return 0;")
        self._close()
        for variant in variants:
            self._open("if (strcmp(atom, " + c_string(variant) + ") == 0)")
            self._line("*value = " + enum_constant(alias, variant) + ";")
            self._line("return 1;")
            self._close()
        self._line("return 0;")
        self._close()
        self._line()

    def _emit_struct_helpers(self, alias: str, backing_name: str, fields: tuple[StructField, ...]) -> None:
        count = str(len(fields) + 1)
        self._open("UNIBIND_TERM make_" + alias + "(UnibindEnv *env, const " + alias + " *value)")
        self._line("UNIBIND_TERM keys[" + count + "];")
        self._line("UNIBIND_TERM values[" + count + "];")
        self._line("UNIBIND_TERM result;")
        self._line('keys[0] = enif_make_atom(env, "__struct__");')
        self._line("values[0] = enif_make_atom(env, " + c_string("Elixir." + backing_name) + ");")
        for i, field in enumerate(fields):
            idx = str(i + 1)
            self._line("keys[" + idx + "] = enif_make_atom(env, " + c_string(field.name) + ");")
            self._line("values[" + idx + "] = " + self._make(field.type, "value->" + field.name) + ";")
        self._line("enif_make_map_from_arrays(env, keys, values, " + count + ", &result);")
        self._line("return result;")
        self._close()
        self._line()
        self._open("int get_" + alias + "(UnibindEnv *env, UNIBIND_TERM term, " + alias + " *value)")
        self._line("UNIBIND_TERM field;")
        for field in fields:
            key = "enif_make_atom(env, " + c_string(field.name) + ")"
            self._open("if (!enif_get_map_value(env, term, " + key + ", &field))")
            self._line("return 0;")
            self._close()
            self._open("if (!" + self._get(field.type, "field", "value->" + field.name) + ")")
            self._line("return 0;")
            self._close()
        self._line("return 1;")
        self._close()
        self._line()
        self._open("void free_" + alias + "(" + alias + " *value)")
        released = False
        for field in fields:
            stmt = self._mapper().free(field.type, "value->" + field.name)
            if stmt is not None:
                self._line(stmt)
                released = True
        if not released:
            self._line("UNIBIND_UNUSED(value);")
        self._close()
        self._line()

    def _emit_list_helpers(self, typ: ListOf) -> None:
        elem = typ.element
        elem_c = self._mapper().c_type(elem)
        self._open(self._make_list_signature(typ))
        self._line("UNIBIND_TERM list = enif_make_list(env, 0);")
        self._open("for (unsigned int i = length; i > 0; i--)")
        self._line("list = enif_make_list_cell(env, " + self._make(elem, "items[i - 1]") + ", list);")
        self._close()
        self._line("return list;")
        self._close()
        self._line()
        self._open(self._get_list_signature(typ))
        self._line("UNIBIND_TERM head;")
        self._line("UNIBIND_TERM tail = term;")
        self._open("if (!enif_get_list_length(env, term, length))")
        self._line("return 0;")
        self._close()
        self._line(
            "*items = ("
            + pointer_to(elem_c)
            + ")unibind_calloc(*length, sizeof("
            + elem_c
            + "));"
        )
        self._open("for (unsigned int i = 0; i < *length; i++)")
        self._open("if (!enif_get_list_cell(env, tail, &head, &tail))")
        self._line("return 0;")
        self._close()
        self._open("if (!" + self._get(elem, "head", "(*items)[i]") + ")")
        self._line("return 0;")
        self._close()
        self._close()
        self._line("return 1;")
        self._close()
        self._line()
        self._open(self._free_list_signature(typ))
        stmt = self._mapper().free(elem, "items[i]")
        if stmt is not None:
            self._open("if (items != NULL)")
            self._open("for (unsigned int i = 0; i < length; i++)")
            self._line(stmt)
            self._close()
            self._close()
        else:
            self._line("UNIBIND_UNUSED(length);")
        self._line("unibind_free(items);")
        self._close()
        self._line()

    def _emit_accessor(self, clause: ResultClause) -> None:
        self._open(self._accessor_signature(clause))
        self._line("return " + self._clause_term(clause) + ";")
        self._close()
        self._line()

    def _emit_send(self) -> None:
        sends = self._spec().sends
        assert sends is not None
        self._open(self._send_signature())
        self._line("UnibindEnv *msg_env = enif_alloc_env();")
        self._line("UNIBIND_TERM term = enif_make_copy(msg_env, " + self._clause_term(sends.clause) + ");")
        self._line("UnibindEnv *caller_env = (flags & UNIBIND_SEND_THREADED) ? NULL : env;")
        self._line("int result = enif_send(caller_env, &pid, msg_env, term);")
        self._line("enif_free_env(msg_env);")
        self._line("return result;")
        self._close()
        self._line()

    def _emit_export(self, fun: FunctionSpec) -> None:
        exit_label = "exit_export_" + fun.name
        self._open(
            "static UNIBIND_TERM export_"
            + fun.name
            + "(UnibindEnv *env, int argc, const UNIBIND_TERM argv[])"
        )
        self._line("UNIBIND_UNUSED(argc);")
        if fun.arity == 0:
            self._line("UNIBIND_UNUSED(argv);")
        self._line("UNIBIND_TERM result;")
        for arg in fun.args:
            self._declare_local(arg.name, arg.type)
        self._line()
        for i, arg in enumerate(fun.args):
            self._open("if (!" + self._get(arg.type, "argv[" + str(i) + "]", arg.name) + ")")
            self._line(
                "result = unibind_raise_args_error(env, "
                + c_string(arg.name)
                + ", "
                + c_string(type_to_str(arg.type))
                + ");"
            )
            self._line("goto " + exit_label + ";")
            self._close()
        call_args = ["env"]
        for arg in fun.args:
            call_args.append(arg.name)
            if isinstance(arg.type, ListOf):
                call_args.append(arg.name + "_length")
        self._line("result = " + fun.name + "(" + ", ".join(call_args) + ");")
        self._line("goto " + exit_label + ";")
        self.indent -= 1
        self._line(exit_label + ":")
        self.indent += 1
        for arg in fun.args:
            self._release(arg.name, arg.type)
        self._line("return result;")
        self._close()
        self._line()

    def _emit_function_table(self) -> None:
        spec = self._spec()
        self._open("static ErlNifFunc nif_funcs[] =")
        for fun in spec.functions:
            kind = spec.dirty_kind(fun.name, fun.arity)
            flags = DIRTY_FLAGS[kind] if kind is not None else "0"
            self._line(
                "{" + c_string(fun.name) + ", " + str(fun.arity) + ", export_" + fun.name + ", " + flags + "},"
            )
        self._close(";")
        self._line()

    def _emit_lifecycle(self) -> None:
        spec = self._spec()
        load = spec.callback("load")
        upgrade = spec.callback("upgrade")
        unload = spec.callback("unload")
        self._open("static int unibind_load_nif(UnibindEnv *env, void **priv_data, UNIBIND_TERM load_info)")
        self._line("UNIBIND_UNUSED(load_info);")
        self._line(
            "ErlNifResourceFlags flags = (ErlNifResourceFlags)(ERL_NIF_RT_CREATE | ERL_NIF_RT_TAKEOVER);"
        )
        self._line(
            "STATE_RESOURCE_TYPE = enif_open_resource_type(env, NULL, \"State\", "
            "(ErlNifResourceDtor *)destroy_state, flags, NULL);"
        )
        if load is not None:
            self._line("return " + load + "(env, priv_data);")
        else:
            self._line("UNIBIND_UNUSED(priv_data);")
            self._line("return 0;")
        self._close()
        self._line()
        if upgrade is not None:
            self._open(
                "static int unibind_upgrade_nif(UnibindEnv *env, void **priv_data, "
                "void **old_priv_data, UNIBIND_TERM load_info)"
            )
            self._line("UNIBIND_UNUSED(load_info);")
            self._line("return " + upgrade + "(env, priv_data, old_priv_data);")
            self._close()
            self._line()
        if unload is not None:
            self._open("static void unibind_unload_nif(UnibindEnv *env, void *priv_data)")
            self._line(unload + "(env, priv_data);")
            self._close()
            self._line()
        upgrade_fn = "unibind_upgrade_nif" if upgrade is not None else "NULL"
        unload_fn = "unibind_unload_nif" if unload is not None else "NULL"
        self._line(
            "ERL_NIF_INIT(Elixir."
            + spec.module
            + ", nif_funcs, unibind_load_nif, NULL, "
            + upgrade_fn
            + ", "
            + unload_fn
            + ")"
        )
