"""CNode backend: Specs → out-of-process node glue over the ei buffer API.

Messages arrive as a function name plus an encoded argument list; the
generated dispatcher routes them to per-function exports. Encoders and
decoders follow the ei convention of returning 0 on success.
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


class CNodeBackend(NativeBackend):
    """Emit ei-based node glue for one module."""

    name = "CNode"
    runtime_header = "unibind/cnode/unibind.h"

    # ============================================================
    # HEADER SECTIONS
    # ============================================================

    def _emit_includes(self) -> None:
        self._line("#include <stdint.h>")
        self._line("#include <stdio.h>")
        self._line("#include <string.h>")
        self._line("#include <ei.h>")
        self._line("#include <ei_connect.h>")

    def _emit_runtime_prototypes(self) -> None:
        self._line("State *unibind_alloc_state(UnibindEnv *env);")
        self._line("void unibind_release_state(UnibindEnv *env, State *state);")
        self._line("void handle_destroy_state(UnibindEnv *env, State *state);")
        self._line()
        self._line(
            "UNIBIND_TERM unibind_cnode_handle_message(UnibindEnv *env, char *fun_name, "
            "UnibindCNodeInBuff *in_buff);"
        )
        self._line()

    def _emit_helper_prototypes(self) -> None:
        spec = self._spec()
        types = self._mapper()
        for enum in spec.enums:
            alias = enum.alias
            self._line(
                "int encode_" + alias + "(UnibindEnv *env, ei_x_buff *out_buff, " + alias + " value);"
            )
            self._line(
                "int decode_"
                + alias
                + "(UnibindEnv *env, UnibindCNodeInBuff *in_buff, "
                + alias
                + " *value);"
            )
        for struct in spec.structs:
            alias = struct.alias
            self._line(
                "int encode_" + alias + "(UnibindEnv *env, ei_x_buff *out_buff, const " + alias + " *value);"
            )
            self._line(
                "int decode_"
                + alias
                + "(UnibindEnv *env, UnibindCNodeInBuff *in_buff, "
                + alias
                + " *value);"
            )
            self._line("void free_" + alias + "(" + alias + " *value);")
        for typ in types.list_types():
            self._line(self._encode_list_signature(typ) + ";")
            self._line(self._decode_list_signature(typ) + ";")
            self._line(self._free_list_signature(typ) + ";")
        if len(spec.enums) + len(spec.structs) + len(types.list_types()) > 0:
            self._line()

    def _emit_callback_prototypes(self) -> None:
        main = self._spec().callback("main")
        if main is not None:
            self._line("int " + main + "(int argc, char **argv);")
            self._line()

    def _encode_list_signature(self, typ: ListOf) -> str:
        elem = self._mapper().c_type(typ.element)
        return (
            "int "
            + helper_name("encode", typ)
            + "(UnibindEnv *env, ei_x_buff *out_buff, "
            + elem
            + " const *items, unsigned int length)"
        )

    def _decode_list_signature(self, typ: ListOf) -> str:
        elem = self._mapper().c_type(typ.element)
        return (
            "int "
            + helper_name("decode", typ)
            + "(UnibindEnv *env, UnibindCNodeInBuff *in_buff, "
            + pointer_to(pointer_to(elem))
            + "items, unsigned int *length)"
        )

    def _free_list_signature(self, typ: ListOf) -> str:
        elem = self._mapper().c_type(typ.element)
        return "void " + helper_name("free", typ) + "(" + pointer_to(elem) + "items, unsigned int length)"

    # ============================================================
    # ENCODING AND DECODING
    # ============================================================

    def _encode(self, typ: TypeRef, value: str) -> str:
        """Expression appending the encoding of a C lvalue to out_buff."""
        types = self._mapper()
        if isinstance(typ, ListOf):
            return helper_name("encode", typ) + "(env, out_buff, " + value + ", " + value + "_length)"
        if types.is_struct(typ):
            return helper_name("encode", typ) + "(env, out_buff, &" + value + ")"
        if types.is_enum(typ):
            return helper_name("encode", typ) + "(env, out_buff, " + value + ")"
        base = types.base(typ)
        assert base is not None
        return base.cnode_encode.format(value=value)

    def _decode(self, typ: TypeRef, value: str) -> str:
        """Expression decoding the next term of in_buff into a C lvalue; 0 on success."""
        types = self._mapper()
        if isinstance(typ, ListOf):
            return helper_name("decode", typ) + "(env, in_buff, &" + value + ", &" + value + "_length)"
        if types.is_struct(typ) or types.is_enum(typ):
            return helper_name("decode", typ) + "(env, in_buff, &" + value + ")"
        base = types.base(typ)
        assert base is not None
        return base.cnode_decode.format(value=value)

    def _emit_item(self, item: ClauseItem) -> None:
        if isinstance(item, ResultGroup):
            self._emit_tuple(item.items)
        elif item.label is not None:
            self._line("ei_x_encode_atom(out_buff, " + c_string(item.label) + ");")
        else:
            self._line(self._encode(item.type, item.name) + ";")

    def _emit_tuple(self, items: tuple[ClauseItem, ...]) -> None:
        self._line("ei_x_encode_tuple_header(out_buff, " + str(len(items)) + ");")
        for item in items:
            self._emit_item(item)

    def _emit_clause(self, clause: ResultClause) -> None:
        if is_bare(clause.items):
            self._emit_item(clause.items[0])
        else:
            self._emit_tuple(clause.items)

    # ============================================================
    # SOURCE
    # ============================================================

    def _emit_source_body(self) -> None:
        spec = self._spec()
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
        self._emit_dispatcher()
        self._emit_main()

    def _emit_state_functions(self) -> None:
        self._open("State *unibind_alloc_state(UnibindEnv *env)")
        self._line("UNIBIND_UNUSED(env);")
        self._line("return (State *)unibind_alloc(sizeof(State));")
        self._close()
        self._line()
        self._open("void unibind_release_state(UnibindEnv *env, State *state)")
        self._line("handle_destroy_state(env, state);")
        self._line("unibind_free(state);")
        self._close()
        self._line()

    def _emit_enum_helpers(self, alias: str, variants: tuple[str, ...]) -> None:
        self._open("int encode_" + alias + "(UnibindEnv *env, ei_x_buff *out_buff, " + alias + " value)")
        self._line("UNIBIND_UNUSED(env);")
        self._line("switch (value) {")
        for variant in variants:
            self._line("case " + enum_constant(alias, variant) + ":")
            self.indent += 1
            self._line("return ei_x_encode_atom(out_buff, " + c_string(variant) + ");")
            self.indent -= 1
        self._line("}")
        self._line("return -1;")
        self._close()
        self._line()
        self._open(
            "int decode_" + alias + "(UnibindEnv *env, UnibindCNodeInBuff *in_buff, " + alias + " *value)"
        )
        self._line("char atom[MAXATOMLEN];")
        self._line("UNIBIND_UNUSED(env);")
        self._open("if (ei_decode_atom(in_buff->buff, in_buff->index, atom))")
        self._line("return -1;")
        self._close()
        for variant in variants:
            self._open("if (strcmp(atom, " + c_string(variant) + ") == 0)")
            self._line("*value = " + enum_constant(alias, variant) + ";")
            self._line("return 0;")
            self._close()
        self._line("return -1;")
        self._close()
        self._line()

    def _emit_struct_helpers(
        self, alias: str, backing_name: str, fields: tuple[StructField, ...]
    ) -> None:
        self._open(
            "int encode_" + alias + "(UnibindEnv *env, ei_x_buff *out_buff, const " + alias + " *value)"
        )
        self._line("UNIBIND_UNUSED(env);")
        self._line("ei_x_encode_map_header(out_buff, " + str(len(fields) + 1) + ");")
        self._line('ei_x_encode_atom(out_buff, "__struct__");')
        self._line("ei_x_encode_atom(out_buff, " + c_string("Elixir." + backing_name) + ");")
        for field in fields:
            self._line("ei_x_encode_atom(out_buff, " + c_string(field.name) + ");")
            self._line(self._encode(field.type, "value->" + field.name) + ";")
        self._line("return 0;")
        self._close()
        self._line()
        self._open(
            "int decode_" + alias + "(UnibindEnv *env, UnibindCNodeInBuff *in_buff, " + alias + " *value)"
        )
        self._line("int arity;")
        self._line("char key[MAXATOMLEN];")
        self._line("UNIBIND_UNUSED(env);")
        self._open("if (ei_decode_map_header(in_buff->buff, in_buff->index, &arity))")
        self._line("return -1;")
        self._close()
        self._open("for (int i = 0; i < arity; i++)")
        self._open("if (ei_decode_atom(in_buff->buff, in_buff->index, key))")
        self._line("return -1;")
        self._close()
        for field in fields:
            self._open("if (strcmp(key, " + c_string(field.name) + ") == 0)")
            self._open("if (" + self._decode(field.type, "value->" + field.name) + ")")
            self._line("return -1;")
            self._close()
            self._line("continue;")
            self._close()
        self._open("if (ei_skip_term(in_buff->buff, in_buff->index))")
        self._line("return -1;")
        self._close()
        self._close()
        self._line("return 0;")
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
        self._open(self._encode_list_signature(typ))
        self._line("UNIBIND_UNUSED(env);")
        self._open("if (length > 0)")
        self._line("ei_x_encode_list_header(out_buff, length);")
        self._open("for (unsigned int i = 0; i < length; i++)")
        self._line(self._encode(elem, "items[i]") + ";")
        self._close()
        self._close()
        self._line("return ei_x_encode_empty_list(out_buff);")
        self._close()
        self._line()
        self._open(self._decode_list_signature(typ))
        self._line("int size;")
        self._line("UNIBIND_UNUSED(env);")
        self._open("if (ei_decode_list_header(in_buff->buff, in_buff->index, &size))")
        self._line("return -1;")
        self._close()
        self._line("*length = (unsigned int)size;")
        self._line(
            "*items = (" + pointer_to(elem_c) + ")unibind_calloc(*length, sizeof(" + elem_c + "));"
        )
        self._open("for (unsigned int i = 0; i < *length; i++)")
        self._open("if (" + self._decode(elem, "(*items)[i]") + ")")
        self._line("return -1;")
        self._close()
        self._close()
        self._open("if (size > 0 && ei_decode_list_header(in_buff->buff, in_buff->index, &size))")
        self._line("return -1;")
        self._close()
        self._line("return 0;")
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
        self._line("UNIBIND_TERM out_buff = (ei_x_buff *)unibind_alloc(sizeof(ei_x_buff));")
        self._line('unibind_cnode_prepare_ei_x_buff(env, out_buff, "result");')
        self._emit_clause(clause)
        self._line("return out_buff;")
        self._close()
        self._line()

    def _emit_send(self) -> None:
        sends = self._spec().sends
        assert sends is not None
        self._open(self._send_signature())
        self._line("UNIBIND_UNUSED(flags);")
        self._line("ei_x_buff buff;")
        self._line("ei_x_buff *out_buff = &buff;")
        self._line("ei_x_new_with_version(out_buff);")
        self._emit_clause(sends.clause)
        self._line("int result = ei_send(env->ei_socket, &pid, out_buff->buff, out_buff->index);")
        self._line("ei_x_free(out_buff);")
        self._line("return result;")
        self._close()
        self._line()

    def _emit_export(self, fun: FunctionSpec) -> None:
        exit_label = "exit_export_" + fun.name
        self._open("static UNIBIND_TERM export_" + fun.name + "(UnibindEnv *env, UnibindCNodeInBuff *in_buff)")
        self._line("UNIBIND_TERM result;")
        for arg in fun.args:
            self._declare_local(arg.name, arg.type)
        if fun.arity == 0:
            self._line("UNIBIND_UNUSED(in_buff);")
        self._line()
        for arg in fun.args:
            self._open("if (" + self._decode(arg.type, arg.name) + ")")
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

    def _emit_dispatcher(self) -> None:
        self._open(
            "UNIBIND_TERM unibind_cnode_handle_message(UnibindEnv *env, char *fun_name, "
            "UnibindCNodeInBuff *in_buff)"
        )
        for i, fun in enumerate(self._spec().functions):
            keyword = "if" if i == 0 else "} else if"
            if i > 0:
                self.indent -= 1
            self._line(keyword + " (strcmp(fun_name, " + c_string(fun.name) + ") == 0) {")
            self.indent += 1
            self._line("return export_" + fun.name + "(env, in_buff);")
        if len(self._spec().functions) > 0:
            self._close()
        self._line("return unibind_cnode_undefined_function_error(env, fun_name);")
        self._close()
        self._line()

    def _emit_main(self) -> None:
        main = self._spec().callback("main")
        self._open("int main(int argc, char **argv)")
        if main is not None:
            self._line("return " + main + "(argc, argv);")
        else:
            self._line("return unibind_cnode_main_function(argc, argv);")
        self._close()
