"""Shared emitter for C backends: line buffer, typedefs and prototypes.

Both backends declare the same C surface in their headers; they differ in
the runtime they include, in how terms are built and parsed, and in the
glue that connects exports to the runtime.
"""

from __future__ import annotations

from ..ir import (
    ClauseItem,
    EnumDef,
    FunctionSpec,
    ResultClause,
    ResultItem,
    Specs,
    StructDef,
    TypeRef,
)
from ..files import user_header_path
from .types import TypeMapper, enum_constant, type_key


def c_string(value: str) -> str:
    """C string literal for an identifier-like value."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def pointer_to(c_type: str) -> str:
    return c_type + "*" if c_type.endswith("*") else c_type + " *"


class NativeBackend:
    """Base class: subclasses fill in runtime-specific sections."""

    name = ""
    runtime_header = ""

    def __init__(self) -> None:
        self.indent = 0
        self.lines: list[str] = []
        self.specs: Specs | None = None
        self.types: TypeMapper | None = None

    # ============================================================
    # ENTRY POINTS
    # ============================================================

    def generate_header(self, specs: Specs) -> str:
        self._reset(specs)
        self._line("#pragma once")
        self._line()
        self._emit_includes()
        self._line("#include <" + self.runtime_header + ">")
        self._line('#include "' + user_header_path(specs.name) + '"')
        self._line()
        self._line("#ifdef __cplusplus")
        self._line('extern "C" {')
        self._line("#endif")
        self._line()
        self._emit_state_typedef()
        self._emit_enum_typedefs()
        self._emit_struct_typedefs()
        self._emit_runtime_prototypes()
        self._emit_helper_prototypes()
        self._emit_function_prototypes()
        self._emit_accessor_prototypes()
        self._emit_send_prototype()
        self._emit_callback_prototypes()
        self._line("#ifdef __cplusplus")
        self._line("}")
        self._line("#endif")
        return self._text()

    def generate_source(self, specs: Specs) -> str:
        self._reset(specs)
        self._line('#include "' + specs.name + '.h"')
        self._line()
        self._emit_source_body()
        return self._text()

    # ============================================================
    # HOOKS
    # ============================================================

    def _emit_includes(self) -> None:
        raise NotImplementedError

    def _emit_runtime_prototypes(self) -> None:
        raise NotImplementedError

    def _emit_helper_prototypes(self) -> None:
        raise NotImplementedError

    def _emit_callback_prototypes(self) -> None:
        raise NotImplementedError

    def _emit_source_body(self) -> None:
        raise NotImplementedError

    # ============================================================
    # OUTPUT BUFFER
    # ============================================================

    def _reset(self, specs: Specs) -> None:
        self.indent = 0
        self.lines = []
        self.specs = specs
        self.types = TypeMapper(specs)

    def _text(self) -> str:
        return "\n".join(self.lines) + "\n"

    def _line(self, text: str = "") -> None:
        """Emit a line with current indentation."""
        if text:
            self.lines.append("  " * self.indent + text)
        else:
            self.lines.append("")

    def _open(self, text: str) -> None:
        self._line(text + " {")
        self.indent += 1

    def _close(self, suffix: str = "") -> None:
        self.indent -= 1
        self._line("}" + suffix)

    # ============================================================
    # SHARED DECLARATIONS
    # ============================================================

    def _spec(self) -> Specs:
        assert self.specs is not None
        return self.specs

    def _mapper(self) -> TypeMapper:
        assert self.types is not None
        return self.types

    def _emit_state_typedef(self) -> None:
        state_type = self._mapper().state_type()
        self._line("typedef struct " + state_type + " " + state_type + ";")
        self._line("typedef " + state_type + " State;")
        self._line()

    def _emit_enum_typedefs(self) -> None:
        for enum in self._spec().enums:
            self._emit_enum_typedef(enum)

    def _emit_enum_typedef(self, enum: EnumDef) -> None:
        self._open("enum " + enum.alias + "_t")
        for i, variant in enumerate(enum.variants):
            sep = "," if i < len(enum.variants) - 1 else ""
            self._line(enum_constant(enum.alias, variant) + sep)
        self._close(";")
        self._line("typedef enum " + enum.alias + "_t " + enum.alias + ";")
        self._line()

    def _emit_struct_typedefs(self) -> None:
        structs = self._spec().structs
        for struct in structs:
            self._line("typedef struct " + struct.alias + "_t " + struct.alias + ";")
        if len(structs) > 0:
            self._line()
        for struct in structs:
            self._emit_struct_definition(struct)

    def _emit_struct_definition(self, struct: StructDef) -> None:
        self._open("struct " + struct.alias + "_t")
        for field in struct.fields:
            for decl in self._mapper().declare(field.name, field.type):
                self._line(decl + ";")
        self._close(";")
        self._line()

    def _emit_function_prototypes(self) -> None:
        for fun in self._spec().functions:
            self._line(self._function_signature(fun) + ";")
        if len(self._spec().functions) > 0:
            self._line()

    def _emit_accessor_prototypes(self) -> None:
        emitted = False
        for fun in self._spec().functions:
            for clause in fun.results:
                self._line(self._accessor_signature(clause) + ";")
                emitted = True
        if emitted:
            self._line()

    def _emit_send_prototype(self) -> None:
        if self._spec().sends is not None:
            self._line(self._send_signature() + ";")
            self._line()

    # ============================================================
    # SIGNATURES
    # ============================================================

    def _params(self, named: list[tuple[str, TypeRef]]) -> list[str]:
        params: list[str] = []
        for name, typ in named:
            params.extend(self._mapper().declare(name, typ))
        return params

    def _signature(self, ret: str, name: str, params: list[str]) -> str:
        return ret + " " + name + "(" + ", ".join(["UnibindEnv *env"] + params) + ")"

    def _function_signature(self, fun: FunctionSpec) -> str:
        params = self._params([(a.name, a.type) for a in fun.args])
        return self._signature("UNIBIND_TERM", fun.name, params)

    def _accessor_signature(self, clause: ResultClause) -> str:
        params = self._params([(i.name, i.type) for i in clause.values()])
        return self._signature("UNIBIND_TERM", clause.accessor_name, params)

    def _send_signature(self) -> str:
        sends = self._spec().sends
        assert sends is not None
        params = ["UnibindPid pid", "int flags"]
        params += self._params([(i.name, i.type) for i in sends.clause.values()])
        return self._signature("int", sends.function_name, params)

    # ============================================================
    # LOCALS
    # ============================================================

    def _initializer(self, typ: TypeRef) -> str:
        """Zero value a local of this type starts from, so cleanup is always safe."""
        types = self._mapper()
        if types.is_struct(typ):
            return "{0}"
        if types.is_enum(typ):
            return "(" + types.c_type(typ) + ")0"
        decl = types.c_type(typ)
        if decl.endswith("*"):
            return "NULL"
        if decl == "UnibindPid":
            return "{0}"
        return "0"

    def _declare_local(self, name: str, typ: TypeRef) -> None:
        decls = self._mapper().declare(name, typ)
        self._line(decls[0] + " = " + self._initializer(typ) + ";")
        for extra in decls[1:]:
            self._line(extra + " = 0;")

    def _release(self, name: str, typ: TypeRef) -> None:
        stmt = self._mapper().free(typ, name)
        if stmt is not None:
            self._line(stmt)


def is_bare(clause_items: tuple[ClauseItem, ...]) -> bool:
    """A one-item clause is returned as that term, not wrapped in a tuple."""
    return len(clause_items) == 1 and isinstance(clause_items[0], ResultItem)


def helper_name(prefix: str, typ: TypeRef) -> str:
    return prefix + "_" + type_key(typ)

