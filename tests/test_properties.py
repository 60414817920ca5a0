"""End-to-end properties of spec compilation."""

import pytest

from unibind.backend import generate_code, select_backend
from unibind.compiler import compile_spec
from unibind.config import ProjectConfig
from unibind.errors import EmptyLabelSet, InterfaceNotSpecified, UnknownType
from unibind.ir import Arg, CallbackEntry, ListOf, TypeName
from unibind.serialize import specs_to_dict

STRUCTS = """\
module Example
interface NIF
type(
  my_struct :: %My.Struct{
    id: int,
    data: [int],
    name: string
  }
)
type outer_struct :: %Outer.Struct{
  nested_struct: my_struct,
  id: int
}
type(my_enum :: :option_one | :option_two | :option_three | :option_four | :option_five)
spec test_list(in_list :: [int]) :: {:ok :: label, out_list :: [int]}
spec test_example_message(pid :: pid) :: {:ok :: label} | {:error :: label, reason :: atom}
callback :load
"""


def compile_example(source: str = STRUCTS):
    return compile_spec(source, "example")


def test_compilation_is_deterministic():
    first = compile_example()
    second = compile_example()
    assert first == second
    assert specs_to_dict(first) == specs_to_dict(second)


def test_generated_text_is_byte_identical():
    assert generate_code(compile_example()) == generate_code(compile_example())


def test_list_argument_sugar():
    fun = compile_example().functions[0]
    assert fun.args == (Arg("in_list", ListOf(TypeName("int"))),)


def test_bare_argument_sugar():
    source = "module Example\ntype count :: %Count{n: int}\nspec f(count) :: {:ok :: label}\n"
    fun = compile_example(source).functions[0]
    assert fun.args == (Arg("count", TypeName("count")),)


def test_bare_argument_must_name_a_type():
    with pytest.raises(UnknownType):
        compile_example(STRUCTS + "spec count_all(count) :: {:ok :: label}\n")


def test_accessor_names_per_clause():
    fun = compile_example().functions[1]
    names = [c.accessor_name for c in fun.results]
    assert names == ["test_example_message_result_ok", "test_example_message_result_error"]


def test_list_valued_result():
    fun = compile_example().functions[0]
    assert len(fun.results) == 1
    clause = fun.results[0]
    assert clause.accessor_name == "test_list_result_ok"
    out = clause.values()[0]
    assert out.name == "out_list"
    assert out.type == ListOf(TypeName("int"))


def test_struct_fields_keep_order():
    specs = compile_example()
    my_struct = specs.struct("my_struct")
    assert [f.name for f in my_struct.fields] == ["id", "data", "name"]
    assert my_struct.fields[1].type == ListOf(TypeName("int"))
    assert specs.struct("outer_struct").fields[0].type == TypeName("my_struct")


def test_struct_forward_reference_fails():
    source = (
        "module Example\n"
        "type outer_struct :: %Outer.Struct{nested_struct: my_struct, id: int}\n"
        "type my_struct :: %My.Struct{id: int}\n"
    )
    with pytest.raises(UnknownType) as exc:
        compile_example(source)
    assert exc.value.name == "my_struct"


def test_enum_variant_order():
    enum = compile_example().enum("my_enum")
    assert enum.variants == (
        "option_one",
        "option_two",
        "option_three",
        "option_four",
        "option_five",
    )


def test_empty_label_set_rejected():
    with pytest.raises(EmptyLabelSet) as exc:
        compile_example("module Example\nspec f() :: {:ok :: label} | {n :: int}\n")
    assert exc.value.clause_index == 1


def test_callback_default_name():
    assert compile_example().callbacks == (CallbackEntry("load", "handle_load"),)


def test_backend_fallback_to_configuration():
    specs = compile_example("module Example\nspec f() :: {:ok :: label}\n")
    config = ProjectConfig({"natives": {"example": {"interface": ["nif"]}}})
    assert select_backend(specs, config) == "NIF"


def test_backend_fallback_empty_list_fails():
    specs = compile_example("module Example\nspec f() :: {:ok :: label}\n")
    config = ProjectConfig({"natives": {"example": {"interface": []}}})
    with pytest.raises(InterfaceNotSpecified):
        select_backend(specs, config)


def test_duplicate_dirty_entries_last_write_wins():
    specs = compile_example(
        "module Example\nspec f(a :: int) :: {:ok :: label}\ndirty :cpu, f: 1\ndirty :io, f: 1\n"
    )
    assert len(specs.dirty) == 1
    assert specs.dirty_kind("f", 1) == "io"


def test_duplicate_enum_variants_pass_through():
    specs = compile_example("module Example\ntype e :: :a | :b | :a\n")
    assert specs.enum("e").variants == ("a", "b", "a")
