"""Generated C for the NIF and CNode backends."""

import pytest

from unibind.backend import generate_with
from unibind.backend.cnode import CNodeBackend
from unibind.backend.nif import NifBackend
from unibind.compiler import compile_spec

EXAMPLE_SPEC = """\
module Example

interface NIF

callback :load

state_type "MyState"

spec init() :: {:ok :: label, was_handle_load_called :: int, state}

spec test_atom(in_atom :: atom) :: {:ok :: label, out_atom :: atom}

spec test_float(in_float :: float) :: {:ok :: label, out_float :: float}

spec test_int(in_int :: int) :: {:ok :: label, out_int :: int}

spec test_list(in_list :: [int]) :: {:ok :: label, out_list :: [int]}

spec test_pid(in_pid :: pid) :: {:ok :: label, out_pid :: pid}

spec test_state(state) :: {:ok :: label, state}

spec test_example_message(pid :: pid) :: {:ok :: label} | {:error :: label, reason :: atom}

sends {:example_msg :: label, num :: int}

type(
  my_struct :: %My.Struct{
    id: int,
    data: [int],
    name: string
  }
)

spec test_my_struct(in_struct :: my_struct) :: {:ok :: label, out_struct :: my_struct}

type outer_struct :: %Outer.Struct{
  nested_struct: my_struct,
  id: int
}

spec test_outer_struct(in_struct :: outer_struct) :: {:ok :: label, out_struct :: outer_struct}

type(my_enum :: :option_one | :option_two | :option_three | :option_four | :option_five)

spec test_my_enum(in_enum :: my_enum) :: {:ok :: label, out_enum :: my_enum}
"""


@pytest.fixture(scope="module")
def example_specs():
    return compile_spec(EXAMPLE_SPEC, "example")


@pytest.fixture(scope="module")
def nif(example_specs):
    return generate_with("NIF", example_specs)


@pytest.fixture(scope="module")
def cnode(example_specs):
    return generate_with("CNode", example_specs)


# --- Shared header surface ---


@pytest.mark.parametrize(
    "line",
    [
        "#pragma once",
        '#include "../example.h"',
        "typedef struct MyState MyState;",
        "typedef MyState State;",
        "enum my_enum_t {",
        "  MY_ENUM_OPTION_ONE,",
        "  MY_ENUM_OPTION_FIVE",
        "typedef enum my_enum_t my_enum;",
        "typedef struct my_struct_t my_struct;",
        "typedef struct outer_struct_t outer_struct;",
        "  int *data;",
        "  unsigned int data_length;",
        "  char *name;",
        "  my_struct nested_struct;",
        "UNIBIND_TERM init(UnibindEnv *env);",
        "UNIBIND_TERM test_list(UnibindEnv *env, int *in_list, unsigned int in_list_length);",
        "UNIBIND_TERM test_state(UnibindEnv *env, State *state);",
        "UNIBIND_TERM test_pid(UnibindEnv *env, UnibindPid in_pid);",
        "UNIBIND_TERM init_result_ok(UnibindEnv *env, int was_handle_load_called, State *state);",
        "UNIBIND_TERM test_example_message_result_ok(UnibindEnv *env);",
        "UNIBIND_TERM test_example_message_result_error(UnibindEnv *env, char *reason);",
        "UNIBIND_TERM test_float_result_ok(UnibindEnv *env, double out_float);",
        "int send_example_msg(UnibindEnv *env, UnibindPid pid, int flags, int num);",
    ],
)
def test_header_shared_lines(nif, cnode, line):
    for header, _ in (nif, cnode):
        assert line in header.split("\n")


def test_prototypes_identical_across_backends(example_specs, nif, cnode):
    names = []
    for fun in example_specs.functions:
        names.append(fun.name)
        names.extend(clause.accessor_name for clause in fun.results)

    def prototypes(header):
        lines = header.split("\n")
        return [l for l in lines for n in names if l.startswith("UNIBIND_TERM " + n + "(")]

    assert len(prototypes(nif[0])) == len(names)
    assert prototypes(nif[0]) == prototypes(cnode[0])


def test_struct_defined_before_use(nif):
    header = nif[0]
    assert header.index("struct my_struct_t {") < header.index("struct outer_struct_t {")


def test_header_guards(nif):
    header = nif[0]
    assert 'extern "C" {' in header
    assert header.endswith("#endif\n")


# --- NIF ---


def test_nif_runtime_includes(nif):
    header = nif[0]
    assert "#include <erl_nif.h>" in header
    assert "#include <unibind/nif/unibind.h>" in header
    assert "extern ErlNifResourceType *STATE_RESOURCE_TYPE;" in header


def test_nif_load_callback_prototype(nif):
    assert "int handle_load(UnibindEnv *env, void **priv_data);" in nif[0]


def test_nif_helpers_declared(nif):
    header = nif[0]
    assert "UNIBIND_TERM make_my_enum(UnibindEnv *env, my_enum value);" in header
    assert "int get_my_struct(UnibindEnv *env, UNIBIND_TERM term, my_struct *value);" in header
    assert "void free_my_struct(my_struct *value);" in header
    assert "void free_list_int(int *items, unsigned int length);" in header


def test_nif_accessor_builds_tuple(nif):
    source = nif[1]
    assert (
        "return enif_make_tuple(env, 3, enif_make_atom(env, \"ok\"), "
        "enif_make_int(env, was_handle_load_called), unibind_make_resource(env, state));"
    ) in source


def test_nif_single_label_clause_is_bare_atom(nif):
    source = nif[1]
    start = source.index("UNIBIND_TERM test_example_message_result_ok(UnibindEnv *env) {")
    assert 'return enif_make_atom(env, "ok");' in source[start:]


def test_nif_struct_backing_module(nif):
    source = nif[1]
    assert 'values[0] = enif_make_atom(env, "Elixir.My.Struct");' in source
    assert 'values[0] = enif_make_atom(env, "Elixir.Outer.Struct");' in source
    assert "free_list_int(value->data, value->data_length);" in source
    assert "free_my_struct(&value->nested_struct);" in source


def test_nif_list_argument(nif):
    source = nif[1]
    assert "if (!get_list_int(env, argv[0], &in_list, &in_list_length)) {" in source
    assert "result = test_list(env, in_list, in_list_length);" in source
    assert "free_list_int(in_list, in_list_length);" in source


def test_nif_argument_error(nif):
    assert 'result = unibind_raise_args_error(env, "in_int", "int");' in nif[1]


def test_nif_send(nif):
    source = nif[1]
    assert "int send_example_msg(UnibindEnv *env, UnibindPid pid, int flags, int num) {" in source
    assert (
        "UNIBIND_TERM term = enif_make_copy(msg_env, enif_make_tuple(env, 2, "
        "enif_make_atom(env, \"example_msg\"), enif_make_int(env, num)));"
    ) in source


def test_nif_function_table_order(nif):
    source = nif[1]
    assert '{"init", 0, export_init, 0},' in source
    assert source.index('{"init", 0') < source.index('{"test_my_enum", 1')


def test_nif_lifecycle(nif):
    source = nif[1]
    assert "return handle_load(env, priv_data);" in source
    assert source.rstrip().endswith(
        "ERL_NIF_INIT(Elixir.Example, nif_funcs, unibind_load_nif, NULL, NULL, NULL)"
    )


def test_nif_dirty_flags():
    specs = compile_spec(
        "module M\ndirty :cpu, a: 0\ndirty :io, b: 0\n"
        "spec a() :: {:ok :: label}\nspec b() :: {:ok :: label}\nspec c() :: {:ok :: label}\n",
        "m",
    )
    source = NifBackend().generate_source(specs)
    assert '{"a", 0, export_a, ERL_NIF_DIRTY_JOB_CPU_BOUND},' in source
    assert '{"b", 0, export_b, ERL_NIF_DIRTY_JOB_IO_BOUND},' in source
    assert '{"c", 0, export_c, 0},' in source


def test_nif_upgrade_and_unload():
    specs = compile_spec(
        "module M\ncallback :upgrade\ncallback :unload, :bye\nspec f() :: {:ok :: label}\n",
        "m",
    )
    header = NifBackend().generate_header(specs)
    source = NifBackend().generate_source(specs)
    assert "int handle_upgrade(UnibindEnv *env, void **priv_data, void **old_priv_data);" in header
    assert "void bye(UnibindEnv *env, void *priv_data);" in header
    assert "unibind_upgrade_nif, unibind_unload_nif)" in source


def test_nif_nested_group_term():
    specs = compile_spec(
        "module M\nspec f() :: {:error :: label, {:recoverable :: label, n :: int}}\n",
        "m",
    )
    source = NifBackend().generate_source(specs)
    assert (
        'return enif_make_tuple(env, 2, enif_make_atom(env, "error"), '
        'enif_make_tuple(env, 2, enif_make_atom(env, "recoverable"), enif_make_int(env, n)));'
    ) in source


# --- CNode ---


def test_cnode_runtime_includes(cnode):
    header = cnode[0]
    assert "#include <ei.h>" in header
    assert "#include <unibind/cnode/unibind.h>" in header
    assert "erl_nif" not in header


def test_cnode_ignores_nif_hooks(cnode):
    assert "int handle_load(" not in cnode[0]
    assert "handle_load(env" not in cnode[1]


def test_cnode_accessor_encodes_tuple(cnode):
    source = cnode[1]
    assert 'unibind_cnode_prepare_ei_x_buff(env, out_buff, "result");' in source
    assert "ei_x_encode_tuple_header(out_buff, 3);" in source
    assert 'ei_x_encode_atom(out_buff, "ok");' in source


def test_cnode_dispatcher(cnode):
    source = cnode[1]
    assert 'if (strcmp(fun_name, "init") == 0) {' in source
    assert '} else if (strcmp(fun_name, "test_atom") == 0) {' in source
    assert "return export_test_my_enum(env, in_buff);" in source
    assert "return unibind_cnode_undefined_function_error(env, fun_name);" in source


def test_cnode_default_main(cnode):
    assert "return unibind_cnode_main_function(argc, argv);" in cnode[1]


def test_cnode_main_callback():
    specs = compile_spec("module M\ncallback :main, :run\nspec f() :: {:ok :: label}\n", "m")
    header = CNodeBackend().generate_header(specs)
    source = CNodeBackend().generate_source(specs)
    assert "int run(int argc, char **argv);" in header
    assert "return run(argc, argv);" in source


def test_cnode_send(cnode):
    source = cnode[1]
    assert "ei_x_new_with_version(out_buff);" in source
    assert "int result = ei_send(env->ei_socket, &pid, out_buff->buff, out_buff->index);" in source


# --- Determinism ---


@pytest.mark.parametrize("backend", [NifBackend, CNodeBackend])
def test_generation_is_deterministic(example_specs, backend):
    first = backend()
    second = backend()
    assert first.generate_header(example_specs) == second.generate_header(example_specs)
    assert first.generate_source(example_specs) == second.generate_source(example_specs)


def test_backend_instance_is_reusable(example_specs):
    backend = NifBackend()
    source = backend.generate_source(example_specs)
    backend.generate_header(example_specs)
    assert backend.generate_source(example_specs) == source


def test_default_state_type():
    specs = compile_spec("module M\nspec f() :: {:ok :: label}\n", "m")
    header = NifBackend().generate_header(specs)
    assert "typedef struct UnibindState UnibindState;" in header
