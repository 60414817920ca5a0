"""Backend selection and the backend registry."""

import pytest

from unibind.backend import (
    BACKENDS,
    create_backend,
    generate_code,
    output_tag,
    register_backend,
    select_backend,
)
from unibind.backend.cnode import CNodeBackend
from unibind.backend.nif import NifBackend
from unibind.compiler import compile_spec
from unibind.config import ProjectConfig
from unibind.errors import InterfaceNotSpecified, UnknownBackend


def specs_with(interface_line: str):
    return compile_spec("module Example\n" + interface_line + "\nspec f() :: {:ok :: label}\n", "example")


@pytest.mark.parametrize(
    "line,identity",
    [
        ("interface NIF", "NIF"),
        ("interface CNode", "CNode"),
        ("interface :nif", "NIF"),
        ("interface :cnode", "CNode"),
        ("interface [CNode, NIF]", "CNode"),
    ],
)
def test_declared_interface(line, identity):
    assert select_backend(specs_with(line)) == identity


def test_override_wins_over_declaration():
    assert select_backend(specs_with("interface NIF"), None, "cnode") == "CNode"


def test_declaration_wins_over_config():
    config = ProjectConfig({"natives": {"example": {"interface": ["cnode"]}}})
    assert select_backend(specs_with("interface NIF"), config) == "NIF"


def test_config_fallback_natives_before_libs():
    config = ProjectConfig(
        {
            "natives": {"example": {"interface": ["nif"]}},
            "libs": {"example": {"interface": ["cnode"]}},
        }
    )
    assert select_backend(specs_with(""), config) == "NIF"


def test_config_fallback_libs():
    config = ProjectConfig({"libs": {"example": {"interface": "cnode"}}})
    assert select_backend(specs_with(""), config) == "CNode"


def test_config_for_other_native_ignored():
    config = ProjectConfig({"natives": {"other": {"interface": ["nif"]}}})
    with pytest.raises(InterfaceNotSpecified) as exc:
        select_backend(specs_with(""), config)
    assert "'example'" in str(exc.value)


def test_no_interface_without_config():
    with pytest.raises(InterfaceNotSpecified):
        select_backend(specs_with(""))


def test_unknown_tag_passes_through_selection():
    assert select_backend(specs_with("interface Rust")) == "Rust"
    with pytest.raises(UnknownBackend) as exc:
        create_backend("Rust")
    assert "no backend registered for interface 'Rust'" in str(exc.value)


def test_create_known_backends():
    assert isinstance(create_backend("NIF"), NifBackend)
    assert isinstance(create_backend("CNode"), CNodeBackend)


def test_output_tags():
    assert output_tag("NIF") == "nif"
    assert output_tag("CNode") == "cnode"


class EchoBackend:
    def generate_header(self, specs):
        return "// header for " + specs.module + "\n"

    def generate_source(self, specs):
        return "// source for " + specs.module + "\n"


def test_register_backend(monkeypatch):
    monkeypatch.setitem(BACKENDS, "Echo", EchoBackend)
    header, source = generate_code(specs_with("interface Echo"))
    assert header == "// header for Example\n"
    assert source == "// source for Example\n"


def test_register_backend_replaces(monkeypatch):
    monkeypatch.setitem(BACKENDS, "NIF", NifBackend)
    register_backend("NIF", EchoBackend)
    header, _ = generate_code(specs_with("interface NIF"))
    assert header == "// header for Example\n"


def test_generate_code_uses_override():
    header, _ = generate_code(specs_with("interface NIF"), None, "cnode")
    assert "#include <ei.h>" in header
