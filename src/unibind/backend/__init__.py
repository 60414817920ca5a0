"""Backend selection: Specs → exactly one backend → (header, source).

The interface tag comes from the spec itself, from an explicit override,
or from the project configuration, checked in that order of precedence:
override, spec, configuration. Known tags map to canonical identities;
any other tag is looked up in the registry unchanged.
"""

from __future__ import annotations

from typing import Callable, Protocol

from ..config import ProjectConfig
from ..errors import InterfaceNotSpecified, UnknownBackend
from ..ir import Specs
from .cnode import CNodeBackend
from .nif import NifBackend


class Backend(Protocol):
    def generate_header(self, specs: Specs) -> str: ...

    def generate_source(self, specs: Specs) -> str: ...


INTERFACE_ALIASES: dict[str, str] = {
    "nif": "NIF",
    "cnode": "CNode",
}

BACKENDS: dict[str, Callable[[], Backend]] = {
    "NIF": NifBackend,
    "CNode": CNodeBackend,
}


def register_backend(identity: str, factory: Callable[[], Backend]) -> None:
    """Make a backend available under `identity`; replaces any earlier one."""
    BACKENDS[identity] = factory


def backend_identity(tag: str) -> str:
    return INTERFACE_ALIASES.get(tag, tag)


def output_tag(identity: str) -> str:
    """Directory name for a backend's artifacts: NIF → nif, CNode → cnode."""
    return identity.lower()


def select_backend(
    specs: Specs,
    config: ProjectConfig | None = None,
    override: str | None = None,
) -> str:
    """Identity of the one backend that generates code for `specs`."""
    if override is not None:
        return backend_identity(override)
    tags = specs.interfaces()
    if len(tags) == 0 and config is not None:
        tags = config.interfaces_for(specs.name)
    if len(tags) == 0:
        raise InterfaceNotSpecified(specs.name)
    return backend_identity(tags[0])


def create_backend(identity: str) -> Backend:
    factory = BACKENDS.get(identity)
    if factory is None:
        raise UnknownBackend(identity)
    return factory()


def generate_with(identity: str, specs: Specs) -> tuple[str, str]:
    backend = create_backend(identity)
    return backend.generate_header(specs), backend.generate_source(specs)


def generate_code(
    specs: Specs,
    config: ProjectConfig | None = None,
    override: str | None = None,
) -> tuple[str, str]:
    """Select a backend for `specs` and return its (header, source) text."""
    return generate_with(select_backend(specs, config, override), specs)
