"""Spec pipeline: source → Specs IR, one phase after another.

Each phase needs the previous phase's complete output. The first error
aborts the file; nothing is shared between files, so separate specs can be
compiled independently.
"""

from __future__ import annotations

from .collect import collect_declarations
from .ir import Specs
from .normalize import normalize_declarations
from .parse import parse
from .registry import build_specs
from .resolve import resolve_types
from .results import index_results

PHASES: list[str] = [
    "parse",
    "collect",
    "normalize",
    "resolve",
    "index",
    "specs",
]


def run_phases(source: str, name: str, stop_at: str = "specs") -> object:
    """Run the pipeline up to and including `stop_at`; return that phase's output."""
    if stop_at not in PHASES:
        raise ValueError("unknown phase '" + stop_at + "'")
    module = parse(source)
    if stop_at == "parse":
        return module
    decls = collect_declarations(module)
    if stop_at == "collect":
        return decls
    records = normalize_declarations(decls)
    if stop_at == "normalize":
        return records
    records = resolve_types(records)
    if stop_at == "resolve":
        return records
    records = index_results(records)
    if stop_at == "index":
        return records
    return build_specs(name, records)


def compile_spec(source: str, name: str) -> Specs:
    """Compile one spec file's source into its Specs IR."""
    specs = run_phases(source, name, "specs")
    assert isinstance(specs, Specs)
    return specs
