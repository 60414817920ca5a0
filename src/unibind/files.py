"""Spec discovery and generated artifact storage."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterator

SPEC_SUFFIX = ".spec"
GENERATED_DIR = "_generated"
GENERATED_PATTERNS: tuple[str, ...] = ("*.h", "*.c", "*.cpp")
CLANG_FORMAT_STYLE = "{BasedOnStyle: llvm, IndentWidth: 2}"
FORMAT_TIMEOUT = 30


def user_header_path(name: str) -> str:
    """Include path of the hand-written header, relative to the generated sources."""
    return "../" + name + ".h"


def find_specs(root: Path) -> Iterator[tuple[str, Path, Path]]:
    """Yield (name, dir, path) for every spec file under root, sorted by path."""
    for path in sorted(root.rglob("?*" + SPEC_SUFFIX)):
        if not path.is_file():
            continue
        yield (path.name[: -len(SPEC_SUFFIX)], path.parent, path)


def format_sources(paths: list[Path]) -> bool:
    """Run clang-format in place. Returns False when the tool is unavailable."""
    cmd = ["clang-format", "-style=" + CLANG_FORMAT_STYLE, "-i"] + [str(p) for p in paths]
    try:
        subprocess.run(cmd, capture_output=True, timeout=FORMAT_TIMEOUT)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return False
    return True


def store_interface(
    name: str,
    dir: Path,
    tag: str,
    header: str,
    source: str,
    format_code: bool = True,
) -> list[Path]:
    """Write <dir>/_generated/<tag>/<name>.{h,c,cpp} and the ignore list.

    Returns the written paths, ignore list last.
    """
    generated = dir / GENERATED_DIR
    out_dir = generated / tag
    out_dir.mkdir(parents=True, exist_ok=True)
    header_path = out_dir / (name + ".h")
    c_path = out_dir / (name + ".c")
    cpp_path = out_dir / (name + ".cpp")
    header_path.write_text(header)
    c_path.write_text(source)
    cpp_path.write_text(source)
    sources = [header_path, c_path, cpp_path]
    if format_code:
        format_sources(sources)
    ignore_path = generated / ".gitignore"
    ignore_path.write_text("\n".join(GENERATED_PATTERNS) + "\n")
    return sources + [ignore_path]
