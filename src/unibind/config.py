"""Project configuration: interfaces declared for natives outside their spec.

The file is TOML, by default `bundle.toml` at the project root:

    [natives.example]
    interface = ["nif"]

    [libs.helper]
    interface = ["cnode"]

A spec without an `interface` declaration is looked up by its name, first
under `natives`, then under `libs`.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from .errors import ConfigError

CONFIG_FILE_NAME = "bundle.toml"

# Lookup order for the interface fallback
CATEGORIES: tuple[str, ...] = ("natives", "libs")


class ProjectConfig:
    """Read-only view of the project's native declarations."""

    def __init__(self, data: dict[str, object] | None = None, path: Path | None = None) -> None:
        self.data: dict[str, object] = data if data is not None else {}
        self.path: Path | None = path

    def _entry(self, category: str, name: str) -> dict[str, object] | None:
        section = self.data.get(category)
        if not isinstance(section, dict):
            return None
        entry = section.get(name)
        if not isinstance(entry, dict):
            return None
        return entry

    def _interfaces(self, category: str, name: str) -> list[str]:
        entry = self._entry(category, name)
        if entry is None:
            return []
        value = entry.get("interface")
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return list(value)
        raise ConfigError(
            "interface of " + category + "." + name + " must be a string or a list of strings"
        )

    def interfaces_for(self, name: str) -> list[str]:
        """Interface tags for a native, from the first category that declares any."""
        for category in CATEGORIES:
            found = self._interfaces(category, name)
            if len(found) > 0:
                return found
        return []


def load_project_config(path: Path) -> ProjectConfig:
    """Load configuration from a TOML file. A missing file is an empty configuration."""
    if not path.exists():
        return ProjectConfig(path=path)
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError("cannot read '" + str(path) + "': " + str(e))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError("invalid configuration '" + str(path) + "': " + str(e))
    return ProjectConfig(data, path)


def find_project_config(root: Path) -> ProjectConfig:
    """Configuration from the nearest bundle.toml at or above root."""
    current = root.resolve()
    while True:
        candidate = current / CONFIG_FILE_NAME
        if candidate.exists():
            return load_project_config(candidate)
        if current.parent == current:
            return ProjectConfig()
        current = current.parent
