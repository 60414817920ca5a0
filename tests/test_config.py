"""Project configuration loading and interface lookup."""

import pytest

from unibind.config import (
    CONFIG_FILE_NAME,
    ProjectConfig,
    find_project_config,
    load_project_config,
)
from unibind.errors import ConfigError


def test_missing_file_is_empty(tmp_path):
    config = load_project_config(tmp_path / CONFIG_FILE_NAME)
    assert config.interfaces_for("example") == []


def test_load_list_and_string(tmp_path):
    path = tmp_path / CONFIG_FILE_NAME
    path.write_text(
        '[natives.example]\ninterface = ["nif", "cnode"]\n\n[libs.helper]\ninterface = "cnode"\n'
    )
    config = load_project_config(path)
    assert config.path == path
    assert config.interfaces_for("example") == ["nif", "cnode"]
    assert config.interfaces_for("helper") == ["cnode"]
    assert config.interfaces_for("unknown") == []


def test_empty_interface_list_falls_through(tmp_path):
    config = ProjectConfig(
        {"natives": {"example": {"interface": []}}, "libs": {"example": {"interface": ["nif"]}}}
    )
    assert config.interfaces_for("example") == ["nif"]


def test_entry_without_interface():
    config = ProjectConfig({"natives": {"example": {"src": "c_src"}}})
    assert config.interfaces_for("example") == []


def test_non_table_sections_ignored():
    config = ProjectConfig({"natives": "example", "libs": {"example": 3}})
    assert config.interfaces_for("example") == []


def test_bad_interface_value():
    config = ProjectConfig({"natives": {"example": {"interface": 7}}})
    with pytest.raises(ConfigError) as exc:
        config.interfaces_for("example")
    assert "natives.example" in str(exc.value)
    assert "[config]" in str(exc.value)


def test_invalid_toml(tmp_path):
    path = tmp_path / CONFIG_FILE_NAME
    path.write_text("[natives.example\n")
    with pytest.raises(ConfigError) as exc:
        load_project_config(path)
    assert "invalid configuration" in str(exc.value)


def test_find_walks_up(tmp_path):
    (tmp_path / CONFIG_FILE_NAME).write_text('[natives.deep]\ninterface = "nif"\n')
    nested = tmp_path / "c_src" / "deep"
    nested.mkdir(parents=True)
    config = find_project_config(nested)
    assert config.interfaces_for("deep") == ["nif"]


def test_find_prefers_nearest(tmp_path):
    (tmp_path / CONFIG_FILE_NAME).write_text('[natives.x]\ninterface = "nif"\n')
    inner = tmp_path / "inner"
    inner.mkdir()
    (inner / CONFIG_FILE_NAME).write_text('[natives.x]\ninterface = "cnode"\n')
    assert find_project_config(inner).interfaces_for("x") == ["cnode"]
