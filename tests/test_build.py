"""Directory builds: per-spec failures and lazy configuration."""

from pathlib import Path

from unibind import cli
from unibind.cli import Options, build_tree
from unibind.ir import Loc
from unibind.normalize import StateTypeDecl
from unibind.serialize import to_json

DECLARED = "module Example\ninterface NIF\nspec f() :: {:ok :: label}\n"


def write_spec(root: Path, name: str, source: str) -> Path:
    path = root / name / (name + ".spec")
    path.parent.mkdir(parents=True)
    path.write_text(source)
    return path


def test_write_error_reported_and_build_continues(monkeypatch, tmp_path, capsys):
    write_spec(tmp_path, "alpha", DECLARED)
    write_spec(tmp_path, "beta", DECLARED)
    stored = []

    def store(name, directory, tag, header, source):
        stored.append(name)
        if name == "alpha":
            raise PermissionError("read-only file system")
        return []

    monkeypatch.setattr(cli, "store_interface", store)
    assert build_tree(tmp_path, Options()) == 1
    assert stored == ["alpha", "beta"]
    err = capsys.readouterr().err
    assert "alpha.spec: error: cannot write artifacts: read-only file system" in err
    assert "beta.spec" not in err


def test_configuration_not_read_when_every_spec_declares_interface(monkeypatch, tmp_path):
    write_spec(tmp_path, "alpha", DECLARED)
    calls = []

    def load(opts, root):
        calls.append(root)
        raise AssertionError("configuration read")

    monkeypatch.setattr(cli, "load_config", load)
    monkeypatch.setattr(cli, "store_interface", lambda *args: [])
    assert build_tree(tmp_path, Options()) == 0
    assert calls == []


def test_configuration_read_once_for_many_specs(monkeypatch, tmp_path):
    source = "module Example\nspec f() :: {:ok :: label}\n"
    write_spec(tmp_path, "alpha", source)
    write_spec(tmp_path, "beta", source)
    (tmp_path / "bundle.toml").write_text(
        '[natives.alpha]\ninterface = "nif"\n\n[natives.beta]\ninterface = "cnode"\n'
    )
    loads = []
    real_load = cli.load_config

    def counting_load(opts, root):
        loads.append(root)
        return real_load(opts, root)

    tags = []
    monkeypatch.setattr(cli, "load_config", counting_load)
    monkeypatch.setattr(cli, "store_interface", lambda name, d, tag, h, s: tags.append(tag) or [])
    assert build_tree(tmp_path, Options()) == 0
    assert len(loads) == 1
    assert tags == ["nif", "cnode"]


def test_json_escapes_control_characters():
    text = to_json(StateTypeDecl("a\rb\x01c", Loc(1, 1)))
    assert '"name": "a\\rb\\u0001c"' in text
