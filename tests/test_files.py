"""Spec discovery and artifact storage."""

import subprocess

from unibind import files
from unibind.files import find_specs, format_sources, store_interface


def test_find_specs_sorted(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "a").mkdir()
    (tmp_path / "b" / "zeta.spec").write_text("")
    (tmp_path / "a" / "alpha.spec").write_text("")
    (tmp_path / "a" / "notes.txt").write_text("")
    (tmp_path / "a" / ".spec").write_text("")
    found = list(find_specs(tmp_path))
    assert [name for name, _, _ in found] == ["alpha", "zeta"]
    assert found[0][1] == tmp_path / "a"
    assert found[1][2] == tmp_path / "b" / "zeta.spec"


def test_find_specs_skips_directories(tmp_path):
    (tmp_path / "odd.spec").mkdir()
    assert list(find_specs(tmp_path)) == []


def test_store_interface_layout(tmp_path):
    written = store_interface("example", tmp_path, "nif", "HEADER\n", "SOURCE\n", format_code=False)
    out = tmp_path / "_generated" / "nif"
    assert written == [
        out / "example.h",
        out / "example.c",
        out / "example.cpp",
        tmp_path / "_generated" / ".gitignore",
    ]
    assert (out / "example.h").read_text() == "HEADER\n"
    assert (out / "example.c").read_text() == "SOURCE\n"
    assert (out / "example.cpp").read_text() == "SOURCE\n"
    assert (tmp_path / "_generated" / ".gitignore").read_text() == "*.h\n*.c\n*.cpp\n"


def test_store_interface_overwrites(tmp_path):
    store_interface("example", tmp_path, "cnode", "old\n", "old\n", format_code=False)
    store_interface("example", tmp_path, "cnode", "new\n", "new\n", format_code=False)
    assert (tmp_path / "_generated" / "cnode" / "example.h").read_text() == "new\n"


def test_format_sources_without_clang_format(monkeypatch, tmp_path):
    def missing(*args, **kwargs):
        raise FileNotFoundError("clang-format")

    monkeypatch.setattr(files.subprocess, "run", missing)
    assert format_sources([tmp_path / "x.c"]) is False


def test_format_sources_timeout(monkeypatch, tmp_path):
    def slow(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, files.FORMAT_TIMEOUT)

    monkeypatch.setattr(files.subprocess, "run", slow)
    assert format_sources([tmp_path / "x.c"]) is False


def test_format_sources_command(monkeypatch, tmp_path):
    calls = []

    def record(cmd, **kwargs):
        calls.append(cmd)

    monkeypatch.setattr(files.subprocess, "run", record)
    assert format_sources([tmp_path / "x.h", tmp_path / "x.c"]) is True
    assert calls[0][0] == "clang-format"
    assert calls[0][-2:] == [str(tmp_path / "x.h"), str(tmp_path / "x.c")]


def test_store_interface_formats_sources_only(monkeypatch, tmp_path):
    calls = []

    def record(cmd, **kwargs):
        calls.append(cmd)

    monkeypatch.setattr(files.subprocess, "run", record)
    store_interface("example", tmp_path, "nif", "h\n", "c\n")
    assert len(calls) == 1
    assert not any(arg.endswith(".gitignore") for arg in calls[0])
