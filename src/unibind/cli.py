"""unibind: native-interface spec compiler."""

from __future__ import annotations

import sys
from pathlib import Path

from .backend import generate_with, output_tag, select_backend
from .compiler import PHASES, compile_spec, run_phases
from .config import ProjectConfig, find_project_config, load_project_config
from .errors import SpecError
from .files import SPEC_SUFFIX, find_specs, store_interface
from .ir import Specs
from .serialize import to_json

EMITS: list[str] = ["header", "source"]

USAGE: str = """\
unibind [OPTIONS] [PATH]

Compile native-interface specs. PATH is a spec file or a directory to search
for *.spec files (default: current directory).

Options:
  --stop-at PHASE     Stop after phase and print it as JSON: parse, collect,
                      normalize, resolve, index, specs (spec file only)
  --emit WHAT         Print generated code instead of storing it: header,
                      source (spec file only, default: header)
  --interface TAG     Generate for TAG (nif, cnode) regardless of declarations
  --config FILE       Project configuration (default: nearest bundle.toml)
  --verbose           Report every written file
  --help              Show this help message
"""


class Options:
    """Parsed command line."""

    def __init__(self) -> None:
        self.path: str = "."
        self.stop_at: str | None = None
        self.emit: str = "header"
        self.interface: str | None = None
        self.config_file: str | None = None
        self.verbose: bool = False


def _require_value(args: list[str], i: int) -> str:
    if i + 1 >= len(args):
        print("error: " + args[i] + " requires an argument", file=sys.stderr)
        sys.exit(2)
    return args[i + 1]


def parse_args(args: list[str]) -> Options:
    """Parse command-line arguments; exits with status 2 on misuse."""
    opts = Options()
    path: str | None = None
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            sys.exit(0)
        elif arg == "--stop-at":
            opts.stop_at = _require_value(args, i)
            i += 2
        elif arg == "--emit":
            opts.emit = _require_value(args, i)
            i += 2
        elif arg == "--interface":
            opts.interface = _require_value(args, i)
            i += 2
        elif arg == "--config":
            opts.config_file = _require_value(args, i)
            i += 2
        elif arg == "--verbose" or arg == "-v":
            opts.verbose = True
            i += 1
        elif arg.startswith("-"):
            print("error: unknown flag '" + arg + "'", file=sys.stderr)
            sys.exit(2)
        else:
            if path is not None:
                print("error: unexpected argument '" + arg + "'", file=sys.stderr)
                sys.exit(2)
            path = arg
            i += 1
    if path is not None:
        opts.path = path
    if opts.stop_at is not None and opts.stop_at not in PHASES:
        print("error: unknown phase '" + opts.stop_at + "'", file=sys.stderr)
        sys.exit(2)
    if opts.emit not in EMITS:
        print("error: unknown output '" + opts.emit + "'", file=sys.stderr)
        sys.exit(2)
    return opts


def read_source(path: Path) -> tuple[str, int]:
    """Read a spec file. Returns (source, exit_code) where exit_code 0 means OK."""
    try:
        with open(path, "rb") as f:
            raw = f.read()
    except OSError:
        print("error: cannot open '" + str(path) + "'", file=sys.stderr)
        return ("", 1)
    try:
        return (raw.decode("utf-8"), 0)
    except ValueError:
        print("error: invalid utf-8 in '" + str(path) + "'", file=sys.stderr)
        return ("", 1)


def spec_name(path: Path) -> str:
    if path.name.endswith(SPEC_SUFFIX) and len(path.name) > len(SPEC_SUFFIX):
        return path.name[: -len(SPEC_SUFFIX)]
    return path.stem


def load_config(opts: Options, root: Path) -> ProjectConfig:
    if opts.config_file is not None:
        return load_project_config(Path(opts.config_file))
    return find_project_config(root)


class ConfigSource:
    """Project configuration, read on first use and then reused."""

    def __init__(self, opts: Options, root: Path) -> None:
        self.opts: Options = opts
        self.root: Path = root
        self.config: ProjectConfig | None = None

    def get(self) -> ProjectConfig:
        if self.config is None:
            self.config = load_config(self.opts, self.root)
        return self.config


def choose_backend(specs: Specs, opts: Options, configs: ConfigSource) -> str:
    """Backend identity; configuration is only read for specs without an interface."""
    if opts.interface is not None or len(specs.interfaces()) > 0:
        return select_backend(specs, None, opts.interface)
    return select_backend(specs, configs.get(), opts.interface)


# --- Single spec ---


def compile_file(path: Path, opts: Options) -> tuple[int, str]:
    """Compile one spec file. Returns (exit_code, output)."""
    source, err = read_source(path)
    if err != 0:
        return (err, "")
    name = spec_name(path)
    try:
        if opts.stop_at is not None:
            return (0, to_json(run_phases(source, name, opts.stop_at)) + "\n")
        specs = compile_spec(source, name)
        identity = choose_backend(specs, opts, ConfigSource(opts, path.parent))
        header, code = generate_with(identity, specs)
    except SpecError as e:
        print(str(e), file=sys.stderr)
        return (1, "")
    if opts.emit == "source":
        return (0, code)
    return (0, header)


# --- Spec tree ---


def build_tree(root: Path, opts: Options) -> int:
    """Generate and store artifacts for every spec under root."""
    configs = ConfigSource(opts, root)
    failed = False
    for name, directory, path in find_specs(root):
        source, err = read_source(path)
        if err != 0:
            failed = True
            continue
        try:
            specs = compile_spec(source, name)
            identity = choose_backend(specs, opts, configs)
            header, code = generate_with(identity, specs)
        except SpecError as e:
            print(str(path) + ": " + str(e), file=sys.stderr)
            failed = True
            continue
        try:
            written = store_interface(name, directory, output_tag(identity), header, code)
        except OSError as e:
            print(str(path) + ": error: cannot write artifacts: " + str(e), file=sys.stderr)
            failed = True
            continue
        if opts.verbose:
            for out in written:
                print("wrote " + str(out), file=sys.stderr)
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    opts = parse_args(sys.argv[1:] if argv is None else argv)
    target = Path(opts.path)
    if target.is_dir():
        if opts.stop_at is not None:
            print("error: --stop-at needs a spec file, not a directory", file=sys.stderr)
            return 2
        return build_tree(target, opts)
    exit_code, output = compile_file(target, opts)
    if exit_code != 0:
        return exit_code
    print(output, end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
