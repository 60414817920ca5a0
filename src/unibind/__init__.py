"""unibind - compile native-interface specs into C glue for NIFs and C nodes."""

from .backend import generate_code, register_backend, select_backend
from .compiler import PHASES, compile_spec, run_phases
from .config import ProjectConfig, find_project_config, load_project_config
from .errors import SpecError
from .files import find_specs, store_interface, user_header_path
from .ir import Specs

__all__ = [
    "PHASES",
    "ProjectConfig",
    "SpecError",
    "Specs",
    "compile_spec",
    "find_project_config",
    "find_specs",
    "generate_code",
    "load_project_config",
    "register_backend",
    "run_phases",
    "select_backend",
    "store_interface",
    "user_header_path",
]
