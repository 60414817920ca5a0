"""Error taxonomy for spec compilation.

Every error is fatal to the spec file being compiled. Errors carry the
source position of the offending declaration and a phase tag used when
rendering diagnostics.
"""

from __future__ import annotations


class SpecError(Exception):
    """Base for all spec compilation errors."""

    phase: str = "spec"

    def __init__(self, msg: str, line: int = 0, col: int = 0) -> None:
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg)

    def __str__(self) -> str:
        return (
            "error:"
            + str(self.line)
            + ":"
            + str(self.col)
            + ": ["
            + self.phase
            + "] "
            + self.msg
        )


# ---------------------------------------------------------------------------
# Grammar errors
# ---------------------------------------------------------------------------


class GrammarError(SpecError):
    phase = "grammar"


class TokenizeError(GrammarError):
    """Error during tokenization."""


class ParseError(GrammarError):
    """Parse error with location info."""


class MalformedDeclaration(GrammarError):
    """A declaration whose payload does not match its kind's grammar."""

    def __init__(self, kind: str, fragment: str, line: int = 0, col: int = 0) -> None:
        self.kind: str = kind
        self.fragment: str = fragment
        super().__init__("malformed '" + kind + "' declaration: " + fragment, line, col)


class InvalidDirtyKind(GrammarError):
    def __init__(self, kind: str, line: int = 0, col: int = 0) -> None:
        self.kind: str = kind
        super().__init__(
            "invalid dirty kind '" + kind + "', expected one of: cpu, io", line, col
        )


class InvalidHook(GrammarError):
    def __init__(self, hook: str, line: int = 0, col: int = 0) -> None:
        self.hook: str = hook
        super().__init__(
            "invalid callback hook '"
            + hook
            + "', expected one of: load, upgrade, unload, main",
            line,
            col,
        )


# ---------------------------------------------------------------------------
# Resolution errors
# ---------------------------------------------------------------------------


class UnknownType(SpecError):
    """A type reference that names nothing declared earlier in the file."""

    phase = "types"

    def __init__(self, name: str, used_in: str, line: int = 0, col: int = 0) -> None:
        self.name: str = name
        self.used_in: str = used_in
        super().__init__("unknown type '" + name + "' in " + used_in, line, col)


# ---------------------------------------------------------------------------
# Uniqueness / invariant errors
# ---------------------------------------------------------------------------


class InvariantError(SpecError):
    phase = "invariant"


class EmptyLabelSet(InvariantError):
    def __init__(self, function: str, clause_index: int, line: int = 0, col: int = 0) -> None:
        self.function: str = function
        self.clause_index: int = clause_index
        super().__init__(
            "result clause "
            + str(clause_index)
            + " of '"
            + function
            + "' has no label",
            line,
            col,
        )


class DuplicateAccessorName(InvariantError):
    def __init__(self, function: str, name: str, line: int = 0, col: int = 0) -> None:
        self.function: str = function
        self.name: str = name
        super().__init__(
            "duplicate accessor '" + name + "' in results of '" + function + "'",
            line,
            col,
        )


class DuplicateResultName(InvariantError):
    def __init__(self, function: str, name: str, line: int = 0, col: int = 0) -> None:
        self.function: str = function
        self.name: str = name
        super().__init__(
            "result value '" + name + "' appears twice in a clause of '" + function + "'",
            line,
            col,
        )


class DuplicateFunction(InvariantError):
    def __init__(self, name: str, arity: int, line: int = 0, col: int = 0) -> None:
        self.name: str = name
        self.arity: int = arity
        super().__init__(
            "function '" + name + "/" + str(arity) + "' is already declared", line, col
        )


class DuplicateTypeAlias(InvariantError):
    def __init__(self, alias: str, line: int = 0, col: int = 0) -> None:
        self.alias: str = alias
        super().__init__("type '" + alias + "' is already declared", line, col)


# ---------------------------------------------------------------------------
# Selection errors
# ---------------------------------------------------------------------------


class SelectionError(SpecError):
    phase = "backend"


class InterfaceNotSpecified(SelectionError):
    def __init__(self, name: str) -> None:
        self.name: str = name
        super().__init__(
            "interface for native '"
            + name
            + "' is not specified; declare it in the spec or in the project configuration"
        )


class UnknownBackend(SelectionError):
    def __init__(self, tag: str) -> None:
        self.tag: str = tag
        super().__init__("no backend registered for interface '" + tag + "'")


class ConfigError(SpecError):
    phase = "config"
