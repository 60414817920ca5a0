"""Spec tokenizer: lexes spec source into a flat token list."""

from __future__ import annotations

from .errors import TokenizeError


# Token type constants
TK_INT = "INT"
TK_STRING = "STRING"
TK_IDENT = "IDENT"
TK_ALIAS = "ALIAS"
TK_ATOM = "ATOM"
TK_KEYWORD = "KEYWORD"
TK_OP = "OP"
TK_NEWLINE = "NEWLINE"
TK_EOF = "EOF"

MULTI_OPS: list[str] = ["::"]

SINGLE_OPS: set[str] = {
    "|",
    "(",
    ")",
    "[",
    "]",
    "{",
    "}",
    ",",
    "%",
    ".",
}

OPENERS: set[str] = {"(", "[", "{"}
CLOSERS: set[str] = {")", "]", "}"}

# A statement keeps going across a line break after these
CONTINUATION_OPS: set[str] = {"::", "|", ","}

ESCAPE_MAP: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
}


class Token:
    """A token with type, value, and position."""

    def __init__(self, type_: str, value: str, line: int, col: int):
        self.type: str = type_
        self.value: str = value
        self.line: int = line
        self.col: int = col

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.value)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_lower(c: str) -> bool:
    return (c >= "a" and c <= "z") or c == "_"


def _is_upper(c: str) -> bool:
    return c >= "A" and c <= "Z"


def _is_alnum(c: str) -> bool:
    return _is_lower(c) or _is_upper(c) or _is_digit(c)


def _scan_word(source: str, pos: int) -> int:
    """Return the end position of the identifier starting at pos."""
    while pos < len(source) and _is_alnum(source[pos]):
        pos += 1
    return pos


def _wants_newline(tokens: list[Token], depth: int) -> bool:
    """A line break ends a statement only at top level after a complete expression."""
    if depth > 0 or len(tokens) == 0:
        return False
    last = tokens[-1]
    if last.type == TK_NEWLINE:
        return False
    if last.type == TK_OP and last.value in CONTINUATION_OPS:
        return False
    return True


def tokenize(source: str) -> list[Token]:
    """Tokenize spec source into a flat list ending with TK_EOF.

    Newlines are significant at bracket depth zero: they are emitted as
    TK_NEWLINE tokens separating top-level statements.
    """
    tokens: list[Token] = []
    pos = 0
    line = 1
    col = 1
    depth = 0
    length = len(source)

    while pos < length:
        c = source[pos]

        if c == "\n":
            if _wants_newline(tokens, depth):
                tokens.append(Token(TK_NEWLINE, "\n", line, col))
            pos += 1
            line += 1
            col = 1
            continue

        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        # Line comment: #
        if c == "#":
            while pos < length and source[pos] != "\n":
                pos += 1
            continue

        start_line = line
        start_col = col

        if _is_digit(c):
            end = pos
            while end < length and (_is_digit(source[end]) or source[end] == "_"):
                end += 1
            raw = source[pos:end]
            tokens.append(Token(TK_INT, raw.replace("_", ""), start_line, start_col))
            col += end - pos
            pos = end
            continue

        if c == '"':
            pos += 1
            col += 1
            chars: list[str] = []
            while pos < length and source[pos] != '"':
                if source[pos] == "\n":
                    raise TokenizeError("unterminated string literal", start_line, start_col)
                if source[pos] == "\\":
                    if pos + 1 >= length or source[pos + 1] not in ESCAPE_MAP:
                        raise TokenizeError("invalid escape in string", line, col)
                    chars.append(ESCAPE_MAP[source[pos + 1]])
                    pos += 2
                    col += 2
                    continue
                chars.append(source[pos])
                pos += 1
                col += 1
            if pos >= length:
                raise TokenizeError("unterminated string literal", start_line, start_col)
            pos += 1  # skip closing "
            col += 1
            tokens.append(Token(TK_STRING, "".join(chars), start_line, start_col))
            continue

        # Atom: :name (but not the :: operator)
        if c == ":" and pos + 1 < length and source[pos + 1] != ":":
            if not (_is_lower(source[pos + 1]) or _is_upper(source[pos + 1])):
                raise TokenizeError("expected atom name after ':'", start_line, start_col)
            end = _scan_word(source, pos + 1)
            tokens.append(Token(TK_ATOM, source[pos + 1 : end], start_line, start_col))
            col += end - pos
            pos = end
            continue

        # Identifier, keyword pair key (name:) or alias (Name)
        if _is_lower(c) or _is_upper(c):
            end = _scan_word(source, pos)
            word = source[pos:end]
            is_key = (
                end < length
                and source[end] == ":"
                and (end + 1 >= length or source[end + 1] != ":")
            )
            if is_key:
                tokens.append(Token(TK_KEYWORD, word, start_line, start_col))
                col += end + 1 - pos
                pos = end + 1
                continue
            if _is_upper(c):
                tokens.append(Token(TK_ALIAS, word, start_line, start_col))
            else:
                tokens.append(Token(TK_IDENT, word, start_line, start_col))
            col += end - pos
            pos = end
            continue

        matched = False
        for op in MULTI_OPS:
            op_len = len(op)
            if source[pos : pos + op_len] == op:
                tokens.append(Token(TK_OP, op, start_line, start_col))
                pos += op_len
                col += op_len
                matched = True
                break
        if matched:
            continue

        if c in SINGLE_OPS:
            if c in OPENERS:
                depth += 1
            elif c in CLOSERS:
                if depth == 0:
                    raise TokenizeError("unbalanced '" + c + "'", start_line, start_col)
                depth -= 1
            tokens.append(Token(TK_OP, c, start_line, start_col))
            pos += 1
            col += 1
            continue

        raise TokenizeError("unexpected character: " + repr(c), line, col)

    if depth > 0:
        raise TokenizeError("unclosed bracket at end of input", line, col)
    tokens.append(Token(TK_EOF, "", line, col))
    return tokens
