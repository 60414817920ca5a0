"""Spec parser: recursive descent, one method per grammar production.

Grammar (newlines separate statements at top level):

    Program   = ( Statement NEWLINE )*
    Statement = Command | Expr
    Command   = IDENT Args                    -- parenthesis-free call
    Args      = Arg ( ',' Arg )*              -- trailing key: value pairs form one list
    Expr      = Alt ( '::' Expr )?
    Alt       = Primary ( '|' Alt )?
    Primary   = IDENT ( '(' Args? ')' )? | Alias | ATOM | STRING | INT
              | '{' Items '}' | '[' Items ']' | '%' Alias '{' Items '}' | '(' Expr ')'
"""

from __future__ import annotations

from .ast import (
    Pos,
    SAlias,
    SAtom,
    SBinOp,
    SCall,
    SExpr,
    SIdent,
    SInt,
    SKeyword,
    SList,
    SModule,
    SString,
    SStruct,
    STuple,
)
from .errors import ParseError
from .tokens import (
    TK_ALIAS,
    TK_ATOM,
    TK_EOF,
    TK_IDENT,
    TK_INT,
    TK_KEYWORD,
    TK_NEWLINE,
    TK_OP,
    TK_STRING,
    Token,
    tokenize,
)

# Token types that can begin a command argument
ARG_START_TYPES: set[str] = {TK_IDENT, TK_ALIAS, TK_ATOM, TK_STRING, TK_INT, TK_KEYWORD}
ARG_START_OPS: set[str] = {"{", "[", "%"}


class Parser:
    """Recursive descent parser for spec files."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[len(self.tokens) - 1]
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def at_op(self, value: str) -> bool:
        tok = self.current()
        return tok.type == TK_OP and tok.value == value

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def expect_op(self, value: str) -> Token:
        if not self.at_op(value):
            raise self.error("expected '" + value + "', got " + self._describe(self.current()))
        return self.advance()

    def error(self, msg: str) -> ParseError:
        tok = self.current()
        return ParseError(msg, tok.line, tok.col)

    def _describe(self, tok: Token) -> str:
        if tok.type == TK_EOF:
            return "end of input"
        if tok.type == TK_NEWLINE:
            return "end of line"
        return "'" + tok.value + "'"

    def _pos(self) -> Pos:
        tok = self.current()
        return Pos(tok.line, tok.col)

    def _at_continued_op(self, value: str) -> bool:
        """True at `value`, also when `value` opens the next line."""
        if self.at_op(value):
            return True
        if self.at_type(TK_NEWLINE):
            nxt = self.peek(1)
            if nxt.type == TK_OP and nxt.value == value:
                self.advance()
                return True
        return False

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> SModule:
        statements: list[SExpr] = []
        while True:
            while self.at_type(TK_NEWLINE):
                self.advance()
            if self.at_type(TK_EOF):
                break
            statements.append(self.parse_statement())
            if not (self.at_type(TK_NEWLINE) or self.at_type(TK_EOF)):
                raise self.error(
                    "expected end of line, got " + self._describe(self.current())
                )
        return SModule(statements)

    def parse_statement(self) -> SExpr:
        tok = self.current()
        if tok.type == TK_IDENT and self._starts_command_arg(self.peek(1)):
            pos = self._pos()
            self.advance()
            args = self.parse_args()
            return SCall(pos, tok.value, args, False)
        return self.parse_expr()

    def _starts_command_arg(self, tok: Token) -> bool:
        if tok.type in ARG_START_TYPES:
            return True
        return tok.type == TK_OP and tok.value in ARG_START_OPS

    def parse_args(self) -> list[SExpr]:
        """Comma-separated arguments; trailing key: value pairs become one list."""
        args: list[SExpr] = []
        keywords: list[SExpr] = []
        while True:
            if self.at_type(TK_KEYWORD):
                keywords.append(self.parse_keyword())
            else:
                if len(keywords) > 0:
                    raise self.error("positional argument after keyword arguments")
                args.append(self.parse_expr())
            if not self.at_op(","):
                break
            self.advance()
        if len(keywords) > 0:
            args.append(SList(keywords[0].pos, keywords))
        return args

    def parse_keyword(self) -> SKeyword:
        pos = self._pos()
        key = self.advance().value
        value = self.parse_expr()
        return SKeyword(pos, key, value)

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> SExpr:
        """Expr = Alt ( '::' Expr )?"""
        left = self.parse_alt()
        if self._at_continued_op("::"):
            op = self.advance()
            right = self.parse_expr()
            return SBinOp(Pos(op.line, op.col), "::", left, right)
        return left

    def parse_alt(self) -> SExpr:
        """Alt = Primary ( '|' Alt )?"""
        left = self.parse_primary()
        if self._at_continued_op("|"):
            op = self.advance()
            right = self.parse_alt()
            return SBinOp(Pos(op.line, op.col), "|", left, right)
        return left

    def parse_primary(self) -> SExpr:
        pos = self._pos()
        tok = self.current()
        if tok.type == TK_IDENT:
            self.advance()
            if self.at_op("("):
                self.advance()
                args: list[SExpr] = []
                if not self.at_op(")"):
                    args = self.parse_args()
                self.expect_op(")")
                return SCall(pos, tok.value, args, True)
            return SIdent(pos, tok.value)
        if tok.type == TK_ALIAS:
            return self.parse_alias()
        if tok.type == TK_ATOM:
            self.advance()
            return SAtom(pos, tok.value)
        if tok.type == TK_STRING:
            self.advance()
            return SString(pos, tok.value)
        if tok.type == TK_INT:
            self.advance()
            return SInt(pos, int(tok.value))
        if tok.type == TK_OP:
            if tok.value == "{":
                self.advance()
                items = self.parse_items("}")
                return STuple(pos, items)
            if tok.value == "[":
                self.advance()
                items = self.parse_items("]")
                return SList(pos, items)
            if tok.value == "%":
                return self.parse_struct()
            if tok.value == "(":
                self.advance()
                inner = self.parse_expr()
                self.expect_op(")")
                return inner
        raise self.error("unexpected " + self._describe(tok))

    def parse_alias(self) -> SAlias:
        pos = self._pos()
        parts: list[str] = [self.advance().value]
        while self.at_op(".") and self.peek(1).type == TK_ALIAS:
            self.advance()
            parts.append(self.advance().value)
        return SAlias(pos, parts)

    def parse_items(self, closer: str) -> list[SExpr]:
        """Comma-separated expressions or key: value pairs up to `closer`."""
        items: list[SExpr] = []
        while not self.at_op(closer):
            if self.at_type(TK_KEYWORD):
                items.append(self.parse_keyword())
            else:
                items.append(self.parse_expr())
            if not self.at_op(","):
                break
            self.advance()
        self.expect_op(closer)
        return items

    def parse_struct(self) -> SStruct:
        pos = self._pos()
        self.expect_op("%")
        if not self.at_type(TK_ALIAS):
            raise self.error("expected struct name after '%'")
        alias = self.parse_alias()
        self.expect_op("{")
        fields: list[SKeyword] = []
        while not self.at_op("}"):
            if not self.at_type(TK_KEYWORD):
                raise self.error("expected 'field: type' in struct " + alias.name)
            fields.append(self.parse_keyword())
            if not self.at_op(","):
                break
            self.advance()
        self.expect_op("}")
        return SStruct(pos, alias, fields)


def parse(source: str) -> SModule:
    """Parse spec source into an SModule syntax tree."""
    return Parser(tokenize(source)).parse_program()
