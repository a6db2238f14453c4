from __future__ import annotations

from dataclasses import dataclass

import regex

from ..errors import QuerySyntaxError

KEYWORDS = frozenset(
    {
        "SELECT", "DISTINCT", "FROM", "AS", "JOIN", "INNER", "LEFT", "OUTER", "ON",
        "WHERE", "GROUP", "BY", "HAVING", "ORDER", "ASC", "DESC", "LIMIT", "OFFSET",
        "AND", "OR", "NOT", "IN", "IS", "NULL", "LIKE", "BETWEEN", "TRUE", "FALSE",
    }
)

_TOKEN = regex.compile(
    r"""
    (?P<ws>\s+)
    |(?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<number>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<string>'(?:[^']|'')*')
    |(?P<dquote>"(?:[^"]|"")*")
    |(?P<bquote>`[^`]*`)
    |(?P<ident>(?:[^\W\d]|\#)[\w\#$]*)
    |(?P<op><>|!=|<=|>=|\|\||[=<>+\-*/%])
    |(?P<punct>[(),.;])
    """,
    regex.VERBOSE | regex.DOTALL,
)


@dataclass(frozen=True, slots=True)
class Token:
    kind: str
    value: str
    pos: int
    end: int

    @property
    def upper(self) -> str:
        return self.value.upper()

    def is_keyword(self, *names: str) -> bool:
        return self.kind == "keyword" and self.upper in names

    def is_punct(self, char: str) -> bool:
        return self.kind == "punct" and self.value == char

    def is_op(self, *ops: str) -> bool:
        return self.kind == "op" and self.value in ops


def tokenize(sql: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(sql):
        match = _TOKEN.match(sql, pos)
        if match is None:
            if sql[pos] in "'\"`" or sql.startswith("/*", pos):
                raise QuerySyntaxError("unterminated literal or comment", pos)
            raise QuerySyntaxError(f"unexpected character {sql[pos]!r}", pos)
        kind = match.lastgroup or ""
        text = match.group()
        if kind == "string":
            tokens.append(Token("string", text[1:-1].replace("''", "'"), pos, match.end()))
        elif kind == "dquote":
            tokens.append(Token("ident", text[1:-1].replace('""', '"'), pos, match.end()))
        elif kind == "bquote":
            tokens.append(Token("ident", text[1:-1], pos, match.end()))
        elif kind == "ident":
            token_kind = "keyword" if text.upper() in KEYWORDS else "ident"
            tokens.append(Token(token_kind, text, pos, match.end()))
        elif kind in {"number", "op", "punct"}:
            tokens.append(Token(kind, text, pos, match.end()))
        pos = match.end()
    return tokens


def split_statements(sql: str) -> list[tuple[str, list[Token]]]:
    """Split a script on top-level ``;`` into (statement text, tokens) pairs."""

    statements: list[tuple[str, list[Token]]] = []
    current: list[Token] = []
    for token in tokenize(sql) + [Token("punct", ";", len(sql), len(sql))]:
        if token.is_punct(";"):
            if current:
                text = sql[current[0].pos : current[-1].end]
                statements.append((text, current + [Token("eof", "", len(sql), len(sql))]))
            current = []
            continue
        current.append(token)
    return statements
