"""Recursive-descent parser for the supported SELECT subset.

Precedence, loosest first: OR, AND, NOT, predicates (comparison, LIKE, IN,
BETWEEN, IS NULL), ``+ - ||``, ``* / %``, unary minus, primaries.
"""

from __future__ import annotations

from typing import Optional

from ..errors import QuerySyntaxError
from .coercion import integer_value
from .functions import ARITY, SCALAR_FUNCTIONS
from .nodes import (
    AGGREGATES,
    Between,
    Binary,
    ColumnRef,
    Expr,
    FuncCall,
    InList,
    IsNull,
    Join,
    Like,
    Literal,
    OrderItem,
    Select,
    SelectItem,
    Star,
    TableRef,
    Unary,
)
from .tokenizer import Token

COMPARISON_OPS = {"=", "!=", "<>", "<", "<=", ">", ">="}
_CLAUSE_KEYWORDS = ("SELECT", "FROM", "WHERE", "GROUP", "HAVING", "LIMIT", "OFFSET", "JOIN", "INNER", "LEFT", "ON")


class Parser:
    def __init__(self, tokens: list[Token], source: str) -> None:
        self.tokens = tokens
        self.source = source
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.current
        if token.kind != "eof":
            self.index += 1
        return token

    def accept_keyword(self, *names: str) -> Token | None:
        if self.current.is_keyword(*names):
            return self.advance()
        return None

    def expect_keyword(self, name: str) -> Token:
        token = self.accept_keyword(name)
        if token is None:
            raise self.error(f"expected {name}")
        return token

    def accept_punct(self, char: str) -> bool:
        if self.current.is_punct(char):
            self.advance()
            return True
        return False

    def expect_punct(self, char: str) -> None:
        if not self.accept_punct(char):
            raise self.error(f"expected {char!r}")

    def error(self, message: str) -> QuerySyntaxError:
        token = self.current
        found = "end of query" if token.kind == "eof" else repr(token.value)
        return QuerySyntaxError(f"{message}, found {found}", token.pos)

    def parse_select(self) -> Select:
        if not self.current.is_keyword("SELECT"):
            raise self.error("only SELECT statements are supported")
        self.advance()
        distinct = self.accept_keyword("DISTINCT") is not None
        items = [self.parse_select_item()]
        while self.accept_punct(","):
            items.append(self.parse_select_item())
        self.expect_keyword("FROM")
        source = self.parse_table_ref()
        joins: list[Join] = []
        while True:
            join = self.parse_join()
            if join is None:
                break
            joins.append(join)
        where = self.parse_expr() if self.accept_keyword("WHERE") else None
        group_by: list[Expr] = []
        if self.accept_keyword("GROUP"):
            self.expect_keyword("BY")
            group_by = self.parse_expr_list()
        having = self.parse_expr() if self.accept_keyword("HAVING") else None
        order_by: list[OrderItem] = []
        if self.accept_keyword("ORDER"):
            self.expect_keyword("BY")
            order_by.append(self.parse_order_item())
            while self.accept_punct(","):
                order_by.append(self.parse_order_item())
        limit: Optional[int] = None
        offset = 0
        if self.accept_keyword("LIMIT"):
            limit = self.parse_count("LIMIT")
            if self.accept_keyword("OFFSET"):
                offset = self.parse_count("OFFSET")
        if self.current.kind != "eof":
            raise self.error("unexpected token")
        return Select(
            items=tuple(items),
            source=source,
            joins=tuple(joins),
            where=where,
            group_by=tuple(group_by),
            having=having,
            order_by=tuple(order_by),
            limit=limit,
            offset=offset,
            distinct=distinct,
        )

    def parse_select_item(self) -> SelectItem:
        start = self.current
        if self.accept_punct_op("*"):
            return SelectItem(expr=Star(), alias=None, text="*")
        if self.is_name(self.current) and self.peek().is_punct(".") and self.peek(2).is_op("*"):
            table = self.advance().value
            self.advance()
            self.advance()
            return SelectItem(expr=Star(table), alias=None, text=f"{table}.*")
        if self.current.is_keyword("FROM") or self.current.kind == "eof":
            raise self.error("expected a column or expression")
        expr = self.parse_expr()
        text = self.source[start.pos : self.tokens[self.index - 1].end]
        alias = self.parse_alias()
        return SelectItem(expr=expr, alias=alias, text=text)

    def accept_punct_op(self, op: str) -> bool:
        if self.current.is_op(op):
            self.advance()
            return True
        return False

    def parse_alias(self) -> str | None:
        if self.accept_keyword("AS"):
            if not self.is_name(self.current):
                raise self.error("expected alias after AS")
            return self.advance().value
        if self.current.kind == "ident":
            return self.advance().value
        return None

    def parse_table_ref(self) -> TableRef:
        if not self.is_name(self.current) or self.current.is_keyword(*_CLAUSE_KEYWORDS):
            raise self.error("expected table name")
        name = self.advance().value
        return TableRef(name=name, alias=self.parse_alias())

    def parse_join(self) -> Join | None:
        kind = "INNER"
        if self.accept_keyword("LEFT"):
            kind = "LEFT"
            self.accept_keyword("OUTER")
            self.expect_keyword("JOIN")
        elif self.accept_keyword("INNER"):
            self.expect_keyword("JOIN")
        elif not self.accept_keyword("JOIN"):
            return None
        table = self.parse_table_ref()
        condition = self.parse_expr() if self.accept_keyword("ON") else None
        return Join(table=table, condition=condition, kind=kind)

    def parse_order_item(self) -> OrderItem:
        expr = self.parse_expr()
        descending = False
        if self.accept_keyword("DESC"):
            descending = True
        else:
            self.accept_keyword("ASC")
        return OrderItem(expr=expr, descending=descending)

    def parse_count(self, clause: str) -> int:
        token = self.current
        if token.kind != "number" or not token.value.isdigit():
            raise self.error(f"{clause} expects a non-negative integer")
        self.advance()
        count = integer_value(token.value)
        if isinstance(count, float):
            raise self.error(f"{clause} value is too large")
        return count

    def parse_expr_list(self) -> list[Expr]:
        exprs = [self.parse_expr()]
        while self.accept_punct(","):
            exprs.append(self.parse_expr())
        return exprs

    def parse_expr(self) -> Expr:
        return self.parse_or()

    def parse_or(self) -> Expr:
        left = self.parse_and()
        while self.accept_keyword("OR"):
            left = Binary("OR", left, self.parse_and())
        return left

    def parse_and(self) -> Expr:
        left = self.parse_not()
        while self.accept_keyword("AND"):
            left = Binary("AND", left, self.parse_not())
        return left

    def parse_not(self) -> Expr:
        if self.accept_keyword("NOT"):
            return Unary("NOT", self.parse_not())
        return self.parse_predicate()

    def parse_predicate(self) -> Expr:
        left = self.parse_additive()
        token = self.current
        if token.kind == "op" and token.value in COMPARISON_OPS:
            self.advance()
            op = "!=" if token.value == "<>" else token.value
            return Binary(op, left, self.parse_additive())
        if self.accept_keyword("IS"):
            negated = self.accept_keyword("NOT") is not None
            self.expect_keyword("NULL")
            return IsNull(left, negated)
        negated = False
        if token.is_keyword("NOT") and self.peek().is_keyword("LIKE", "IN", "BETWEEN"):
            self.advance()
            negated = True
        if self.accept_keyword("LIKE"):
            return Like(left, self.parse_additive(), negated)
        if self.accept_keyword("IN"):
            self.expect_punct("(")
            if self.current.is_keyword("SELECT"):
                raise self.error("subqueries are not supported")
            items = self.parse_expr_list()
            self.expect_punct(")")
            return InList(left, tuple(items), negated)
        if self.accept_keyword("BETWEEN"):
            low = self.parse_additive()
            self.expect_keyword("AND")
            return Between(left, low, self.parse_additive(), negated)
        return left

    def parse_additive(self) -> Expr:
        left = self.parse_multiplicative()
        while self.current.is_op("+", "-", "||"):
            op = self.advance().value
            left = Binary(op, left, self.parse_multiplicative())
        return left

    def parse_multiplicative(self) -> Expr:
        left = self.parse_unary()
        while self.current.is_op("*", "/", "%"):
            op = self.advance().value
            left = Binary(op, left, self.parse_unary())
        return left

    def parse_unary(self) -> Expr:
        if self.accept_punct_op("-"):
            return Unary("-", self.parse_unary())
        if self.accept_punct_op("+"):
            return self.parse_unary()
        return self.parse_primary()

    def parse_primary(self) -> Expr:
        token = self.current
        if token.kind == "number":
            self.advance()
            text = token.value
            if text.isdigit():
                return Literal(integer_value(text))
            return Literal(float(text))
        if token.kind == "string":
            self.advance()
            return Literal(token.value)
        if token.is_keyword("NULL"):
            self.advance()
            return Literal(None)
        if token.is_keyword("TRUE", "FALSE"):
            self.advance()
            return Literal(token.upper == "TRUE")
        if token.is_punct("("):
            self.advance()
            if self.current.is_keyword("SELECT"):
                raise self.error("subqueries are not supported")
            expr = self.parse_expr()
            self.expect_punct(")")
            return expr
        if token.kind == "ident" and self.peek().is_punct("("):
            return self.parse_function()
        if token.kind == "ident" or (token.kind == "keyword" and self.peek().is_punct(".")):
            self.advance()
            if self.accept_punct("."):
                if not self.is_name(self.current):
                    raise self.error("expected column name")
                return ColumnRef(token.value, self.advance().value)
            return ColumnRef(None, token.value)
        raise self.error("expected expression")

    def parse_function(self) -> FuncCall:
        name_token = self.advance()
        name = name_token.upper
        if name not in AGGREGATES and name not in SCALAR_FUNCTIONS:
            raise QuerySyntaxError(f"unknown function {name_token.value}", name_token.pos)
        self.expect_punct("(")
        if name in AGGREGATES:
            if self.accept_punct_op("*"):
                if name != "COUNT":
                    raise self.error(f"{name}(*) is not supported")
                self.expect_punct(")")
                return FuncCall(name, (), star=True)
            distinct = self.accept_keyword("DISTINCT") is not None
            arg = self.parse_expr()
            self.expect_punct(")")
            return FuncCall(name, (arg,), distinct=distinct)
        args: list[Expr] = []
        if not self.current.is_punct(")"):
            args = self.parse_expr_list()
        self.expect_punct(")")
        low, high = ARITY[name]
        if len(args) < low or (high is not None and len(args) > high):
            raise QuerySyntaxError(f"wrong number of arguments for {name}", name_token.pos)
        return FuncCall(name, tuple(args))

    @staticmethod
    def is_name(token: Token) -> bool:
        return token.kind in {"ident", "keyword"}


def parse(tokens: list[Token], source: str) -> Select:
    return Parser(tokens, source).parse_select()

