from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Union

from ..types import Scalar

AGGREGATES = frozenset({"COUNT", "SUM", "AVG", "MIN", "MAX"})


@dataclass(frozen=True, slots=True)
class Literal:
    value: Scalar


@dataclass(frozen=True, slots=True)
class ColumnRef:
    table: Optional[str]
    name: str


@dataclass(frozen=True, slots=True)
class Star:
    table: Optional[str] = None


@dataclass(frozen=True, slots=True)
class FuncCall:
    name: str
    args: tuple["Expr", ...] = ()
    distinct: bool = False
    star: bool = False

    @property
    def is_aggregate(self) -> bool:
        return self.name in AGGREGATES


@dataclass(frozen=True, slots=True)
class Unary:
    op: str
    operand: "Expr"


@dataclass(frozen=True, slots=True)
class Binary:
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True, slots=True)
class Like:
    operand: "Expr"
    pattern: "Expr"
    negated: bool = False


@dataclass(frozen=True, slots=True)
class InList:
    operand: "Expr"
    items: tuple["Expr", ...]
    negated: bool = False


@dataclass(frozen=True, slots=True)
class Between:
    operand: "Expr"
    low: "Expr"
    high: "Expr"
    negated: bool = False


@dataclass(frozen=True, slots=True)
class IsNull:
    operand: "Expr"
    negated: bool = False


Expr = Union[Literal, ColumnRef, FuncCall, Unary, Binary, Like, InList, Between, IsNull]


@dataclass(frozen=True, slots=True)
class SelectItem:
    expr: Union[Expr, Star]
    alias: Optional[str]
    text: str


@dataclass(frozen=True, slots=True)
class TableRef:
    name: str
    alias: Optional[str] = None

    @property
    def binding(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True, slots=True)
class Join:
    table: TableRef
    condition: Optional[Expr]
    kind: str = "INNER"


@dataclass(frozen=True, slots=True)
class OrderItem:
    expr: Expr
    descending: bool = False


@dataclass(frozen=True, slots=True)
class Select:
    items: tuple[SelectItem, ...]
    source: TableRef
    joins: tuple[Join, ...] = ()
    where: Optional[Expr] = None
    group_by: tuple[Expr, ...] = ()
    having: Optional[Expr] = None
    order_by: tuple[OrderItem, ...] = ()
    limit: Optional[int] = None
    offset: int = 0
    distinct: bool = False


def children(expr: Expr) -> Iterator[Expr]:
    if isinstance(expr, FuncCall):
        yield from expr.args
    elif isinstance(expr, Unary):
        yield expr.operand
    elif isinstance(expr, Binary):
        yield expr.left
        yield expr.right
    elif isinstance(expr, Like):
        yield expr.operand
        yield expr.pattern
    elif isinstance(expr, InList):
        yield expr.operand
        yield from expr.items
    elif isinstance(expr, Between):
        yield expr.operand
        yield expr.low
        yield expr.high
    elif isinstance(expr, IsNull):
        yield expr.operand


def contains_aggregate(expr: Expr | Star | None) -> bool:
    if expr is None or isinstance(expr, Star):
        return False
    if isinstance(expr, FuncCall) and expr.is_aggregate:
        return True
    return any(contains_aggregate(child) for child in children(expr))


def conjuncts(expr: Expr) -> list[Expr]:
    if isinstance(expr, Binary) and expr.op == "AND":
        return conjuncts(expr.left) + conjuncts(expr.right)
    return [expr]
