from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..data import TableData, TableDataMap, lookup_table, table_map
from ..domains import ColumnKind, classify, is_decimal, is_integer, parse_boolean
from ..errors import QueryError, QuerySyntaxError, UnknownIdentifierError
from ..schema import Schema, SchemaTable
from ..types import Scalar
from ..utils import is_blank, match_name
from . import coercion
from .functions import SCALAR_FUNCTIONS
from .nodes import (
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
    Star,
    Unary,
    conjuncts,
    contains_aggregate,
)
from .parser import parse
from .result import QueryResult, Row, StatementResult
from .tokenizer import Token, split_statements

logger = logging.getLogger(__name__)

Frame = tuple[Optional[dict[str, str]], ...]
Group = list[Frame]


@dataclass(slots=True)
class Source:
    binding: str
    data: TableData
    schema_table: SchemaTable | None


class Evaluator:
    """Evaluates expressions against joined frames, optionally within a group."""

    def __init__(self, sources: Sequence[Source], schema: Schema | None) -> None:
        self.sources = list(sources)
        self.schema = schema
        self._resolved: dict[ColumnRef, tuple[int, str]] = {}
        self._enums = schema.enum_map() if schema else {}

    def source_index(self, name: str) -> int:
        bindings = [source.binding for source in self.sources]
        found = match_name(name, bindings)
        if found is not None:
            return bindings.index(found)
        names = [source.data.name for source in self.sources]
        found = match_name(name, names)
        if found is not None:
            return names.index(found)
        raise UnknownIdentifierError(f"unknown table or alias {name!r}")

    def resolve(self, ref: ColumnRef) -> tuple[int, str]:
        cached = self._resolved.get(ref)
        if cached is not None:
            return cached
        if ref.table is not None:
            idx = self.source_index(ref.table)
            header = self.sources[idx].data.header_for(ref.name)
            if header is None:
                raise UnknownIdentifierError(f"unknown column {ref.table}.{ref.name}")
            resolved = (idx, header)
        else:
            for idx, source in enumerate(self.sources):
                header = source.data.header_for(ref.name)
                if header is not None:
                    resolved = (idx, header)
                    break
            else:
                raise UnknownIdentifierError(f"unknown column {ref.name!r}")
        self._resolved[ref] = resolved
        return resolved

    def kind_of(self, ref: ColumnRef) -> ColumnKind | None:
        idx, header = self.resolve(ref)
        schema_table = self.sources[idx].schema_table
        if schema_table is None:
            return None
        column = schema_table.column(header)
        return classify(column, self._enums) if column else None

    def evaluate(self, expr: Expr, frame: Frame, group: Group | None = None) -> Scalar:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, ColumnRef):
            idx, header = self.resolve(expr)
            row = frame[idx]
            if row is None:
                return None
            value = row.get(header)
            return None if is_blank(value) else value
        if isinstance(expr, Binary):
            return self._binary(expr, frame, group)
        if isinstance(expr, Unary):
            operand = self.evaluate(expr.operand, frame, group)
            if expr.op == "NOT":
                return not coercion.truthy(operand)
            number = coercion.require_number(operand, "negation")
            return None if number is None else -number
        if isinstance(expr, IsNull):
            return (self.evaluate(expr.operand, frame, group) is None) != expr.negated
        if isinstance(expr, Like):
            value = self.evaluate(expr.operand, frame, group)
            pattern = self.evaluate(expr.pattern, frame, group)
            if value is None or pattern is None:
                return False
            return coercion.like(value, pattern) != expr.negated
        if isinstance(expr, InList):
            value = self.evaluate(expr.operand, frame, group)
            if value is None:
                return False
            found = any(coercion.compare(value, self.evaluate(item, frame, group), "=") for item in expr.items)
            return found != expr.negated
        if isinstance(expr, Between):
            value = self.evaluate(expr.operand, frame, group)
            low = self.evaluate(expr.low, frame, group)
            high = self.evaluate(expr.high, frame, group)
            if value is None or low is None or high is None:
                return False
            inside = coercion.compare(value, low, ">=") and coercion.compare(value, high, "<=")
            return inside != expr.negated
        if isinstance(expr, FuncCall):
            if expr.is_aggregate:
                return self._aggregate(expr, group)
            args = [self.evaluate(arg, frame, group) for arg in expr.args]
            return SCALAR_FUNCTIONS[expr.name](*args)
        raise QuerySyntaxError(f"unsupported expression {type(expr).__name__}")

    def _binary(self, expr: Binary, frame: Frame, group: Group | None) -> Scalar:
        if expr.op == "AND":
            return coercion.truthy(self.evaluate(expr.left, frame, group)) and coercion.truthy(
                self.evaluate(expr.right, frame, group)
            )
        if expr.op == "OR":
            return coercion.truthy(self.evaluate(expr.left, frame, group)) or coercion.truthy(
                self.evaluate(expr.right, frame, group)
            )
        left = self.evaluate(expr.left, frame, group)
        right = self.evaluate(expr.right, frame, group)
        if expr.op in {"=", "!=", "<", "<=", ">", ">="}:
            return coercion.compare(left, right, expr.op)
        if left is None or right is None:
            return None
        if expr.op == "||":
            return coercion.to_text(left) + coercion.to_text(right)
        a = coercion.require_number(left, expr.op)
        b = coercion.require_number(right, expr.op)
        if expr.op == "+":
            return a + b
        if expr.op == "-":
            return a - b
        if expr.op == "*":
            return a * b
        if b == 0:
            return None
        if expr.op == "/":
            return a / b
        return a % b

    def _aggregate(self, expr: FuncCall, group: Group | None) -> Scalar:
        if group is None:
            raise QuerySyntaxError(f"aggregate {expr.name} is not allowed here")
        if expr.star:
            return len(group)
        if contains_aggregate(expr.args[0]):
            raise QuerySyntaxError(f"nested aggregate inside {expr.name}")
        values = [self.evaluate(expr.args[0], frame) for frame in group]
        present = [value for value in values if value is not None]
        if expr.distinct:
            present = list(dict.fromkeys(present))
        if expr.name == "COUNT":
            return len(present)
        if expr.name in {"MIN", "MAX"}:
            return coercion.extreme(present, largest=expr.name == "MAX")
        numbers = [coercion.require_number(value, expr.name) for value in present]
        if not numbers:
            return None
        total = sum(numbers)
        if expr.name == "SUM":
            return total
        return total / len(numbers)


@dataclass(slots=True)
class OutputColumn:
    name: str
    expr: Expr
    kind: ColumnKind | None = None


def execute_data_sql(
    query: str,
    tables: TableDataMap | Iterable[TableData],
    schema: Schema | None = None,
) -> QueryResult:
    """Run a read-only query over in-memory tables; failures land in ``error``."""

    start = time.perf_counter()
    try:
        statements = split_statements(query or "")
    except QueryError as exc:
        return QueryResult.failure(str(exc), _elapsed(start))
    if not statements:
        return QueryResult.failure("query is empty", _elapsed(start))
    data_map = table_map(tables)
    if len(statements) == 1:
        text, tokens = statements[0]
        try:
            columns, rows = run_statement(tokens, query, data_map, schema)
        except (QueryError, ArithmeticError, RecursionError) as exc:
            logger.debug("Query failed: %s", exc)
            return QueryResult.failure(str(exc), _elapsed(start))
        return QueryResult(columns=columns, rows=rows, row_count=len(rows), duration_ms=_elapsed(start))
    results: list[StatementResult] = []
    for text, tokens in statements:
        table_name = _first_table(tokens) or " ".join(text[:30].split())
        try:
            columns, rows = run_statement(tokens, query, data_map, schema)
        except (QueryError, ArithmeticError, RecursionError) as exc:
            results.append(StatementResult(sql=text, table_name=table_name, error=str(exc)))
            continue
        results.append(StatementResult(sql=text, table_name=table_name, columns=columns, rows=rows, row_count=len(rows)))
    return QueryResult(
        row_count=sum(result.row_count for result in results),
        duration_ms=_elapsed(start),
        statements=results,
    )


def run_statement(
    tokens: list[Token],
    source: str,
    tables: TableDataMap,
    schema: Schema | None,
) -> tuple[list[str], list[Row]]:
    select = parse(tokens, source)
    sources = [_source(select.source.name, select.source.binding, tables, schema)]
    evaluator = Evaluator(sources, schema)
    frames: list[Frame] = [(row,) for row in sources[0].data.rows]
    for join in select.joins:
        frames = _join(evaluator, frames, join, tables, schema)
    logger.debug("Scanned %d joined rows from %d sources", len(frames), len(evaluator.sources))
    if select.where is not None:
        frames = [frame for frame in frames if coercion.truthy(evaluator.evaluate(select.where, frame))]
    outputs = _output_columns(select, evaluator)
    units = _units(select, evaluator, frames)
    projected: list[tuple[Frame, Group | None, Row]] = []
    for frame, group in units:
        row = {column.name: _output_value(evaluator.evaluate(column.expr, frame, group), column.kind) for column in outputs}
        projected.append((frame, group, row))
    if select.distinct:
        seen: set[tuple[Scalar, ...]] = set()
        unique = []
        for item in projected:
            key = tuple(item[2].values())
            if key not in seen:
                seen.add(key)
                unique.append(item)
        projected = unique
    if select.order_by:
        projected = _sort(select.order_by, evaluator, outputs, projected)
    end = None if select.limit is None else select.offset + select.limit
    rows = [row for _, _, row in projected[select.offset : end]]
    return [column.name for column in outputs], rows


def _source(name: str, binding: str, tables: TableDataMap, schema: Schema | None) -> Source:
    data = lookup_table(tables, name)
    if data is None:
        raise UnknownIdentifierError(f"unknown table {name!r}")
    schema_table = schema.table(data.name) or schema.table(name) if schema else None
    return Source(binding=binding, data=data, schema_table=schema_table)


def _join(
    evaluator: Evaluator,
    frames: list[Frame],
    join: Join,
    tables: TableDataMap,
    schema: Schema | None,
) -> list[Frame]:
    source = _source(join.table.name, join.table.binding, tables, schema)
    evaluator.sources.append(source)
    condition = join.condition or implicit_condition(evaluator, source, schema)
    position = len(evaluator.sources) - 1
    index_on = _equi_pair(evaluator, condition, position)
    buckets: dict[tuple[str, object], list[dict[str, str]]] = {}
    if index_on is not None:
        for row in source.data.rows:
            value = evaluator.evaluate(index_on[1], (None,) * position + (row,))
            for key in _join_keys(value):
                buckets.setdefault(key, []).append(row)
    joined: list[Frame] = []
    for frame in frames:
        if index_on is None:
            candidates = source.data.rows
        else:
            value = evaluator.evaluate(index_on[0], frame + (None,))
            candidates = _dedupe([row for key in _join_keys(value) for row in buckets.get(key, [])])
        matched = False
        for row in candidates:
            candidate = frame + (row,)
            if coercion.truthy(evaluator.evaluate(condition, candidate)):
                joined.append(candidate)
                matched = True
        if not matched and join.kind == "LEFT":
            joined.append(frame + (None,))
    return joined


def implicit_condition(evaluator: Evaluator, source: Source, schema: Schema | None) -> Expr:
    """Derive a join condition from a declared reference between the new table and one in scope."""

    target = source.schema_table
    if schema is not None and target is not None:
        for earlier in evaluator.sources[:-1]:
            if earlier.schema_table is None:
                continue
            for ref in schema.refs:
                ref_from, ref_to = schema.table(ref.from_table), schema.table(ref.to_table)
                if ref_from is target and ref_to is earlier.schema_table:
                    pairs = zip(ref.from_columns, ref.to_columns)
                    left, right = source.binding, earlier.binding
                elif ref_from is earlier.schema_table and ref_to is target:
                    pairs = zip(ref.from_columns, ref.to_columns)
                    left, right = earlier.binding, source.binding
                else:
                    continue
                condition: Expr | None = None
                for from_column, to_column in pairs:
                    equality = Binary("=", ColumnRef(left, from_column), ColumnRef(right, to_column))
                    condition = equality if condition is None else Binary("AND", condition, equality)
                logger.debug("Implicit join on %s via reference %s", source.data.name, ref.id)
                return condition  # type: ignore[return-value]
    raise QuerySyntaxError(
        f"JOIN {source.data.name} needs an ON condition: no relationship to a table in scope is declared"
    )


def _equi_pair(evaluator: Evaluator, condition: Expr, position: int) -> tuple[ColumnRef, ColumnRef] | None:
    """Find ``outer = inner`` in the condition's conjuncts, inner being the new source."""

    for part in conjuncts(condition):
        if not (isinstance(part, Binary) and part.op == "=" and isinstance(part.left, ColumnRef) and isinstance(part.right, ColumnRef)):
            continue
        left_idx = evaluator.resolve(part.left)[0]
        right_idx = evaluator.resolve(part.right)[0]
        if left_idx < position and right_idx == position:
            return part.left, part.right
        if right_idx < position and left_idx == position:
            return part.right, part.left
    return None


def _join_keys(value: Scalar) -> list[tuple[str, object]]:
    # Index every interpretation of the value; the full condition is re-checked on each candidate.
    if value is None:
        return []
    keys: list[tuple[str, object]] = [("text", coercion.to_text(value))]
    number = coercion.to_number(value)
    if number is not None:
        keys.append(("number", float(number)))
    moment = coercion.to_date(value)
    if moment is not None:
        keys.append(("date", moment))
    return keys


def _dedupe(rows: list[dict[str, str]]) -> list[dict[str, str]]:
    seen: set[int] = set()
    unique = []
    for row in rows:
        if id(row) not in seen:
            seen.add(id(row))
            unique.append(row)
    return unique


def _units(select: Select, evaluator: Evaluator, frames: list[Frame]) -> list[tuple[Frame, Group | None]]:
    grouped = bool(select.group_by) or contains_aggregate(select.having) or any(
        contains_aggregate(item.expr) for item in select.items
    )
    if not grouped:
        if select.having is not None:
            raise QuerySyntaxError("HAVING requires GROUP BY or an aggregate")
        return [(frame, None) for frame in frames]
    groups: dict[tuple[Scalar, ...], Group] = {}
    if select.group_by:
        for frame in frames:
            key = tuple(evaluator.evaluate(expr, frame) for expr in select.group_by)
            groups.setdefault(key, []).append(frame)
    else:
        groups[()] = frames
    empty: Frame = (None,) * len(evaluator.sources)
    units: list[tuple[Frame, Group | None]] = []
    for members in groups.values():
        representative = members[0] if members else empty
        if select.having is not None and not coercion.truthy(evaluator.evaluate(select.having, representative, members)):
            continue
        units.append((representative, members))
    return units


def _output_columns(select: Select, evaluator: Evaluator) -> list[OutputColumn]:
    outputs: list[OutputColumn] = []
    used: set[str] = set()

    def add(name: str, expr: Expr, qualified: str | None = None) -> None:
        final = name
        if final in used and qualified:
            final = qualified
        suffix = 2
        while final in used:
            final = f"{name}_{suffix}"
            suffix += 1
        used.add(final)
        kind = evaluator.kind_of(expr) if isinstance(expr, ColumnRef) else None
        outputs.append(OutputColumn(name=final, expr=expr, kind=kind))

    for item in select.items:
        if isinstance(item.expr, Star):
            indexes = (
                [evaluator.source_index(item.expr.table)]
                if item.expr.table is not None
                else list(range(len(evaluator.sources)))
            )
            for idx in indexes:
                source = evaluator.sources[idx]
                for header in source.data.headers:
                    add(header, ColumnRef(source.binding, header), f"{source.binding}.{header}")
            continue
        expr = item.expr
        if item.alias:
            add(item.alias, expr)
        elif isinstance(expr, ColumnRef):
            evaluator.resolve(expr)
            qualified = f"{expr.table}.{expr.name}" if expr.table else None
            add(expr.name, expr, qualified)
        else:
            add(item.text, expr)
    return outputs


def _sort(
    order_by: Sequence[OrderItem],
    evaluator: Evaluator,
    outputs: list[OutputColumn],
    projected: list[tuple[Frame, Group | None, Row]],
) -> list[tuple[Frame, Group | None, Row]]:
    names = [column.name for column in outputs]
    result = list(projected)
    # Stable sorts applied from the last key to the first.
    for item in reversed(order_by):
        keys = coercion.sort_keys([_order_value(item.expr, evaluator, names, entry) for entry in result])
        order = sorted(range(len(result)), key=lambda idx: keys[idx], reverse=item.descending)
        result = [result[idx] for idx in order]
    return result


def _order_value(expr: Expr, evaluator: Evaluator, names: list[str], entry: tuple[Frame, Group | None, Row]) -> Scalar:
    frame, group, row = entry
    if isinstance(expr, Literal) and isinstance(expr.value, int) and not isinstance(expr.value, bool):
        if not 1 <= expr.value <= len(names):
            raise QuerySyntaxError(f"ORDER BY position {expr.value} is out of range")
        return row[names[expr.value - 1]]
    if isinstance(expr, ColumnRef) and expr.table is None:
        name = match_name(expr.name, names)
        if name is not None:
            return row[name]
    return evaluator.evaluate(expr, frame, group)


def _output_value(value: Scalar, kind: ColumnKind | None) -> Scalar:
    if value is None or kind is None or not isinstance(value, str):
        return value
    if kind.kind == "integer" and is_integer(value):
        number = coercion.integer_value(value.strip())
        return value if isinstance(number, float) else number
    if kind.kind == "decimal" and is_decimal(value):
        return float(value)
    if kind.kind == "boolean":
        parsed = parse_boolean(value)
        return value if parsed is None else parsed
    return value


def _first_table(tokens: list[Token]) -> str | None:
    for idx, token in enumerate(tokens[:-1]):
        if token.is_keyword("FROM") and tokens[idx + 1].kind in {"ident", "keyword"}:
            return tokens[idx + 1].value
    return None


def _elapsed(start: float) -> float:
    return (time.perf_counter() - start) * 1000
