from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import orjson
import pandas as pd
from rich.table import Table

from ..types import Scalar

Row = dict[str, Scalar]


@dataclass(slots=True)
class StatementResult:
    sql: str
    table_name: str
    columns: list[str] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)
    row_count: int = 0
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sql": self.sql,
            "table_name": self.table_name,
            "columns": list(self.columns),
            "rows": [dict(row) for row in self.rows],
            "row_count": self.row_count,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class QueryResult:
    columns: list[str] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)
    row_count: int = 0
    error: str | None = None
    duration_ms: float = 0.0
    statements: list[StatementResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and all(stmt.error is None for stmt in self.statements)

    @classmethod
    def failure(cls, message: str, duration_ms: float = 0.0) -> "QueryResult":
        return cls(error=message, duration_ms=duration_ms)

    def records(self) -> list[Row]:
        """Rows as plain column -> scalar records, in column order."""

        return [{column: row.get(column) for column in self.columns} for row in self.rows]

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "columns": list(self.columns),
            "rows": self.records(),
            "row_count": self.row_count,
            "duration_ms": round(self.duration_ms, 3),
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.statements:
            payload["statements"] = [stmt.as_dict() for stmt in self.statements]
        return payload

    def to_json(self) -> str:
        return orjson.dumps(self.as_dict(), option=orjson.OPT_INDENT_2).decode()

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.records(), columns=self.columns)

    def to_rich_table(self, *, title: str | None = None, max_rows: int = 100) -> Table:
        table = Table(title=title)
        for column in self.columns:
            table.add_column(column)
        for row in self.rows[:max_rows]:
            table.add_row(*("" if row.get(column) is None else str(row.get(column)) for column in self.columns))
        if len(self.rows) > max_rows:
            table.caption = f"{len(self.rows) - max_rows} more rows"
        return table
