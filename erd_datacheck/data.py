from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import pandas as pd

from .utils import is_blank, match_name

TableDataMap = Mapping[str, "TableData"]


@dataclass(slots=True)
class TableData:
    """One imported data source: header list plus ordered rows of text cells."""

    name: str
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def header_for(self, column: str) -> str | None:
        return match_name(column, self.headers)

    def frame(self) -> pd.DataFrame:
        """Text frame over the rows; absent cells become empty strings."""

        return pd.DataFrame(self.rows, columns=self.headers, dtype=object).fillna("").astype(str)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "headers": list(self.headers),
            "rows": [dict(row) for row in self.rows],
            "row_count": self.row_count,
        }

    @classmethod
    def from_records(cls, name: str, records: Iterable[Mapping[str, object]], headers: list[str] | None = None) -> "TableData":
        rows = [{str(key): _cell_text(value) for key, value in record.items()} for record in records]
        if headers is None:
            headers = []
            for row in rows:
                for key in row:
                    if key not in headers:
                        headers.append(key)
        return cls(name=name, headers=list(headers), rows=rows)

    @classmethod
    def from_frame(cls, name: str, frame: pd.DataFrame) -> "TableData":
        headers = [str(col).strip() for col in frame.columns]
        rows: list[dict[str, str]] = []
        for values in frame.itertuples(index=False, name=None):
            cells = [_cell_text(value) for value in values]
            if all(not cell for cell in cells):
                continue
            rows.append({header: cell for header, cell in zip(headers, cells) if header})
        return cls(name=name, headers=[h for h in headers if h], rows=rows)


def table_map(tables: Iterable[TableData] | TableDataMap) -> dict[str, TableData]:
    """Key tables by lower-cased name; later tables with the same name win."""

    if isinstance(tables, Mapping):
        return {str(key).lower(): value for key, value in tables.items()}
    return {table.name.lower(): table for table in tables}


def lookup_table(tables: TableDataMap, name: str) -> TableData | None:
    key = match_name(name, tables.keys())
    return tables[key] if key is not None else None


def _cell_text(value: object) -> str:
    if is_blank(value):
        return ""
    if not isinstance(value, str) and pd.api.types.is_scalar(value) and pd.isna(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, pd.Timestamp):
        if value == value.normalize():
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    return str(value).strip()


__all__ = ["TableData", "TableDataMap", "table_map", "lookup_table"]
