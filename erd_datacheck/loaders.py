from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

from .data import TableData
from .errors import DataLoadError
from .schema import Schema
from .utils import find_header_row, is_blank

logger = logging.getLogger(__name__)

META_SHEETS = frozenset({"define", "tabledefine", "enum", "tablegroup"})
TABULAR_SUFFIXES = {".csv", ".tsv", ".txt", ".xlsx", ".xlsm"}


def is_meta_sheet(name: str) -> bool:
    return "#" in name or name.lower() in META_SHEETS


def read_tables(path: str | Path, schema: Schema | None = None) -> list[TableData]:
    """Read a file or every tabular file in a directory into TableData."""

    path = Path(path)
    if path.is_dir():
        tables: list[TableData] = []
        for child in sorted(path.iterdir()):
            if child.is_file() and child.suffix.lower() in TABULAR_SUFFIXES and not child.name.startswith("~$"):
                tables.extend(read_tables(child, schema))
        logger.info("Loaded %d tables from %s", len(tables), path)
        return tables
    known = _known_columns(schema)
    suffix = path.suffix.lower()
    try:
        if suffix in {".csv", ".tsv", ".txt"}:
            sep = "\t" if suffix == ".tsv" else ","
            raw = pd.read_csv(path, sep=sep, header=None, dtype=str, keep_default_na=False)
            table = frame_to_table(path.stem, raw, known.get(path.stem.lower()))
            return [table] if table else []
        if suffix in {".xlsx", ".xlsm"}:
            sheets = pd.read_excel(path, sheet_name=None, header=None, dtype=str, engine="openpyxl")
        else:
            raise DataLoadError(f"Unsupported file extension: {path.suffix}")
    except (OSError, ValueError, pd.errors.ParserError) as exc:
        raise DataLoadError(f"Cannot read {path.name}: {exc}") from exc
    tables = []
    for sheet_name, raw in sheets.items():
        if is_meta_sheet(sheet_name):
            logger.debug("Skipping metadata sheet %s in %s", sheet_name, path.name)
            continue
        table = frame_to_table(sheet_name, raw, known.get(sheet_name.lower()))
        if table:
            logger.debug("%s -> %s: %d rows, %d cols", path.name, sheet_name, table.row_count, len(table.headers))
            tables.append(table)
    if not tables:
        logger.warning("No data sheets found in %s", path.name)
    return tables


def frame_to_table(name: str, raw: pd.DataFrame, known_columns: set[str] | None = None) -> TableData | None:
    """Turn a header-less raw frame into a table, detecting the header row."""

    grid = raw.fillna("").astype(str).values.tolist()
    if len(grid) < 2:
        return None
    header_idx = find_header_row(grid, known_columns)
    headers = [str(cell).strip() for cell in grid[header_idx]]
    if not any(headers):
        return None
    rows: list[dict[str, str]] = []
    for values in grid[header_idx + 1 :]:
        if all(is_blank(cell) for cell in values):
            continue
        rows.append({header: str(cell).strip() for header, cell in zip(headers, values) if header})
    if not rows:
        return None
    return TableData(name=name, headers=[h for h in headers if h], rows=rows)


def load_tables(paths: Iterable[str | Path], schema: Schema | None = None) -> list[TableData]:
    tables: list[TableData] = []
    for path in paths:
        tables.extend(read_tables(path, schema))
    return tables


def _known_columns(schema: Schema | None) -> dict[str, set[str]]:
    if schema is None:
        return {}
    return {table.name.lower(): {col.name for col in table.columns} for table in schema.tables}


__all__ = ["read_tables", "load_tables", "frame_to_table", "is_meta_sheet"]
