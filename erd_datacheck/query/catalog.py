"""Query the schema itself through four virtual tables."""

from __future__ import annotations

import logging

from ..data import TableData
from ..schema import Schema, SchemaColumn, SchemaTable
from .executor import execute_data_sql
from .result import QueryResult

logger = logging.getLogger(__name__)

CATALOG_DESCRIPTION = """Available virtual tables:

TABLES(name, group_name, column_count, pk_count, fk_count, note, alias)
  - every table in the schema

COLUMNS(table_name, group_name, col_name, type, pk, fk, unique_col, not_null, default_val, note)
  - every column of every table
  - pk, fk, unique_col and not_null are numbers: 1 (true) / 0 (false)

REFS(from_table, from_col, to_table, to_col, rel_type)
  - relationships between tables; composite columns are joined with ', '
  - rel_type: 'one-to-one' | 'one-to-many' | 'many-to-one' | 'many-to-many'

ENUMS(enum_name, value, note)
  - every enum value
"""

_INTEGER_COLUMNS = {
    "TABLES": ("column_count", "pk_count", "fk_count"),
    "COLUMNS": ("pk", "fk", "unique_col", "not_null"),
}

_HEADERS = {
    "TABLES": ["name", "group_name", "column_count", "pk_count", "fk_count", "note", "alias"],
    "COLUMNS": [
        "table_name",
        "group_name",
        "col_name",
        "type",
        "pk",
        "fk",
        "unique_col",
        "not_null",
        "default_val",
        "note",
    ],
    "REFS": ["from_table", "from_col", "to_table", "to_col", "rel_type"],
    "ENUMS": ["enum_name", "value", "note"],
}


def _flag(value: bool) -> int:
    return 1 if value else 0


def catalog_tables(schema: Schema) -> list[TableData]:
    names = {table.id: table.name for table in schema.tables}
    tables = [
        {
            "name": table.name,
            "group_name": table.group_name or "",
            "column_count": len(table.columns),
            "pk_count": sum(1 for col in table.columns if col.is_primary_key),
            "fk_count": sum(1 for col in table.columns if col.is_foreign_key),
            "note": table.note or "",
            "alias": table.alias or "",
        }
        for table in schema.tables
    ]
    columns = [
        {
            "table_name": table.name,
            "group_name": table.group_name or "",
            "col_name": col.name,
            "type": col.type,
            "pk": _flag(col.is_primary_key),
            "fk": _flag(col.is_foreign_key),
            "unique_col": _flag(col.is_unique),
            "not_null": _flag(col.is_not_null),
            "default_val": col.default_value or "",
            "note": col.note or "",
        }
        for table in schema.tables
        for col in table.columns
    ]
    refs = [
        {
            "from_table": names.get(ref.from_table, ref.from_table),
            "from_col": ", ".join(ref.from_columns),
            "to_table": names.get(ref.to_table, ref.to_table),
            "to_col": ", ".join(ref.to_columns),
            "rel_type": ref.type,
        }
        for ref in schema.refs
    ]
    enums = [
        {"enum_name": enum.name, "value": value.name, "note": value.note or ""}
        for enum in schema.enums
        for value in enum.values
    ]
    records = {"TABLES": tables, "COLUMNS": columns, "REFS": refs, "ENUMS": enums}
    return [TableData.from_records(name, rows, headers=_HEADERS[name]) for name, rows in records.items()]


def catalog_schema() -> Schema:
    """Describe the virtual tables so counts and flags come back as integers."""

    tables = []
    for name, headers in _HEADERS.items():
        numeric = _INTEGER_COLUMNS.get(name, ())
        columns = [SchemaColumn(name=header, type="int" if header in numeric else "text") for header in headers]
        tables.append(SchemaTable(id=name, name=name, columns=columns))
    return Schema(tables=tables)


def execute_schema_sql(query: str, schema: Schema) -> QueryResult:
    """Run ``query`` against the TABLES, COLUMNS, REFS and ENUMS views of ``schema``."""

    logger.debug("Catalog query over %d schema tables", len(schema.tables))
    return execute_data_sql(query, catalog_tables(schema), catalog_schema())
