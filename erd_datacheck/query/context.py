from __future__ import annotations

from typing import Iterable

import orjson

from ..data import TableData, TableDataMap, table_map
from ..schema import Schema

SAMPLE_COLUMNS = 6


def build_data_query_context(
    tables: TableDataMap | Iterable[TableData],
    schema: Schema | None = None,
    *,
    max_refs: int = 40,
) -> str:
    """Describe the loaded tables and their join paths as plain text for prompt building."""

    lines = ["Available tables (loaded data):"]
    for table in table_map(tables).values():
        known = schema.table(table.name) if schema else None
        name = known.name if known else table.name
        lines.append(f"\n{name} ({table.row_count} rows)")
        lines.append(f"  columns: {', '.join(table.headers)}")
        if table.rows:
            first = table.rows[0]
            sample = ", ".join(
                f"{header}={orjson.dumps(first.get(header, '')).decode()}" for header in table.headers[:SAMPLE_COLUMNS]
            )
            more = " ..." if len(table.headers) > SAMPLE_COLUMNS else ""
            lines.append(f"  sample: {sample}{more}")

    if schema and schema.refs:
        names = {table.id: table.name for table in schema.tables}
        lines.append("\nRelationships (join hints):")
        for ref in schema.refs[:max_refs]:
            source = names.get(ref.from_table, ref.from_table)
            target = names.get(ref.to_table, ref.to_table)
            lines.append(
                f"  {source}.{','.join(ref.from_columns)} -> {target}.{','.join(ref.to_columns)} ({ref.type})"
            )
        if len(schema.refs) > max_refs:
            lines.append(f"  ... and {len(schema.refs) - max_refs} more")
    return "\n".join(lines)
