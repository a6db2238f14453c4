from __future__ import annotations

from .api import validate
from .data import TableData, table_map
from .errors import (
    DataLoadError,
    ErdDatacheckError,
    QueryError,
    SchemaIOError,
)
from .loaders import read_tables
from .options import ValidationOptions
from .query import (
    CATALOG_DESCRIPTION,
    QueryResult,
    StatementResult,
    build_data_query_context,
    execute_data_sql,
    execute_schema_sql,
)
from .report import TableValidationStat, ValidationResult, compute_score
from .schema import (
    EnumValue,
    Schema,
    SchemaColumn,
    SchemaEnum,
    SchemaRef,
    SchemaTable,
    SchemaTableGroup,
    load_schema,
    save_schema,
)

__all__ = [
    "CATALOG_DESCRIPTION",
    "DataLoadError",
    "EnumValue",
    "ErdDatacheckError",
    "QueryError",
    "QueryResult",
    "Schema",
    "SchemaColumn",
    "SchemaEnum",
    "SchemaIOError",
    "SchemaRef",
    "SchemaTable",
    "SchemaTableGroup",
    "StatementResult",
    "TableData",
    "TableValidationStat",
    "ValidationOptions",
    "ValidationResult",
    "build_data_query_context",
    "compute_score",
    "execute_data_sql",
    "execute_schema_sql",
    "load_schema",
    "read_tables",
    "save_schema",
    "table_map",
    "validate",
]
