"""Read-only SQL subset over in-memory tables and over the schema catalog."""

from .catalog import CATALOG_DESCRIPTION, execute_schema_sql
from .context import build_data_query_context
from .executor import execute_data_sql
from .result import QueryResult, StatementResult

__all__ = [
    "CATALOG_DESCRIPTION",
    "QueryResult",
    "StatementResult",
    "build_data_query_context",
    "execute_data_sql",
    "execute_schema_sql",
]
