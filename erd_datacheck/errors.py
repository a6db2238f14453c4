from __future__ import annotations


class ErdDatacheckError(Exception):
    """Base exception for erd-datacheck."""


class SchemaIOError(ErdDatacheckError):
    """Raised when schema files cannot be loaded or saved."""


class DataLoadError(ErdDatacheckError):
    """Raised when tabular files cannot be read into tables."""


class QueryError(ErdDatacheckError):
    """Base class for query failures captured into a QueryResult."""


class QuerySyntaxError(QueryError):
    """Raised when a query does not match the supported grammar."""

    def __init__(self, message: str, position: int | None = None) -> None:
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class UnknownIdentifierError(QueryError):
    """Raised when a table or column cannot be resolved."""


class QueryCoercionError(QueryError):
    """Raised when a value cannot be coerced for an operation."""
