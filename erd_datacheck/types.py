from __future__ import annotations

from typing import Literal, TypedDict

Severity = Literal["error", "warning", "info"]
Category = Literal["referential", "uniqueness", "required", "enum", "type"]
ScalarKind = Literal["integer", "decimal", "boolean", "date", "datetime", "text"]
RelationType = Literal["one-to-one", "one-to-many", "many-to-one", "many-to-many"]

CATEGORIES: tuple[Category, ...] = ("referential", "uniqueness", "required", "enum", "type")

CATEGORY_SEVERITY: dict[Category, Severity] = {
    "referential": "error",
    "uniqueness": "error",
    "required": "error",
    "enum": "warning",
    "type": "warning",
}

Scalar = str | int | float | bool | None


class IssueDict(TypedDict):
    id: str
    severity: Severity
    category: Category
    table: str
    column: str
    row: int
    value: str
    title: str
    description: str
