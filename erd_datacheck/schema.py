from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from tomli import loads as load_toml
from tomli_w import dumps as dump_toml

from .errors import SchemaIOError
from .types import RelationType


class _SchemaModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class SchemaColumn(_SchemaModel):
    name: str
    type: str = "text"
    is_primary_key: bool = False
    is_foreign_key: bool = False
    is_not_null: bool = False
    is_unique: bool = False
    is_increment: bool = False
    default_value: Optional[str] = None
    note: Optional[str] = None


class SchemaTable(_SchemaModel):
    id: str
    name: str
    group_name: Optional[str] = None
    alias: Optional[str] = None
    columns: List[SchemaColumn] = Field(default_factory=list)
    note: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _default_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id") and data.get("name"):
            data = {**data, "id": data["name"]}
        return data

    @property
    def primary_key(self) -> list[SchemaColumn]:
        return [col for col in self.columns if col.is_primary_key]

    def column(self, name: str) -> SchemaColumn | None:
        lowered = name.lower()
        for col in self.columns:
            if col.name.lower() == lowered:
                return col
        return None


class SchemaRef(_SchemaModel):
    id: str = ""
    name: Optional[str] = None
    from_table: str
    from_columns: List[str]
    to_table: str
    to_columns: List[str]
    type: RelationType = "many-to-one"

    @model_validator(mode="after")
    def _check_arity(self) -> "SchemaRef":
        if not self.from_columns:
            raise ValueError("reference needs at least one column")
        if len(self.from_columns) != len(self.to_columns):
            raise ValueError(
                f"reference {self.from_table} -> {self.to_table} pairs "
                f"{len(self.from_columns)} columns with {len(self.to_columns)}"
            )
        if not self.id:
            self.id = f"{self.from_table}.{'+'.join(self.from_columns)}->{self.to_table}"
        return self


class EnumValue(_SchemaModel):
    name: str
    note: Optional[str] = None


class SchemaEnum(_SchemaModel):
    name: str
    values: List[EnumValue] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def _plain_values(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"name": item} if isinstance(item, str) else item for item in value]
        return value

    @property
    def allowed(self) -> list[str]:
        return [value.name for value in self.values]


class SchemaTableGroup(_SchemaModel):
    name: str
    tables: List[str] = Field(default_factory=list)
    note: Optional[str] = None


class Schema(_SchemaModel):
    tables: List[SchemaTable] = Field(default_factory=list)
    refs: List[SchemaRef] = Field(default_factory=list)
    enums: List[SchemaEnum] = Field(default_factory=list)
    table_groups: List[SchemaTableGroup] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2).decode()

    def to_toml(self) -> str:
        return dump_toml(self.to_dict())

    def table(self, key: str) -> SchemaTable | None:
        """Resolve a table by id, falling back to a case-insensitive name match."""

        for table in self.tables:
            if table.id == key:
                return table
        lowered = key.lower()
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None

    def refs_from(self, table: SchemaTable) -> list[SchemaRef]:
        return [ref for ref in self.refs if self.table(ref.from_table) is table]

    def enum_map(self) -> dict[str, SchemaEnum]:
        return {enum.name.lower(): enum for enum in self.enums}


def load_schema(path: str | Path) -> Schema:
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:  # pragma: no cover - IO errors
        raise SchemaIOError(str(exc)) from exc
    suffix = file_path.suffix.lower()
    if suffix not in {".json", ".toml"}:
        raise SchemaIOError(f"Unsupported schema extension: {file_path.suffix}")
    try:
        data = orjson.loads(text) if suffix == ".json" else load_toml(text)
    except ValueError as exc:
        raise SchemaIOError(f"Cannot parse {file_path.name}: {exc}") from exc
    return Schema.model_validate(data)


def save_schema(schema: Schema, path: str | Path) -> None:
    file_path = Path(path)
    if file_path.suffix.lower() == ".json":
        payload = schema.to_json()
    elif file_path.suffix.lower() == ".toml":
        payload = schema.to_toml()
    else:  # pragma: no cover - invalid extension
        raise SchemaIOError(f"Unsupported schema extension: {file_path.suffix}")
    file_path.write_text(payload, encoding="utf-8")
