"""Scalar kind and enum domain resolution for schema columns."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from datetime import date, datetime
from typing import Mapping

import pandas as pd
import regex

from .schema import SchemaColumn, SchemaEnum
from .types import ScalarKind

_INTEGER = regex.compile(r"[+-]?\d+")
_DECIMAL = regex.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_BOOLEAN_TRUE = frozenset({"true", "1", "yes"})
_BOOLEAN_FALSE = frozenset({"false", "0", "no"})
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%m/%d/%Y", "%Y%m%d")
_DATE_SHAPE = regex.compile(r"\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}|\d{8}")
_DATETIME = regex.compile(
    r"(?P<date>\d{4}[-/.]\d{1,2}[-/.]\d{1,2})"
    r"(?:[T ](?P<time>\d{1,2}:\d{2}(?::\d{2}(?:\.\d{1,6})?)?)(?P<zone>Z|[+-]\d{2}:?\d{2})?)?"
)
_TYPE_PARAMS = regex.compile(r"\(.*\)$")

INTEGER_TYPES = frozenset(
    {"int", "integer", "bigint", "smallint", "tinyint", "mediumint", "long", "serial", "bigserial", "smallserial", "int2", "int4", "int8"}
)
DECIMAL_TYPES = frozenset(
    {"decimal", "numeric", "float", "double", "double precision", "real", "money", "number", "float4", "float8"}
)
BOOLEAN_TYPES = frozenset({"bool", "boolean", "bit"})
DATE_TYPES = frozenset({"date"})
DATETIME_TYPES = frozenset({"datetime", "timestamp", "timestamptz", "timestamp with time zone", "timestamp without time zone", "datetime2"})


@dataclass(frozen=True, slots=True)
class ColumnKind:
    kind: ScalarKind
    enum_domain: SchemaEnum | None = None

    def accepts(self, value: str) -> bool:
        return conforms(self.kind, value)


def base_type(type_name: str) -> str:
    """Strip parameters and array markers: ``decimal(10, 2)`` -> ``decimal``."""

    name = _TYPE_PARAMS.sub("", type_name.strip().lower()).strip()
    return name.removesuffix("[]").strip()


def scalar_kind(type_name: str) -> ScalarKind:
    name = base_type(type_name)
    if name in INTEGER_TYPES:
        return "integer"
    if name in DECIMAL_TYPES:
        return "decimal"
    if name in BOOLEAN_TYPES:
        return "boolean"
    if name in DATE_TYPES:
        return "date"
    if name in DATETIME_TYPES:
        return "datetime"
    return "text"


def resolve_enum(type_name: str, enums: Mapping[str, SchemaEnum]) -> SchemaEnum | None:
    """Match a declared type against enum names, ignoring case and schema qualifiers."""

    name = type_name.strip().lower()
    if name in enums:
        return enums[name]
    short = name.rsplit(".", 1)[-1]
    for key, enum in enums.items():
        if key.rsplit(".", 1)[-1] == short:
            return enum
    return None


def classify(column: SchemaColumn, enums: Mapping[str, SchemaEnum] | None = None) -> ColumnKind:
    domain = resolve_enum(column.type, enums) if enums else None
    if domain is not None:
        return ColumnKind(kind="text", enum_domain=domain)
    return ColumnKind(kind=scalar_kind(column.type))


def is_integer(value: str) -> bool:
    return _INTEGER.fullmatch(value.strip()) is not None


def is_decimal(value: str) -> bool:
    return _DECIMAL.fullmatch(value.strip()) is not None


def parse_boolean(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    return None


def parse_dates(values: pd.Series) -> pd.Series:
    """Parse each cell against the accepted date layouts; misses become NaT."""

    text = values.astype(str).str.strip()
    parsed = pd.Series(pd.NaT, index=text.index, dtype="datetime64[ns]")
    for fmt in _DATE_FORMATS:
        parsed = parsed.fillna(pd.to_datetime(text, format=fmt, errors="coerce"))
    return parsed


@functools.lru_cache(maxsize=4096)
def parse_date(value: str) -> date | None:
    if _DATE_SHAPE.fullmatch(value.strip()) is None:
        return None
    parsed = parse_dates(pd.Series([value])).iloc[0]
    return None if pd.isna(parsed) else parsed.date()


def parse_datetime(value: str) -> datetime | None:
    text = value.strip()
    match = _DATETIME.fullmatch(text)
    if match is None:
        parsed = parse_date(text)
        return datetime.combine(parsed, datetime.min.time()) if parsed else None
    year, month, day_of_month = regex.split(r"[-/.]", match["date"])
    day = parse_date(f"{year}-{int(month):02d}-{int(day_of_month):02d}")
    if day is None:
        return None
    if not match["time"]:
        return datetime.combine(day, datetime.min.time())
    iso = f"{day.isoformat()}T{_pad_time(match['time'])}{_zone(match['zone'])}"
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        return None


def conforms(kind: ScalarKind, value: str) -> bool:
    if kind == "integer":
        return is_integer(value)
    if kind == "decimal":
        return is_decimal(value)
    if kind == "boolean":
        return parse_boolean(value) is not None
    if kind == "date":
        return parse_date(value) is not None
    if kind == "datetime":
        return parse_datetime(value) is not None
    return True


def conforming(kind: ScalarKind, values: pd.Series) -> pd.Series:
    if kind == "date":
        return parse_dates(values).notna()
    return values.map(lambda value: conforms(kind, value)).astype(bool)


def _pad_time(text: str) -> str:
    hour, _, rest = text.partition(":")
    return f"{int(hour):02d}:{rest}"


def _zone(zone: str | None) -> str:
    if not zone:
        return ""
    if zone == "Z":
        return "+00:00"
    if ":" not in zone:
        return f"{zone[:3]}:{zone[3:]}"
    return zone


__all__ = [
    "ColumnKind",
    "base_type",
    "classify",
    "conforming",
    "conforms",
    "is_decimal",
    "is_integer",
    "parse_boolean",
    "parse_date",
    "parse_dates",
    "parse_datetime",
    "resolve_enum",
    "scalar_kind",
]
