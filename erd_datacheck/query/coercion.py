"""Coercion of text cells for comparison, sorting and aggregation.

Cells are text. Two operands compare as numbers when both parse as numbers,
as dates when both parse as dates, and as case-sensitive text otherwise.
A missing operand (None) makes every comparison false.
"""

from __future__ import annotations

import functools
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable

import regex

from ..domains import is_decimal, is_integer, parse_datetime
from ..errors import QueryCoercionError
from ..types import Scalar

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def integer_value(text: str) -> int | float:
    try:
        return int(text)
    except ValueError:
        # Longer than the interpreter allows for int(); keep the magnitude.
        return float(text)


def to_number(value: object) -> int | float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if is_integer(text):
            return integer_value(text)
        if is_decimal(text):
            return float(text)
    return None


def to_date(value: object) -> datetime | None:
    if isinstance(value, datetime):
        parsed: datetime | None = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str):
        parsed = parse_datetime(value)
    else:
        return None
    if parsed is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def require_number(value: object, operation: str) -> int | float | None:
    if value is None:
        return None
    number = to_number(value)
    if number is None:
        raise QueryCoercionError(f"cannot use non-numeric value {to_text(value)!r} in {operation}")
    return number


def common(left: object, right: object) -> tuple[Any, Any]:
    numbers = to_number(left), to_number(right)
    if numbers[0] is not None and numbers[1] is not None:
        return numbers
    dates = to_date(left), to_date(right)
    if dates[0] is not None and dates[1] is not None:
        return dates
    return to_text(left), to_text(right)


def compare(left: object, right: object, op: str) -> bool:
    if left is None or right is None:
        return False
    a, b = common(left, right)
    return _COMPARATORS[op](a, b)


@functools.lru_cache(maxsize=256)
def like_pattern(pattern: str) -> regex.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(regex.escape(char))
    return regex.compile("".join(parts), regex.IGNORECASE | regex.DOTALL)


def like(value: object, pattern: object) -> bool:
    if value is None or pattern is None:
        return False
    return like_pattern(to_text(pattern)).fullmatch(to_text(value)) is not None


def sort_keys(values: list[Scalar]) -> list[tuple[int, Any]]:
    """Keys ordering a column of values under one shared interpretation; NULLs first."""

    present = [value for value in values if value is not None]
    convert: Callable[[object], Any] = to_text
    if present and all(to_number(value) is not None for value in present):
        convert = to_number
    elif present and all(to_date(value) is not None for value in present):
        convert = to_date
    return [(0, 0) if value is None else (1, convert(value)) for value in values]


def extreme(values: Iterable[Scalar], *, largest: bool) -> Scalar:
    present = [value for value in values if value is not None]
    if not present:
        return None
    keys = sort_keys(present)
    pick = max if largest else min
    index = pick(range(len(present)), key=lambda idx: keys[idx])
    number = to_number(present[index])
    if number is not None and keys[index][1] == number:
        return number
    return present[index]


def truthy(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)
