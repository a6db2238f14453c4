from __future__ import annotations

from typing import Callable, Dict

from ..errors import QueryCoercionError
from ..types import Scalar
from .coercion import require_number, to_text

ScalarFunction = Callable[..., Scalar]


def _upper(value: Scalar) -> Scalar:
    return None if value is None else to_text(value).upper()


def _lower(value: Scalar) -> Scalar:
    return None if value is None else to_text(value).lower()


def _length(value: Scalar) -> Scalar:
    return None if value is None else len(to_text(value))


def _trim(value: Scalar) -> Scalar:
    return None if value is None else to_text(value).strip()


def _coalesce(*values: Scalar) -> Scalar:
    for value in values:
        if value is not None:
            return value
    return None


def _round(value: Scalar, digits: Scalar = 0) -> Scalar:
    number = require_number(value, "ROUND")
    places = require_number(digits, "ROUND")
    if number is None:
        return None
    if not isinstance(places, int):
        raise QueryCoercionError("ROUND expects an integer number of digits")
    rounded = round(number, places)
    return int(rounded) if places <= 0 else rounded


SCALAR_FUNCTIONS: Dict[str, ScalarFunction] = {
    "UPPER": _upper,
    "LOWER": _lower,
    "LENGTH": _length,
    "TRIM": _trim,
    "COALESCE": _coalesce,
    "ROUND": _round,
}

ARITY: Dict[str, tuple[int, int | None]] = {
    "UPPER": (1, 1),
    "LOWER": (1, 1),
    "LENGTH": (1, 1),
    "TRIM": (1, 1),
    "COALESCE": (1, None),
    "ROUND": (1, 2),
}
