from __future__ import annotations

from typing import Iterable, Sequence

import regex

_SEPARATORS = regex.compile(r"[\s_]+")


def is_blank(value: object) -> bool:
    """Absent, empty and whitespace-only cells all mean "no value"."""

    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def normalize_name(name: str) -> str:
    """Fold case and collapse whitespace/underscore runs for lenient matching."""

    return _SEPARATORS.sub("_", name.strip().casefold()).strip("_")


def match_name(name: str, candidates: Iterable[str]) -> str | None:
    """Return the candidate naming ``name``: exact, then case-insensitive, then normalized."""

    options = list(candidates)
    if name in options:
        return name
    lowered = name.lower()
    for option in options:
        if option.lower() == lowered:
            return option
    normalized = normalize_name(name)
    for option in options:
        if normalize_name(option) == normalized:
            return option
    return None


def find_header_row(raw: Sequence[Sequence[object]], known_columns: set[str] | None = None, *, scan: int = 5) -> int:
    """Pick the header row among the first ``scan`` rows.

    With known column names the row matching the most of them wins; otherwise the
    row with the most non-numeric cells wins. Ties keep the earliest row.
    """

    best_idx = 0
    best_score = -1
    known = {normalize_name(col) for col in known_columns} if known_columns else set()
    for idx, row in enumerate(raw[:scan]):
        cells = [str(cell).strip().lower() for cell in row if not is_blank(cell)]
        if not cells:
            continue
        if known:
            score = sum(1 for cell in cells if normalize_name(cell) in known)
        else:
            score = sum(1 for cell in cells if not _is_number(cell))
        if score > best_score:
            best_score = score
            best_idx = idx
    return best_idx


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


__all__ = ["is_blank", "normalize_name", "match_name", "find_header_row"]
