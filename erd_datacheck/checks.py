from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Sequence

import pandas as pd

from .data import TableData, lookup_table
from .domains import ColumnKind, classify, conforming
from .schema import Schema, SchemaEnum, SchemaRef, SchemaTable
from .types import Category

logger = logging.getLogger(__name__)

Key = tuple[str, ...]


@dataclass(slots=True)
class Finding:
    column: str
    row: int
    value: str
    title: str
    description: str


@dataclass(slots=True)
class CheckOutcome:
    examined: int = 0
    findings: list[Finding] = field(default_factory=list)


@dataclass(slots=True)
class CheckContext:
    schema: Schema
    table: SchemaTable
    data: TableData
    tables: Mapping[str, TableData]
    enums: Mapping[str, SchemaEnum]
    kinds: dict[str, ColumnKind] = field(default_factory=dict)
    frame: pd.DataFrame = field(init=False)

    def __post_init__(self) -> None:
        if not self.kinds:
            self.kinds = {col.name: classify(col, self.enums) for col in self.table.columns}
        self.frame = self.data.frame()

    def headers(self, columns: Sequence[str]) -> list[str] | None:
        """Resolve every column to a data header, or None when any is missing."""

        resolved = [self.data.header_for(name) for name in columns]
        if any(header is None for header in resolved):
            return None
        return resolved  # type: ignore[return-value]


Check = Callable[[CheckContext], CheckOutcome | None]


def row_number(index: int) -> int:
    # Row 1 is the header line.
    return int(index) + 2


def render_key(key: Key) -> str:
    if len(key) == 1:
        return key[0]
    return "(" + ", ".join(key) + ")"


def stripped(frame: pd.DataFrame, headers: Sequence[str]) -> pd.DataFrame:
    return frame.loc[:, list(headers)].apply(lambda series: series.str.strip())


def primary_key_uniqueness(ctx: CheckContext) -> CheckOutcome | None:
    pk_columns = [col.name for col in ctx.table.primary_key]
    if not pk_columns:
        return None
    headers = ctx.headers(pk_columns)
    if headers is None:
        logger.debug("Skipping PK check on %s: key columns missing from data", ctx.table.name)
        return None
    outcome = CheckOutcome(examined=ctx.data.row_count)
    keys = stripped(ctx.frame, headers)
    mask = keys.duplicated(subset=headers, keep="first")
    if not mask.any():
        return outcome
    positions = pd.Series(keys.index, index=keys.index)
    first_seen = positions.groupby([keys[header] for header in headers], sort=False).transform("first")
    for idx in keys.index[mask]:
        key: Key = tuple(keys.loc[idx, headers])
        outcome.findings.append(
            Finding(
                column=pk_columns[0],
                row=row_number(idx),
                value=render_key(key),
                title="Duplicate primary key",
                description=(
                    f"Primary key {'+'.join(pk_columns)} = {render_key(key)!r} "
                    f"already appears in row {row_number(int(first_seen[idx]))}"
                ),
            )
        )
    return outcome


def required_values(ctx: CheckContext) -> CheckOutcome | None:
    outcome: CheckOutcome | None = None
    for column in ctx.table.columns:
        if not (column.is_not_null or column.is_primary_key):
            continue
        header = ctx.data.header_for(column.name)
        if header is None:
            continue
        outcome = outcome or CheckOutcome()
        outcome.examined += ctx.data.row_count
        blank = ctx.frame[header].str.strip().eq("")
        for idx in ctx.frame.index[blank]:
            outcome.findings.append(
                Finding(
                    column=column.name,
                    row=row_number(idx),
                    value="",
                    title="Missing required value",
                    description=f"Column {column.name} is NOT NULL but the cell is empty",
                )
            )
    return outcome


def referential_integrity(ctx: CheckContext) -> CheckOutcome | None:
    outcome: CheckOutcome | None = None
    for ref in ctx.schema.refs_from(ctx.table):
        source_headers = ctx.headers(ref.from_columns)
        if source_headers is None:
            logger.debug("Skipping reference %s: source columns missing from %s", ref.id, ctx.data.name)
            continue
        target_name, targets = _target_keys(ctx, ref)
        outcome = outcome or CheckOutcome()
        outcome.examined += ctx.data.row_count
        if ctx.frame.empty:
            continue
        source = stripped(ctx.frame, source_headers)
        complete = source.ne("").all(axis=1)
        if targets is None:
            matched = pd.Series(False, index=source.index)
        else:
            matched = pd.Series(pd.MultiIndex.from_frame(source).isin(targets), index=source.index)
        for idx in source.index[complete & ~matched]:
            key: Key = tuple(source.loc[idx, source_headers])
            outcome.findings.append(
                Finding(
                    column=ref.from_columns[0],
                    row=row_number(idx),
                    value=render_key(key),
                    title="Broken reference",
                    description=(
                        f"{render_key(key)!r} has no match in "
                        f"{target_name}.{'+'.join(ref.to_columns)}"
                    ),
                )
            )
    return outcome


def _target_keys(ctx: CheckContext, ref: SchemaRef) -> tuple[str, pd.MultiIndex | None]:
    target = ctx.schema.table(ref.to_table)
    target_name = target.name if target else ref.to_table
    data = lookup_table(ctx.tables, target_name)
    if data is None:
        logger.debug("Reference target %s has no data; every value is unmatched", target_name)
        return target_name, None
    headers = [data.header_for(name) for name in ref.to_columns]
    if any(header is None for header in headers) or not data.rows:
        logger.debug("Reference target %s lacks rows or columns %s", target_name, ref.to_columns)
        return target_name, None
    return target_name, pd.MultiIndex.from_frame(stripped(data.frame(), headers))  # type: ignore[arg-type]


def enum_conformance(ctx: CheckContext) -> CheckOutcome | None:
    outcome: CheckOutcome | None = None
    for column in ctx.table.columns:
        domain = ctx.kinds[column.name].enum_domain
        header = ctx.data.header_for(column.name)
        if domain is None or header is None:
            continue
        outcome = outcome or CheckOutcome()
        outcome.examined += ctx.data.row_count
        values = ctx.frame[header].str.strip()
        mask = values.ne("") & ~values.isin(domain.allowed)
        shown = ", ".join(domain.allowed[:5]) + ("..." if len(domain.allowed) > 5 else "")
        for idx in ctx.frame.index[mask]:
            value = ctx.frame.at[idx, header]
            outcome.findings.append(
                Finding(
                    column=column.name,
                    row=row_number(idx),
                    value=value,
                    title="Value outside enum",
                    description=f"{value!r} is not defined in {domain.name} (allowed: {shown})",
                )
            )
    return outcome


def type_conformance(ctx: CheckContext) -> CheckOutcome | None:
    outcome: CheckOutcome | None = None
    for column in ctx.table.columns:
        kind = ctx.kinds[column.name]
        header = ctx.data.header_for(column.name)
        if kind.kind == "text" or header is None:
            continue
        outcome = outcome or CheckOutcome()
        outcome.examined += ctx.data.row_count
        values = ctx.frame[header]
        mask = values.str.strip().ne("") & ~conforming(kind.kind, values)
        for idx in ctx.frame.index[mask]:
            value = ctx.frame.at[idx, header]
            outcome.findings.append(
                Finding(
                    column=column.name,
                    row=row_number(idx),
                    value=value,
                    title="Type mismatch",
                    description=f"{value!r} is not a valid {kind.kind} for {column.name} ({column.type})",
                )
            )
    return outcome


CHECKS: Dict[Category, Check] = {
    "uniqueness": primary_key_uniqueness,
    "required": required_values,
    "referential": referential_integrity,
    "enum": enum_conformance,
    "type": type_conformance,
}
