from __future__ import annotations

import logging
import time
from typing import Iterable

from .checks import CHECKS, CheckContext, Finding
from .data import TableData, TableDataMap, lookup_table, table_map
from .options import DEFAULT_OPTIONS, ValidationOptions
from .query import QueryResult, execute_data_sql, execute_schema_sql
from .report import TableValidationStat, ValidationResult, compute_score
from .schema import Schema, SchemaTable
from .types import CATEGORIES, CATEGORY_SEVERITY, Category, IssueDict

logger = logging.getLogger(__name__)

_STAT_FLAGS: dict[Category, str] = {
    "uniqueness": "checked_pk",
    "required": "checked_not_null",
    "referential": "checked_fk",
    "enum": "checked_enum",
    "type": "checked_type",
}


def validate(
    schema: Schema,
    tables: TableDataMap | Iterable[TableData],
    *,
    options: ValidationOptions | None = None,
) -> ValidationResult:
    """Cross-check tabular data against the schema and score the result."""

    options = options or DEFAULT_OPTIONS
    start = time.perf_counter()
    data_map = table_map(tables)
    enums = schema.enum_map()
    issues: list[IssueDict] = []
    stats: list[TableValidationStat] = []
    for table in schema.tables:
        data = lookup_table(data_map, table.name)
        if data is None:
            logger.debug("Schema table %s has no matching data table", table.name)
            stats.append(TableValidationStat(name=table.name, matched=False))
            continue
        stat = TableValidationStat(name=table.name, matched=True, rows=data.row_count)
        ctx = CheckContext(schema=schema, table=table, data=data, tables=data_map, enums=enums)
        findings = _run_checks(ctx, stat, options)
        for category, finding in _ordered(table, findings):
            issues.append(_issue(len(issues) + 1, table, category, finding))
            if CATEGORY_SEVERITY[category] == "error":
                stat.errors += 1
            else:
                stat.warnings += 1
        stats.append(stat)

    total_checks = sum(stat.checks for stat in stats)
    error_count = sum(1 for issue in issues if issue["severity"] == "error")
    warning_count = sum(1 for issue in issues if issue["severity"] == "warning")
    info_count = sum(1 for issue in issues if issue["severity"] == "info")
    by_category: dict[Category, int] = {category: 0 for category in CATEGORIES}
    for issue in issues:
        by_category[issue["category"]] += 1
    score = compute_score(
        error_count,
        warning_count,
        total_checks,
        error_weight=options.error_weight,
        warning_weight=options.warning_weight,
    )
    echoed = list(data_map.values())
    logger.info(
        "Validated %d/%d schema tables: %d checks, %d errors, %d warnings, score %d",
        sum(1 for stat in stats if stat.matched),
        len(stats),
        total_checks,
        error_count,
        warning_count,
        score,
    )
    return ValidationResult(
        issues=issues,
        score=score,
        total_rows=sum(table.row_count for table in echoed),
        total_checks=total_checks,
        error_count=error_count,
        warning_count=warning_count,
        info_count=info_count,
        by_category=by_category,
        tables=echoed,
        table_stats=stats,
        duration_ms=int((time.perf_counter() - start) * 1000),
    )


def _run_checks(
    ctx: CheckContext,
    stat: TableValidationStat,
    options: ValidationOptions,
) -> list[tuple[Category, Finding]]:
    findings: list[tuple[Category, Finding]] = []
    for category, check in CHECKS.items():
        if not options.enabled(category):
            continue
        outcome = check(ctx)
        if outcome is None:
            continue
        stat.checks += outcome.examined
        setattr(stat, _STAT_FLAGS[category], True)
        findings.extend((category, finding) for finding in outcome.findings)
    return findings


def _ordered(table: SchemaTable, findings: list[tuple[Category, Finding]]) -> list[tuple[Category, Finding]]:
    position = {col.name: idx for idx, col in enumerate(table.columns)}
    check_rank = {category: idx for idx, category in enumerate(CHECKS)}
    return sorted(
        findings,
        key=lambda item: (item[1].row, position.get(item[1].column, len(position)), check_rank[item[0]]),
    )


def _issue(number: int, table: SchemaTable, category: Category, finding: Finding) -> IssueDict:
    return {
        "id": f"dv-{number}",
        "severity": CATEGORY_SEVERITY[category],
        "category": category,
        "table": table.name,
        "column": finding.column,
        "row": finding.row,
        "value": finding.value,
        "title": finding.title,
        "description": finding.description,
    }


__all__ = ["validate", "execute_data_sql", "execute_schema_sql", "QueryResult"]
