from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
from xml.sax.saxutils import escape, quoteattr

import orjson
from jinja2 import Environment, select_autoescape
from rich.console import Console
from rich.table import Table

from .data import TableData
from .types import CATEGORIES, Category, IssueDict
from .utils import match_name

_jinja_env = Environment(autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=True))


def compute_score(
    errors: int,
    warnings: int,
    total_checks: int,
    *,
    error_weight: float = 3.0,
    warning_weight: float = 1.0,
) -> int:
    """Integrity score in [0, 100]; errors weigh more than warnings."""

    penalty = (error_weight * errors + warning_weight * warnings) / max(1, total_checks)
    score = math.floor(100 * max(0.0, 1.0 - penalty) + 0.5)
    return max(0, min(100, score))


@dataclass(slots=True)
class TableValidationStat:
    name: str
    matched: bool
    rows: int = 0
    checks: int = 0
    errors: int = 0
    warnings: int = 0
    checked_pk: bool = False
    checked_not_null: bool = False
    checked_fk: bool = False
    checked_enum: bool = False
    checked_type: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ValidationResult:
    issues: list[IssueDict]
    score: int
    total_rows: int
    total_checks: int
    error_count: int
    warning_count: int
    info_count: int
    by_category: dict[Category, int]
    tables: list[TableData] = field(default_factory=list)
    table_stats: list[TableValidationStat] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error_count == 0

    def by_table(self) -> dict[str, list[IssueDict]]:
        grouped: dict[str, list[IssueDict]] = {}
        for issue in self.issues:
            grouped.setdefault(issue["table"], []).append(issue)
        return grouped

    def unmatched_data_tables(self) -> list[str]:
        """Names of data tables no schema table was matched against."""

        matched = [stat.name for stat in self.table_stats if stat.matched]
        return [table.name for table in self.tables if match_name(table.name, matched) is None]

    def as_dict(self) -> dict[str, Any]:
        return {
            "issues": [dict(issue) for issue in self.issues],
            "score": self.score,
            "total_rows": self.total_rows,
            "total_checks": self.total_checks,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "info_count": self.info_count,
            "by_category": {category: self.by_category.get(category, 0) for category in CATEGORIES},
            "tables": [table.as_dict() for table in self.tables],
            "table_stats": [stat.as_dict() for stat in self.table_stats],
            "unmatched_data_tables": self.unmatched_data_tables(),
            "duration_ms": self.duration_ms,
        }

    def to_json(self) -> str:
        return orjson.dumps(self.as_dict(), option=orjson.OPT_INDENT_2).decode()

    def to_html(self, *, max_issues: int = 500) -> str:
        template = _jinja_env.from_string(_HTML_TEMPLATE)
        return template.render(
            ok=self.ok,
            score=self.score,
            total_rows=self.total_rows,
            total_checks=self.total_checks,
            error_count=self.error_count,
            warning_count=self.warning_count,
            by_category=self.by_category,
            stats=self.table_stats,
            unmatched=self.unmatched_data_tables(),
            issues=self.issues[:max_issues],
            truncated=max(0, len(self.issues) - max_issues),
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def _repr_html_(self) -> str:
        return self.to_html(max_issues=50)

    def to_rich_console(self, console: Console | None = None, *, max_issues: int = 50) -> None:
        console = console or Console()
        header = "VALIDATION PASSED" if self.ok else "VALIDATION FAILED"
        console.rule(f"{header}  score {self.score}/100")
        console.print(
            f"Rows: {self.total_rows}  Checks: {self.total_checks}  "
            f"Errors: {self.error_count}  Warnings: {self.warning_count}"
        )
        checklist = Table(title="Tables")
        for title in ("Table", "Matched", "Rows", "Checks", "Errors", "Warnings", "PK", "NN", "FK", "Enum", "Type"):
            checklist.add_column(title, justify="right" if title in {"Rows", "Checks", "Errors", "Warnings"} else "left")
        for stat in self.table_stats:
            checklist.add_row(
                stat.name,
                _mark(stat.matched),
                str(stat.rows),
                str(stat.checks),
                str(stat.errors),
                str(stat.warnings),
                _mark(stat.checked_pk),
                _mark(stat.checked_not_null),
                _mark(stat.checked_fk),
                _mark(stat.checked_enum),
                _mark(stat.checked_type),
            )
        console.print(checklist)
        unmatched = self.unmatched_data_tables()
        if unmatched:
            console.print(f"[yellow]Data tables without schema:[/yellow] {', '.join(unmatched)}")
        if not self.issues:
            console.print("No issues detected.")
            return
        table = Table(title="Issues")
        for title in ("ID", "Severity", "Category", "Table", "Column", "Row", "Value", "Description"):
            table.add_column(title)
        for issue in self.issues[:max_issues]:
            table.add_row(
                issue["id"],
                issue["severity"],
                issue["category"],
                issue["table"],
                issue["column"],
                str(issue["row"]),
                issue["value"],
                issue["description"],
            )
        console.print(table)
        if len(self.issues) > max_issues:
            console.print(f"... {len(self.issues) - max_issues} more issues")

    def to_junit(self) -> str:
        failures = self.error_count
        skipped = self.warning_count + self.info_count
        xml_lines = [
            "<?xml version=\"1.0\" encoding=\"UTF-8\"?>",
            f"<testsuite name=\"erd-datacheck\" tests=\"{len(self.issues)}\" failures=\"{failures}\" "
            f"skipped=\"{skipped}\" timestamp=\"{datetime.now(timezone.utc).isoformat()}\">",
        ]
        for issue in self.issues:
            name = f"{issue['column']}:row{issue['row']}:{issue['category']}"
            xml_lines.append(f"  <testcase classname={quoteattr(issue['table'])} name={quoteattr(name)}>")
            if issue["severity"] == "error":
                xml_lines.append(
                    f"    <failure message={quoteattr(issue['title'])}>{escape(issue['description'])}</failure>"
                )
            else:
                xml_lines.append(f"    <skipped message={quoteattr(issue['description'])} />")
            xml_lines.append("  </testcase>")
        xml_lines.append("</testsuite>")
        return "\n".join(xml_lines)

    def format_for_github_pr(self, *, max_issues: int = 100) -> str:
        if not self.issues:
            return f"✅ Data matches the schema (score {self.score}/100, {self.total_checks} checks)."
        lines = [
            "## erd-datacheck validation report",
            "",
            f"Score **{self.score}/100** · {self.error_count} errors · {self.warning_count} warnings "
            f"· {self.total_checks} checks over {self.total_rows} rows",
            "",
            "| Category | Count |",
            "| --- | --- |",
        ]
        for category in CATEGORIES:
            lines.append(f"| {category} | {self.by_category.get(category, 0)} |")
        lines.extend(["", "### Issues", "| Severity | Table | Column | Row | Value | Description |", "| --- | --- | --- | --- | --- | --- |"])
        for issue in self.issues[:max_issues]:
            lines.append(
                f"| {issue['severity']} | {issue['table']} | {issue['column']} | {issue['row']} "
                f"| {issue['value']} | {issue['description']} |"
            )
        if len(self.issues) > max_issues:
            lines.append(f"\n_{len(self.issues) - max_issues} more issues not shown._")
        return "\n".join(lines)


def _mark(flag: bool) -> str:
    return "✓" if flag else "-"


_HTML_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
  <meta charset=\"utf-8\">
  <title>erd-datacheck validation</title>
  <style>
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; margin: 2rem; }
    table { border-collapse: collapse; width: 100%; margin-top: 1rem; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; }
    .ok { color: #2e8540; }
    .fail { color: #b10e1e; }
    .severity-error { background: #ffe6e6; }
    .severity-warning { background: #fff8e6; }
  </style>
</head>
<body>
  <h1>erd-datacheck validation</h1>
  <p>Status: <strong class="{{ 'ok' if ok else 'fail' }}">{{ 'PASSED' if ok else 'FAILED' }}</strong>
     &middot; Score: <strong>{{ score }}/100</strong></p>
  <p>Rows: {{ total_rows }} &middot; Checks: {{ total_checks }} &middot; Errors: {{ error_count }}
     &middot; Warnings: {{ warning_count }} &middot; Generated: {{ generated_at }}</p>
  <h2>Tables</h2>
  <table>
    <thead>
      <tr><th>Table</th><th>Matched</th><th>Rows</th><th>Checks</th><th>Errors</th><th>Warnings</th>
          <th>PK</th><th>Not null</th><th>FK</th><th>Enum</th><th>Type</th></tr>
    </thead>
    <tbody>
      {% for stat in stats %}
      <tr>
        <td>{{ stat.name }}</td><td>{{ 'yes' if stat.matched else 'no' }}</td><td>{{ stat.rows }}</td>
        <td>{{ stat.checks }}</td><td>{{ stat.errors }}</td><td>{{ stat.warnings }}</td>
        <td>{{ 'x' if stat.checked_pk }}</td><td>{{ 'x' if stat.checked_not_null }}</td>
        <td>{{ 'x' if stat.checked_fk }}</td><td>{{ 'x' if stat.checked_enum }}</td><td>{{ 'x' if stat.checked_type }}</td>
      </tr>
      {% endfor %}
    </tbody>
  </table>
  {% if unmatched %}
  <p>Data tables without schema: {{ unmatched | join(', ') }}</p>
  {% endif %}
  {% if issues %}
  <h2>Issues</h2>
  <ul>
    {% for category, count in by_category.items() %}
    <li>{{ category }}: {{ count }}</li>
    {% endfor %}
  </ul>
  <table>
    <thead>
      <tr><th>ID</th><th>Severity</th><th>Category</th><th>Table</th><th>Column</th><th>Row</th><th>Value</th><th>Description</th></tr>
    </thead>
    <tbody>
      {% for issue in issues %}
      <tr class="severity-{{ issue['severity'] }}">
        <td>{{ issue['id'] }}</td><td>{{ issue['severity'] }}</td><td>{{ issue['category'] }}</td>
        <td>{{ issue['table'] }}</td><td>{{ issue['column'] }}</td><td>{{ issue['row'] }}</td>
        <td>{{ issue['value'] }}</td><td>{{ issue['description'] }}</td>
      </tr>
      {% endfor %}
    </tbody>
  </table>
  {% if truncated %}<p>{{ truncated }} more issues not shown.</p>{% endif %}
  {% else %}
  <p>No issues detected.</p>
  {% endif %}
</body>
</html>
"""
