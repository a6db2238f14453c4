from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from .api import validate
from .errors import ErdDatacheckError
from .loaders import load_tables
from .options import ValidationOptions
from .query import CATALOG_DESCRIPTION, QueryResult, build_data_query_context, execute_data_sql, execute_schema_sql
from .report import ValidationResult
from .schema import Schema, load_schema

app = typer.Typer(help="erd-datacheck command line interface")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def check(
    schema: Path,
    data: List[Path],
    report: Optional[Path] = typer.Option(None, help="JSON report path"),
    html: Optional[Path] = typer.Option(None, help="HTML report output"),
    junit: Optional[Path] = typer.Option(None, help="JUnit XML output"),
    pr_md: Optional[Path] = typer.Option(None, help="GitHub PR markdown output"),
    min_score: int = typer.Option(0, min=0, max=100, help="Fail when the score is below this value"),
    error_weight: float = typer.Option(3.0, help="Score penalty per error"),
    warning_weight: float = typer.Option(1.0, help="Score penalty per warning"),
) -> None:
    """Validate data files against a schema file."""

    schema_obj = _load_schema(schema)
    tables = _load_data(data, schema_obj)
    try:
        options = ValidationOptions(error_weight=error_weight, warning_weight=warning_weight)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    result = validate(schema_obj, tables, options=options)
    _render_report(result)
    if report:
        report.write_text(result.to_json(), encoding="utf-8")
    if html:
        html.write_text(result.to_html(), encoding="utf-8")
    if junit:
        junit.write_text(result.to_junit(), encoding="utf-8")
    if pr_md:
        pr_md.write_text(result.format_for_github_pr(), encoding="utf-8")
    raise typer.Exit(code=0 if result.ok and result.score >= min_score else 1)


@app.command()
def query(
    sql: str,
    data: List[Path] = typer.Option(..., "--data", help="Data file or directory (repeatable)"),
    schema: Optional[Path] = typer.Option(None, help="Schema file for implicit joins and typed output"),
    json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Run a SELECT query over data files."""

    schema_obj = _load_schema(schema) if schema else None
    tables = _load_data(data, schema_obj)
    _emit(execute_data_sql(sql, tables, schema_obj), json)


@app.command()
def catalog(
    sql: str,
    schema: Path = typer.Option(..., help="Schema file"),
    json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Query the schema through the TABLES, COLUMNS, REFS and ENUMS views."""

    _emit(execute_schema_sql(sql, _load_schema(schema)), json)


@app.command()
def context(
    data: List[Path] = typer.Option(..., "--data", help="Data file or directory (repeatable)"),
    schema: Optional[Path] = typer.Option(None, help="Schema file"),
    max_refs: int = typer.Option(40, help="Maximum join hints to list"),
    with_catalog: bool = typer.Option(False, help="Append the catalog view description"),
) -> None:
    """Print a text description of the loaded tables and their join paths."""

    schema_obj = _load_schema(schema) if schema else None
    tables = _load_data(data, schema_obj)
    text = build_data_query_context(tables, schema_obj, max_refs=max_refs)
    if with_catalog:
        text = f"{text}\n\n{CATALOG_DESCRIPTION}"
    typer.echo(text)


def _load_schema(path: Path) -> Schema:
    try:
        return load_schema(path)
    except (ErdDatacheckError, ValueError) as exc:
        console.print(f"[red]Cannot load schema {path}: {exc}[/red]")
        raise typer.Exit(code=2) from exc


def _load_data(paths: List[Path], schema: Schema | None):
    try:
        return load_tables(paths, schema)
    except ErdDatacheckError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc


def _emit(result: QueryResult, as_json: bool) -> None:
    if as_json:
        typer.echo(result.to_json())
    elif result.statements:
        for statement in result.statements:
            console.rule(statement.table_name)
            if statement.error:
                console.print(f"[red]{statement.error}[/red]")
            else:
                console.print(QueryResult(columns=statement.columns, rows=statement.rows).to_rich_table())
    elif result.error is None:
        console.print(result.to_rich_table(title=f"{result.row_count} rows"))
    if result.error and not as_json:
        console.print(f"[red]{result.error}[/red]")
    if not result.ok:
        raise typer.Exit(code=1)


def _render_report(result: ValidationResult) -> None:
    result.to_rich_console(console=console)


if __name__ == "__main__":  # pragma: no cover
    app()
