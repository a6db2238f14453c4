from __future__ import annotations

from pathlib import Path
from typing import Iterable

import orjson
import pytest

from .api import validate
from .data import TableData, TableDataMap
from .loaders import read_tables
from .options import ValidationOptions
from .report import ValidationResult
from .schema import Schema, load_schema


class PluginState:
    def __init__(self, *, json_path: Path | None, junit_path: Path | None) -> None:
        self.json_path = json_path
        self.junit_path = junit_path
        self.results: list[tuple[str, ValidationResult]] = []

    def record(self, name: str, result: ValidationResult) -> None:
        self.results.append((name, result))

    def write_all(self) -> None:
        if not self.results:
            return
        if self.json_path:
            payload = {"runs": [{"name": name, "result": result.as_dict()} for name, result in self.results]}
            self.json_path.write_text(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
        if self.junit_path:
            self.junit_path.write_text(_aggregate_junit(self.results))


class DatacheckHelper:
    def __init__(self, state: PluginState) -> None:
        self._state = state

    def load(self, schema_or_path: Schema | str | Path) -> Schema:
        if isinstance(schema_or_path, Schema):
            return schema_or_path
        return load_schema(schema_or_path)

    def must_validate(
        self,
        schema_or_path: Schema | str | Path,
        tables: TableDataMap | Iterable[TableData] | str | Path,
        *,
        min_score: int = 100,
        options: ValidationOptions | None = None,
        name: str | None = None,
    ) -> ValidationResult:
        """Validate and fail the test on any error or a score below ``min_score``."""

        schema = self.load(schema_or_path)
        if isinstance(tables, (str, Path)):
            tables = read_tables(tables, schema)
        result = validate(schema, tables, options=options)
        self._state.record(name or f"run-{len(self._state.results) + 1}", result)
        if not result.ok or result.score < min_score:
            raise AssertionError(
                f"Data did not satisfy schema (score {result.score}, {result.error_count} errors):\n"
                + result.format_for_github_pr(max_issues=20)
            )
        return result

    def write_report(self, path: Path) -> None:
        self._state.json_path = path
        self._state.write_all()


@pytest.fixture
def erd_datacheck(request: pytest.FixtureRequest) -> DatacheckHelper:
    state: PluginState = request.config._edc_state  # type: ignore[attr-defined]
    return DatacheckHelper(state)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption("--edc-report", action="store", default=None, help="Aggregate JSON validation report path")
    parser.addoption("--edc-junit", action="store", default=None, help="JUnit XML output path")


def pytest_configure(config: pytest.Config) -> None:
    report_opt = config.getoption("--edc-report")
    junit_opt = config.getoption("--edc-junit")
    config._edc_state = PluginState(  # type: ignore[attr-defined]
        json_path=Path(report_opt) if report_opt else None,
        junit_path=Path(junit_opt) if junit_opt else None,
    )


def pytest_unconfigure(config: pytest.Config) -> None:
    state: PluginState | None = getattr(config, "_edc_state", None)
    if state is not None:
        state.write_all()


def _aggregate_junit(results: list[tuple[str, ValidationResult]]) -> str:
    suites = [result.to_junit().split("\n", 1)[1] for _, result in results]
    body = "\n".join(suites)
    return f"<?xml version=\"1.0\" encoding=\"UTF-8\"?>\n<testsuites name=\"erd-datacheck\">\n{body}\n</testsuites>"
