from __future__ import annotations

from pathlib import Path

import pytest

from erd_datacheck import Schema, TableData, load_schema, read_tables

pytest_plugins = ["erd_datacheck.plugin"]

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture(scope="session")
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture(scope="session")
def schema_path() -> Path:
    return DATA_DIR / "schema.json"


@pytest.fixture
def schema(schema_path: Path) -> Schema:
    return load_schema(schema_path)


@pytest.fixture
def clean_tables(schema: Schema) -> list[TableData]:
    return read_tables(DATA_DIR / "clean", schema)


@pytest.fixture
def broken_tables(schema: Schema) -> list[TableData]:
    return read_tables(DATA_DIR / "broken", schema)


@pytest.fixture
def shop_schema() -> Schema:
    """Order.customerId -> Customer.id with a status enum, built in code."""

    return Schema.model_validate(
        {
            "tables": [
                {
                    "name": "Customer",
                    "columns": [
                        {"name": "id", "type": "int", "isPrimaryKey": True},
                        {"name": "name", "type": "text", "isNotNull": True},
                        {"name": "status", "type": "CustomerStatus"},
                    ],
                },
                {
                    "name": "Order",
                    "columns": [
                        {"name": "id", "type": "int", "isPrimaryKey": True},
                        {"name": "customerId", "type": "int", "isForeignKey": True},
                        {"name": "amount", "type": "decimal"},
                    ],
                },
            ],
            "refs": [
                {"fromTable": "Order", "fromColumns": ["customerId"], "toTable": "Customer", "toColumns": ["id"]}
            ],
            "enums": [{"name": "CustomerStatus", "values": ["active", "inactive"]}],
        }
    )


@pytest.fixture
def shop_tables() -> list[TableData]:
    customers = TableData.from_records(
        "Customer",
        [
            {"id": "1", "name": "Ann", "status": "active"},
            {"id": "2", "name": "Bo", "status": "inactive"},
        ],
    )
    orders = TableData.from_records(
        "Order",
        [
            {"id": "10", "customerId": "1", "amount": "12.5"},
            {"id": "11", "customerId": "2", "amount": "7"},
            {"id": "12", "customerId": "1", "amount": "30"},
        ],
    )
    return [customers, orders]
