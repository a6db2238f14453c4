from __future__ import annotations

import pytest
from pydantic import ValidationError

from erd_datacheck import Schema, TableData, ValidationOptions, compute_score, validate


def _single_table_schema(columns, enums=()):
    return Schema.model_validate({"tables": [{"name": "Customer", "columns": columns}], "enums": list(enums)})


def test_validate_clean_data(schema, clean_tables):
    result = validate(schema, clean_tables)
    assert result.ok
    assert result.issues == []
    assert result.score == 100
    assert result.total_rows == 7
    assert result.total_checks == 54
    assert all(stat.matched for stat in result.table_stats)


def test_validate_broken_data_orders_issues(schema, broken_tables):
    result = validate(schema, broken_tables)
    assert not result.ok
    summary = [(issue["id"], issue["table"], issue["row"], issue["column"], issue["category"]) for issue in result.issues]
    assert summary == [
        ("dv-1", "Customer", 3, "id", "uniqueness"),
        ("dv-2", "Customer", 3, "tier", "enum"),
        ("dv-3", "Customer", 4, "name", "required"),
        ("dv-4", "Customer", 4, "created", "type"),
        ("dv-5", "Order", 3, "customer_id", "referential"),
        ("dv-6", "Order", 3, "total", "type"),
    ]
    assert result.error_count == 3
    assert result.warning_count == 3
    assert result.total_checks == 36
    assert result.score == 67
    assert result.by_category == {"referential": 1, "uniqueness": 1, "required": 1, "enum": 1, "type": 2}


def test_validate_is_idempotent(schema, broken_tables):
    first = validate(schema, broken_tables).as_dict()
    second = validate(schema, broken_tables).as_dict()
    first.pop("duration_ms")
    second.pop("duration_ms")
    assert first == second


def test_duplicate_primary_key_reported_once():
    schema = _single_table_schema([{"name": "id", "isPrimaryKey": True}])
    table = TableData.from_records("Customer", [{"id": "1"}, {"id": "2"}, {"id": "1"}])
    result = validate(schema, [table])
    uniqueness = [issue for issue in result.issues if issue["category"] == "uniqueness"]
    assert len(uniqueness) == 1
    assert uniqueness[0]["row"] == 4
    assert uniqueness[0]["severity"] == "error"


def test_composite_key_uses_tuples():
    schema = _single_table_schema([{"name": "a", "isPrimaryKey": True}, {"name": "b", "isPrimaryKey": True}])
    table = TableData.from_records(
        "Customer",
        [{"a": "1", "b": "12"}, {"a": "11", "b": "2"}, {"a": "1", "b": "12"}],
    )
    result = validate(schema, [table])
    assert [issue["row"] for issue in result.issues] == [4]
    assert result.issues[0]["value"] == "(1, 12)"


def test_referential_integrity_skips_blank_values(shop_schema):
    customers = TableData.from_records("Customer", [{"id": "1", "name": "Ann"}, {"id": "2", "name": "Bo"}])
    orders = TableData.from_records(
        "Order",
        [{"id": "1", "customerId": "1"}, {"id": "2", "customerId": "3"}, {"id": "3", "customerId": ""}],
    )
    result = validate(shop_schema, [customers, orders])
    referential = [issue for issue in result.issues if issue["category"] == "referential"]
    assert len(referential) == 1
    assert referential[0]["value"] == "3"
    assert referential[0]["table"] == "Order"


def test_referential_integrity_with_missing_target_table(shop_schema):
    orders = TableData.from_records("Order", [{"id": "1", "customerId": "1"}])
    result = validate(shop_schema, [orders])
    assert [issue["category"] for issue in result.issues] == ["referential"]
    assert not result.table_stats[0].matched


@pytest.mark.parametrize("value, expected", [("", 1), ("   ", 1), ("x", 0)])
def test_required_check(value, expected):
    schema = _single_table_schema([{"name": "name", "isNotNull": True}])
    table = TableData.from_records("Customer", [{"name": value}])
    result = validate(schema, [table])
    assert result.by_category["required"] == expected


def test_required_check_treats_missing_cell_as_empty():
    schema = _single_table_schema([{"name": "id"}, {"name": "name", "isNotNull": True}])
    table = TableData(name="Customer", headers=["id", "name"], rows=[{"id": "1"}])
    result = validate(schema, [table])
    assert result.by_category["required"] == 1


def test_enum_check_is_case_sensitive(shop_schema, shop_tables):
    shop_tables[0].rows[0]["status"] = "ACTIVE"
    result = validate(shop_schema, shop_tables)
    assert [(issue["category"], issue["severity"]) for issue in result.issues] == [("enum", "warning")]


def test_type_check_flags_bad_decimal(shop_schema, shop_tables):
    shop_tables[1].rows[2]["amount"] = "thirty"
    result = validate(shop_schema, shop_tables)
    assert len(result.issues) == 1
    issue = result.issues[0]
    assert issue["category"] == "type"
    assert issue["column"] == "amount"
    assert issue["row"] == 4


def test_table_matching_is_case_insensitive(shop_schema, shop_tables):
    renamed = [TableData(name=table.name.upper(), headers=table.headers, rows=table.rows) for table in shop_tables]
    result = validate(shop_schema, renamed)
    assert all(stat.matched for stat in result.table_stats)
    assert result.unmatched_data_tables() == []


def test_unmatched_tables_are_reported_not_raised(shop_schema):
    stray = TableData.from_records("Invoice", [{"id": "1"}])
    result = validate(shop_schema, [stray])
    assert result.issues == []
    assert result.total_checks == 0
    assert result.score == 100
    assert result.unmatched_data_tables() == ["Invoice"]
    assert [stat.matched for stat in result.table_stats] == [False, False]


def test_stat_flags_follow_enabled_categories(shop_schema, shop_tables):
    options = ValidationOptions(categories=frozenset({"uniqueness", "type"}))
    result = validate(shop_schema, shop_tables, options=options)
    customer = result.table_stats[0]
    assert customer.checked_pk and customer.checked_type
    assert not customer.checked_not_null and not customer.checked_enum and not customer.checked_fk


def test_validation_options_reject_inverted_weights():
    with pytest.raises(ValidationError):
        ValidationOptions(error_weight=1.0, warning_weight=2.0)
    with pytest.raises(ValidationError):
        ValidationOptions(warning_weight=0)


@pytest.mark.parametrize(
    "errors, warnings, checks, expected",
    [(0, 0, 0, 100), (0, 0, 10, 100), (1, 0, 10, 70), (0, 1, 10, 90), (50, 50, 10, 0), (1, 1, 3, 0)],
)
def test_compute_score(errors, warnings, checks, expected):
    score = compute_score(errors, warnings, checks)
    assert score == expected
    assert 0 <= score <= 100


def test_duplicate_key_matches_padded_and_blank_components():
    schema = _single_table_schema([{"name": "a", "isPrimaryKey": True}, {"name": "b", "isPrimaryKey": True}])
    table = TableData(
        name="Customer",
        headers=["a", "b"],
        rows=[{"a": "1", "b": ""}, {"a": " 1 ", "b": ""}, {"a": "1", "b": "x"}],
    )
    result = validate(schema, [table])
    uniqueness = [issue for issue in result.issues if issue["category"] == "uniqueness"]
    assert [issue["row"] for issue in uniqueness] == [3]
    assert "already appears in row 2" in uniqueness[0]["description"]


def test_composite_reference_matches_whole_tuple():
    schema = Schema.model_validate(
        {
            "tables": [
                {"name": "Line", "columns": [{"name": "order_id"}, {"name": "line_no"}]},
                {"name": "Shipment", "columns": [{"name": "order_id"}, {"name": "line_no"}]},
            ],
            "refs": [
                {
                    "fromTable": "Shipment",
                    "fromColumns": ["order_id", "line_no"],
                    "toTable": "Line",
                    "toColumns": ["order_id", "line_no"],
                }
            ],
        }
    )
    lines = TableData.from_records("Line", [{"order_id": "1", "line_no": "1"}, {"order_id": "2", "line_no": "2"}])
    shipments = TableData.from_records(
        "Shipment",
        [
            {"order_id": "1", "line_no": "1"},
            {"order_id": "1", "line_no": "2"},
            {"order_id": "2", "line_no": ""},
        ],
    )
    result = validate(schema, [lines, shipments])
    assert [(issue["row"], issue["value"]) for issue in result.issues] == [(3, "(1, 2)")]


def test_type_check_accepts_every_date_layout():
    schema = _single_table_schema([{"name": "created", "type": "date"}])
    values = ["2024-01-05", "2024/01/05", "2024.01.05", "01/05/2024", "20240105", "2024-02-30", "soon"]
    table = TableData.from_records("Customer", [{"created": value} for value in values])
    result = validate(schema, [table])
    assert [issue["value"] for issue in result.issues] == ["2024-02-30", "soon"]
    assert all(isinstance(issue["row"], int) for issue in result.issues)
