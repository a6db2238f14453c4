from __future__ import annotations

import pytest

from erd_datacheck import Schema, TableData, execute_data_sql


@pytest.fixture
def customer_only() -> dict[str, TableData]:
    return {
        "Customer": TableData(
            name="Customer",
            headers=["id", "name"],
            rows=[{"id": "1", "name": "Ann"}, {"id": "2", "name": "Bo"}],
        )
    }


def test_simple_filter_round_trip(customer_only) -> None:
    result = execute_data_sql("SELECT name FROM Customer WHERE id = '1'", customer_only)
    assert result.error is None
    assert result.columns == ["name"]
    assert result.rows == [{"name": "Ann"}]
    assert result.row_count == 1


def test_malformed_query_surfaces_error(customer_only) -> None:
    result = execute_data_sql("SELECT FROM", customer_only)
    assert result.error
    assert result.rows == []
    assert result.row_count == 0


@pytest.mark.parametrize("sql", ["", "   ", "-- nothing here"])
def test_empty_query(sql, customer_only) -> None:
    assert execute_data_sql(sql, customer_only).error == "query is empty"


def test_unknown_table_and_column(customer_only) -> None:
    assert "unknown table" in execute_data_sql("SELECT * FROM Invoice", customer_only).error
    assert "unknown column" in execute_data_sql("SELECT age FROM Customer", customer_only).error


def test_case_insensitive_names(customer_only) -> None:
    result = execute_data_sql("select NAME from customer where ID = 2", customer_only)
    assert result.rows == [{"NAME": "Bo"}]


def test_implicit_join_uses_schema_reference(shop_schema, shop_tables) -> None:
    result = execute_data_sql("SELECT o.id, c.name FROM Order o JOIN Customer c", shop_tables, shop_schema)
    assert result.error is None
    assert result.columns == ["id", "name"]
    assert result.rows == [{"id": 10, "name": "Ann"}, {"id": 11, "name": "Bo"}, {"id": 12, "name": "Ann"}]


def test_join_without_reference_needs_on(shop_tables) -> None:
    result = execute_data_sql("SELECT * FROM Order o JOIN Customer c", shop_tables)
    assert "needs an ON condition" in result.error


def test_explicit_join_matches_across_number_formats() -> None:
    left = TableData.from_records("a", [{"k": "1"}, {"k": "2"}])
    right = TableData.from_records("b", [{"k": "1.0", "v": "x"}, {"k": "3", "v": "y"}])
    result = execute_data_sql("SELECT a.k, b.v FROM a JOIN b ON a.k = b.k", [left, right])
    assert result.rows == [{"k": "1", "v": "x"}]


def test_left_join_pads_missing_rows(shop_schema, shop_tables) -> None:
    shop_tables[0].rows.append({"id": "3", "name": "Cy", "status": "active"})
    result = execute_data_sql(
        "SELECT c.name, o.id AS order_id FROM Customer c LEFT JOIN Order o ON o.customerId = c.id "
        "WHERE o.id IS NULL",
        shop_tables,
        shop_schema,
    )
    assert result.rows == [{"name": "Cy", "order_id": None}]


def test_aggregates_with_group_by_and_having(shop_schema, shop_tables) -> None:
    result = execute_data_sql(
        "SELECT c.name, COUNT(*) AS orders, SUM(o.amount) AS total, AVG(o.amount) AS mean "
        "FROM Order o JOIN Customer c GROUP BY c.name HAVING COUNT(*) > 1",
        shop_tables,
        shop_schema,
    )
    assert result.error is None
    assert result.rows == [{"name": "Ann", "orders": 2, "total": 42.5, "mean": 21.25}]


def test_aggregate_over_empty_input_yields_one_row(customer_only) -> None:
    result = execute_data_sql("SELECT COUNT(*), MAX(id) FROM Customer WHERE id = '9'", customer_only)
    assert result.columns == ["COUNT(*)", "MAX(id)"]
    assert result.rows == [{"COUNT(*)": 0, "MAX(id)": None}]


def test_count_distinct_and_min(shop_tables) -> None:
    result = execute_data_sql(
        "SELECT COUNT(DISTINCT customerId) AS buyers, MIN(amount) AS smallest FROM Order", shop_tables
    )
    assert result.rows == [{"buyers": 2, "smallest": 7}]


def test_sum_of_text_is_an_error(customer_only) -> None:
    result = execute_data_sql("SELECT SUM(name) FROM Customer", customer_only)
    assert "non-numeric" in result.error


def test_aggregate_in_where_is_rejected(customer_only) -> None:
    result = execute_data_sql("SELECT name FROM Customer WHERE COUNT(*) > 1", customer_only)
    assert "not allowed" in result.error


def test_order_limit_offset() -> None:
    table = TableData.from_records(
        "t", [{"n": "10", "s": "b"}, {"n": "9", "s": "a"}, {"n": "100", "s": "a"}, {"n": "", "s": "c"}]
    )
    result = execute_data_sql("SELECT n FROM t ORDER BY n", [table])
    assert [row["n"] for row in result.rows] == [None, "9", "10", "100"]
    result = execute_data_sql("SELECT s, n FROM t ORDER BY s DESC, 2 LIMIT 2 OFFSET 1", [table])
    assert result.rows == [{"s": "b", "n": "10"}, {"s": "a", "n": "9"}]


def test_predicates_and_functions() -> None:
    table = TableData(
        name="people",
        headers=["name", "born", "score"],
        rows=[
            {"name": " Ann ", "born": "1990-05-01", "score": "7"},
            {"name": "bob", "born": "2001-01-15", "score": ""},
            {"name": "Cleo", "born": "1985-12-31", "score": "3"},
        ],
    )
    sql = (
        "SELECT UPPER(TRIM(name)) AS who, COALESCE(score, 0) AS score, LENGTH(name) AS len FROM people "
        "WHERE born BETWEEN '1980-01-01' AND '1999-12-31' AND name NOT LIKE 'c%' ORDER BY who"
    )
    result = execute_data_sql(sql, [table])
    assert result.error is None
    assert result.rows == [{"who": "ANN", "score": "7", "len": 5}]
    result = execute_data_sql("SELECT name FROM people WHERE score IN (3, 7) AND score != 3", [table])
    assert result.rows == [{"name": " Ann "}]


def test_null_comparisons_are_false() -> None:
    table = TableData.from_records("t", [{"a": "", "b": "1"}, {"a": "2", "b": "1"}])
    assert execute_data_sql("SELECT b FROM t WHERE a != '2'", [table]).rows == []
    assert execute_data_sql("SELECT b FROM t WHERE NOT a = '2'", [table]).rows == [{"b": "1"}]
    assert execute_data_sql("SELECT a FROM t WHERE a IS NOT NULL", [table]).rows == [{"a": "2"}]


def test_arithmetic_and_division_by_zero() -> None:
    table = TableData.from_records("t", [{"a": "6", "b": "0"}, {"a": "6", "b": "4"}])
    result = execute_data_sql("SELECT a / b AS q, a * 2 + 1 AS r, a || '-' || b AS s FROM t", [table])
    assert result.rows == [{"q": None, "r": 13, "s": "6-0"}, {"q": 1.5, "r": 13, "s": "6-4"}]


def test_distinct_and_duplicate_output_names(shop_tables) -> None:
    result = execute_data_sql("SELECT DISTINCT customerId FROM Order", shop_tables)
    assert result.rows == [{"customerId": "1"}, {"customerId": "2"}]
    result = execute_data_sql(
        "SELECT o.id, c.id, c.id FROM Order o JOIN Customer c ON o.customerId = c.id LIMIT 1", shop_tables
    )
    assert result.columns == ["id", "c.id", "id_2"]


def test_star_expansion_with_schema_types(shop_schema, shop_tables) -> None:
    result = execute_data_sql("SELECT * FROM Order WHERE amount > 10", shop_tables, shop_schema)
    assert result.columns == ["id", "customerId", "amount"]
    assert result.rows == [
        {"id": 10, "customerId": 1, "amount": 12.5},
        {"id": 12, "customerId": 1, "amount": 30.0},
    ]


def test_multi_statement_script(customer_only) -> None:
    result = execute_data_sql("SELECT id FROM Customer; SELECT nope FROM Customer", customer_only)
    assert len(result.statements) == 2
    first, second = result.statements
    assert first.table_name == "Customer"
    assert first.row_count == 2
    assert second.error and "unknown column" in second.error
    assert result.row_count == 2
    assert not result.ok


def test_result_conversions(customer_only) -> None:
    result = execute_data_sql("SELECT id, name FROM Customer ORDER BY name DESC", customer_only)
    frame = result.to_frame()
    assert list(frame.columns) == ["id", "name"]
    assert frame["name"].tolist() == ["Bo", "Ann"]
    assert '"row_count": 2' in result.to_json()


def test_text_equality_is_case_sensitive_but_like_is_not(customer_only) -> None:
    assert execute_data_sql("SELECT id FROM Customer WHERE name = 'ann'", customer_only).rows == []
    assert execute_data_sql("SELECT id FROM Customer WHERE name = 'Ann'", customer_only).rows == [{"id": "1"}]
    assert execute_data_sql("SELECT id FROM Customer WHERE name LIKE 'ANN'", customer_only).rows == [{"id": "1"}]


def test_dates_compare_as_dates_across_layouts() -> None:
    table = TableData.from_records("events", [{"day": "2024/1/5"}, {"day": "2024/1/20"}])
    result = execute_data_sql("SELECT day FROM events WHERE day < '2024-01-10'", [table])
    assert result.error is None
    assert result.rows == [{"day": "2024/1/5"}]
    result = execute_data_sql("SELECT day FROM events ORDER BY day DESC", [table])
    assert [row["day"] for row in result.rows] == ["2024/1/20", "2024/1/5"]


def test_oversized_integer_text_stays_inside_the_result() -> None:
    huge = "1" * 5000
    table = TableData.from_records("t", [{"id": huge}, {"id": "1"}])
    result = execute_data_sql("SELECT id FROM t WHERE id = 1", [table])
    assert result.error is None
    assert result.rows == [{"id": "1"}]
    assert execute_data_sql(f"SELECT id FROM t WHERE id < {huge}", [table]).rows == [{"id": "1"}]
    assert "too large" in execute_data_sql(f"SELECT id FROM t LIMIT {huge}", [table]).error

    schema = Schema.model_validate({"tables": [{"name": "t", "columns": [{"name": "id", "type": "int"}]}]})
    assert execute_data_sql("SELECT id FROM t", [table], schema).rows == [{"id": huge}, {"id": 1}]
