from __future__ import annotations

import pytest

from erd_datacheck.errors import QuerySyntaxError
from erd_datacheck.query.nodes import Binary, ColumnRef, FuncCall, InList, Like, Literal, Star
from erd_datacheck.query.parser import parse
from erd_datacheck.query.tokenizer import split_statements, tokenize


def _parse(sql: str):
    [(_, tokens)] = split_statements(sql)
    return parse(tokens, sql)


def test_tokenize_identifiers_and_literals() -> None:
    tokens = tokenize("SELECT \"first name\", `#memo`, 'it''s' FROM t -- trailing")
    assert [(token.kind, token.value) for token in tokens] == [
        ("keyword", "SELECT"),
        ("ident", "first name"),
        ("punct", ","),
        ("ident", "#memo"),
        ("punct", ","),
        ("string", "it's"),
        ("keyword", "FROM"),
        ("ident", "t"),
    ]


def test_unterminated_string_reports_position() -> None:
    with pytest.raises(QuerySyntaxError, match="position 7"):
        tokenize("SELECT 'oops")


def test_split_statements_ignores_semicolons_in_strings() -> None:
    statements = split_statements("SELECT 'a;b' FROM t; ; SELECT * FROM u;")
    assert [text for text, _ in statements] == ["SELECT 'a;b' FROM t", "SELECT * FROM u"]


def test_parse_full_select() -> None:
    select = _parse(
        "SELECT DISTINCT c.name AS customer, COUNT(*) n FROM Customer c "
        "LEFT JOIN Orders o ON o.cid = c.id WHERE c.name LIKE 'A%' AND o.total IN (1, 2) "
        "GROUP BY c.name HAVING COUNT(*) > 1 ORDER BY n DESC, 1 LIMIT 5 OFFSET 2"
    )
    assert select.distinct
    assert [item.alias for item in select.items] == ["customer", "n"]
    assert select.items[0].expr == ColumnRef("c", "name")
    assert select.items[1].expr == FuncCall("COUNT", (), star=True)
    assert select.source.binding == "c"
    assert select.joins[0].kind == "LEFT"
    assert select.joins[0].table.binding == "o"
    assert isinstance(select.where, Binary) and select.where.op == "AND"
    assert isinstance(select.where.left, Like)
    assert isinstance(select.where.right, InList)
    assert select.group_by == (ColumnRef("c", "name"),)
    assert [item.descending for item in select.order_by] == [True, False]
    assert select.order_by[1].expr == Literal(1)
    assert (select.limit, select.offset) == (5, 2)


def test_keyword_named_table_and_star() -> None:
    select = _parse("SELECT o.*, * FROM Order o JOIN Customer c")
    assert select.items[0].expr == Star("o")
    assert select.items[1].expr == Star()
    assert select.source.name == "Order"
    assert select.joins[0].condition is None


def test_item_text_keeps_original_spelling() -> None:
    select = _parse("SELECT  upper(name) ,  a + 1 FROM t")
    assert [item.text for item in select.items] == ["upper(name)", "a + 1"]


def test_operator_precedence() -> None:
    select = _parse("SELECT a FROM t WHERE a = 1 OR b = 2 AND NOT c = 3")
    where = select.where
    assert isinstance(where, Binary) and where.op == "OR"
    assert isinstance(where.right, Binary) and where.right.op == "AND"


@pytest.mark.parametrize(
    "sql, message",
    [
        ("SELECT FROM Customer", "expected a column or expression"),
        ("UPDATE t SET a = 1", "only SELECT statements are supported"),
        ("SELECT a FROM t WHERE a IN (SELECT b FROM u)", "subqueries are not supported"),
        ("SELECT nope(a) FROM t", "unknown function"),
        ("SELECT upper(a, b) FROM t", "wrong number of arguments"),
        ("SELECT a FROM t LIMIT x", "LIMIT expects a non-negative integer"),
        ("SELECT a FROM t extra junk", "unexpected token"),
        ("SELECT SUM(*) FROM t", "SUM(*) is not supported"),
    ],
)
def test_parse_errors(sql: str, message: str) -> None:
    with pytest.raises(QuerySyntaxError, match=message):
        _parse(sql)
