"""Unit tests for query classification and QueryResult."""

import pytest

from sqldal.core.result import (
    QueryResult,
    QueryType,
    classify_query,
    ensure_query_result,
    get_query_type_token,
    uses_found_rows,
)
from sqldal.exceptions import InvalidQueryTypeError, ResultShapeError


@pytest.mark.parametrize(
    ("template", "expected"),
    [
        ("SELECT 1", QueryType.SELECT),
        ("INSERT INTO t VALUES (1)", QueryType.INSERT),
        ("UPDATE t SET a = 1", QueryType.AFFECTED_ROWS),
        ("DELETE FROM t", QueryType.AFFECTED_ROWS),
        ("REPLACE INTO t VALUES (1)", QueryType.AFFECTED_ROWS),
        ("LOAD DATA INFILE 'x' INTO TABLE t", QueryType.AFFECTED_ROWS),
        ("SET NAMES utf8mb4", QueryType.COMMAND),
        ("LOCK TABLES t WRITE", QueryType.COMMAND),
        ("UNLOCK TABLES", QueryType.COMMAND),
        ("CREATE TEMPORARY TABLE tmp (id INT)", QueryType.COMMAND),
        ("DROP TABLE tmp", QueryType.COMMAND),
    ],
)
def test_classify_query(template: str, expected: QueryType) -> None:
    assert classify_query(template) is expected


@pytest.mark.parametrize("template", ["select 1", " SELECT 1", "GRANT ALL ON *.* TO 'x'", "SHOW TABLES", "SETTINGS", ""])
def test_classify_query_rejects_unknown_tokens(template: str) -> None:
    with pytest.raises(InvalidQueryTypeError) as exc_info:
        classify_query(template)

    assert exc_info.value.query_type == template[:6]


def test_invalid_query_type_message_names_token() -> None:
    with pytest.raises(InvalidQueryTypeError, match='not "GRANT "'):
        classify_query("GRANT SELECT ON db.* TO 'app'")


def test_get_query_type_token() -> None:
    assert get_query_type_token("REPLACE INTO t") == "REPLAC"
    assert get_query_type_token("SET") == "SET"


def test_uses_found_rows_requires_hint_right_after_select() -> None:
    assert uses_found_rows("SELECT SQL_CALC_FOUND_ROWS id FROM t LIMIT 10")
    assert not uses_found_rows("SELECT  SQL_CALC_FOUND_ROWS id FROM t")
    assert not uses_found_rows("SELECT id FROM t")


def test_query_result_counts_rows() -> None:
    rows = [{"id": 1}, {"id": 2}]
    result = QueryResult(rows)

    assert result.num == 2
    assert result.total_rows == 2
    assert result.rows is rows


def test_query_result_total_rows_override() -> None:
    result = QueryResult([{"id": 1}], total_rows=40)

    assert result.num == 1
    assert result.total_rows == 40


def test_query_result_is_a_mapping() -> None:
    result = QueryResult([{"id": 1}])

    assert result["num"] == 1
    assert result["rows"] == [{"id": 1}]
    assert dict(result) == {"num": 1, "rows": [{"id": 1}], "total_rows": 1}
    assert result == {"num": 1, "rows": [{"id": 1}], "total_rows": 1}
    with pytest.raises(KeyError):
        result["missing"]


def test_query_result_helpers() -> None:
    result = QueryResult([{"total": 9, "other": 1}, {"total": 3, "other": 2}])

    assert result.get_first() == {"total": 9, "other": 1}
    assert result.scalar_or_none() == 9
    assert result.as_dict()["num"] == 2


def test_empty_query_result_helpers() -> None:
    result = QueryResult([])

    assert result.num == 0
    assert result.rows == []
    assert result.get_first() is None
    assert result.scalar_or_none() is None


def test_ensure_query_result() -> None:
    result = QueryResult([])

    assert ensure_query_result(result, "q") is result
    with pytest.raises(ResultShapeError):
        ensure_query_result(3, "rename_user")
    with pytest.raises(ResultShapeError):
        ensure_query_result(True, "lock_users")
