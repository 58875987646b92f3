"""Unit tests for the query catalog."""

from pathlib import Path

import pytest

from sqldal.exceptions import QueryNotFoundError, SQLFileNotFoundError, SQLFileParseError
from sqldal.loader import NamedStatement, QueryCatalog, SQLFile

USERS_SQL = """
-- name: get_user
-- Fetch one user by id.
SELECT id, name FROM users WHERE id = %d;

-- name: rename-user!
UPDATE users
SET name = %s
WHERE id = %d
"""


@pytest.fixture
def sql_dir(tmp_path: Path) -> Path:
    (tmp_path / "users.sql").write_text(USERS_SQL, encoding="utf-8")
    reports = tmp_path / "reports"
    reports.mkdir()
    (reports / "daily.sql").write_text("-- name: totals\nSELECT COUNT(*) FROM orders\n", encoding="utf-8")
    return tmp_path


def test_named_statement_slots() -> None:
    statement = NamedStatement("q", "SELECT 1")

    assert statement.source == "<directly added>"
    assert statement.start_line == 0
    with pytest.raises(AttributeError):
        statement.arbitrary_attr = "value"  # type: ignore[attr-defined]


def test_sqlfile_checksum_depends_on_content_only() -> None:
    file1 = SQLFile(content="SELECT 1", path="a.sql")
    file2 = SQLFile(content="SELECT 1", path="b.sql")
    file3 = SQLFile(content="SELECT 2", path="a.sql")

    assert file1.checksum == file2.checksum
    assert file1.checksum != file3.checksum
    assert file1.loaded_at


def test_catalog_from_mapping() -> None:
    catalog = QueryCatalog({"get_user": "  SELECT 1  "})

    assert catalog.get_sql("get_user") == "SELECT 1"
    assert catalog["get_user"] == "SELECT 1"
    assert "get_user" in catalog
    assert list(catalog) == ["get_user"]
    assert len(catalog) == 1


def test_add_query_rejects_duplicates() -> None:
    catalog = QueryCatalog()
    catalog.add_query("q", "SELECT 1")

    with pytest.raises(ValueError, match="already exists"):
        catalog.add_query("q", "SELECT 2")


def test_unknown_query_suggests_close_matches() -> None:
    catalog = QueryCatalog({"get_user": "SELECT 1", "get_users": "SELECT 2", "delete_order": "DELETE FROM o"})

    with pytest.raises(QueryNotFoundError) as exc_info:
        catalog.get_sql("get_usr")

    assert exc_info.value.name == "get_usr"
    assert "get_user" in exc_info.value.suggestions
    assert "delete_order" not in exc_info.value.suggestions
    assert "Did you mean" in str(exc_info.value)


def test_unknown_query_without_suggestions() -> None:
    with pytest.raises(QueryNotFoundError) as exc_info:
        QueryCatalog().get_sql("anything")

    assert exc_info.value.suggestions == []
    assert str(exc_info.value) == "Query 'anything' not found in the query catalog"


def test_load_sql_file(sql_dir: Path) -> None:
    catalog = QueryCatalog()

    catalog.load_sql(sql_dir / "users.sql")

    assert catalog.list_queries() == ["get_user", "rename_user"]
    assert catalog.get_sql("get_user") == "SELECT id, name FROM users WHERE id = %d"
    assert catalog.get_sql("rename_user") == "UPDATE users\nSET name = %s\nWHERE id = %d"
    assert catalog.has_query("rename-user")
    assert catalog.get_statement("get_user").source == str(sql_dir / "users.sql")
    assert catalog.list_files() == [str(sql_dir / "users.sql")]


def test_load_sql_directory_namespaces_subdirectories(sql_dir: Path) -> None:
    catalog = QueryCatalog()

    catalog.load_sql(sql_dir)

    assert catalog.list_queries() == ["get_user", "rename_user", "reports.totals"]
    assert catalog.get_sql("reports.totals") == "SELECT COUNT(*) FROM orders"


def test_load_sql_is_idempotent_per_file(sql_dir: Path) -> None:
    catalog = QueryCatalog()

    catalog.load_sql(sql_dir / "users.sql")
    catalog.load_sql(sql_dir / "users.sql")

    assert len(catalog) == 2


def test_load_sql_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SQLFileNotFoundError):
        QueryCatalog().load_sql(tmp_path / "missing.sql")


def test_load_sql_without_named_statements(tmp_path: Path) -> None:
    path = tmp_path / "plain.sql"
    path.write_text("SELECT 1;\n", encoding="utf-8")

    with pytest.raises(SQLFileParseError, match="No named SQL statements"):
        QueryCatalog().load_sql(path)


def test_load_sql_duplicate_names_in_file(tmp_path: Path) -> None:
    path = tmp_path / "dupes.sql"
    path.write_text("-- name: q\nSELECT 1\n-- name: q\nSELECT 2\n", encoding="utf-8")

    with pytest.raises(SQLFileParseError, match="Duplicate statement name"):
        QueryCatalog().load_sql(path)


def test_load_sql_conflict_with_existing_query_loads_nothing(sql_dir: Path) -> None:
    catalog = QueryCatalog({"rename_user": "UPDATE users SET name = %s"})

    with pytest.raises(SQLFileParseError, match="already exists"):
        catalog.load_sql(sql_dir / "users.sql")

    assert catalog.list_queries() == ["rename_user"]
    assert catalog.list_files() == []
