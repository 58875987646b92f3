"""In-memory driver used by the unit tests.

Responses and failures are keyed by the exact SQL text the driver receives:
the ``?``-marker statement for prepared statements and the fully bound SQL for
emulated and raw queries.
"""

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from sqldal.base import DAL
from sqldal.config import DALConfig
from sqldal.driver.protocols import DriverError
from sqldal.loader import QueryCatalog

QUERIES = {
    "get_user": "SELECT id, name FROM users WHERE id = %d",
    "list_users_page": "SELECT SQL_CALC_FOUND_ROWS id FROM users LIMIT %d",
    "count_users": "SELECT COUNT(*) AS total FROM users",
    "add_user": "INSERT INTO users (name, score) VALUES (%s, %f)",
    "rename_user": "UPDATE users SET name = %s WHERE id = %d",
    "users_in": "SELECT id FROM users WHERE id IN %a",
    "grant_all": "GRANT ALL ON app.* TO 'reporting'",
    "lock_users": "LOCK TABLES users WRITE",
    "discount": "UPDATE products SET price = price * 0.9 WHERE name LIKE '50%%' AND id = %d",
}


@dataclass
class FakeResponse:
    rows: Optional[list[dict[str, Any]]] = None
    affected_rows: int = 0
    insert_id: int = 0


@dataclass
class FakeServer:
    """State shared by every connection a :class:`FakeDriver` opens."""

    responses: dict[str, FakeResponse] = field(default_factory=dict)
    failures: dict[str, DriverError] = field(default_factory=dict)
    prepare_failures: dict[str, DriverError] = field(default_factory=dict)
    post_errors: dict[str, tuple[int, str]] = field(default_factory=dict)
    commit_error: Optional[DriverError] = None
    autocommit_errors: dict[bool, DriverError] = field(default_factory=dict)
    prepare_delay: float = 0.0

    def add_response(
        self, sql: str, rows: Optional[list[dict[str, Any]]] = None, affected_rows: int = 0, insert_id: int = 0
    ) -> None:
        self.responses[sql] = FakeResponse(rows, affected_rows, insert_id)

    def respond(self, sql: str) -> FakeResponse:
        if sql in self.failures:
            raise self.failures[sql]
        return self.responses.get(sql, FakeResponse())


class FakeStatement:
    def __init__(self, connection: "FakeConnection", sql: str) -> None:
        self.connection = connection
        self.sql = sql
        self.bound: Optional[tuple[str, list[Any]]] = None
        self.executions = 0
        self.freed = 0
        self.closed = False
        self.affected_rows = 0
        self.insert_id = 0
        self.error_code = 0
        self.error_message = ""
        self._rows: list[dict[str, Any]] = []

    def bind(self, params_mask: str, parameters: "Sequence[Any]") -> None:
        self.bound = (params_mask, list(parameters))

    def execute(self) -> None:
        self.connection.assert_exclusive()
        response = self.connection.server.respond(self.sql)
        self.executions += 1
        self._rows = list(response.rows or [])
        self.affected_rows = response.affected_rows
        self.insert_id = response.insert_id
        self.error_code, self.error_message = self.connection.server.post_errors.get(self.sql, (0, ""))

    def fetch_rows(self) -> list[dict[str, Any]]:
        return self._rows

    def free_result(self) -> None:
        self.freed += 1
        self._rows = []

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, server: FakeServer, **connect_kwargs: Any) -> None:
        self.server = server
        self.connect_kwargs = connect_kwargs
        self.prepared: list[FakeStatement] = []
        self.queries: list[str] = []
        self.autocommit_calls: list[bool] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.affected_rows = 0
        self.insert_id = 0
        self.error_code = 0
        self.error_message = ""
        self._busy = threading.Lock()

    def assert_exclusive(self) -> None:
        if not self._busy.acquire(blocking=False):
            msg = "connection used by two threads at once"
            raise AssertionError(msg)
        time.sleep(0)
        self._busy.release()

    def prepare(self, sql: str) -> FakeStatement:
        if self.server.prepare_delay:
            time.sleep(self.server.prepare_delay)
        if sql in self.server.prepare_failures:
            raise self.server.prepare_failures[sql]
        statement = FakeStatement(self, sql)
        self.prepared.append(statement)
        return statement

    def query(self, sql: str) -> Optional[list[dict[str, Any]]]:
        self.assert_exclusive()
        self.queries.append(sql)
        response = self.server.respond(sql)
        self.affected_rows = response.affected_rows
        self.insert_id = response.insert_id
        self.error_code, self.error_message = self.server.post_errors.get(sql, (0, ""))
        return None if response.rows is None else list(response.rows)

    def set_autocommit(self, enabled: bool) -> None:
        if enabled in self.server.autocommit_errors:
            raise self.server.autocommit_errors[enabled]
        self.autocommit_calls.append(enabled)

    def commit(self) -> None:
        if self.server.commit_error is not None:
            raise self.server.commit_error
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def get_stats(self) -> dict[str, Any]:
        return {"queries": len(self.queries), "prepared": len(self.prepared)}

    def close(self) -> None:
        self.closed = True


class FakeDriver:
    def __init__(self, server: Optional[FakeServer] = None, connect_delay: float = 0.0) -> None:
        self.server = server or FakeServer()
        self.connect_delay = connect_delay
        self.connect_error: Optional[DriverError] = None
        self.connections: list[FakeConnection] = []
        self._lock = threading.Lock()

    def connect(
        self, *, host: str, user: str, password: str, database: str, port: int, connect_timeout: float
    ) -> FakeConnection:
        if self.connect_delay:
            time.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        connection = FakeConnection(
            self.server,
            host=host,
            user=user,
            password=password,
            database=database,
            port=port,
            connect_timeout=connect_timeout,
        )
        with self._lock:
            self.connections.append(connection)
        return connection


@pytest.fixture
def dal_config() -> DALConfig:
    return DALConfig.from_mapping({
        "user": "app",
        "password": "secret",
        "connect_timeout": 3,
        "clusters": {
            "main": {"host": "db1.internal", "db_name": "main"},
            "stats": {"host": "db2.internal", "db_name": "stats", "port": 3307},
        },
    })


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def fake_driver(fake_server: FakeServer) -> FakeDriver:
    return FakeDriver(fake_server)


@pytest.fixture
def catalog() -> QueryCatalog:
    return QueryCatalog(QUERIES)


@pytest.fixture
def dal(dal_config: DALConfig, fake_driver: FakeDriver, catalog: QueryCatalog) -> DAL:
    return DAL(dal_config, fake_driver, catalog)
