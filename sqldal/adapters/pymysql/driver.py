"""PyMySQL driver implementation.

PyMySQL has no binary-protocol support, so prepared statements are emulated
with MySQL's SQL-level interface: the statement is compiled once with
``PREPARE``, each execution binds user variables with ``SET`` and runs
``EXECUTE ... USING``, and ``DEALLOCATE PREPARE`` releases it. The statement
text is sent as a bound string, so the server parses it exactly once.
"""

import itertools
from typing import TYPE_CHECKING, Any, Final, Optional

import pymysql
import pymysql.err
from pymysql.cursors import DictCursor

from sqldal.driver.protocols import DriverError
from sqldal.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pymysql.connections import Connection

logger = get_logger("adapters.pymysql")

__all__ = (
    "PyMysqlConnection",
    "PyMysqlCursor",
    "PyMysqlDriver",
    "PyMysqlExceptionHandler",
    "PyMysqlStatement",
)

DEFAULT_CHARSET: Final = "utf8mb4"
STATEMENT_NAME_PREFIX: Final = "sqldal_stmt_"


class _ErrorState:
    """Error number and text of the last operation, 0 and empty after success."""

    __slots__ = ()

    error_code: int
    error_message: str


class PyMysqlCursor:
    """Context manager for PyMySQL cursor operations."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection: "Connection[Any]") -> None:
        self.connection = connection
        self.cursor: Optional[DictCursor] = None

    def __enter__(self) -> DictCursor:
        self.cursor = self.connection.cursor(DictCursor)
        return self.cursor

    def __exit__(self, *_: Any) -> None:
        if self.cursor is not None:
            self.cursor.close()


class PyMysqlExceptionHandler:
    """Context manager translating PyMySQL errors into :class:`DriverError`.

    The error number and text are also left on ``owner`` so the executor can
    inspect them after the call.
    """

    __slots__ = ("owner",)

    def __init__(self, owner: _ErrorState) -> None:
        self.owner = owner

    def __enter__(self) -> None:
        self.owner.error_code = 0
        self.owner.error_message = ""

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None or not issubclass(exc_type, pymysql.err.Error):
            return
        code, message = _split_mysql_error(exc_val)
        self.owner.error_code = code
        self.owner.error_message = message
        raise DriverError(message, code) from exc_val


def _split_mysql_error(error: "pymysql.err.Error") -> "tuple[int, str]":
    """Return ``(errno, message)``; PyMySQL stores them as the first two args."""
    args = error.args
    if len(args) >= 2 and isinstance(args[0], int):
        return args[0], str(args[1])
    return 0, str(error) or type(error).__name__


class PyMysqlStatement(_ErrorState):
    """A statement prepared with ``PREPARE ... FROM``."""

    __slots__ = (
        "_connection",
        "_parameters",
        "_rows",
        "affected_rows",
        "error_code",
        "error_message",
        "insert_id",
        "name",
    )

    def __init__(self, connection: "PyMysqlConnection", name: str) -> None:
        self._connection = connection
        self._parameters: list[Any] = []
        self._rows: list[dict[str, Any]] = []
        self.name = name
        self.affected_rows = 0
        self.insert_id = 0
        self.error_code = 0
        self.error_message = ""

    def __repr__(self) -> str:
        return f"PyMysqlStatement(name={self.name!r})"

    def bind(self, params_mask: str, parameters: "Sequence[Any]") -> None:
        """Store the values bound by the next :meth:`execute`.

        The mask is informational here; values already carry the Python type
        the mask promises and PyMySQL escapes them accordingly.
        """
        if len(params_mask) != len(parameters):
            msg = f"Statement {self.name} expects {len(params_mask)} parameters, got {len(parameters)}"
            raise DriverError(msg)
        self._parameters = list(parameters)

    def execute(self) -> None:
        variables = [f"@{self.name}_p{index}" for index in range(len(self._parameters))]
        execute_sql = f"EXECUTE {self.name}"
        if variables:
            execute_sql = f"{execute_sql} USING {', '.join(variables)}"
        with PyMysqlExceptionHandler(self), PyMysqlCursor(self._connection.raw_connection) as cursor:
            for variable, value in zip(variables, self._parameters):
                cursor.execute(f"SET {variable} = %s", (value,))
            cursor.execute(execute_sql)
            self._rows = list(cursor.fetchall()) if cursor.description else []
            self.affected_rows = max(cursor.rowcount, 0)
            self.insert_id = cursor.lastrowid or 0
        self._connection.statements_executed += 1

    def fetch_rows(self) -> "list[dict[str, Any]]":
        return self._rows

    def free_result(self) -> None:
        self._rows = []

    def close(self) -> None:
        """Deallocate the statement on the server."""
        with PyMysqlExceptionHandler(self), PyMysqlCursor(self._connection.raw_connection) as cursor:
            cursor.execute(f"DEALLOCATE PREPARE {self.name}")
        self._rows = []
        self._connection.statements_prepared -= 1


class PyMysqlConnection(_ErrorState):
    """A PyMySQL session."""

    __slots__ = (
        "_names",
        "affected_rows",
        "error_code",
        "error_message",
        "insert_id",
        "queries_run",
        "raw_connection",
        "statements_executed",
        "statements_prepared",
    )

    def __init__(self, raw_connection: "Connection[Any]") -> None:
        self.raw_connection = raw_connection
        self._names = itertools.count(1)
        self.affected_rows = 0
        self.insert_id = 0
        self.error_code = 0
        self.error_message = ""
        self.queries_run = 0
        self.statements_executed = 0
        self.statements_prepared = 0

    def prepare(self, sql: str) -> PyMysqlStatement:
        """Compile ``sql`` on the server under a connection-unique name."""
        name = f"{STATEMENT_NAME_PREFIX}{next(self._names)}"
        with PyMysqlExceptionHandler(self), PyMysqlCursor(self.raw_connection) as cursor:
            cursor.execute(f"PREPARE {name} FROM %s", (sql,))
        self.statements_prepared += 1
        logger.debug("Prepared %s: %s", name, sql)
        return PyMysqlStatement(self, name)

    def query(self, sql: str) -> "Optional[list[dict[str, Any]]]":
        """Run literal SQL.

        The text is sent as-is; PyMySQL only interpolates when arguments are
        given, so ``%`` characters reach the server untouched.
        """
        with PyMysqlExceptionHandler(self), PyMysqlCursor(self.raw_connection) as cursor:
            cursor.execute(sql)
            rows = list(cursor.fetchall()) if cursor.description else None
            self.affected_rows = max(cursor.rowcount, 0)
            self.insert_id = cursor.lastrowid or 0
        self.queries_run += 1
        return rows

    def set_autocommit(self, enabled: bool) -> None:
        with PyMysqlExceptionHandler(self):
            self.raw_connection.autocommit(enabled)

    def commit(self) -> None:
        with PyMysqlExceptionHandler(self):
            self.raw_connection.commit()

    def rollback(self) -> None:
        with PyMysqlExceptionHandler(self):
            self.raw_connection.rollback()

    def get_stats(self) -> "dict[str, Any]":
        raw = self.raw_connection
        return {
            "host": raw.host,
            "port": raw.port,
            "database": raw.db.decode() if isinstance(raw.db, bytes) else raw.db,
            "server_version": raw.get_server_info() if raw.open else None,
            "open": raw.open,
            "queries_run": self.queries_run,
            "statements_executed": self.statements_executed,
            "statements_prepared": self.statements_prepared,
        }

    def close(self) -> None:
        if not self.raw_connection.open:
            return
        with PyMysqlExceptionHandler(self):
            self.raw_connection.close()


class PyMysqlDriver:
    """Opens :class:`PyMysqlConnection` objects.

    Connections start in autocommit mode and return rows as dictionaries with
    integer and float columns converted to native Python numbers.
    """

    __slots__ = ("charset", "connect_kwargs")

    def __init__(self, *, charset: str = DEFAULT_CHARSET, **connect_kwargs: Any) -> None:
        """Initialize the driver.

        Args:
            charset: Connection character set.
            **connect_kwargs: Extra keyword arguments for :func:`pymysql.connect`
                (``ssl``, ``unix_socket``, ``init_command`` ...).
        """
        self.charset = charset
        self.connect_kwargs = connect_kwargs

    def connect(
        self, *, host: str, user: str, password: str, database: str, port: int, connect_timeout: float
    ) -> PyMysqlConnection:
        """Open a connection.

        Raises:
            DriverError: PyMySQL could not connect.
        """
        try:
            raw_connection = pymysql.connect(
                host=host,
                user=user,
                password=password,
                database=database,
                port=port,
                connect_timeout=connect_timeout,
                charset=self.charset,
                cursorclass=DictCursor,
                autocommit=True,
                **self.connect_kwargs,
            )
        except pymysql.err.Error as e:
            code, message = _split_mysql_error(e)
            raise DriverError(message, code) from e
        return PyMysqlConnection(raw_connection)
