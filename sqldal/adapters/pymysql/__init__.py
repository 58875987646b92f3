from sqldal.adapters.pymysql.driver import (
    PyMysqlConnection,
    PyMysqlCursor,
    PyMysqlDriver,
    PyMysqlExceptionHandler,
    PyMysqlStatement,
)

__all__ = ("PyMysqlConnection", "PyMysqlCursor", "PyMysqlDriver", "PyMysqlExceptionHandler", "PyMysqlStatement")
