"""Named SQL templates.

The catalog maps query names to templates. Templates are added directly or
loaded from ``.sql`` files that declare each statement with an aiosql-style
header::

    -- name: get_user
    SELECT id, name FROM users WHERE id = %d

    -- name: rename-user
    UPDATE users SET name = %s WHERE id = %d

Hyphens in names are converted to underscores, so ``rename-user`` is looked
up as ``rename_user``.
"""

import hashlib
import re
import threading
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from difflib import get_close_matches
from pathlib import Path
from typing import Optional, Union

from sqldal.exceptions import QueryNotFoundError, SQLFileNotFoundError, SQLFileParseError
from sqldal.utils.logging import get_correlation_id, get_logger

__all__ = ("NamedStatement", "QueryCatalog", "SQLFile")

logger = get_logger("loader")

# Matches: -- name: query_name (supports hyphens and special suffixes)
QUERY_NAME_PATTERN = re.compile(r"^\s*--\s*name\s*:\s*([\w-]+[^\w\s]*)\s*$", re.MULTILINE | re.IGNORECASE)
TRIM_SPECIAL_CHARS = re.compile(r"[^\w-]")

DIRECT_SOURCE = "<directly added>"


def _normalize_query_name(name: str) -> str:
    """Strip aiosql suffixes (``!``, ``$`` ...) and replace hyphens with underscores."""
    return TRIM_SPECIAL_CHARS.sub("", name).replace("-", "_")


class NamedStatement:
    """A named template and where it came from."""

    __slots__ = ("name", "source", "sql", "start_line")

    def __init__(self, name: str, sql: str, source: str = DIRECT_SOURCE, start_line: int = 0) -> None:
        self.name = name
        self.sql = sql
        self.source = source
        self.start_line = start_line

    def __repr__(self) -> str:
        return f"NamedStatement(name={self.name!r}, source={self.source!r})"


@dataclass
class SQLFile:
    """A loaded SQL file."""

    content: str
    """The raw SQL content from the file."""

    path: str
    """Path where the SQL file was loaded from."""

    checksum: str = field(init=False)
    """MD5 checksum of the SQL content."""

    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """Timestamp when the file was loaded."""

    def __post_init__(self) -> None:
        self.checksum = hashlib.md5(self.content.encode(), usedforsecurity=False).hexdigest()


class QueryCatalog(Mapping[str, str]):
    """Query name to SQL template.

    Example:
        ```python
        catalog = QueryCatalog({"get_user": "SELECT * FROM users WHERE id = %d"})
        catalog.load_sql("queries/users.sql", "queries/reports")
        template = catalog.get_sql("get_user")
        ```
    """

    def __init__(self, queries: "Optional[Mapping[str, str]]" = None, *, encoding: str = "utf-8") -> None:
        """Initialize the catalog.

        Args:
            queries: Initial name to template mapping.
            encoding: Text encoding for reading SQL files.
        """
        self.encoding = encoding
        self._queries: dict[str, NamedStatement] = {}
        self._files: dict[str, SQLFile] = {}
        self._lock = threading.Lock()
        for name, sql in (queries or {}).items():
            self.add_query(name, sql)

    def __getitem__(self, name: str) -> str:
        return self.get_sql(name)

    def __iter__(self) -> "Iterator[str]":
        return iter(list(self._queries))

    def __len__(self) -> int:
        return len(self._queries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has_query(name)

    def add_query(self, name: str, sql: str) -> None:
        """Add a named template.

        Args:
            name: Query name.
            sql: SQL template.

        Raises:
            ValueError: The name is already taken.
        """
        safe_name = _normalize_query_name(name)
        with self._lock:
            self._register(NamedStatement(name=safe_name, sql=sql.strip()))

    def _register(self, statement: NamedStatement) -> None:
        existing = self._queries.get(statement.name)
        if existing is not None:
            msg = f"Query name '{statement.name}' already exists (source: {existing.source})"
            raise ValueError(msg)
        self._queries[statement.name] = statement

    def get_sql(self, name: str) -> str:
        """Return the template registered under ``name``.

        Raises:
            QueryNotFoundError: No query has that name.
        """
        statement = self._queries.get(_normalize_query_name(name))
        if statement is None:
            suggestions = get_close_matches(name, list(self._queries), n=3, cutoff=0.6)
            logger.error(
                "Query not found: %s",
                name,
                extra={"extra_fields": {"query_name": name, "available_queries": len(self._queries)}},
            )
            raise QueryNotFoundError(name, suggestions)
        return statement.sql

    def get_statement(self, name: str) -> NamedStatement:
        """Return the catalog entry for ``name``, including its source file."""
        self.get_sql(name)
        return self._queries[_normalize_query_name(name)]

    def has_query(self, name: str) -> bool:
        return _normalize_query_name(name) in self._queries

    def list_queries(self) -> "list[str]":
        """List all available query names.

        Returns:
            Sorted list of query names.
        """
        return sorted(self._queries)

    def list_files(self) -> "list[str]":
        return sorted(self._files)

    def get_file(self, path: Union[str, Path]) -> "Optional[SQLFile]":
        return self._files.get(str(path))

    def load_sql(self, *paths: Union[str, Path]) -> None:
        """Load SQL files and parse named queries.

        Directories are searched recursively for ``*.sql`` files; queries found
        in subdirectories are namespaced by the relative path
        (``reports/daily.sql`` yields ``reports.<name>``).

        Args:
            *paths: One or more file paths or directory paths to load.

        Raises:
            SQLFileNotFoundError: A path does not exist.
            SQLFileParseError: A file cannot be read, holds no named statements,
                or redefines an existing name.
        """
        start_time = time.perf_counter()
        query_count_before = len(self._queries)
        loaded_count = 0

        with self._lock:
            for path in paths:
                path_obj = Path(path)
                if path_obj.is_dir():
                    loaded_count += self._load_directory(path_obj)
                elif path_obj.exists():
                    self._load_single_file(path_obj, None)
                    loaded_count += 1
                else:
                    raise SQLFileNotFoundError(path_obj.name, str(path_obj))

        duration = time.perf_counter() - start_time
        new_queries = len(self._queries) - query_count_before
        logger.info(
            "Loaded %d SQL files with %d new queries in %.3fms",
            loaded_count,
            new_queries,
            duration * 1000,
            extra={
                "extra_fields": {
                    "files_loaded": loaded_count,
                    "new_queries": new_queries,
                    "duration_ms": duration * 1000,
                    "correlation_id": get_correlation_id(),
                }
            },
        )

    def _load_directory(self, dir_path: Path) -> int:
        sql_files = sorted(dir_path.rglob("*.sql"))
        for file_path in sql_files:
            namespace_parts = file_path.relative_to(dir_path).parent.parts
            self._load_single_file(file_path, ".".join(namespace_parts) or None)
        return len(sql_files)

    def _load_single_file(self, file_path: Path, namespace: "Optional[str]") -> None:
        path_str = str(file_path)
        if path_str in self._files:
            return

        try:
            content = file_path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise SQLFileParseError(file_path.name, path_str, e) from e

        statements = self._parse_sql_content(content, path_str)
        if namespace:
            for statement in statements.values():
                statement.name = f"{namespace}.{statement.name}"
        for statement in statements.values():
            existing = self._queries.get(statement.name)
            if existing is not None:
                error = ValueError(f"Query name '{statement.name}' already exists (source: {existing.source})")
                raise SQLFileParseError(file_path.name, path_str, error)
        for statement in statements.values():
            self._queries[statement.name] = statement
        self._files[path_str] = SQLFile(content=content, path=path_str)

    @staticmethod
    def _strip_leading_comments(sql_text: str) -> str:
        """Remove leading comment lines from a SQL string."""
        lines = sql_text.strip().split("\n")
        for i, line in enumerate(lines):
            if line.strip() and not line.strip().startswith("--"):
                return "\n".join(lines[i:]).strip()
        return ""

    @staticmethod
    def _parse_sql_content(content: str, file_path: str) -> "dict[str, NamedStatement]":
        """Parse SQL content and extract named statements.

        A single trailing semicolon is dropped from each statement because
        servers reject it inside a prepared statement.

        Args:
            content: Raw SQL file content to parse
            file_path: File path for error reporting

        Returns:
            Dictionary mapping normalized statement names to NamedStatement objects

        Raises:
            SQLFileParseError: If no named statements found or duplicate names exist
        """
        statements: dict[str, NamedStatement] = {}
        file_name = Path(file_path).name

        name_matches = list(QUERY_NAME_PATTERN.finditer(content))
        if not name_matches:
            raise SQLFileParseError(
                file_name, file_path, ValueError("No named SQL statements found (-- name: statement_name)")
            )

        for i, match in enumerate(name_matches):
            raw_statement_name = match.group(1).strip()
            start_pos = match.end()
            end_pos = name_matches[i + 1].start() if i + 1 < len(name_matches) else len(content)

            clean_sql = QueryCatalog._strip_leading_comments(content[start_pos:end_pos])
            if clean_sql.endswith(";"):
                clean_sql = clean_sql[:-1].rstrip()
            if not clean_sql:
                continue

            normalized_name = _normalize_query_name(raw_statement_name)
            if normalized_name in statements:
                raise SQLFileParseError(
                    file_name, file_path, ValueError(f"Duplicate statement name: {raw_statement_name}")
                )
            statements[normalized_name] = NamedStatement(
                name=normalized_name,
                sql=clean_sql,
                source=file_path,
                start_line=content[: match.start()].count("\n"),
            )

        if not statements:
            raise SQLFileParseError(file_name, file_path, ValueError("No valid SQL statements found after parsing"))

        return statements
