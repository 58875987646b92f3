"""sqldal core.

- placeholders.py: placeholder grammar, emulated binder and prepared-statement compiler
- result.py: query classification and result containers
- cache.py: create-once caches for connections and prepared statements
"""

from sqldal.core.cache import CacheKey, CacheStats, CachedStatement, KeyedCache, StatementCache
from sqldal.core.placeholders import (
    CompiledStatement,
    ParsedTemplate,
    Placeholder,
    PlaceholderType,
    bind_query_params,
    coerce_parameters,
    compile_statement,
    convert_array_to_sql_list,
    convert_to_statement_format,
    escape_string,
    get_params_mask,
    parse_template,
)
from sqldal.core.result import ExecutionResult, QueryResult, QueryType, classify_query

__all__ = (
    "CacheKey",
    "CacheStats",
    "CachedStatement",
    "CompiledStatement",
    "ExecutionResult",
    "KeyedCache",
    "ParsedTemplate",
    "Placeholder",
    "PlaceholderType",
    "QueryResult",
    "QueryType",
    "StatementCache",
    "bind_query_params",
    "classify_query",
    "coerce_parameters",
    "compile_statement",
    "convert_array_to_sql_list",
    "convert_to_statement_format",
    "escape_string",
    "get_params_mask",
    "parse_template",
)
