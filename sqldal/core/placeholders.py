"""Placeholder grammar and parameter binders.

Templates carry typed, sprintf-like placeholders:

- ``%s``: string
- ``%d``: integer
- ``%f``: float
- ``%a``: array (emulated binding only)
- ``%b``: blob (reserved, not supported)

``%%`` is a literal percent sign and is never a placeholder. Any other
character following ``%`` is literal text.

Two binders are built on top of one scanner (:func:`parse_template`):

- :func:`bind_query_params` substitutes escaped literals and returns plain SQL.
- :func:`compile_statement` rewrites placeholders to the driver's positional
  marker and derives the params mask in the same pass, so statement text and
  mask can never disagree.
"""

import math
import re
from collections.abc import Iterable, Sequence
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, Final, NamedTuple

from mypy_extensions import mypyc_attr

from sqldal.exceptions import ExtraParameterError, MissingParameterError, ParameterError, UnsupportedPlaceholderError

__all__ = (
    "CompiledStatement",
    "ParsedTemplate",
    "Placeholder",
    "PlaceholderType",
    "bind_query_params",
    "coerce_float",
    "coerce_int",
    "coerce_parameters",
    "compile_statement",
    "convert_array_to_sql_list",
    "convert_to_statement_format",
    "escape_string",
    "get_params_mask",
    "parse_template",
)

_PLACEHOLDER_REGEX: Final = re.compile(r"%(?P<tag>[%asdfb])")
_INT_PREFIX_REGEX: Final = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX_REGEX: Final = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_ESCAPE_TABLE: Final = str.maketrans({
    "\\": "\\\\",
    "\0": "\\0",
    "\n": "\\n",
    "\r": "\\r",
    "\x1a": "\\Z",
    "'": "\\'",
    '"': '\\"',
})

NULL_LITERAL: Final = "NULL"
DEFAULT_MARKER: Final = "?"


class PlaceholderType(str, Enum):
    """Placeholder tags understood by the binders."""

    ARRAY = "a"
    BLOB = "b"
    FLOAT = "f"
    INTEGER = "d"
    STRING = "s"


_MASK_TAGS: Final = {PlaceholderType.INTEGER: "i", PlaceholderType.FLOAT: "d", PlaceholderType.STRING: "s"}


@mypyc_attr(allow_interpreted_subclasses=False)
class Placeholder:
    """One placeholder occurrence in a template.

    Attributes:
        type: Placeholder tag.
        index: Zero-based occurrence order, which is also the parameter position.
        position: Character offset of the ``%`` in the template.
    """

    __slots__ = ("index", "position", "type")

    def __init__(self, placeholder_type: PlaceholderType, index: int, position: int) -> None:
        self.type = placeholder_type
        self.index = index
        self.position = position

    def __repr__(self) -> str:
        return f"Placeholder(%{self.type.value}, index={self.index}, position={self.position})"


@mypyc_attr(allow_interpreted_subclasses=False)
class ParsedTemplate:
    """A template split into literal segments around its placeholders.

    ``segments`` always has exactly one more element than ``placeholders``;
    placeholder ``n`` sits between ``segments[n]`` and ``segments[n + 1]``.
    Escaped ``%%`` pairs are already resolved to ``%`` inside the segments.
    """

    __slots__ = ("placeholders", "segments", "template")

    def __init__(self, template: str, segments: "tuple[str, ...]", placeholders: "tuple[Placeholder, ...]") -> None:
        self.template = template
        self.segments = segments
        self.placeholders = placeholders

    def __len__(self) -> int:
        return len(self.placeholders)


class CompiledStatement(NamedTuple):
    """Driver-ready statement text and its params mask."""

    sql: str
    params_mask: str

    @property
    def parameter_count(self) -> int:
        return len(self.params_mask)


@lru_cache(maxsize=4096)
def parse_template(template: str) -> ParsedTemplate:
    """Scan a template left to right.

    Args:
        template: SQL template using the placeholder grammar.

    Returns:
        The parsed template.
    """
    segments: list[str] = []
    placeholders: list[Placeholder] = []
    current: list[str] = []
    last_end = 0
    for match in _PLACEHOLDER_REGEX.finditer(template):
        current.append(template[last_end : match.start()])
        last_end = match.end()
        tag = match.group("tag")
        if tag == "%":
            current.append("%")
            continue
        segments.append("".join(current))
        current = []
        placeholders.append(Placeholder(PlaceholderType(tag), len(placeholders), match.start()))
    current.append(template[last_end:])
    segments.append("".join(current))
    return ParsedTemplate(template, tuple(segments), tuple(placeholders))


def escape_string(value: str) -> str:
    """Escape a string for use inside a quoted MySQL literal.

    Backslash, NUL, newline, carriage return, SUB (0x1A) and both quote
    characters are replaced in a single pass.
    """
    return value.translate(_ESCAPE_TABLE)


def coerce_int(value: Any) -> int:
    """Convert a value to an integer without failing.

    Floats and decimals truncate toward zero, non-finite values become ``0``
    and strings contribute their leading integer prefix (``"12abc"`` is ``12``,
    ``"abc"`` is ``0``).
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, Decimal):
        return int(value) if value.is_finite() else 0
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        value = str(value)
    match = _INT_PREFIX_REGEX.match(value)
    return int(match.group()) if match else 0


def coerce_float(value: Any) -> float:
    """Convert a value to a float without failing.

    Strings contribute their leading numeric prefix; anything unparsable is ``0.0``.
    """
    if isinstance(value, (bool, int, float, Decimal)):
        return float(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        value = str(value)
    match = _FLOAT_PREFIX_REGEX.match(value)
    return float(match.group()) if match else 0.0


def _ensure_finite(value: float, template: "str | None" = None) -> float:
    if not math.isfinite(value):
        msg = f"Cannot bind non-finite float {value!r}"
        raise ParameterError(msg, template)
    return value


def _format_float(value: float, template: "str | None" = None) -> str:
    return repr(_ensure_finite(value, template))


def _to_text(value: Any, template: "str | None" = None) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = "Binary values must be valid UTF-8 to be bound as strings"
            raise ParameterError(msg, template) from exc
    return str(value)


def _render_number(value: "int | float | Decimal") -> str:
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, Decimal) and not value.is_finite():
        msg = f"Cannot render non-finite decimal {value!r} as a SQL literal"
        raise ParameterError(msg)
    return str(value)


def convert_array_to_sql_list(items: "Iterable[Any]") -> str:
    """Render a list of values as a SQL list.

    Text is double-quoted and escaped, ``None`` becomes ``NULL`` and numbers
    render verbatim. Nested lists render as their own parenthesized groups and,
    when present, the outer parentheses are dropped, so a list of rows renders
    as ``(1,2),(3,4)`` for multi-row ``VALUES`` clauses.

    Example:
        >>> convert_array_to_sql_list([1, "a", None])
        '(1,"a",NULL)'
        >>> convert_array_to_sql_list([[1, 2], [3, 4]])
        '(1,2),(3,4)'
    """
    rendered: list[str] = []
    inner_arrays = False
    for item in items:
        if isinstance(item, (list, tuple)):
            inner_arrays = True
            rendered.append(convert_array_to_sql_list(item))
        elif item is None:
            rendered.append(NULL_LITERAL)
        elif isinstance(item, bool):
            rendered.append("1" if item else "0")
        elif isinstance(item, (int, float, Decimal)):
            rendered.append(_render_number(item))
        else:
            rendered.append(f'"{escape_string(_to_text(item))}"')
    sql_list = ",".join(rendered)
    if inner_arrays:
        return sql_list
    return f"({sql_list})"


def _render_literal(placeholder: Placeholder, value: Any, template: str) -> str:
    placeholder_type = placeholder.type
    if placeholder_type is PlaceholderType.BLOB:
        msg = "Placeholder %b is reserved and not supported"
        raise UnsupportedPlaceholderError(msg, template)
    if value is None:
        return NULL_LITERAL
    if placeholder_type is PlaceholderType.STRING:
        return f"'{escape_string(_to_text(value, template))}'"
    if placeholder_type is PlaceholderType.INTEGER:
        return str(coerce_int(value))
    if placeholder_type is PlaceholderType.FLOAT:
        return _format_float(coerce_float(value), template)
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        msg = f"Placeholder %a at parameter {placeholder.index} expects a list or tuple, got {type(value).__name__}"
        raise ParameterError(msg, template)
    return convert_array_to_sql_list(value)


def _check_arity(expected: int, parameters: "Sequence[Any]", template: "str | None") -> None:
    given = len(parameters)
    if given < expected:
        msg = f"Expected {expected} parameters but only {given} were given"
        raise MissingParameterError(msg, template)
    if given > expected:
        msg = f"Expected {expected} parameters but {given} were given"
        raise ExtraParameterError(msg, template)


def bind_query_params(template: str, parameters: "Sequence[Any]") -> str:
    """Substitute parameters into a template, producing literal SQL.

    Placeholders are paired with ``parameters`` by position, left to right.

    Args:
        template: SQL template using the placeholder grammar.
        parameters: Values, one per placeholder.

    Raises:
        MissingParameterError: Fewer parameters than placeholders.
        ExtraParameterError: More parameters than placeholders.
        UnsupportedPlaceholderError: The template uses ``%b``.

    Returns:
        The fully substituted SQL.
    """
    parsed = parse_template(template)
    _check_arity(len(parsed.placeholders), parameters, template)
    parts = [parsed.segments[0]]
    for placeholder, value, segment in zip(parsed.placeholders, parameters, parsed.segments[1:]):
        parts.append(_render_literal(placeholder, value, template))
        parts.append(segment)
    return "".join(parts)


@lru_cache(maxsize=4096)
def compile_statement(template: str, marker: str = DEFAULT_MARKER) -> CompiledStatement:
    """Rewrite a template into prepared-statement form.

    Args:
        template: SQL template using the placeholder grammar.
        marker: The driver's positional parameter marker.

    Raises:
        UnsupportedPlaceholderError: The template uses ``%a`` or ``%b``.

    Returns:
        Statement text with positional markers plus the params mask.
    """
    parsed = parse_template(template)
    parts = [parsed.segments[0]]
    mask: list[str] = []
    for placeholder, segment in zip(parsed.placeholders, parsed.segments[1:]):
        tag = _MASK_TAGS.get(placeholder.type)
        if tag is None:
            msg = f"Placeholder %{placeholder.type.value} is not supported in prepared statements"
            raise UnsupportedPlaceholderError(msg, template)
        mask.append(tag)
        parts.append(marker)
        parts.append(segment)
    return CompiledStatement("".join(parts), "".join(mask))


def convert_to_statement_format(template: str, marker: str = DEFAULT_MARKER) -> str:
    """Return the template rewritten with positional markers."""
    return compile_statement(template, marker).sql


def get_params_mask(template: str) -> str:
    """Return the params mask (``i``/``d``/``s`` per placeholder) of a template."""
    return compile_statement(template).params_mask


def coerce_parameters(params_mask: str, parameters: "Sequence[Any]", template: "str | None" = None) -> "list[Any]":
    """Convert values to the Python types a params mask promises.

    ``None`` is passed through so the driver binds SQL ``NULL``.
    """
    _check_arity(len(params_mask), parameters, template)
    coerced: list[Any] = []
    for tag, value in zip(params_mask, parameters):
        if value is None:
            coerced.append(None)
        elif tag == "i":
            coerced.append(coerce_int(value))
        elif tag == "d":
            coerced.append(_ensure_finite(coerce_float(value), template))
        else:
            coerced.append(_to_text(value, template))
    return coerced
