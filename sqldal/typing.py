from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Union

from typing_extensions import TypeAlias

__all__ = ("DictRow", "ParameterValue", "StatementParameters")


DictRow: TypeAlias = "dict[str, Any]"
"""A fetched row keyed by column name."""

ParameterValue: TypeAlias = Union[None, bool, int, float, Decimal, str, bytes, "Sequence[Any]"]
"""A value accepted by the placeholder binders."""

StatementParameters: TypeAlias = "Sequence[ParameterValue]"
"""Ordered parameters, paired positionally with a template's placeholders."""
