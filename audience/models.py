"""
Data models for stored audience filters and compiled query artifacts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .db.filters.base import Group, InvalidFilterError, expression_from_dict, to_dict


class FilterMode(Enum):
    """Which editor produced the stored filters."""
    SIMPLE = "simple"
    BOOLEAN = "boolean"


@dataclass
class AudienceFilters:
    """
    The stored filter envelope of an audience.

    Stored shape:
        {"mode": "simple" | "boolean",
         "simple": {...},
         "boolean": {"expression": {...}}}

    Both representations are kept; `mode` says which one is authoritative.
    """
    mode: FilterMode = FilterMode.SIMPLE
    simple: Dict[str, Any] = field(default_factory=dict)
    expression: Optional[Group] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], max_depth: int = 10,
                  registry=None) -> 'AudienceFilters':
        """
        Load the stored envelope.

        Raises:
            InvalidFilterError: On an unknown mode or a malformed expression
        """
        data = data or {}
        raw_mode = data.get("mode", FilterMode.SIMPLE.value)
        try:
            mode = FilterMode(raw_mode)
        except ValueError:
            raise InvalidFilterError(f"Unknown filter mode: {raw_mode!r}") from None

        boolean = data.get("boolean") or {}
        raw_expression = boolean.get("expression") if isinstance(boolean, dict) else None
        expression = None
        if raw_expression is not None:
            expression = expression_from_dict(raw_expression, max_depth=max_depth,
                                              registry=registry)

        return cls(mode=mode, simple=dict(data.get("simple") or {}), expression=expression)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"mode": self.mode.value, "simple": self.simple}
        if self.expression is not None:
            data["boolean"] = {"expression": to_dict(self.expression)}
        return data


@dataclass
class CompiledQueries:
    """Output of both compilers for one expression."""
    where_clause: str
    parameters: List[Any]
    search_filter: str

    def to_dict(self) -> Dict[str, Any]:
        """Stored form, saved alongside the filters as `_booleanQueries`."""
        return {
            "pgWhere": self.where_clause,
            "pgParams": list(self.parameters),
            "typesenseFilter": self.search_filter,
        }
