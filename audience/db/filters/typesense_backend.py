#!/usr/bin/env python3
"""
Typesense backend for boolean audience expressions.
Converts expression trees to Typesense `filter_by` strings.
"""

import re
from collections.abc import Mapping
from typing import Any, Optional

from .base import Condition, FilterBackend, Group, Node, Operator
from .registry import FIELD_REGISTRY, FieldRegistry
from ...log_manager import get_logger


MATCH_ALL = "(*:*)"

_NEEDS_QUOTING = re.compile(r"[\s,()\[\]&|:!=<>*`]")


def render_value(value: Any) -> str:
    """Render a scalar as a filter_by literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, str):
        if _NEEDS_QUOTING.search(value):
            escaped = value.replace("`", "\\`")
            return f"`{escaped}`"
        return value
    return str(value)


class SearchFilterBackend(FilterBackend):
    """
    Converts expression trees to Typesense filter strings.

    Conditions that have no search representation lower to the empty string
    and are dropped from their group, so a group with nothing left matches
    everything. Search-only and relational-only fields therefore narrow only
    their own backend.
    """

    SUPPORTED_OPERATORS = {op for op in Operator}

    COMPARISONS = {
        Operator.EQ: ":=",
        Operator.NEQ: ":!=",
        Operator.GT: ":>",
        Operator.GTE: ":>=",
        Operator.LT: ":<",
        Operator.LTE: ":<=",
    }

    def __init__(self, registry: Optional[FieldRegistry] = None):
        """
        Initialize search backend.

        Args:
            registry: Field registry supplying search mappers
                (default: the process-wide registry)
        """
        self.registry = registry if registry is not None else FIELD_REGISTRY
        self.logger = get_logger('SearchFilterBackend', component='filters')

    def convert(self, expression: Group) -> str:
        """
        Convert an expression tree to a filter_by string.

        Args:
            expression: Root group

        Returns:
            Filter string; "(*:*)" when nothing constrains the search
        """
        return self._convert_group(expression)

    def supports_operator(self, operator: Operator) -> bool:
        return operator in self.SUPPORTED_OPERATORS

    def _convert_node(self, node: Node) -> str:
        if isinstance(node, Condition):
            text = self._convert_condition(node)
            if text and node.negated:
                return f"!({text})"
            return text
        return self._convert_group(node)

    def _convert_group(self, group: Group) -> str:
        parts = [text for text in (self._convert_node(c) for c in group.children) if text]
        if not parts:
            return MATCH_ALL

        joiner = " && " if group.connective.value == "AND" else " || "
        if group.negated:
            if len(parts) == 1:
                return f"!({parts[0]})"
            return "!(" + joiner.join(f"({p})" for p in parts) + ")"
        return joiner.join(f"({p})" for p in parts)

    def _convert_condition(self, condition: Condition) -> str:
        """Lower one condition; the empty string means no constraint."""
        definition = self.registry.lookup(condition.field)
        if definition is None:
            self.logger.warning(f"Unknown field {condition.field!r}, condition ignored")
            return ""
        if not definition.search_mapper:
            # Not indexed for search; the relational side carries it
            return ""

        op = Operator.from_string(condition.operator)
        if op is None:
            self.logger.warning(
                f"Unknown operator {condition.operator!r} on {condition.field}, condition ignored"
            )
            return ""

        text = self._lower(op, definition.search_mapper, condition.value)
        if not text:
            self.logger.warning(
                f"Malformed value for {condition.field} {condition.operator}: "
                f"{condition.value!r}, condition ignored"
            )
        return text

    def _lower(self, op: Operator, field: str, value: Any) -> str:
        if op in self.COMPARISONS:
            return f"{field}{self.COMPARISONS[op]}{render_value(value)}"

        if op in (Operator.IN, Operator.NIN):
            if not isinstance(value, (list, tuple)):
                sign = ":=" if op == Operator.IN else ":!="
                return f"{field}{sign}{render_value(value)}"
            if not value:
                return ""
            items = ", ".join(render_value(v) for v in value)
            prefix = "!" if op == Operator.NIN else ""
            return f"{prefix}{field}:[{items}]"

        if op in (Operator.CONTAINS, Operator.ICONTAINS, Operator.MATCH):
            return f"{field}:{render_value(value)}"
        if op == Operator.STARTS_WITH:
            return f"{field}:{render_value(value)}*"
        if op == Operator.ENDS_WITH:
            return f"{field}:*{render_value(value)}"

        if op == Operator.BETWEEN:
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                return ""
            return f"{field}:[{render_value(value[0])}..{render_value(value[1])}]"

        if op == Operator.EXISTS:
            return f"{field}:!=''"
        if op == Operator.NOT_EXISTS:
            return f"{field}:=''"
        if op == Operator.IS_TRUE:
            return f"{field}:=true"
        if op == Operator.IS_FALSE:
            return f"{field}:=false"

        if op == Operator.MATCH_ANY:
            if isinstance(value, (list, tuple)):
                if not value:
                    return ""
                return f"{field}:" + " || ".join(render_value(v) for v in value)
            return f"{field}:{render_value(value)}"

        if op == Operator.WITHIN_RADIUS:
            if not isinstance(value, Mapping) or not all(
                    k in value for k in ("lat", "lng", "radiusKm")):
                return ""
            return (f"{field}:[{render_value(value['lat'])}, {render_value(value['lng'])}, "
                    f"{render_value(value['radiusKm'])} km]")

        return ""


def compile_search(expression: Group, registry: Optional[FieldRegistry] = None) -> str:
    """Compile an expression to a Typesense filter_by string."""
    return SearchFilterBackend(registry=registry).convert(expression)
