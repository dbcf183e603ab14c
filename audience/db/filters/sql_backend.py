#!/usr/bin/env python3
"""
Relational backend for boolean audience expressions.
Converts expression trees to parameterized SQL WHERE clauses.
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from .base import Condition, FilterBackend, Group, Node, Operator
from .registry import FIELD_REGISTRY, FieldRegistry
from ...log_manager import get_logger


TRUE_LITERAL = "TRUE"
FALSE_LITERAL = "FALSE"


class RelationalQuery(NamedTuple):
    """Compiled WHERE clause (without the WHERE keyword) and its bound values."""
    where_clause: str
    parameters: List[Any]


class _Bindings:
    """Parameter list for a single convert() call."""

    def __init__(self, paramstyle: str):
        self.paramstyle = paramstyle
        self.values: List[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        if self.paramstyle == "numeric":
            return f"${len(self.values)}"
        return "?"


class _Degraded(Exception):
    """Internal signal: the condition cannot be lowered and becomes TRUE."""
    pass


class RelationalFilterBackend(FilterBackend):
    """
    Converts expression trees to SQL WHERE clauses.

    The backend is fail-open: a condition on an unknown field, with an
    operator it cannot lower, or with a malformed value becomes the TRUE
    literal with no parameters. Run the validator first when the input is
    untrusted.
    """

    SUPPORTED_OPERATORS = {
        Operator.EQ, Operator.NEQ,
        Operator.GT, Operator.GTE, Operator.LT, Operator.LTE,
        Operator.BETWEEN,
        Operator.IN, Operator.NIN,
        Operator.CONTAINS, Operator.ICONTAINS,
        Operator.STARTS_WITH, Operator.ENDS_WITH,
        Operator.EXISTS, Operator.NOT_EXISTS,
        Operator.IS_TRUE, Operator.IS_FALSE,
        Operator.WITHIN_RADIUS,
    }

    COMPARISONS = {
        Operator.EQ: "=",
        Operator.NEQ: "!=",
        Operator.GT: ">",
        Operator.GTE: ">=",
        Operator.LT: "<",
        Operator.LTE: "<=",
    }

    # Operator -> (prefix, suffix) wrapped around the value for LIKE patterns
    PATTERNS = {
        Operator.CONTAINS: ("%", "%"),
        Operator.ICONTAINS: ("%", "%"),
        Operator.STARTS_WITH: ("", "%"),
        Operator.ENDS_WITH: ("%", ""),
    }

    def __init__(self,
                 registry: Optional[FieldRegistry] = None,
                 paramstyle: str = "qmark",
                 like_operator: str = "ILIKE",
                 quote_identifiers: bool = False):
        """
        Initialize relational backend.

        Args:
            registry: Field registry supplying relational mappers
                (default: the process-wide registry)
            paramstyle: 'qmark' for ? placeholders, 'numeric' for $1, $2, ...
            like_operator: Keyword used for pattern matches (ILIKE for
                Postgres, LIKE for SQLite)
            quote_identifiers: Double-quote column names in the output
        """
        if paramstyle not in ("qmark", "numeric"):
            raise ValueError(f"Unsupported paramstyle: {paramstyle!r}")
        self.registry = registry if registry is not None else FIELD_REGISTRY
        self.paramstyle = paramstyle
        self.like_operator = like_operator
        self.quote_identifiers = quote_identifiers
        self.logger = get_logger('RelationalFilterBackend', component='filters')

        self._lowerings: Dict[Operator, Callable[[str, Any, _Bindings], str]] = {
            Operator.BETWEEN: self._build_between,
            Operator.IN: lambda f, v, b: self._build_in(f, v, b, negate=False),
            Operator.NIN: lambda f, v, b: self._build_in(f, v, b, negate=True),
            Operator.EXISTS: lambda f, v, b: f"{f} IS NOT NULL",
            Operator.NOT_EXISTS: lambda f, v, b: f"{f} IS NULL",
            Operator.IS_TRUE: lambda f, v, b: f"{f} = true",
            Operator.IS_FALSE: lambda f, v, b: f"{f} = false",
            Operator.WITHIN_RADIUS: self._build_within_radius,
        }

    def convert(self, expression: Group) -> RelationalQuery:
        """
        Convert an expression tree to a WHERE clause.

        Args:
            expression: Root group

        Returns:
            RelationalQuery(where_clause, parameters); placeholders appear in
            the clause in the same order as the parameters
        """
        bindings = _Bindings(self.paramstyle)
        sql = self._convert_node(expression, bindings)
        return RelationalQuery(sql, bindings.values)

    def supports_operator(self, operator: Operator) -> bool:
        """Check if the relational backend can lower an operator."""
        return operator in self.SUPPORTED_OPERATORS

    def _convert_node(self, node: Node, bindings: _Bindings) -> str:
        if isinstance(node, Condition):
            return self._convert_condition(node, bindings)
        return self._convert_group(node, bindings)

    def _convert_group(self, group: Group, bindings: _Bindings) -> str:
        if group.is_empty():
            joined = TRUE_LITERAL
        else:
            keyword = f" {group.connective.value} "
            joined = keyword.join(
                f"({self._convert_node(child, bindings)})" for child in group.children
            )
        if group.negated:
            return f"NOT ({joined})"
        return joined

    def _convert_condition(self, condition: Condition, bindings: _Bindings) -> str:
        """Convert a single condition, degrading to TRUE when it cannot be lowered."""
        definition = self.registry.lookup(condition.field)
        if definition is None:
            self.logger.warning(f"Unknown field {condition.field!r}, condition ignored")
            return TRUE_LITERAL

        op = Operator.from_string(condition.operator)
        if op is None or not self.supports_operator(op):
            self.logger.warning(
                f"Operator {condition.operator!r} on {condition.field} not supported "
                f"by relational backend, condition ignored"
            )
            return TRUE_LITERAL

        # Build into a scratch list so a degraded condition binds nothing
        scratch = _Bindings(bindings.paramstyle)
        scratch.values = list(bindings.values)
        try:
            clause = self._lower(op, self._column(definition.relational_mapper),
                                 condition.value, scratch)
        except _Degraded as e:
            self.logger.warning(f"Malformed value for {condition.field} {condition.operator}: {e}")
            return TRUE_LITERAL

        bindings.values = scratch.values
        if condition.negated:
            return f"NOT ({clause})"
        return clause

    def _lower(self, op: Operator, column: str, value: Any, bindings: _Bindings) -> str:
        if op in self.COMPARISONS:
            return f"{column} {self.COMPARISONS[op]} {bindings.bind(value)}"
        if op in self.PATTERNS:
            prefix, suffix = self.PATTERNS[op]
            return f"{column} {self.like_operator} {bindings.bind(f'{prefix}{value}{suffix}')}"
        return self._lowerings[op](column, value, bindings)

    def _column(self, mapper: str) -> str:
        if self.quote_identifiers:
            escaped = mapper.replace('"', '""')
            return f'"{escaped}"'
        return mapper

    def _build_between(self, column: str, value: Any, bindings: _Bindings) -> str:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise _Degraded(f"between expects [min, max], got {value!r}")
        low = bindings.bind(value[0])
        high = bindings.bind(value[1])
        return f"{column} BETWEEN {low} AND {high}"

    def _build_in(self, column: str, value: Any, bindings: _Bindings, negate: bool) -> str:
        if not isinstance(value, (list, tuple)):
            # Scalar membership is plain (in)equality
            return f"{column} {'!=' if negate else '='} {bindings.bind(value)}"
        if not value:
            return TRUE_LITERAL if negate else FALSE_LITERAL
        placeholders = ", ".join(bindings.bind(item) for item in value)
        keyword = "NOT IN" if negate else "IN"
        return f"{column} {keyword} ({placeholders})"

    def _build_within_radius(self, column: str, value: Any, bindings: _Bindings) -> str:
        if not isinstance(value, Mapping) or not all(
                k in value for k in ("lat", "lng", "radiusKm")):
            raise _Degraded(f"withinRadius expects {{lat, lng, radiusKm}}, got {value!r}")
        lat = bindings.bind(value["lat"])
        lng = bindings.bind(value["lng"])
        radius = bindings.bind(value["radiusKm"])
        return f"earth_distance(ll_to_earth({lat}, {lng}), {column}) <= {radius} * 1000"


def compile_relational(expression: Group, registry: Optional[FieldRegistry] = None,
                       paramstyle: str = "qmark") -> RelationalQuery:
    """Compile an expression to a WHERE clause and ordered parameters."""
    return RelationalFilterBackend(registry=registry, paramstyle=paramstyle).convert(expression)
