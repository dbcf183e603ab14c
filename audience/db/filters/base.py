#!/usr/bin/env python3
"""
Boolean audience expression model.

An expression is a tree of Groups (AND/OR connective, optional negation,
ordered children) whose leaves are Conditions (field, operator, value,
optional negation). The root is always a Group. Nodes are immutable;
edits build new trees (see editing.py).
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple, Union


class Operator(Enum):
    """Operator ids understood by the registry and the compilers."""
    # Comparison
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"

    # List membership
    IN = "in"
    NIN = "nin"

    # Text
    CONTAINS = "contains"
    ICONTAINS = "icontains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"

    # Existence
    EXISTS = "exists"
    NOT_EXISTS = "notExists"

    # Full-text / intent
    MATCH = "match"
    MATCH_ANY = "matchAny"

    # Geo
    WITHIN_RADIUS = "withinRadius"

    # Toggles
    IS_TRUE = "isTrue"
    IS_FALSE = "isFalse"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string is a valid operator."""
        return value in {op.value for op in cls}

    @classmethod
    def from_string(cls, value: Any) -> Optional['Operator']:
        """Convert string to operator."""
        for op in cls:
            if op.value == value:
                return op
        return None


class Connective(Enum):
    """Boolean connective of a Group."""
    AND = "AND"
    OR = "OR"

    @classmethod
    def from_string(cls, value: Any) -> Optional['Connective']:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.upper())
            except ValueError:
                return None
        return None


@dataclass(frozen=True)
class Condition:
    """
    Leaf filter test.

    `operator` is kept as a plain string and `value` is untyped: expressions
    persisted before a registry change must still load, and value legality
    is the validator's job.
    """
    field: str
    operator: str
    value: Any = None
    category: str = ""
    negated: bool = False

    kind = "condition"

    def __repr__(self):
        neg = "NOT " if self.negated else ""
        return f"{neg}{self.field} {self.operator} {self.value!r}"


@dataclass(frozen=True)
class Group:
    """
    Internal node combining children with AND/OR.
    An empty Group matches everything and is the default expression.
    """
    connective: Connective = Connective.AND
    children: Tuple[Union['Group', Condition], ...] = dataclass_field(default_factory=tuple)
    negated: bool = False

    kind = "group"

    def __post_init__(self):
        if not isinstance(self.connective, Connective):
            connective = Connective.from_string(self.connective)
            if connective is None:
                raise InvalidFilterError(f"Unknown connective: {self.connective!r}")
            object.__setattr__(self, "connective", connective)
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))

    def is_empty(self) -> bool:
        return not self.children

    def __repr__(self):
        neg = "NOT " if self.negated else ""
        return f"{neg}{self.connective.value}{list(self.children)}"


Node = Union[Group, Condition]
Expression = Group
Path = Tuple[int, ...]


def default_expression() -> Group:
    """The canonical empty AND group used as the default/reset state."""
    return Group(Connective.AND, ())


def iter_conditions(node: Node, path: Path = ()) -> Iterator[Tuple[Path, Condition]]:
    """Yield (path, condition) for every condition, depth-first in child order."""
    if isinstance(node, Condition):
        yield path, node
        return
    for index, child in enumerate(node.children):
        yield from iter_conditions(child, path + (index,))


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def to_dict(node: Node) -> Dict[str, Any]:
    """Serialize a node to the stored JSON shape."""
    if isinstance(node, Condition):
        data = {
            "kind": "condition",
            "category": node.category,
            "field": node.field,
            "op": node.operator,
            "value": node.value,
        }
        if node.negated:
            data["not"] = True
        return data

    data = {
        "kind": "group",
        "op": node.connective.value,
        "children": [to_dict(child) for child in node.children],
    }
    if node.negated:
        data["not"] = True
    return data


def to_json(node: Node, **kwargs) -> str:
    """Serialize a node to a JSON string."""
    return json.dumps(to_dict(node), **kwargs)


class ExpressionParser:
    """
    Parses stored JSON-shaped dictionaries into an expression tree.

    Accepts the stored keys (`op`, `not`) as well as the long-form aliases
    (`operator`/`connective`, `negated`).
    """

    def __init__(self, max_depth: int = 10, registry=None):
        """
        Initialize the parser.

        Args:
            max_depth: Maximum group nesting depth to prevent DoS attacks
            registry: Optional FieldRegistry used to fill missing categories
        """
        self.max_depth = max_depth
        self.registry = registry

    def parse(self, data: Any) -> Group:
        """
        Parse a serialized expression.

        Args:
            data: Dict in the stored JSON shape; None or {} yields the
                default expression

        Returns:
            Root Group

        Raises:
            InvalidFilterError: If the structure is malformed or too deeply nested
        """
        if data is None or data == {}:
            return default_expression()

        node = self._parse_node(data, depth=1)
        if not isinstance(node, Group):
            raise InvalidFilterError("Expression root must be a group")
        return node

    def _parse_node(self, data: Any, depth: int) -> Node:
        if not isinstance(data, dict):
            raise InvalidFilterError(f"Expected dict, got {type(data).__name__}")

        kind = data.get("kind")
        if kind == "group":
            return self._parse_group(data, depth)
        if kind == "condition":
            return self._parse_condition(data)
        raise InvalidFilterError(f"Unknown node kind: {kind!r}")

    def _parse_group(self, data: Dict[str, Any], depth: int) -> Group:
        if depth > self.max_depth:
            raise InvalidFilterError(f"Expression nesting exceeds maximum depth of {self.max_depth}")

        raw_connective = data.get("op", data.get("connective", "AND"))
        connective = Connective.from_string(raw_connective)
        if connective is None:
            raise InvalidFilterError(f"Unknown connective: {raw_connective!r}")

        children = data.get("children", [])
        if not isinstance(children, list):
            raise InvalidFilterError("Group children must be a list")

        return Group(
            connective=connective,
            children=tuple(self._parse_node(child, depth + 1) for child in children),
            negated=bool(data.get("not", data.get("negated", False))),
        )

    def _parse_condition(self, data: Dict[str, Any]) -> Condition:
        field_key = data.get("field")
        if not isinstance(field_key, str):
            raise InvalidFilterError("Condition field must be a string")

        operator = data.get("op", data.get("operator"))
        if not isinstance(operator, str):
            raise InvalidFilterError(f"Condition operator for {field_key} must be a string")

        category = data.get("category") or ""
        if not category and self.registry is not None:
            definition = self.registry.lookup(field_key)
            if definition is not None:
                category = definition.category.value

        return Condition(
            field=field_key,
            operator=operator,
            value=data.get("value"),
            category=category,
            negated=bool(data.get("not", data.get("negated", False))),
        )


def expression_from_dict(data: Any, max_depth: int = 10, registry=None) -> Group:
    """Parse a stored expression dict."""
    return ExpressionParser(max_depth=max_depth, registry=registry).parse(data)


def expression_from_json(text: str, max_depth: int = 10, registry=None) -> Group:
    """Parse a stored expression JSON string."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidFilterError(f"Expression is not valid JSON: {e}") from e
    return expression_from_dict(data, max_depth=max_depth, registry=registry)


class FilterBackend(ABC):
    """
    Abstract base class for filter backends.
    Each query language implements this to lower expression trees into
    its native format.
    """

    @abstractmethod
    def convert(self, expression: Group) -> Any:
        """
        Convert an expression tree to the backend's native format.

        Args:
            expression: The root group

        Returns:
            Backend-specific query object
        """
        pass

    @abstractmethod
    def supports_operator(self, operator: Operator) -> bool:
        """
        Check if this backend can lower a specific operator.

        Args:
            operator: The operator to check

        Returns:
            True if supported, False otherwise
        """
        pass


class FilterError(Exception):
    """Base exception for filter-related errors."""
    pass


class InvalidFilterError(FilterError):
    """Raised when a serialized expression or an edit path is malformed."""
    pass


class RegistryError(FilterError):
    """Raised when a field registry breaks its invariants."""
    pass
