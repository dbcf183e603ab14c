#!/usr/bin/env python3
"""
Pre-flight validation for boolean audience expressions.
Checks every condition against the field registry before compilation.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .base import Condition, Group, Path, iter_conditions
from .registry import FIELD_REGISTRY, FieldDefinition, FieldRegistry, ValueType


UNKNOWN_FIELD = "unknown_field"
OPERATOR_NOT_PERMITTED = "operator_not_permitted"
INVALID_VALUE = "invalid_value"


@dataclass(frozen=True)
class Violation:
    """
    One structural defect in an expression.

    Attributes:
        code: unknown_field, operator_not_permitted or invalid_value
        field: Field key of the offending condition
        operator: Operator of the offending condition
        path: Child indices from the root to the condition
        message: Human-readable description
    """
    code: str
    field: str
    operator: str
    path: Path
    message: str


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def parse_iso_date(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or date-time string.

    Aware values are normalised to naive UTC so ranges compare cleanly.

    Returns:
        datetime, or None when the value is not an ISO-8601 string
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _check_geo_point(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    lat, lng = value.get("lat"), value.get("lng")
    return (_is_number(lat) and -90 <= lat <= 90
            and _is_number(lng) and -180 <= lng <= 180)


def _check_geo_radius(value: Any) -> bool:
    if not _check_geo_point(value):
        return False
    radius = value.get("radiusKm")
    return _is_number(radius) and radius > 0


def _check_number_range(value: Any) -> bool:
    return (_is_sequence(value) and len(value) == 2
            and _is_number(value[0]) and _is_number(value[1])
            and value[0] <= value[1])


def _check_date_range(value: Any) -> bool:
    if not _is_sequence(value) or len(value) != 2:
        return False
    start, end = parse_iso_date(value[0]), parse_iso_date(value[1])
    return start is not None and end is not None and start <= end


def _check_enum(value: Any, definition: FieldDefinition) -> bool:
    return isinstance(value, str) and value in (definition.enum_values or ())


def _check_enum_list(value: Any, definition: FieldDefinition) -> bool:
    return (_is_sequence(value) and len(value) > 0
            and all(_check_enum(item, definition) for item in value))


_VALUE_CHECKS: Dict[ValueType, Callable[[Any, FieldDefinition], bool]] = {
    ValueType.STRING: lambda v, d: isinstance(v, str),
    ValueType.STRING_LIST: lambda v, d: (
        _is_sequence(v) and len(v) > 0 and all(isinstance(i, str) for i in v)
    ),
    ValueType.NUMBER: lambda v, d: _is_number(v),
    ValueType.NUMBER_LIST: lambda v, d: (
        _is_sequence(v) and len(v) > 0 and all(_is_number(i) for i in v)
    ),
    ValueType.NUMBER_RANGE: lambda v, d: _check_number_range(v),
    ValueType.ENUM: _check_enum,
    ValueType.ENUM_LIST: _check_enum_list,
    ValueType.BOOLEAN: lambda v, d: isinstance(v, bool),
    ValueType.DATE: lambda v, d: parse_iso_date(v) is not None,
    ValueType.DATE_RANGE: lambda v, d: _check_date_range(v),
    ValueType.GEO_POINT: lambda v, d: _check_geo_point(v),
    ValueType.GEO_RADIUS: lambda v, d: _check_geo_radius(v),
}


_RANGE_OF = {
    ValueType.NUMBER: ValueType.NUMBER_RANGE,
    ValueType.DATE: ValueType.DATE_RANGE,
}
_BOUND_OF = {range_type: scalar for scalar, range_type in _RANGE_OF.items()}

# Operators that bind exactly one value
_SCALAR_OPERATORS = frozenset({"eq", "neq", "gt", "gte", "lt", "lte"})


def expected_value_type(definition: FieldDefinition, operator: Optional[str] = None) -> ValueType:
    """
    The value shape a condition must carry.

    between takes a pair of the field's scalar type and single-value
    comparisons on range fields take one bound. Every other operator
    takes the field's own value type.
    """
    if operator == "between":
        return _RANGE_OF.get(definition.value_type, definition.value_type)
    if operator in _SCALAR_OPERATORS:
        return _BOUND_OF.get(definition.value_type, definition.value_type)
    return definition.value_type


def is_valid_value(value: Any, definition: FieldDefinition,
                   operator: Optional[str] = None) -> bool:
    """Check a raw value against the shape the field and operator expect."""
    check = _VALUE_CHECKS.get(expected_value_type(definition, operator))
    return check is not None and check(value, definition)


class FilterValidator:
    """
    Validates expression trees against a field registry.

    Validation never raises for defects in the tree; it collects them.
    Callers must refuse to compile or execute an expression with a
    non-empty violation list.
    """

    def __init__(self, registry: Optional[FieldRegistry] = None):
        """
        Initialize validator.

        Args:
            registry: Field registry to validate against (default: the
                process-wide registry)
        """
        self.registry = registry if registry is not None else FIELD_REGISTRY

    def validate(self, expression: Group) -> List[Violation]:
        """
        Validate every condition in the tree.

        Args:
            expression: Root group

        Returns:
            List of violations, empty when the expression is valid
        """
        violations: List[Violation] = []
        for path, condition in iter_conditions(expression):
            violations.extend(self.validate_condition(condition, path))
        return violations

    def validate_condition(self, condition: Condition, path: Path = ()) -> List[Violation]:
        """Validate a single condition."""
        definition = self.registry.lookup(condition.field)
        if definition is None:
            return [Violation(
                UNKNOWN_FIELD, condition.field, condition.operator, path,
                f"unknown field: {condition.field}"
            )]

        violations = []
        if condition.operator not in definition.allowed_operators:
            violations.append(Violation(
                OPERATOR_NOT_PERMITTED, condition.field, condition.operator, path,
                f"operator not permitted for field {condition.field}: {condition.operator!r} "
                f"(allowed: {', '.join(definition.allowed_operators)})"
            ))

        if not is_valid_value(condition.value, definition, condition.operator):
            expected = expected_value_type(definition, condition.operator)
            violations.append(Violation(
                INVALID_VALUE, condition.field, condition.operator, path,
                f"invalid value for field {condition.field}: expected "
                f"{expected.value}, got {condition.value!r}"
            ))

        return violations

    def is_valid(self, expression: Group) -> bool:
        return not self.validate(expression)


def validate(expression: Group, registry: Optional[FieldRegistry] = None) -> List[Violation]:
    """Validate an expression against the registry."""
    return FilterValidator(registry).validate(expression)
