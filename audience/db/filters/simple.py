#!/usr/bin/env python3
"""
Simple-mode to boolean-mode adapter.

Simple mode is the flat filter form: named sections (business profile,
segment, financial, personal, family, housing, location, contact) whose
leaves are lists, strings, {min, max} ranges or toggles. The adapter turns
every populated leaf into one condition under a single top-level AND group.
There is no inverse.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .base import Condition, Connective, Group
from .registry import FIELD_REGISTRY, FieldRegistry
from ...log_manager import get_logger


logger = get_logger('SimpleAdapter', component='filters')

VALUE = "value"
RANGE = "range"
TOGGLE = "toggle"

BUSINESS_PROFILE = ("audience", "businessProfile")


@dataclass(frozen=True)
class SimpleFieldMapping:
    """
    How one simple-mode leaf becomes a condition.

    Attributes:
        path: Keys from the simple object root to the leaf
        field: Registry field key
        kind: 'value' (leaf is the value), 'range' ({min, max} to between)
            or 'toggle' (truthiness picks isTrue/isFalse)
        operator: Operator for 'value' leaves
        ceiling: Upper bound used when a range has no max
    """
    path: Tuple[str, ...]
    field: str
    kind: str = VALUE
    operator: str = "in"
    ceiling: Optional[float] = None


def _bp(name: str) -> Tuple[str, ...]:
    return BUSINESS_PROFILE + (name,)


# Order here is the order of the emitted conditions
SIMPLE_FIELD_MAPPINGS: Tuple[SimpleFieldMapping, ...] = (
    # Business profile, only read when audience.b2b is set
    SimpleFieldMapping(_bp("companyName"), "business.company_name", operator="contains"),
    SimpleFieldMapping(_bp("jobTitle"), "business.job_title", operator="contains"),
    SimpleFieldMapping(_bp("seniority"), "business.seniority"),
    SimpleFieldMapping(_bp("department"), "business.department"),
    SimpleFieldMapping(_bp("employeeCount"), "business.employee_count", RANGE, ceiling=1_000_000),
    SimpleFieldMapping(_bp("revenue"), "business.revenue", RANGE, ceiling=1_000_000_000),
    SimpleFieldMapping(_bp("industry"), "business.industry"),

    # Intent and date
    SimpleFieldMapping(("segment",), "intent.topics", operator="matchAny"),
    SimpleFieldMapping(("daysBack",), "date.days_back", operator="eq"),

    # Financial
    SimpleFieldMapping(("financial", "estimatedIncome"), "financial.estimated_income",
                       RANGE, ceiling=1_000_000),
    SimpleFieldMapping(("financial", "creditScore"), "financial.credit_score",
                       RANGE, ceiling=850),
    SimpleFieldMapping(("financial", "investmentAssets"), "financial.investment_assets",
                       RANGE, ceiling=100_000_000),

    # Personal
    SimpleFieldMapping(("personal", "age"), "personal.age", RANGE, ceiling=120),
    SimpleFieldMapping(("personal", "gender"), "personal.gender"),
    SimpleFieldMapping(("personal", "education"), "personal.education"),
    SimpleFieldMapping(("personal", "maritalStatus"), "personal.marital_status"),

    # Family
    SimpleFieldMapping(("family", "childrenCount"), "family.children_count", RANGE, ceiling=20),
    SimpleFieldMapping(("family", "householdSize"), "family.household_size", RANGE, ceiling=20),
    SimpleFieldMapping(("family", "hasChildren"), "family.has_children", TOGGLE),

    # Housing
    SimpleFieldMapping(("housing", "ownershipStatus"), "housing.ownership_status"),
    SimpleFieldMapping(("housing", "propertyType"), "housing.property_type"),
    SimpleFieldMapping(("housing", "homeValue"), "housing.home_value",
                       RANGE, ceiling=100_000_000),

    # Location
    SimpleFieldMapping(("location", "country"), "location.country"),
    SimpleFieldMapping(("location", "region"), "location.region"),
    SimpleFieldMapping(("location", "city"), "location.city"),
    SimpleFieldMapping(("location", "zipCode"), "location.zip_code"),

    # Contact toggles
    SimpleFieldMapping(("contact", "hasEmail"), "contact.has_email", TOGGLE),
    SimpleFieldMapping(("contact", "hasPhone"), "contact.has_phone", TOGGLE),
    SimpleFieldMapping(("contact", "hasLinkedin"), "contact.has_linkedin", TOGGLE),
    SimpleFieldMapping(("contact", "hasFacebook"), "contact.has_facebook", TOGGLE),
    SimpleFieldMapping(("contact", "hasTwitter"), "contact.has_twitter", TOGGLE),
)


def _lookup(simple: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    node: Any = simple
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, (list, tuple)) and len(value) == 0


def _range_value(raw: Any, ceiling: float) -> Optional[List[Any]]:
    if not isinstance(raw, dict):
        return None
    low, high = raw.get("min"), raw.get("max")
    if low is None and high is None:
        return None
    return [low if low is not None else 0, high if high is not None else ceiling]


def _build_condition(mapping: SimpleFieldMapping, raw: Any, category: str) -> Optional[Condition]:
    if mapping.kind == RANGE:
        value = _range_value(raw, mapping.ceiling)
        if value is None:
            logger.debug(f"Simple field {'.'.join(mapping.path)} has no min/max bounds "
                         f"({raw!r}), skipped")
            return None
        return Condition(mapping.field, "between", value, category)

    if mapping.kind == TOGGLE:
        return Condition(mapping.field, "isTrue" if raw else "isFalse", True, category)

    value = list(raw) if isinstance(raw, tuple) else raw
    return Condition(mapping.field, mapping.operator, value, category)


def simple_to_boolean(simple: Optional[Dict[str, Any]],
                      registry: Optional[FieldRegistry] = None) -> Group:
    """
    Convert a simple-mode filter object to a boolean expression.

    Args:
        simple: Simple-mode filters (sparse; any section may be missing)
        registry: Field registry (default: the process-wide registry)

    Returns:
        Top-level AND group with one condition per populated leaf, in
        SIMPLE_FIELD_MAPPINGS order

    Example:
        >>> simple_to_boolean({"contact": {"hasEmail": True}})
        AND[contact.has_email isTrue True]
    """
    registry = registry if registry is not None else FIELD_REGISTRY
    simple = simple or {}
    b2b = bool(_lookup(simple, ("audience", "b2b")))

    children: List[Condition] = []
    for mapping in SIMPLE_FIELD_MAPPINGS:
        if mapping.path[:2] == BUSINESS_PROFILE and not b2b:
            continue

        raw = _lookup(simple, mapping.path)
        if _is_empty(raw):
            continue

        definition = registry.lookup(mapping.field)
        if definition is None:
            logger.debug(f"Simple field {'.'.join(mapping.path)} maps to unregistered "
                         f"{mapping.field}, skipped")
            continue

        condition = _build_condition(mapping, raw, definition.category.value)
        if condition is not None:
            children.append(condition)

    return Group(Connective.AND, tuple(children))


to_boolean_expression = simple_to_boolean
