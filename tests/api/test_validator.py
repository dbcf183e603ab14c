#!/usr/bin/env python3
"""
Tests for expression validation against the field registry.
"""

import pytest

from audience.db.filters import (
    Condition, Connective, Group, FilterValidator, validate
)
from audience.db.filters.validator import (
    UNKNOWN_FIELD, OPERATOR_NOT_PERMITTED, INVALID_VALUE, parse_iso_date
)


def single(field, op, value, negated=False):
    return Group(Connective.AND, (Condition(field, op, value, negated=negated),))


VALID = [
    ("business.company_name", "contains", "Acme"),
    ("business.job_title", "eq", ""),
    ("location.city", "in", ["Austin", "Dallas"]),
    ("location.city", "nin", ("Austin",)),
    ("intent.score", "gte", 50),
    ("intent.score", "lte", 12.5),
    ("business.revenue", "between", [1_000_000, 5_000_000]),
    ("business.revenue", "between", [5, 5]),
    ("business.seniority", "in", ["cxo"]),
    ("location.region", "nin", ["TX", "CA"]),
    ("contact.has_email", "isTrue", True),
    ("contact.has_phone", "eq", False),
    ("date.event_date", "between", ["2024-01-01", "2024-12-31T23:59:59Z"]),
    ("date.event_date", "between", ["2024-06-01T12:00:00+02:00", "2024-06-01T11:00:00Z"]),
    ("location.geo_radius_km", "withinRadius", {"lat": 30.27, "lng": -97.74, "radiusKm": 25}),
    ("intent.topics", "matchAny", ["crm", "analytics"]),
    ("personal.age", "gte", 18),
    ("business.revenue", "lte", 5_000_000.5),
    ("date.event_date", "gte", "2024-01-01"),
    ("intent.score", "between", [10, 20]),
    ("date.days_back", "between", [7, 30]),
]

INVALID_VALUES = [
    ("business.company_name", "contains", 42),
    ("location.city", "in", []),
    ("location.city", "in", ["Austin", 3]),
    ("location.city", "in", "Austin"),
    ("intent.score", "gte", True),
    ("intent.score", "gte", float("nan")),
    ("intent.score", "gte", "50"),
    ("business.revenue", "between", [5_000_000, 1_000_000]),
    ("business.revenue", "between", [1, 2, 3]),
    ("business.revenue", "between", [1, None]),
    ("business.seniority", "in", []),
    ("business.seniority", "in", "cxo"),
    ("contact.has_email", "isTrue", "yes"),
    ("contact.has_email", "isTrue", 1),
    ("date.event_date", "between", ["2024-12-31", "2024-01-01"]),
    ("date.event_date", "between", ["yesterday", "2024-01-01"]),
    ("date.event_date", "between", "2024-01-01"),
    ("business.employee_count", "gte", [10, 20]),
    ("date.event_date", "lte", ["2024-01-01", "2024-12-31"]),
    ("date.event_date", "gte", "next week"),
    ("intent.score", "between", [20, 10]),
    ("intent.score", "between", 15),
    ("location.geo_radius_km", "withinRadius", {"lat": 91, "lng": 0, "radiusKm": 5}),
    ("location.geo_radius_km", "withinRadius", {"lat": 0, "lng": 181, "radiusKm": 5}),
    ("location.geo_radius_km", "withinRadius", {"lat": 0, "lng": 0, "radiusKm": 0}),
    ("location.geo_radius_km", "withinRadius", {"lat": 0, "lng": 0}),
    ("location.geo_radius_km", "withinRadius", [30.2, -97.7, 10]),
]


class TestValidator:
    """Test the validation table."""

    @pytest.mark.parametrize("field,op,value", VALID)
    def test_valid_conditions(self, field, op, value):
        assert validate(single(field, op, value)) == []

    @pytest.mark.parametrize("field,op,value", INVALID_VALUES)
    def test_invalid_values(self, field, op, value):
        violations = validate(single(field, op, value))
        assert [v.code for v in violations] == [INVALID_VALUE]
        assert violations[0].message.startswith(f"invalid value for field {field}")

    def test_empty_expression_is_valid(self):
        assert validate(Group()) == []

    def test_unknown_field_reports_once(self):
        """Unknown fields short-circuit operator and value checks."""
        violations = validate(single("business.shoe_size", "gte", "huge"))
        assert len(violations) == 1
        assert violations[0].code == UNKNOWN_FIELD
        assert violations[0].message == "unknown field: business.shoe_size"

    def test_operator_not_permitted(self):
        violations = validate(single("business.seniority", "contains", ["cxo"]))
        assert [v.code for v in violations] == [OPERATOR_NOT_PERMITTED]
        assert violations[0].message.startswith(
            "operator not permitted for field business.seniority"
        )

    def test_operator_and_value_both_reported(self):
        violations = validate(single("personal.age", "contains", "forty"))
        assert {v.code for v in violations} == {OPERATOR_NOT_PERMITTED, INVALID_VALUE}

    def test_unknown_operator(self):
        violations = validate(single("personal.age", "$gte", [18, 30]))
        assert [v.code for v in violations] == [OPERATOR_NOT_PERMITTED]

    def test_pair_with_single_bound_operator(self):
        """gte on a range field binds one bound, so a pair is rejected."""
        violations = validate(single("personal.age", "gte", [18, 30]))
        assert [v.code for v in violations] == [INVALID_VALUE]
        assert "expected number" in violations[0].message

    def test_between_on_scalar_field_expects_pair(self):
        violations = validate(single("date.days_back", "between", 7))
        assert [v.code for v in violations] == [INVALID_VALUE]
        assert "expected numberRange" in violations[0].message

    def test_negation_does_not_affect_validity(self):
        assert validate(single("contact.has_email", "isTrue", True, negated=True)) == []

    def test_paths_and_collection(self):
        """All violations in a tree are collected with their paths."""
        expr = Group(Connective.AND, (
            Condition("business.company_name", "contains", "Acme"),
            Group(Connective.OR, (
                Condition("made.up", "eq", 1),
                Condition("business.seniority", "in", ["cxo", "intern"]),
            ), negated=True),
        ))
        violations = FilterValidator().validate(expr)
        assert [(v.code, v.path) for v in violations] == [
            (UNKNOWN_FIELD, (1, 0)),
            (INVALID_VALUE, (1, 1)),
        ]
        assert violations[1].field == "business.seniority"
        assert violations[1].operator == "in"

    def test_enum_list_rejects_foreign_value(self):
        """A foreign enum member is rejected; a known one passes."""
        assert validate(single("business.seniority", "in", ["cxo", "intern"]))
        assert validate(single("business.seniority", "in", ["cxo"])) == []

    def test_is_valid(self):
        validator = FilterValidator()
        assert validator.is_valid(single("personal.age", "between", [18, 65]))
        assert not validator.is_valid(single("personal.age", "between", [65, 18]))

    def test_custom_registry(self, geo_registry):
        validator = FilterValidator(geo_registry)
        assert validator.is_valid(single("location.point", "withinRadius",
                                         {"lat": 1, "lng": 2, "radiusKm": 3}))
        assert not validator.is_valid(single("personal.age", "between", [18, 65]))


class TestDateParsing:
    """Test ISO-8601 parsing used by date checks."""

    def test_date_and_datetime(self):
        assert parse_iso_date("2024-03-01").year == 2024
        assert parse_iso_date("2024-03-01T10:30:00").hour == 10

    def test_zulu_normalised_to_utc(self):
        assert parse_iso_date("2024-03-01T10:00:00Z") == parse_iso_date("2024-03-01T12:00:00+02:00")
        assert parse_iso_date("2024-03-01T10:00:00Z").tzinfo is None

    @pytest.mark.parametrize("value", ["", "03/01/2024", None, 20240301, "2024-13-01"])
    def test_rejects(self, value):
        assert parse_iso_date(value) is None
