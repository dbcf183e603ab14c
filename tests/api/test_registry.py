#!/usr/bin/env python3
"""
Tests for the field registry.
"""

import dataclasses

import pytest

from audience.db.filters import (
    Category, FieldDefinition, FieldRegistry, FIELD_REGISTRY, Operator,
    RegistryError, ValueType, load_registry, get_field_by_key,
    get_fields_by_category, get_categories, get_operators_for_field,
    get_value_type_for_field, get_enum_values_for_field, is_b2b_field,
    get_field_kind
)


def make_field(key="test.field", value_type=ValueType.STRING, operators=("eq",),
               enum_values=None):
    return FieldDefinition(
        key=key,
        label=key,
        category=Category.BUSINESS,
        value_type=value_type,
        allowed_operators=tuple(operators),
        relational_mapper=key,
        enum_values=enum_values,
    )


class TestBundledRegistry:
    """Test the registry shipped in fields.yaml."""

    def test_every_field_has_known_operators(self, registry):
        """Every field lists at least one operator, all from the operator set."""
        assert len(registry) > 0
        for definition in registry:
            operators = registry.operators_for(definition.key)
            assert operators, definition.key
            assert all(Operator.is_valid(op) for op in operators), definition.key

    def test_enum_fields_declare_values(self, registry):
        """Enum fields carry their closed value set."""
        for definition in registry:
            if definition.value_type in (ValueType.ENUM, ValueType.ENUM_LIST):
                assert definition.enum_values

    def test_version(self, registry):
        assert registry.version == 3

    def test_lookup(self, registry):
        """Test looking up known and unknown fields."""
        field = registry.lookup("business.company_name")
        assert field.label == "Company Name"
        assert field.category == Category.BUSINESS
        assert field.value_type == ValueType.STRING
        assert field.relational_mapper == "business.company_name"
        assert field.search_mapper == "business.company_name"

        assert registry.lookup("business.nope") is None
        assert registry.lookup(None) is None

    def test_unknown_field_accessors_degrade(self, registry):
        assert registry.operators_for("nope") == ()
        assert registry.value_type_for("nope") is None
        assert registry.enum_values_for("nope") is None
        assert "nope" not in registry
        assert ["not", "hashable"] not in registry

    def test_search_mappers(self, registry):
        """Only the indexed fields have search mappers."""
        indexed = {f.key for f in registry if f.search_mapper}
        assert indexed == {
            "intent.topics", "intent.score",
            "business.company_name", "business.job_title",
        }

    def test_categories_in_order(self, registry):
        categories = registry.categories()
        assert categories[0] == Category.INTENT
        assert categories[-1] == Category.CONTACT
        assert len(categories) == len(set(categories))

    def test_fields_by_category(self, registry):
        """Test category filtering accepts enums and strings."""
        business = registry.fields_by_category(Category.BUSINESS)
        assert [f.key for f in business][:2] == ["business.seniority", "business.department"]
        assert registry.fields_by_category("business") == business
        assert registry.fields_by_category("astrology") == []

    def test_seniority_enum_values(self, registry):
        assert registry.enum_values_for("business.seniority") == (
            "cxo", "vp", "director", "manager", "staff"
        )

    def test_definitions_are_frozen(self, registry):
        field = registry.lookup("personal.age")
        with pytest.raises(dataclasses.FrozenInstanceError):
            field.label = "Years"


class TestRegistryInvariants:
    """Test invariants enforced when building a registry."""

    def test_duplicate_key(self):
        with pytest.raises(RegistryError, match="Duplicate"):
            FieldRegistry.from_definitions([make_field(), make_field()])

    def test_empty_operators(self):
        with pytest.raises(RegistryError, match="no allowed operators"):
            FieldRegistry.from_definitions([make_field(operators=())])

    def test_unknown_operator(self):
        with pytest.raises(RegistryError, match="unknown operators"):
            FieldRegistry.from_definitions([make_field(operators=("eq", "$regex"))])

    def test_repeated_operator(self):
        with pytest.raises(RegistryError, match="twice"):
            FieldRegistry.from_definitions([make_field(operators=("eq", "eq"))])

    def test_enum_without_values(self):
        with pytest.raises(RegistryError, match="enum_values"):
            FieldRegistry.from_definitions([
                make_field(value_type=ValueType.ENUM_LIST, operators=("in",))
            ])

    def test_values_on_non_enum(self):
        with pytest.raises(RegistryError, match="Non-enum"):
            FieldRegistry.from_definitions([make_field(enum_values=("a",))])


class TestLoadRegistry:
    """Test loading registries from YAML."""

    def test_load_custom_file(self, tmp_path):
        path = tmp_path / "fields.yaml"
        path.write_text(
            "version: 7\n"
            "fields:\n"
            "  - key: custom.flag\n"
            "    category: contact\n"
            "    value_type: boolean\n"
            "    operators: [isTrue, isFalse]\n"
        )
        registry = load_registry(path)
        assert registry.version == 7
        field = registry.lookup("custom.flag")
        assert field.label == "custom.flag"
        assert field.relational_mapper == "custom.flag"
        assert field.search_mapper is None

    def test_missing_fields_list(self, tmp_path):
        path = tmp_path / "fields.yaml"
        path.write_text("version: 1\n")
        with pytest.raises(RegistryError, match="no 'fields' list"):
            load_registry(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryError, match="Cannot load"):
            load_registry(tmp_path / "absent.yaml")

    def test_bad_entry(self, tmp_path):
        path = tmp_path / "fields.yaml"
        path.write_text(
            "fields:\n"
            "  - key: custom.thing\n"
            "    category: astrology\n"
            "    value_type: string\n"
            "    operators: [eq]\n"
        )
        with pytest.raises(RegistryError, match="custom.thing"):
            load_registry(path)

    def test_entry_missing_key(self, tmp_path):
        path = tmp_path / "fields.yaml"
        path.write_text(
            "fields:\n"
            "  - category: contact\n"
            "    value_type: boolean\n"
            "    operators: [isTrue]\n"
        )
        with pytest.raises(RegistryError, match="missing 'key'"):
            load_registry(path)


class TestHelpers:
    """Test module-level helpers over the bundled registry."""

    def test_accessors(self):
        assert get_field_by_key("personal.age") is FIELD_REGISTRY.lookup("personal.age")
        assert get_operators_for_field("personal.age") == ("between", "gte", "lte")
        assert get_value_type_for_field("personal.age") == ValueType.NUMBER_RANGE
        assert get_enum_values_for_field("personal.gender") == (
            "male", "female", "nonbinary", "unspecified"
        )
        assert get_categories() == FIELD_REGISTRY.categories()
        assert get_fields_by_category("family")[0].key == "family.children_count"

    def test_is_b2b_field(self):
        assert is_b2b_field("business.revenue")
        assert not is_b2b_field("personal.age")
        assert not is_b2b_field("nope")

    def test_field_kind(self):
        assert get_field_kind("business.revenue") == "number"
        assert get_field_kind("intent.score") == "number"
        assert get_field_kind("business.seniority") == "array"
        assert get_field_kind("location.city") == "array"
        assert get_field_kind("business.company_name") == "string"
        assert get_field_kind("nope") == "string"
