#!/usr/bin/env python3
"""
Field registry: the static catalog of queryable audience fields.

The catalog ships as a versioned YAML artifact (fields.yaml) and is loaded
once at import into a read-only FieldRegistry. Adding a field or operator is
a data change; the compilers only read mapper names and operator ids.
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import yaml

from .base import Operator, RegistryError


DEFAULT_REGISTRY_PATH = Path(__file__).parent / "fields.yaml"


class Category(Enum):
    """Field categories, in the order the UI shows them."""
    INTENT = "intent"
    DATE = "date"
    BUSINESS = "business"
    FINANCIAL = "financial"
    PERSONAL = "personal"
    FAMILY = "family"
    HOUSING = "housing"
    LOCATION = "location"
    CONTACT = "contact"


class ValueType(Enum):
    """Shape of the value a condition on this field carries."""
    STRING = "string"
    STRING_LIST = "string[]"
    NUMBER = "number"
    NUMBER_RANGE = "numberRange"
    NUMBER_LIST = "number[]"
    ENUM = "enum"
    ENUM_LIST = "enum[]"
    BOOLEAN = "boolean"
    DATE = "date"
    DATE_RANGE = "dateRange"
    GEO_POINT = "geoPoint"
    GEO_RADIUS = "geoRadius"


ENUM_VALUE_TYPES = {ValueType.ENUM, ValueType.ENUM_LIST}


@dataclass(frozen=True)
class FieldDefinition:
    """
    A queryable field.

    Attributes:
        key: Globally unique dotted identifier, e.g. "business.employee_count"
        label: Display label
        category: Field category
        value_type: Expected value shape
        allowed_operators: Ordered operator ids valid for this field
        relational_mapper: Column/path used by the relational compiler
        search_mapper: Path used by the search compiler; None means the
            field has no search representation
        enum_values: Closed value set for enum and enum[] fields
        description: Optional help text
    """
    key: str
    label: str
    category: Category
    value_type: ValueType
    allowed_operators: Tuple[str, ...]
    relational_mapper: str
    search_mapper: Optional[str] = None
    enum_values: Optional[Tuple[str, ...]] = None
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldDefinition':
        """Build a definition from one entry of the YAML artifact."""
        try:
            key = data["key"]
            category = Category(data["category"])
            value_type = ValueType(data["value_type"])
            operators = tuple(data["operators"])
        except KeyError as e:
            raise RegistryError(f"Field entry missing {e.args[0]!r}: {data!r}") from None
        except ValueError as e:
            raise RegistryError(f"Invalid field entry {data.get('key')!r}: {e}") from None

        enum_values = data.get("enum_values")
        return cls(
            key=key,
            label=data.get("label", key),
            category=category,
            value_type=value_type,
            allowed_operators=operators,
            relational_mapper=data.get("relational", key),
            search_mapper=data.get("search"),
            enum_values=tuple(enum_values) if enum_values is not None else None,
            description=data.get("description", ""),
        )


class FieldRegistry:
    """
    Immutable catalog of field definitions keyed by field key.

    Every accessor degrades to None or an empty collection for unknown keys;
    the validator and the UI probe speculative keys.
    """

    def __init__(self, fields: Dict[str, FieldDefinition], version: Any = None):
        self._fields = MappingProxyType(dict(fields))
        self.version = version

    @classmethod
    def from_definitions(cls, definitions: Iterable[FieldDefinition],
                         version: Any = None) -> 'FieldRegistry':
        """
        Build a registry, enforcing its invariants.

        Raises:
            RegistryError: On duplicate keys, empty or unknown operators,
                or enum fields without enum values
        """
        fields: Dict[str, FieldDefinition] = {}
        for definition in definitions:
            if definition.key in fields:
                raise RegistryError(f"Duplicate field key: {definition.key}")
            if not definition.allowed_operators:
                raise RegistryError(f"Field {definition.key} has no allowed operators")
            unknown = [op for op in definition.allowed_operators if not Operator.is_valid(op)]
            if unknown:
                raise RegistryError(f"Field {definition.key} lists unknown operators: {unknown}")
            if len(set(definition.allowed_operators)) != len(definition.allowed_operators):
                raise RegistryError(f"Field {definition.key} lists an operator twice")
            if definition.value_type in ENUM_VALUE_TYPES and not definition.enum_values:
                raise RegistryError(f"Enum field {definition.key} must declare enum_values")
            if definition.value_type not in ENUM_VALUE_TYPES and definition.enum_values is not None:
                raise RegistryError(f"Non-enum field {definition.key} declares enum_values")
            fields[definition.key] = definition
        return cls(fields, version=version)

    def lookup(self, key: str) -> Optional[FieldDefinition]:
        """Get a field definition, or None for unknown keys."""
        if not isinstance(key, str):
            return None
        return self._fields.get(key)

    def operators_for(self, key: str) -> Tuple[str, ...]:
        """Allowed operator ids for a field (empty if unknown)."""
        definition = self.lookup(key)
        return definition.allowed_operators if definition else ()

    def value_type_for(self, key: str) -> Optional[ValueType]:
        definition = self.lookup(key)
        return definition.value_type if definition else None

    def enum_values_for(self, key: str) -> Optional[Tuple[str, ...]]:
        definition = self.lookup(key)
        return definition.enum_values if definition else None

    def fields_by_category(self, category: Union[Category, str]) -> List[FieldDefinition]:
        """Fields of one category, in registration order."""
        if isinstance(category, str):
            try:
                category = Category(category)
            except ValueError:
                return []
        return [f for f in self._fields.values() if f.category == category]

    def categories(self) -> List[Category]:
        """Categories that have at least one field, in registration order."""
        seen: List[Category] = []
        for definition in self._fields.values():
            if definition.category not in seen:
                seen.append(definition.category)
        return seen

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._fields

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self):
        return f"FieldRegistry(version={self.version!r}, fields={len(self._fields)})"


def load_registry(path: Union[str, Path]) -> FieldRegistry:
    """
    Load a registry from a YAML artifact.

    Args:
        path: Path to a YAML file with a top-level `fields` list

    Returns:
        FieldRegistry

    Raises:
        RegistryError: If the file is unreadable or breaks registry invariants
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise RegistryError(f"Cannot load field registry from {path}: {e}") from e

    entries = document.get("fields")
    if not isinstance(entries, list):
        raise RegistryError(f"Field registry {path} has no 'fields' list")

    return FieldRegistry.from_definitions(
        (FieldDefinition.from_dict(entry) for entry in entries),
        version=document.get("version"),
    )


FIELD_REGISTRY = load_registry(os.environ.get("AUDIENCE_FIELD_REGISTRY") or DEFAULT_REGISTRY_PATH)


# Helper functions over the process-wide registry

def get_field_by_key(key: str) -> Optional[FieldDefinition]:
    return FIELD_REGISTRY.lookup(key)


def get_fields_by_category(category: Union[Category, str]) -> List[FieldDefinition]:
    return FIELD_REGISTRY.fields_by_category(category)


def get_categories() -> List[Category]:
    return FIELD_REGISTRY.categories()


def get_operators_for_field(key: str) -> Tuple[str, ...]:
    return FIELD_REGISTRY.operators_for(key)


def get_value_type_for_field(key: str) -> Optional[ValueType]:
    return FIELD_REGISTRY.value_type_for(key)


def get_enum_values_for_field(key: str) -> Optional[Tuple[str, ...]]:
    return FIELD_REGISTRY.enum_values_for(key)


def is_b2b_field(key: str, registry: Optional[FieldRegistry] = None) -> bool:
    """Whether a field belongs to the business (B2B) category."""
    definition = (registry if registry is not None else FIELD_REGISTRY).lookup(key)
    return definition is not None and definition.category == Category.BUSINESS


def get_field_kind(key: str, registry: Optional[FieldRegistry] = None) -> str:
    """Coarse input kind for a field: 'string', 'number' or 'array'."""
    value_type = (registry if registry is not None else FIELD_REGISTRY).value_type_for(key)
    if value_type in (ValueType.NUMBER, ValueType.NUMBER_RANGE):
        return 'number'
    if value_type in (ValueType.STRING_LIST, ValueType.NUMBER_LIST, ValueType.ENUM_LIST):
        return 'array'
    return 'string'
