"""
Boolean audience filter system for multiple backends.

This module provides one expression tree for audience filters and lowers it
to the query languages of the stores behind it (a relational database and a
Typesense search index).

Example usage:
    from audience.db.filters import (
        expression_from_dict, FilterValidator,
        RelationalFilterBackend, SearchFilterBackend
    )

    expression = expression_from_dict({
        "kind": "group",
        "op": "AND",
        "children": [
            {"kind": "condition", "field": "business.company_name",
             "op": "contains", "value": "Acme"},
            {"kind": "group", "op": "OR", "children": [
                {"kind": "condition", "field": "intent.score",
                 "op": "gte", "value": 50},
                {"kind": "condition", "field": "contact.has_email",
                 "op": "isTrue", "value": True}
            ]}
        ]
    })

    if not FilterValidator().validate(expression):
        where_clause, params = RelationalFilterBackend().convert(expression)
        filter_by = SearchFilterBackend().convert(expression)
"""

from .base import (
    Operator,
    Connective,
    Condition,
    Group,
    Expression,
    ExpressionParser,
    FilterBackend,
    FilterError,
    InvalidFilterError,
    RegistryError,
    default_expression,
    expression_from_dict,
    expression_from_json,
    iter_conditions,
    to_dict,
    to_json
)

from .registry import (
    Category,
    ValueType,
    FieldDefinition,
    FieldRegistry,
    FIELD_REGISTRY,
    load_registry,
    get_field_by_key,
    get_fields_by_category,
    get_categories,
    get_operators_for_field,
    get_value_type_for_field,
    get_enum_values_for_field,
    is_b2b_field,
    get_field_kind
)

from .validator import FilterValidator, Violation, validate
from .sql_backend import RelationalFilterBackend, RelationalQuery, compile_relational
from .typesense_backend import SearchFilterBackend, compile_search
from .simple import simple_to_boolean, to_boolean_expression, SIMPLE_FIELD_MAPPINGS
from . import editing

__all__ = [
    # Expression model
    'Operator',
    'Connective',
    'Condition',
    'Group',
    'Expression',
    'ExpressionParser',
    'FilterBackend',
    'default_expression',
    'expression_from_dict',
    'expression_from_json',
    'iter_conditions',
    'to_dict',
    'to_json',
    'editing',

    # Registry
    'Category',
    'ValueType',
    'FieldDefinition',
    'FieldRegistry',
    'FIELD_REGISTRY',
    'load_registry',
    'get_field_by_key',
    'get_fields_by_category',
    'get_categories',
    'get_operators_for_field',
    'get_value_type_for_field',
    'get_enum_values_for_field',
    'is_b2b_field',
    'get_field_kind',

    # Validation
    'FilterValidator',
    'Violation',
    'validate',

    # Backends
    'RelationalFilterBackend',
    'RelationalQuery',
    'compile_relational',
    'SearchFilterBackend',
    'compile_search',

    # Simple mode
    'simple_to_boolean',
    'to_boolean_expression',
    'SIMPLE_FIELD_MAPPINGS',

    # Errors
    'FilterError',
    'InvalidFilterError',
    'RegistryError'
]
