#!/usr/bin/env python3
"""
Path-based edits for expression trees.

A path is a tuple of child indices from the root; () is the root itself.
Every edit returns a new root and rebuilds only the groups along the path,
so readers holding the old tree keep seeing it unchanged.
"""

from dataclasses import replace
from typing import Any, Callable, Optional, Union

from .base import (
    Condition, Connective, Group, InvalidFilterError, Node, Path, default_expression
)
from .registry import FIELD_REGISTRY, FieldDefinition, FieldRegistry, ValueType


# ---------------------------------------------------------------------------
# Navigation and structural edits
# ---------------------------------------------------------------------------

def get_node(root: Group, path: Path) -> Node:
    """Return the node at `path`."""
    node: Node = root
    for depth, index in enumerate(path):
        if not isinstance(node, Group):
            raise InvalidFilterError(f"Path {tuple(path)} descends into a condition at depth {depth}")
        if not 0 <= index < len(node.children):
            raise InvalidFilterError(f"Path {tuple(path)} has no child {index} at depth {depth}")
        node = node.children[index]
    return node


def _rebuild(root: Group, path: Path, edit: Callable[[Node], Optional[Node]]) -> Group:
    """Apply `edit` at `path` and rebuild ancestors; edit returning None removes."""
    path = tuple(path)
    if not path:
        result = edit(root)
        if not isinstance(result, Group):
            raise InvalidFilterError("The root must remain a group")
        return result

    parent_path, index = path[:-1], path[-1]
    parent = get_node(root, parent_path)
    if not isinstance(parent, Group) or not 0 <= index < len(parent.children):
        raise InvalidFilterError(f"No node at path {path}")

    updated = edit(parent.children[index])
    children = list(parent.children)
    if updated is None:
        del children[index]
    else:
        children[index] = updated
    new_parent = replace(parent, children=tuple(children))
    return _rebuild(root, parent_path, lambda _: new_parent)


def replace_node(root: Group, path: Path, node: Node) -> Group:
    """Replace the node at `path`; replacing the root requires a group."""
    return _rebuild(root, path, lambda _: node)


def remove_node(root: Group, path: Path) -> Group:
    """Remove the node at `path`. The root cannot be removed."""
    if not tuple(path):
        raise InvalidFilterError("Cannot remove the root group")
    return _rebuild(root, path, lambda _: None)


def insert_node(root: Group, parent_path: Path, node: Node,
                index: Optional[int] = None) -> Group:
    """
    Insert `node` into the group at `parent_path`.

    Args:
        root: Root group
        parent_path: Path of the receiving group
        node: Node to insert
        index: Position among the children (default: append)
    """
    def _insert(parent: Node) -> Node:
        if not isinstance(parent, Group):
            raise InvalidFilterError(f"Node at {tuple(parent_path)} is not a group")
        children = list(parent.children)
        if index is None:
            children.append(node)
        elif 0 <= index <= len(children):
            children.insert(index, node)
        else:
            raise InvalidFilterError(f"Insert index {index} out of range")
        return replace(parent, children=tuple(children))

    return _rebuild(root, parent_path, _insert)


def update_condition(root: Group, path: Path, **changes: Any) -> Group:
    """
    Update fields of the condition at `path`.

    Accepts field, operator, value, category and negated.
    """
    def _update(node: Node) -> Node:
        if not isinstance(node, Condition):
            raise InvalidFilterError(f"Node at {tuple(path)} is not a condition")
        try:
            return replace(node, **changes)
        except TypeError as e:
            raise InvalidFilterError(f"Invalid condition update: {e}") from e

    return _rebuild(root, path, _update)


def toggle_negation(root: Group, path: Path) -> Group:
    """Flip the negation flag of the node at `path`."""
    return _rebuild(root, path, lambda node: replace(node, negated=not node.negated))


def set_connective(root: Group, path: Path, connective: Union[Connective, str]) -> Group:
    """Set the AND/OR connective of the group at `path`."""
    resolved = Connective.from_string(connective)
    if resolved is None:
        raise InvalidFilterError(f"Unknown connective: {connective!r}")

    def _set(node: Node) -> Node:
        if not isinstance(node, Group):
            raise InvalidFilterError(f"Node at {tuple(path)} is not a group")
        return replace(node, connective=resolved)

    return _rebuild(root, path, _set)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def default_value_for(field: FieldDefinition) -> Any:
    """Starting value for a new condition on `field`."""
    value_type = field.value_type
    if value_type == ValueType.NUMBER:
        return 0
    if value_type == ValueType.NUMBER_RANGE:
        return [0, 100]
    if value_type == ValueType.ENUM:
        return field.enum_values[0] if field.enum_values else ""
    if value_type == ValueType.ENUM_LIST:
        return [field.enum_values[0]] if field.enum_values else []
    if value_type == ValueType.BOOLEAN:
        return True
    if value_type == ValueType.DATE_RANGE:
        return ["", ""]
    if value_type == ValueType.GEO_RADIUS:
        return {"lat": 0, "lng": 0, "radiusKm": 10}
    if value_type == ValueType.GEO_POINT:
        return {"lat": 0, "lng": 0}
    if value_type in (ValueType.STRING_LIST, ValueType.NUMBER_LIST):
        return []
    return ""


def new_condition(field_key: Optional[str] = None,
                  registry: Optional[FieldRegistry] = None) -> Condition:
    """
    Build a fresh condition with the field's first operator and default value.

    Args:
        field_key: Field to use (default: first field of the first category)
        registry: Field registry (default: the process-wide registry)

    Raises:
        InvalidFilterError: If the field is unknown or the registry is empty
    """
    registry = registry if registry is not None else FIELD_REGISTRY
    if field_key is None:
        categories = registry.categories()
        if not categories:
            raise InvalidFilterError("Field registry is empty")
        definition = registry.fields_by_category(categories[0])[0]
    else:
        definition = registry.lookup(field_key)
        if definition is None:
            raise InvalidFilterError(f"Unknown field: {field_key}")

    return Condition(
        field=definition.key,
        operator=definition.allowed_operators[0],
        value=default_value_for(definition),
        category=definition.category.value,
    )


def new_group(connective: Union[Connective, str] = Connective.AND) -> Group:
    """Build an empty group."""
    if connective == Connective.AND:
        return default_expression()
    return Group(connective, ())


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(_format_value(v) for v in value)
    return str(value)


def describe(node: Node) -> str:
    """
    Human-readable one-line rendering of an expression.

    Example:
        NOT (business.seniority in cxo, vp AND contact.has_email isTrue true)
    """
    if isinstance(node, Condition):
        prefix = "NOT " if node.negated else ""
        return f"{prefix}{node.field} {node.operator} {_format_value(node.value)}"

    if node.is_empty():
        return "empty"
    inner = f" {node.connective.value} ".join(describe(child) for child in node.children)
    prefix = "NOT " if node.negated else ""
    return f"{prefix}({inner})"
