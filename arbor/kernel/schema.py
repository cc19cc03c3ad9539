"""
Arbor Kernel — Schema Reconciliation

When a NodeType's field definitions are replaced, existing nodes of that type
must follow. Definitions are matched old ↔ new by id, never by position or
name, which is what makes renames detectable.

Applying a FieldChanges to one node, in order:
  1. drop fields whose key (definition_id, or id for legacy fields) was removed
  2. append an empty field for each added definition not already present
  3. rename matching fields (value kept)
  4. retype matching fields and reset their value to ""

Nodes of other types and untyped nodes are never touched; their children are
still visited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from arbor.kernel.store import map_forest
from arbor.kernel.types import (
    CustomField,
    CustomFieldDefinition,
    Forest,
    IdFactory,
    Node,
    NodeType,
    new_id,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldRename:
    id: str
    old_name: str
    new_name: str


@dataclass(frozen=True)
class FieldTypeChange:
    id: str
    old_type: str
    new_type: str


@dataclass(frozen=True)
class FieldRequirementChange:
    id: str
    required: bool


@dataclass
class FieldChanges:
    """Difference between two field-definition lists of the same NodeType."""

    added: list[CustomFieldDefinition] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    renamed: list[FieldRename] = field(default_factory=list)
    type_changed: list[FieldTypeChange] = field(default_factory=list)
    requirement_changed: list[FieldRequirementChange] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.renamed or self.type_changed or self.requirement_changed)

    @property
    def touches_nodes(self) -> bool:
        """Requirement flips live only in the schema; everything else rewrites node data."""
        return bool(self.added or self.removed or self.renamed or self.type_changed)


def diff_field_definitions(
    old: list[CustomFieldDefinition],
    new: list[CustomFieldDefinition],
) -> FieldChanges:
    changes = FieldChanges()
    old_by_id = {d.id: d for d in old}
    new_ids = {d.id for d in new}

    for definition in old:
        if definition.id not in new_ids:
            changes.removed.append(definition.id)

    for definition in new:
        previous = old_by_id.get(definition.id)
        if previous is None:
            changes.added.append(definition)
            continue
        if previous.name != definition.name:
            changes.renamed.append(FieldRename(definition.id, previous.name, definition.name))
        if previous.type != definition.type:
            changes.type_changed.append(FieldTypeChange(definition.id, previous.type, definition.type))
        if previous.required != definition.required:
            changes.requirement_changed.append(FieldRequirementChange(definition.id, definition.required))

    return changes


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


def apply_changes_to_fields(
    fields: list[CustomField],
    changes: FieldChanges,
    id_factory: IdFactory = new_id,
) -> list[CustomField]:
    """Steps 1-4 on a single node's custom field list. Returns a new list."""
    removed = set(changes.removed)
    result = [f for f in fields if f.key not in removed]

    present = {f.key for f in result}
    for definition in changes.added:
        if definition.id in present:
            continue
        result.append(
            CustomField(
                id=id_factory(),
                name=definition.name,
                value="",
                type=definition.type,
                definition_id=definition.id,
            )
        )

    for rename in changes.renamed:
        for index, f in enumerate(result):
            if f.key == rename.id:
                result[index] = replace(f, name=rename.new_name)
                break

    for type_change in changes.type_changed:
        for index, f in enumerate(result):
            if f.key == type_change.id:
                # Old value no longer fits the new type
                result[index] = replace(f, type=type_change.new_type, value="")
                break

    return result


def apply_field_changes(
    forest: Forest,
    node_type_id: str,
    changes: FieldChanges,
    id_factory: IdFactory = new_id,
) -> Forest:
    """Rewrite the custom fields of every node whose node_type is node_type_id."""
    if not changes.touches_nodes:
        return forest

    updated = 0

    def reconcile(node: Node) -> Node:
        nonlocal updated
        if node.node_type != node_type_id:
            return node
        updated += 1
        return replace(node, custom_fields=apply_changes_to_fields(node.custom_fields, changes, id_factory))

    result = map_forest(forest, reconcile)
    logger.info(
        "reconcile: type=%s nodes=%d added=%d removed=%d renamed=%d retyped=%d",
        node_type_id,
        updated,
        len(changes.added),
        len(changes.removed),
        len(changes.renamed),
        len(changes.type_changed),
    )
    return result


def reconcile_node_type(
    forest: Forest,
    node_types: list[NodeType],
    node_type_id: str,
    new_definitions: list[CustomFieldDefinition],
    id_factory: IdFactory = new_id,
) -> tuple[Forest, list[NodeType], FieldChanges]:
    """
    Replace one NodeType's definitions and propagate the diff into the forest.
    Unknown node_type_id → nothing changes.
    """
    current = resolve_node_type(node_types, node_type_id)
    if current is None:
        logger.debug("reconcile: node type %s not found", node_type_id)
        return forest, node_types, FieldChanges()

    changes = diff_field_definitions(current.field_definitions, new_definitions)
    updated_types = [
        replace(t, field_definitions=list(new_definitions)) if t.id == node_type_id else t for t in node_types
    ]
    return apply_field_changes(forest, node_type_id, changes, id_factory), updated_types, changes


# ---------------------------------------------------------------------------
# Type lookups
# ---------------------------------------------------------------------------


def resolve_node_type(node_types: list[NodeType], type_id: str | None) -> NodeType | None:
    """Dangling or missing references resolve to None (treated as untyped)."""
    if not type_id:
        return None
    for node_type in node_types:
        if node_type.id == type_id:
            return node_type
    return None


def resolve_icon(node: Node, node_types: list[NodeType]) -> str | None:
    """The node's own icon, else its type's icon, else None."""
    if node.icon:
        return node.icon
    node_type = resolve_node_type(node_types, node.node_type)
    if node_type is not None and node_type.icon:
        return node_type.icon
    return None


def fields_for_type(node_type: NodeType | None, id_factory: IdFactory = new_id) -> list[CustomField]:
    """Empty custom fields seeded from a type's definitions, in definition order."""
    if node_type is None:
        return []
    return [
        CustomField(id=id_factory(), name=d.name, value="", type=d.type, definition_id=d.id)
        for d in node_type.field_definitions
    ]
