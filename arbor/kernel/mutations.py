"""
Arbor Kernel — Mutation Engine

Pure structural edits: (forest, ...) → forest.

Every operation is total. An id that no longer resolves (stale UI state,
double-click races) turns the call into a no-op, and so does any move that
would break the acyclic invariant. A no-op returns the input forest object
itself so callers can test `result is forest`.

Drag-and-drop:
  move(forest, source, target, placement)
    1. resolve source            → no-op if missing
    2. source == target          → no-op
    3. resolve target path       → no-op if missing or if it contains source
    4. detach source
    5. insert source before / after / inside target
"""

from __future__ import annotations

import logging
from dataclasses import replace

from arbor.kernel.store import collect_ids, find_node, remove_node, update_node
from arbor.kernel.types import CustomField, Forest, IdFactory, Node, Placement, new_id

logger = logging.getLogger(__name__)

# Pointer offset within a row, as a fraction of its height
BEFORE_THRESHOLD = 0.25
AFTER_THRESHOLD = 0.75


# ---------------------------------------------------------------------------
# Node creation
# ---------------------------------------------------------------------------


def create_node(
    name: str,
    *,
    node_type: str | None = None,
    icon: str | None = None,
    custom_fields: list[CustomField] | None = None,
    id_factory: IdFactory = new_id,
) -> Node:
    """Build a fresh node with a new id and no children."""
    return Node(
        id=id_factory(),
        name=name,
        icon=icon or None,
        node_type=node_type,
        custom_fields=list(custom_fields or []),
    )


# ---------------------------------------------------------------------------
# Simple edits
# ---------------------------------------------------------------------------


def toggle_expand(forest: Forest, node_id: str) -> Forest:
    result = update_node(forest, node_id, lambda n: replace(n, is_expanded=not n.is_expanded))
    if result is forest:
        logger.debug("toggle_expand: node %s not found", node_id)
    return result


def add_node(forest: Forest, new_node: Node, parent_id: str | None = None) -> Forest:
    """
    Append new_node as the last child of parent_id (expanding the parent),
    or as a new root when parent_id is None or unknown.

    Rejected (no-op) if any id in new_node's subtree already exists.
    """
    existing = set(collect_ids(forest))
    incoming = collect_ids([new_node])
    clashes = existing.intersection(incoming)
    if clashes or len(set(incoming)) != len(incoming):
        logger.warning("add_node: rejected %s, duplicate ids %s", new_node.id, sorted(clashes) or incoming)
        return forest

    if parent_id is not None:
        result = update_node(
            forest,
            parent_id,
            lambda p: replace(p, is_expanded=True, children=[*p.children, new_node]),
        )
        if result is not forest:
            return result
        logger.debug("add_node: parent %s not found, adding %s as root", parent_id, new_node.id)

    return [*forest, new_node]


def delete_node(forest: Forest, node_id: str) -> Forest:
    """Remove the node and its whole subtree."""
    result = remove_node(forest, node_id)
    if result is forest:
        logger.debug("delete_node: node %s not found", node_id)
    return result


def rename_node(forest: Forest, node_id: str, new_name: str) -> Forest:
    result = update_node(forest, node_id, lambda n: replace(n, name=new_name))
    if result is forest:
        logger.debug("rename_node: node %s not found", node_id)
    return result


def update_node_details(forest: Forest, updated: Node) -> Forest:
    """
    Replace a node's own attributes (name, icon, type, custom fields) with
    those of `updated`. The node keeps its current children.
    """

    def apply(node: Node) -> Node:
        return replace(
            node,
            name=updated.name,
            icon=updated.icon,
            node_type=updated.node_type,
            custom_fields=list(updated.custom_fields),
            is_expanded=updated.is_expanded if updated.is_expanded is not None else node.is_expanded,
        )

    result = update_node(forest, updated.id, apply)
    if result is forest:
        logger.debug("update_node_details: node %s not found", updated.id)
    return result


# ---------------------------------------------------------------------------
# Drag and drop
# ---------------------------------------------------------------------------


def classify_placement(offset_y: float, row_height: float) -> Placement:
    """Map the pointer's vertical offset inside a row to a drop placement."""
    if offset_y < row_height * BEFORE_THRESHOLD:
        return Placement.BEFORE
    if offset_y > row_height * AFTER_THRESHOLD:
        return Placement.AFTER
    return Placement.INSIDE


def can_drop(forest: Forest, source_id: str, target_id: str) -> bool:
    """True when dropping source on target would be accepted by move()."""
    if source_id == target_id:
        return False
    if not find_node(forest, source_id).found:
        return False
    target = find_node(forest, target_id)
    return target.found and source_id not in target.path


def move(forest: Forest, source_id: str, target_id: str, placement: Placement | str) -> Forest:
    """
    Reposition source relative to target. The moved node is inserted as-is:
    same object, same id, children and custom fields.
    """
    placement = Placement(placement)

    source = find_node(forest, source_id)
    node = source.node
    if node is None:
        logger.debug("move: source %s not found", source_id)
        return forest

    if source_id == target_id:
        logger.info("move: rejected, %s dropped on itself", source_id)
        return forest

    target = find_node(forest, target_id)
    if not target.found:
        logger.debug("move: target %s not found", target_id)
        return forest
    if source_id in target.path:
        logger.info("move: rejected, %s is an ancestor of %s", source_id, target_id)
        return forest

    detached = remove_node(forest, source_id)

    if placement is Placement.INSIDE:
        return update_node(
            detached,
            target_id,
            lambda t: replace(t, is_expanded=True, children=[*t.children, node]),
        )
    return _insert_adjacent(detached, target_id, node, after=placement is Placement.AFTER)


def move_to_root(forest: Forest, source_id: str) -> Forest:
    """Drop on the root area: detach source and append it as the last root."""
    node = find_node(forest, source_id).node
    if node is None:
        logger.debug("move_to_root: source %s not found", source_id)
        return forest
    return [*remove_node(forest, source_id), node]


def _insert_adjacent(nodes: list[Node], target_id: str, source: Node, *, after: bool) -> list[Node]:
    """Splice source next to target at whatever depth target sits."""
    for index, node in enumerate(nodes):
        if node.id == target_id:
            at = index + 1 if after else index
            return [*nodes[:at], source, *nodes[at:]]

    for index, node in enumerate(nodes):
        if node.children:
            children = _insert_adjacent(node.children, target_id, source, after=after)
            if children is not node.children:
                return [*nodes[:index], replace(node, children=children), *nodes[index + 1 :]]
    return nodes
