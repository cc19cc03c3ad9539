"""
Arbor Kernel — Reducer

Pure function: (document, event) → ReduceResult

Events are plain dicts keyed by "t" (type) plus short-hand fields:

  node.add      {node, parent?}
  node.remove   {ref}
  node.rename   {ref, name}
  node.toggle   {ref}
  node.move     {ref, target?, placement?}     no target → drop on root area
  node.update   {node}                         detail dialog save
  type.create   {type}
  type.update   {ref, fields, name?, icon?}    reconciles existing nodes
  type.remove   {ref}                          nodes keep a dangling reference
  meta.title    {title}

Never throws. A rejected result carries the input document unchanged and a
reason code (MISSING_REF, NOT_FOUND, CYCLE, ...). Stale ids are ordinary
rejections, not faults.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from pydantic import ValidationError

from arbor.kernel.exchange import NodePayload, NodeTypePayload, TreeDocument
from arbor.kernel.mutations import (
    add_node,
    delete_node,
    move,
    move_to_root,
    rename_node,
    toggle_expand,
    update_node_details,
)
from arbor.kernel.schema import FieldChanges, reconcile_node_type, resolve_node_type
from arbor.kernel.store import find_node
from arbor.kernel.types import CustomFieldDefinition, Node, NodeType, Placement

# ---------------------------------------------------------------------------
# ReduceResult
# ---------------------------------------------------------------------------


class ReduceResult:
    """
    Result of applying one event to a document.
    Never throws — always returns one of these.
    """

    __slots__ = ("document", "accepted", "reason", "changes")

    def __init__(
        self,
        document: TreeDocument,
        accepted: bool,
        reason: str | None = None,
        changes: FieldChanges | None = None,
    ) -> None:
        self.document = document
        self.accepted = accepted
        self.reason = reason
        self.changes = changes  # Populated by type.update

    def __repr__(self) -> str:  # pragma: no cover
        if self.accepted:
            return "ReduceResult(accepted=True)"
        return f"ReduceResult(accepted=False, reason={self.reason!r})"


def _reject(doc: TreeDocument, reason: str) -> ReduceResult:
    return ReduceResult(document=doc, accepted=False, reason=reason)


def _ok(doc: TreeDocument, changes: FieldChanges | None = None) -> ReduceResult:
    return ReduceResult(document=doc, accepted=True, changes=changes)


def _with_tree(doc: TreeDocument, tree: list[Node]) -> TreeDocument:
    return replace(doc, tree=tree)


def _payload_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    return f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def reduce(document: TreeDocument, event: dict[str, Any]) -> ReduceResult:
    """Apply one event. The input document is never modified."""
    event_type = event.get("t")
    if event_type is None:
        return _reject(document, "MISSING_TYPE: event has no 't' field")

    handler = _HANDLERS.get(event_type)
    if handler is None:
        return _reject(document, f"UNKNOWN_EVENT: {event_type}")

    return handler(document, event)


def reduce_all(document: TreeDocument, events: list[dict[str, Any]]) -> TreeDocument:
    """Apply events in order. Rejections are skipped."""
    for event in events:
        result = reduce(document, event)
        if result.accepted:
            document = result.document
    return document


# ---------------------------------------------------------------------------
# Node events
# ---------------------------------------------------------------------------


def _handle_node_add(doc: TreeDocument, event: dict) -> ReduceResult:
    raw = event.get("node")
    if not isinstance(raw, dict):
        return _reject(doc, "MISSING_NODE: node.add requires 'node'")
    try:
        NodePayload.model_validate({"children": [], **raw})
    except ValidationError as exc:
        return _reject(doc, f"INVALID_NODE: {_payload_error(exc)}")

    node = Node.from_dict(raw)
    tree = add_node(doc.tree, node, event.get("parent"))
    if tree is doc.tree:
        return _reject(doc, f"NODE_EXISTS: '{node.id}' collides with an existing id")
    return _ok(_with_tree(doc, tree))


def _handle_node_remove(doc: TreeDocument, event: dict) -> ReduceResult:
    ref = event.get("ref")
    if ref is None:
        return _reject(doc, "MISSING_REF: node.remove requires 'ref'")
    tree = delete_node(doc.tree, ref)
    if tree is doc.tree:
        return _reject(doc, f"NOT_FOUND: '{ref}'")
    return _ok(_with_tree(doc, tree))


def _handle_node_rename(doc: TreeDocument, event: dict) -> ReduceResult:
    ref = event.get("ref")
    name = event.get("name")
    if ref is None:
        return _reject(doc, "MISSING_REF: node.rename requires 'ref'")
    if not isinstance(name, str):
        return _reject(doc, "MISSING_NAME: node.rename requires 'name'")
    tree = rename_node(doc.tree, ref, name)
    if tree is doc.tree:
        return _reject(doc, f"NOT_FOUND: '{ref}'")
    return _ok(_with_tree(doc, tree))


def _handle_node_toggle(doc: TreeDocument, event: dict) -> ReduceResult:
    ref = event.get("ref")
    if ref is None:
        return _reject(doc, "MISSING_REF: node.toggle requires 'ref'")
    tree = toggle_expand(doc.tree, ref)
    if tree is doc.tree:
        return _reject(doc, f"NOT_FOUND: '{ref}'")
    return _ok(_with_tree(doc, tree))


def _handle_node_move(doc: TreeDocument, event: dict) -> ReduceResult:
    ref = event.get("ref")
    target = event.get("target")
    if ref is None:
        return _reject(doc, "MISSING_REF: node.move requires 'ref'")

    source = find_node(doc.tree, ref)
    if not source.found:
        return _reject(doc, f"NOT_FOUND: '{ref}'")

    if target is None:
        return _ok(_with_tree(doc, move_to_root(doc.tree, ref)))

    try:
        placement = Placement(event.get("placement", Placement.INSIDE))
    except ValueError:
        return _reject(doc, f"INVALID_PLACEMENT: {event.get('placement')!r}")

    if target == ref:
        return _reject(doc, f"SELF_DROP: cannot drop '{ref}' on itself")
    target_found = find_node(doc.tree, target)
    if not target_found.found:
        return _reject(doc, f"NOT_FOUND: '{target}'")
    if ref in target_found.path:
        return _reject(doc, f"CYCLE: '{target}' is inside '{ref}'")

    return _ok(_with_tree(doc, move(doc.tree, ref, target, placement)))


def _handle_node_update(doc: TreeDocument, event: dict) -> ReduceResult:
    raw = event.get("node")
    if not isinstance(raw, dict):
        return _reject(doc, "MISSING_NODE: node.update requires 'node'")
    try:
        NodePayload.model_validate({"children": [], **raw})
    except ValidationError as exc:
        return _reject(doc, f"INVALID_NODE: {_payload_error(exc)}")

    tree = update_node_details(doc.tree, Node.from_dict(raw))
    if tree is doc.tree:
        return _reject(doc, f"NOT_FOUND: '{raw['id']}'")
    return _ok(_with_tree(doc, tree))


# ---------------------------------------------------------------------------
# Node type events
# ---------------------------------------------------------------------------


def _handle_type_create(doc: TreeDocument, event: dict) -> ReduceResult:
    raw = event.get("type")
    if not isinstance(raw, dict):
        return _reject(doc, "MISSING_TYPE_DEF: type.create requires 'type'")
    try:
        NodeTypePayload.model_validate({"fieldDefinitions": [], **raw})
    except ValidationError as exc:
        return _reject(doc, f"INVALID_TYPE: {_payload_error(exc)}")

    node_type = NodeType.from_dict(raw)
    if resolve_node_type(doc.node_types, node_type.id) is not None:
        return _reject(doc, f"TYPE_EXISTS: '{node_type.id}' already exists")
    return _ok(replace(doc, node_types=[*doc.node_types, node_type]))


def _handle_type_update(doc: TreeDocument, event: dict) -> ReduceResult:
    ref = event.get("ref")
    if ref is None:
        return _reject(doc, "MISSING_REF: type.update requires 'ref'")
    current = resolve_node_type(doc.node_types, ref)
    if current is None:
        return _reject(doc, f"NOT_FOUND: type '{ref}'")

    raw_fields = event.get("fields")
    if raw_fields is None:
        definitions = current.field_definitions
    else:
        try:
            NodeTypePayload.model_validate({"id": ref, "name": current.name, "fieldDefinitions": raw_fields})
        except ValidationError as exc:
            return _reject(doc, f"INVALID_FIELDS: {_payload_error(exc)}")
        definitions = [CustomFieldDefinition.from_dict(d) for d in raw_fields]

    tree, node_types, changes = reconcile_node_type(doc.tree, doc.node_types, ref, definitions)

    renamed = {k: event[k] for k in ("name", "icon") if isinstance(event.get(k), str)}
    if renamed:
        node_types = [replace(t, **renamed) if t.id == ref else t for t in node_types]

    return _ok(replace(doc, tree=tree, node_types=node_types), changes=changes)


def _handle_type_remove(doc: TreeDocument, event: dict) -> ReduceResult:
    ref = event.get("ref")
    if ref is None:
        return _reject(doc, "MISSING_REF: type.remove requires 'ref'")
    if resolve_node_type(doc.node_types, ref) is None:
        return _reject(doc, f"NOT_FOUND: type '{ref}'")
    return _ok(replace(doc, node_types=[t for t in doc.node_types if t.id != ref]))


# ---------------------------------------------------------------------------
# Meta events
# ---------------------------------------------------------------------------


def _handle_meta_title(doc: TreeDocument, event: dict) -> ReduceResult:
    title = event.get("title")
    if not isinstance(title, str):
        return _reject(doc, "MISSING_TITLE: meta.title requires 'title'")
    return _ok(replace(doc, tree_title=title))


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Any] = {
    # Node events
    "node.add": _handle_node_add,
    "node.remove": _handle_node_remove,
    "node.rename": _handle_node_rename,
    "node.toggle": _handle_node_toggle,
    "node.move": _handle_node_move,
    "node.update": _handle_node_update,
    # Node type events
    "type.create": _handle_type_create,
    "type.update": _handle_type_update,
    "type.remove": _handle_type_remove,
    # Meta
    "meta.title": _handle_meta_title,
}
