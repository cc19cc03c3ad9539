"""
Arbor Kernel — Tree Document Exchange

The serialized tree document used for export/import and storage:

    {
        "tree":       [Node, ...],
        "nodeTypes":  [NodeType, ...],
        "treeTitle":  "...",
        "version":    "1.0",                    # export only
        "exportDate": "2026-01-01T00:00:00Z"    # export only
    }

Import is all-or-nothing: validate_import_data() checks the whole payload
with pydantic before anything is built, and import_document() either returns
a complete TreeDocument or raises ImportValidationError.

Dangling nodeType references are tolerated (a node whose type was deleted is
simply untyped).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from arbor.kernel.types import (
    CustomField,
    Forest,
    IdFactory,
    Node,
    NodeType,
    new_id,
    now_iso,
)

EXPORT_VERSION = "1.0"
DEFAULT_TITLE = "Untitled"

# Import error keys
INVALID_FORMAT = "invalidFormat"
NO_TREE_DATA = "noTreeData"
NO_NODE_TYPES = "noNodeTypes"
INVALID_NODE_STRUCTURE = "invalidNodeStructure"
INVALID_NODE_TYPE_STRUCTURE = "invalidNodeTypeStructure"


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass
class TreeDocument:
    """Everything one editor tab owns: the forest, its node types and a title."""

    tree: Forest = field(default_factory=list)
    node_types: list[NodeType] = field(default_factory=list)
    tree_title: str = DEFAULT_TITLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "tree": [n.to_dict() for n in self.tree],
            "nodeTypes": [t.to_dict() for t in self.node_types],
            "treeTitle": self.tree_title,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TreeDocument:
        return cls(
            tree=[Node.from_dict(n) for n in d.get("tree", [])],
            node_types=[NodeType.from_dict(t) for t in d.get("nodeTypes", [])],
            tree_title=d.get("treeTitle") or DEFAULT_TITLE,
        )


# ---------------------------------------------------------------------------
# Import payload models
# ---------------------------------------------------------------------------


class CustomFieldPayload(BaseModel):
    model_config = {"extra": "allow"}

    id: str = Field(min_length=1)
    name: str = ""
    value: str | None = ""
    type: str = "text"


class NodePayload(BaseModel):
    model_config = {"extra": "allow"}

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    children: list[NodePayload]
    isExpanded: bool | None = None
    icon: str | None = None
    nodeType: str | None = None
    customFields: list[CustomFieldPayload] | None = None


NodePayload.model_rebuild()


class FieldDefinitionPayload(BaseModel):
    model_config = {"extra": "allow"}

    id: str = Field(min_length=1)
    name: str
    type: str = "text"
    required: bool = False


class NodeTypePayload(BaseModel):
    model_config = {"extra": "allow"}

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    icon: str | None = None
    fieldDefinitions: list[FieldDefinitionPayload]


_NODES = TypeAdapter(list[NodePayload])
_NODE_TYPES = TypeAdapter(list[NodeTypePayload])


@dataclass
class ImportValidation:
    valid: bool
    error: str | None = None
    reason: str | None = None


class ImportValidationError(ValueError):
    """Import payload rejected. `error` is one of the import error keys."""

    def __init__(self, error: str, reason: str) -> None:
        super().__init__(f"{error}: {reason}")
        self.error = error
        self.reason = reason


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    location = ".".join(str(part) for part in err["loc"])
    return f"{location}: {err['msg']}"


def _first_duplicate_id(nodes: list[NodePayload]) -> str | None:
    """First id seen twice in a pre-order walk, or None."""
    seen: set[str] = set()
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        if node.id in seen:
            return node.id
        seen.add(node.id)
        stack.extend(reversed(node.children))
    return None


def validate_import_data(data: Any) -> ImportValidation:
    """Structural check of an import payload. Never raises."""
    if not isinstance(data, dict):
        return ImportValidation(False, INVALID_FORMAT, "document must be a JSON object")

    if not isinstance(data.get("tree"), list):
        return ImportValidation(False, NO_TREE_DATA, "'tree' must be a list of nodes")

    if not isinstance(data.get("nodeTypes"), list):
        return ImportValidation(False, NO_NODE_TYPES, "'nodeTypes' must be a list")

    try:
        nodes = _NODES.validate_python(data["tree"])
    except ValidationError as exc:
        return ImportValidation(False, INVALID_NODE_STRUCTURE, f"tree.{_first_error(exc)}")

    duplicate = _first_duplicate_id(nodes)
    if duplicate is not None:
        return ImportValidation(False, INVALID_NODE_STRUCTURE, f"duplicate node id '{duplicate}'")

    try:
        _NODE_TYPES.validate_python(data["nodeTypes"])
    except ValidationError as exc:
        return ImportValidation(False, INVALID_NODE_TYPE_STRUCTURE, f"nodeTypes.{_first_error(exc)}")

    return ImportValidation(True)


def import_document(data: Any) -> TreeDocument:
    """Validate and build. Raises ImportValidationError; builds nothing on failure."""
    check = validate_import_data(data)
    if not check.valid:
        raise ImportValidationError(check.error or INVALID_FORMAT, check.reason or "")
    return TreeDocument.from_dict(data)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def create_export_data(document: TreeDocument) -> dict[str, Any]:
    d = document.to_dict()
    d["version"] = EXPORT_VERSION
    d["exportDate"] = now_iso()
    return d


def dumps_document(document: TreeDocument, *, export: bool = False) -> str:
    payload = create_export_data(document) if export else document.to_dict()
    return json.dumps(payload, ensure_ascii=False)


def loads_document(text: str) -> TreeDocument:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ImportValidationError(INVALID_FORMAT, f"not valid JSON: {exc}") from exc
    return import_document(data)


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------


def repair_import_data(document: TreeDocument, id_factory: IdFactory = new_id) -> TreeDocument:
    """
    Re-issue every id in an imported document so it can live next to the
    document it came from. References (node → type, field → definition) are
    remapped; references that pointed nowhere become None.
    """
    type_ids: dict[str, str] = {}
    definition_ids: dict[str, str] = {}

    node_types: list[NodeType] = []
    for node_type in document.node_types:
        type_ids[node_type.id] = id_factory()
        definitions = []
        for definition in node_type.field_definitions:
            definition_ids[definition.id] = id_factory()
            definitions.append(replace(definition, id=definition_ids[definition.id]))
        node_types.append(replace(node_type, id=type_ids[node_type.id], field_definitions=definitions))

    def repair_field(f: CustomField) -> CustomField:
        return replace(
            f,
            id=id_factory(),
            definition_id=definition_ids.get(f.definition_id) if f.definition_id else None,
        )

    def repair_node(node: Node) -> Node:
        return replace(
            node,
            id=id_factory(),
            node_type=type_ids.get(node.node_type) if node.node_type else None,
            custom_fields=[repair_field(f) for f in node.custom_fields],
            children=[repair_node(c) for c in node.children],
        )

    return TreeDocument(
        tree=[repair_node(n) for n in document.tree],
        node_types=node_types,
        tree_title=document.tree_title,
    )
