"""
Arbor Kernel — Shared Types

Data classes used across the store, mutations, query, projection and schema
modules. These are the contracts that bind the kernel together.

Wire format (serialized tree document) uses camelCase keys:
- Node: id, name, children, isExpanded, icon, nodeType, customFields
- NodeType: id, name, icon, fieldDefinitions
- CustomFieldDefinition: id, name, type, required
- CustomField: id, name, value, type, definitionId

Kernel functions treat every instance as immutable. Updates go through
dataclasses.replace() on the path being changed; untouched subtrees are shared.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------

FIELD_TYPES: set[str] = {
    "text",
    "textarea",
    "link",
    "youtube",
    "image",
    "audio",
}

DEFAULT_FIELD_TYPE = "text"

Forest = list["Node"]
IdFactory = Callable[[], str]


class Placement(str, Enum):
    """Where a dragged node lands relative to the drop target."""

    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


class IconKind(str, Enum):
    """How an icon string is rendered. Resolved once, by prefix."""

    NONE = "none"
    GLYPH = "glyph"
    REMOTE_IMAGE = "remote_image"
    INLINE_IMAGE = "inline_image"
    INLINE_AUDIO = "inline_audio"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class CustomFieldDefinition:
    """One field slot declared by a NodeType."""

    id: str
    name: str
    type: str = DEFAULT_FIELD_TYPE
    required: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "required": self.required,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CustomFieldDefinition:
        return cls(
            id=d["id"],
            name=d["name"],
            type=d.get("type", DEFAULT_FIELD_TYPE),
            required=bool(d.get("required", False)),
        )


@dataclass
class NodeType:
    """Schema for a family of nodes: a name, an icon and ordered field definitions."""

    id: str
    name: str
    icon: str = ""
    field_definitions: list[CustomFieldDefinition] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "fieldDefinitions": [d.to_dict() for d in self.field_definitions],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> NodeType:
        return cls(
            id=d["id"],
            name=d["name"],
            icon=d.get("icon") or "",
            field_definitions=[CustomFieldDefinition.from_dict(x) for x in d.get("fieldDefinitions", [])],
        )


@dataclass
class CustomField:
    """
    Instance data on a node.

    `type` is copied from the definition at creation time and may drift if the
    definition later changes. `definition_id` is None for free-form fields.
    """

    id: str
    name: str
    value: str = ""
    type: str = DEFAULT_FIELD_TYPE
    definition_id: str | None = None

    @property
    def key(self) -> str:
        """Identity used by reconciliation: the definition id, or the field id for legacy data."""
        return self.definition_id or self.id

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "value": self.value,
            "type": self.type,
        }
        if self.definition_id is not None:
            d["definitionId"] = self.definition_id
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CustomField:
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            value=d.get("value") or "",
            type=d.get("type", DEFAULT_FIELD_TYPE),
            # Older documents stored the definition reference as fieldId
            definition_id=d.get("definitionId") or d.get("fieldId"),
        )


@dataclass
class Node:
    """A tree element. Owns its children exclusively."""

    id: str
    name: str
    children: list[Node] = field(default_factory=list)
    is_expanded: bool | None = None
    icon: str | None = None
    node_type: str | None = None
    custom_fields: list[CustomField] = field(default_factory=list)

    @property
    def icon_kind(self) -> IconKind:
        return classify_icon(self.icon)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "children": [c.to_dict() for c in self.children],
        }
        if self.is_expanded is not None:
            d["isExpanded"] = self.is_expanded
        if self.icon is not None:
            d["icon"] = self.icon
        if self.node_type is not None:
            d["nodeType"] = self.node_type
        d["customFields"] = [f.to_dict() for f in self.custom_fields]
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Node:
        return cls(
            id=d["id"],
            name=d["name"],
            children=[Node.from_dict(c) for c in d.get("children", [])],
            is_expanded=d.get("isExpanded"),
            icon=d.get("icon") or None,
            node_type=d.get("nodeType") or None,
            custom_fields=[CustomField.from_dict(f) for f in d.get("customFields") or []],
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def new_id() -> str:
    """Fresh opaque id for nodes, fields and node types."""
    return str(uuid.uuid4())


def classify_icon(icon: str | None) -> IconKind:
    """
    Decide how an icon string should be treated.

      "http..."        → REMOTE_IMAGE
      "data:image/..." → INLINE_IMAGE
      "data:audio/..." → INLINE_AUDIO
      "" / None        → NONE
      anything else    → GLYPH (emoji or short text)
    """
    if not icon:
        return IconKind.NONE
    if icon.startswith("http"):
        return IconKind.REMOTE_IMAGE
    if icon.startswith("data:image/"):
        return IconKind.INLINE_IMAGE
    if icon.startswith("data:audio/"):
        return IconKind.INLINE_AUDIO
    return IconKind.GLYPH


def forest_to_list(forest: Forest) -> list[dict[str, Any]]:
    return [n.to_dict() for n in forest]


def forest_from_list(items: list[dict[str, Any]]) -> Forest:
    return [Node.from_dict(d) for d in items]


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
