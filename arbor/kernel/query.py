"""
Arbor Kernel — Query Engine

Search syntax (case-insensitive, whitespace-delimited tokens):

  type:<value>          node's resolved type name contains <value>
  <field>:<value>       some custom field's name contains <field>
                        and its value contains <value>
  anything else         free text, matched against node name → glyph icon
                        → each custom field's name or value

All present predicates must hold. Results come out in depth-first pre-order.
The first free-text hit decides match_field / match_value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from arbor.kernel.schema import resolve_node_type
from arbor.kernel.types import Forest, IconKind, Node, NodeType

MATCH_NODE_TYPE = "Node type"
MATCH_NODE_NAME = "Node name"
MATCH_ICON = "Icon"

_TYPE_RE = re.compile(r"(?<!\S)type:(\S+)", re.IGNORECASE)
_FIELD_RE = re.compile(r"(?<!\S)([^:\s]+):(\S+)")


@dataclass
class ParsedQuery:
    text: str = ""
    type: str | None = None
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.text and self.type is None and not self.fields


@dataclass
class SearchResult:
    node: Node
    path: list[Node]
    match_field: str
    match_value: str

    @property
    def path_ids(self) -> list[str]:
        return [n.id for n in self.path]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_search_query(query: str) -> ParsedQuery:
    """
    Split a raw query into type qualifier, field qualifiers and free text.

      "type:Employee Department:Sales smith"
        → ParsedQuery(text="smith", type="Employee", fields={"Department": "Sales"})
    """
    result = ParsedQuery()
    if not query.strip():
        return result

    type_matches = _TYPE_RE.findall(query)
    if type_matches:
        result.type = type_matches[-1]
    remaining = _TYPE_RE.sub(" ", query)

    for name, value in _FIELD_RE.findall(remaining):
        result.fields[name] = value
    remaining = _FIELD_RE.sub(" ", remaining)

    result.text = " ".join(remaining.split())
    return result


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def search_tree(forest: Forest, parsed: ParsedQuery, node_types: list[NodeType]) -> list[SearchResult]:
    results: list[SearchResult] = []
    type_query = parsed.type.lower() if parsed.type else None
    field_queries = [(name.lower(), value.lower()) for name, value in parsed.fields.items()]
    text_query = parsed.text.lower()

    def visit(node: Node, ancestors: list[Node]) -> None:
        hit = _match_node(node, node_types, type_query, field_queries, text_query)
        path = [*ancestors, node]
        if hit is not None:
            results.append(SearchResult(node=node, path=path, match_field=hit[0], match_value=hit[1]))
        for child in node.children:
            visit(child, path)

    for root in forest:
        visit(root, [])
    return results


def search(forest: Forest, query: str, node_types: list[NodeType]) -> list[SearchResult]:
    """Parse and evaluate. A blank query matches nothing."""
    if not query.strip():
        return []
    return search_tree(forest, parse_search_query(query), node_types)


def _match_node(
    node: Node,
    node_types: list[NodeType],
    type_query: str | None,
    field_queries: list[tuple[str, str]],
    text_query: str,
) -> tuple[str, str] | None:
    """Returns (match_field, match_value) when every predicate holds, else None."""
    match_field = ""
    match_value = ""

    if type_query is not None:
        node_type = resolve_node_type(node_types, node.node_type)
        if node_type is None or type_query not in node_type.name.lower():
            return None
        match_field, match_value = MATCH_NODE_TYPE, node_type.name

    for name_query, value_query in field_queries:
        found = next(
            (
                f
                for f in node.custom_fields
                if name_query in f.name.lower() and value_query in f.value.lower()
            ),
            None,
        )
        if found is None:
            return None
        match_field, match_value = found.name, found.value

    if text_query:
        text_hit = _match_text(node, text_query)
        if text_hit is None:
            return None
        match_field, match_value = text_hit

    return match_field, match_value


def _match_text(node: Node, text_query: str) -> tuple[str, str] | None:
    if text_query in node.name.lower():
        return MATCH_NODE_NAME, node.name
    if node.icon_kind is IconKind.GLYPH and text_query in (node.icon or "").lower():
        return MATCH_ICON, node.icon or ""
    for f in node.custom_fields:
        if text_query in f.name.lower() or text_query in f.value.lower():
            return f.name, f.value
    return None
