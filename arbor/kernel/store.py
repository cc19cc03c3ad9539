"""
Arbor Kernel — Tree Store

Primitives over a forest (ordered list of root Nodes). Every function is pure:
the input forest is never modified. Updates copy only the nodes on the path to
the change and share every untouched subtree with the input.

Functions that find nothing to change return the input list itself, so
callers can detect a no-op with `result is forest`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field, replace

from arbor.kernel.types import Forest, Node

# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FindResult:
    """
    Outcome of find_node.
    `path` lists ids from a root down to and including the node.
    """

    node: Node | None
    path: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.node is not None


NOT_FOUND = FindResult(node=None, path=[])


def find_node(forest: Forest, node_id: str) -> FindResult:
    """Depth-first pre-order search. Returns NOT_FOUND when the id is absent."""

    def search(nodes: list[Node], ancestors: list[str]) -> FindResult:
        for node in nodes:
            if node.id == node_id:
                return FindResult(node=node, path=[*ancestors, node.id])
            if node.children:
                result = search(node.children, [*ancestors, node.id])
                if result.found:
                    return result
        return NOT_FOUND

    return search(forest, [])


def iter_nodes(forest: Forest) -> Iterator[tuple[Node, list[Node]]]:
    """Yield (node, ancestors) in depth-first pre-order."""
    stack: list[tuple[Node, list[Node]]] = [(n, []) for n in reversed(forest)]
    while stack:
        node, ancestors = stack.pop()
        yield node, ancestors
        lineage = [*ancestors, node]
        for child in reversed(node.children):
            stack.append((child, lineage))


def collect_ids(nodes: Iterable[Node]) -> list[str]:
    """All ids in the given subtrees, pre-order. Duplicates are kept."""
    return [node.id for node, _ in iter_nodes(list(nodes))]


def count_nodes(forest: Forest) -> int:
    return sum(1 for _ in iter_nodes(forest))


def get_descendant_ids(node: Node) -> set[str]:
    """Ids strictly below `node`."""
    return set(collect_ids(node.children))


# ---------------------------------------------------------------------------
# Structural updates
# ---------------------------------------------------------------------------


def remove_node(forest: Forest, node_id: str) -> Forest:
    """Remove the node (and its subtree) wherever it occurs. No-op if absent."""
    changed = False
    result: Forest = []
    for node in forest:
        if node.id == node_id:
            changed = True
            continue
        if node.children:
            children = remove_node(node.children, node_id)
            if children is not node.children:
                node = replace(node, children=children)
                changed = True
        result.append(node)
    return result if changed else forest


def update_node(forest: Forest, node_id: str, fn: Callable[[Node], Node]) -> Forest:
    """
    Replace the addressed node with fn(node), copying its ancestors.
    Returns the input forest when the id is absent.
    """
    for index, node in enumerate(forest):
        if node.id == node_id:
            updated = fn(node)
            return [*forest[:index], updated, *forest[index + 1 :]]
        if node.children:
            children = update_node(node.children, node_id, fn)
            if children is not node.children:
                return [*forest[:index], replace(node, children=children), *forest[index + 1 :]]
    return forest


def map_forest(forest: Forest, fn: Callable[[Node], Node]) -> Forest:
    """
    Apply fn bottom-up to every node. fn receives the node with its children
    already mapped. Nodes fn returns unchanged are shared with the input.
    """
    changed = False
    result: Forest = []
    for node in forest:
        mapped = node
        if node.children:
            children = map_forest(node.children, fn)
            if children is not node.children:
                mapped = replace(node, children=children)
        mapped = fn(mapped)
        if mapped is not node:
            changed = True
        result.append(mapped)
    return result if changed else forest
