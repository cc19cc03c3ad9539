"""
Arbor Kernel — Projection Engine

Derives what the view shows from a search result list:
  - the highlighted path (ids from a root to the selected match)
  - focus mode (on whenever there is at least one result)
  - which nodes stay visible under focus mode
  - a display copy of the forest with the highlighted path expanded

None of this touches the authoritative forest. expand_ancestors() produces a
separate display forest so browsing results never rewrites the user's saved
expand/collapse choices.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from arbor.kernel.query import SearchResult, search
from arbor.kernel.store import map_forest
from arbor.kernel.types import Forest, Node, NodeType

# ---------------------------------------------------------------------------
# Pure projections
# ---------------------------------------------------------------------------


def highlighted_path(result: SearchResult) -> frozenset[str]:
    return frozenset(n.id for n in result.path)


def is_focus_mode(results: list[SearchResult]) -> bool:
    return len(results) > 0


def has_highlighted_descendant(node: Node, highlighted: frozenset[str] | set[str]) -> bool:
    """True if node itself or anything below it is highlighted."""
    if node.id in highlighted:
        return True
    return any(has_highlighted_descendant(child, highlighted) for child in node.children)


def is_visible(node: Node, highlighted: frozenset[str] | set[str], focus_mode: bool) -> bool:
    if not focus_mode:
        return True
    return has_highlighted_descendant(node, highlighted)


def is_target_node(node: Node, highlighted: frozenset[str] | set[str]) -> bool:
    """The last node of the highlighted path, i.e. the match itself."""
    if node.id not in highlighted:
        return False
    return len(highlighted) == 1 or all(child.id not in highlighted for child in node.children)


def visible_ids(forest: Forest, highlighted: frozenset[str] | set[str], focus_mode: bool) -> set[str]:
    """Ids that would render. A hidden node hides its whole subtree."""
    ids: set[str] = set()

    def walk(nodes: list[Node]) -> None:
        for node in nodes:
            if is_visible(node, highlighted, focus_mode):
                ids.add(node.id)
                walk(node.children)

    walk(forest)
    return ids


def focus_filter(forest: Forest, highlighted: frozenset[str] | set[str]) -> Forest:
    """Display forest with every subtree off the highlighted path dropped."""
    return [
        replace(node, children=focus_filter(node.children, highlighted))
        for node in forest
        if has_highlighted_descendant(node, highlighted)
    ]


def expand_ancestors(forest: Forest, path: list[str] | list[Node]) -> Forest:
    """Copy of forest with is_expanded forced True on every node of path."""
    ids = {p.id if isinstance(p, Node) else p for p in path}
    if not ids:
        return forest

    def expand(node: Node) -> Node:
        if node.id in ids and node.is_expanded is not True:
            return replace(node, is_expanded=True)
        return node

    return map_forest(forest, expand)


# ---------------------------------------------------------------------------
# View state
# ---------------------------------------------------------------------------


@dataclass
class SearchState:
    """
    Caller-owned search view state. Call recompute() after every mutation or
    query change; nothing here updates implicitly.
    """

    query: str = ""
    results: list[SearchResult] = field(default_factory=list)
    selected_index: int = 0
    highlighted: frozenset[str] = frozenset()
    focus_mode: bool = False
    expanded_tree: Forest = field(default_factory=list)
    _forest: Forest = field(default_factory=list, repr=False)

    def recompute(self, forest: Forest, node_types: list[NodeType], query: str | None = None) -> None:
        if query is not None:
            self.query = query
        self._forest = forest
        self.results = search(forest, self.query, node_types)
        self.selected_index = 0
        self.focus_mode = is_focus_mode(self.results)
        if self.results:
            self._highlight(self.results[0])
        else:
            self.highlighted = frozenset()
            self.expanded_tree = forest

    @property
    def selected(self) -> SearchResult | None:
        if 0 <= self.selected_index < len(self.results):
            return self.results[self.selected_index]
        return None

    def select(self, index: int) -> None:
        """Out-of-range indexes are ignored."""
        if 0 <= index < len(self.results):
            self.selected_index = index
            self._highlight(self.results[index])

    def select_next(self) -> None:
        if self.results:
            self.select((self.selected_index + 1) % len(self.results))

    def select_previous(self) -> None:
        if self.results:
            index = len(self.results) - 1 if self.selected_index <= 0 else self.selected_index - 1
            self.select(index)

    def clear(self) -> None:
        self.query = ""
        self.results = []
        self.selected_index = 0
        self.highlighted = frozenset()
        self.focus_mode = False
        self.expanded_tree = self._forest

    def open_result(self, index: int) -> SearchResult | None:
        """
        Pick a result to open in detail: clears the query and focus mode but
        leaves the chosen path highlighted and expanded.
        """
        if not 0 <= index < len(self.results):
            return None
        result = self.results[index]
        self.query = ""
        self.results = []
        self.selected_index = 0
        self.focus_mode = False
        self._highlight(result)
        return result

    def _highlight(self, result: SearchResult) -> None:
        self.highlighted = highlighted_path(result)
        self.expanded_tree = expand_ancestors(self._forest, result.path_ids)
