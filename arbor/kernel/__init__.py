"""
Arbor Kernel — the pure tree engine.

Components:
  store       — find / remove / update primitives over a forest
  mutations   — add, delete, rename, toggle and drag-and-drop move
  query       — search query parsing and evaluation
  projection  — highlight, focus-mode and expand projections of results
  schema      — node-type field diffs and reconciliation into node data
  validation  — node form checks (required fields, link values)
  exchange    — tree document import / export / id repair
  reducer     — (document, event) → document  (pure, never raises)
  assembly    — coordinates reducer + search + storage (IO lives here)
  autosave    — debounced last-write-wins persistence
"""

from arbor.kernel.assembly import MemoryStorage, TreeAssembly, TreeEditor
from arbor.kernel.exchange import TreeDocument, import_document
from arbor.kernel.mutations import (
    add_node,
    classify_placement,
    delete_node,
    move,
    rename_node,
    toggle_expand,
)
from arbor.kernel.projection import SearchState, expand_ancestors, highlighted_path
from arbor.kernel.query import parse_search_query, search, search_tree
from arbor.kernel.reducer import reduce, reduce_all
from arbor.kernel.schema import apply_field_changes, diff_field_definitions
from arbor.kernel.store import find_node, remove_node

__all__ = [
    "find_node",
    "remove_node",
    "add_node",
    "delete_node",
    "rename_node",
    "toggle_expand",
    "move",
    "classify_placement",
    "parse_search_query",
    "search",
    "search_tree",
    "highlighted_path",
    "expand_ancestors",
    "SearchState",
    "diff_field_definitions",
    "apply_field_changes",
    "reduce",
    "reduce_all",
    "TreeDocument",
    "import_document",
    "TreeAssembly",
    "TreeEditor",
    "MemoryStorage",
]
