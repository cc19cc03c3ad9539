"""
Arbor Kernel — Assembly Layer

Sits between the pure functions (reducer, query, projection) and the outside
world (storage). Coordinates the lifecycle of a tree document.

Operations: list, load, create, import, save, delete

This is where IO happens. Everything under it is pure.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from arbor.kernel.autosave import AutoSaver, SaveStats
from arbor.kernel.exchange import (
    DEFAULT_TITLE,
    TreeDocument,
    create_export_data,
    import_document,
    repair_import_data,
)
from arbor.kernel.projection import SearchState
from arbor.kernel.reducer import ReduceResult, reduce
from arbor.kernel.types import Node, Placement, new_id, now_iso

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StorageError(Exception):
    """The storage adapter could not complete an operation."""

    pass


class TreeNotFound(StorageError):
    """Tree does not exist in storage."""

    pass


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class TreeRecord:
    """One stored tree: metadata plus its document."""

    id: str
    name: str
    document: TreeDocument
    description: str | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "document": self.document.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TreeRecord:
        return cls(
            id=d["id"],
            name=d["name"],
            description=d.get("description"),
            document=TreeDocument.from_dict(d.get("document", {})),
            created_at=d.get("createdAt", now_iso()),
            updated_at=d.get("updatedAt", now_iso()),
        )


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class TreeStorage:
    """
    Abstract storage interface.
    Implement with Postgres for production, or in-memory for tests.
    Failures raise StorageError.
    """

    async def get_trees(self) -> list[TreeRecord]:
        """All stored trees, most recently updated first."""
        raise NotImplementedError

    async def get_tree(self, tree_id: str) -> TreeRecord | None:
        """Fetch one tree. Returns None if not found."""
        raise NotImplementedError

    async def create_tree(
        self,
        name: str,
        document: TreeDocument,
        description: str | None = None,
    ) -> TreeRecord:
        """Store a new tree; the storage assigns id and timestamps."""
        raise NotImplementedError

    async def update_tree(
        self,
        tree_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        document: TreeDocument | None = None,
    ) -> TreeRecord | None:
        """Partial update. Returns None if not found."""
        raise NotImplementedError

    async def delete_tree(self, tree_id: str) -> bool:
        """Returns False if there was nothing to delete."""
        raise NotImplementedError


class MemoryStorage(TreeStorage):
    """In-memory storage for testing. Stores serialized copies, never live objects."""

    def __init__(self) -> None:
        self.trees: dict[str, dict[str, Any]] = {}

    async def get_trees(self) -> list[TreeRecord]:
        records = [TreeRecord.from_dict(copy.deepcopy(d)) for d in self.trees.values()]
        return sorted(records, key=lambda r: r.updated_at, reverse=True)

    async def get_tree(self, tree_id: str) -> TreeRecord | None:
        d = self.trees.get(tree_id)
        return TreeRecord.from_dict(copy.deepcopy(d)) if d is not None else None

    async def create_tree(
        self,
        name: str,
        document: TreeDocument,
        description: str | None = None,
    ) -> TreeRecord:
        record = TreeRecord(id=new_id(), name=name, description=description, document=document)
        self.trees[record.id] = record.to_dict()
        return TreeRecord.from_dict(copy.deepcopy(self.trees[record.id]))

    async def update_tree(
        self,
        tree_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        document: TreeDocument | None = None,
    ) -> TreeRecord | None:
        d = self.trees.get(tree_id)
        if d is None:
            return None
        if name is not None:
            d["name"] = name
        if description is not None:
            d["description"] = description
        if document is not None:
            d["document"] = document.to_dict()
        d["updatedAt"] = now_iso()
        return TreeRecord.from_dict(copy.deepcopy(d))

    async def delete_tree(self, tree_id: str) -> bool:
        return self.trees.pop(tree_id, None) is not None


# ---------------------------------------------------------------------------
# Editor session
# ---------------------------------------------------------------------------


class TreeEditor:
    """
    In-memory editing session for one tree.

    Every change goes through apply(), which runs the reducer, swaps in the new
    document, re-runs the search and hands the document to the autosaver.
    """

    def __init__(
        self,
        tree_id: str,
        document: TreeDocument,
        *,
        autosaver: AutoSaver | None = None,
    ) -> None:
        self.tree_id = tree_id
        self.document = document
        self.autosaver = autosaver
        self.search = SearchState()
        self.search.recompute(document.tree, document.node_types)

    @property
    def tree(self) -> list[Node]:
        return self.document.tree

    @property
    def title(self) -> str:
        return self.document.tree_title

    def apply(self, event: dict[str, Any]) -> ReduceResult:
        result = reduce(self.document, event)
        if not result.accepted:
            logger.debug("editor %s: %s rejected: %s", self.tree_id, event.get("t"), result.reason)
            return result

        self.document = result.document
        self.search.recompute(self.document.tree, self.document.node_types)
        if self.autosaver is not None:
            self.autosaver.notify(self.document)
        return result

    # -- convenience wrappers --

    def add_node(self, node: Node, parent_id: str | None = None) -> ReduceResult:
        event: dict[str, Any] = {"t": "node.add", "node": node.to_dict()}
        if parent_id is not None:
            event["parent"] = parent_id
        return self.apply(event)

    def delete_node(self, node_id: str) -> ReduceResult:
        return self.apply({"t": "node.remove", "ref": node_id})

    def rename_node(self, node_id: str, name: str) -> ReduceResult:
        return self.apply({"t": "node.rename", "ref": node_id, "name": name})

    def toggle_expand(self, node_id: str) -> ReduceResult:
        return self.apply({"t": "node.toggle", "ref": node_id})

    def move(self, source_id: str, target_id: str | None, placement: Placement | str = Placement.INSIDE) -> ReduceResult:
        return self.apply({"t": "node.move", "ref": source_id, "target": target_id, "placement": Placement(placement)})

    def set_query(self, query: str) -> None:
        self.search.recompute(self.document.tree, self.document.node_types, query)

    def export(self) -> dict[str, Any]:
        return create_export_data(self.document)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


class TreeAssembly:
    """
    Manages the lifecycle of stored trees.
    Coordinates reducer + editor sessions + storage.
    """

    def __init__(self, storage: TreeStorage, *, autosave: bool = False) -> None:
        self._storage = storage
        self._autosave = autosave

    async def list(self) -> list[TreeRecord]:
        return await self._storage.get_trees()

    async def load(self, tree_id: str, *, stats: SaveStats | None = None) -> TreeEditor:
        record = await self._storage.get_tree(tree_id)
        if record is None:
            raise TreeNotFound(tree_id)
        logger.info("assembly: loaded tree %s (%d roots)", tree_id, len(record.document.tree))
        return self._editor(record, stats)

    async def create(
        self,
        title: str = DEFAULT_TITLE,
        document: TreeDocument | None = None,
        *,
        description: str | None = None,
    ) -> TreeEditor:
        document = document or TreeDocument(tree_title=title)
        if document.tree_title != title:
            document = TreeDocument(tree=document.tree, node_types=document.node_types, tree_title=title)
        record = await self._storage.create_tree(title, document, description)
        logger.info("assembly: created tree %s", record.id)
        return self._editor(record, None)

    async def import_tree(self, data: Any, *, repair: bool = True) -> TreeEditor:
        """
        Validate an import payload and store it as a new tree.
        Raises ImportValidationError before touching storage if invalid.
        """
        document = import_document(data)
        if repair:
            document = repair_import_data(document)
        return await self.create(document.tree_title, document)

    async def save(self, editor: TreeEditor) -> None:
        """Write the editor's document. The editor keeps its state on failure."""
        try:
            record = await self._storage.update_tree(
                editor.tree_id,
                name=editor.title,
                document=editor.document,
            )
        except StorageError:
            logger.exception("assembly: save failed for tree %s", editor.tree_id)
            raise
        if record is None:
            raise TreeNotFound(editor.tree_id)

    async def delete(self, tree_id: str) -> None:
        if not await self._storage.delete_tree(tree_id):
            raise TreeNotFound(tree_id)
        logger.info("assembly: deleted tree %s", tree_id)

    def _editor(self, record: TreeRecord, stats: SaveStats | None) -> TreeEditor:
        autosaver = None
        if self._autosave:
            tree_id = record.id

            async def persist(document: TreeDocument) -> None:
                await self._storage.update_tree(tree_id, name=document.tree_title, document=document)

            autosaver = AutoSaver(persist, stats=stats)
        return TreeEditor(record.id, record.document, autosaver=autosaver)
