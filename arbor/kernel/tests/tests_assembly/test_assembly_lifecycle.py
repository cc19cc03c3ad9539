"""
Arbor Assembly — tree lifecycle over MemoryStorage.

create → load → edit → save → list → delete, plus import and the editor
session's search wiring.
"""

import pytest

from arbor.kernel.assembly import (
    MemoryStorage,
    StorageError,
    TreeAssembly,
    TreeNotFound,
)
from arbor.kernel.exchange import ImportValidationError, TreeDocument
from arbor.kernel.store import collect_ids, find_node
from arbor.kernel.types import Node


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def assembly(storage):
    return TreeAssembly(storage)


@pytest.fixture
def document(forest, node_types):
    return TreeDocument(tree=forest, node_types=node_types, tree_title="Org chart")


class FailingStorage(MemoryStorage):
    async def update_tree(self, tree_id, **kwargs):
        raise StorageError("disk full")


# ============================================================================
# Lifecycle
# ============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_create_empty(self, assembly, storage):
        editor = await assembly.create("Ideas")
        assert editor.title == "Ideas"
        assert editor.tree == []
        assert editor.tree_id in storage.trees

    @pytest.mark.asyncio
    async def test_create_with_document_uses_title(self, assembly, document):
        editor = await assembly.create("Renamed", document)
        assert editor.title == "Renamed"
        assert collect_ids(editor.tree) == collect_ids(document.tree)

    @pytest.mark.asyncio
    async def test_edit_save_reload(self, assembly, document):
        editor = await assembly.create("Org chart", document)
        editor.rename_node("eng", "R&D")
        editor.move("alice", "eng", "inside")
        await assembly.save(editor)

        reloaded = await assembly.load(editor.tree_id)
        assert find_node(reloaded.tree, "eng").node.name == "R&D"
        assert find_node(reloaded.tree, "alice").path == ["company", "eng", "alice"]

    @pytest.mark.asyncio
    async def test_storage_holds_copies(self, assembly, document):
        editor = await assembly.create("Org chart", document)
        editor.delete_node("company")
        reloaded = await assembly.load(editor.tree_id)
        assert find_node(reloaded.tree, "company").found

    @pytest.mark.asyncio
    async def test_list(self, assembly):
        first = await assembly.create("One")
        second = await assembly.create("Two")
        records = await assembly.list()
        assert {r.id for r in records} == {first.tree_id, second.tree_id}
        assert {r.name for r in records} == {"One", "Two"}

    @pytest.mark.asyncio
    async def test_delete(self, assembly):
        editor = await assembly.create("Temp")
        await assembly.delete(editor.tree_id)
        with pytest.raises(TreeNotFound):
            await assembly.load(editor.tree_id)

    @pytest.mark.asyncio
    async def test_missing_tree(self, assembly):
        with pytest.raises(TreeNotFound):
            await assembly.load("nope")
        with pytest.raises(TreeNotFound):
            await assembly.delete("nope")


class TestSaveFailures:
    @pytest.mark.asyncio
    async def test_storage_error_propagates_and_editor_keeps_state(self, document):
        assembly = TreeAssembly(FailingStorage())
        editor = await assembly.create("Org chart", document)
        editor.rename_node("bob", "Robert")
        with pytest.raises(StorageError):
            await assembly.save(editor)
        assert find_node(editor.tree, "bob").node.name == "Robert"

    @pytest.mark.asyncio
    async def test_save_deleted_tree(self, assembly, storage):
        editor = await assembly.create("Gone")
        del storage.trees[editor.tree_id]
        with pytest.raises(TreeNotFound):
            await assembly.save(editor)


# ============================================================================
# Import / export
# ============================================================================


class TestImport:
    @pytest.mark.asyncio
    async def test_import_repairs_ids(self, assembly, document):
        editor = await assembly.import_tree(document.to_dict())
        assert editor.title == "Org chart"
        assert set(collect_ids(editor.tree)).isdisjoint(collect_ids(document.tree))
        assert [n.name for n in editor.tree] == ["Acme Corp", "Archive"]

    @pytest.mark.asyncio
    async def test_import_without_repair(self, assembly, document):
        editor = await assembly.import_tree(document.to_dict(), repair=False)
        assert collect_ids(editor.tree) == collect_ids(document.tree)

    @pytest.mark.asyncio
    async def test_invalid_import_stores_nothing(self, assembly, storage):
        with pytest.raises(ImportValidationError):
            await assembly.import_tree({"tree": [{"id": "a"}], "nodeTypes": []})
        assert storage.trees == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("repair", [True, False])
    async def test_duplicate_ids_store_nothing(self, assembly, storage, repair):
        payload = {
            "tree": [
                {"id": "x", "name": "X", "children": []},
                {"id": "t", "name": "T", "children": [{"id": "x", "name": "X2", "children": []}]},
            ],
            "nodeTypes": [],
        }
        with pytest.raises(ImportValidationError):
            await assembly.import_tree(payload, repair=repair)
        assert storage.trees == {}

    @pytest.mark.asyncio
    async def test_export_round_trip(self, assembly, document):
        editor = await assembly.create("Org chart", document)
        again = await assembly.import_tree(editor.export(), repair=False)
        assert again.document == editor.document


# ============================================================================
# Editor session
# ============================================================================


class TestEditorSession:
    @pytest.mark.asyncio
    async def test_search_follows_mutations(self, assembly, document):
        editor = await assembly.create("Org chart", document)
        editor.set_query("type:employee")
        assert [r.node.id for r in editor.search.results] == ["alice", "bob", "carol"]

        editor.delete_node("bob")
        assert [r.node.id for r in editor.search.results] == ["alice", "carol"]

        editor.add_node(Node(id="dave", name="Dave", node_type="t_employee"), "eng")
        assert [r.node.id for r in editor.search.results] == ["alice", "carol", "dave"]

    @pytest.mark.asyncio
    async def test_rejected_edit_keeps_document(self, assembly, document):
        editor = await assembly.create("Org chart", document)
        before = editor.document
        result = editor.move("company", "carol", "inside")
        assert not result.accepted
        assert result.reason.startswith("CYCLE")
        assert editor.document is before

    @pytest.mark.asyncio
    async def test_move_to_root(self, assembly, document):
        editor = await assembly.create("Org chart", document)
        assert editor.move("carol", None).accepted
        assert [n.id for n in editor.tree] == ["company", "archive", "carol"]

    @pytest.mark.asyncio
    async def test_toggle(self, assembly, document):
        editor = await assembly.create("Org chart", document)
        editor.toggle_expand("company")
        assert editor.tree[0].is_expanded is True
