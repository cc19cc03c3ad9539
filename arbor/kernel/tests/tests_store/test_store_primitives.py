"""
Arbor Tree Store — find / remove / update primitives.
"""

import copy
from dataclasses import replace

from arbor.kernel.store import (
    NOT_FOUND,
    collect_ids,
    count_nodes,
    find_node,
    get_descendant_ids,
    iter_nodes,
    map_forest,
    remove_node,
    update_node,
)
from arbor.kernel.types import Node, forest_to_list


class TestFindNode:
    def test_finds_root(self, forest):
        result = find_node(forest, "company")
        assert result.found
        assert result.node is forest[0]
        assert result.path == ["company"]

    def test_finds_nested_with_path(self, forest):
        result = find_node(forest, "bob")
        assert result.node.name == "Bob Jones"
        assert result.path == ["company", "sales", "bob"]

    def test_missing_returns_sentinel(self, forest):
        result = find_node(forest, "nobody")
        assert result is NOT_FOUND
        assert not result.found
        assert result.path == []

    def test_empty_forest(self):
        assert not find_node([], "x").found

    def test_second_root(self, forest):
        assert find_node(forest, "archive").path == ["archive"]


class TestRemoveNode:
    def test_removes_leaf(self, forest):
        result = remove_node(forest, "bob")
        assert not find_node(result, "bob").found
        assert [c.id for c in result[0].children[0].children] == ["alice"]

    def test_removes_subtree(self, forest):
        result = remove_node(forest, "sales")
        for node_id in ("sales", "alice", "bob"):
            assert not find_node(result, node_id).found
        assert find_node(result, "carol").found

    def test_removes_root(self, forest):
        result = remove_node(forest, "company")
        assert [n.id for n in result] == ["archive"]

    def test_missing_is_noop_same_object(self, forest):
        assert remove_node(forest, "nobody") is forest

    def test_does_not_mutate_input(self, forest):
        before = copy.deepcopy(forest_to_list(forest))
        remove_node(forest, "alice")
        assert forest_to_list(forest) == before

    def test_untouched_subtrees_are_shared(self, forest):
        result = remove_node(forest, "alice")
        assert result[0].children[1] is forest[0].children[1]
        assert result[1] is forest[1]


class TestUpdateNode:
    def test_updates_target_only(self, forest):
        result = update_node(forest, "carol", lambda n: replace(n, name="Carol W."))
        assert find_node(result, "carol").node.name == "Carol W."
        assert find_node(forest, "carol").node.name == "Carol White"

    def test_missing_returns_input(self, forest):
        assert update_node(forest, "ghost", lambda n: replace(n, name="x")) is forest


class TestTraversal:
    def test_iter_nodes_is_preorder(self, forest):
        ids = [node.id for node, _ in iter_nodes(forest)]
        assert ids == ["company", "sales", "alice", "bob", "eng", "carol", "archive"]

    def test_iter_nodes_ancestors(self, forest):
        lineage = {node.id: [a.id for a in ancestors] for node, ancestors in iter_nodes(forest)}
        assert lineage["carol"] == ["company", "eng"]
        assert lineage["archive"] == []

    def test_collect_and_count(self, forest):
        assert len(collect_ids(forest)) == count_nodes(forest) == 7

    def test_descendant_ids(self, forest):
        assert get_descendant_ids(forest[0]) == {"sales", "alice", "bob", "eng", "carol"}
        assert get_descendant_ids(Node(id="x", name="x")) == set()

    def test_map_forest_identity_returns_input(self, forest):
        assert map_forest(forest, lambda n: n) is forest
