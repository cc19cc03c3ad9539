"""
Arbor Reducer — rejections.

Verify that invalid or stale events are rejected with a reason code and leave
the document untouched. Each test checks accepted=False, the reason prefix,
and that the returned document is the input object.
"""

import pytest

from arbor.kernel.exchange import TreeDocument
from arbor.kernel.reducer import reduce


@pytest.fixture
def doc(forest, node_types):
    return TreeDocument(tree=forest, node_types=node_types)


def assert_rejected(doc, event, code):
    r = reduce(doc, event)
    assert not r.accepted
    assert r.reason.startswith(code), r.reason
    assert r.document is doc


class TestEnvelope:
    def test_missing_type(self, doc):
        assert_rejected(doc, {"ref": "alice"}, "MISSING_TYPE")

    def test_unknown_event(self, doc):
        assert_rejected(doc, {"t": "node.explode"}, "UNKNOWN_EVENT")


class TestNodeRejections:
    def test_add_missing_node(self, doc):
        assert_rejected(doc, {"t": "node.add"}, "MISSING_NODE")

    def test_add_invalid_node(self, doc):
        assert_rejected(doc, {"t": "node.add", "node": {"id": "x"}}, "INVALID_NODE")

    @pytest.mark.parametrize(
        "extra",
        [{"icon": 5}, {"nodeType": 3}, {"isExpanded": "maybe"}],
    )
    def test_add_mistyped_attribute(self, doc, extra):
        assert_rejected(doc, {"t": "node.add", "node": {"id": "x", "name": "X", **extra}}, "INVALID_NODE")

    def test_add_duplicate_id(self, doc):
        assert_rejected(doc, {"t": "node.add", "node": {"id": "alice", "name": "Again"}}, "NODE_EXISTS")

    @pytest.mark.parametrize("event_type", ["node.remove", "node.rename", "node.toggle", "node.move"])
    def test_missing_ref(self, doc, event_type):
        assert_rejected(doc, {"t": event_type, "name": "x"}, "MISSING_REF")

    @pytest.mark.parametrize("event_type", ["node.remove", "node.toggle"])
    def test_stale_ref(self, doc, event_type):
        assert_rejected(doc, {"t": event_type, "ref": "ghost"}, "NOT_FOUND")

    def test_rename_missing_name(self, doc):
        assert_rejected(doc, {"t": "node.rename", "ref": "alice"}, "MISSING_NAME")

    def test_rename_stale(self, doc):
        assert_rejected(doc, {"t": "node.rename", "ref": "ghost", "name": "x"}, "NOT_FOUND")

    def test_update_mistyped_icon(self, doc):
        assert_rejected(doc, {"t": "node.update", "node": {"id": "alice", "name": "Alice", "icon": 5}}, "INVALID_NODE")

    def test_update_stale(self, doc):
        assert_rejected(doc, {"t": "node.update", "node": {"id": "ghost", "name": "x"}}, "NOT_FOUND")


class TestMoveRejections:
    def test_self_drop(self, doc):
        assert_rejected(doc, {"t": "node.move", "ref": "sales", "target": "sales"}, "SELF_DROP")

    def test_cycle(self, doc):
        assert_rejected(doc, {"t": "node.move", "ref": "company", "target": "carol"}, "CYCLE")

    def test_missing_source(self, doc):
        assert_rejected(doc, {"t": "node.move", "ref": "ghost", "target": "eng"}, "NOT_FOUND")

    def test_missing_target(self, doc):
        assert_rejected(doc, {"t": "node.move", "ref": "alice", "target": "ghost"}, "NOT_FOUND")

    def test_bad_placement(self, doc):
        event = {"t": "node.move", "ref": "alice", "target": "eng", "placement": "under"}
        assert_rejected(doc, event, "INVALID_PLACEMENT")


class TestTypeRejections:
    def test_create_missing(self, doc):
        assert_rejected(doc, {"t": "type.create"}, "MISSING_TYPE_DEF")

    def test_create_invalid(self, doc):
        assert_rejected(doc, {"t": "type.create", "type": {"id": "t_x"}}, "INVALID_TYPE")

    def test_create_duplicate(self, doc):
        assert_rejected(doc, {"t": "type.create", "type": {"id": "t_org", "name": "Org"}}, "TYPE_EXISTS")

    def test_update_unknown(self, doc):
        assert_rejected(doc, {"t": "type.update", "ref": "t_ghost", "fields": []}, "NOT_FOUND")

    def test_update_invalid_fields(self, doc):
        event = {"t": "type.update", "ref": "t_employee", "fields": [{"name": "No id"}]}
        assert_rejected(doc, event, "INVALID_FIELDS")

    def test_remove_unknown(self, doc):
        assert_rejected(doc, {"t": "type.remove", "ref": "t_ghost"}, "NOT_FOUND")

    def test_title_missing(self, doc):
        assert_rejected(doc, {"t": "meta.title"}, "MISSING_TITLE")
