"""Tests for name matching between graphs."""

from planner.models.graph import ProcessNode
from planner.services.graph_index import GraphIndex
from planner.services.name_matcher import NameMatcher, match_name


class TestMatchName:
    """Tests for match_name."""

    def test_case_and_punctuation_insensitive(self, invoice_nodes):
        index = GraphIndex(invoice_nodes)
        assert match_name("Approve Invoice!", index) == "Task_Approve"
        assert match_name("approve invoice", index) == "Task_Approve"

    def test_no_match(self, invoice_nodes):
        index = GraphIndex(invoice_nodes)
        assert match_name("Archive", index) is None

    def test_empty_label(self, invoice_nodes):
        index = GraphIndex(invoice_nodes)
        assert match_name("", index) is None
        assert match_name("  -- ", index) is None
        assert match_name(None, index) is None


class TestNameMatcher:
    """Tests for matching source nodes against a target graph."""

    def test_match_node_by_name(self):
        source = GraphIndex([ProcessNode(id="taskX", name="Review")])
        target = GraphIndex([ProcessNode(id="Task_R2", name="review")])
        assert NameMatcher(target).match_node("taskX", source) == "Task_R2"

    def test_match_node_falls_back_to_id(self):
        source = GraphIndex([ProcessNode(id="Task_Check")])
        target = GraphIndex([ProcessNode(id="other", name="Task Check")])
        assert NameMatcher(target).match_node("Task_Check", source) == "other"

    def test_unknown_source_node_uses_id(self):
        source = GraphIndex([])
        target = GraphIndex([ProcessNode(id="Pay", name="pay")])
        assert NameMatcher(target).match_node("Pay", source) == "Pay"

    def test_does_not_match_different_names(self):
        source = GraphIndex([ProcessNode(id="a", name="Ship order")])
        target = GraphIndex([ProcessNode(id="b", name="Ship orders")])
        assert NameMatcher(target).match_node("a", source) is None
