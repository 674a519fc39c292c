"""Tests for the modification plan store."""

from planner.models.plan import (
    AddAfterOperation,
    AddBeforeOperation,
    CancelOperation,
    MoveDirection,
    MoveOperation,
    OperationKind,
    PlanVariable,
    VariableType,
)
from planner.services.plan_store import PlanStore, describe_operation, inherit_variables


class TestAddOperation:
    """Tests for add-before, add-after and cancel entries."""

    def test_append(self):
        store = PlanStore().add_operation(OperationKind.ADD_BEFORE, "taskA")
        assert store.operations == (AddBeforeOperation(activity_id="taskA"),)

    def test_receiver_unchanged(self):
        empty = PlanStore()
        empty.add_operation(OperationKind.CANCEL, "taskA")
        assert len(empty) == 0

    def test_duplicate_is_noop(self):
        store = PlanStore().add_operation(OperationKind.CANCEL, "taskA")
        assert store.add_operation(OperationKind.CANCEL, "taskA") is store

    def test_add_after_replaces_add_before(self):
        store = (
            PlanStore()
            .add_operation(OperationKind.ADD_BEFORE, "taskA")
            .add_operation(OperationKind.ADD_AFTER, "taskA")
        )
        assert store.operations == (AddAfterOperation(activity_id="taskA"),)

    def test_add_before_replaces_add_after(self):
        store = (
            PlanStore()
            .add_operation(OperationKind.ADD_AFTER, "taskA")
            .add_operation(OperationKind.CANCEL, "taskB")
            .add_operation(OperationKind.ADD_BEFORE, "taskA")
        )
        assert store.operations == (
            CancelOperation(activity_id="taskB"),
            AddBeforeOperation(activity_id="taskA"),
        )

    def test_cancel_and_add_coexist(self):
        store = (
            PlanStore()
            .add_operation(OperationKind.CANCEL, "taskA")
            .add_operation(OperationKind.ADD_BEFORE, "taskA")
        )
        assert len(store) == 2

    def test_move_kind_is_noop(self):
        store = PlanStore()
        assert store.add_operation(OperationKind.MOVE, "taskA") is store

    def test_empty_activity_is_noop(self):
        store = PlanStore()
        assert store.add_operation(OperationKind.CANCEL, "") is store

    def test_existing_add_kind(self):
        store = PlanStore().add_operation(OperationKind.ADD_AFTER, "taskA")
        assert store.existing_add_kind("taskA") == OperationKind.ADD_AFTER
        assert store.existing_add_kind("taskB") is None


class TestMoves:
    """Tests for the move gesture and bulk moves."""

    def test_first_toggle_records_source(self):
        store = PlanStore().toggle_move_selection("taskA")
        assert store.move_source_id == "taskA"
        assert len(store) == 0

    def test_second_toggle_on_other_node_commits(self):
        store = PlanStore().toggle_move_selection("taskA").toggle_move_selection("taskB")
        assert store.move_source_id is None
        assert store.operations == (
            MoveOperation(from_activity_id="taskA", to_activity_id="taskB"),
        )

    def test_second_toggle_on_same_node_cancels(self):
        store = PlanStore().toggle_move_selection("taskA").toggle_move_selection("taskA")
        assert store.move_source_id is None
        assert len(store) == 0

    def test_clear_move_selection(self):
        store = PlanStore().toggle_move_selection("taskA").clear_move_selection()
        assert store.move_source_id is None

    def test_move_to_many_is_idempotent(self):
        store = PlanStore().add_move_to_many("taskB", ["taskA"])
        again = store.add_move_to_many("taskB", ["taskA"])
        assert again is store
        assert again.operations == (
            MoveOperation(from_activity_id="taskA", to_activity_id="taskB"),
        )

    def test_move_to_many_skips_duplicate_sources(self):
        store = PlanStore().add_move_to_many("taskC", ["taskA", "taskA", "taskB"])
        assert [op.from_activity_id for op in store.operations] == ["taskA", "taskB"]

    def test_move_to_here_uses_active_tokens(self):
        store = PlanStore().move_to_here("taskC", {"taskB", "taskA", "taskC"})
        assert store.operations == (
            MoveOperation(from_activity_id="taskA", to_activity_id="taskC"),
            MoveOperation(from_activity_id="taskB", to_activity_id="taskC"),
        )

    def test_move_to_here_without_other_tokens(self):
        store = PlanStore()
        assert store.move_to_here("taskC", {"taskC"}) is store


class TestListMaintenance:
    """Tests for remove, reorder, undo and variables."""

    def _three(self) -> PlanStore:
        return (
            PlanStore()
            .add_operation(OperationKind.ADD_BEFORE, "a")
            .add_operation(OperationKind.CANCEL, "b")
            .add_operation(OperationKind.ADD_AFTER, "c")
        )

    def test_remove(self):
        store = self._three().remove_operation(1)
        assert [op.activity_id for op in store.operations] == ["a", "c"]

    def test_remove_invalid_index(self):
        store = self._three()
        assert store.remove_operation(3) is store
        assert store.remove_operation(-1) is store

    def test_reorder(self):
        store = self._three()
        assert [op.activity_id for op in store.reorder(1, MoveDirection.UP).operations] == ["b", "a", "c"]
        assert [op.activity_id for op in store.reorder(1, MoveDirection.DOWN).operations] == ["a", "c", "b"]

    def test_reorder_at_boundaries(self):
        store = self._three()
        assert store.reorder(0, MoveDirection.UP) is store
        assert store.reorder(2, MoveDirection.DOWN) is store

    def test_undo_removes_last_entry(self):
        store = self._three()
        for k in range(3, 0, -1):
            undone = store.undo_last()
            assert undone.operations == store.operations[: k - 1]
            store = undone

    def test_undo_on_empty(self):
        store = PlanStore()
        assert store.undo_last() is store

    def test_undo_does_not_bring_back_displaced_add(self):
        store = (
            PlanStore()
            .add_operation(OperationKind.ADD_BEFORE, "taskA")
            .add_operation(OperationKind.ADD_AFTER, "taskA")
        )
        # Plain stack pop: the displaced add-before stays gone
        assert len(store.undo_last()) == 0

    def test_set_variables(self):
        store = PlanStore().add_move_to_many("taskB", ["taskA"])
        store = store.set_variables(0, [{"name": "amount", "type": "Double", "value": "42.5"}])
        assert store.operations[0].variables == (
            PlanVariable(name="amount", type=VariableType.DOUBLE, value="42.5"),
        )

    def test_set_variables_on_cancel_is_noop(self):
        store = PlanStore().add_operation(OperationKind.CANCEL, "taskA")
        assert store.set_variables(0, [PlanVariable(name="x")]) is store

    def test_set_variables_invalid_index(self):
        store = PlanStore()
        assert store.set_variables(0, [PlanVariable(name="x")]) is store

    def test_clear(self):
        assert len(self._three().clear()) == 0


class TestViews:
    """Tests for markers and labels."""

    def test_node_markers(self):
        store = (
            PlanStore()
            .add_operation(OperationKind.ADD_BEFORE, "b")
            .add_move_to_many("b", ["a"])
            .add_operation(OperationKind.CANCEL, "c")
            .toggle_move_selection("d")
        )
        markers = store.node_markers()
        assert markers["a"].cancel_count == 1
        assert markers["b"].add_count == 2
        assert markers["c"].cancel_count == 1
        assert markers["d"].is_move_source
        assert markers["d"].add_count == 0

    def test_labels(self):
        store = (
            PlanStore()
            .add_operation(OperationKind.ADD_BEFORE, "a")
            .add_operation(OperationKind.ADD_AFTER, "b")
            .add_operation(OperationKind.CANCEL, "c")
            .add_move_to_many("e", ["d"])
        )
        assert store.labels(str.upper) == [
            "Add token before A",
            "Add token after B",
            "Cancel instances at C",
            "Move from D → E",
        ]

    def test_describe_without_resolver(self):
        assert describe_operation(CancelOperation(activity_id="x")) == "Cancel instances at x"


class TestInheritVariables:
    """Tests for copying instance variables into a draft."""

    def test_existing_names_kept(self):
        existing = [PlanVariable(name="amount", value="1")]
        merged = inherit_variables(
            existing,
            [
                {"name": "amount", "type": "Double", "value": 99.0},
                {"name": "approved", "type": "Boolean", "value": True},
            ],
        )
        assert merged[0] == PlanVariable(name="amount", value="1")
        assert merged[1] == PlanVariable(name="approved", type=VariableType.BOOLEAN, value="true")

    def test_non_string_values_encoded(self):
        merged = inherit_variables([], [{"name": "order", "type": "Json", "value": {"id": 7}}])
        assert merged[0].value == '{"id": 7}'
        assert merged[0].type == VariableType.JSON

    def test_unknown_type_falls_back_to_string(self):
        merged = inherit_variables([], [{"name": "file", "type": "File", "value": "x"}])
        assert merged[0].type == VariableType.STRING
