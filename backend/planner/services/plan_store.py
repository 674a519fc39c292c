"""Immutable plan store for instance modification.

Every mutating method returns a new store and leaves the receiver untouched,
so a caller can keep the previous value around (for example while a commit
request is in flight). Invalid indices and unknown ids are no-ops: a stale
reference from the UI never corrupts planning state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel

from planner.models.plan import (
    ADD_KINDS,
    VARIABLE_KINDS,
    AddAfterOperation,
    AddBeforeOperation,
    CancelOperation,
    MoveDirection,
    MoveOperation,
    NodeMarker,
    Operation,
    OperationKind,
    PlanVariable,
    VariableType,
    make_operation,
    operation_kind,
)


def _opposite_add_kind(kind: OperationKind) -> OperationKind | None:
    if kind == OperationKind.ADD_BEFORE:
        return OperationKind.ADD_AFTER
    if kind == OperationKind.ADD_AFTER:
        return OperationKind.ADD_BEFORE
    return None


def _targets(op: Any, kind: OperationKind, activity_id: str) -> bool:
    return operation_kind(op) == kind and getattr(op, "activity_id", None) == activity_id


def _as_variable(v: PlanVariable | dict[str, Any]) -> PlanVariable:
    if isinstance(v, PlanVariable):
        return v
    return PlanVariable.model_validate(v)


class PlanStore(BaseModel):
    """Ordered planned operations for one process instance."""

    operations: tuple[Operation, ...] = ()
    move_source_id: str | None = None

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.operations)

    def _with(self, **changes: Any) -> PlanStore:
        return self.model_copy(update=changes)

    def _valid_index(self, index: int) -> bool:
        return 0 <= index < len(self.operations)

    # ------------------------------------------------------------------
    # Single-activity operations
    # ------------------------------------------------------------------

    def add_operation(self, kind: OperationKind, activity_id: str) -> PlanStore:
        """Append an add-before, add-after or cancel entry.

        No-op if an identical entry exists. Adding one of add-before or
        add-after first drops the other for the same activity.
        """
        kind = OperationKind(kind)
        if kind == OperationKind.MOVE or not activity_id:
            return self
        if any(_targets(op, kind, activity_id) for op in self.operations):
            return self

        opposite = _opposite_add_kind(kind)
        kept = tuple(
            op
            for op in self.operations
            if opposite is None or not _targets(op, opposite, activity_id)
        )
        return self._with(operations=kept + (make_operation(kind, activity_id),))

    def existing_add_kind(self, activity_id: str) -> OperationKind | None:
        """Which add kind, if any, is planned for an activity."""
        for op in self.operations:
            kind = operation_kind(op)
            if kind in ADD_KINDS and op.activity_id == activity_id:  # type: ignore[union-attr]
                return kind
        return None

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def toggle_move_selection(self, activity_id: str) -> PlanStore:
        """Two-step move gesture.

        First call records the pending source. A second call on a different
        node commits the move, on the same node cancels it.
        """
        if not activity_id:
            return self
        if self.move_source_id is None:
            return self._with(move_source_id=activity_id)
        if self.move_source_id == activity_id:
            return self._with(move_source_id=None)
        move = MoveOperation(from_activity_id=self.move_source_id, to_activity_id=activity_id)
        return self._with(operations=self.operations + (move,), move_source_id=None)

    def clear_move_selection(self) -> PlanStore:
        if self.move_source_id is None:
            return self
        return self._with(move_source_id=None)

    def has_move(self, from_activity_id: str, to_activity_id: str) -> bool:
        return any(
            isinstance(op, MoveOperation)
            and op.from_activity_id == from_activity_id
            and op.to_activity_id == to_activity_id
            for op in self.operations
        )

    def add_move_to_many(self, target: str, sources: Iterable[str]) -> PlanStore:
        """Append one move per source not already moving to `target`."""
        if not target:
            return self
        new_ops: list[MoveOperation] = []
        for source in sources:
            if not source or self.has_move(source, target):
                continue
            if any(m.from_activity_id == source for m in new_ops):
                continue
            new_ops.append(MoveOperation(from_activity_id=source, to_activity_id=target))
        if not new_ops:
            return self
        return self._with(operations=self.operations + tuple(new_ops))

    def move_to_here(self, target: str, active_ids: Iterable[str]) -> PlanStore:
        """Move every other active token to `target`."""
        sources = sorted(a for a in set(active_ids) if a != target)
        return self.add_move_to_many(target, sources)

    # ------------------------------------------------------------------
    # List maintenance
    # ------------------------------------------------------------------

    def remove_operation(self, index: int) -> PlanStore:
        if not self._valid_index(index):
            return self
        return self._with(
            operations=self.operations[:index] + self.operations[index + 1 :]
        )

    def reorder(self, index: int, direction: MoveDirection) -> PlanStore:
        """Swap an entry with its neighbor. No-op at the boundaries."""
        if not self._valid_index(index):
            return self
        target = index - 1 if MoveDirection(direction) == MoveDirection.UP else index + 1
        if not self._valid_index(target):
            return self
        ops = list(self.operations)
        ops[index], ops[target] = ops[target], ops[index]
        return self._with(operations=tuple(ops))

    def undo_last(self) -> PlanStore:
        """Drop the most recently appended entry.

        Plain stack pop: an add entry that was displaced by its opposite kind
        is not brought back.
        """
        if not self.operations:
            return self
        return self._with(operations=self.operations[:-1])

    def set_variables(
        self,
        index: int,
        variables: Iterable[PlanVariable | dict[str, Any]],
    ) -> PlanStore:
        """Replace the variables of one add or move entry."""
        if not self._valid_index(index):
            return self
        op = self.operations[index]
        if operation_kind(op) not in VARIABLE_KINDS:
            return self
        updated = op.model_copy(
            update={"variables": tuple(_as_variable(v) for v in variables)}
        )
        ops = list(self.operations)
        ops[index] = updated
        return self._with(operations=tuple(ops))

    def clear(self) -> PlanStore:
        return PlanStore()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def node_markers(self) -> dict[str, NodeMarker]:
        """Planned add/cancel counts per node.

        A move counts as a cancel at its source and an add at its target.
        """
        adds: dict[str, int] = {}
        cancels: dict[str, int] = {}
        for op in self.operations:
            if isinstance(op, (AddBeforeOperation, AddAfterOperation)):
                adds[op.activity_id] = adds.get(op.activity_id, 0) + 1
            elif isinstance(op, CancelOperation):
                cancels[op.activity_id] = cancels.get(op.activity_id, 0) + 1
            elif isinstance(op, MoveOperation):
                cancels[op.from_activity_id] = cancels.get(op.from_activity_id, 0) + 1
                adds[op.to_activity_id] = adds.get(op.to_activity_id, 0) + 1

        ids = set(adds) | set(cancels)
        if self.move_source_id:
            ids.add(self.move_source_id)
        return {
            activity_id: NodeMarker(
                activity_id=activity_id,
                add_count=adds.get(activity_id, 0),
                cancel_count=cancels.get(activity_id, 0),
                is_move_source=activity_id == self.move_source_id,
            )
            for activity_id in sorted(ids)
        }

    def labels(self, resolve: Callable[[str], str] | None = None) -> list[str]:
        return [describe_operation(op, resolve) for op in self.operations]


def describe_operation(op: Any, resolve: Callable[[str], str] | None = None) -> str:
    """Human-readable summary line for a plan entry."""

    def ref(activity_id: str | None) -> str:
        if not activity_id:
            return "?"
        return resolve(activity_id) if resolve else activity_id

    kind = operation_kind(op)
    if kind == OperationKind.ADD_BEFORE:
        return f"Add token before {ref(op.activity_id)}"
    if kind == OperationKind.ADD_AFTER:
        return f"Add token after {ref(op.activity_id)}"
    if kind == OperationKind.CANCEL:
        return f"Cancel instances at {ref(op.activity_id)}"
    return f"Move from {ref(op.from_activity_id)} → {ref(op.to_activity_id)}"


def inherit_variables(
    existing: Iterable[PlanVariable],
    instance_variables: Iterable[dict[str, Any]],
) -> list[PlanVariable]:
    """Extend a variable draft with the instance's current variables.

    Names already in the draft are kept as they are.
    """
    draft = list(existing)
    seen = {v.name for v in draft}
    for raw in instance_variables:
        name = str(raw.get("name") or "")
        if name in seen:
            continue
        try:
            var_type = VariableType(raw.get("type") or "String")
        except ValueError:
            var_type = VariableType.STRING
        draft.append(PlanVariable(name=name, type=var_type, value=raw.get("value")))
        seen.add(name)
    return draft
