"""Planning sessions: one operator's work on one instance or one migration.

A session owns its planning state exclusively. Pure planning edits are
always allowed; calls to the engine are serialized so that at most one
validate/apply/execute request is in flight per session.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Collection, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from planner.gateway.base import EngineGateway, GatewayError
from planner.models.graph import ProcessNode
from planner.models.instruction import (
    CommitResult,
    ExecutionOptions,
    MigrationPlan,
    ValidationReport,
    ValidationRow,
)
from planner.models.mapping import (
    MappingEntry,
    MappingFilters,
    MappingRow,
    MappingSuggestion,
    MappingSummary,
    MigrationVariable,
)
from planner.models.plan import (
    MoveDirection,
    NodeMarker,
    OperationKind,
    PlanVariable,
    operation_kind,
)
from planner.services import reconciler as edits
from planner.services.autosave import DebouncedSaver
from planner.services.graph_index import GraphIndex
from planner.services.instruction_compiler import (
    compile_migration_execution,
    compile_migration_plan,
    compile_modification,
)
from planner.services.plan_store import PlanStore, inherit_variables
from planner.services.reconciler import Reconciler, carry_over, entries_from_suggestions
from planner.services.status_classifier import (
    NodeActions,
    build_rows,
    node_actions,
    summarize,
    target_options,
    validation_rows,
)
from planner.services.variable_codec import named_variables, preview_variable

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Base exception for planning session errors."""

    pass


class CommitInProgressError(SessionError):
    """An engine request is already in flight for this session."""

    pass


class EmptyPlanError(SessionError):
    """There is nothing to send to the engine."""

    pass


class PlanningSession(ABC):
    """State shared by modification and migration sessions."""

    kind = "planning"

    def __init__(
        self,
        gateway: EngineGateway,
        session_id: str | None = None,
        saver: DebouncedSaver | None = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.gateway = gateway
        self.saver = saver
        self.created_at = datetime.now()
        self.last_activity = self.created_at
        self._committing = False

    @property
    @abstractmethod
    def subject_id(self) -> str:
        """Instance or definition pair the session plans for."""
        pass

    @property
    def is_committing(self) -> bool:
        return self._committing

    def touch(self) -> None:
        self.last_activity = datetime.now()

    @abstractmethod
    def to_state(self) -> dict[str, Any]:
        """Serializable planning state for drafts."""
        pass

    @abstractmethod
    def restore_state(self, state: Mapping[str, Any]) -> None:
        """Load planning state saved by `to_state`."""
        pass

    def _changed(self) -> None:
        self.touch()
        if self.saver:
            self.saver.schedule(self.to_state())

    @asynccontextmanager
    async def _engine_call(self, action: str) -> AsyncIterator[None]:
        if self._committing:
            raise CommitInProgressError(
                f"Session {self.session_id} is already waiting on the engine"
            )
        self._committing = True
        try:
            yield
        except GatewayError as e:
            logger.warning(f"{action} failed for session {self.session_id}: {e.message}")
            raise
        finally:
            self._committing = False

    async def close(self) -> None:
        """Write out any pending draft."""
        if self.saver:
            await self.saver.flush()


# =============================================================================
# Instance modification
# =============================================================================


class ModificationSession(PlanningSession):
    """Plans and applies a structural modification of one running instance."""

    kind = "modification"

    def __init__(
        self,
        instance_id: str,
        nodes: Iterable[ProcessNode],
        active_ids: Collection[str],
        gateway: EngineGateway,
        instance_variables: Sequence[Mapping[str, Any]] = (),
        session_id: str | None = None,
        saver: DebouncedSaver | None = None,
    ):
        super().__init__(gateway, session_id=session_id, saver=saver)
        self.instance_id = instance_id
        self.graph = GraphIndex(nodes)
        self.active_ids = frozenset(active_ids)
        self.instance_variables = [dict(v) for v in instance_variables]
        self.plan = PlanStore()
        self.selected_id: str | None = None
        self.last_result: CommitResult | None = None

    @property
    def subject_id(self) -> str:
        return self.instance_id

    def _set_plan(self, plan: PlanStore) -> PlanStore:
        if plan is not self.plan:
            self.plan = plan
            self._changed()
        return self.plan

    def to_state(self) -> dict[str, Any]:
        return {"plan": self.plan.model_dump(mode="json")}

    def restore_state(self, state: Mapping[str, Any]) -> None:
        """Load planning state saved by `to_state`."""
        self.plan = PlanStore.model_validate(state.get("plan") or {})

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, activity_id: str | None) -> NodeActions | None:
        """Select a node and return the actions offered for it."""
        self.touch()
        if not activity_id or activity_id not in self.graph:
            self.selected_id = None
            return None
        self.selected_id = activity_id
        return self.actions_for(activity_id)

    def set_active_ids(self, active_ids: Collection[str]) -> None:
        """Replace the live token state, e.g. after a commit."""
        self.active_ids = frozenset(active_ids)
        self.touch()

    def actions_for(self, activity_id: str) -> NodeActions:
        return node_actions(activity_id, self.active_ids, self.plan.move_source_id)

    # ------------------------------------------------------------------
    # Plan edits
    # ------------------------------------------------------------------

    def add(self, kind: OperationKind, activity_id: str) -> PlanStore:
        return self._set_plan(self.plan.add_operation(kind, activity_id))

    def toggle_move(self, activity_id: str) -> PlanStore:
        return self._set_plan(self.plan.toggle_move_selection(activity_id))

    def clear_move_selection(self) -> PlanStore:
        return self._set_plan(self.plan.clear_move_selection())

    def move_many(self, target: str, sources: Iterable[str]) -> PlanStore:
        return self._set_plan(self.plan.add_move_to_many(target, sources))

    def move_to_here(self, target: str) -> PlanStore:
        return self._set_plan(self.plan.move_to_here(target, self.active_ids))

    def remove(self, index: int) -> PlanStore:
        return self._set_plan(self.plan.remove_operation(index))

    def reorder(self, index: int, direction: MoveDirection) -> PlanStore:
        return self._set_plan(self.plan.reorder(index, direction))

    def undo(self) -> PlanStore:
        return self._set_plan(self.plan.undo_last())

    def set_variables(
        self,
        index: int,
        variables: Iterable[PlanVariable | dict[str, Any]],
    ) -> PlanStore:
        return self._set_plan(self.plan.set_variables(index, variables))

    def inherit_variables(self, index: int) -> PlanStore:
        """Copy the instance's current variables into one entry's draft."""
        if not 0 <= index < len(self.plan):
            return self.plan
        op = self.plan.operations[index]
        existing = getattr(op, "variables", ())
        merged = inherit_variables(existing, self.instance_variables)
        return self.set_variables(index, merged)

    def clear(self) -> PlanStore:
        return self._set_plan(self.plan.clear() if len(self.plan) else self.plan)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def markers(self) -> dict[str, NodeMarker]:
        return self.plan.node_markers()

    def labels(self) -> list[str]:
        return self.plan.labels(self.graph.label)

    def preview(self, options: ExecutionOptions | None = None) -> dict[str, Any]:
        """Summary lines, the literal request body and variable read-backs."""
        request = compile_modification(self.plan, options)
        variables = []
        for index, op in enumerate(self.plan.operations):
            for variable in named_variables(getattr(op, "variables", ())):
                variables.append({"operation": index, **preview_variable(variable)})
        return {
            "labels": self.labels(),
            "kinds": [operation_kind(op).value for op in self.plan.operations],
            "payload": request.to_payload() if request else None,
            "variables": variables,
        }

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def apply(self, options: ExecutionOptions | None = None) -> CommitResult:
        """Compile the plan and send it to the engine.

        The plan is cleared on success and left untouched on failure.

        Raises:
            EmptyPlanError: If the plan has no entries
            CommitInProgressError: If an engine request is already in flight
            GatewayError: If the engine rejects the modification
        """
        request = compile_modification(self.plan, options)
        if request is None:
            raise EmptyPlanError("The modification plan is empty")

        async with self._engine_call("Modification"):
            logger.info(
                f"Applying {len(request.instructions)} instruction(s) "
                f"to process instance {self.instance_id}"
            )
            result = await self.gateway.modify_process_instance(self.instance_id, request)

        self.last_result = result
        # Only the pending move gesture survives a commit
        self._set_plan(PlanStore(move_source_id=self.plan.move_source_id))
        return result


# =============================================================================
# Migration
# =============================================================================


class MigrationSession(PlanningSession):
    """Plans, validates and executes a migration between two definitions."""

    kind = "migration"

    def __init__(
        self,
        source_definition_id: str,
        target_definition_id: str,
        source_nodes: Iterable[ProcessNode],
        target_nodes: Iterable[ProcessNode],
        suggestions: Iterable[MappingSuggestion],
        gateway: EngineGateway,
        active_counts: Mapping[str, int] | None = None,
        instance_ids: Sequence[str] = (),
        update_event_triggers: bool = False,
        auto_map: bool = True,
        session_id: str | None = None,
        saver: DebouncedSaver | None = None,
    ):
        super().__init__(gateway, session_id=session_id, saver=saver)
        self.source_definition_id = source_definition_id
        self.target_definition_id = target_definition_id
        self.source = GraphIndex(source_nodes)
        self.target = GraphIndex(target_nodes)
        self.reconciler = Reconciler(self.source, self.target)
        self.active_counts = {k: int(v) for k, v in (active_counts or {}).items()}
        self.instance_ids = list(instance_ids)
        self.update_event_triggers = update_event_triggers
        self.filters = MappingFilters()
        self.last_report: ValidationReport | None = None
        self.last_result: CommitResult | None = None

        entries = entries_from_suggestions(suggestions)
        self.entries: tuple[MappingEntry, ...] = (
            self.reconciler.reconcile(entries) if auto_map else entries
        )

    @property
    def subject_id(self) -> str:
        return f"{self.source_definition_id}->{self.target_definition_id}"

    @property
    def active_ids(self) -> set[str]:
        return {aid for aid, count in self.active_counts.items() if count}

    def to_state(self) -> dict[str, Any]:
        return {
            "entries": [e.model_dump(mode="json") for e in self.entries],
            "filters": self.filters.model_dump(),
            "updateEventTriggers": self.update_event_triggers,
        }

    def restore_state(self, state: Mapping[str, Any]) -> None:
        """Carry saved operator decisions over onto the current rows."""
        saved = [MappingEntry.model_validate(e) for e in state.get("entries") or []]
        self.entries = carry_over(saved, self.entries)
        self.filters = MappingFilters.model_validate(state.get("filters") or {})
        self.update_event_triggers = bool(
            state.get("updateEventTriggers", self.update_event_triggers)
        )

    def _set_entries(self, entries: tuple[MappingEntry, ...]) -> tuple[MappingEntry, ...]:
        if entries != self.entries:
            self.entries = entries
            self.last_report = None
            self._changed()
        return self.entries

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def set_active_counts(self, active_counts: Mapping[str, int]) -> None:
        """Replace the per-activity token counts of the source instances."""
        self.active_counts = {k: int(v) for k, v in active_counts.items()}
        self.touch()

    def set_filters(self, filters: MappingFilters) -> None:
        self.filters = filters
        self._changed()

    def rows(self, filters: MappingFilters | None = None) -> list[MappingRow]:
        return build_rows(
            self.entries, self.source, self.target, self.active_ids, filters or self.filters
        )

    def summary(self, filters: MappingFilters | None = None) -> MappingSummary:
        return summarize(
            self.entries, self.source, self.target, self.active_counts, filters or self.filters
        )

    def target_options(self, index: int, include_incompatible: bool = False) -> list[tuple[str, str]]:
        if not 0 <= index < len(self.entries):
            return []
        return target_options(
            self.entries[index], self.source, self.target, include_incompatible
        )

    # ------------------------------------------------------------------
    # Mapping edits
    # ------------------------------------------------------------------

    def set_target(self, index: int, target_id: str | None) -> tuple[MappingEntry, ...]:
        if target_id and target_id not in self.target:
            return self.entries
        return self._set_entries(edits.set_override(self.entries, index, target_id))

    def clear_target(self, index: int) -> tuple[MappingEntry, ...]:
        return self._set_entries(edits.clear_override(self.entries, index))

    def exclude(self, index: int) -> tuple[MappingEntry, ...]:
        return self._set_entries(edits.exclude(self.entries, index))

    def restore(self, index: int) -> tuple[MappingEntry, ...]:
        return self._set_entries(edits.restore(self.entries, index))

    def set_trigger(self, index: int, value: bool | None) -> tuple[MappingEntry, ...]:
        return self._set_entries(edits.set_trigger_override(self.entries, index, value))

    def auto_map(self) -> tuple[MappingEntry, ...]:
        return self._set_entries(self.reconciler.reconcile(self.entries))

    def auto_map_row(self, index: int) -> tuple[MappingEntry, ...]:
        return self._set_entries(self.reconciler.auto_map_row(self.entries, index))

    def reload_suggestions(self, suggestions: Iterable[MappingSuggestion]) -> tuple[MappingEntry, ...]:
        """Replace the engine suggestions, keeping operator decisions."""
        fresh = carry_over(self.entries, entries_from_suggestions(suggestions))
        return self._set_entries(self.reconciler.reconcile(fresh))

    async def refresh_suggestions(self) -> tuple[MappingEntry, ...]:
        """Ask the engine for a fresh default mapping.

        Raises:
            CommitInProgressError: If an engine request is already in flight
            GatewayError: If the engine call fails
        """
        async with self._engine_call("Mapping refresh"):
            suggestions = await self.gateway.generate_migration_plan(
                self.source_definition_id,
                self.target_definition_id,
                self.update_event_triggers,
            )
        return self.reload_suggestions(suggestions)

    # ------------------------------------------------------------------
    # Engine calls
    # ------------------------------------------------------------------

    def compile_plan(self) -> MigrationPlan:
        return compile_migration_plan(
            self.entries,
            self.source_definition_id,
            self.target_definition_id,
            self.update_event_triggers,
        )

    async def validate(self) -> ValidationReport:
        """Dry-run the current mapping.

        Raises:
            EmptyPlanError: If no row has a target
            CommitInProgressError: If an engine request is already in flight
            GatewayError: If the engine call fails
        """
        plan = self.compile_plan()
        if not plan.instructions:
            raise EmptyPlanError("The migration plan has no mapped activities")
        async with self._engine_call("Validation"):
            report = await self.gateway.validate_migration_plan(plan)
        self.last_report = report
        return report

    def validation_rows(
        self, errors_only: bool = False, warnings_only: bool = False
    ) -> list[ValidationRow]:
        if self.last_report is None:
            return []
        return validation_rows(self.last_report, errors_only, warnings_only)

    async def execute(
        self,
        direct: bool = False,
        options: ExecutionOptions | None = None,
        variables: Iterable[MigrationVariable] = (),
        process_instance_ids: Sequence[str] | None = None,
    ) -> CommitResult:
        """Execute the migration, as a batch unless `direct` is set.

        Without instance ids every instance of the source definition is
        migrated. The mapping is left as it is, whatever the outcome.

        Raises:
            EmptyPlanError: If no row has a target
            CommitInProgressError: If an engine request is already in flight
            GatewayError: If the engine rejects the migration
        """
        plan = self.compile_plan()
        if not plan.instructions:
            raise EmptyPlanError("The migration plan has no mapped activities")
        ids = self.instance_ids if process_instance_ids is None else list(process_instance_ids)
        execution = compile_migration_execution(plan, ids, options, variables)

        async with self._engine_call("Migration"):
            target = f"{len(ids)} instance(s)" if ids else "all instances"
            logger.info(
                f"Executing migration {self.subject_id} on {target} "
                f"({'direct' if direct else 'batch'})"
            )
            result = await self.gateway.execute_migration(execution, asynchronous=not direct)

        self.last_result = result
        self.touch()
        return result
