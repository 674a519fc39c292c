"""Compiles planning state into engine instruction sets.

Instance modification: plan entries expand into modification instructions in
plan order. The engine applies instructions sequentially, so the expansion of
a move is fixed: cancel at the source first, then start before the target.

Migration: the effective mapping becomes an engine migration plan.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from planner.models.instruction import (
    ExecutionOptions,
    Instruction,
    InstructionType,
    MigrationExecution,
    MigrationInstruction,
    MigrationPlan,
    ModificationRequest,
)
from planner.models.mapping import MappingEntry, MigrationVariable
from planner.models.plan import (
    AddAfterOperation,
    AddBeforeOperation,
    CancelOperation,
    MoveOperation,
    Operation,
)
from planner.services.plan_store import PlanStore
from planner.services.variable_codec import encode_migration_variables, encode_variables


def _cancel(activity_id: str) -> Instruction:
    return Instruction(
        type=InstructionType.CANCEL,
        activity_id=activity_id,
        cancel_current_active_activity_instances=True,
    )


def compile_operation(op: Operation) -> list[Instruction]:
    """Expand one plan entry into its engine instructions."""
    if isinstance(op, AddBeforeOperation):
        return [
            Instruction(
                type=InstructionType.START_BEFORE,
                activity_id=op.activity_id,
                variables=encode_variables(op.variables),
            )
        ]
    if isinstance(op, AddAfterOperation):
        return [
            Instruction(
                type=InstructionType.START_AFTER,
                activity_id=op.activity_id,
                variables=encode_variables(op.variables),
            )
        ]
    if isinstance(op, CancelOperation):
        return [_cancel(op.activity_id)]
    if isinstance(op, MoveOperation):
        return [
            _cancel(op.from_activity_id),
            Instruction(
                type=InstructionType.START_BEFORE,
                activity_id=op.to_activity_id,
                variables=encode_variables(op.variables),
            ),
        ]
    raise TypeError(f"Unknown operation: {type(op).__name__}")


def compile_instructions(operations: Iterable[Operation]) -> list[Instruction]:
    instructions: list[Instruction] = []
    for op in operations:
        instructions.extend(compile_operation(op))
    return instructions


def compile_modification(
    plan: PlanStore | Iterable[Operation],
    options: ExecutionOptions | None = None,
) -> ModificationRequest | None:
    """Compile a modification plan together with its execution options.

    Returns None for an empty plan: there is nothing to send.
    """
    operations = plan.operations if isinstance(plan, PlanStore) else plan
    instructions = compile_instructions(operations)
    if not instructions:
        return None
    return ModificationRequest(
        instructions=instructions,
        options=options or ExecutionOptions(),
    )


# =============================================================================
# Migration
# =============================================================================


def compile_migration_plan(
    entries: Sequence[MappingEntry],
    source_process_definition_id: str,
    target_process_definition_id: str,
    update_event_triggers: bool = False,
) -> MigrationPlan:
    """Build the engine migration plan from the effective mapping.

    Excluded rows and rows without an effective target are left out.
    """
    instructions: list[MigrationInstruction] = []
    for entry in entries:
        target_id = entry.effective_target_id
        if entry.excluded or not target_id or not entry.source_activity_ids:
            continue
        instructions.append(
            MigrationInstruction(
                source_activity_ids=list(entry.source_activity_ids),
                target_activity_ids=[target_id],
                update_event_trigger=bool(entry.effective_update_event_trigger),
            )
        )
    return MigrationPlan(
        source_process_definition_id=source_process_definition_id,
        target_process_definition_id=target_process_definition_id,
        instructions=instructions,
        update_event_triggers=update_event_triggers,
    )


def compile_migration_execution(
    plan: MigrationPlan,
    process_instance_ids: Sequence[str] | None = None,
    options: ExecutionOptions | None = None,
    variables: Iterable[MigrationVariable] = (),
) -> MigrationExecution:
    """Wrap a migration plan into an execution request.

    Without explicit instance ids every instance of the source definition
    is selected.
    """
    options = options or ExecutionOptions()
    ids = list(process_instance_ids or [])
    return MigrationExecution(
        migration_plan=plan,
        process_instance_ids=ids or None,
        process_instance_query=(
            None if ids else {"processDefinitionId": plan.source_process_definition_id}
        ),
        skip_custom_listeners=options.skip_custom_listeners,
        skip_io_mappings=options.skip_io_mappings,
        variables=encode_migration_variables(variables),
    )
