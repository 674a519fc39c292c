"""Migration planning API routes."""

import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel
from pydantic import Field as PydanticField

from planner.api.errors import http_error
from planner.gateway.base import GatewayError
from planner.models.graph import ProcessNode
from planner.models.instruction import (
    CommitResult,
    ExecutionOptions,
    MigrationPlan,
    ValidationRow,
)
from planner.models.mapping import (
    MappingFilters,
    MappingRow,
    MappingSuggestion,
    MappingSummary,
    MigrationVariable,
)
from planner.services.session_manager import get_session_manager
from planner.services.sessions import MigrationSession, SessionError

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================


class CreateMigrationRequest(BaseModel):
    """Request to start planning a migration.

    When `suggestions` is omitted the engine's default mapping is fetched.
    """

    source_definition_id: str
    target_definition_id: str
    source_nodes: list[ProcessNode]
    target_nodes: list[ProcessNode]
    suggestions: list[MappingSuggestion] | None = None
    active_counts: dict[str, int] = PydanticField(default_factory=dict)
    instance_ids: list[str] = PydanticField(default_factory=list)
    update_event_triggers: bool = False
    draft_id: str | None = None


class TargetRequest(BaseModel):
    target_id: str


class ActiveCountsRequest(BaseModel):
    """Token counts per source activity."""

    active_counts: dict[str, int]


class TriggerRequest(BaseModel):
    """Per-row event trigger choice. None falls back to the engine's."""

    update_event_trigger: bool | None = None


class ExecuteRequest(BaseModel):
    """Request to execute the migration."""

    direct: bool = False
    options: ExecutionOptions = PydanticField(default_factory=ExecutionOptions)
    variables: list[MigrationVariable] = PydanticField(default_factory=list)
    process_instance_ids: list[str] | None = None


class MigrationState(BaseModel):
    """Mapping table of a migration session under its filters."""

    session_id: str
    source_definition_id: str
    target_definition_id: str
    update_event_triggers: bool
    filters: MappingFilters
    rows: list[MappingRow]
    summary: MappingSummary
    is_committing: bool = False


class TargetOption(BaseModel):
    id: str
    label: str


class ValidationResponse(BaseModel):
    has_failures: bool
    has_warnings: bool
    rows: list[ValidationRow]


# =============================================================================
# Helpers
# =============================================================================


def _session(session_id: str) -> MigrationSession:
    try:
        return get_session_manager().get_migration_session(session_id)
    except SessionError as e:
        raise http_error(e)


def _state(session: MigrationSession, filters: MappingFilters | None = None) -> MigrationState:
    filters = filters or session.filters
    return MigrationState(
        session_id=session.session_id,
        source_definition_id=session.source_definition_id,
        target_definition_id=session.target_definition_id,
        update_event_triggers=session.update_event_triggers,
        filters=filters,
        rows=session.rows(filters),
        summary=session.summary(filters),
        is_committing=session.is_committing,
    )


def _check_target(session: MigrationSession, target_id: str) -> None:
    if target_id not in session.target:
        raise HTTPException(status_code=400, detail=f"Unknown target activity '{target_id}'")


# =============================================================================
# Session lifecycle
# =============================================================================


@router.post("/migrations")
async def create_migration(request: CreateMigrationRequest) -> MigrationState:
    """Start planning a migration between two definition versions."""
    manager = get_session_manager()
    try:
        session = await manager.create_migration_session(
            source_definition_id=request.source_definition_id,
            target_definition_id=request.target_definition_id,
            source_nodes=request.source_nodes,
            target_nodes=request.target_nodes,
            suggestions=request.suggestions,
            active_counts=request.active_counts,
            instance_ids=request.instance_ids,
            update_event_triggers=request.update_event_triggers,
            draft_id=request.draft_id,
        )
    except GatewayError as e:
        raise http_error(e)
    return _state(session)


@router.get("/migrations/{session_id}")
async def get_migration(
    session_id: str,
    active_only: bool | None = Query(None),
    mapped_only: bool | None = Query(None),
    unmapped_only: bool | None = Query(None),
    incompatible_targets: bool | None = Query(None),
) -> MigrationState:
    """Get the mapping table.

    Query flags override the session's stored filters for this view only.
    """
    session = _session(session_id)
    overrides = {
        "active_only": active_only,
        "mapped_only": mapped_only,
        "unmapped_only": unmapped_only,
        "incompatible_targets": incompatible_targets,
    }
    filters = session.filters.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )
    return _state(session, filters)


@router.delete("/migrations/{session_id}")
async def close_migration(
    session_id: str,
    discard: bool = Query(False, description="Delete the saved draft"),
) -> dict[str, bool]:
    closed = await get_session_manager().close_session(session_id, discard_draft=discard)
    if not closed:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"closed": True}


@router.put("/migrations/{session_id}/filters")
async def set_filters(session_id: str, filters: MappingFilters) -> MigrationState:
    """Store the session's filters."""
    session = _session(session_id)
    session.set_filters(filters)
    return _state(session)


@router.put("/migrations/{session_id}/active")
async def set_active(session_id: str, request: ActiveCountsRequest) -> MigrationState:
    """Replace the token counts of the source instances."""
    session = _session(session_id)
    session.set_active_counts(request.active_counts)
    return _state(session)


# =============================================================================
# Row edits
# =============================================================================


@router.get("/migrations/{session_id}/rows/{index}/targets")
async def list_target_options(
    session_id: str,
    index: int,
    include_incompatible: bool = Query(False),
) -> list[TargetOption]:
    """Choices for a row's target picker."""
    session = _session(session_id)
    return [
        TargetOption(id=node_id, label=label)
        for node_id, label in session.target_options(index, include_incompatible)
    ]


@router.put("/migrations/{session_id}/rows/{index}/target")
async def set_target(session_id: str, index: int, request: TargetRequest) -> MigrationState:
    """Pick a target for a row."""
    session = _session(session_id)
    _check_target(session, request.target_id)
    session.set_target(index, request.target_id)
    return _state(session)


@router.delete("/migrations/{session_id}/rows/{index}/target")
async def clear_target(session_id: str, index: int) -> MigrationState:
    """Drop the manual pick of a row, falling back to the suggestion."""
    session = _session(session_id)
    session.clear_target(index)
    return _state(session)


@router.post("/migrations/{session_id}/rows/{index}/exclude")
async def exclude_row(session_id: str, index: int) -> MigrationState:
    session = _session(session_id)
    session.exclude(index)
    return _state(session)


@router.post("/migrations/{session_id}/rows/{index}/restore")
async def restore_row(session_id: str, index: int) -> MigrationState:
    session = _session(session_id)
    session.restore(index)
    return _state(session)


@router.put("/migrations/{session_id}/rows/{index}/trigger")
async def set_trigger(session_id: str, index: int, request: TriggerRequest) -> MigrationState:
    session = _session(session_id)
    session.set_trigger(index, request.update_event_trigger)
    return _state(session)


@router.post("/migrations/{session_id}/auto-map")
async def auto_map(session_id: str) -> MigrationState:
    """Name-match every row the engine left without a target."""
    session = _session(session_id)
    session.auto_map()
    return _state(session)


@router.post("/migrations/{session_id}/rows/{index}/auto-map")
async def auto_map_row(session_id: str, index: int) -> MigrationState:
    session = _session(session_id)
    session.auto_map_row(index)
    return _state(session)


@router.post("/migrations/{session_id}/refresh")
async def refresh_suggestions(session_id: str) -> MigrationState:
    """Reload the engine's default mapping, keeping operator decisions."""
    session = _session(session_id)
    try:
        await session.refresh_suggestions()
    except (SessionError, GatewayError) as e:
        raise http_error(e)
    return _state(session)


# =============================================================================
# Engine calls
# =============================================================================


@router.get("/migrations/{session_id}/plan")
async def get_plan(session_id: str) -> MigrationPlan:
    """The migration plan that would be sent to the engine."""
    return _session(session_id).compile_plan()


@router.post("/migrations/{session_id}/validate")
async def validate(session_id: str) -> ValidationResponse:
    """Dry-run the mapping on the engine."""
    session = _session(session_id)
    try:
        report = await session.validate()
    except (SessionError, GatewayError) as e:
        raise http_error(e)
    return ValidationResponse(
        has_failures=report.has_failures,
        has_warnings=report.has_warnings,
        rows=session.validation_rows(),
    )


@router.get("/migrations/{session_id}/validation")
async def get_validation(
    session_id: str,
    errors_only: bool = Query(False),
    warnings_only: bool = Query(False),
) -> ValidationResponse:
    """Rows of the last validation report, optionally filtered."""
    session = _session(session_id)
    report = session.last_report
    if report is None:
        raise HTTPException(status_code=404, detail="No validation report")
    return ValidationResponse(
        has_failures=report.has_failures,
        has_warnings=report.has_warnings,
        rows=session.validation_rows(errors_only, warnings_only),
    )


@router.post("/migrations/{session_id}/execute")
async def execute(session_id: str, request: ExecuteRequest | None = None) -> CommitResult:
    """Execute the migration, as a batch unless `direct` is set."""
    session = _session(session_id)
    request = request or ExecuteRequest()
    try:
        return await session.execute(
            direct=request.direct,
            options=request.options,
            variables=request.variables,
            process_instance_ids=request.process_instance_ids,
        )
    except (SessionError, GatewayError) as e:
        raise http_error(e)
