"""Instance modification planning API routes."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel
from pydantic import Field as PydanticField

from planner.api.errors import http_error
from planner.gateway.base import GatewayError
from planner.models.graph import ProcessNode
from planner.models.instruction import CommitResult, ExecutionOptions
from planner.models.plan import MoveDirection, NodeMarker, OperationKind, PlanVariable
from planner.services.session_manager import get_session_manager
from planner.services.sessions import ModificationSession, SessionError
from planner.services.status_classifier import NodeActions

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================


class CreateModificationRequest(BaseModel):
    """Request to start planning a modification of one instance."""

    instance_id: str
    nodes: list[ProcessNode]
    active_ids: list[str] = PydanticField(default_factory=list)
    instance_variables: list[dict[str, Any]] = PydanticField(default_factory=list)
    draft_id: str | None = None


class AddOperationRequest(BaseModel):
    """Request to plan an add-before, add-after or cancel."""

    kind: OperationKind
    activity_id: str


class ActivityRequest(BaseModel):
    """Request naming a single activity."""

    activity_id: str


class MoveManyRequest(BaseModel):
    """Request to move tokens from several activities to one."""

    target_id: str
    source_ids: list[str]


class ReorderRequest(BaseModel):
    direction: MoveDirection


class VariablesRequest(BaseModel):
    """Replacement variable list for one plan entry."""

    variables: list[PlanVariable]


class ActiveTokensRequest(BaseModel):
    """Nodes currently holding a token."""

    active_ids: list[str]


class ApplyRequest(BaseModel):
    options: ExecutionOptions = PydanticField(default_factory=ExecutionOptions)


class ModificationState(BaseModel):
    """Current planning state of a modification session."""

    session_id: str
    instance_id: str
    operations: list[dict[str, Any]]
    labels: list[str]
    move_source_id: str | None = None
    markers: list[NodeMarker]
    active_ids: list[str]
    is_committing: bool = False


class ApplyResponse(BaseModel):
    result: CommitResult
    state: ModificationState


# =============================================================================
# Helpers
# =============================================================================


def _session(session_id: str) -> ModificationSession:
    try:
        return get_session_manager().get_modification_session(session_id)
    except SessionError as e:
        raise http_error(e)


def _state(session: ModificationSession) -> ModificationState:
    plan = session.plan
    return ModificationState(
        session_id=session.session_id,
        instance_id=session.instance_id,
        operations=[op.model_dump(mode="json", by_alias=True) for op in plan.operations],
        labels=session.labels(),
        move_source_id=plan.move_source_id,
        markers=list(session.markers().values()),
        active_ids=sorted(session.active_ids),
        is_committing=session.is_committing,
    )


# =============================================================================
# Session lifecycle
# =============================================================================


@router.post("/modifications")
async def create_modification(request: CreateModificationRequest) -> ModificationState:
    """Start planning a modification of a running instance.

    Pass `draft_id` to resume the saved plan of an earlier session.
    """
    manager = get_session_manager()
    session = await manager.create_modification_session(
        instance_id=request.instance_id,
        nodes=request.nodes,
        active_ids=request.active_ids,
        instance_variables=request.instance_variables,
        draft_id=request.draft_id,
    )
    return _state(session)


@router.get("/modifications/{session_id}")
async def get_modification(session_id: str) -> ModificationState:
    """Get the current plan of a session."""
    return _state(_session(session_id))


@router.delete("/modifications/{session_id}")
async def close_modification(
    session_id: str,
    discard: bool = Query(False, description="Delete the saved draft"),
) -> dict[str, bool]:
    """Close a session. Its draft is kept unless `discard` is set."""
    closed = await get_session_manager().close_session(session_id, discard_draft=discard)
    if not closed:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"closed": True}


@router.put("/modifications/{session_id}/active")
async def set_active(session_id: str, request: ActiveTokensRequest) -> ModificationState:
    """Replace the live token state, e.g. after the instance changed."""
    session = _session(session_id)
    session.set_active_ids(request.active_ids)
    return _state(session)


# =============================================================================
# Node selection
# =============================================================================


@router.post("/modifications/{session_id}/select")
async def select_node(session_id: str, request: ActivityRequest) -> NodeActions:
    """Select a node and get the actions offered for it."""
    session = _session(session_id)
    actions = session.select(request.activity_id)
    if actions is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return actions


# =============================================================================
# Plan edits
# =============================================================================


@router.post("/modifications/{session_id}/operations")
async def add_operation(session_id: str, request: AddOperationRequest) -> ModificationState:
    """Plan an add-before, add-after or cancel."""
    if request.kind == OperationKind.MOVE:
        raise HTTPException(
            status_code=400,
            detail="Moves are planned through move-selection or move-to-here",
        )
    session = _session(session_id)
    session.add(request.kind, request.activity_id)
    return _state(session)


@router.post("/modifications/{session_id}/move-selection")
async def toggle_move_selection(session_id: str, request: ActivityRequest) -> ModificationState:
    """Pick the move source, or the target once a source is pending."""
    session = _session(session_id)
    session.toggle_move(request.activity_id)
    return _state(session)


@router.delete("/modifications/{session_id}/move-selection")
async def clear_move_selection(session_id: str) -> ModificationState:
    session = _session(session_id)
    session.clear_move_selection()
    return _state(session)


@router.post("/modifications/{session_id}/moves")
async def move_many(session_id: str, request: MoveManyRequest) -> ModificationState:
    """Plan one move per source to a common target."""
    session = _session(session_id)
    session.move_many(request.target_id, request.source_ids)
    return _state(session)


@router.post("/modifications/{session_id}/move-to-here")
async def move_to_here(session_id: str, request: ActivityRequest) -> ModificationState:
    """Move every active token to the given activity."""
    session = _session(session_id)
    session.move_to_here(request.activity_id)
    return _state(session)


@router.post("/modifications/{session_id}/undo")
async def undo(session_id: str) -> ModificationState:
    """Drop the most recently planned entry."""
    session = _session(session_id)
    session.undo()
    return _state(session)


@router.delete("/modifications/{session_id}/operations")
async def clear_plan(session_id: str) -> ModificationState:
    session = _session(session_id)
    session.clear()
    return _state(session)


@router.delete("/modifications/{session_id}/operations/{index}")
async def remove_operation(session_id: str, index: int) -> ModificationState:
    session = _session(session_id)
    session.remove(index)
    return _state(session)


@router.post("/modifications/{session_id}/operations/{index}/reorder")
async def reorder_operation(
    session_id: str,
    index: int,
    request: ReorderRequest,
) -> ModificationState:
    session = _session(session_id)
    session.reorder(index, request.direction)
    return _state(session)


@router.put("/modifications/{session_id}/operations/{index}/variables")
async def set_variables(
    session_id: str,
    index: int,
    request: VariablesRequest,
) -> ModificationState:
    """Replace the variables of an add or move entry.

    Values are stored as entered; use the preview to check how they parse.
    """
    session = _session(session_id)
    session.set_variables(index, request.variables)
    return _state(session)


@router.post("/modifications/{session_id}/operations/{index}/inherit-variables")
async def inherit_variables(session_id: str, index: int) -> ModificationState:
    """Fill an entry's variables from the instance's current variables."""
    session = _session(session_id)
    session.inherit_variables(index)
    return _state(session)


# =============================================================================
# Preview and commit
# =============================================================================


@router.get("/modifications/{session_id}/preview")
async def preview(
    session_id: str,
    skip_custom_listeners: bool = Query(False),
    skip_io_mappings: bool = Query(False),
    annotation: str | None = Query(None),
) -> dict[str, Any]:
    """Plan summary, the literal engine request and variable read-backs."""
    session = _session(session_id)
    options = ExecutionOptions(
        skip_custom_listeners=skip_custom_listeners,
        skip_io_mappings=skip_io_mappings,
        annotation=annotation,
    )
    return session.preview(options)


@router.post("/modifications/{session_id}/apply")
async def apply(session_id: str, request: ApplyRequest | None = None) -> ApplyResponse:
    """Send the plan to the engine.

    On failure the plan is kept and the engine's message is returned.
    """
    session = _session(session_id)
    options = request.options if request else ExecutionOptions()
    try:
        result = await session.apply(options)
    except (SessionError, GatewayError) as e:
        raise http_error(e)
    return ApplyResponse(result=result, state=_state(session))
