"""Translation of planner errors into HTTP errors."""

import logging

from fastapi import HTTPException

from planner.gateway.base import EngineUnavailableError, GatewayError
from planner.services.session_manager import SessionNotFoundError
from planner.services.sessions import CommitInProgressError, EmptyPlanError, SessionError

logger = logging.getLogger(__name__)


def http_error(error: Exception) -> HTTPException:
    """Map a session or gateway error to the HTTP error reported to the client."""
    if isinstance(error, SessionNotFoundError):
        return HTTPException(status_code=404, detail="Session not found")
    if isinstance(error, CommitInProgressError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, EmptyPlanError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, EngineUnavailableError):
        return HTTPException(status_code=503, detail=error.message)
    if isinstance(error, GatewayError):
        # The engine's own message is shown to the operator as is
        return HTTPException(status_code=502, detail=error.message)
    if isinstance(error, SessionError):
        return HTTPException(status_code=400, detail=str(error))
    logger.error(f"Unmapped planner error: {error}")
    return HTTPException(status_code=500, detail="Internal error")
