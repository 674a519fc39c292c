"""PlanningSessionManager handles planning session lifecycle."""

import asyncio
import logging
import os
from collections.abc import Collection, Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

from planner.db.draft_store import draft_store
from planner.gateway.base import EngineGateway
from planner.gateway.http import HttpEngineGateway
from planner.models.graph import ProcessNode
from planner.models.mapping import MappingSuggestion
from planner.services.autosave import DebouncedSaver
from planner.services.sessions import (
    MigrationSession,
    ModificationSession,
    PlanningSession,
    SessionError,
)

logger = logging.getLogger(__name__)

# Singleton manager instance
_manager: "PlanningSessionManager | None" = None


class SessionNotFoundError(SessionError):
    """No live session with the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class PlanningSessionManager:
    """Manages planning session lifecycle.

    Responsibilities:
    - Create modification and migration sessions
    - Store active sessions (in-memory), drafts in the database
    - Cleanup expired sessions
    - Get/close sessions by ID
    """

    def __init__(
        self,
        gateway: EngineGateway | None = None,
        session_timeout_minutes: int | None = None,
        autosave: bool = True,
    ):
        """Initialize the session manager.

        Args:
            gateway: Engine gateway shared by all sessions. Defaults to the
                HTTP gateway configured from the environment.
            session_timeout_minutes: How long idle sessions live before cleanup.
            autosave: Whether sessions write drafts to the database.
        """
        if session_timeout_minutes is None:
            session_timeout_minutes = int(os.getenv("SESSION_TIMEOUT_MINUTES", "30"))
        self._gateway = gateway
        self._sessions: dict[str, PlanningSession] = {}
        self._session_timeout = timedelta(minutes=session_timeout_minutes)
        self._cleanup_task: asyncio.Task | None = None
        self.autosave = autosave

    @property
    def gateway(self) -> EngineGateway:
        if self._gateway is None:
            self._gateway = HttpEngineGateway()
        return self._gateway

    @gateway.setter
    def gateway(self, gateway: EngineGateway) -> None:
        self._gateway = gateway
        for session in self._sessions.values():
            session.gateway = gateway

    @property
    def active_session_count(self) -> int:
        """Number of active sessions."""
        return len(self._sessions)

    def _saver_for(self, session_id: str, kind: str, subject_id: str) -> DebouncedSaver | None:
        if not self.autosave:
            return None

        async def save(state: dict[str, Any]) -> None:
            await draft_store.save_draft(session_id, kind, subject_id, state)

        return DebouncedSaver(save)

    async def _resume(self, session: PlanningSession, draft_id: str | None) -> None:
        """Load a saved draft into a new session and re-key it to that session."""
        if not draft_id:
            return
        draft = await draft_store.load_draft(draft_id)
        if draft is None or draft.kind != session.kind or draft.subject_id != session.subject_id:
            logger.warning(f"No matching draft {draft_id} for {session.kind} session")
            return
        session.restore_state(draft.state)
        if self.autosave:
            await draft_store.save_draft(
                session.session_id, session.kind, session.subject_id, session.to_state()
            )
            await draft_store.delete_draft(draft_id)
        logger.info(f"Resumed session {session.session_id} from draft {draft_id}")

    def _store(self, session: PlanningSession) -> None:
        if session.saver is None:
            session.saver = self._saver_for(session.session_id, session.kind, session.subject_id)
        self._sessions[session.session_id] = session
        logger.info(
            f"Created {session.kind} session {session.session_id} for {session.subject_id} "
            f"(total sessions: {len(self._sessions)})"
        )

    async def create_modification_session(
        self,
        instance_id: str,
        nodes: Iterable[ProcessNode],
        active_ids: Collection[str],
        instance_variables: Sequence[Mapping[str, Any]] = (),
        draft_id: str | None = None,
    ) -> ModificationSession:
        """Create a session planning a modification of one instance.

        Args:
            instance_id: The running process instance to modify.
            nodes: Nodes of the instance's process definition.
            active_ids: Nodes currently holding a token.
            instance_variables: Current instance variables, for inheriting.
            draft_id: Earlier session whose saved plan to resume.

        Returns:
            A new ModificationSession.
        """
        session = ModificationSession(
            instance_id,
            nodes,
            active_ids,
            self.gateway,
            instance_variables=instance_variables,
        )
        await self._resume(session, draft_id)
        self._store(session)
        return session

    async def create_migration_session(
        self,
        source_definition_id: str,
        target_definition_id: str,
        source_nodes: Iterable[ProcessNode],
        target_nodes: Iterable[ProcessNode],
        suggestions: Iterable[MappingSuggestion] | None = None,
        active_counts: Mapping[str, int] | None = None,
        instance_ids: Sequence[str] = (),
        update_event_triggers: bool = False,
        draft_id: str | None = None,
    ) -> MigrationSession:
        """Create a session planning a migration between two definitions.

        When no suggestions are given, the engine's default mapping is
        fetched through the gateway.

        Raises:
            GatewayError: If fetching the engine mapping fails
        """
        if suggestions is None:
            suggestions = await self.gateway.generate_migration_plan(
                source_definition_id, target_definition_id, update_event_triggers
            )
        session = MigrationSession(
            source_definition_id,
            target_definition_id,
            source_nodes,
            target_nodes,
            suggestions,
            self.gateway,
            active_counts=active_counts,
            instance_ids=instance_ids,
            update_event_triggers=update_event_triggers,
        )
        await self._resume(session, draft_id)
        self._store(session)
        return session

    def get_session(self, session_id: str) -> PlanningSession:
        """Get a session by ID.

        Raises:
            SessionNotFoundError: If no such session is live
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        # Update last activity for keepalive
        session.touch()
        return session

    def get_modification_session(self, session_id: str) -> ModificationSession:
        session = self.get_session(session_id)
        if not isinstance(session, ModificationSession):
            raise SessionNotFoundError(session_id)
        return session

    def get_migration_session(self, session_id: str) -> MigrationSession:
        session = self.get_session(session_id)
        if not isinstance(session, MigrationSession):
            raise SessionNotFoundError(session_id)
        return session

    async def close_session(self, session_id: str, discard_draft: bool = False) -> bool:
        """Close and remove a session.

        Args:
            session_id: The session ID to close.
            discard_draft: Delete the saved draft instead of flushing it.

        Returns:
            True if session was found and closed, False otherwise.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        if discard_draft:
            if session.saver:
                session.saver.cancel()
                await draft_store.delete_draft(session_id)
        else:
            await session.close()
        logger.info(f"Closed {session.kind} session {session_id}")
        return True

    async def cleanup_expired(self) -> int:
        """Close sessions that have been idle too long.

        Returns:
            Number of sessions cleaned up.
        """
        now = datetime.now()
        expired_ids = [
            sid for sid, s in self._sessions.items()
            if now - s.last_activity > self._session_timeout and not s.is_committing
        ]

        for session_id in expired_ids:
            logger.info(f"Cleaning up expired session {session_id}")
            await self.close_session(session_id)

        if expired_ids:
            logger.info(f"Cleaned up {len(expired_ids)} expired planning session(s)")

        return len(expired_ids)

    async def start_cleanup_task(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Started planning session cleanup background task")

    async def stop_cleanup_task(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Stopped planning session cleanup background task")

    async def _cleanup_loop(self) -> None:
        """Background loop that cleans up expired sessions."""
        while True:
            try:
                await asyncio.sleep(60)  # Check every minute
                await self.cleanup_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in planning session cleanup task: {e}")

    async def shutdown(self) -> None:
        """Shutdown the manager, flushing drafts of all sessions."""
        await self.stop_cleanup_task()

        for session_id in list(self._sessions.keys()):
            await self.close_session(session_id)

        if self._gateway is not None:
            await self._gateway.close()

        logger.info("Planning session manager shutdown complete")

    def get_stats(self) -> dict[str, Any]:
        """Get manager statistics."""
        counts: dict[str, int] = {}
        for s in self._sessions.values():
            counts[s.kind] = counts.get(s.kind, 0) + 1
        return {
            "active_sessions": len(self._sessions),
            "sessions_by_kind": counts,
            "cleanup_task_running": self._cleanup_task is not None,
        }


def get_session_manager() -> PlanningSessionManager:
    """Get the singleton session manager instance."""
    global _manager
    if _manager is None:
        _manager = PlanningSessionManager()
    return _manager


async def init_session_manager(gateway: EngineGateway | None = None) -> PlanningSessionManager:
    """Initialize the session manager and start background tasks.

    Args:
        gateway: Engine gateway to use instead of the HTTP default.
    """
    manager = get_session_manager()
    if gateway is not None:
        manager.gateway = gateway
    await manager.start_cleanup_task()
    return manager


async def shutdown_session_manager() -> None:
    """Shutdown the session manager."""
    global _manager
    if _manager:
        await _manager.shutdown()
        _manager = None
