"""DraftStore - persistence of unsaved planning state."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from planner.db.database import get_db


def _now() -> str:
    """Get current timestamp in ISO format."""
    return datetime.utcnow().isoformat()


class PlanDraft(BaseModel):
    """Stored planning state of one session."""

    session_id: str
    kind: str
    subject_id: str
    state: dict[str, Any]
    created_at: str
    updated_at: str


class DraftStore:
    """Storage for plan drafts, keyed by planning session id."""

    async def save_draft(
        self,
        session_id: str,
        kind: str,
        subject_id: str,
        state: dict[str, Any],
    ) -> None:
        """Insert or replace the draft of a session."""
        db = await get_db()
        now = _now()
        await db.execute(
            """
            INSERT INTO plan_drafts (session_id, kind, subject_id, state_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET
                state_json = excluded.state_json,
                updated_at = excluded.updated_at
            """,
            (session_id, kind, subject_id, json.dumps(state), now, now),
        )
        await db.commit()

    async def load_draft(self, session_id: str) -> PlanDraft | None:
        """Get the draft of a session."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT session_id, kind, subject_id, state_json, created_at, updated_at
            FROM plan_drafts WHERE session_id = ?
            """,
            (session_id,),
        )
        row = await cursor.fetchone()

        if row is None:
            return None

        return PlanDraft(
            session_id=row["session_id"],
            kind=row["kind"],
            subject_id=row["subject_id"],
            state=json.loads(row["state_json"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def list_drafts(self, kind: str, subject_id: str) -> list[PlanDraft]:
        """Drafts for one instance or migration pair, newest first."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT session_id, kind, subject_id, state_json, created_at, updated_at
            FROM plan_drafts WHERE kind = ? AND subject_id = ?
            ORDER BY updated_at DESC
            """,
            (kind, subject_id),
        )
        rows = await cursor.fetchall()
        return [
            PlanDraft(
                session_id=row["session_id"],
                kind=row["kind"],
                subject_id=row["subject_id"],
                state=json.loads(row["state_json"]),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]

    async def delete_draft(self, session_id: str) -> bool:
        """Delete the draft of a session."""
        db = await get_db()
        cursor = await db.execute(
            "DELETE FROM plan_drafts WHERE session_id = ?",
            (session_id,),
        )
        await db.commit()
        return cursor.rowcount > 0


draft_store = DraftStore()
