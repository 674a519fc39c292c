"""Database module."""

from planner.db.database import close_database, get_db, init_database
from planner.db.draft_store import DraftStore, PlanDraft, draft_store

__all__ = ["get_db", "init_database", "close_database", "draft_store", "DraftStore", "PlanDraft"]
