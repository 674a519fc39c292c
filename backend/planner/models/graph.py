"""Pydantic models for process graph nodes."""

from enum import Enum

from pydantic import BaseModel


class NodeCategory(str, Enum):
    """Coarse grouping of process node types."""

    EVENT = "event"
    GATEWAY = "gateway"
    TASK = "task"
    SUBPROCESS = "subprocess"
    OTHER = "other"


class ProcessNode(BaseModel):
    """A node of a parsed process definition.

    Identity is `id`. `name` may be absent, in which case display code falls
    back to a humanized form of the id.
    """

    id: str
    name: str | None = None
    type: str = "task"

    model_config = {"frozen": True}
