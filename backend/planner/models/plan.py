"""Pydantic models for instance modification plans.

A plan is an ordered list of structural operations against one running
process instance. Operations form a closed tagged union keyed on `kind`;
the compiler and the classifier switch over it exhaustively.
"""

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, field_validator
from pydantic import Field as PydanticField

# =============================================================================
# Enums
# =============================================================================


class OperationKind(str, Enum):
    """Kinds of planned operations."""

    ADD_BEFORE = "add_before"  # start a token before the node
    ADD_AFTER = "add_after"  # start a token after the node, skipping it
    CANCEL = "cancel"  # cancel every active instance of the node
    MOVE = "move"  # cancel at one node, start before another


class VariableType(str, Enum):
    """Declared type of a variable attached to an operation."""

    STRING = "String"
    BOOLEAN = "Boolean"
    INTEGER = "Integer"
    LONG = "Long"
    DOUBLE = "Double"
    OBJECT = "Object"
    JSON = "Json"
    DATE = "Date"


class MoveDirection(str, Enum):
    """Direction for reordering a plan entry."""

    UP = "up"
    DOWN = "down"


# Kinds that accept attached variables
VARIABLE_KINDS = frozenset(
    {OperationKind.ADD_BEFORE, OperationKind.ADD_AFTER, OperationKind.MOVE}
)

# Kinds that start a token at a single activity
ADD_KINDS = frozenset({OperationKind.ADD_BEFORE, OperationKind.ADD_AFTER})


# =============================================================================
# Variables
# =============================================================================


class PlanVariable(BaseModel):
    """A typed variable attached to a plan entry.

    The value is always held as the text the operator typed. It is parsed
    only when read back for preview, never when stored.
    """

    name: str
    type: VariableType = VariableType.STRING
    value: str = ""

    model_config = {"frozen": True}

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, str):
            return v
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return str(v)

    @property
    def is_named(self) -> bool:
        """Whether the variable has a non-blank name."""
        return bool(self.name.strip())


# =============================================================================
# Operations
# =============================================================================


class AddBeforeOperation(BaseModel):
    """Start a new token before an activity."""

    kind: Literal["add_before"] = "add_before"
    activity_id: str = PydanticField(alias="activityId")
    variables: tuple[PlanVariable, ...] = ()

    model_config = {"populate_by_name": True, "frozen": True}


class AddAfterOperation(BaseModel):
    """Start a new token after an activity."""

    kind: Literal["add_after"] = "add_after"
    activity_id: str = PydanticField(alias="activityId")
    variables: tuple[PlanVariable, ...] = ()

    model_config = {"populate_by_name": True, "frozen": True}


class CancelOperation(BaseModel):
    """Cancel all active instances of an activity."""

    kind: Literal["cancel"] = "cancel"
    activity_id: str = PydanticField(alias="activityId")

    model_config = {"populate_by_name": True, "frozen": True}


class MoveOperation(BaseModel):
    """Move tokens from one activity to another."""

    kind: Literal["move"] = "move"
    from_activity_id: str = PydanticField(alias="fromActivityId")
    to_activity_id: str = PydanticField(alias="toActivityId")
    variables: tuple[PlanVariable, ...] = ()

    model_config = {"populate_by_name": True, "frozen": True}


Operation = Annotated[
    Union[AddBeforeOperation, AddAfterOperation, CancelOperation, MoveOperation],
    PydanticField(discriminator="kind"),
]

SingleActivityOperation = Union[AddBeforeOperation, AddAfterOperation, CancelOperation]

_SINGLE_ACTIVITY_MODELS: dict[OperationKind, type[BaseModel]] = {
    OperationKind.ADD_BEFORE: AddBeforeOperation,
    OperationKind.ADD_AFTER: AddAfterOperation,
    OperationKind.CANCEL: CancelOperation,
}


def make_operation(kind: OperationKind, activity_id: str) -> SingleActivityOperation:
    """Build a single-activity operation for the given kind."""
    model = _SINGLE_ACTIVITY_MODELS.get(OperationKind(kind))
    if model is None:
        raise ValueError(f"'{kind}' does not target a single activity")
    return model(activity_id=activity_id)  # type: ignore[return-value]


def operation_kind(op: Any) -> OperationKind:
    """Return the kind of an operation as an enum."""
    return OperationKind(op.kind)


# =============================================================================
# Node markers (diagram overlay input)
# =============================================================================


class NodeMarker(BaseModel):
    """Planned changes touching one node, for overlay placement."""

    activity_id: str
    add_count: int = 0
    cancel_count: int = 0
    is_move_source: bool = False
