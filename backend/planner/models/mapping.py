"""Pydantic models for migration mapping.

A migration maps the activities of a source process definition version onto
the activities of a target version. The engine suggests a base mapping, the
name heuristic fills gaps, and the operator overrides individual rows.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, model_validator
from pydantic import Field as PydanticField

from planner.models.plan import PlanVariable


class MappingStatus(str, Enum):
    """Derived status of a mapping row."""

    AUTO = "auto"  # engine or heuristic suggestion in effect
    MANUAL = "manual"  # operator picked a different target
    UNMAPPED = "unmapped"  # no effective target
    EXCLUDED = "excluded"  # operator removed the row


class VariableScope(str, Enum):
    """Scope of a run-level migration variable."""

    GLOBAL = "GLOBAL"
    LOCAL = "LOCAL"


class MappingSuggestion(BaseModel):
    """One instruction of the engine-generated migration plan."""

    source_activity_ids: list[str] = PydanticField(
        default_factory=list, alias="sourceActivityIds"
    )
    target_activity_id: str | None = PydanticField(default=None, alias="targetActivityId")
    update_event_trigger: bool | None = PydanticField(
        default=None, alias="updateEventTrigger"
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _first_target(cls, data: Any) -> Any:
        # Some engine versions answer with a targetActivityIds list
        if isinstance(data, dict) and not data.get("targetActivityId"):
            targets = data.get("targetActivityIds")
            if isinstance(targets, list) and targets:
                data = {**data, "targetActivityId": targets[0]}
        return data


class MappingEntry(BaseModel):
    """One row of the migration mapping table.

    Status is never stored; see `planner.services.status_classifier`.
    """

    source_activity_ids: tuple[str, ...] = PydanticField(
        default=(), alias="sourceActivityIds"
    )
    base_target_id: str | None = PydanticField(default=None, alias="baseTargetId")
    heuristic_target_id: str | None = PydanticField(
        default=None, alias="heuristicTargetId"
    )
    override_target_id: str | None = PydanticField(default=None, alias="overrideTargetId")
    excluded: bool = False
    base_update_event_trigger: bool | None = PydanticField(
        default=None, alias="baseUpdateEventTrigger"
    )
    trigger_override: bool | None = PydanticField(default=None, alias="triggerOverride")

    model_config = {"populate_by_name": True, "frozen": True}

    @property
    def primary_source_id(self) -> str | None:
        """First source activity, used for labels and name matching."""
        return self.source_activity_ids[0] if self.source_activity_ids else None

    @property
    def suggested_target_id(self) -> str | None:
        """Engine suggestion, else the heuristic one."""
        return self.base_target_id or self.heuristic_target_id

    @property
    def effective_target_id(self) -> str | None:
        """Target used for display and compilation."""
        return self.override_target_id or self.suggested_target_id

    @property
    def effective_update_event_trigger(self) -> bool | None:
        """Per-row trigger flag: operator choice, else engine suggestion."""
        if self.trigger_override is not None:
            return self.trigger_override
        return self.base_update_event_trigger

    @classmethod
    def from_suggestion(cls, suggestion: MappingSuggestion) -> "MappingEntry":
        """Build a fresh row from an engine suggestion."""
        return cls(
            source_activity_ids=tuple(suggestion.source_activity_ids),
            base_target_id=suggestion.target_activity_id,
            base_update_event_trigger=suggestion.update_event_trigger,
        )


class MappingFilters(BaseModel):
    """Visibility filters over the mapping table. Active filters AND together."""

    active_only: bool = False
    mapped_only: bool = False
    unmapped_only: bool = False
    incompatible_targets: bool = False


class MappingRow(BaseModel):
    """Display projection of one mapping entry."""

    index: int
    source_activity_ids: list[str]
    source_label: str
    target_id: str | None = None
    target_label: str | None = None
    status: MappingStatus
    has_active_tokens: bool = False
    is_event: bool = False
    is_compatible: bool = True
    update_event_trigger: bool | None = None


class MappingSummary(BaseModel):
    """Counts for the pre-commit review."""

    instruction_count: int = 0
    visible_count: int = 0
    mapped_count: int = 0
    unmapped_count: int = 0
    unmapped_with_active_tokens: int = 0
    excluded_count: int = 0
    event_instruction_count: int = 0
    planned_target_counts: dict[str, int] = PydanticField(default_factory=dict)


class MigrationVariable(PlanVariable):
    """A run-level variable set on every migrated instance."""

    scope: VariableScope = VariableScope.GLOBAL
