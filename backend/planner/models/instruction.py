"""Pydantic models for compiled engine instructions and gateway results."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator
from pydantic import Field as PydanticField

# =============================================================================
# Instance modification
# =============================================================================


class InstructionType(str, Enum):
    """Engine-level modification directives."""

    START_BEFORE = "startBeforeActivity"
    START_AFTER = "startAfterActivity"
    CANCEL = "cancel"


class Instruction(BaseModel):
    """One atomic modification instruction in engine wire shape."""

    type: InstructionType
    activity_id: str = PydanticField(alias="activityId")
    cancel_current_active_activity_instances: bool | None = PydanticField(
        default=None, alias="cancelCurrentActiveActivityInstances"
    )
    variables: dict[str, dict[str, Any]] | None = None

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict[str, Any]:
        """Serialize with engine field names, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ExecutionOptions(BaseModel):
    """Options sent alongside a compiled instruction list."""

    skip_custom_listeners: bool = PydanticField(default=False, alias="skipCustomListeners")
    skip_io_mappings: bool = PydanticField(default=False, alias="skipIoMappings")
    annotation: str | None = None

    model_config = {"populate_by_name": True}


class ModificationRequest(BaseModel):
    """Compiled modification: ordered instructions plus execution options."""

    instructions: list[Instruction]
    options: ExecutionOptions = PydanticField(default_factory=ExecutionOptions)

    def to_payload(self) -> dict[str, Any]:
        """Engine request body. Flags appear only when set."""
        payload: dict[str, Any] = {
            "instructions": [i.to_wire() for i in self.instructions],
        }
        if self.options.skip_custom_listeners:
            payload["skipCustomListeners"] = True
        if self.options.skip_io_mappings:
            payload["skipIoMappings"] = True
        if self.options.annotation:
            payload["annotation"] = self.options.annotation
        return payload


# =============================================================================
# Migration
# =============================================================================


class MigrationInstruction(BaseModel):
    """One instruction of an engine migration plan."""

    source_activity_ids: list[str] = PydanticField(alias="sourceActivityIds")
    target_activity_ids: list[str] = PydanticField(alias="targetActivityIds")
    update_event_trigger: bool = PydanticField(default=False, alias="updateEventTrigger")

    model_config = {"populate_by_name": True}


class MigrationPlan(BaseModel):
    """Engine migration plan between two definition versions."""

    source_process_definition_id: str = PydanticField(alias="sourceProcessDefinitionId")
    target_process_definition_id: str = PydanticField(alias="targetProcessDefinitionId")
    instructions: list[MigrationInstruction] = PydanticField(default_factory=list)
    update_event_triggers: bool = PydanticField(default=False, alias="updateEventTriggers")

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class MigrationExecution(BaseModel):
    """Request body for executing a migration plan."""

    migration_plan: MigrationPlan = PydanticField(alias="migrationPlan")
    process_instance_ids: list[str] | None = PydanticField(
        default=None, alias="processInstanceIds"
    )
    process_instance_query: dict[str, Any] | None = PydanticField(
        default=None, alias="processInstanceQuery"
    )
    skip_custom_listeners: bool = PydanticField(default=False, alias="skipCustomListeners")
    skip_io_mappings: bool = PydanticField(default=False, alias="skipIoMappings")
    variables: dict[str, dict[str, Any]] | None = None

    model_config = {"populate_by_name": True}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Gateway results
# =============================================================================


class ReportLevel(str, Enum):
    """Severity of a validation row."""

    ERROR = "error"
    WARNING = "warning"
    OK = "ok"


def _messages(items: Any, key: str) -> list[str]:
    if not isinstance(items, list):
        return []
    out = []
    for item in items:
        if isinstance(item, dict):
            out.append(str(item.get(key) or item))
        else:
            out.append(str(item))
    return out


class InstructionReport(BaseModel):
    """Failures and warnings the engine reported for one instruction."""

    instruction: MigrationInstruction | None = None
    failures: list[str] = PydanticField(default_factory=list)
    warnings: list[str] = PydanticField(default_factory=list)

    @field_validator("failures", mode="before")
    @classmethod
    def _failure_messages(cls, v: Any) -> list[str]:
        return _messages(v, "errorMessage")

    @field_validator("warnings", mode="before")
    @classmethod
    def _warning_messages(cls, v: Any) -> list[str]:
        return _messages(v, "warningMessage")


class ValidationReport(BaseModel):
    """Result of a dry-run validation."""

    instruction_reports: list[InstructionReport] = PydanticField(
        default_factory=list, alias="instructionReports"
    )

    model_config = {"populate_by_name": True}

    @property
    def has_failures(self) -> bool:
        return any(r.failures for r in self.instruction_reports)

    @property
    def has_warnings(self) -> bool:
        return any(r.warnings for r in self.instruction_reports)


class ValidationRow(BaseModel):
    """A flattened validation message for display."""

    source: str
    target: str
    level: ReportLevel
    message: str | None = None


class CommitResult(BaseModel):
    """Acknowledgment of a committed modification or migration."""

    ok: bool = True
    batch_id: str | None = None
    details: dict[str, Any] = PydanticField(default_factory=dict)
