"""Pydantic models for the workflow instance planner."""

from planner.models.graph import NodeCategory, ProcessNode
from planner.models.instruction import (
    CommitResult,
    ExecutionOptions,
    Instruction,
    InstructionReport,
    InstructionType,
    MigrationExecution,
    MigrationInstruction,
    MigrationPlan,
    ModificationRequest,
    ReportLevel,
    ValidationReport,
    ValidationRow,
)
from planner.models.mapping import (
    MappingEntry,
    MappingFilters,
    MappingRow,
    MappingStatus,
    MappingSuggestion,
    MappingSummary,
    MigrationVariable,
    VariableScope,
)
from planner.models.plan import (
    AddAfterOperation,
    AddBeforeOperation,
    CancelOperation,
    MoveDirection,
    MoveOperation,
    NodeMarker,
    Operation,
    OperationKind,
    PlanVariable,
    VariableType,
)

__all__ = [
    # Graph
    "NodeCategory",
    "ProcessNode",
    # Modification plans
    "OperationKind",
    "Operation",
    "AddBeforeOperation",
    "AddAfterOperation",
    "CancelOperation",
    "MoveOperation",
    "MoveDirection",
    "NodeMarker",
    "PlanVariable",
    "VariableType",
    # Migration mapping
    "MappingEntry",
    "MappingFilters",
    "MappingRow",
    "MappingStatus",
    "MappingSuggestion",
    "MappingSummary",
    "MigrationVariable",
    "VariableScope",
    # Engine instructions
    "Instruction",
    "InstructionType",
    "ExecutionOptions",
    "ModificationRequest",
    "MigrationInstruction",
    "MigrationPlan",
    "MigrationExecution",
    "InstructionReport",
    "ReportLevel",
    "ValidationReport",
    "ValidationRow",
    "CommitResult",
]
