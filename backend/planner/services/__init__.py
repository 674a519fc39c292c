"""Services for the workflow instance planner."""

from planner.services.graph_index import GraphIndex, humanize_id, normalize_name, type_category
from planner.services.instruction_compiler import (
    compile_instructions,
    compile_migration_execution,
    compile_migration_plan,
    compile_modification,
)
from planner.services.name_matcher import NameMatcher, match_name
from planner.services.plan_store import PlanStore, describe_operation, inherit_variables
from planner.services.reconciler import Reconciler, carry_over, entries_from_suggestions
from planner.services.status_classifier import classify, node_actions, summarize

__all__ = [
    "GraphIndex",
    "humanize_id",
    "normalize_name",
    "type_category",
    "NameMatcher",
    "match_name",
    "PlanStore",
    "describe_operation",
    "inherit_variables",
    "Reconciler",
    "carry_over",
    "entries_from_suggestions",
    "classify",
    "node_actions",
    "summarize",
    "compile_instructions",
    "compile_modification",
    "compile_migration_plan",
    "compile_migration_execution",
]
