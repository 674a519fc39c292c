"""Status classification and filter evaluation for planning views.

All functions here are pure: they read mapping entries, plan state and live
token state and return derived values. Nothing is cached or stored.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from enum import Enum

from pydantic import BaseModel

from planner.models.graph import NodeCategory
from planner.models.instruction import ReportLevel, ValidationReport, ValidationRow
from planner.models.mapping import (
    MappingEntry,
    MappingFilters,
    MappingRow,
    MappingStatus,
    MappingSummary,
)
from planner.services.graph_index import GraphIndex

# =============================================================================
# Migration mapping
# =============================================================================


def classify(entry: MappingEntry) -> MappingStatus:
    """Derive the status of one mapping row.

    Exactly one status applies:
    - Excluded if the operator removed the row
    - Unmapped if there is no effective target
    - Manual if an override differs from the suggestion
    - Auto otherwise
    """
    if entry.excluded:
        return MappingStatus.EXCLUDED
    if not entry.effective_target_id:
        return MappingStatus.UNMAPPED
    if entry.override_target_id and entry.override_target_id != entry.suggested_target_id:
        return MappingStatus.MANUAL
    return MappingStatus.AUTO


def has_active_tokens(entry: MappingEntry, active_ids: Collection[str]) -> bool:
    """Whether any source activity of the row currently holds a token."""
    return any(sid in active_ids for sid in entry.source_activity_ids)


def is_compatible(entry: MappingEntry, source: GraphIndex, target: GraphIndex) -> bool:
    """Whether the effective target is in the same category as the source.

    Rows without a target, or with nodes unknown to either graph, count as
    compatible.
    """
    target_id = entry.effective_target_id
    if not target_id or entry.primary_source_id is None:
        return True
    if entry.primary_source_id not in source or target_id not in target:
        return True
    return source.category(entry.primary_source_id) == target.category(target_id)


def is_visible(
    entry: MappingEntry,
    filters: MappingFilters,
    active: bool,
    compatible: bool = True,
) -> bool:
    """Apply the visibility filters to one row. Filters combine with AND.

    Mapped-only and unmapped-only are not treated as exclusive here; setting
    both simply hides every row.
    """
    status = classify(entry)
    if filters.active_only and not active:
        return False
    if filters.mapped_only and status in (MappingStatus.UNMAPPED, MappingStatus.EXCLUDED):
        return False
    if filters.unmapped_only and status != MappingStatus.UNMAPPED:
        return False
    if filters.incompatible_targets and compatible:
        return False
    return True


def build_rows(
    entries: Sequence[MappingEntry],
    source: GraphIndex,
    target: GraphIndex,
    active_ids: Collection[str],
    filters: MappingFilters | None = None,
) -> list[MappingRow]:
    """Display rows for the entries visible under `filters`.

    Rows keep their index into `entries` so hidden rows are never lost.
    """
    filters = filters or MappingFilters()
    rows: list[MappingRow] = []
    for index, entry in enumerate(entries):
        active = has_active_tokens(entry, active_ids)
        compatible = is_compatible(entry, source, target)
        if not is_visible(entry, filters, active, compatible):
            continue
        primary = entry.primary_source_id
        target_id = entry.effective_target_id if not entry.excluded else None
        rows.append(
            MappingRow(
                index=index,
                source_activity_ids=list(entry.source_activity_ids),
                source_label=source.label(primary) if primary else "",
                target_id=target_id,
                target_label=target.label(target_id) if target_id else None,
                status=classify(entry),
                has_active_tokens=active,
                is_event=source.category(primary) == NodeCategory.EVENT,
                is_compatible=compatible,
                update_event_trigger=entry.effective_update_event_trigger,
            )
        )
    return rows


def summarize(
    entries: Sequence[MappingEntry],
    source: GraphIndex,
    target: GraphIndex,
    active_counts: Mapping[str, int],
    filters: MappingFilters | None = None,
) -> MappingSummary:
    """Counts for the pre-commit review, under the current filters."""
    filters = filters or MappingFilters()
    active_ids = {aid for aid, count in active_counts.items() if count}
    summary = MappingSummary(instruction_count=len(entries))
    planned: dict[str, int] = {}

    for entry in entries:
        status = classify(entry)
        if status == MappingStatus.EXCLUDED:
            summary.excluded_count += 1
        else:
            target_id = entry.effective_target_id
            if target_id:
                tokens = sum(int(active_counts.get(sid, 0)) for sid in entry.source_activity_ids)
                if tokens > 0:
                    planned[target_id] = planned.get(target_id, 0) + tokens
            if source.category(entry.primary_source_id) == NodeCategory.EVENT:
                summary.event_instruction_count += 1

        active = has_active_tokens(entry, active_ids)
        if not is_visible(entry, filters, active, is_compatible(entry, source, target)):
            continue
        summary.visible_count += 1
        if status == MappingStatus.UNMAPPED:
            summary.unmapped_count += 1
            if active:
                summary.unmapped_with_active_tokens += 1
        elif status != MappingStatus.EXCLUDED:
            summary.mapped_count += 1

    summary.planned_target_counts = planned
    return summary


def target_options(
    entry: MappingEntry,
    source: GraphIndex,
    target: GraphIndex,
    include_incompatible: bool = False,
) -> list[tuple[str, str]]:
    """(id, label) choices for a row's target picker."""
    source_category = source.category(entry.primary_source_id)
    options = []
    for node in target.sorted_nodes():
        if (
            not include_incompatible
            and entry.primary_source_id in source
            and target.category(node.id) != source_category
        ):
            continue
        options.append((node.id, target.label(node.id)))
    return options


# =============================================================================
# Instance modification
# =============================================================================


class MoveAction(str, Enum):
    """The move action offered for a node."""

    CANCEL_MOVE = "cancel_move"  # node is the pending move source
    MOVE_HERE = "move_here"  # another node is the pending source
    MOVE_FROM = "move_from"  # node holds tokens, start a move
    MOVE_TO_HERE = "move_to_here"  # pull every active token here


class NodeActions(BaseModel):
    """Actions offered for a selected node."""

    activity_id: str
    has_active_tokens: bool
    can_add: bool = True
    can_cancel: bool
    move_action: MoveAction


def node_actions(
    activity_id: str,
    active_ids: Collection[str],
    move_source_id: str | None,
) -> NodeActions:
    """Which modification actions to offer for a node."""
    active = activity_id in active_ids
    if move_source_id == activity_id:
        move = MoveAction.CANCEL_MOVE
    elif move_source_id:
        move = MoveAction.MOVE_HERE
    elif active:
        move = MoveAction.MOVE_FROM
    else:
        move = MoveAction.MOVE_TO_HERE
    return NodeActions(
        activity_id=activity_id,
        has_active_tokens=active,
        can_cancel=active,
        move_action=move,
    )


# =============================================================================
# Validation reports
# =============================================================================


def validation_rows(
    report: ValidationReport,
    errors_only: bool = False,
    warnings_only: bool = False,
) -> list[ValidationRow]:
    """Flatten a validation report into display rows.

    An instruction with nothing left after filtering shows as one OK row.
    """
    rows: list[ValidationRow] = []
    for rep in report.instruction_reports:
        src = ", ".join(rep.instruction.source_activity_ids) if rep.instruction else ""
        tgt = ", ".join(rep.instruction.target_activity_ids) if rep.instruction else ""
        messages = [(ReportLevel.ERROR, m) for m in rep.failures] + [
            (ReportLevel.WARNING, m) for m in rep.warnings
        ]
        kept = [
            (level, msg)
            for level, msg in messages
            if (not errors_only or level == ReportLevel.ERROR)
            and (not warnings_only or level == ReportLevel.WARNING)
        ]
        if not kept:
            rows.append(ValidationRow(source=src, target=tgt, level=ReportLevel.OK))
            continue
        rows.extend(
            ValidationRow(source=src, target=tgt, level=level, message=msg)
            for level, msg in kept
        )
    return rows
