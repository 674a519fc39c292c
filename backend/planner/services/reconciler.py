"""Reconciliation of engine suggestions, name heuristics and manual overrides.

Three sources feed a migration mapping row:

1. The engine's default mapping (`base_target_id`)
2. The name heuristic, consulted only when the engine had no suggestion
   (`heuristic_target_id`)
3. The operator's manual pick (`override_target_id`) or removal (`excluded`)

Reconciliation recomputes (2) and never touches (3). All methods return new
entry tuples; inputs are not mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from planner.models.mapping import MappingEntry, MappingSuggestion
from planner.services.graph_index import GraphIndex
from planner.services.name_matcher import NameMatcher

logger = logging.getLogger(__name__)

Entries = tuple[MappingEntry, ...]


def entries_from_suggestions(suggestions: Iterable[MappingSuggestion]) -> Entries:
    """Fresh mapping rows, one per engine suggestion."""
    return tuple(MappingEntry.from_suggestion(s) for s in suggestions)


def carry_over(previous: Sequence[MappingEntry], fresh: Sequence[MappingEntry]) -> Entries:
    """Copy operator decisions from `previous` onto `fresh` rows.

    Rows are matched by their source activity ids. Engine and heuristic
    suggestions always come from `fresh`.
    """
    decisions = {e.source_activity_ids: e for e in previous}
    out: list[MappingEntry] = []
    for entry in fresh:
        old = decisions.get(entry.source_activity_ids)
        if old is None:
            out.append(entry)
            continue
        out.append(
            entry.model_copy(
                update={
                    "override_target_id": old.override_target_id,
                    "excluded": old.excluded,
                    "trigger_override": old.trigger_override,
                }
            )
        )
    return tuple(out)


class Reconciler:
    """Applies the name heuristic between a source and a target graph."""

    def __init__(self, source_index: GraphIndex, target_index: GraphIndex) -> None:
        self.source_index = source_index
        self.target_index = target_index
        self.matcher = NameMatcher(target_index)

    def _heuristic_for(self, entry: MappingEntry) -> MappingEntry:
        # Sticky rows: the operator already decided
        if entry.excluded or entry.override_target_id:
            return entry
        if entry.base_target_id:
            return entry
        source_id = entry.primary_source_id
        if source_id is None:
            return entry
        match = self.matcher.match_node(source_id, self.source_index)
        if match == entry.heuristic_target_id:
            return entry
        return entry.model_copy(update={"heuristic_target_id": match})

    def reconcile(self, entries: Sequence[MappingEntry]) -> Entries:
        """Auto-map every row the engine left without a target."""
        reconciled = tuple(self._heuristic_for(e) for e in entries)
        matched = sum(
            1 for before, after in zip(entries, reconciled)
            if after.heuristic_target_id and before.heuristic_target_id != after.heuristic_target_id
        )
        if matched:
            logger.debug(f"Name heuristic mapped {matched} row(s)")
        return reconciled

    def auto_map_row(self, entries: Sequence[MappingEntry], index: int) -> Entries:
        """Apply the heuristic to a single row."""
        if not 0 <= index < len(entries):
            return tuple(entries)
        out = list(entries)
        out[index] = self._heuristic_for(entries[index])
        return tuple(out)


# =============================================================================
# Operator edits
# =============================================================================


def _replace(entries: Sequence[MappingEntry], index: int, **changes: object) -> Entries:
    if not 0 <= index < len(entries):
        return tuple(entries)
    out = list(entries)
    out[index] = entries[index].model_copy(update=changes)
    return tuple(out)


def set_override(entries: Sequence[MappingEntry], index: int, target_id: str | None) -> Entries:
    """Pick a target for a row. Passing None clears the override."""
    return _replace(entries, index, override_target_id=target_id or None)


def clear_override(entries: Sequence[MappingEntry], index: int) -> Entries:
    return _replace(entries, index, override_target_id=None)


def exclude(entries: Sequence[MappingEntry], index: int) -> Entries:
    """Remove a row from the migration. The row stays in the table."""
    return _replace(entries, index, excluded=True)


def restore(entries: Sequence[MappingEntry], index: int) -> Entries:
    return _replace(entries, index, excluded=False)


def set_trigger_override(
    entries: Sequence[MappingEntry], index: int, value: bool | None
) -> Entries:
    """Set or clear the per-row event trigger choice."""
    return _replace(entries, index, trigger_override=value)
