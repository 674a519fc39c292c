"""Lookup structures over a parsed process graph.

The index is built once per graph and is read-only afterwards. Planning code
shares it between sessions and never mutates it.
"""

import re
from collections.abc import Iterable

from planner.models.graph import NodeCategory, ProcessNode

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[_\-\s]+")


def normalize_name(label: str | None) -> str:
    """Normalize a display name for matching.

    - Lowercase
    - Drop every character outside [a-z0-9]
    """
    return _NON_ALNUM.sub("", (label or "").lower()).strip()


def humanize_id(node_id: str) -> str:
    """Turn a technical id into a readable label.

    "Task_reviewInvoice" -> "Task Review Invoice"
    """
    spaced = _CAMEL_BOUNDARY.sub(" ", node_id or "")
    words = [w for w in _SEPARATORS.split(spaced) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def type_category(node_type: str | None) -> NodeCategory:
    """Classify a node type into a coarse category."""
    t = (node_type or "").lower()
    if not t:
        return NodeCategory.OTHER
    if "gateway" in t:
        return NodeCategory.GATEWAY
    if "event" in t:
        return NodeCategory.EVENT
    if "subprocess" in t or t.endswith("callactivity") or t == "transaction":
        return NodeCategory.SUBPROCESS
    if "task" in t:
        return NodeCategory.TASK
    return NodeCategory.OTHER


class GraphIndex:
    """Id and normalized-name lookups over a list of process nodes."""

    def __init__(self, nodes: Iterable[ProcessNode]) -> None:
        self.by_id: dict[str, ProcessNode] = {}
        self.normalized_name_index: dict[str, str] = {}

        for node in nodes:
            if node.id in self.by_id:
                continue
            self.by_id[node.id] = node
            key = normalize_name(self._display_name(node))
            # First node with a given normalized name wins
            if key and key not in self.normalized_name_index:
                self.normalized_name_index[key] = node.id

    @staticmethod
    def _display_name(node: ProcessNode) -> str:
        if node.name and node.name.strip():
            return node.name
        return node.id

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.by_id

    def __len__(self) -> int:
        return len(self.by_id)

    def get(self, node_id: str | None) -> ProcessNode | None:
        if node_id is None:
            return None
        return self.by_id.get(node_id)

    def label(self, node_id: str) -> str:
        """Display label: name, else humanized id."""
        node = self.by_id.get(node_id)
        if node is not None and node.name and node.name.strip():
            return node.name.strip()
        return humanize_id(node_id) or node_id

    def category(self, node_id: str | None) -> NodeCategory:
        node = self.get(node_id)
        return type_category(node.type if node else None)

    def sorted_nodes(self) -> list[ProcessNode]:
        """Nodes ordered by display label, for pickers."""
        return sorted(self.by_id.values(), key=lambda n: (self.label(n.id).lower(), n.id))
