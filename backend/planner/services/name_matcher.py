"""Name-based matching of activities between two process graphs."""

from planner.services.graph_index import GraphIndex, normalize_name


def match_name(label: str | None, index: GraphIndex) -> str | None:
    """Return the id of the node whose normalized name equals `label`'s.

    Only proposes a match. Callers decide whether to accept it.
    """
    key = normalize_name(label)
    if not key:
        return None
    return index.normalized_name_index.get(key)


class NameMatcher:
    """Matches source activities against a target graph by display name."""

    def __init__(self, target_index: GraphIndex) -> None:
        self.target_index = target_index

    def match(self, label: str | None) -> str | None:
        return match_name(label, self.target_index)

    def match_node(self, node_id: str, source_index: GraphIndex) -> str | None:
        """Match a source node by its name, falling back to its id."""
        node = source_index.get(node_id)
        label = node.name if node is not None and node.name and node.name.strip() else node_id
        return self.match(label)
