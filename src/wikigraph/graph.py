"""Forward/backward adjacency for the link index."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass
class LinkGraph:
    """Directed link graph kept as two mutually consistent adjacency maps.

    ``target in forward[source]`` holds exactly when
    ``source in backward[target]``. Self-loops are never stored, and a key
    only exists once an edge touches it.
    """

    forward: dict[str, set[str]] = field(default_factory=dict)
    backward: dict[str, set[str]] = field(default_factory=dict)

    def add_edge(self, source: str, target: str) -> bool:
        """Insert ``source -> target``. Returns True if the edge is new."""
        if not source or not target or source == target:
            return False
        targets = self.forward.setdefault(source, set())
        if target in targets:
            return False
        targets.add(target)
        self.backward.setdefault(target, set()).add(source)
        return True

    def add_group(self, members: Iterable[str]) -> int:
        """Link every ordered pair of distinct *members*. Returns edges added."""
        unique = list(dict.fromkeys(m for m in members if m))
        added = 0
        for source in unique:
            for target in unique:
                if self.add_edge(source, target):
                    added += 1
        return added

    def has_edge(self, source: str, target: str) -> bool:
        return target in self.forward.get(source, ())

    def targets_of(self, source: str) -> set[str]:
        return set(self.forward.get(source, ()))

    def sources_of(self, target: str) -> set[str]:
        return set(self.backward.get(target, ()))

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.forward.values())

    def edges(self) -> list[tuple[str, str]]:
        """Return ``(source, target)`` pairs, sorted."""
        return sorted((s, t) for s, targets in self.forward.items() for t in targets)

    def is_consistent(self) -> bool:
        forward_pairs = {(s, t) for s, targets in self.forward.items() for t in targets}
        backward_pairs = {(s, t) for t, sources in self.backward.items() for s in sources}
        return forward_pairs == backward_pairs

    def to_lists(self) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
        """Plain-data copies of both maps with sorted lists."""
        return (
            {k: sorted(v) for k, v in self.forward.items()},
            {k: sorted(v) for k, v in self.backward.items()},
        )

    @classmethod
    def from_adjacency(
        cls,
        forward: Mapping[str, Iterable[str]] | None = None,
        backward: Mapping[str, Iterable[str]] | None = None,
    ) -> "LinkGraph":
        """Rebuild a graph from adjacency maps, restoring the invariant.

        Edges present in only one of the two maps are added to both.
        """
        graph = cls()
        for source, targets in (forward or {}).items():
            for target in targets:
                graph.add_edge(source, target)
        for target, sources in (backward or {}).items():
            for source in sources:
                graph.add_edge(source, target)
        return graph
