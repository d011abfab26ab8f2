"""Bounded recording of search progress for the visualizer.

A SearchTrace is passed as the ``on_expand`` observer of a search. Each
expansion is stored as a small snapshot dict; once ``limit`` snapshots are
held the oldest are dropped, so memory stays bounded on large grids.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

from gridpaths.algorithms.grid import Coord


@dataclass
class SearchTrace:
    limit: Optional[int] = 1000

    snapshots: Deque[dict] = field(init=False)
    expanded: int = field(init=False, default=0)

    def __post_init__(self):
        self.snapshots = deque(maxlen=self.limit)

    def __call__(self, node, frontier_size: int) -> None:
        self.expanded += 1
        self.snapshots.append({
            "iteration": self.expanded,
            "node": [node.x, node.y],
            "g": node.g,
            "f": node.f,
            "bridges": node.bridges,
            "t": node.t,
            "frontier": frontier_size,
        })

    @property
    def truncated(self) -> bool:
        return self.limit is not None and self.expanded > self.limit

    def history(self) -> List[Dict]:
        return list(self.snapshots)

    def visited(self) -> List[Coord]:
        """Distinct cells in expansion order (within the retained window)."""
        seen: Dict[Coord, None] = {}
        for snap in self.snapshots:
            seen.setdefault((snap["node"][0], snap["node"][1]), None)
        return list(seen)
