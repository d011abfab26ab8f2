"""Space-time reservation table for prioritized multi-agent planning.

``vertex[t]`` holds the cells occupied at timestep t; ``edge[t]`` holds the
directed moves (from, to) in flight between t and t+1. A committed path keeps
its final cell reserved up to the table's horizon: an agent that has arrived
waits at its goal rather than vanishing.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from gridpaths.algorithms.errors import InvalidParameterError
from gridpaths.algorithms.grid import Coord

Edge = Tuple[Coord, Coord]


class ReservationTable:
    def __init__(self, horizon: int = 0):
        if horizon < 0:
            raise InvalidParameterError(f"horizon must be non-negative, got {horizon}")
        self.horizon = horizon
        self.vertex: Dict[int, Set[Coord]] = {}
        self.edge: Dict[int, Set[Edge]] = {}
        # latest timestep at which each cell is reserved
        self._last: Dict[Coord, int] = {}

    @classmethod
    def from_paths(cls, paths: Iterable[Sequence[Coord]], horizon: Optional[int] = None) -> "ReservationTable":
        paths = [list(p) for p in paths]
        if horizon is None:
            horizon = max([len(p) - 1 for p in paths] + [0])
        table = cls(horizon)
        for path in paths:
            table.reserve_path(path)
        return table

    # --------------------------------------------------
    def reserve_vertex(self, t: int, x: int, y: int) -> None:
        self.vertex.setdefault(t, set()).add((x, y))
        if t > self._last.get((x, y), -1):
            self._last[(x, y)] = t

    def reserve_edge(self, t: int, x1: int, y1: int, x2: int, y2: int) -> None:
        self.edge.setdefault(t, set()).add(((x1, y1), (x2, y2)))

    def is_vertex_reserved(self, t: int, x: int, y: int) -> bool:
        cells = self.vertex.get(t)
        return cells is not None and (x, y) in cells

    def is_edge_reserved(self, t: int, x1: int, y1: int, x2: int, y2: int) -> bool:
        moves = self.edge.get(t)
        return moves is not None and ((x1, y1), (x2, y2)) in moves

    def is_vertex_free_after(self, t: int, x: int, y: int) -> bool:
        """True when nobody reserves (x, y) at any timestep later than t."""
        return self._last.get((x, y), -1) <= t

    # --------------------------------------------------
    def reserve_path(self, path: Sequence[Coord]) -> None:
        if not path:
            return
        for t, (x, y) in enumerate(path):
            self.reserve_vertex(t, x, y)
            if t + 1 < len(path):
                nx, ny = path[t + 1]
                self.reserve_edge(t, x, y, nx, ny)
        gx, gy = path[-1]
        for t in range(len(path), self.horizon + 1):
            self.reserve_vertex(t, gx, gy)

    def copy(self) -> "ReservationTable":
        other = ReservationTable(self.horizon)
        other.vertex = {t: set(cells) for t, cells in self.vertex.items()}
        other.edge = {t: set(moves) for t, moves in self.edge.items()}
        other._last = dict(self._last)
        return other

    def occupied_at(self, t: int) -> List[Coord]:
        return sorted(self.vertex.get(t, ()))

    def __len__(self) -> int:
        return sum(len(cells) for cells in self.vertex.values())

    def __repr__(self) -> str:
        return f"ReservationTable(horizon={self.horizon}, vertices={len(self)})"
