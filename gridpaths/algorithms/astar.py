"""A* search on a 2-D walkability grid (4-neighbour connectivity) with bridging.

Each walkable step costs 1. A search may additionally cross up to
``bridge_budget`` non-walkable cells, paying ``bridge_cost`` for each one.
The number of bridges used is part of the search state, so reaching a cell
with fewer bridges left is a different state from reaching it with more.

With ``bridge_budget == 0`` (the default) this is plain A* over walkable cells.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import math
import numbers

from loguru import logger

from gridpaths.algorithms.errors import InvalidParameterError
from gridpaths.algorithms.grid import Coord, Grid, manhattan
from gridpaths.algorithms.priority_queue import PriorityQueue

State = Tuple[int, int, int]  # (x, y, bridges)


@dataclass
class SearchNode:
    x: int
    y: int
    g: float
    h: float
    parent: Optional[int]  # index in the search arena
    bridges: int = 0
    t: int = 0

    @property
    def f(self) -> float:
        return self.g + self.h

    def as_tuple(self) -> Coord:
        return self.x, self.y


ExpandObserver = Callable[[SearchNode, int], None]


def reconstruct(arena: List[SearchNode], idx: int) -> List[Coord]:
    """Follow parent indices from arena[idx] back to the root."""
    path = []
    cur: Optional[int] = idx
    while cur is not None:
        n = arena[cur]
        path.append((n.x, n.y))
        cur = n.parent
    return path[::-1]


@dataclass
class PathResult:
    path: List[Coord]
    cost: float
    bridges: int
    expanded: int

    def __len__(self) -> int:
        return len(self.path)


def check_bridging(bridge_budget, bridge_cost) -> None:
    if isinstance(bridge_budget, bool) or not isinstance(bridge_budget, numbers.Integral):
        raise InvalidParameterError(f"bridge_budget must be an integer, got {bridge_budget!r}")
    if bridge_budget < 0:
        raise InvalidParameterError(f"bridge_budget must be non-negative, got {bridge_budget}")
    if isinstance(bridge_cost, bool) or not isinstance(bridge_cost, numbers.Real):
        raise InvalidParameterError(f"bridge_cost must be a number, got {bridge_cost!r}")
    if not math.isfinite(bridge_cost) or bridge_cost < 0:
        raise InvalidParameterError(f"bridge_cost must be a finite non-negative number, got {bridge_cost}")


class PathFinder:
    def __init__(self, grid: Grid):
        self.grid = grid

    # --------------------------------------------------
    @staticmethod
    def heuristic_weight(bridge_budget: int, bridge_cost: float) -> float:
        # A bridge step cheaper than 1 would make plain Manhattan overestimate.
        if bridge_budget > 0 and bridge_cost < 1:
            return float(bridge_cost)
        return 1.0

    @staticmethod
    def _dominated(best_g: Dict[State, float], q: Coord, bridges: int, g: float) -> bool:
        for b in range(bridges + 1):
            known = best_g.get((q[0], q[1], b))
            if known is not None and known <= g:
                return True
        return False

    # --------------------------------------------------
    def search(
        self,
        start: Sequence[int],
        end: Sequence[int],
        bridge_budget: int = 0,
        bridge_cost: float = 0,
        on_expand: Optional[ExpandObserver] = None,
    ) -> Optional[PathResult]:
        """Return the cheapest path from start to end (inclusive) or None if unreachable.

        Raises a GridError subclass when start/end are out of bounds or not
        walkable, or when the bridging parameters are invalid.
        """
        grid = self.grid
        start = grid.check_point(start, "start")
        end = grid.check_point(end, "end")
        check_bridging(bridge_budget, bridge_cost)

        weight = self.heuristic_weight(bridge_budget, bridge_cost)
        logger.debug(
            f"[A*] search {start} -> {end} on {grid.width}x{grid.height}, "
            f"bridge_budget={bridge_budget}, bridge_cost={bridge_cost}"
        )

        arena: List[SearchNode] = [SearchNode(start[0], start[1], 0, weight * manhattan(start, end), None)]
        frontier: PriorityQueue[int] = PriorityQueue()
        frontier.push(0, arena[0].f)
        best_g: Dict[State, float] = {(start[0], start[1], 0): 0}
        closed: Set[State] = set()
        expanded = 0

        while frontier:
            idx = frontier.pop()
            node = arena[idx]
            state = (node.x, node.y, node.bridges)
            if state in closed or node.g > best_g[state]:
                continue  # stale entry
            closed.add(state)
            expanded += 1
            if on_expand is not None:
                on_expand(node, len(frontier))

            if (node.x, node.y) == end:
                path = reconstruct(arena, idx)
                logger.debug(f"[A*] found path of {len(path)} cells, cost={node.g}, expanded={expanded}")
                return PathResult(path=path, cost=node.g, bridges=node.bridges, expanded=expanded)

            for q in grid.neighbours((node.x, node.y)):
                if grid.is_walkable(q):
                    bridges = node.bridges
                    step = 1
                else:
                    bridges = node.bridges + 1
                    if bridges > bridge_budget:
                        continue
                    step = bridge_cost
                if (q[0], q[1], bridges) in closed:
                    continue
                g = node.g + step
                if self._dominated(best_g, q, bridges, g):
                    continue
                best_g[(q[0], q[1], bridges)] = g
                arena.append(SearchNode(q[0], q[1], g, weight * manhattan(q, end), idx, bridges))
                frontier.push(len(arena) - 1, arena[-1].f)

        logger.debug(f"[A*] no path {start} -> {end}, expanded={expanded}")
        return None

    def find_path(
        self,
        start: Sequence[int],
        end: Sequence[int],
        bridge_budget: int = 0,
        bridge_cost: float = 0,
        on_expand: Optional[ExpandObserver] = None,
    ) -> Optional[List[Coord]]:
        result = self.search(start, end, bridge_budget, bridge_cost, on_expand)
        return None if result is None else result.path


def find_path(
    grid: Grid,
    start: Sequence[int],
    end: Sequence[int],
    bridge_budget: int = 0,
    bridge_cost: float = 0,
    on_expand: Optional[ExpandObserver] = None,
) -> Optional[List[Coord]]:
    return PathFinder(grid).find_path(start, end, bridge_budget, bridge_cost, on_expand)
