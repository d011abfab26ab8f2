"""Prioritized multi-agent path finding with space-time A*.

Agents are planned one at a time in list order. Each agent searches over
(x, y, t) states against a reservation table holding the paths of all agents
committed before it, then its own path is added to the table. An agent can
move in 4-neighbourhood (N,E,S,W) or wait. A move is illegal if the target
cell is reserved at t+1 (vertex conflict) or if another agent crosses the same
edge in the opposite direction between t and t+1 (swap conflict).

Earlier agents never replan around later ones, so the order of the agent list
is significant. Returned paths list the agent's cell for every timestep
0..horizon; after arriving, an agent waits at its goal.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Set, Tuple

import numbers

from loguru import logger

from gridpaths.algorithms.astar import ExpandObserver, SearchNode, reconstruct
from gridpaths.algorithms.errors import InvalidParameterError
from gridpaths.algorithms.grid import Coord, Grid, manhattan
from gridpaths.algorithms.priority_queue import PriorityQueue
from gridpaths.algorithms.reservations import ReservationTable

AgentId = Hashable


@dataclass
class Agent:
    id: AgentId
    start: Optional[Coord] = None
    goal: Optional[Coord] = None
    path: List[Coord] = field(default_factory=list)

    def reset(self) -> None:
        self.path = []


@dataclass
class MultiAgentResult:
    paths: Dict[AgentId, Optional[List[Coord]]]
    failed: List[AgentId]
    horizon: int
    reservations: ReservationTable

    def planned(self) -> Dict[AgentId, List[Coord]]:
        return {aid: p for aid, p in self.paths.items() if p is not None}

    def makespan(self) -> int:
        """Timestep by which every planned agent has reached its goal for good."""
        return max([arrival_time(p) for p in self.planned().values()] + [0])

    @property
    def success(self) -> bool:
        return not self.failed


def arrival_time(path: Sequence[Coord]) -> int:
    """First timestep from which the path stays on its final cell."""
    t = len(path) - 1
    while t > 0 and path[t - 1] == path[-1]:
        t -= 1
    return max(t, 0)


# ---------------------------------------------------------------------------
# Low-level search: reservation-aware space-time A*
# ---------------------------------------------------------------------------

def plan_with_reservations(
    grid: Grid,
    start: Coord,
    goal: Coord,
    reservations: ReservationTable,
    horizon: int,
    on_expand: Optional[ExpandObserver] = None,
) -> Optional[List[Coord]]:
    """Space-time A* from start (at t=0) to goal; None if the horizon runs out."""
    if reservations.is_vertex_reserved(0, start[0], start[1]):
        return None

    arena: List[SearchNode] = [SearchNode(start[0], start[1], 0, manhattan(start, goal), None, t=0)]
    frontier: PriorityQueue[int] = PriorityQueue()
    frontier.push(0, arena[0].f)
    discovered: Set[Tuple[int, int, int]] = {(start[0], start[1], 0)}
    closed: Set[Tuple[int, int, int]] = set()

    while frontier:
        idx = frontier.pop()
        cur = arena[idx]
        key = (cur.x, cur.y, cur.t)
        if key in closed:
            continue
        closed.add(key)
        if on_expand is not None:
            on_expand(cur, len(frontier))

        # arriving only counts if nobody needs the goal cell later on
        if (cur.x, cur.y) == goal and reservations.is_vertex_free_after(cur.t, cur.x, cur.y):
            path = reconstruct(arena, idx)
            while len(path) <= horizon:
                path.append(goal)
            return path

        t_next = cur.t + 1
        if t_next > horizon:
            continue

        here = (cur.x, cur.y)
        for nxt in [here, *grid.walkable_neighbours(here)]:
            if reservations.is_vertex_reserved(t_next, nxt[0], nxt[1]):
                continue
            if nxt != here and reservations.is_edge_reserved(cur.t, nxt[0], nxt[1], cur.x, cur.y):
                continue
            k = (nxt[0], nxt[1], t_next)
            if k in discovered:
                continue
            discovered.add(k)
            g = cur.g + 1
            arena.append(SearchNode(nxt[0], nxt[1], g, manhattan(nxt, goal), idx, t=t_next))
            frontier.push(len(arena) - 1, arena[-1].f)
    return None


# ---------------------------------------------------------------------------
# High-level: prioritized planning
# ---------------------------------------------------------------------------

class MultiAgentPlanner:
    def __init__(self, grid: Grid):
        self.grid = grid

    def default_horizon(self) -> int:
        return self.grid.width + self.grid.height

    def _check(self, agents: Sequence[Agent], horizon) -> None:
        if isinstance(horizon, bool) or not isinstance(horizon, numbers.Integral):
            raise InvalidParameterError(f"horizon must be an integer, got {horizon!r}")
        if horizon < 0:
            raise InvalidParameterError(f"horizon must be non-negative, got {horizon}")
        seen = set()
        for agent in agents:
            if agent.id in seen:
                raise InvalidParameterError(f"duplicate agent id {agent.id!r}")
            seen.add(agent.id)
            if agent.start is not None:
                agent.start = self.grid.check_point(agent.start, f"agent {agent.id} start")
            if agent.goal is not None:
                agent.goal = self.grid.check_point(agent.goal, f"agent {agent.id} goal")

    def plan(
        self,
        agents: Sequence[Agent],
        horizon: Optional[int] = None,
        on_expand: Optional[ExpandObserver] = None,
    ) -> MultiAgentResult:
        """Plan every agent in priority (list) order and store the paths on the agents.

        An agent that cannot be planned is reported in ``failed``; it adds no
        reservations and the remaining agents are still planned.
        """
        if horizon is None:
            horizon = self.default_horizon()
        self._check(agents, horizon)

        reservations = ReservationTable(horizon)
        paths: Dict[AgentId, Optional[List[Coord]]] = {}
        failed: List[AgentId] = []

        for agent in agents:
            agent.reset()
            if agent.start is None or agent.goal is None:
                logger.warning(f"[MAPF] agent {agent.id} has no start or goal, skipping")
                paths[agent.id] = None
                failed.append(agent.id)
                continue
            path = plan_with_reservations(self.grid, agent.start, agent.goal, reservations, horizon, on_expand)
            if path is None:
                logger.warning(f"[MAPF] agent {agent.id} failed to plan {agent.start} -> {agent.goal} within horizon {horizon}")
                paths[agent.id] = None
                failed.append(agent.id)
                continue
            agent.path = path
            paths[agent.id] = path
            reservations.reserve_path(path)
            logger.debug(f"[MAPF] agent {agent.id} planned, arrives at t={arrival_time(path)}")

        logger.info(f"[MAPF] planned {len(agents) - len(failed)}/{len(agents)} agents, horizon={horizon}")
        return MultiAgentResult(paths=paths, failed=failed, horizon=horizon, reservations=reservations)


def plan_agents(
    grid: Grid,
    agents: Sequence[Agent],
    horizon: Optional[int] = None,
) -> MultiAgentResult:
    return MultiAgentPlanner(grid).plan(agents, horizon)


# ---------------------------------------------------------------------------
# Independent collision check
# ---------------------------------------------------------------------------

def find_collisions(paths: Mapping[AgentId, Sequence[Coord]]) -> List[dict]:
    """Every vertex and swap conflict between the given paths.

    Agents that finished early are treated as waiting on their last cell.
    """
    items = [(aid, list(p)) for aid, p in paths.items() if p]
    if not items:
        return []
    max_len = max(len(p) for _, p in items)

    def at(path: List[Coord], t: int) -> Coord:
        return path[t] if t < len(path) else path[-1]

    conflicts = []
    for t in range(max_len):
        positions: Dict[Coord, AgentId] = {}
        for aid, path in items:
            pos = at(path, t)
            if pos in positions:
                conflicts.append({"type": "vertex", "time": t, "agents": (positions[pos], aid), "loc": pos})
            else:
                positions[pos] = aid
        if t + 1 >= max_len:
            continue
        for i, (a1, p1) in enumerate(items):
            for a2, p2 in items[i + 1:]:
                u1, v1 = at(p1, t), at(p1, t + 1)
                u2, v2 = at(p2, t), at(p2, t + 1)
                if u1 != v1 and u1 == v2 and v1 == u2:
                    conflicts.append({"type": "edge", "time": t, "agents": (a1, a2), "edge": (u1, v1)})
    return conflicts
