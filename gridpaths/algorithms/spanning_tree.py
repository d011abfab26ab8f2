"""Minimum spanning tree ("road network") over points of interest on a grid.

Edge weights are the lengths of shortest grid paths between pairs of points,
found with the bridging A* of ``gridpaths.algorithms.astar``. The tree is grown
with Prim's algorithm from the first point; points that cannot be reached
within the bridging budget are reported as disconnected instead of blocking
the build.

``SpanningTreeBuilder.insert`` adds one point to an existing tree with one
pathfinding call per existing point, instead of rebuilding all pairs.
Edges found between points that are not (yet) part of the tree are kept on
the tree so a later insertion that reaches them can pull them in without
searching again. Either way, the connected points are exactly those linked to
the first point, the same split a full rebuild produces.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from loguru import logger

from gridpaths.algorithms.astar import PathFinder, check_bridging
from gridpaths.algorithms.grid import Coord, Grid
from gridpaths.algorithms.priority_queue import PriorityQueue


@dataclass
class TreeEdge:
    a: int
    b: int
    cost: int
    path: List[Coord]

    def other(self, idx: int) -> int:
        return self.b if idx == self.a else self.a

    def to_dict(self) -> dict:
        return {"a": self.a, "b": self.b, "cost": self.cost, "path": [list(p) for p in self.path]}


@dataclass
class SpanningTree:
    points: List[Coord] = field(default_factory=list)
    segments: List[List[Coord]] = field(default_factory=list)
    edges: List[Tuple[int, int]] = field(default_factory=list)
    connected: Set[int] = field(default_factory=set)
    disconnected: List[int] = field(default_factory=list)
    # known edges whose endpoints are both outside the tree
    pending: List[TreeEdge] = field(default_factory=list)

    def total_length(self) -> int:
        return sum(len(s) for s in self.segments)

    def tiles(self) -> List[Coord]:
        seen: Dict[Coord, None] = {}
        for seg in self.segments:
            for p in seg:
                seen.setdefault(p, None)
        return list(seen)

    def disconnected_points(self) -> List[Coord]:
        return [self.points[i] for i in self.disconnected]

    def copy(self) -> "SpanningTree":
        return SpanningTree(
            points=list(self.points),
            segments=[list(s) for s in self.segments],
            edges=list(self.edges),
            connected=set(self.connected),
            disconnected=list(self.disconnected),
            pending=list(self.pending),
        )

    # --------------------------------------------------
    def to_dict(self) -> dict:
        return {
            "points": [list(p) for p in self.points],
            "segments": [[list(p) for p in seg] for seg in self.segments],
            "edges": [list(e) for e in self.edges],
            "connected": sorted(self.connected),
            "disconnected": list(self.disconnected),
            "pending": [e.to_dict() for e in self.pending],
            "total_length": self.total_length(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SpanningTree":
        return cls(
            points=[tuple(p) for p in data.get("points", [])],
            segments=[[tuple(p) for p in seg] for seg in data.get("segments", [])],
            edges=[tuple(e) for e in data.get("edges", [])],
            connected=set(data.get("connected", [])),
            disconnected=list(data.get("disconnected", [])),
            pending=[
                TreeEdge(e["a"], e["b"], e["cost"], [tuple(p) for p in e["path"]])
                for e in data.get("pending", [])
            ],
        )


class SpanningTreeBuilder:
    def __init__(self, grid: Grid, bridge_budget: int = 0, bridge_cost: float = 0):
        check_bridging(bridge_budget, bridge_cost)
        self.grid = grid
        self.bridge_budget = bridge_budget
        self.bridge_cost = bridge_cost
        self.finder = PathFinder(grid)
        self.path_calls = 0

    # --------------------------------------------------
    def _edge(self, a: int, b: int, pa: Coord, pb: Coord) -> Optional[TreeEdge]:
        self.path_calls += 1
        path = self.finder.find_path(pa, pb, self.bridge_budget, self.bridge_cost)
        if path is None:
            return None
        return TreeEdge(a, b, len(path), path)

    @staticmethod
    def _grow(tree: SpanningTree, candidates: Iterable[TreeEdge]) -> List[TreeEdge]:
        """Prim's loop: attach outside points by their cheapest edge to the tree.

        Returns the candidate edges that still have both endpoints outside.
        """
        adjacency: Dict[int, List[TreeEdge]] = {}
        for e in candidates:
            adjacency.setdefault(e.a, []).append(e)
            adjacency.setdefault(e.b, []).append(e)

        frontier: PriorityQueue[TreeEdge] = PriorityQueue()
        for idx in tree.connected:
            for e in adjacency.get(idx, ()):
                if e.other(idx) not in tree.connected:
                    frontier.push(e, e.cost)

        while frontier:
            e = frontier.pop()
            a_in, b_in = e.a in tree.connected, e.b in tree.connected
            if a_in == b_in:
                continue
            inside, new = (e.a, e.b) if a_in else (e.b, e.a)
            path = e.path if e.path[0] == tree.points[inside] else e.path[::-1]
            tree.segments.append(path)
            tree.edges.append((inside, new))
            tree.connected.add(new)
            for e2 in adjacency.get(new, ()):
                if e2.other(new) not in tree.connected:
                    frontier.push(e2, e2.cost)

        tree.disconnected = [i for i in range(len(tree.points)) if i not in tree.connected]
        seen: Set[int] = set()
        leftover = []
        for edges in adjacency.values():
            for e in edges:
                if id(e) in seen:
                    continue
                seen.add(id(e))
                if e.a not in tree.connected and e.b not in tree.connected:
                    leftover.append(e)
        return leftover

    # --------------------------------------------------
    def build(self, points: Sequence[Sequence[int]]) -> SpanningTree:
        """Full MST over all points, rooted at points[0] (O(n^2) path searches)."""
        pts = [self.grid.check_point(p, f"point {i}") for i, p in enumerate(points)]
        if len(pts) < 2:
            return SpanningTree(points=pts)

        candidates = []
        for i in range(len(pts)):
            for j in range(i + 1, len(pts)):
                e = self._edge(i, j, pts[i], pts[j])
                if e is not None:
                    candidates.append(e)

        tree = SpanningTree(points=pts, connected={0})
        tree.pending = self._grow(tree, candidates)
        logger.info(
            f"[MST] {len(tree.connected)}/{len(pts)} points connected, "
            f"{len(tree.segments)} segments, total length {tree.total_length()}"
        )
        return tree

    def insert(self, tree: SpanningTree, point: Sequence[int]) -> SpanningTree:
        """Return a copy of ``tree`` with ``point`` added (one search per existing point)."""
        p = self.grid.check_point(point, f"point {len(tree.points)}")
        tree = tree.copy()
        k = len(tree.points)
        if not tree.connected and k <= 1:
            # a tree with fewer than two points has no root yet
            tree.connected = set(range(k))
            tree.disconnected = []
        tree.points.append(p)
        if not tree.connected:
            tree.connected.add(k)
            return tree

        new_edges = []
        for i in range(k):
            e = self._edge(i, k, tree.points[i], p)
            if e is not None:
                new_edges.append(e)

        if not any(e.a in tree.connected for e in new_edges):
            tree.disconnected.append(k)
            tree.pending.extend(new_edges)
            logger.debug(f"[MST] point {k} {p} could not be connected")
            return tree

        tree.pending = self._grow(tree, tree.pending + new_edges)
        logger.debug(f"[MST] point {k} {p} connected, {len(tree.disconnected)} points still disconnected")
        return tree

    def build_incrementally(self, points: Sequence[Sequence[int]]) -> SpanningTree:
        tree = SpanningTree()
        for p in points:
            tree = self.insert(tree, p)
        return tree


def find_mst(
    grid: Grid,
    points: Sequence[Sequence[int]],
    bridge_budget: int = 0,
    bridge_cost: float = 0,
) -> SpanningTree:
    return SpanningTreeBuilder(grid, bridge_budget, bridge_cost).build(points)
