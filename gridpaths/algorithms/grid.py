"""Rectangular walkability grid shared by every search.

Grid coordinates are integer indices (x, y) = (column, row). The grid is
read-only once built; callers that regenerate terrain build a new Grid.
"""
from __future__ import annotations

from typing import Iterable, Iterator, List, Mapping, Sequence, Tuple

import math

import numpy as np
from shapely.geometry import Point, box

from gridpaths.algorithms.errors import (
    BlockedCellError,
    MalformedGridError,
    OutOfBoundsError,
)

Coord = Tuple[int, int]
DIRS4: List[Coord] = [(1, 0), (-1, 0), (0, 1), (0, -1)]


def manhattan(a: Coord, b: Coord) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


class Grid:
    def __init__(self, walkable: np.ndarray):
        """walkable[y, x] == True  => cell can be entered without bridging"""
        try:
            arr = np.array(walkable, dtype=bool)
        except (TypeError, ValueError) as exc:
            # ragged nested lists
            raise MalformedGridError(f"grid is not rectangular: {exc}") from exc
        if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[1] == 0:
            raise MalformedGridError(f"grid must be a non-empty 2-D array, got shape {arr.shape}")
        arr.setflags(write=False)
        self.walkable = arr
        self.height, self.width = arr.shape

    # --------------------------------------------------
    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[object]]) -> "Grid":
        """Build from nested rows, ``rows[y][x]`` truthy when walkable."""
        rows = list(rows)
        if not rows:
            raise MalformedGridError("grid has no rows")
        width = len(rows[0])
        for y, row in enumerate(rows):
            if len(row) != width:
                raise MalformedGridError(
                    f"grid is not rectangular: row {y} has {len(row)} cells, expected {width}"
                )
        return cls(np.array([[bool(v) for v in row] for row in rows], dtype=bool).reshape(len(rows), width))

    @classmethod
    def from_strings(cls, lines: Iterable[str], blocked: str = "#") -> "Grid":
        return cls.from_rows([[ch not in blocked for ch in line] for line in lines])

    @classmethod
    def open(cls, width: int, height: int) -> "Grid":
        if width <= 0 or height <= 0:
            raise MalformedGridError(f"grid dimensions must be positive, got {width}x{height}")
        return cls(np.ones((height, width), dtype=bool))

    @classmethod
    def from_rects(
        cls,
        width: int,
        height: int,
        rects: Iterable[Mapping[str, float]],
        cell_size: float = 1,
    ) -> "Grid":
        """Block every cell whose centre lies inside (or on) an obstacle rectangle.

        Rectangles are ``{"x", "y", "w", "h"}`` in world units with the grid
        origin at (0, 0); ``cell_size`` converts cells to world units.
        """
        if width <= 0 or height <= 0:
            raise MalformedGridError(f"grid dimensions must be positive, got {width}x{height}")
        if cell_size <= 0:
            raise MalformedGridError(f"cell_size must be positive, got {cell_size}")
        walkable = np.ones((height, width), dtype=bool)
        for rect in rects:
            rx, ry, rw, rh = rect["x"], rect["y"], rect["w"], rect["h"]
            shape = box(rx, ry, rx + rw, ry + rh)
            # only test cells whose centres can fall inside the rectangle
            x0 = max(0, math.floor(rx / cell_size - 0.5))
            x1 = min(width, math.ceil((rx + rw) / cell_size + 0.5))
            y0 = max(0, math.floor(ry / cell_size - 0.5))
            y1 = min(height, math.ceil((ry + rh) / cell_size + 0.5))
            for j in range(y0, y1):
                for i in range(x0, x1):
                    centre = Point((i + 0.5) * cell_size, (j + 0.5) * cell_size)
                    if shape.intersects(centre):
                        walkable[j, i] = False
        return cls(walkable)

    # --------------------------------------------------
    def in_bounds(self, p: Coord) -> bool:
        x, y = p
        return 0 <= x < self.width and 0 <= y < self.height

    def is_walkable(self, p: Coord) -> bool:
        return bool(self.walkable[p[1], p[0]])

    def neighbours(self, p: Coord) -> Iterator[Coord]:
        """In-bounds 4-neighbours of p, walkable or not."""
        x, y = p
        for dx, dy in DIRS4:
            q = (x + dx, y + dy)
            if self.in_bounds(q):
                yield q

    def walkable_neighbours(self, p: Coord) -> Iterator[Coord]:
        for q in self.neighbours(p):
            if self.is_walkable(q):
                yield q

    def check_point(self, p: Sequence[int], label: str = "point", require_walkable: bool = True) -> Coord:
        """Validate a caller-supplied coordinate and return it as a tuple."""
        if len(p) != 2:
            raise OutOfBoundsError(f"{label} must be an (x, y) pair, got {p!r}")
        x, y = p
        if isinstance(x, bool) or isinstance(y, bool) or not isinstance(x, (int, np.integer)) or not isinstance(y, (int, np.integer)):
            raise OutOfBoundsError(f"{label} must have integer coordinates, got {p!r}")
        q = (int(x), int(y))
        if not self.in_bounds(q):
            raise OutOfBoundsError(f"{label} {q} is outside the {self.width}x{self.height} grid")
        if require_walkable and not self.is_walkable(q):
            raise BlockedCellError(f"{label} {q} is not walkable")
        return q

    # --------------------------------------------------
    @property
    def size(self) -> int:
        return self.width * self.height

    def walkable_count(self) -> int:
        return int(self.walkable.sum())

    def to_rows(self) -> List[List[bool]]:
        return self.walkable.tolist()

    def to_strings(self, blocked: str = "#", free: str = ".") -> List[str]:
        return ["".join(free if v else blocked for v in row) for row in self.walkable]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.walkable.shape == other.walkable.shape and bool(np.array_equal(self.walkable, other.walkable))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Grid({self.width}x{self.height}, walkable={self.walkable_count()})"
