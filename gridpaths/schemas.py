"""
Request payload models for the HTTP service.

Pydantic validates the JSON shape; semantic checks (rectangular grid, points
in bounds and walkable) are left to the core, which raises GridError.
"""

from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from gridpaths.algorithms.grid import Grid
from gridpaths.algorithms.multi_agent import Agent
from gridpaths.algorithms.spanning_tree import SpanningTree
from gridpaths.config import Config

Point = Tuple[int, int]


class RectObstacle(BaseModel):
    """Axis-aligned obstacle rectangle in world units"""
    x: float
    y: float
    w: float = Field(..., ge=0)
    h: float = Field(..., ge=0)


class RectGrid(BaseModel):
    """Grid described by its size and a list of blocked rectangles"""
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    obstacles: List[RectObstacle] = Field(default_factory=list)
    cell_size: float = Field(1.0, gt=0)


GridPayload = Union[List[List[Union[bool, int]]], RectGrid]


class GridRequest(BaseModel):
    grid: GridPayload

    @field_validator("grid")
    @classmethod
    def validate_grid_size(cls, v: GridPayload) -> GridPayload:
        if isinstance(v, RectGrid):
            cells = v.width * v.height
        else:
            cells = len(v) * (len(v[0]) if v else 0)
        if cells > Config.MAX_GRID_CELLS:
            raise ValueError(f"grid has {cells} cells, the limit is {Config.MAX_GRID_CELLS}")
        return v

    def build_grid(self) -> Grid:
        if isinstance(self.grid, RectGrid):
            return Grid.from_rects(
                self.grid.width,
                self.grid.height,
                [o.model_dump() for o in self.grid.obstacles],
                self.grid.cell_size,
            )
        return Grid.from_rows(self.grid)


class BridgingRequest(GridRequest):
    bridge_budget: int = Field(0, ge=0, description="maximum number of non-walkable cells crossed")
    bridge_cost: float = Field(0.0, ge=0, description="cost of each bridged cell")


class PathRequest(BridgingRequest):
    start: Point
    goal: Point


class SearchRunRequest(PathRequest):
    run_id: Optional[str] = None
    trace_limit: Optional[int] = Field(None, gt=0)


class AgentSpec(BaseModel):
    id: Union[int, str]
    start: Optional[Point] = None
    goal: Optional[Point] = None

    def to_agent(self) -> Agent:
        return Agent(id=self.id, start=self.start, goal=self.goal)


class AgentsRequest(GridRequest):
    agents: List[AgentSpec]
    horizon: Optional[int] = Field(None, ge=0, le=Config.MAX_HORIZON)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "AgentsRequest":
        # ids key the JSON response, so 1 and "1" name the same agent
        seen = set()
        for agent in self.agents:
            key = str(agent.id)
            if key in seen:
                raise ValueError(f"duplicate agent id {key!r}")
            seen.add(key)
        return self


class MSTRequest(BridgingRequest):
    points: List[Point]


class PendingEdge(BaseModel):
    a: int = Field(..., ge=0)
    b: int = Field(..., ge=0)
    cost: int = Field(..., ge=0)
    path: List[Point]


class TreeState(BaseModel):
    """A tree previously returned by the MST endpoints"""
    points: List[Point] = Field(default_factory=list)
    segments: List[List[Point]] = Field(default_factory=list)
    edges: List[Tuple[int, int]] = Field(default_factory=list)
    connected: List[int] = Field(default_factory=list)
    disconnected: List[int] = Field(default_factory=list)
    pending: List[PendingEdge] = Field(default_factory=list)

    @field_validator("connected", "disconnected")
    @classmethod
    def validate_indices(cls, v: List[int]) -> List[int]:
        if any(i < 0 for i in v):
            raise ValueError("point indices must be non-negative")
        return v

    @model_validator(mode="after")
    def validate_references(self) -> "TreeState":
        n = len(self.points)
        indices = list(self.connected) + list(self.disconnected)
        indices += [i for e in self.edges for i in e]
        indices += [i for e in self.pending for i in (e.a, e.b)]
        if any(i >= n for i in indices):
            raise ValueError(f"tree refers to a point index outside its {n} points")
        return self

    def to_tree(self) -> SpanningTree:
        return SpanningTree.from_dict(self.model_dump())


class MSTInsertRequest(BridgingRequest):
    tree: TreeState
    point: Point
