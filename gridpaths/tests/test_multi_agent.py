import pytest

from gridpaths.algorithms.errors import BlockedCellError, InvalidParameterError, OutOfBoundsError
from gridpaths.algorithms.grid import Grid
from gridpaths.algorithms.multi_agent import (
    Agent,
    MultiAgentPlanner,
    arrival_time,
    find_collisions,
    plan_agents,
)


def assert_moves_are_legal(grid, path):
    for (x1, y1), (x2, y2) in zip(path, path[1:]):
        assert abs(x1 - x2) + abs(y1 - y2) <= 1
    assert all(grid.is_walkable(p) for p in path)


def assert_collision_free(paths):
    paths = [p for p in paths if p]
    max_len = max(len(p) for p in paths)

    def at(path, t):
        return path[t] if t < len(path) else path[-1]

    for t in range(max_len):
        occupied = set()
        for path in paths:
            pos = at(path, t)
            assert pos not in occupied
            occupied.add(pos)
    for t in range(max_len - 1):
        for i, p in enumerate(paths):
            for q in paths[i + 1:]:
                swap = at(p, t) == at(q, t + 1) and at(p, t + 1) == at(q, t)
                assert not (swap and at(p, t) != at(p, t + 1))


def test_two_agents_crossing():
    grid = Grid.open(10, 10)
    agents = [Agent(0, (0, 0), (9, 9)), Agent(1, (9, 0), (0, 9))]
    result = plan_agents(grid, agents)

    assert result.failed == []
    assert result.horizon == 20
    for agent in agents:
        assert agent.path[0] == agent.start
        assert agent.path[-1] == agent.goal
        assert len(agent.path) == result.horizon + 1
        assert_moves_are_legal(grid, agent.path)
    assert_collision_free([a.path for a in agents])
    assert find_collisions(result.paths) == []


def test_three_agents_through_the_same_cell():
    grid = Grid.open(5, 5)
    agents = [
        Agent("a", (0, 2), (4, 2)),
        Agent("b", (2, 0), (2, 4)),
        Agent("c", (4, 2), (0, 2)),
    ]
    result = MultiAgentPlanner(grid).plan(agents)

    assert result.success
    assert_collision_free([a.path for a in agents])
    assert find_collisions(result.planned()) == []
    for agent in agents:
        assert agent.path[0] == agent.start
        assert agent.path[-1] == agent.goal
        assert_moves_are_legal(grid, agent.path)
    # the first agent is never delayed by later ones
    assert arrival_time(agents[0].path) == 4


def test_priority_order_is_respected():
    grid = Grid.from_strings([
        "......",
        ".##...",
        "......",
    ])
    lead = Agent(1, (0, 0), (5, 2))
    solo = MultiAgentPlanner(grid).plan([Agent(1, (0, 0), (5, 2))])

    result = MultiAgentPlanner(grid).plan([lead, Agent(2, (5, 2), (0, 0)), Agent(3, (0, 2), (5, 0))])
    assert result.paths[1] == solo.paths[1]
    assert find_collisions(result.planned()) == []


def test_failure_does_not_abort_batch():
    grid = Grid.from_strings([
        ".....",
        "#####",
        ".....",
    ])
    agents = [
        Agent("A", (0, 0), (4, 0)),
        Agent("B", (4, 0), (0, 0)),  # head-on in a one-lane corridor
        Agent("C", (0, 2), (4, 2)),
        Agent("D"),  # never placed
    ]
    result = MultiAgentPlanner(grid).plan(agents)

    assert result.failed == ["B", "D"]
    assert result.paths["B"] is None and result.paths["D"] is None
    assert agents[1].path == []
    assert result.paths["A"][:5] == [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]
    assert result.paths["C"][-1] == (4, 2)
    # failed agents leave no trace in the table
    assert not result.reservations.is_vertex_reserved(0, 4, 0)
    assert find_collisions(result.planned()) == []


def test_waits_until_goal_is_clear():
    grid = Grid.open(5, 2)
    first = Agent(1, (0, 0), (4, 0))
    second = Agent(2, (2, 1), (2, 0))
    result = MultiAgentPlanner(grid).plan([first, second])

    assert result.success
    assert first.path[:5] == [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]
    # (2, 0) is crossed by the first agent at t=2, so the second cannot settle earlier
    assert arrival_time(second.path) >= 3
    assert find_collisions(result.paths) == []
    assert result.makespan() == max(arrival_time(first.path), arrival_time(second.path))


def test_horizon_limits_search():
    grid = Grid.open(5, 5)
    result = MultiAgentPlanner(grid).plan([Agent(0, (0, 0), (4, 4))], horizon=3)
    assert result.failed == [0]

    result = MultiAgentPlanner(grid).plan([Agent(0, (0, 0), (4, 4))], horizon=8)
    assert result.paths[0][-1] == (4, 4)
    assert len(result.paths[0]) == 9


def test_shared_start_fails_second_agent():
    grid = Grid.open(4, 4)
    result = MultiAgentPlanner(grid).plan([Agent(0, (1, 1), (3, 3)), Agent(1, (1, 1), (0, 0))])
    assert result.failed == [1]


def test_agent_already_at_goal_waits_there():
    grid = Grid.open(3, 3)
    result = MultiAgentPlanner(grid).plan([Agent(0, (1, 1), (1, 1))], horizon=4)
    assert result.paths[0] == [(1, 1)] * 5
    assert arrival_time(result.paths[0]) == 0


def test_invalid_input_rejected_before_planning():
    grid = Grid.from_strings(["...", ".#.", "..."])
    planner = MultiAgentPlanner(grid)
    with pytest.raises(InvalidParameterError):
        planner.plan([Agent(0, (0, 0), (2, 2))], horizon=-1)
    with pytest.raises(InvalidParameterError):
        planner.plan([Agent(0, (0, 0), (2, 2)), Agent(0, (2, 0), (0, 2))])
    with pytest.raises(OutOfBoundsError):
        planner.plan([Agent(0, (0, 0), (3, 2))])
    with pytest.raises(BlockedCellError):
        planner.plan([Agent(0, (1, 1), (0, 0))])


def test_find_collisions_reports_conflicts():
    paths = {
        "x": [(0, 0), (1, 0), (2, 0)],
        "y": [(1, 0), (0, 0), (0, 1)],
        "z": [(5, 5), (5, 4), (2, 0)],
    }
    conflicts = find_collisions(paths)
    kinds = {(c["type"], c["time"]) for c in conflicts}
    assert ("edge", 0) in kinds
    assert ("vertex", 2) in kinds
