import numpy as np
import pytest

from gridpaths.algorithms.errors import BlockedCellError
from gridpaths.algorithms.grid import Grid
from gridpaths.algorithms.spanning_tree import SpanningTree, SpanningTreeBuilder, find_mst

ISLAND = Grid.from_strings([
    ".......",
    ".......",
    ".......",
    "###....",
    "..#....",
    "..#....",
])


def assert_is_tree(tree):
    assert len(tree.segments) == len(tree.edges) == len(tree.connected) - 1
    for (a, b), seg in zip(tree.edges, tree.segments):
        assert seg[0] == tree.points[a]
        assert seg[-1] == tree.points[b]
    # every connected point other than the root is attached exactly once
    attached = [b for _, b in tree.edges]
    assert len(attached) == len(set(attached))
    assert set(attached) | {0} == tree.connected


def test_open_grid_connects_everything():
    grid = Grid.open(6, 6)
    points = [(0, 0), (5, 0), (0, 5), (5, 5)]
    tree = find_mst(grid, points)

    assert tree.connected == {0, 1, 2, 3}
    assert tree.disconnected == []
    assert_is_tree(tree)
    # three edges of Manhattan length 5, six cells each
    assert tree.total_length() == 18
    assert set(points) <= set(tree.tiles())


def test_fewer_than_two_points_is_empty():
    grid = Grid.open(3, 3)
    assert find_mst(grid, []).segments == []
    single = find_mst(grid, [(1, 1)])
    assert single.segments == [] and single.connected == set() and single.disconnected == []


def test_unreachable_point_is_reported_not_fatal():
    tree = find_mst(ISLAND, [(0, 0), (6, 0), (0, 5), (6, 5)])
    assert tree.disconnected == [2]
    assert tree.connected == {0, 1, 3}
    assert tree.disconnected_points() == [(0, 5)]
    assert_is_tree(tree)


def test_bridging_reaches_the_island():
    tree = find_mst(ISLAND, [(0, 0), (6, 0), (0, 5)], bridge_budget=1, bridge_cost=5)
    assert tree.disconnected == []
    assert tree.connected == {0, 1, 2}
    assert_is_tree(tree)


def test_points_must_be_walkable():
    with pytest.raises(BlockedCellError):
        find_mst(ISLAND, [(0, 0), (0, 3)])


def test_insert_uses_one_search_per_existing_point():
    grid = Grid.open(8, 8)
    builder = SpanningTreeBuilder(grid)
    tree = SpanningTree()
    points = [(0, 0), (7, 0), (3, 3), (0, 7), (7, 7), (4, 6)]
    for k, p in enumerate(points):
        before = builder.path_calls
        tree = builder.insert(tree, p)
        assert builder.path_calls - before == k
    assert tree.connected == set(range(len(points)))
    assert_is_tree(tree)


def test_insert_leaves_input_untouched():
    grid = Grid.open(5, 5)
    builder = SpanningTreeBuilder(grid)
    base = builder.build([(0, 0), (4, 4)])
    grown = builder.insert(base, (4, 0))
    assert len(base.points) == 2 and len(base.segments) == 1
    assert len(grown.points) == 3 and len(grown.segments) == 2


def test_insert_after_single_point_build():
    grid = Grid.open(4, 4)
    builder = SpanningTreeBuilder(grid)
    tree = builder.insert(builder.build([(0, 0)]), (3, 3))
    assert tree.connected == {0, 1}
    assert tree.segments[0][0] == (0, 0) and tree.segments[0][-1] == (3, 3)


def test_insert_into_unreachable_region():
    builder = SpanningTreeBuilder(ISLAND)
    tree = builder.build([(0, 0), (6, 0)])
    tree = builder.insert(tree, (1, 4))
    assert tree.disconnected == [2]
    tree = builder.insert(tree, (0, 5))
    assert tree.disconnected == [2, 3]
    # the two island points found each other; that edge is kept for later
    assert [(e.a, e.b) for e in tree.pending] == [(2, 3)]


def test_late_point_pulls_in_disconnected_points():
    # each wall is one cell thick; a budget of one bridge cannot cross both
    grid = Grid.from_strings([
        "..#.#..",
        "..#.#..",
    ])
    builder = SpanningTreeBuilder(grid, bridge_budget=1, bridge_cost=3)
    tree = builder.build_incrementally([(0, 0), (6, 1)])
    assert tree.disconnected == [1]

    tree = builder.insert(tree, (3, 0))
    assert tree.disconnected == []
    assert tree.connected == {0, 1, 2}
    assert_is_tree(tree)

    batch = builder.build([(0, 0), (6, 1), (3, 0)])
    assert batch.connected == tree.connected


@pytest.mark.parametrize("seed", range(6))
def test_incremental_matches_batch_partition(seed):
    rng = np.random.default_rng(seed)
    walkable = rng.random((12, 12)) >= 0.45
    grid = Grid(walkable)
    free = [(int(x), int(y)) for y, x in zip(*np.nonzero(walkable))]
    picks = rng.choice(len(free), size=min(7, len(free)), replace=False)
    points = [free[i] for i in picks]

    builder = SpanningTreeBuilder(grid, bridge_budget=seed % 2, bridge_cost=4)
    batch = builder.build(points)
    incremental = builder.build_incrementally(points)

    assert incremental.connected == batch.connected
    assert incremental.disconnected == batch.disconnected
    assert_is_tree(batch)
    assert_is_tree(incremental)


def test_dict_round_trip_keeps_growing():
    builder = SpanningTreeBuilder(ISLAND)
    tree = builder.build([(0, 0), (6, 0), (0, 5)])
    restored = SpanningTree.from_dict(tree.to_dict())
    assert restored.connected == tree.connected
    assert restored.segments == tree.segments
    grown = builder.insert(restored, (6, 5))
    assert grown.connected == {0, 1, 3}
    assert grown.disconnected == [2]
