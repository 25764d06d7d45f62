"""Tests for pin/node/link point queries and box selection."""

import random

from nodegraph_mcp.curves import CurvePathComputer
from nodegraph_mcp.geometry import GeometryCache
from nodegraph_mcp.hit_test import (
    find_link_at,
    find_node_at,
    find_pin_at,
    links_connected_to_node,
    links_in_box,
    nodes_in_box,
    normalize_box,
)
from nodegraph_mcp.models import NOT_FOUND, LinkEndpoints, LinkGeometry, NodeRect


# ===================================================================
# Pin-at
# ===================================================================

class TestFindPinAt:

    def test_hit_within_radius(self) -> None:
        pins = [(1, 100, 100), (2, 200, 100)]
        assert find_pin_at(104, 103, pins, 10) == 1

    def test_miss(self) -> None:
        assert find_pin_at(0, 0, [(1, 100, 100)], 10) == NOT_FOUND

    def test_radius_boundary_inclusive(self) -> None:
        assert find_pin_at(110, 100, [(1, 100, 100)], 10) == 1

    def test_closest_wins(self) -> None:
        pins = [(1, 100, 100), (2, 106, 100)]
        assert find_pin_at(104, 100, pins, 10) == 2

    def test_tie_prefers_higher_id(self) -> None:
        pins = [(3, 100, 100), (9, 100, 100), (4, 100, 100)]
        assert find_pin_at(100, 100, pins, 10) == 9

    def test_tie_is_independent_of_input_order(self) -> None:
        pins = [(pin_id, 100, 100) for pin_id in range(1, 30)]
        rng = random.Random(7)
        for _ in range(20):
            rng.shuffle(pins)
            assert find_pin_at(100, 100, pins, 10) == 29

    def test_empty(self) -> None:
        assert find_pin_at(0, 0, [], 10) == NOT_FOUND


# ===================================================================
# Node-at
# ===================================================================

class TestFindNodeAt:

    def test_single(self) -> None:
        rects = [(1, NodeRect(0, 0, 100, 50))]
        assert find_node_at(50, 25, rects) == 1
        assert find_node_at(150, 25, rects) == NOT_FOUND

    def test_overlap_uses_z_order(self) -> None:
        rects = [(1, NodeRect(0, 0, 100, 100)), (2, NodeRect(50, 50, 100, 100))]
        assert find_node_at(75, 75, rects, z_order=[1, 2]) == 1
        assert find_node_at(75, 75, rects, z_order=[2]) == 2

    def test_overlap_without_z_order_prefers_higher_id(self) -> None:
        rects = [(7, NodeRect(0, 0, 100, 100)), (3, NodeRect(0, 0, 100, 100))]
        assert find_node_at(10, 10, rects) == 7


# ===================================================================
# Link-at
# ===================================================================

class TestFindLinkAt:

    def test_hit_on_curve(self) -> None:
        links = [LinkGeometry(1, 0, 0, 200, 0)]
        assert find_link_at(100, 3, links, tolerance=5) == 1

    def test_miss_beyond_tolerance(self) -> None:
        links = [LinkGeometry(1, 0, 0, 200, 0)]
        assert find_link_at(100, 30, links, tolerance=5) == NOT_FOUND

    def test_closest_link(self) -> None:
        links = [LinkGeometry(1, 0, 0, 200, 0), LinkGeometry(2, 0, 6, 200, 6)]
        assert find_link_at(100, 4, links, tolerance=5) == 2

    def test_straight_link_hit_along_drawn_line(self) -> None:
        comp = CurvePathComputer(straight_threshold=100)
        links = [LinkGeometry(7, 0, 0, 0, 60)]
        for y in (5, 10, 30, 50, 55):
            assert find_link_at(0, y, links, tolerance=2, computer=comp) == 7
        assert find_link_at(30, 30, links, tolerance=2, computer=comp) == NOT_FOUND


# ===================================================================
# Box selection
# ===================================================================

class TestBoxSelection:

    def test_inclusive_edge(self) -> None:
        rects = [(1, NodeRect(0, 0, 10, 10))]
        assert nodes_in_box(NodeRect(10, 10, 5, 5), rects) == [1]

    def test_negative_box_size(self) -> None:
        rects = [(1, NodeRect(0, 0, 10, 10)), (2, NodeRect(100, 100, 10, 10))]
        box = normalize_box(50, 50, -45, -45)
        assert box == NodeRect(5, 5, 45, 45)
        assert nodes_in_box(box, rects) == [1]

    def test_sorted_ids(self) -> None:
        rects = [(9, NodeRect(0, 0, 5, 5)), (2, NodeRect(1, 1, 5, 5))]
        assert nodes_in_box(NodeRect(0, 0, 20, 20), rects) == [2, 9]

    def test_straight_link_in_box(self) -> None:
        comp = CurvePathComputer(straight_threshold=100)
        links = [LinkGeometry(7, 0, 0, 0, 60)]
        assert links_in_box(NodeRect(-2, 8, 4, 4), links, comp) == [7]
        assert links_in_box(NodeRect(-2, 8, 4, 4), links) == []

    def test_links_in_box(self) -> None:
        links = [LinkGeometry(1, 0, 0, 200, 0), LinkGeometry(2, 0, 500, 200, 500)]
        assert links_in_box(NodeRect(90, -5, 20, 10), links) == [1]
        assert links_in_box(NodeRect(300, 300, 10, 10), links) == []


def test_links_connected_to_node() -> None:
    cache = GeometryCache()
    cache.update_pin_position(51, 5, 0, 0)
    cache.update_pin_position(61, 6, 0, 0)
    cache.update_pin_position(71, 7, 0, 0)
    links = [LinkEndpoints(1, 51, 61), LinkEndpoints(2, 61, 71), LinkEndpoints(3, 71, 51)]
    assert links_connected_to_node(5, links, cache) == [1, 3]
    assert links_connected_to_node(8, links, cache) == []
