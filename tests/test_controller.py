"""Tests for the editor controller (composition of all engine parts)."""

import pytest

from nodegraph_mcp.config import EditorConfig
from nodegraph_mcp.curves import CurvePathComputer
from nodegraph_mcp.controller import EditorController
from nodegraph_mcp.layout import LayeredLayoutConfig
from nodegraph_mcp.models import NOT_FOUND, LinkEndpoints, LinkRequest, LodTier, NodeRect, PinType
from nodegraph_mcp.policies import BasicLinkPolicy, CompositePolicy, NoDuplicatesPolicy
from nodegraph_mcp.validation import ConfigurationError


def _editor(**kwargs) -> EditorController:
    """Two nodes: 5 at (100,100) with output pin 51, 6 at (400,100) with input pin 61."""
    ctrl = EditorController(**kwargs)
    ctrl.node_rect_changed(5, 100, 100, 150, 80)
    ctrl.pin_position_changed(51, 5, PinType.OUTPUT, 150, 40)
    ctrl.pin_position_changed(52, 5, PinType.INPUT, 0, 40)
    ctrl.node_rect_changed(6, 400, 100, 150, 80)
    ctrl.pin_position_changed(61, 6, PinType.INPUT, 0, 40)
    return ctrl


class _CountingComputer:
    """Delegates to a real computer and counts full-path builds."""

    def __init__(self) -> None:
        self.inner = CurvePathComputer()
        self.calls = 0

    def curve(self, *args, **kwargs):
        return self.inner.curve(*args, **kwargs)

    def path(self, *args, **kwargs) -> str:
        self.calls += 1
        return self.inner.path(*args, **kwargs)

    def partial_path(self, *args, **kwargs) -> str:
        return self.inner.partial_path(*args, **kwargs)


# ===================================================================
# Geometry and viewport
# ===================================================================

class TestGeometry:

    def test_screen_rect_is_stored_in_world(self) -> None:
        ctrl = EditorController()
        ctrl.set_viewport(2.0, 10, 20)
        rect = ctrl.node_rect_changed_screen(1, 210, 220, 100, 50)
        assert rect == NodeRect(100, 100, 50, 25)

    def test_set_viewport_clamps(self) -> None:
        ctrl = EditorController()
        assert ctrl.set_viewport(10.0, 0, 0) == 3.0
        assert ctrl.set_viewport(0.01, 0, 0) == 0.1

    def test_custom_zoom_bounds(self) -> None:
        ctrl = EditorController(EditorConfig(min_zoom=0.5, max_zoom=2.0))
        assert ctrl.set_viewport(5, 0, 0) == 2.0

    def test_forget_node_cascade(self) -> None:
        ctrl = _editor()
        ctrl.register_link(1, 51, 61)
        ctrl.select_node(5)
        version = ctrl.selection_version
        purged = ctrl.forget_node(5)
        assert purged == [51, 52]
        assert ctrl.compute_pin_at(250, 140) == NOT_FOUND
        assert ctrl.compute_link_path(51, 61) == ""
        assert ctrl.links() == []
        assert not ctrl.is_node_selected(5)
        assert ctrl.selection_version > version

    def test_lod_tier_follows_zoom(self) -> None:
        ctrl = EditorController()
        assert ctrl.lod_tier() is LodTier.FULL
        ctrl.set_viewport(0.5, 0, 0)
        assert ctrl.lod_tier() is LodTier.SIMPLIFIED
        ctrl.set_viewport(0.25, 0, 0)
        assert ctrl.lod_tier() is LodTier.MINIMAL


# ===================================================================
# Point queries
# ===================================================================

class TestPointQueries:

    def test_pin_at(self) -> None:
        ctrl = _editor()
        assert ctrl.compute_pin_at(252, 141) == 51
        assert ctrl.compute_pin_at(0, 0) == NOT_FOUND

    def test_pin_at_uses_screen_space(self) -> None:
        ctrl = _editor()
        ctrl.set_viewport(2.0, -100, 0)
        # pin 51 world (250, 140) -> screen (400, 280)
        assert ctrl.compute_pin_at(400, 280) == 51
        assert ctrl.compute_pin_at(250, 140) == NOT_FOUND

    def test_pin_tie_prefers_higher_id(self) -> None:
        ctrl = EditorController()
        ctrl.node_rect_changed(1, 0, 0, 100, 100)
        ctrl.pin_position_changed(10, 1, PinType.INPUT, 50, 50)
        ctrl.pin_position_changed(20, 1, PinType.OUTPUT, 50, 50)
        assert ctrl.compute_pin_at(50, 50) == 20

    def test_pin_tie_is_stable_across_queries(self) -> None:
        ctrl = EditorController()
        ctrl.node_rect_changed(1, 0, 0, 100, 100)
        for pin_id in (30, 10, 40, 20):
            ctrl.pin_position_changed(pin_id, 1, PinType.INPUT, 50, 50)
        assert {ctrl.compute_pin_at(50, 50) for _ in range(10)} == {40}
        ctrl.pin_position_changed(40, 1, PinType.INPUT, 50, 50)
        assert ctrl.compute_pin_at(50, 50) == 40

    def test_node_at_selected_is_topmost(self) -> None:
        ctrl = EditorController()
        ctrl.node_rect_changed(1, 0, 0, 100, 100)
        ctrl.node_rect_changed(2, 50, 50, 100, 100)
        assert ctrl.compute_node_at(75, 75) == 2
        ctrl.select_node(1)
        assert ctrl.compute_node_at(75, 75) == 1
        assert ctrl.compute_node_at(500, 500) == NOT_FOUND

    def test_straight_link_hit_matches_drawn_line(self) -> None:
        ctrl = EditorController(EditorConfig(straight_threshold=100))
        ctrl.node_rect_changed(1, 0, 0, 10, 10)
        ctrl.pin_position_changed(11, 1, PinType.OUTPUT, 0, 0)
        ctrl.node_rect_changed(2, 0, 60, 10, 10)
        ctrl.pin_position_changed(21, 2, PinType.INPUT, 0, 0)
        ctrl.register_link(7, 11, 21)
        assert ctrl.compute_link_path(11, 21) == "M 0 0 L 0 60"
        for y in (5, 15, 30, 45):
            assert ctrl.compute_link_at(0, y) == 7
        assert ctrl.compute_link_box_selection(-2, 8, 4, 4) == [7]
        assert ctrl.compute_link_box_selection(-2, 28, 4, 4) == [7]

    def test_link_at(self) -> None:
        ctrl = _editor()
        ctrl.register_link(7, 51, 61)
        # straight horizontal curve from (250,140) to (400,140)
        assert ctrl.compute_link_at(325, 143) == 7
        assert ctrl.compute_link_at(325, 200) == NOT_FOUND

    def test_link_at_explicit_candidates(self) -> None:
        ctrl = _editor()
        assert ctrl.compute_link_at(325, 140, [LinkEndpoints(9, 51, 61)]) == 9
        assert ctrl.compute_link_at(325, 140) == NOT_FOUND


# ===================================================================
# Box selection
# ===================================================================

class TestBoxSelection:

    def test_box_world(self) -> None:
        ctrl = _editor()
        assert ctrl.compute_box_selection(0, 0, 300, 300) == [5]
        assert ctrl.compute_box_selection(0, 0, 1000, 1000) == [5, 6]

    def test_box_screen(self) -> None:
        ctrl = _editor()
        ctrl.set_viewport(0.5, 0, 0)
        assert ctrl.compute_box_selection_screen(0, 0, 150, 150) == [5]

    def test_apply_box_selection_single_bump(self) -> None:
        ctrl = _editor()
        ctrl.register_link(7, 51, 61)
        before = ctrl.selection_version
        nodes, link_ids = ctrl.apply_box_selection(0, 0, 1000, 1000)
        assert nodes == [5, 6]
        assert link_ids == [7]
        assert ctrl.selection_version == before + 1
        assert ctrl.is_link_selected(7)

    def test_select_all(self) -> None:
        ctrl = _editor()
        ctrl.select_all_nodes()
        assert ctrl.selection.selected_nodes() == (5, 6)


# ===================================================================
# Paths and grid
# ===================================================================

class TestPaths:

    def test_link_path(self) -> None:
        ctrl = _editor()
        assert ctrl.compute_link_path(51, 61) == "M 250 140 C 325 140 325 140 400 140"

    def test_link_path_memoized_within_version(self) -> None:
        counter = _CountingComputer()
        ctrl = _editor(path_computer=counter)
        first = ctrl.compute_link_path(51, 61)
        assert ctrl.compute_link_path(51, 61) is first
        assert counter.calls == 1

    def test_link_path_recomputed_after_version_change(self) -> None:
        counter = _CountingComputer()
        ctrl = _editor(path_computer=counter)
        first = ctrl.compute_link_path(51, 61)
        ctrl.select_node(5)
        assert ctrl.compute_link_path(51, 61) == first
        assert counter.calls == 2
        ctrl.compute_link_path(51, 61)
        assert counter.calls == 2

    def test_link_path_explicit_version_keys_memo(self) -> None:
        counter = _CountingComputer()
        ctrl = _editor(path_computer=counter)
        ctrl.compute_link_path(51, 61, 4)
        ctrl.compute_link_path(51, 61, 4)
        assert counter.calls == 1
        ctrl.compute_link_path(51, 61, 5)
        assert counter.calls == 2

    def test_link_path_recomputed_after_viewport_change(self) -> None:
        counter = _CountingComputer()
        ctrl = _editor(path_computer=counter)
        ctrl.compute_link_path(51, 61)
        ctrl.set_viewport(2.0, 0, 0)
        assert ctrl.compute_link_path(51, 61) == "M 500 280 C 650 280 650 280 800 280"
        assert counter.calls == 2

    def test_link_path_unknown_pin(self) -> None:
        assert _editor().compute_link_path(51, 999) == ""

    def test_link_path_follows_node_move(self) -> None:
        ctrl = _editor()
        first = ctrl.compute_link_path(51, 61, 0)
        ctrl.node_rect_changed(6, 500, 100, 150, 80)
        second = ctrl.compute_link_path(51, 61, 0)
        assert first != second
        assert second.endswith("500 140")

    def test_link_path_in_screen_space(self) -> None:
        ctrl = _editor()
        ctrl.set_viewport(2.0, 0, 0)
        assert ctrl.compute_link_path(51, 61) == "M 500 280 C 650 280 650 280 800 280"

    def test_partial_path(self) -> None:
        ctrl = _editor()
        assert ctrl.compute_partial_link_path(51, 61, 1.0) == ctrl.compute_link_path(51, 61)
        assert ctrl.compute_partial_link_path(51, 61, 0.5).endswith("325 140")

    def test_grid_cached_until_viewport_changes(self) -> None:
        ctrl = EditorController()
        first = ctrl.grid_path(48, 24)
        assert ctrl.grid_path(48, 24) is first
        ctrl.set_viewport(1.0, 5, 0)
        assert ctrl.grid_path(48, 24) != first


# ===================================================================
# Link registry and requests
# ===================================================================

class TestLinks:

    def test_registry(self) -> None:
        ctrl = _editor()
        ctrl.register_link(2, 51, 61)
        ctrl.register_link(1, 52, 61)
        assert [link.id for link in ctrl.links()] == [1, 2]
        assert ctrl.links_connected_to_node(6) == [1, 2]
        assert ctrl.unregister_link(2)
        assert not ctrl.unregister_link(2)

    def test_unregister_drops_selection(self) -> None:
        ctrl = _editor()
        ctrl.register_link(2, 51, 61)
        ctrl.select_link(2)
        ctrl.unregister_link(2)
        assert not ctrl.is_link_selected(2)

    def test_request_normalizes_direction(self) -> None:
        seen: list[LinkRequest] = []
        ctrl = _editor(on_link_requested=seen.append)
        request = ctrl.request_link(61, 51)
        assert request == LinkRequest(51, 61)
        assert seen == [request]

    def test_request_rejected_by_policy(self) -> None:
        seen: list[LinkRequest] = []
        ctrl = _editor(link_policy=BasicLinkPolicy(), on_link_requested=seen.append)
        assert ctrl.request_link(51, 52) is None
        assert ctrl.check_link(51, 52) == "Cannot link pins on same node"
        assert seen == []

    def test_duplicate_policy_uses_registry(self) -> None:
        ctrl = _editor()
        ctrl.link_policy = CompositePolicy(BasicLinkPolicy(), NoDuplicatesPolicy(ctrl.links))
        assert ctrl.request_link(51, 61) is not None
        ctrl.register_link(1, 51, 61)
        assert ctrl.check_link(61, 51) == "Link already exists"


# ===================================================================
# Gestures
# ===================================================================

class TestGestures:

    def test_link_drag_to_pin(self) -> None:
        seen: list[LinkRequest] = []
        ctrl = _editor(on_link_requested=seen.append)
        assert ctrl.begin_link_drag(51)
        assert ctrl.is_link_dragging
        preview = ctrl.update_link_drag(300, 200)
        assert preview.startswith("M 250 140 C")
        request = ctrl.end_link_drag(401, 141)
        assert request == LinkRequest(51, 61)
        assert not ctrl.is_link_dragging
        assert seen == [request]

    def test_link_drag_dropped_on_empty_space(self) -> None:
        ctrl = _editor()
        ctrl.begin_link_drag(51)
        assert ctrl.end_link_drag(900, 900) is None

    def test_link_drag_unknown_pin(self) -> None:
        ctrl = _editor()
        assert not ctrl.begin_link_drag(999)
        assert ctrl.update_link_drag(0, 0) == ""

    def test_cancel_link_drag(self) -> None:
        ctrl = _editor()
        ctrl.begin_link_drag(51)
        assert ctrl.cancel_link_drag()
        assert not ctrl.cancel_link_drag()

    def test_node_drag_moves_selection(self) -> None:
        ctrl = _editor()
        ctrl.replace_node_selection([5, 6])
        assert ctrl.begin_node_drag(5)
        moved = ctrl.commit_node_drag(10, -20)
        assert moved == {5: NodeRect(110, 80, 150, 80), 6: NodeRect(410, 80, 150, 80)}
        assert ctrl.dragged_node is None

    def test_node_drag_unselected_moves_alone(self) -> None:
        ctrl = _editor()
        ctrl.select_node(6)
        ctrl.begin_node_drag(5)
        assert list(ctrl.commit_node_drag(5, 5)) == [5]

    def test_take_deletion_includes_attached_links(self) -> None:
        ctrl = _editor()
        ctrl.register_link(7, 51, 61)
        ctrl.register_link(8, 52, 61)
        ctrl.select_node(5)
        deletion = ctrl.take_deletion()
        assert deletion.node_ids == (5,)
        assert deletion.link_ids == (7, 8)
        assert len(ctrl.selection) == 0


def test_membership_via_controller() -> None:
    ctrl = _editor()
    version = ctrl.select_node(5)
    assert not ctrl.node_membership(5, version).stale
    ctrl.clear_selection()
    m = ctrl.node_membership(5, version)
    assert m.stale
    assert not m.selected



def test_unknown_node_selected_but_not_stacked() -> None:
    ctrl = _editor()
    ctrl.select_node(999)
    assert ctrl.is_node_selected(999)
    assert ctrl.selection.z_order() == []
    ctrl.select_node(5, additive=True)
    ctrl.replace_node_selection([6, 998])
    assert ctrl.selection.z_order() == [6, 5]
    ctrl.apply_box_selection(-1000, -1000, 1, 1)
    assert ctrl.selection.z_order() == [6, 5]

def test_auto_layout() -> None:
    ctrl = _editor()
    ctrl.register_link(7, 51, 61)
    positions = ctrl.auto_layout(LayeredLayoutConfig(rank_spacing=50))
    assert [(p.id, p.x) for p in positions] == [(5, 0), (6, 200)]


def test_invalid_config_rejected() -> None:
    with pytest.raises(ConfigurationError):
        EditorController(EditorConfig(lod_full_threshold=0.1))
