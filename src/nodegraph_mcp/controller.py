"""
Editor controller: the composition root the presentation layer talks to.

The controller owns the geometry cache, selection state, viewport, an optional
link registry and the transient interaction state (link and node drags).  All
methods run synchronously on the caller's thread and apply in call order.

Cache contract for link paths: ``compute_link_path(start, end, version)`` is
memoized by ``(start, end, version)``.  Consumers pass the selection version
they rendered with; a new version yields a fresh path.  Geometry and viewport
changes drop the whole memo, so a path never outlives the positions it was
computed from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from nodegraph_mcp.config import EditorConfig
from nodegraph_mcp.curves import CurvePathComputer
from nodegraph_mcp.geometry import GeometryCache
from nodegraph_mcp.grid import grid_path
from nodegraph_mcp.hit_test import (
    find_link_at,
    find_node_at,
    find_pin_at,
    links_connected_to_node,
    links_in_box,
    nodes_in_box,
    normalize_box,
)
from nodegraph_mcp.layout import LayeredLayoutConfig, NodePosition, layered_layout_from_cache
from nodegraph_mcp.lod import LodPolicy
from nodegraph_mcp.models import (
    NOT_FOUND,
    Deletion,
    HasEndpoints,
    LinkEndpoints,
    LinkGeometry,
    LinkRequest,
    LodTier,
    Membership,
    NodeRect,
    PinType,
)
from nodegraph_mcp.policies import LinkPolicy, accept_all, rejection_reason
from nodegraph_mcp.selection import SelectionState
from nodegraph_mcp.transform import Viewport

logger = logging.getLogger(__name__)


@dataclass
class _LinkDrag:
    source_pin: int
    cursor_x: float
    cursor_y: float


class EditorController:
    """Orchestrates geometry, queries, selection, LOD and link requests."""

    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        *,
        link_policy: Optional[LinkPolicy] = None,
        path_computer: Optional[CurvePathComputer] = None,
        on_link_requested: Optional[Callable[[LinkRequest], None]] = None,
    ) -> None:
        cfg = config or EditorConfig()
        self.config = cfg
        self.cache = GeometryCache()
        self.selection = SelectionState()
        self.viewport = Viewport(min_zoom=cfg.min_zoom, max_zoom=cfg.max_zoom)
        self.lod_policy = LodPolicy(cfg.lod_full_threshold, cfg.lod_simplified_threshold)
        self.path_computer = path_computer or CurvePathComputer(
            cfg.bezier_min_offset, cfg.straight_threshold
        )
        self.link_policy: LinkPolicy = link_policy or accept_all
        self.on_link_requested = on_link_requested

        self._links: dict[int, LinkEndpoints] = {}
        self._path_cache: dict[tuple[int, int, int], str] = {}
        self._path_cache_version: Optional[int] = None
        self._grid_cache: Optional[tuple[tuple[float, ...], str]] = None
        self._link_drag: Optional[_LinkDrag] = None
        self._dragged_node: Optional[int] = None

    # ===================================================================
    # Geometry notifications
    # ===================================================================

    def node_rect_changed(self, node_id: int, x: float, y: float, width: float, height: float) -> NodeRect:
        """Record a node's world-space rect."""
        rect = self.cache.update_node_rect(node_id, NodeRect(x, y, width, height))
        self._invalidate_paths()
        return rect

    def node_rect_changed_screen(
        self, node_id: int, x: float, y: float, width: float, height: float
    ) -> NodeRect:
        """Record a node's rect reported in screen space."""
        world = self.viewport.rect_to_world(NodeRect(x, y, width, height))
        return self.node_rect_changed(node_id, world.x, world.y, world.width, world.height)

    def pin_position_changed(
        self, pin_id: int, node_id: int, pin_type: int, rel_x: float, rel_y: float
    ) -> None:
        self.cache.update_pin_position(pin_id, node_id, rel_x, rel_y, pin_type)
        self._invalidate_paths()

    def forget_node(self, node_id: int) -> list[int]:
        """Forget a deleted node: geometry, pins, z-order, selection, dependent links.

        Returns the purged pin IDs.
        """
        connected = links_connected_to_node(node_id, self._links.values(), self.cache)
        purged = self.cache.forget_node(node_id)
        self.selection.forget_node(node_id)
        for link_id in connected:
            self.unregister_link(link_id)
        if self._dragged_node == node_id:
            self._dragged_node = None
        if self._link_drag is not None and self._link_drag.source_pin in purged:
            self.cancel_link_drag()
        self._invalidate_paths()
        return purged

    def clear_geometry(self) -> None:
        self.cache.clear()
        self._invalidate_paths()

    # ===================================================================
    # Viewport / LOD
    # ===================================================================

    def set_viewport(self, zoom: float, pan_x: float, pan_y: float) -> float:
        """Set pan and zoom; returns the zoom actually applied after clamping."""
        self.viewport.set(zoom, pan_x, pan_y)
        self._invalidate_paths()
        return self.viewport.zoom

    def zoom_at(self, factor: float, anchor_x: float, anchor_y: float) -> float:
        zoom = self.viewport.zoom_at(factor, anchor_x, anchor_y)
        self._invalidate_paths()
        return zoom

    @property
    def zoom(self) -> float:
        return self.viewport.zoom

    def lod_tier(self) -> LodTier:
        return self.lod_policy.tier(self.viewport.zoom)

    # ===================================================================
    # Spatial queries
    # ===================================================================

    def _screen_pins(self) -> Iterator[tuple[int, float, float]]:
        for pin_id, wx, wy in self.cache.absolute_pins():
            sx, sy = self.viewport.to_screen(wx, wy)
            yield pin_id, sx, sy

    def _screen_links(self, links: Iterable[HasEndpoints]) -> Iterator[LinkGeometry]:
        for geom in self.cache.resolve_links(links):
            sx, sy = self.viewport.to_screen(geom.start_x, geom.start_y)
            ex, ey = self.viewport.to_screen(geom.end_x, geom.end_y)
            yield LinkGeometry(geom.id, sx, sy, ex, ey)

    def _candidates(self, candidates: Optional[Iterable[HasEndpoints]]) -> Iterable[HasEndpoints]:
        return self._links.values() if candidates is None else candidates

    def compute_pin_at(self, screen_x: float, screen_y: float) -> int:
        return find_pin_at(screen_x, screen_y, self._screen_pins(), self.config.pin_hit_radius)

    def compute_node_at(self, screen_x: float, screen_y: float) -> int:
        rects = (
            (node_id, self.viewport.rect_to_screen(rect))
            for node_id, rect in self.cache.node_rects()
        )
        return find_node_at(screen_x, screen_y, rects, self.selection.z_order())

    def compute_link_at(
        self,
        screen_x: float,
        screen_y: float,
        candidates: Optional[Iterable[HasEndpoints]] = None,
    ) -> int:
        """Closest link within the hover distance, or NOT_FOUND.

        *candidates* defaults to the registered links.
        """
        return find_link_at(
            screen_x,
            screen_y,
            self._screen_links(self._candidates(candidates)),
            self.config.link_hover_distance,
            self.path_computer,
            self.viewport.zoom,
            self.config.link_hit_samples,
        )

    def compute_box_selection(self, x: float, y: float, width: float, height: float) -> list[int]:
        """Node IDs intersecting a world-space box."""
        return nodes_in_box(normalize_box(x, y, width, height), self.cache.node_rects())

    def compute_box_selection_screen(
        self, x: float, y: float, width: float, height: float
    ) -> list[int]:
        box = self.viewport.rect_to_world(normalize_box(x, y, width, height))
        return nodes_in_box(box, self.cache.node_rects())

    def compute_link_box_selection(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        candidates: Optional[Iterable[HasEndpoints]] = None,
    ) -> list[int]:
        """Link IDs whose world-space curve samples fall inside the box."""
        return links_in_box(
            normalize_box(x, y, width, height),
            self.cache.resolve_links(self._candidates(candidates)),
            self.path_computer,
            self.config.link_hit_samples,
        )

    # ===================================================================
    # Paths and grid
    # ===================================================================

    def compute_link_path(self, start_pin: int, end_pin: int, version: Optional[int] = None) -> str:
        """Screen-space path for a link, or "" if an endpoint is unknown."""
        if version is None:
            version = self.selection.version
        if version != self._path_cache_version:
            self._path_cache.clear()
            self._path_cache_version = version
        key = (start_pin, end_pin, version)
        cached = self._path_cache.get(key)
        if cached is not None:
            return cached

        start = self.cache.pin_world_position(start_pin)
        end = self.cache.pin_world_position(end_pin)
        if start is None or end is None:
            return ""
        sx, sy = self.viewport.to_screen(*start)
        ex, ey = self.viewport.to_screen(*end)
        path = self.path_computer.path(sx, sy, ex, ey, self.viewport.zoom)
        self._path_cache[key] = path
        return path

    def compute_partial_link_path(self, start_pin: int, end_pin: int, progress: float) -> str:
        """Screen-space path for the first *progress* fraction of a link (uncached)."""
        start = self.cache.pin_world_position(start_pin)
        end = self.cache.pin_world_position(end_pin)
        if start is None or end is None:
            return ""
        sx, sy = self.viewport.to_screen(*start)
        ex, ey = self.viewport.to_screen(*end)
        return self.path_computer.partial_path(sx, sy, ex, ey, progress, self.viewport.zoom)

    def grid_path(self, width: float, height: float) -> str:
        """Background grid for the current viewport; cached until an input changes."""
        vp = self.viewport
        key = (width, height, vp.zoom, vp.pan_x, vp.pan_y,
               self.config.grid_spacing, self.config.grid_min_spacing)
        if self._grid_cache is not None and self._grid_cache[0] == key:
            return self._grid_cache[1]
        path = grid_path(width, height, vp.zoom, vp.pan_x, vp.pan_y,
                         self.config.grid_spacing, self.config.grid_min_spacing)
        self._grid_cache = (key, path)
        return path

    def _invalidate_paths(self) -> None:
        self._path_cache.clear()

    # ===================================================================
    # Selection
    # ===================================================================

    @property
    def selection_version(self) -> int:
        return self.selection.version

    def select_node(self, node_id: int, additive: bool = False) -> int:
        return self.selection.select_node(node_id, additive, self.cache)

    def select_link(self, link_id: int, additive: bool = False) -> int:
        return self.selection.select_link(link_id, additive)

    def clear_selection(self) -> int:
        return self.selection.clear()

    def replace_node_selection(self, node_ids: Iterable[int]) -> int:
        return self.selection.replace_node_selection(node_ids, self.cache)

    def replace_link_selection(self, link_ids: Iterable[int]) -> int:
        return self.selection.replace_link_selection(link_ids)

    def apply_box_selection(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        candidates: Optional[Iterable[HasEndpoints]] = None,
    ) -> tuple[list[int], list[int]]:
        """Replace both selections with what a world-space box covers (one version bump)."""
        nodes = self.compute_box_selection(x, y, width, height)
        links = self.compute_link_box_selection(x, y, width, height, candidates)
        self.selection.replace(nodes, links, self.cache)
        return nodes, links

    def select_all_nodes(self) -> int:
        return self.selection.replace_node_selection(sorted(self.cache.node_ids()), self.cache)

    def is_node_selected(self, node_id: int) -> bool:
        return self.selection.is_node_selected(node_id)

    def is_link_selected(self, link_id: int) -> bool:
        return self.selection.is_link_selected(link_id)

    def node_membership(self, node_id: int, expected_version: Optional[int] = None) -> Membership:
        return self.selection.node_membership(node_id, expected_version)

    def link_membership(self, link_id: int, expected_version: Optional[int] = None) -> Membership:
        return self.selection.link_membership(link_id, expected_version)

    def take_deletion(self) -> Deletion:
        """Collect what a delete key press removes and clear the selection.

        Links attached to deleted nodes are included.  The host deletes them
        from its model and then calls :meth:`forget_node` for each node.
        """
        nodes = self.selection.selected_nodes()
        link_ids = set(self.selection.selected_links())
        for node_id in nodes:
            link_ids.update(links_connected_to_node(node_id, self._links.values(), self.cache))
        self.selection.clear()
        return Deletion(nodes, tuple(sorted(link_ids)))

    # ===================================================================
    # Link registry
    # ===================================================================

    def register_link(self, link_id: int, start_pin: int, end_pin: int) -> LinkEndpoints:
        link = LinkEndpoints(link_id, start_pin, end_pin)
        self._links[link_id] = link
        return link

    def unregister_link(self, link_id: int) -> bool:
        if self._links.pop(link_id, None) is None:
            return False
        self.selection.forget_link(link_id)
        return True

    def clear_links(self) -> None:
        self._links.clear()

    def links(self) -> list[LinkEndpoints]:
        return [self._links[k] for k in sorted(self._links)]

    def links_connected_to_node(self, node_id: int) -> list[int]:
        return links_connected_to_node(node_id, self._links.values(), self.cache)

    # ===================================================================
    # Link requests
    # ===================================================================

    def _normalize_direction(self, pin_a: int, pin_b: int) -> tuple[int, int]:
        """Order a pin pair output-first when one side is a known output."""
        a = self.cache.pin(pin_a)
        b = self.cache.pin(pin_b)
        if (a is None or a.pin_type != PinType.OUTPUT) and b is not None and b.pin_type == PinType.OUTPUT:
            return pin_b, pin_a
        return pin_a, pin_b

    def request_link(self, pin_a: int, pin_b: int) -> Optional[LinkRequest]:
        """Ask the link policy about a connection and emit it when accepted."""
        start, end = self._normalize_direction(pin_a, pin_b)
        reason = rejection_reason(self.link_policy, start, end, self.cache)
        if reason is not None:
            logger.debug("Link %d -> %d rejected: %s", start, end, reason)
            return None
        request = LinkRequest(start, end)
        if self.on_link_requested is not None:
            self.on_link_requested(request)
        return request

    def check_link(self, pin_a: int, pin_b: int) -> Optional[str]:
        """Rejection reason for a prospective link, or None when it is allowed."""
        start, end = self._normalize_direction(pin_a, pin_b)
        return rejection_reason(self.link_policy, start, end, self.cache)

    # ===================================================================
    # Drag-to-link gesture
    # ===================================================================

    @property
    def is_link_dragging(self) -> bool:
        return self._link_drag is not None

    def begin_link_drag(self, pin_id: int) -> bool:
        position = self.cache.pin_world_position(pin_id)
        if position is None:
            return False
        sx, sy = self.viewport.to_screen(*position)
        self._link_drag = _LinkDrag(pin_id, sx, sy)
        return True

    def update_link_drag(self, screen_x: float, screen_y: float) -> str:
        """Move the dangling end of a link drag; returns its preview path."""
        drag = self._link_drag
        if drag is None:
            return ""
        position = self.cache.pin_world_position(drag.source_pin)
        if position is None:
            self.cancel_link_drag()
            return ""
        drag.cursor_x, drag.cursor_y = screen_x, screen_y
        sx, sy = self.viewport.to_screen(*position)
        return self.path_computer.path(sx, sy, screen_x, screen_y, self.viewport.zoom)

    def end_link_drag(self, screen_x: float, screen_y: float) -> Optional[LinkRequest]:
        """Drop the drag over a pin; emits a link request when the policy accepts."""
        drag = self._link_drag
        self._link_drag = None
        if drag is None:
            return None
        target = self.compute_pin_at(screen_x, screen_y)
        if target == NOT_FOUND or target == drag.source_pin:
            return None
        return self.request_link(drag.source_pin, target)

    def cancel_link_drag(self) -> bool:
        """Abort a link drag without emitting anything."""
        active = self._link_drag is not None
        self._link_drag = None
        return active

    # ===================================================================
    # Node drag
    # ===================================================================

    @property
    def dragged_node(self) -> Optional[int]:
        return self._dragged_node

    def begin_node_drag(self, node_id: int) -> bool:
        if node_id not in self.cache:
            return False
        self._dragged_node = node_id
        return True

    def cancel_node_drag(self) -> None:
        self._dragged_node = None

    def commit_node_drag(self, dx: float, dy: float) -> dict[int, NodeRect]:
        """Move the dragged node by a world-space delta.

        When the dragged node is selected, every selected node moves with it.
        Returns the new rects so the host can update its model.
        """
        node_id = self._dragged_node
        self._dragged_node = None
        if node_id is None:
            return {}
        if self.selection.is_node_selected(node_id):
            ids = self.selection.selected_nodes()
        else:
            ids = (node_id,)
        moved: dict[int, NodeRect] = {}
        for nid in ids:
            rect = self.cache.node_rect(nid)
            if rect is None:
                continue
            moved[nid] = self.cache.update_node_rect(nid, rect.translated(dx, dy))
        if moved:
            self._invalidate_paths()
        return moved

    # ===================================================================
    # Layout
    # ===================================================================

    def auto_layout(
        self,
        config: Optional[LayeredLayoutConfig] = None,
        candidates: Optional[Iterable[HasEndpoints]] = None,
    ) -> list[NodePosition]:
        """Layered layout of every cached node; positions are not applied."""
        return layered_layout_from_cache(self.cache, self._candidates(candidates), config)
