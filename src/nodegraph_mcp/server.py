"""
Node-graph MCP Server — drive a node editor engine via Model Context Protocol.

Exposes 5 tools over named, in-memory editor sessions so a host (or an LLM
agent) can feed geometry in and ask spatial questions back out.

Tools:
  1. editor     — lifecycle: create, list, reset, info, delete
  2. geometry   — notifications: node rects, pin positions, forget node, viewport
  3. query      — read-only: pin/node/link at a point, box selection, paths, grid, LOD
  4. selection  — select node/link, clear, replace, box select, membership
  5. links      — registry and requests: register, unregister, list, request,
                  connected, layout
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from nodegraph_mcp.config import EditorConfig
from nodegraph_mcp.controller import EditorController
from nodegraph_mcp.layout import LayeredLayoutConfig
from nodegraph_mcp.models import LinkEndpoints
from nodegraph_mcp.policies import BasicLinkPolicy, CompositePolicy, NoDuplicatesPolicy
from nodegraph_mcp.validation import (
    ValidationError,
    validate_action,
    validate_bool,
    validate_box,
    validate_direction,
    validate_id,
    validate_id_list,
    validate_int,
    validate_link_dict,
    validate_list,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_number,
    validate_positive_number,
    validate_rect,
    validate_thresholds,
    validate_zoom_bounds,
    validate_viewport_size,
    _EDITOR_ACTIONS,
    _GEOMETRY_ACTIONS,
    _LINK_ACTIONS,
    _QUERY_ACTIONS,
    _SELECTION_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging: keep routine FastMCP INFO messages out of the client's stderr.
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("nodegraph-mcp")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "nodegraph-mcp",
    instructions=(
        "MCP server exposing a node-graph editor engine (geometry, hit-testing,\n"
        "connector curves, selection, level of detail).\n\n"
        "=== ONLY 5 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. editor(action, ...) — create, list, reset, info, delete.\n"
        "2. geometry(action, ...) — node_rect, node_rect_screen, pin_position,\n"
        "   forget_node, viewport, zoom_at, inspect_node, inspect_pin.\n"
        "3. query(action, ...) — pin_at, node_at, link_at, box, link_box,\n"
        "   link_path, grid, lod.\n"
        "4. selection(action, ...) — select_node, select_link, clear,\n"
        "   replace_nodes, replace_links, box_select, state, select_all,\n"
        "   is_selected.\n"
        "5. links(action, ...) — register, unregister, list, request,\n"
        "   connected, layout.\n\n"
        "=== RULES ===\n"
        "- IDs are opaque signed 64-bit integers chosen by the host.\n"
        "- Node rects and box queries are WORLD coordinates unless the action\n"
        "  name ends in _screen. Point queries (pin_at, node_at, link_at) take\n"
        "  SCREEN coordinates.\n"
        "- Pins are positioned relative to their node's top-left corner.\n"
        "- Point queries return -1 when nothing is hit.\n"
    ),
)

# In-memory editor registry: name -> EditorController
# Guarded by _editors_lock for thread-safety.
_editors: dict[str, EditorController] = {}
_editors_lock = threading.Lock()


def _get_editor(name: Any) -> EditorController:
    name = validate_non_empty_string(name, "editor_name")
    with _editors_lock:
        ctrl = _editors.get(name)
    if ctrl is None:
        raise ValidationError(f"editor '{name}' not found.")
    return ctrl


def _build_controller(
    strict_links: bool,
    min_zoom: float,
    max_zoom: float,
    lod_full_threshold: float,
    lod_simplified_threshold: float,
    bezier_min_offset: float,
    pin_hit_radius: float,
    link_hover_distance: float,
    grid_spacing: float,
) -> EditorController:
    validate_zoom_bounds(min_zoom, max_zoom)
    validate_thresholds(lod_full_threshold, lod_simplified_threshold)
    config = EditorConfig(
        min_zoom=min_zoom,
        max_zoom=max_zoom,
        lod_full_threshold=lod_full_threshold,
        lod_simplified_threshold=lod_simplified_threshold,
        bezier_min_offset=validate_non_negative_number(bezier_min_offset, "bezier_min_offset"),
        pin_hit_radius=validate_non_negative_number(pin_hit_radius, "pin_hit_radius"),
        link_hover_distance=validate_non_negative_number(link_hover_distance, "link_hover_distance"),
        grid_spacing=validate_positive_number(grid_spacing, "grid_spacing"),
    )
    ctrl = EditorController(config)
    if strict_links:
        ctrl.link_policy = CompositePolicy(BasicLinkPolicy(), NoDuplicatesPolicy(ctrl.links))
    return ctrl


def _rect_json(rect: Any) -> dict[str, float]:
    return {"x": rect.x, "y": rect.y, "width": rect.width, "height": rect.height}


def _parse_candidates(value: Optional[list]) -> Optional[list[LinkEndpoints]]:
    """None means "use the registered links"."""
    if value is None:
        return None
    items = validate_list(value, "links")
    return [LinkEndpoints(*validate_link_dict(item, i)) for i, item in enumerate(items)]


# ===================================================================
# TOOL 1: editor (lifecycle)
# ===================================================================

@mcp.tool()
def editor(
    action: str,
    name: str = "",
    strict_links: bool = False,
    min_zoom: float = 0.1,
    max_zoom: float = 3.0,
    lod_full_threshold: float = 0.5,
    lod_simplified_threshold: float = 0.25,
    bezier_min_offset: float = 50,
    pin_hit_radius: float = 10,
    link_hover_distance: float = 8,
    grid_spacing: float = 24,
) -> str:
    """Editor session lifecycle.

    Actions:
      create — Create a new editor session. Params: name, strict_links, min_zoom,
               max_zoom, lod_full_threshold, lod_simplified_threshold,
               bezier_min_offset, pin_hit_radius, link_hover_distance, grid_spacing.
               strict_links rejects self/same-node/same-direction/duplicate links.
      list   — List all sessions. No params needed.
      reset  — Drop all geometry, selection and links of a session. Params: name.
      info   — Session summary (counts, zoom, LOD, selection version). Params: name.
      delete — Remove a session. Params: name.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "editor", _EDITOR_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        with _editors_lock:
            names = sorted(_editors)
        return json.dumps(names)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        try:
            validate_bool(strict_links, "strict_links")
            ctrl = _build_controller(
                strict_links, min_zoom, max_zoom, lod_full_threshold,
                lod_simplified_threshold, bezier_min_offset, pin_hit_radius,
                link_hover_distance, grid_spacing,
            )
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with _editors_lock:
            if name in _editors:
                logger.warning("Replacing existing editor session '%s'", name)
            _editors[name] = ctrl
        return f"Editor '{name}' created."

    if action == "delete":
        with _editors_lock:
            removed = _editors.pop(name, None)
        if removed is None:
            return f"Error: editor '{name}' not found."
        return f"Editor '{name}' deleted."

    try:
        ctrl = _get_editor(name)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "reset":
        ctrl.clear_geometry()
        ctrl.clear_links()
        ctrl.clear_selection()
        ctrl.cancel_link_drag()
        ctrl.cancel_node_drag()
        return f"Editor '{name}' reset."

    # info
    return json.dumps({
        "name": name,
        "nodes": len(ctrl.cache),
        "links": len(ctrl.links()),
        "zoom": ctrl.zoom,
        "pan": [ctrl.viewport.pan_x, ctrl.viewport.pan_y],
        "lod": ctrl.lod_tier().value,
        "selection_version": ctrl.selection_version,
    }, indent=2)


# ===================================================================
# TOOL 2: geometry (notifications from the presentation layer)
# ===================================================================

@mcp.tool()
def geometry(
    action: str,
    editor_name: str = "",
    node_id: int = 0,
    pin_id: int = 0,
    pin_type: int = 0,
    x: float = 0,
    y: float = 0,
    width: float = 0,
    height: float = 0,
    zoom: float = 1.0,
    pan_x: float = 0,
    pan_y: float = 0,
    factor: float = 1.0,
) -> str:
    """Geometry notifications and lookups.

    Actions:
      node_rect        — Node rect in world space. Params: node_id, x, y, width, height.
      node_rect_screen — Node rect in screen space (converted to world).
                         Params: node_id, x, y, width, height.
      pin_position     — Pin offset from its node's top-left. Params: pin_id,
                         node_id, pin_type (1=input, 2=output), x, y.
      forget_node      — Remove a node, its pins and dependent links. Params: node_id.
      viewport         — Set zoom (clamped) and pan. Params: zoom, pan_x, pan_y.
      zoom_at          — Zoom by factor around screen point. Params: factor, x, y.
      inspect_node     — Cached rect and pins of a node. Params: node_id.
      inspect_pin      — Owner, type and world position of a pin. Params: pin_id.

    Returns:
        Result string or JSON.
    """
    try:
        action = validate_action(action, "geometry", _GEOMETRY_ACTIONS)
        ctrl = _get_editor(editor_name)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        if action in ("node_rect", "node_rect_screen"):
            nid = validate_id(node_id, "node_id")
            rx, ry, rw, rh = validate_rect(x, y, width, height)
            if action == "node_rect":
                rect = ctrl.node_rect_changed(nid, rx, ry, rw, rh)
            else:
                rect = ctrl.node_rect_changed_screen(nid, rx, ry, rw, rh)
            return json.dumps({"node_id": nid, **_rect_json(rect)})

        if action == "pin_position":
            ctrl.pin_position_changed(
                validate_id(pin_id, "pin_id"),
                validate_id(node_id, "node_id"),
                validate_int(pin_type, "pin_type"),
                validate_number(x, "x"),
                validate_number(y, "y"),
            )
            return f"Pin {pin_id} recorded on node {node_id}."

        if action == "forget_node":
            purged = ctrl.forget_node(validate_id(node_id, "node_id"))
            return json.dumps({"node_id": node_id, "purged_pins": purged})

        if action == "viewport":
            applied = ctrl.set_viewport(
                validate_positive_number(zoom, "zoom"),
                validate_number(pan_x, "pan_x"),
                validate_number(pan_y, "pan_y"),
            )
            return json.dumps({"zoom": applied, "lod": ctrl.lod_tier().value})

        if action == "zoom_at":
            applied = ctrl.zoom_at(
                validate_positive_number(factor, "factor"),
                validate_number(x, "x"),
                validate_number(y, "y"),
            )
            vp = ctrl.viewport
            return json.dumps({"zoom": applied, "pan_x": vp.pan_x, "pan_y": vp.pan_y})

        if action == "inspect_node":
            nid = validate_id(node_id, "node_id")
            rect = ctrl.cache.node_rect(nid)
            if rect is None:
                return f"Error: node {nid} not found."
            return json.dumps({"node_id": nid, **_rect_json(rect),
                               "pins": ctrl.cache.pins_of(nid)})

        # inspect_pin
        pid = validate_id(pin_id, "pin_id")
        pin = ctrl.cache.pin(pid)
        if pin is None:
            return f"Error: pin {pid} not found."
        return json.dumps({
            "pin_id": pid,
            "node_id": pin.node_id,
            "pin_type": int(pin.pin_type),
            "relative": [pin.rel_x, pin.rel_y],
            "world": ctrl.cache.pin_world_position(pid),
        })
    except ValidationError as exc:
        return f"Error: {exc.message}"


# ===================================================================
# TOOL 3: query (read-only spatial questions)
# ===================================================================

@mcp.tool()
def query(
    action: str,
    editor_name: str = "",
    x: float = 0,
    y: float = 0,
    width: float = 0,
    height: float = 0,
    start_pin: int = 0,
    end_pin: int = 0,
    version: int = -1,
    progress: float = 1.0,
    links: Optional[list[dict]] = None,
) -> str:
    """Spatial queries against an editor session.

    Actions:
      pin_at    — Pin under a screen point, or -1. Params: x, y.
      node_at   — Topmost node under a screen point, or -1. Params: x, y.
      link_at   — Link under a screen point, or -1. Params: x, y, links (optional
                  list of {id, start_pin, end_pin}; default = registered links).
      box       — Node IDs intersecting a world box. Params: x, y, width, height.
      link_box  — Link IDs crossing a world box. Params: x, y, width, height, links.
      link_path — Screen-space path string. Params: start_pin, end_pin,
                  version (-1 = current selection version), progress (0..1).
      grid      — Background grid path for a viewport size. Params: width, height
                  (screen pixels, at most 16384 each).
      lod       — Current level-of-detail tier and zoom.

    Returns:
        JSON data or a path string.
    """
    try:
        action = validate_action(action, "query", _QUERY_ACTIONS)
        ctrl = _get_editor(editor_name)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        if action == "pin_at":
            return json.dumps(ctrl.compute_pin_at(validate_number(x, "x"), validate_number(y, "y")))

        if action == "node_at":
            return json.dumps(ctrl.compute_node_at(validate_number(x, "x"), validate_number(y, "y")))

        if action == "link_at":
            return json.dumps(ctrl.compute_link_at(
                validate_number(x, "x"), validate_number(y, "y"), _parse_candidates(links)
            ))

        if action == "box":
            return json.dumps(ctrl.compute_box_selection(*validate_box(x, y, width, height)))

        if action == "link_box":
            return json.dumps(ctrl.compute_link_box_selection(
                *validate_box(x, y, width, height), _parse_candidates(links)
            ))

        if action == "link_path":
            start = validate_id(start_pin, "start_pin")
            end = validate_id(end_pin, "end_pin")
            t = validate_number(progress, "progress", min_val=0, max_val=1)
            if t < 1:
                return ctrl.compute_partial_link_path(start, end, t)
            ver = validate_int(version, "version", min_val=-1)
            return ctrl.compute_link_path(start, end, None if ver < 0 else ver)

        if action == "grid":
            return ctrl.grid_path(*validate_viewport_size(width, height))

        # lod
        tier = ctrl.lod_tier()
        return json.dumps({"zoom": ctrl.zoom, "tier": tier.value,
                           "allows_editing": tier.allows_editing})
    except ValidationError as exc:
        return f"Error: {exc.message}"


# ===================================================================
# TOOL 4: selection
# ===================================================================

@mcp.tool()
def selection(
    action: str,
    editor_name: str = "",
    node_id: Optional[int] = None,
    link_id: Optional[int] = None,
    additive: bool = False,
    ids: Optional[list[int]] = None,
    x: float = 0,
    y: float = 0,
    width: float = 0,
    height: float = 0,
    expected_version: int = -1,
) -> str:
    """Selection state and version.

    Actions:
      select_node   — Click a node. Params: node_id, additive (toggle).
      select_link   — Click a link. Params: link_id, additive (toggle).
      clear         — Deselect everything.
      replace_nodes — Set node selection wholesale. Params: ids.
      replace_links — Set link selection wholesale. Params: ids.
      box_select    — Replace both selections from a world box.
                      Params: x, y, width, height.
      select_all    — Select every known node.
      state         — Selected IDs, z-order and version.
      is_selected   — Membership for node_id or link_id (pass exactly one)
                      with staleness against expected_version.

    Returns:
        JSON with at least the current "version".
    """
    try:
        action = validate_action(action, "selection", _SELECTION_ACTIONS)
        ctrl = _get_editor(editor_name)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        if action == "select_node":
            version = ctrl.select_node(validate_id(node_id, "node_id"),
                                       validate_bool(additive, "additive"))
        elif action == "select_link":
            version = ctrl.select_link(validate_id(link_id, "link_id"),
                                       validate_bool(additive, "additive"))
        elif action == "clear":
            version = ctrl.clear_selection()
        elif action == "replace_nodes":
            version = ctrl.replace_node_selection(validate_id_list(ids, "ids"))
        elif action == "replace_links":
            version = ctrl.replace_link_selection(validate_id_list(ids, "ids"))
        elif action == "box_select":
            nodes, link_ids = ctrl.apply_box_selection(*validate_box(x, y, width, height))
            return json.dumps({"nodes": nodes, "links": link_ids,
                               "version": ctrl.selection_version})
        elif action == "select_all":
            version = ctrl.select_all_nodes()
        elif action == "is_selected":
            expected = validate_int(expected_version, "expected_version", min_val=-1)
            cached = None if expected < 0 else expected
            if (node_id is None) == (link_id is None):
                return "Error: is_selected needs exactly one of node_id or link_id."
            if node_id is not None:
                m = ctrl.node_membership(validate_id(node_id, "node_id"), cached)
            else:
                m = ctrl.link_membership(validate_id(link_id, "link_id"), cached)
            return json.dumps({"selected": m.selected, "version": m.version, "stale": m.stale})
        else:  # state
            sel = ctrl.selection
            return json.dumps({
                "nodes": list(sel.selected_nodes()),
                "links": list(sel.selected_links()),
                "z_order": sel.z_order(),
                "version": sel.version,
            })
    except ValidationError as exc:
        return f"Error: {exc.message}"
    return json.dumps({"version": version})


# ===================================================================
# TOOL 5: links (registry and requests)
# ===================================================================

@mcp.tool()
def links(
    action: str,
    editor_name: str = "",
    link_id: int = 0,
    start_pin: int = 0,
    end_pin: int = 0,
    node_id: int = 0,
    direction: str = "LR",
    rank_spacing: float = 100,
    node_spacing: float = 60,
) -> str:
    """Link registry, link requests and auto-layout.

    Actions:
      register   — Register a link for hit-testing. Params: link_id, start_pin, end_pin.
      unregister — Remove a registered link. Params: link_id.
      list       — All registered links.
      request    — Ask the link policy whether start_pin may connect to end_pin.
                   Returns the normalized (output-first) request or a rejection.
      connected  — Registered links attached to a node. Params: node_id.
      layout     — Layered layout of all cached nodes using registered links.
                   Params: direction (LR/TB), rank_spacing, node_spacing.

    Returns:
        JSON data or a result string.
    """
    try:
        action = validate_action(action, "links", _LINK_ACTIONS)
        ctrl = _get_editor(editor_name)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        if action == "register":
            link = ctrl.register_link(
                validate_id(link_id, "link_id"),
                validate_id(start_pin, "start_pin"),
                validate_id(end_pin, "end_pin"),
            )
            return f"Link {link.id} registered ({link.start_pin_id} -> {link.end_pin_id})."

        if action == "unregister":
            lid = validate_id(link_id, "link_id")
            if not ctrl.unregister_link(lid):
                return f"Error: link {lid} not found."
            return f"Link {lid} unregistered."

        if action == "list":
            return json.dumps([
                {"id": link.id, "start_pin": link.start_pin_id, "end_pin": link.end_pin_id}
                for link in ctrl.links()
            ])

        if action == "request":
            start = validate_id(start_pin, "start_pin")
            end = validate_id(end_pin, "end_pin")
            reason = ctrl.check_link(start, end)
            if reason is not None:
                return json.dumps({"accepted": False, "reason": reason})
            request = ctrl.request_link(start, end)
            return json.dumps({"accepted": True, "start_pin": request.start_pin_id,
                               "end_pin": request.end_pin_id})

        if action == "connected":
            return json.dumps(ctrl.links_connected_to_node(validate_id(node_id, "node_id")))

        # layout
        cfg = LayeredLayoutConfig(
            rank_spacing=validate_non_negative_number(rank_spacing, "rank_spacing"),
            node_spacing=validate_non_negative_number(node_spacing, "node_spacing"),
            direction=validate_direction(direction),
        )
        positions = ctrl.auto_layout(cfg)
        return json.dumps([{"node_id": p.id, "x": p.x, "y": p.y} for p in positions], indent=2)
    except ValidationError as exc:
        return f"Error: {exc.message}"


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
