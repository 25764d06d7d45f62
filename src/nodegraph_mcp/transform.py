"""
Pan/zoom mapping between world space and screen space.

    screen = world * zoom + pan
    world  = (screen - pan) / zoom

Zoom is kept strictly positive by :class:`Viewport`, which clamps every zoom
value it is given into ``[min_zoom, max_zoom]``.
"""

from __future__ import annotations

from dataclasses import dataclass

from nodegraph_mcp.models import NodeRect
from nodegraph_mcp.validation import validate_zoom_bounds


def to_screen(
    world_x: float, world_y: float, pan_x: float, pan_y: float, zoom: float
) -> tuple[float, float]:
    return world_x * zoom + pan_x, world_y * zoom + pan_y


def to_world(
    screen_x: float, screen_y: float, pan_x: float, pan_y: float, zoom: float
) -> tuple[float, float]:
    return (screen_x - pan_x) / zoom, (screen_y - pan_y) / zoom


def rect_to_screen(rect: NodeRect, pan_x: float, pan_y: float, zoom: float) -> NodeRect:
    sx, sy = to_screen(rect.x, rect.y, pan_x, pan_y, zoom)
    return NodeRect(sx, sy, rect.width * zoom, rect.height * zoom)


def rect_to_world(rect: NodeRect, pan_x: float, pan_y: float, zoom: float) -> NodeRect:
    wx, wy = to_world(rect.x, rect.y, pan_x, pan_y, zoom)
    return NodeRect(wx, wy, rect.width / zoom, rect.height / zoom)


@dataclass
class Viewport:
    """Current pan/zoom state with zoom clamping."""
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    min_zoom: float = 0.1
    max_zoom: float = 3.0

    def __post_init__(self) -> None:
        validate_zoom_bounds(self.min_zoom, self.max_zoom)
        self.zoom = self.clamp_zoom(self.zoom)

    def clamp_zoom(self, zoom: float) -> float:
        return min(max(zoom, self.min_zoom), self.max_zoom)

    def set_zoom(self, zoom: float) -> float:
        """Set zoom (clamped) and return the value actually applied."""
        self.zoom = self.clamp_zoom(zoom)
        return self.zoom

    def set(self, zoom: float, pan_x: float, pan_y: float) -> None:
        self.set_zoom(zoom)
        self.pan_x = pan_x
        self.pan_y = pan_y

    def zoom_at(self, factor: float, anchor_x: float, anchor_y: float) -> float:
        """Multiply zoom by *factor*, keeping the world point under the anchor fixed."""
        wx, wy = self.to_world(anchor_x, anchor_y)
        self.set_zoom(self.zoom * factor)
        self.pan_x = anchor_x - wx * self.zoom
        self.pan_y = anchor_y - wy * self.zoom
        return self.zoom

    def to_screen(self, world_x: float, world_y: float) -> tuple[float, float]:
        return to_screen(world_x, world_y, self.pan_x, self.pan_y, self.zoom)

    def to_world(self, screen_x: float, screen_y: float) -> tuple[float, float]:
        return to_world(screen_x, screen_y, self.pan_x, self.pan_y, self.zoom)

    def rect_to_screen(self, rect: NodeRect) -> NodeRect:
        return rect_to_screen(rect, self.pan_x, self.pan_y, self.zoom)

    def rect_to_world(self, rect: NodeRect) -> NodeRect:
        return rect_to_world(rect, self.pan_x, self.pan_y, self.zoom)
