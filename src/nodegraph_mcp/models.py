"""
Core data model for the node-graph engine.

Nodes, pins and links are referenced only by opaque integer IDs; the engine
never holds references to host objects.  Geometry is stored as small value
types that are overwritten wholesale on every update.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import NamedTuple, Protocol, runtime_checkable


NOT_FOUND = -1
"""Sentinel returned by point and curve queries when nothing matches."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PinType(IntEnum):
    """Well-known pin directions.  Hosts may report other integers."""
    UNKNOWN = 0
    INPUT = 1
    OUTPUT = 2


class LodTier(Enum):
    """Rendering detail level derived from the zoom factor."""
    FULL = "full"
    SIMPLIFIED = "simplified"
    MINIMAL = "minimal"

    @property
    def allows_editing(self) -> bool:
        """Whether the presentation layer should offer pin/link affordances."""
        return self is not LodTier.MINIMAL


# ---------------------------------------------------------------------------
# Capability protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class HasScreenRect(Protocol):
    """Anything with an axis-aligned rectangle."""
    x: float
    y: float
    width: float
    height: float


@runtime_checkable
class HasEndpoints(Protocol):
    """Anything that identifies a link by its two pin IDs."""
    id: int
    start_pin_id: int
    end_pin_id: int


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NodeRect:
    """Axis-aligned node rectangle in world coordinates."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_rect(cls, rect: HasScreenRect) -> 'NodeRect':
        if isinstance(rect, NodeRect):
            return rect
        return cls(float(rect.x), float(rect.y), float(rect.width), float(rect.height))

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    def normalized(self) -> 'NodeRect':
        """Return an equivalent rect with non-negative size (min corner origin)."""
        x0, x1 = sorted((self.x, self.x + self.width))
        y0, y1 = sorted((self.y, self.y + self.height))
        return NodeRect(x0, y0, x1 - x0, y1 - y0)

    def intersects(self, other: 'NodeRect', margin: float = 0) -> bool:
        """Check if two rectangles overlap; touching edges count as overlap."""
        return not (
            self.right + margin < other.x
            or other.right + margin < self.x
            or self.bottom + margin < other.y
            or other.bottom + margin < self.y
        )

    def contains_point(self, px: float, py: float, margin: float = 0) -> bool:
        """Check if a point is inside this rectangle (edges inclusive)."""
        return (
            self.x - margin <= px <= self.right + margin
            and self.y - margin <= py <= self.bottom + margin
        )

    def translated(self, dx: float, dy: float) -> 'NodeRect':
        return NodeRect(self.x + dx, self.y + dy, self.width, self.height)


@dataclass(frozen=True)
class PinPosition:
    """A pin's offset from the top-left corner of its owning node."""
    node_id: int
    rel_x: float
    rel_y: float
    pin_type: int = PinType.UNKNOWN


@dataclass(frozen=True)
class LinkEndpoints:
    """A link as the engine sees it: an ID and two pin IDs."""
    id: int
    start_pin_id: int
    end_pin_id: int


class LinkGeometry(NamedTuple):
    """A link with both endpoints resolved to absolute positions."""
    id: int
    start_x: float
    start_y: float
    end_x: float
    end_y: float


class LinkRequest(NamedTuple):
    """A connection the user asked for and the link policy accepted."""
    start_pin_id: int
    end_pin_id: int


class Membership(NamedTuple):
    """Result of a version-aware selection membership query."""
    selected: bool
    version: int
    stale: bool


class Deletion(NamedTuple):
    """IDs the host should delete from its model."""
    node_ids: tuple[int, ...]
    link_ids: tuple[int, ...]
