"""
Geometry cache: node rectangles and pin offsets keyed by opaque IDs.

Node rects live in world coordinates.  Pin positions are stored relative to
their owning node, so moving a node moves its pins without any pin updates.
An owner index keeps ``forget_node`` proportional to the node's pin count.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

from nodegraph_mcp.models import (
    HasEndpoints,
    HasScreenRect,
    LinkGeometry,
    NodeRect,
    PinPosition,
    PinType,
)
from nodegraph_mcp.validation import PinOwnershipError

logger = logging.getLogger(__name__)


class GeometryCache:
    """Last-known node rects and pin positions."""

    def __init__(self) -> None:
        self._rects: dict[int, NodeRect] = {}
        self._pins: dict[int, PinPosition] = {}
        self._pins_by_node: dict[int, set[int]] = {}

    def __len__(self) -> int:
        return len(self._rects)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._rects

    # ----- mutation -----

    def update_node_rect(self, node_id: int, rect: HasScreenRect) -> NodeRect:
        """Insert or overwrite a node's rect (last write wins)."""
        stored = NodeRect.from_rect(rect)
        self._rects[node_id] = stored
        return stored

    def update_pin_position(
        self,
        pin_id: int,
        node_id: int,
        rel_x: float,
        rel_y: float,
        pin_type: int = PinType.UNKNOWN,
    ) -> PinPosition:
        """Insert or overwrite a pin's offset and record its owning node.

        Raises :class:`PinOwnershipError` if the pin is already owned by a
        different node; the cache is left unchanged in that case.
        """
        current = self._pins.get(pin_id)
        if current is not None and current.node_id != node_id:
            raise PinOwnershipError(pin_id, current.node_id, node_id)
        pin = PinPosition(node_id=node_id, rel_x=float(rel_x), rel_y=float(rel_y),
                          pin_type=pin_type)
        self._pins[pin_id] = pin
        self._pins_by_node.setdefault(node_id, set()).add(pin_id)
        return pin

    def forget_node(self, node_id: int) -> list[int]:
        """Remove a node's rect and every pin it owns.  Returns the purged pin IDs."""
        self._rects.pop(node_id, None)
        purged = sorted(self._pins_by_node.pop(node_id, ()))
        for pin_id in purged:
            del self._pins[pin_id]
        if purged:
            logger.debug("Forgot node %d and %d pin(s)", node_id, len(purged))
        return purged

    def forget_pin(self, pin_id: int) -> bool:
        pin = self._pins.pop(pin_id, None)
        if pin is None:
            return False
        owned = self._pins_by_node.get(pin.node_id)
        if owned is not None:
            owned.discard(pin_id)
            if not owned:
                del self._pins_by_node[pin.node_id]
        return True

    def clear(self) -> None:
        self._rects.clear()
        self._pins.clear()
        self._pins_by_node.clear()

    # ----- lookups -----

    def node_rect(self, node_id: int) -> Optional[NodeRect]:
        return self._rects.get(node_id)

    def pin(self, pin_id: int) -> Optional[PinPosition]:
        return self._pins.get(pin_id)

    def pin_world_position(self, pin_id: int) -> Optional[tuple[float, float]]:
        """Absolute world position of a pin, or None if the pin or its node is unknown."""
        pin = self._pins.get(pin_id)
        if pin is None:
            return None
        rect = self._rects.get(pin.node_id)
        if rect is None:
            return None
        return rect.x + pin.rel_x, rect.y + pin.rel_y

    def node_ids(self) -> list[int]:
        return list(self._rects)

    def node_rects(self) -> Iterator[tuple[int, NodeRect]]:
        return iter(self._rects.items())

    def pins_of(self, node_id: int) -> list[int]:
        return sorted(self._pins_by_node.get(node_id, ()))

    def absolute_pins(self) -> Iterator[tuple[int, float, float]]:
        """Yield ``(pin_id, world_x, world_y)`` for every pin whose node is known."""
        for pin_id, pin in self._pins.items():
            rect = self._rects.get(pin.node_id)
            if rect is None:
                continue
            yield pin_id, rect.x + pin.rel_x, rect.y + pin.rel_y

    def resolve_link(self, link: HasEndpoints) -> Optional[LinkGeometry]:
        """Resolve both endpoints of a link to world positions."""
        start = self.pin_world_position(link.start_pin_id)
        end = self.pin_world_position(link.end_pin_id)
        if start is None or end is None:
            return None
        return LinkGeometry(link.id, start[0], start[1], end[0], end[1])

    def resolve_links(self, links: Iterable[HasEndpoints]) -> Iterator[LinkGeometry]:
        """Resolve every link whose endpoints are known; unknown ones are skipped."""
        for link in links:
            geom = self.resolve_link(link)
            if geom is not None:
                yield geom
