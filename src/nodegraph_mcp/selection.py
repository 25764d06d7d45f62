"""
Selection state for nodes and links with a cache-invalidation version.

Every mutating call bumps :attr:`SelectionState.version` by exactly one, even
when the member sets end up unchanged.  Consumers cache the version they last
saw and re-query membership when it differs; nothing is pushed to them.

Selected nodes are also kept on a z-order stack (most recently selected on
top), which node hit-testing uses to pick the topmost of overlapping nodes.
"""

from __future__ import annotations

from typing import Container, Iterable, Optional

from nodegraph_mcp.models import Membership


class SelectionState:
    """Two independent ID sets plus a monotonically increasing version."""

    def __init__(self) -> None:
        self._nodes: set[int] = set()
        self._links: set[int] = set()
        # Insertion-ordered; the last key is topmost.
        self._z_order: dict[int, None] = {}
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._nodes) + len(self._links)

    def _bump(self) -> int:
        self._version += 1
        return self._version

    def _raise_node(self, node_id: int, stackable: Optional[Container[int]]) -> None:
        if stackable is not None and node_id not in stackable:
            return
        self._z_order.pop(node_id, None)
        self._z_order[node_id] = None

    # ----- mutation -----

    def select_node(
        self,
        node_id: int,
        additive: bool = False,
        stackable: Optional[Container[int]] = None,
    ) -> int:
        """Select a node.

        Non-additive selection replaces the node set with ``{node_id}``;
        additive selection toggles *node_id*.  Returns the new version.
        When *stackable* is given, only IDs in it go on the z-order stack.
        """
        if not additive:
            self._nodes = {node_id}
        elif node_id in self._nodes:
            self._nodes.discard(node_id)
        else:
            self._nodes.add(node_id)
        if node_id in self._nodes:
            self._raise_node(node_id, stackable)
        return self._bump()

    def select_link(self, link_id: int, additive: bool = False) -> int:
        if not additive:
            self._links = {link_id}
        elif link_id in self._links:
            self._links.discard(link_id)
        else:
            self._links.add(link_id)
        return self._bump()

    def clear(self) -> int:
        self._nodes.clear()
        self._links.clear()
        return self._bump()

    def replace_node_selection(
        self, node_ids: Iterable[int], stackable: Optional[Container[int]] = None
    ) -> int:
        ids = list(node_ids)
        self._nodes = set(ids)
        for node_id in ids:
            self._raise_node(node_id, stackable)
        return self._bump()

    def replace_link_selection(self, link_ids: Iterable[int]) -> int:
        self._links = set(link_ids)
        return self._bump()

    def replace(
        self,
        node_ids: Iterable[int],
        link_ids: Iterable[int],
        stackable: Optional[Container[int]] = None,
    ) -> int:
        """Replace both sets as one batch (a single version bump)."""
        ids = list(node_ids)
        self._nodes = set(ids)
        for node_id in ids:
            self._raise_node(node_id, stackable)
        self._links = set(link_ids)
        return self._bump()

    def forget_node(self, node_id: int) -> int:
        """Drop a removed node from the z-order stack and the selection."""
        self._z_order.pop(node_id, None)
        if node_id in self._nodes:
            self._nodes.discard(node_id)
            self._bump()
        return self._version

    def forget_link(self, link_id: int) -> int:
        if link_id in self._links:
            self._links.discard(link_id)
            self._bump()
        return self._version

    # ----- queries -----

    def is_node_selected(self, node_id: int) -> bool:
        return node_id in self._nodes

    def is_link_selected(self, link_id: int) -> bool:
        return link_id in self._links

    def node_membership(self, node_id: int, expected_version: Optional[int] = None) -> Membership:
        """Membership plus staleness of the caller's cached version."""
        return Membership(
            node_id in self._nodes, self._version, expected_version != self._version
        )

    def link_membership(self, link_id: int, expected_version: Optional[int] = None) -> Membership:
        return Membership(
            link_id in self._links, self._version, expected_version != self._version
        )

    def selected_nodes(self) -> tuple[int, ...]:
        return tuple(sorted(self._nodes))

    def selected_links(self) -> tuple[int, ...]:
        return tuple(sorted(self._links))

    def z_order(self) -> list[int]:
        """Stacked node IDs, topmost first."""
        return list(reversed(self._z_order))
