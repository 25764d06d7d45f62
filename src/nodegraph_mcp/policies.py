"""
Link-validation policies.

A policy is any callable ``(start_pin_id, end_pin_id, cache) -> bool``.  The
controller asks it before emitting a link request and drops the request when
it returns False.  The classes below also expose ``check()``, which returns a
human-readable rejection reason (or None), for logging and tool output.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from nodegraph_mcp.geometry import GeometryCache
from nodegraph_mcp.models import HasEndpoints, PinType

LinkPolicy = Callable[[int, int, GeometryCache], bool]


def accept_all(start_pin_id: int, end_pin_id: int, cache: GeometryCache) -> bool:
    """Default policy: every connection is allowed."""
    return True


def rejection_reason(
    policy: LinkPolicy, start_pin_id: int, end_pin_id: int, cache: GeometryCache
) -> Optional[str]:
    """Ask *policy* about a connection; None means accepted."""
    checker = getattr(policy, "check", None)
    if checker is not None:
        return checker(start_pin_id, end_pin_id, cache)
    return None if policy(start_pin_id, end_pin_id, cache) else "Rejected by link policy"


class _ReasonPolicy:
    def check(self, start_pin_id: int, end_pin_id: int, cache: GeometryCache) -> Optional[str]:
        raise NotImplementedError

    def __call__(self, start_pin_id: int, end_pin_id: int, cache: GeometryCache) -> bool:
        return self.check(start_pin_id, end_pin_id, cache) is None


class BasicLinkPolicy(_ReasonPolicy):
    """Rejects self-links, same-node links, unknown pins and same-direction pins."""

    def __init__(self, output_type: int = PinType.OUTPUT) -> None:
        self.output_type = output_type

    def check(self, start_pin_id: int, end_pin_id: int, cache: GeometryCache) -> Optional[str]:
        if start_pin_id == end_pin_id:
            return "Cannot link pin to itself"
        start = cache.pin(start_pin_id)
        if start is None:
            return f"Pin {start_pin_id} not found"
        end = cache.pin(end_pin_id)
        if end is None:
            return f"Pin {end_pin_id} not found"
        if start.node_id == end.node_id:
            return "Cannot link pins on same node"
        if (start.pin_type == self.output_type) == (end.pin_type == self.output_type):
            return "Must connect input to output"
        return None


class NoDuplicatesPolicy(_ReasonPolicy):
    """Rejects a connection that already exists in either direction."""

    def __init__(self, links: Callable[[], Iterable[HasEndpoints]]) -> None:
        self._links = links

    def check(self, start_pin_id: int, end_pin_id: int, cache: GeometryCache) -> Optional[str]:
        wanted = {start_pin_id, end_pin_id}
        for link in self._links():
            if {link.start_pin_id, link.end_pin_id} == wanted:
                return "Link already exists"
        return None


class CompositePolicy(_ReasonPolicy):
    """Runs policies in order; the first rejection wins."""

    def __init__(self, *policies: LinkPolicy) -> None:
        self.policies: list[LinkPolicy] = list(policies)

    def add(self, policy: LinkPolicy) -> 'CompositePolicy':
        self.policies.append(policy)
        return self

    def check(self, start_pin_id: int, end_pin_id: int, cache: GeometryCache) -> Optional[str]:
        for policy in self.policies:
            reason = rejection_reason(policy, start_pin_id, end_pin_id, cache)
            if reason is not None:
                return reason
        return None
