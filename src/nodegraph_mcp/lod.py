"""Zoom-driven level-of-detail tiers."""

from __future__ import annotations

from dataclasses import dataclass

from nodegraph_mcp.models import LodTier
from nodegraph_mcp.validation import validate_thresholds


DEFAULT_FULL_THRESHOLD = 0.5
DEFAULT_SIMPLIFIED_THRESHOLD = 0.25


def lod_tier(
    zoom: float,
    full_threshold: float = DEFAULT_FULL_THRESHOLD,
    simplified_threshold: float = DEFAULT_SIMPLIFIED_THRESHOLD,
) -> LodTier:
    """Map a zoom factor to a tier.  Both thresholds belong to the lower tier."""
    if zoom > full_threshold:
        return LodTier.FULL
    if zoom > simplified_threshold:
        return LodTier.SIMPLIFIED
    return LodTier.MINIMAL


@dataclass(frozen=True)
class LodPolicy:
    full_threshold: float = DEFAULT_FULL_THRESHOLD
    simplified_threshold: float = DEFAULT_SIMPLIFIED_THRESHOLD

    def __post_init__(self) -> None:
        validate_thresholds(self.full_threshold, self.simplified_threshold)

    def tier(self, zoom: float) -> LodTier:
        return lod_tier(zoom, self.full_threshold, self.simplified_threshold)
