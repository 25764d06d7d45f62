"""Configuration for an editor session."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from nodegraph_mcp.validation import (
    ConfigurationError,
    ValidationError,
    validate_int,
    validate_non_negative_number,
    validate_thresholds,
    validate_zoom_bounds,
)


@dataclass(frozen=True)
class EditorConfig:
    """Tunable constants for hit-testing, curves, grid, zoom and LOD."""
    # Hit-testing (screen pixels)
    pin_hit_radius: float = 10
    link_hover_distance: float = 8
    link_hit_samples: int = 20

    # Curves (world units)
    bezier_min_offset: float = 50
    straight_threshold: float = 0

    # Grid (world units / screen pixels)
    grid_spacing: float = 24
    grid_min_spacing: float = 4

    # Zoom clamp
    min_zoom: float = 0.1
    max_zoom: float = 3.0

    # Level of detail
    lod_full_threshold: float = 0.5
    lod_simplified_threshold: float = 0.25

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError if any setting is out of range."""
        try:
            validate_non_negative_number(self.pin_hit_radius, "pin_hit_radius")
            validate_non_negative_number(self.link_hover_distance, "link_hover_distance")
            validate_int(self.link_hit_samples, "link_hit_samples", min_val=1)
            validate_non_negative_number(self.bezier_min_offset, "bezier_min_offset")
            validate_non_negative_number(self.straight_threshold, "straight_threshold")
            validate_non_negative_number(self.grid_min_spacing, "grid_min_spacing")
        except ValidationError as exc:
            raise ConfigurationError(exc.message) from exc
        if self.grid_spacing <= 0:
            raise ConfigurationError(f"'grid_spacing' must be > 0, got {self.grid_spacing}.")
        validate_zoom_bounds(self.min_zoom, self.max_zoom)
        validate_thresholds(self.lod_full_threshold, self.lod_simplified_threshold)

    def replace(self, **changes: object) -> 'EditorConfig':
        """Return a validated copy with *changes* applied."""
        return dataclasses.replace(self, **changes)
