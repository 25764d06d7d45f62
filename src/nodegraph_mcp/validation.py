"""
Input validation for the node-graph MCP server and engine configuration.

Provides reusable validators that produce clear error messages for all
parameters received from tool callers, plus the error types the engine raises
for programmer-side misuse (bad thresholds, conflicting pin ownership).
"""

from __future__ import annotations

from typing import Any


INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
MAX_VIEWPORT_EXTENT = 16384


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(ValidationError):
    """Raised when engine configuration is inconsistent (e.g. LOD thresholds)."""


class PinOwnershipError(ValidationError):
    """Raised when a pin ID is re-registered under a different owning node."""

    def __init__(self, pin_id: int, owner: int, new_owner: int) -> None:
        self.pin_id = pin_id
        self.owner = owner
        self.new_owner = new_owner
        super().__init__(
            f"Pin {pin_id} is already owned by node {owner}; "
            f"cannot re-register it under node {new_owner}."
        )


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if val != val or val in (float("inf"), float("-inf")):
        raise ValidationError(f"'{field_name}' must be a finite number, got {val}.")
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate a strictly positive number."""
    val = validate_number(value, field_name)
    if val <= 0:
        raise ValidationError(f"'{field_name}' must be > 0, got {val}.")
    return val


def validate_non_negative_number(value: Any, field_name: str) -> float:
    """Validate a number >= 0."""
    return validate_number(value, field_name, min_val=0)


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_id(value: Any, field_name: str) -> int:
    """Validate an opaque identifier (any signed 64-bit integer)."""
    return validate_int(value, field_name, min_val=INT64_MIN, max_val=INT64_MAX)


def validate_bool(value: Any, field_name: str) -> bool:
    """Ensure *value* is a boolean."""
    if not isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a boolean, got {type(value).__name__}."
        )
    return value


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_id_list(value: Any, field_name: str) -> list[int]:
    """Validate a list of opaque identifiers."""
    items = validate_list(value, field_name)
    return [validate_id(v, f"{field_name}[{i}]") for i, v in enumerate(items)]


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_VALID_DIRECTIONS = {"TB", "LR"}

_EDITOR_ACTIONS = {"CREATE", "LIST", "RESET", "INFO", "DELETE"}
_GEOMETRY_ACTIONS = {
    "NODE_RECT", "NODE_RECT_SCREEN", "PIN_POSITION", "FORGET_NODE",
    "VIEWPORT", "ZOOM_AT", "INSPECT_NODE", "INSPECT_PIN",
}
_QUERY_ACTIONS = {
    "PIN_AT", "NODE_AT", "LINK_AT", "BOX", "LINK_BOX",
    "LINK_PATH", "GRID", "LOD",
}
_SELECTION_ACTIONS = {
    "SELECT_NODE", "SELECT_LINK", "CLEAR", "REPLACE_NODES",
    "REPLACE_LINKS", "BOX_SELECT", "STATE", "SELECT_ALL", "IS_SELECTED",
}
_LINK_ACTIONS = {"REGISTER", "UNREGISTER", "LIST", "REQUEST", "CONNECTED", "LAYOUT"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_direction(value: Any) -> str:
    """Validate a layout direction (TB or LR)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'direction' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().upper()
    if normalized not in _VALID_DIRECTIONS:
        choices = ", ".join(sorted(_VALID_DIRECTIONS))
        raise ValidationError(
            f"'direction' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_rect(x: Any, y: Any, width: Any, height: Any) -> tuple[float, float, float, float]:
    """Validate a node rectangle; width and height must be non-negative."""
    return (
        validate_number(x, "x"),
        validate_number(y, "y"),
        validate_non_negative_number(width, "width"),
        validate_non_negative_number(height, "height"),
    )


def validate_viewport_size(width: Any, height: Any) -> tuple[float, float]:
    """Validate a viewport size in screen pixels (0 .. MAX_VIEWPORT_EXTENT)."""
    return (
        validate_number(width, "width", min_val=0, max_val=MAX_VIEWPORT_EXTENT),
        validate_number(height, "height", min_val=0, max_val=MAX_VIEWPORT_EXTENT),
    )


def validate_box(x: Any, y: Any, width: Any, height: Any) -> tuple[float, float, float, float]:
    """Validate a selection box. Negative sizes are allowed (normalized later)."""
    return (
        validate_number(x, "x"),
        validate_number(y, "y"),
        validate_number(width, "width"),
        validate_number(height, "height"),
    )


def validate_link_dict(link: Any, index: int) -> tuple[int, int, int]:
    """Validate a single link dict: {"id", "start_pin", "end_pin"}."""
    if not isinstance(link, dict):
        raise ValidationError(f"Link at index {index} must be a dict/object.")
    for key in ("id", "start_pin", "end_pin"):
        if key not in link:
            raise ValidationError(f"Link at index {index} missing required key '{key}'.")
        if not isinstance(link[key], int) or isinstance(link[key], bool):
            raise ValidationError(f"Link at index {index}: '{key}' must be an integer.")
        if not INT64_MIN <= link[key] <= INT64_MAX:
            raise ValidationError(
                f"Link at index {index}: '{key}' is outside the 64-bit range."
            )
    return link["id"], link["start_pin"], link["end_pin"]


def validate_thresholds(full_threshold: Any, simplified_threshold: Any) -> tuple[float, float]:
    """Validate LOD thresholds: ``simplified < full``."""
    full = validate_number(full_threshold, "full_threshold")
    simplified = validate_number(simplified_threshold, "simplified_threshold")
    if simplified >= full:
        raise ConfigurationError(
            f"'simplified_threshold' ({simplified}) must be < 'full_threshold' ({full})."
        )
    return full, simplified


def validate_zoom_bounds(min_zoom: Any, max_zoom: Any) -> tuple[float, float]:
    """Validate zoom clamp bounds: ``0 < min_zoom <= max_zoom``."""
    lo = validate_number(min_zoom, "min_zoom")
    hi = validate_number(max_zoom, "max_zoom")
    if lo <= 0:
        raise ConfigurationError(f"'min_zoom' must be > 0, got {lo}.")
    if lo > hi:
        raise ConfigurationError(
            f"'min_zoom' ({lo}) must be <= 'max_zoom' ({hi})."
        )
    return lo, hi
