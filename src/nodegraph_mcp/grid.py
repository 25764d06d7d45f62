"""
Background grid path.

The grid is a set of full-height vertical and full-width horizontal lines in
screen space, offset by the pan modulo the zoomed spacing.  When the zoomed
spacing drops below *min_spacing* the grid would be visual noise, so an empty
path is returned.
"""

from __future__ import annotations

from nodegraph_mcp.curves import format_coord


def grid_path(
    width: float,
    height: float,
    zoom: float = 1.0,
    pan_x: float = 0.0,
    pan_y: float = 0.0,
    spacing: float = 24.0,
    min_spacing: float = 4.0,
) -> str:
    step = spacing * zoom
    if step <= 0 or step < min_spacing:
        return ""

    commands: list[str] = []
    x = pan_x % step
    while x < width + step:
        commands.append(f"M {format_coord(x)} 0 L {format_coord(x)} {format_coord(height)}")
        x += step
    y = pan_y % step
    while y < height + step:
        commands.append(f"M 0 {format_coord(y)} L {format_coord(width)} {format_coord(y)}")
        y += step
    return " ".join(commands)
