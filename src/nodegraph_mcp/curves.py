"""
Connector curves between pins.

Links are drawn as cubic Béziers whose control points leave each endpoint
horizontally.  The horizontal offset is ``max(|dx| * 0.5, min_offset)`` so a
curve stays smooth when its endpoints are vertically stacked or very close.
Control points point toward the other endpoint, so swapping the endpoints
mirrors the offsets.

Paths are serialized as portable SVG-style commands::

    M sx sy C c1x c1y c2x c2y ex ey
"""

from __future__ import annotations

import math
from dataclasses import dataclass


Point2 = tuple[float, float]

DEFAULT_SAMPLES = 20


def format_coord(value: float) -> str:
    """Format a coordinate: integral values without a fractional part."""
    value = float(value)
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _lerp(a: Point2, b: Point2, t: float) -> Point2:
    return a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t


def control_offset(start_x: float, end_x: float, min_offset: float) -> float:
    """Signed horizontal control-point offset for the start endpoint."""
    dx = end_x - start_x
    direction = 1.0 if dx >= 0 else -1.0
    return direction * max(abs(dx) * 0.5, min_offset)


@dataclass(frozen=True)
class CubicBezier:
    p0: Point2
    p1: Point2
    p2: Point2
    p3: Point2

    @classmethod
    def from_endpoints(
        cls,
        start_x: float,
        start_y: float,
        end_x: float,
        end_y: float,
        min_offset: float,
    ) -> 'CubicBezier':
        offset = control_offset(start_x, end_x, min_offset)
        return cls(
            p0=(start_x, start_y),
            p1=(start_x + offset, start_y),
            p2=(end_x - offset, end_y),
            p3=(end_x, end_y),
        )

    def eval(self, t: float) -> Point2:
        mt = 1.0 - t
        a = mt * mt * mt
        b = 3.0 * mt * mt * t
        c = 3.0 * mt * t * t
        d = t * t * t
        return (
            a * self.p0[0] + b * self.p1[0] + c * self.p2[0] + d * self.p3[0],
            a * self.p0[1] + b * self.p1[1] + c * self.p2[1] + d * self.p3[1],
        )

    def sample(self, segments: int = DEFAULT_SAMPLES) -> list[Point2]:
        """Return ``segments + 1`` points at evenly spaced parameters, ends included."""
        n = segments if segments > 0 else DEFAULT_SAMPLES
        return [self.eval(i / n) for i in range(n + 1)]

    def split(self, t: float) -> 'CubicBezier':
        """Return the sub-curve covering ``[0, t]`` (de Casteljau)."""
        q0 = _lerp(self.p0, self.p1, t)
        q1 = _lerp(self.p1, self.p2, t)
        q2 = _lerp(self.p2, self.p3, t)
        r0 = _lerp(q0, q1, t)
        r1 = _lerp(q1, q2, t)
        return CubicBezier(self.p0, q0, r0, _lerp(r0, r1, t))

    def to_path(self) -> str:
        return "M {} {} C {} {} {} {} {} {}".format(
            *(format_coord(v) for v in (*self.p0, *self.p1, *self.p2, *self.p3))
        )


def _line_path(start: Point2, end: Point2) -> str:
    return f"M {format_coord(start[0])} {format_coord(start[1])} L {format_coord(end[0])} {format_coord(end[1])}"


def bezier_path(
    start_x: float,
    start_y: float,
    end_x: float,
    end_y: float,
    min_offset: float = 50.0,
    straight_threshold: float = 0.0,
) -> str:
    """Serialize the connector between two points.

    Endpoints closer than *straight_threshold* are joined with a straight line.
    """
    if math.hypot(end_x - start_x, end_y - start_y) < straight_threshold:
        return _line_path((start_x, start_y), (end_x, end_y))
    return CubicBezier.from_endpoints(start_x, start_y, end_x, end_y, min_offset).to_path()


def partial_bezier_path(
    start_x: float,
    start_y: float,
    end_x: float,
    end_y: float,
    progress: float,
    min_offset: float = 50.0,
    straight_threshold: float = 0.0,
) -> str:
    """Path for the first *progress* fraction of a connector (animated reveal)."""
    t = min(max(progress, 0.0), 1.0)
    if t >= 1.0:
        return bezier_path(start_x, start_y, end_x, end_y, min_offset, straight_threshold)
    if math.hypot(end_x - start_x, end_y - start_y) < straight_threshold or t <= 0.0:
        head = _lerp((start_x, start_y), (end_x, end_y), t)
        return _line_path((start_x, start_y), head)
    curve = CubicBezier.from_endpoints(start_x, start_y, end_x, end_y, min_offset)
    return curve.split(t).to_path()


# ---------------------------------------------------------------------------
# Distance helpers for hit-testing
# ---------------------------------------------------------------------------

def distance_to_segment(point: Point2, a: Point2, b: Point2) -> float:
    abx, aby = b[0] - a[0], b[1] - a[1]
    apx, apy = point[0] - a[0], point[1] - a[1]
    length_sq = abx * abx + aby * aby
    if length_sq <= 1e-12:
        return math.hypot(apx, apy)
    t = min(max((apx * abx + apy * aby) / length_sq, 0.0), 1.0)
    return math.hypot(point[0] - (a[0] + t * abx), point[1] - (a[1] + t * aby))


def distance_to_polyline(point: Point2, samples: list[Point2]) -> float:
    if not samples:
        return math.inf
    if len(samples) == 1:
        return math.hypot(point[0] - samples[0][0], point[1] - samples[0][1])
    return min(
        distance_to_segment(point, samples[i - 1], samples[i])
        for i in range(1, len(samples))
    )


def distance_to_bezier(point: Point2, curve: CubicBezier, samples: int = DEFAULT_SAMPLES) -> float:
    """Approximate distance from *point* to *curve* through a sampled polyline."""
    return distance_to_polyline(point, curve.sample(samples))


# ---------------------------------------------------------------------------
# Strategy object
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CurvePathComputer:
    """Builds connector curves with a fixed minimum offset.

    The controller calls it with screen-space endpoints and passes the current
    zoom, which scales the offset so the screen curve is the exact image of
    the world curve.
    """
    min_offset: float = 50.0
    straight_threshold: float = 0.0

    def curve(self, start_x: float, start_y: float, end_x: float, end_y: float,
              zoom: float = 1.0) -> CubicBezier:
        """The curve hit-testing samples; matches what :meth:`path` draws.

        Below the straight threshold the control points collapse onto the
        endpoints, so the curve traces the straight line.
        """
        if math.hypot(end_x - start_x, end_y - start_y) < self.straight_threshold * zoom:
            start, end = (start_x, start_y), (end_x, end_y)
            return CubicBezier(start, start, end, end)
        return CubicBezier.from_endpoints(start_x, start_y, end_x, end_y, self.min_offset * zoom)

    def path(self, start_x: float, start_y: float, end_x: float, end_y: float,
             zoom: float = 1.0) -> str:
        return bezier_path(start_x, start_y, end_x, end_y,
                           self.min_offset * zoom, self.straight_threshold * zoom)

    def partial_path(self, start_x: float, start_y: float, end_x: float, end_y: float,
                     progress: float, zoom: float = 1.0) -> str:
        return partial_bezier_path(start_x, start_y, end_x, end_y, progress,
                                   self.min_offset * zoom, self.straight_threshold * zoom)
