"""Stroke simplification — fewer points, same visual shape.

A greedy single pass, not Douglas-Peucker: an interior point survives if it
is far from the last kept point, or far from the segment joining the last
kept point to its successor. A uniform subsampling cap runs afterwards.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from inkdiagram.models.strokes import Stroke
from inkdiagram.utils.geometry import as_points, distance, point_segment_distance

FINE_TOLERANCE = 2.0
COARSE_TOLERANCE = 3.0
DEFAULT_MAX_POINTS = 500


def simplify_points(points: Sequence[float], tolerance: float = FINE_TOLERANCE) -> list[float]:
    """Greedy reduction of a flat point array. First and last pairs always survive."""
    if len(points) < 6:
        return list(points)

    pts = as_points(points)
    n = len(pts)

    kept = [0]
    last = 0
    for i in range(1, n - 1):
        x, y = pts[i]
        lx, ly = pts[last]
        nx, ny = pts[i + 1]

        dist = distance(lx, ly, x, y)
        deviation = point_segment_distance(x, y, lx, ly, nx, ny)
        if dist > tolerance or deviation > tolerance:
            kept.append(i)
            last = i
    kept.append(n - 1)

    return [float(v) for v in pts[kept].ravel()]


def cap_points(points: Sequence[float], max_points: int = DEFAULT_MAX_POINTS) -> list[float]:
    """Uniformly subsample to at most `max_points` pairs, plus the true last pair."""
    n = len(points) // 2
    if n <= max_points:
        return list(points)

    step = math.ceil(n / max_points)
    sampled: list[float] = []
    for i in range(0, n, step):
        sampled.extend((points[2 * i], points[2 * i + 1]))

    last_x, last_y = points[2 * n - 2], points[2 * n - 1]
    if sampled[-2] != last_x or sampled[-1] != last_y:
        sampled.extend((last_x, last_y))
    return sampled


def simplify(
    points: Sequence[float],
    tolerance: float = FINE_TOLERANCE,
    max_points: int = DEFAULT_MAX_POINTS,
) -> list[float]:
    """Greedy pass followed by the point cap."""
    return cap_points(simplify_points(points, tolerance), max_points)


def simplify_strokes(
    strokes: Sequence[Stroke],
    tolerance: float = FINE_TOLERANCE,
    max_points: int = DEFAULT_MAX_POINTS,
) -> list[Stroke]:
    """Simplified copies of `strokes`; the originals are left untouched."""
    result = []
    for stroke in strokes:
        if stroke.is_degenerate:
            result.append(stroke)
            continue
        points = simplify(stroke.points, tolerance, max_points)
        result.append(stroke.model_copy(update={"points": tuple(points)}))
    return result
