"""Leaf-node geometry helpers for flat stroke point arrays. No engine imports."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray


def as_points(flat: Sequence[float]) -> NDArray[np.float64]:
    """Reshape [x1, y1, x2, y2, ...] into an Nx2 array. A dangling x is ignored."""
    arr = np.asarray(flat, dtype=np.float64)
    n = len(arr) // 2
    return arr[: n * 2].reshape(n, 2)


def bbox(points: NDArray[np.float64]) -> tuple[float, float, float, float]:
    """Compute (xmin, ymin, xmax, ymax) bounding box."""
    if len(points) == 0:
        return (0.0, 0.0, 0.0, 0.0)
    return (
        float(np.min(points[:, 0])),
        float(np.min(points[:, 1])),
        float(np.max(points[:, 0])),
        float(np.max(points[:, 1])),
    )


def bbox_center(points: NDArray[np.float64]) -> tuple[float, float]:
    """Center of the bounding box (not the centroid of the points)."""
    xmin, ymin, xmax, ymax = bbox(points)
    return ((xmin + xmax) / 2, (ymin + ymax) / 2)


def bbox_size(points: NDArray[np.float64]) -> float:
    """Larger of the bounding-box width and height."""
    xmin, ymin, xmax, ymax = bbox(points)
    return max(xmax - xmin, ymax - ymin)


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    return float(np.hypot(x2 - x1, y2 - y1))


def point_segment_distance(
    px: float, py: float, x1: float, y1: float, x2: float, y2: float
) -> float:
    """Distance from (px, py) to the segment (x1, y1)-(x2, y2).

    The projection is clamped to the segment; a zero-length segment
    degrades to the distance to its start point.
    """
    cx = x2 - x1
    cy = y2 - y1
    len_sq = cx * cx + cy * cy
    t = -1.0
    if len_sq != 0:
        t = ((px - x1) * cx + (py - y1) * cy) / len_sq

    if t < 0:
        xx, yy = x1, y1
    elif t > 1:
        xx, yy = x2, y2
    else:
        xx, yy = x1 + t * cx, y1 + t * cy
    return distance(px, py, xx, yy)


def point_in_polygon(point: tuple[float, float], polygon_points: NDArray[np.float64]) -> bool:
    """Even-odd ray casting against the edges between consecutive points.

    No closing edge from the last point back to the first is added: callers
    only pass strokes whose ends already meet.
    """
    px, py = point
    x = polygon_points[:, 0]
    y = polygon_points[:, 1]

    inside = False
    for i in range(len(x) - 1):
        x1, y1, x2, y2 = x[i], y[i], x[i + 1], y[i + 1]
        if (y1 > py) != (y2 > py):
            x_cross = (x2 - x1) * (py - y1) / (y2 - y1) + x1
            if px < x_cross:
                inside = not inside
    return inside
