"""Region division — splits a stroke batch so each generation call stays small.

Three strategies, tried in order by `divide_optimally`:
- spatial: bucket strokes into a grid by bbox center; sparse cells are dropped (lossy)
- clustering: greedy nearest-neighbour groups, small groups dissolve into singletons
- time: equal sequential batches in drawing order (always succeeds, never drops)
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from inkdiagram.engine.config import DEFAULT_CONFIG, MultiStageConfig
from inkdiagram.engine.errors import StrokeValidationError
from inkdiagram.engine.routing import estimate_size_bytes
from inkdiagram.models.strokes import CanvasSize, Stroke
from inkdiagram.utils.geometry import as_points, bbox_center

logger = logging.getLogger(__name__)

Region = list[Stroke]


class DivisionMethod(str, enum.Enum):
    SPATIAL = "spatial"
    CLUSTERING = "clustering"
    TIME = "time"


@dataclass
class Division:
    regions: list[Region]
    method: DivisionMethod


def _centers(strokes: Sequence[Stroke]) -> NDArray[np.float64]:
    if not strokes:
        return np.empty((0, 2))
    return np.array([bbox_center(as_points(s.points)) for s in strokes])


def divide_by_space(
    strokes: Sequence[Stroke],
    canvas: CanvasSize,
    config: MultiStageConfig = DEFAULT_CONFIG,
) -> list[Region]:
    """Grid buckets in row-major order; buckets under the minimum occupancy are dropped."""
    if canvas.width <= 0 or canvas.height <= 0:
        raise StrokeValidationError("Canvas size must be positive for spatial division")

    cols, rows = config.grid_cols, config.grid_rows
    grid: list[Region] = [[] for _ in range(cols * rows)]
    if not strokes:
        return []

    centers = _centers(strokes)
    col_idx = np.clip(np.floor(centers[:, 0] / canvas.width * cols), 0, cols - 1).astype(int)
    row_idx = np.clip(np.floor(centers[:, 1] / canvas.height * rows), 0, rows - 1).astype(int)

    for stroke, r, c in zip(strokes, row_idx, col_idx):
        grid[r * cols + c].append(stroke)

    regions = [cell for cell in grid if len(cell) >= config.min_strokes_per_region]
    dropped = len(strokes) - sum(len(r) for r in regions)
    if dropped:
        logger.debug("Spatial division dropped %d stroke(s) in sparse cells", dropped)
    return regions


def cluster_strokes(
    strokes: Sequence[Stroke],
    distance_threshold: float | None = None,
    config: MultiStageConfig = DEFAULT_CONFIG,
) -> list[Region]:
    """Greedy clustering on bbox centers.

    Each unassigned stroke seeds a cluster and pulls in every other unassigned
    stroke within the threshold. A cluster below the minimum size is released
    again; released strokes may join a later cluster or end up as singletons.
    """
    if not strokes:
        return []

    threshold = config.cluster_distance if distance_threshold is None else distance_threshold
    centers = _centers(strokes)
    labels = np.full(len(strokes), -1, dtype=int)

    clusters: list[Region] = []
    next_id = 0
    for i in range(len(strokes)):
        if labels[i] != -1:
            continue

        dists = np.hypot(centers[:, 0] - centers[i, 0], centers[:, 1] - centers[i, 1])
        members = np.flatnonzero((labels == -1) & (dists <= threshold))
        # The seed itself is always within range, so it leads the member list
        members = np.concatenate(([i], members[members != i]))

        if len(members) >= config.min_cluster_size:
            labels[members] = next_id
            clusters.append([strokes[m] for m in members])
            next_id += 1

    clusters.extend([strokes[i]] for i in np.flatnonzero(labels == -1))
    return clusters


def divide_by_time(strokes: Sequence[Stroke], batch_size: int) -> list[Region]:
    batch_size = max(1, batch_size)
    return [list(strokes[i : i + batch_size]) for i in range(0, len(strokes), batch_size)]


def divide_optimally(
    strokes: Sequence[Stroke],
    canvas: CanvasSize,
    config: MultiStageConfig = DEFAULT_CONFIG,
) -> Division:
    size = estimate_size_bytes(strokes)

    if size > config.threshold_size_bytes * 2:
        regions = divide_by_space(strokes, canvas, config)
        if len(regions) > 1:
            return Division(regions, DivisionMethod.SPATIAL)

    if len(strokes) > config.threshold_stroke_count * 2:
        regions = cluster_strokes(strokes, config=config)
        if len(regions) > 1:
            return Division(regions, DivisionMethod.CLUSTERING)

    batch_size = math.ceil(len(strokes) / config.grid_cols)
    return Division(divide_by_time(strokes, batch_size), DivisionMethod.TIME)
