"""Engine configuration — thresholds that drive routing, division and gesture detection."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MultiStageConfig:
    """Controls when and how a stroke batch is split across generation calls."""

    # Routing thresholds
    threshold_stroke_count: int = 50
    threshold_size_bytes: int = 900 * 1024  # also the hard payload ceiling

    # Stage 1: overall structure from a coarse pass
    stage1_tolerance: float = 3.0
    stage1_max_points: int = 300

    # Stage 2 and server-side fallback: fine pass
    stage2_tolerance: float = 2.0
    stage2_max_points: int = 500

    # Spatial division
    grid_cols: int = 3
    grid_rows: int = 3
    min_strokes_per_region: int = 5

    # Clustering
    cluster_distance: float = 100.0
    min_cluster_size: int = 3


@dataclass(frozen=True)
class GestureConfig:
    """Geometry limits for the crossing-out and enclosing gestures (pixels)."""

    # Crossing-out (delete)
    x_mark_max_center_distance: float = 80.0
    x_mark_max_size_ratio: float = 0.5
    x_mark_min_span: float = 20.0
    x_mark_target_margin: float = 20.0

    # Enclosing (group)
    enclosure_max_gap: float = 50.0
    enclosure_min_side: float = 100.0
    enclosure_min_points: int = 3


DEFAULT_CONFIG = MultiStageConfig()
DEFAULT_GESTURES = GestureConfig()
