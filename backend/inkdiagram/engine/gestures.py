"""Pure-geometry detection of the crossing-out (delete) and enclosing (group) gestures."""

from __future__ import annotations

from collections.abc import Sequence

from inkdiagram.engine.config import DEFAULT_GESTURES, GestureConfig
from inkdiagram.models.detection import Bounds, EnclosureDetection, GestureHints, XMarkDetection
from inkdiagram.models.strokes import ElementPosition, Stroke
from inkdiagram.utils.geometry import as_points, bbox, bbox_center, bbox_size, distance, point_in_polygon


def stroke_bounds(stroke: Stroke) -> Bounds:
    xmin, ymin, xmax, ymax = bbox(as_points(stroke.points))
    return Bounds(
        min_x=xmin,
        min_y=ymin,
        max_x=xmax,
        max_y=ymax,
        center_x=(xmin + xmax) / 2,
        center_y=(ymin + ymax) / 2,
    )


def _is_diagonal(stroke: Stroke, min_span: float) -> bool:
    p = stroke.points
    return abs(p[-2] - p[0]) > min_span and abs(p[-1] - p[1]) > min_span


def _element_under(
    x: float, y: float, elements: Sequence[ElementPosition], margin: float
) -> str | None:
    for el in elements:
        if (
            el.x - margin <= x <= el.x + el.width + margin
            and el.y - margin <= y <= el.y + el.height + margin
        ):
            return el.id
    return None


def detect_x_mark(
    strokes: Sequence[Stroke],
    element_positions: Sequence[ElementPosition] | None = None,
    config: GestureConfig = DEFAULT_GESTURES,
) -> XMarkDetection | None:
    """Check whether the last two strokes cross each other like an X."""
    if len(strokes) < 2:
        return None

    first, second = strokes[-2], strokes[-1]
    if first.is_degenerate or second.is_degenerate:
        return None

    p1 = as_points(first.points)
    p2 = as_points(second.points)
    cx1, cy1 = bbox_center(p1)
    cx2, cy2 = bbox_center(p2)

    if distance(cx1, cy1, cx2, cy2) >= config.x_mark_max_center_distance:
        return None

    size1, size2 = bbox_size(p1), bbox_size(p2)
    larger = max(size1, size2)
    if larger == 0 or abs(size1 - size2) / larger >= config.x_mark_max_size_ratio:
        return None

    if not (_is_diagonal(first, config.x_mark_min_span) and _is_diagonal(second, config.x_mark_min_span)):
        return None

    center_x = (cx1 + cx2) / 2
    center_y = (cy1 + cy2) / 2
    target = None
    if element_positions:
        target = _element_under(center_x, center_y, element_positions, config.x_mark_target_margin)

    return XMarkDetection(center_x=center_x, center_y=center_y, target_element_id=target)


def detect_enclosure(
    strokes: Sequence[Stroke],
    element_positions: Sequence[ElementPosition] | None = None,
    config: GestureConfig = DEFAULT_GESTURES,
) -> EnclosureDetection | None:
    """First closed, large-enough stroke (in drawing order) that surrounds an element center."""
    for index, stroke in enumerate(strokes):
        if stroke.point_count < config.enclosure_min_points:
            continue

        p = stroke.points
        if distance(p[0], p[1], p[-2], p[-1]) >= config.enclosure_max_gap:
            continue

        bounds = stroke_bounds(stroke)
        if bounds.width < config.enclosure_min_side or bounds.height < config.enclosure_min_side:
            continue

        polygon = as_points(p)
        enclosed = [
            el.id
            for el in element_positions or []
            if point_in_polygon((el.center_x, el.center_y), polygon)
        ]
        if enclosed:
            return EnclosureDetection(stroke_index=index, bounds=bounds, enclosed_element_ids=enclosed)

    return None


def detect_gestures(
    strokes: Sequence[Stroke],
    element_positions: Sequence[ElementPosition] | None = None,
    config: GestureConfig = DEFAULT_GESTURES,
) -> GestureHints:
    return GestureHints(
        x_mark=detect_x_mark(strokes, element_positions, config),
        enclosure=detect_enclosure(strokes, element_positions, config),
    )
