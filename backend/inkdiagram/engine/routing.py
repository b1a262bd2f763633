"""Payload sizing and single- vs multi-stage routing."""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence

from pydantic import TypeAdapter

from inkdiagram.engine.config import DEFAULT_CONFIG, MultiStageConfig
from inkdiagram.engine.errors import PayloadTooLargeError
from inkdiagram.engine.simplify import simplify_strokes
from inkdiagram.models.strokes import Stroke

logger = logging.getLogger(__name__)

_strokes_adapter = TypeAdapter(list[Stroke])


class Route(str, enum.Enum):
    NORMAL = "normal"
    MULTI_STAGE = "multi-stage"


def estimate_size_bytes(strokes: Sequence[Stroke]) -> int:
    """UTF-8 length of the compact JSON the strokes travel as."""
    return len(_strokes_adapter.dump_json(list(strokes), by_alias=True))


def is_too_large(strokes: Sequence[Stroke], config: MultiStageConfig = DEFAULT_CONFIG) -> bool:
    return estimate_size_bytes(strokes) > config.threshold_size_bytes


def should_use_multi_stage(
    strokes: Sequence[Stroke], config: MultiStageConfig = DEFAULT_CONFIG
) -> bool:
    return choose_route(strokes, config) is Route.MULTI_STAGE


def choose_route(strokes: Sequence[Stroke], config: MultiStageConfig = DEFAULT_CONFIG) -> Route:
    size = estimate_size_bytes(strokes)
    multi = len(strokes) > config.threshold_stroke_count or size > config.threshold_size_bytes
    route = Route.MULTI_STAGE if multi else Route.NORMAL
    logger.info("Routing %d strokes (%d bytes) → %s", len(strokes), size, route.value)
    return route


def fit_to_ceiling(
    strokes: Sequence[Stroke], config: MultiStageConfig = DEFAULT_CONFIG
) -> list[Stroke]:
    """Return strokes that fit under the ceiling, simplifying once if needed.

    Raises:
        PayloadTooLargeError: If the fine simplification pass is not enough.
    """
    if not is_too_large(strokes, config):
        return list(strokes)

    simplified = simplify_strokes(strokes, config.stage2_tolerance, config.stage2_max_points)
    size = estimate_size_bytes(simplified)
    if size > config.threshold_size_bytes:
        raise PayloadTooLargeError(size, config.threshold_size_bytes)
    logger.info("Simplified %d strokes to %d bytes to fit the payload ceiling", len(strokes), size)
    return simplified


def remaining_strokes(strokes: Sequence[Stroke], processed_indices: Sequence[int]) -> list[Stroke]:
    processed = set(processed_indices)
    return [s for i, s in enumerate(strokes) if i not in processed]
