"""Stroke and element-position models shared by the engine and the API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def _json_number(v: float) -> int | float:
    return int(v) if v.is_integer() else v


class Stroke(BaseModel):
    """One continuous pointer drag. Points are a flat [x1, y1, x2, y2, ...] sequence."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    points: tuple[float, ...]
    color: str = "#000000"
    width: float = Field(default=2.0, alias="strokeWidth")

    @field_validator("points")
    @classmethod
    def _even_and_non_empty(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if len(v) < 2:
            raise ValueError("a stroke needs at least one (x, y) pair")
        if len(v) % 2 != 0:
            raise ValueError("points must hold an even number of coordinates")
        return v

    # Whole numbers go out as integers, as browsers write them
    @field_serializer("points")
    def _serialize_points(self, points: tuple[float, ...]) -> list[int | float]:
        return [_json_number(v) for v in points]

    @field_serializer("width")
    def _serialize_width(self, width: float) -> int | float:
        return _json_number(width)

    @property
    def point_count(self) -> int:
        return len(self.points) // 2

    @property
    def is_degenerate(self) -> bool:
        """Single-point strokes take no part in simplification or gesture detection."""
        return self.point_count < 2


class ElementPosition(BaseModel):
    """Bounding box and label of a rendered diagram element (read-only)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    label: str = ""
    x: float
    y: float
    width: float
    height: float
    center_x: float = Field(alias="centerX")
    center_y: float = Field(alias="centerY")


class CanvasSize(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: float
    height: float
