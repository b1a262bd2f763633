"""Gesture detection results attached to generation requests as hints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Bounds(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    min_x: float = Field(alias="minX")
    min_y: float = Field(alias="minY")
    max_x: float = Field(alias="maxX")
    max_y: float = Field(alias="maxY")
    center_x: float = Field(alias="centerX")
    center_y: float = Field(alias="centerY")

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


class XMarkDetection(BaseModel):
    """Two crossing diagonal strokes: delete the element underneath."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_x_mark: bool = Field(default=True, alias="isXMark")
    center_x: float = Field(alias="centerX")
    center_y: float = Field(alias="centerY")
    target_element_id: str | None = Field(default=None, alias="targetElementId")


class EnclosureDetection(BaseModel):
    """A closed loop around one or more elements: group them."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_enclosure: bool = Field(default=True, alias="isEnclosure")
    stroke_index: int = Field(alias="strokeIndex")
    bounds: Bounds
    enclosed_element_ids: list[str] = Field(default_factory=list, alias="enclosedElementIds")


class GestureHints(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    x_mark: XMarkDetection | None = Field(default=None, alias="xMark")
    enclosure: EnclosureDetection | None = None

    @property
    def empty(self) -> bool:
        return self.x_mark is None and self.enclosure is None
