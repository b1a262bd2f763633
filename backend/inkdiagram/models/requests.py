"""API request models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from inkdiagram.models.detection import GestureHints
from inkdiagram.models.strokes import ElementPosition, Stroke

Mode = Literal["normal", "structure-extraction", "detail-addition"]


class InterpretStreamRequest(BaseModel):
    """Body of one generation call. Serialized with camelCase keys on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    strokes: list[Stroke] = Field(..., description="Handwritten strokes to interpret")
    current_diagram_text: str = Field(default="", alias="currentDiagramText")
    element_positions: list[ElementPosition] | None = Field(
        default=None,
        alias="elementPositions",
        description="Rendered element boxes, used to resolve gesture targets",
    )
    image: str | None = Field(default=None, description="Raster snapshot as a data URL")
    hint: str | None = Field(default=None, description="Optional free-text hint from the user")
    diagram_variant: str = Field(default="flowchart", alias="diagramVariant")
    mode: Mode = "normal"
    stage: Literal[1, 2] | None = None
    base_diagram_text: str | None = Field(default=None, alias="baseDiagramText")
    gestures: GestureHints | None = Field(
        default=None,
        description="Crossing-out / enclosure findings computed by the caller",
    )

    @model_validator(mode="after")
    def _base_required_for_detail_addition(self) -> "InterpretStreamRequest":
        if self.mode == "detail-addition" and self.base_diagram_text is None:
            raise ValueError("baseDiagramText is required when mode is 'detail-addition'")
        return self

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
