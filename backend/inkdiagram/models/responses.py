"""API response models and caller-facing results."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    diagram_variants: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str


class ProcessedRegion(BaseModel):
    region_id: str
    stroke_count: int


class StageResult(BaseModel):
    """Parsed output of one generation call plus the input strokes it consumed."""

    diagram_text: str
    rationale: str
    thinking_trace: str = ""
    processed_indices: list[int] = Field(default_factory=list)
    processed_regions: list[ProcessedRegion] = Field(default_factory=list)


class InterpretResult(BaseModel):
    """What the orchestrator hands back to its caller."""

    diagram_text: str | None
    rationale: str | None
    thinking_trace: str = ""
    error: str | None = None


class Stage1Notice(BaseModel):
    """Intermediate result delivered once stage 1 finishes."""

    diagram_text: str
    rationale: str
