"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from inkdiagram import __version__
from inkdiagram.llm.prompts import DIAGRAM_VARIANTS, get_all_prompts
from inkdiagram.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        diagram_variants=list(DIAGRAM_VARIANTS),
    )


@router.get("/prompts")
async def prompts() -> dict[str, str]:
    return get_all_prompts()
