"""POST /api/ai/interpret-stream — strokes + diagram context → streamed interpretation (SSE)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from inkdiagram.config import Settings
from inkdiagram.dependencies import get_settings
from inkdiagram.engine.errors import StrokeValidationError
from inkdiagram.engine.gestures import detect_gestures
from inkdiagram.engine.orchestrator import NO_STROKES_MESSAGE
from inkdiagram.engine.routing import fit_to_ceiling, is_too_large
from inkdiagram.llm.model_router import missing_key_message
from inkdiagram.llm.stream import stream_interpretation
from inkdiagram.models.requests import InterpretStreamRequest
from inkdiagram.models.responses import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ai/interpret-stream", response_model=None)
async def interpret_stream(
    req: InterpretStreamRequest,
    settings: Settings = Depends(get_settings),
) -> StreamingResponse | JSONResponse:
    if not req.strokes:
        raise StrokeValidationError(NO_STROKES_MESSAGE)

    # Raises PayloadTooLargeError when even the fine pass is not enough
    simplified = is_too_large(req.strokes)
    strokes = fit_to_ceiling(req.strokes)

    missing_key = missing_key_message(settings)
    if missing_key:
        logger.error("Interpret request rejected: no API key for provider %s", settings.ai_provider)
        return JSONResponse(status_code=500, content=ErrorResponse(error=missing_key).model_dump())

    gestures = req.gestures
    if gestures is None:
        gestures = detect_gestures(req.strokes, req.element_positions)

    logger.info(
        "Interpreting %d strokes: variant=%s mode=%s stage=%s simplified=%s image=%s",
        len(strokes),
        req.diagram_variant,
        req.mode,
        req.stage,
        simplified,
        req.image is not None,
    )

    return StreamingResponse(
        stream_interpretation(req, strokes, gestures, simplified, original_count=len(req.strokes)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
