"""Streaming stroke interpretation via SSE, with extended thinking on anthropic."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from inkdiagram.config import settings
from inkdiagram.engine.decoder import DATA_PREFIX, DONE_SENTINEL
from inkdiagram.llm.formatting import IMAGE_PREFIX, build_user_message
from inkdiagram.llm.model_router import get_model_for_mode
from inkdiagram.llm.prompts import get_system_prompt, resolve_variant
from inkdiagram.llm.tracing import get_langfuse
from inkdiagram.models.detection import GestureHints
from inkdiagram.models.requests import InterpretStreamRequest
from inkdiagram.models.strokes import Stroke

logger = logging.getLogger(__name__)


def sse(payload: dict[str, Any]) -> str:
    return f"{DATA_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n\n"


def sse_done() -> str:
    return f"{DATA_PREFIX}{DONE_SENTINEL}\n\n"


def build_model(mode: str):
    model = get_model_for_mode(mode)

    if settings.ai_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=model,
            api_key=settings.openai_api_key,
            max_tokens=settings.max_output_tokens,
        )

    if settings.ai_provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=settings.google_api_key,
            max_output_tokens=settings.max_output_tokens,
        )

    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=model,
        api_key=settings.anthropic_api_key,
        max_tokens=settings.max_output_tokens,
        thinking={"type": "enabled", "budget_tokens": settings.thinking_budget_tokens},
    )


def build_messages(
    request: InterpretStreamRequest,
    strokes: list[Stroke],
    gestures: GestureHints | None,
    simplified: bool = False,
) -> list:
    from langchain_core.messages import HumanMessage, SystemMessage

    variant = resolve_variant(request.diagram_variant)
    text = build_user_message(
        strokes,
        request.current_diagram_text,
        request.element_positions,
        hint=request.hint,
        gestures=gestures,
        simplified=simplified,
    )

    content: list[dict[str, Any]] = []
    # The snapshot goes first so the model reads it before the coordinates
    if request.image:
        content.append({"type": "image_url", "image_url": {"url": request.image}})
        text = IMAGE_PREFIX + text
    content.append({"type": "text", "text": text})

    return [
        SystemMessage(content=get_system_prompt(variant, request.mode)),
        HumanMessage(content=content),
    ]


def _start_generation(
    request: InterpretStreamRequest,
    strokes: list[Stroke],
    messages: list,
    original_count: int | None,
):
    """Open a Langfuse trace and generation span, or return None when tracing is off."""
    langfuse = get_langfuse()
    if langfuse is None:
        return None

    variant = resolve_variant(request.diagram_variant)
    trace = langfuse.trace(
        name="interpret-stream",
        metadata={
            "diagramType": request.diagram_variant,
            "strokeCount": len(strokes),
            "originalStrokeCount": len(strokes) if original_count is None else original_count,
            "hasImage": request.image is not None,
            "hasHint": bool(request.hint),
            "provider": settings.ai_provider,
            "mode": request.mode,
        },
    )
    return trace.generation(
        name="stroke-interpretation",
        model=get_model_for_mode(request.mode),
        input={"system": messages[0].content, "messages": messages[1].content},
        metadata={"diagramType": variant},
    )


def _end_generation(generation, output: str, failed: bool = False) -> None:
    if generation is None:
        return
    if failed:
        generation.end(output=output, level="ERROR", status_message=output)
    else:
        generation.end(output=output, level="DEFAULT")
    get_langfuse().flush()


async def stream_interpretation(
    request: InterpretStreamRequest,
    strokes: list[Stroke],
    gestures: GestureHints | None,
    simplified: bool = False,
    original_count: int | None = None,
) -> AsyncGenerator[str, None]:
    """Stream SSE events with separate reasoning and text-delta blocks.

    A failure mid-stream is sent as an `error` event and the stream ends
    without the done sentinel.
    """
    messages = build_messages(request, strokes, gestures, simplified)
    generation = _start_generation(request, strokes, messages, original_count)
    output: list[str] = []

    try:
        llm = build_model(request.mode)
        async for chunk in llm.astream(messages):
            if isinstance(chunk.content, list):
                for block in chunk.content:
                    # Some providers send plain strings inside the block list
                    if isinstance(block, str):
                        if block:
                            output.append(block)
                            yield sse({"type": "text-delta", "text": block})
                        continue
                    if not isinstance(block, dict):
                        continue
                    block_type = block.get("type", "")
                    if block_type == "thinking":
                        thinking_text = block.get("thinking", "")
                        if thinking_text:
                            yield sse({"type": "reasoning", "text": thinking_text})
                    elif block_type == "text":
                        text = block.get("text", "")
                        if text:
                            output.append(text)
                            yield sse({"type": "text-delta", "text": text})
            elif isinstance(chunk.content, str) and chunk.content:
                output.append(chunk.content)
                yield sse({"type": "text-delta", "text": chunk.content})
    except Exception as e:
        logger.exception("Interpretation stream failed")
        message = str(e) or type(e).__name__
        _end_generation(generation, message, failed=True)
        yield sse({"type": "error", "error": message})
        return

    _end_generation(generation, "".join(output))
    yield sse_done()
