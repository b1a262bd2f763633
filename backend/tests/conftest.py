"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json

import pytest

from inkdiagram.models.strokes import ElementPosition, Stroke


# ── Stroke factories ──


def make_stroke(points, stroke_id: str = "s") -> Stroke:
    return Stroke(id=stroke_id, points=tuple(float(v) for v in points))


def line(x1, y1, x2, y2, n: int = 10, stroke_id: str = "line") -> Stroke:
    """Straight stroke with `n` evenly spaced points."""
    pts = []
    for k in range(n):
        t = k / (n - 1)
        pts.extend((x1 + (x2 - x1) * t, y1 + (y2 - y1) * t))
    return make_stroke(pts, stroke_id)


def stroke_at(cx: float, cy: float, size: float = 10.0, stroke_id: str = "s") -> Stroke:
    """Two-point diagonal stroke whose bbox is centered on (cx, cy)."""
    h = size / 2
    return make_stroke([cx - h, cy - h, cx + h, cy + h], stroke_id)


def many_strokes(count: int) -> list[Stroke]:
    return [stroke_at(10 + i, 10, stroke_id=f"s{i}") for i in range(count)]


def square_loop(x: float, y: float, side: float, gap: float = 10.0, stroke_id: str = "loop") -> Stroke:
    """Clockwise square that stops `gap` pixels short of its start."""
    return make_stroke(
        [x, y, x + side, y, x + side, y + side, x, y + side, x, y + gap],
        stroke_id,
    )


def element(el_id: str, x: float, y: float, w: float = 40.0, h: float = 40.0, label: str = "") -> ElementPosition:
    return ElementPosition(
        id=el_id,
        label=label or el_id,
        x=x,
        y=y,
        width=w,
        height=h,
        center_x=x + w / 2,
        center_y=y + h / 2,
    )


# X-mark pair: bbox centers (100, 100) and (105, 95), both 40px diagonals
X_MARK_STROKES = [
    make_stroke([80, 80, 120, 120], "x1"),
    make_stroke([125, 75, 85, 115], "x2"),
]


# ── SSE helpers ──


def sse_event(event_type: str, text: str | None = None, error: str | None = None) -> bytes:
    body: dict = {"type": event_type}
    if text is not None:
        body["text"] = text
    if error is not None:
        body["error"] = error
    return f"data: {json.dumps(body)}\n\n".encode()


DONE = b"data: [DONE]\n\n"


def answer_text(diagram: str, reason: str | None = None) -> str:
    text = f"---MERMAID_START---\n{diagram}\n---MERMAID_END---"
    if reason is not None:
        text += f"\n\n---REASON_START---\n{reason}\n---REASON_END---"
    return text


def answer(diagram: str, reason: str | None = None, thinking: str = "") -> list[bytes]:
    """Chunks of a complete, successful stream."""
    chunks = []
    if thinking:
        chunks.append(sse_event("reasoning", thinking))
    chunks.append(sse_event("text-delta", answer_text(diagram, reason)))
    chunks.append(DONE)
    return chunks


# ── Fake collaborator ──


class Stall:
    """Script step that sends `chunks` and then never finishes."""

    def __init__(self, chunks=()):
        self.chunks = list(chunks)


class FakeCollaborator:
    """Replays one scripted response per request: chunks, an exception, or a Stall."""

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.requests = []
        self.stalled = asyncio.Event()
        self.closed_streams = 0

    async def stream(self, request, token):
        self.requests.append(request)
        script = self.scripts.pop(0)
        if isinstance(script, Exception):
            raise script

        stall = isinstance(script, Stall)
        try:
            for chunk in script.chunks if stall else script:
                await asyncio.sleep(0)
                yield chunk
            if stall:
                self.stalled.set()
                await asyncio.Event().wait()
        finally:
            self.closed_streams += 1


@pytest.fixture
def x_mark_strokes() -> list[Stroke]:
    return list(X_MARK_STROKES)
