"""Streamed response decoding — SSE lines into separate reasoning and output buffers.

The wire format is one event per line:

    data: {"type": "reasoning", "text": "..."}
    data: {"type": "text-delta", "text": "..."}
    data: [DONE]

Decoding is a fold: `feed(acc, text)` returns a new accumulator and never
mutates the old one. Malformed lines show up as `SkippedLine` results and are
recorded on the accumulator rather than swallowed.
"""

from __future__ import annotations

import codecs
import contextlib
import json
import logging
import re
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, replace

from pydantic import ValidationError

from inkdiagram.engine.cancellation import CancellationToken, until_cancelled
from inkdiagram.engine.errors import UpstreamError
from inkdiagram.models.events import StreamEvent

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

DIAGRAM_START = "---MERMAID_START---"
DIAGRAM_END = "---MERMAID_END---"
REASON_START = "---REASON_START---"
REASON_END = "---REASON_END---"

_DIAGRAM_RE = re.compile(re.escape(DIAGRAM_START) + r"\s*([\s\S]*?)\s*" + re.escape(DIAGRAM_END))
_REASON_RE = re.compile(re.escape(REASON_START) + r"\s*([\s\S]*?)\s*" + re.escape(REASON_END))


# ---------------------------------------------------------------------------
# Line parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventLine:
    event: StreamEvent


@dataclass(frozen=True)
class SkippedLine:
    data: str
    reason: str


@dataclass(frozen=True)
class DoneLine:
    pass


LineParse = EventLine | SkippedLine | DoneLine | None


def parse_line(line: str) -> LineParse:
    """Classify one complete line. Blank and non-`data:` lines parse to None."""
    if not line.strip() or not line.startswith(DATA_PREFIX):
        return None

    data = line[len(DATA_PREFIX):].strip()
    if data == DONE_SENTINEL:
        return DoneLine()
    if not data:
        return None

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        return SkippedLine(data=data, reason=f"invalid JSON: {e.msg}")
    try:
        return EventLine(StreamEvent.model_validate(payload))
    except ValidationError as e:
        return SkippedLine(data=data, reason=f"unexpected event shape: {e.error_count()} error(s)")


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StreamAccumulator:
    thinking: str = ""
    output: str = ""
    pending: str = ""  # trailing partial line from the last chunk
    done: bool = False
    skipped: tuple[SkippedLine, ...] = ()


def apply_line(acc: StreamAccumulator, line: str) -> StreamAccumulator:
    """Fold one complete line into the accumulator.

    Raises:
        UpstreamError: On an in-stream `error` event.
    """
    parsed = parse_line(line)
    if parsed is None:
        return acc
    if isinstance(parsed, DoneLine):
        return replace(acc, done=True)
    if isinstance(parsed, SkippedLine):
        logger.warning("Skipping malformed stream line (%s): %.200s", parsed.reason, parsed.data)
        return replace(acc, skipped=acc.skipped + (parsed,))

    event = parsed.event
    if event.type == "reasoning":
        return replace(acc, thinking=acc.thinking + (event.text or ""))
    if event.type == "text-delta":
        return replace(acc, output=acc.output + (event.text or ""))
    if event.type == "error":
        raise UpstreamError(event.error or "Unknown error")
    return acc


def feed(acc: StreamAccumulator, text: str) -> StreamAccumulator:
    """Fold a decoded text chunk; a trailing partial line waits for the next chunk."""
    if acc.done:
        return acc

    lines = (acc.pending + text).split("\n")
    acc = replace(acc, pending=lines.pop())
    for line in lines:
        acc = apply_line(acc, line.rstrip("\r"))
        if acc.done:
            return replace(acc, pending="")
    return acc


def finish(acc: StreamAccumulator) -> StreamAccumulator:
    """End of stream: fold whatever partial line is still pending."""
    if acc.done or not acc.pending:
        return replace(acc, pending="")
    return replace(apply_line(replace(acc, pending=""), acc.pending.rstrip("\r")), pending="")


# ---------------------------------------------------------------------------
# Byte stream reader
# ---------------------------------------------------------------------------


class StreamDecoder:
    """Incremental UTF-8 decoding on top of the accumulator fold."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.acc = StreamAccumulator()

    def feed_bytes(self, chunk: bytes) -> StreamAccumulator:
        self.acc = feed(self.acc, self._utf8.decode(chunk))
        return self.acc

    def close(self) -> StreamAccumulator:
        self.acc = finish(feed(self.acc, self._utf8.decode(b"", final=True)))
        return self.acc


async def read_stream(
    chunks: AsyncIterator[bytes],
    token: CancellationToken,
    on_progress: Callable[[str, str], None] | None = None,
) -> StreamAccumulator:
    """Drain a byte stream into a final accumulator.

    Raises:
        Cancelled: If `token` fires, including while a read is pending.
        UpstreamError: On an in-stream error event.
    """
    decoder = StreamDecoder()
    async with contextlib.aclosing(until_cancelled(chunks, token)) as guarded:
        async for chunk in guarded:
            before = decoder.acc
            acc = decoder.feed_bytes(chunk)
            if on_progress and (acc.thinking != before.thinking or acc.output != before.output):
                on_progress(acc.thinking, acc.output)
            if acc.done:
                break
    token.raise_if_cancelled()
    return decoder.close()


# ---------------------------------------------------------------------------
# Result extraction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedResult:
    diagram_text: str | None
    rationale: str | None


def parse_result(text: str) -> ParsedResult:
    """Pull the diagram body and rationale out of the model's output text."""
    diagram = _DIAGRAM_RE.search(text)
    reason = _REASON_RE.search(text)
    return ParsedResult(
        diagram_text=diagram.group(1).strip() if diagram else None,
        rationale=reason.group(1).strip() if reason else None,
    )
