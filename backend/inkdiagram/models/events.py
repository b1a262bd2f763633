"""Server-sent event payloads exchanged with the generation collaborator."""

from __future__ import annotations

from pydantic import BaseModel


class StreamEvent(BaseModel):
    """Body of one `data: {...}` line. `type` is reasoning, text-delta or error."""

    type: str
    text: str | None = None
    error: str | None = None
