"""Per-invocation cancellation token, threaded through every stage call and stream read."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from inkdiagram.engine.errors import Cancelled


class CancellationToken:
    """Created and owned by the caller of one orchestration."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()

    async def wait(self) -> None:
        await self._event.wait()


async def _next(iterator: AsyncIterator[bytes]) -> bytes:
    return await iterator.__anext__()


async def until_cancelled(
    chunks: AsyncIterator[bytes], token: CancellationToken
) -> AsyncIterator[bytes]:
    """Yield from `chunks`, abandoning a pending read as soon as `token` fires.

    The source iterator is closed on exit, so an open response body is
    released whether the stream ends, fails or is cancelled.
    """
    iterator = chunks.__aiter__()
    try:
        while True:
            token.raise_if_cancelled()
            next_chunk = asyncio.ensure_future(_next(iterator))
            signal = asyncio.ensure_future(token.wait())
            try:
                done, _ = await asyncio.wait(
                    {next_chunk, signal}, return_when=asyncio.FIRST_COMPLETED
                )
            except BaseException:
                # The surrounding task was cancelled (e.g. a caller timeout);
                # the iterator must be idle before it can be closed
                next_chunk.cancel()
                signal.cancel()
                await asyncio.wait({next_chunk, signal})
                raise
            signal.cancel()
            if next_chunk not in done:
                next_chunk.cancel()
                # Let the abandoned read unwind before the iterator is closed
                await asyncio.wait({next_chunk})
                raise Cancelled()
            try:
                chunk = next_chunk.result()
            except StopAsyncIteration:
                return
            yield chunk
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
