"""Langfuse tracing of interpretation calls.

Tracing is off unless both LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY are set.
"""

from __future__ import annotations

import logging

from langfuse import Langfuse

from inkdiagram.config import Settings, settings

logger = logging.getLogger(__name__)

_client: Langfuse | None = None


def tracing_enabled(config: Settings | None = None) -> bool:
    config = config or settings
    return bool(config.langfuse_public_key and config.langfuse_secret_key)


def get_langfuse() -> Langfuse | None:
    """Shared client, created on first use. None when tracing is disabled."""
    global _client
    if not tracing_enabled():
        return None

    if _client is None:
        _client = Langfuse(
            public_key=settings.langfuse_public_key,
            secret_key=settings.langfuse_secret_key,
            host=settings.langfuse_host,
            flush_interval=1,
        )
        logger.info("Langfuse tracing enabled: host=%s", settings.langfuse_host)
    return _client


def shutdown_langfuse() -> None:
    """Flush pending events and drop the shared client."""
    global _client
    if _client is not None:
        _client.shutdown()
        _client = None
