"""Exception classes for stroke interpretation."""

from __future__ import annotations


class InterpretError(Exception):
    """Base interpretation exception."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StrokeValidationError(InterpretError):
    """Input rejected before any network call (e.g. no strokes)."""

    pass


class PayloadTooLargeError(InterpretError):
    """Stroke payload still exceeds the ceiling after simplification."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Stroke data is too large ({size_bytes} bytes, limit {limit_bytes}). "
            "Use fewer strokes or draw more simply."
        )


class UpstreamError(InterpretError):
    """The generation collaborator failed, or sent an in-stream error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RegionProcessingError(InterpretError):
    """One region of a divided stage failed; the merge carries on without it."""

    def __init__(self, region_id: str, cause: Exception):
        self.region_id = region_id
        self.cause = cause
        super().__init__(f"{region_id}: {cause}")


class OrchestrationError(InterpretError):
    """A stage failed and the whole invocation was aborted."""

    def __init__(self, message: str, state: str, thinking_trace: str = ""):
        self.state = state
        self.thinking_trace = thinking_trace
        super().__init__(message)


class Cancelled(Exception):
    """Cooperative cancellation. Not an error: no result and nothing to report."""

    pass
