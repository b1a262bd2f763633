"""Interpret session — the caller-facing surface with at most one active interpretation.

Starting a new interpretation cancels the previous one. Updates arriving from a
superseded invocation are dropped, so the observable fields always describe the
latest call.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from inkdiagram.engine.cancellation import CancellationToken
from inkdiagram.engine.collaborator import Collaborator
from inkdiagram.engine.config import GestureConfig, MultiStageConfig
from inkdiagram.engine.errors import OrchestrationError, PayloadTooLargeError, StrokeValidationError
from inkdiagram.engine.orchestrator import InterpretParams, ProcessingState, Progress, StageOrchestrator
from inkdiagram.models.responses import InterpretResult, Stage1Notice, StageResult

logger = logging.getLogger(__name__)


class InterpretSession:
    def __init__(
        self,
        collaborator: Collaborator,
        config: MultiStageConfig | None = None,
        gesture_config: GestureConfig | None = None,
    ) -> None:
        self.collaborator = collaborator
        self.config = config
        self.gesture_config = gesture_config
        self._token: CancellationToken | None = None
        self.reset()

    def reset(self) -> None:
        """Clear every observable field. A running interpretation is not cancelled."""
        self.is_processing = False
        self.state = ProcessingState.IDLE
        self.thinking_text = ""
        self.output_text = ""
        self.error_message: str | None = None
        self.progress = Progress()
        self.stage1_result: StageResult | None = None

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self.is_processing = False
        self.state = ProcessingState.IDLE

    async def interpret(
        self,
        params: InterpretParams,
        on_complete: Callable[[InterpretResult], None],
        on_stage1_complete: Callable[[Stage1Notice], None] | None = None,
    ) -> InterpretResult | None:
        """Run one interpretation, cancelling any that is still in flight.

        Returns the result passed to `on_complete`, an error result (with
        `diagram_text=None`) on failure, or None when cancelled or superseded.
        """
        if self._token is not None:
            logger.info("Superseding the interpretation still in flight")
            self._token.cancel()

        token = CancellationToken()
        self._token = token
        self.reset()
        self.is_processing = True

        orchestrator = StageOrchestrator(self.collaborator, self.config, self.gesture_config)

        def is_current() -> bool:
            return self._token is token

        def on_progress(progress: Progress) -> None:
            if not is_current():
                return
            self.progress = progress
            self.state = progress.state
            self.thinking_text = progress.thinking
            self.output_text = progress.output

        def stage1_done(notice: Stage1Notice) -> None:
            if not is_current():
                return
            self.stage1_result = orchestrator.stage1_result
            if on_stage1_complete:
                on_stage1_complete(notice)

        try:
            result = await orchestrator.run(params, token, stage1_done, on_progress)
        except OrchestrationError as exc:
            return self._fail(token, exc.message, exc.thinking_trace)
        except (StrokeValidationError, PayloadTooLargeError) as exc:
            return self._fail(token, exc.message, self.thinking_text if is_current() else "")

        if result is None or not is_current():
            if is_current():
                self.is_processing = False
                self.state = ProcessingState.IDLE
            return None

        self._token = None
        self.is_processing = False
        self.state = ProcessingState.COMPLETED
        on_complete(result)
        return result

    def _fail(self, token: CancellationToken, message: str, trace: str) -> InterpretResult:
        if self._token is token:
            self._token = None
            self.is_processing = False
            self.state = ProcessingState.ERROR
            self.error_message = message
        return InterpretResult(diagram_text=None, rationale=None, thinking_trace=trace, error=message)
