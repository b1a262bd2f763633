"""Stage orchestrator — drives one interpretation through single- or multi-stage generation.

States and transitions:

    idle ─► normal ───────────────────────────────► completed
      └───► stage1 ─► (nothing remaining) ─────────► completed
                   ├► stage2a (remaining fits) ────► completed
                   └► stage2b (remaining divided) ─► completed

Any state short of `completed` may move to `error`, and cancellation from any active state
returns to `idle` without a result.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from inkdiagram.engine.cancellation import CancellationToken
from inkdiagram.engine.collaborator import Collaborator
from inkdiagram.engine.config import DEFAULT_CONFIG, DEFAULT_GESTURES, GestureConfig, MultiStageConfig
from inkdiagram.engine.decoder import StreamAccumulator, parse_result, read_stream
from inkdiagram.engine.division import divide_optimally
from inkdiagram.engine.errors import (
    Cancelled,
    InterpretError,
    OrchestrationError,
    PayloadTooLargeError,
    RegionProcessingError,
    StrokeValidationError,
    UpstreamError,
)
from inkdiagram.engine.gestures import detect_gestures
from inkdiagram.engine.routing import Route, choose_route, fit_to_ceiling, is_too_large, remaining_strokes
from inkdiagram.engine.simplify import simplify_strokes
from inkdiagram.models.detection import GestureHints
from inkdiagram.models.requests import InterpretStreamRequest, Mode
from inkdiagram.models.responses import InterpretResult, ProcessedRegion, Stage1Notice, StageResult
from inkdiagram.models.strokes import CanvasSize, ElementPosition, Stroke

logger = logging.getLogger(__name__)

STAGE1_DEFAULT_RATIONALE = "Extracted the overall structure."
STAGE2_DEFAULT_RATIONALE = "Added details."
NO_STROKES_MESSAGE = "No strokes were provided. Draw a shape first."


class ProcessingState(str, enum.Enum):
    IDLE = "idle"
    NORMAL = "normal"
    STAGE1 = "stage1"
    STAGE2A = "stage2a"
    STAGE2B = "stage2b"
    COMPLETED = "completed"
    ERROR = "error"


_TRANSITIONS: dict[ProcessingState, frozenset[ProcessingState]] = {
    ProcessingState.IDLE: frozenset(
        {ProcessingState.NORMAL, ProcessingState.STAGE1, ProcessingState.ERROR}
    ),
    ProcessingState.NORMAL: frozenset(
        {ProcessingState.COMPLETED, ProcessingState.ERROR, ProcessingState.IDLE}
    ),
    ProcessingState.STAGE1: frozenset(
        {
            ProcessingState.STAGE2A,
            ProcessingState.STAGE2B,
            ProcessingState.COMPLETED,
            ProcessingState.ERROR,
            ProcessingState.IDLE,
        }
    ),
    ProcessingState.STAGE2A: frozenset(
        {ProcessingState.COMPLETED, ProcessingState.ERROR, ProcessingState.IDLE}
    ),
    ProcessingState.STAGE2B: frozenset(
        {ProcessingState.COMPLETED, ProcessingState.ERROR, ProcessingState.IDLE}
    ),
    ProcessingState.COMPLETED: frozenset(),
    ProcessingState.ERROR: frozenset(),
}

ACTIVE_STATES = frozenset(
    {ProcessingState.NORMAL, ProcessingState.STAGE1, ProcessingState.STAGE2A, ProcessingState.STAGE2B}
)


@dataclass
class InterpretParams:
    """Everything the caller supplies for one interpretation."""

    strokes: list[Stroke]
    current_diagram_text: str = ""
    element_positions: list[ElementPosition] | None = None
    image: str | None = None
    hint: str | None = None
    diagram_variant: str = "flowchart"
    # Only needed when the remaining strokes must be divided (stage 2b)
    canvas_size: CanvasSize | None = None


@dataclass
class Progress:
    state: ProcessingState = ProcessingState.IDLE
    current: float = 0
    total: int = 0
    message: str = ""
    thinking: str = ""
    output: str = ""


ProgressCallback = Callable[[Progress], None]


@dataclass
class _Live:
    """Buffers of the stream currently being read."""

    thinking: str = ""
    output: str = ""
    completed_traces: list[str] = field(default_factory=list)

    def trace(self) -> str:
        return "\n\n".join(self.completed_traces + [self.thinking]) if self.completed_traces else self.thinking


class StageOrchestrator:
    """Runs one interpretation. Create a fresh instance per invocation."""

    def __init__(
        self,
        collaborator: Collaborator,
        config: MultiStageConfig | None = None,
        gesture_config: GestureConfig | None = None,
    ) -> None:
        self.collaborator = collaborator
        self.config = config or DEFAULT_CONFIG
        self.gesture_config = gesture_config or DEFAULT_GESTURES
        self.state = ProcessingState.IDLE
        self.progress = Progress()
        self.stage1_result: StageResult | None = None
        self._on_progress: ProgressCallback | None = None
        self._gestures: GestureHints | None = None
        self._live = _Live()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _transition(self, new_state: ProcessingState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} → {new_state.value}")
        logger.debug("Orchestrator %s → %s", self.state.value, new_state.value)
        self.state = new_state

    def _report(self, current: float, total: int, message: str) -> None:
        self.progress = Progress(
            state=self.state,
            current=current,
            total=total,
            message=message,
            thinking=self._live.thinking,
            output=self._live.output,
        )
        if self._on_progress:
            self._on_progress(self.progress)

    def _stream_update(self, thinking: str, output: str) -> None:
        self._live.thinking = thinking
        self._live.output = output
        self._report(self.progress.current, self.progress.total, self.progress.message)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        params: InterpretParams,
        token: CancellationToken,
        on_stage1_complete: Callable[[Stage1Notice], None] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> InterpretResult | None:
        """Interpret `params.strokes`.

        Returns:
            The final result, or None if `token` fired before completion.

        Raises:
            StrokeValidationError: Empty input, or stage 2b without a canvas size.
            PayloadTooLargeError: A request cannot be brought under the ceiling.
            OrchestrationError: A stage call or its stream failed.
        """
        if self.state is not ProcessingState.IDLE:
            raise RuntimeError("StageOrchestrator instances are single-use")
        if not params.strokes:
            raise StrokeValidationError(NO_STROKES_MESSAGE)

        self._on_progress = on_progress
        self._gestures = detect_gestures(
            params.strokes, params.element_positions, self.gesture_config
        )

        start = time.perf_counter()
        try:
            result = await self._run(params, token, on_stage1_complete)
        except Cancelled:
            logger.info("Interpretation cancelled during %s", self.state.value)
            if self.state is not ProcessingState.IDLE:
                self._transition(ProcessingState.IDLE)
            self._live = _Live()
            self.progress = Progress()
            return None
        except (StrokeValidationError, PayloadTooLargeError):
            if self.state in ACTIVE_STATES:
                self._transition(ProcessingState.ERROR)
            raise
        except Exception as exc:
            failed = self.state
            trace = self._live.trace()
            self._transition(ProcessingState.ERROR)
            message = exc.message if isinstance(exc, InterpretError) else str(exc) or type(exc).__name__
            logger.warning("Interpretation failed during %s: %s", failed.value, message)
            raise OrchestrationError(message, state=failed.value, thinking_trace=trace) from exc

        self._transition(ProcessingState.COMPLETED)
        logger.info(
            "Interpretation completed in %.0fms", (time.perf_counter() - start) * 1000
        )
        return result

    async def _run(
        self,
        params: InterpretParams,
        token: CancellationToken,
        on_stage1_complete: Callable[[Stage1Notice], None] | None,
    ) -> InterpretResult:
        token.raise_if_cancelled()

        if choose_route(params.strokes, self.config) is Route.NORMAL:
            self._transition(ProcessingState.NORMAL)
            self._report(1, 1, "Processing...")
            return await self._normal(params, token)

        self._transition(ProcessingState.STAGE1)
        self._report(1, 2, "Analysing the overall structure...")
        stage1 = await self._stage1(params, token)
        self.stage1_result = stage1
        self._live.completed_traces.append(stage1.thinking_trace)

        if on_stage1_complete:
            on_stage1_complete(
                Stage1Notice(diagram_text=stage1.diagram_text, rationale=stage1.rationale)
            )

        remaining = remaining_strokes(params.strokes, stage1.processed_indices)
        if not remaining:
            return InterpretResult(
                diagram_text=stage1.diagram_text,
                rationale=stage1.rationale,
                thinking_trace=stage1.thinking_trace,
            )

        if is_too_large(remaining, self.config):
            self._transition(ProcessingState.STAGE2B)
            self._report(2, 3, "Adding details region by region...")
            stage2 = await self._stage2b(stage1.diagram_text, remaining, params, token)
        else:
            self._transition(ProcessingState.STAGE2A)
            self._report(2, 2, "Adding details...")
            stage2 = await self._stage2a(stage1.diagram_text, remaining, params, token)

        return InterpretResult(
            diagram_text=stage2.diagram_text,
            rationale=stage2.rationale,
            thinking_trace=f"{stage1.thinking_trace}\n\n{stage2.thinking_trace}",
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _request(
        self,
        params: InterpretParams,
        strokes: Sequence[Stroke],
        mode: Mode,
        stage: int | None = None,
        base_diagram_text: str | None = None,
    ) -> InterpretStreamRequest:
        return InterpretStreamRequest(
            strokes=list(strokes),
            current_diagram_text=(
                params.current_diagram_text if base_diagram_text is None else base_diagram_text
            ),
            element_positions=params.element_positions,
            image=params.image,
            hint=params.hint,
            diagram_variant=params.diagram_variant,
            mode=mode,
            stage=stage,
            base_diagram_text=base_diagram_text,
            gestures=None if self._gestures is None or self._gestures.empty else self._gestures,
        )

    async def _call(
        self, request: InterpretStreamRequest, token: CancellationToken
    ) -> StreamAccumulator:
        token.raise_if_cancelled()
        self._live.thinking = ""
        self._live.output = ""

        t0 = time.perf_counter()
        logger.info(
            "Calling collaborator: mode=%s stage=%s strokes=%d",
            request.mode,
            request.stage,
            len(request.strokes),
        )
        acc = await read_stream(
            self.collaborator.stream(request, token), token, self._stream_update
        )
        logger.info(
            "Collaborator call finished in %.0fms (%d thinking chars, %d output chars)",
            (time.perf_counter() - t0) * 1000,
            len(acc.thinking),
            len(acc.output),
        )
        return acc

    async def _normal(self, params: InterpretParams, token: CancellationToken) -> InterpretResult:
        strokes = fit_to_ceiling(params.strokes, self.config)
        acc = await self._call(self._request(params, strokes, "normal"), token)
        parsed = parse_result(acc.output)
        return InterpretResult(
            diagram_text=parsed.diagram_text,
            rationale=parsed.rationale,
            thinking_trace=acc.thinking,
        )

    def processed_by_stage1(self, strokes: Sequence[Stroke]) -> list[int]:
        """Indices of the input strokes stage 1 counts as consumed.

        Stage 1 sees a simplified copy of every stroke, so every index is
        reported; the remaining set for stage 2 is then empty.
        """
        return list(range(len(strokes)))

    async def _stage1(self, params: InterpretParams, token: CancellationToken) -> StageResult:
        simplified = simplify_strokes(
            params.strokes, self.config.stage1_tolerance, self.config.stage1_max_points
        )
        strokes = fit_to_ceiling(simplified, self.config)
        acc = await self._call(
            self._request(params, strokes, "structure-extraction", stage=1), token
        )

        parsed = parse_result(acc.output)
        if not parsed.diagram_text:
            raise UpstreamError("Stage 1 produced no diagram text")

        return StageResult(
            diagram_text=parsed.diagram_text,
            rationale=parsed.rationale or STAGE1_DEFAULT_RATIONALE,
            thinking_trace=acc.thinking,
            processed_indices=self.processed_by_stage1(params.strokes),
        )

    async def _stage2a(
        self,
        base_diagram_text: str,
        strokes: Sequence[Stroke],
        params: InterpretParams,
        token: CancellationToken,
    ) -> StageResult:
        fitted = fit_to_ceiling(strokes, self.config)
        acc = await self._call(
            self._request(
                params, fitted, "detail-addition", stage=2, base_diagram_text=base_diagram_text
            ),
            token,
        )

        parsed = parse_result(acc.output)
        if not parsed.diagram_text:
            raise UpstreamError("Stage 2 produced no diagram text")

        return StageResult(
            diagram_text=parsed.diagram_text,
            rationale=parsed.rationale or STAGE2_DEFAULT_RATIONALE,
            thinking_trace=acc.thinking,
        )

    async def _stage2b(
        self,
        base_diagram_text: str,
        strokes: Sequence[Stroke],
        params: InterpretParams,
        token: CancellationToken,
    ) -> StageResult:
        if params.canvas_size is None:
            raise StrokeValidationError("A canvas size is required to divide strokes into regions")

        division = divide_optimally(strokes, params.canvas_size, self.config)
        total = len(division.regions)
        logger.info("Stage 2b: %d region(s) by %s division", total, division.method.value)

        merged = base_diagram_text
        processed: list[ProcessedRegion] = []
        for i, region in enumerate(division.regions):
            if not region:
                continue

            region_id = f"region-{i + 1}"
            self._report(2 + (i + 1) / total, 3, f"Processing region {i + 1}/{total}...")
            try:
                result = await self._stage2a(merged, region, params, token)
            except Cancelled:
                raise
            except Exception as exc:
                failure = RegionProcessingError(region_id, exc)
                logger.warning("Skipping failed region: %s", failure.message)
                continue

            merged = result.diagram_text
            processed.append(ProcessedRegion(region_id=region_id, stroke_count=len(region)))

        return StageResult(
            diagram_text=merged,
            rationale=(
                f"Processed {len(processed)} region(s) using {division.method.value} division."
            ),
            thinking_trace="",
            processed_regions=processed,
        )
