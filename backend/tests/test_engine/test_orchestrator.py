"""Tests for the stage orchestrator (scripted collaborator, no transport)."""

from __future__ import annotations

import asyncio

import pytest

from inkdiagram.engine.cancellation import CancellationToken
from inkdiagram.engine.config import MultiStageConfig
from inkdiagram.engine.errors import OrchestrationError, StrokeValidationError, UpstreamError
from inkdiagram.engine.orchestrator import (
    STAGE1_DEFAULT_RATIONALE,
    InterpretParams,
    ProcessingState,
    StageOrchestrator,
)
from inkdiagram.models.strokes import CanvasSize, Stroke
from tests.conftest import (
    DONE,
    X_MARK_STROKES,
    FakeCollaborator,
    Stall,
    answer,
    many_strokes,
    sse_event,
)

# 12 strokes of 30 collinear points: multi-stage under SMALL_CONFIG, too
# heavy to send whole, light enough once stage 1 simplifies them
SMALL_CONFIG = MultiStageConfig(threshold_stroke_count=5, threshold_size_bytes=3000)
CANVAS = CanvasSize(width=1000, height=1000)


def _long_strokes(count: int = 12) -> list[Stroke]:
    strokes = []
    for i in range(count):
        points = []
        for k in range(30):
            points.extend((100.0 + k, 100.0 + i))
        strokes.append(Stroke(id=f"s{i}", points=tuple(points)))
    return strokes


class PartialStage1(StageOrchestrator):
    """Stage 1 consumes only the first `consumed` strokes."""

    def __init__(self, collaborator, consumed: int, **kwargs):
        super().__init__(collaborator, **kwargs)
        self.consumed = consumed

    def processed_by_stage1(self, strokes):
        return list(range(min(self.consumed, len(strokes))))


# ── Normal path ──


@pytest.mark.asyncio
async def test_normal_path_makes_one_call():
    collab = FakeCollaborator(answer("flowchart TD\n  A --> B", "Added B.", thinking="t"))
    orch = StageOrchestrator(collab)
    progress = []

    result = await orch.run(
        InterpretParams(strokes=many_strokes(3), current_diagram_text="flowchart TD\n  A"),
        CancellationToken(),
        on_progress=progress.append,
    )

    assert result.diagram_text == "flowchart TD\n  A --> B"
    assert result.rationale == "Added B."
    assert result.thinking_trace == "t"
    assert orch.state is ProcessingState.COMPLETED

    [request] = collab.requests
    assert request.mode == "normal"
    assert request.stage is None
    assert request.current_diagram_text == "flowchart TD\n  A"
    assert len(request.strokes) == 3
    assert progress[0].state is ProcessingState.NORMAL
    assert progress[-1].thinking == "t"


@pytest.mark.asyncio
async def test_normal_path_without_markers_is_not_an_error():
    collab = FakeCollaborator([sse_event("text-delta", "I could not read that."), DONE])
    result = await StageOrchestrator(collab).run(
        InterpretParams(strokes=many_strokes(2)), CancellationToken()
    )
    assert result.diagram_text is None
    assert result.rationale is None


@pytest.mark.asyncio
async def test_empty_strokes_fail_before_any_call():
    collab = FakeCollaborator()
    orch = StageOrchestrator(collab)
    with pytest.raises(StrokeValidationError):
        await orch.run(InterpretParams(strokes=[]), CancellationToken())
    assert collab.requests == []
    assert orch.state is ProcessingState.IDLE


@pytest.mark.asyncio
async def test_gesture_hints_travel_with_the_request():
    collab = FakeCollaborator(answer("flowchart TD"), answer("flowchart TD"))

    await StageOrchestrator(collab).run(InterpretParams(strokes=list(X_MARK_STROKES)), CancellationToken())
    await StageOrchestrator(collab).run(InterpretParams(strokes=many_strokes(2)), CancellationToken())

    assert collab.requests[0].gestures.x_mark is not None
    assert collab.requests[1].gestures is None


# ── Multi-stage ──


@pytest.mark.asyncio
async def test_stage1_result_is_final_when_everything_is_processed():
    collab = FakeCollaborator(answer("flowchart TD\n  A --> B", thinking="structure"))
    notices = []
    orch = StageOrchestrator(collab)

    result = await orch.run(InterpretParams(strokes=many_strokes(51)), CancellationToken(), notices.append)

    [request] = collab.requests
    assert request.mode == "structure-extraction"
    assert request.stage == 1
    assert len(request.strokes) == 51
    assert result.diagram_text == "flowchart TD\n  A --> B"
    assert result.rationale == STAGE1_DEFAULT_RATIONALE
    assert result.thinking_trace == "structure"
    assert [n.diagram_text for n in notices] == ["flowchart TD\n  A --> B"]
    assert orch.stage1_result.processed_indices == list(range(51))
    assert orch.state is ProcessingState.COMPLETED


@pytest.mark.asyncio
async def test_stage1_strokes_are_simplified():
    strokes = _long_strokes()
    collab = FakeCollaborator(answer("flowchart TD"))

    await StageOrchestrator(collab, config=SMALL_CONFIG).run(InterpretParams(strokes=strokes), CancellationToken())

    sent = collab.requests[0].strokes
    assert all(s.point_count < 30 for s in sent)
    assert sent[0].points[:2] == strokes[0].points[:2]


@pytest.mark.asyncio
async def test_stage1_without_diagram_text_aborts():
    collab = FakeCollaborator(
        [sse_event("reasoning", "partial thoughts"), sse_event("text-delta", "nothing useful"), DONE]
    )
    orch = StageOrchestrator(collab)

    with pytest.raises(OrchestrationError) as exc_info:
        await orch.run(InterpretParams(strokes=many_strokes(51)), CancellationToken())

    assert exc_info.value.state == "stage1"
    assert exc_info.value.thinking_trace == "partial thoughts"
    assert isinstance(exc_info.value.__cause__, UpstreamError)
    assert orch.state is ProcessingState.ERROR


@pytest.mark.asyncio
async def test_stage2a_adds_remaining_strokes_to_stage1_output():
    strokes = _long_strokes()
    collab = FakeCollaborator(
        answer("flowchart TD\n  A", "Structure.", thinking="t1"),
        answer("flowchart TD\n  A --> B", thinking="t2"),
    )
    orch = PartialStage1(collab, consumed=10, config=SMALL_CONFIG)

    result = await orch.run(InterpretParams(strokes=strokes), CancellationToken())

    stage2 = collab.requests[1]
    assert stage2.mode == "detail-addition"
    assert stage2.stage == 2
    assert stage2.base_diagram_text == "flowchart TD\n  A"
    assert stage2.current_diagram_text == "flowchart TD\n  A"
    assert [s.id for s in stage2.strokes] == ["s10", "s11"]
    assert result.diagram_text == "flowchart TD\n  A --> B"
    assert result.rationale == "Added details."
    assert result.thinking_trace == "t1\n\nt2"


@pytest.mark.asyncio
async def test_stage2b_chains_regions_and_skips_failures():
    strokes = _long_strokes()
    collab = FakeCollaborator(
        answer("v0", thinking="t1"),
        answer("v1"),
        UpstreamError("region failed", status_code=500),
        answer("v3"),
    )
    orch = PartialStage1(collab, consumed=0, config=SMALL_CONFIG)
    progress = []

    result = await orch.run(
        InterpretParams(strokes=strokes, canvas_size=CANVAS),
        CancellationToken(),
        on_progress=progress.append,
    )

    bases = [r.base_diagram_text for r in collab.requests[1:]]
    assert bases == ["v0", "v1", "v1"]
    assert [len(r.strokes) for r in collab.requests[1:]] == [4, 4, 4]
    assert result.diagram_text == "v3"
    assert result.rationale == "Processed 2 region(s) using time division."
    assert result.thinking_trace == "t1\n\n"
    assert orch.state is ProcessingState.COMPLETED
    assert any(p.current == pytest.approx(2 + 1 / 3) and p.total == 3 for p in progress)


@pytest.mark.asyncio
async def test_stage2b_requires_canvas_size():
    collab = FakeCollaborator(answer("v0"))
    orch = PartialStage1(collab, consumed=0, config=SMALL_CONFIG)

    with pytest.raises(StrokeValidationError):
        await orch.run(InterpretParams(strokes=_long_strokes()), CancellationToken())
    assert orch.state is ProcessingState.ERROR


@pytest.mark.asyncio
async def test_upstream_failure_aborts_with_cause():
    collab = FakeCollaborator(UpstreamError("Service unavailable", status_code=503))
    with pytest.raises(OrchestrationError) as exc_info:
        await StageOrchestrator(collab).run(InterpretParams(strokes=many_strokes(2)), CancellationToken())
    assert exc_info.value.message == "Service unavailable"
    assert exc_info.value.__cause__.status_code == 503


@pytest.mark.asyncio
async def test_unexpected_collaborator_failure_is_wrapped():
    collab = FakeCollaborator(ConnectionResetError("peer reset"))
    orch = StageOrchestrator(collab)

    with pytest.raises(OrchestrationError) as exc_info:
        await orch.run(InterpretParams(strokes=many_strokes(2)), CancellationToken())

    assert exc_info.value.message == "peer reset"
    assert exc_info.value.state == "normal"
    assert isinstance(exc_info.value.__cause__, ConnectionResetError)
    assert orch.state is ProcessingState.ERROR


@pytest.mark.asyncio
async def test_stage2b_skips_a_region_whatever_its_failure():
    collab = FakeCollaborator(
        answer("v0"),
        OSError("socket closed"),
        answer("v2"),
        answer("v3"),
    )
    orch = PartialStage1(collab, consumed=0, config=SMALL_CONFIG)

    result = await orch.run(InterpretParams(strokes=_long_strokes(), canvas_size=CANVAS), CancellationToken())

    assert [r.base_diagram_text for r in collab.requests[1:]] == ["v0", "v0", "v2"]
    assert result.diagram_text == "v3"
    assert result.rationale == "Processed 2 region(s) using time division."
    assert orch.state is ProcessingState.COMPLETED

# ── Cancellation ──


@pytest.mark.asyncio
async def test_cancelling_mid_stream_returns_to_idle():
    collab = FakeCollaborator(Stall([sse_event("reasoning", "thinking...")]))
    orch = StageOrchestrator(collab)
    token = CancellationToken()
    notices = []

    task = asyncio.create_task(
        orch.run(InterpretParams(strokes=many_strokes(51)), token, notices.append)
    )
    await collab.stalled.wait()
    token.cancel()
    result = await task

    assert result is None
    assert notices == []
    assert orch.state is ProcessingState.IDLE
    assert orch.progress.thinking == ""
    assert collab.closed_streams == 1


@pytest.mark.asyncio
async def test_cancelled_before_start_makes_no_call():
    collab = FakeCollaborator()
    token = CancellationToken()
    token.cancel()
    orch = StageOrchestrator(collab)

    assert await orch.run(InterpretParams(strokes=many_strokes(2)), token) is None
    assert collab.requests == []
    assert orch.state is ProcessingState.IDLE


# ── State machine ──


def test_illegal_transition_raises():
    orch = StageOrchestrator(FakeCollaborator())
    with pytest.raises(RuntimeError):
        orch._transition(ProcessingState.COMPLETED)


@pytest.mark.asyncio
async def test_orchestrator_is_single_use():
    collab = FakeCollaborator(answer("flowchart TD"))
    orch = StageOrchestrator(collab)
    await orch.run(InterpretParams(strokes=many_strokes(2)), CancellationToken())
    with pytest.raises(RuntimeError):
        await orch.run(InterpretParams(strokes=many_strokes(2)), CancellationToken())
