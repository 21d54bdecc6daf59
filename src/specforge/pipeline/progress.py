"""Turns orchestrator output into a push stream of progress events.

A run is started as a background task that feeds an ``asyncio.Queue``; the
SSE endpoint only reads from that queue.  A consumer that disconnects stops
reading, but the run itself carries on and persists every remaining stage.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Union

from pydantic import BaseModel, Field

from specforge.models import RunState, StageResult, StageStatus
from specforge.pipeline.orchestrator import Orchestrator, PipelineRun

logger = logging.getLogger(__name__)

STAGE_RUNNING = "stage-running"
STAGE_DONE = "stage-done"
STAGE_ERROR = "stage-error"
RUN_COMPLETE = "run-complete"
HEARTBEAT = "heartbeat"

TERMINAL_EVENTS = frozenset({STAGE_ERROR, RUN_COMPLETE})

# Strong references so running pipelines are not garbage-collected.
_running: set[asyncio.Task] = set()


class ProgressEvent(BaseModel):
    event: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    def to_sse(self) -> dict[str, str]:
        return {
            "event": self.event,
            "data": json.dumps(self.data, ensure_ascii=False),
        }


def to_event(item: Union[StageResult, PipelineRun]) -> ProgressEvent | None:
    """Map one orchestrator item to its external event (None = nothing to send)."""
    if isinstance(item, PipelineRun):
        if item.state is RunState.COMPLETED:
            return ProgressEvent(event=RUN_COMPLETE)
        # Aborted runs already produced their stage-error.
        return None

    stage_id = item.stage_id.value
    if item.status is StageStatus.RUNNING:
        return ProgressEvent(event=STAGE_RUNNING, data={"stageId": stage_id})
    if item.status is StageStatus.DONE:
        return ProgressEvent(event=STAGE_DONE, data={
            "stageId": stage_id,
            "artifact": item.artifact.model_dump(mode="json") if item.artifact else None,
        })
    return ProgressEvent(event=STAGE_ERROR, data={
        "stageId": stage_id,
        "message": item.error or "Internal Server Error",
    })


async def drive_run(
    orchestrator: Orchestrator, session_id: str, queue: asyncio.Queue,
) -> None:
    """Run the pipeline, pushing each event onto ``queue`` as it happens."""
    try:
        async for item in orchestrator.run(session_id):
            event = to_event(item)
            if event is not None:
                queue.put_nowait(event)
    except Exception as exc:
        logger.exception("Pipeline run for session %s failed", session_id)
        queue.put_nowait(ProgressEvent(event=STAGE_ERROR, data={
            "stageId": None,
            "message": str(exc) or "Internal Server Error",
        }))


def start_run(orchestrator: Orchestrator, session_id: str) -> asyncio.Queue:
    """Start a run in the background and return its event queue."""
    queue: asyncio.Queue = asyncio.Queue()
    task = asyncio.create_task(drive_run(orchestrator, session_id, queue))
    _running.add(task)
    task.add_done_callback(_running.discard)
    return queue


async def event_stream(
    queue: asyncio.Queue, heartbeat_seconds: float = 15.0,
) -> AsyncIterator[dict[str, str]]:
    """Yield SSE records from ``queue`` until the run completes or aborts."""
    while True:
        try:
            event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
        except asyncio.TimeoutError:
            yield {"event": HEARTBEAT, "data": "{}"}
            continue

        yield event.to_sse()
        if event.terminal:
            break
