import asyncio
import json

from specforge.db import repositories as repo
from specforge.db.store import SqliteArtifactStore
from specforge.exceptions import BackendTransportError
from specforge.models import (
    RunState,
    StageId,
    StageResult,
    StageStatus,
    StructuredArtifact,
)
from specforge.pipeline import progress
from specforge.pipeline.orchestrator import Orchestrator, PipelineRun
from specforge.pipeline.progress import (
    HEARTBEAT,
    RUN_COMPLETE,
    STAGE_DONE,
    STAGE_ERROR,
    STAGE_RUNNING,
    ProgressEvent,
    event_stream,
    start_run,
    to_event,
)

from conftest import FACTS


def stream_all(orchestrator, session_id):
    async def _stream():
        queue = start_run(orchestrator, session_id)
        return [record async for record in event_stream(queue, heartbeat_seconds=5)]
    return asyncio.run(_stream())


def names(records):
    return [(r["event"], json.loads(r["data"]).get("stageId")) for r in records]


def test_to_event_mapping():
    artifact = StructuredArtifact(stage=StageId.FACTS, value=FACTS)

    running = to_event(StageResult(stage_id=StageId.FACTS, status=StageStatus.RUNNING))
    assert running.event == STAGE_RUNNING
    assert running.data == {"stageId": "facts"}

    done = to_event(StageResult(stage_id=StageId.FACTS, status=StageStatus.DONE, artifact=artifact))
    assert done.event == STAGE_DONE
    assert done.data["artifact"]["value"] == FACTS
    assert done.data["artifact"]["kind"] == "structured"

    error = to_event(StageResult(stage_id=StageId.PRD, status=StageStatus.ERROR, error="boom"))
    assert error.event == STAGE_ERROR
    assert error.data == {"stageId": "prd", "message": "boom"}
    assert error.terminal

    assert to_event(PipelineRun("s", state=RunState.COMPLETED)).event == RUN_COMPLETE
    assert to_event(PipelineRun("s", state=RunState.ABORTED)) is None


def test_successful_run_streams_every_stage(session_id, fake_backend, stage_responses):
    records = stream_all(
        Orchestrator(fake_backend(stage_responses), SqliteArtifactStore()), session_id,
    )
    assert names(records) == [
        (STAGE_RUNNING, "facts"), (STAGE_DONE, "facts"),
        (STAGE_RUNNING, "hypotheses"), (STAGE_DONE, "hypotheses"),
        (STAGE_RUNNING, "prd"), (STAGE_DONE, "prd"),
        (STAGE_RUNNING, "spec"), (STAGE_DONE, "spec"),
        (RUN_COMPLETE, None),
    ]
    facts_done = json.loads(records[1]["data"])
    assert facts_done["artifact"]["value"] == FACTS


def test_aborted_run_ends_with_stage_error(session_id, fake_backend, stage_responses):
    backend = fake_backend([stage_responses[0], BackendTransportError("rate limited")])
    records = stream_all(Orchestrator(backend, SqliteArtifactStore()), session_id)

    assert names(records) == [
        (STAGE_RUNNING, "facts"), (STAGE_DONE, "facts"),
        (STAGE_RUNNING, "hypotheses"), (STAGE_ERROR, "hypotheses"),
    ]
    assert json.loads(records[-1]["data"])["message"] == "rate limited"


def test_unexpected_failure_is_reported(db, fake_backend):
    records = stream_all(Orchestrator(fake_backend([]), SqliteArtifactStore()), "missing")
    assert len(records) == 1
    assert records[0]["event"] == STAGE_ERROR
    data = json.loads(records[0]["data"])
    assert data["stageId"] is None
    assert "missing" in data["message"]


def test_heartbeat_while_waiting():
    async def _run():
        queue: asyncio.Queue = asyncio.Queue()
        stream = event_stream(queue, heartbeat_seconds=0.01)
        first = await stream.__anext__()
        queue.put_nowait(ProgressEvent(event=RUN_COMPLETE))
        second = await stream.__anext__()
        rest = [record async for record in stream]
        return first, second, rest

    first, second, rest = asyncio.run(_run())
    assert first["event"] == HEARTBEAT
    assert second["event"] == RUN_COMPLETE
    assert rest == []


def test_run_continues_after_consumer_disconnects(session_id, fake_backend, stage_responses):
    async def _run():
        orchestrator = Orchestrator(fake_backend(stage_responses), SqliteArtifactStore())
        queue = start_run(orchestrator, session_id)
        stream = event_stream(queue, heartbeat_seconds=5)
        first = await stream.__anext__()
        await stream.aclose()
        await asyncio.gather(*list(progress._running))
        return first

    first = asyncio.run(_run())
    assert first["event"] == STAGE_RUNNING
    stored = [row["type"] for row in repo.list_analysis_results(session_id)]
    assert stored == ["facts", "hypotheses", "prd", "spec"]
    assert repo.get_session(session_id)["status"] == "spec_generated"
