"""Routes for running the pipeline and streaming its progress over SSE."""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from specforge.api.access import OwnershipGate, ensure_access
from specforge.api.deps import get_access_gate, get_identity, get_orchestrator
from specforge.api.models import ArtifactResponse
from specforge.config import get_config
from specforge.exceptions import (
    AccessDeniedError,
    BackendError,
    MissingDependencyError,
    PersistenceError,
    SessionNotFoundError,
)
from specforge.models import StageId
from specforge.pipeline.orchestrator import Orchestrator
from specforge.pipeline.progress import event_stream, start_run

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["pipeline"])


async def _check(
    gate: OwnershipGate, session_id: str, identity: str | None, stages,
) -> None:
    try:
        await asyncio.to_thread(ensure_access, gate, session_id, identity, stages)
    except AccessDeniedError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.reason) from exc


@router.post("/sessions/{session_id}/pipeline")
async def run_pipeline(
    session_id: str,
    identity: str | None = Depends(get_identity),
    gate: OwnershipGate = Depends(get_access_gate),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Run every stage and stream stage-running/-done/-error events."""
    await _check(gate, session_id, identity, [s.id.value for s in orchestrator.stages])

    queue = start_run(orchestrator, session_id)
    return EventSourceResponse(
        event_stream(queue, heartbeat_seconds=get_config().heartbeat_seconds),
    )


@router.post("/sessions/{session_id}/stages/{stage}", response_model=ArtifactResponse)
async def run_single_stage(
    session_id: str,
    stage: StageId,
    identity: str | None = Depends(get_identity),
    gate: OwnershipGate = Depends(get_access_gate),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Regenerate one stage from the artifacts already stored."""
    await _check(gate, session_id, identity, [stage.value])

    try:
        artifact = await orchestrator.run_stage(session_id, stage)
    except MissingDependencyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BackendError as exc:
        logger.error("Stage %s failed for %s: %s", stage.value, session_id, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.error("Stage %s not saved for %s: %s", stage.value, session_id, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return ArtifactResponse(
        session_id=session_id,
        stage=stage.value,
        artifact=artifact.model_dump(mode="json"),
    )
