"""Routes for interview sessions, transcripts and stored artifacts."""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from specforge.api.access import OwnershipGate, ensure_access
from specforge.api.deps import get_access_gate, get_identity, get_store
from specforge.api.models import (
    ArtifactResponse,
    MessageRequest,
    MessageResponse,
    SessionCreateRequest,
    SessionResponse,
)
from specforge.db import repositories as repo
from specforge.db.store import SqliteArtifactStore
from specforge.exceptions import AccessDeniedError
from specforge.models import StageId

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["sessions"])


async def _owned(gate: OwnershipGate, session_id: str, identity: str | None) -> dict:
    try:
        await asyncio.to_thread(ensure_access, gate, session_id, identity)
    except AccessDeniedError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.reason) from exc
    return await asyncio.to_thread(repo.get_session, session_id) or {}


@router.post("/sessions", response_model=SessionResponse)
async def create_session(
    req: SessionCreateRequest,
    identity: str | None = Depends(get_identity),
):
    if not identity:
        raise HTTPException(status_code=401, detail="Login required")
    session_id = await asyncio.to_thread(repo.create_session, req.theme, user_id=identity)
    logger.info("Created session %s for %s", session_id, identity)
    return SessionResponse(session_id=session_id, theme=req.theme, status="interviewing")


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    identity: str | None = Depends(get_identity),
    gate: OwnershipGate = Depends(get_access_gate),
):
    session = await _owned(gate, session_id, identity)
    messages = await asyncio.to_thread(repo.get_messages, session_id)
    return SessionResponse(
        session_id=session_id,
        theme=session.get("theme", ""),
        status=session.get("status", ""),
        message_count=len(messages),
    )


@router.post("/sessions/{session_id}/messages", response_model=MessageResponse)
async def add_message(
    session_id: str,
    req: MessageRequest,
    identity: str | None = Depends(get_identity),
    gate: OwnershipGate = Depends(get_access_gate),
):
    await _owned(gate, session_id, identity)
    message_id = await asyncio.to_thread(repo.add_message, session_id, req.role, req.content)
    return MessageResponse(message_id=message_id, session_id=session_id)


@router.get("/sessions/{session_id}/analysis")
async def list_artifacts(
    session_id: str,
    identity: str | None = Depends(get_identity),
    gate: OwnershipGate = Depends(get_access_gate),
):
    await _owned(gate, session_id, identity)
    return {
        "session_id": session_id,
        "results": await asyncio.to_thread(repo.list_analysis_results, session_id),
    }


@router.get("/sessions/{session_id}/analysis/{stage}", response_model=ArtifactResponse)
async def get_artifact(
    session_id: str,
    stage: StageId,
    identity: str | None = Depends(get_identity),
    gate: OwnershipGate = Depends(get_access_gate),
    store: SqliteArtifactStore = Depends(get_store),
):
    await _owned(gate, session_id, identity)
    artifact = await asyncio.to_thread(store.get, session_id, stage)
    if artifact is None:
        raise HTTPException(status_code=404, detail=f"No {stage.value} result yet")
    return ArtifactResponse(
        session_id=session_id,
        stage=stage.value,
        artifact=artifact.model_dump(mode="json"),
    )
