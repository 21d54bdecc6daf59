"""FastAPI dependencies shared by the routers."""
from __future__ import annotations

from fastapi import HTTPException, Request

from specforge.api.access import OwnershipGate
from specforge.config import get_config
from specforge.db.store import SqliteArtifactStore
from specforge.exceptions import BackendError
from specforge.llm_client import get_llm_client
from specforge.pipeline.orchestrator import Orchestrator

IDENTITY_HEADER = "X-User-Id"


def get_identity(request: Request) -> str | None:
    return request.headers.get(IDENTITY_HEADER) or None


def get_access_gate() -> OwnershipGate:
    return OwnershipGate(get_config().gated_stages)


def get_store() -> SqliteArtifactStore:
    return SqliteArtifactStore()


def get_orchestrator() -> Orchestrator:
    try:
        backend = get_llm_client()
    except BackendError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return Orchestrator(backend, SqliteArtifactStore())
