"""SQLite-backed collaborators for the pipeline orchestrator."""
from __future__ import annotations

import logging
import sqlite3

from specforge.db import repositories as repo
from specforge.exceptions import PersistenceError, SessionNotFoundError
from specforge.models import (
    SessionStatus,
    StageId,
    StructuredArtifact,
    artifact_adapter,
)
from specforge.pipeline.stages import SessionContext

logger = logging.getLogger(__name__)

_SPEAKERS = {"user": "Respondent", "assistant": "Interviewer"}


def build_transcript(messages: list[dict]) -> str:
    """Render stored messages as a speaker-labelled transcript."""
    return "\n\n".join(
        f"{_SPEAKERS.get(m['role'], m['role'])}: {m['content']}" for m in messages
    )


class SqliteArtifactStore:
    """Artifact persistence, status marker and session context in one place."""

    def upsert(self, session_id: str, stage_type: StageId, artifact) -> None:
        try:
            repo.upsert_analysis_result(
                session_id, StageId(stage_type).value, artifact.model_dump(mode="json"),
            )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to save {stage_type} for session {session_id}: {exc}"
            ) from exc

    def get(self, session_id: str, stage_type: StageId):
        """Read path for inspection outside a live run."""
        try:
            data = repo.get_analysis_result(session_id, StageId(stage_type).value)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read {stage_type}: {exc}") from exc
        if data is None:
            return None
        if "kind" not in data:
            # Plain stage JSON written by an older version.
            return StructuredArtifact(stage=stage_type, value=data)
        return artifact_adapter.validate_python(data)

    def set_status(self, session_id: str, marker: SessionStatus) -> None:
        try:
            repo.set_session_status(session_id, SessionStatus(marker).value)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to set status {marker}: {exc}") from exc

    def load_context(self, session_id: str) -> SessionContext:
        session = repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return SessionContext(
            session_id=session_id,
            theme=session.get("theme") or "",
            transcript=build_transcript(repo.get_messages(session_id)),
        )
