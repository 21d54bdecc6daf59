"""Request/response Pydantic schemas for the API."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


class SessionCreateRequest(BaseModel):
    theme: str


class SessionResponse(BaseModel):
    session_id: str
    theme: str
    status: str  # interviewing, analyzed, hypothesized, prd_generated, spec_generated
    message_count: int = 0


class MessageRequest(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class MessageResponse(BaseModel):
    message_id: int
    session_id: str


class ArtifactResponse(BaseModel):
    session_id: str
    stage: str
    artifact: dict[str, Any]
