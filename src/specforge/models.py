"""Core data models for Specforge."""

from __future__ import annotations

import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class StageId(str, Enum):
    """Pipeline stages, in execution order."""

    FACTS = "facts"
    HYPOTHESES = "hypotheses"
    PRD = "prd"
    SPEC = "spec"


class SessionStatus(str, Enum):
    """Forward-only progression of an interview session."""

    INTERVIEWING = "interviewing"
    ANALYZED = "analyzed"
    HYPOTHESIZED = "hypothesized"
    PRD_GENERATED = "prd_generated"
    SPEC_GENERATED = "spec_generated"

    @property
    def rank(self) -> int:
        return list(SessionStatus).index(self)


class StageStatus(str, Enum):
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class StructuredArtifact(BaseModel):
    """A stage output parsed from the backend's JSON answer."""

    kind: Literal["structured"] = "structured"
    stage: StageId
    value: dict[str, Any]

    @property
    def degraded(self) -> bool:
        return False

    def payload(self) -> dict[str, Any]:
        return self.value


class DegradedArtifact(BaseModel):
    """A stage output whose JSON could not be recovered.

    ``raw_text`` is the backend answer verbatim; ``fallback`` is a
    stage-shaped placeholder built from it so later stages still have
    something to consume.
    """

    kind: Literal["degraded"] = "degraded"
    stage: StageId
    raw_text: str
    fallback: dict[str, Any] = Field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return True

    def payload(self) -> dict[str, Any]:
        return self.fallback


Artifact = Annotated[
    Union[StructuredArtifact, DegradedArtifact],
    Field(discriminator="kind"),
]

artifact_adapter: TypeAdapter = TypeAdapter(Artifact)


class GenerationRequest(BaseModel):
    """Everything needed for one backend call of one stage."""

    stage_id: StageId
    prior: dict[StageId, Artifact] = Field(default_factory=dict)
    prompt: str
    system_prompt: str = ""
    max_output_tokens: int = 4096


class StageResult(BaseModel):
    """Transient record of one stage transition within a run."""

    stage_id: StageId
    status: StageStatus
    artifact: Artifact | None = None
    error: str | None = None
    timestamp: float = Field(default_factory=time.time)
