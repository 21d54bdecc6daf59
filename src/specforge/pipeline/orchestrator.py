"""Drives the stage table: one backend call per stage, strictly in order.

Each stage's answer goes through JSON extraction/repair; if nothing usable
comes back the stage's degraded fallback is stored instead and the run keeps
going.  Only a backend fault or a failed write stops a run, and everything
persisted before that point stays as it is.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, Sequence, Union

from specforge.exceptions import BackendError, MissingDependencyError, PersistenceError
from specforge.models import (
    DegradedArtifact,
    RunState,
    SessionStatus,
    StageId,
    StageResult,
    StageStatus,
    StructuredArtifact,
)
from specforge.parsing import extract_json
from specforge.pipeline.stages import STAGES, SessionContext, StageSpec, get_stage

logger = logging.getLogger(__name__)

Artifact = Union[StructuredArtifact, DegradedArtifact]


class GenerationBackend(Protocol):
    def invoke(self, messages: list[dict[str, str]], system: str, max_tokens: int) -> Any: ...

    def text_of(self, raw: Any) -> str: ...


class ArtifactStore(Protocol):
    def upsert(self, session_id: str, stage_type: StageId, artifact: Artifact) -> None: ...

    def get(self, session_id: str, stage_type: StageId) -> Artifact | None: ...

    def set_status(self, session_id: str, marker: SessionStatus) -> None: ...

    def load_context(self, session_id: str) -> SessionContext: ...


@dataclass
class PipelineRun:
    """In-memory record of one run; yielded last by ``Orchestrator.run``."""

    session_id: str
    state: RunState = RunState.IDLE
    results: list[StageResult] = field(default_factory=list)
    artifacts: dict[StageId, Artifact] = field(default_factory=dict)
    error: str | None = None

    def record(self, result: StageResult) -> StageResult:
        self.results.append(result)
        return result


def build_artifact(stage: StageSpec, raw_text: str) -> Artifact:
    """Turn raw backend text into a structured or degraded artifact."""
    value = extract_json(raw_text)
    if isinstance(value, dict):
        return StructuredArtifact(stage=stage.id, value=value)
    logger.warning(
        "Stage %s: no JSON object in response (%d chars), using fallback",
        stage.id.value, len(raw_text),
    )
    return stage.degraded_fallback(raw_text)


class Orchestrator:
    def __init__(
        self,
        backend: GenerationBackend,
        store: ArtifactStore,
        stages: Sequence[StageSpec] = STAGES,
    ) -> None:
        self.backend = backend
        self.store = store
        self.stages = tuple(stages)

    async def run(
        self, session_id: str,
    ) -> AsyncIterator[Union[StageResult, PipelineRun]]:
        """Run every stage in order.

        Yields a ``StageResult`` for each transition (running, then done or
        error) and finally the ``PipelineRun`` itself, whose state is
        ``completed`` or ``aborted``.
        """
        run = PipelineRun(session_id=session_id, state=RunState.RUNNING)
        context = await asyncio.to_thread(self.store.load_context, session_id)
        logger.info("Pipeline run started for session %s", session_id)

        for stage in self.stages:
            yield run.record(StageResult(stage_id=stage.id, status=StageStatus.RUNNING))
            prior = {dep: run.artifacts[dep] for dep in stage.depends_on}
            try:
                artifact = await self._execute(stage, prior, context)
            except (BackendError, PersistenceError) as exc:
                logger.error(
                    "Pipeline aborted at stage %s for session %s: %s",
                    stage.id.value, session_id, exc,
                )
                run.state = RunState.ABORTED
                run.error = str(exc)
                yield run.record(StageResult(
                    stage_id=stage.id, status=StageStatus.ERROR, error=str(exc),
                ))
                yield run
                return

            run.artifacts[stage.id] = artifact
            yield run.record(StageResult(
                stage_id=stage.id, status=StageStatus.DONE, artifact=artifact,
            ))

        run.state = RunState.COMPLETED
        logger.info("Pipeline run completed for session %s", session_id)
        yield run

    async def run_stage(self, session_id: str, stage_id: StageId | str) -> Artifact:
        """Run a single stage outside a pipeline run.

        Dependencies are read from the store; raises MissingDependencyError
        if any of them has not been generated yet.
        """
        stage = get_stage(stage_id)
        context = await asyncio.to_thread(self.store.load_context, session_id)
        prior: dict[StageId, Artifact] = {}
        for dep in stage.depends_on:
            artifact = await asyncio.to_thread(self.store.get, session_id, dep)
            if artifact is None:
                raise MissingDependencyError(
                    f"Stage {stage.id.value} needs {dep.value}; run it first"
                )
            prior[dep] = artifact
        return await self._execute(stage, prior, context)

    async def _execute(
        self,
        stage: StageSpec,
        prior: dict[StageId, Artifact],
        context: SessionContext,
    ) -> Artifact:
        request = stage.build_request(prior, context)
        logger.info("Stage %s: calling backend", stage.id.value)
        raw = await asyncio.to_thread(
            self.backend.invoke,
            [{"role": "user", "content": request.prompt}],
            request.system_prompt,
            request.max_output_tokens,
        )
        artifact = build_artifact(stage, self.backend.text_of(raw))

        if stage.enrich is not None:
            artifact = self._enrich(stage, artifact, prior, context)

        await asyncio.to_thread(self.store.upsert, context.session_id, stage.id, artifact)
        await asyncio.to_thread(
            self.store.set_status, context.session_id, stage.status_on_success,
        )
        logger.info(
            "Stage %s done (%s)",
            stage.id.value, "degraded" if artifact.degraded else "structured",
        )
        return artifact

    @staticmethod
    def _enrich(
        stage: StageSpec,
        artifact: Artifact,
        prior: dict[StageId, Artifact],
        context: SessionContext,
    ) -> Artifact:
        """Apply the stage's enrich hook; on failure keep the artifact as is."""
        field_name = "value" if isinstance(artifact, StructuredArtifact) else "fallback"
        try:
            enriched = stage.enrich(getattr(artifact, field_name), prior, context)
        except Exception:
            logger.warning(
                "Stage %s: enrich hook failed, storing artifact without it",
                stage.id.value, exc_info=True,
            )
            return artifact
        return artifact.model_copy(update={field_name: enriched})
