"""The stage table: what each pipeline stage consumes, asks and produces.

Pure configuration.  The orchestrator walks ``STAGES`` in order and knows
nothing about individual stages beyond what is declared here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from specforge.models import (
    DegradedArtifact,
    GenerationRequest,
    SessionStatus,
    StageId,
    StructuredArtifact,
)
from specforge.pipeline import prompts
from specforge.pipeline.markdown import render_prd_markdown

Artifacts = Mapping[StageId, Union[StructuredArtifact, DegradedArtifact]]


@dataclass(frozen=True)
class SessionContext:
    """Session data the prompts draw on besides prior artifacts."""

    session_id: str
    theme: str = ""
    transcript: str = ""


@dataclass(frozen=True)
class StageSpec:
    id: StageId
    depends_on: tuple[StageId, ...]
    system_prompt: str
    build_prompt: Callable[[Artifacts, SessionContext], str]
    fallback_shape: Callable[[str], dict[str, Any]]
    status_on_success: SessionStatus
    max_output_tokens: int = 4096
    enrich: Callable[[dict[str, Any], Artifacts, SessionContext], dict[str, Any]] | None = None

    def build_request(
        self, prior: Artifacts, context: SessionContext,
    ) -> GenerationRequest:
        return GenerationRequest(
            stage_id=self.id,
            prior=dict(prior),
            prompt=self.build_prompt(prior, context),
            system_prompt=self.system_prompt,
            max_output_tokens=self.max_output_tokens,
        )

    def degraded_fallback(self, raw_text: str) -> DegradedArtifact:
        return DegradedArtifact(
            stage=self.id,
            raw_text=raw_text,
            fallback=self.fallback_shape(raw_text),
        )


def _dump(artifact: StructuredArtifact | DegradedArtifact) -> str:
    return json.dumps(artifact.payload(), ensure_ascii=False, indent=2)


# ── Prompt builders ───────────────────────────────────────────────────

def _facts_prompt(prior: Artifacts, context: SessionContext) -> str:
    return f"Analyze the following interview transcript:\n\n{context.transcript}"


def _hypotheses_prompt(prior: Artifacts, context: SessionContext) -> str:
    return (
        "Generate hypotheses from the following facts:\n\n"
        f"{_dump(prior[StageId.FACTS])}"
    )


def _prd_prompt(prior: Artifacts, context: SessionContext) -> str:
    return (
        "Write a PRD from the following facts and hypotheses:\n\n"
        f"Theme: {context.theme}\n\n"
        f"Facts:\n{_dump(prior[StageId.FACTS])}\n\n"
        f"Hypotheses:\n{_dump(prior[StageId.HYPOTHESES])}"
    )


def _spec_prompt(prior: Artifacts, context: SessionContext) -> str:
    return (
        "Write an implementation spec from the following PRD:\n\n"
        f"{_dump(prior[StageId.PRD])}"
    )


# ── Degraded fallbacks ────────────────────────────────────────────────

def _facts_fallback(raw: str) -> dict[str, Any]:
    return {"facts": [{
        "id": "F1", "type": "fact", "content": raw,
        "evidence": "", "severity": "medium",
    }]}


def _hypotheses_fallback(raw: str) -> dict[str, Any]:
    return {"hypotheses": [{
        "id": "H1", "title": raw, "description": "",
        "supportingFacts": [], "counterEvidence": "", "unverifiedPoints": [],
    }]}


def _prd_fallback(raw: str) -> dict[str, Any]:
    return {"prd": {
        "problemDefinition": raw, "targetUser": "", "jobsToBeDone": [],
        "coreFeatures": [], "nonGoals": [], "userFlows": [], "metrics": [],
    }}


def _spec_fallback(raw: str) -> dict[str, Any]:
    return {"spec": {"raw": raw}}


def _attach_prd_markdown(
    value: dict[str, Any], prior: Artifacts, context: SessionContext,
) -> dict[str, Any]:
    prd = prior[StageId.PRD].payload()
    prd = prd.get("prd", prd)
    if not isinstance(prd, dict):
        return value
    return {**value, "prdMarkdown": render_prd_markdown(prd, context.theme)}


STAGES: tuple[StageSpec, ...] = (
    StageSpec(
        id=StageId.FACTS,
        depends_on=(),
        system_prompt=prompts.FACTS_SYSTEM,
        build_prompt=_facts_prompt,
        fallback_shape=_facts_fallback,
        status_on_success=SessionStatus.ANALYZED,
    ),
    StageSpec(
        id=StageId.HYPOTHESES,
        depends_on=(StageId.FACTS,),
        system_prompt=prompts.HYPOTHESES_SYSTEM,
        build_prompt=_hypotheses_prompt,
        fallback_shape=_hypotheses_fallback,
        status_on_success=SessionStatus.HYPOTHESIZED,
    ),
    StageSpec(
        id=StageId.PRD,
        depends_on=(StageId.FACTS, StageId.HYPOTHESES),
        system_prompt=prompts.PRD_SYSTEM,
        build_prompt=_prd_prompt,
        fallback_shape=_prd_fallback,
        status_on_success=SessionStatus.PRD_GENERATED,
        max_output_tokens=8192,
    ),
    StageSpec(
        id=StageId.SPEC,
        depends_on=(StageId.PRD,),
        system_prompt=prompts.SPEC_SYSTEM,
        build_prompt=_spec_prompt,
        fallback_shape=_spec_fallback,
        status_on_success=SessionStatus.SPEC_GENERATED,
        enrich=_attach_prd_markdown,
    ),
)

STAGE_BY_ID: dict[StageId, StageSpec] = {stage.id: stage for stage in STAGES}


def get_stage(stage_id: StageId | str) -> StageSpec:
    return STAGE_BY_ID[StageId(stage_id)]
