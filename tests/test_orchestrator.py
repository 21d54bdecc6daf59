import asyncio
import dataclasses
import json

import pytest

from specforge.db import repositories as repo
from specforge.db.store import SqliteArtifactStore
from specforge.exceptions import (
    BackendContentError,
    BackendTransportError,
    MissingDependencyError,
    PersistenceError,
    SessionNotFoundError,
)
from specforge.models import (
    DegradedArtifact,
    RunState,
    StageId,
    StageStatus,
    StructuredArtifact,
)
from specforge.pipeline.orchestrator import Orchestrator, PipelineRun
from specforge.pipeline.stages import STAGES

from conftest import FACTS, HYPOTHESES, PRD, SPEC


def collect(orchestrator, session_id):
    async def _collect():
        return [item async for item in orchestrator.run(session_id)]
    return asyncio.run(_collect())


def transitions(items):
    return [
        (item.stage_id.value, item.status.value)
        for item in items if not isinstance(item, PipelineRun)
    ]


def stored_types(session_id):
    return [row["type"] for row in repo.list_analysis_results(session_id)]


def test_full_run_persists_every_stage(session_id, fake_backend, stage_responses):
    backend = fake_backend(stage_responses)
    items = collect(Orchestrator(backend, SqliteArtifactStore()), session_id)

    assert transitions(items) == [
        ("facts", "running"), ("facts", "done"),
        ("hypotheses", "running"), ("hypotheses", "done"),
        ("prd", "running"), ("prd", "done"),
        ("spec", "running"), ("spec", "done"),
    ]
    run = items[-1]
    assert isinstance(run, PipelineRun)
    assert run.state is RunState.COMPLETED
    assert stored_types(session_id) == ["facts", "hypotheses", "prd", "spec"]
    assert repo.get_session(session_id)["status"] == "spec_generated"
    assert [c["max_tokens"] for c in backend.calls] == [4096, 4096, 8192, 4096]

    store = SqliteArtifactStore()
    assert store.get(session_id, StageId.HYPOTHESES).value == HYPOTHESES
    assert store.get(session_id, StageId.PRD).value == PRD
    spec = store.get(session_id, StageId.SPEC)
    assert spec.value["spec"] == SPEC["spec"]
    assert spec.value["prdMarkdown"].startswith("# PRD: Meal planning")


def test_prompts_are_fed_from_the_run_working_set(session_id, fake_backend, stage_responses):
    class NoReadStore(SqliteArtifactStore):
        def get(self, session_id, stage_type):
            raise AssertionError("storage must not be re-read during a run")

    backend = fake_backend(stage_responses)
    collect(Orchestrator(backend, NoReadStore()), session_id)

    facts_prompt = backend.calls[0]["messages"][0]["content"]
    hypotheses_prompt = backend.calls[1]["messages"][0]["content"]
    assert "Respondent: I spend about an hour on it every Sunday." in facts_prompt
    assert "Planning meals takes an hour every Sunday" in hypotheses_prompt


def test_backend_fault_at_stage_two_aborts(session_id, fake_backend, stage_responses):
    backend = fake_backend([stage_responses[0], BackendTransportError("rate limited")])
    items = collect(Orchestrator(backend, SqliteArtifactStore()), session_id)

    assert transitions(items) == [
        ("facts", "running"), ("facts", "done"),
        ("hypotheses", "running"), ("hypotheses", "error"),
    ]
    assert items[-2].error == "rate limited"
    assert items[-1].state is RunState.ABORTED
    assert len(backend.calls) == 2
    assert stored_types(session_id) == ["facts"]
    assert repo.get_session(session_id)["status"] == "analyzed"


def test_backend_content_fault_aborts(session_id, fake_backend):
    backend = fake_backend([BackendContentError("overloaded")])
    items = collect(Orchestrator(backend, SqliteArtifactStore()), session_id)

    assert transitions(items) == [("facts", "running"), ("facts", "error")]
    assert items[-1].state is RunState.ABORTED
    assert stored_types(session_id) == []
    assert repo.get_session(session_id)["status"] == "interviewing"


def test_unparseable_answer_degrades_and_continues(session_id, fake_backend, stage_responses):
    raw = "Sorry, I can only describe the facts in prose today."
    backend = fake_backend([raw] + stage_responses[1:])
    items = collect(Orchestrator(backend, SqliteArtifactStore()), session_id)

    assert items[-1].state is RunState.COMPLETED
    assert stored_types(session_id) == ["facts", "hypotheses", "prd", "spec"]

    facts = SqliteArtifactStore().get(session_id, StageId.FACTS)
    assert isinstance(facts, DegradedArtifact)
    assert facts.raw_text == raw
    assert facts.fallback["facts"][0]["content"] == raw
    assert raw in backend.calls[1]["messages"][0]["content"]


def test_non_object_json_counts_as_degraded(session_id, fake_backend, stage_responses):
    backend = fake_backend(['["a", "list"]'] + stage_responses[1:])
    items = collect(Orchestrator(backend, SqliteArtifactStore()), session_id)
    done = [i for i in items if not isinstance(i, PipelineRun) and i.status is StageStatus.DONE]
    assert done[0].artifact.degraded


def test_persistence_fault_aborts(session_id, fake_backend, stage_responses):
    class FailingStore(SqliteArtifactStore):
        def upsert(self, session_id, stage_type, artifact):
            if stage_type is StageId.PRD:
                raise PersistenceError("disk full")
            super().upsert(session_id, stage_type, artifact)

    backend = fake_backend(stage_responses)
    items = collect(Orchestrator(backend, FailingStore()), session_id)

    assert transitions(items)[-1] == ("prd", "error")
    assert items[-1].state is RunState.ABORTED
    assert items[-1].error == "disk full"
    assert stored_types(session_id) == ["facts", "hypotheses"]
    assert repo.get_session(session_id)["status"] == "hypothesized"


def test_rerun_overwrites_instead_of_appending(session_id, fake_backend, stage_responses):
    collect(Orchestrator(fake_backend(stage_responses), SqliteArtifactStore()), session_id)

    newer = {"facts": [{"id": "F1", "type": "fact", "content": "newer", "evidence": "", "severity": "low"}]}
    responses = [json.dumps(newer)] + stage_responses[1:]
    collect(Orchestrator(fake_backend(responses), SqliteArtifactStore()), session_id)

    assert stored_types(session_id) == ["facts", "hypotheses", "prd", "spec"]
    assert SqliteArtifactStore().get(session_id, StageId.FACTS).value == newer


def test_unknown_session_raises(db, fake_backend):
    with pytest.raises(SessionNotFoundError):
        collect(Orchestrator(fake_backend([]), SqliteArtifactStore()), "missing")


def test_run_stage_requires_dependencies(session_id, fake_backend):
    orchestrator = Orchestrator(fake_backend([]), SqliteArtifactStore())
    with pytest.raises(MissingDependencyError):
        asyncio.run(orchestrator.run_stage(session_id, StageId.PRD))


def test_run_stage_reads_dependencies_from_store(session_id, fake_backend, stage_responses):
    store = SqliteArtifactStore()
    store.upsert(session_id, StageId.FACTS, StructuredArtifact(stage=StageId.FACTS, value=FACTS))

    backend = fake_backend([stage_responses[1]])
    artifact = asyncio.run(Orchestrator(backend, store).run_stage(session_id, "hypotheses"))

    assert artifact.value == HYPOTHESES
    assert "Planning meals takes an hour" in backend.calls[0]["messages"][0]["content"]
    assert store.get(session_id, StageId.HYPOTHESES).value == HYPOTHESES
    assert repo.get_session(session_id)["status"] == "hypothesized"


def test_odd_prd_shape_still_completes(session_id, fake_backend, stage_responses):
    odd_prd = {"prd": {"problemDefinition": "p", "qualityRequirements": ["fast", "secure"]}}
    responses = stage_responses[:2] + [json.dumps(odd_prd), stage_responses[3]]
    items = collect(Orchestrator(fake_backend(responses), SqliteArtifactStore()), session_id)

    assert items[-1].state is RunState.COMPLETED
    spec = SqliteArtifactStore().get(session_id, StageId.SPEC)
    assert spec.value["spec"] == SPEC["spec"]
    assert "- fast\n- secure" in spec.value["prdMarkdown"]


def test_failing_enrich_hook_keeps_artifact(session_id, fake_backend, stage_responses):
    def broken(value, prior, context):
        raise ValueError("cannot render")

    stages = STAGES[:-1] + (dataclasses.replace(STAGES[-1], enrich=broken),)
    items = collect(
        Orchestrator(fake_backend(stage_responses), SqliteArtifactStore(), stages),
        session_id,
    )

    assert items[-1].state is RunState.COMPLETED
    assert SqliteArtifactStore().get(session_id, StageId.SPEC).value == SPEC
    assert repo.get_session(session_id)["status"] == "spec_generated"
