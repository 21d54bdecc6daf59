"""Shared fixtures: a throwaway SQLite database and a scripted backend."""
from __future__ import annotations

import json

import pytest

from specforge.db import repositories as repo
from specforge.db.engine import close_db, init_db

FACTS = {"facts": [{
    "id": "F1", "type": "pain", "content": "Planning meals takes an hour every Sunday",
    "evidence": "I spend about an hour on it", "severity": "high",
}]}
HYPOTHESES = {"hypotheses": [{
    "id": "H1", "title": "Weekly planning is the bottleneck",
    "description": "Users would pay to skip the Sunday planning session",
    "supportingFacts": ["F1"], "counterEvidence": "", "unverifiedPoints": [],
}]}
PRD = {"prd": {
    "problemDefinition": "Weekly meal planning is slow",
    "targetUser": "Working parents",
    "jobsToBeDone": ["Plan a week of dinners"],
    "coreFeatures": [{
        "name": "Plan generator", "description": "Builds a weekly plan",
        "priority": "must", "acceptanceCriteria": ["Plan saved to the DB"],
        "edgeCases": ["Empty pantry"],
    }],
    "nonGoals": ["Grocery delivery"],
    "userFlows": [{"name": "First plan", "steps": ["Sign up", "Generate"]}],
    "metrics": [{"name": "Time to plan", "definition": "minutes", "target": "< 5"}],
}}
SPEC = {"spec": {"raw": "# Meal Planner - Implementation Spec"}}


class FakeBackend:
    """Returns scripted responses in order; Exception entries are raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def invoke(self, messages, system, max_tokens):
        self.calls.append({
            "messages": messages, "system": system, "max_tokens": max_tokens,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def text_of(self, raw):
        return raw


@pytest.fixture
def fake_backend():
    return FakeBackend


@pytest.fixture
def stage_responses():
    """Valid answers for all four stages, in the shapes models tend to send."""
    return [
        json.dumps(FACTS),
        "```json\n" + json.dumps(HYPOTHESES, indent=2) + "\n```",
        "Here is the PRD you asked for:\n" + json.dumps(PRD) + "\nLet me know!",
        json.dumps(SPEC),
    ]


@pytest.fixture
def db(tmp_path):
    path = tmp_path / "specforge.db"
    init_db(path)
    yield path
    close_db()


@pytest.fixture
def session_id(db):
    repo.upsert_user("user-1", email="owner@example.com", plan="pro")
    sid = repo.create_session("Meal planning", user_id="user-1", session_id="sess-1")
    repo.add_message(sid, "assistant", "How do you plan your meals?")
    repo.add_message(sid, "user", "I spend about an hour on it every Sunday.")
    return sid
