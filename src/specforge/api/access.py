"""Ownership and entitlement gate, checked once before any stage runs."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from specforge.db import repositories as repo
from specforge.exceptions import AccessDeniedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""
    status_code: int = 200

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, status_code: int = 403) -> "AccessDecision":
        return cls(allowed=False, reason=reason, status_code=status_code)


class AccessGate(Protocol):
    def check(
        self,
        session_id: str,
        identity: str | None,
        stages: Iterable[str] = (),
    ) -> AccessDecision: ...


class OwnershipGate:
    """Only the session owner may run stages; gated stages need the pro plan."""

    def __init__(self, gated_stages: Iterable[str] = ()) -> None:
        self.gated_stages = set(gated_stages)

    def check(
        self,
        session_id: str,
        identity: str | None,
        stages: Iterable[str] = (),
    ) -> AccessDecision:
        if not identity:
            return AccessDecision.deny("Login required", 401)
        session = repo.get_session(session_id)
        if session is None:
            return AccessDecision.deny("Session not found", 404)
        if session.get("user_id") != identity:
            return AccessDecision.deny("Access denied", 403)

        if self.gated_stages.intersection(stages):
            user = repo.get_user(identity)
            if not user or user.get("plan") != "pro":
                return AccessDecision.deny("Pro plan required", 402)
        return AccessDecision.allow()


def ensure_access(
    gate: AccessGate,
    session_id: str,
    identity: str | None,
    stages: Iterable[str] = (),
) -> None:
    """Raise AccessDeniedError unless ``gate`` allows the request."""
    decision = gate.check(session_id, identity, stages)
    if not decision.allowed:
        logger.info(
            "Access denied for %s on session %s: %s",
            identity, session_id, decision.reason,
        )
        raise AccessDeniedError(decision.reason, decision.status_code)
