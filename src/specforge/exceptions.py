"""Custom exceptions for Specforge."""

from __future__ import annotations


class SpecforgeError(Exception):
    """Base exception for all Specforge errors."""


class BackendError(SpecforgeError):
    """The generation backend call failed; aborts a pipeline run."""


class BackendTransportError(BackendError):
    """Network, auth or rate-limit failure talking to the backend."""


class BackendContentError(BackendError):
    """The backend answered, but the answer itself signals an error."""


class PersistenceError(SpecforgeError):
    """Failed to durably write an artifact or status marker."""


class SessionNotFoundError(SpecforgeError):
    """No session exists with the given id."""


class MissingDependencyError(SpecforgeError):
    """A stage was run on its own before the stages it depends on."""


class AccessDeniedError(SpecforgeError):
    """The access gate rejected a request before any stage started."""

    def __init__(self, reason: str, status_code: int = 403) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code
