"""Error taxonomy surfaced by the interview session service."""
from __future__ import annotations


class InterviewError(RuntimeError):
    """Base class for errors raised past the session service boundary."""

    status_code = 500
    retryable = False


class SessionValidationError(InterviewError):
    """Session configuration is missing or inconsistent."""

    status_code = 400


class ServiceUnavailable(InterviewError):
    """No planner provider is reachable; callers should retry later."""

    status_code = 503
    retryable = True


class SessionNotFound(InterviewError):
    status_code = 404


class InvalidSessionState(InterviewError):
    """Message sent to a session that has already ended."""

    status_code = 409


class EvaluationNotReady(InterviewError):
    status_code = 409


class PersistenceFailure(InterviewError):
    """The session write did not commit; the turn may be retried safely."""

    status_code = 503
    retryable = True


__all__ = [
    "InterviewError",
    "SessionValidationError",
    "ServiceUnavailable",
    "SessionNotFound",
    "InvalidSessionState",
    "EvaluationNotReady",
    "PersistenceFailure",
]
