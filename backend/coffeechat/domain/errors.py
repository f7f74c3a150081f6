"""Domain-level exceptions for the matching, proposal and sanction engine."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for engine failures.

    ``code`` is the stable taxonomy value surfaced to clients, ``reason`` a
    short slug naming the specific precondition that failed.
    """

    code: str = "INTERNAL"
    reason: str = "unknown"

    def __init__(self, reason: str | None = None, *, details: object | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason
        self.details = details


class BadRequest(EngineError):
    code = "BAD_REQUEST"
    reason = "bad_request"


class SelfReferenceError(BadRequest):
    reason = "self_reference"


class NotFound(EngineError):
    code = "NOT_FOUND"
    reason = "not_found"


class Forbidden(EngineError):
    code = "FORBIDDEN"
    reason = "forbidden"


class NotParticipant(Forbidden):
    reason = "not_participant"


class UserRestricted(EngineError):
    code = "USER_RESTRICTED"
    reason = "user_restricted"


class Conflict(EngineError):
    code = "CONFLICT"
    reason = "conflict"


class Unauthorized(EngineError):
    code = "UNAUTHORIZED"
    reason = "unauthorized"


class ServerMisconfigured(EngineError):
    code = "SERVER_MISCONFIGURED"
    reason = "server_misconfigured"
