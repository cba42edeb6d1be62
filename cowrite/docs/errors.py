from __future__ import annotations

"""
Error taxonomy shared by the document server and the client library.

Every error carries the HTTP status and machine code it maps to, so the server
exception handlers and ``DocumentApi`` translate in both directions from one
table.
"""

from typing import Dict, Optional, Type


class CowriteError(RuntimeError):
    """Base class for every failure surfaced by the document service."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message())
        self.message = str(self)

    @classmethod
    def default_message(cls) -> str:
        return cls.__name__


class Unauthenticated(CowriteError):
    """No credential, or one that is expired or cannot be verified."""

    status_code = 401
    code = "unauthenticated"

    @classmethod
    def default_message(cls) -> str:
        return "Authentication required"


class Denied(CowriteError):
    """Valid credential, insufficient role."""

    status_code = 403
    code = "denied"

    @classmethod
    def default_message(cls) -> str:
        return "Access denied"


class NotFound(CowriteError):
    status_code = 404
    code = "not_found"

    @classmethod
    def default_message(cls) -> str:
        return "Document not found"


class InvariantViolation(CowriteError):
    status_code = 409
    code = "invariant_violation"


class LastAdminViolation(InvariantViolation):
    code = "last_admin"

    @classmethod
    def default_message(cls) -> str:
        return "A document must keep at least one admin"


class UnknownUser(InvariantViolation):
    status_code = 400
    code = "unknown_user"

    @classmethod
    def default_message(cls) -> str:
        return "No account matches that user"


class InvalidRole(CowriteError):
    status_code = 400
    code = "invalid_role"

    @classmethod
    def default_message(cls) -> str:
        return "Unsupported role"


class TransientIO(CowriteError):
    """Network or backend failure that callers may recover from locally."""

    status_code = 503
    code = "transient_io"

    @classmethod
    def default_message(cls) -> str:
        return "Backend temporarily unavailable"


_BY_CODE: Dict[str, Type[CowriteError]] = {
    cls.code: cls
    for cls in (
        Unauthenticated,
        Denied,
        NotFound,
        InvariantViolation,
        LastAdminViolation,
        UnknownUser,
        InvalidRole,
        TransientIO,
    )
}

_BY_STATUS: Dict[int, Type[CowriteError]] = {
    401: Unauthenticated,
    403: Denied,
    404: NotFound,
    409: InvariantViolation,
    400: InvariantViolation,
    503: TransientIO,
}


def error_for(status_code: int, code: Optional[str], message: Optional[str]) -> CowriteError:
    """Rebuild the matching error from an HTTP error response."""
    cls = _BY_CODE.get(code or "") or _BY_STATUS.get(status_code, CowriteError)
    return cls(message)


__all__ = [
    "CowriteError",
    "Unauthenticated",
    "Denied",
    "NotFound",
    "InvariantViolation",
    "LastAdminViolation",
    "UnknownUser",
    "InvalidRole",
    "TransientIO",
    "error_for",
]
