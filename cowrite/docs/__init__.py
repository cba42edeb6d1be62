"""
Document permission model.

Roles and their pure planning rules, the durable record store, the
authoritative role map (``PermissionStore``) and the request gate.
"""

from __future__ import annotations

from .errors import (
    CowriteError,
    Denied,
    InvalidRole,
    InvariantViolation,
    LastAdminViolation,
    NotFound,
    TransientIO,
    Unauthenticated,
    UnknownUser,
)
from .gate import PermissionGate
from .models import Document
from .permission_store import PermissionStore
from .roles import Capability, Role, role_from_str
from .store import DocumentStore

__all__ = [
    "Capability",
    "CowriteError",
    "Denied",
    "Document",
    "DocumentStore",
    "InvalidRole",
    "InvariantViolation",
    "LastAdminViolation",
    "NotFound",
    "PermissionGate",
    "PermissionStore",
    "Role",
    "TransientIO",
    "Unauthenticated",
    "UnknownUser",
    "role_from_str",
]
