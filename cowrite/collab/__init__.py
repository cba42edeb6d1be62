from __future__ import annotations

from .autosave import AutosaveCoordinator, SaveState
from .comments import CommentAuthorization, CommentMode
from .directory import CachedUserProfile, UserDirectory
from .document_session import DocumentSession
from .presence import (
    CollaborationSessionManager,
    LocalPresenceChannel,
    LocalPresenceHub,
    PresenceState,
    Subscription,
    color_for,
)

__all__ = [
    "AutosaveCoordinator",
    "SaveState",
    "CommentAuthorization",
    "CommentMode",
    "CachedUserProfile",
    "UserDirectory",
    "DocumentSession",
    "CollaborationSessionManager",
    "LocalPresenceChannel",
    "LocalPresenceHub",
    "PresenceState",
    "Subscription",
    "color_for",
]
