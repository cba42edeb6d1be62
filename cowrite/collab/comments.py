from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional, Tuple

from cowrite.docs.roles import Role, can_edit

LOGGER = logging.getLogger(__name__)


class CommentMode(str, Enum):
    COMMENT = "comment"
    EDITOR = "editor"


def mode_for(role: Optional[Role]) -> CommentMode:
    return CommentMode.EDITOR if can_edit(role) else CommentMode.COMMENT


class CommentAuthorization:
    """
    Comment-thread permissions for one user on one document.

    The mode is read from ``role_source`` on every call, never stored, so a
    share or revoke is reflected as soon as the role source has been refreshed.
    """

    def __init__(self, user_id: str, role_source: Callable[[], Optional[Role]]) -> None:
        self.user_id = user_id
        self._role_source = role_source

    def mode(self) -> CommentMode:
        return mode_for(self._role_source())

    def can_resolve_threads(self) -> bool:
        return self.mode() is CommentMode.EDITOR

    def thread_auth(self) -> Tuple[str, str]:
        """``(user_id, mode)`` in the shape the thread store expects."""
        return self.user_id, self.mode().value


__all__ = ["CommentMode", "CommentAuthorization", "mode_for"]
