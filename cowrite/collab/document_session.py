from __future__ import annotations

"""
Client-side coordinator for one open document.

``DocumentSession.open`` wires the pieces an editor view needs around a
fetched document: the caller's role, presence, autosave, comment permissions
and the mention list. Closing the session (directly or through
``AuthSession.logout``) cancels pending saves and leaves the presence channel.
"""

import logging
from typing import Any, Dict, List, Optional

from cowrite.client.api import DocumentApi
from cowrite.client.session import AuthSession
from cowrite.docs.errors import Denied, InvalidRole
from cowrite.docs.roles import Role, can_edit, role_from_str

from .autosave import CONTENT_DEBOUNCE, TITLE_DEBOUNCE, AutosaveCoordinator
from .comments import CommentAuthorization
from .directory import CachedUserProfile, UserDirectory
from .presence import CollaborationSessionManager, PresenceChannel, PresenceState

LOGGER = logging.getLogger(__name__)


def _parse_role(value: Any) -> Optional[Role]:
    if not value:
        return None
    try:
        return role_from_str(str(value))
    except InvalidRole:
        LOGGER.warning("Ignoring unknown role from server: %r", value)
        return None


class DocumentSession:
    def __init__(
        self,
        api: DocumentApi,
        auth: AuthSession,
        document: Dict[str, Any],
        channel: PresenceChannel,
        *,
        directory: Optional[UserDirectory] = None,
        title_delay: float = TITLE_DEBOUNCE,
        content_delay: float = CONTENT_DEBOUNCE,
        client_id: Optional[str] = None,
    ) -> None:
        self.api = api
        self.auth = auth
        self.document_id = str(document["id"])
        self.title = str(document.get("title") or "")
        self.content = document.get("content")
        self._members: List[str] = list(document.get("members") or [])
        self._role = _role_in(document, auth.user_id)
        self.directory = directory or UserDirectory(api.user_details)
        self.presence = CollaborationSessionManager(channel, auth, client_id=client_id)
        self.autosave = AutosaveCoordinator(
            self.document_id,
            api.update,
            self.role,
            saved_title=self.title,
            title_delay=title_delay,
            content_delay=content_delay,
        )
        self.comments = CommentAuthorization(auth.user_id, self.role)
        self._closed = False

    @classmethod
    async def open(
        cls,
        api: DocumentApi,
        auth: AuthSession,
        channel: PresenceChannel,
        document_id: str,
        **options: Any,
    ) -> "DocumentSession":
        document = await api.get(document_id)
        session = cls(api, auth, document, channel, **options)
        await session.directory.resolve(session.members)
        await session.presence.start()
        auth.on_logout(session.close)
        LOGGER.info(
            "Opened %s as %s (%s)",
            session.document_id,
            auth.user_id,
            session._role.value if session._role else "no role",
        )
        return session

    # Role ---------------------------------------------------------------------
    def role(self) -> Optional[Role]:
        return self._role

    @property
    def editable(self) -> bool:
        return not self._closed and can_edit(self._role)

    @property
    def members(self) -> List[str]:
        return list(self._members)

    async def refresh_role(self) -> Optional[Role]:
        """Re-read the role map, e.g. after a share or revoke touched this user."""
        try:
            permissions = await self.api.permissions(self.document_id)
        except Denied:
            LOGGER.info("Access to %s was revoked for %s", self.document_id, self.auth.user_id)
            self._role = None
            self._members = []
            return None
        self._members = list(permissions.get("members") or [])
        self._role = _role_in(permissions, self.auth.user_id)
        return self._role

    # Editing ------------------------------------------------------------------
    def set_title(self, title: str) -> None:
        self.title = title
        self.autosave.title_changed(title)

    def set_content(self, content: Any) -> None:
        self.content = content
        self.autosave.content_changed(content)

    def move_cursor(self, cursor: Any) -> None:
        self.presence.update_cursor(cursor)

    def participants(self) -> tuple[PresenceState, ...]:
        return self.presence.active_participants()

    async def mention_candidates(self) -> List[CachedUserProfile]:
        profiles = await self.directory.resolve(self._members)
        return [profiles[user_id] for user_id in self._members if user_id in profiles]

    # Teardown -----------------------------------------------------------------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.autosave.close()
        self.presence.stop()
        self.auth.discard_logout_callback(self.close)
        LOGGER.info("Closed %s", self.document_id)

    async def aclose(self) -> None:
        self.close()
        await self.autosave.drain()


def _role_in(payload: Dict[str, Any], user_id: str) -> Optional[Role]:
    roles = payload.get("roles") or {}
    if user_id in roles:
        return _parse_role(roles[user_id])
    return _parse_role(payload.get("role"))


__all__ = ["DocumentSession"]
