from __future__ import annotations

"""
Presence tracking for live editing sessions.

The live merge transport owns the shared presence channel (who is connected,
with which name, color and cursor). ``CollaborationSessionManager`` publishes
the local participant into it and keeps a read-through cache of the channel's
full snapshot. ``LocalPresenceChannel`` is an in-process channel used by
single-process deployments and tests.
"""

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
)

from cowrite.client.session import AuthSession
from cowrite.docs.errors import TransientIO

LOGGER = logging.getLogger(__name__)

PALETTE: Tuple[str, ...] = (
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DDA0DD",
    "#98D8C8",
    "#F7DC6F",
    "#BB8FCE",
    "#85C1E9",
)

Snapshot = Dict[str, Dict[str, Any]]
SnapshotListener = Callable[[Snapshot], None]


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def color_for(user_id: str) -> str:
    """
    Stable palette color for a user id.

    Same 32-bit string hash as the browser editor (``h = c + (h << 5) - h``
    over UTF-16 code units), so every peer renders a user in the same color.
    """
    h = 0
    units = user_id.encode("utf-16-le")
    for index in range(0, len(units), 2):
        code = units[index] | (units[index + 1] << 8)
        h = code + (_int32(h << 5) - h)
    return PALETTE[abs(h) % len(PALETTE)]


@dataclass(frozen=True)
class PresenceState:
    client_id: str
    user_id: str
    name: str
    color: str
    email: str = ""
    cursor: Any = None

    @classmethod
    def from_channel(
        cls, client_id: str, state: Mapping[str, Any]
    ) -> Optional["PresenceState"]:
        user = state.get("user") if isinstance(state, Mapping) else None
        if not isinstance(user, Mapping) or not user.get("id"):
            return None
        user_id = str(user["id"])
        return cls(
            client_id=str(client_id),
            user_id=user_id,
            name=str(user.get("name") or user_id),
            color=str(user.get("color") or color_for(user_id)),
            email=str(user.get("email") or ""),
            cursor=state.get("cursor"),
        )


class Subscription:
    """Handle returned by ``PresenceChannel.subscribe``; ``cancel`` is idempotent."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel: Optional[Callable[[], None]] = on_cancel

    @property
    def active(self) -> bool:
        return self._on_cancel is not None

    def cancel(self) -> None:
        callback, self._on_cancel = self._on_cancel, None
        if callback is not None:
            callback()


class PresenceChannel(Protocol):
    """Presence surface of the external live-session transport."""

    document_id: str

    async def join(self, client_id: str) -> None: ...

    def publish(self, client_id: str, state: Mapping[str, Any]) -> None: ...

    def snapshot(self) -> Snapshot: ...

    def subscribe(self, listener: SnapshotListener) -> Subscription: ...


class LocalPresenceChannel:
    """In-process presence channel for one document."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        self._states: Snapshot = {}
        self._listeners: List[SnapshotListener] = []

    async def join(self, client_id: str) -> None:
        LOGGER.debug("Client %s joined presence for %s", client_id, self.document_id)

    def publish(self, client_id: str, state: Mapping[str, Any]) -> None:
        self._states[client_id] = copy.deepcopy(dict(state))
        self._notify()

    def disconnect(self, client_id: str) -> None:
        """Drop a client, as the transport does when its liveness check fails."""
        if self._states.pop(client_id, None) is not None:
            self._notify()

    def snapshot(self) -> Snapshot:
        return copy.deepcopy(self._states)

    def subscribe(self, listener: SnapshotListener) -> Subscription:
        self._listeners.append(listener)
        listener(self.snapshot())

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(_remove)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.snapshot())
            except Exception:
                LOGGER.warning("Presence listener failed", exc_info=True)


class LocalPresenceHub:
    """Registry of in-process channels, created lazily per document."""

    def __init__(self) -> None:
        self._channels: Dict[str, LocalPresenceChannel] = {}

    def channel(self, document_id: str) -> LocalPresenceChannel:
        channel = self._channels.get(document_id)
        if channel is None:
            channel = LocalPresenceChannel(document_id)
            self._channels[document_id] = channel
        return channel

    def discard_empty(self) -> None:
        empty = [
            doc_id
            for doc_id, channel in self._channels.items()
            if not channel.snapshot() and not channel.listener_count
        ]
        for doc_id in empty:
            self._channels.pop(doc_id, None)


class CollaborationSessionManager:
    """
    Binds one document's presence channel to the local participant.

    ``start`` publishes the local identity and subscribes; every channel
    notification rebuilds ``active_participants`` from the full snapshot.
    ``stop`` only unsubscribes: announcing the departure to peers is the
    transport's job.
    """

    def __init__(
        self,
        channel: PresenceChannel,
        auth: AuthSession,
        *,
        client_id: Optional[str] = None,
    ) -> None:
        self.channel = channel
        self.auth = auth
        self.document_id = channel.document_id
        self.client_id = client_id or f"{auth.user_id}:{uuid.uuid4().hex[:8]}"
        self.color = color_for(auth.user_id)
        self._cursor: Any = None
        self._participants: Tuple[PresenceState, ...] = ()
        self._subscription: Optional[Subscription] = None
        self._started = False
        self._stopped = False

    @property
    def connected(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def local_state(self) -> Dict[str, Any]:
        return {
            "user": {
                "id": self.auth.user_id,
                "name": self.auth.name,
                "email": self.auth.email,
                "color": self.color,
            },
            "cursor": self._cursor,
        }

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        try:
            await self.channel.join(self.client_id)
            self.channel.publish(self.client_id, self.local_state())
            self._subscription = self.channel.subscribe(self._on_snapshot)
        except (TransientIO, ConnectionError, OSError, asyncio.TimeoutError) as exc:
            LOGGER.warning(
                "Presence unavailable for %s; continuing without it: %s",
                self.document_id,
                exc,
            )

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if self._stopped:
            return
        participants: List[PresenceState] = []
        for client_id, state in snapshot.items():
            presence = PresenceState.from_channel(client_id, state)
            if presence is None:
                LOGGER.debug("Ignoring presence entry without a user: %s", client_id)
                continue
            participants.append(presence)
        self._participants = tuple(participants)

    def active_participants(self) -> Tuple[PresenceState, ...]:
        return self._participants

    def update_cursor(self, cursor: Any) -> None:
        self._cursor = cursor
        if not self.connected or self._stopped:
            return
        try:
            self.channel.publish(self.client_id, self.local_state())
        except (TransientIO, ConnectionError, OSError) as exc:
            LOGGER.debug("Cursor update dropped: %s", exc)

    def stop(self) -> None:
        self._stopped = True
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None


__all__ = [
    "PALETTE",
    "color_for",
    "PresenceState",
    "PresenceChannel",
    "Subscription",
    "LocalPresenceChannel",
    "LocalPresenceHub",
    "CollaborationSessionManager",
]
