from __future__ import annotations

"""
Debounced autosave for one open document.

Title and content are saved independently, each through its own small state
machine::

    idle -> pending            a change arms the debounce timer
    pending -> in_flight       the timer fires and a save is launched
    in_flight -> in_flight_superseded
                               the timer fires again before the save returns
    in_flight_superseded -> in_flight
                               the save returns; one follow-up save is launched
                               with whatever value is current at that moment
    in_flight -> idle|pending  the save returns with nothing queued

A field never has more than one save in flight.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from cowrite.docs.models import utc_timestamp
from cowrite.docs.roles import Role, can_edit

LOGGER = logging.getLogger(__name__)

TITLE_DEBOUNCE = 1.5
CONTENT_DEBOUNCE = 2.0

SaveFn = Callable[[str, Dict[str, Any]], Awaitable[Any]]
RoleProvider = Callable[[], Optional[Role]]


class SaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    IN_FLIGHT_SUPERSEDED = "in_flight_superseded"


_IN_FLIGHT = (SaveState.IN_FLIGHT, SaveState.IN_FLIGHT_SUPERSEDED)


@dataclass
class _Field:
    name: str
    delay: float
    state: SaveState = SaveState.IDLE
    timer: Optional[asyncio.TimerHandle] = None
    task: Optional["asyncio.Task[None]"] = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class AutosaveCoordinator:
    """
    Collapses bursts of edits into partial ``save`` calls.

    ``save(document_id, {"title": ...})`` or ``save(document_id, {"content": ...})``
    is awaited for each launch; it is normally ``DocumentApi.update``. Saves are
    skipped, without error, whenever ``role_provider`` does not report an
    editor or admin role. Must be used from inside a running event loop.
    """

    def __init__(
        self,
        document_id: str,
        save: SaveFn,
        role_provider: RoleProvider,
        *,
        saved_title: str = "",
        title_delay: float = TITLE_DEBOUNCE,
        content_delay: float = CONTENT_DEBOUNCE,
    ) -> None:
        self.document_id = document_id
        self._save = save
        self._role_provider = role_provider
        self._fields: Dict[str, _Field] = {
            "title": _Field("title", title_delay),
            "content": _Field("content", content_delay),
        }
        self._title = saved_title
        self._content: Any = None
        self._dirty = False
        self._last_saved_title = saved_title
        self._last_saved_at: Optional[str] = None
        self._closed = False

    # Inputs -------------------------------------------------------------------
    def title_changed(self, title: str) -> None:
        self._title = title
        self._arm("title")

    def content_changed(self, content: Any) -> None:
        self._content = content
        self._dirty = True
        self._arm("content")

    # Introspection ------------------------------------------------------------
    def state(self, field: str) -> SaveState:
        return self._fields[field].state

    @property
    def last_saved_title(self) -> str:
        return self._last_saved_title

    @property
    def last_saved_at(self) -> Optional[str]:
        return self._last_saved_at

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def closed(self) -> bool:
        return self._closed

    # Lifecycle ----------------------------------------------------------------
    def close(self) -> None:
        """Stop scheduling saves; results of saves still in flight are dropped."""
        self._closed = True
        for field in self._fields.values():
            field.cancel_timer()
            if field.state is SaveState.PENDING:
                field.state = SaveState.IDLE

    async def drain(self) -> None:
        """Wait until no save is in flight, including any follow-up saves."""
        while True:
            tasks = [f.task for f in self._fields.values() if f.task is not None]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    # State machine ------------------------------------------------------------
    def _arm(self, name: str) -> None:
        if self._closed:
            return
        field = self._fields[name]
        field.cancel_timer()
        loop = asyncio.get_running_loop()
        field.timer = loop.call_later(field.delay, self._fire, name)
        if field.state is SaveState.IDLE:
            field.state = SaveState.PENDING

    def _fire(self, name: str) -> None:
        field = self._fields[name]
        field.timer = None
        if self._closed:
            return
        if field.state in _IN_FLIGHT:
            field.state = SaveState.IN_FLIGHT_SUPERSEDED
            return
        self._launch(field)

    def _payload(self, name: str) -> Optional[Dict[str, Any]]:
        if name == "title":
            if not self._title.strip() or self._title == self._last_saved_title:
                return None
            return {"title": self._title}
        if not self._dirty:
            return None
        return {"content": self._content}

    def _launch(self, field: _Field) -> None:
        payload = self._payload(field.name)
        if payload is not None and not can_edit(self._role_provider()):
            LOGGER.debug(
                "Skipping %s save for %s: read-only role", field.name, self.document_id
            )
            payload = None
        if payload is None:
            field.state = SaveState.PENDING if field.timer else SaveState.IDLE
            return
        if field.name == "content":
            self._dirty = False
        field.state = SaveState.IN_FLIGHT
        field.task = asyncio.get_running_loop().create_task(
            self._run(field, payload)
        )

    async def _run(self, field: _Field, payload: Dict[str, Any]) -> None:
        try:
            await self._save(self.document_id, payload)
        except Exception as exc:
            LOGGER.warning(
                "Autosave of %s for %s failed: %s", field.name, self.document_id, exc
            )
            if field.name == "content":
                self._dirty = True
        else:
            if not self._closed:
                if field.name == "title":
                    self._last_saved_title = payload["title"]
                self._last_saved_at = utc_timestamp()
                LOGGER.debug("Autosaved %s for %s", field.name, self.document_id)
        finally:
            self._complete(field)

    def _complete(self, field: _Field) -> None:
        field.task = None
        if self._closed:
            field.state = SaveState.IDLE
            return
        if field.state is SaveState.IN_FLIGHT_SUPERSEDED:
            field.state = SaveState.IDLE
            self._launch(field)
            return
        field.state = SaveState.PENDING if field.timer else SaveState.IDLE


__all__ = [
    "AutosaveCoordinator",
    "SaveState",
    "TITLE_DEBOUNCE",
    "CONTENT_DEBOUNCE",
]
