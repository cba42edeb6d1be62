from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping

from cowrite.identity.accounts import placeholder_name

LOGGER = logging.getLogger(__name__)

BatchLookup = Callable[[List[str]], Awaitable[Iterable[Mapping[str, Any]]]]


@dataclass(frozen=True)
class CachedUserProfile:
    id: str
    name: str
    email: str = ""
    placeholder: bool = False

    @classmethod
    def synthesize(cls, user_id: str) -> "CachedUserProfile":
        return cls(id=user_id, name=placeholder_name(user_id), email="", placeholder=True)

    def as_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "email": self.email}


class UserDirectory:
    """
    Session-scoped cache of user display profiles.

    ``resolve`` looks up only the ids it has not seen, in a single batch, and
    never raises: ids the backend cannot answer for come back as placeholder
    profiles. Placeholders are not cached, so a later call asks again. Cached
    profiles are kept for the life of the directory even if the user renames.
    """

    def __init__(self, lookup: BatchLookup) -> None:
        self._lookup = lookup
        self._cache: Dict[str, CachedUserProfile] = {}

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    async def resolve(self, ids: Iterable[str]) -> Dict[str, CachedUserProfile]:
        requested: List[str] = []
        for user_id in ids:
            if user_id and user_id not in requested:
                requested.append(user_id)
        uncached = [user_id for user_id in requested if user_id not in self._cache]

        if uncached:
            await self._fetch(uncached)

        return {
            user_id: self._cache.get(user_id) or CachedUserProfile.synthesize(user_id)
            for user_id in requested
        }

    async def _fetch(self, ids: List[str]) -> None:
        try:
            results = await self._lookup(list(ids))
        except Exception as exc:
            LOGGER.warning(
                "User lookup failed for %d id(s); using placeholders: %s",
                len(ids),
                exc,
            )
            return
        # A mapping here is an envelope, not a list of profiles.
        if results is None or isinstance(results, (Mapping, str, bytes)):
            LOGGER.warning("User lookup returned %s; using placeholders", type(results).__name__)
            return
        try:
            entries = list(results)
        except TypeError:
            LOGGER.warning("User lookup returned %s; using placeholders", type(results).__name__)
            return

        wanted = set(ids)
        for entry in entries:
            if not isinstance(entry, Mapping):
                LOGGER.debug("Ignoring malformed profile entry: %r", entry)
                continue
            user_id = str(entry.get("id") or "")
            if user_id not in wanted:
                continue
            self._cache[user_id] = CachedUserProfile(
                id=user_id,
                name=str(entry.get("name") or placeholder_name(user_id)),
                email=str(entry.get("email") or ""),
            )


__all__ = ["CachedUserProfile", "UserDirectory", "BatchLookup"]
