from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

LOGGER = logging.getLogger(__name__)


def placeholder_name(user_id: str) -> str:
    return f"User {user_id[-4:]}"


@dataclass(frozen=True)
class Account:
    """User record owned by the identity provider."""

    id: str
    email: str
    display_name: str = ""

    @property
    def name(self) -> str:
        if self.display_name:
            return self.display_name
        if self.email and "@" in self.email:
            return self.email.split("@", 1)[0]
        return placeholder_name(self.id)

    def profile(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "email": self.email}


class AccountRegistry:
    """
    Lookup table for the identity provider's accounts.

    Backed by a JSON list of ``{"id", "email", "display_name"}`` objects when
    ``path`` is given; purely in-memory otherwise.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._by_id: Dict[str, Account] = {}
        self._by_email: Dict[str, str] = {}
        if self.path is not None:
            self._load()

    def _load(self) -> None:
        assert self.path is not None
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            LOGGER.warning("Ignoring unreadable accounts file %s", self.path)
            return
        entries = raw.get("accounts") if isinstance(raw, dict) else raw
        for entry in entries or []:
            if not isinstance(entry, dict) or not entry.get("id"):
                continue
            self._index(
                Account(
                    id=str(entry["id"]),
                    email=str(entry.get("email") or ""),
                    display_name=str(entry.get("display_name") or ""),
                )
            )

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "accounts": [
                {"id": a.id, "email": a.email, "display_name": a.display_name}
                for a in self._by_id.values()
            ]
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _index(self, account: Account) -> None:
        self._by_id[account.id] = account
        if account.email:
            self._by_email[account.email.strip().lower()] = account.id

    def register(
        self, email: str, *, display_name: str = "", user_id: Optional[str] = None
    ) -> Account:
        normalized = email.strip().lower()
        with self._lock:
            existing = self._by_email.get(normalized)
            if existing and existing != user_id:
                raise ValueError(f"email_in_use: {email}")
            account = Account(
                id=user_id or uuid.uuid4().hex,
                email=email.strip(),
                display_name=display_name.strip(),
            )
            previous = self._by_id.get(account.id)
            if previous is not None and previous.email:
                self._by_email.pop(previous.email.strip().lower(), None)
            self._index(account)
            self._save()
        LOGGER.info("Registered account %s", account.id)
        return account

    def get(self, user_id: str) -> Optional[Account]:
        with self._lock:
            return self._by_id.get(user_id)

    def exists(self, user_id: str) -> bool:
        return self.get(user_id) is not None

    def by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            user_id = self._by_email.get((email or "").strip().lower())
            return self._by_id.get(user_id) if user_id else None

    def profiles(self, user_ids: Iterable[str]) -> List[Dict[str, str]]:
        """Profiles for the known ids, in request order; unknown ids are skipped."""
        seen: List[str] = []
        with self._lock:
            results: List[Dict[str, str]] = []
            for user_id in user_ids:
                if user_id in seen:
                    continue
                seen.append(user_id)
                account = self._by_id.get(user_id)
                if account is not None:
                    results.append(account.profile())
        return results


__all__ = ["Account", "AccountRegistry", "placeholder_name"]
