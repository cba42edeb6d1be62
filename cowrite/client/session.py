from __future__ import annotations

import logging
from typing import Callable, List, Optional

import jwt

from cowrite.docs.errors import Unauthenticated
from cowrite.identity.accounts import placeholder_name

LOGGER = logging.getLogger(__name__)


class AuthSession:
    """
    Explicit "current user" for one signed-in client.

    Created by ``login`` with a provider-issued token and torn down by
    ``logout``. Components that need the caller's identity receive this object
    instead of reading ambient global state. Once logged out, ``bearer()``
    raises ``Unauthenticated`` and registered teardown callbacks have run.
    """

    def __init__(
        self,
        user_id: str,
        token: str,
        *,
        email: str = "",
        display_name: str = "",
    ) -> None:
        self.user_id = user_id
        self.email = email
        self.display_name = display_name
        self._token = token
        self._closed = False
        self._teardown: List[Callable[[], None]] = []

    @classmethod
    def login(
        cls, token: str, *, email: str = "", display_name: str = ""
    ) -> "AuthSession":
        # The server verifies the signature; the client only reads its own subject.
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            raise Unauthenticated("Malformed token") from None
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthenticated("Token has no subject")
        LOGGER.info("Signed in as %s", subject)
        return cls(subject, token, email=email, display_name=display_name)

    @property
    def name(self) -> str:
        if self.display_name:
            return self.display_name
        if self.email and "@" in self.email:
            return self.email.split("@", 1)[0]
        return placeholder_name(self.user_id)

    @property
    def active(self) -> bool:
        return not self._closed

    def bearer(self) -> str:
        if self._closed:
            raise Unauthenticated("Session has been logged out")
        return self._token

    def on_logout(self, callback: Callable[[], None]) -> None:
        self._teardown.append(callback)

    def discard_logout_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._teardown:
            self._teardown.remove(callback)

    def logout(self) -> None:
        if self._closed:
            return
        self._closed = True
        callbacks, self._teardown = self._teardown, []
        for callback in reversed(callbacks):
            try:
                callback()
            except Exception:
                LOGGER.warning("Logout teardown callback failed", exc_info=True)
        LOGGER.info("Signed out %s", self.user_id)


__all__ = ["AuthSession"]
