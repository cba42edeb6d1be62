from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from cowrite.docs.errors import Unauthenticated

LOGGER = logging.getLogger(__name__)
SECURITY_LOGGER = logging.getLogger("cowrite.security")

DEFAULT_ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 3600


class TokenVerifier:
    """
    Bearer-token boundary to the identity provider.

    A verified token maps deterministically to one caller id (the ``sub``
    claim). ``issue`` exists for local development and tests; production
    tokens come from the provider and share the signing secret.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = DEFAULT_ALGORITHM,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        issuer: Optional[str] = None,
    ) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = int(ttl_seconds)
        self.issuer = issuer

    def issue(
        self,
        user_id: str,
        *,
        ttl_seconds: Optional[int] = None,
        claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        ttl = self.ttl_seconds if ttl_seconds is None else int(ttl_seconds)
        payload: Dict[str, Any] = dict(claims or {})
        payload.update({"sub": user_id, "iat": now, "exp": now + timedelta(seconds=ttl)})
        if self.issuer:
            payload["iss"] = self.issuer
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> str:
        """Return the caller id for ``token`` or raise ``Unauthenticated``."""
        if not token:
            raise Unauthenticated("Missing bearer token")
        options = {"require": ["sub", "exp"]}
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            SECURITY_LOGGER.info("auth.rejected", extra={"reason": "expired"})
            raise Unauthenticated("Token expired") from None
        except jwt.InvalidTokenError as exc:
            SECURITY_LOGGER.info("auth.rejected", extra={"reason": type(exc).__name__})
            raise Unauthenticated("Invalid token") from None
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthenticated("Invalid token")
        return subject


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


__all__ = ["TokenVerifier", "bearer_token", "DEFAULT_ALGORITHM"]
