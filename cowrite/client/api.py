from __future__ import annotations

"""Async HTTP client for the ``/api/docs`` REST surface."""

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import httpx

from cowrite.docs.errors import CowriteError, TransientIO, error_for

from .session import AuthSession

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"


def _default_base() -> str:
    return (os.getenv("COWRITE_SERVER_BASE") or DEFAULT_BASE_URL).rstrip("/")


class DocumentApi:
    """
    Thin wrapper over ``httpx.AsyncClient`` that speaks the document API.

    Every call attaches the session's bearer token. HTTP error responses are
    raised as the matching ``cowrite.docs.errors`` class and transport
    failures as ``TransientIO``.
    """

    def __init__(
        self,
        auth: AuthSession,
        base_url: Optional[str] = None,
        *,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.auth = auth
        self.base_url = (base_url or _default_base()).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/api",
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "DocumentApi":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, *, json: Any = None
    ) -> Any:
        headers = {"Authorization": f"Bearer {self.auth.bearer()}"}
        try:
            response = await self._client.request(
                method, path, json=json, headers=headers
            )
        except httpx.TransportError as exc:
            LOGGER.debug("%s %s failed: %s", method, path, exc)
            raise TransientIO(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            raise self._error(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error(response: httpx.Response) -> CowriteError:
        code: Optional[str] = None
        message: Optional[str] = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or body.get("error")
        if not message:
            message = f"API request failed with status: {response.status_code}"
        return error_for(response.status_code, code, message)

    # Documents ----------------------------------------------------------------
    async def list_documents(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/docs")

    async def get(self, document_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/docs/{document_id}")

    async def create(
        self, title: Optional[str] = None, content: Any = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if content is not None:
            body["content"] = content
        return await self._request("POST", "/docs", json=body)

    async def update(self, document_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Partial update: only the keys present in ``changes`` are sent."""
        return await self._request("PUT", f"/docs/{document_id}", json=dict(changes))

    async def delete(self, document_id: str) -> None:
        await self._request("DELETE", f"/docs/{document_id}")

    # Sharing ------------------------------------------------------------------
    async def permissions(self, document_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/docs/{document_id}/permissions")

    async def share(self, document_id: str, email: str, role: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/docs/{document_id}/share",
            json={"email": email, "role": str(getattr(role, "value", role))},
        )

    async def remove_access(self, document_id: str, user_id: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/docs/{document_id}/remove_access",
            json={"userIdToRemove": user_id},
        )

    # Directory ----------------------------------------------------------------
    async def user_details(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return await self._request(
            "POST", "/docs/users/details", json={"userIds": list(user_ids)}
        )


__all__ = ["DocumentApi", "DEFAULT_BASE_URL"]
