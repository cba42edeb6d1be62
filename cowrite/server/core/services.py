from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from cowrite.config import Settings
from cowrite.docs import DocumentStore, PermissionGate, PermissionStore
from cowrite.identity import AccountRegistry, TokenVerifier, bearer_token

LOGGER = logging.getLogger(__name__)


@dataclass
class Services:
    """Backend collaborators shared by every request of one app instance."""

    settings: Settings
    store: DocumentStore
    accounts: AccountRegistry
    verifier: TokenVerifier
    permissions: PermissionStore
    gate: PermissionGate

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: Optional[DocumentStore] = None,
        accounts: Optional[AccountRegistry] = None,
        verifier: Optional[TokenVerifier] = None,
    ) -> "Services":
        store = store or DocumentStore(settings.data_dir)
        accounts = accounts or AccountRegistry(settings.accounts_path)
        verifier = verifier or TokenVerifier(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            ttl_seconds=settings.token_ttl_seconds,
        )
        permissions = PermissionStore(store, accounts)
        return cls(
            settings=settings,
            store=store,
            accounts=accounts,
            verifier=verifier,
            permissions=permissions,
            gate=PermissionGate(verifier, permissions),
        )


def get_services(request: Request) -> Services:
    return request.app.state.services


async def current_caller(
    request: Request,
    authorization: str | None = Header(default=None),
) -> str:
    """Resolve the verified caller id for every document route."""
    services = get_services(request)
    caller_id = services.gate.authenticate(bearer_token(authorization))
    request.state.caller_id = caller_id
    return caller_id


__all__ = ["Services", "get_services", "current_caller"]
