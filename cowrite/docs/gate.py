from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Tuple

from .errors import Denied
from .permission_store import PermissionStore
from .roles import Capability, Role, satisfies

if TYPE_CHECKING:
    from cowrite.identity.tokens import TokenVerifier

LOGGER = logging.getLogger(__name__)


class PermissionGate:
    """Identity verification followed by a role check against ``PermissionStore``."""

    def __init__(self, verifier: TokenVerifier, permissions: PermissionStore) -> None:
        self.verifier = verifier
        self.permissions = permissions

    def authenticate(self, token: Optional[str]) -> str:
        return self.verifier.verify(token)

    def check_access(
        self, document_id: str, caller_id: str, capability: Capability
    ) -> Role:
        role = self.permissions.role_of(document_id, caller_id)
        if role is None:
            raise Denied("You do not have access to this document")
        if not satisfies(role, capability):
            LOGGER.debug(
                "Denied %s on %s for %s (role=%s)",
                capability.value,
                document_id,
                caller_id,
                role.value,
            )
            raise Denied(f"The {role.value} role cannot {capability.value} this document")
        return role

    def authorize(
        self, token: Optional[str], document_id: str, capability: Capability
    ) -> Tuple[str, Role]:
        caller_id = self.authenticate(token)
        return caller_id, self.check_access(document_id, caller_id, capability)


__all__ = ["PermissionGate"]
