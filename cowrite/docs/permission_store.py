from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional

from .errors import Denied, UnknownUser
from .models import Document
from .roles import (
    Capability,
    Role,
    RoleMap,
    plan_grant,
    plan_revoke,
    satisfies,
)
from .store import DocumentStore

if TYPE_CHECKING:
    from cowrite.identity.accounts import AccountRegistry

LOGGER = logging.getLogger(__name__)
SECURITY_LOGGER = logging.getLogger("cowrite.security")


class PermissionStore:
    """
    Authoritative role map for every document plus the operations that mutate it.

    Role-map changes are planned by the pure functions in ``cowrite.docs.roles``
    and applied through ``DocumentStore.update_roles`` so the last-admin check
    and the write happen under one record lock.
    """

    def __init__(self, store: DocumentStore, accounts: AccountRegistry) -> None:
        self.store = store
        self.accounts = accounts

    # Queries ------------------------------------------------------------------
    def document(self, document_id: str) -> Document:
        return self.store.load(document_id)

    def roles(self, document_id: str) -> RoleMap:
        return dict(self.store.load(document_id).roles)

    def role_of(self, document_id: str, user_id: str) -> Optional[Role]:
        return self.store.load(document_id).role_of(user_id)

    def documents_for(self, user_id: str) -> List[Document]:
        return self.store.list_for_member(user_id)

    # Lifecycle ----------------------------------------------------------------
    def create_document(
        self, creator_id: str, *, title: Optional[str] = None, content: Any = None
    ) -> Document:
        document = Document.new(creator_id, title=title, content=content)
        self.store.create(document)
        LOGGER.info(
            "Document created",
            extra={"document_id": document.id, "created_by": creator_id},
        )
        return document

    def delete_document(self, document_id: str, actor_id: str) -> None:
        def _require_admin(document: Document) -> None:
            if not satisfies(document.role_of(actor_id), Capability.DELETE):
                raise Denied("Only admins can delete this document")

        # Removing the record drops the role map with it.
        document = self.store.delete(document_id, guard=_require_admin)
        SECURITY_LOGGER.info(
            "document.deleted",
            extra={
                "document_id": document_id,
                "actor": actor_id,
                "revoked_members": document.members,
            },
        )

    # Sharing ------------------------------------------------------------------
    def _require_share(self, document_id: str, actor_id: str) -> None:
        # Fail fast before account lookups; plan_grant re-checks under the lock.
        if not satisfies(self.role_of(document_id, actor_id), Capability.SHARE):
            raise Denied("Only editors and admins can share this document")

    def share(
        self, document_id: str, actor_id: str, email: str, role: Role
    ) -> Document:
        self._require_share(document_id, actor_id)
        account = self.accounts.by_email(email)
        if account is None:
            raise UnknownUser(f"No account found for {email}")
        return self.grant(document_id, actor_id, account.id, role)

    def grant(
        self, document_id: str, actor_id: str, target_id: str, role: Role
    ) -> Document:
        self._require_share(document_id, actor_id)
        if not self.accounts.exists(target_id):
            raise UnknownUser(f"Unknown user {target_id}")
        document, changed = self.store.update_roles(
            document_id,
            lambda roles: plan_grant(roles, actor_id, target_id, role),
        )
        if changed:
            SECURITY_LOGGER.info(
                "document.shared",
                extra={
                    "document_id": document_id,
                    "actor": actor_id,
                    "target": target_id,
                    "role": role.value,
                },
            )
        return document

    def revoke(self, document_id: str, actor_id: str, target_id: str) -> Document:
        document, changed = self.store.update_roles(
            document_id,
            lambda roles: plan_revoke(roles, actor_id, target_id),
        )
        if changed:
            SECURITY_LOGGER.info(
                "document.revoked",
                extra={
                    "document_id": document_id,
                    "actor": actor_id,
                    "target": target_id,
                },
            )
        return document


__all__ = ["PermissionStore"]
