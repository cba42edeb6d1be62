from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .roles import Role, RoleMap, coerce_roles, dump_roles

DEFAULT_TITLE = "Untitled Document"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_document_id() -> str:
    return uuid.uuid4().hex


def default_content() -> List[Dict[str, Any]]:
    return [{"type": "paragraph", "content": []}]


@dataclass(slots=True)
class Document:
    """Durable snapshot of a shared document and its role map."""

    id: str
    title: str
    created_by: str
    created_at: str
    updated_at: str
    content: Any = field(default_factory=default_content)
    roles: RoleMap = field(default_factory=dict)

    @property
    def members(self) -> List[str]:
        return sorted(self.roles)

    def role_of(self, user_id: str) -> Optional[Role]:
        return self.roles.get(user_id)

    @classmethod
    def new(
        cls, creator_id: str, *, title: Optional[str] = None, content: Any = None
    ) -> "Document":
        now = utc_timestamp()
        return cls(
            id=new_document_id(),
            title=(title or "").strip() or DEFAULT_TITLE,
            created_by=creator_id,
            created_at=now,
            updated_at=now,
            content=content if content is not None else default_content(),
            roles={creator_id: Role.ADMIN},
        )

    # Record (durable store) ---------------------------------------------------
    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "roles": dump_roles(self.roles),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Document":
        roles_raw = record.get("roles")
        return cls(
            id=str(record["id"]),
            title=str(record.get("title") or ""),
            content=record.get("content"),
            created_by=str(record.get("created_by") or ""),
            created_at=str(record.get("created_at") or ""),
            updated_at=str(record.get("updated_at") or ""),
            roles=coerce_roles(roles_raw if isinstance(roles_raw, dict) else {}),
        )

    # Wire payloads ------------------------------------------------------------
    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "roles": dump_roles(self.roles),
            "members": self.members,
        }

    def as_dict(self, *, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        payload = self.summary()
        payload["content"] = self.content
        if viewer_id is not None:
            role = self.role_of(viewer_id)
            payload["role"] = role.value if role else None
        return payload

    def permissions(self) -> Dict[str, Any]:
        return {"roles": dump_roles(self.roles), "members": self.members}


__all__ = ["Document", "DEFAULT_TITLE", "utc_timestamp", "default_content"]
