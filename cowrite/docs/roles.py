"""Roles, capabilities and the pure rules that govern a document's role map."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Mapping, Optional

from .errors import Denied, InvalidRole, LastAdminViolation


class Role(str, Enum):
    """Membership level on a single document."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Capability(str, Enum):
    READ = "read"
    WRITE = "write"
    SHARE = "share"
    REVOKE = "revoke"
    DELETE = "delete"


_RANK: Dict[Role, int] = {Role.VIEWER: 1, Role.EDITOR: 2, Role.ADMIN: 3}

MINIMUM_ROLE: Dict[Capability, Role] = {
    Capability.READ: Role.VIEWER,
    Capability.WRITE: Role.EDITOR,
    Capability.SHARE: Role.EDITOR,
    Capability.REVOKE: Role.ADMIN,
    Capability.DELETE: Role.ADMIN,
}

RoleMap = Dict[str, Role]


def role_from_str(value: str) -> Role:
    """Convert a string role representation to a Role enum."""

    normalized = str(value or "").strip().lower()
    for role in Role:
        if role.value == normalized:
            return role
    raise InvalidRole(f"Unsupported role: {value}")


def rank(role: Optional[Role]) -> int:
    if role is None:
        return 0
    return _RANK[role]


def satisfies(role: Optional[Role], capability: Capability) -> bool:
    """Return True if ``role`` is at least the minimum role for ``capability``."""

    return rank(role) >= rank(MINIMUM_ROLE[capability])


def can_edit(role: Optional[Role]) -> bool:
    return satisfies(role, Capability.WRITE)


def admin_count(roles: Mapping[str, Role]) -> int:
    return sum(1 for role in roles.values() if role is Role.ADMIN)


def coerce_roles(raw: Mapping[str, object]) -> RoleMap:
    """Parse a stored ``{user_id: "role"}`` mapping."""

    return {str(user_id): role_from_str(str(value)) for user_id, value in raw.items()}


def dump_roles(roles: Mapping[str, Role]) -> Dict[str, str]:
    return {user_id: role.value for user_id, role in roles.items()}


def plan_grant(
    roles: Mapping[str, Role],
    actor_id: str,
    target_id: str,
    new_role: Role,
) -> RoleMap:
    """
    Compute the role map after ``actor_id`` grants ``new_role`` to ``target_id``.

    Pure: the input snapshot is never mutated. Raises ``Denied`` when the actor
    may not make this grant and ``LastAdminViolation`` when it would leave the
    document without an admin. Re-granting the current role returns an
    unchanged copy.
    """

    actor_role = roles.get(actor_id)
    if not satisfies(actor_role, Capability.SHARE):
        raise Denied("Only editors and admins can share this document")

    current = roles.get(target_id)
    if current is new_role:
        return dict(roles)

    if actor_role is not Role.ADMIN:
        if new_role is Role.ADMIN:
            raise Denied("Only admins can grant the admin role")
        if current is Role.ADMIN:
            raise Denied("Only admins can change another admin's role")

    planned = dict(roles)
    planned[target_id] = new_role
    if admin_count(planned) < 1:
        raise LastAdminViolation()
    return planned


def plan_revoke(
    roles: Mapping[str, Role],
    actor_id: str,
    target_id: str,
) -> RoleMap:
    """
    Compute the role map after ``actor_id`` removes ``target_id``.

    Revoking a non-member is a no-op. Removing the last admin, including an
    admin revoking themselves, raises ``LastAdminViolation``.
    """

    if not satisfies(roles.get(actor_id), Capability.REVOKE):
        raise Denied("Only admins can remove access")

    if target_id not in roles:
        return dict(roles)

    planned = dict(roles)
    planned.pop(target_id)
    if admin_count(planned) < 1:
        raise LastAdminViolation()
    return planned


__all__ = [
    "Role",
    "Capability",
    "MINIMUM_ROLE",
    "RoleMap",
    "role_from_str",
    "rank",
    "satisfies",
    "can_edit",
    "admin_count",
    "coerce_roles",
    "dump_roles",
    "plan_grant",
    "plan_revoke",
]
