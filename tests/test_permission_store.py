from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from cowrite.docs import (
    CowriteError,
    Denied,
    LastAdminViolation,
    NotFound,
    PermissionGate,
    Role,
    UnknownUser,
)
from cowrite.docs.roles import Capability, admin_count

from .conftest import ALICE, BOB, CAROL


def test_creator_is_sole_admin(permissions) -> None:
    document = permissions.create_document(ALICE, title="  Plan  ")
    assert document.title == "Plan"
    assert permissions.roles(document.id) == {ALICE: Role.ADMIN}
    assert document.members == [ALICE]


def test_untitled_default_and_initial_content(permissions) -> None:
    document = permissions.create_document(ALICE)
    stored = permissions.document(document.id)
    assert stored.title == "Untitled Document"
    assert stored.content == [{"type": "paragraph", "content": []}]


def test_share_by_email_and_regrant_noop(permissions, caplog) -> None:
    document = permissions.create_document(ALICE)
    with caplog.at_level(logging.INFO, logger="cowrite.security"):
        updated = permissions.share(document.id, ALICE, "BOB@example.com", Role.EDITOR)
    assert updated.roles[BOB] is Role.EDITOR
    assert any(r.getMessage() == "document.shared" for r in caplog.records)

    before = permissions.document(document.id).updated_at
    again = permissions.share(document.id, ALICE, "bob@example.com", Role.EDITOR)
    assert again.roles == updated.roles
    assert permissions.document(document.id).updated_at == before


def test_share_unknown_email_is_rejected(permissions) -> None:
    document = permissions.create_document(ALICE)
    with pytest.raises(UnknownUser):
        permissions.share(document.id, ALICE, "nobody@example.com", Role.VIEWER)
    assert permissions.roles(document.id) == {ALICE: Role.ADMIN}


def test_viewer_share_is_denied_before_lookup(permissions) -> None:
    document = permissions.create_document(ALICE)
    permissions.grant(document.id, ALICE, CAROL, Role.VIEWER)
    with pytest.raises(Denied):
        permissions.share(document.id, CAROL, "nobody@example.com", Role.VIEWER)


def test_grant_unknown_user_id(permissions) -> None:
    document = permissions.create_document(ALICE)
    with pytest.raises(UnknownUser):
        permissions.grant(document.id, ALICE, "ghost-0000", Role.VIEWER)


def test_editor_share_limits(permissions) -> None:
    document = permissions.create_document(ALICE)
    permissions.grant(document.id, ALICE, BOB, Role.EDITOR)
    permissions.grant(document.id, BOB, CAROL, Role.EDITOR)
    assert permissions.role_of(document.id, CAROL) is Role.EDITOR
    with pytest.raises(Denied):
        permissions.grant(document.id, BOB, CAROL, Role.ADMIN)
    with pytest.raises(Denied):
        permissions.grant(document.id, BOB, ALICE, Role.VIEWER)


def test_revoke_requires_admin_and_keeps_an_admin(permissions) -> None:
    document = permissions.create_document(ALICE)
    permissions.grant(document.id, ALICE, BOB, Role.EDITOR)
    with pytest.raises(Denied):
        permissions.revoke(document.id, BOB, ALICE)
    with pytest.raises(LastAdminViolation):
        permissions.revoke(document.id, ALICE, ALICE)
    with pytest.raises(LastAdminViolation):
        permissions.grant(document.id, ALICE, ALICE, Role.VIEWER)
    assert permissions.roles(document.id) == {ALICE: Role.ADMIN, BOB: Role.EDITOR}

    updated = permissions.revoke(document.id, ALICE, BOB)
    assert updated.members == [ALICE]
    assert permissions.revoke(document.id, ALICE, CAROL).members == [ALICE]


def test_concurrent_mutual_revocation_leaves_an_admin(permissions) -> None:
    document = permissions.create_document(ALICE)
    permissions.grant(document.id, ALICE, BOB, Role.ADMIN)

    def revoke(actor: str, target: str):
        try:
            permissions.revoke(document.id, actor, target)
            return "ok"
        except CowriteError as exc:
            return exc.code

    for _ in range(10):
        with ThreadPoolExecutor(max_workers=2) as pool:
            first = pool.submit(revoke, ALICE, BOB)
            second = pool.submit(revoke, BOB, ALICE)
            outcomes = sorted([first.result(), second.result()])
        roles = permissions.roles(document.id)
        assert admin_count(roles) == 1
        assert outcomes == ["denied", "ok"]
        survivor = next(iter(roles))
        other = BOB if survivor == ALICE else ALICE
        permissions.grant(document.id, survivor, other, Role.ADMIN)


def test_delete_document_requires_admin(permissions) -> None:
    document = permissions.create_document(ALICE)
    permissions.grant(document.id, ALICE, BOB, Role.EDITOR)
    with pytest.raises(Denied):
        permissions.delete_document(document.id, BOB)
    permissions.delete_document(document.id, ALICE)
    with pytest.raises(NotFound):
        permissions.roles(document.id)
    assert permissions.documents_for(BOB) == []


def test_gate_checks_membership_and_rank(permissions, verifier) -> None:
    gate = PermissionGate(verifier, permissions)
    document = permissions.create_document(ALICE)
    permissions.grant(document.id, ALICE, CAROL, Role.VIEWER)

    token = verifier.issue(CAROL)
    assert gate.authorize(token, document.id, Capability.READ) == (CAROL, Role.VIEWER)
    with pytest.raises(Denied):
        gate.check_access(document.id, CAROL, Capability.WRITE)
    with pytest.raises(Denied):
        gate.check_access(document.id, BOB, Capability.READ)
    with pytest.raises(NotFound):
        gate.check_access("missing-doc", ALICE, Capability.READ)


def test_demoted_admin_cannot_delete(permissions, store) -> None:
    document = permissions.create_document(ALICE)
    permissions.grant(document.id, ALICE, BOB, Role.ADMIN)
    permissions.grant(document.id, BOB, ALICE, Role.EDITOR)
    with pytest.raises(Denied):
        permissions.delete_document(document.id, ALICE)
    assert permissions.roles(document.id) == {ALICE: Role.EDITOR, BOB: Role.ADMIN}


def test_store_delete_guard_runs_under_record_lock(permissions, store) -> None:
    document = permissions.create_document(ALICE)
    seen = []

    def guard(current) -> None:
        seen.append((current.roles, store._lock(document.id).locked()))
        raise Denied()

    with pytest.raises(Denied):
        store.delete(document.id, guard=guard)
    assert seen == [({ALICE: Role.ADMIN}, True)]
    assert store.load(document.id).id == document.id

    removed = store.delete(document.id)
    assert removed.members == [ALICE]
    with pytest.raises(NotFound):
        store.load(document.id)
