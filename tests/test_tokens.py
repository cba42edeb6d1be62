from __future__ import annotations

import logging

import pytest

from cowrite.client.session import AuthSession
from cowrite.docs.errors import Unauthenticated
from cowrite.identity import TokenVerifier, bearer_token

from .conftest import ALICE, TEST_SECRET


def test_issue_and_verify(verifier: TokenVerifier) -> None:
    assert verifier.verify(verifier.issue(ALICE)) == ALICE


def test_rejects_foreign_signature_and_expiry(verifier: TokenVerifier, caplog) -> None:
    other = TokenVerifier(TEST_SECRET[::-1])
    with caplog.at_level(logging.INFO, logger="cowrite.security"):
        with pytest.raises(Unauthenticated):
            verifier.verify(other.issue(ALICE))
        with pytest.raises(Unauthenticated, match="expired"):
            verifier.verify(verifier.issue(ALICE, ttl_seconds=-5))
    assert [r.getMessage() for r in caplog.records].count("auth.rejected") == 2

    with pytest.raises(Unauthenticated):
        verifier.verify(None)


def test_bearer_header_parsing() -> None:
    assert bearer_token("Bearer abc.def") == "abc.def"
    assert bearer_token("bearer   tok ") == "tok"
    assert bearer_token("Basic xyz") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


def test_auth_session_lifecycle(verifier: TokenVerifier) -> None:
    session = AuthSession.login(verifier.issue(ALICE), email="alice@example.com")
    assert session.user_id == ALICE
    assert session.name == "alice"

    calls = []
    session.on_logout(lambda: calls.append("first"))
    session.on_logout(lambda: calls.append("second"))
    session.logout()
    session.logout()
    assert calls == ["second", "first"]
    assert not session.active
    with pytest.raises(Unauthenticated):
        session.bearer()


def test_login_rejects_malformed_token() -> None:
    with pytest.raises(Unauthenticated):
        AuthSession.login("definitely-not-a-token")
