from __future__ import annotations

import os
from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient

from cowrite.config import Settings, build_settings
from cowrite.docs import DocumentStore, PermissionStore
from cowrite.identity import AccountRegistry, TokenVerifier
from cowrite.server.app import create_app

TEST_SECRET = "cowrite-test-suite-secret-0123456789abcdef"

ALICE = "user-alice-a001"
BOB = "user-bob-b002"
CAROL = "user-carol-c003"


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    for key in list(os.environ):
        if key.startswith("COWRITE_"):
            monkeypatch.delenv(key, raising=False)
    return build_settings(
        {
            "data_dir": tmp_path / "documents",
            "accounts_path": tmp_path / "accounts.json",
            "jwt_secret": TEST_SECRET,
        },
        path=tmp_path / "absent.yaml",
    )


@pytest.fixture
def accounts(settings: Settings) -> AccountRegistry:
    registry = AccountRegistry(settings.accounts_path)
    registry.register("alice@example.com", display_name="Alice", user_id=ALICE)
    registry.register("bob@example.com", display_name="Bob", user_id=BOB)
    registry.register("carol@example.com", user_id=CAROL)
    return registry


@pytest.fixture
def store(settings: Settings) -> DocumentStore:
    return DocumentStore(settings.data_dir)


@pytest.fixture
def permissions(store: DocumentStore, accounts: AccountRegistry) -> PermissionStore:
    return PermissionStore(store, accounts)


@pytest.fixture
def verifier(settings: Settings) -> TokenVerifier:
    return TokenVerifier(settings.jwt_secret)


@pytest.fixture
def app(settings, store, accounts, verifier):
    return create_app(
        settings,
        store=store,
        accounts=accounts,
        verifier=verifier,
        configure_logging=False,
    )


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(verifier: TokenVerifier) -> Callable[[str], Dict[str, str]]:
    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {verifier.issue(user_id)}"}

    return _headers
