from __future__ import annotations

import json
import logging

from cowrite.logging_config import (
    RequestContextFilter,
    StructuredJsonFormatter,
    reset_request_id,
    set_request_id,
)

from .conftest import ALICE, BOB


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("cowrite.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_request_id_and_extras() -> None:
    token = set_request_id("rid-123")
    try:
        record = _record("document.shared", document_id="abc", actor=object())
        RequestContextFilter().filter(record)
    finally:
        reset_request_id(token)

    payload = json.loads(StructuredJsonFormatter().format(record))
    assert payload["message"] == "document.shared"
    assert payload["request_id"] == "rid-123"
    assert payload["extra"]["document_id"] == "abc"
    assert payload["extra"]["actor"].startswith("<object")


def test_request_id_is_echoed(client) -> None:
    response = client.get("/health", headers={"X-Request-ID": "trace-1"})
    assert response.headers["X-Request-ID"] == "trace-1"
    assert "X-Process-Time" in response.headers


def test_error_body_carries_request_id(client) -> None:
    response = client.get("/api/docs", headers={"X-Request-ID": "trace-2"})
    assert response.status_code == 401
    assert response.json()["request_id"] == "trace-2"


def test_request_log_names_caller_and_document(client, auth_headers, caplog) -> None:
    created = client.post("/api/docs", json={"title": "Logged"}, headers=auth_headers(ALICE))
    doc_id = created.json()["id"]
    with caplog.at_level(logging.INFO, logger="cowrite.request"):
        client.get(
            f"/api/docs/{doc_id}",
            headers={**auth_headers(ALICE), "X-Request-ID": "trace-3"},
        )

    lines = [r for r in caplog.records if r.getMessage() == "http_request"]
    assert lines
    assert lines[-1].http["caller_id"] == ALICE
    assert lines[-1].http["document_id"] == doc_id
    assert lines[-1].http["request_id"] == "trace-3"
    assert lines[-1].http["status_code"] == 200


def test_denied_access_is_audited(client, auth_headers, caplog) -> None:
    doc_id = client.post("/api/docs", json={}, headers=auth_headers(ALICE)).json()["id"]
    with caplog.at_level(logging.INFO, logger="cowrite.security"):
        response = client.get(f"/api/docs/{doc_id}", headers=auth_headers(BOB))

    assert response.status_code == 403
    audits = [r for r in caplog.records if r.getMessage() == "access.rejected"]
    assert audits[-1].caller_id == BOB
    assert audits[-1].document_id == doc_id
    assert audits[-1].code == "denied"
