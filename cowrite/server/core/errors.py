from __future__ import annotations

import logging
import traceback
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cowrite.docs.errors import CowriteError, Denied, Unauthenticated
from cowrite.logging_config import (
    SECURITY_LOGGER_NAME,
    reset_request_id,
    set_request_id,
)

_log = logging.getLogger("cowrite.errors")
_security = logging.getLogger(SECURITY_LOGGER_NAME)


def _request_id(request: Request) -> Optional[str]:
    state_rid = getattr(request.state, "request_id", None)
    header_rid = request.headers.get("X-Request-ID")
    return state_rid or header_rid or None


@contextmanager
def _request_context(request: Request) -> Iterator[None]:
    """Re-bind the request id while a handler runs outside the middleware scope."""
    rid = _request_id(request)
    token = set_request_id(rid) if rid else None
    try:
        yield
    finally:
        if token is not None:
            reset_request_id(token)


def _error_response(
    request: Request,
    *,
    status: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    rid = _request_id(request)
    body = {"ok": False, "code": code, "message": message}
    if details is not None:
        body["details"] = details
    if rid:
        body["request_id"] = rid

    response = JSONResponse(body, status_code=status)
    if rid:
        response.headers["X-Request-ID"] = rid
    if status == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


def _audit_rejection(request: Request, exc: CowriteError) -> None:
    _security.info(
        "access.rejected",
        extra={
            "code": exc.code,
            "caller_id": getattr(request.state, "caller_id", None),
            "document_id": request.path_params.get("doc_id"),
            "method": request.method,
            "path": request.url.path,
        },
    )


def register_exception_handlers(app):
    @app.exception_handler(CowriteError)
    async def _domain_exc(request: Request, exc: CowriteError):
        with _request_context(request):
            if isinstance(exc, (Unauthenticated, Denied)):
                _audit_rejection(request, exc)
            else:
                _log.debug(
                    "domain error %s on %s %s: %s",
                    exc.code,
                    request.method,
                    request.url.path,
                    exc.message,
                )
            return _error_response(
                request,
                status=exc.status_code,
                code=exc.code,
                message=exc.message,
            )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc(request: Request, exc: StarletteHTTPException):
        with _request_context(request):
            detail = exc.detail
            return _error_response(
                request,
                status=exc.status_code,
                code=f"http_{exc.status_code}",
                message=str(detail) if detail else "Request failed",
                details=detail if isinstance(detail, (dict, list)) else None,
            )

    @app.exception_handler(RequestValidationError)
    async def _val_exc(request: Request, exc: RequestValidationError):
        with _request_context(request):
            _log.debug("invalid request body on %s: %s", request.url.path, exc)
            return _error_response(
                request,
                status=422,
                code="validation_error",
                message="Request validation failed",
                details=jsonable_errors(exc),
            )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        err_id = uuid.uuid4().hex
        with _request_context(request):
            _log.error(
                "Unhandled exception [%s] for caller %s on %s %s: %s",
                err_id,
                getattr(request.state, "caller_id", None),
                request.method,
                request.url.path,
                "".join(traceback.format_exception(exc)),
            )
            return _error_response(
                request,
                status=500,
                code="internal_error",
                message="Internal server error",
                details={"error_id": err_id},
            )


def jsonable_errors(exc: RequestValidationError) -> list:
    cleaned = []
    for error in exc.errors():
        item = {key: value for key, value in error.items() if key != "ctx"}
        if "input" in item:
            item["input"] = repr(item["input"])
        cleaned.append(item)
    return cleaned


__all__ = ["register_exception_handlers"]
