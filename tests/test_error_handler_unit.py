"""Focused unit tests for global exception handling behaviors.

These tests exercise the public contract via FastAPI test app using the installed
exception handler and ExceptionNormalizationMiddleware.
"""

from __future__ import annotations

from unittest.mock import patch

from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
)
from core.exceptions import (
    ContextNotFoundError,
    ContextStoreUnavailableError,
    DomainError,
    EmptyContextError,
    MalformedContextError,
)
from core.middleware import CorrelationIdMiddleware


class Signal(BaseModel):
    id: str = Field(min_length=3)
    weight: float = Field(ge=0)


class UnmappedDomainError(DomainError):
    pass


def build_test_app(env: str) -> TestClient:
    app = FastAPI()
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)
    app.add_exception_handler(DomainError, global_exception_handler)

    @app.post("/signals")
    async def create_signal(signal: Signal):  # pragma: no cover - executed via client
        return {"ok": True, "signal": signal.model_dump()}

    @app.get("/context-missing")
    async def context_missing():
        raise ContextNotFoundError("ctx_0123456789ab")

    @app.get("/context-malformed")
    async def context_malformed():
        raise MalformedContextError("Context ctx_0123456789ab is malformed")

    @app.get("/store-unavailable")
    async def store_unavailable():
        raise ContextStoreUnavailableError("No context store is configured")

    @app.get("/context-empty")
    async def context_empty():
        raise EmptyContextError("nothing to store")

    @app.get("/domain-unmapped")
    async def domain_unmapped():
        raise UnmappedDomainError("odd")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("Exploded with secret=should_not_leak")

    @app.get("/throttled")
    async def throttled():
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": "30"},
        )

    client = TestClient(app)

    # Patch environment setting per test invocation
    patcher = patch("core.error_handler.get_settings")
    mocked = patcher.start()
    mocked.return_value.ENVIRONMENT = env

    # Ensure patcher stops at client finalizer
    def fin():
        patcher.stop()

    client._finalizer = fin  # type: ignore[attr-defined]
    return client


def test_validation_error_production():
    client = build_test_app("production")
    resp = client.post("/signals", json={"id": "ab", "weight": -1})
    assert resp.status_code == 422
    data = resp.json()
    assert data["error"]["type"] == "validation_error"
    # production should not include validation_errors
    assert "validation_errors" not in data["error"]


def test_validation_error_development():
    client = build_test_app("development")
    resp = client.post("/signals", json={"id": "ab", "weight": -1})
    assert resp.status_code == 422
    data = resp.json()
    assert "validation_errors" in data["error"]


def test_context_not_found_is_404():
    client = build_test_app("production")
    resp = client.get("/context-missing")
    assert resp.status_code == 404
    data = resp.json()
    assert data["success"] is False
    assert data["error"]["type"] == "context_not_found"
    assert data["message"] == "Context not found or expired"
    assert "details" not in data["error"]


def test_malformed_context_is_distinct_500():
    client = build_test_app("development")
    resp = client.get("/context-malformed")
    assert resp.status_code == 500
    data = resp.json()
    assert data["error"]["type"] == "malformed_context"
    assert data["message"] == "Invalid context data"
    assert "malformed" in data["error"]["details"]["detail"]


def test_store_unavailable_is_500():
    client = build_test_app("production")
    resp = client.get("/store-unavailable")
    assert resp.status_code == 500
    assert resp.json()["error"]["type"] == "storage_unavailable"


def test_empty_context_is_400():
    client = build_test_app("production")
    resp = client.get("/context-empty")
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "empty_context"


def test_unmapped_domain_error_defaults_to_400():
    client = build_test_app("production")
    resp = client.get("/domain-unmapped")
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "domain_error"


def test_generic_exception_production():
    client = build_test_app("production")
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["type"] == "internal_server_error"
    assert "traceback" not in body["error"]
    assert "secret=should_not_leak" not in str(body)


def test_generic_exception_development():
    client = build_test_app("development")
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["type"] == "internal_server_error"
    assert "traceback" in body["error"]


def test_rate_limited_http_error_keeps_headers():
    client = build_test_app("production")
    resp = client.get("/throttled")
    assert resp.status_code == 429
    body = resp.json()
    assert body["error"]["type"] == "http_error"
    assert body["error"]["correlation_id"]
    assert resp.headers["Retry-After"] == "30"


def test_error_correlation_id_matches_header():
    client = build_test_app("production")
    resp = client.get("/context-missing", headers={"X-Correlation-ID": "cid-42"})
    assert resp.json()["error"]["correlation_id"] == "cid-42"
    assert resp.headers["X-Correlation-ID"] == "cid-42"
