# ruff: noqa

from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from starlette.requests import Request

from course_approval.core import error_handling
from course_approval.core.error_handling import (
    REQUEST_ID_HEADER,
    _error_payload,
    _get_request_id,
    _http_exception_exception_handler,
    _request_validation_exception_handler,
    _response_validation_exception_handler,
    install_error_handling,
)
from course_approval.core.errors import (
    AlreadyDecidedError,
    ConcurrentUpdateError,
    NoAvailableReviewerError,
    ScoringError,
)


def _app() -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    return app


def test_request_validation_error_includes_request_id():
    app = _app()

    @app.get("/needs-int")
    def needs_int(limit: int) -> dict[str, int]:
        return {"limit": limit}

    resp = TestClient(app).get("/needs-int?limit=abc")

    assert resp.status_code == 422
    body = resp.json()
    assert isinstance(body.get("detail"), list)
    assert isinstance(body.get("request_id"), str) and body["request_id"]
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_request_validation_error_handles_bytes_input_without_500():
    class Submission(BaseModel):
        course_id: str

    app = _app()

    @app.post("/submit")
    def submit(payload: Submission) -> dict[str, str]:
        return {"course_id": payload.course_id}

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.post(
        "/submit",
        content=b"plain-text-body",
        headers={"content-type": "text/plain"},
    )

    assert resp.status_code == 422
    assert resp.json()["request_id"] == resp.headers.get(REQUEST_ID_HEADER)


def test_plain_http_exception_has_no_pipeline_fields():
    app = _app()

    @app.get("/nope")
    def nope() -> None:
        raise HTTPException(status_code=404, detail="nope")

    resp = TestClient(app).get("/nope")

    assert resp.status_code == 404
    body = resp.json()
    assert body["detail"] == "nope"
    assert "code" not in body
    assert "retryable" not in body


@pytest.mark.parametrize(
    ("error", "status_code", "code", "retryable"),
    [
        (ScoringError("Invalid AI response format: no JSON"), 502, "scoring_failed", False),
        (NoAvailableReviewerError("cap reached"), 409, "no_available_reviewer", True),
        (AlreadyDecidedError("APPR-2026-000001 was decided"), 409, "already_decided", False),
        (ConcurrentUpdateError("modified concurrently"), 409, "concurrent_update", True),
    ],
)
def test_pipeline_errors_carry_code_and_retry_hint(
    error: Exception,
    status_code: int,
    code: str,
    retryable: bool,
):
    app = _app()

    @app.get("/fail")
    def fail() -> None:
        raise error

    resp = TestClient(app).get("/fail")

    assert resp.status_code == status_code
    body = resp.json()
    assert body["detail"] == str(error)
    assert body["code"] == code
    assert body["retryable"] is retryable
    assert body["request_id"] == resp.headers.get(REQUEST_ID_HEADER)


def test_unhandled_exception_returns_500_with_request_id():
    app = _app()

    @app.get("/boom")
    def boom() -> None:
        raise RuntimeError("boom")

    resp = TestClient(app, raise_server_exceptions=False).get("/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "Internal Server Error"
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_response_validation_error_returns_500_with_request_id():
    class Out(BaseModel):
        approval_code: str = Field(min_length=1)

    app = _app()

    @app.get("/bad", response_model=Out)
    def bad() -> dict[str, str]:
        return {"approval_code": ""}

    resp = TestClient(app, raise_server_exceptions=False).get("/bad")

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"


def test_client_provided_request_id_is_preserved():
    app = _app()

    @app.get("/needs-int")
    def needs_int(limit: int) -> dict[str, int]:
        return {"limit": limit}

    resp = TestClient(app).get("/needs-int?limit=abc", headers={REQUEST_ID_HEADER: "  req-123  "})

    assert resp.json()["request_id"] == "req-123"
    assert resp.headers.get(REQUEST_ID_HEADER) == "req-123"


def test_slow_request_emits_slow_log(monkeypatch: pytest.MonkeyPatch) -> None:
    warnings: list[tuple[str, dict[str, object]]] = []

    def _fake_warning(message: str, *args: object, **kwargs: object) -> None:
        _ = args
        extra = kwargs.get("extra")
        warnings.append((message, extra if isinstance(extra, dict) else {}))

    perf_ticks = iter((100.0, 100.2))

    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 1)
    monkeypatch.setattr(error_handling, "perf_counter", lambda: next(perf_ticks))
    monkeypatch.setattr(error_handling.logger, "warning", _fake_warning)

    app = _app()

    @app.get("/slow")
    def slow() -> dict[str, str]:
        return {"ok": "1"}

    resp = TestClient(app).get("/slow")

    assert resp.status_code == 200
    assert any(
        message == "http.request.slow" and extra.get("slow_threshold_ms") == 1
        for message, extra in warnings
    )


def test_get_request_id_returns_none_for_missing_or_invalid_state() -> None:
    assert _get_request_id(Request({"type": "http", "headers": [], "state": {}})) is None
    req = Request({"type": "http", "headers": [], "state": {"request_id": 123}})
    assert _get_request_id(req) is None
    req = Request({"type": "http", "headers": [], "state": {"request_id": ""}})
    assert _get_request_id(req) is None


def test_error_payload_only_includes_present_fields() -> None:
    assert _error_payload(detail="x", request_id=None) == {"detail": "x"}
    assert _error_payload(detail="x", request_id="r", code="c", retryable=False) == {
        "detail": "x",
        "request_id": "r",
        "code": "c",
        "retryable": False,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("handler", "expected"),
    [
        (_request_validation_exception_handler, "Expected RequestValidationError"),
        (_response_validation_exception_handler, "Expected ResponseValidationError"),
        (_http_exception_exception_handler, "Expected StarletteHTTPException"),
    ],
)
async def test_exception_wrappers_reject_wrong_exception(handler, expected) -> None:
    req = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match=expected):
        await handler(req, Exception("x"))


def test_json_safe_covers_bytes_and_fallback_str() -> None:
    assert error_handling._json_safe(b"\xff") == "\ufffd"
    assert error_handling._json_safe(memoryview(b"\xff")) == "\ufffd"

    class Weird:
        def __str__(self) -> str:
            return "weird"

    assert error_handling._json_safe(Weird()) == "weird"
