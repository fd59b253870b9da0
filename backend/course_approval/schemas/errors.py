"""Structured error payload schema used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel
from sqlmodel._compat import SQLModelConfig


class ErrorResponse(SQLModel):
    """Error body rendered by the installed exception handlers."""

    model_config = SQLModelConfig(json_schema_extra={"title": "ErrorResponse"})

    detail: str | dict[str, object] | list[object] = Field(
        description="Human-readable message, or validation error details.",
        examples=["Approval APPR-2026-004211 was already approved"],
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
    code: str | None = Field(
        default=None,
        description="Machine-readable pipeline error code.",
        examples=["duplicate_submission", "already_decided", "no_available_reviewer"],
    )
    retryable: bool | None = Field(
        default=None,
        description="Whether the same call may succeed if retried later.",
    )
