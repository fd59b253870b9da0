"""Schemas for the pipeline settings endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (date, datetime)


class PipelineSettingsRead(SQLModel):
    auto_approval_enabled: bool
    auto_approval_threshold: float
    min_description_length: int
    require_learning_objectives: bool
    min_sections: int
    min_lessons: int
    daily_usage_cap: int
    daily_usage_count: int
    usage_date: date | None = None
    role_capacity: dict[str, int]
    updated_by: str | None = None
    updated_at: datetime


class PipelineSettingsUpdate(SQLModel):
    """Partial update; only fields that are sent are changed."""

    auto_approval_enabled: bool | None = None
    auto_approval_threshold: float | None = Field(default=None, ge=0, le=100)
    min_description_length: int | None = Field(default=None, ge=0)
    require_learning_objectives: bool | None = None
    min_sections: int | None = Field(default=None, ge=0)
    min_lessons: int | None = Field(default=None, ge=0)
    daily_usage_cap: int | None = Field(default=None, ge=0)
    role_capacity: dict[str, int] | None = None


class ScoringCheckResponse(SQLModel):
    ok: bool
    model: str
