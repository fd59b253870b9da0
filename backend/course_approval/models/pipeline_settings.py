"""Persisted auto-approval thresholds, reviewer caps, and the daily usage counter."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field

from course_approval.core.time import utcnow
from course_approval.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (date, datetime)

SETTINGS_ROW_ID = 1


class PipelineSettings(QueryModel, table=True):
    """Single-row settings store shared by every pipeline component."""

    __tablename__ = "pipeline_settings"  # pyright: ignore[reportAssignmentType]

    id: int = Field(default=SETTINGS_ROW_ID, primary_key=True)
    auto_approval_enabled: bool = Field(default=False)
    auto_approval_threshold: float = Field(default=70.0)
    min_description_length: int = Field(default=50)
    require_learning_objectives: bool = Field(default=True)
    min_sections: int = Field(default=1)
    min_lessons: int = Field(default=3)
    daily_usage_cap: int = Field(default=1500)
    daily_usage_count: int = Field(default=0)
    usage_date: date | None = None
    role_capacity: dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON))
    updated_by: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)
