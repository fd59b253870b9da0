# ruff: noqa: INP001
"""Scoring reply parsing, score arithmetic, and the model adapter."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
from uuid import uuid4

import anthropic
import httpx
import pytest

from course_approval.core.errors import ScoringError
from course_approval.models.courses import Course
from course_approval.services.scoring import (
    DEFAULT_FEEDBACK,
    ScoringAdapter,
    build_course_payload,
    clamp_score,
    compute_overall_score,
    parse_score_response,
    round_half_up,
)


def _reply(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "overallScore": 82,
        "contentQuality": {"score": 85, "feedback": "Accurate", "issues": []},
        "structureQuality": {"score": 80, "feedback": "Logical", "issues": ["Long intro"]},
        "educationalValue": {"score": 78, "feedback": "Useful", "issues": []},
        "completeness": {"score": 84, "feedback": "Covers the outline", "issues": []},
        "recommendations": ["Add a capstone project"],
        "strengths": ["Clear examples"],
        "weaknesses": ["Few exercises"],
    }
    body.update(overrides)
    return body


def test_parse_score_response_reads_camel_case_reply() -> None:
    result = parse_score_response(json.dumps(_reply()))

    assert result.overall_score == 82
    assert result.overall_computed is False
    assert result.content_quality.score == 85
    assert result.structure_quality.issues == ["Long intro"]
    assert result.recommendations == ["Add a capstone project"]
    analysis = result.analysis()
    assert "overall_score" not in analysis
    assert analysis["completeness"]["feedback"] == "Covers the outline"


def test_parse_score_response_accepts_snake_case_and_surrounding_prose() -> None:
    body = {
        "overall_score": 70,
        "content_quality": 70,
        "structure_quality": 71,
        "educational_value": 69,
        "completeness": 70,
    }
    text = f"Here is my assessment:\n```json\n{json.dumps(body)}\n```\nThanks!"

    result = parse_score_response(text)

    assert result.overall_score == 70
    assert result.content_quality.feedback == DEFAULT_FEEDBACK
    assert result.recommendations == []


@pytest.mark.parametrize("overall", [None, 0])
def test_missing_or_zero_overall_is_recomputed_from_sub_scores(overall: int | None) -> None:
    body = _reply(
        contentQuality={"score": 80},
        structureQuality={"score": 81},
        educationalValue={"score": 80},
        completeness={"score": 81},
    )
    if overall is None:
        body.pop("overallScore")
    else:
        body["overallScore"] = overall

    result = parse_score_response(json.dumps(body))

    # 80.5 rounds half up.
    assert result.overall_score == 81
    assert result.overall_computed is True


def test_scores_are_clamped_into_range() -> None:
    body = _reply(overallScore=140, contentQuality={"score": -12}, completeness={"score": 250})

    result = parse_score_response(json.dumps(body))

    assert result.overall_score == 100
    assert result.content_quality.score == 0
    assert result.completeness.score == 100


@pytest.mark.parametrize(
    ("text", "fragment"),
    [
        ("The course looks great overall.", "reply is not JSON"),
        ("[1, 2, 3]", "reply is not JSON"),
        (json.dumps({"overallScore": 80}), "missing contentQuality"),
        (json.dumps(_reply(contentQuality={"score": "high"})), "contentQuality"),
        (json.dumps(_reply(completeness=True)), "completeness is not a number"),
        (json.dumps(_reply(overallScore="eighty")), "overallScore is not a number"),
        ('{"contentQuality": NaN}', "contentQuality is not finite"),
    ],
)
def test_untrustworthy_replies_raise_scoring_error(text: str, fragment: str) -> None:
    with pytest.raises(ScoringError) as exc_info:
        parse_score_response(text)

    assert exc_info.value.message.startswith("Invalid AI response format")
    assert fragment in exc_info.value.message


def test_round_half_up_and_clamp() -> None:
    assert round_half_up(80.5) == 81
    assert round_half_up(80.49) == 80
    assert round_half_up(0.5) == 1
    assert clamp_score(-1) == 0
    assert clamp_score(101.5) == 100
    assert clamp_score(55.5) == 55.5


def test_compute_overall_score_uses_weights() -> None:
    scores = {"content_quality": 100.0, "completeness": 50.0}

    assert compute_overall_score(scores, {}) == 75
    assert compute_overall_score(scores, {"content_quality": 3.0, "completeness": 1.0}) == 88
    assert compute_overall_score(scores, {"content_quality": 0.0, "completeness": 0.0}) == 75


def test_build_course_payload_normalizes_outline() -> None:
    course = Course(
        title="Intro to SQL",
        description="Relational basics.",
        learning_objectives=["Write SELECT queries"],
        sections=[
            {"title": "Basics", "lessons": [{"title": "SELECT", "content_type": "video"}, "JOINs"]},
            "not a section",
        ],
        assignments=[{"title": "Quiz 1"}, "Project"],
        instructor_id=uuid4(),
    )

    payload = build_course_payload(course)

    assert payload.title == "Intro to SQL"
    assert len(payload.sections) == 1
    assert [lesson.title for lesson in payload.sections[0].lessons] == ["SELECT", "JOINs"]
    assert payload.sections[0].lessons[0].content_type == "video"
    assert payload.assignments == ["Quiz 1", "Project"]


class _FakeMessages:
    def __init__(self, *, text: str | None = None, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


def _adapter_with(messages: _FakeMessages) -> ScoringAdapter:
    adapter = ScoringAdapter(api_key="test-key", model="test-model", max_tokens=256)
    adapter._client = SimpleNamespace(messages=messages)
    return adapter


@pytest.mark.asyncio
async def test_adapter_evaluate_returns_result_tagged_with_model() -> None:
    messages = _FakeMessages(text=json.dumps(_reply()))
    adapter = _adapter_with(messages)
    course = Course(title="Intro to SQL", instructor_id=uuid4())

    result = await adapter.evaluate(build_course_payload(course))

    assert result.model == "test-model"
    assert result.overall_score == 82
    assert messages.calls[0]["model"] == "test-model"
    assert messages.calls[0]["max_tokens"] == 256
    assert "Intro to SQL" in messages.calls[0]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_adapter_maps_api_errors_to_scoring_error() -> None:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    adapter = _adapter_with(_FakeMessages(error=anthropic.APIConnectionError(request=request)))
    course = Course(title="Intro to SQL", instructor_id=uuid4())

    with pytest.raises(ScoringError) as exc_info:
        await adapter.evaluate(build_course_payload(course))

    assert "Scoring model request failed" in exc_info.value.message
    assert await adapter.test_connection() is False


@pytest.mark.asyncio
async def test_adapter_connection_check_succeeds() -> None:
    adapter = _adapter_with(_FakeMessages(text="{}"))

    assert await adapter.test_connection() is True
    assert adapter.model == "test-model"
