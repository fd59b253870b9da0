"""Scoring adapter for the external content-evaluation model.

Builds a normalized course payload, asks the model for a JSON verdict, and
turns the reply into a bounded `ScoreResult`. Anything the pipeline cannot
trust (no JSON, missing or non-numeric sub-scores) is raised as
`ScoringError` instead of being defaulted, so a broken reply never reads as
a low score.
"""

from __future__ import annotations

import asyncio
import json
import math
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from course_approval.core.config import settings
from course_approval.core.errors import ScoringError
from course_approval.core.logging import get_logger

if TYPE_CHECKING:
    from course_approval.models.courses import Course

logger = get_logger(__name__)

DEFAULT_FEEDBACK = "No feedback provided"
# Stored name -> key the model is asked to emit.
SUB_SCORE_KEYS: dict[str, str] = {
    "content_quality": "contentQuality",
    "structure_quality": "structureQuality",
    "educational_value": "educationalValue",
    "completeness": "completeness",
}

SCORING_SYSTEM_PROMPT = """You review online courses before they are published.

Assess the course you are given on four criteria, each scored 0-100:
- contentQuality: accuracy, depth and clarity of the material
- structureQuality: logical ordering of sections and lessons
- educationalValue: how well the course achieves its learning objectives
- completeness: whether the outline covers what the description promises

Respond with a single JSON object and nothing else:
{
  "overallScore": <0-100>,
  "contentQuality": {"score": <0-100>, "feedback": "<text>", "issues": ["<issue>"]},
  "structureQuality": {"score": <0-100>, "feedback": "<text>", "issues": ["<issue>"]},
  "educationalValue": {"score": <0-100>, "feedback": "<text>", "issues": ["<issue>"]},
  "completeness": {"score": <0-100>, "feedback": "<text>", "issues": ["<issue>"]},
  "recommendations": ["<text>"],
  "strengths": ["<text>"],
  "weaknesses": ["<text>"]
}"""


class LessonPayload(BaseModel):
    title: str
    content_type: str | None = None
    duration_minutes: float | None = None


class SectionPayload(BaseModel):
    title: str
    lessons: list[LessonPayload] = Field(default_factory=list)


class CoursePayload(BaseModel):
    """Normalized course content sent to the scoring model."""

    title: str
    description: str = ""
    learning_objectives: list[str] = Field(default_factory=list)
    sections: list[SectionPayload] = Field(default_factory=list)
    assignments: list[str] = Field(default_factory=list)


class SubScore(BaseModel):
    score: float = Field(ge=0, le=100)
    feedback: str = DEFAULT_FEEDBACK
    issues: list[str] = Field(default_factory=list)


class ScoreResult(BaseModel):
    """Validated, bounded model verdict."""

    overall_score: float = Field(ge=0, le=100)
    content_quality: SubScore
    structure_quality: SubScore
    educational_value: SubScore
    completeness: SubScore
    recommendations: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    overall_computed: bool = False
    model: str | None = None

    def analysis(self) -> dict[str, Any]:
        """JSON shape persisted on the evaluation record."""
        return self.model_dump(exclude={"overall_score", "model"})


class _RawSubScore(BaseModel):
    score: float
    feedback: str | None = None
    issues: list[str] = Field(default_factory=list)


def _text(value: object) -> str:
    if isinstance(value, dict):
        return str(value.get("title") or value.get("name") or "")
    return str(value)


def build_course_payload(course: Course) -> CoursePayload:
    sections: list[SectionPayload] = []
    for raw_section in course.sections or []:
        if not isinstance(raw_section, dict):
            continue
        lessons = [
            LessonPayload(
                title=_text(lesson),
                content_type=lesson.get("content_type") if isinstance(lesson, dict) else None,
                duration_minutes=lesson.get("duration_minutes") if isinstance(lesson, dict) else None,
            )
            for lesson in raw_section.get("lessons") or []
        ]
        sections.append(SectionPayload(title=_text(raw_section), lessons=lessons))
    return CoursePayload(
        title=course.title,
        description=course.description or "",
        learning_objectives=[str(item) for item in course.learning_objectives or []],
        sections=sections,
        assignments=[_text(item) for item in course.assignments or []],
    )


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_overall_score(
    sub_scores: dict[str, float],
    weights: dict[str, float] | None = None,
) -> int:
    """Rounded weighted mean of the sub-scores (plain mean by default)."""
    weights = weights if weights is not None else settings.scoring_weights
    total_weight = sum(max(0.0, weights.get(name, 1.0)) for name in sub_scores)
    if total_weight <= 0:
        return round_half_up(sum(sub_scores.values()) / len(sub_scores))
    weighted = sum(score * max(0.0, weights.get(name, 1.0)) for name, score in sub_scores.items())
    return round_half_up(weighted / total_weight)


def _finite_number(value: object, *, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ScoringError(f"Invalid AI response format: {field} is not a number")
    number = float(value)
    if not math.isfinite(number):
        raise ScoringError(f"Invalid AI response format: {field} is not finite")
    return number


def _sub_score(raw: object, *, field: str) -> SubScore:
    if isinstance(raw, dict):
        try:
            parsed = _RawSubScore.model_validate(raw)
        except ValidationError as exc:
            raise ScoringError(f"Invalid AI response format: {field} is malformed") from exc
        score = _finite_number(parsed.score, field=field)
        return SubScore(
            score=clamp_score(score),
            feedback=parsed.feedback or DEFAULT_FEEDBACK,
            issues=parsed.issues,
        )
    return SubScore(score=clamp_score(_finite_number(raw, field=field)))


def _lookup(data: dict[str, Any], stored_name: str, model_key: str) -> object | None:
    if model_key in data:
        return data[model_key]
    return data.get(stored_name)


def _string_list(value: object) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str) and value:
        return [value]
    return []


def parse_score_response(text: str) -> ScoreResult:
    """Validate a raw model reply into a `ScoreResult`."""
    try:
        start = text.index("{")
        end = text.rindex("}") + 1
        data = json.loads(text[start:end])
    except ValueError as exc:
        raise ScoringError("Invalid AI response format: reply is not JSON") from exc
    if not isinstance(data, dict):
        raise ScoringError("Invalid AI response format: reply is not a JSON object")

    sub_scores: dict[str, SubScore] = {}
    for stored_name, model_key in SUB_SCORE_KEYS.items():
        raw = _lookup(data, stored_name, model_key)
        if raw is None:
            raise ScoringError(f"Invalid AI response format: missing {model_key}")
        sub_scores[stored_name] = _sub_score(raw, field=model_key)

    raw_overall = _lookup(data, "overall_score", "overallScore")
    overall: float | None = None
    if raw_overall is not None:
        overall = clamp_score(_finite_number(raw_overall, field="overallScore"))
    # A zero overall alongside real sub-scores is treated as "not supplied".
    computed = overall is None or overall == 0
    if computed:
        overall = float(
            compute_overall_score({name: sub.score for name, sub in sub_scores.items()}),
        )

    return ScoreResult(
        overall_score=overall,
        recommendations=_string_list(data.get("recommendations")),
        strengths=_string_list(data.get("strengths")),
        weaknesses=_string_list(data.get("weaknesses")),
        overall_computed=computed,
        **sub_scores,
    )


class ScoringAdapter:
    """Anthropic-backed course scoring client."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.anthropic_api_key
        self._model = model or settings.scoring_model
        self._max_tokens = max_tokens or settings.scoring_max_tokens
        self._client = None

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self):
        """Lazily initialize the Anthropic client."""
        if self._client is None:
            import anthropic

            if self._api_key:
                self._client = anthropic.Anthropic(api_key=self._api_key)
            else:
                # Will use ANTHROPIC_API_KEY env var
                self._client = anthropic.Anthropic()
        return self._client

    async def _complete(self, prompt: str, *, max_tokens: int) -> str:
        import anthropic

        client = self._get_client()
        try:
            message = await asyncio.to_thread(
                client.messages.create,
                model=self._model,
                max_tokens=max_tokens,
                system=SCORING_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            raise ScoringError(f"Scoring model request failed: {exc}") from exc
        return "".join(
            getattr(block, "text", "")
            for block in message.content
            if getattr(block, "type", None) == "text"
        )

    async def evaluate(self, payload: CoursePayload) -> ScoreResult:
        """Score one course; raises `ScoringError` on any upstream or format failure."""
        prompt = (
            "Evaluate this course:\n\n"
            f"{json.dumps(payload.model_dump(), indent=2, ensure_ascii=False)}"
        )
        text = await self._complete(prompt, max_tokens=self._max_tokens)
        result = parse_score_response(text)
        logger.info(
            "scoring.completed",
            extra={
                "model": self._model,
                "overall_score": result.overall_score,
                "overall_computed": result.overall_computed,
            },
        )
        return result.model_copy(update={"model": self._model})

    async def test_connection(self) -> bool:
        """Round-trip a tiny request to confirm credentials and model id."""
        try:
            await self._complete("Reply with {} only.", max_tokens=16)
        except ScoringError:
            logger.warning("scoring.connection_check_failed", exc_info=True)
            return False
        return True


_adapter: ScoringAdapter | None = None


def get_scoring_adapter() -> ScoringAdapter:
    global _adapter
    if _adapter is None:
        _adapter = ScoringAdapter()
    return _adapter
