"""Course catalog access: content reads and review-status write-back."""

from __future__ import annotations

from typing import TYPE_CHECKING

from course_approval.core.errors import NotFoundError
from course_approval.core.logging import get_logger
from course_approval.core.time import utcnow
from course_approval.models.courses import Course

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

COURSE_STATUSES = frozenset({"draft", "submitted", "approved", "rejected", "needs_revision"})


async def get_course(session: AsyncSession, course_id: UUID) -> Course:
    course = await Course.objects.by_id(course_id).first(session)
    if course is None:
        raise NotFoundError(f"Course {course_id} not found")
    return course


def section_count(course: Course) -> int:
    return len(course.sections or [])


def lesson_count(course: Course) -> int:
    total = 0
    for section in course.sections or []:
        lessons = section.get("lessons") if isinstance(section, dict) else None
        if isinstance(lessons, list):
            total += len(lessons)
    return total


def set_course_status(session: AsyncSession, course: Course, new_status: str) -> None:
    """Write a review outcome back onto the course record."""
    if new_status not in COURSE_STATUSES:
        raise ValueError(f"Unknown course status {new_status!r}")
    now = utcnow()
    previous = course.status
    course.status = new_status
    if new_status == "approved":
        course.is_approved = True
        course.approved_at = now
        course.is_published = True
        course.published_at = now
    elif new_status in {"rejected", "needs_revision", "draft"}:
        course.is_approved = False
    course.updated_at = now
    session.add(course)
    logger.info(
        "course.status.updated",
        extra={"course_id": str(course.id), "previous": previous, "status": new_status},
    )
