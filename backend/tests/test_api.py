# ruff: noqa: INP001
"""HTTP surface: caller identity, role checks, and error bodies."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

import pytest
from fastapi import APIRouter, FastAPI
from fastapi_pagination import add_pagination
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from course_approval.api.approvals import router as approvals_router
from course_approval.api.evaluations import router as evaluations_router
from course_approval.api.pipeline_settings import router as pipeline_settings_router
from course_approval.api.reviewers import router as reviewers_router
from course_approval.core.error_handling import REQUEST_ID_HEADER, install_error_handling
from course_approval.db.session import get_session
from course_approval.main import app as main_app
from course_approval.models.approvals import ApprovalAssignment, CourseApproval
from course_approval.models.courses import Course
from course_approval.models.reviewers import Reviewer

ADMIN_ID = uuid4()
INSTRUCTOR_ID = uuid4()


def _headers(actor_id: Any, role: str, name: str = "") -> dict[str, str]:
    return {"X-Actor-Id": str(actor_id), "X-Actor-Role": role, "X-Actor-Name": name}


ADMIN = _headers(ADMIN_ID, "admin", "Ada Admin")
INSTRUCTOR = _headers(INSTRUCTOR_ID, "instructor", "Ivy Instructor")


async def _make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


def _build_test_app(session_maker: async_sessionmaker[AsyncSession]) -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(evaluations_router)
    api_v1.include_router(approvals_router)
    api_v1.include_router(reviewers_router)
    api_v1.include_router(pipeline_settings_router)
    app.include_router(api_v1)
    add_pagination(app)

    async def _override_get_session() -> AsyncSession:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    return app


async def _seed_course(session_maker: async_sessionmaker[AsyncSession]) -> Course:
    async with session_maker() as session:
        course = Course(
            title="Intro to SQL",
            description="Relational databases, joins, and indexing from first principles.",
            instructor_id=INSTRUCTOR_ID,
        )
        session.add(course)
        await session.commit()
        return course


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


@pytest.mark.asyncio
async def test_healthz_needs_no_identity() -> None:
    async with _client(main_app) as client:
        response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("headers", "status_code"),
    [
        ({}, 401),
        ({"X-Actor-Id": "not-a-uuid"}, 401),
        (_headers(uuid4(), "superuser"), 403),
    ],
)
async def test_caller_identity_is_required(headers: dict[str, str], status_code: int) -> None:
    engine = await _make_engine()
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with _client(_build_test_app(session_maker)) as client:
            response = await client.post(
                "/api/v1/evaluations",
                json={"course_id": str(uuid4())},
                headers=headers,
            )

        assert response.status_code == status_code
        assert response.headers.get(REQUEST_ID_HEADER)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("get", "/api/v1/evaluations/statistics"),
        ("get", "/api/v1/evaluations/pending"),
        ("get", "/api/v1/approvals/dashboard"),
        ("get", "/api/v1/pipeline-settings"),
        ("post", "/api/v1/reviewers"),
    ],
)
async def test_admin_routes_reject_other_roles(method: str, path: str) -> None:
    engine = await _make_engine()
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with _client(_build_test_app(session_maker)) as client:
            response = await client.request(method, path, headers=INSTRUCTOR, json={})

        assert response.status_code == 403
        assert response.json()["detail"] == "Administrator role required"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_submit_is_accepted_and_duplicates_conflict() -> None:
    engine = await _make_engine()
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        course = await _seed_course(session_maker)
        async with _client(_build_test_app(session_maker)) as client:
            accepted = await client.post(
                "/api/v1/evaluations",
                json={"course_id": str(course.id), "priority": "high"},
                headers=INSTRUCTOR,
            )
            duplicate = await client.post(
                "/api/v1/evaluations",
                json={"course_id": str(course.id)},
                headers=INSTRUCTOR,
            )
            own = await client.get(
                f"/api/v1/evaluations/{accepted.json()['id']}",
                headers=INSTRUCTOR,
            )
            foreign = await client.get(
                f"/api/v1/evaluations/{accepted.json()['id']}",
                headers=_headers(uuid4(), "instructor"),
            )
            listed = await client.get("/api/v1/evaluations", headers=INSTRUCTOR)

        assert accepted.status_code == 202
        body = accepted.json()
        assert body["status"] == "processing"
        assert body["submitter_id"] == str(INSTRUCTOR_ID)
        assert body["submitter_name"] == "Ivy Instructor"
        assert body["requested_priority"] == "high"

        assert duplicate.status_code == 409
        problem = duplicate.json()
        assert problem["code"] == "duplicate_submission"
        assert problem["retryable"] is False
        assert problem["request_id"] == duplicate.headers[REQUEST_ID_HEADER]

        assert own.status_code == 200
        assert foreign.status_code == 404
        assert listed.status_code == 200
        assert [item["id"] for item in listed.json()["items"]] == [body["id"]]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_unknown_course_is_not_found() -> None:
    engine = await _make_engine()
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with _client(_build_test_app(session_maker)) as client:
            response = await client.post(
                "/api/v1/evaluations",
                json={"course_id": str(uuid4())},
                headers=INSTRUCTOR,
            )

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_admin_manages_reviewers_and_settings() -> None:
    engine = await _make_engine()
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with _client(_build_test_app(session_maker)) as client:
            created = await client.post(
                "/api/v1/reviewers",
                json={"display_name": "Pat Primary", "roles": ["primary", "content"]},
                headers=ADMIN,
            )
            invalid_role = await client.post(
                "/api/v1/reviewers",
                json={"display_name": "Olly", "roles": ["owner"]},
                headers=ADMIN,
            )
            listed = await client.get("/api/v1/reviewers", headers=ADMIN)
            patched = await client.patch(
                "/api/v1/pipeline-settings",
                json={"auto_approval_enabled": True, "auto_approval_threshold": 85},
                headers=ADMIN,
            )
            out_of_range = await client.patch(
                "/api/v1/pipeline-settings",
                json={"auto_approval_threshold": 150},
                headers=ADMIN,
            )

        assert created.status_code == 201
        assert created.json()["roles"] == ["primary", "content"]
        assert invalid_role.status_code == 422
        assert [item["display_name"] for item in listed.json()["items"]] == ["Pat Primary"]
        assert patched.status_code == 200
        assert patched.json()["auto_approval_enabled"] is True
        assert patched.json()["auto_approval_threshold"] == 85
        assert patched.json()["updated_by"] == str(ADMIN_ID)
        assert out_of_range.status_code == 422
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_assigned_reviewer_submits_feedback_over_http() -> None:
    engine = await _make_engine()
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        course = await _seed_course(session_maker)
        async with session_maker() as session:
            reviewer = Reviewer(display_name="Pat Primary", roles=["primary"])
            approval = CourseApproval(
                approval_code="APPR-2026-000777",
                course_id=course.id,
                submitter_id=INSTRUCTOR_ID,
                status="under_review",
            )
            session.add(reviewer)
            session.add(approval)
            session.add(
                ApprovalAssignment(
                    approval_id=approval.id,
                    role="primary",
                    reviewer_id=reviewer.id,
                ),
            )
            await session.commit()

        reviewer_headers = _headers(reviewer.id, "reviewer", "Pat Primary")
        async with _client(_build_test_app(session_maker)) as client:
            outsider = await client.post(
                f"/api/v1/approvals/{approval.id}/reviews",
                json={"score": 80},
                headers=_headers(uuid4(), "reviewer"),
            )
            queue = await client.get("/api/v1/approvals/queue", headers=reviewer_headers)
            submitted = await client.post(
                f"/api/v1/approvals/{approval.id}/reviews",
                json={
                    "score": 75,
                    "feedback": "Solid structure",
                    "category": "structure",
                    "issues": [
                        {"severity": "high", "description": "Slow demo", "resolved": True},
                    ],
                },
                headers=reviewer_headers,
            )
            by_code = await client.get(
                "/api/v1/approvals/by-code/APPR-2026-000777",
                headers=INSTRUCTOR,
            )

        assert outsider.status_code == 403
        assert outsider.json()["code"] == "reviewer_not_assigned"
        assert [item["id"] for item in queue.json()["items"]] == [str(approval.id)]
        assert submitted.status_code == 201
        detail = submitted.json()
        assert detail["approval"]["current_stage"] == "content_review"
        assert detail["approval"]["overall_score"] == 75
        assert detail["reviews"][0]["feedback"] == "Solid structure"
        assert detail["reviews"][0]["issues"][0]["resolved"] is False
        assert detail["review_team"] == {"primary": str(reviewer.id)}
        assert by_code.status_code == 200
        assert by_code.json()["approval"]["approval_code"] == "APPR-2026-000777"
    finally:
        await engine.dispose()
