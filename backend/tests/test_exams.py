"""Tests for exam settings upsert and the active exam."""

from httpx import AsyncClient
from sqlalchemy import func, select

from speacy.db.models import ExamSettings, UserRole
from speacy.schemas.exams import normalize_list

from conftest import auth_headers, make_profile

PAYLOAD = {
    "title": "Midterm",
    "learningGoals": "- Explain mutability\n\n* Slice a list\n",
    "questionTopics": ["Tuples", "  ", "Slicing"],
    "rubric": "   ",
    "rubricAuto": True,
    "isActive": True,
}


async def test_get_before_save_is_null(client: AsyncClient, professor_headers):
    response = await client.get("/api/exams", headers=professor_headers)
    assert response.status_code == 200
    assert response.json() == {"ok": True, "exam": None}


async def test_upsert_normalizes_fields(client: AsyncClient, professor_headers):
    response = await client.post("/api/exams", json=PAYLOAD, headers=professor_headers)
    assert response.status_code == 200
    exam = response.json()["exam"]
    assert exam["learningGoals"] == ["Explain mutability", "Slice a list"]
    assert exam["questionTopics"] == ["Tuples", "Slicing"]
    # Empty rubric becomes null (read back as ""), so rubric_auto cannot stick
    assert exam["rubric"] == ""
    assert exam["rubricAuto"] is False
    assert exam["isActive"] is True


async def test_upsert_is_idempotent(client: AsyncClient, professor_headers, session_factory):
    first = await client.post("/api/exams", json=PAYLOAD, headers=professor_headers)
    second = await client.post("/api/exams", json=PAYLOAD, headers=professor_headers)
    assert first.json()["exam"]["id"] == second.json()["exam"]["id"]

    async with session_factory() as session:
        count = (await session.execute(select(func.count()).select_from(ExamSettings))).scalar_one()
    assert count == 1

    for field in ("title", "learningGoals", "questionTopics", "rubric", "rubricAuto", "isActive"):
        assert first.json()["exam"][field] == second.json()["exam"][field]


async def test_rubric_auto_kept_with_rubric(client: AsyncClient, professor_headers):
    response = await client.post(
        "/api/exams",
        json={**PAYLOAD, "rubric": "  - Accuracy  "},
        headers=professor_headers,
    )
    exam = response.json()["exam"]
    assert exam["rubric"] == "- Accuracy"
    assert exam["rubricAuto"] is True


async def test_students_cannot_save_exam(client: AsyncClient, student_headers):
    response = await client.post("/api/exams", json=PAYLOAD, headers=student_headers)
    assert response.status_code == 403


async def test_active_exam_is_public_and_latest(client: AsyncClient, professor_headers, session_factory):
    empty = await client.get("/api/exams/active")
    assert empty.json() == {"ok": True, "exam": None}

    await client.post("/api/exams", json=PAYLOAD, headers=professor_headers)
    other = await make_profile(session_factory, "second@school.edu", UserRole.PROFESSOR)
    await client.post(
        "/api/exams",
        json={**PAYLOAD, "title": "Final", "rubric": "- Depth"},
        headers=auth_headers(other),
    )

    response = await client.get("/api/exams/active")
    exam = response.json()["exam"]
    assert exam["title"] == "Final"
    assert exam["hasRubric"] is True
    assert "rubric" not in exam


def test_normalize_list_inputs():
    assert normalize_list(["a", " b ", ""]) == ["a", "b"]
    assert normalize_list("- one\n*   two\n\n") == ["one", "two"]
    assert normalize_list(None) == []
    assert normalize_list(42) == []
