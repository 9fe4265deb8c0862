"""Tests for the student and professor dashboards."""

from httpx import AsyncClient

from speacy.db.models import Assessment, AssessmentStatus, UserRole
from speacy.services.dashboards import class_stats, score_stats

from conftest import auth_headers, make_profile


def make_assessment(user_id, email: str, topic: str, status: AssessmentStatus, score: int | None = None):
    return Assessment(
        user_id=user_id,
        student_name=email,
        topic=topic,
        status=status.value,
        total_score=score,
    )


async def test_student_dashboard(client: AsyncClient, student, student_headers, professor_headers, db):
    await client.post(
        "/api/assignments",
        json={"title": "Lists quiz", "topic": "Lists"},
        headers=professor_headers,
    )
    db.add_all([
        make_assessment(student.id, student.email, "Lists", AssessmentStatus.GRADED, 80),
        make_assessment(student.id, student.email, "Tuples", AssessmentStatus.GRADED, 91),
        make_assessment(student.id, student.email, "Dicts", AssessmentStatus.GRADING),
    ])
    await db.commit()

    response = await client.get("/api/dashboard/student", headers=student_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "ada@school.edu"
    assert [a["title"] for a in body["available_assignments"]] == ["Lists quiz"]
    assert body["available_assignments"][0]["professor_email"] == "prof@school.edu"
    assert len(body["assessments"]) == 3
    assert body["stats"] == {"total": 3, "graded": 2, "average_score": 86}


async def test_student_dashboard_only_shows_own_assessments(
    client: AsyncClient, student_headers, session_factory, db
):
    other = await make_profile(session_factory, "bob@school.edu")
    db.add(make_assessment(other.id, other.email, "Lists", AssessmentStatus.GRADED, 50))
    await db.commit()

    body = (await client.get("/api/dashboard/student", headers=student_headers)).json()
    assert body["assessments"] == []
    assert body["stats"] == {"total": 0, "graded": 0, "average_score": 0}


async def test_professor_dashboard(
    client: AsyncClient, student, professor_headers, session_factory, db
):
    other_professor = await make_profile(session_factory, "other@school.edu", UserRole.PROFESSOR)
    await client.post("/api/assignments", json={"title": "Mine", "topic": "Lists"}, headers=professor_headers)
    await client.post(
        "/api/assignments", json={"title": "Theirs", "topic": "Sets"}, headers=auth_headers(other_professor)
    )
    db.add_all([
        make_assessment(student.id, student.email, "Lists", AssessmentStatus.GRADED, 70),
        make_assessment(student.id, student.email, "Lists", AssessmentStatus.GRADED, 90),
    ])
    await db.commit()

    response = await client.get("/api/dashboard/professor", headers=professor_headers)
    assert response.status_code == 200
    body = response.json()
    assert [a["title"] for a in body["assignments"]] == ["Mine"]
    assert body["class_stats"]["total"] == 2
    assert body["class_stats"]["average_score"] == 80
    assert body["class_stats"]["distinct_students"] == 1
    assert body["class_stats"]["latest_topic"] == "Lists"


async def test_professor_views_are_gated(client: AsyncClient, student_headers):
    assert (await client.get("/api/dashboard/professor", headers=student_headers)).status_code == 403
    assert (
        await client.get("/api/dashboard/professor/students/ada@school.edu", headers=student_headers)
    ).status_code == 403


async def test_student_detail_by_email(
    client: AsyncClient, student, professor_headers, db
):
    db.add_all([
        make_assessment(student.id, student.email, "Lists", AssessmentStatus.GRADED, 64),
        make_assessment(student.id, "someone@else.edu", "Lists", AssessmentStatus.GRADED, 99),
    ])
    await db.commit()

    response = await client.get(
        "/api/dashboard/professor/students/ada@school.edu", headers=professor_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["student_email"] == "ada@school.edu"
    assert len(body["assessments"]) == 1
    assert body["stats"]["average_score"] == 64


def test_score_stats_ignores_ungraded():
    rows = [
        Assessment(status="graded", total_score=75),
        Assessment(status="graded", total_score=None),
        Assessment(status="grading", total_score=100),
        Assessment(status="created", total_score=None),
    ]
    stats = score_stats(rows)
    assert (stats.total, stats.graded, stats.average_score) == (4, 1, 75)


def test_class_stats_of_empty_class():
    stats = class_stats([])
    assert stats.total == 0
    assert stats.distinct_students == 0
    assert stats.latest_topic is None
