"""Read-only aggregation behind the student and professor dashboards."""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from speacy.db.models import Assessment, Assignment, AssessmentStatus, Profile
from speacy.schemas.assignments import AssignmentRead
from speacy.schemas.dashboards import ClassStats, ScoreStats


def score_stats(assessments: Iterable[Assessment]) -> ScoreStats:
    """Taken count, graded count and the rounded mean of graded scores."""
    rows = list(assessments)
    scores = [
        a.total_score
        for a in rows
        if a.status == AssessmentStatus.GRADED.value and a.total_score is not None
    ]
    return ScoreStats(
        total=len(rows),
        graded=len(scores),
        average_score=round(sum(scores) / len(scores)) if scores else 0,
    )


def class_stats(assessments: list[Assessment]) -> ClassStats:
    """Class-wide stats. Expects assessments newest first."""
    base = score_stats(assessments)
    return ClassStats(
        **base.model_dump(),
        distinct_students=len({a.student_name for a in assessments}),
        latest_topic=assessments[0].topic if assessments else None,
    )


async def list_assignments(db: AsyncSession, created_by: UUID | None = None) -> list[AssignmentRead]:
    """Assignments newest first, each with its creator's email."""
    query = (
        select(Assignment, Profile.email)
        .join(Profile, Profile.id == Assignment.created_by)
        .order_by(Assignment.created_at.desc())
    )
    if created_by is not None:
        query = query.where(Assignment.created_by == created_by)

    result = await db.execute(query)
    items = []
    for assignment, email in result.all():
        item = AssignmentRead.model_validate(assignment)
        item.professor_email = email
        items.append(item)
    return items


async def list_assessments(
    db: AsyncSession,
    *,
    user_id: UUID | None = None,
    student_email: str | None = None,
) -> list[Assessment]:
    query = select(Assessment).order_by(Assessment.created_at.desc())
    if user_id is not None:
        query = query.where(Assessment.user_id == user_id)
    if student_email is not None:
        query = query.where(Assessment.student_name == student_email)
    result = await db.execute(query)
    return list(result.scalars().all())
