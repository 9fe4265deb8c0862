"""Exam settings routes: one settings row per owner, plus the public active exam."""

from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import select

from speacy.api.deps import CurrentUser, DbSession, ProfessorUser
from speacy.db.models import ExamSettings
from speacy.schemas.exams import (
    ActiveExamEnvelope,
    ActiveExamRead,
    ExamEnvelope,
    ExamSettingsPayload,
    ExamSettingsRead,
)

router = APIRouter(prefix="/exams", tags=["exams"])


@router.get("", response_model=ExamEnvelope)
async def get_exam_settings(
    current_user: CurrentUser,
    db: DbSession,
) -> ExamEnvelope:
    """The caller's exam settings, or null when none were saved yet."""
    result = await db.execute(select(ExamSettings).where(ExamSettings.owner_id == current_user.id))
    exam = result.scalar_one_or_none()
    return ExamEnvelope(exam=ExamSettingsRead.model_validate(exam) if exam else None)


@router.post("", response_model=ExamEnvelope)
async def upsert_exam_settings(
    data: ExamSettingsPayload,
    current_user: ProfessorUser,
    db: DbSession,
) -> ExamEnvelope:
    """
    Create or replace the caller's exam settings.

    rubric_auto only survives when a rubric is present. Posting the same
    payload twice leaves one row with the same content.
    """
    values = {
        "title": data.title,
        "learning_goals": data.learning_goals,
        "question_topics": data.question_topics,
        "rubric": data.rubric,
        "rubric_auto": bool(data.rubric) and data.rubric_auto,
        "is_active": data.is_active,
        "updated_at": datetime.now(timezone.utc),
    }

    result = await db.execute(select(ExamSettings).where(ExamSettings.owner_id == current_user.id))
    exam = result.scalar_one_or_none()
    if exam is None:
        exam = ExamSettings(owner_id=current_user.id, **values)
        db.add(exam)
    else:
        for field, value in values.items():
            setattr(exam, field, value)

    await db.commit()
    return ExamEnvelope(exam=ExamSettingsRead.model_validate(exam))


@router.get("/active", response_model=ActiveExamEnvelope)
async def get_active_exam(db: DbSession) -> ActiveExamEnvelope:
    """Most recently updated active exam. Public."""
    result = await db.execute(
        select(ExamSettings)
        .where(ExamSettings.is_active.is_(True))
        .order_by(ExamSettings.updated_at.desc())
        .limit(1)
    )
    exam = result.scalar_one_or_none()
    if exam is None:
        return ActiveExamEnvelope(exam=None)

    return ActiveExamEnvelope(
        exam=ActiveExamRead(
            id=exam.id,
            title=exam.title or "",
            learning_goals=exam.learning_goals or [],
            question_topics=exam.question_topics or [],
            has_rubric=bool(exam.rubric),
            updated_at=exam.updated_at,
        )
    )
