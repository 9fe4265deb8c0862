"""Assessment routes: start a session, then read back its result."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from speacy.api.deps import CurrentUser, DbSession
from speacy.db.models import Assessment, Assignment, AssessmentStatus
from speacy.schemas.assessments import AssessmentCreate, AssessmentCreated, AssessmentRead

router = APIRouter(tags=["assessments"])


@router.post("/assessment", response_model=AssessmentCreated, status_code=status.HTTP_201_CREATED)
async def create_assessment(
    data: AssessmentCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> AssessmentCreated:
    """Open an assessment for the caller; the session client grades it later."""
    if data.assignment_id is not None:
        assignment = await db.get(Assignment, data.assignment_id)
        if assignment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")

    assessment = Assessment(
        user_id=current_user.id,
        assignment_id=data.assignment_id,
        student_name=current_user.email,
        topic=data.topic,
        status=AssessmentStatus.CREATED.value,
    )
    db.add(assessment)
    await db.commit()
    return AssessmentCreated(assessment_id=assessment.id)


@router.get("/assessments/{assessment_id}", response_model=AssessmentRead)
async def get_assessment(
    assessment_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> AssessmentRead:
    """
    Result page data: score band, parsed feedback and the transcript.

    Visible to the student who took it and to professors.
    """
    result = await db.execute(
        select(Assessment)
        .options(selectinload(Assessment.messages))
        .where(Assessment.id == assessment_id)
    )
    assessment = result.scalar_one_or_none()

    # 404 for both missing and not visible
    if assessment is None or (
        assessment.user_id != current_user.id and not current_user.is_professor
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")

    return AssessmentRead.model_validate(assessment)
