"""Grading route: persist a finished session's transcript and grade it."""

import logging

from fastapi import APIRouter, HTTPException, status
from openai import OpenAIError

from speacy.api.deps import CurrentUser, DbSession, get_owned_resource_or_404
from speacy.config import sanitize_error
from speacy.db.models import Assessment
from speacy.schemas.assessments import GradeRequest, GradeResponse
from speacy.services.errors import InvalidStatusTransition, LLMNotConfiguredError, UpstreamServiceError
from speacy.services.grading import grading_service

router = APIRouter(prefix="/grade", tags=["grading"])
logger = logging.getLogger(__name__)


@router.post("", response_model=GradeResponse)
async def grade_assessment(
    data: GradeRequest,
    current_user: CurrentUser,
    db: DbSession,
) -> GradeResponse:
    """
    Store the transcript and metrics, call the grader once, write the grade back.

    Errors:
    - 400: no messages
    - 409: assessment already graded or grading
    - 500: OpenAI key missing
    - 502: grader call failed; the assessment stays in grading
    """
    if not data.messages:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No messages to grade")

    assessment = await get_owned_resource_or_404(db, Assessment, data.assessment_id, current_user.id)

    try:
        success, grade = await grading_service.grade(db, assessment, data)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except LLMNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except (OpenAIError, UpstreamServiceError) as e:
        # Keep the transcript and the grading status; there is no compensating transition
        await db.commit()
        logger.error("Grading failed for assessment %s: %s", assessment.id, str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=sanitize_error(e, generic_message="The grader could not be reached."),
        )

    await db.commit()
    return GradeResponse(success=success, grade=grade)
