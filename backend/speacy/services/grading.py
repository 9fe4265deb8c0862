"""Assessment lifecycle and transcript grading."""

import json
import logging
import math
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from speacy.config import get_settings
from speacy.db.models import ASSESSMENT_STATUS_ORDER, Assessment, AssessmentStatus, Message
from speacy.schemas.assessments import GradeRequest
from speacy.services.errors import InvalidStatusTransition, LLMNotConfiguredError
from speacy.services.openai_client import openai_service
from speacy.services.prompts import build_grader_input, build_grader_prompt

logger = logging.getLogger(__name__)
settings = get_settings()

SCORE_FIELDS = ("score", "fluency_score", "pacing_score")


def advance_status(assessment: Assessment, new_status: AssessmentStatus) -> None:
    """
    Move an assessment forward in created -> grading -> graded.

    Raises:
        InvalidStatusTransition: for a backward or repeated move
    """
    current = AssessmentStatus(assessment.status)
    if ASSESSMENT_STATUS_ORDER.index(new_status.value) <= ASSESSMENT_STATUS_ORDER.index(current.value):
        raise InvalidStatusTransition(current.value, new_status.value)
    assessment.status = new_status.value


def fallback_grade(raw_text: str) -> dict[str, Any]:
    """Grade returned when the grader's output is not a JSON object."""
    return {
        "score": None,
        "fluency_score": None,
        "pacing_score": None,
        "feedback": "The grader returned a response that could not be read. Your transcript was saved.",
        "strengths": [],
        "weaknesses": [],
        "nuances": [],
        "raw": raw_text,
    }


def parse_grade(raw_text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw_text or "{}")
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def coerce_score(value: Any) -> int | None:
    """Clamp a grader score to 0-100. Non-numeric, NaN and infinite scores give None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        return max(0, min(100, round(value)))
    except (ValueError, OverflowError):
        return None


class GradingService:
    """Persists a finished session's transcript and grades it once."""

    async def record_transcript(
        self,
        db: AsyncSession,
        assessment: Assessment,
        request: GradeRequest,
    ) -> None:
        """Store the messages and metrics, then move the assessment to grading."""
        for message in request.messages:
            db.add(
                Message(
                    assessment_id=assessment.id,
                    role=message.role,
                    content=message.content,
                    metadata_json=message.metadata,
                )
            )
        assessment.session_metrics = request.session_metrics
        advance_status(assessment, AssessmentStatus.GRADING)
        await db.flush()

    async def grade(
        self,
        db: AsyncSession,
        assessment: Assessment,
        request: GradeRequest,
    ) -> tuple[bool, dict[str, Any]]:
        """
        Record the transcript, call the grader and write the result back.

        Returns:
            (success, grade). On unreadable grader output success is False,
            the grade is a fallback and the assessment stays in grading.

        Raises:
            InvalidStatusTransition: if the assessment was already graded
            LLMNotConfiguredError: raised before anything is written
            UpstreamServiceError, openai.OpenAIError: grader call failed
        """
        if not openai_service.configured:
            raise LLMNotConfiguredError()

        await self.record_transcript(db, assessment, request)

        messages = [m.model_dump() for m in request.messages]
        raw_text = await openai_service.chat_json(
            model=settings.grader_model,
            system=build_grader_prompt(),
            user=build_grader_input(messages, request.session_metrics),
        )

        grade = parse_grade(raw_text)
        if grade is None:
            logger.warning("Grader returned malformed JSON for assessment %s", assessment.id)
            return False, fallback_grade(raw_text)

        # NaN and Infinity parse as JSON numbers but cannot be stored or returned
        for key in SCORE_FIELDS:
            if key in grade:
                grade[key] = coerce_score(grade[key])

        assessment.total_score = grade.get("score")
        assessment.feedback = grade
        if request.recording_url:
            assessment.recording_url = request.recording_url
        advance_status(assessment, AssessmentStatus.GRADED)
        await db.flush()

        logger.info("Graded assessment %s: %s", assessment.id, assessment.total_score)
        return True, grade


# Singleton instance
grading_service = GradingService()
