"""
Realtime session routes.

Endpoints:
- POST /realtime/token - Mint an ephemeral client secret for a voice session
- POST /realtime/events - Append one data-channel event to the log
- POST /realtime/report - Rebuild the transcript and generate the psychometrician report
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from openai import OpenAIError

from speacy.api.deps import DbSession, OptionalUser
from speacy.config import sanitize_error
from speacy.schemas.realtime import (
    EventLogRequest,
    ReportEnvelope,
    ReportRequest,
    SessionReport,
    StudentInfo,
    TokenRequest,
)
from speacy.services.errors import LLMNotConfiguredError, UpstreamServiceError
from speacy.services.realtime_sessions import realtime_session_service
from speacy.services.reports import report_service

router = APIRouter(prefix="/realtime", tags=["realtime"])
logger = logging.getLogger(__name__)


@router.post("/token")
async def mint_token(
    db: DbSession,
    data: TokenRequest | None = None,
) -> dict[str, Any]:
    """
    Return the upstream client-secret payload for a new session.

    Exam mode without an active exam silently becomes practice mode.
    """
    data = data or TokenRequest()
    try:
        payload = await realtime_session_service.mint_client_secret(db, data.mode, data.exam_id)
    except LLMNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except UpstreamServiceError as e:
        logger.error("Client secret request failed (%s): %s", e.status_code, e.details)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to create client secret", "details": e.details},
        )
    return payload


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def log_event(
    data: EventLogRequest,
    current_user: OptionalUser,
    db: DbSession,
) -> dict[str, bool]:
    """Append-only event log. Anonymous sessions are logged without a user."""
    if not data.session_id or not data.direction or data.event is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="sessionId, direction and event are required",
        )

    await report_service.log_event(
        db,
        session_id=data.session_id,
        direction=data.direction,
        event=data.event,
        ts=data.ts,
        user_id=current_user.id if current_user else None,
    )
    await db.commit()
    return {"ok": True}


@router.post("/report", response_model=ReportEnvelope)
async def generate_report(
    data: ReportRequest,
    current_user: OptionalUser,
    db: DbSession,
) -> ReportEnvelope:
    """
    Generate and store the psychometrician report for a session.

    Repeat calls overwrite the stored report for that session.
    """
    if not data.session_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing sessionId")

    try:
        report = await report_service.generate(db, data.session_id, current_user)
    except LLMNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except (OpenAIError, UpstreamServiceError) as e:
        logger.exception("Report generation failed for session %s", data.session_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=sanitize_error(e, generic_message="Failed to generate report."),
        )
    await db.commit()

    student = None
    if current_user is not None:
        student = StudentInfo(
            id=str(current_user.id),
            email=current_user.email,
            first_name=current_user.first_name,
            last_name=current_user.last_name,
        )

    return ReportEnvelope(
        report=SessionReport(
            session_id=report.session_id,
            generated_at=report.generated_at,
            student=student,
            transcript=report.transcript or [],
            psychometrician=report.psychometrician or {},
        )
    )
