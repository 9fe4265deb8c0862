"""
Password-gated report viewer, independent of profile sign-in.

Endpoints:
- POST /teacher/verify - Check the dashboard password, set the teacher_token cookie
- GET /teacher/reports - Report summaries and aggregate metrics
- GET /teacher/reports/{session_id} - One stored report
"""

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from speacy.api.deps import DbSession, cookie_options, create_teacher_token, require_teacher_session
from speacy.config import get_settings
from speacy.schemas.teacher import (
    ReportMetrics,
    ReportSummary,
    ReportSummaryList,
    TeacherReportDetail,
    TeacherStudent,
    TeacherVerifyRequest,
)
from speacy.services.reports import report_service, sanitize_session_id, split_name

router = APIRouter(prefix="/teacher", tags=["teacher"])
settings = get_settings()
logger = logging.getLogger(__name__)


@router.post("/verify")
async def verify_password(data: TeacherVerifyRequest, response: Response) -> dict[str, bool]:
    """Unlock the dashboard for this browser."""
    expected = settings.teacher_dashboard_password
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Teacher dashboard is not configured",
        )

    if not hmac.compare_digest(data.password.encode("utf-8"), expected.encode("utf-8")):
        logger.info("Rejected teacher dashboard password")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Incorrect password")

    response.set_cookie(
        key="teacher_token",
        value=create_teacher_token(),
        max_age=settings.teacher_token_expire_minutes * 60,
        **cookie_options(),
    )
    return {"ok": True}


@router.get(
    "/reports",
    response_model=ReportSummaryList,
    dependencies=[Depends(require_teacher_session)],
)
async def list_reports(db: DbSession) -> ReportSummaryList:
    """Newest first, with mastery level and mean goal confidence."""
    summaries = await report_service.list_summaries(db)
    return ReportSummaryList(
        reports=[ReportSummary(**s) for s in summaries],
        metrics=ReportMetrics(**report_service.summary_metrics(summaries)),
    )


@router.get(
    "/reports/{session_id}",
    response_model=TeacherReportDetail,
    dependencies=[Depends(require_teacher_session)],
)
async def read_report(session_id: str, db: DbSession) -> TeacherReportDetail:
    safe_id = sanitize_session_id(session_id)
    if not safe_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid sessionId")

    report = await report_service.read(db, safe_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")

    first_name, last_name = split_name(report.student_name)
    return TeacherReportDetail(
        session_id=report.session_id,
        generated_at=report.generated_at,
        student=TeacherStudent(
            first_name=first_name,
            last_name=last_name,
            email=report.student_email or "",
        ),
        transcript=report.transcript,
        psychometrician=report.psychometrician,
    )
