"""Schemas for the password-gated teacher report viewer."""

from datetime import datetime
from typing import Any

from speacy.schemas.base import BaseSchema, CamelSchema


class TeacherVerifyRequest(BaseSchema):
    password: str = ""


class ReportSummary(CamelSchema):
    session_id: str
    student_name: str = ""
    student_email: str = ""
    generated_at: datetime | None = None
    mastery_level: str = ""
    confidence: float = 0.0


class ReportMetrics(CamelSchema):
    total: int = 0
    avg_confidence: float = 0.0
    by_level: dict[str, int] = {}


class ReportSummaryList(CamelSchema):
    reports: list[ReportSummary]
    metrics: ReportMetrics


class TeacherStudent(CamelSchema):
    first_name: str = ""
    last_name: str = ""
    email: str = ""


class TeacherReportDetail(CamelSchema):
    session_id: str
    generated_at: datetime | None = None
    student: TeacherStudent
    transcript: list[dict[str, Any]] | None = None
    psychometrician: dict[str, Any] | None = None
