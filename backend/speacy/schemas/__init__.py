"""Pydantic schemas for API request/response validation."""

from speacy.schemas.user import ProfileRead
from speacy.schemas.auth import (
    GoogleAuthRequest,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
)
from speacy.schemas.assignments import AssignmentCreate, AssignmentCreated, AssignmentRead
from speacy.schemas.exams import (
    ActiveExamEnvelope,
    ActiveExamRead,
    ExamEnvelope,
    ExamSettingsPayload,
    ExamSettingsRead,
)
from speacy.schemas.assessments import (
    AssessmentCreate,
    AssessmentCreated,
    AssessmentRead,
    AssessmentSummary,
    GradeRequest,
    GradeResponse,
    MessageIn,
)
from speacy.schemas.realtime import (
    EventLogRequest,
    LegacySessionRequest,
    ReportEnvelope,
    ReportRequest,
    SessionReport,
    TokenRequest,
    TranscriptLine,
)
from speacy.schemas.teacher import (
    ReportSummary,
    ReportSummaryList,
    TeacherReportDetail,
    TeacherVerifyRequest,
)
from speacy.schemas.dashboards import (
    ClassStats,
    ProfessorDashboard,
    ScoreStats,
    StudentDashboard,
    StudentDetail,
)

__all__ = [
    # Profile
    "ProfileRead",
    # Auth
    "GoogleAuthRequest",
    "LoginRequest",
    "RegisterRequest",
    "TokenResponse",
    # Assignments
    "AssignmentCreate",
    "AssignmentCreated",
    "AssignmentRead",
    # Exams
    "ActiveExamEnvelope",
    "ActiveExamRead",
    "ExamEnvelope",
    "ExamSettingsPayload",
    "ExamSettingsRead",
    # Assessments
    "AssessmentCreate",
    "AssessmentCreated",
    "AssessmentRead",
    "AssessmentSummary",
    "GradeRequest",
    "GradeResponse",
    "MessageIn",
    # Realtime
    "EventLogRequest",
    "LegacySessionRequest",
    "ReportEnvelope",
    "ReportRequest",
    "SessionReport",
    "TokenRequest",
    "TranscriptLine",
    # Teacher
    "ReportSummary",
    "ReportSummaryList",
    "TeacherReportDetail",
    "TeacherVerifyRequest",
    # Dashboards
    "ClassStats",
    "ProfessorDashboard",
    "ScoreStats",
    "StudentDashboard",
    "StudentDetail",
]
