"""Assessment, transcript message and grading schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field, computed_field

from speacy.schemas.base import BaseSchema, CamelSchema

AssessmentStatusType = Literal["created", "grading", "graded"]


class AssessmentCreate(CamelSchema):
    """Start of a session: which topic, and optionally which assignment."""

    topic: str = Field("Lists and Tuples", min_length=1, max_length=255)
    assignment_id: UUID | None = None


class AssessmentCreated(CamelSchema):
    assessment_id: UUID


class MessageIn(BaseSchema):
    """A transcript turn as captured by the session client."""

    role: str = Field(..., min_length=1, max_length=20)
    content: str = ""
    metadata: dict[str, Any] | None = None


class MessageRead(BaseSchema):
    role: str
    content: str
    metadata: dict[str, Any] | None = Field(None, validation_alias="metadata_json")
    created_at: datetime


class GradeRequest(CamelSchema):
    """Transcript and metrics posted when a session ends."""

    assessment_id: UUID
    messages: list[MessageIn] = Field(default_factory=list)
    session_metrics: dict[str, Any] | None = None
    recording_url: str | None = None


class GradeResponse(BaseSchema):
    success: bool
    grade: dict[str, Any]


def grade_label(status: str, score: int | None) -> str:
    """Band shown next to a score on the results page."""
    if status != "graded" or score is None:
        return "Pending"
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Great Job"
    if score >= 70:
        return "Good"
    return "Needs Practice"


class AssessmentSummary(BaseSchema):
    """Assessment row as listed on dashboards."""

    id: UUID
    assignment_id: UUID | None
    student_name: str
    topic: str
    total_score: int | None
    status: AssessmentStatusType
    created_at: datetime


class AssessmentRead(AssessmentSummary):
    """Full result view of one assessment."""

    user_id: UUID
    session_metrics: dict[str, Any] | None
    feedback: dict[str, Any] | None
    recording_url: str | None
    updated_at: datetime
    messages: list[MessageRead] = Field(default_factory=list)

    @computed_field
    @property
    def grade_label(self) -> str:
        return grade_label(self.status, self.total_score)
