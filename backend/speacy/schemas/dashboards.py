"""Dashboard response schemas."""

from speacy.schemas.assessments import AssessmentSummary
from speacy.schemas.assignments import AssignmentRead
from speacy.schemas.base import BaseSchema


class ScoreStats(BaseSchema):
    """Counts and the mean score over graded assessments."""

    total: int = 0
    graded: int = 0
    average_score: int = 0


class StudentDashboard(BaseSchema):
    email: str
    available_assignments: list[AssignmentRead]
    assessments: list[AssessmentSummary]
    stats: ScoreStats


class ClassStats(ScoreStats):
    distinct_students: int = 0
    latest_topic: str | None = None


class ProfessorDashboard(BaseSchema):
    email: str
    assignments: list[AssignmentRead]
    class_stats: ClassStats


class StudentDetail(BaseSchema):
    student_email: str
    assessments: list[AssessmentSummary]
    stats: ScoreStats
