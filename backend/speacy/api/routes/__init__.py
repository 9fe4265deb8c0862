"""API routes package."""

from speacy.api.routes import (
    assessments,
    assignments,
    auth,
    dashboard,
    exams,
    grade,
    realtime,
    session,
    teacher,
)

__all__ = [
    "assessments",
    "assignments",
    "auth",
    "dashboard",
    "exams",
    "grade",
    "realtime",
    "session",
    "teacher",
]
