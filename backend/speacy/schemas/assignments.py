"""Assignment schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from speacy.schemas.base import BaseSchema, CamelSchema


class QuestionPrompt(BaseSchema):
    """One curriculum node the examiner must probe."""

    prompt: str = ""


class AssignmentBase(BaseSchema):
    """Base assignment schema."""

    title: str = Field(..., min_length=1, max_length=255)
    topic: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    difficulty_level: str | None = Field(None, max_length=50)
    questions: list[QuestionPrompt] = Field(default_factory=list)
    learning_goals: list[str] = Field(default_factory=list)


class AssignmentCreate(AssignmentBase):
    """Schema for creating an assignment."""

    @field_validator("questions")
    @classmethod
    def drop_blank_questions(cls, value: list[QuestionPrompt]) -> list[QuestionPrompt]:
        return [q for q in value if q.prompt]


class AssignmentRead(AssignmentBase):
    """Schema for reading assignment data."""

    id: UUID
    created_by: UUID
    professor_email: str | None = None
    created_at: datetime
    updated_at: datetime


class AssignmentCreated(CamelSchema):
    """Response for a newly created assignment."""

    assignment_id: UUID
