"""Exam settings schemas."""

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import field_validator

from speacy.schemas.base import CamelSchema

_BULLET_PREFIX = re.compile(r"^[-*\s]+")


def normalize_list(value: Any) -> list[str]:
    """
    Accept a list or newline-separated text and return clean entries.

    Text input may use "-" or "*" bullets; blank lines are dropped.
    Anything else normalizes to an empty list.
    """
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        lines = (_BULLET_PREFIX.sub("", line).strip() for line in value.splitlines())
        return [line for line in lines if line]
    return []


def normalize_text(value: Any) -> str | None:
    """Trim free text; empty or non-string input becomes None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


class ExamSettingsPayload(CamelSchema):
    """Upsert payload from the exam settings form."""

    title: str | None = None
    learning_goals: list[str] = []
    question_topics: list[str] = []
    rubric: str | None = None
    rubric_auto: bool = False
    is_active: bool = False

    @field_validator("learning_goals", "question_topics", mode="before")
    @classmethod
    def normalize_lists(cls, value: Any) -> list[str]:
        return normalize_list(value)

    @field_validator("rubric", mode="before")
    @classmethod
    def normalize_rubric(cls, value: Any) -> str | None:
        return normalize_text(value)

    @field_validator("title", mode="before")
    @classmethod
    def title_string_only(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("rubric_auto", "is_active", mode="before")
    @classmethod
    def coerce_flag(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else bool(value)


class ExamSettingsRead(CamelSchema):
    """Exam settings as returned to their owner."""

    id: UUID
    owner_id: UUID
    title: str = ""
    learning_goals: list[str] = []
    question_topics: list[str] = []
    rubric: str = ""
    rubric_auto: bool = False
    is_active: bool = False
    updated_at: datetime | None = None

    @field_validator("title", "rubric", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> str:
        return value or ""


class ActiveExamRead(CamelSchema):
    """Public view of the globally active exam."""

    id: UUID
    title: str = ""
    learning_goals: list[str] = []
    question_topics: list[str] = []
    has_rubric: bool = False
    updated_at: datetime | None = None


class ExamEnvelope(CamelSchema):
    """Response wrapper: {"ok": true, "exam": ... | null}."""

    ok: bool = True
    exam: ExamSettingsRead | None = None


class ActiveExamEnvelope(CamelSchema):
    ok: bool = True
    exam: ActiveExamRead | None = None
