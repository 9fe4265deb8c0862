"""Schemas for realtime session tokens, the event log and reports."""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from speacy.schemas.base import BaseSchema, CamelSchema


class TokenRequest(CamelSchema):
    mode: Literal["exam", "practice"] = "practice"
    exam_id: str | None = None


class LegacySessionRequest(BaseSchema):
    instructions: str | None = None


class EventLogRequest(CamelSchema):
    """
    One data-channel event mirrored by the session client.

    Fields are optional so a missing one is reported as 400, not 422.
    """

    session_id: str | None = None
    direction: Literal["client", "server"] | None = None
    event: dict[str, Any] | None = None
    ts: int | None = None


class ReportRequest(CamelSchema):
    session_id: str | None = None


class TranscriptLine(BaseSchema):
    role: Literal["student", "assistant"]
    text: str
    ts: int


class StudentInfo(BaseSchema):
    id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""


class SessionReport(CamelSchema):
    session_id: str
    generated_at: datetime
    student: StudentInfo | None = None
    transcript: list[TranscriptLine] = Field(default_factory=list)
    psychometrician: dict[str, Any]


class ReportEnvelope(BaseSchema):
    ok: bool = True
    report: SessionReport
