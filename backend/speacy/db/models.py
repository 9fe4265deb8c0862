"""
SQLAlchemy 2.0 Models for Speacy.

Uses modern declarative syntax with Mapped[] type annotations.
Column types stay portable (Uuid, JSONType, timezone-aware timestamps)
so the same models run on Postgres and on SQLite in tests.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from speacy.db.base import Base, JSONType


# =============================================================================
# ENUMS
# =============================================================================


class UserRole(str, PyEnum):
    """Role stored on a profile. Assigned at signup, otherwise unmanaged."""

    STUDENT = "student"
    PROFESSOR = "professor"


class AssessmentStatus(str, PyEnum):
    """Assessment lifecycle. Only ever moves forward."""

    CREATED = "created"
    GRADING = "grading"
    GRADED = "graded"


class EventDirection(str, PyEnum):
    """Who emitted a realtime data-channel event."""

    CLIENT = "client"
    SERVER = "server"


ASSESSMENT_STATUS_ORDER = [s.value for s in AssessmentStatus]

# BIGINT autoincrement is not supported by SQLite
_BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


# =============================================================================
# MODELS
# =============================================================================


class Profile(Base):
    """
    User account with its role.

    Users can sign in with email/password or through linked auth_identities
    (Google). The role branches dashboard access.
    """

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(Uuid(), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    role: Mapped[str] = mapped_column(
        Enum("student", "professor", name="user_role"),
        nullable=False,
        default=UserRole.STUDENT.value,
    )
    password_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    auth_identities: Mapped[list["AuthIdentity"]] = relationship(
        "AuthIdentity", back_populates="profile", cascade="all, delete-orphan"
    )
    assignments: Mapped[list["Assignment"]] = relationship(
        "Assignment", back_populates="creator", passive_deletes=True
    )
    exam_settings: Mapped[Optional["ExamSettings"]] = relationship(
        "ExamSettings", back_populates="owner", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_professor(self) -> bool:
        return self.role == UserRole.PROFESSOR.value


class AuthIdentity(Base):
    """
    OAuth provider identity linked to a profile.

    Does NOT store OAuth access/refresh tokens - we only verify id_tokens at login.
    """

    __tablename__ = "auth_identities"
    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)  # 'google'
    provider_user_id: Mapped[str] = mapped_column(String(255), nullable=False)  # Provider's 'sub' claim
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_login_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="auth_identities")


class Assignment(Base):
    """
    Oral exam assignment created by a professor.

    Deleting an assignment unlinks its assessments rather than deleting them.
    """

    __tablename__ = "assignments"
    __table_args__ = (Index("idx_assignments_created_by_created_at", "created_by", "created_at"),)

    id: Mapped[UUID] = mapped_column(Uuid(), primary_key=True, default=uuid4)
    created_by: Mapped[UUID] = mapped_column(
        Uuid(), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    difficulty_level: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    questions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    learning_goals: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    creator: Mapped["Profile"] = relationship("Profile", back_populates="assignments")
    assessments: Mapped[list["Assessment"]] = relationship(
        "Assessment", back_populates="assignment", passive_deletes=True
    )


class ExamSettings(Base):
    """Instructor exam configuration. One row per owner."""

    __tablename__ = "exam_settings"
    __table_args__ = (
        UniqueConstraint("owner_id", name="unique_exam_settings_owner"),
        Index("idx_exam_settings_active_updated", "is_active", "updated_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(), primary_key=True, default=uuid4)
    owner_id: Mapped[UUID] = mapped_column(
        Uuid(), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    learning_goals: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    question_topics: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    rubric: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rubric_auto: Mapped[bool] = mapped_column(nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    owner: Mapped["Profile"] = relationship("Profile", back_populates="exam_settings")


class Assessment(Base):
    """One student's oral-exam attempt and its resulting grade."""

    __tablename__ = "assessments"
    __table_args__ = (
        Index("idx_assessments_user_created_at", "user_id", "created_at"),
        Index("idx_assessments_student_name", "student_name"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    assignment_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(), ForeignKey("assignments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Holds the student's email; the professor views look students up by it
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    session_metrics: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    total_score: Mapped[Optional[int]] = mapped_column(nullable=True)
    feedback: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*ASSESSMENT_STATUS_ORDER, name="assessment_status"),
        nullable=False,
        default=AssessmentStatus.CREATED.value,
    )
    recording_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    assignment: Mapped[Optional["Assignment"]] = relationship("Assignment", back_populates="assessments")
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="assessment", cascade="all, delete-orphan", order_by="Message.id"
    )


class Message(Base):
    """One transcript turn of an assessment, with timing metadata."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    assessment_id: Mapped[UUID] = mapped_column(
        Uuid(), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # 'user' or 'assistant'
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    assessment: Mapped["Assessment"] = relationship("Assessment", back_populates="messages")


class RealtimeEvent(Base):
    """
    Append-only log of realtime data-channel events.

    Used after the fact to reconstruct a session transcript.
    """

    __tablename__ = "realtime_events"
    __table_args__ = (Index("idx_realtime_events_session_ts", "session_id", "ts"),)

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    direction: Mapped[str] = mapped_column(
        Enum("client", "server", name="event_direction"), nullable=False
    )
    event: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    ts: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch milliseconds
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Report(Base):
    """Denormalized psychometrician report snapshot, one per session."""

    __tablename__ = "reports"
    __table_args__ = (Index("idx_reports_generated_at", "generated_at"),)

    session_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    student_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    student_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    transcript: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSONType, nullable=True)
    psychometrician: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
