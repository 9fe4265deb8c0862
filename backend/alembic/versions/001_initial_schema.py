"""Initial schema with all tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

This migration creates the complete Speacy database schema:
- Extensions: uuid-ossp
- Enums: user_role, assessment_status, event_direction
- Tables: profiles, auth_identities, assignments, exam_settings, assessments,
  messages, realtime_events, reports
- Triggers: updated_at auto-update function and triggers
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UPDATED_AT_TABLES = ["profiles", "assignments", "assessments"]


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name, postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=nullable
    )


def upgrade() -> None:
    # ==========================================================================
    # EXTENSIONS
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ==========================================================================
    # ENUMS
    # ==========================================================================
    user_role = postgresql.ENUM("student", "professor", name="user_role", create_type=False)
    assessment_status = postgresql.ENUM(
        "created", "grading", "graded", name="assessment_status", create_type=False
    )
    event_direction = postgresql.ENUM("client", "server", name="event_direction", create_type=False)
    for enum in (user_role, assessment_status, event_direction):
        enum.create(op.get_bind(), checkfirst=True)

    # ==========================================================================
    # PROFILES TABLE
    # ==========================================================================
    op.create_table(
        "profiles",
        _uuid_pk(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(120), server_default="", nullable=False),
        sa.Column("last_name", sa.String(120), server_default="", nullable=False),
        sa.Column("role", user_role, server_default="student", nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"])

    # ==========================================================================
    # AUTH_IDENTITIES TABLE
    # ==========================================================================
    op.create_table(
        "auth_identities",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_login_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
    )
    op.create_index("ix_auth_identities_user_id", "auth_identities", ["user_id"])

    # ==========================================================================
    # ASSIGNMENTS TABLE
    # ==========================================================================
    op.create_table(
        "assignments",
        _uuid_pk(),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("topic", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("difficulty_level", sa.String(50), nullable=True),
        sa.Column("questions", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("learning_goals", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_assignments_created_by_created_at", "assignments", ["created_by", "created_at"])

    # ==========================================================================
    # EXAM_SETTINGS TABLE (one row per owner)
    # ==========================================================================
    op.create_table(
        "exam_settings",
        _uuid_pk(),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("learning_goals", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("question_topics", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("rubric", sa.Text(), nullable=True),
        sa.Column("rubric_auto", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("owner_id", name="unique_exam_settings_owner"),
    )
    op.create_index("idx_exam_settings_active_updated", "exam_settings", ["is_active", "updated_at"])

    # ==========================================================================
    # ASSESSMENTS TABLE
    # ==========================================================================
    op.create_table(
        "assessments",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("assignment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("student_name", sa.String(255), nullable=False),
        sa.Column("topic", sa.String(255), nullable=False),
        sa.Column("session_metrics", postgresql.JSONB(), nullable=True),
        sa.Column("total_score", sa.Integer(), nullable=True),
        sa.Column("feedback", postgresql.JSONB(), nullable=True),
        sa.Column("status", assessment_status, server_default="created", nullable=False),
        sa.Column("recording_url", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        # Deleting an assignment unlinks, never deletes, its assessments
        sa.ForeignKeyConstraint(["assignment_id"], ["assignments.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_assessments_user_created_at", "assessments", ["user_id", "created_at"])
    op.create_index("idx_assessments_student_name", "assessments", ["student_name"])
    op.create_index("ix_assessments_assignment_id", "assessments", ["assignment_id"])

    # ==========================================================================
    # MESSAGES TABLE
    # ==========================================================================
    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("assessment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_messages_assessment_id", "messages", ["assessment_id"])

    # ==========================================================================
    # REALTIME_EVENTS TABLE (append-only)
    # ==========================================================================
    op.create_table(
        "realtime_events",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("session_id", sa.String(100), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("direction", event_direction, nullable=False),
        sa.Column("event", postgresql.JSONB(), nullable=False),
        sa.Column("ts", sa.BigInteger(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_realtime_events_session_ts", "realtime_events", ["session_id", "ts"])

    # ==========================================================================
    # REPORTS TABLE
    # ==========================================================================
    op.create_table(
        "reports",
        sa.Column("session_id", sa.String(100), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("student_name", sa.String(255), server_default="", nullable=False),
        sa.Column("student_email", sa.String(255), server_default="", nullable=False),
        sa.Column("transcript", postgresql.JSONB(), nullable=True),
        sa.Column("psychometrician", postgresql.JSONB(), nullable=True),
        sa.Column("generated_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("session_id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_reports_generated_at", "reports", ["generated_at"])

    # ==========================================================================
    # UPDATED_AT TRIGGER FUNCTION
    # ==========================================================================
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    for table in UPDATED_AT_TABLES:
        op.execute(f"""
            CREATE TRIGGER update_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
        """)


def downgrade() -> None:
    for table in UPDATED_AT_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}")

    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    # Drop tables in reverse dependency order
    op.drop_table("reports")
    op.drop_table("realtime_events")
    op.drop_table("messages")
    op.drop_table("assessments")
    op.drop_table("exam_settings")
    op.drop_table("assignments")
    op.drop_table("auth_identities")
    op.drop_table("profiles")

    op.execute("DROP TYPE IF EXISTS event_direction")
    op.execute("DROP TYPE IF EXISTS assessment_status")
    op.execute("DROP TYPE IF EXISTS user_role")
