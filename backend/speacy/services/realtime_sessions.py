"""Ephemeral realtime credentials and the exam context they are minted with."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from openai import OpenAIError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from speacy.config import get_settings
from speacy.db.models import ExamSettings
from speacy.services.errors import LLMNotConfiguredError, UpstreamServiceError
from speacy.services.openai_client import openai_service
from speacy.services.prompts import (
    DEFAULT_EXAM,
    ExamConfig,
    SessionMode,
    build_examiner_prompt,
    build_realtime_system_prompt,
    build_rubric_prompt,
    fallback_rubric,
)

logger = logging.getLogger(__name__)
settings = get_settings()

SESSION_COMPLETE_TOOL = {
    "type": "function",
    "name": "session_complete",
    "description": "Call when the session is complete so the system can generate the psychometrician evaluation.",
    "parameters": {
        "type": "object",
        "additionalProperties": False,
        "properties": {"reason": {"type": "string"}},
        "required": ["reason"],
    },
}

END_ASSESSMENT_TOOL = {
    "type": "function",
    "name": "end_assessment",
    "description": "Ends the oral exam assessment after completing all curriculum nodes.",
}

TRANSFER_AGENTS_TOOL = {
    "type": "function",
    "name": "transferAgents",
    "description": (
        "Transfers the student to a specialized Tutor agent when they struggle heavily or ask "
        "for help. Tell the student you are transferring them before calling this."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "destination_agent": {
                "type": "string",
                "enum": ["tutor_agent", "examiner_agent"],
                "description": "Use 'tutor_agent' when the student needs help, 'examiner_agent' to return to the exam.",
            }
        },
    },
}


def _parse_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


class RealtimeSessionService:
    """Mints client secrets for exam and practice sessions."""

    async def fetch_active_exam(self, db: AsyncSession, exam_id: str | None) -> ExamSettings | None:
        """The requested active exam, or the most recently updated active one."""
        query = select(ExamSettings).where(ExamSettings.is_active.is_(True))
        if exam_id:
            exam_uuid = _parse_uuid(exam_id)
            if exam_uuid is None:
                return None
            query = query.where(ExamSettings.id == exam_uuid)
        else:
            query = query.order_by(ExamSettings.updated_at.desc())
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def generate_rubric(self, exam: ExamConfig) -> str:
        """Ask the rubric model for a rubric; any failure yields the fallback."""
        try:
            text = await openai_service.respond(
                model=settings.rubric_model,
                prompt=build_rubric_prompt(exam),
                max_output_tokens=settings.rubric_max_output_tokens,
            )
        except (OpenAIError, UpstreamServiceError) as e:
            logger.warning("Rubric generation failed for exam %s: %s", exam.id, str(e))
            return fallback_rubric(exam)
        return text.strip() or fallback_rubric(exam)

    async def resolve_exam(
        self,
        db: AsyncSession,
        mode: SessionMode,
        exam_id: str | None,
    ) -> tuple[SessionMode, ExamConfig, str]:
        """
        Pick the exam and rubric a session runs with.

        Exam mode without an active exam falls back to practice on the
        built-in exam. An active exam with no rubric gets one generated and
        stored with rubric_auto set. The rubric is committed
        right away.
        """
        row = None
        if mode == "exam":
            row = await self.fetch_active_exam(db, exam_id)
            if row is None:
                logger.info("No active exam found, falling back to practice mode")
                mode = "practice"

        if row is None:
            return mode, DEFAULT_EXAM, DEFAULT_EXAM.rubric or fallback_rubric(DEFAULT_EXAM)

        exam = ExamConfig(
            id=str(row.id),
            title=row.title or "Untitled exam",
            learning_goals=row.learning_goals or [],
            question_topics=row.question_topics or [],
            rubric=row.rubric,
        )
        if exam.rubric:
            return mode, exam, exam.rubric

        rubric = await self.generate_rubric(exam)
        row.rubric = rubric
        row.rubric_auto = True
        row.updated_at = datetime.now(timezone.utc)
        # Keep the rubric even if the client-secret request fails afterwards
        await db.commit()
        exam.rubric = rubric
        return mode, exam, rubric

    def client_secret_body(self, instructions: str) -> dict[str, Any]:
        return {
            "expires_after": {
                "anchor": "created_at",
                "seconds": settings.client_secret_ttl_seconds,
            },
            "session": {
                "type": "realtime",
                "model": settings.realtime_model,
                "instructions": instructions,
                "output_modalities": ["audio"],
                "tool_choice": "auto",
                "tools": [SESSION_COMPLETE_TOOL],
                "audio": {
                    "input": {
                        "transcription": {
                            "model": settings.realtime_transcription_model,
                            "language": "en",
                        },
                        "turn_detection": {
                            "type": "server_vad",
                            "create_response": True,
                            "interrupt_response": True,
                            "silence_duration_ms": 1200,
                            "prefix_padding_ms": 500,
                        },
                    },
                    "output": {"voice": settings.realtime_voice},
                },
            },
        }

    async def mint_client_secret(
        self,
        db: AsyncSession,
        mode: SessionMode = "practice",
        exam_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Build the session instructions and request an ephemeral client secret.

        Returns the upstream payload unchanged.

        Raises:
            LLMNotConfiguredError: no OpenAI key
            UpstreamServiceError: OpenAI rejected the request
        """
        if not openai_service.configured:
            raise LLMNotConfiguredError()

        mode, exam, rubric = await self.resolve_exam(db, mode, exam_id)
        instructions = build_realtime_system_prompt(mode, exam, rubric)
        payload = await openai_service.post_realtime(
            "/realtime/client_secrets", self.client_secret_body(instructions)
        )
        logger.info("Minted realtime client secret (mode=%s, exam=%s)", mode, exam.id or "default")
        return payload

    async def create_legacy_session(self, instructions: str | None = None) -> dict[str, Any]:
        """Session-creation proxy used by assignment sessions."""
        body = {
            "model": settings.legacy_realtime_model,
            "voice": settings.legacy_realtime_voice,
            "instructions": instructions or build_examiner_prompt(topic="General Knowledge"),
            "turn_detection": {
                "type": "server_vad",
                "threshold": 0.9,
                "prefix_padding_ms": 300,
                "silence_duration_ms": 1000,
                "create_response": True,
            },
            "tools": [END_ASSESSMENT_TOOL, TRANSFER_AGENTS_TOOL],
            "tool_choice": "auto",
        }
        return await openai_service.post_realtime("/realtime/sessions", body)


# Singleton instance
realtime_session_service = RealtimeSessionService()
