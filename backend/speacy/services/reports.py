"""Psychometrician reports rebuilt from the realtime event log."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from speacy.config import get_settings
from speacy.db.models import EventDirection, ExamSettings, Profile, RealtimeEvent, Report
from speacy.realtime.events import final_utterance
from speacy.services.openai_client import openai_service
from speacy.services.prompts import DEFAULT_EXAM, build_psychometrician_prompt

logger = logging.getLogger(__name__)
settings = get_settings()

_UNSAFE_SESSION_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def sanitize_session_id(value: str) -> str:
    return _UNSAFE_SESSION_CHARS.sub("", value or "")


def extract_transcript(events: list[tuple[int, dict[str, Any]]]) -> list[dict[str, Any]]:
    """
    Turn (ts, event) pairs into transcript lines.

    Lines are sorted by ts and a line identical to the one before it
    (same role and text) is dropped.
    """
    lines = []
    for ts, event in events:
        utterance = final_utterance(event or {})
        if utterance is None:
            continue
        role, text = utterance
        lines.append({"role": role, "text": text, "ts": ts})

    lines.sort(key=lambda line: line["ts"])

    deduped: list[dict[str, Any]] = []
    for line in lines:
        if deduped and deduped[-1]["role"] == line["role"] and deduped[-1]["text"] == line["text"]:
            continue
        deduped.append(line)
    return deduped


def safe_parse_json(text: str) -> dict[str, Any] | None:
    """Parse the whole text as JSON, then fall back to its first {...} span."""
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def default_report(summary: str = "") -> dict[str, Any]:
    """Empty psychometrician report used when the model output is unreadable."""
    return {
        "denoised_transcript": {"claims": [], "code_traces": []},
        "goal_alignment": [],
        "overall": {
            "summary": summary or "Report generation returned no usable output.",
            "strengths": [],
            "gaps": [],
            "next_steps": [],
            "mastery_level": "developing",
        },
    }


def mean_confidence(psychometrician: dict[str, Any] | None) -> float:
    """Average goal_alignment confidence; non-numeric entries count as 0."""
    alignment = (psychometrician or {}).get("goal_alignment") or []
    if not isinstance(alignment, list) or not alignment:
        return 0.0
    values = []
    for item in alignment:
        raw = item.get("confidence") if isinstance(item, dict) else None
        try:
            values.append(float(raw or 0))
        except (TypeError, ValueError):
            values.append(0.0)
    return sum(values) / len(values)


def mastery_level(psychometrician: dict[str, Any] | None) -> str:
    overall = (psychometrician or {}).get("overall") or {}
    level = overall.get("mastery_level") if isinstance(overall, dict) else None
    return level if isinstance(level, str) else ""


def split_name(full_name: str | None) -> tuple[str, str]:
    parts = (full_name or "").split(" ")
    return parts[0], " ".join(parts[1:])


class ReportService:
    """Builds, stores and summarizes psychometrician reports."""

    async def log_event(
        self,
        db: AsyncSession,
        *,
        session_id: str,
        direction: str,
        event: dict[str, Any],
        ts: int | None,
        user_id=None,
    ) -> RealtimeEvent:
        row = RealtimeEvent(
            session_id=session_id,
            user_id=user_id,
            direction=direction,
            event=event,
            ts=ts if ts is not None else int(datetime.now(timezone.utc).timestamp() * 1000),
        )
        db.add(row)
        await db.flush()
        return row

    async def load_server_events(
        self, db: AsyncSession, session_id: str
    ) -> list[tuple[int, dict[str, Any]]]:
        result = await db.execute(
            select(RealtimeEvent.ts, RealtimeEvent.event)
            .where(
                RealtimeEvent.session_id == session_id,
                RealtimeEvent.direction == EventDirection.SERVER.value,
            )
            .order_by(RealtimeEvent.ts, RealtimeEvent.id)
        )
        return [(ts, event) for ts, event in result.all()]

    async def _learning_context(self, db: AsyncSession) -> tuple[list[str], str]:
        result = await db.execute(
            select(ExamSettings)
            .where(ExamSettings.is_active.is_(True))
            .order_by(ExamSettings.updated_at.desc())
            .limit(1)
        )
        exam = result.scalar_one_or_none()
        if exam is None or not (exam.learning_goals or exam.question_topics):
            return DEFAULT_EXAM.learning_goals, DEFAULT_EXAM.title
        return exam.learning_goals or exam.question_topics, exam.title or ""

    async def generate(
        self,
        db: AsyncSession,
        session_id: str,
        student: Profile | None,
    ) -> Report:
        """
        Reconstruct the transcript, run the psychometrician and upsert the report.

        Raises:
            LLMNotConfiguredError, UpstreamServiceError, openai.OpenAIError
        """
        events = await self.load_server_events(db, session_id)
        transcript = extract_transcript(events)
        goals, title = await self._learning_context(db)

        output = await openai_service.respond(
            model=settings.report_model,
            prompt=build_psychometrician_prompt(transcript, goals, title),
            max_output_tokens=settings.report_max_output_tokens,
        )
        psychometrician = safe_parse_json(output)
        if psychometrician is None:
            logger.warning("Psychometrician output for session %s was not JSON", session_id)
            psychometrician = default_report(output)

        report = await db.get(Report, session_id)
        if report is None:
            report = Report(session_id=session_id)
            db.add(report)
        report.user_id = student.id if student else None
        report.student_name = student.full_name if student else ""
        report.student_email = student.email if student else ""
        report.transcript = transcript
        report.psychometrician = psychometrician
        report.generated_at = datetime.now(timezone.utc)
        await db.flush()

        logger.info("Generated report for session %s (%d transcript lines)", session_id, len(transcript))
        return report

    async def list_summaries(self, db: AsyncSession) -> list[dict[str, Any]]:
        result = await db.execute(select(Report).order_by(Report.generated_at.desc()))
        return [
            {
                "session_id": row.session_id,
                "student_name": row.student_name or "",
                "student_email": row.student_email or "",
                "generated_at": row.generated_at,
                "mastery_level": mastery_level(row.psychometrician),
                "confidence": mean_confidence(row.psychometrician),
            }
            for row in result.scalars().all()
        ]

    @staticmethod
    def summary_metrics(summaries: list[dict[str, Any]]) -> dict[str, Any]:
        by_level: dict[str, int] = {}
        for summary in summaries:
            level = summary["mastery_level"] or "unknown"
            by_level[level] = by_level.get(level, 0) + 1
        total = len(summaries)
        return {
            "total": total,
            "avg_confidence": sum(s["confidence"] for s in summaries) / total if total else 0.0,
            "by_level": by_level,
        }

    async def read(self, db: AsyncSession, session_id: str) -> Report | None:
        return await db.get(Report, session_id)


# Singleton instance
report_service = ReportService()
