"""Realtime voice session client."""

from speacy.realtime.session import (
    DataChannel,
    RealtimeExamSession,
    ReportStatus,
    SessionStatus,
    SessionTranscript,
)

__all__ = [
    "DataChannel",
    "RealtimeExamSession",
    "ReportStatus",
    "SessionStatus",
    "SessionTranscript",
]
