"""Services for external integrations."""

from speacy.services.openai_client import openai_service
from speacy.services.grading import grading_service
from speacy.services.realtime_sessions import realtime_session_service
from speacy.services.reports import report_service

__all__ = ["openai_service", "grading_service", "realtime_session_service", "report_service"]
