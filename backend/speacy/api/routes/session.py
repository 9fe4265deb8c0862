"""Legacy realtime session proxy used by assignment sessions."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from speacy.schemas.realtime import LegacySessionRequest
from speacy.services.errors import LLMNotConfiguredError, UpstreamServiceError
from speacy.services.realtime_sessions import realtime_session_service

router = APIRouter(prefix="/session", tags=["realtime"])
logger = logging.getLogger(__name__)


@router.post("")
async def create_session(data: LegacySessionRequest | None = None) -> dict[str, Any]:
    """
    Create a realtime session with examiner instructions.

    Without instructions the examiner runs on "General Knowledge".
    """
    instructions = data.instructions if data else None
    try:
        return await realtime_session_service.create_legacy_session(instructions)
    except LLMNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except UpstreamServiceError as e:
        logger.error("OpenAI session error (%s): %s", e.status_code, e.details)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create session",
        )
