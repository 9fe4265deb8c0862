"""
Client-side orchestration of one realtime voice session.

The media stack is not ours: any WebRTC implementation that can produce an
SDP offer and expose a data channel with send(str) can drive a session.
RealtimeExamSession talks to the Speacy API for credentials, logging,
reports and grading, and to OpenAI only for SDP negotiation.

Exam and practice sessions mint through /realtime/token and end with a
psychometrician report. Assignment sessions mint through /session with
examiner instructions and end by submitting the transcript for grading.
"""

import asyncio
import json
import logging
import time
import uuid
from enum import Enum
from typing import Any, Callable, Protocol

import httpx

from speacy.realtime.events import (
    ASSIGNMENT_END_TOOL,
    STUDENT_TRANSCRIPT_TYPE,
    RealtimeEventDict,
    code_share_events,
    extract_code_block,
    find_completion_call,
    find_transfer_call,
    get_text_delta,
    is_final_text_event,
    parse_tool_arguments,
    transfer_events,
)
from speacy.services.prompts import build_examiner_prompt

logger = logging.getLogger(__name__)

DEFAULT_CODE_SNIPPET = "# Awaiting the next snippet...\n\nnumbers = [1, 2, 3]\nprint(numbers[0])"
START_FAILED_MESSAGE = "Could not start the voice session. Please try again."

# Lets the examiner finish its goodbye before the session is torn down
END_ASSESSMENT_DELAY_SECONDS = 7.0


def now_ms() -> int:
    return int(time.time() * 1000)


def word_count(text: str) -> int:
    return len(text.split())


class DataChannel(Protocol):
    def send(self, data: str) -> None: ...


class SessionStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    STOPPED = "stopped"
    ERROR = "error"


class ReportStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"


class SessionTranscript:
    """
    What the session UI shows, driven by server events.

    messages holds the transcript in the shape /grade expects:
    {"role": "assistant"|"user", "content": ..., "metadata": {...}}.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self.started_at = clock()
        self.assistant_text = ""
        self.assistant_lines: list[str] = []
        self.code_snippet = DEFAULT_CODE_SNIPPET
        self.ai_speaking = False
        self.messages: list[dict[str, Any]] = []
        self.last_ai_end: int | None = None

    def apply(self, event: RealtimeEventDict) -> None:
        kind = event.get("type")
        text = get_text_delta(event)

        if kind == "response.created":
            self.assistant_text = ""
            self.ai_speaking = True
        elif kind == "response.output_audio.delta":
            self.ai_speaking = True
        elif kind in ("response.output_audio.done", "response.done"):
            self.ai_speaking = False

        if text:
            if is_final_text_event(event):
                self.assistant_text = text
                self._finish_assistant_line(text)
            else:
                self.assistant_text += text

        if kind == STUDENT_TRANSCRIPT_TYPE and isinstance(event.get("transcript"), str):
            self.add_student_message(event["transcript"])

    def _finish_assistant_line(self, text: str) -> None:
        # The same utterance arrives as several *.done events
        if self.assistant_lines and self.assistant_lines[-1] == text:
            return
        now = self.clock()
        self.assistant_lines.append(text)
        self.messages.append(
            {"role": "assistant", "content": text, "metadata": {"startTime": now, "endTime": now}}
        )
        self.last_ai_end = now

        code = extract_code_block(text)
        if code:
            self.code_snippet = code

    def add_student_message(self, text: str, *, latency: int | None = None) -> None:
        now = self.clock()
        if latency is None:
            latency = max(0, now - self.last_ai_end) if self.last_ai_end is not None else 0
        self.messages.append(
            {
                "role": "user",
                "content": text,
                "metadata": {"startTime": now, "endTime": now, "latency": latency},
            }
        )

    def session_metrics(self, mode: str = "openai", ended_at: int | None = None) -> dict[str, Any]:
        """Duration, turn counts, word counts, talk ratio and mean response latency."""
        ended_at = ended_at if ended_at is not None else self.clock()
        assistant = [m for m in self.messages if m["role"] == "assistant"]
        student = [m for m in self.messages if m["role"] == "user"]
        assistant_words = sum(word_count(m["content"]) for m in assistant)
        student_words = sum(word_count(m["content"]) for m in student)
        latencies = [m["metadata"].get("latency", 0) or 0 for m in student]

        return {
            "mode": mode,
            "sessionStartTime": self.started_at,
            "sessionEndTime": ended_at,
            "sessionDurationMs": max(0, ended_at - self.started_at),
            "questionCount": len(assistant),
            "responseCount": len(student),
            "assistantWordCount": assistant_words,
            "userWordCount": student_words,
            "talkRatio": round(student_words / assistant_words, 2) if assistant_words else 0,
            "avgResponseLatencyMs": round(sum(latencies) / len(latencies)) if latencies else 0,
        }


class RealtimeExamSession:
    """
    One voice session: idle -> connecting -> active -> stopped | error.

    Args:
        api: client for the Speacy API (base URL ending in the API prefix,
            carrying the user's session cookie when there is one)
        openai_http: client used for SDP negotiation with OpenAI
        mode: "exam", "practice" or "assignment"
        exam_id: specific active exam to run
        assessment_id: assessment to grade when the session finishes
        instructions: examiner instructions for an assignment session
        end_delay: seconds between end_assessment and finish()
    """

    def __init__(
        self,
        api: httpx.AsyncClient,
        openai_http: httpx.AsyncClient,
        *,
        mode: str = "practice",
        exam_id: str | None = None,
        assessment_id: str | None = None,
        instructions: str | None = None,
        session_id: str | None = None,
        clock: Callable[[], int] = now_ms,
        end_delay: float = END_ASSESSMENT_DELAY_SECONDS,
    ):
        self.api = api
        self.openai_http = openai_http
        self.mode = mode
        self.exam_id = exam_id
        self.assessment_id = assessment_id
        self.instructions = instructions
        self.session_id = session_id or str(uuid.uuid4())
        self.clock = clock
        self.end_delay = end_delay

        self.status = SessionStatus.IDLE
        self.error: str | None = None
        self.report_status = ReportStatus.IDLE
        self.event_count = 0
        self.channel: DataChannel | None = None
        self.transcript = SessionTranscript(clock)
        self.agent = "examiner_agent"
        self.pending_finish: asyncio.Task | None = None
        self._report_triggered = False

    @classmethod
    def for_assignment(
        cls,
        api: httpx.AsyncClient,
        openai_http: httpx.AsyncClient,
        *,
        assessment_id: str,
        topic: str,
        description: str | None = None,
        questions: list[str] | None = None,
        learning_goals: list[str] | None = None,
        **kwargs: Any,
    ) -> "RealtimeExamSession":
        """Session for one assignment attempt, run by the curriculum examiner."""
        instructions = build_examiner_prompt(
            topic=topic,
            description=description,
            questions=questions,
            learning_goals=learning_goals,
        )
        return cls(
            api,
            openai_http,
            mode="assignment",
            assessment_id=assessment_id,
            instructions=instructions,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def start(self, offer_sdp: str) -> str | None:
        """
        Mint a client secret, send the SDP offer to OpenAI, return the answer SDP.

        On failure the session goes to error with a generic message and None
        is returned. There is no retry.
        """
        if self.status in (SessionStatus.CONNECTING, SessionStatus.ACTIVE):
            return None

        self.status = SessionStatus.CONNECTING
        self.error = None
        self.event_count = 0
        self.report_status = ReportStatus.IDLE
        self._report_triggered = False
        self.transcript = SessionTranscript(self.clock)
        self.agent = "examiner_agent"
        self.pending_finish = None

        try:
            secret = await self._mint_client_secret()
            response = await self.openai_http.post(
                "/realtime/calls",
                content=offer_sdp,
                headers={"Authorization": f"Bearer {secret}", "Content-Type": "application/sdp"},
            )
            response.raise_for_status()
            answer = response.text
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error("Realtime session %s failed to start: %s", self.session_id, str(e))
            self.status = SessionStatus.ERROR
            self.error = START_FAILED_MESSAGE
            return None

        self.status = SessionStatus.ACTIVE
        logger.info("Realtime session %s active", self.session_id)
        return answer

    async def _mint_client_secret(self) -> str:
        if self.mode == "assignment":
            response = await self.api.post("/session", json={"instructions": self.instructions})
        else:
            body: dict[str, Any] = {"mode": self.mode}
            if self.exam_id:
                body["examId"] = self.exam_id
            response = await self.api.post("/realtime/token", json=body)
        response.raise_for_status()
        payload = response.json()

        # client_secrets returns {"value": ...}; older session payloads nest it
        secret = payload.get("value") or (payload.get("client_secret") or {}).get("value")
        if not secret:
            raise ValueError("Missing client secret in response")
        return secret

    def attach(self, channel: DataChannel) -> None:
        self.channel = channel

    def stop(self, status: SessionStatus = SessionStatus.STOPPED) -> None:
        self.channel = None
        self.status = status

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def log_event(self, direction: str, event: RealtimeEventDict) -> None:
        """Mirror an event to the API. Failures never break the session."""
        self.event_count += 1
        try:
            await self.api.post(
                "/realtime/events",
                json={
                    "sessionId": self.session_id,
                    "direction": direction,
                    "event": event,
                    "ts": self.clock(),
                },
            )
        except httpx.HTTPError as e:
            logger.debug("Event log failed for session %s: %s", self.session_id, str(e))

    async def handle_message(self, raw: str) -> None:
        """Process one data-channel message from OpenAI."""
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Ignoring malformed realtime event")
            return
        if not isinstance(event, dict):
            return

        self.transcript.apply(event)
        await self.log_event("server", event)

        raw_transfer = find_transfer_call(event)
        if raw_transfer is not None:
            await self.transfer(parse_tool_arguments(raw_transfer) or {})
            return

        completion = find_completion_call(event)
        if completion is not None:
            name, raw_arguments = completion
            arguments = parse_tool_arguments(raw_arguments)
            if arguments is None:
                logger.debug("Ignoring %s call with malformed arguments", name)
                return
            if name == ASSIGNMENT_END_TOOL:
                self.schedule_finish()
            else:
                await self.trigger_report(arguments)

    async def transfer(self, arguments: dict[str, Any]) -> bool:
        """
        Hand the conversation to another persona (tutor or examiner).

        The session instructions are re-sent and the model is asked to
        acknowledge the switch. Needs examiner instructions to re-send.
        """
        if not self.instructions:
            logger.debug("Ignoring transfer in session %s without instructions", self.session_id)
            return False
        destination = arguments.get("destination_agent")
        if isinstance(destination, str) and destination:
            self.agent = destination
        logger.info("Session %s transferring to %s", self.session_id, self.agent)

        for event in transfer_events(self.instructions):
            if not await self.send_event(event):
                return False
        return True

    async def send_event(self, event: RealtimeEventDict) -> bool:
        if self.channel is None or self.status != SessionStatus.ACTIVE:
            return False
        self.channel.send(json.dumps(event))
        await self.log_event("client", event)
        return True

    async def send_code_update(self, code: str | None = None) -> bool:
        """Share the code panel (the current snippet by default) with the model."""
        code = code if code is not None else self.transcript.code_snippet
        if not code:
            return False
        create_item, create_response = code_share_events(code)
        if not await self.send_event(create_item):
            return False
        return await self.send_event(create_response)

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    async def trigger_report(self, arguments: dict[str, Any] | None = None) -> None:
        """Generate the psychometrician report once, then stop the session."""
        if self._report_triggered:
            return
        self._report_triggered = True
        self.report_status = ReportStatus.GENERATING
        logger.info(
            "Session %s complete (%s), generating report",
            self.session_id, (arguments or {}).get("reason", "no reason given"),
        )

        try:
            response = await self.api.post("/realtime/report", json={"sessionId": self.session_id})
            response.raise_for_status()
            self.report_status = ReportStatus.READY
        except httpx.HTTPError as e:
            logger.error("Report request failed for session %s: %s", self.session_id, str(e))
            self.report_status = ReportStatus.ERROR
        finally:
            self.stop(SessionStatus.STOPPED)

    def schedule_finish(self) -> asyncio.Task:
        """Run finish() after end_delay. Repeated calls reuse the first task."""
        if self.pending_finish is None:
            self.pending_finish = asyncio.create_task(self._finish_later())
        return self.pending_finish

    async def _finish_later(self) -> dict[str, Any] | None:
        await asyncio.sleep(self.end_delay)
        return await self.finish()

    async def finish(self) -> dict[str, Any] | None:
        """
        End the session and submit the transcript for grading.

        Returns the /grade response body, or None when there was nothing to
        grade or the request failed.
        """
        if self.status != SessionStatus.ERROR:
            self.stop(SessionStatus.STOPPED)

        if not self.assessment_id or not self.transcript.messages:
            return None

        try:
            response = await self.api.post(
                "/grade",
                json={
                    "assessmentId": self.assessment_id,
                    "messages": self.transcript.messages,
                    "sessionMetrics": self.transcript.session_metrics(),
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Grade submission failed for assessment %s: %s", self.assessment_id, str(e))
            return None
        return response.json()
