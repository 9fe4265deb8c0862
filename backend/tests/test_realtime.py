"""Tests for realtime tokens, the event log and report generation."""

import json

import httpx
import pytest
from httpx import AsyncClient
from openai import APIConnectionError
from sqlalchemy import select

from speacy.config import get_settings
from speacy.db.models import ExamSettings, RealtimeEvent, Report
from speacy.services.openai_client import openai_service
from speacy.services.prompts import DEFAULT_EXAM
from speacy.services.reports import extract_transcript, mean_confidence, safe_parse_json

PSYCHOMETRICIAN = {
    "denoised_transcript": {"claims": ["Tuples are immutable"], "code_traces": []},
    "goal_alignment": [
        {"goal": "Explain mutability", "evidence": ["tuples can't change"], "score": 3, "confidence": 0.8},
        {"goal": "Slice a list", "evidence": [], "score": 0, "confidence": 0.2},
    ],
    "overall": {
        "summary": "Good grasp of mutability.",
        "strengths": [],
        "gaps": [],
        "next_steps": [],
        "mastery_level": "competent",
    },
}


@pytest.fixture
def upstream(monkeypatch):
    """Route realtime REST calls through a mock transport. Returns recorded requests."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/realtime/client_secrets"):
            return httpx.Response(200, json={"value": "ek_test", "expires_at": 123})
        if request.url.path.endswith("/realtime/sessions"):
            return httpx.Response(200, json={"id": "sess_1", "client_secret": {"value": "ek_legacy"}})
        return httpx.Response(404, json={"error": "unexpected"})

    monkeypatch.setattr(openai_service, "transport", httpx.MockTransport(handler))
    return requests


@pytest.fixture
def model_output(monkeypatch):
    """Replace Responses API calls. Returns the prompts received and a mutable reply."""
    prompts = []
    reply = {"text": json.dumps(PSYCHOMETRICIAN)}

    async def fake_respond(*, model, prompt, max_output_tokens, temperature=0.2):
        prompts.append(prompt)
        return reply["text"]

    monkeypatch.setattr(openai_service, "respond", fake_respond)
    return prompts, reply


async def log(client: AsyncClient, session_id: str, event: dict, ts: int, direction: str = "server", **kwargs):
    return await client.post(
        "/api/realtime/events",
        json={"sessionId": session_id, "direction": direction, "event": event, "ts": ts},
        **kwargs,
    )


async def save_exam(client: AsyncClient, headers, **overrides):
    payload = {
        "title": "Midterm",
        "learningGoals": ["Explain mutability", "Slice a list"],
        "questionTopics": ["Tuples"],
        "isActive": True,
        **overrides,
    }
    response = await client.post("/api/exams", json=payload, headers=headers)
    assert response.status_code == 200
    return response.json()["exam"]


# -----------------------------------------------------------------------------
# Event log
# -----------------------------------------------------------------------------


async def test_log_event_requires_fields(client: AsyncClient):
    response = await client.post("/api/realtime/events", json={"sessionId": "abc", "event": {}})
    assert response.status_code == 400


async def test_log_event_anonymous_and_signed_in(client: AsyncClient, student, student_headers, db):
    anonymous = await log(client, "s1", {"type": "session.created"}, 1)
    assert anonymous.status_code == 201
    assert anonymous.json() == {"ok": True}

    signed_in = await log(client, "s1", {"type": "response.create"}, 2, "client", headers=student_headers)
    assert signed_in.status_code == 201

    rows = (await db.execute(select(RealtimeEvent).order_by(RealtimeEvent.ts))).scalars().all()
    assert [row.user_id for row in rows] == [None, student.id]
    assert [row.direction for row in rows] == ["server", "client"]


# -----------------------------------------------------------------------------
# Reports
# -----------------------------------------------------------------------------


async def test_report_requires_session_id(client: AsyncClient):
    response = await client.post("/api/realtime/report", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing sessionId"


async def test_report_rebuilds_transcript(client: AsyncClient, student_headers, model_output, db):
    prompts, _ = model_output
    session_id = "sess-42"
    # Logged out of order, with a duplicated final and a client event
    await log(client, session_id, {"type": "conversation.item.input_audio_transcription.completed",
                                   "transcript": "They can't change."}, 300)
    await log(client, session_id, {"type": "response.output_audio_transcript.done",
                                   "transcript": "Why are tuples immutable?"}, 100)
    await log(client, session_id, {"type": "response.content_part.done",
                                   "part": {"type": "audio", "transcript": "Why are tuples immutable?"}}, 101)
    await log(client, session_id, {"type": "response.output_text.delta", "delta": "Why"}, 99)
    await log(client, session_id, {"type": "conversation.item.create"}, 200, "client")

    response = await client.post(
        "/api/realtime/report", json={"sessionId": session_id}, headers=student_headers
    )
    assert response.status_code == 200
    report = response.json()["report"]
    assert report["sessionId"] == session_id
    assert report["transcript"] == [
        {"role": "assistant", "text": "Why are tuples immutable?", "ts": 100},
        {"role": "student", "text": "They can't change.", "ts": 300},
    ]
    assert report["psychometrician"]["overall"]["mastery_level"] == "competent"
    assert report["student"]["email"] == "ada@school.edu"

    # No active exam: the built-in learning goals are used
    assert DEFAULT_EXAM.learning_goals[0] in prompts[0]
    assert "Student: They can't change." in prompts[0]

    stored = await db.get(Report, session_id)
    assert stored.student_name == "Ada Lovelace"
    assert len(stored.transcript) == 2


async def test_report_uses_active_exam_goals(client: AsyncClient, professor_headers, model_output):
    prompts, _ = model_output
    await save_exam(client, professor_headers)

    response = await client.post("/api/realtime/report", json={"sessionId": "s-goals"})
    assert response.status_code == 200
    assert response.json()["report"]["student"] is None
    assert "- Explain mutability" in prompts[0]
    assert 'on "Midterm"' in prompts[0]


async def test_report_is_overwritten(client: AsyncClient, model_output, session_factory):
    _, reply = model_output
    await client.post("/api/realtime/report", json={"sessionId": "again"})
    reply["text"] = "Here you go: " + json.dumps({**PSYCHOMETRICIAN, "overall": {"mastery_level": "novice"}})
    await client.post("/api/realtime/report", json={"sessionId": "again"})

    async with session_factory() as session:
        rows = (await session.execute(select(Report))).scalars().all()
    assert len(rows) == 1
    assert rows[0].psychometrician["overall"]["mastery_level"] == "novice"


async def test_unreadable_report_output_uses_default(client: AsyncClient, model_output):
    _, reply = model_output
    reply["text"] = "no json here"
    response = await client.post("/api/realtime/report", json={"sessionId": "bad-json"})
    overall = response.json()["report"]["psychometrician"]["overall"]
    assert overall["summary"] == "no json here"
    assert overall["mastery_level"] == "developing"


# -----------------------------------------------------------------------------
# Tokens
# -----------------------------------------------------------------------------


async def test_token_practice_uses_default_exam(client: AsyncClient, upstream):
    response = await client.post("/api/realtime/token", json={"mode": "practice"})
    assert response.status_code == 200
    assert response.json()["value"] == "ek_test"

    body = json.loads(upstream[0].content)
    assert upstream[0].headers["Authorization"] == "Bearer sk-test"
    assert body["session"]["model"] == "gpt-realtime"
    assert body["session"]["tools"][0]["name"] == "session_complete"
    instructions = body["session"]["instructions"]
    assert "practice assessment" in instructions
    assert DEFAULT_EXAM.title in instructions


async def test_token_without_body(client: AsyncClient, upstream):
    response = await client.post("/api/realtime/token")
    assert response.status_code == 200
    assert len(upstream) == 1


async def test_exam_mode_without_active_exam_falls_back(client: AsyncClient, upstream):
    response = await client.post("/api/realtime/token", json={"mode": "exam"})
    assert response.status_code == 200
    instructions = json.loads(upstream[0].content)["session"]["instructions"]
    assert "practice assessment" in instructions


async def test_exam_mode_generates_and_stores_rubric(
    client: AsyncClient, professor_headers, upstream, monkeypatch, session_factory
):
    async def fake_respond(*, model, prompt, max_output_tokens, temperature=0.2):
        assert "grading rubric" in prompt
        return "  - Accuracy: states facts correctly  "

    monkeypatch.setattr(openai_service, "respond", fake_respond)
    exam = await save_exam(client, professor_headers)

    response = await client.post("/api/realtime/token", json={"mode": "exam", "examId": exam["id"]})
    assert response.status_code == 200
    instructions = json.loads(upstream[0].content)["session"]["instructions"]
    assert "graded exam" in instructions
    assert "- Accuracy: states facts correctly" in instructions

    async with session_factory() as session:
        stored = (await session.execute(select(ExamSettings))).scalar_one()
    assert stored.rubric == "- Accuracy: states facts correctly"
    assert stored.rubric_auto is True


async def test_rubric_failure_falls_back(client: AsyncClient, professor_headers, upstream, monkeypatch):

    async def failing_respond(**kwargs):
        raise APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/responses"))

    monkeypatch.setattr(openai_service, "respond", failing_respond)
    await save_exam(client, professor_headers)

    response = await client.post("/api/realtime/token", json={"mode": "exam"})
    assert response.status_code == 200
    instructions = json.loads(upstream[0].content)["session"]["instructions"]
    assert "Demonstrates accurate grasp of Midterm basics" in instructions


async def test_token_upstream_error(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(
        openai_service,
        "transport",
        httpx.MockTransport(lambda request: httpx.Response(401, text="bad key")),
    )
    response = await client.post("/api/realtime/token", json={"mode": "practice"})
    assert response.status_code == 500
    assert response.json()["detail"] == {"error": "Failed to create client secret", "details": "bad key"}


async def test_generated_rubric_survives_upstream_error(
    client: AsyncClient, professor_headers, monkeypatch, session_factory
):
    rubric_calls = []

    async def fake_respond(*, model, prompt, max_output_tokens, temperature=0.2):
        rubric_calls.append(prompt)
        return "- Accuracy"

    monkeypatch.setattr(openai_service, "respond", fake_respond)
    monkeypatch.setattr(
        openai_service,
        "transport",
        httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable")),
    )
    await save_exam(client, professor_headers)

    first = await client.post("/api/realtime/token", json={"mode": "exam"})
    assert first.status_code == 500
    async with session_factory() as session:
        stored = (await session.execute(select(ExamSettings))).scalar_one()
    assert stored.rubric == "- Accuracy"
    assert stored.rubric_auto is True

    second = await client.post("/api/realtime/token", json={"mode": "exam"})
    assert second.status_code == 500
    assert len(rubric_calls) == 1


async def test_token_without_api_key(client: AsyncClient, monkeypatch):

    monkeypatch.setattr(get_settings(), "openai_api_key", None)
    response = await client.post("/api/realtime/token", json={"mode": "practice"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Missing OPENAI_API_KEY"


async def test_legacy_session_proxy(client: AsyncClient, upstream):
    response = await client.post("/api/session", json={"instructions": "Quiz me on dicts."})
    assert response.status_code == 200
    assert response.json()["id"] == "sess_1"

    body = json.loads(upstream[0].content)
    assert body["instructions"] == "Quiz me on dicts."
    assert body["voice"] == "ash"
    assert [tool["name"] for tool in body["tools"]] == ["end_assessment", "transferAgents"]


async def test_legacy_session_defaults_to_general_knowledge(client: AsyncClient, upstream):
    await client.post("/api/session")
    body = json.loads(upstream[0].content)
    assert "TOPIC: General Knowledge" in body["instructions"]


async def test_legacy_session_failure(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(
        openai_service,
        "transport",
        httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    response = await client.post("/api/session")
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to create session"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def test_extract_transcript_sorts_and_dedupes():
    events = [
        (5, {"type": "response.output_text.done", "text": "Next question."}),
        (1, {"type": "response.output_text.done", "text": "Hello."}),
        (2, {"type": "response.content_part.done", "part": {"type": "text", "text": "Hello."}}),
        (3, {"type": "conversation.item.input_audio_transcription.completed", "transcript": "Hi"}),
        (4, {"type": "response.output_audio.delta"}),
    ]
    assert extract_transcript(events) == [
        {"role": "assistant", "text": "Hello.", "ts": 1},
        {"role": "student", "text": "Hi", "ts": 3},
        {"role": "assistant", "text": "Next question.", "ts": 5},
    ]


def test_safe_parse_json():
    assert safe_parse_json('{"a": 1}') == {"a": 1}
    assert safe_parse_json('Sure! {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}
    assert safe_parse_json("[1, 2]") is None
    assert safe_parse_json("") is None
    assert safe_parse_json("{not json}") is None


def test_mean_confidence():
    assert mean_confidence(PSYCHOMETRICIAN) == pytest.approx(0.5)
    assert mean_confidence({"goal_alignment": [{"confidence": "x"}, {"confidence": 1}]}) == 0.5
    assert mean_confidence({}) == 0.0
    assert mean_confidence(None) == 0.0
