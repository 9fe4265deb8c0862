"""Tests for importing on-disk event logs and reports."""

import json

from sqlalchemy import select

from speacy.db.models import RealtimeEvent, Report
from speacy.scripts.backfill import chunk, parse_json_lines, run


def write_data(tmp_path):
    events_dir = tmp_path / "realtime-events"
    reports_dir = tmp_path / "reports"
    events_dir.mkdir()
    reports_dir.mkdir()

    lines = [
        {"direction": "server", "event": {"type": "response.output_text.done", "text": "Hi"}, "ts": 10},
        {"direction": "client", "event": {"type": "response.create"}, "ts": 11},
    ]
    (events_dir / "sess-a.jsonl").write_text(
        "\n".join(json.dumps(line) for line in lines) + "\n\n", encoding="utf-8"
    )
    (reports_dir / "sess-a.json").write_text(
        json.dumps({
            "sessionId": "sess-a",
            "generatedAt": "2025-01-02T03:04:05Z",
            "student": {"id": "not-a-uuid", "first_name": "Ada", "last_name": "Lovelace", "email": "ada@school.edu"},
            "transcript": [{"role": "assistant", "text": "Hi", "ts": 10}],
            "psychometrician": {"overall": {"mastery_level": "competent"}},
        }),
        encoding="utf-8",
    )
    # Older report format without a psychometrician block or session id
    (reports_dir / "sess-b.json").write_text(
        json.dumps({"report": {"summary": "legacy"}, "transcript": []}),
        encoding="utf-8",
    )


async def test_backfill_imports_events_and_reports(tmp_path, session_factory):
    write_data(tmp_path)

    events, reports = await run(tmp_path, session_factory)
    assert (events, reports) == (2, 2)

    async with session_factory() as db:
        rows = (await db.execute(select(RealtimeEvent).order_by(RealtimeEvent.ts))).scalars().all()
        assert [(r.session_id, r.direction, r.ts) for r in rows] == [
            ("sess-a", "server", 10),
            ("sess-a", "client", 11),
        ]

        first = await db.get(Report, "sess-a")
        assert first.student_name == "Ada Lovelace"
        assert first.user_id is None
        assert first.psychometrician == {"overall": {"mastery_level": "competent"}}
        assert first.generated_at.year == 2025

        legacy = await db.get(Report, "sess-b")
        assert legacy.psychometrician == {"summary": "legacy"}
        assert legacy.student_email == ""


async def test_backfill_reports_are_upserted(tmp_path, session_factory):
    write_data(tmp_path)
    await run(tmp_path, session_factory)
    await run(tmp_path, session_factory)

    async with session_factory() as db:
        reports = (await db.execute(select(Report))).scalars().all()
    assert len(reports) == 2


async def test_backfill_missing_directories(tmp_path, session_factory):
    assert await run(tmp_path, session_factory) == (0, 0)


def test_chunk_and_parse_helpers():
    assert list(chunk([{"n": i} for i in range(5)], size=2)) == [
        [{"n": 0}, {"n": 1}],
        [{"n": 2}, {"n": 3}],
        [{"n": 4}],
    ]
    assert parse_json_lines('{"a": 1}\n\n  {"b": 2}  \n') == [{"a": 1}, {"b": 2}]
