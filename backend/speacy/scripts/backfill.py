"""
Import realtime event logs and reports written to disk into the database.

Run with: python -m speacy.scripts.backfill [--data-dir data]

Reads <data-dir>/realtime-events/<session>.jsonl and <data-dir>/reports/<session>.json.
"""

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Sequence
from uuid import UUID

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from speacy.db.models import RealtimeEvent, Report

logger = logging.getLogger(__name__)

BATCH_SIZE = 500


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory holding realtime-events/ and reports/ (default: data)",
    )
    return parser


def chunk(rows: list[dict[str, Any]], size: int = BATCH_SIZE) -> Iterator[list[dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def parse_json_lines(raw: str) -> list[dict[str, Any]]:
    return [json.loads(line) for line in (l.strip() for l in raw.splitlines()) if line]


def _uuid_or_none(value: Any) -> UUID | None:
    try:
        return UUID(str(value)) if value else None
    except ValueError:
        return None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


async def backfill_events(db: AsyncSession, events_dir: Path) -> int:
    """Insert every .jsonl event log. Returns the number of rows written."""
    if not events_dir.is_dir():
        logger.info("No %s directory found, skipping events.", events_dir)
        return 0

    written = 0
    for path in sorted(events_dir.glob("*.jsonl")):
        session_id = path.stem
        rows = [
            {
                "session_id": session_id,
                "user_id": None,
                "direction": line.get("direction"),
                "event": line.get("event") or {},
                "ts": line.get("ts") or 0,
            }
            for line in parse_json_lines(path.read_text(encoding="utf-8"))
        ]

        inserted = 0
        for batch in chunk(rows):
            try:
                await db.execute(insert(RealtimeEvent), batch)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("Failed inserting events for %s: %s", session_id, str(e))
                break
            inserted += len(batch)

        written += inserted
        logger.info("Backfilled events for %s (%d rows)", session_id, inserted)
    return written


async def backfill_reports(db: AsyncSession, reports_dir: Path) -> int:
    """Upsert every .json report by session id. Returns the number stored."""
    if not reports_dir.is_dir():
        logger.info("No %s directory found, skipping reports.", reports_dir)
        return 0

    stored = 0
    for path in sorted(reports_dir.glob("*.json")):
        payload = json.loads(path.read_text(encoding="utf-8"))
        session_id = payload.get("sessionId") or path.stem
        student = payload.get("student") or {}
        student_name = f"{student.get('first_name') or ''} {student.get('last_name') or ''}".strip()

        try:
            report = await db.get(Report, session_id)
            if report is None:
                report = Report(session_id=session_id)
                db.add(report)
            report.user_id = _uuid_or_none(student.get("id"))
            report.student_name = student_name
            report.student_email = student.get("email") or ""
            report.transcript = payload.get("transcript")
            # Older files carry the simple report under "report"
            report.psychometrician = payload.get("psychometrician") or payload.get("report")
            report.generated_at = _parse_timestamp(payload.get("generatedAt"))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed inserting report %s: %s", session_id, str(e))
            continue

        stored += 1
        logger.info("Backfilled report %s", session_id)
    return stored


async def run(data_dir: Path, session_factory: async_sessionmaker | None = None) -> tuple[int, int]:
    if session_factory is None:
        from speacy.db.session import AsyncSessionLocal

        session_factory = AsyncSessionLocal

    async with session_factory() as db:
        events = await backfill_events(db, data_dir / "realtime-events")
        reports = await backfill_reports(db, data_dir / "reports")
    logger.info("Backfill complete.")
    return events, reports


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = _build_parser().parse_args(argv)
    asyncio.run(run(args.data_dir))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
