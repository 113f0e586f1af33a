"""Shown-market history, written after each edition build.

Best effort only: nothing on the request path reads this file and a failed
write is logged, never raised to the caller of `record_in_background`.
"""

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from gazette.editorial.models import Record

from .files import atomic_write_text

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class HistoryEntry(BaseModel):
    id: str
    question: str
    last_shown: datetime
    last_odds: float
    show_count: int = 1
    updated_at: datetime

    @field_validator("last_shown", "updated_at")
    @classmethod
    def _utc_timestamps(cls, value: datetime) -> datetime:
        return _as_utc(value)


class HistoryFile(BaseModel):
    last_write: datetime | None = None
    entries: dict[str, HistoryEntry] = Field(default_factory=dict)

    @field_validator("last_write")
    @classmethod
    def _utc_last_write(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None


def _hour(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


class HistoryRecorder:
    """Upserts shown markets into a JSON file with a rolling window."""

    def __init__(self, path: Path, window_hours: int = 1):
        self.path = path
        self.window = timedelta(hours=window_hours)
        self._lock = threading.Lock()

    def load(self) -> HistoryFile:
        if not self.path.exists():
            return HistoryFile()
        try:
            return HistoryFile.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning(f"Corrupt history file {self.path}, starting fresh: {e}")
            return HistoryFile()

    def record(self, records: list[Record], now: datetime | None = None) -> int:
        """Upsert `records` as shown at `now`; returns the number of rows kept."""
        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)

        with self._lock:
            history = self.load()

            # Prune opportunistically, once per hour of writes
            if history.last_write is None or _hour(history.last_write) != _hour(now):
                cutoff = now - self.window
                stale = [k for k, e in history.entries.items() if e.last_shown < cutoff]
                for key in stale:
                    del history.entries[key]
                if stale:
                    logger.debug(f"Pruned {len(stale)} history rows older than {cutoff:%H:%M}")

            for record in records:
                previous = history.entries.get(record.id)
                history.entries[record.id] = HistoryEntry(
                    id=record.id,
                    question=record.question,
                    last_shown=now,
                    last_odds=record.yes_price,
                    show_count=previous.show_count + 1 if previous else 1,
                    updated_at=now,
                )

            history.last_write = now
            atomic_write_text(self.path, history.model_dump_json(indent=2))
            return len(history.entries)

    async def record_in_background(self, records: list[Record], now: datetime | None = None) -> None:
        """Run `record` off the event loop. Failures are logged, not raised."""
        try:
            count = await asyncio.to_thread(self.record, records, now)
            logger.debug(f"History updated: {count} markets tracked")
        except Exception as e:
            logger.warning(f"Failed to record market history: {e}")
