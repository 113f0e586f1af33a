"""Time-bucketed edition cache.

Editions are keyed by a coarse bucket (`YYYY-MM-DDTHH`, HH truncated to the
bucket width) with a daily baseline key (`YYYY-MM-DD`) as a stale fallback.
Writes are upserts: concurrent builders racing for the same bucket both
succeed and the last writer's edition is the one that survives.

The cache never regenerates anything itself. A miss (or a stale hit) means
the caller must build a fresh edition and `put` it.
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from gazette.editorial.models import CacheEntry, Edition

from .files import atomic_write_text

logger = logging.getLogger(__name__)


class EditionStoreError(Exception):
    """Cache store could not be read or written."""


# ============================================================================
# Keys
# ============================================================================


def bucket_key(now: datetime, bucket_hours: int = 4) -> str:
    """'2026-10-18T08' for any time between 08:00 and 11:59 UTC."""
    now = now.astimezone(timezone.utc)
    hour = (now.hour // bucket_hours) * bucket_hours
    return f"{now:%Y-%m-%d}T{hour:02d}"


def daily_key(now: datetime) -> str:
    return f"{now.astimezone(timezone.utc):%Y-%m-%d}"


# ============================================================================
# Stores
# ============================================================================


class EditionStore(Protocol):
    def read(self, key: str) -> CacheEntry | None: ...

    def upsert(self, entry: CacheEntry) -> None: ...


class FileEditionStore:
    """One JSON document per key under `directory`."""

    def __init__(self, directory: Path):
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> CacheEntry | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise EditionStoreError(f"Unreadable cache entry {path.name}: {e}") from e

    def upsert(self, entry: CacheEntry) -> None:
        try:
            atomic_write_text(self._path(entry.bucket_key), entry.model_dump_json())
        except OSError as e:
            raise EditionStoreError(f"Failed to write cache entry {entry.bucket_key}: {e}") from e


class MemoryEditionStore:
    """Process-local store; rows are kept serialized like the file store."""

    def __init__(self):
        self._rows: dict[str, str] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> CacheEntry | None:
        with self._lock:
            row = self._rows.get(key)
        if row is None:
            return None
        return CacheEntry.model_validate_json(row)

    def upsert(self, entry: CacheEntry) -> None:
        row = entry.model_dump_json()
        with self._lock:
            self._rows[entry.bucket_key] = row


# ============================================================================
# Cache
# ============================================================================


@dataclass(frozen=True)
class CacheLookup:
    """A cache hit. `stale` marks a daily-baseline hit for an empty bucket."""

    key: str
    edition: Edition
    created_at: datetime
    stale: bool = False


class EditionCache:
    """Bucket-keyed edition cache with a daily fallback key."""

    def __init__(self, store: EditionStore, bucket_hours: int = 4):
        self.store = store
        self.bucket_hours = bucket_hours

    def bucket_key(self, now: datetime | None = None) -> str:
        return bucket_key(now or datetime.now(timezone.utc), self.bucket_hours)

    def daily_key(self, now: datetime | None = None) -> str:
        return daily_key(now or datetime.now(timezone.utc))

    def _read(self, key: str) -> CacheEntry | None:
        try:
            return self.store.read(key)
        except (EditionStoreError, ValidationError, json.JSONDecodeError) as e:
            logger.warning(f"Edition cache read failed for {key}, treating as miss: {e}")
            return None

    def get(self, force_refresh: bool = False, now: datetime | None = None) -> CacheLookup | None:
        """Fresh bucket hit, stale daily hit, or None.

        With force_refresh the cache always misses.
        """
        if force_refresh:
            return None

        key = self.bucket_key(now)
        entry = self._read(key)
        if entry is not None:
            logger.info(f"Edition cache hit: {key}")
            return CacheLookup(key=key, edition=entry.edition, created_at=entry.created_at)

        fallback_key = self.daily_key(now)
        entry = self._read(fallback_key)
        if entry is not None:
            logger.info(f"Edition cache miss for {key}, serving daily baseline {fallback_key}")
            return CacheLookup(
                key=fallback_key, edition=entry.edition, created_at=entry.created_at, stale=True
            )

        logger.info(f"Edition cache miss: {key}")
        return None

    def put(self, key: str, edition: Edition) -> bool:
        """Upsert an edition under `key`. Returns False if the store is unavailable."""
        try:
            self.store.upsert(CacheEntry(bucket_key=key, edition=edition))
        except EditionStoreError as e:
            logger.warning(f"Edition cache write failed for {key}, continuing uncached: {e}")
            return False
        logger.info(f"Cached edition under {key}")
        return True

    def put_daily(self, edition: Edition, now: datetime | None = None) -> bool:
        return self.put(self.daily_key(now), edition)
