"""Edition pipeline: markets -> scoring -> selection -> stages -> cache."""

import asyncio
import logging
from collections.abc import Coroutine
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel

from gazette.config import Settings
from gazette.editorial import (
    CandidateSelector,
    Edition,
    EditionError,
    Record,
    StageOrchestrator,
    prepare_records,
)
from gazette.editorial.orchestrator import TextGenerator
from gazette.services.generation import create_generation_client
from gazette.sources import MarketSourceError, load_markets
from gazette.storage import (
    CacheLookup,
    EditionCache,
    FileEditionStore,
    HistoryRecorder,
    MemoryEditionStore,
)

logger = logging.getLogger("gazette.pipeline")

# Strong references to fire-and-forget tasks until they finish
_background_tasks: set[asyncio.Task] = set()
_refreshing: set[str] = set()


class MissingCredentialsError(Exception):
    """No API key for the generation service."""


class EditionTimeoutError(Exception):
    """The build exceeded its deadline; carries a network-free stand-in."""

    def __init__(self, message: str, fallback: Edition):
        super().__init__(message)
        self.fallback = fallback


class EditionResult(BaseModel):
    edition: Edition
    key: str
    source: Literal["cache", "stale", "generated", "fallback"]


# ============================================================================
# Wiring
# ============================================================================


def create_cache(settings: Settings) -> EditionCache:
    if settings.cache.backend == "memory":
        store = MemoryEditionStore()
    else:
        store = FileEditionStore(settings.data_dir / "editions")
    return EditionCache(store, bucket_hours=settings.cache.bucket_hours)


def create_history(settings: Settings) -> HistoryRecorder | None:
    if not settings.history.enabled:
        return None
    return HistoryRecorder(
        settings.data_dir / "history.json", window_hours=settings.history.window_hours
    )


def require_client(settings: Settings, client: TextGenerator | None = None) -> TextGenerator:
    """Generation client for this run; fails fast when no key is configured."""
    if client is not None:
        return client
    if not settings.gemini_api_key:
        raise MissingCredentialsError(
            "GEMINI_API_KEY is not set. Add it to .env before generating editions."
        )
    return create_generation_client(settings.gemini_api_key, settings.generation)


def _spawn(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks(timeout: float = 10.0) -> None:
    """Wait for pending background work before the event loop shuts down."""
    pending = [t for t in _background_tasks if not t.done()]
    if not pending:
        return
    done, still_pending = await asyncio.wait(pending, timeout=timeout)
    if still_pending:
        logger.warning(f"{len(still_pending)} background tasks still running at shutdown")


# ============================================================================
# Build
# ============================================================================


def prepare_candidates(
    records: list[Record], settings: Settings, now: datetime | None = None
) -> list[Record]:
    """Filter, score and stratify raw records into the candidate set."""
    scored = prepare_records(records, settings.scoring, now)
    return CandidateSelector(settings.selection).select(scored)


async def build_edition(
    records: list[Record],
    settings: Settings,
    client: TextGenerator | None = None,
    now: datetime | None = None,
) -> Edition | EditionError:
    """Build one edition under the configured deadline.

    Raises:
        MissingCredentialsError: before any work when no key is configured
        EditionTimeoutError: when the deadline passes
    """
    client = require_client(settings, client)
    now = now or datetime.now(timezone.utc)

    if not records:
        logger.warning("No markets available, cannot build an edition")
        return EditionError(error="No markets available")

    candidates = prepare_candidates(records, settings, now)
    if not candidates:
        return EditionError(
            error="No newsworthy markets",
            detail=f"All {len(records)} markets were filtered out before selection",
        )

    orchestrator = StageOrchestrator(
        client,
        stages=settings.stages,
        selection=settings.selection,
        editorial=settings.editorial,
    )
    timeout = settings.editorial.generation_timeout_seconds

    logger.info(f"Building edition from {len(candidates)} candidates (deadline {timeout:.0f}s)")
    try:
        edition = await asyncio.wait_for(orchestrator.run(candidates, now), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Edition build exceeded {timeout:.0f}s deadline, discarding results")
        raise EditionTimeoutError(
            f"Edition generation timed out after {timeout:.0f}s",
            fallback=orchestrator.assemble_fallback(candidates, now),
        )

    logger.info(
        f"Edition built: {len(edition.blueprint.stories)} stories, "
        f"lead={edition.blueprint.lead.id}"
    )
    return edition


async def refresh_edition(
    settings: Settings,
    *,
    cache: EditionCache,
    history: HistoryRecorder | None = None,
    client: TextGenerator | None = None,
    records: list[Record] | None = None,
    now: datetime | None = None,
    stale: CacheLookup | None = None,
    daily: bool = False,
) -> EditionResult | EditionError:
    """Generate a fresh edition, persist it and record history."""
    client = require_client(settings, client)
    now = now or datetime.now(timezone.utc)
    key = cache.bucket_key(now)

    if records is None:
        try:
            records = await load_markets(settings)
        except MarketSourceError as e:
            logger.error(f"Failed to load markets: {e}")
            records = []

    try:
        edition = await build_edition(records, settings, client, now)
    except EditionTimeoutError as e:
        if stale is not None:
            logger.warning(f"Serving stale edition {stale.key} after timeout")
            return EditionResult(edition=stale.edition, key=stale.key, source="stale")
        return EditionResult(edition=e.fallback, key=key, source="fallback")

    if isinstance(edition, EditionError):
        if stale is not None:
            return EditionResult(edition=stale.edition, key=stale.key, source="stale")
        return edition

    cache.put(key, edition)
    if daily:
        cache.put_daily(edition, now)

    if history is not None:
        _spawn(
            history.record_in_background(list(edition.blueprint.stories), now),
            name=f"history-{key}",
        )

    return EditionResult(edition=edition, key=key, source="generated")


async def _refresh_in_background(settings: Settings, key: str, **kwargs: Any) -> None:
    try:
        await refresh_edition(settings, **kwargs)
    except Exception as e:
        logger.error(f"Background edition refresh failed for {key}: {e}")
    finally:
        _refreshing.discard(key)


async def get_edition(
    settings: Settings,
    *,
    force_refresh: bool = False,
    cache: EditionCache | None = None,
    history: HistoryRecorder | None = None,
    client: TextGenerator | None = None,
    records: list[Record] | None = None,
    now: datetime | None = None,
    background_refresh: bool = True,
) -> EditionResult | EditionError:
    """Serve the current edition, generating it on a cache miss.

    A daily-baseline hit is returned immediately as stale; with
    background_refresh the bucket edition is then rebuilt in a background task.
    """
    cache = cache if cache is not None else create_cache(settings)
    lookup = cache.get(force_refresh=force_refresh, now=now)

    if lookup is not None and not lookup.stale:
        return EditionResult(edition=lookup.edition, key=lookup.key, source="cache")

    if lookup is not None and background_refresh:
        key = cache.bucket_key(now)
        if key not in _refreshing:
            require_client(settings, client)
            _refreshing.add(key)
            _spawn(
                _refresh_in_background(
                    settings,
                    key,
                    cache=cache,
                    history=history,
                    client=client,
                    records=records,
                    now=now,
                ),
                name=f"refresh-{key}",
            )
        return EditionResult(edition=lookup.edition, key=lookup.key, source="stale")

    return await refresh_edition(
        settings,
        cache=cache,
        history=history,
        client=client,
        records=records,
        now=now,
        stale=lookup,
    )


async def build_daily_baseline(
    settings: Settings,
    *,
    cache: EditionCache | None = None,
    history: HistoryRecorder | None = None,
    client: TextGenerator | None = None,
    records: list[Record] | None = None,
    now: datetime | None = None,
) -> EditionResult | EditionError:
    """Forced refresh written under both the bucket key and the daily key."""
    logger.info("Daily baseline refresh starting")
    return await refresh_edition(
        settings,
        cache=cache if cache is not None else create_cache(settings),
        history=history if history is not None else create_history(settings),
        client=client,
        records=records,
        now=now,
        daily=True,
    )
