"""Market-data collaborator: already-parsed market records from a snapshot.

Records come either from a JSON file (default `data/markets.json`) or from an
HTTP endpoint serving the same document. Either a bare list or an object with
a "markets" list is accepted, with snake_case or camelCase field names.
"""

import json
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from gazette.config import Settings
from gazette.editorial.models import Record

logger = logging.getLogger(__name__)

_CAMEL_FIELDS = {
    "endDate": "end_date",
    "yesPrice": "yes_price",
    "noPrice": "no_price",
    "volume24hr": "volume_24h",
    "volume24h": "volume_24h",
    "totalVolume": "total_volume",
    "priceChange24h": "price_change_24h",
}

# Derived fields are always recomputed by the scoring engine
_DERIVED_FIELDS = {"category", "status", "score", "scores", "marketStatus"}


class MarketSourceError(Exception):
    """Market snapshot could not be loaded."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _normalize(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        _CAMEL_FIELDS.get(key, key): value
        for key, value in raw.items()
        if key not in _DERIVED_FIELDS
    }


def parse_records(payload: Any) -> list[Record]:
    """Validate raw market dicts; invalid rows are skipped with a warning."""
    if isinstance(payload, dict):
        payload = payload.get("markets", [])
    if not isinstance(payload, list):
        raise MarketSourceError(f"Expected a list of markets, got {type(payload).__name__}")

    records = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        try:
            records.append(Record.model_validate(_normalize(raw)))
        except ValidationError as e:
            logger.warning(f"Skipping invalid market {raw.get('id', '?')}: {e.error_count()} errors")
    return records


def load_records(path: Path) -> list[Record]:
    """Load records from a JSON snapshot file."""
    if not path.exists():
        raise MarketSourceError(f"Market snapshot not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise MarketSourceError(f"Invalid market snapshot {path}: {e}") from e

    records = parse_records(payload)
    logger.info(f"Loaded {len(records)} markets from {path}")
    return records


async def fetch_records(url: str, timeout_seconds: float = 30.0) -> list[Record]:
    """Fetch records from an HTTP endpoint serving a market snapshot."""
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(url)
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPStatusError as e:
        raise MarketSourceError(
            f"Market endpoint returned {e.response.status_code}",
            status_code=e.response.status_code,
        ) from e
    except (httpx.HTTPError, json.JSONDecodeError) as e:
        raise MarketSourceError(f"Failed to fetch markets from {url}: {e}") from e

    records = parse_records(payload)
    logger.info(f"Fetched {len(records)} markets from {url}")
    return records


async def load_markets(settings: Settings) -> list[Record]:
    """Records from the configured source (URL wins over file)."""
    if settings.markets_url:
        return await fetch_records(settings.markets_url)
    return load_records(settings.get_markets_path())
