"""Unit tests for gazette.sources."""

import json

import httpx
import pytest

from gazette import sources
from gazette.config import ScoringConfig
from gazette.editorial.models import MarketCategory
from gazette.editorial.scoring import prepare_records
from gazette.sources import MarketSourceError, load_records, parse_records


def test_parse_records_accepts_camel_case_and_drops_derived_fields():
    payload = {
        "markets": [
            {
                "id": "m1",
                "question": "Will the senate confirm the nominee?",
                "yesPrice": 0.7,
                "noPrice": 0.3,
                "volume24hr": 1234.5,
                "priceChange24h": -3.5,
                "category": "SPORTS",
                "scores": {"total": 1.0},
            }
        ]
    }

    [record] = parse_records(payload)

    assert record.yes_price == 0.7
    assert record.volume_24h == 1234.5
    assert record.price_change_24h == -3.5
    assert record.category == MarketCategory.OTHER
    assert record.score.total == 0.0


def test_invalid_rows_are_skipped():
    records = parse_records([{"id": "ok", "question": "Fine"}, {"id": "bad"}, "junk"])
    assert [r.id for r in records] == ["ok"]


def test_parse_records_rejects_non_list():
    with pytest.raises(MarketSourceError):
        parse_records("markets")


def test_load_records_errors(tmp_path):
    with pytest.raises(MarketSourceError):
        load_records(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{")
    with pytest.raises(MarketSourceError):
        load_records(broken)


def test_load_records_from_file(tmp_path):
    path = tmp_path / "markets.json"
    path.write_text(json.dumps([{"id": "m1", "question": "Will it rain?"}]))

    assert [r.id for r in load_records(path)] == ["m1"]


@pytest.mark.asyncio
async def test_fetch_records_maps_http_errors(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": "upstream"})

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient

    def _client(**kwargs):
        return real_client(transport=transport, **kwargs)

    monkeypatch.setattr(sources.httpx, "AsyncClient", _client)

    with pytest.raises(MarketSourceError) as exc_info:
        await sources.fetch_records("https://markets.example/snapshot.json")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_fetch_records_parses_payload(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"markets": [{"id": "m1", "question": "Will it rain?"}]})

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        sources.httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs)
    )

    records = await sources.fetch_records("https://markets.example/snapshot.json")

    assert [r.id for r in records] == ["m1"]


def test_null_price_and_volume_fields_are_kept_and_scored():
    records = parse_records(
        [
            {"id": "a", "question": "Will the senate pass the bill?", "yesPrice": 0.6, "volume24hr": None},
            {"id": "b", "question": "Will nasa land on mars?", "yesPrice": None, "volume24hr": 10},
        ]
    )

    assert [r.id for r in records] == ["a", "b"]
    assert records[0].volume_24h == 0.0
    assert records[1].yes_price == 0.5

    scored = prepare_records(records, ScoringConfig())

    assert [r.id for r in scored] == ["a", "b"]
    assert scored[0].score.money == 0.0
    assert scored[1].score.certainty == 0.0
    assert all(0.0 <= r.score.total <= 1.0 for r in scored)
