"""Shared fixtures: record factories, a scripted generation client, test settings."""

import json
import re
from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from gazette.config import (
    CacheConfig,
    HistoryConfig,
    Settings,
    StageConfig,
    StagesConfig,
)
from gazette.editorial.models import MarketCategory, Record
from gazette.editorial.orchestrator import StageOrchestrator
from gazette.services.generation import GenerationError

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)

# Matches the per-story lines the stages put in their prompts
STORY_LINE_RE = re.compile(r"^\[([^\]]+)\] \(([^)]*)\) (.+?) \| YES", re.MULTILINE)


def story_lines(prompt: str) -> list[tuple[str, str]]:
    """(label, question) for every story listed in a prompt."""
    return [(m.group(1), m.group(3)) for m in STORY_LINE_RE.finditer(prompt)]


def scripted_response(operation: str, prompt: str) -> str:
    """A well-formed response for any stage, derived from the prompt itself."""
    lines = story_lines(prompt)

    if operation == "selection":
        selections = []
        for position, (label, _) in enumerate(lines[:25]):
            layout = "LEAD" if position == 0 else "FEATURE" if position < 6 else "BRIEF"
            selections.append({"index": int(label), "layout": layout, "why": f"pick {label}"})
        return json.dumps({"selections": selections, "reasoning": "A balanced page."})

    if operation.startswith("headlines"):
        return json.dumps({label: f"Markets Back {question}" for label, question in lines})

    if operation.startswith("articles"):
        payload = {label: f"Article on {question}" for label, question in lines}
        if operation == "articles[0]":
            payload["note"] = "Tomorrow is already priced in."
        return "```json\n" + json.dumps(payload) + "\n```"

    if operation.startswith("annotations"):
        takes = {
            label: {
                "bearCase": f"The crowd is wrong on {question}",
                "keyRisk": "Thin liquidity",
                "whoDisagrees": "Pollsters",
                "confidence": "HIGH",
            }
            for label, question in lines
        }
        return json.dumps({"takes": takes})

    if operation.startswith("review"):
        return json.dumps({"reviewed": {label: f"Reviewed {label}" for label, _ in lines}})

    raise AssertionError(f"unexpected operation {operation}")


class FakeClient:
    """Stands in for GenerationClient; records every call it receives."""

    def __init__(self, responder: Callable[[str, str], str] = scripted_response):
        self.responder = responder
        self.calls: list[tuple[str, str]] = []

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        operation: str = "complete",
    ) -> str:
        self.calls.append((operation, prompt))
        return self.responder(operation, prompt)

    def operations(self, prefix: str) -> list[str]:
        return [op for op, _ in self.calls if op.startswith(prefix)]


def failing_for(*prefixes: str) -> Callable[[str, str], str]:
    """Responder that raises a service error for operations with these prefixes."""

    def responder(operation: str, prompt: str) -> str:
        if operation.startswith(prefixes):
            raise GenerationError(f"{operation} failed after 2 attempts", attempts=2)
        return scripted_response(operation, prompt)

    return responder


@pytest.fixture
def make_record() -> Callable[..., Record]:
    def _make(
        id: str,
        question: str | None = None,
        category: MarketCategory = MarketCategory.OTHER,
        **fields,
    ) -> Record:
        fields.setdefault("yes_price", 0.62)
        fields.setdefault("no_price", round(1 - fields["yes_price"], 4))
        fields.setdefault("volume_24h", 25_000.0)
        fields.setdefault("price_change_24h", 4.0)
        return Record(
            id=id,
            question=question or f"Market question {id}",
            category=category,
            **fields,
        )

    return _make


@pytest.fixture
def candidates(make_record) -> list[Record]:
    """Thirty mixed candidates, already ordered like a selector would return them."""
    categories = [
        MarketCategory.POLITICS,
        MarketCategory.CONFLICT,
        MarketCategory.TECH,
        MarketCategory.SCIENCE,
        MarketCategory.FINANCE,
        MarketCategory.SPORTS,
    ]
    return [
        make_record(f"m{i}", f"Story number {i}", categories[i % len(categories)])
        for i in range(30)
    ]


@pytest.fixture
def fast_stages() -> StagesConfig:
    """Default batch sizes without stagger delays."""
    return StagesConfig(
        selection=StageConfig(batch_size=40, stagger_ms=0),
        headlines=StageConfig(batch_size=8, stagger_ms=0),
        articles=StageConfig(batch_size=5, stagger_ms=0),
        annotations=StageConfig(batch_size=5, stagger_ms=0),
        review=StageConfig(batch_size=2, stagger_ms=0),
    )


@pytest.fixture
def settings(tmp_path, fast_stages) -> Settings:
    return Settings(
        data_dir=tmp_path,
        gemini_api_key="test-key",
        stages=fast_stages,
        cache=CacheConfig(backend="memory"),
        history=HistoryConfig(enabled=False),
    )


@pytest.fixture
def edition(candidates, fast_stages):
    """A complete edition built without any model calls."""
    return StageOrchestrator(FakeClient(), stages=fast_stages).assemble_fallback(candidates, NOW)
