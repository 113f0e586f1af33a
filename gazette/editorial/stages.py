"""The fixed set of editorial generation stages.

A stage knows how to phrase one batch request, how to read its entries back
out of the extracted payload, and what to use when an entry is missing. The
orchestrator owns batching, concurrency and merging.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from gazette.config import SelectionConfig, StageConfig

from .extraction import ExtractionError
from .fallbacks import (
    fallback_article,
    fallback_headline,
    fallback_take,
    format_volume,
    is_question_headline,
)
from .models import (
    Blueprint,
    Confidence,
    ContrarianTake,
    GenerationUnit,
    Record,
    SelectionDecision,
    StageResult,
    StageStatus,
    Story,
    StoryLayout,
)
from .prompts import (
    ANNOTATION_PROMPT,
    ARTICLE_NOTE_INSTRUCTION,
    ARTICLE_PROMPT,
    HEADLINE_PROMPT,
    REVIEW_PROMPT,
    SELECTION_PROMPT,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def describe_record(record: Record, label: str) -> str:
    """One prompt line with the market facts a writer needs."""
    change = record.price_change_24h
    change_text = f"{change:+.1f}pp" if change is not None else "n/a"
    layout = f"{record.layout.value}, " if isinstance(record, Story) else ""
    return (
        f"[{label}] ({layout}{record.category.value}) {record.question} | "
        f"YES {record.yes_price:.0%} | 24h volume {format_volume(record.volume_24h)} | "
        f"24h change {change_text}"
    )


def describe_unit(unit: GenerationUnit, label: str) -> str:
    lines = [describe_record(unit.story, label)]
    for key, value in unit.context.items():
        lines.append(f"    {key}: {value}")
    return "\n".join(lines)


def _text(raw: Any) -> str | None:
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


class GenerationStage(ABC, Generic[T]):
    """One batched text-generation phase."""

    name: str = "stage"
    entry_type: type = str
    payload_key: str | None = None  # entries nested under this key when set
    key_by_id: bool = False  # responses keyed by story id instead of batch position

    def __init__(self, config: StageConfig):
        self.config = config

    @abstractmethod
    def build_prompt(self, batch: list[GenerationUnit], batch_index: int) -> str:
        ...

    @abstractmethod
    def parse_entry(self, raw: Any, unit: GenerationUnit) -> T | None:
        """Typed entry from the raw payload value, or None to reject it."""

    @abstractmethod
    def fallback(self, unit: GenerationUnit) -> T:
        ...

    def entries_from(self, payload: dict[str, Any]) -> dict[str, Any]:
        if self.payload_key is None:
            return payload
        entries = payload.get(self.payload_key)
        if not isinstance(entries, dict):
            raise ExtractionError(f"Response is missing '{self.payload_key}' object")
        return entries

    def inspect_payload(self, payload: dict[str, Any], batch_index: int) -> None:
        """Hook for stage-level metadata carried alongside the entries."""

    def summarize(self, result: StageResult[T]) -> str:
        fallback_batches = sum(1 for b in result.batches if b.status == StageStatus.FALLBACK)
        return (
            f"{len(result.entries)} entries from {len(result.batches)} batches "
            f"({fallback_batches} fell back)"
        )


class HeadlineStage(GenerationStage[str]):
    name = "headlines"

    def build_prompt(self, batch: list[GenerationUnit], batch_index: int) -> str:
        stories = "\n".join(describe_unit(u, str(i)) for i, u in enumerate(batch))
        return HEADLINE_PROMPT.format(stories=stories)

    def parse_entry(self, raw: Any, unit: GenerationUnit) -> str | None:
        headline = _text(raw)
        if headline is None or is_question_headline(headline):
            return None
        return headline

    def fallback(self, unit: GenerationUnit) -> str:
        return fallback_headline(unit.story)


class ArticleStage(GenerationStage[str]):
    name = "articles"

    def __init__(self, config: StageConfig, default_note: str = ""):
        super().__init__(config)
        self.default_note = default_note
        self.editorial_note: str | None = None

    def build_prompt(self, batch: list[GenerationUnit], batch_index: int) -> str:
        stories = "\n".join(describe_unit(u, str(i)) for i, u in enumerate(batch))
        first = batch_index == 0
        return ARTICLE_PROMPT.format(
            stories=stories,
            note_instruction=ARTICLE_NOTE_INSTRUCTION if first else "",
            note_field=', "note": "..."' if first else "",
        )

    def inspect_payload(self, payload: dict[str, Any], batch_index: int) -> None:
        if batch_index == 0:
            self.editorial_note = _text(payload.get("note"))

    def parse_entry(self, raw: Any, unit: GenerationUnit) -> str | None:
        return _text(raw)

    def fallback(self, unit: GenerationUnit) -> str:
        return fallback_article(unit.story)

    def summarize(self, result: StageResult[str]) -> str:
        return self.editorial_note or self.default_note


class ReviewStage(GenerationStage[str]):
    """Chief editor pass over the drafts; an unreviewed draft is a valid result."""

    name = "review"
    payload_key = "reviewed"
    key_by_id = True

    def build_prompt(self, batch: list[GenerationUnit], batch_index: int) -> str:
        stories = "\n".join(describe_unit(u, u.story_id) for u in batch)
        return REVIEW_PROMPT.format(stories=stories)

    def parse_entry(self, raw: Any, unit: GenerationUnit) -> str | None:
        return _text(raw)

    def fallback(self, unit: GenerationUnit) -> str:
        return unit.context.get("draft") or fallback_article(unit.story)

    def summarize(self, result: StageResult[str]) -> str:
        notes = [
            f"Batch {b.index + 1} used original content."
            for b in result.batches
            if b.status == StageStatus.FALLBACK
        ]
        return " | ".join(notes) if notes else "All batches reviewed successfully."


class AnnotationStage(GenerationStage[ContrarianTake]):
    """Contrarian takes for featured stories."""

    name = "annotations"
    entry_type = ContrarianTake
    payload_key = "takes"

    def build_prompt(self, batch: list[GenerationUnit], batch_index: int) -> str:
        stories = "\n".join(describe_unit(u, str(i)) for i, u in enumerate(batch))
        return ANNOTATION_PROMPT.format(stories=stories)

    def parse_entry(self, raw: Any, unit: GenerationUnit) -> ContrarianTake | None:
        if not isinstance(raw, dict):
            return None
        bear_case = _text(raw.get("bearCase") or raw.get("bear_case"))
        if bear_case is None:
            return None

        default = fallback_take(unit.story)
        confidence = str(raw.get("confidence", "")).upper()
        return ContrarianTake(
            bear_case=bear_case,
            key_risk=_text(raw.get("keyRisk") or raw.get("key_risk")) or default.key_risk,
            who_disagrees=_text(raw.get("whoDisagrees") or raw.get("who_disagrees"))
            or default.who_disagrees,
            confidence=Confidence(confidence) if confidence in Confidence.__members__ else Confidence.LOW,
        )

    def fallback(self, unit: GenerationUnit) -> ContrarianTake:
        return fallback_take(unit.story)

    def summarize(self, result: StageResult[ContrarianTake]) -> str:
        high = sum(1 for take in result.entries.values() if take.confidence == Confidence.HIGH)
        return (
            f"Generated {len(result.entries)} contrarian takes. "
            f"{high} challenge consensus with high confidence."
        )


# ============================================================================
# Selection
# ============================================================================


def _parse_layout(value: Any) -> StoryLayout:
    text = str(value or "").upper()
    return StoryLayout(text) if text in StoryLayout.__members__ else StoryLayout.BRIEF


def enforce_page(
    chosen: list[tuple[Record, StoryLayout, str]],
    candidates: list[Record],
    config: SelectionConfig,
) -> list[tuple[Story, str]]:
    """Apply the front-page rules to raw selections.

    Fills short pages from the remaining candidates, caps long ones and makes
    sure exactly one LEAD exists and comes first.
    """
    page = list(chosen)
    picked = {record.id for record, _, _ in page}

    if len(page) < config.min_stories:
        for record in candidates:
            if len(page) >= config.max_fill_stories:
                break
            if record.id not in picked:
                page.append((record, StoryLayout.BRIEF, "Added to fill the page."))
                picked.add(record.id)

    page = page[: config.absolute_cap]

    lead_index = next((i for i, (_, layout, _) in enumerate(page) if layout == StoryLayout.LEAD), 0)
    stories = []
    for i, (record, layout, why) in enumerate(page):
        if i == lead_index:
            layout = StoryLayout.LEAD
        elif layout == StoryLayout.LEAD:
            layout = StoryLayout.FEATURE
        stories.append((Story.from_record(record, layout), why))

    if stories:
        stories.insert(0, stories.pop(lead_index))
    return stories


class SelectionStage:
    """Single-request stage that turns the candidate set into a Blueprint."""

    name = "selection"

    def __init__(self, config: StageConfig, selection: SelectionConfig):
        self.config = config
        self.selection = selection

    def build_prompt(self, candidates: list[Record]) -> str:
        lines = "\n".join(describe_record(r, str(i)) for i, r in enumerate(candidates))
        return SELECTION_PROMPT.format(
            candidates=lines,
            min_stories=self.selection.min_stories,
            target_stories=self.selection.target_stories,
        )

    def parse(
        self, payload: dict[str, Any], candidates: list[Record]
    ) -> tuple[Blueprint, dict[str, SelectionDecision]]:
        selections = payload.get("selections")
        if not isinstance(selections, list):
            raise ExtractionError("Response is missing 'selections' list")

        index_table = {str(i): record for i, record in enumerate(candidates)}
        chosen: list[tuple[Record, StoryLayout, str]] = []
        seen: set[str] = set()
        for item in selections:
            if not isinstance(item, dict):
                continue
            record = index_table.get(str(item.get("index")))
            if record is None or record.id in seen:
                continue
            seen.add(record.id)
            chosen.append((record, _parse_layout(item.get("layout")), str(item.get("why") or "")))

        if not chosen:
            raise ExtractionError("Selection response referenced no valid candidates")

        page = enforce_page(chosen, candidates, self.selection)
        blueprint = Blueprint(
            stories=tuple(story for story, _ in page),
            reasoning=str(payload.get("reasoning") or ""),
        )
        decisions = {
            story.id: SelectionDecision(layout=story.layout, why=why) for story, why in page
        }
        return blueprint, decisions
