"""Stage orchestration: selection -> headlines -> articles -> review.

Within a stage, batches run concurrently with staggered starts. Independent
work runs side by side: datelines with headlines, contrarian annotations with
articles. Every stage result is total over the stories it covers; anything a
batch could not produce is filled from the deterministic fallbacks.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

from gazette.config import EditorialConfig, SelectionConfig, StageConfig, StagesConfig
from gazette.services.generation import GenerationError

from .extraction import extract_json
from .fallbacks import assign_dateline, fallback_blueprint, fallback_decision
from .models import (
    BatchReport,
    Blueprint,
    Edition,
    GenerationUnit,
    Record,
    SelectionDecision,
    StageResult,
    StageStatus,
)
from .outcome import FailureKind, Outcome
from .stages import (
    AnnotationStage,
    ArticleStage,
    GenerationStage,
    HeadlineStage,
    ReviewStage,
    SelectionStage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TextGenerator(Protocol):
    async def complete(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        operation: str = "complete",
    ) -> str: ...


def chunk(units: list[GenerationUnit], size: int) -> list[list[GenerationUnit]]:
    return [units[i : i + size] for i in range(0, len(units), size)]


def overall_status(reports: list[BatchReport]) -> StageStatus:
    """SUCCEEDED if every batch succeeded, FALLBACK if none produced anything."""
    statuses = {report.status for report in reports}
    if not statuses or statuses == {StageStatus.SUCCEEDED}:
        return StageStatus.SUCCEEDED
    if statuses == {StageStatus.FALLBACK}:
        return StageStatus.FALLBACK
    return StageStatus.PARTIAL


class StageOrchestrator:
    """Runs the editorial stages for one edition."""

    def __init__(
        self,
        client: TextGenerator,
        stages: StagesConfig | None = None,
        selection: SelectionConfig | None = None,
        editorial: EditorialConfig | None = None,
    ):
        self.client = client
        self.stages = stages or StagesConfig()
        self.selection = selection or SelectionConfig()
        self.editorial = editorial or EditorialConfig()

    # ========================================================================
    # Batch plumbing
    # ========================================================================

    async def _call(self, operation: str, prompt: str, config: StageConfig) -> Outcome[str]:
        try:
            text = await self.client.complete(
                prompt,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                operation=operation,
            )
            return Outcome.success(text)
        except GenerationError as e:
            return Outcome.failed(FailureKind.SERVICE, str(e))

    @staticmethod
    def _map_entries(
        stage: GenerationStage[T],
        payload: dict[str, Any],
        batch_index: int,
        index_table: dict[str, GenerationUnit],
    ) -> dict[str, T]:
        """Read entries back through the index->id table, never by key order."""
        stage.inspect_payload(payload, batch_index)
        raw_entries = stage.entries_from(payload)

        mapped: dict[str, T] = {}
        for local_key, unit in index_table.items():
            keys = (unit.story_id, local_key) if stage.key_by_id else (local_key, unit.story_id)
            raw = next((raw_entries[k] for k in keys if k in raw_entries), None)
            if raw is None:
                continue
            value = stage.parse_entry(raw, unit)
            if value is not None:
                mapped[unit.story_id] = value
        return mapped

    async def _run_batch(
        self,
        stage: GenerationStage[T],
        batch_index: int,
        batch: list[GenerationUnit],
    ) -> tuple[dict[str, T], BatchReport]:
        if batch_index and stage.config.stagger_ms:
            await asyncio.sleep(batch_index * stage.config.stagger_ms / 1000)

        index_table = {str(i): unit for i, unit in enumerate(batch)}
        prompt = stage.build_prompt(batch, batch_index)

        outcome = await self._call(f"{stage.name}[{batch_index}]", prompt, stage.config)
        outcome = outcome.then(extract_json).then(
            lambda payload: self._map_entries(stage, payload, batch_index, index_table)
        )
        mapped = outcome.coalesce(dict)

        if not outcome.ok:
            logger.warning(
                f"{stage.name} batch {batch_index} fell back ({outcome.failure}): {outcome.error}"
            )
            status = StageStatus.FALLBACK
        elif len(mapped) == len(batch):
            status = StageStatus.SUCCEEDED
        elif mapped:
            status = StageStatus.PARTIAL
        else:
            status = StageStatus.FALLBACK

        entries = {
            unit.story_id: mapped[unit.story_id] if unit.story_id in mapped else stage.fallback(unit)
            for unit in batch
        }
        report = BatchReport(
            index=batch_index,
            size=len(batch),
            status=status,
            error=outcome.error or None,
        )
        return entries, report

    # ========================================================================
    # Stages
    # ========================================================================

    async def run_stage(
        self, stage: GenerationStage[T], units: list[GenerationUnit]
    ) -> StageResult[T]:
        """Fan a stage out over its batches and merge the results."""
        result_type = StageResult[stage.entry_type]
        batches = chunk(units, stage.config.batch_size)
        logger.info(
            f"Stage {stage.name}: {StageStatus.DISPATCHED} {len(units)} items "
            f"in {len(batches)} batches"
        )

        outcomes = await asyncio.gather(
            *(self._run_batch(stage, i, batch) for i, batch in enumerate(batches)),
            return_exceptions=True,
        )

        entries: dict[str, T] = {}
        reports: list[BatchReport] = []
        for i, (batch, outcome) in enumerate(zip(batches, outcomes)):
            if isinstance(outcome, Exception):
                logger.error(f"{stage.name} batch {i} crashed: {outcome}", exc_info=outcome)
                entries.update({unit.story_id: stage.fallback(unit) for unit in batch})
                reports.append(
                    BatchReport(index=i, size=len(batch), status=StageStatus.FALLBACK, error=str(outcome))
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            batch_entries, report = outcome
            entries.update(batch_entries)
            reports.append(report)

        # Every covered story must end up with a non-empty entry
        for unit in units:
            if not entries.get(unit.story_id):
                logger.warning(f"{stage.name}: backfilling missing entry for {unit.story_id}")
                entries[unit.story_id] = stage.fallback(unit)

        result = result_type(
            stage=stage.name,
            status=overall_status(reports),
            entries=entries,
            batches=reports,
        )
        result = result.model_copy(update={"note": stage.summarize(result)})
        logger.info(f"Stage {stage.name}: {result.status} ({result.note})")
        return result

    async def select(
        self, candidates: list[Record]
    ) -> tuple[Blueprint, StageResult[SelectionDecision]]:
        """Ask the model to lay out the page; fall back to score order."""
        stage = SelectionStage(self.stages.selection, self.selection)

        outcome = await self._call(stage.name, stage.build_prompt(candidates), stage.config)
        outcome = outcome.then(extract_json).then(lambda payload: stage.parse(payload, candidates))

        if outcome.ok:
            blueprint, decisions = outcome.value
            status = StageStatus.SUCCEEDED
        else:
            logger.warning(f"Selection fell back ({outcome.failure}): {outcome.error}")
            blueprint = fallback_blueprint(candidates, self.selection)
            decisions = {}
            status = StageStatus.FALLBACK

        for story in blueprint.stories:
            decisions.setdefault(story.id, fallback_decision(story))

        result = StageResult[SelectionDecision](
            stage=stage.name,
            status=status,
            entries=decisions,
            note=blueprint.reasoning,
            batches=[
                BatchReport(index=0, size=len(candidates), status=status, error=outcome.error or None)
            ],
        )
        logger.info(
            f"Selection: {status}, {len(blueprint.stories)} stories, "
            f"lead={blueprint.lead.id if blueprint.stories else None}"
        )
        return blueprint, result

    async def assign_datelines(self, blueprint: Blueprint, now: datetime) -> dict[str, str]:
        return {story.id: assign_dateline(story, now) for story in blueprint.stories}

    def _stage_set(self) -> tuple[HeadlineStage, ArticleStage, AnnotationStage, ReviewStage]:
        return (
            HeadlineStage(self.stages.headlines),
            ArticleStage(self.stages.articles, default_note=self.editorial.default_note),
            AnnotationStage(self.stages.annotations),
            ReviewStage(self.stages.review),
        )

    async def run(self, candidates: list[Record], now: datetime | None = None) -> Edition:
        """Build a complete edition from the candidate set."""
        now = now or datetime.now(timezone.utc)
        headline_stage, article_stage, annotation_stage, review_stage = self._stage_set()

        blueprint, selection = await self.select(candidates)
        stories = blueprint.stories

        headlines, datelines = await asyncio.gather(
            self.run_stage(headline_stage, [GenerationUnit(story=s) for s in stories]),
            self.assign_datelines(blueprint, now),
        )

        article_units = [
            GenerationUnit(
                story=s,
                context={"headline": headlines.entries[s.id], "dateline": datelines[s.id]},
            )
            for s in stories
        ]
        annotation_units = [GenerationUnit(story=s) for s in blueprint.featured]
        articles, annotations = await asyncio.gather(
            self.run_stage(article_stage, article_units),
            self.run_stage(annotation_stage, annotation_units),
        )

        review_units = [
            GenerationUnit(
                story=s,
                context={"headline": headlines.entries[s.id], "draft": articles.entries[s.id]},
            )
            for s in stories
        ]
        reviews = await self.run_stage(review_stage, review_units)

        return Edition(
            blueprint=blueprint,
            selection=selection,
            headlines=headlines,
            articles=articles,
            reviews=reviews,
            annotations=annotations,
            datelines=datelines,
            editorial_note=articles.note,
            generated_at=now,
            is_fallback=blueprint.from_fallback,
        )

    def assemble_fallback(self, candidates: list[Record], now: datetime | None = None) -> Edition:
        """Network-free edition built purely from fallbacks."""
        now = now or datetime.now(timezone.utc)
        headline_stage, article_stage, annotation_stage, review_stage = self._stage_set()
        blueprint = fallback_blueprint(candidates, self.selection)

        def fill(stage: GenerationStage[T], units: list[GenerationUnit]) -> StageResult[T]:
            return StageResult[stage.entry_type](
                stage=stage.name,
                status=StageStatus.FALLBACK,
                entries={u.story_id: stage.fallback(u) for u in units},
            )

        units = [GenerationUnit(story=s) for s in blueprint.stories]
        headlines = fill(headline_stage, units)
        articles = fill(article_stage, units)
        reviews = fill(
            review_stage,
            [GenerationUnit(story=u.story, context={"draft": articles.entries[u.story_id]}) for u in units],
        )
        annotations = fill(annotation_stage, [GenerationUnit(story=s) for s in blueprint.featured])

        return Edition(
            blueprint=blueprint,
            selection=StageResult[SelectionDecision](
                stage="selection",
                status=StageStatus.FALLBACK,
                entries={s.id: fallback_decision(s) for s in blueprint.stories},
                note=blueprint.reasoning,
            ),
            headlines=headlines,
            articles=articles,
            reviews=reviews,
            annotations=annotations,
            datelines={s.id: assign_dateline(s, now) for s in blueprint.stories},
            editorial_note=self.editorial.default_note,
            generated_at=now,
            is_fallback=True,
        )
