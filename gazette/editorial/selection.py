"""Stratified candidate selection for the front page.

The selector never calls the LLM. It narrows the scored market universe to a
deduplicated, category-balanced candidate set that the selection stage then
arranges into a page.
"""

import logging
from collections import Counter
from collections.abc import Iterable

from gazette.config import SelectionConfig

from .models import MarketCategory, MarketStatus, Record

logger = logging.getLogger(__name__)


def _by_total(records: Iterable[Record]) -> list[Record]:
    return sorted(records, key=lambda r: r.score.total, reverse=True)


def _abs_change(record: Record) -> float:
    change = record.price_change_24h
    if change is None or change != change:  # NaN
        return 0.0
    return abs(change)


def sub_tag(record: Record, vocabulary: list[str]) -> str:
    """Coarse sub-tag (e.g. league) via substring match, 'other' if none."""
    text = record.question.lower()
    return next((tag for tag in vocabulary if tag in text), "other")


def diverse_sample(records: Iterable[Record], vocabulary: list[str], limit: int) -> list[Record]:
    """Best-scoring records with at most one per sub-tag."""
    accepted: list[Record] = []
    seen_tags: set[str] = set()

    for record in _by_total(records):
        if len(accepted) >= limit:
            break
        tag = sub_tag(record, vocabulary)
        if tag in seen_tags:
            continue
        seen_tags.add(tag)
        accepted.append(record)

    return accepted


def dedupe_with_caps(groups: Iterable[list[Record]], hard_caps: dict[str, int]) -> list[Record]:
    """Single pass over the groups in order; first occurrence of an id wins.

    A record whose category already reached its cap is skipped.
    """
    seen: set[str] = set()
    per_category: Counter[str] = Counter()
    unique: list[Record] = []

    for group in groups:
        for record in group:
            if record.id in seen:
                continue
            cap = hard_caps.get(record.category)
            if cap is not None and per_category[record.category] >= cap:
                continue
            seen.add(record.id)
            per_category[record.category] += 1
            unique.append(record)

    return unique


class CandidateSelector:
    """Builds the candidate set from scored records."""

    def __init__(self, config: SelectionConfig | None = None):
        self.config = config or SelectionConfig()

    def category_groups(self, records: list[Record]) -> list[list[Record]]:
        """Top-K per category, in the quota table's order."""
        groups = []
        for category, quota in self.config.category_quotas.items():
            members = [r for r in records if r.category == category]
            groups.append(_by_total(members)[:quota])
        return groups

    def movers(self, records: list[Record]) -> list[Record]:
        excluded = set(self.config.mover_excluded_categories)
        eligible = [r for r in records if r.category not in excluded and _abs_change(r) > 0]
        return sorted(eligible, key=_abs_change, reverse=True)[: self.config.mover_count]

    def safety_net(self, records: list[Record]) -> list[Record]:
        excluded = set(self.config.safety_net_excluded_categories)
        eligible = [r for r in records if r.category not in excluded]
        return _by_total(eligible)[: self.config.safety_net_count]

    def diverse_group(self, records: list[Record]) -> list[Record]:
        members = [r for r in records if r.category == self.config.diverse_category]
        return diverse_sample(members, self.config.diverse_sub_tags, self.config.diverse_max)

    def select(self, records: list[Record]) -> list[Record]:
        """Return the ordered, deduplicated candidate set."""
        pool = list(records)
        if self.config.exclude_dead_on_arrival:
            pool = [r for r in pool if r.status != MarketStatus.DEAD_ON_ARRIVAL]

        groups = [
            *self.category_groups(pool),
            self.movers(pool),
            self.safety_net(pool),
            self.diverse_group(pool),
        ]
        candidates = _by_total(dedupe_with_caps(groups, self.config.hard_caps))

        counts = Counter(r.category for r in candidates)
        logger.info(
            f"Selected {len(candidates)} candidates from {len(records)} markets: "
            + ", ".join(f"{c}={n}" for c, n in counts.most_common())
        )
        return candidates


def rank_for_fallback(candidates: list[Record], config: SelectionConfig) -> list[Record]:
    """Score-ordered pick used when the selection stage cannot be reached.

    Excluded categories only come back as a few trailing fillers.
    """
    excluded = {MarketCategory(c) for c in config.fallback_excluded_categories}
    main = [r for r in _by_total(candidates) if r.category not in excluded]
    fillers = [r for r in _by_total(candidates) if r.category in excluded]
    return main[: config.fallback_story_count] + fillers[: config.fallback_filler_count]
