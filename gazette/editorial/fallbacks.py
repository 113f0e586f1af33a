"""Deterministic stand-ins for every generated field.

Used whenever a batch call fails, a response cannot be extracted, or an id is
missing from a response. All functions depend only on the record (and a clock
for datelines), so the same story always gets the same fallback text.
"""

import re
from datetime import datetime, timedelta, timezone

from gazette.config import SelectionConfig

from .models import (
    Blueprint,
    Confidence,
    ContrarianTake,
    MarketCategory,
    Record,
    SelectionDecision,
    Story,
    StoryLayout,
)
from .selection import rank_for_fallback

_LEADING_VERB_RE = re.compile(r"^(will|is|does|can|should)\s+", re.IGNORECASE)

DATELINES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(trump|biden|congress|fed|white house)\b"), "WASHINGTON"),
    (re.compile(r"\b(ukraine|russia)\b"), "KYIV"),
    (re.compile(r"\b(israel|gaza)\b"), "JERUSALEM"),
    (re.compile(r"\b(china|taiwan)\b"), "TAIPEI"),
    (re.compile(r"\b(uk|britain)\b"), "LONDON"),
    (re.compile(r"\b(eu|europe)\b"), "BRUSSELS"),
    (re.compile(r"\b(openai|google|apple|meta|ai)\b"), "SAN FRANCISCO"),
    (re.compile(r"\b(spacex|nasa)\b"), "CAPE CANAVERAL"),
    (re.compile(r"\b(bitcoin|crypto)\b"), "CRYPTO WIRE"),
    (re.compile(r"\b(oscar|oscars|movie|hollywood)\b"), "LOS ANGELES"),
]
DEFAULT_DATELINE = "NEW YORK"


# ============================================================================
# Formatting helpers
# ============================================================================


def format_volume(volume: float) -> str:
    """'$1.2 million', '$45K' or '$800'."""
    if volume >= 1e6:
        return f"${volume / 1e6:.1f} million"
    if volume >= 1e3:
        return f"${round(volume / 1e3)}K"
    return f"${volume:.0f}"


def seeded_pick(options: list[str], seed: str) -> str:
    """Stable choice keyed on the story id."""
    return options[sum(ord(c) for c in seed) % len(options)]


def _odds_pct(record: Record) -> int:
    return round(record.leading_odds * 100)


# ============================================================================
# Headlines
# ============================================================================


def fallback_headline(record: Record | None) -> str:
    """Turn the market question into a declarative all-caps headline."""
    if record is None:
        return "BREAKING DEVELOPMENTS"

    subject = _LEADING_VERB_RE.sub("", record.question.replace("?", "").strip())
    subject = subject.upper() or "BREAKING DEVELOPMENTS"

    if record.leading_odds > 0.7:
        return subject if record.yes_favoured else f"{subject} UNLIKELY"
    return f"{subject} IN QUESTION"


def is_question_headline(headline: str) -> bool:
    """Headlines must state, not ask."""
    return "will " in headline.lower() or headline.strip().endswith("?")


# ============================================================================
# Articles
# ============================================================================


def _brief_templates(odds: int, vol: str) -> list[str]:
    if odds >= 85:
        return [
            f"Traders have all but closed the book at {odds}%. With {vol} changing hands, the debate has moved on to what happens next.",
            f"At {odds}%, the market treats this as settled. {vol} in volume says the money agrees.",
            f"Locked near {odds}% on {vol} of trading. Dissent has gone quiet.",
        ]
    if odds >= 70:
        return [
            f"A clear favourite at {odds}%, backed by {vol} in volume. Clear is not the same as certain.",
            f"Markets lean hard at {odds}%. The {vol} traded suggests conviction with room for a surprise.",
            f"Priced at {odds}% on {vol}. Strong, not unassailable.",
        ]
    if odds >= 55:
        return [
            f"A narrow edge at {odds}% with {vol} in play. One headline could erase it.",
            f"Slight favourite territory: {odds}% on {vol} of volume. Neither side is comfortable.",
            f"At {odds}%, traders see a lean but no lock. {vol} is riding on it.",
        ]
    if odds >= 45:
        return [
            f"A coin flip at {odds}%. The {vol} wagered is split down the middle.",
            f"Dead even at {odds}% with {vol} traded. The next signal decides it.",
            f"Markets cannot choose: {odds}% on {vol} of volume.",
        ]
    return [
        f"Long odds at {odds}%, yet {vol} in volume says believers remain.",
        f"Upset territory at {odds}%. {vol} traded says someone sees what the market does not.",
        f"At {odds}% the outcome is improbable, and {vol} in play says it is not impossible.",
    ]


def _feature_templates(odds: int, vol: str) -> list[str]:
    if odds >= 70:
        return [
            f"The market has a view and is not shy about it: {odds}% on {vol} of trading.\n\n"
            "Consensus at this level tends to harden, and the remaining doubt reads more like "
            "caution than conviction. Traders are already pricing the second-order effects.",
            f"With {vol} traded and odds at {odds}%, the favourite is established.\n\n"
            "What is left is timing and magnitude. The contrarians have thinned out, and the "
            "ones who remain are betting on an event nobody can yet name.",
        ]
    if odds >= 45:
        return [
            f"At {odds}%, this is the rare market that genuinely does not know.\n\n"
            f"{vol} has traded on both sides. Every new data point moves the line, and the "
            "line keeps coming back to the middle.",
            f"Traders have put {vol} behind a market stuck near {odds}%.\n\n"
            "Neither camp has landed the decisive argument. Expect volatility around every "
            "scheduled announcement until one does.",
        ]
    return [
        f"The market gives this just {odds}%, but {vol} in volume says the long shot has backers.\n\n"
        "Upsets start exactly here: a quiet minority, a catalyst the crowd underrates, and a "
        "price that has room to move.",
        f"Odds of {odds}% make this an outsider, and {vol} traded keeps it alive.\n\n"
        "The consensus may be right. It has also been wrong at these levels before.",
    ]


def _lead_templates(odds: int, vol: str) -> list[str]:
    return [
        f"{_feature_templates(odds, vol)[0]}\n\n"
        "This is the story the market is watching most closely today, and the one most likely "
        "to reset the odds on everything around it.",
        f"{_feature_templates(odds, vol)[1]}\n\n"
        "Its resolution will ripple into adjacent markets, which is why it leads this edition.",
    ]


def fallback_article(story: Story) -> str:
    """Template article keyed on layout and odds bucket."""
    odds = _odds_pct(story)
    vol = format_volume(story.volume_24h)

    if story.layout == StoryLayout.LEAD:
        templates = _lead_templates(odds, vol)
    elif story.layout == StoryLayout.FEATURE:
        templates = _feature_templates(odds, vol)
    else:
        templates = _brief_templates(odds, vol)
    return seeded_pick(templates, story.id)


# ============================================================================
# Contrarian takes and datelines
# ============================================================================


def fallback_take(record: Record) -> ContrarianTake:
    opposite = "NO" if record.yes_favoured else "YES"
    return ContrarianTake(
        bear_case=(
            f"The case for {opposite} deserves consideration. Historical precedent suggests "
            "markets at these levels often reverse."
        ),
        key_risk="Markets tend to overweight recent events.",
        who_disagrees="Sophisticated traders may have information not yet public.",
        confidence=Confidence.LOW,
    )


def dateline_location(record: Record) -> str:
    text = record.question.lower()
    for pattern, location in DATELINES:
        if pattern.search(text):
            return location
    return DEFAULT_DATELINE


def assign_dateline(record: Record, now: datetime | None = None) -> str:
    """'WASHINGTON (Nov 2026)', dated at resolution or about a month out."""
    moment = record.end_date or (now or datetime.now(timezone.utc)) + timedelta(days=30)
    return f"{dateline_location(record)} ({moment.strftime('%b %Y')})"


# ============================================================================
# Selection
# ============================================================================


def fallback_blueprint(candidates: list[Record], config: SelectionConfig) -> Blueprint:
    """Score-ordered page with a hard-news lead, used when selection fails."""
    ranked = rank_for_fallback(candidates, config)
    if not ranked:
        return Blueprint(stories=(), reasoning="No candidates available.", from_fallback=True)

    lead_categories = {MarketCategory(c) for c in config.fallback_lead_categories}
    lead = next((r for r in ranked if r.category in lead_categories), ranked[0])
    rest = [r for r in ranked if r.id != lead.id]

    stories = [Story.from_record(lead, StoryLayout.LEAD)]
    for position, record in enumerate(rest, start=1):
        layout = StoryLayout.FEATURE if position < config.fallback_feature_cutoff else StoryLayout.BRIEF
        stories.append(Story.from_record(record, layout))

    return Blueprint(
        stories=tuple(stories),
        reasoning="Fallback selection: top stories by score with a hard-news lead.",
        from_fallback=True,
    )


def fallback_decision(story: Story) -> SelectionDecision:
    return SelectionDecision(layout=story.layout, why="Ranked by newsworthiness score.")
