"""Newsworthiness scoring, categorization and pre-selection filters.

Everything here is a pure function of the record fields and the scoring
config. Nothing raises on bad numeric input: missing or non-finite values
degrade to a zero contribution.
"""

import logging
import math
import re
from datetime import datetime, timezone

from gazette.config import ScoringConfig

from .models import MarketCategory, MarketStatus, Record, ScoreCard

logger = logging.getLogger(__name__)


CATEGORY_KEYWORDS: dict[MarketCategory, list[str]] = {
    MarketCategory.POLITICS: [
        "trump", "biden", "congress", "senate", "election", "president", "governor",
        "democrat", "republican", "vote", "poll", "nominee", "candidate", "primary",
        "electoral", "impeach", "legislation", "bill", "supreme court", "cabinet",
        "secretary", "attorney general", "vance", "harris", "desantis", "newsom",
        "maduro", "venezuela", "putin",
    ],
    MarketCategory.CONFLICT: [
        "ukraine", "russia", "war", "nato", "military", "invasion", "ceasefire",
        "treaty", "sanctions", "iran", "israel", "gaza", "hamas", "hezbollah",
        "taiwan", "korea", "missile", "nuclear", "troops", "attack", "strike",
        "hostage", "terrorism", "conflict", "peace",
    ],
    MarketCategory.FINANCE: [
        "fed", "federal reserve", "interest rate", "inflation", "gdp", "recession",
        "treasury", "yield", "bond", "jobs report", "unemployment", "cpi", "fomc",
        "rate cut", "rate hike", "ecb", "bank of", "monetary", "gold", "silver",
        "s&p", "dow jones", "nasdaq",
    ],
    MarketCategory.TECH: [
        "ai ", "artificial intelligence", "openai", "chatgpt", "gpt-5", "claude",
        "anthropic", "google", "apple", "microsoft", "meta", "amazon", "tesla",
        "spacex", "launch", "iphone", "software", "chip", "semiconductor", "nvidia",
        "robot", "self-driving", "starship", "agi", "deepmind", "llm",
    ],
    MarketCategory.CRYPTO: [
        "bitcoin", "btc", "ethereum", "eth", "crypto", "token", "defi", "nft",
        "blockchain", "solana", "binance", "coinbase", "altcoin", "memecoin",
        "satoshi", "market cap",
    ],
    MarketCategory.CULTURE: [
        "oscar", "grammy", "emmy", "golden globe", "movie", "film", "album",
        "celebrity", "taylor swift", "beyonce", "drake", "netflix", "disney",
        "streaming", "award", "box office", "concert", "tour", "viral", "tiktok",
        "youtube", "influencer", "met gala", "fashion", "spotify",
    ],
    MarketCategory.SPORTS: [
        "nfl", "nba", "mlb", "nhl", "soccer", "football", "basketball", "baseball",
        "hockey", "super bowl", "world series", "playoffs", "finals", "mvp", "draft",
        "coach", "ufc", "boxing", "olympics", "world cup", "f1", "formula 1",
        "tennis", "golf", "premier league", "la liga", "bundesliga", "serie a",
        "champions league", "arsenal", "manchester", "liverpool", "chelsea",
        "lakers", "celtics", "warriors", "yankees", "dodgers",
    ],
    MarketCategory.SCIENCE: [
        "fda", "drug", "vaccine", "clinical", "trial", "disease", "pandemic", "virus",
        "treatment", "nasa", "space", "climate", "temperature", "carbon", "emissions",
        "research", "discovery", "breakthrough", "mars", "moon", "asteroid",
    ],
    MarketCategory.BUSINESS: [
        "ceo", "ipo", "merger", "acquisition", "earnings", "revenue", "profit",
        "layoff", "startup", "valuation", "funding", "bankruptcy", "company",
    ],
    MarketCategory.OTHER: [],
}

SHORT_TERM_SPORTS_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"\bvs\.?(?=\s|$)",
        r"\btonight\b",
        r"\btoday\b",
        r"\b(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
        r"\bgame\s*\d+\b",
        r"\bround\s*\d+\b",
        r"\bweek\s*\d+\b",
    ]
]

CHAOS_SWING_PP = 15.0
CONFIRMED_PRICE = 0.85
DEAD_PRICE = 0.15

# (minimum |change| in percentage points, speed score), highest first
SPEED_STEPS = [
    (25.0, 1.0),
    (15.0, 0.85),
    (10.0, 0.7),
    (5.0, 0.5),
    (2.0, 0.3),
]
STABLE_SPEED = 0.1


# ============================================================================
# Helpers
# ============================================================================


def _finite(value: float | None) -> float | None:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _days_until(end_date: datetime, now: datetime) -> float:
    return (_as_utc(end_date) - _as_utc(now)).total_seconds() / 86400


# ============================================================================
# Categorization and Status
# ============================================================================


def categorize(question: str, description: str = "") -> MarketCategory:
    """Pick the category whose keywords appear most often in the text."""
    text = f"{question} {description}".lower()

    best = MarketCategory.OTHER
    best_hits = 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        hits = sum(1 for keyword in keywords if keyword in text)
        if hits > best_hits:
            best, best_hits = category, hits

    return best


def determine_status(yes_price: float | None, price_change_24h: float | None) -> MarketStatus:
    """Derive the narrative status: a big swing beats any price level."""
    swing = abs(_finite(price_change_24h) or 0.0)
    price = _finite(yes_price)

    if swing >= CHAOS_SWING_PP:
        return MarketStatus.CHAOS
    if price is None:
        return MarketStatus.CONTESTED
    if price >= CONFIRMED_PRICE:
        return MarketStatus.CONFIRMED
    if price <= DEAD_PRICE:
        return MarketStatus.DEAD_ON_ARRIVAL
    return MarketStatus.CONTESTED


# ============================================================================
# Sub-scores
# ============================================================================


def money_score(volume_24h: float | None, max_volume: float | None, min_volume: float = 1.0) -> float:
    """Log-scaled 24h volume relative to the batch maximum."""
    volume = _finite(volume_24h)
    ceiling = _finite(max_volume)
    if volume is None or ceiling is None or volume < min_volume or ceiling < min_volume:
        return 0.0
    return _clamp(math.log10(volume + 1) / math.log10(ceiling + 1))


def certainty_score(yes_price: float | None) -> float:
    """0 at a coin flip, 1 when the market is at either extreme."""
    price = _finite(yes_price)
    if price is None:
        return 0.0
    return _clamp(abs(2 * _clamp(price) - 1))


def speed_score(price_change_24h: float | None) -> float:
    """Step function of the absolute 24h move in percentage points."""
    change = _finite(price_change_24h)
    if change is None:
        return 0.0

    swing = abs(change)
    for threshold, score in SPEED_STEPS:
        if swing >= threshold:
            return score
    return STABLE_SPEED


def interest_multiplier(
    record: Record,
    category: MarketCategory,
    config: ScoringConfig,
    now: datetime | None = None,
) -> float:
    """Category bias times the audience boost, capped at max_interest."""
    interest = config.category_interest.get(category, 1.0)

    if record.end_date is not None and now is not None:
        if 0 <= _days_until(record.end_date, now) <= config.horizon_days:
            interest *= config.horizon_boost

    question = record.question.lower()
    if any(keyword in question for keyword in config.entity_keywords):
        interest *= config.entity_boost

    return _clamp(interest, 0.0, config.max_interest)


def score_record(
    record: Record,
    max_volume: float,
    config: ScoringConfig,
    category: MarketCategory | None = None,
    now: datetime | None = None,
) -> ScoreCard:
    """Compute the full score card for one record."""
    category = category or record.category
    money = money_score(record.volume_24h, max_volume, config.min_volume)
    certainty = certainty_score(record.yes_price)
    speed = speed_score(record.price_change_24h)
    interest = interest_multiplier(record, category, config, now)

    base = (
        money * config.money_weight
        + certainty * config.certainty_weight
        + speed * config.speed_weight
    )
    return ScoreCard(
        money=money,
        certainty=certainty,
        speed=speed,
        interest=interest,
        total=_clamp(base * interest),
    )


def score_records(
    records: list[Record],
    config: ScoringConfig,
    now: datetime | None = None,
) -> list[Record]:
    """Categorize, derive status and score a batch of records."""
    now = now or datetime.now(timezone.utc)
    volumes = [v for v in (_finite(r.volume_24h) for r in records) if v is not None]
    max_volume = max(volumes, default=0.0)

    scored = []
    for record in records:
        category = categorize(record.question, record.description)
        scored.append(
            record.model_copy(
                update={
                    "category": category,
                    "status": determine_status(record.yes_price, record.price_change_24h),
                    "score": score_record(record, max_volume, config, category, now),
                }
            )
        )
    return scored


# ============================================================================
# Filters
# ============================================================================


def is_outside_time_window(
    end_date: datetime | None,
    now: datetime,
    min_days: float = 3,
    max_days: float = 90,
) -> bool:
    """True when the market resolves too soon or too far out to be news."""
    if end_date is None:
        return False
    days = _days_until(end_date, now)
    return days < min_days or days > max_days


def is_short_term_sports(question: str, category: MarketCategory) -> bool:
    """Single games and match-day markets. Only sports markets qualify."""
    if category != MarketCategory.SPORTS:
        return False
    return any(pattern.search(question) for pattern in SHORT_TERM_SPORTS_PATTERNS)


def prepare_records(
    records: list[Record],
    config: ScoringConfig,
    now: datetime | None = None,
) -> list[Record]:
    """Filter out stale or trivial markets, then score what remains."""
    now = now or datetime.now(timezone.utc)

    kept = []
    for record in records:
        if is_outside_time_window(
            record.end_date, now, config.min_days_to_resolution, config.max_days_to_resolution
        ):
            continue
        if config.drop_short_term_sports and is_short_term_sports(
            record.question, categorize(record.question, record.description)
        ):
            continue
        kept.append(record)

    logger.info(f"Filtered {len(records) - len(kept)} of {len(records)} markets before scoring")
    return score_records(kept, config, now)
