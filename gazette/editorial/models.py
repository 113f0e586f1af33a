"""Pydantic models shared by every editorial stage."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MarketCategory(StrEnum):
    """Editorial desk a market is filed under."""

    POLITICS = "POLITICS"
    CONFLICT = "CONFLICT"
    FINANCE = "FINANCE"
    TECH = "TECH"
    CRYPTO = "CRYPTO"
    CULTURE = "CULTURE"
    SPORTS = "SPORTS"
    SCIENCE = "SCIENCE"
    BUSINESS = "BUSINESS"
    OTHER = "OTHER"


class MarketStatus(StrEnum):
    """Narrative state derived from price and momentum."""

    CONFIRMED = "confirmed"
    DEAD_ON_ARRIVAL = "dead_on_arrival"
    CHAOS = "chaos"
    CONTESTED = "contested"


class StoryLayout(StrEnum):
    """Placement of a story on the front page."""

    LEAD = "LEAD"
    FEATURE = "FEATURE"
    BRIEF = "BRIEF"


class StageStatus(StrEnum):
    """Lifecycle of a generation stage or batch."""

    PENDING = "pending"
    DISPATCHED = "dispatched"
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FALLBACK = "fallback"


class Confidence(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# ============================================================================
# Market Records
# ============================================================================


class ScoreCard(BaseModel):
    """Composite newsworthiness score; every component is bounded."""

    model_config = ConfigDict(frozen=True)

    money: float = 0.0
    certainty: float = 0.0
    speed: float = 0.0
    interest: float = 1.0
    total: float = 0.0


class Record(BaseModel):
    """One prediction market as delivered by the market-data source."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    description: str = ""
    outcomes: list[str] = Field(default_factory=lambda: ["Yes", "No"])
    end_date: datetime | None = None

    yes_price: float = 0.5
    no_price: float = 0.5
    volume_24h: float = 0.0
    total_volume: float = 0.0
    liquidity: float = 0.0
    price_change_24h: float | None = None  # percentage points

    # Derived by the scoring engine
    category: MarketCategory = MarketCategory.OTHER
    status: MarketStatus = MarketStatus.CONTESTED
    score: ScoreCard = Field(default_factory=ScoreCard)

    @field_validator("yes_price", "no_price", "volume_24h", "total_volume", "liquidity", mode="before")
    @classmethod
    def _null_to_default(cls, value, info):
        """Feeds send null for unpriced or untraded markets."""
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @property
    def leading_odds(self) -> float:
        """Probability of whichever side the market currently favours."""
        return max(self.yes_price, self.no_price)

    @property
    def yes_favoured(self) -> bool:
        return self.yes_price > 0.5


class Story(Record):
    """A Record placed on the page by the selection stage."""

    layout: StoryLayout = StoryLayout.BRIEF

    @classmethod
    def from_record(cls, record: Record, layout: StoryLayout) -> "Story":
        data = record.model_dump()
        data["layout"] = layout
        return cls(**data)

    @property
    def is_featured(self) -> bool:
        return self.layout in (StoryLayout.LEAD, StoryLayout.FEATURE)


class Blueprint(BaseModel):
    """Ordered stories chosen for an edition. Read-only for later stages."""

    model_config = ConfigDict(frozen=True)

    stories: tuple[Story, ...]
    reasoning: str = ""
    from_fallback: bool = False

    @property
    def story_ids(self) -> list[str]:
        return [story.id for story in self.stories]

    @property
    def lead(self) -> Story:
        return next(s for s in self.stories if s.layout == StoryLayout.LEAD)

    @property
    def featured(self) -> list[Story]:
        return [s for s in self.stories if s.is_featured]

    def get(self, story_id: str) -> Story | None:
        return next((s for s in self.stories if s.id == story_id), None)


class GenerationUnit(BaseModel):
    """One story submitted to a stage, with the prior outputs it depends on."""

    model_config = ConfigDict(frozen=True)

    story: Story
    context: dict[str, str] = Field(default_factory=dict)

    @property
    def story_id(self) -> str:
        return self.story.id


# ============================================================================
# Stage Outputs
# ============================================================================


class SelectionDecision(BaseModel):
    """Selection stage entry for a single story."""

    layout: StoryLayout = StoryLayout.BRIEF
    why: str = ""


class ContrarianTake(BaseModel):
    """Annotation stage entry: the case against the market consensus."""

    bear_case: str
    key_risk: str
    who_disagrees: str
    confidence: Confidence = Confidence.LOW


EntryT = TypeVar("EntryT")


class BatchReport(BaseModel):
    """Outcome of one batch inside a stage."""

    index: int
    size: int
    status: StageStatus
    error: str | None = None


class StageResult(BaseModel, Generic[EntryT]):
    """Per-story output of one stage, keyed by story id."""

    stage: str
    status: StageStatus = StageStatus.PENDING
    entries: dict[str, EntryT] = Field(default_factory=dict)
    note: str = ""
    batches: list[BatchReport] = Field(default_factory=list)


# ============================================================================
# Edition
# ============================================================================


class Edition(BaseModel):
    """A finished front page; the unit of caching."""

    model_config = ConfigDict(frozen=True)

    blueprint: Blueprint
    selection: StageResult[SelectionDecision]
    headlines: StageResult[str]
    articles: StageResult[str]
    reviews: StageResult[str]
    annotations: StageResult[ContrarianTake]
    datelines: dict[str, str] = Field(default_factory=dict)
    editorial_note: str = ""
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_fallback: bool = False

    def body_for(self, story_id: str) -> str:
        """Reviewed text when available, else the draft."""
        return self.reviews.entries.get(story_id) or self.articles.entries.get(story_id, "")

    def render_stories(self) -> list[dict]:
        """Flat per-story view for API consumers."""
        rendered = []
        for story in self.blueprint.stories:
            take = self.annotations.entries.get(story.id)
            rendered.append(
                {
                    "id": story.id,
                    "question": story.question,
                    "layout": story.layout.value,
                    "category": story.category.value,
                    "status": story.status.value,
                    "yes_price": story.yes_price,
                    "volume_24h": story.volume_24h,
                    "price_change_24h": story.price_change_24h,
                    "headline": self.headlines.entries.get(story.id, ""),
                    "dateline": self.datelines.get(story.id, ""),
                    "content": self.body_for(story.id),
                    "contrarian": take.model_dump(mode="json") if take else None,
                }
            )
        return rendered


class CacheEntry(BaseModel):
    """One persisted edition row."""

    bucket_key: str
    edition: Edition
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EditionError(BaseModel):
    """Structured failure returned instead of an edition."""

    error: str
    detail: str = ""
