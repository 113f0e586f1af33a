"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gazette.services.generation.config import GenerationConfig

logger = logging.getLogger(__name__)


class ScoringConfig(BaseModel):
    """Newsworthiness scoring weights and editorial bias."""

    money_weight: float = 0.35
    certainty_weight: float = 0.35
    speed_weight: float = 0.30

    # Volumes below this are treated as noise (no log-scale credit)
    min_volume: float = 1.0

    category_interest: dict[str, float] = Field(
        default_factory=lambda: {
            "CULTURE": 1.4,
            "TECH": 1.35,
            "CONFLICT": 1.3,
            "SPORTS": 0.7,
            "SCIENCE": 1.15,
            "POLITICS": 1.0,
            "CRYPTO": 0.9,
            "BUSINESS": 0.85,
            "FINANCE": 0.75,
            "OTHER": 1.0,
        }
    )

    # Audience boost, applied on top of the category multiplier
    horizon_days: int = 14
    horizon_boost: float = 1.1
    entity_boost: float = 1.1
    entity_keywords: list[str] = Field(
        default_factory=lambda: [
            "trump",
            "openai",
            "elon",
            "musk",
            "bitcoin",
            "nvidia",
            "fed ",
            "putin",
            "taylor swift",
        ]
    )
    max_interest: float = 1.5

    # Pre-selection filters
    min_days_to_resolution: float = 3
    max_days_to_resolution: float = 90
    drop_short_term_sports: bool = True

    @model_validator(mode="after")
    def check_weights(self) -> "ScoringConfig":
        """Weights must sum to 1 before the interest multiplier."""
        total = self.money_weight + self.certainty_weight + self.speed_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.3f}")
        return self


class SelectionConfig(BaseModel):
    """Candidate selection quotas and front-page enforcement limits."""

    category_quotas: dict[str, int] = Field(
        default_factory=lambda: {
            "POLITICS": 15,
            "CONFLICT": 12,
            "TECH": 10,
            "SCIENCE": 6,
            "BUSINESS": 5,
            "FINANCE": 5,
            "CRYPTO": 4,
            "CULTURE": 1,
            "OTHER": 3,
        }
    )
    mover_count: int = 25
    mover_excluded_categories: list[str] = Field(
        default_factory=lambda: ["SPORTS", "CULTURE"]
    )
    safety_net_count: int = 20
    safety_net_excluded_categories: list[str] = Field(default_factory=lambda: ["SPORTS"])
    hard_caps: dict[str, int] = Field(default_factory=lambda: {"SPORTS": 2})
    exclude_dead_on_arrival: bool = True

    # Diverse sampling (one item per league)
    diverse_category: str = "SPORTS"
    diverse_max: int = 2
    diverse_sub_tags: list[str] = Field(
        default_factory=lambda: [
            "nfl",
            "nba",
            "mlb",
            "nhl",
            "soccer",
            "f1",
            "ufc",
            "tennis",
            "golf",
            "premier league",
            "champions league",
        ]
    )

    # Front page enforcement after the selection stage
    target_stories: int = 25
    min_stories: int = 20
    max_fill_stories: int = 35
    absolute_cap: int = 40

    # Deterministic selection fallback
    fallback_excluded_categories: list[str] = Field(
        default_factory=lambda: ["SPORTS", "CULTURE"]
    )
    fallback_story_count: int = 25
    fallback_filler_count: int = 2
    fallback_lead_categories: list[str] = Field(
        default_factory=lambda: ["POLITICS", "CONFLICT"]
    )
    fallback_feature_cutoff: int = 7


class StageConfig(BaseModel):
    """Fan-out and sampling parameters for one generation stage."""

    batch_size: int = Field(default=5, ge=1)
    stagger_ms: int = 100
    temperature: float = 0.7
    max_tokens: int = 2000


class StagesConfig(BaseModel):
    """Per-stage generation parameters."""

    selection: StageConfig = Field(
        default_factory=lambda: StageConfig(batch_size=40, stagger_ms=0, temperature=0.4, max_tokens=3000)
    )
    headlines: StageConfig = Field(
        default_factory=lambda: StageConfig(batch_size=8, stagger_ms=75, temperature=0.8, max_tokens=1000)
    )
    articles: StageConfig = Field(
        default_factory=lambda: StageConfig(batch_size=5, stagger_ms=250, temperature=0.75, max_tokens=4000)
    )
    annotations: StageConfig = Field(
        default_factory=lambda: StageConfig(batch_size=5, stagger_ms=100, temperature=0.6, max_tokens=2500)
    )
    review: StageConfig = Field(
        default_factory=lambda: StageConfig(batch_size=2, stagger_ms=100, temperature=0.25, max_tokens=4000)
    )


class CacheConfig(BaseModel):
    """Edition cache keying and backend."""

    bucket_hours: int = Field(default=4, ge=1, le=24)
    backend: str = "file"  # "file" or "memory"


class HistoryConfig(BaseModel):
    """Shown-market history side channel."""

    enabled: bool = True
    window_hours: int = 1


class EditorialConfig(BaseModel):
    """Edition build behaviour."""

    generation_timeout_seconds: float = 120.0
    default_note: str = "The future is unevenly distributed."


class SchedulerConfig(BaseModel):
    """Job scheduling intervals."""

    edition_refresh_minutes: int = 240
    daily_refresh_hour: int = 6
    daily_refresh_timezone: str = "America/New_York"


class RateLimitConfig(BaseModel):
    """Subscription endpoint rate limiting."""

    window_seconds: int = 15 * 60
    max_requests: int = 5
    cleanup_threshold: int = 10000


class ApiConfig(BaseModel):
    """HTTP server parameters."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"]
    )


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")
    markets_file: Path | None = None  # defaults to data_dir/markets.json
    markets_url: str = ""

    # API Keys
    gemini_api_key: str = ""
    logfire_token: str = ""

    environment: str = "development"

    # Nested configuration sections
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    stages: StagesConfig = Field(default_factory=StagesConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    editorial: EditorialConfig = Field(default_factory=EditorialConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    ratelimit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    def get_markets_path(self) -> Path:
        """Market snapshot location, defaulting into the data directory."""
        if self.markets_file is not None:
            return self.markets_file
        return self.data_dir / "markets.json"

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m gazette init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in [
                "generation",
                "scoring",
                "selection",
                "stages",
                "cache",
                "history",
                "editorial",
                "scheduler",
                "ratelimit",
                "api",
            ]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name] or {}

                    section_dict = section.model_dump()
                    for key, value in yaml_section.items():
                        # Nested models (stage configs) merge; plain dicts like caps are replaced
                        if isinstance(value, dict) and isinstance(getattr(section, key, None), BaseModel):
                            section_dict[key].update(value)
                        else:
                            section_dict[key] = value

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
