"""Editorial pipeline: scoring, selection, extraction and stage orchestration.

This package provides:
- Scoring and categorization of market records
- Stratified candidate selection with per-category caps
- Forgiving JSON extraction from model output
- Batched, staggered generation stages with deterministic fallbacks
"""

# Models
from .models import (
    Blueprint,
    ContrarianTake,
    Edition,
    EditionError,
    GenerationUnit,
    MarketCategory,
    MarketStatus,
    Record,
    ScoreCard,
    SelectionDecision,
    StageResult,
    StageStatus,
    Story,
    StoryLayout,
)

# Scoring and selection
from .scoring import categorize, determine_status, prepare_records, score_records
from .selection import CandidateSelector

# Extraction
from .extraction import ExtractionError, NoStructuredDataError, extract_json

# Orchestration
from .orchestrator import StageOrchestrator

__all__ = [
    # Models
    "Blueprint",
    "ContrarianTake",
    "Edition",
    "EditionError",
    "GenerationUnit",
    "MarketCategory",
    "MarketStatus",
    "Record",
    "ScoreCard",
    "SelectionDecision",
    "StageResult",
    "StageStatus",
    "Story",
    "StoryLayout",
    # Scoring and selection
    "categorize",
    "determine_status",
    "prepare_records",
    "score_records",
    "CandidateSelector",
    # Extraction
    "ExtractionError",
    "NoStructuredDataError",
    "extract_json",
    # Orchestration
    "StageOrchestrator",
]
