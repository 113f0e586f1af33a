"""Storage layer for Gazette - file-based edition cache and market history.

This package provides:
- Edition cache keyed by 4-hour bucket with a daily baseline key
- Shown-market history with a rolling pruning window
- Newsletter subscriber list

All writes go through a temp file and an atomic move to prevent corruption.
"""

from .editions import (
    CacheLookup,
    EditionCache,
    EditionStore,
    EditionStoreError,
    FileEditionStore,
    MemoryEditionStore,
    bucket_key,
    daily_key,
)
from .files import atomic_write_text
from .history import HistoryEntry, HistoryRecorder
from .subscribers import SubscriberList

__all__ = [
    # Edition cache
    "CacheLookup",
    "EditionCache",
    "EditionStore",
    "EditionStoreError",
    "FileEditionStore",
    "MemoryEditionStore",
    "bucket_key",
    "daily_key",
    # Files
    "atomic_write_text",
    # History
    "HistoryEntry",
    "HistoryRecorder",
    # Subscribers
    "SubscriberList",
]
