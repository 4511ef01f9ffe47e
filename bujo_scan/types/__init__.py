"""
Shared data types for journal entries and page geometry.
"""

from .common import BoundingBox
from .entries import (
    DAILY_COLLECTION,
    BuJoEntry,
    EntryStatus,
    EntryType,
    Mood,
    Priority,
    generate_entry_id,
    iso_date,
    unique_tokens,
)

__all__ = [
    "BoundingBox",
    "BuJoEntry",
    "EntryType",
    "EntryStatus",
    "Priority",
    "Mood",
    "DAILY_COLLECTION",
    "generate_entry_id",
    "iso_date",
    "unique_tokens",
]
