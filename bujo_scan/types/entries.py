"""
Type definitions for bullet journal entries.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class EntryType(Enum):
    """Kinds of entries a journal page can hold."""
    TASK = "task"
    EVENT = "event"
    NOTE = "note"
    INSPIRATION = "inspiration"
    RESEARCH = "research"
    MEMORY = "memory"


class EntryStatus(Enum):
    """Task lifecycle states. Non-task entries stay incomplete."""
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    MIGRATED = "migrated"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class Priority(Enum):
    """Entry priority levels."""
    NONE = "none"
    MEDIUM = "medium"
    HIGH = "high"


class Mood(Enum):
    """Mood attached to memory entries."""
    EXCELLENT = "excellent"
    GOOD = "good"
    NEUTRAL = "neutral"
    POOR = "poor"


DAILY_COLLECTION = "daily"


def generate_entry_id() -> str:
    """Generate an opaque, unique entry identifier."""
    return uuid.uuid4().hex


def unique_tokens(tokens: Iterable[str]) -> List[str]:
    """Lowercase tokens and drop duplicates, keeping first-seen order."""
    seen = []
    for token in tokens:
        token = token.strip().lower()
        if token and token not in seen:
            seen.append(token)
    return seen


def iso_date(value: date) -> str:
    """Serialize a date as ``YYYY-MM-DD``."""
    return value.strftime("%Y-%m-%d")


@dataclass
class BuJoEntry:
    """A single structured bullet journal entry."""

    content: str
    collection_date: str
    type: EntryType = EntryType.TASK
    status: EntryStatus = EntryStatus.INCOMPLETE
    priority: Priority = Priority.NONE
    contexts: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    due_date: Optional[datetime] = None
    ocr_confidence: Optional[float] = None
    mood: Optional[Mood] = None
    collection: str = DAILY_COLLECTION
    id: str = field(default_factory=generate_entry_id)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.contexts = unique_tokens(self.contexts)
        self.tags = unique_tokens(self.tags)

        # Status only carries meaning for tasks
        if self.type != EntryType.TASK:
            self.status = EntryStatus.INCOMPLETE

        if self.type != EntryType.MEMORY:
            self.mood = None

    @property
    def is_complete(self) -> bool:
        return self.status == EntryStatus.COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to a JSON-compatible dictionary for storage."""
        return {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "content": self.content,
            "priority": self.priority.value,
            "contexts": list(self.contexts),
            "tags": list(self.tags),
            "collection": self.collection,
            "collection_date": self.collection_date,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": self.created_at.isoformat(),
            "ocr_confidence": self.ocr_confidence,
            "mood": self.mood.value if self.mood else None,
        }
