"""
Normalizes provider-structured entries into BuJoEntry objects.

Vision providers that emit JSON describe entries in their own vocabulary
("todo", "done", "urgent", ...). The mapper validates each record with a
pydantic schema and folds synonyms onto the canonical enums.
"""

import re
from datetime import date, datetime, time
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..types.entries import (
    BuJoEntry,
    EntryStatus,
    EntryType,
    Mood,
    Priority,
    iso_date,
    unique_tokens,
)
from . import patterns
from .parser import parse_time

logger = structlog.get_logger(__name__)


TYPE_SYNONYMS: Dict[str, EntryType] = {
    "task": EntryType.TASK,
    "todo": EntryType.TASK,
    "action": EntryType.TASK,
    "event": EntryType.EVENT,
    "appointment": EntryType.EVENT,
    "meeting": EntryType.EVENT,
    "note": EntryType.NOTE,
    "idea": EntryType.NOTE,
    "thought": EntryType.NOTE,
    "observation": EntryType.NOTE,
    "inspiration": EntryType.INSPIRATION,
    "research": EntryType.RESEARCH,
    "memory": EntryType.MEMORY,
}

COMPOUND_TYPES: Dict[str, Tuple[EntryType, EntryStatus]] = {
    "completed_task": (EntryType.TASK, EntryStatus.COMPLETE),
    "migrated_task": (EntryType.TASK, EntryStatus.MIGRATED),
    "scheduled_task": (EntryType.TASK, EntryStatus.SCHEDULED),
    "cancelled_task": (EntryType.TASK, EntryStatus.CANCELLED),
}

STATUS_SYNONYMS: Dict[str, EntryStatus] = {
    "complete": EntryStatus.COMPLETE,
    "completed": EntryStatus.COMPLETE,
    "done": EntryStatus.COMPLETE,
    "finished": EntryStatus.COMPLETE,
    "incomplete": EntryStatus.INCOMPLETE,
    "pending": EntryStatus.INCOMPLETE,
    "todo": EntryStatus.INCOMPLETE,
    "open": EntryStatus.INCOMPLETE,
    "migrated": EntryStatus.MIGRATED,
    "moved": EntryStatus.MIGRATED,
    "transferred": EntryStatus.MIGRATED,
    "scheduled": EntryStatus.SCHEDULED,
    "planned": EntryStatus.SCHEDULED,
    "future": EntryStatus.SCHEDULED,
    "cancelled": EntryStatus.CANCELLED,
    "canceled": EntryStatus.CANCELLED,
    "irrelevant": EntryStatus.CANCELLED,
    "dropped": EntryStatus.CANCELLED,
}

PRIORITY_SYNONYMS: Dict[str, Priority] = {
    "high": Priority.HIGH,
    "important": Priority.HIGH,
    "urgent": Priority.HIGH,
    "critical": Priority.HIGH,
    "priority": Priority.HIGH,
    "medium": Priority.MEDIUM,
    "none": Priority.NONE,
    "normal": Priority.NONE,
    "low": Priority.NONE,
}

MOOD_SYNONYMS: Dict[str, Mood] = {mood.value: mood for mood in Mood}

# Letter-like glyphs only count when followed by whitespace.
_SYMBOL_GLYPHS = patterns.SYMBOL_GLYPHS + "."
_LEAKED_BULLET = re.compile(
    r"^(?:[" + re.escape(_SYMBOL_GLYPHS) + r"]+\s*|[xXoO0]\s+)+"
)
_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})

_DATE_FORMATS = ["%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y", "%B %d, %Y", "%b %d, %Y", "%B %d %Y"]


class StructuredEntry(BaseModel):
    """Matches the JSON shape vision providers are prompted to emit per entry."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "entry_type"))
    status: Optional[str] = None
    content: Optional[str] = None
    priority: Optional[str] = None
    contexts: List[str] = []
    tags: List[str] = []
    date: Optional[str] = None
    time: Optional[str] = None
    confidence: Optional[float] = None
    mood: Optional[str] = None

    @field_validator("contexts", "tags", mode="before")
    @classmethod
    def _coerce_token_list(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(token) for token in value if isinstance(token, (str, int))]

    @field_validator("type", "status", "content", "priority", "date", "time", "mood", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> Optional[float]:
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return None
        return min(max(confidence, 0.0), 1.0)


def normalize_type(value: Optional[str]) -> EntryType:
    if not value:
        return EntryType.TASK
    return TYPE_SYNONYMS.get(value.strip().lower(), EntryType.TASK)


def normalize_compound_type(value: Optional[str]) -> Tuple[EntryType, Optional[EntryStatus]]:
    """Split tags like ``completed_task`` into a type and the status they imply."""
    if value:
        compound = COMPOUND_TYPES.get(value.strip().lower())
        if compound:
            return compound
    return normalize_type(value), None


def normalize_status(value: Optional[str]) -> EntryStatus:
    if not value:
        return EntryStatus.INCOMPLETE
    return STATUS_SYNONYMS.get(value.strip().lower(), EntryStatus.INCOMPLETE)


def normalize_priority(value: Optional[str]) -> Priority:
    if not value:
        return Priority.NONE
    return PRIORITY_SYNONYMS.get(value.strip().lower(), Priority.NONE)


def strip_sigil(tokens: List[str], sigil: str) -> List[str]:
    """Drop a leading ``#``/``@`` and normalize a token list."""
    return unique_tokens(token.strip().lstrip(sigil) for token in tokens)


def clean_structured_content(content: Optional[str]) -> str:
    """Remove leaked bullet glyphs and common OCR artifacts."""
    if not content:
        return ""

    cleaned = _LEAKED_BULLET.sub("", content.strip())
    cleaned = " ".join(cleaned.split())
    cleaned = cleaned.translate(_QUOTES).replace("…", "...")

    if cleaned[:1].islower():
        cleaned = cleaned[0].upper() + cleaned[1:]
    return cleaned


def parse_lenient_date(value: Optional[str]) -> Optional[date]:
    """Parse a provider date string; unknown formats and ``"null"`` yield None."""
    if not value:
        return None
    value = value.strip()
    if not value or value.lower() in ("null", "none", "n/a"):
        return None

    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


class EntryMapper:
    """
    Maps provider-structured records onto BuJoEntry.

    Records that fail schema validation or whose content cleans to empty
    are dropped.
    """

    def __init__(self, clock: Optional[Callable[[], date]] = None):
        self.clock = clock or date.today
        self.logger = logger.bind(component="EntryMapper")

    def map_entries(
        self,
        records: Any,
        source: str,
        confidence: float = 0.9,
        today: Optional[date] = None,
    ) -> List[BuJoEntry]:
        """
        Map a list of raw records to entries.

        Args:
            records: Decoded JSON list (anything else yields no entries)
            source: Provider key, used for logging
            confidence: Fallback confidence when a record carries none
            today: Collection date for records without their own date

        Returns:
            Normalized entries in input order
        """
        if not isinstance(records, list):
            return []

        today = today or self.clock()
        entries = []
        dropped = 0

        for record in records:
            entry = self.map_entry(record, confidence, today)
            if entry is None:
                dropped += 1
                continue
            entries.append(entry)

        self.logger.debug("Mapped structured entries", source=source,
                          mapped=len(entries), dropped=dropped)
        return entries

    def map_entry(self, record: Any, confidence: float, today: date) -> Optional[BuJoEntry]:
        """Map one raw record; None when it is invalid or empty."""
        if not isinstance(record, dict):
            return None

        try:
            structured = StructuredEntry.model_validate(record)
        except ValidationError as e:
            self.logger.warning("Invalid structured entry", error=str(e))
            return None

        content = clean_structured_content(structured.content)
        if not content:
            return None

        entry_type, implied_status = normalize_compound_type(structured.type)
        entry_date = parse_lenient_date(structured.date) or today

        due_date = None
        parsed_time = parse_time(structured.time) if structured.time else None
        if parsed_time:
            due_date = datetime.combine(entry_date, time(*parsed_time))

        mood = None
        if entry_type == EntryType.MEMORY and structured.mood:
            mood = MOOD_SYNONYMS.get(structured.mood.strip().lower())

        return BuJoEntry(
            content=content,
            collection_date=iso_date(entry_date),
            type=entry_type,
            status=implied_status or normalize_status(structured.status),
            priority=normalize_priority(structured.priority),
            contexts=strip_sigil(structured.contexts, "@"),
            tags=strip_sigil(structured.tags, "#"),
            due_date=due_date,
            ocr_confidence=structured.confidence if structured.confidence is not None else confidence,
            mood=mood,
        )

    @staticmethod
    def validate_entry(entry: BuJoEntry) -> bool:
        """Check that an entry carries every required field."""
        return bool(
            entry.id
            and entry.type
            and entry.content
            and entry.status
            and entry.priority is not None
            and entry.created_at
            and entry.collection
            and entry.collection_date
            and isinstance(entry.tags, list)
            and isinstance(entry.contexts, list)
        )
