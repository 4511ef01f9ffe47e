"""
Symbol and pattern tables for bullet journal parsing.

Bullet glyphs follow the official Bullet Journal method, widened with the
look-alike characters OCR engines commonly emit for handwritten symbols.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

from ..types.entries import EntryStatus, EntryType

# Glyph families
TASK_GLYPHS = "•·∙⋅‧"
COMPLETE_GLYPHS = "✓✔×"
MIGRATED_GLYPHS = ">→➜"
SCHEDULED_GLYPHS = "<←⬅"
CANCELLED_GLYPHS = "~"
EVENT_GLYPHS = "○◦Ø"
EVENT_LETTER_GLYPHS = "oO0"
NOTE_GLYPHS = "-–—−"
IDEA_GLYPHS = "!"
INSPIRATION_GLYPHS = "★☆"
RESEARCH_GLYPHS = "&"
MEMORY_GLYPHS = "◇◊"
PRIORITY_SIGNIFIER = "*"

# Every character that may lead a line as a bullet
ALL_BULLET_CHARS = (
    TASK_GLYPHS + COMPLETE_GLYPHS + "xX" + MIGRATED_GLYPHS + SCHEDULED_GLYPHS
    + CANCELLED_GLYPHS + EVENT_GLYPHS + NOTE_GLYPHS + IDEA_GLYPHS
    + INSPIRATION_GLYPHS + RESEARCH_GLYPHS + MEMORY_GLYPHS + PRIORITY_SIGNIFIER
)


def _cls(chars: str) -> str:
    return "[" + re.escape(chars) + "]"


# Non-letter glyphs, scrubbed when they still lead cleaned content.
SYMBOL_GLYPHS = "".join(c for c in ALL_BULLET_CHARS if c not in "xXoO0")
LEADING_GLYPHS = re.compile(r"^(?:" + _cls(SYMBOL_GLYPHS) + r"\s*)+")


# Letter-like glyphs (x, o, O, 0) need whitespace after them so ordinary
# words are not read as bullets.
_TASK = _cls(TASK_GLYPHS)
_OPTIONAL_TASK = rf"(?:{_TASK}\s*)?"
_EVENT = rf"(?:{_cls(EVENT_GLYPHS)}\s*|{_cls(EVENT_LETTER_GLYPHS)}\s+)"
_GLYPH_GAP = r"(?:\s+|(?=[^\W\d_]))"  # whitespace, or straight into a word
_NOTE = rf"{_cls(NOTE_GLYPHS)}{_GLYPH_GAP}"
_CONTENT = r"(?P<content>.+)$"


@dataclass(frozen=True)
class BulletRule:
    """A leading-glyph pattern and the entry it denotes."""

    name: str
    pattern: Pattern
    entry_type: EntryType
    status: Optional[EntryStatus] = None  # None: infer from text
    high_priority: bool = False


def _rule(name: str, prefix: str, entry_type: EntryType,
          status: Optional[EntryStatus] = None, high_priority: bool = False) -> BulletRule:
    return BulletRule(
        name=name,
        pattern=re.compile("^" + prefix + _CONTENT),
        entry_type=entry_type,
        status=status,
        high_priority=high_priority,
    )


# Priority-signified bullets: checked before plain bullets.
PRIORITY_BULLET_RULES: List[BulletRule] = [
    _rule("priority_task", rf"\*\s*{_TASK}\s*", EntryType.TASK, high_priority=True),
    _rule("priority_event", rf"\*\s*{_EVENT}", EntryType.EVENT, high_priority=True),
    _rule("priority_note", rf"\*\s*{_NOTE}", EntryType.NOTE, high_priority=True),
    _rule("priority_signifier", r"\*\s+", EntryType.TASK, high_priority=True),
]

# Canonical bullets in fixed precedence order. First match wins.
BULLET_RULES: List[BulletRule] = [
    _rule("task", rf"{_TASK}\s*", EntryType.TASK),
    _rule(
        "task_complete",
        rf"(?:[xX]\.?\s+|{_cls(COMPLETE_GLYPHS)}\.?\s*){_OPTIONAL_TASK}",
        EntryType.TASK,
        EntryStatus.COMPLETE,
    ),
    _rule("task_migrated", rf"{_cls(MIGRATED_GLYPHS)}\s*{_OPTIONAL_TASK}",
          EntryType.TASK, EntryStatus.MIGRATED),
    _rule("task_scheduled", rf"{_cls(SCHEDULED_GLYPHS)}\s*{_OPTIONAL_TASK}",
          EntryType.TASK, EntryStatus.SCHEDULED),
    _rule("task_cancelled", rf"{_cls(CANCELLED_GLYPHS)}\s*{_OPTIONAL_TASK}",
          EntryType.TASK, EntryStatus.CANCELLED),
    _rule("event", _EVENT, EntryType.EVENT),
    _rule("note", _NOTE, EntryType.NOTE),
    _rule("idea", rf"{_cls(IDEA_GLYPHS)}{_GLYPH_GAP}", EntryType.INSPIRATION),
    _rule("inspiration", rf"{_cls(INSPIRATION_GLYPHS)}\s*", EntryType.INSPIRATION),
    _rule("research", rf"{_cls(RESEARCH_GLYPHS)}\s*", EntryType.RESEARCH),
    _rule("memory", rf"{_cls(MEMORY_GLYPHS)}\s*", EntryType.MEMORY),
]

# Date headers
MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

_MONTH_NAMES = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
_WEEKDAY_SUFFIX = r"(?:\s*[-–—,:]?\s*(?:mon|tue|wed|thu|fri|sat|sun)[a-z]*)?"

DAY_HEADER = re.compile(r"^(?P<day>\d{1,2})(?:st|nd|rd|th)?$", re.IGNORECASE)
MONTH_DAY_HEADER = re.compile(
    rf"^(?P<month>{_MONTH_NAMES})\.?\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?"
    rf"(?:,?\s+(?P<year>\d{{4}}))?{_WEEKDAY_SUFFIX}[\s.:]*$",
    re.IGNORECASE,
)
NUMERIC_DATE_HEADER = re.compile(
    r"^(?P<month>\d{1,2})[/\-](?P<day>\d{1,2})[/\-](?P<year>\d{4}|\d{2})$"
)
RELATIVE_DATE_HEADER = re.compile(r"^(?P<word>today|tomorrow|yesterday)[:.]?$", re.IGNORECASE)

RELATIVE_DAY_OFFSETS = {"yesterday": -1, "today": 0, "tomorrow": 1}

# Natural language heuristics
TIME_TOKEN = r"\d{1,2}(?::\d{2})?\s*[ap]\.?m\b\.?|\d{1,2}:\d{2}"

APPOINTMENT = re.compile(rf"^(?P<content>.+)\s+@\s*(?P<time>{TIME_TOKEN})", re.IGNORECASE)
MEAL_MEETING = re.compile(
    r"^(?P<who>.+?)\s+for\s+(?P<meal>lunch|dinner|breakfast|coffee|meeting)\s+@\s*(?P<when>.+)$",
    re.IGNORECASE,
)
PERCENT_TASK = re.compile(r"(?P<percent>\d{1,3})%\s+for\s+(?P<task>.+)", re.IGNORECASE)

ACTION_VERBS = [
    "pick up", "make", "finish", "complete", "start", "buy", "call", "email",
    "send", "write", "read", "review", "prepare", "organize", "clean", "fix",
    "schedule", "book", "cancel", "confirm", "check", "update", "submit",
    "download", "upload", "print", "scan", "pay", "order", "return", "collect",
    "deliver", "setup", "install", "configure", "test", "debug", "deploy",
    "publish", "merge", "push", "pull", "commit",
]
ACTION_VERB = re.compile(
    r"^(?:" + "|".join(re.escape(v) for v in ACTION_VERBS) + r")\s+\S", re.IGNORECASE
)
ACTIVITY = re.compile(
    r"^(?:started|finished|completed|watching|reading|listening to)\s+\S", re.IGNORECASE
)
CAPITALIZED = re.compile(r"^[A-Z]")
ACTION_KEYWORD = re.compile(r"\b(?:finish|make|pick up|call|email|buy)\b", re.IGNORECASE)
MIN_NOTE_LENGTH = 5

# Field extraction
CONTEXT = re.compile(r"@([A-Za-z_][A-Za-z0-9_]*)")
AT_TOKEN = re.compile(r"@\w+")
HASHTAG = re.compile(r"#([A-Za-z0-9_]+)")
TRAILING_PRIORITY = re.compile(r"\s*(?:!{1,2}|\*{1,2})\s*$")
TRAILING_STARS = re.compile(r"\*{1,2}\s*$")
COMPLETION_WORDS = re.compile(r"\b(?:done|completed|finished)\b|100%", re.IGNORECASE)
TIME = re.compile(
    r"(?<![\d:])(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?:\s*(?P<period>[ap])\.?m\b\.?)?",
    re.IGNORECASE,
)

IMPLICIT_CONTEXTS: List[Tuple[Pattern, str]] = [
    (re.compile(r"\b(?:work|office)\b", re.IGNORECASE), "work"),
    (re.compile(r"\b(?:home|house)\b", re.IGNORECASE), "home"),
    (re.compile(r"\b(?:personal|family)\b", re.IGNORECASE), "personal"),
]
