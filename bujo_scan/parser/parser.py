"""
Bullet journal text parser.

Turns OCR text (traditional bullet notation or free-form handwriting) into
structured BuJoEntry objects. Parsing is line oriented and stateful only
over date headers: a header sets the date for every entry below it until
the next header.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Tuple

import structlog

from ..exceptions import ParseError
from ..types.entries import (
    BuJoEntry,
    EntryStatus,
    EntryType,
    Priority,
    iso_date,
    unique_tokens,
)
from . import patterns
from .patterns import BulletRule

logger = structlog.get_logger(__name__)


@dataclass
class LineMatch:
    """Outcome of a successful rule match on a single line."""

    rule: str
    content: str
    entry_type: EntryType
    status: Optional[EntryStatus] = None  # None: infer from lexical cues
    high_priority: bool = False


@dataclass
class ParseRule:
    """An ordered (matcher, builder) pair in the dispatch table."""

    name: str
    matcher: Callable[[str], Optional[LineMatch]]
    builder: Callable[[LineMatch, str, date, Optional[float]], Optional[BuJoEntry]]


def extract_tags(text: str) -> List[str]:
    """Extract ``#tag`` tokens, lowercased and de-duplicated."""
    return unique_tokens(patterns.HASHTAG.findall(text))


def extract_contexts(text: str) -> List[str]:
    """Extract ``@context`` tokens plus contexts implied by keywords."""
    contexts = patterns.CONTEXT.findall(text)
    for pattern, context in patterns.IMPLICIT_CONTEXTS:
        if pattern.search(text):
            contexts.append(context)
    return unique_tokens(contexts)


def extract_priority(text: str) -> Priority:
    """
    Read priority markers from entry text.

    ``!!`` anywhere or trailing ``*``/``**`` is high. Any remaining single
    ``!`` is medium. High always wins over medium.
    """
    if "!!" in text or patterns.TRAILING_STARS.search(text):
        return Priority.HIGH
    if "!" in text:
        return Priority.MEDIUM
    return Priority.NONE


def clean_content(text: str) -> str:
    """
    Strip ``@``/``#`` tokens, leading glyphs and trailing priority markers.

    Every ``@token`` leaves the content, including ones such as ``@2pm``
    that are not recorded as contexts.
    """
    cleaned = patterns.AT_TOKEN.sub("", text)
    cleaned = patterns.HASHTAG.sub("", cleaned)
    cleaned = " ".join(cleaned.split())

    while True:
        stripped = patterns.TRAILING_PRIORITY.sub("", cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped

    return patterns.LEADING_GLYPHS.sub("", cleaned).strip()


def parse_time(text: str) -> Optional[Tuple[int, int]]:
    """
    Find the first clock time in text and return it as 24-hour (hour, minute).

    Accepts ``H:MM``, ``H:MM am/pm`` and ``H am/pm``. A bare number is not a
    time.
    """
    for match in patterns.TIME.finditer(text):
        minute_text = match.group("minute")
        period = match.group("period")
        if minute_text is None and period is None:
            continue

        hour = int(match.group("hour"))
        minute = int(minute_text) if minute_text else 0
        if minute > 59:
            continue

        if period:
            if not 1 <= hour <= 12:
                continue
            is_pm = period.lower() == "p"
            if is_pm and hour != 12:
                hour += 12
            elif not is_pm and hour == 12:
                hour = 0
        elif hour > 23:
            continue

        return hour, minute

    return None


class BuJoParser:
    """
    Parses raw journal text into structured entries.

    Rules are held in one explicit ordered table. Priority-signified bullets
    come first, then canonical bullet glyphs, then natural language
    heuristics. The first rule that matches a line wins.

    Usage:
        parser = BuJoParser()
        entries = parser.parse("March 15th\\n• Buy milk")
    """

    def __init__(self, clock: Optional[Callable[[], date]] = None):
        """
        Initialize parser.

        Args:
            clock: Returns "today" for input without date headers.
                   Defaults to ``date.today``.
        """
        self.clock = clock or date.today
        self.logger = logger.bind(component="BuJoParser")
        self.rules = self._build_rules()

    def _build_rules(self) -> List[ParseRule]:
        """Assemble the ordered dispatch table."""
        rules = []

        for bullet in patterns.PRIORITY_BULLET_RULES + patterns.BULLET_RULES:
            rules.append(ParseRule(bullet.name, self._bullet_matcher(bullet), self._build_entry))

        rules.extend([
            ParseRule("appointment", self._match_appointment, self._build_entry),
            ParseRule("meal_meeting", self._match_meal_meeting, self._build_entry),
            ParseRule("percent_task", self._match_percent_task, self._build_entry),
            ParseRule("action_verb", self._match_action_verb, self._build_entry),
            ParseRule("activity", self._match_activity, self._build_entry),
            ParseRule("default_task", self._match_default_task, self._build_entry),
            ParseRule("default_note", self._match_default_note, self._build_entry),
        ])
        return rules

    @property
    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def parse(
        self,
        text: Optional[str],
        today: Optional[date] = None,
        ocr_confidence: Optional[float] = None,
    ) -> List[BuJoEntry]:
        """
        Parse journal text into entries.

        Args:
            text: Raw OCR text. None or non-string input yields no entries.
            today: Date used until the first date header. Defaults to the clock.
            ocr_confidence: Confidence of the OCR result the text came from.

        Returns:
            Entries in input line order
        """
        if not text or not isinstance(text, str):
            return []

        today = today or self.clock()
        cursor = today
        date_context: Optional[date] = None
        entries: List[BuJoEntry] = []

        lines = [line.strip() for line in text.splitlines()]
        for line_number, line in enumerate(lines, 1):
            if not line:
                continue

            try:
                header = self.parse_date_header(line, cursor, today)
                if header:
                    date_context = header
                    cursor = header
                    self.logger.debug("Found date header", line=line,
                                      collection_date=iso_date(header))
                    continue

                entry = self.parse_line(line, date_context or cursor, ocr_confidence)
                if entry:
                    entries.append(entry)

            except Exception as e:
                self.logger.warning("Skipping unparseable line",
                                    line_number=line_number, line=line, error=str(e))

        self.logger.debug("Parsed journal text", lines=len(lines), entries=len(entries))
        return entries

    def parse_date_header(self, line: str, cursor: date, today: date) -> Optional[date]:
        """
        Recognize a standalone date header.

        Raises:
            ParseError: If the header names a day that does not exist
        """
        match = patterns.DAY_HEADER.match(line)
        if match:
            day = int(match.group("day"))
            if 1 <= day <= 31:
                return self._make_date(cursor.year, cursor.month, day, line)

        match = patterns.MONTH_DAY_HEADER.match(line)
        if match:
            month = self._month_number(match.group("month"))
            day = int(match.group("day"))
            year = int(match.group("year")) if match.group("year") else cursor.year
            if 1 <= day <= 31:
                return self._make_date(year, month, day, line)

        match = patterns.NUMERIC_DATE_HEADER.match(line)
        if match:
            year = int(match.group("year"))
            if year < 100:
                year += 2000
            return self._make_date(year, int(match.group("month")), int(match.group("day")), line)

        match = patterns.RELATIVE_DATE_HEADER.match(line)
        if match:
            offset = patterns.RELATIVE_DAY_OFFSETS[match.group("word").lower()]
            return today + timedelta(days=offset)

        return None

    def parse_line(
        self, line: str, active_date: date, ocr_confidence: Optional[float] = None
    ) -> Optional[BuJoEntry]:
        """Run the dispatch table over one line."""
        for rule in self.rules:
            match = rule.matcher(line)
            if match:
                return rule.builder(match, line, active_date, ocr_confidence)
        return None

    def _build_entry(
        self,
        match: LineMatch,
        line: str,
        active_date: date,
        ocr_confidence: Optional[float],
    ) -> Optional[BuJoEntry]:
        """Build an entry from a rule match; empty content yields None."""
        content = clean_content(match.content)
        if not content:
            return None

        status = match.status or self._infer_status(match.entry_type, line)
        priority = Priority.HIGH if match.high_priority else extract_priority(match.content)

        due_date = None
        parsed_time = parse_time(line)
        if parsed_time:
            due_date = datetime.combine(active_date, time(*parsed_time))

        return BuJoEntry(
            content=content,
            collection_date=iso_date(active_date),
            type=match.entry_type,
            status=status,
            priority=priority,
            contexts=extract_contexts(line),
            tags=extract_tags(line),
            due_date=due_date,
            ocr_confidence=ocr_confidence,
        )

    def _infer_status(self, entry_type: EntryType, line: str) -> EntryStatus:
        if entry_type == EntryType.TASK and patterns.COMPLETION_WORDS.search(line):
            return EntryStatus.COMPLETE
        return EntryStatus.INCOMPLETE

    # Matchers

    @staticmethod
    def _bullet_matcher(bullet: BulletRule) -> Callable[[str], Optional[LineMatch]]:
        def match(line: str) -> Optional[LineMatch]:
            found = bullet.pattern.match(line)
            if not found:
                return None
            return LineMatch(
                rule=bullet.name,
                content=found.group("content"),
                entry_type=bullet.entry_type,
                status=bullet.status,
                high_priority=bullet.high_priority,
            )
        return match

    def _match_appointment(self, line: str) -> Optional[LineMatch]:
        found = patterns.APPOINTMENT.match(line)
        if not found:
            return None
        return LineMatch("appointment", found.group("content"), EntryType.EVENT)

    def _match_meal_meeting(self, line: str) -> Optional[LineMatch]:
        found = patterns.MEAL_MEETING.match(line)
        if not found:
            return None
        content = "{} for {} @ {}".format(
            found.group("who").strip(), found.group("meal"), found.group("when").strip()
        )
        return LineMatch("meal_meeting", content, EntryType.EVENT)

    def _match_percent_task(self, line: str) -> Optional[LineMatch]:
        found = patterns.PERCENT_TASK.search(line)
        if not found:
            return None
        percent = found.group("percent")
        status = EntryStatus.COMPLETE if percent == "100" else None
        content = "{} ({}%)".format(found.group("task").strip(), percent)
        return LineMatch("percent_task", content, EntryType.TASK, status)

    def _match_action_verb(self, line: str) -> Optional[LineMatch]:
        if patterns.ACTION_VERB.match(line):
            return LineMatch("action_verb", line, EntryType.TASK)
        return None

    def _match_activity(self, line: str) -> Optional[LineMatch]:
        if patterns.ACTIVITY.match(line):
            return LineMatch("activity", line, EntryType.NOTE)
        return None

    def _match_default_task(self, line: str) -> Optional[LineMatch]:
        if patterns.CAPITALIZED.match(line) or patterns.ACTION_KEYWORD.search(line):
            return LineMatch("default_task", line, EntryType.TASK)
        return None

    def _match_default_note(self, line: str) -> Optional[LineMatch]:
        if len(line) > patterns.MIN_NOTE_LENGTH:
            return LineMatch("default_note", line, EntryType.NOTE)
        return None

    # Helpers

    @staticmethod
    def _month_number(name: str) -> int:
        prefix = name[:3].lower()
        for index, month in enumerate(patterns.MONTHS, 1):
            if month.startswith(prefix):
                return index
        raise ParseError(f"Unknown month name '{name}'")

    @staticmethod
    def _make_date(year: int, month: int, day: int, line: str) -> date:
        try:
            return date(year, month, day)
        except ValueError as e:
            raise ParseError(f"Invalid date header: {e}", line=line, rule="date_header") from e


_default_parser = BuJoParser()


def parse_text(text: Optional[str], today: Optional[date] = None) -> List[BuJoEntry]:
    """Convenience function for one-off parsing with the default parser."""
    return _default_parser.parse(text, today=today)
