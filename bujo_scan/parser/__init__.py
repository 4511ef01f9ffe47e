"""
Bullet journal parsing: raw OCR text and provider-structured records to entries.
"""

from .mapper import EntryMapper, StructuredEntry
from .parser import (
    BuJoParser,
    clean_content,
    extract_contexts,
    extract_priority,
    extract_tags,
    parse_text,
    parse_time,
)

__all__ = [
    "BuJoParser",
    "EntryMapper",
    "StructuredEntry",
    "parse_text",
    "parse_time",
    "clean_content",
    "extract_contexts",
    "extract_priority",
    "extract_tags",
]
