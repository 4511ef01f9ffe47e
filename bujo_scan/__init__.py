"""
bujo-scan: turn photos of handwritten bullet journal pages into structured entries.
"""

from .exceptions import BuJoScanError, ConfigurationError, ParseError
from .ocr import (
    AllProvidersFailedError,
    CostTier,
    OCRProcessingOptions,
    OCRResult,
    SmartOCROrchestrator,
    SpeedPreference,
)
from .parser import BuJoParser, EntryMapper, parse_text
from .pipeline import EntryRepository, ScanPipeline, ScanResult
from .reporting import ErrorReporter, ErrorType, InMemoryErrorReporter
from .types import BuJoEntry, EntryStatus, EntryType, Mood, Priority

__version__ = "0.1.0"

__all__ = [
    "BuJoParser",
    "EntryMapper",
    "parse_text",
    "SmartOCROrchestrator",
    "OCRProcessingOptions",
    "OCRResult",
    "CostTier",
    "SpeedPreference",
    "ScanPipeline",
    "ScanResult",
    "EntryRepository",
    "ErrorReporter",
    "ErrorType",
    "InMemoryErrorReporter",
    "BuJoEntry",
    "EntryType",
    "EntryStatus",
    "Priority",
    "Mood",
    "BuJoScanError",
    "ParseError",
    "ConfigurationError",
    "AllProvidersFailedError",
]
