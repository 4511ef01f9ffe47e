"""
Type definitions for OCR processing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import BuJoScanError
from ..types.common import BoundingBox
from ..types.entries import BuJoEntry


class CostTier(Enum):
    """Provider cost tiers, ordered free < standard < premium."""
    FREE = "free"
    STANDARD = "standard"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return _COST_RANK[self]

    def __le__(self, other: "CostTier") -> bool:
        return self.rank <= other.rank

    def __lt__(self, other: "CostTier") -> bool:
        return self.rank < other.rank


_COST_RANK = {CostTier.FREE: 0, CostTier.STANDARD: 1, CostTier.PREMIUM: 2}


class SpeedPreference(Enum):
    """Caller preference between latency and accuracy."""
    SPEED = "speed"
    ACCURACY = "accuracy"


class OCRError(BuJoScanError):
    """Base exception for OCR processing errors."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class ProviderError(OCRError):
    """Transient provider failure: network, timeout, bad status or malformed response."""

    def __init__(self, message: str, provider: Optional[str] = None,
                 status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, provider=provider)

    @property
    def is_retryable(self) -> bool:
        """Upstream throttling and server errors are worth retrying."""
        return self.status_code is not None and (
            self.status_code == 429 or self.status_code >= 500
        )


class RateLimitError(ProviderError):
    """A local or upstream rate limit was hit."""
    pass


class ProviderUnavailableError(OCRError):
    """Provider is missing credentials or failed its self-check."""
    pass


class AllProvidersFailedError(OCRError):
    """Every ranked provider failed or was unavailable."""

    def __init__(self, message: str, failures: Optional[Dict[str, str]] = None):
        self.failures = failures or {}
        super().__init__(message)


@dataclass
class OCRLine:
    """A single recognized line."""
    text: str
    bounding_box: BoundingBox = field(default_factory=BoundingBox.empty)


@dataclass
class OCRBlock:
    """A block of recognized text with its lines."""
    text: str
    confidence: float
    bounding_box: BoundingBox = field(default_factory=BoundingBox.empty)
    lines: List[OCRLine] = field(default_factory=list)


@dataclass
class OCRResult:
    """Result of recognizing one image."""
    text: str
    confidence: float
    blocks: List[OCRBlock] = field(default_factory=list)
    parsed_entries: Optional[List[BuJoEntry]] = None
    provider: Optional[str] = None
    processing_time: float = 0.0
    text_detected: bool = True  # False: `text` explains why nothing was read

    @property
    def has_structured_entries(self) -> bool:
        return bool(self.parsed_entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "provider": self.provider,
            "processing_time": self.processing_time,
            "text_detected": self.text_detected,
            "blocks": [
                {
                    "text": block.text,
                    "confidence": block.confidence,
                    "bounding_box": block.bounding_box.to_dict(),
                    "lines": [
                        {"text": line.text, "bounding_box": line.bounding_box.to_dict()}
                        for line in block.lines
                    ],
                }
                for block in self.blocks
            ],
            "parsed_entries": (
                [entry.to_dict() for entry in self.parsed_entries]
                if self.parsed_entries is not None else None
            ),
        }


@dataclass
class OCRProcessingOptions:
    """Per-call routing options for the orchestrator."""
    preferred_service: Optional[str] = None
    max_cost_tier: Optional[CostTier] = None
    speed_preference: Optional[SpeedPreference] = None
    prioritize_speed: bool = False
    prioritize_accuracy: bool = False
