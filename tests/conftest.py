from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

import pytest
import structlog

from bujo_scan.ocr.metrics import MetricsStore
from bujo_scan.ocr.providers.base import OCRProvider
from bujo_scan.ocr.strategy import ProviderDescriptor
from bujo_scan.ocr.types import CostTier, OCRResult
from bujo_scan.types.entries import BuJoEntry

FIXED_TODAY = date(2025, 3, 10)


class FakeClock:
    """Manually advanced clock for time-dependent components."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


class FakeProvider(OCRProvider):
    """Scriptable provider for orchestrator and pipeline tests."""

    def __init__(
        self,
        key: str,
        text: str = "• Buy milk",
        confidence: float = 0.9,
        parsed_entries: Optional[List[BuJoEntry]] = None,
        error: Optional[BaseException] = None,
        available: bool = True,
        init_error: Optional[Exception] = None,
        cleanup_error: Optional[Exception] = None,
        text_detected: bool = True,
    ):
        self.key = key
        self.name = key
        self.text = text
        self.confidence = confidence
        self.parsed_entries = parsed_entries
        self.error = error
        self.available = available
        self.init_error = init_error
        self.cleanup_error = cleanup_error
        self.text_detected = text_detected
        self.calls = 0
        self.initialized = False
        self.cleaned_up = False

    def is_available(self) -> bool:
        return self.available

    async def initialize(self) -> None:
        if self.init_error:
            raise self.init_error
        self.initialized = True

    async def recognize_text(self, image_ref: str) -> OCRResult:
        self.calls += 1
        if self.error:
            raise self.error
        return OCRResult(
            text=self.text,
            confidence=self.confidence,
            parsed_entries=list(self.parsed_entries) if self.parsed_entries is not None else None,
            text_detected=self.text_detected,
        )

    async def cleanup(self) -> None:
        if self.cleanup_error:
            raise self.cleanup_error
        self.cleaned_up = True


def make_descriptor(provider, priority, cost_tier, accuracy, response_time, name=None):
    return ProviderDescriptor(
        provider=provider,
        name=name or provider.key,
        priority=priority,
        cost_tier=cost_tier,
        average_accuracy=accuracy,
        average_response_time=response_time,
    )


def stock_descriptors(gpt=None, mistral=None, ocr_space=None):
    """Descriptors mirroring the stock registry baselines, backed by fakes."""
    return [
        make_descriptor(gpt or FakeProvider("gpt-vision"), 1, CostTier.PREMIUM, 0.95, 8.0),
        make_descriptor(mistral or FakeProvider("mistral-ocr"), 2, CostTier.STANDARD, 0.87, 5.0),
        make_descriptor(ocr_space or FakeProvider("ocr-space"), 3, CostTier.FREE, 0.82, 7.0),
    ]


@pytest.fixture
def today() -> date:
    return FIXED_TODAY


@pytest.fixture
def metrics_clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 12, 0, 0))


@pytest.fixture
def metrics_store(metrics_clock) -> MetricsStore:
    return MetricsStore(max_size=100, clock=metrics_clock)


@pytest.fixture
def image_file(tmp_path) -> Path:
    """A throwaway image file; providers only base64 it."""
    path = tmp_path / "page.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg-bytes")
    return path


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
