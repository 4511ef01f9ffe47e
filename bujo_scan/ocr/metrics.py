"""
Bounded in-memory log of provider attempts.

The orchestrator reads this log to rank providers by recent success rate
and to report service health.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Deque, List, Optional

DEFAULT_HISTORY_SIZE = 100


@dataclass
class OCRMetric:
    """One provider attempt."""
    provider: str
    success: bool
    timestamp: datetime
    processing_time: float = 0.0
    confidence: Optional[float] = None
    entries_extracted: int = 0
    error: Optional[str] = None


class MetricsStore:
    """
    Append-only attempt log capped at ``max_size`` records.

    Oldest records are evicted first. Owned by a single orchestrator.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.max_size = max_size
        self.clock = clock
        self._metrics: Deque[OCRMetric] = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._metrics)

    def record(self, metric: OCRMetric) -> None:
        self._metrics.append(metric)

    def record_success(
        self,
        provider: str,
        processing_time: float,
        confidence: float,
        entries_extracted: int = 0,
    ) -> OCRMetric:
        metric = OCRMetric(
            provider=provider,
            success=True,
            timestamp=self.clock(),
            processing_time=processing_time,
            confidence=confidence,
            entries_extracted=entries_extracted,
        )
        self.record(metric)
        return metric

    def record_failure(self, provider: str, processing_time: float, error: str) -> OCRMetric:
        metric = OCRMetric(
            provider=provider,
            success=False,
            timestamp=self.clock(),
            processing_time=processing_time,
            error=error,
        )
        self.record(metric)
        return metric

    def recent(self, window: timedelta) -> List[OCRMetric]:
        """Records newer than ``now - window``, oldest first."""
        cutoff = self.clock() - window
        return [m for m in self._metrics if m.timestamp > cutoff]

    def for_provider(self, provider: str, window: timedelta) -> List[OCRMetric]:
        return [m for m in self.recent(window) if m.provider == provider]

    def success_rate(self, provider: str, window: timedelta) -> Optional[float]:
        """Fraction of successful attempts, or None with no attempts in window."""
        metrics = self.for_provider(provider, window)
        if not metrics:
            return None
        return sum(1 for m in metrics if m.success) / len(metrics)

    def last_success(self, provider: str) -> Optional[datetime]:
        for metric in reversed(self._metrics):
            if metric.provider == provider and metric.success:
                return metric.timestamp
        return None

    def clear(self) -> None:
        self._metrics.clear()
