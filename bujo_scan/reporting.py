"""
Error reporting collaborator for scan failures.
"""

import uuid
from abc import ABC, abstractmethod
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

MAX_STORED_REPORTS = 50


class ErrorType(Enum):
    OCR_PARSE_ERROR = "OCR_PARSE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    APP_CRASH = "APP_CRASH"
    USER_REPORTED = "USER_REPORTED"


@dataclass
class ErrorReport:
    id: str
    timestamp: datetime
    type: ErrorType
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    user_feedback: Optional[str] = None
    resolved: bool = False


class ErrorReporter(ABC):
    """Receives error reports and returns an identifier for each."""

    @abstractmethod
    def report_error(
        self,
        error_type: ErrorType,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Record an error and return its report id."""


class InMemoryErrorReporter(ErrorReporter):
    """
    Keeps the most recent reports in memory and logs each one.

    Older reports are evicted once ``max_reports`` is exceeded.
    """

    def __init__(self, max_reports: int = MAX_STORED_REPORTS,
                 clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self._reports: Deque[ErrorReport] = deque(maxlen=max_reports)
        self.logger = logger.bind(component="InMemoryErrorReporter")

    def report_error(
        self,
        error_type: ErrorType,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        report = ErrorReport(
            id=f"error_{uuid.uuid4().hex[:12]}",
            timestamp=self.clock(),
            type=error_type,
            message=message,
            context=dict(context or {}),
        )
        self._reports.append(report)
        self.logger.error("Error reported", report_id=report.id,
                          error_type=error_type.value, message=message, context=report.context)
        return report.id

    def get_report(self, report_id: str) -> Optional[ErrorReport]:
        for report in self._reports:
            if report.id == report_id:
                return report
        return None

    def add_user_feedback(self, report_id: str, feedback: str) -> bool:
        report = self.get_report(report_id)
        if report is None:
            return False
        report.user_feedback = feedback
        return True

    def resolve(self, report_id: str) -> bool:
        report = self.get_report(report_id)
        if report is None:
            return False
        report.resolved = True
        return True

    def get_reports(self, include_resolved: bool = False,
                    error_type: Optional[ErrorType] = None) -> List[ErrorReport]:
        """Reports newest first, optionally filtered by type."""
        reports = [r for r in reversed(self._reports) if include_resolved or not r.resolved]
        if error_type is not None:
            reports = [r for r in reports if r.type == error_type]
        return reports

    def get_stats(self) -> Dict[str, Any]:
        cutoff = self.clock() - timedelta(days=1)
        return {
            "total": len(self._reports),
            "by_type": dict(Counter(r.type.value for r in self._reports)),
            "resolved": sum(1 for r in self._reports if r.resolved),
            "recent": sum(1 for r in self._reports if r.timestamp > cutoff and not r.resolved),
        }

    def clear(self) -> None:
        self._reports.clear()

    def __len__(self) -> int:
        return len(self._reports)
