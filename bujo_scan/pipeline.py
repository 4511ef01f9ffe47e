"""
Scan pipeline: image in, journal entries out.

Runs the OCR orchestrator, parses the text when the provider returned no
structured entries, hands the entries to a repository and reports failed
scans.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

import structlog

from .logging import bind_scan_id, clear_scan_id
from .ocr.strategy import SmartOCROrchestrator
from .ocr.types import AllProvidersFailedError, OCRProcessingOptions, OCRResult
from .parser.parser import BuJoParser
from .reporting import ErrorReporter, ErrorType
from .types.entries import BuJoEntry

logger = structlog.get_logger(__name__)


class EntryRepository(ABC):
    """Persistence collaborator for scanned entries."""

    @abstractmethod
    async def save(self, entries: List[BuJoEntry], ocr_result: OCRResult) -> None:
        """Persist the entries produced from one OCR result."""


class InMemoryEntryRepository(EntryRepository):
    def __init__(self):
        self.entries: List[BuJoEntry] = []
        self.results: List[OCRResult] = []

    async def save(self, entries: List[BuJoEntry], ocr_result: OCRResult) -> None:
        self.entries.extend(entries)
        self.results.append(ocr_result)


@dataclass
class ScanResult:
    ocr_result: OCRResult
    entries: List[BuJoEntry] = field(default_factory=list)

    @property
    def used_structured_entries(self) -> bool:
        return self.ocr_result.has_structured_entries


class ScanPipeline:
    """
    Ties OCR and parsing together for a single image.

    Usage:
        pipeline = ScanPipeline(SmartOCROrchestrator.from_settings())
        result = await pipeline.scan("page.jpg")
    """

    def __init__(
        self,
        orchestrator: SmartOCROrchestrator,
        parser: Optional[BuJoParser] = None,
        repository: Optional[EntryRepository] = None,
        error_reporter: Optional[ErrorReporter] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.orchestrator = orchestrator
        self.parser = parser or BuJoParser(clock=clock)
        self.repository = repository
        self.error_reporter = error_reporter
        self.clock = clock or date.today
        self.logger = logger.bind(component="ScanPipeline")

    async def scan(
        self, image_ref: str, options: Optional[OCRProcessingOptions] = None
    ) -> ScanResult:
        """
        Scan one journal page.

        Args:
            image_ref: Local path or ``file://`` URI
            options: Provider routing options

        Returns:
            The OCR result and the entries extracted from it

        Raises:
            AllProvidersFailedError: If no provider could read the image
        """
        bind_scan_id(uuid.uuid4().hex)
        try:
            try:
                ocr_result = await self.orchestrator.process_image(image_ref, options)
            except AllProvidersFailedError as e:
                if self.error_reporter is not None:
                    self.error_reporter.report_error(
                        ErrorType.NETWORK_ERROR,
                        str(e),
                        {"image_ref": image_ref, "failures": dict(e.failures)},
                    )
                raise

            entries = self.extract_entries(ocr_result)

            if self.repository is not None:
                await self.repository.save(entries, ocr_result)

            self.logger.info("Scan completed", provider=ocr_result.provider,
                             entries=len(entries),
                             structured=ocr_result.has_structured_entries)
            return ScanResult(ocr_result=ocr_result, entries=entries)
        finally:
            clear_scan_id()

    def extract_entries(self, ocr_result: OCRResult) -> List[BuJoEntry]:
        """Structured entries when present, else entries parsed from the text."""
        if not ocr_result.text_detected:
            return []

        if ocr_result.has_structured_entries:
            entries = list(ocr_result.parsed_entries)
            for entry in entries:
                if entry.ocr_confidence is None:
                    entry.ocr_confidence = ocr_result.confidence
            return entries

        return self.parser.parse(ocr_result.text, today=self.clock(),
                                 ocr_confidence=ocr_result.confidence)
