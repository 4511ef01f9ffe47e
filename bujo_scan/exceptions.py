"""
Exception classes for bujo-scan.

All library exceptions inherit from BuJoScanError, making it easy to
catch every error raised by the scanning core. OCR-specific errors live
in ``bujo_scan.ocr.types``.

Example:
    >>> try:
    ...     result = await orchestrator.process_image("page.jpg")
    ... except AllProvidersFailedError as e:
    ...     print(f"No OCR provider could read the page: {e}")
    ... except BuJoScanError as e:
    ...     print(f"Scan error: {e}")
"""

from typing import Optional


class BuJoScanError(Exception):
    """
    Base exception for all bujo-scan errors.

    Catch this to handle any library-specific error.
    """

    pass


class ParseError(BuJoScanError):
    """
    Raised when a single journal line cannot be turned into an entry.

    The parser catches this per line, logs it and keeps going, so it never
    escapes ``BuJoParser.parse``.
    """

    def __init__(self, message: str, line: Optional[str] = None, rule: Optional[str] = None):
        self.line = line
        self.rule = rule
        super().__init__(message)


class ConfigurationError(BuJoScanError):
    """
    Raised for invalid configuration.

    Example:
        >>> OrchestratorConfig(tie_threshold=2.0)
        ConfigurationError: tie_threshold must be between 0.0 and 1.0, got 2.0
    """

    pass
