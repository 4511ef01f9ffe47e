"""
Provider adapter contract and the shared HTTP base for cloud OCR services.
"""

import asyncio
import base64
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..types import OCRResult, ProviderError, ProviderUnavailableError, RateLimitError

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF = 1.0

NO_TEXT_CONFIDENCE = 0.1


class OCRProvider(ABC):
    """
    Interface every OCR provider implements in full.

    Attributes:
        key: Stable identifier used for routing and metrics
        name: Human readable provider name
    """

    key: str = ""
    name: str = ""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the provider is configured. Must not perform I/O."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the provider for use. Idempotent.

        Raises:
            ProviderUnavailableError: If configuration is missing or the
                connectivity check fails
        """

    @abstractmethod
    async def recognize_text(self, image_ref: str) -> OCRResult:
        """
        Recognize text in an image.

        Raises:
            ProviderError: On transport or upstream failures
        """

    @abstractmethod
    async def cleanup(self) -> None:
        """Release resources. Safe to call when never initialized."""


def _log_retry_attempt(retry_state) -> None:
    """Log information before sleeping between retry attempts."""
    logger.warning(
        "Retrying provider request",
        error=str(retry_state.outcome.exception()),
        attempt=retry_state.attempt_number,
        wait_seconds=round(retry_state.next_action.sleep, 2),
    )


def _should_retry(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.is_retryable


class HTTPOCRProvider(OCRProvider):
    """
    Base for providers reached over HTTP.

    Owns an ``httpx.AsyncClient`` unless one is injected. Upstream 429 and
    5xx responses are retried with exponential backoff. Every other
    failure surfaces as ProviderError.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self._client = client
        self._owns_client = client is None
        self._initialized = False
        self.logger = logger.bind(component=type(self).__name__, provider=self.key)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def initialize(self) -> None:
        if self._initialized:
            return

        if not self.is_available():
            raise ProviderUnavailableError(f"{self.name} is not configured", provider=self.key)

        try:
            await self.check_connection()
        except ProviderError as e:
            raise ProviderUnavailableError(
                f"{self.name} connectivity check failed: {e}", provider=self.key
            ) from e

        self._initialized = True
        self.logger.info("Provider initialized")

    async def check_connection(self) -> None:
        """Connectivity self-check run once by initialize. No-op by default."""

    async def cleanup(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._initialized = False

    async def read_image_base64(self, image_ref: str) -> str:
        """Read a local path or ``file://`` URI as base64 text."""
        path = self.resolve_image_path(image_ref)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ProviderError(f"Cannot read image {image_ref}: {e}", provider=self.key) from e
        return base64.b64encode(data).decode("ascii")

    @staticmethod
    def resolve_image_path(image_ref: str) -> Path:
        if image_ref.startswith("file://"):
            return Path(unquote(urlparse(image_ref).path))
        return Path(image_ref)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying throttled and server-error responses."""
        retrying = AsyncRetrying(
            retry=retry_if_exception(_should_retry),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, min=self.retry_backoff, max=30),
            before_sleep=_log_retry_attempt,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._send(method, url, **kwargs)
        return response

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{self.name} request timed out", provider=self.key) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} network error: {e}", provider=self.key) from e

        if response.is_success:
            return response

        message = self.describe_status(response)
        if response.status_code == 429:
            raise RateLimitError(message, provider=self.key, status_code=429)
        raise ProviderError(message, provider=self.key, status_code=response.status_code)

    def describe_status(self, response: httpx.Response) -> str:
        """Human readable message for a failed response."""
        return f"{self.name} API error: {response.status_code} - {response.text[:200]}"

    def json_body(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON", provider=self.key) from e

    def no_text_result(self, message: str = "No text detected in image") -> OCRResult:
        """Low-confidence explanatory result for images without readable text."""
        return OCRResult(text=message, confidence=NO_TEXT_CONFIDENCE, blocks=[], parsed_entries=[],
                         provider=self.key, text_detected=False)
