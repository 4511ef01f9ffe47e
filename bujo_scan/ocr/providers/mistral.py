"""
Mistral OCR provider.
"""

import json
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx

from ...config.settings import Settings
from ...parser.mapper import EntryMapper
from ...types.common import BoundingBox
from ..types import OCRBlock, OCRLine, OCRResult
from .base import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_BACKOFF, DEFAULT_TIMEOUT, HTTPOCRProvider

RESULT_CONFIDENCE = 0.95
LINE_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.7


class MistralOCRProvider(HTTPOCRProvider):
    """Mistral's ``/v1/ocr`` endpoint; returns page markdown and optional annotations."""

    key = "mistral-ocr"
    name = "Mistral OCR"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = "https://api.mistral.ai/v1",
        model: str = "mistral-ocr-latest",
        mapper: Optional[EntryMapper] = None,
        clock: Optional[Callable[[], date]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, retry_attempts=retry_attempts,
                         retry_backoff=retry_backoff, client=client)
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.model = model
        self.mapper = mapper or EntryMapper(clock=clock)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "MistralOCRProvider":
        return cls(
            api_key=settings.mistral_api_key,
            api_url=settings.mistral_api_url,
            model=settings.mistral_model,
            timeout=settings.request_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_backoff=settings.retry_backoff_seconds,
            **kwargs,
        )

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def recognize_text(self, image_ref: str) -> OCRResult:
        image = await self.read_image_base64(image_ref)
        body = {
            "model": self.model,
            "document": {
                "type": "image_url",
                "image_url": f"data:image/jpeg;base64,{image}",
            },
        }
        response = await self.request(
            "POST",
            f"{self.api_url}/ocr",
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            json=body,
        )
        return self.parse_response(self.json_body(response))

    def parse_response(self, data: Any) -> OCRResult:
        """Convert an OCR payload into an OCRResult."""
        if not isinstance(data, dict):
            data = {}

        page_text = self._page_text(data.get("pages"))
        annotation = data.get("document_annotation")

        if annotation:
            if isinstance(annotation, str):
                try:
                    annotation = json.loads(annotation)
                except ValueError as e:
                    self.logger.warning("Malformed document annotation, using raw text", error=str(e))
                    return OCRResult(text=page_text or data["document_annotation"],
                                     confidence=FALLBACK_CONFIDENCE, blocks=[],
                                     parsed_entries=[], provider=self.key)

            if isinstance(annotation, dict) and isinstance(annotation.get("entries"), list):
                entries = self.mapper.map_entries(annotation["entries"], source=self.key,
                                                  confidence=RESULT_CONFIDENCE)
                text = str(annotation.get("raw_text") or page_text
                           or "\n".join(entry.content for entry in entries))
                if not entries and not text.strip():
                    return self.no_text_result()
                self.logger.info("Parsed Mistral annotation", entries=len(entries))
                return OCRResult(text=text, confidence=RESULT_CONFIDENCE,
                                 blocks=self._blocks(text), parsed_entries=entries,
                                 provider=self.key)

        if not page_text.strip():
            return self.no_text_result()

        return OCRResult(text=page_text, confidence=RESULT_CONFIDENCE,
                         blocks=self._blocks(page_text), provider=self.key)

    @staticmethod
    def _page_text(pages: Any) -> str:
        if not isinstance(pages, list):
            return ""
        texts = []
        for page in pages:
            if isinstance(page, str):
                texts.append(page)
            elif isinstance(page, dict):
                texts.append(str(page.get("markdown") or page.get("content") or ""))
        return "\n".join(text for text in texts if text)

    @staticmethod
    def _blocks(text: str) -> List[OCRBlock]:
        blocks = []
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        for index, line in enumerate(lines):
            box = BoundingBox(20, 50 + index * 30, 350, 25)
            blocks.append(OCRBlock(text=line, confidence=LINE_CONFIDENCE, bounding_box=box,
                                   lines=[OCRLine(text=line, bounding_box=box)]))
        return blocks
