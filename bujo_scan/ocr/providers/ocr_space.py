"""
OCR.space provider: free tier, plain text with a word overlay.
"""

from typing import Any, Dict, List, Optional

import httpx

from ...config.settings import Settings
from ...types.common import BoundingBox
from ..types import OCRBlock, OCRLine, OCRResult, ProviderError
from .base import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_BACKOFF, DEFAULT_TIMEOUT, HTTPOCRProvider

# The API reports no confidence figures
RESULT_CONFIDENCE = 0.9

NO_TEXT_MESSAGE = (
    "Could not extract text from image. Please ensure:\n"
    "• Good lighting\n• Clear handwriting\n• High contrast"
)


class OCRSpaceProvider(HTTPOCRProvider):
    key = "ocr-space"
    name = "OCR.space"

    def __init__(
        self,
        api_key: str = "helloworld",
        api_url: str = "https://api.ocr.space/parse/image",
        engine: int = 2,
        timeout: float = DEFAULT_TIMEOUT,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, retry_attempts=retry_attempts,
                         retry_backoff=retry_backoff, client=client)
        self.api_key = api_key
        self.api_url = api_url
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "OCRSpaceProvider":
        return cls(
            api_key=settings.ocr_space_api_key,
            api_url=settings.ocr_space_api_url,
            engine=settings.ocr_space_engine,
            timeout=settings.request_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_backoff=settings.retry_backoff_seconds,
            **kwargs,
        )

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def recognize_text(self, image_ref: str) -> OCRResult:
        image = await self.read_image_base64(image_ref)
        form = {
            "apikey": self.api_key,
            "base64Image": f"data:image/png;base64,{image}",
            "language": "eng",
            "isOverlayRequired": "true",
            "detectOrientation": "true",
            "scale": "true",
            "OCREngine": str(self.engine),
        }
        response = await self.request("POST", self.api_url, data=form)
        return self.parse_response(self.json_body(response))

    def parse_response(self, data: Any) -> OCRResult:
        """
        Convert a parse/image payload into an OCRResult.

        Raises:
            ProviderError: If the service reports a processing error
        """
        if not isinstance(data, dict):
            raise ProviderError("OCR.space returned an unexpected payload", provider=self.key)

        results = data.get("ParsedResults") or []
        if data.get("IsErroredOnProcessing") and not results:
            raise ProviderError(f"OCR error: {self._error_text(data.get('ErrorMessage'))}",
                                provider=self.key)
        if not results:
            return self.no_text_result(NO_TEXT_MESSAGE)

        result = results[0]
        if result.get("ErrorMessage"):
            raise ProviderError(f"OCR error: {self._error_text(result['ErrorMessage'])}",
                                provider=self.key)

        text = result.get("ParsedText") or ""
        if not text.strip():
            return self.no_text_result(NO_TEXT_MESSAGE)

        overlay_lines = (result.get("TextOverlay") or {}).get("Lines") or []
        blocks = self._overlay_blocks(overlay_lines) if overlay_lines else self._text_blocks(text)
        return OCRResult(text=text, confidence=RESULT_CONFIDENCE, blocks=blocks, provider=self.key)

    @staticmethod
    def _error_text(message: Any) -> str:
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        return str(message)

    @staticmethod
    def _overlay_blocks(lines: List[Dict[str, Any]]) -> List[OCRBlock]:
        blocks = []
        for line in lines:
            line_text = (line.get("LineText") or "").strip()
            if not line_text:
                continue

            words = []
            for word in line.get("Words") or []:
                words.append(OCRLine(
                    text=word.get("WordText") or "",
                    bounding_box=BoundingBox(
                        word.get("Left") or 0,
                        word.get("Top") or 0,
                        word.get("Width") or 0,
                        word.get("Height") or 0,
                    ),
                ))

            corners = []
            for word in words:
                box = word.bounding_box
                corners.extend([(box.x, box.y), (box.x2, box.y2)])

            blocks.append(OCRBlock(
                text=line_text,
                confidence=RESULT_CONFIDENCE,
                bounding_box=BoundingBox.from_points(corners),
                lines=words,
            ))
        return blocks

    @staticmethod
    def _text_blocks(text: str) -> List[OCRBlock]:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return [
            OCRBlock(text=line, confidence=RESULT_CONFIDENCE,
                     bounding_box=BoundingBox(20, 50 + index * 30, 350, 25))
            for index, line in enumerate(lines)
        ]
