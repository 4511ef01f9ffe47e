"""
OpenAI GPT Vision provider.

Sends the page to a chat-completions vision model with a bullet journal
prompt and asks for JSON, so entries come back already structured.
"""

import json
import math
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx

from ...config.settings import Settings
from ...parser.mapper import EntryMapper
from ...types.common import BoundingBox
from ..rate_limiter import RateLimiter
from ..types import OCRBlock, OCRLine, OCRResult, ProviderError, RateLimitError
from .base import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_BACKOFF, DEFAULT_TIMEOUT, HTTPOCRProvider

FALLBACK_CONFIDENCE = 0.7
DEFAULT_ENTRY_CONFIDENCE = 0.9

BUJO_PROMPT = """Analyze this bullet journal page and extract entries as structured JSON.

BULLET JOURNAL SYMBOLS:
• (dot) = Task (incomplete)
✓ or X = Task complete
> = Task migrated
< = Task scheduled
~ = Task cancelled
○ (circle) = Event
- (dash) = Note
★ (star) = Inspiration
& (ampersand) = Research
◇ (diamond) = Memory
* prefix = High priority

@context = Context (location, person, tool needed)
#tag = Tag (category, project, theme)

Look for date headers such as "March 15th", "Today" or "3/15/25" and group
entries under them. Use the current date for entries without one.

Return JSON of the form:
{
  "entries": [
    {
      "type": "task|event|note|inspiration|research|memory",
      "status": "incomplete|complete|migrated|scheduled|cancelled",
      "content": "text without the bullet symbol",
      "priority": "none|medium|high",
      "contexts": ["context"],
      "tags": ["tag"],
      "date": "YYYY-MM-DD or null",
      "time": "HH:MM or null",
      "confidence": 0.95,
      "mood": "excellent|good|neutral|poor (memory entries only)"
    }
  ],
  "metadata": {"page_date": null, "total_entries": 0, "handwriting_quality": "good"}
}

Extract exact text, do not paraphrase. Keep @contexts and #tags. Set
confidence from text clarity (0.0-1.0). Return valid JSON only."""

STATUS_MESSAGES = {
    401: "Invalid OpenAI API key. Please check your configuration.",
    413: "Image too large for GPT Vision. Please use a smaller image.",
    429: "GPT Vision rate limit exceeded. Please try again in a few minutes.",
}

BULLET_SYMBOLS = {
    "event": "○",
    "note": "-",
    "inspiration": "★",
    "research": "&",
    "memory": "◇",
}
TASK_SYMBOLS = {"complete": "✓", "migrated": ">", "scheduled": "<", "cancelled": "~"}


def bullet_symbol(entry_type: Any, status: Any) -> str:
    if entry_type in BULLET_SYMBOLS:
        return BULLET_SYMBOLS[entry_type]
    return TASK_SYMBOLS.get(status, "•")


class GPTVisionProvider(HTTPOCRProvider):
    """GPT-4o family vision model returning structured bullet journal entries."""

    key = "gpt-vision"
    name = "GPT Vision OCR"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        max_tokens: int = 1000,
        rate_limiter: Optional[RateLimiter] = None,
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
        self.max_tokens = max_tokens
        self.rate_limiter = rate_limiter or RateLimiter(max_requests=20, window_seconds=60.0)
        self.mapper = mapper or EntryMapper(clock=clock)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "GPTVisionProvider":
        return cls(
            api_key=settings.openai_api_key,
            api_url=settings.openai_api_url,
            model=settings.openai_model,
            max_tokens=settings.openai_max_tokens,
            rate_limiter=RateLimiter(
                max_requests=settings.gpt_rate_limit_requests,
                window_seconds=settings.gpt_rate_limit_window_seconds,
            ),
            timeout=settings.request_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_backoff=settings.retry_backoff_seconds,
            **kwargs,
        )

    def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def check_connection(self) -> None:
        await self.request("GET", f"{self.api_url}/models", headers=self.headers)

    def describe_status(self, response: httpx.Response) -> str:
        message = STATUS_MESSAGES.get(response.status_code)
        if message:
            return message
        return super().describe_status(response)

    async def recognize_text(self, image_ref: str) -> OCRResult:
        if not self.rate_limiter.is_allowed(self.key):
            status = self.rate_limiter.status(self.key)
            minutes = max(1, math.ceil(status["time_until_reset"] / 60))
            raise RateLimitError(
                f"GPT Vision rate limit exceeded ({status['requests_in_window']}/"
                f"{self.rate_limiter.max_requests} requests). "
                f"Please wait {minutes} minute(s) before trying again.",
                provider=self.key,
            )

        image = await self.read_image_base64(image_ref)
        body = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": BUJO_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{image}", "detail": "high"},
                        },
                    ],
                }
            ],
            "max_tokens": self.max_tokens,
            "temperature": 0.05,
            "response_format": {"type": "json_object"},
        }

        self.logger.debug("Sending GPT Vision request", image_bytes=len(image))
        response = await self.request(
            "POST", f"{self.api_url}/chat/completions", headers=self.headers, json=body
        )
        return self.parse_response(self.json_body(response))

    def parse_response(self, data: Any) -> OCRResult:
        """
        Convert a chat-completions payload into an OCRResult.

        Malformed JSON content falls back to the raw message text at reduced
        confidence with no structured entries. A page without entries
        yields the low-confidence no-text result.

        Raises:
            ProviderError: If the payload carries no message content
        """
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise ProviderError("No content in GPT Vision response", provider=self.key)

        try:
            structured = json.loads(content)
            raw_entries = structured.get("entries", [])
            if not isinstance(raw_entries, list):
                raise ValueError("entries is not a list")
        except (ValueError, AttributeError) as e:
            self.logger.warning("Malformed structured response, using raw text", error=str(e))
            return OCRResult(text=content, confidence=FALLBACK_CONFIDENCE, blocks=[],
                             parsed_entries=[], provider=self.key)

        raw_entries = [entry for entry in raw_entries if isinstance(entry, dict)]
        entries = self.mapper.map_entries(raw_entries, source=self.key,
                                          confidence=DEFAULT_ENTRY_CONFIDENCE)
        if not entries:
            self.logger.info("GPT Vision found no entries")
            return self.no_text_result()

        confidences = [self._entry_confidence(entry) for entry in raw_entries]
        confidence = sum(confidences) / len(confidences)

        metadata = structured.get("metadata") or {}
        self.logger.info("Parsed GPT Vision response", entries=len(entries),
                         confidence=round(confidence, 3),
                         handwriting_quality=metadata.get("handwriting_quality", "unknown"))

        return OCRResult(
            text="\n".join(self._entry_line(entry) for entry in raw_entries),
            confidence=confidence,
            blocks=self._blocks(raw_entries),
            parsed_entries=entries,
            provider=self.key,
        )

    @staticmethod
    def _entry_confidence(entry: Dict[str, Any]) -> float:
        try:
            return float(entry.get("confidence") or DEFAULT_ENTRY_CONFIDENCE)
        except (TypeError, ValueError):
            return DEFAULT_ENTRY_CONFIDENCE

    @staticmethod
    def _entry_line(entry: Dict[str, Any]) -> str:
        """Render an entry back into bullet notation."""
        parts = []
        if entry.get("priority") == "high":
            parts.append("*")
        parts.append(bullet_symbol(entry.get("type"), entry.get("status")))
        parts.append(str(entry.get("content") or ""))
        parts.extend(f"@{c.lstrip('@')}" for c in entry.get("contexts") or [] if isinstance(c, str))
        parts.extend(f"#{t.lstrip('#')}" for t in entry.get("tags") or [] if isinstance(t, str))
        return " ".join(part for part in parts if part).strip()

    def _blocks(self, raw_entries: List[Dict[str, Any]]) -> List[OCRBlock]:
        # Vision models return no geometry; stack approximate boxes.
        blocks = []
        for index, entry in enumerate(raw_entries):
            text = str(entry.get("content") or "")
            box = BoundingBox(0, index * 30, 100, 25)
            blocks.append(OCRBlock(
                text=text,
                confidence=self._entry_confidence(entry),
                bounding_box=box,
                lines=[OCRLine(text=text, bounding_box=box)],
            ))
        return blocks
