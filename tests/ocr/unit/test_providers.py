import json
from datetime import date, datetime
from urllib.parse import parse_qs

import httpx
import pytest

from bujo_scan.ocr.providers.gpt_vision import GPTVisionProvider
from bujo_scan.ocr.providers.mistral import MistralOCRProvider
from bujo_scan.ocr.providers.ocr_space import NO_TEXT_MESSAGE, OCRSpaceProvider
from bujo_scan.ocr.rate_limiter import RateLimiter
from bujo_scan.ocr.types import ProviderError, ProviderUnavailableError, RateLimitError
from bujo_scan.types.entries import EntryType, Priority
from conftest import FakeClock

TODAY = date(2025, 3, 10)


class ScriptedTransport:
    """Replays canned responses and keeps the requests it saw."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def chat_response(content, status_code=200):
    return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})


GPT_ENTRIES = {
    "entries": [
        {"type": "task", "status": "incomplete", "content": "Buy milk", "priority": "high",
         "contexts": ["home"], "tags": ["errands"], "confidence": 0.8},
        {"type": "event", "content": "Dentist", "time": "14:00", "confidence": 0.9},
    ],
    "metadata": {"handwriting_quality": "good"},
}


@pytest.mark.unit
class TestGPTVisionProvider:
    """Test the GPT Vision adapter against a mocked HTTP transport."""

    def make_provider(self, transport, **kwargs):
        kwargs.setdefault("retry_backoff", 0)
        return GPTVisionProvider(api_key="sk-test", clock=lambda: TODAY,
                                 client=transport.client(), **kwargs)

    def test_availability_requires_key(self):
        """Test availability check."""
        assert GPTVisionProvider(api_key="sk-test").is_available()
        assert not GPTVisionProvider().is_available()

    @pytest.mark.asyncio
    async def test_structured_entries(self, image_file):
        """Test structured GPT Vision output."""
        transport = ScriptedTransport(chat_response(json.dumps(GPT_ENTRIES)))
        provider = self.make_provider(transport)

        result = await provider.recognize_text(str(image_file))

        request = transport.requests[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"][0]["content"][1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

        assert result.confidence == pytest.approx(0.85)
        assert result.text == "* • Buy milk @home #errands\n○ Dentist"
        assert [b.bounding_box.y for b in result.blocks] == [0, 30]

        task, event = result.parsed_entries
        assert task.type == EntryType.TASK
        assert task.priority == Priority.HIGH
        assert task.contexts == ["home"]
        assert task.ocr_confidence == 0.8
        assert event.type == EntryType.EVENT
        assert event.due_date == datetime(2025, 3, 10, 14, 0)

    def test_empty_page(self):
        """Test a page with no entries."""
        provider = GPTVisionProvider(api_key="sk-test")

        result = provider.parse_response({"choices": [{"message": {"content": '{"entries": []}'}}]})

        assert result.confidence == 0.1
        assert result.text == "No text detected in image"
        assert result.text_detected is False
        assert result.parsed_entries == []
        assert result.blocks == []

    def test_malformed_json_falls_back_to_text(self):
        """Test malformed JSON fallback."""
        provider = GPTVisionProvider(api_key="sk-test")

        result = provider.parse_response(
            {"choices": [{"message": {"content": "• Buy milk (not json)"}}]}
        )

        assert result.text == "• Buy milk (not json)"
        assert result.confidence == 0.7
        assert result.parsed_entries == []
        assert not result.has_structured_entries

    def test_missing_content(self):
        """Test a response without content."""
        provider = GPTVisionProvider(api_key="sk-test")

        with pytest.raises(ProviderError):
            provider.parse_response({"choices": []})

    @pytest.mark.asyncio
    async def test_invalid_key_message(self, image_file):
        """Test the invalid key message."""
        transport = ScriptedTransport(httpx.Response(401, json={"error": "bad key"}))
        provider = self.make_provider(transport)

        with pytest.raises(ProviderError) as exc_info:
            await provider.recognize_text(str(image_file))

        assert str(exc_info.value) == "Invalid OpenAI API key. Please check your configuration."
        assert exc_info.value.status_code == 401
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_upstream_throttle_is_retried(self, image_file):
        """Test retry on 429."""
        transport = ScriptedTransport(
            httpx.Response(429, text="slow down"),
            chat_response(json.dumps(GPT_ENTRIES)),
        )
        provider = self.make_provider(transport)

        result = await provider.recognize_text(str(image_file))

        assert len(transport.requests) == 2
        assert len(result.parsed_entries) == 2

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self, image_file):
        """Test retry exhaustion on 5xx."""
        transport = ScriptedTransport(httpx.Response(503, text="unavailable"))
        provider = self.make_provider(transport, retry_attempts=2)

        with pytest.raises(ProviderError) as exc_info:
            await provider.recognize_text(str(image_file))

        assert exc_info.value.status_code == 503
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_persistent_throttle_raises_rate_limit_error(self, image_file):
        """Test persistent throttling."""
        transport = ScriptedTransport(httpx.Response(429, text="slow down"))
        provider = self.make_provider(transport, retry_attempts=3)

        with pytest.raises(RateLimitError) as exc_info:
            await provider.recognize_text(str(image_file))

        assert "rate limit exceeded" in str(exc_info.value)
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self, image_file):
        """Test timeout handling."""
        transport = ScriptedTransport(httpx.ReadTimeout("timed out"))
        provider = self.make_provider(transport)

        with pytest.raises(ProviderError, match="timed out"):
            await provider.recognize_text(str(image_file))

        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_local_rate_limit(self, image_file):
        """Test the client-side rate limit."""
        transport = ScriptedTransport(chat_response(json.dumps(GPT_ENTRIES)))
        limiter = RateLimiter(max_requests=1, window_seconds=60.0, clock=FakeClock(0.0))
        provider = self.make_provider(transport, rate_limiter=limiter)

        await provider.recognize_text(str(image_file))
        with pytest.raises(RateLimitError, match="Please wait 1 minute"):
            await provider.recognize_text(str(image_file))

        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_image(self, tmp_path):
        """Test a missing image file."""
        transport = ScriptedTransport(chat_response("{}"))
        provider = self.make_provider(transport)

        with pytest.raises(ProviderError, match="Cannot read image"):
            await provider.recognize_text(str(tmp_path / "missing.jpg"))

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_file_uri(self, image_file):
        """Test file URI image references."""
        transport = ScriptedTransport(chat_response(json.dumps(GPT_ENTRIES)))
        provider = self.make_provider(transport)

        result = await provider.recognize_text(image_file.as_uri())

        assert len(result.parsed_entries) == 2

    @pytest.mark.asyncio
    async def test_initialize_without_key(self):
        """Test initialize without a key."""
        with pytest.raises(ProviderUnavailableError):
            await GPTVisionProvider().initialize()

    @pytest.mark.asyncio
    async def test_initialize_checks_connection_once(self):
        """Test one connection check per initialize."""
        transport = ScriptedTransport(httpx.Response(200, json={"data": []}))
        provider = self.make_provider(transport)

        await provider.initialize()
        await provider.initialize()

        assert [r.url.path for r in transport.requests] == ["/v1/models"]

    @pytest.mark.asyncio
    async def test_initialize_rejected_key(self):
        """Test initialize with a rejected key."""
        transport = ScriptedTransport(httpx.Response(401, json={"error": "bad key"}))
        provider = self.make_provider(transport)

        with pytest.raises(ProviderUnavailableError, match="Invalid OpenAI API key"):
            await provider.initialize()

    @pytest.mark.asyncio
    async def test_cleanup_leaves_injected_client_open(self):
        """Test cleanup with an injected client."""
        transport = ScriptedTransport(httpx.Response(200, json={}))
        client = transport.client()
        provider = GPTVisionProvider(api_key="sk-test", client=client)

        await provider.cleanup()

        assert not client.is_closed
        await client.aclose()


@pytest.mark.unit
class TestMistralOCRProvider:
    """Test the Mistral OCR adapter."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = MistralOCRProvider(api_key="mk-test", clock=lambda: TODAY)

    def test_page_markdown(self):
        """Test page markdown assembly."""
        result = self.provider.parse_response({
            "pages": [{"markdown": "• Buy milk\n- Quiet morning"}, {"markdown": "○ Dentist"}],
        })

        assert result.text == "• Buy milk\n- Quiet morning\n○ Dentist"
        assert result.confidence == 0.95
        assert result.parsed_entries is None
        assert [b.text for b in result.blocks] == ["• Buy milk", "- Quiet morning", "○ Dentist"]
        assert all(b.confidence == 0.9 for b in result.blocks)

    def test_document_annotation(self):
        """Test document annotation entries."""
        annotation = {"entries": [
            {"entry_type": "completed_task", "content": "Send invoice"},
            {"entry_type": "event", "content": "Team lunch", "date": "2025-03-12"},
        ]}

        result = self.provider.parse_response({
            "pages": [{"markdown": "x Send invoice\n○ Team lunch"}],
            "document_annotation": json.dumps(annotation),
        })

        assert result.confidence == 0.95
        assert [e.content for e in result.parsed_entries] == ["Send invoice", "Team lunch"]
        assert result.parsed_entries[0].is_complete
        assert result.parsed_entries[1].collection_date == "2025-03-12"
        assert all(e.ocr_confidence == 0.95 for e in result.parsed_entries)

    def test_malformed_annotation(self):
        """Test a malformed annotation."""
        result = self.provider.parse_response({
            "pages": [{"markdown": "• Buy milk"}],
            "document_annotation": "{not json",
        })

        assert result.text == "• Buy milk"
        assert result.confidence == 0.7
        assert result.parsed_entries == []

    def test_no_text(self):
        """Test blank pages."""
        result = self.provider.parse_response({"pages": [{"markdown": "  "}]})

        assert result.confidence == 0.1
        assert result.blocks == []
        assert result.text_detected is False

    def test_empty_annotation(self):
        """Test an annotation without entries or text."""
        result = self.provider.parse_response({"pages": [], "document_annotation": {"entries": []}})

        assert result.confidence == 0.1
        assert result.text == "No text detected in image"
        assert result.text_detected is False
        assert result.parsed_entries == []

    def test_annotation_without_entries_keeps_page_text(self):
        """Test an empty annotation on a page with text."""
        result = self.provider.parse_response({
            "pages": [{"markdown": "Quiet morning by the lake"}],
            "document_annotation": {"entries": []},
        })

        assert result.text == "Quiet morning by the lake"
        assert result.confidence == 0.95
        assert result.text_detected is True
        assert result.parsed_entries == []

    @pytest.mark.asyncio
    async def test_request_shape(self, image_file):
        """Test the OCR request body."""
        transport = ScriptedTransport(httpx.Response(200, json={"pages": [{"markdown": "• Buy milk"}]}))
        provider = MistralOCRProvider(api_key="mk-test", client=transport.client())

        result = await provider.recognize_text(str(image_file))

        request = transport.requests[0]
        body = json.loads(request.content)
        assert request.url.path == "/v1/ocr"
        assert body["model"] == "mistral-ocr-latest"
        assert body["document"]["type"] == "image_url"
        assert result.text == "• Buy milk"


OVERLAY_PAYLOAD = {
    "ParsedResults": [{
        "ParsedText": "Buy milk\r\n",
        "ErrorMessage": "",
        "TextOverlay": {"Lines": [{
            "LineText": "Buy milk",
            "Words": [
                {"WordText": "Buy", "Left": 10, "Top": 20, "Width": 30, "Height": 12},
                {"WordText": "milk", "Left": 45, "Top": 21, "Width": 40, "Height": 12},
            ],
        }]},
    }],
    "IsErroredOnProcessing": False,
}


@pytest.mark.unit
class TestOCRSpaceProvider:
    """Test the OCR.space adapter."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = OCRSpaceProvider()

    def test_free_key_is_available(self):
        """Test the free default key."""
        assert self.provider.api_key == "helloworld"
        assert self.provider.is_available()

    def test_overlay_geometry(self):
        """Test overlay line geometry."""
        result = self.provider.parse_response(OVERLAY_PAYLOAD)

        assert result.confidence == 0.9
        block = result.blocks[0]
        assert block.text == "Buy milk"
        assert [line.text for line in block.lines] == ["Buy", "milk"]
        assert block.bounding_box.to_tuple() == (10, 20, 75, 13)

    def test_plain_text_blocks(self):
        """Test blocks from plain text."""
        result = self.provider.parse_response({
            "ParsedResults": [{"ParsedText": "Buy milk\nCall mom\n", "ErrorMessage": ""}],
        })

        assert [b.text for b in result.blocks] == ["Buy milk", "Call mom"]

    def test_result_error_message(self):
        """Test per-result error messages."""
        with pytest.raises(ProviderError, match="OCR error: Unable to recognize"):
            self.provider.parse_response({
                "ParsedResults": [{"ParsedText": "", "ErrorMessage": "Unable to recognize"}],
            })

    def test_processing_error(self):
        """Test processing errors."""
        with pytest.raises(ProviderError, match="OCR error: File failed; Timed out"):
            self.provider.parse_response({
                "IsErroredOnProcessing": True,
                "ErrorMessage": ["File failed", "Timed out"],
            })

    def test_empty_results(self):
        """Test empty parsed results."""
        result = self.provider.parse_response({"ParsedResults": []})

        assert result.text == NO_TEXT_MESSAGE
        assert result.confidence == 0.1
        assert not result.text_detected

    @pytest.mark.asyncio
    async def test_form_fields(self, image_file):
        """Test the upload form fields."""
        transport = ScriptedTransport(httpx.Response(200, json=OVERLAY_PAYLOAD))
        provider = OCRSpaceProvider(client=transport.client())

        result = await provider.recognize_text(str(image_file))

        form = parse_qs(transport.requests[0].content.decode())
        assert form["apikey"] == ["helloworld"]
        assert form["OCREngine"] == ["2"]
        assert form["isOverlayRequired"] == ["true"]
        assert form["base64Image"][0].startswith("data:image/png;base64,")
        assert result.text == "Buy milk\r\n"
