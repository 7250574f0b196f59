"""Tests for the HTTP integration adapter (providers stubbed with httpx.MockTransport)."""

import base64
import json
from email import message_from_bytes
from types import SimpleNamespace

import httpx
import pytest

from app.config import Settings
from core.exceptions import IntegrationError
from integrations.adapter import HttpIntegrationAdapter, validate_url_safety


def make_adapter(handler, **overrides) -> HttpIntegrationAdapter:
    settings = Settings(**overrides)
    return HttpIntegrationAdapter(settings=settings, transport=httpx.MockTransport(handler))


CREDENTIAL = SimpleNamespace(access_token="token-abc")


@pytest.mark.unit
class TestUrlSafety:

    @pytest.mark.parametrize(
        "url",
        [
            "https://hooks.example.com/path",
            "http://93.184.216.34:8080/hook",
            "https://api.example.com:443/",
        ],
    )
    def test_allows_public_urls(self, url):
        validate_url_safety(url)

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://example.com/file",
            "file:///etc/passwd",
            "http://localhost:8000/admin",
            "http://api.localhost/",
            "http://127.0.0.1/",
            "http://10.0.0.5/internal",
            "http://192.168.1.1/",
            "http://169.254.169.254/latest/meta-data",
            "http://[::1]/",
            "http://example.com:6379/",
            "http://example.com:5432/",
            "https:///no-host",
        ],
    )
    def test_blocks_unsafe_urls(self, url):
        with pytest.raises(ValueError):
            validate_url_safety(url)


@pytest.mark.unit
class TestHttpRequest:

    async def test_sends_json_body_and_parses_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["content_type"] = request.headers["content-type"]
            seen["token"] = request.headers.get("x-token")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"received": True})

        adapter = make_adapter(handler)
        result = await adapter.http_request(
            "https://hooks.example.com/in", "put", {"X-Token": "t"}, {"id": 1}
        )

        assert result == {"received": True}
        assert seen == {
            "method": "PUT",
            "content_type": "application/json",
            "token": "t",
            "body": {"id": 1},
        }

    async def test_text_response_fallback(self):
        adapter = make_adapter(lambda request: httpx.Response(200, text="OK"))
        assert await adapter.http_request("https://hooks.example.com/in", body="raw") == "OK"

    async def test_error_status_raises(self):
        adapter = make_adapter(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(IntegrationError, match="HTTP 503 from https://hooks.example.com/in"):
            await adapter.http_request("https://hooks.example.com/in", body={})

    async def test_unsafe_url_is_never_requested(self):
        def handler(request):
            raise AssertionError("request should not be sent")

        adapter = make_adapter(handler)
        with pytest.raises(IntegrationError, match="localhost"):
            await adapter.http_request("http://localhost/hook")

    async def test_transport_error_raises_integration_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = make_adapter(handler)
        with pytest.raises(IntegrationError, match="failed"):
            await adapter.http_request("https://hooks.example.com/in")


@pytest.mark.unit
class TestProviders:

    async def test_send_email_builds_raw_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["raw"] = json.loads(request.content)["raw"]
            return httpx.Response(200, json={"id": "msg-9"})

        adapter = make_adapter(handler, GMAIL_API_BASE="https://gmail.test/gmail/v1")
        result = await adapter.send_email(CREDENTIAL, "ada@example.com", "Welcome", "Hello Ada")

        assert result == {"id": "msg-9"}
        assert seen["url"] == "https://gmail.test/gmail/v1/users/me/messages/send"
        assert seen["auth"] == "Bearer token-abc"
        assert "=" not in seen["raw"]

        raw = seen["raw"] + "=" * (-len(seen["raw"]) % 4)
        message = message_from_bytes(base64.urlsafe_b64decode(raw))
        assert message["To"] == "ada@example.com"
        assert message["Subject"] == "Welcome"
        assert message.get_payload(decode=True).decode() == "Hello Ada"

    async def test_send_email_without_token(self):
        adapter = make_adapter(lambda request: httpx.Response(200, json={}))
        with pytest.raises(IntegrationError, match="access token is missing"):
            await adapter.send_email(SimpleNamespace(access_token=None), "a@example.com", "s", "b")

    async def test_slack_post(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/chat.postMessage")
            assert json.loads(request.content) == {"channel": "#ops", "text": "hi"}
            return httpx.Response(200, json={"ok": True, "ts": "1"})

        adapter = make_adapter(handler)
        assert (await adapter.post_chat_message(CREDENTIAL, "#ops", "hi"))["ok"] is True

    async def test_slack_ok_false_raises(self):
        adapter = make_adapter(lambda request: httpx.Response(200, json={"ok": False, "error": "channel_not_found"}))
        with pytest.raises(IntegrationError, match="channel_not_found"):
            await adapter.post_chat_message(CREDENTIAL, "#nope", "hi")

    async def test_sentiment_picks_highest_score(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"inputs": "great"}
            assert request.headers["authorization"] == "Bearer hf-key"
            return httpx.Response(200, json=[[
                {"label": "negative", "score": 0.02},
                {"label": "positive", "score": 0.95},
                {"label": "neutral", "score": 0.03},
            ]])

        adapter = make_adapter(handler, HUGGINGFACE_API_KEY="hf-key")
        assert await adapter.classify_sentiment("great") == {"label": "positive", "score": 0.95}

    async def test_sentiment_empty_response(self):
        adapter = make_adapter(lambda request: httpx.Response(200, json=[]))
        assert await adapter.classify_sentiment("meh") == {"label": "neutral", "score": 0}

    async def test_sentiment_error(self):
        adapter = make_adapter(lambda request: httpx.Response(503, json={"error": "loading"}))
        with pytest.raises(IntegrationError, match="Hugging Face API error"):
            await adapter.classify_sentiment("x")

    async def test_append_row_uses_sheets_client(self):
        created = []

        class FakeSheetsClient:
            def __init__(self, access_token):
                created.append(access_token)

            async def append_row(self, spreadsheet_id, range_str, values):
                return {"spreadsheetId": spreadsheet_id, "range": range_str, "values": values}

        adapter = HttpIntegrationAdapter(settings=Settings(), sheets_client_factory=FakeSheetsClient)
        result = await adapter.append_row(CREDENTIAL, "sheet-1", "A:B", ["a", "b"])

        assert created == ["token-abc"]
        assert result == {"spreadsheetId": "sheet-1", "range": "A:B", "values": ["a", "b"]}
