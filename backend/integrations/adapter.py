"""Integration adapter: outbound calls made by workflow steps.

``IntegrationAdapter`` is the contract the step processors depend on;
``HttpIntegrationAdapter`` implements it with httpx (Gmail, Slack,
Hugging Face, arbitrary webhooks) and the Google API client (Sheets).
Every provider failure surfaces as an ``IntegrationError``.
"""

import base64
import ipaddress
import json
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
import structlog

from app.config import Settings, get_settings
from core.constants import IntegrationType
from core.exceptions import IntegrationError
from integrations.google_sheets import GoogleSheetsClient

logger = structlog.get_logger(__name__)

FORBIDDEN_PORTS = (9000, 5432, 6379)


# ─── SSRF Protection ─────────────────────────────────────────────

def _is_private_ip(ip_str: str) -> bool:
    """Check if an IP literal is private, loopback, link-local or reserved."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved


def validate_url_safety(url: str) -> None:
    """Validate a user-supplied URL before requesting it.

    Blocks:
    - Non-HTTP(S) schemes
    - localhost and private/loopback IP literals
    - Internal ports (postgres, redis, deployer)

    Raises:
        ValueError: If URL is unsafe
    """
    parsed = urlparse(url or "")

    if parsed.scheme.lower() not in ("http", "https"):
        raise ValueError(f"Unsupported scheme: {parsed.scheme!r}. Only HTTP and HTTPS allowed.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname")

    if hostname.lower() in ("localhost", "localhost.localdomain") or hostname.lower().endswith(".localhost"):
        raise ValueError("Connections to localhost are not allowed")

    # Domain names are not resolved here; only IP literals are checked
    if _is_private_ip(hostname):
        raise ValueError(f"Connections to private IP {hostname} are not allowed")

    try:
        port = parsed.port
    except ValueError as e:
        raise ValueError(f"Invalid port in URL: {e}") from e
    if port in FORBIDDEN_PORTS:
        raise ValueError(f"Connections to internal port {port} are not allowed")


# ─── Contract ────────────────────────────────────────────────────

class IntegrationAdapter(ABC):
    """Outbound capabilities used by step processors.

    ``credential`` arguments are Integration rows (anything with an
    ``access_token`` attribute).
    """

    @abstractmethod
    async def send_email(self, credential: Any, to: str, subject: str, body: str) -> dict:
        ...

    @abstractmethod
    async def post_chat_message(self, credential: Any, channel: str, text: str) -> dict:
        ...

    @abstractmethod
    async def append_row(self, credential: Any, resource_id: str, range_: str, values: list) -> dict:
        ...

    @abstractmethod
    async def http_request(
        self,
        url: str,
        method: str = "POST",
        headers: Optional[dict] = None,
        body: Any = None,
    ) -> Any:
        ...

    @abstractmethod
    async def classify_sentiment(self, text: str) -> dict:
        """Return ``{"label": str, "score": float}`` for the top class."""
        ...


# ─── HTTP Implementation ─────────────────────────────────────────

class HttpIntegrationAdapter(IntegrationAdapter):
    """Production adapter backed by httpx and google-api-python-client.

    Args:
        settings: Application settings (API bases, timeouts, keys).
        transport: Optional httpx transport, used by tests to stub providers.
        sheets_client_factory: Builds a Sheets client from an access token.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sheets_client_factory=GoogleSheetsClient,
    ):
        self._settings = settings or get_settings()
        self._transport = transport
        self._sheets_client_factory = sheets_client_factory

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.INTEGRATION_HTTP_TIMEOUT,
            transport=self._transport,
        )

    @staticmethod
    def _bearer(credential: Any, provider: str) -> dict:
        token = getattr(credential, "access_token", None)
        if not token:
            raise IntegrationError(f"{provider} access token is missing", provider)
        return {"Authorization": f"Bearer {token}"}

    # ── Email (Gmail) ──

    async def send_email(self, credential: Any, to: str, subject: str, body: str) -> dict:
        provider = IntegrationType.GMAIL.value
        message = MIMEText(body or "", "plain", "utf-8")
        message["To"] = to
        message["Subject"] = subject or ""
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")

        url = f"{self._settings.GMAIL_API_BASE}/users/me/messages/send"
        try:
            async with self._client() as client:
                response = await client.post(
                    url, json={"raw": raw}, headers=self._bearer(credential, provider)
                )
        except httpx.HTTPError as e:
            raise IntegrationError(f"Gmail request failed: {e}", provider) from e

        if response.is_error:
            raise IntegrationError(
                f"Gmail API error ({response.status_code}): {response.text}", provider
            )
        logger.info("Email sent", to=to)
        return response.json()

    # ── Chat (Slack) ──

    async def post_chat_message(self, credential: Any, channel: str, text: str) -> dict:
        provider = IntegrationType.SLACK.value
        url = f"{self._settings.SLACK_API_BASE}/chat.postMessage"
        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    json={"channel": channel, "text": text},
                    headers=self._bearer(credential, provider),
                )
        except httpx.HTTPError as e:
            raise IntegrationError(f"Slack request failed: {e}", provider) from e

        if response.is_error:
            raise IntegrationError(
                f"Slack API error ({response.status_code}): {response.text}", provider
            )
        data = response.json()
        # Slack reports failures with HTTP 200 and ok=false
        if not data.get("ok"):
            raise IntegrationError(f"Slack API error: {data.get('error', 'unknown_error')}", provider)
        logger.info("Chat message posted", channel=channel)
        return data

    # ── Spreadsheet (Google Sheets) ──

    async def append_row(self, credential: Any, resource_id: str, range_: str, values: list) -> dict:
        client = self._sheets_client_factory(getattr(credential, "access_token", None))
        return await client.append_row(resource_id, range_, values)

    # ── Generic HTTP ──

    async def http_request(
        self,
        url: str,
        method: str = "POST",
        headers: Optional[dict] = None,
        body: Any = None,
    ) -> Any:
        """Issue an HTTP call and return the parsed response body.

        The body is sent JSON-encoded. JSON responses are decoded; anything
        else is returned as text. Non-2xx responses raise.
        """
        try:
            validate_url_safety(url)
        except ValueError as e:
            raise IntegrationError(str(e), "HTTP") from e

        method = (method or "POST").upper()
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        content = json.dumps(body, default=str) if body is not None else None

        try:
            async with self._client() as client:
                response = await client.request(
                    method, url, headers=request_headers, content=content
                )
        except httpx.HTTPError as e:
            raise IntegrationError(f"HTTP request to {url} failed: {e}", "HTTP") from e

        logger.info(
            "HTTP request completed",
            method=method,
            url=url,
            status_code=response.status_code,
        )
        if response.is_error:
            raise IntegrationError(
                f"HTTP {response.status_code} from {url}: {response.text[:500]}", "HTTP"
            )

        try:
            return response.json()
        except ValueError:
            return response.text

    # ── Sentiment (Hugging Face) ──

    async def classify_sentiment(self, text: str) -> dict:
        headers = {}
        if self._settings.HUGGINGFACE_API_KEY:
            headers["Authorization"] = f"Bearer {self._settings.HUGGINGFACE_API_KEY}"

        try:
            async with self._client() as client:
                response = await client.post(
                    self._settings.SENTIMENT_MODEL_URL,
                    json={"inputs": text},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            raise IntegrationError(f"Sentiment request failed: {e}", "HUGGINGFACE") from e

        if response.is_error:
            raise IntegrationError(
                f"Hugging Face API error ({response.status_code}): {response.text}",
                "HUGGINGFACE",
            )

        scores = response.json()
        # The inference API wraps per-input results in an outer list
        if isinstance(scores, list) and scores and isinstance(scores[0], list):
            scores = scores[0]
        if not isinstance(scores, list) or not scores:
            return {"label": "neutral", "score": 0}

        best = max(scores, key=lambda s: s.get("score", 0))
        return {"label": best.get("label", "neutral"), "score": best.get("score", 0)}


# ─── Singleton ─────────────────────────────────────────────────

_adapter: Optional[IntegrationAdapter] = None


def get_integration_adapter() -> IntegrationAdapter:
    """Get or create the singleton integration adapter."""
    global _adapter
    if _adapter is None:
        _adapter = HttpIntegrationAdapter()
    return _adapter
