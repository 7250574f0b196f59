"""
Google Sheets Integration: append rows on behalf of a connected user.

Authenticates with the user's OAuth access token (stored on the
Integration row) and talks to the Sheets v4 API through
google-api-python-client. The discovery client is synchronous, so calls
run in a worker thread.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import structlog
from google.oauth2.credentials import Credentials as OAuth2Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.constants import IntegrationType
from core.exceptions import IntegrationError

logger = structlog.get_logger(__name__)


# ─── Constants ──────────────────────────────────────────────────────

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0


# ─── Exceptions ──────────────────────────────────────────────────────

class GoogleSheetsError(IntegrationError):
    """Base exception for Google Sheets integration."""

    def __init__(self, message: str):
        super().__init__(message, IntegrationType.GOOGLE_SHEETS.value)


class SpreadsheetNotFoundError(GoogleSheetsError):
    """Raised when spreadsheet cannot be accessed."""
    pass


class PermissionDeniedError(GoogleSheetsError):
    """Raised when the token lacks permission on the spreadsheet."""
    pass


# ─── Helper Functions ───────────────────────────────────────────────

def _validate_spreadsheet_id(spreadsheet_id: str) -> None:
    if not spreadsheet_id or not isinstance(spreadsheet_id, str):
        raise GoogleSheetsError("spreadsheetId must be a non-empty string")


async def _retry_with_backoff(
    func: Callable,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_RETRY_DELAY,
) -> Any:
    """Execute a blocking callable in a thread, retrying 429 and 5xx responses.

    Raises:
        PermissionDeniedError: 401/403 from the API
        SpreadsheetNotFoundError: 404 from the API
        GoogleSheetsError: any other API error, or retries exhausted
    """
    last_error = None

    for attempt in range(max_retries):
        try:
            return await asyncio.to_thread(func)
        except HttpError as e:
            error_code = e.resp.status
            last_error = e

            if error_code == 429 or error_code >= 500:
                delay = initial_delay * (2 ** attempt)
                logger.warning(
                    "Google Sheets API retryable error",
                    status=error_code,
                    attempt=attempt,
                    delay=delay,
                )
                await asyncio.sleep(delay)
                continue

            if error_code in (401, 403):
                raise PermissionDeniedError(f"Permission denied: {e}") from e
            if error_code == 404:
                raise SpreadsheetNotFoundError(f"Spreadsheet not found: {e}") from e
            raise GoogleSheetsError(f"Google Sheets API error: {e}") from e

    raise GoogleSheetsError(f"Failed after {max_retries} retries: {last_error}")


# ─── Google Sheets Client ───────────────────────────────────────────

class GoogleSheetsClient:
    """Sheets v4 client bound to one user's OAuth access token."""

    def __init__(
        self,
        access_token: str,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ):
        if not access_token:
            raise GoogleSheetsError("Google Sheets access token is missing")
        self._credentials = OAuth2Credentials(token=access_token, scopes=SHEETS_SCOPES)
        self._service: Optional[Any] = None
        self._retry_delay = retry_delay

    def _get_service(self) -> Any:
        """Get or create Google Sheets API service."""
        if self._service is None:
            self._service = build(
                "sheets", "v4", credentials=self._credentials, cache_discovery=False
            )
        return self._service

    async def append_row(
        self,
        spreadsheet_id: str,
        range_str: str,
        values: List[Any],
    ) -> Dict[str, Any]:
        """Append one row after the last row of ``range_str``.

        Args:
            spreadsheet_id: ID of the spreadsheet
            range_str: A1 range, e.g. "Sheet1!A:C"
            values: Cell values for the new row

        Returns:
            The API's append response
        """
        _validate_spreadsheet_id(spreadsheet_id)
        range_str = range_str or "A1"

        def _append():
            service = self._get_service()
            request = service.spreadsheets().values().append(
                spreadsheetId=spreadsheet_id,
                range=range_str,
                valueInputOption="RAW",
                body={"values": [list(values)]},
            )
            return request.execute()

        result = await _retry_with_backoff(_append, initial_delay=self._retry_delay)
        logger.info(
            "Row appended",
            spreadsheet_id=spreadsheet_id[:10],
            range=range_str,
            cells=len(values),
        )
        return result
