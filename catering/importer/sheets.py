"""
Google Sheets client: pulls every tab of a spreadsheet as rows of strings.
"""
import logging
from typing import List, Optional
from urllib.parse import quote

import httpx

from ..errors import (
    MissingApiKeyError,
    SheetsAccessDeniedError,
    SheetsError,
    SheetsNetworkError,
    SheetsRequestError,
    SpreadsheetNotFoundError,
)
from ..models import SheetData

logger = logging.getLogger(__name__)

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
REQUEST_TIMEOUT = 30.0

SERVICE_DISABLED_MARKERS = ("SERVICE_DISABLED", "has not been used", "is disabled")


def _error_text(response: httpx.Response) -> str:
    """Google's error message if the body has one, else the raw body"""
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text


def classify_error(response: httpx.Response) -> SheetsError:
    """Turn a failed metadata response into an actionable error"""
    status = response.status_code
    body = response.text
    message = _error_text(response)

    if status == 404:
        return SpreadsheetNotFoundError(
            "Spreadsheet not found. Check that:\n"
            "  - the spreadsheet URL or ID is correct\n"
            "  - the spreadsheet has not been deleted\n"
            "  - sharing is set to 'Anyone with the link can view'"
        )
    if status == 403:
        if any(marker in body for marker in SERVICE_DISABLED_MARKERS):
            return SheetsAccessDeniedError(
                "The Google Sheets API is not enabled for this API key's project. "
                "Enable it in Google Cloud Console → APIs & Services → Library → Google Sheets API, "
                "wait a few minutes and try again.",
                service_disabled=True,
            )
        return SheetsAccessDeniedError(
            "Access denied to the spreadsheet. Share it as 'Anyone with the link can view' "
            f"and check the API key restrictions. ({message})"
        )
    if status == 400:
        if "API key not valid" in body or "API_KEY_INVALID" in body:
            return SheetsRequestError(
                "The Google API key is invalid. Create a new key in Google Cloud Console → "
                "APIs & Services → Credentials and update GOOGLE_API_KEY."
            )
        return SheetsRequestError(f"Invalid request to Google Sheets: {message}")
    return SheetsError(f"Failed to fetch spreadsheet metadata: {status} {response.reason_phrase}. {message}")


class SpreadsheetFetcher:
    """Fetches all tabs of a spreadsheet, one request per tab"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: str = SHEETS_API_URL,
    ):
        self.api_key = api_key
        self.transport = transport
        self.base_url = base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=REQUEST_TIMEOUT, transport=self.transport)

    async def fetch_sheet_names(self, client: httpx.AsyncClient, spreadsheet_id: str, api_key: str) -> List[str]:
        response = await client.get(
            f"/{spreadsheet_id}",
            params={"key": api_key, "fields": "sheets.properties.title"},
        )
        if not response.is_success:
            logger.error("Metadata fetch error for %s: %s %s", spreadsheet_id, response.status_code, response.text)
            raise classify_error(response)

        sheets = response.json().get("sheets") or []
        return [s["properties"]["title"] for s in sheets if s.get("properties", {}).get("title") is not None]

    async def fetch_sheet(
        self, client: httpx.AsyncClient, spreadsheet_id: str, sheet_name: str, api_key: str
    ) -> Optional[SheetData]:
        """One tab's values, or None if that tab could not be read"""
        try:
            response = await client.get(
                f"/{spreadsheet_id}/values/{quote(sheet_name, safe='')}",
                params={"key": api_key, "valueRenderOption": "FORMATTED_VALUE"},
            )
            if not response.is_success:
                logger.warning(
                    "Failed to fetch sheet %r: %s %s", sheet_name, response.status_code, _error_text(response)
                )
                return None
            values = response.json().get("values") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Error fetching sheet %r: %s", sheet_name, e)
            return None

        rows = [["" if cell is None else str(cell) for cell in row] for row in values]
        logger.info("Sheet %r: %d rows fetched", sheet_name, len(rows))
        return SheetData(sheet_name=sheet_name, rows=rows)

    async def fetch_all_sheets(self, spreadsheet_id: str, api_key: Optional[str] = None) -> List[SheetData]:
        """
        Fetch every tab of a spreadsheet.

        Tabs are fetched one after another; a tab that fails is logged and
        left out rather than failing the whole fetch.

        Raises:
            MissingApiKeyError, SheetsNetworkError, SpreadsheetNotFoundError,
            SheetsAccessDeniedError, SheetsRequestError
        """
        api_key = api_key or self.api_key
        if not api_key:
            raise MissingApiKeyError()

        try:
            async with self._client() as client:
                names = await self.fetch_sheet_names(client, spreadsheet_id, api_key)
                logger.info("Found %d sheet(s) in spreadsheet", len(names))

                sheets = []
                for name in names:
                    sheet = await self.fetch_sheet(client, spreadsheet_id, name, api_key)
                    if sheet is not None:
                        sheets.append(sheet)
                return sheets
        except httpx.HTTPError as e:
            raise SheetsNetworkError(
                f"Network error while contacting Google Sheets ({e}). Check your internet connection and try again."
            ) from e
