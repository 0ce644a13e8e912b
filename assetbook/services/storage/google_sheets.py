"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as an alternative backend because:
1. Non-technical users can see (and back up) their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- A cell holds at most 50,000 characters, so chunks must be small
- No transactions (the chunk protocol handles this with careful ordering)
- Limited query capabilities (we filter in Python)

Layout: one worksheet per collection path, header row first.
The document with key `k` lives in row `k + 2` as `[k, content]`.
Deleting documents clears their rows in a single batch request.
"""

from typing import Optional, Sequence

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from assetbook.config import GoogleSheetsSettings, get_settings
from assetbook.services.storage.interface import (
    BackendError,
    ConnectionError,
    KeyRange,
    OrderedDocumentCollection,
)


CHUNK_COLUMNS = ["index", "content"]

MAX_CELL_CHARS = 50_000

# Rows added at a time when a worksheet runs out of space
ROW_GROWTH = 100


def worksheet_title(collection_path: str) -> str:
    """Worksheet title for a collection path (`users/abc/chunks` -> `users__abc__chunks`)."""
    return "__".join(part for part in collection_path.split("/") if part)[:100]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_collection_sheet(self, collection_path: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        spreadsheet = self.get_spreadsheet()
        title = worksheet_title(collection_path)
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=ROW_GROWTH,
                cols=len(CHUNK_COLUMNS),
            )
            sheet.append_row(CHUNK_COLUMNS)
        return sheet


class GoogleSheetsDocumentCollection(OrderedDocumentCollection):
    """
    Google Sheets implementation of the ordered document collection.

    Only the key and the `content` field of a document are stored.
    """

    max_document_chars = MAX_CELL_CHARS

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_number(key: int) -> int:
        return key + 2  # row 1 is the header

    async def put(self, collection_path: str, key: int, document: dict) -> None:
        try:
            sheet = self._client.get_collection_sheet(collection_path)
            row = self._row_number(key)
            if row > sheet.row_count:
                sheet.add_rows(row - sheet.row_count + ROW_GROWTH)
            sheet.update(
                range_name=f"A{row}:B{row}",
                values=[[key, document.get("content", "")]],
                value_input_option="RAW",
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to write document {key}: {e}") from e

    async def query_all(
        self,
        collection_path: str,
        ascending: bool = True,
        key_range: Optional[KeyRange] = None,
    ) -> list[dict]:
        try:
            sheet = self._client.get_collection_sheet(collection_path)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except ConnectionError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to query {collection_path}: {e}") from e

        documents = []
        for row in all_rows:
            if not row or not row[0]:  # Skip cleared rows
                continue
            try:
                key = int(row[0])
            except ValueError:
                continue  # Skip rows edited by hand
            if key_range is not None and key not in key_range:
                continue
            content = row[1] if len(row) > 1 else ""
            documents.append({self.key_field: key, "content": content})

        documents.sort(key=lambda d: d[self.key_field], reverse=not ascending)
        return documents

    async def delete_many(self, collection_path: str, keys: Sequence[int]) -> None:
        if not keys:
            return
        try:
            sheet = self._client.get_collection_sheet(collection_path)
            ranges = [
                f"A{self._row_number(k)}:B{self._row_number(k)}" for k in keys
            ]
            sheet.batch_clear(ranges)
        except ConnectionError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to delete documents {list(keys)}: {e}") from e
