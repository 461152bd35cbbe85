"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a durable backend because:
1. The user can view (and share) the charging history directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (one row per charge is tiny)
- No transactions (each operation touches a single row)
- Limited query capabilities (we sort and filter in Python)

The implementation follows the abstract interface, so we can swap
to SQLite later without changing ledger logic.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from gspread.utils import rowcol_to_a1
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from zapntap.config import GoogleSheetsSettings, get_settings
from zapntap.models.session import ChargingSession
from zapntap.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    SessionStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

# Column mappings for Sessions sheet
SESSION_COLUMNS = [
    "id",
    "timestamp",
    "previous_reading",
    "new_reading",
    "kwh_used",
    "cost",
    "is_paid",
    "photo_ref",
    "notes",
]


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
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_sessions_sheet(self) -> gspread.Worksheet:
        """Get or create the Sessions worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.sessions_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.sessions_sheet_name,
                rows=1000,
                cols=len(SESSION_COLUMNS),
            )
            sheet.append_row(SESSION_COLUMNS)
        return sheet


def session_to_row(session: ChargingSession) -> list:
    """Convert a ChargingSession to a spreadsheet row."""
    return [
        str(session.id) if session.id else "",
        session.timestamp.isoformat() if session.timestamp else "",
        repr(session.previous_reading),
        repr(session.new_reading),
        repr(session.kwh_used),
        repr(session.cost),
        str(session.is_paid),
        session.photo_ref or "",
        session.notes or "",
    ]


def row_to_session(row: list) -> ChargingSession:
    """Convert a spreadsheet row to a ChargingSession."""
    # Handle missing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    return ChargingSession(
        id=UUID(safe_get(0)) if safe_get(0) else None,
        timestamp=datetime.fromisoformat(safe_get(1)) if safe_get(1) else None,
        previous_reading=float(safe_get(2, "0")),
        new_reading=float(safe_get(3, "0")),
        kwh_used=float(safe_get(4, "0")),
        cost=float(safe_get(5, "0")),
        is_paid=safe_get(6).lower() == "true",
        photo_ref=safe_get(7) or None,
        notes=safe_get(8) or None,
    )


class GoogleSheetsSessionStorage(SessionStorageInterface):
    """
    Google Sheets implementation of session storage.

    Sessions are stored as rows in a worksheet with one session per row.
    Floats are written with repr() so they read back bit-for-bit.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, all_rows: list[list], session_id: UUID) -> Optional[int]:
        """1-based sheet row index of a session, or None."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == str(session_id):
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append(self, row: list) -> None:
        self._client.get_sessions_sheet().append_row(row, value_input_option="RAW")

    async def save_session(self, session: ChargingSession) -> bool:
        """Save a new session to Google Sheets."""
        try:
            sheet = self._client.get_sessions_sheet()
            if self._find_row(sheet.get_all_values(), session.id) is not None:
                raise DuplicateError(f"Session already exists: {session.id}")
            self._append(session_to_row(session))
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save session: {e}") from e

    async def list_sessions(self) -> list[ChargingSession]:
        """List all sessions, newest first."""
        try:
            sheet = self._client.get_sessions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list sessions: {e}") from e

        sessions = []
        for row in all_rows:
            if not row or not any(row):  # Skip empty rows
                continue
            try:
                sessions.append(row_to_session(row))
            except Exception as e:
                logger.warning("malformed_session_row", row=row, error=str(e))
                continue

        # Later rows were appended later, so they win timestamp ties
        sessions.reverse()
        sessions.sort(
            key=lambda s: s.timestamp.timestamp() if s.timestamp else float("-inf"),
            reverse=True,
        )
        return sessions

    async def update_session(self, session: ChargingSession) -> bool:
        """Update an existing session."""
        try:
            sheet = self._client.get_sessions_sheet()
            idx = self._find_row(sheet.get_all_values(), session.id)
            if idx is None:
                raise NotFoundError(f"Session not found: {session.id}")

            new_row = session_to_row(session)
            cell_range = (
                f"{rowcol_to_a1(idx, 1)}:"
                f"{rowcol_to_a1(idx, len(new_row))}"
            )
            cells = sheet.range(cell_range)
            for cell, value in zip(cells, new_row):
                cell.value = value
            # RAW keeps Sheets from reinterpreting timestamps and booleans
            sheet.update_cells(cells, value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update session: {e}") from e

    async def delete_session(self, session_id: UUID) -> bool:
        """Delete a session by ID."""
        try:
            sheet = self._client.get_sessions_sheet()
            idx = self._find_row(sheet.get_all_values(), session_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete session: {e}") from e
