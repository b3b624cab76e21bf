"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is a storage backend because:
1. Users can view their bills directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions; concurrent edits are last-write-wins
- Limited query capabilities (we filter in Python)

Bills from every user share one worksheet; each row carries its user_id
and every read filters on it.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import Retrying, retry, stop_after_attempt, wait_exponential

from billtracker.config import GoogleSheetsSettings, get_settings
from billtracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from billtracker.models.bill import (
    Bill,
    BillFrequency,
    BillInput,
    BillUpdate,
    UserProfile,
    utcnow,
)
from billtracker.services.storage.interface import (
    AuditStorageInterface,
    BillStore,
    NotFoundError,
    ProfileStore,
    StorageConnectionError,
    StorageError,
    merge_profile,
)
from billtracker.services.storage.memory import filter_bills


# Column mappings for Bills sheet
BILL_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "updated_at",
    "name",
    "amount",
    "due_date",
    "category",
    "is_paid",
    "frequency",
]

# Column mappings for Profiles sheet
PROFILE_COLUMNS = [
    "user_id",
    "income",
    "savings_goal",
    "currency",
    "notifications_json",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
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
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_bills_sheet(self) -> gspread.Worksheet:
        """Get or create the Bills worksheet."""
        return self._get_or_create(self._settings.bills_sheet_name, BILL_COLUMNS, 1000)

    def get_profiles_sheet(self) -> gspread.Worksheet:
        """Get or create the Profiles worksheet."""
        return self._get_or_create(self._settings.profiles_sheet_name, PROFILE_COLUMNS, 100)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsBillStore(BillStore):
    """
    Google Sheets implementation of bill storage.

    Bills are stored as rows in a worksheet with one bill per row.
    """

    write_wait = wait_exponential(multiplier=1, min=2, max=10)

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        categories: Optional[list[str]] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self.categories = categories

    def _bill_to_row(self, bill: Bill) -> list:
        """Convert a Bill to a spreadsheet row."""
        return [
            bill.id,
            bill.user_id,
            bill.created_at.isoformat(),
            bill.updated_at.isoformat(),
            bill.name,
            str(bill.amount),
            bill.due_date.isoformat(),
            bill.category,
            str(bill.is_paid),
            bill.frequency.value,
        ]

    def _row_to_bill(self, row: list) -> Bill:
        """Convert a spreadsheet row to a Bill."""
        return Bill(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1),
            created_at=datetime.fromisoformat(_safe_get(row, 2)),
            updated_at=datetime.fromisoformat(_safe_get(row, 3)),
            name=_safe_get(row, 4),
            amount=Decimal(_safe_get(row, 5)),
            due_date=date.fromisoformat(_safe_get(row, 6)),
            category=_safe_get(row, 7),
            is_paid=_safe_get(row, 8).lower() == "true",
            frequency=_safe_get(row, 9) or BillFrequency.MONTHLY,
        )

    def _find_row(self, all_rows: list[list], user_id: str, bill_id: str) -> Optional[int]:
        """1-based sheet row number of a bill, skipping the header."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == bill_id and _safe_get(row, 1) == user_id:
                return idx
        return None

    def _has_bill_id(self, all_rows: list[list], bill_id: str) -> bool:
        return any(row and row[0] == bill_id for row in all_rows[1:])

    def _append_bill_row(self, row: list) -> None:
        """
        Append a bill row, retrying failed writes.

        A write can land and still raise (a read timeout, say), so
        a retry looks for the row's id before appending again.
        """
        for attempt in Retrying(
            stop=stop_after_attempt(3),
            wait=self.write_wait,
            reraise=True,
        ):
            with attempt:
                sheet = self._client.get_bills_sheet()
                if attempt.retry_state.attempt_number > 1:
                    if self._has_bill_id(sheet.get_all_values(), row[0]):
                        return
                sheet.append_row(row, value_input_option="RAW")

    async def create(self, user_id: str, bill: BillInput) -> Bill:
        """Append a new bill row."""
        stored = Bill(id=uuid4().hex, user_id=user_id, **self.bill_fields(bill))
        try:
            self._append_bill_row(self._bill_to_row(stored))
        except Exception as e:
            raise StorageError(f"Failed to save bill: {e}")
        return stored

    async def get(self, user_id: str, bill_id: str) -> Optional[Bill]:
        try:
            all_rows = self._client.get_bills_sheet().get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to get bill: {e}")

        idx = self._find_row(all_rows, user_id, bill_id)
        if idx is None:
            return None
        return self._row_to_bill(all_rows[idx - 1])

    async def list_bills(
        self,
        user_id: str,
        category: Optional[str] = None,
        is_paid: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> list[Bill]:
        try:
            all_rows = self._client.get_bills_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list bills: {e}")

        bills = []
        for row in all_rows:
            if not row or not row[0] or _safe_get(row, 1) != user_id:
                continue
            try:
                bills.append(self._row_to_bill(row))
            except Exception:
                continue  # Skip malformed rows

        return filter_bills(bills, category=category, is_paid=is_paid, search=search)

    async def update(self, user_id: str, bill_id: str, updates: BillUpdate) -> Bill:
        try:
            sheet = self._client.get_bills_sheet()
            all_rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to update bill: {e}")

        idx = self._find_row(all_rows, user_id, bill_id)
        if idx is None:
            raise NotFoundError(f"Bill not found: {bill_id}")

        data = self._row_to_bill(all_rows[idx - 1]).model_dump()
        data.update(self.update_fields(updates))
        data["updated_at"] = utcnow()
        bill = Bill.model_validate(data)

        try:
            sheet.update(
                range_name=f"A{idx}",
                values=[self._bill_to_row(bill)],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to update bill: {e}")
        return bill

    async def delete(self, user_id: str, bill_id: str) -> bool:
        try:
            sheet = self._client.get_bills_sheet()
            idx = self._find_row(sheet.get_all_values(), user_id, bill_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete bill: {e}")


class GoogleSheetsProfileStore(ProfileStore):
    """One profile row per user; notification preferences are JSON."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _profile_to_row(self, user_id: str, profile: UserProfile) -> list:
        return [
            user_id,
            str(profile.income),
            str(profile.savings_goal),
            profile.currency,
            json.dumps(profile.notifications.model_dump()),
        ]

    def _row_to_profile(self, row: list) -> UserProfile:
        notifications = _safe_get(row, 4)
        return UserProfile(
            income=Decimal(_safe_get(row, 1, "25000")),
            savings_goal=Decimal(_safe_get(row, 2, "2500")),
            currency=_safe_get(row, 3, "ZAR"),
            notifications=json.loads(notifications) if notifications else {},
        )

    async def get_profile(self, user_id: str) -> UserProfile:
        try:
            rows = self._client.get_profiles_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")

        for row in rows:
            if row and row[0] == user_id:
                return self._row_to_profile(row)
        return UserProfile()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def update_profile(self, user_id: str, updates: dict) -> UserProfile:
        profile = merge_profile(await self.get_profile(user_id), updates)
        row = self._profile_to_row(user_id, profile)
        try:
            sheet = self._client.get_profiles_sheet()
            all_rows = sheet.get_all_values()
            for idx, existing in enumerate(all_rows[1:], start=2):
                if existing and existing[0] == user_id:
                    sheet.update(range_name=f"A{idx}", values=[row], value_input_option="RAW")
                    return profile
            sheet.append_row(row, value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save profile: {e}")
        return profile


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
            is_user_action=_safe_get(row, 10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and len(row) > 6 and row[6] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events
