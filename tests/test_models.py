"""
Tests for Bill Tracker

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with mocked external services)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError as SchemaError

from billtracker.audit import AuditLogger
from billtracker.config import (
    AppSettings,
    ImportSettings,
    LLMSettings,
    get_settings,
    validate_all_settings,
)
from billtracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from billtracker.models.bill import (
    Bill,
    BillFrequency,
    BillInput,
    BillUpdate,
    UserProfile,
    default_categories,
    resolve_category,
    resolve_frequency,
)
from billtracker.models.imports import (
    ExtractionResult,
    ImportReport,
    ParsedBillCandidate,
    ReconcileState,
    ValidationIssue,
)
from billtracker.services.storage import AuditStorageInterface


class TestBillModels:
    """Tests for bill-related Pydantic models."""

    def test_bill_input_creation(self):
        """Test BillInput model creation."""
        bill = BillInput(
            name="  Netflix  ",
            amount=Decimal("199.00"),
            due_date=date(2024, 12, 5),
            category="Subscriptions",
        )
        assert bill.name == "Netflix"
        assert bill.is_paid is False
        assert bill.frequency == BillFrequency.MONTHLY

    def test_bill_input_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (Decimal("0"), Decimal("-100")):
            with pytest.raises(ValueError):
                BillInput(
                    name="Test",
                    amount=amount,
                    due_date=date(2024, 12, 5),
                    category="Other",
                )

    def test_bill_input_rejects_fractional_cents(self):
        with pytest.raises(ValueError):
            BillInput(
                name="Test",
                amount=Decimal("1.005"),
                due_date=date(2024, 12, 5),
                category="Other",
            )

    def test_bill_needs_owner(self):
        with pytest.raises(ValueError):
            Bill(
                id="b1",
                user_id="",
                name="Test",
                amount=Decimal("1"),
                due_date=date(2024, 12, 5),
                category="Other",
            )

    def test_bill_update_changes(self):
        """Only explicitly set, non-null fields are applied."""
        update = BillUpdate(is_paid=True, name=None)
        assert update.changes() == {"is_paid": True}

    def test_bill_update_from_edits_keeps_only_changes(self):
        """An edit form submits every field; only edited ones are applied."""
        bill = BillInput(
            name="Netflix",
            amount=Decimal("199.00"),
            due_date=date(2024, 12, 5),
            category="Subscriptions",
        )
        update = BillUpdate.from_edits(
            bill,
            name=" Netflix ",
            amount=Decimal("229.00"),
            due_date=date(2024, 12, 5),
            category="Subscriptions",
            frequency="yearly",
        )
        assert update.changes() == {
            "amount": Decimal("229.00"),
            "frequency": BillFrequency.YEARLY,
        }

    def test_bill_update_from_edits_unchanged(self):
        bill = BillInput(
            name="Rent",
            amount=Decimal("8500.00"),
            due_date=date(2024, 12, 1),
            category="Housing",
        )
        update = BillUpdate.from_edits(bill, name="Rent", amount=Decimal("8500"))
        assert update.changes() == {}

    def test_bill_update_frequency_alias(self):
        assert BillUpdate(frequency="annually").frequency == BillFrequency.YEARLY

    def test_user_profile_defaults(self):
        profile = UserProfile()
        assert profile.income == Decimal("25000")
        assert profile.savings_goal == Decimal("2500")
        assert profile.currency == "ZAR"
        assert profile.notifications.paid_confirmation is True

    def test_user_profile_rejects_bad_currency(self):
        with pytest.raises(ValueError):
            UserProfile(currency="RAND")


class TestVocabulary:

    def test_default_categories(self):
        categories = default_categories()
        assert categories[0] == "Housing"
        assert "Credit Cards" in categories
        assert categories[-1] == "Other"

    @pytest.mark.parametrize("value,expected", [
        ("housing", "Housing"),
        ("Loan", "Loans"),
        ("credit cards", "Credit Cards"),
        ("  Other ", "Other"),
    ])
    def test_resolve_category(self, value, expected):
        assert resolve_category(value, default_categories()) == expected

    def test_resolve_category_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown category"):
            resolve_category("Pets", default_categories())

    @pytest.mark.parametrize("value,expected", [
        (None, BillFrequency.MONTHLY),
        ("", BillFrequency.MONTHLY),
        ("MONTHLY", BillFrequency.MONTHLY),
        ("once", BillFrequency.ONE_TIME),
        (BillFrequency.WEEKLY, BillFrequency.WEEKLY),
    ])
    def test_resolve_frequency(self, value, expected):
        assert resolve_frequency(value) == expected

    @pytest.mark.parametrize("value", ["daily", 12])
    def test_resolve_frequency_rejects_unknown(self, value):
        with pytest.raises(ValueError):
            resolve_frequency(value)


class TestImportModels:

    def test_candidate_by_alias(self):
        candidate = ParsedBillCandidate.model_validate({
            "name": "Rent",
            "amount": 8500,
            "dueDate": "2024-12-01",
            "category": "Housing",
        })
        assert candidate.due_date == "2024-12-01"
        assert candidate.parsed_due_date() == date(2024, 12, 1)

    def test_candidate_accepts_date_objects(self):
        candidate = ParsedBillCandidate(
            name="Rent",
            amount=Decimal("8500"),
            due_date=date(2024, 12, 1),
            category="Housing",
        )
        assert candidate.due_date == "2024-12-01"

    def test_candidate_uses_context_vocabulary(self):
        data = {"name": "Rent", "amount": 1, "dueDate": "2024-12-01", "category": "Home"}
        with pytest.raises(SchemaError):
            ParsedBillCandidate.model_validate(data)

        candidate = ParsedBillCandidate.model_validate(data, context={"categories": ["Home"]})
        assert candidate.category == "Home"

    def test_dropped_count_counts_bills_not_issues(self):
        result = ExtractionResult(issues=[
            ValidationIssue(index=1, field="amount", message="bad"),
            ValidationIssue(index=1, field="dueDate", message="bad"),
            ValidationIssue(index=3, field="bill", message="bad"),
        ])
        assert result.dropped_count == 2
        assert not result.found_bills

    @pytest.mark.parametrize("success,errors,expected", [
        (1, 0, "1 bill imported successfully."),
        (3, 0, "3 bills imported successfully."),
        (2, 1, "2 bills imported successfully. 1 failed."),
        (0, 2, "0 bills imported successfully. 2 failed."),
    ])
    def test_report_summary(self, success, errors, expected):
        report = ImportReport(
            state=ReconcileState.COMPLETED,
            success_count=success,
            error_count=errors,
        )
        assert report.summary == expected
        assert report.redirect_to == "bills"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.BILL_IMPORTED,
            description="Test event",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BILL_IMPORTED,
            description="Test event",
        )
        log_dict = event.to_log_dict()

        assert "event_id" in log_dict
        assert log_dict["event_type"] == "bill_imported"
        assert log_dict["description"] == "Test event"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to Sheets row."""
        event = AuditEventBuilder.bill_import_failed(2, "Gym", "quota exceeded", uuid4())
        row = event.to_sheets_row()

        assert len(row) == 11
        assert row[5] == "2"
        assert row[9] == "quota exceeded"

    def test_builder_extraction_requested(self):
        cid = uuid4()
        event = AuditEventBuilder.extraction_requested(120, "bills-v2", "llama", cid)

        assert event.event_type == AuditEventType.EXTRACTION_REQUESTED
        assert event.correlation_id == cid
        assert event.details["text_length"] == 120
        assert event.is_user_action

    def test_builder_extraction_completed_warns_on_drops(self):
        clean = AuditEventBuilder.extraction_completed(3, 0, uuid4())
        dropped = AuditEventBuilder.extraction_completed(3, 1, uuid4())

        assert clean.severity == AuditSeverity.INFO
        assert dropped.severity == AuditSeverity.WARNING


class BrokenAuditStorage(AuditStorageInterface):

    async def append_event(self, event):
        raise ConnectionError("sheet unavailable")

    async def get_events_by_correlation_id(self, correlation_id):
        return []


class TestAuditLogger:

    async def test_storage_failure_is_not_raised(self):
        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.candidates_presented(1, uuid4())

        assert await logger.log(event) is False

    async def test_local_only(self):
        event = AuditEventBuilder.candidates_presented(1, uuid4())
        assert await AuditLogger().log(event) is True


class TestSettings:

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("LLM_API_KEY", "LLM_BASE_URL", "IMPORT_CATEGORIES",
                     "STORAGE_BACKEND", "CORS_ORIGINS"):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_llm_defaults(self):
        settings = LLMSettings(api_key="k")
        assert settings.base_url == "https://api.groq.com/openai/v1"
        assert settings.model_name == "llama-3.1-8b-instant"
        assert settings.temperature == 0.1
        assert settings.max_tokens == 1024
        assert settings.timeout_seconds == 30

    def test_llm_requires_api_key(self):
        with pytest.raises(SchemaError):
            LLMSettings()

    def test_base_url_trailing_slash(self, monkeypatch):
        monkeypatch.setenv("LLM_BASE_URL", "https://llm.example.com/v1/")
        assert LLMSettings(api_key="k").base_url == "https://llm.example.com/v1"

    def test_categories_from_env(self, monkeypatch):
        monkeypatch.setenv("IMPORT_CATEGORIES", "Rent, Fun ,,Food")
        assert ImportSettings().categories_list == ["Rent", "Fun", "Food"]

    def test_import_defaults(self):
        settings = ImportSettings()
        assert settings.categories_list == default_categories()
        assert settings.strict_validation is False
        assert settings.max_text_length == 20000

    def test_storage_backend_is_checked(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        with pytest.raises(SchemaError):
            AppSettings()

    def test_cors_origins(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")
        assert AppSettings().cors_origins_list == [
            "https://a.example.com",
            "https://b.example.com",
        ]

    def test_validate_all_settings_reports_missing_key(self):
        status = validate_all_settings()

        assert status["llm"] is False
        assert "api_key" in status["llm_error"]
        assert status["importer"] is True
        assert status["app"] is True
