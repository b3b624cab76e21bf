"""
Integration tests for the import flow (mocked completion service).
"""

import pytest

from billtracker.config import Settings, get_settings
from billtracker.errors import (
    BillImportError,
    EmptyResponseError,
    MalformedResponseError,
    UpstreamError,
    ValidationError,
)
from billtracker.models.audit import AuditEventType
from billtracker.models.imports import ReconcileState
from billtracker.orchestrator import BillImportFlow, create_app_components
from billtracker.reconcile import CandidateReconciler, StaticAuthContext
from billtracker.services.storage import InMemoryBillStore

from conftest import NETFLIX, CompletionStub, bills_content


class TestExtractBills:

    async def test_netflix(self, build_flow, audit_storage):
        """Pasted note to one validated candidate."""
        stub = CompletionStub(content=bills_content(NETFLIX))
        flow = build_flow(stub)

        candidates = await flow.extract_bills("Netflix R199 due 5th")

        assert len(candidates) == 1
        assert candidates[0].name == "Netflix"
        assert candidates[0].due_date == "2024-12-05"
        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.EXTRACTION_REQUESTED,
            AuditEventType.EXTRACTION_COMPLETED,
        ]
        assert len({e.correlation_id for e in audit_storage.events}) == 1

    @pytest.mark.parametrize("text", ["", "   \n  "])
    async def test_blank_text_never_reaches_the_network(self, build_flow, audit_storage, text):
        stub = CompletionStub(content=bills_content(NETFLIX))
        flow = build_flow(stub)

        with pytest.raises(ValidationError):
            await flow.extract_bills(text)

        assert stub.requests == []
        assert audit_storage.events == []

    async def test_no_bills_found(self, build_flow):
        flow = build_flow(CompletionStub(content=bills_content()))
        assert await flow.extract_bills("hello there") == []

    async def test_dropped_bills_are_audited(self, build_flow, audit_storage):
        raw = bills_content(NETFLIX, dict(NETFLIX, amount="free"))
        flow = build_flow(CompletionStub(content=raw))

        candidates = await flow.extract_bills("Netflix R199, Spotify free")

        assert len(candidates) == 1
        completed = audit_storage.events[-1]
        assert completed.details == {"candidate_count": 1, "dropped_count": 1}

    async def test_upstream_error_propagates(self, build_flow, audit_storage):
        flow = build_flow(CompletionStub(status_code=429, body="rate limit"))

        with pytest.raises(UpstreamError) as exc_info:
            await flow.extract_bills("Netflix R199")

        assert exc_info.value.status_code == 429
        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.EXTRACTION_REQUESTED,
            AuditEventType.EXTERNAL_SERVICE_ERROR,
            AuditEventType.EXTRACTION_FAILED,
        ]

    async def test_malformed_output_propagates(self, build_flow, audit_storage):
        flow = build_flow(CompletionStub(content="Sure! Netflix costs 199."))

        with pytest.raises(MalformedResponseError):
            await flow.extract_bills("Netflix R199")

        assert audit_storage.events[-1].event_type == AuditEventType.EXTRACTION_FAILED

    async def test_empty_output_propagates(self, build_flow):
        flow = build_flow(CompletionStub(content=""))

        with pytest.raises(EmptyResponseError):
            await flow.extract_bills("Netflix R199")

    async def test_strict_mode(self, build_flow):
        raw = bills_content(NETFLIX, dict(NETFLIX, amount="free"))
        flow = build_flow(CompletionStub(content=raw), strict=True)

        with pytest.raises(MalformedResponseError):
            await flow.extract_bills("Netflix R199, Spotify free")


class TestUserMessages:

    @pytest.mark.parametrize("error,expected", [
        (ValidationError(), "Please paste some text to process."),
        (UpstreamError("Completion service error: 429", status_code=429),
         "The AI service is unavailable right now. Please try again."),
        (MalformedResponseError("Invalid JSON response from AI"),
         "We couldn't parse any bills. Try reformatting your notes as a simple list."),
        (RuntimeError("kaboom"), BillImportError.user_message),
    ])
    def test_user_message(self, error, expected):
        assert BillImportFlow.user_message(error) == expected


class TestEndToEnd:

    async def test_paste_review_import(self, build_flow, audit_logger):
        raw = bills_content(
            NETFLIX,
            dict(NETFLIX, name="Rent", amount="R8,500", category="housing", dueDate="2024-12-01"),
        )
        flow = build_flow(CompletionStub(content=raw))
        store = InMemoryBillStore()
        reconciler = CandidateReconciler(
            store=store,
            auth=StaticAuthContext("user-1"),
            audit_logger=audit_logger,
        )

        candidates = await flow.extract_bills("Netflix R199 due 5th\nRent R8,500 on the 1st")
        await reconciler.present(candidates)
        report = await reconciler.commit()

        assert report.state is ReconcileState.COMPLETED
        bills = await store.list_bills("user-1")
        assert [b.name for b in bills] == ["Rent", "Netflix"]
        assert all(not b.is_paid for b in bills)


class TestCreateAppComponents:

    @pytest.fixture(autouse=True)
    def clean_settings(self, monkeypatch):
        for name in ("LLM_API_KEY", "STORAGE_BACKEND", "GOOGLE_SHEETS_CREDENTIALS_PATH",
                     "GOOGLE_SHEETS_SPREADSHEET_ID"):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "test-key")

        components = create_app_components(Settings())

        assert components.storage_backend == "memory"
        assert isinstance(components.bill_store, InMemoryBillStore)
        assert components.flow is not None

    def test_without_api_key_bills_still_work(self):
        components = create_app_components(Settings())

        assert components.flow is None
        assert isinstance(components.bill_store, InMemoryBillStore)

    def test_unconfigured_sheets_fall_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "test-key")
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")

        components = create_app_components(Settings())

        assert components.storage_backend == "memory"

    def test_new_reconciler_uses_shared_store(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "test-key")
        components = create_app_components(Settings())

        reconciler = components.new_reconciler(StaticAuthContext("user-1"))

        assert reconciler.state is ReconcileState.IDLE
