"""
Main Orchestrator for Bill Tracker

This module ties together the components and defines the
end-to-end import flow:

    pasted text -> normalize -> request -> validate -> candidates

Candidates then go to a CandidateReconciler, where the user
picks which ones to save.

DESIGN DECISION: The orchestrator enforces the boundaries:
- No text reaches the model before it passes the normalizer
- No model output reaches the user before it passes the validator
- No bill is saved without the user's confirmation
- Every step is audited

Errors from any stage propagate unchanged so callers can map them
to a user message (see user_message) or an HTTP status.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as SchemaError

from billtracker.audit import AuditLogger, configure_logging, create_correlation_id
from billtracker.config import Settings, get_settings
from billtracker.errors import BillImportError, UpstreamError
from billtracker.extraction import (
    PROMPT_VERSION,
    ExtractionRequester,
    ResponseValidator,
    normalize_input,
)
from billtracker.models.imports import ParsedBillCandidate
from billtracker.reconcile import AuthContext, CandidateReconciler, Notifier
from billtracker.services.storage import (
    AuditStorageInterface,
    BillStore,
    InMemoryBillStore,
    InMemoryProfileStore,
    ProfileStore,
)


logger = structlog.get_logger(__name__)


class BillImportFlow:
    """
    Orchestrates free-text bill extraction.

    Flow:
    1. Normalize -> reject empty text before any network call
    2. Request -> one call to the completion service
    3. Validate -> drop (or, in strict mode, reject) malformed bills

    The flow never saves anything. Saving is the reconciler's job.
    """

    def __init__(
        self,
        requester: ExtractionRequester,
        validator: ResponseValidator,
        audit_logger: Optional[AuditLogger] = None,
        max_text_length: Optional[int] = None,
    ):
        self._requester = requester
        self._validator = validator
        self._audit_logger = audit_logger or AuditLogger()
        self._max_text_length = max_text_length

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    async def extract_bills(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[ParsedBillCandidate]:
        """
        Turn pasted notes into validated bill candidates.

        Returns an empty list when the text holds no bills.

        Raises:
            ValidationError: Blank or oversized text (nothing was sent)
            UpstreamError: The completion service failed
            EmptyResponseError: The completion service returned nothing
            MalformedResponseError: The model output is unusable
        """
        correlation_id = correlation_id or create_correlation_id()

        # Step 1: Normalize (raises before any network call)
        text = normalize_input(text, max_length=self._max_text_length)

        await self._audit_logger.log_extraction_requested(
            text_length=len(text),
            prompt_version=PROMPT_VERSION,
            model=self._requester.model_name,
            correlation_id=correlation_id,
        )

        try:
            # Step 2: Request
            raw = await self._requester.request(text)

            # Step 3: Validate
            result = self._validator.validate_with_report(raw)
        except UpstreamError as e:
            await self._audit_logger.log_external_service_error(
                service="completion",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_extraction_failed(
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except BillImportError as e:
            await self._audit_logger.log_extraction_failed(
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_extraction_completed(
            candidate_count=len(result.candidates),
            dropped_count=result.dropped_count,
            correlation_id=correlation_id,
        )

        return result.candidates

    @staticmethod
    def user_message(error: Exception) -> str:
        """Short message that is safe to show for any error."""
        if isinstance(error, BillImportError):
            return error.user_message
        return BillImportError.user_message


@dataclass
class AppComponents:
    """Everything the UI and API need, built once per process."""

    settings: Settings
    flow: Optional[BillImportFlow]
    bill_store: BillStore
    profile_store: ProfileStore
    audit_logger: AuditLogger
    storage_backend: str

    def new_reconciler(
        self,
        auth: AuthContext,
        notifier: Optional[Notifier] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CandidateReconciler:
        return CandidateReconciler(
            store=self.bill_store,
            auth=auth,
            notifier=notifier,
            audit_logger=self.audit_logger,
            correlation_id=correlation_id,
        )


def create_flow(
    settings: Optional[Settings] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> BillImportFlow:
    """Build the import flow from settings."""
    settings = settings or get_settings()
    importer = settings.importer
    categories = importer.categories_list

    return BillImportFlow(
        requester=ExtractionRequester(settings.llm, categories),
        validator=ResponseValidator(categories, strict=importer.strict_validation),
        audit_logger=audit_logger,
        max_text_length=importer.max_text_length,
    )


def _create_stores(
    settings: Settings,
    backend: str,
) -> tuple[BillStore, ProfileStore, Optional[AuditStorageInterface], str]:
    categories = settings.importer.categories_list
    if backend == "google_sheets":
        try:
            from billtracker.services.storage.google_sheets import (
                GoogleSheetsAuditStorage,
                GoogleSheetsBillStore,
                GoogleSheetsClient,
                GoogleSheetsProfileStore,
            )

            client = GoogleSheetsClient(settings.google_sheets)
            client.connect()
            return (
                GoogleSheetsBillStore(client, categories),
                GoogleSheetsProfileStore(client),
                GoogleSheetsAuditStorage(client),
                "google_sheets",
            )
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_fallback", backend=backend, error=str(e))

    return InMemoryBillStore(categories), InMemoryProfileStore(), None, "memory"


def create_app_components(settings: Optional[Settings] = None) -> AppComponents:
    """
    Factory function to create all application components.

    Uses the configured storage backend, falling back to memory
    when Google Sheets can't be reached. flow is None when the
    completion service isn't configured; bills can still be managed.
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)
    backend = settings.app.storage_backend

    bill_store, profile_store, audit_storage, used_backend = _create_stores(settings, backend)
    audit_logger = AuditLogger(audit_storage)

    try:
        flow = create_flow(settings, audit_logger)
    except SchemaError as e:
        logger.warning("import_flow_unavailable", error=str(e))
        flow = None

    return AppComponents(
        settings=settings,
        flow=flow,
        bill_store=bill_store,
        profile_store=profile_store,
        audit_logger=audit_logger,
        storage_backend=used_backend,
    )
