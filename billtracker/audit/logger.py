"""
Audit Logger

DESIGN DECISION: Every step of a bill import is logged.
This provides:
1. Complete traceability from pasted text to saved bills
2. Debugging capability when the model output is unusable
3. A history of what the user confirmed or discarded

The audit logger:
- Is async to match the rest of the pipeline
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from billtracker.models.audit import AuditEvent, AuditEventBuilder
from billtracker.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog on top of the standard library logger.

    The standard library handler is only added if logging is not configured
    yet; the root level is always set.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_extraction_requested(
        self,
        text_length: int,
        prompt_version: str,
        model: str,
        correlation_id: UUID,
    ) -> None:
        """Log that pasted text was sent for extraction."""
        await self.log(AuditEventBuilder.extraction_requested(
            text_length=text_length,
            prompt_version=prompt_version,
            model=model,
            correlation_id=correlation_id,
        ))

    async def log_extraction_completed(
        self,
        candidate_count: int,
        dropped_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a validated extraction."""
        await self.log(AuditEventBuilder.extraction_completed(
            candidate_count=candidate_count,
            dropped_count=dropped_count,
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log an extraction that ended in an error."""
        await self.log(AuditEventBuilder.extraction_failed(
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_candidates_presented(
        self,
        count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.candidates_presented(
            count=count,
            correlation_id=correlation_id,
        ))

    async def log_import_cancelled(
        self,
        count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.import_cancelled(
            count=count,
            correlation_id=correlation_id,
        ))

    async def log_bill_imported(
        self,
        bill_id: str,
        name: str,
        amount: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.bill_imported(
            bill_id=bill_id,
            name=name,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_bill_import_failed(
        self,
        candidate_id: int,
        name: str,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.bill_import_failed(
            candidate_id=candidate_id,
            name=name,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_import_completed(
        self,
        success_count: int,
        error_count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.import_completed(
            success_count=success_count,
            error_count=error_count,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., pasting notes).
    Pass it through all subsequent operations.
    """
    return uuid4()
