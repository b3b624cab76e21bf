"""
Audit Models for Bill Tracker

Every significant step of a bill import is logged for audit purposes.
This provides:
1. Traceability from pasted text to saved bills
2. Debugging information when the model misbehaves
3. A record of what the user confirmed or discarded

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the import pipeline has its own event type.
    """
    # Extraction
    EXTRACTION_REQUESTED = "extraction_requested"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"

    # Human confirmation
    CANDIDATES_PRESENTED = "candidates_presented"
    IMPORT_CANCELLED = "import_cancelled"

    # Persistence
    BILL_IMPORTED = "bill_imported"
    BILL_IMPORT_FAILED = "bill_import_failed"
    IMPORT_COMPLETED = "import_completed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'import')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.extraction_requested(120, "v2", "llama", cid)
        event = AuditEventBuilder.bill_imported(bill_id, "Netflix", "199.00", cid)
    """

    @staticmethod
    def extraction_requested(
        text_length: int,
        prompt_version: str,
        model: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_REQUESTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Bill extraction requested for {text_length} characters of text",
            details={
                "text_length": text_length,
                "prompt_version": prompt_version,
                "model": model,
            },
            is_user_action=True,
        )

    @staticmethod
    def extraction_completed(
        candidate_count: int,
        dropped_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            severity=AuditSeverity.WARNING if dropped_count else AuditSeverity.INFO,
            entity_type="import",
            correlation_id=correlation_id,
            description=(
                f"Extraction produced {candidate_count} bills"
                f" ({dropped_count} dropped as malformed)"
            ),
            details={
                "candidate_count": candidate_count,
                "dropped_count": dropped_count,
            },
        )

    @staticmethod
    def extraction_failed(
        error_type: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Extraction failed: {error_type}",
            error_message=error_message,
            details={
                "error_type": error_type,
            },
        )

    @staticmethod
    def candidates_presented(
        count: int,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATES_PRESENTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"{count} extracted bills presented for confirmation",
            details={
                "count": count,
            },
        )

    @staticmethod
    def import_cancelled(
        count: int,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_CANCELLED,
            entity_type="import",
            correlation_id=correlation_id,
            description="User discarded the extracted bills",
            details={
                "count": count,
            },
            is_user_action=True,
        )

    @staticmethod
    def bill_imported(
        bill_id: str,
        name: str,
        amount: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_IMPORTED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill imported: {name} - {amount}",
            details={
                "name": name,
                "amount": amount,
            },
        )

    @staticmethod
    def bill_import_failed(
        candidate_id: int,
        name: str,
        reason: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="candidate",
            entity_id=str(candidate_id),
            correlation_id=correlation_id,
            description=f"Bill import failed: {name}",
            error_message=reason,
            details={
                "name": name,
            },
        )

    @staticmethod
    def import_completed(
        success_count: int,
        error_count: int,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import finished: {success_count} saved, {error_count} failed",
            details={
                "success_count": success_count,
                "error_count": error_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
