"""
Data Models Package

This package contains all Pydantic models used in Bill Tracker.
All data flowing through the system must conform to these schemas.
"""

from billtracker.models.bill import (
    Bill,
    BillFrequency,
    BillInput,
    BillUpdate,
    NotificationPreferences,
    UserProfile,
    default_categories,
    resolve_category,
    resolve_frequency,
)
from billtracker.models.imports import (
    ExtractionResult,
    ImportFailure,
    ImportReport,
    ImportRequest,
    ImportResponse,
    ParsedBillCandidate,
    ReconcileState,
    ValidationIssue,
)
from billtracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "Bill",
    "BillFrequency",
    "BillInput",
    "BillUpdate",
    "NotificationPreferences",
    "UserProfile",
    "default_categories",
    "resolve_category",
    "resolve_frequency",
    # Import models
    "ExtractionResult",
    "ImportFailure",
    "ImportReport",
    "ImportRequest",
    "ImportResponse",
    "ParsedBillCandidate",
    "ReconcileState",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
