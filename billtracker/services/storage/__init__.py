"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory storage is the default; Google Sheets is the persistent backend.
"""

from billtracker.services.storage.interface import (
    AuditStorageInterface,
    BillStore,
    NotFoundError,
    ProfileStore,
    StorageConnectionError,
    StorageError,
    merge_profile,
)
from billtracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBillStore,
    InMemoryProfileStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BillStore",
    "ProfileStore",
    "merge_profile",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBillStore",
    "InMemoryProfileStore",
]
