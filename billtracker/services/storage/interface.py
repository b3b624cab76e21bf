"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing and local development
3. Keep the import pipeline decoupled from storage implementation

Every bill belongs to exactly one user. Every operation is scoped by
user_id; there is no cross-user access.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from billtracker.models.audit import AuditEvent
from billtracker.models.bill import (
    Bill,
    BillInput,
    BillUpdate,
    UserProfile,
    default_categories,
    resolve_category,
)


class BillStore(ABC):
    """
    Abstract interface for per-user bill storage.

    Any storage implementation must implement these methods.

    Categories are checked against a closed vocabulary on every
    write; stores are built with the configured one.
    """

    categories: Optional[list[str]] = None

    def bill_fields(self, bill: BillInput) -> dict:
        """Fields for a new bill, with the category in canonical spelling."""
        data = bill.model_dump()
        data["category"] = self._resolve_category(bill.category)
        return data

    def update_fields(self, updates: BillUpdate) -> dict:
        """Changes to apply, with any category in canonical spelling."""
        changes = updates.changes()
        if "category" in changes:
            changes["category"] = self._resolve_category(changes["category"])
        return changes

    def _resolve_category(self, category: str) -> str:
        # ValueError outside the vocabulary
        return resolve_category(category, self.categories or default_categories())

    @abstractmethod
    async def create(self, user_id: str, bill: BillInput) -> Bill:
        """
        Create a bill for a user.

        Args:
            user_id: The owning user
            bill: The bill fields (due_date is a concrete date)

        Returns:
            The stored Bill with its new id

        Raises:
            ValueError: If the category is outside the vocabulary
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, user_id: str, bill_id: str) -> Optional[Bill]:
        """
        Retrieve one of the user's bills.

        Returns:
            The bill if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_bills(
        self,
        user_id: str,
        category: Optional[str] = None,
        is_paid: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> list[Bill]:
        """
        List the user's bills, soonest due first.

        Args:
            user_id: The owning user
            category: Only bills in this category
            is_paid: Only paid (True) or unpaid (False) bills
            search: Case-insensitive substring of the bill name

        Returns:
            List of matching bills
        """
        pass

    @abstractmethod
    async def update(self, user_id: str, bill_id: str, updates: BillUpdate) -> Bill:
        """
        Apply a partial update to a bill.

        Returns:
            The updated bill

        Raises:
            NotFoundError: If the bill doesn't exist for this user
            ValueError: If a new category is outside the vocabulary
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, bill_id: str) -> bool:
        """
        Delete a bill.

        Returns:
            True if a bill was deleted, False if it didn't exist
        """
        pass

    async def toggle_paid(self, user_id: str, bill_id: str) -> Bill:
        """
        Flip a bill's paid flag.

        Raises:
            NotFoundError: If the bill doesn't exist for this user
        """
        bill = await self.get(user_id, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill not found: {bill_id}")
        return await self.update(user_id, bill_id, BillUpdate(is_paid=not bill.is_paid))


class ProfileStore(ABC):
    """Abstract interface for per-user profile storage."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> UserProfile:
        """
        Get a user's profile.

        Returns the default profile if none was saved yet.
        """
        pass

    @abstractmethod
    async def update_profile(self, user_id: str, updates: dict) -> UserProfile:
        """
        Merge updates into a user's profile and save it.

        Nested notification preferences are merged key by key.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one import flow).

        Returns:
            List of related events in chronological order
        """
        pass


def merge_profile(profile: UserProfile, updates: dict) -> UserProfile:
    """Merge a partial update into a profile, validating the result."""
    data = profile.model_dump()
    for key, value in updates.items():
        if key == "notifications" and isinstance(value, dict):
            data["notifications"].update(value)
        else:
            data[key] = value
    return UserProfile.model_validate(data)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
