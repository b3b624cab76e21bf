"""
In-Memory Storage Implementation

Used by tests and for local development without Google credentials.
Data lives only as long as the process.
"""

from typing import Optional
from uuid import UUID, uuid4

from billtracker.models.audit import AuditEvent
from billtracker.models.bill import (
    Bill,
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
    merge_profile,
)


def filter_bills(
    bills: list[Bill],
    category: Optional[str] = None,
    is_paid: Optional[bool] = None,
    search: Optional[str] = None,
) -> list[Bill]:
    """Apply list filters and sort soonest due first."""
    result = []
    for bill in bills:
        if category and bill.category != category:
            continue
        if is_paid is not None and bill.is_paid != is_paid:
            continue
        if search and search.lower() not in bill.name.lower():
            continue
        result.append(bill)

    result.sort(key=lambda b: (b.due_date, b.name.lower()))
    return result


class InMemoryBillStore(BillStore):
    """Bills kept in a dict per user."""

    def __init__(self, categories: Optional[list[str]] = None):
        self.categories = categories
        self._bills: dict[str, dict[str, Bill]] = {}

    def _collection(self, user_id: str) -> dict[str, Bill]:
        return self._bills.setdefault(user_id, {})

    async def create(self, user_id: str, bill: BillInput) -> Bill:
        stored = Bill(
            id=uuid4().hex,
            user_id=user_id,
            **self.bill_fields(bill),
        )
        self._collection(user_id)[stored.id] = stored
        return stored

    async def get(self, user_id: str, bill_id: str) -> Optional[Bill]:
        return self._collection(user_id).get(bill_id)

    async def list_bills(
        self,
        user_id: str,
        category: Optional[str] = None,
        is_paid: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> list[Bill]:
        return filter_bills(
            list(self._collection(user_id).values()),
            category=category,
            is_paid=is_paid,
            search=search,
        )

    async def update(self, user_id: str, bill_id: str, updates: BillUpdate) -> Bill:
        collection = self._collection(user_id)
        current = collection.get(bill_id)
        if current is None:
            raise NotFoundError(f"Bill not found: {bill_id}")

        data = current.model_dump()
        data.update(self.update_fields(updates))
        data["updated_at"] = utcnow()
        updated = Bill.model_validate(data)
        collection[bill_id] = updated
        return updated

    async def delete(self, user_id: str, bill_id: str) -> bool:
        return self._collection(user_id).pop(bill_id, None) is not None


class InMemoryProfileStore(ProfileStore):
    """Profiles kept in a dict keyed by user."""

    def __init__(self):
        self._profiles: dict[str, UserProfile] = {}

    async def get_profile(self, user_id: str) -> UserProfile:
        return self._profiles.get(user_id) or UserProfile()

    async def update_profile(self, user_id: str, updates: dict) -> UserProfile:
        profile = merge_profile(await self.get_profile(user_id), updates)
        self._profiles[user_id] = profile
        return profile


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events
