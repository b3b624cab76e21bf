"""
Core Data Models for Bill Tracker

These models define the strict schemas for bills and user profiles.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: The category vocabulary is configuration, not an Enum.
Matching against it lives in resolve_category() so the same rule is
used by the import pipeline and the UI.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from billtracker.config import DEFAULT_CATEGORIES


def default_categories() -> list[str]:
    """The built-in category vocabulary."""
    return [c.strip() for c in DEFAULT_CATEGORIES.split(",")]


def resolve_category(value: str, vocabulary: list[str]) -> str:
    """
    Match a category name against the closed vocabulary.

    Matching is case-insensitive and tolerates a trailing "s"
    ("Subscription" matches "Subscriptions" and vice versa).
    Always returns the vocabulary's spelling.

    Raises ValueError for anything outside the vocabulary.
    """
    wanted = value.strip().casefold()
    by_key = {c.casefold(): c for c in vocabulary}

    if wanted in by_key:
        return by_key[wanted]

    variants = [wanted + "s"]
    if wanted.endswith("s"):
        variants.append(wanted[:-1])
    for variant in variants:
        if variant in by_key:
            return by_key[variant]

    raise ValueError(
        f"Unknown category: {value!r}. Allowed: {', '.join(vocabulary)}"
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillFrequency(str, Enum):
    """
    How often a bill recurs.

    This is descriptive metadata only. Nothing spawns future
    bills from it.
    """
    ONE_TIME = "one-time"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


FREQUENCY_ALIASES = {
    "once": BillFrequency.ONE_TIME,
    "one time": BillFrequency.ONE_TIME,
    "onetime": BillFrequency.ONE_TIME,
    "one-off": BillFrequency.ONE_TIME,
    "annual": BillFrequency.YEARLY,
    "annually": BillFrequency.YEARLY,
}


def resolve_frequency(value: object) -> BillFrequency:
    """
    Map a raw frequency value to BillFrequency.

    None or an empty string means monthly.
    Raises ValueError for unknown values.
    """
    if value is None:
        return BillFrequency.MONTHLY
    if isinstance(value, BillFrequency):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Frequency must be a string, got {type(value).__name__}")

    key = value.strip().lower()
    if not key:
        return BillFrequency.MONTHLY
    if key in FREQUENCY_ALIASES:
        return FREQUENCY_ALIASES[key]
    try:
        return BillFrequency(key)
    except ValueError:
        allowed = ", ".join(f.value for f in BillFrequency)
        raise ValueError(f"Unknown frequency: {value!r}. Allowed: {allowed}")


# =============================================================================
# BILL MODELS
# =============================================================================

class BillInput(BaseModel):
    """
    Fields needed to create a bill.

    The due date is a concrete date here, never a string.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Bill name (e.g. Netflix, Rent)"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount due"
    )
    due_date: date = Field(
        ...,
        description="Payment due date"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Category from the configured vocabulary"
    )
    is_paid: bool = Field(
        default=False,
        description="Has this bill been paid?"
    )
    frequency: BillFrequency = Field(
        default=BillFrequency.MONTHLY,
        description="Recurrence label"
    )

    @field_validator("frequency", mode="before")
    @classmethod
    def normalize_frequency(cls, v: object) -> BillFrequency:
        return resolve_frequency(v)


class Bill(BillInput):
    """
    A persisted bill, owned by exactly one user.

    The id is assigned by the store on creation.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque identifier assigned by the store"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BillUpdate(BaseModel):
    """
    A partial update to a bill.

    Only fields that were explicitly set are applied
    (see model_dump(exclude_unset=True)).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    due_date: Optional[date] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    is_paid: Optional[bool] = None
    frequency: Optional[BillFrequency] = None

    @field_validator("frequency", mode="before")
    @classmethod
    def normalize_frequency(cls, v: object) -> Optional[BillFrequency]:
        if v is None:
            return None
        return resolve_frequency(v)

    @classmethod
    def from_edits(cls, bill: "BillInput", **values) -> "BillUpdate":
        """
        The update that turns bill into the edited values.

        Fields equal to the bill's current value are left unset.
        """
        edited = cls(**values)
        changed = {
            key: value
            for key, value in edited.changes().items()
            if getattr(bill, key) != value
        }
        return cls(**changed)

    def changes(self) -> dict:
        """The fields to apply, without unset or null values."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


# =============================================================================
# PROFILE MODELS
# =============================================================================

class NotificationPreferences(BaseModel):
    """Which reminders the user wants."""

    due_soon: bool = True
    paid_confirmation: bool = True
    savings_tips: bool = False


class UserProfile(BaseModel):
    """
    Per-user money settings used by the overview and savings pages.

    The defaults are what a user sees before saving anything.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    income: Decimal = Field(
        default=Decimal("25000"),
        ge=0,
        description="Monthly income"
    )
    savings_goal: Decimal = Field(
        default=Decimal("2500"),
        ge=0,
        description="Monthly savings goal"
    )
    currency: str = Field(
        default="ZAR",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    notifications: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()
