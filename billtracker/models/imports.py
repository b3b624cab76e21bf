"""
Import Pipeline Models

CRITICAL: A ParsedBillCandidate is PROPOSED data, NOT verified.
It only becomes a Bill after the user confirms it.

Every candidate that exists satisfies the whole schema at once.
There is no partially-valid candidate.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from billtracker.models.bill import (
    BillFrequency,
    default_categories,
    resolve_category,
    resolve_frequency,
)


_ISO_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ][0-9:.+\-]*Z?)?$")
_CURRENCY = r"(?:R|\$|€|£|¥|₹|[A-Z]{3})"
_AMOUNT_TEXT = re.compile(
    rf"^{_CURRENCY}?\s*(?P<number>-?\d[\d ,.]*?)\s*{_CURRENCY}?$"
)
_AMOUNT_FORMATS = (
    # 1200.50
    (re.compile(r"^-?\d+(?:\.\d+)?$"), None),
    # 1200,50
    (re.compile(r"^-?\d+,\d{1,2}$"), ","),
    # 1,200.50
    (re.compile(r"^-?\d{1,3}(?:,\d{3})+(?:\.\d+)?$"), "."),
    # 1 200,50 or 1 200.50
    (re.compile(r"^-?\d{1,3}(?: \d{3})+(?:[.,]\d{1,2})?$"), " "),
)


def parse_amount_text(text: str) -> str:
    """
    Turn an amount written by a person into a plain decimal string.

    Currency symbols and codes are dropped. Thousands are grouped in
    threes by "," or a space, and a lone "," before 1-2 digits is the
    decimal separator. Anything else is rejected rather than guessed.
    """
    normalized = re.sub(r"[\u00a0\u202f\u2009]", " ", text.strip())
    match = _AMOUNT_TEXT.match(normalized)
    if not match:
        raise ValueError(f"Amount is not a number: {text!r}")
    number = match.group("number")

    for pattern, separator in _AMOUNT_FORMATS:
        if not pattern.match(number):
            continue
        if separator == ",":
            return number.replace(",", ".")
        if separator == ".":
            return number.replace(",", "")
        if separator == " ":
            return number.replace(" ", "").replace(",", ".")
        return number
    raise ValueError(f"Amount is not a number: {text!r}")


CENTS = Decimal("0.01")


class ParsedBillCandidate(BaseModel):
    """
    A bill extracted from free text, pending user confirmation.

    Validate with context={"categories": [...]} to check against a
    configured vocabulary; the built-in vocabulary is used otherwise.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    candidate_id: int = Field(
        default=0,
        ge=0,
        description="Stable position among validated candidates"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Bill name"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount due, without currency symbol"
    )
    due_date: str = Field(
        ...,
        description="Due date as YYYY-MM-DD"
    )
    category: str = Field(
        ...,
        description="Category from the closed vocabulary"
    )
    frequency: BillFrequency = Field(
        default=BillFrequency.MONTHLY,
        description="Recurrence label; monthly when absent"
    )

    @field_validator("name", mode="before")
    @classmethod
    def require_string_name(cls, v: Any) -> Any:
        if not isinstance(v, str):
            raise ValueError("Name must be a string")
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def repair_amount(cls, v: Any) -> Any:
        """
        Accept numbers, and numeric strings carrying a currency
        ("R1 200,50" -> 1200.50). Booleans are not numbers here.
        """
        if isinstance(v, bool):
            raise ValueError("Amount must be a number")
        if isinstance(v, float):
            return Decimal(repr(v))
        if isinstance(v, str):
            return parse_amount_text(v)
        return v

    @field_validator("amount")
    @classmethod
    def round_amount(cls, v: Decimal) -> Decimal:
        try:
            rounded = v.quantize(CENTS)
        except InvalidOperation:
            raise ValueError("Amount is out of range")
        if rounded <= 0:
            raise ValueError("Amount must be greater than zero")
        return rounded

    @field_validator("due_date", mode="before")
    @classmethod
    def check_due_date(cls, v: Any) -> str:
        if isinstance(v, datetime):
            return v.date().isoformat()
        if isinstance(v, date):
            return v.isoformat()
        if not isinstance(v, str):
            raise ValueError("Due date must be a YYYY-MM-DD string")

        match = _ISO_DATE.match(v.strip())
        if not match:
            raise ValueError(f"Due date is not YYYY-MM-DD: {v!r}")
        # Raises ValueError for impossible dates such as 2024-02-30
        date.fromisoformat(match.group(1))
        return match.group(1)

    @field_validator("category", mode="before")
    @classmethod
    def check_category(cls, v: Any, info: ValidationInfo) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Category is required")
        vocabulary = (info.context or {}).get("categories") or default_categories()
        return resolve_category(v, vocabulary)

    @field_validator("frequency", mode="before")
    @classmethod
    def default_frequency(cls, v: Any) -> BillFrequency:
        return resolve_frequency(v)

    @field_serializer("amount", when_used="json")
    def amount_as_number(self, v: Decimal) -> float:
        return float(v)

    def parsed_due_date(self) -> Optional[date]:
        """The due date as a date, or None if it does not parse."""
        try:
            return date.fromisoformat(self.due_date)
        except (TypeError, ValueError):
            return None


class ValidationIssue(BaseModel):
    """A bill from the model response that did not pass the schema."""

    index: int = Field(
        ...,
        ge=0,
        description="Position of the bill in the model's bills array"
    )
    field: str = Field(
        ...,
        description="Field with the issue ('bill' for the whole entry)"
    )
    message: str = Field(
        ...,
        description="Why it was rejected"
    )


class ExtractionResult(BaseModel):
    """
    Output of the response validator.

    An empty candidate list is a valid result: no bills were found.
    """

    candidates: list[ParsedBillCandidate] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def found_bills(self) -> bool:
        return len(self.candidates) > 0

    @property
    def dropped_count(self) -> int:
        return len({issue.index for issue in self.issues})


# =============================================================================
# HTTP MODELS
# =============================================================================

class ImportRequest(BaseModel):
    """Body of POST /api/import-bills."""

    text: str = Field(
        ...,
        min_length=1,
        description="Pasted notes, ideally one bill per line"
    )


class ImportResponse(BaseModel):
    """Successful response of POST /api/import-bills."""

    bills: list[ParsedBillCandidate] = Field(default_factory=list)


# =============================================================================
# RECONCILIATION MODELS
# =============================================================================

class ReconcileState(str, Enum):
    """States of the candidate reconciler."""
    IDLE = "idle"
    AWAITING_SELECTION = "awaiting_selection"
    COMMITTING = "committing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"


class ImportFailure(BaseModel):
    """One candidate that could not be committed."""

    candidate_id: int
    name: str
    reason: str


class ImportReport(BaseModel):
    """
    Final report of a commit.

    redirect_to names the view the caller returns to, which is
    the unfiltered bill list whether or not errors occurred.
    """

    state: ReconcileState
    success_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    imported_bill_ids: list[str] = Field(default_factory=list)
    failures: list[ImportFailure] = Field(default_factory=list)
    redirect_to: str = "bills"

    @property
    def summary(self) -> str:
        """Short user-facing summary."""
        noun = "bill" if self.success_count == 1 else "bills"
        text = f"{self.success_count} {noun} imported successfully."
        if self.error_count:
            text += f" {self.error_count} failed."
        return text
