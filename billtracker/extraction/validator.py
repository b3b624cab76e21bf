"""
Response Validator

The schema gate between model output and everything downstream.

DESIGN DECISION: Each bill is validated as a whole.
A bill either satisfies every field rule or it is dropped. Valid bills
survive even when their neighbours in the same response are malformed.

In strict mode the first malformed bill rejects the whole response.

IMPORTANT: Raw model output is logged, never put in an error message.
"""

import json
from typing import Any, Optional

import structlog
from pydantic import ValidationError as SchemaError

from billtracker.errors import MalformedResponseError
from billtracker.models.bill import default_categories
from billtracker.models.imports import (
    ExtractionResult,
    ParsedBillCandidate,
    ValidationIssue,
)


logger = structlog.get_logger(__name__)


def _issues_from(index: int, error: SchemaError) -> list[ValidationIssue]:
    issues = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "bill"
        issues.append(ValidationIssue(
            index=index,
            field=location,
            message=detail.get("msg", "invalid"),
        ))
    return issues


class ResponseValidator:
    """Turns raw completion content into validated bill candidates."""

    def __init__(
        self,
        categories: Optional[list[str]] = None,
        strict: bool = False,
    ):
        self._categories = list(categories) if categories else default_categories()
        self._strict = strict

    @property
    def categories(self) -> list[str]:
        return list(self._categories)

    def _load_bills(self, raw: str) -> list[Any]:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(
                "model_output_not_json",
                error=str(e),
                raw=raw[:1000] if isinstance(raw, str) else None,
            )
            raise MalformedResponseError("Invalid JSON response from AI") from e

        if not isinstance(data, dict) or not isinstance(data.get("bills"), list):
            logger.warning("model_output_missing_bills", raw=raw[:1000])
            raise MalformedResponseError("Invalid response format: missing bills array")

        return data["bills"]

    def validate_with_report(self, raw: str) -> ExtractionResult:
        """
        Validate every bill and report what was dropped.

        Candidate ids are assigned in order over the surviving bills,
        so they are always 0..N-1.

        Raises:
            MalformedResponseError: Not JSON, no bills array, or (strict mode)
                any malformed bill
        """
        items = self._load_bills(raw)
        context = {"categories": self._categories}

        candidates: list[ParsedBillCandidate] = []
        issues: list[ValidationIssue] = []

        for index, item in enumerate(items):
            if not isinstance(item, dict):
                issues.append(ValidationIssue(
                    index=index,
                    field="bill",
                    message="Bill entry is not an object",
                ))
            else:
                # The model does not assign ids
                fields = {k: v for k, v in item.items() if k not in ("candidateId", "candidate_id")}
                try:
                    candidate = ParsedBillCandidate.model_validate(fields, context=context)
                except SchemaError as e:
                    issues.extend(_issues_from(index, e))
                else:
                    candidates.append(candidate.model_copy(update={"candidate_id": len(candidates)}))
                    continue

            logger.warning(
                "bill_dropped",
                index=index,
                issues=[i.model_dump() for i in issues if i.index == index],
                item=item,
            )
            if self._strict:
                raise MalformedResponseError(
                    f"Invalid bill at position {index} in AI response"
                )

        result = ExtractionResult(candidates=candidates, issues=issues)
        logger.info(
            "response_validated",
            candidate_count=len(result.candidates),
            dropped_count=result.dropped_count,
        )
        return result

    def validate(self, raw: str) -> list[ParsedBillCandidate]:
        """Validated candidates only. An empty list is not an error."""
        return self.validate_with_report(raw).candidates
