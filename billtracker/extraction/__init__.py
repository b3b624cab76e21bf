"""Free-text bill extraction: normalize, request, validate."""

from billtracker.extraction.normalizer import normalize_input
from billtracker.extraction.requester import (
    PROMPT_VERSION,
    ExtractionRequester,
    last_day_of_month,
)
from billtracker.extraction.validator import ResponseValidator

__all__ = [
    "PROMPT_VERSION",
    "ExtractionRequester",
    "ResponseValidator",
    "last_day_of_month",
    "normalize_input",
]
