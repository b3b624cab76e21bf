"""
Extraction Requester

Builds the instruction payload for the completion service and sends it.

DESIGN DECISION: The prompt is deterministic for a given day.
It carries everything the model needs to produce schema-shaped output:
1. The closed category vocabulary
2. The fallback due date (last day of the current month)
3. Formatting rules for amounts and dates
4. The exact JSON shape to return

The fallback due date is computed HERE, when the request is built,
not later during validation. The model applies it in context.

There is no automatic retry. A failed request is reported to the
caller, who decides whether to try again.
"""

import calendar
import json
from datetime import date
from typing import Callable, Optional

import httpx
import structlog

from billtracker.config import LLMSettings
from billtracker.errors import EmptyResponseError, UpstreamError


logger = structlog.get_logger(__name__)

PROMPT_VERSION = "bills-v2"

_EXAMPLE_OUTPUT = {
    "bills": [
        {
            "name": "Netflix",
            "amount": 199,
            "dueDate": "2024-12-05",
            "category": "Subscriptions",
            "frequency": "monthly",
        }
    ]
}


def last_day_of_month(today: date) -> date:
    """Last calendar day of the month containing today."""
    return today.replace(day=calendar.monthrange(today.year, today.month)[1])


class ExtractionRequester:
    """
    Sends pasted notes to an OpenAI-compatible chat completions API.

    Pass an httpx.AsyncClient to reuse connections (or to test with
    httpx.MockTransport); otherwise a client is created per request.
    """

    def __init__(
        self,
        settings: LLMSettings,
        categories: list[str],
        client: Optional[httpx.AsyncClient] = None,
        today: Callable[[], date] = date.today,
    ):
        self._settings = settings
        self._categories = list(categories)
        self._client = client
        self._today = today

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    def fallback_due_date(self) -> str:
        """Due date used when the text names none, as YYYY-MM-DD."""
        return last_day_of_month(self._today()).isoformat()

    def build_system_prompt(self) -> str:
        """The fixed instruction sent with every request."""
        example = json.dumps(_EXAMPLE_OUTPUT, indent=2)
        return f"""You extract bills from personal notes for a bill tracking app.
Read the user's text and return every bill you find as JSON.

RULES:
- Use exactly one of these categories: {', '.join(self._categories)}
- If a bill has no due date, use {self.fallback_due_date()} (the last day of the current month)
- If a due date has no year or month, assume the current year and month
- Amounts are plain numbers: remove currency symbols, spaces and thousands separators
- Dates are written as YYYY-MM-DD
- frequency is one of: one-time, weekly, monthly, yearly. Use monthly if the text doesn't say
- Only include bills that have both a name and an amount

Return ONLY a JSON object with a single "bills" array, shaped like this:
{example}

If there are no bills, return {{"bills": []}}."""

    def build_payload(self, text: str) -> dict:
        """Request body for the chat completions endpoint."""
        return {
            "model": self._settings.model_name,
            "messages": [
                {"role": "system", "content": self.build_system_prompt()},
                {"role": "user", "content": text},
            ],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "response_format": {"type": "json_object"},
        }

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        timeout = self._settings.timeout_seconds
        if self._client is not None:
            return await self._client.post(
                url, json=payload, headers=self._headers(), timeout=timeout
            )
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(url, json=payload, headers=self._headers())

    async def request(self, text: str) -> str:
        """
        Send the text and return the model's raw completion content.

        Raises:
            UpstreamError: Non-success status, timeout, or network failure
            EmptyResponseError: Success status but no completion content
        """
        url = f"{self._settings.base_url}/chat/completions"
        payload = self.build_payload(text)

        logger.info(
            "completion_request",
            model=self._settings.model_name,
            prompt_version=PROMPT_VERSION,
            text_length=len(text),
        )

        try:
            response = await self._post(url, payload)
        except httpx.TimeoutException as e:
            raise UpstreamError(
                f"Completion request timed out after {self._settings.timeout_seconds}s"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Completion request failed: {e}") from e

        if not response.is_success:
            body = response.text
            logger.warning(
                "completion_request_failed",
                status_code=response.status_code,
                body=body[:500],
            )
            raise UpstreamError(
                f"Completion service error: {response.status_code} "
                f"{response.reason_phrase} - {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None

        if not isinstance(content, str) or not content.strip():
            raise EmptyResponseError("No response content from completion service")

        return content
