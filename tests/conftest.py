"""
Shared fixtures.

No test talks to a real service: the completion API is answered by
httpx.MockTransport and bills live in the in-memory store.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Optional

import httpx
import pytest

from billtracker.audit import AuditLogger
from billtracker.config import LLMSettings
from billtracker.extraction import ExtractionRequester, ResponseValidator
from billtracker.models.bill import Bill, default_categories
from billtracker.models.imports import ParsedBillCandidate
from billtracker.orchestrator import BillImportFlow
from billtracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryBillStore,
    InMemoryProfileStore,
)


TODAY = date(2024, 12, 10)

NETFLIX = {
    "name": "Netflix",
    "amount": 199,
    "dueDate": "2024-12-05",
    "category": "Subscriptions",
    "frequency": "monthly",
}


def bills_content(*bills) -> str:
    """Completion content holding the given bills."""
    return json.dumps({"bills": list(bills)})


class CompletionStub:
    """
    Stands in for the chat completions endpoint.

    Records every request and answers each one the same way.
    """

    def __init__(
        self,
        content: Optional[str] = None,
        status_code: int = 200,
        body: Optional[str] = None,
        json_body: Optional[dict] = None,
        exc: Optional[Exception] = None,
    ):
        self.content = content
        self.status_code = status_code
        self.body = body
        self.json_body = json_body
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.body is not None:
            return httpx.Response(self.status_code, text=self.body)
        if self.json_body is not None:
            return httpx.Response(self.status_code, json=self.json_body)
        return httpx.Response(
            self.status_code,
            json={
                "id": "chatcmpl-test",
                "choices": [
                    {"index": 0, "message": {"role": "assistant", "content": self.content}}
                ],
            },
        )

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def make_candidate(candidate_id: int = 0, **overrides) -> ParsedBillCandidate:
    data = {
        "candidate_id": candidate_id,
        "name": "Netflix",
        "amount": "199",
        "due_date": "2024-12-05",
        "category": "Subscriptions",
    }
    data.update(overrides)
    return ParsedBillCandidate.model_validate(data)


def make_bill(name: str, amount: str, due: date, paid: bool = False, **overrides) -> Bill:
    data = {
        "id": f"id-{name.lower()}",
        "user_id": "user-1",
        "name": name,
        "amount": Decimal(amount),
        "due_date": due,
        "category": "Utilities",
        "is_paid": paid,
    }
    data.update(overrides)
    return Bill(**data)


@pytest.fixture
def llm_settings() -> LLMSettings:
    return LLMSettings(api_key="test-key")


@pytest.fixture
def build_requester(llm_settings):
    """Requester wired to a CompletionStub."""
    def build(stub: CompletionStub, categories=None) -> ExtractionRequester:
        client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
        return ExtractionRequester(
            llm_settings,
            categories or default_categories(),
            client=client,
            today=lambda: TODAY,
        )
    return build


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def build_flow(build_requester, audit_logger):
    """Import flow wired to a CompletionStub."""
    def build(stub: CompletionStub, strict: bool = False) -> BillImportFlow:
        return BillImportFlow(
            requester=build_requester(stub),
            validator=ResponseValidator(default_categories(), strict=strict),
            audit_logger=audit_logger,
            max_text_length=20000,
        )
    return build


@pytest.fixture
def bill_store() -> InMemoryBillStore:
    return InMemoryBillStore()


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()
