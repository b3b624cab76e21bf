"""
Candidate Reconciler

Holds extracted candidates while the user decides which to keep,
then commits the chosen ones to the bill store.

STATES:
    IDLE -> AWAITING_SELECTION -> COMMITTING -> COMPLETED
                                             -> COMPLETED_WITH_ERRORS

CRITICAL: Nothing is saved until the user commits.
Every candidate starts selected; the user opts out, not in.

DESIGN DECISION: A commit never fails as a whole once it starts.
Each selected candidate is saved on its own. A failure is counted
and reported, and the remaining candidates are still saved.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol
from uuid import UUID

import structlog
from pydantic import ValidationError as SchemaError

from billtracker.audit import AuditLogger
from billtracker.errors import (
    AuthRequiredError,
    InvalidStateError,
    NoSelectionError,
    PersistenceError,
)
from billtracker.models.bill import Bill, BillInput
from billtracker.models.imports import (
    ImportFailure,
    ImportReport,
    ParsedBillCandidate,
    ReconcileState,
)
from billtracker.services.storage import BillStore


logger = structlog.get_logger(__name__)

NO_BILLS_MESSAGE = (
    "We couldn't find any bills in the text you provided. "
    "Try formatting it as a simple list."
)


class AuthContext(Protocol):
    """Who is signed in, if anyone."""

    def current_user_id(self) -> Optional[str]:
        ...


class Notifier(Protocol):
    """Short user-facing notices (toasts in the UI)."""

    def notify(self, title: str, message: str, variant: str = "default") -> None:
        ...


@dataclass
class StaticAuthContext:
    """Auth context with a fixed user, or nobody."""

    user_id: Optional[str] = None

    def current_user_id(self) -> Optional[str]:
        return self.user_id


@dataclass
class Notification:
    title: str
    message: str
    variant: str = "default"


@dataclass
class CollectingNotifier:
    """Keeps notices in order so the UI can show them on the next render."""

    notifications: list[Notification] = field(default_factory=list)

    def notify(self, title: str, message: str, variant: str = "default") -> None:
        self.notifications.append(Notification(title, message, variant))

    def drain(self) -> list[Notification]:
        pending, self.notifications = self.notifications, []
        return pending


class CandidateReconciler:
    """
    Selection and commit of parsed bill candidates.

    Candidates are addressed by candidate_id, which is unique within
    one presentation even when two bills share a name and amount.
    """

    def __init__(
        self,
        store: BillStore,
        auth: AuthContext,
        notifier: Optional[Notifier] = None,
        audit_logger: Optional[AuditLogger] = None,
        correlation_id: Optional[UUID] = None,
    ):
        self._store = store
        self._auth = auth
        self._notifier = notifier or CollectingNotifier()
        self._audit_logger = audit_logger
        self.correlation_id = correlation_id

        self._state = ReconcileState.IDLE
        self._candidates: list[ParsedBillCandidate] = []
        self._selected: set[int] = set()
        self._report: Optional[ImportReport] = None

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ReconcileState:
        return self._state

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def candidates(self) -> list[ParsedBillCandidate]:
        return list(self._candidates)

    @property
    def selected_ids(self) -> set[int]:
        return set(self._selected)

    @property
    def selected_candidates(self) -> list[ParsedBillCandidate]:
        """Selected candidates in presentation order."""
        return [c for c in self._candidates if c.candidate_id in self._selected]

    @property
    def report(self) -> Optional[ImportReport]:
        """The last commit's report, if a commit has finished."""
        return self._report

    def is_selected(self, candidate_id: int) -> bool:
        return candidate_id in self._selected

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def present(self, candidates: list[ParsedBillCandidate]) -> ReconcileState:
        """
        Show a new set of candidates, all selected.

        An empty list is a soft failure: the reconciler stays IDLE
        and the user is told nothing was found.
        """
        if self._state is ReconcileState.COMMITTING:
            raise InvalidStateError("Cannot present candidates while committing")

        self._report = None
        if not candidates:
            self._clear()
            self._notifier.notify("No bills found", NO_BILLS_MESSAGE, "destructive")
            return self._state

        ids = [c.candidate_id for c in candidates]
        if len(set(ids)) != len(ids):
            raise ValueError("Candidate ids must be unique")

        self._candidates = list(candidates)
        self._selected = set(ids)
        self._state = ReconcileState.AWAITING_SELECTION

        if self._audit_logger:
            await self._audit_logger.log_candidates_presented(
                count=len(candidates),
                correlation_id=self.correlation_id,
            )
        return self._state

    def _require_selecting(self) -> None:
        if self._state is not ReconcileState.AWAITING_SELECTION:
            raise InvalidStateError(
                f"Selection is not available in state {self._state.value}"
            )

    def _require_known(self, candidate_id: int) -> None:
        if not any(c.candidate_id == candidate_id for c in self._candidates):
            raise KeyError(candidate_id)

    def select(self, candidate_id: int) -> None:
        self._require_selecting()
        self._require_known(candidate_id)
        self._selected.add(candidate_id)

    def deselect(self, candidate_id: int) -> None:
        self._require_selecting()
        self._require_known(candidate_id)
        self._selected.discard(candidate_id)

    def toggle(self, candidate_id: int) -> bool:
        """Flip one candidate. Returns whether it is now selected."""
        self._require_selecting()
        self._require_known(candidate_id)
        if candidate_id in self._selected:
            self._selected.discard(candidate_id)
            return False
        self._selected.add(candidate_id)
        return True

    def select_all(self) -> None:
        self._require_selecting()
        self._selected = {c.candidate_id for c in self._candidates}

    def deselect_all(self) -> None:
        self._require_selecting()
        self._selected.clear()

    def _clear(self) -> None:
        self._state = ReconcileState.IDLE
        self._candidates = []
        self._selected = set()

    async def reset(self) -> None:
        """
        Discard the candidates and go back to IDLE.

        Raises:
            InvalidStateError: While a commit is running
        """
        if self._state is ReconcileState.COMMITTING:
            raise InvalidStateError("Cannot reset while committing")

        discarded = len(self._candidates)
        was_selecting = self._state is ReconcileState.AWAITING_SELECTION
        self._clear()
        self._report = None

        if was_selecting and self._audit_logger:
            await self._audit_logger.log_import_cancelled(
                count=discarded,
                correlation_id=self.correlation_id,
            )

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    async def _commit_one(self, user_id: str, candidate: ParsedBillCandidate) -> Bill:
        due_date = candidate.parsed_due_date()
        if due_date is None:
            raise PersistenceError(f"Invalid due date: {candidate.due_date}")

        try:
            bill = BillInput(
                name=candidate.name,
                amount=candidate.amount,
                due_date=due_date,
                category=candidate.category,
                frequency=candidate.frequency,
                is_paid=False,
            )
        except SchemaError as e:
            raise PersistenceError(f"Invalid bill: {e.error_count()} field error(s)") from e

        return await self._store.create(user_id, bill)

    async def commit(self) -> ImportReport:
        """
        Save the selected candidates, one at a time, in presentation order.

        Raises:
            InvalidStateError: Not awaiting a selection
            AuthRequiredError: Nobody is signed in (state unchanged)
            NoSelectionError: Nothing is selected (state unchanged)
        """
        self._require_selecting()

        user_id = self._auth.current_user_id()
        if not user_id:
            self._notifier.notify("Error", AuthRequiredError.user_message, "destructive")
            raise AuthRequiredError()

        selected = self.selected_candidates
        if not selected:
            self._notifier.notify("Error", NoSelectionError.user_message, "destructive")
            raise NoSelectionError()

        self._state = ReconcileState.COMMITTING
        imported: list[str] = []
        failures: list[ImportFailure] = []

        try:
            for candidate in selected:
                try:
                    bill = await self._commit_one(user_id, candidate)
                except Exception as e:
                    reason = str(e) or type(e).__name__
                    failures.append(ImportFailure(
                        candidate_id=candidate.candidate_id,
                        name=candidate.name,
                        reason=reason,
                    ))
                    logger.warning(
                        "bill_import_failed",
                        candidate_id=candidate.candidate_id,
                        error_type=type(e).__name__,
                        reason=reason,
                    )
                    if self._audit_logger:
                        await self._audit_logger.log_bill_import_failed(
                            candidate_id=candidate.candidate_id,
                            name=candidate.name,
                            reason=reason,
                            correlation_id=self.correlation_id,
                        )
                    continue

                imported.append(bill.id)
                if self._audit_logger:
                    await self._audit_logger.log_bill_imported(
                        bill_id=bill.id,
                        name=bill.name,
                        amount=str(bill.amount),
                        correlation_id=self.correlation_id,
                    )
        finally:
            # An interrupted commit ends in a terminal state all the same
            unfinished = len(imported) + len(failures) < len(selected)
            self._state = (
                ReconcileState.COMPLETED_WITH_ERRORS if failures or unfinished
                else ReconcileState.COMPLETED
            )

        report = ImportReport(
            state=self._state,
            success_count=len(imported),
            error_count=len(failures),
            imported_bill_ids=imported,
            failures=failures,
        )
        self._report = report

        self._notifier.notify("Import Complete", report.summary)
        if self._audit_logger:
            await self._audit_logger.log_import_completed(
                success_count=report.success_count,
                error_count=report.error_count,
                correlation_id=self.correlation_id,
            )

        return report
