"""
Error Taxonomy for the Bill Import Pipeline

Every error carries a short user_message that is safe to show.
Raw model output is never part of a user_message; it is logged instead.

None of these errors is fatal. The worst outcome of any import is
"zero bills imported".
"""

from typing import Optional


class BillImportError(Exception):
    """Base exception for the import pipeline."""

    user_message = "Something went wrong while importing your bills. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class ValidationError(BillImportError):
    """The pasted text is empty or otherwise unusable."""

    user_message = "Please paste some text to process."


class UpstreamError(BillImportError):
    """The completion service answered with a non-success status or was unreachable."""

    user_message = "The AI service is unavailable right now. Please try again."

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class EmptyResponseError(BillImportError):
    """The completion service succeeded but returned no content."""

    user_message = "We couldn't parse any bills. Try reformatting your notes as a simple list."


class MalformedResponseError(BillImportError):
    """The model's output is not the JSON shape we asked for."""

    user_message = "We couldn't parse any bills. Try reformatting your notes as a simple list."


class AuthRequiredError(BillImportError):
    """Committing bills needs a signed-in user."""

    user_message = "You must be logged in."


class NoSelectionError(BillImportError):
    """Committing bills needs at least one selected candidate."""

    user_message = "No bills selected."


class InvalidStateError(BillImportError):
    """The reconciler was asked to do something its current state does not allow."""

    user_message = "That action isn't available right now."


class PersistenceError(BillImportError):
    """One candidate could not be saved. Counted, never raised out of a commit."""

    user_message = "A bill could not be saved."
