"""Selection and commit of extracted bill candidates."""

from billtracker.reconcile.reconciler import (
    NO_BILLS_MESSAGE,
    AuthContext,
    CandidateReconciler,
    CollectingNotifier,
    Notification,
    Notifier,
    StaticAuthContext,
)

__all__ = [
    "NO_BILLS_MESSAGE",
    "AuthContext",
    "CandidateReconciler",
    "CollectingNotifier",
    "Notification",
    "Notifier",
    "StaticAuthContext",
]
