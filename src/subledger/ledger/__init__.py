"""
Subscription ledger.

Provides:
- Plan registry with provider-controlled activation
- Subscription enrollment, recurring payment processing and cancellation
- Per-subscriber active subscription counts
- In-memory and SQL-backed stores
- A serializing gateway returning typed transition results
"""

from subledger.ledger.exceptions import (
    AlreadySubscribedError,
    InvalidAmountError,
    InvalidDurationError,
    LedgerError,
    LedgerErrorKind,
    LedgerInternalError,
    LedgerInvariantError,
    NotAuthorizedError,
    PaymentFailedError,
    PlanInactiveError,
    PlanNotFoundError,
    SubscriptionExpiredError,
    SubscriptionNotFoundError,
)
from subledger.ledger.gateway import LedgerGateway
from subledger.ledger.models import (
    Plan,
    Subscription,
    SubscriptionStatus,
    TransitionError,
    TransitionResult,
)
from subledger.ledger.service import SubscriptionLedger
from subledger.ledger.store import InMemoryLedgerStore, LedgerStore
from subledger.ledger.transfers import BalanceTransferService, ValueTransferService

__all__ = [
    # Exceptions
    "LedgerError",
    "LedgerErrorKind",
    "NotAuthorizedError",
    "PlanNotFoundError",
    "SubscriptionNotFoundError",
    "AlreadySubscribedError",
    "PaymentFailedError",
    "InvalidAmountError",
    "InvalidDurationError",
    "SubscriptionExpiredError",
    "PlanInactiveError",
    "LedgerInvariantError",
    "LedgerInternalError",
    # Records
    "Plan",
    "Subscription",
    "SubscriptionStatus",
    "TransitionError",
    "TransitionResult",
    # Services
    "SubscriptionLedger",
    "LedgerGateway",
    "LedgerStore",
    "InMemoryLedgerStore",
    "ValueTransferService",
    "BalanceTransferService",
]
