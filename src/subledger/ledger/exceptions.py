"""
Subscription ledger exceptions.

Every rejected transition raises exactly one of these. Each error carries a
machine-readable code, an HTTP status mapping, context and a recovery hint,
and names its kind in the ledger's error taxonomy.
"""

from enum import Enum
from typing import Any


class LedgerErrorKind(str, Enum):
    """Error taxonomy reported for rejected transitions."""

    NOT_AUTHORIZED = "NotAuthorized"
    PLAN_NOT_FOUND = "PlanNotFound"
    SUBSCRIPTION_NOT_FOUND = "SubscriptionNotFound"
    ALREADY_SUBSCRIBED = "AlreadySubscribed"
    PAYMENT_FAILED = "PaymentFailed"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_DURATION = "InvalidDuration"
    SUBSCRIPTION_EXPIRED = "SubscriptionExpired"
    PLAN_INACTIVE = "PlanInactive"
    INVARIANT_VIOLATION = "InvariantViolation"
    INTERNAL_FAILURE = "InternalFailure"


class LedgerError(Exception):
    """
    Base ledger error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    kind: LedgerErrorKind = LedgerErrorKind.INVARIANT_VIOLATION

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "LEDGER_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "kind": self.kind.value,
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


class NotAuthorizedError(LedgerError):
    """Caller is not the plan's provider."""

    kind = LedgerErrorKind.NOT_AUTHORIZED

    def __init__(self, message: str, plan_id: int, caller: str) -> None:
        super().__init__(
            message,
            "NOT_AUTHORIZED",
            status_code=403,
            context={"plan_id": plan_id, "caller": caller},
            recovery_hint="Only the provider that created the plan can change its activation state",
        )


class PlanNotFoundError(LedgerError):
    """Plan not found error."""

    kind = LedgerErrorKind.PLAN_NOT_FOUND

    def __init__(self, message: str, plan_id: int) -> None:
        super().__init__(
            message,
            "PLAN_NOT_FOUND",
            status_code=404,
            context={"plan_id": plan_id},
            recovery_hint="Verify the plan ID; plan IDs are assigned sequentially from 1",
        )


class SubscriptionNotFoundError(LedgerError):
    """No subscription record for the (subscriber, plan) pair."""

    kind = LedgerErrorKind.SUBSCRIPTION_NOT_FOUND

    def __init__(self, message: str, subscriber: str, plan_id: int) -> None:
        super().__init__(
            message,
            "SUBSCRIPTION_NOT_FOUND",
            status_code=404,
            context={"subscriber": subscriber, "plan_id": plan_id},
            recovery_hint="Subscribe to the plan first",
        )


class AlreadySubscribedError(LedgerError):
    """An active subscription already exists for the pair."""

    kind = LedgerErrorKind.ALREADY_SUBSCRIBED

    def __init__(self, message: str, subscriber: str, plan_id: int) -> None:
        super().__init__(
            message,
            "ALREADY_SUBSCRIBED",
            status_code=409,
            context={"subscriber": subscriber, "plan_id": plan_id},
            recovery_hint="Cancel the existing subscription before subscribing again",
        )


class PaymentFailedError(LedgerError):
    """The value transfer backing a transition did not succeed."""

    kind = LedgerErrorKind.PAYMENT_FAILED

    def __init__(self, message: str, sender: str, recipient: str, amount: int) -> None:
        super().__init__(
            message,
            "PAYMENT_FAILED",
            status_code=402,
            context={"sender": sender, "recipient": recipient, "amount": amount},
            recovery_hint="Ensure the sender can cover the plan price and retry",
        )


class InvalidAmountError(LedgerError):
    """Plan price must be positive."""

    kind = LedgerErrorKind.INVALID_AMOUNT

    def __init__(self, message: str, price: int) -> None:
        super().__init__(
            message,
            "INVALID_AMOUNT",
            status_code=400,
            context={"price": price},
            recovery_hint="Use a price greater than zero, in the smallest currency unit",
        )


class InvalidDurationError(LedgerError):
    """Plan duration must be positive."""

    kind = LedgerErrorKind.INVALID_DURATION

    def __init__(self, message: str, duration: int) -> None:
        super().__init__(
            message,
            "INVALID_DURATION",
            status_code=400,
            context={"duration": duration},
            recovery_hint="Use a billing duration greater than zero",
        )


class SubscriptionExpiredError(LedgerError):
    """Subscription has already been cancelled."""

    kind = LedgerErrorKind.SUBSCRIPTION_EXPIRED

    def __init__(self, message: str, subscriber: str, plan_id: int) -> None:
        super().__init__(
            message,
            "SUBSCRIPTION_EXPIRED",
            status_code=409,
            context={"subscriber": subscriber, "plan_id": plan_id},
            recovery_hint="Subscribe again to start a fresh subscription",
        )


class PlanInactiveError(LedgerError):
    """Plan is deactivated; enrollment and billing are blocked."""

    kind = LedgerErrorKind.PLAN_INACTIVE

    def __init__(self, message: str, plan_id: int) -> None:
        super().__init__(
            message,
            "PLAN_INACTIVE",
            status_code=409,
            context={"plan_id": plan_id},
            recovery_hint="The provider must reactivate the plan first",
        )


class LedgerInvariantError(LedgerError):
    """Stored state contradicts a ledger invariant."""

    kind = LedgerErrorKind.INVARIANT_VIOLATION

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            "INVARIANT_VIOLATION",
            status_code=500,
            context=context,
            recovery_hint="Ledger state is inconsistent; investigate before retrying",
        )


class LedgerInternalError(LedgerError):
    """A store or collaborator failed unexpectedly; the transition was rolled back."""

    kind = LedgerErrorKind.INTERNAL_FAILURE

    def __init__(self, message: str, operation: str) -> None:
        super().__init__(
            message,
            "INTERNAL_ERROR",
            status_code=500,
            context={"operation": operation},
            recovery_hint="No ledger state was changed; retry once the backing service recovers",
        )
