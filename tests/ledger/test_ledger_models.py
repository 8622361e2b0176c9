"""
Tests for ledger records and error types.
"""

import pytest
from pydantic import ValidationError

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
from subledger.ledger.models import Plan, Subscription, SubscriptionStatus, TransitionResult


class TestRecords:
    """Test record validation."""

    def test_plan_is_frozen(self):
        """Test plans cannot be mutated in place."""
        plan = Plan(plan_id=1, provider="alice", name="Pro", price=100, duration=30)

        with pytest.raises(ValidationError):
            plan.is_active = False

    @pytest.mark.parametrize(
        "field, value",
        [("plan_id", 0), ("price", 0), ("duration", -1)],
    )
    def test_plan_field_bounds(self, field: str, value: int):
        """Test plan records reject out-of-range values."""
        data = {"plan_id": 1, "provider": "alice", "name": "Pro", "price": 100, "duration": 30}
        data[field] = value

        with pytest.raises(ValidationError):
            Plan(**data)

    def test_subscription_defaults(self):
        """Test new subscription records start active with one payment."""
        subscription = Subscription(
            subscriber="bob", plan_id=1, start_marker=0, last_payment_marker=0
        )

        assert subscription.payments_made == 1
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.cancelled is False

    def test_subscription_requires_a_payment(self):
        """Test a subscription record always has at least one payment."""
        with pytest.raises(ValidationError):
            Subscription(
                subscriber="bob", plan_id=1, start_marker=0, last_payment_marker=0, payments_made=0
            )

    def test_transition_result_constructors(self):
        """Test success and failure results set ok accordingly."""
        assert TransitionResult.success("create_plan", 3).ok is True
        failure = TransitionResult.failure(
            "subscribe",
            error=PlanNotFoundError("missing", plan_id=2).to_dict(),
        )
        assert failure.ok is False
        assert failure.error.error_code == "PLAN_NOT_FOUND"


class TestLedgerErrors:
    """Test the error taxonomy."""

    @pytest.mark.parametrize(
        "error, kind, code, status_code",
        [
            (
                NotAuthorizedError("x", plan_id=1, caller="eve"),
                "NotAuthorized",
                "NOT_AUTHORIZED",
                403,
            ),
            (PlanNotFoundError("x", plan_id=1), "PlanNotFound", "PLAN_NOT_FOUND", 404),
            (
                SubscriptionNotFoundError("x", subscriber="bob", plan_id=1),
                "SubscriptionNotFound",
                "SUBSCRIPTION_NOT_FOUND",
                404,
            ),
            (
                AlreadySubscribedError("x", subscriber="bob", plan_id=1),
                "AlreadySubscribed",
                "ALREADY_SUBSCRIBED",
                409,
            ),
            (
                PaymentFailedError("x", sender="bob", recipient="alice", amount=5),
                "PaymentFailed",
                "PAYMENT_FAILED",
                402,
            ),
            (InvalidAmountError("x", price=0), "InvalidAmount", "INVALID_AMOUNT", 400),
            (InvalidDurationError("x", duration=0), "InvalidDuration", "INVALID_DURATION", 400),
            (
                SubscriptionExpiredError("x", subscriber="bob", plan_id=1),
                "SubscriptionExpired",
                "SUBSCRIPTION_EXPIRED",
                409,
            ),
            (PlanInactiveError("x", plan_id=1), "PlanInactive", "PLAN_INACTIVE", 409),
            (LedgerInvariantError("x"), "InvariantViolation", "INVARIANT_VIOLATION", 500),
            (
                LedgerInternalError("x", operation="subscribe"),
                "InternalFailure",
                "INTERNAL_ERROR",
                500,
            ),
        ],
    )
    def test_error_mapping(self, error: LedgerError, kind: str, code: str, status_code: int):
        """Test each error reports its kind, code and HTTP status."""
        assert isinstance(error, LedgerError)
        assert error.kind == LedgerErrorKind(kind)
        assert error.error_code == code
        assert error.status_code == status_code
        assert error.recovery_hint

    def test_to_dict(self):
        """Test errors serialize for API responses."""
        error = PaymentFailedError("declined", sender="bob", recipient="alice", amount=100)

        assert error.to_dict() == {
            "kind": "PaymentFailed",
            "error_code": "PAYMENT_FAILED",
            "message": "declined",
            "status_code": 402,
            "context": {"sender": "bob", "recipient": "alice", "amount": 100},
            "recovery_hint": "Ensure the sender can cover the plan price and retry",
        }

    def test_str_is_message(self):
        """Test the exception string is the human-readable message."""
        assert str(PlanInactiveError("Plan 1 is not active", plan_id=1)) == "Plan 1 is not active"

    def test_invariant_error_context_defaults_empty(self):
        """Test invariant errors without context report an empty mapping."""
        assert LedgerInvariantError("broken").context == {}
