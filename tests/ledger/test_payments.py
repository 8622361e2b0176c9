"""
Tests for recurring payment processing.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from subledger.ledger.exceptions import (
    LedgerErrorKind,
    LedgerInternalError,
    PaymentFailedError,
    PlanInactiveError,
    PlanNotFoundError,
    SubscriptionExpiredError,
    SubscriptionNotFoundError,
)
from subledger.ledger.service import SubscriptionLedger
from subledger.ledger.store import InMemoryLedgerStore
from subledger.ledger.transfers import BalanceTransferService


@pytest.fixture
def subscribed(ledger: SubscriptionLedger, subscriber: str, plan_id: int) -> int:
    """Plan id the funded subscriber is enrolled in."""
    ledger.subscribe(subscriber, plan_id)
    return plan_id


class TestProcessPayment:
    """Test the process_payment transition."""

    def test_payment_success(
        self,
        ledger: SubscriptionLedger,
        transfers: BalanceTransferService,
        starting_balance: int,
        provider: str,
        subscriber: str,
        subscribed: int,
    ):
        """Test a payment moves the price and bumps payments_made."""
        ledger.process_payment("scheduler", subscriber, subscribed)

        subscription = ledger.get_subscription(subscriber, subscribed)
        assert subscription.payments_made == 2
        assert subscription.last_payment_marker == 1
        assert subscription.start_marker == 0
        assert transfers.balance_of(subscriber) == starting_balance - 200
        assert transfers.balance_of(provider) == 200

    def test_marker_tracks_previous_payment_count(
        self, ledger: SubscriptionLedger, subscriber: str, subscribed: int
    ):
        """Test each payment records the count before it as its marker."""
        for expected_marker in range(1, 4):
            ledger.process_payment("scheduler", subscriber, subscribed)
            subscription = ledger.get_subscription(subscriber, subscribed)
            assert subscription.last_payment_marker == expected_marker
            assert subscription.payments_made == expected_marker + 1

    def test_payment_does_not_change_active_count(
        self, ledger: SubscriptionLedger, subscriber: str, subscribed: int
    ):
        """Test billing leaves the subscriber's active count alone."""
        ledger.process_payment("scheduler", subscriber, subscribed)

        assert ledger.get_user_subscription_count(subscriber) == 1

    def test_subscriber_may_invoke_own_payment(
        self, ledger: SubscriptionLedger, subscriber: str, subscribed: int
    ):
        """Test the invoker can be the subscriber themselves."""
        ledger.process_payment(subscriber, subscriber, subscribed)

        assert ledger.get_subscription(subscriber, subscribed).payments_made == 2

    def test_unknown_plan(self, ledger: SubscriptionLedger, subscriber: str):
        """Test billing a missing plan fails with PlanNotFound."""
        with pytest.raises(PlanNotFoundError):
            ledger.process_payment("scheduler", subscriber, 5)

    def test_unknown_subscription(self, ledger: SubscriptionLedger, plan_id: int):
        """Test billing a non-subscriber fails with SubscriptionNotFound."""
        with pytest.raises(SubscriptionNotFoundError) as exc_info:
            ledger.process_payment("scheduler", "nobody", plan_id)

        assert exc_info.value.kind == LedgerErrorKind.SUBSCRIPTION_NOT_FOUND
        assert exc_info.value.status_code == 404

    def test_cancelled_subscription_expired(
        self,
        ledger: SubscriptionLedger,
        transfers: BalanceTransferService,
        subscriber: str,
        subscribed: int,
    ):
        """Test billing a cancelled subscription fails with SubscriptionExpired."""
        ledger.cancel_subscription(subscriber, subscribed)

        with pytest.raises(SubscriptionExpiredError):
            ledger.process_payment("scheduler", subscriber, subscribed)

        assert ledger.get_subscription(subscriber, subscribed).payments_made == 1
        assert len(transfers.journal) == 1

    def test_inactive_plan(
        self,
        ledger: SubscriptionLedger,
        transfers: BalanceTransferService,
        provider: str,
        subscriber: str,
        subscribed: int,
    ):
        """Test billing against a deactivated plan fails with PlanInactive."""
        ledger.deactivate_plan(provider, subscribed)

        with pytest.raises(PlanInactiveError):
            ledger.process_payment("scheduler", subscriber, subscribed)

        assert ledger.get_subscription(subscriber, subscribed).payments_made == 1
        assert len(transfers.journal) == 1

    def test_cancelled_checked_before_inactive_plan(
        self, ledger: SubscriptionLedger, provider: str, subscriber: str, subscribed: int
    ):
        """Test a cancelled subscription on an inactive plan reports SubscriptionExpired."""
        ledger.cancel_subscription(subscriber, subscribed)
        ledger.deactivate_plan(provider, subscribed)

        with pytest.raises(SubscriptionExpiredError):
            ledger.process_payment("scheduler", subscriber, subscribed)

    def test_payment_resumes_after_reactivation(
        self, ledger: SubscriptionLedger, provider: str, subscriber: str, subscribed: int
    ):
        """Test billing works again once the provider reopens the plan."""
        ledger.deactivate_plan(provider, subscribed)
        ledger.reactivate_plan(provider, subscribed)

        ledger.process_payment("scheduler", subscriber, subscribed)

        assert ledger.get_subscription(subscriber, subscribed).payments_made == 2

    def test_declined_payment_changes_nothing(
        self,
        ledger: SubscriptionLedger,
        transfers: BalanceTransferService,
        provider: str,
        subscriber: str,
        subscribed: int,
    ):
        """Test an underfunded cycle fails with PaymentFailed and keeps the record."""
        transfers.transfer(transfers.balance_of(subscriber), subscriber, "elsewhere")
        before = ledger.get_subscription(subscriber, subscribed)

        with pytest.raises(PaymentFailedError) as exc_info:
            ledger.process_payment("scheduler", subscriber, subscribed)

        assert exc_info.value.context == {
            "sender": subscriber,
            "recipient": provider,
            "amount": 100,
        }
        assert ledger.get_subscription(subscriber, subscribed) == before
        assert transfers.balance_of(provider) == 100

    def test_transfer_exception_rolls_back(self, store, provider: str, subscriber: str):
        """Test a transfer service that raises mid-billing leaves the record as it was."""

        class FlakyTransfers:
            def __init__(self):
                self.calls = 0

            def transfer(self, amount, sender, recipient):
                self.calls += 1
                if self.calls > 1:
                    raise TimeoutError("settlement timed out")
                return True

        ledger = SubscriptionLedger(store, FlakyTransfers())
        plan_id = ledger.create_plan(provider, "Pro", 100, 30)
        ledger.subscribe(subscriber, plan_id)

        with pytest.raises(PaymentFailedError):
            ledger.process_payment("scheduler", subscriber, plan_id)

        subscription = ledger.get_subscription(subscriber, plan_id)
        assert subscription.payments_made == 1
        assert subscription.last_payment_marker == 0

    def test_payment_uses_current_price(
        self,
        ledger: SubscriptionLedger,
        store,
        transfers: BalanceTransferService,
        provider: str,
        subscriber: str,
        subscribed: int,
    ):
        """Test each cycle charges the plan's stored price at billing time."""
        with store.transaction():
            store.put_plan(ledger.get_plan(subscribed).model_copy(update={"price": 250}))

        ledger.process_payment("scheduler", subscriber, subscribed)

        assert transfers.journal[-1].amount == 250
        assert transfers.balance_of(provider) == 350


class CommitFailingStore(InMemoryLedgerStore):
    """In-memory store whose commit can be made to fail after the body ran."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_commit = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with super().transaction():
            yield
            if self.fail_commit:
                raise RuntimeError("commit lost")


class TestCommitFailure:
    """Test transitions whose commit fails after the transfer went through."""

    @pytest.fixture
    def failing_store(self) -> CommitFailingStore:
        return CommitFailingStore()

    def test_subscribe_commit_failure_refunds(
        self,
        failing_store: CommitFailingStore,
        transfers: BalanceTransferService,
        starting_balance: int,
        provider: str,
        subscriber: str,
    ):
        """Test the first payment is reversed when enrolment cannot be committed."""
        ledger = SubscriptionLedger(failing_store, transfers)
        plan_id = ledger.create_plan(provider, "Pro", 100, 30)
        failing_store.fail_commit = True

        with pytest.raises(LedgerInternalError) as exc_info:
            ledger.subscribe(subscriber, plan_id)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert transfers.balance_of(subscriber) == starting_balance
        assert transfers.balance_of(provider) == 0
        assert [(t.sender, t.recipient) for t in transfers.journal] == [
            (subscriber, provider),
            (provider, subscriber),
        ]
        assert ledger.get_subscription(subscriber, plan_id) is None
        assert ledger.get_user_subscription_count(subscriber) == 0

    def test_payment_commit_failure_refunds(
        self,
        failing_store: CommitFailingStore,
        transfers: BalanceTransferService,
        starting_balance: int,
        provider: str,
        subscriber: str,
    ):
        """Test a billed cycle is reversed when the payment cannot be committed."""
        ledger = SubscriptionLedger(failing_store, transfers)
        plan_id = ledger.create_plan(provider, "Pro", 100, 30)
        ledger.subscribe(subscriber, plan_id)
        failing_store.fail_commit = True

        with pytest.raises(LedgerInternalError):
            ledger.process_payment("scheduler", subscriber, plan_id)

        failing_store.fail_commit = False
        assert transfers.balance_of(subscriber) == starting_balance - 100
        assert transfers.balance_of(provider) == 100
        assert ledger.get_subscription(subscriber, plan_id).payments_made == 1

    def test_declined_transfer_needs_no_refund(
        self,
        failing_store: CommitFailingStore,
        transfers: BalanceTransferService,
        provider: str,
        broke_subscriber: str,
    ):
        """Test a declined payment leaves the journal empty."""
        ledger = SubscriptionLedger(failing_store, transfers)
        plan_id = ledger.create_plan(provider, "Pro", 100, 30)
        failing_store.fail_commit = True

        with pytest.raises(PaymentFailedError):
            ledger.subscribe(broke_subscriber, plan_id)

        assert transfers.journal == []
