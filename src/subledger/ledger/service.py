"""
Subscription ledger service.

Owns the plan registry, the subscription index, the subscriber active counts
and the plan counter, and exposes the transitions and read-only queries over
them.

Every transition validates against current state, stages its writes and then
performs its value transfer (if any) as the last step, all inside a single
store transaction. The first failing check raises and nothing is written; a
failed transfer is raised as ``PaymentFailedError`` and discards the staged
writes. Queries never raise for missing data.

Callers must serialize transitions; ``LedgerGateway`` does so for the HTTP
adapter.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from subledger.ledger.events import LedgerEvents, emit_ledger_event
from subledger.ledger.exceptions import (
    AlreadySubscribedError,
    InvalidAmountError,
    InvalidDurationError,
    LedgerError,
    LedgerInternalError,
    LedgerInvariantError,
    NotAuthorizedError,
    PaymentFailedError,
    PlanInactiveError,
    PlanNotFoundError,
    SubscriptionExpiredError,
    SubscriptionNotFoundError,
)
from subledger.ledger.models import (
    Plan,
    PlanId,
    Principal,
    Subscription,
    SubscriptionStatus,
)
from subledger.ledger.store import LedgerStore
from subledger.ledger.transfers import ValueTransferService
from subledger.settings import get_settings

logger = structlog.get_logger(__name__)

# (amount, sender, recipient) of a completed transfer
Charge = tuple[int, Principal, Principal]


class SubscriptionLedger:
    """Recurring-billing ledger over a ``LedgerStore``."""

    def __init__(
        self,
        store: LedgerStore,
        transfers: ValueTransferService,
        marker_source: Callable[[], int] | None = None,
    ) -> None:
        """
        Args:
            store: Backing store for plans, subscriptions and counters
            transfers: Service moving plan prices from subscribers to providers
            marker_source: External clock producing the start/last-payment
                marker of new subscriptions; defaults to the configured
                ``initial_marker``
        """
        self._store = store
        self._transfers = transfers
        if marker_source is None:
            initial_marker = get_settings().ledger.initial_marker
            marker_source = lambda: initial_marker  # noqa: E731
        self._marker_source = marker_source

    @contextmanager
    def _transition(self, operation: str, **fields: Any) -> Iterator[list[Charge]]:
        """
        Run one transition inside a store transaction.

        Yields the list of completed charges. If the transition fails after a
        charge went through (e.g. the commit itself fails), each charge is
        reversed. Failures outside the ledger's taxonomy are raised as
        ``LedgerInternalError``.
        """
        log = logger.bind(operation=operation, **fields)
        charges: list[Charge] = []
        try:
            with self._store.transaction():
                yield charges
        except LedgerError as e:
            self._refund(charges)
            log.warning(
                "Ledger transition rejected",
                kind=e.kind.value,
                error_code=e.error_code,
                error=e.message,
            )
            raise
        except Exception as e:
            self._refund(charges)
            log.error("Ledger transition failed", error=str(e), exc_info=True)
            raise LedgerInternalError(
                f"{operation} failed and was rolled back: {e}", operation=operation
            ) from e

    def _require_plan(self, plan_id: PlanId) -> Plan:
        plan = self._store.get_plan(plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Plan {plan_id} not found", plan_id=plan_id)
        return plan

    def _refund(self, charges: list[Charge]) -> None:
        for amount, sender, recipient in reversed(charges):
            try:
                refunded = self._transfers.transfer(amount, recipient, sender)
            except Exception:
                logger.exception(
                    "Compensating transfer raised",
                    sender=recipient,
                    recipient=sender,
                    amount=amount,
                )
                continue
            if not refunded:
                logger.error(
                    "Compensating transfer declined",
                    sender=recipient,
                    recipient=sender,
                    amount=amount,
                )

    def _charge(
        self, charges: list[Charge], amount: int, sender: Principal, recipient: Principal
    ) -> None:
        """Move funds or raise ``PaymentFailedError``; the last step before commit."""
        try:
            succeeded = self._transfers.transfer(amount, sender, recipient)
        except Exception as e:
            logger.error(
                "Value transfer raised",
                sender=sender,
                recipient=recipient,
                amount=amount,
                error=str(e),
            )
            raise PaymentFailedError(
                f"Transfer of {amount} from {sender} to {recipient} failed: {e}",
                sender=sender,
                recipient=recipient,
                amount=amount,
            ) from e

        if not succeeded:
            raise PaymentFailedError(
                f"Transfer of {amount} from {sender} to {recipient} was declined",
                sender=sender,
                recipient=recipient,
                amount=amount,
            )
        charges.append((amount, sender, recipient))

    # ========================================================================
    # Plan Registry
    # ========================================================================

    def create_plan(self, caller: Principal, name: str, price: int, duration: int) -> PlanId:
        """Register a plan owned by ``caller`` and return its identifier."""
        with self._transition("create_plan", caller=caller):
            if price <= 0:
                raise InvalidAmountError(f"Plan price must be positive, got {price}", price=price)
            if duration <= 0:
                raise InvalidDurationError(
                    f"Plan duration must be positive, got {duration}", duration=duration
                )

            plan_id = self._store.get_plan_counter() + 1
            self._store.put_plan(
                Plan(
                    plan_id=plan_id,
                    provider=caller,
                    name=name,
                    price=price,
                    duration=duration,
                    is_active=True,
                )
            )
            self._store.set_plan_counter(plan_id)

        logger.info("Plan created", plan_id=plan_id, provider=caller, price=price, duration=duration)
        emit_ledger_event(
            LedgerEvents.PLAN_CREATED, caller, plan_id, price=price, duration=duration
        )
        return plan_id

    def deactivate_plan(self, caller: Principal, plan_id: PlanId) -> None:
        """Close a plan to enrollment and billing. Idempotent for the provider."""
        if self._set_plan_active("deactivate_plan", caller, plan_id, active=False):
            emit_ledger_event(LedgerEvents.PLAN_DEACTIVATED, caller, plan_id)

    def reactivate_plan(self, caller: Principal, plan_id: PlanId) -> None:
        """Reopen a plan. Idempotent for the provider."""
        if self._set_plan_active("reactivate_plan", caller, plan_id, active=True):
            emit_ledger_event(LedgerEvents.PLAN_REACTIVATED, caller, plan_id)

    def _set_plan_active(
        self, operation: str, caller: Principal, plan_id: PlanId, active: bool
    ) -> bool:
        """Apply the activation flag; returns whether the stored plan changed."""
        with self._transition(operation, caller=caller, plan_id=plan_id):
            plan = self._require_plan(plan_id)
            if caller != plan.provider:
                raise NotAuthorizedError(
                    f"{caller} is not the provider of plan {plan_id}",
                    plan_id=plan_id,
                    caller=caller,
                )
            changed = plan.is_active != active
            if changed:
                self._store.put_plan(plan.model_copy(update={"is_active": active}))

        if changed:
            logger.info("Plan activation set", plan_id=plan_id, is_active=active)
        return changed

    # ========================================================================
    # Enrollment
    # ========================================================================

    def subscribe(self, caller: Principal, plan_id: PlanId) -> None:
        """
        Enroll ``caller`` in a plan, taking the first payment.

        A cancelled record for the same pair is replaced by a fresh one.
        """
        with self._transition("subscribe", caller=caller, plan_id=plan_id) as charges:
            plan = self._require_plan(plan_id)
            if not plan.is_active:
                raise PlanInactiveError(f"Plan {plan_id} is not active", plan_id=plan_id)

            existing = self._store.get_subscription(caller, plan_id)
            if existing is not None and not existing.cancelled:
                raise AlreadySubscribedError(
                    f"{caller} is already subscribed to plan {plan_id}",
                    subscriber=caller,
                    plan_id=plan_id,
                )

            marker = self._marker_source()
            self._store.put_subscription(
                Subscription(
                    subscriber=caller,
                    plan_id=plan_id,
                    start_marker=marker,
                    last_payment_marker=marker,
                    payments_made=1,
                    status=SubscriptionStatus.ACTIVE,
                )
            )
            active_count = self._store.get_active_count(caller) or 0
            self._store.set_active_count(caller, active_count + 1)

            self._charge(charges, plan.price, caller, plan.provider)

        logger.info("Subscription created", subscriber=caller, plan_id=plan_id, amount=plan.price)
        emit_ledger_event(
            LedgerEvents.SUBSCRIPTION_CREATED,
            caller,
            plan_id,
            subscriber=caller,
            amount=plan.price,
            resubscribed=existing is not None,
        )

    # ========================================================================
    # Payment Processing
    # ========================================================================

    def process_payment(self, invoker: Principal, subscriber: Principal, plan_id: PlanId) -> None:
        """
        Bill one cycle of ``subscriber``'s subscription at the plan's current price.

        Any invoker may trigger billing; deciding who and when is the
        scheduler's policy.
        """
        with self._transition(
            "process_payment", invoker=invoker, subscriber=subscriber, plan_id=plan_id
        ) as charges:
            plan = self._require_plan(plan_id)
            subscription = self._store.get_subscription(subscriber, plan_id)
            if subscription is None:
                raise SubscriptionNotFoundError(
                    f"No subscription for {subscriber} on plan {plan_id}",
                    subscriber=subscriber,
                    plan_id=plan_id,
                )
            if subscription.cancelled:
                raise SubscriptionExpiredError(
                    f"Subscription of {subscriber} to plan {plan_id} is cancelled",
                    subscriber=subscriber,
                    plan_id=plan_id,
                )
            if not plan.is_active:
                raise PlanInactiveError(f"Plan {plan_id} is not active", plan_id=plan_id)

            # The previous payment count doubles as the sequencing marker.
            updated = subscription.model_copy(
                update={
                    "last_payment_marker": subscription.payments_made,
                    "payments_made": subscription.payments_made + 1,
                }
            )
            self._store.put_subscription(updated)

            self._charge(charges, plan.price, subscriber, plan.provider)

        logger.info(
            "Subscription payment processed",
            subscriber=subscriber,
            plan_id=plan_id,
            amount=plan.price,
            payments_made=updated.payments_made,
        )
        emit_ledger_event(
            LedgerEvents.SUBSCRIPTION_PAYMENT_PROCESSED,
            invoker,
            plan_id,
            subscriber=subscriber,
            amount=plan.price,
            payments_made=updated.payments_made,
        )

    # ========================================================================
    # Cancellation
    # ========================================================================

    def cancel_subscription(self, caller: Principal, plan_id: PlanId) -> None:
        """Cancel ``caller``'s subscription. A second cancel is an error."""
        with self._transition("cancel_subscription", caller=caller, plan_id=plan_id):
            subscription = self._store.get_subscription(caller, plan_id)
            if subscription is None:
                raise SubscriptionNotFoundError(
                    f"No subscription for {caller} on plan {plan_id}",
                    subscriber=caller,
                    plan_id=plan_id,
                )
            if subscription.cancelled:
                raise SubscriptionExpiredError(
                    f"Subscription of {caller} to plan {plan_id} is already cancelled",
                    subscriber=caller,
                    plan_id=plan_id,
                )

            active_count = self._store.get_active_count(caller)
            if not active_count:
                raise LedgerInvariantError(
                    f"Active subscription count for {caller} would drop below zero",
                    context={"subscriber": caller, "plan_id": plan_id, "stored_count": active_count},
                )

            self._store.put_subscription(
                subscription.model_copy(update={"status": SubscriptionStatus.CANCELLED})
            )
            self._store.set_active_count(caller, active_count - 1)

        logger.info("Subscription cancelled", subscriber=caller, plan_id=plan_id)
        emit_ledger_event(
            LedgerEvents.SUBSCRIPTION_CANCELLED,
            caller,
            plan_id,
            subscriber=caller,
            payments_made=subscription.payments_made,
        )

    # ========================================================================
    # Queries
    # ========================================================================

    def get_plan(self, plan_id: PlanId) -> Plan | None:
        return self._store.get_plan(plan_id)

    def get_subscription(self, subscriber: Principal, plan_id: PlanId) -> Subscription | None:
        return self._store.get_subscription(subscriber, plan_id)

    def is_subscription_active(self, subscriber: Principal, plan_id: PlanId) -> bool:
        subscription = self._store.get_subscription(subscriber, plan_id)
        return subscription is not None and not subscription.cancelled

    def get_user_subscription_count(self, subscriber: Principal) -> int:
        return self._store.get_active_count(subscriber) or 0

    def get_plan_counter(self) -> int:
        return self._store.get_plan_counter()

    def is_subscription_valid(self, subscriber: Principal, plan_id: PlanId) -> bool:
        """True only when the subscription is live and its plan is open."""
        if not self.is_subscription_active(subscriber, plan_id):
            return False
        plan = self._store.get_plan(plan_id)
        return plan is not None and plan.is_active
