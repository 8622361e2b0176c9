"""
Boundary gateway for the subscription ledger.

Serializes every call against the ledger and converts rejected transitions
into ``TransitionResult`` values, so no ledger exception crosses this layer.
"""

import threading
from collections.abc import Callable
from typing import Any

from subledger.ledger.exceptions import LedgerError
from subledger.ledger.models import (
    Plan,
    PlanId,
    Principal,
    Subscription,
    TransitionError,
    TransitionResult,
)
from subledger.ledger.service import SubscriptionLedger


def to_transition_error(error: LedgerError) -> TransitionError:
    return TransitionError(**error.to_dict())


class LedgerGateway:
    """Thread-safe, exception-free facade over a ``SubscriptionLedger``."""

    def __init__(self, ledger: SubscriptionLedger) -> None:
        self._ledger = ledger
        self._lock = threading.RLock()

    @property
    def ledger(self) -> SubscriptionLedger:
        return self._ledger

    def _run(self, operation: str, call: Callable[[], Any]) -> TransitionResult:
        with self._lock:
            try:
                value = call()
            except LedgerError as e:
                return TransitionResult.failure(operation, to_transition_error(e))
        return TransitionResult.success(operation, value)

    # Transitions

    def create_plan(
        self, caller: Principal, name: str, price: int, duration: int
    ) -> TransitionResult:
        return self._run(
            "create_plan", lambda: self._ledger.create_plan(caller, name, price, duration)
        )

    def deactivate_plan(self, caller: Principal, plan_id: PlanId) -> TransitionResult:
        return self._run("deactivate_plan", lambda: self._ledger.deactivate_plan(caller, plan_id))

    def reactivate_plan(self, caller: Principal, plan_id: PlanId) -> TransitionResult:
        return self._run("reactivate_plan", lambda: self._ledger.reactivate_plan(caller, plan_id))

    def subscribe(self, caller: Principal, plan_id: PlanId) -> TransitionResult:
        return self._run("subscribe", lambda: self._ledger.subscribe(caller, plan_id))

    def process_payment(
        self, invoker: Principal, subscriber: Principal, plan_id: PlanId
    ) -> TransitionResult:
        return self._run(
            "process_payment",
            lambda: self._ledger.process_payment(invoker, subscriber, plan_id),
        )

    def cancel_subscription(self, caller: Principal, plan_id: PlanId) -> TransitionResult:
        return self._run(
            "cancel_subscription", lambda: self._ledger.cancel_subscription(caller, plan_id)
        )

    # Queries

    def get_plan(self, plan_id: PlanId) -> Plan | None:
        with self._lock:
            return self._ledger.get_plan(plan_id)

    def get_subscription(self, subscriber: Principal, plan_id: PlanId) -> Subscription | None:
        with self._lock:
            return self._ledger.get_subscription(subscriber, plan_id)

    def is_subscription_active(self, subscriber: Principal, plan_id: PlanId) -> bool:
        with self._lock:
            return self._ledger.is_subscription_active(subscriber, plan_id)

    def get_user_subscription_count(self, subscriber: Principal) -> int:
        with self._lock:
            return self._ledger.get_user_subscription_count(subscriber)

    def get_plan_counter(self) -> int:
        with self._lock:
            return self._ledger.get_plan_counter()

    def is_subscription_valid(self, subscriber: Principal, plan_id: PlanId) -> bool:
        with self._lock:
            return self._ledger.is_subscription_valid(subscriber, plan_id)
