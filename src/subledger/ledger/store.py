"""
Ledger storage.

A store holds the plan registry, the subscription index, the subscriber
active counts and the plan counter. Every transition runs inside
``store.transaction()``; leaving the block with an exception discards all
writes made inside it.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from subledger.ledger.models import Plan, PlanId, Principal, Subscription


class LedgerStore(ABC):
    """Storage contract required by the ledger."""

    @abstractmethod
    def transaction(self) -> Iterator[None]:
        """Context manager making the enclosed reads and writes one unit."""

    @abstractmethod
    def get_plan(self, plan_id: PlanId) -> Plan | None: ...

    @abstractmethod
    def put_plan(self, plan: Plan) -> None: ...

    @abstractmethod
    def get_plan_counter(self) -> int: ...

    @abstractmethod
    def set_plan_counter(self, value: int) -> None: ...

    @abstractmethod
    def get_subscription(self, subscriber: Principal, plan_id: PlanId) -> Subscription | None: ...

    @abstractmethod
    def put_subscription(self, subscription: Subscription) -> None: ...

    @abstractmethod
    def get_active_count(self, subscriber: Principal) -> int | None:
        """Stored active count, or None if the subscriber never appeared."""

    @abstractmethod
    def set_active_count(self, subscriber: Principal, value: int) -> None: ...


class InMemoryLedgerStore(LedgerStore):
    """Dictionary-backed store; rolls back by restoring a snapshot."""

    def __init__(self) -> None:
        self._plans: dict[PlanId, Plan] = {}
        self._subscriptions: dict[tuple[Principal, PlanId], Subscription] = {}
        self._active_counts: dict[Principal, int] = {}
        self._plan_counter = 0
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            # Nested blocks join the outer transaction.
            yield
            return

        # Records are frozen, so shallow copies are full snapshots.
        snapshot = (
            dict(self._plans),
            dict(self._subscriptions),
            dict(self._active_counts),
            self._plan_counter,
        )
        self._depth += 1
        try:
            yield
        except BaseException:
            self._plans, self._subscriptions, self._active_counts, self._plan_counter = snapshot
            raise
        finally:
            self._depth -= 1

    def get_plan(self, plan_id: PlanId) -> Plan | None:
        return self._plans.get(plan_id)

    def put_plan(self, plan: Plan) -> None:
        self._plans[plan.plan_id] = plan

    def get_plan_counter(self) -> int:
        return self._plan_counter

    def set_plan_counter(self, value: int) -> None:
        self._plan_counter = value

    def get_subscription(self, subscriber: Principal, plan_id: PlanId) -> Subscription | None:
        return self._subscriptions.get((subscriber, plan_id))

    def put_subscription(self, subscription: Subscription) -> None:
        self._subscriptions[(subscription.subscriber, subscription.plan_id)] = subscription

    def get_active_count(self, subscriber: Principal) -> int | None:
        return self._active_counts.get(subscriber)

    def set_active_count(self, subscriber: Principal, value: int) -> None:
        self._active_counts[subscriber] = value
