"""
SQL-backed ledger store.

Each transition runs in its own session and commits once at the end of
``transaction()``; any exception rolls the whole session back.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, Session, mapped_column

from subledger.db import Base
from subledger.ledger.models import Plan, PlanId, Principal, Subscription, SubscriptionStatus
from subledger.ledger.store import LedgerStore

PLAN_COUNTER = "plan_counter"


class LedgerPlanTable(Base):
    """SQLAlchemy table for the plan registry."""

    __tablename__ = "ledger_plans"

    plan_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    provider: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class LedgerSubscriptionTable(Base):
    """SQLAlchemy table for the subscription index."""

    __tablename__ = "ledger_subscriptions"

    subscriber: Mapped[str] = mapped_column(String(255), primary_key=True)
    plan_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    start_marker: Mapped[int] = mapped_column(Integer, nullable=False)
    last_payment_marker: Mapped[int] = mapped_column(Integer, nullable=False)
    payments_made: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value
    )


class LedgerSubscriberCounterTable(Base):
    """SQLAlchemy table for per-subscriber active counts."""

    __tablename__ = "ledger_subscriber_counters"

    subscriber: Mapped[str] = mapped_column(String(255), primary_key=True)
    active_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class LedgerCounterTable(Base):
    """SQLAlchemy table for named ledger-wide counters."""

    __tablename__ = "ledger_counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SqlLedgerStore(LedgerStore):
    """Ledger store persisted through SQLAlchemy sessions."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._session is not None:
            yield
            return

        session = self._session_factory()
        self._session = session
        try:
            yield
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            self._session = None
            session.close()

    @contextmanager
    def _reading(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def _write(self, row: Base) -> None:
        if self._session is None:
            raise RuntimeError("Ledger writes require an open transaction")
        self._session.merge(row)
        # Sessions do not autoflush; later reads in the same transition must see this row.
        self._session.flush()

    # Plans

    def get_plan(self, plan_id: PlanId) -> Plan | None:
        with self._reading() as session:
            row = session.get(LedgerPlanTable, plan_id)
            return Plan.model_validate(row) if row is not None else None

    def put_plan(self, plan: Plan) -> None:
        self._write(LedgerPlanTable(**plan.model_dump()))

    def get_plan_counter(self) -> int:
        with self._reading() as session:
            row = session.get(LedgerCounterTable, PLAN_COUNTER)
            return row.value if row is not None else 0

    def set_plan_counter(self, value: int) -> None:
        self._write(LedgerCounterTable(name=PLAN_COUNTER, value=value))

    # Subscriptions

    def get_subscription(self, subscriber: Principal, plan_id: PlanId) -> Subscription | None:
        with self._reading() as session:
            row = session.get(LedgerSubscriptionTable, (subscriber, plan_id))
            return Subscription.model_validate(row) if row is not None else None

    def put_subscription(self, subscription: Subscription) -> None:
        data = subscription.model_dump()
        data["status"] = subscription.status.value
        self._write(LedgerSubscriptionTable(**data))

    # Subscriber counters

    def get_active_count(self, subscriber: Principal) -> int | None:
        with self._reading() as session:
            row = session.get(LedgerSubscriberCounterTable, subscriber)
            return row.active_count if row is not None else None

    def set_active_count(self, subscriber: Principal, value: int) -> None:
        self._write(LedgerSubscriberCounterTable(subscriber=subscriber, active_count=value))
