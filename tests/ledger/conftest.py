"""
Pytest fixtures for subscription ledger tests.

Transition tests take the ``store`` fixture, which runs them once against the
in-memory store and once against the SQL store.
"""

import pytest
from sqlalchemy.orm import sessionmaker

from subledger.db import build_engine, create_all_tables, drop_all_tables
from subledger.ledger.gateway import LedgerGateway
from subledger.ledger.service import SubscriptionLedger
from subledger.ledger.sql_store import SqlLedgerStore
from subledger.ledger.store import InMemoryLedgerStore
from subledger.ledger.transfers import BalanceTransferService


@pytest.fixture
def provider() -> str:
    """Plan provider principal."""
    return "provider-alice"


@pytest.fixture
def subscriber() -> str:
    """Funded subscriber principal."""
    return "subscriber-bob"


@pytest.fixture
def broke_subscriber() -> str:
    """Subscriber principal with no funds."""
    return "subscriber-carol"


@pytest.fixture
def starting_balance() -> int:
    return 10_000


@pytest.fixture
def transfers(subscriber: str, starting_balance: int) -> BalanceTransferService:
    """Balance book with a funded subscriber."""
    return BalanceTransferService({subscriber: starting_balance})


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def sql_engine(tmp_path):
    """SQLite engine with ledger tables created."""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_all_tables(engine)
    yield engine
    drop_all_tables(engine)
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine) -> SqlLedgerStore:
    return SqlLedgerStore(sessionmaker(bind=sql_engine, autoflush=False, expire_on_commit=False))


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each ledger store implementation."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def ledger(store, transfers: BalanceTransferService) -> SubscriptionLedger:
    return SubscriptionLedger(store, transfers)


@pytest.fixture
def plan_id(ledger: SubscriptionLedger, provider: str) -> int:
    """An active plan priced at 100 with duration 30."""
    return ledger.create_plan(provider, "Pro", 100, 30)


@pytest.fixture
def gateway(ledger: SubscriptionLedger) -> LedgerGateway:
    return LedgerGateway(ledger)
