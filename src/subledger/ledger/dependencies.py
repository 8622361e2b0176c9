"""
Ledger wiring.

Builds the process-wide gateway from settings and exposes it as a FastAPI
dependency that tests and hosts can override.
"""

import structlog

from subledger.db import create_all_tables, get_session_factory
from subledger.ledger.gateway import LedgerGateway
from subledger.ledger.service import SubscriptionLedger
from subledger.ledger.sql_store import SqlLedgerStore
from subledger.ledger.store import InMemoryLedgerStore, LedgerStore
from subledger.ledger.transfers import BalanceTransferService, ValueTransferService
from subledger.settings import StorageBackend, get_settings

logger = structlog.get_logger(__name__)

_gateway: LedgerGateway | None = None


def build_ledger_store() -> LedgerStore:
    """Create the store selected by ``ledger.storage_backend``."""
    backend = get_settings().ledger.storage_backend
    if backend == StorageBackend.SQL:
        create_all_tables()
        return SqlLedgerStore(get_session_factory())
    return InMemoryLedgerStore()


def build_ledger_gateway(transfers: ValueTransferService | None = None) -> LedgerGateway:
    """Assemble a gateway over a fresh ledger."""
    store = build_ledger_store()
    ledger = SubscriptionLedger(store, transfers or BalanceTransferService())
    logger.info("Ledger initialized", store=type(store).__name__)
    return LedgerGateway(ledger)


def get_ledger_gateway() -> LedgerGateway:
    """FastAPI dependency returning the global gateway."""
    global _gateway
    if _gateway is None:
        _gateway = build_ledger_gateway()
    return _gateway


def set_ledger_gateway(gateway: LedgerGateway | None) -> None:
    """Replace the global gateway (None resets it)."""
    global _gateway
    _gateway = gateway
