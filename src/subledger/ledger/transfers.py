"""
Value-transfer collaborators.

The ledger only needs ``transfer(amount, sender, recipient) -> bool``; any
falsy result or exception from the service is treated as a failed payment.
"""

from dataclasses import dataclass
from typing import Protocol

import structlog

from subledger.ledger.models import Principal

logger = structlog.get_logger(__name__)


class ValueTransferService(Protocol):
    """Moves funds between principals, all or nothing."""

    def transfer(self, amount: int, sender: Principal, recipient: Principal) -> bool: ...


@dataclass(frozen=True)
class TransferRecord:
    """A completed transfer."""

    amount: int
    sender: Principal
    recipient: Principal


class BalanceTransferService:
    """
    In-process balance book.

    Rejects non-positive amounts and transfers the sender cannot cover.
    Completed transfers are journaled in order.
    """

    def __init__(self, balances: dict[Principal, int] | None = None) -> None:
        self._balances: dict[Principal, int] = dict(balances or {})
        self.journal: list[TransferRecord] = []

    def deposit(self, principal: Principal, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Deposit amount must be positive")
        self._balances[principal] = self._balances.get(principal, 0) + amount

    def balance_of(self, principal: Principal) -> int:
        return self._balances.get(principal, 0)

    def transfer(self, amount: int, sender: Principal, recipient: Principal) -> bool:
        if amount <= 0:
            logger.warning("Rejected non-positive transfer", amount=amount, sender=sender)
            return False

        available = self._balances.get(sender, 0)
        if available < amount:
            logger.warning(
                "Insufficient balance for transfer",
                sender=sender,
                recipient=recipient,
                amount=amount,
                available=available,
            )
            return False

        self._balances[sender] = available - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        self.journal.append(TransferRecord(amount=amount, sender=sender, recipient=recipient))

        logger.debug("Transfer completed", sender=sender, recipient=recipient, amount=amount)
        return True
