"""
Ledger records and boundary result types.

Records are immutable; transitions write replacement copies through the store.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Opaque caller identity supplied by the boundary.
Principal = str
PlanId = int


class LedgerBaseModel(BaseModel):
    """Base model for all ledger records."""

    model_config = ConfigDict(frozen=True, from_attributes=True, use_enum_values=False)


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class Plan(LedgerBaseModel):
    """Provider-defined subscription offering."""

    plan_id: PlanId = Field(ge=1, description="Sequential plan identifier")
    provider: Principal = Field(description="Identity that created the plan and receives payments")
    name: str = Field(description="Display name")
    price: int = Field(gt=0, description="Price per billing cycle, smallest currency unit")
    duration: int = Field(gt=0, description="Billing duration in abstract time units")
    is_active: bool = Field(True, description="Whether enrollment and billing are open")


class Subscription(LedgerBaseModel):
    """A subscriber's enrollment record against one plan."""

    subscriber: Principal
    plan_id: PlanId = Field(ge=1)
    start_marker: int = Field(ge=0, description="Opaque sequencing value at enrollment")
    last_payment_marker: int = Field(ge=0, description="Opaque sequencing value of the last payment")
    payments_made: int = Field(1, ge=1, description="Payments taken, including the initial one")
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE

    @property
    def cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED


class TransitionError(LedgerBaseModel):
    """Inspectable failure of a transition."""

    kind: str
    error_code: str
    message: str
    status_code: int
    context: dict[str, Any] = Field(default_factory=dict)
    recovery_hint: str | None = None


class TransitionResult(LedgerBaseModel):
    """
    Outcome of a transition at the gateway boundary.

    Exactly one of ``value`` (on success, may still be None for unit results)
    or ``error`` is meaningful, as indicated by ``ok``.
    """

    operation: str
    ok: bool
    value: Any = None
    error: TransitionError | None = None

    @classmethod
    def success(cls, operation: str, value: Any = None) -> "TransitionResult":
        return cls(operation=operation, ok=True, value=value)

    @classmethod
    def failure(cls, operation: str, error: TransitionError) -> "TransitionResult":
        return cls(operation=operation, ok=False, error=error)
