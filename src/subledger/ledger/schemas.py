"""
Request and response schemas for the ledger HTTP adapter.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from subledger.ledger.models import Plan, Subscription, SubscriptionStatus
from subledger.settings import get_settings


class PlanCreateRequest(BaseModel):
    """Create a plan owned by the calling principal."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, description="Plan display name")
    # Sign checks belong to the ledger so they surface as InvalidAmount / InvalidDuration.
    price: int = Field(..., description="Price per cycle, smallest currency unit")
    duration: int = Field(..., description="Billing duration in abstract time units")

    @field_validator("name")
    @classmethod
    def validate_name_length(cls, v: str) -> str:
        max_length = get_settings().ledger.plan_name_max_length
        if len(v) > max_length:
            raise ValueError(f"Plan name must be at most {max_length} characters")
        return v


class SubscriptionResponse(BaseModel):
    """Subscription record with its derived cancellation flag."""

    subscriber: str
    plan_id: int
    start_marker: int
    last_payment_marker: int
    payments_made: int
    status: SubscriptionStatus
    cancelled: bool

    @classmethod
    def from_record(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(**subscription.model_dump(), cancelled=subscription.cancelled)


class PlanLookupResponse(BaseModel):
    plan: Plan | None = None


class SubscriptionLookupResponse(BaseModel):
    subscription: SubscriptionResponse | None = None


class SubscriptionCheckResponse(BaseModel):
    subscriber: str
    plan_id: int
    result: bool


class SubscriberCountResponse(BaseModel):
    subscriber: str
    active_count: int


class PlanCounterResponse(BaseModel):
    plan_counter: int
