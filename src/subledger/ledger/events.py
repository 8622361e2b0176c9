"""
Ledger event types and emission helpers.

Events are emitted only after a transition has committed, as structured
audit log entries.
"""

from typing import Any

from subledger.logging import log_audit_event
from subledger.settings import get_settings


class LedgerEvents:
    """Ledger event type constants."""

    # Plan events
    PLAN_CREATED = "plan.created"
    PLAN_DEACTIVATED = "plan.deactivated"
    PLAN_REACTIVATED = "plan.reactivated"

    # Subscription events
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_PAYMENT_PROCESSED = "subscription.payment_processed"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"


def emit_ledger_event(
    event_type: str,
    principal: str,
    plan_id: int,
    subscriber: str | None = None,
    **payload: Any,
) -> None:
    """
    Emit a committed ledger event to the audit trail.

    Args:
        event_type: One of the ``LedgerEvents`` constants
        principal: Identity that invoked the transition
        plan_id: Plan the event concerns
        subscriber: Subscriber, for subscription events
        **payload: Additional event data
    """
    if not get_settings().ledger.audit_log_enabled:
        return

    resource_type, _, _ = event_type.partition(".")
    resource_id = f"{subscriber}:{plan_id}" if subscriber is not None else str(plan_id)

    log_audit_event(
        event_type,
        category="ledger",
        principal=principal,
        resource_type=resource_type,
        resource_id=resource_id,
        plan_id=plan_id,
        subscriber=subscriber,
        **payload,
    )
