"""
Subscription ledger router.

Thin HTTP adapter mapping requests onto the ledger's transitions and queries.
The calling principal is taken from the configured identity header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from subledger.ledger.dependencies import get_ledger_gateway
from subledger.ledger.gateway import LedgerGateway
from subledger.ledger.models import Principal, TransitionResult
from subledger.ledger.schemas import (
    PlanCounterResponse,
    PlanCreateRequest,
    PlanLookupResponse,
    SubscriberCountResponse,
    SubscriptionCheckResponse,
    SubscriptionLookupResponse,
    SubscriptionResponse,
)
from subledger.settings import get_settings

router = APIRouter(prefix="/ledger", tags=["ledger"])


def get_principal(request: Request) -> Principal:
    """Dependency resolving the caller identity from the request."""
    header = get_settings().ledger.principal_header
    principal = (request.headers.get(header) or "").strip()
    if not principal:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing caller identity header {header}",
        )
    return principal


Gateway = Annotated[LedgerGateway, Depends(get_ledger_gateway)]
Caller = Annotated[Principal, Depends(get_principal)]


def _respond(result: TransitionResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    status_code = result.error.status_code if result.error is not None else success_status
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ==================== Plan Registry ====================


@router.post("/plans", response_model=TransitionResult, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanCreateRequest, caller: Caller, gateway: Gateway) -> JSONResponse:
    """Create a plan; the caller becomes its provider."""
    result = gateway.create_plan(caller, payload.name, payload.price, payload.duration)
    return _respond(result, status.HTTP_201_CREATED)


@router.post("/plans/{plan_id}/deactivate", response_model=TransitionResult)
def deactivate_plan(plan_id: int, caller: Caller, gateway: Gateway) -> JSONResponse:
    return _respond(gateway.deactivate_plan(caller, plan_id))


@router.post("/plans/{plan_id}/reactivate", response_model=TransitionResult)
def reactivate_plan(plan_id: int, caller: Caller, gateway: Gateway) -> JSONResponse:
    return _respond(gateway.reactivate_plan(caller, plan_id))


@router.get("/plans/{plan_id}", response_model=PlanLookupResponse)
def get_plan(plan_id: int, gateway: Gateway) -> PlanLookupResponse:
    return PlanLookupResponse(plan=gateway.get_plan(plan_id))


@router.get("/plan-counter", response_model=PlanCounterResponse)
def get_plan_counter(gateway: Gateway) -> PlanCounterResponse:
    return PlanCounterResponse(plan_counter=gateway.get_plan_counter())


# ==================== Subscriptions ====================


@router.post(
    "/plans/{plan_id}/subscription",
    response_model=TransitionResult,
    status_code=status.HTTP_201_CREATED,
)
def subscribe(plan_id: int, caller: Caller, gateway: Gateway) -> JSONResponse:
    """Subscribe the caller to a plan, paying the first cycle."""
    return _respond(gateway.subscribe(caller, plan_id), status.HTTP_201_CREATED)


@router.delete("/plans/{plan_id}/subscription", response_model=TransitionResult)
def cancel_subscription(plan_id: int, caller: Caller, gateway: Gateway) -> JSONResponse:
    """Cancel the caller's own subscription."""
    return _respond(gateway.cancel_subscription(caller, plan_id))


@router.post(
    "/plans/{plan_id}/subscriptions/{subscriber}/payments",
    response_model=TransitionResult,
)
def process_payment(
    plan_id: int, subscriber: str, caller: Caller, gateway: Gateway
) -> JSONResponse:
    """
    Bill one cycle of a subscription.

    Any identified caller may trigger this; scheduling policy lives outside the ledger.
    """
    return _respond(gateway.process_payment(caller, subscriber, plan_id))


@router.get(
    "/plans/{plan_id}/subscriptions/{subscriber}",
    response_model=SubscriptionLookupResponse,
)
def get_subscription(plan_id: int, subscriber: str, gateway: Gateway) -> SubscriptionLookupResponse:
    subscription = gateway.get_subscription(subscriber, plan_id)
    if subscription is None:
        return SubscriptionLookupResponse()
    return SubscriptionLookupResponse(subscription=SubscriptionResponse.from_record(subscription))


@router.get(
    "/plans/{plan_id}/subscriptions/{subscriber}/active",
    response_model=SubscriptionCheckResponse,
)
def is_subscription_active(
    plan_id: int, subscriber: str, gateway: Gateway
) -> SubscriptionCheckResponse:
    return SubscriptionCheckResponse(
        subscriber=subscriber,
        plan_id=plan_id,
        result=gateway.is_subscription_active(subscriber, plan_id),
    )


@router.get(
    "/plans/{plan_id}/subscriptions/{subscriber}/valid",
    response_model=SubscriptionCheckResponse,
)
def is_subscription_valid(
    plan_id: int, subscriber: str, gateway: Gateway
) -> SubscriptionCheckResponse:
    return SubscriptionCheckResponse(
        subscriber=subscriber,
        plan_id=plan_id,
        result=gateway.is_subscription_valid(subscriber, plan_id),
    )


@router.get("/subscribers/{subscriber}/subscription-count", response_model=SubscriberCountResponse)
def get_user_subscription_count(subscriber: str, gateway: Gateway) -> SubscriberCountResponse:
    return SubscriberCountResponse(
        subscriber=subscriber,
        active_count=gateway.get_user_subscription_count(subscriber),
    )
