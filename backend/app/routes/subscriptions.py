"""
DarkMode Backend — Subscription Route Handlers
================================================

What:  Plan catalog, subscription status and Stripe-hosted checkout/portal
       under /api/subscriptions.

The authoritative state change arrives later through the webhook. Checkout
only returns a Stripe URL; the account stays FREE until
checkout.session.completed is received.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_account
from app.models.account import Account
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.subscription import (
    CheckoutRequest,
    CheckoutResponse,
    PlanListResponse,
    PlanResponse,
    PortalResponse,
    SubscriptionStatusResponse,
)
from app.services.subscription_service import subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])


@router.get("/status", response_model=SubscriptionStatusResponse, summary="Current subscription")
async def get_status(account: Account = Depends(get_current_account)) -> SubscriptionStatusResponse:
    return SubscriptionStatusResponse(**subscription_service.status(account))


@router.get("/plans", response_model=PlanListResponse, summary="Available plans")
async def list_plans() -> PlanListResponse:
    plans = subscription_service.list_plans()
    return PlanListResponse(plans=[
        PlanResponse(
            slug=p.slug,
            name=p.name,
            description=p.description,
            minutes_limit=p.minutes_limit,
            max_documents=p.max_documents,
            max_sessions_per_day=p.max_sessions_per_day,
            price_monthly_cents=p.price_monthly_cents,
            price_yearly_cents=p.price_yearly_cents,
            features=list(p.features),
        )
        for p in plans
    ])


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    responses={500: {"description": "Stripe unavailable", "model": ErrorResponse}},
    summary="Start a Stripe Checkout session",
)
async def create_checkout(
    body: CheckoutRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> CheckoutResponse:
    result = await subscription_service.create_checkout(db, account, body.price_id, body.billing_period)
    return CheckoutResponse(**result)


@router.post(
    "/portal",
    response_model=PortalResponse,
    responses={400: {"description": "No Stripe customer yet", "model": ErrorResponse}},
    summary="Open the Stripe billing portal",
)
async def create_portal(account: Account = Depends(get_current_account)) -> PortalResponse:
    return PortalResponse(url=await subscription_service.create_portal(account))


@router.post(
    "/cancel",
    response_model=MessageResponse,
    responses={400: {"description": "No active subscription", "model": ErrorResponse}},
    summary="Cancel at the end of the billing period",
)
async def cancel_subscription(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await subscription_service.cancel(db, account)
    return MessageResponse(message="Subscription will be canceled at the end of the billing period")


@router.post(
    "/resume",
    response_model=MessageResponse,
    responses={400: {"description": "No subscription to resume", "model": ErrorResponse}},
    summary="Undo a pending cancellation",
)
async def resume_subscription(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await subscription_service.resume(db, account)
    return MessageResponse(message="Subscription resumed")
