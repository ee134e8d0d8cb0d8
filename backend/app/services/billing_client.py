"""
DarkMode Backend — Stripe Billing Client
==========================================

What:  Thin async wrapper over the Stripe SDK calls the app makes:
       customers, checkout sessions, billing portal, subscriptions.
Why:   Keeps the SDK out of routes and services, and gives tests a single
       object to replace.
How:   The SDK is synchronous, so each call runs in Starlette's threadpool.
       Network-level failures (stripe.APIConnectionError) are retried with
       tenacity (exponential backoff + jitter). Anything Stripe still
       rejects is surfaced as ExternalServiceError.

The API key is passed per call instead of setting the global `stripe.api_key`.
"""

import logging
from typing import Any, Dict, Optional

import stripe
from starlette.concurrency import run_in_threadpool
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import Settings, settings
from app.exceptions import BadRequestError, ExternalServiceError

logger = logging.getLogger(__name__)


class BillingClient:
    def __init__(self, config: Settings):
        self.config = config

    def price_for_period(self, billing_period: str) -> str:
        price_id = (
            self.config.stripe_price_id_yearly
            if billing_period == "yearly"
            else self.config.stripe_price_id_monthly
        )
        if not price_id:
            raise BadRequestError(f"No Stripe price configured for '{billing_period}' billing")
        return price_id

    @retry(
        retry=retry_if_exception_type(stripe.APIConnectionError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(initial=settings.retry_min_wait, max=settings.retry_max_wait, jitter=1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call(self, fn, *args, **kwargs):
        return await run_in_threadpool(fn, *args, api_key=self.config.stripe_secret_key, **kwargs)

    async def _request(self, operation: str, fn, *args, **kwargs):
        try:
            return await self._call(fn, *args, **kwargs)
        except stripe.StripeError as e:
            logger.error("Stripe %s failed: %s", operation, str(e))
            raise ExternalServiceError(
                service="stripe",
                message="Billing provider request failed. Please try again later.",
                context={"operation": operation, "error_type": type(e).__name__},
            )

    # ── Customers ─────────────────────────────────────────────────────────
    async def create_customer(self, email: str, name: Optional[str], account_id: str) -> str:
        customer = await self._request(
            "customer.create",
            stripe.Customer.create,
            email=email,
            name=name or None,
            metadata={"userId": account_id},
        )
        return customer["id"]

    # ── Checkout & portal ─────────────────────────────────────────────────
    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        account_id: str,
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        session = await self._request(
            "checkout.create",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={"userId": account_id},
        )
        return {"session_id": session["id"], "url": session["url"]}

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        session = await self._request(
            "billing_portal.create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return session["url"]

    # ── Subscriptions ─────────────────────────────────────────────────────
    async def retrieve_subscription(self, subscription_id: str):
        return await self._request("subscription.retrieve", stripe.Subscription.retrieve, subscription_id)

    async def set_cancel_at_period_end(self, subscription_id: str, cancel: bool):
        return await self._request(
            "subscription.modify",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=cancel,
        )


billing_client = BillingClient(settings)
