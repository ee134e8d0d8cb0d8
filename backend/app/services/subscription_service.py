"""
DarkMode Backend — Subscription Service
=========================================

What:  User-initiated billing actions: checkout, billing portal, cancel and
       resume. Stripe-initiated changes arrive through WebhookService.
How:   Calls BillingClient, then mirrors the immediate effect on the account.
       Cancel is "at period end": Stripe keeps billing until then, and the
       final `customer.subscription.deleted` webhook moves the account to FREE.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, settings
from app.exceptions import BadRequestError
from app.models.account import Account
from app.models.enums import SubscriptionStatus
from app.services.billing_client import BillingClient, billing_client
from app.services.email_service import EmailService, email_service
from app.services.plans import PlanCatalog, PlanLimits, plan_catalog

logger = logging.getLogger(__name__)


class SubscriptionService:
    def __init__(self, billing: BillingClient, mailer: EmailService, plans: PlanCatalog, config: Settings):
        self.billing = billing
        self.mailer = mailer
        self.plans = plans
        self.config = config

    def status(self, account: Account) -> Dict[str, Any]:
        return {
            "status": account.subscription_status,
            "plan": account.subscription_plan,
            "end_date": account.subscription_end_date,
            "usage": {
                "minutes_used": account.minutes_used,
                "minutes_limit": account.minutes_limit,
            },
        }

    def list_plans(self) -> List[PlanLimits]:
        return list(self.plans)

    async def create_checkout(
        self,
        db: AsyncSession,
        account: Account,
        price_id: Optional[str] = None,
        billing_period: str = "monthly",
    ) -> Dict[str, Any]:
        if not account.stripe_customer_id:
            account.stripe_customer_id = await self.billing.create_customer(
                email=account.email, name=account.name, account_id=str(account.id)
            )
            await db.flush()
            logger.info("Created Stripe customer for account %s", account.id)

        return await self.billing.create_checkout_session(
            customer_id=account.stripe_customer_id,
            price_id=price_id or self.billing.price_for_period(billing_period),
            account_id=str(account.id),
            success_url=f"{self.config.frontend_url}/settings/subscription?success=true",
            cancel_url=f"{self.config.frontend_url}/settings/subscription?canceled=true",
        )

    async def create_portal(self, account: Account) -> str:
        if not account.stripe_customer_id:
            raise BadRequestError("No subscription found")
        return await self.billing.create_portal_session(
            customer_id=account.stripe_customer_id,
            return_url=f"{self.config.frontend_url}/settings/subscription",
        )

    async def cancel(self, db: AsyncSession, account: Account) -> None:
        if not account.subscription_id:
            raise BadRequestError("No active subscription")
        await self.billing.set_cancel_at_period_end(account.subscription_id, True)
        account.subscription_status = SubscriptionStatus.CANCELED
        await db.flush()

        end_date = account.subscription_end_date.date().isoformat() if account.subscription_end_date else None
        await self.mailer.send_subscription_canceled_email(account.email, end_date)
        logger.info("Account %s canceled at period end", account.id)

    async def resume(self, db: AsyncSession, account: Account) -> None:
        if not account.subscription_id:
            raise BadRequestError("No subscription to resume")
        await self.billing.set_cancel_at_period_end(account.subscription_id, False)
        account.subscription_status = SubscriptionStatus.ACTIVE
        await db.flush()
        logger.info("Account %s resumed subscription", account.id)


subscription_service = SubscriptionService(
    billing=billing_client,
    mailer=email_service,
    plans=plan_catalog,
    config=settings,
)
