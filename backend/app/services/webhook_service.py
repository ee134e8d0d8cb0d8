"""
DarkMode Backend — Subscription Lifecycle Handler
===================================================

What:  Applies verified Stripe webhook events to accounts.
Why:   Stripe is the source of truth for subscription state; the account
       row mirrors it. The only monthly usage reset is a successful invoice.

State machine over Account.subscription_status:

    FREE ──checkout completed──▶ ACTIVE ──payment failed──▶ PAST_DUE
                                   ▲                          │
                                   └────payment succeeded─────┘
    ACTIVE / PAST_DUE / CANCELED ──subscription deleted──▶ FREE

    minutes_limit follows the status: the pro allowance when ACTIVE, the
    free allowance otherwise. Unlimited (-1) is never written here.

Idempotency ledger (webhook_events, unique event_id):
    1. Verify the signature. Failure → 400, nothing stored.
    2. Look up the event id. Already processed → acknowledge, no effects.
    3. Claim the event: insert the receipt with claimed_at set, or take over
       an unprocessed receipt with a conditional UPDATE. Commit the claim.
    4. Apply the effects, mark processed, commit both together.
    5. Send notifications (payment-failed email) after that commit.
    6. On failure: roll back the effects, store the error on the receipt,
       release the claim, commit, answer 500. Stripe redelivers and the
       next delivery claims it again.

    A delivery that finds the event claimed by another in-flight delivery
    (or loses the insert race) gets a 409, which Stripe retries. A claim
    older than CLAIM_TTL is treated as abandoned.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from uuid import UUID

import stripe
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import utcnow
from app.exceptions import BadRequestError, ConflictError, WebhookProcessingError
from app.models.account import Account
from app.models.enums import SubscriptionStatus
from app.models.webhook_event import WebhookEvent
from app.services.billing_client import BillingClient, billing_client
from app.services.email_service import EmailService, email_service
from app.services.plans import UNLIMITED, PlanCatalog, plan_catalog

logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "stripe"
CLAIM_TTL = timedelta(minutes=5)

# Side effect outside the database, run after the processed commit
Notification = Callable[[], Awaitable[Any]]

# Stripe subscription.status → our status; anything unlisted maps to FREE
STRIPE_STATUS_MAP: Mapping[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIAL,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.EXPIRED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


@dataclass(frozen=True)
class WebhookResult:
    event_id: str
    event_type: str
    duplicate: bool = False


def map_stripe_status(status: Optional[str]) -> SubscriptionStatus:
    return STRIPE_STATUS_MAP.get(status or "", SubscriptionStatus.FREE)


def period_end(subscription: Any) -> Optional[datetime]:
    """
    current_period_end of a subscription as an aware datetime.

    Newer Stripe API versions moved the field onto the subscription items,
    so fall back to the first item.
    """
    ts = subscription.get("current_period_end")
    if ts is None:
        items = subscription.get("items") or {}
        data = items.get("data") or []
        if data:
            ts = data[0].get("current_period_end")
    return datetime.fromtimestamp(ts, tz=timezone.utc) if ts else None


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    try:
        return UUID(str(value)) if value else None
    except ValueError:
        return None


class WebhookService:
    def __init__(
        self,
        billing: BillingClient,
        mailer: EmailService,
        plans: PlanCatalog,
        webhook_secret: str,
    ):
        self.billing = billing
        self.mailer = mailer
        self.webhook_secret = webhook_secret
        self.active_minutes_limit = plans["pro"].minutes_limit
        self.inactive_minutes_limit = plans["free"].minutes_limit
        if UNLIMITED in (self.active_minutes_limit, self.inactive_minutes_limit):
            raise ValueError("Webhook-managed minute limits must be finite")

        self._handlers: Dict[
            str, Callable[[AsyncSession, Dict[str, Any], datetime], Awaitable[Optional[Notification]]]
        ] = {
            "checkout.session.completed": self._on_checkout_completed,
            "customer.subscription.created": self._on_subscription_changed,
            "customer.subscription.updated": self._on_subscription_changed,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "invoice.payment_succeeded": self._on_payment_succeeded,
            "invoice.payment_failed": self._on_payment_failed,
        }

    # ── Verification ──────────────────────────────────────────────────────
    def verify(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Check the Stripe-Signature header and return the event as a dict.

        Raises:
            BadRequestError: missing header, bad signature or malformed body
        """
        if not signature:
            raise BadRequestError("Missing Stripe-Signature header")
        if not self.webhook_secret:
            raise BadRequestError("Webhook secret is not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("Rejected webhook: %s", str(e))
            raise BadRequestError(f"Webhook signature verification failed: {e}")
        return json.loads(payload)

    # ── Ledger ────────────────────────────────────────────────────────────
    async def handle(
        self,
        db: AsyncSession,
        payload: bytes,
        signature: Optional[str],
        now: Optional[datetime] = None,
    ) -> WebhookResult:
        event = self.verify(payload, signature)
        event_id = event["id"]
        event_type = event["type"]
        now = now or utcnow()

        record = await db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == event_id))
        if record is not None and record.processed:
            logger.info("Duplicate webhook %s (%s) ignored", event_id, event_type)
            return WebhookResult(event_id=event_id, event_type=event_type, duplicate=True)

        if record is None:
            record = WebhookEvent(
                source=WEBHOOK_SOURCE,
                event_id=event_id,
                event_type=event_type,
                payload=event,
                claimed_at=now,
                created_at=now,
            )
            db.add(record)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.warning("Webhook %s is being processed by another delivery", event_id)
                raise ConflictError("Event is already being processed")
        elif not await self._claim(db, event_id, now):
            record = await db.scalar(
                select(WebhookEvent)
                .where(WebhookEvent.event_id == event_id)
                .execution_options(populate_existing=True)
            )
            if record.processed:
                logger.info("Duplicate webhook %s (%s) ignored", event_id, event_type)
                return WebhookResult(event_id=event_id, event_type=event_type, duplicate=True)
            logger.warning("Webhook %s is being processed by another delivery", event_id)
            raise ConflictError("Event is already being processed")

        record_id = record.id
        try:
            notify = await self.dispatch(db, event_type, event["data"]["object"], now)
            record.processed = True
            record.processed_at = now
            record.claimed_at = None
            record.error = None
            await db.commit()
        except Exception as e:
            await db.rollback()
            failed = await db.get(WebhookEvent, record_id)
            failed.error = f"{type(e).__name__}: {e}"
            failed.claimed_at = None
            await db.commit()
            logger.error("Webhook %s (%s) failed: %s", event_id, event_type, str(e), exc_info=True)
            raise WebhookProcessingError(event_id=event_id, reason=str(e)) from e

        # Notifications go out only once the effects are committed
        if notify is not None:
            await notify()

        logger.info("Processed webhook %s (%s)", event_id, event_type)
        return WebhookResult(event_id=event_id, event_type=event_type)

    async def _claim(self, db: AsyncSession, event_id: str, now: datetime) -> bool:
        """
        Take over an unprocessed receipt left by an earlier delivery.

        The conditional UPDATE succeeds for exactly one delivery. A claim
        older than CLAIM_TTL belongs to a delivery that died mid-flight and
        may be taken over.
        """
        result = await db.execute(
            update(WebhookEvent)
            .where(
                WebhookEvent.event_id == event_id,
                WebhookEvent.processed.is_(False),
                or_(WebhookEvent.claimed_at.is_(None), WebhookEvent.claimed_at < now - CLAIM_TTL),
            )
            .values(claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            return False
        await db.commit()
        return True

    async def dispatch(
        self, db: AsyncSession, event_type: str, obj: Dict[str, Any], now: datetime
    ) -> Optional[Notification]:
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled webhook event type: %s", event_type)
            return None
        return await handler(db, obj, now)

    # ── Lookups ───────────────────────────────────────────────────────────
    async def _account_for_customer(self, db: AsyncSession, customer_id: Optional[str]) -> Optional[Account]:
        if not customer_id:
            return None
        account = await db.scalar(select(Account).where(Account.stripe_customer_id == customer_id))
        if account is None:
            logger.warning("No account for Stripe customer %s", customer_id)
        return account

    def _apply_status(self, account: Account, status: SubscriptionStatus) -> None:
        account.subscription_status = status
        account.minutes_limit = (
            self.active_minutes_limit if status == SubscriptionStatus.ACTIVE else self.inactive_minutes_limit
        )

    # ── Handlers ──────────────────────────────────────────────────────────
    async def _on_checkout_completed(self, db: AsyncSession, obj: Dict[str, Any], now: datetime) -> None:
        account_id = _parse_uuid((obj.get("metadata") or {}).get("userId"))
        subscription_id = obj.get("subscription")
        if account_id is None or not subscription_id:
            logger.warning("Checkout session %s has no user or subscription", obj.get("id"))
            return

        account = await db.get(Account, account_id)
        if account is None:
            logger.warning("Checkout completed for unknown account %s", account_id)
            return

        subscription = await self.billing.retrieve_subscription(subscription_id)
        self._apply_status(account, SubscriptionStatus.ACTIVE)
        account.subscription_plan = "pro"
        account.subscription_id = subscription_id
        account.subscription_end_date = period_end(subscription)
        if not account.stripe_customer_id and obj.get("customer"):
            account.stripe_customer_id = obj["customer"]
        logger.info("Account %s upgraded to pro (subscription %s)", account.id, subscription_id)

    async def _on_subscription_changed(self, db: AsyncSession, obj: Dict[str, Any], now: datetime) -> None:
        account = await self._account_for_customer(db, obj.get("customer"))
        if account is None:
            return
        status = map_stripe_status(obj.get("status"))
        self._apply_status(account, status)
        account.subscription_id = obj.get("id")
        account.subscription_end_date = period_end(obj)
        logger.info("Account %s subscription status → %s", account.id, status.value)

    async def _on_subscription_deleted(self, db: AsyncSession, obj: Dict[str, Any], now: datetime) -> None:
        account = await self._account_for_customer(db, obj.get("customer"))
        if account is None:
            return
        self._apply_status(account, SubscriptionStatus.FREE)
        account.subscription_plan = None
        account.subscription_id = None
        account.subscription_end_date = None
        logger.info("Account %s subscription deleted; back to free", account.id)

    async def _on_payment_succeeded(self, db: AsyncSession, obj: Dict[str, Any], now: datetime) -> None:
        account = await self._account_for_customer(db, obj.get("customer"))
        if account is None:
            return
        account.minutes_used = 0
        account.last_reset = now
        if account.subscription_status == SubscriptionStatus.PAST_DUE:
            self._apply_status(account, SubscriptionStatus.ACTIVE)
            logger.info("Account %s recovered from past due", account.id)
        logger.info("Monthly usage reset for account %s", account.id)

    async def _on_payment_failed(
        self, db: AsyncSession, obj: Dict[str, Any], now: datetime
    ) -> Optional[Notification]:
        account = await self._account_for_customer(db, obj.get("customer"))
        if account is None:
            return None
        self._apply_status(account, SubscriptionStatus.PAST_DUE)
        logger.info("Account %s marked past due", account.id)

        email = account.email
        invoice_url = obj.get("hosted_invoice_url")

        async def notify() -> None:
            await self.mailer.send_payment_failed_email(email, invoice_url)

        return notify


webhook_service = WebhookService(
    billing=billing_client,
    mailer=email_service,
    plans=plan_catalog,
    webhook_secret=settings.stripe_webhook_secret,
)
