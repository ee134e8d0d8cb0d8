"""
DarkMode Backend — Email Notifications
========================================

What:  Fire-and-forget transactional email over SMTP.
Why:   Verification, password reset and billing notices. Delivery problems
       must never fail the request that triggered them, so every send
       returns a bool instead of raising.
How:   email.message.EmailMessage (text + HTML alternative) sent with
       smtplib inside Starlette's threadpool (smtplib blocks).

Email is disabled unless SMTP_HOST, SMTP_USER and SMTP_PASSWORD are all set;
disabled sends are logged at INFO and return False.
"""

import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Optional

from starlette.concurrency import run_in_threadpool

from app.config import Settings, settings

logger = logging.getLogger(__name__)

APP_NAME = "DarkMode AI"


class EmailService:
    def __init__(self, config: Settings):
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config.email_enabled

    def _build_message(self, to_email: str, subject: str, html: str, text: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{APP_NAME} <{self.config.email_from}>"
        msg["To"] = to_email
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=15) as smtp:
            smtp.ehlo()
            smtp.starttls()
            smtp.login(self.config.smtp_user, self.config.smtp_password)
            smtp.send_message(msg)

    async def send(self, to_email: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        if not self.enabled:
            logger.info("Email disabled; not sending '%s' to %s", subject, to_email)
            return False

        msg = self._build_message(to_email, subject, html, text or subject)
        try:
            await run_in_threadpool(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send '%s' to %s: %s", subject, to_email, str(e))
            return False

        logger.info("Sent '%s' to %s", subject, to_email)
        return True

    # ── Templates ─────────────────────────────────────────────────────────
    @staticmethod
    def _layout(title: str, body: str, button_text: Optional[str] = None, url: Optional[str] = None) -> str:
        button = ""
        if button_text and url:
            button = (
                f'<p><a href="{escape(url)}" style="background:#6366f1;color:#fff;'
                f'padding:12px 24px;border-radius:6px;text-decoration:none">{escape(button_text)}</a></p>'
            )
        return (
            f'<div style="font-family:sans-serif;max-width:560px;margin:0 auto">'
            f"<h2>{escape(title)}</h2>{body}{button}"
            f'<p style="color:#888;font-size:12px">{APP_NAME}</p></div>'
        )

    async def send_verification_email(self, to_email: str, token: str) -> bool:
        url = f"{self.config.frontend_url}/verify-email?token={token}"
        html = self._layout(
            "Verify your email",
            "<p>Thanks for signing up. Confirm your address to finish setting up your account.</p>",
            "Verify email",
            url,
        )
        return await self.send(to_email, f"Verify your {APP_NAME} email", html, f"Verify your email: {url}")

    async def send_password_reset_email(self, to_email: str, token: str) -> bool:
        url = f"{self.config.frontend_url}/reset-password?token={token}"
        html = self._layout(
            "Reset your password",
            "<p>Someone requested a password reset for your account. "
            "The link expires in one hour. Ignore this email if it wasn't you.</p>",
            "Reset password",
            url,
        )
        return await self.send(to_email, f"Reset your {APP_NAME} password", html, f"Reset your password: {url}")

    async def send_payment_failed_email(self, to_email: str, invoice_url: Optional[str] = None) -> bool:
        url = invoice_url or f"{self.config.frontend_url}/settings/billing"
        html = self._layout(
            "Payment failed",
            "<p>We couldn't process your latest subscription payment. "
            "Please update your payment method to keep your Pro features.</p>",
            "Update payment",
            url,
        )
        return await self.send(to_email, f"{APP_NAME}: payment failed", html, f"Your payment failed: {url}")

    async def send_subscription_canceled_email(self, to_email: str, end_date: Optional[str] = None) -> bool:
        until = f" You keep access until {escape(end_date)}." if end_date else ""
        html = self._layout(
            "Subscription canceled",
            f"<p>Your subscription has been canceled.{until} You can resume at any time.</p>",
            "Manage subscription",
            f"{self.config.frontend_url}/settings/billing",
        )
        return await self.send(to_email, f"{APP_NAME}: subscription canceled", html)


email_service = EmailService(settings)
