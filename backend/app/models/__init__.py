# Importing every model registers it with Base.metadata and lets the
# string-based relationship() targets resolve.
from app.models.account import Account
from app.models.analytics import UserAnalytics
from app.models.document import Document
from app.models.enums import DocumentType, SessionStatus, SubscriptionStatus, UsageType
from app.models.session import Session
from app.models.token import ApiKey, RefreshToken
from app.models.usage_log import UsageLog
from app.models.webhook_event import WebhookEvent

__all__ = [
    "Account",
    "ApiKey",
    "Document",
    "DocumentType",
    "RefreshToken",
    "Session",
    "SessionStatus",
    "SubscriptionStatus",
    "UsageLog",
    "UsageType",
    "UserAnalytics",
    "WebhookEvent",
]
