"""
Enumerations shared by the ORM models and the API schemas.

Stored as VARCHAR (native_enum=False) so that adding a value is a code
change rather than an ALTER TYPE migration.
"""

import enum


class SubscriptionStatus(str, enum.Enum):
    FREE = "FREE"
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"


class SessionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class UsageType(str, enum.Enum):
    SESSION = "SESSION"
    TRANSCRIPTION = "TRANSCRIPTION"
    AI_RESPONSE = "AI_RESPONSE"
    SCREENSHOT_ANALYSIS = "SCREENSHOT_ANALYSIS"


class DocumentType(str, enum.Enum):
    RESUME = "RESUME"
    JOB_DESCRIPTION = "JOB_DESCRIPTION"
    COMPANY_INFO = "COMPANY_INFO"
    NOTES = "NOTES"
    CODE = "CODE"
    GENERAL = "GENERAL"
