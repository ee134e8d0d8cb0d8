"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates the eight tables: accounts, sessions, documents, usage_logs,
       user_analytics, refresh_tokens, api_keys, webhook_events.
How:   Enum columns are plain VARCHARs (native_enum=False on the models), so
       adding a status later needs no ALTER TYPE. Every child table points
       at accounts.id with ON DELETE CASCADE, except webhook_events which
       has no owner.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _account_fk(**kwargs) -> sa.Column:
    return sa.Column(
        "account_id",
        sa.Uuid(),
        sa.ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        **kwargs,
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=None if nullable else sa.text("CURRENT_TIMESTAMP"),
        nullable=nullable,
    )


def upgrade() -> None:
    # ── accounts ──────────────────────────────────────────────────────────
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("avatar_url", sa.String(1024)),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_verify_token", sa.String(128)),
        sa.Column("password_reset_token", sa.String(128)),
        _timestamp("password_reset_expires", nullable=True),
        sa.Column("subscription_status", sa.String(16), nullable=False, server_default="FREE"),
        sa.Column("subscription_plan", sa.String(32)),
        sa.Column("subscription_id", sa.String(255)),
        _timestamp("subscription_end_date", nullable=True),
        sa.Column("stripe_customer_id", sa.String(255)),
        sa.Column("minutes_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("minutes_limit", sa.Integer(), nullable=False, server_default="60"),
        _timestamp("last_reset"),
        sa.Column("preferred_language", sa.String(16), nullable=False, server_default="en-US"),
        sa.Column("preferred_profile", sa.String(32), nullable=False, server_default="interview"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("last_login_at", nullable=True),
    )
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)
    op.create_index("ix_accounts_stripe_customer_id", "accounts", ["stripe_customer_id"], unique=True)
    op.create_index("ix_accounts_email_verify_token", "accounts", ["email_verify_token"])
    op.create_index("ix_accounts_password_reset_token", "accounts", ["password_reset_token"])

    # ── sessions ──────────────────────────────────────────────────────────
    op.create_table(
        "sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _account_fk(),
        sa.Column("profile", sa.String(32), nullable=False, server_default="interview"),
        sa.Column("language", sa.String(16), nullable=False, server_default="en-US"),
        _timestamp("started_at"),
        _timestamp("ended_at", nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("questions_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("responses_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("screenshots_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("messages", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
        _timestamp("created_at"),
    )
    op.create_index("idx_sessions_account_created", "sessions", ["account_id", "created_at"])

    # ── documents ─────────────────────────────────────────────────────────
    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _account_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="GENERAL"),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("storage_path", sa.String(1024), nullable=False),
        sa.Column("text_content", sa.Text()),
        sa.Column("text_length", sa.Integer()),
        sa.Column("is_code", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("code_language", sa.String(32)),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_documents_account_created", "documents", ["account_id", "created_at"])

    # ── usage_logs ────────────────────────────────────────────────────────
    op.create_table(
        "usage_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _account_fk(),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("session_id", sa.Uuid()),
        sa.Column("details", sa.JSON()),
        _timestamp("created_at"),
    )
    op.create_index("idx_usage_logs_account_created", "usage_logs", ["account_id", "created_at"])

    # ── user_analytics ────────────────────────────────────────────────────
    op.create_table(
        "user_analytics",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _account_fk(unique=True),
        sa.Column("total_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_duration", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_questions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_responses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_active_date", sa.Date()),
    )

    # ── refresh_tokens / api_keys ─────────────────────────────────────────
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("token", sa.String(128), nullable=False),
        _account_fk(),
        sa.Column("device_info", sa.String(512)),
        sa.Column("ip_address", sa.String(64)),
        _timestamp("expires_at"),
        _timestamp("created_at"),
    )
    op.create_index("ix_refresh_tokens_token", "refresh_tokens", ["token"], unique=True)
    op.create_index("ix_refresh_tokens_account_id", "refresh_tokens", ["account_id"])

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _account_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("last_used_at", nullable=True),
        _timestamp("expires_at", nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_api_keys_key", "api_keys", ["key"], unique=True)
    op.create_index("ix_api_keys_account_id", "api_keys", ["account_id"])

    # ── webhook_events ────────────────────────────────────────────────────
    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("source", sa.String(32), nullable=False, server_default="stripe"),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("processed_at", nullable=True),
        _timestamp("claimed_at", nullable=True),
        sa.Column("error", sa.Text()),
        _timestamp("created_at"),
    )
    op.create_index("ix_webhook_events_event_id", "webhook_events", ["event_id"], unique=True)


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("api_keys")
    op.drop_table("refresh_tokens")
    op.drop_table("user_analytics")
    op.drop_table("usage_logs")
    op.drop_table("documents")
    op.drop_table("sessions")
    op.drop_table("accounts")
