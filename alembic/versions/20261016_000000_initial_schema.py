"""Initial schema for the Singr back office

Revision ID: 20261016_000000
Revises: None
Create Date: 2026-10-16 00:00:00.000000

This is the initial migration that creates every table of the back office:
- Accounts (users, customers, staff notes)
- Venues, singer requests, OpenKJ systems, songbooks and the per-user serial
- Hashed API keys
- Stripe mirrors (products, prices, subscriptions, checkout sessions, webhook log)
- Support tickets with messages, attachments and audits

When SINGR_SEED_ADMIN_EMAIL and SINGR_SEED_ADMIN_PASSWORD_HASH are set the
first super-admin account is seeded as well.

Revision format: YYYYMMDD_HHMMSS_description

"""

import os
from datetime import datetime, timezone
from typing import Sequence, Union
from uuid import uuid4

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261016_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(with_updated: bool = True) -> list:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if with_updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def upgrade() -> None:
    """Create all tables and seed the first admin."""

    # Accounts
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("image", sa.String(), nullable=True),
        sa.Column("account_type", sa.String(32), nullable=False, server_default="customer"),
        sa.Column("admin_level", sa.String(32), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("stripe_customer_id", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["id"], ["users.id"]),
    )
    op.create_index("ix_customers_stripe_customer_id", "customers", ["stripe_customer_id"], unique=True)

    op.create_table(
        "user_notes",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("created_by", sa.String(36), nullable=False),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("note", sa.String(), nullable=False),
        sa.Column("important", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
    )
    op.create_index("ix_user_notes_user_id", "user_notes", ["user_id"])
    op.create_index("ix_user_notes_created_at", "user_notes", ["created_at"])

    # Venues and OpenKJ data
    op.create_table(
        "venues",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url_name", sa.String(255), nullable=False),
        sa.Column("accepting_requests", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("here_place_id", sa.String(255), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("state", sa.String(255), nullable=True),
        sa.Column("state_code", sa.String(16), nullable=True),
        sa.Column("postal_code", sa.String(32), nullable=True),
        sa.Column("country", sa.String(64), nullable=True, server_default="US"),
        sa.Column("country_code", sa.String(8), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("user_id", "url_name", name="uq_venues_user_url_name"),
    )
    op.create_index("ix_venues_user_id", "venues", ["user_id"])
    op.create_index("ix_venues_created_at", "venues", ["created_at"])

    op.create_table(
        "requests",
        sa.Column("request_id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("venue_id", sa.String(36), nullable=False),
        sa.Column("openkj_system_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("artist", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("singer", sa.String(), nullable=False),
        sa.Column("key_change", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("request_time", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("request_id"),
        sa.ForeignKeyConstraint(["venue_id"], ["venues.id"]),
    )
    op.create_index("ix_requests_venue_id", "requests", ["venue_id"])
    op.create_index("ix_requests_request_time", "requests", ["request_time"])

    op.create_table(
        "systems",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("openkj_system_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("user_id", "openkj_system_id", name="uq_systems_user_openkj_system_id"),
    )
    op.create_index("ix_systems_user_id", "systems", ["user_id"])

    op.create_table(
        "songdb",
        sa.Column("song_id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("openkj_system_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("artist", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("combined", sa.String(), nullable=False),
        sa.Column("normalized_combined", sa.String(), nullable=False),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("song_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("user_id", "openkj_system_id", "combined", name="uq_songdb_combined"),
        sa.UniqueConstraint("user_id", "openkj_system_id", "normalized_combined", name="uq_songdb_normalized"),
    )
    op.create_index("ix_songdb_user_id", "songdb", ["user_id"])

    op.create_table(
        "state",
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("serial", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )

    op.create_table(
        "api_keys",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("customer_id", sa.String(36), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("api_key_hash", sa.String(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
    )
    op.create_index("ix_api_keys_customer_id", "api_keys", ["customer_id"])
    op.create_index("ix_api_keys_status", "api_keys", ["status"])

    # Stripe mirrors
    op.create_table(
        "stripe_products",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "stripe_prices",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("product_id", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("nickname", sa.String(255), nullable=True),
        sa.Column("type", sa.String(32), nullable=False, server_default="recurring"),
        sa.Column("unit_amount", sa.Integer(), nullable=True),
        sa.Column("lookup_key", sa.String(255), nullable=True),
        sa.Column("recurring", sa.JSON(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["product_id"], ["stripe_products.id"]),
    )
    op.create_index("ix_stripe_prices_product_id", "stripe_prices", ["product_id"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("customer", sa.String(255), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("price_id", sa.String(255), nullable=True),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancel_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("livemode", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    op.create_index("ix_subscriptions_customer", "subscriptions", ["customer"])
    op.create_index("ix_subscriptions_created_at", "subscriptions", ["created_at"])

    op.create_table(
        "stripe_checkout_sessions",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("customer_id", sa.String(36), nullable=False),
        sa.Column("payment_status", sa.String(32), nullable=False, server_default="unpaid"),
        sa.Column("mode", sa.String(32), nullable=False, server_default="subscription"),
        sa.Column("amount_total", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(8), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
    )
    op.create_index("ix_stripe_checkout_sessions_customer_id", "stripe_checkout_sessions", ["customer_id"])

    op.create_table(
        "stripe_webhook_events",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(255), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("api_version", sa.String(64), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stripe_webhook_events_event_id", "stripe_webhook_events", ["event_id"], unique=True)
    op.create_index("ix_stripe_webhook_events_event_type", "stripe_webhook_events", ["event_type"])

    # Support
    op.create_table(
        "support_tickets",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("requester_id", sa.String(36), nullable=False),
        sa.Column("created_by_id", sa.String(36), nullable=False),
        sa.Column("assignee_id", sa.String(36), nullable=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="open"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="normal"),
        sa.Column("category", sa.String(120), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assignee_id"], ["users.id"]),
    )
    op.create_index("ix_support_tickets_requester_id", "support_tickets", ["requester_id"])
    op.create_index("ix_support_tickets_assignee_id", "support_tickets", ["assignee_id"])
    op.create_index("ix_support_tickets_status", "support_tickets", ["status"])
    op.create_index("ix_support_tickets_priority", "support_tickets", ["priority"])
    op.create_index("ix_support_tickets_created_at", "support_tickets", ["created_at"])

    op.create_table(
        "support_ticket_messages",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("ticket_id", sa.String(36), nullable=False),
        sa.Column("author_id", sa.String(36), nullable=True),
        sa.Column("visibility", sa.String(16), nullable=False, server_default="public"),
        sa.Column("body", sa.String(), nullable=False),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["ticket_id"], ["support_tickets.id"]),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"]),
    )
    op.create_index("ix_support_ticket_messages_ticket_id", "support_ticket_messages", ["ticket_id"])
    op.create_index("ix_support_ticket_messages_created_at", "support_ticket_messages", ["created_at"])

    op.create_table(
        "support_message_attachments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("message_id", sa.String(36), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=True),
        sa.Column("byte_size", sa.Integer(), nullable=False),
        sa.Column("storage_url", sa.String(), nullable=False),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["message_id"], ["support_ticket_messages.id"]),
    )
    op.create_index("ix_support_message_attachments_message_id", "support_message_attachments", ["message_id"])

    op.create_table(
        "support_ticket_audits",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("ticket_id", sa.String(36), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["ticket_id"], ["support_tickets.id"]),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"]),
    )
    op.create_index("ix_support_ticket_audits_ticket_id", "support_ticket_audits", ["ticket_id"])
    op.create_index("ix_support_ticket_audits_created_at", "support_ticket_audits", ["created_at"])

    # Seed the first super admin
    admin_email = os.getenv("SINGR_SEED_ADMIN_EMAIL")
    admin_password_hash = os.getenv("SINGR_SEED_ADMIN_PASSWORD_HASH")
    if admin_email and admin_password_hash:
        now = datetime.now(timezone.utc)
        op.get_bind().execute(
            sa.text(
                "INSERT INTO users (id, name, email, account_type, admin_level, password_hash, created_at, updated_at) "
                "VALUES (:id, :name, :email, 'admin', 'super_admin', :password_hash, :now, :now)"
            ),
            {
                "id": str(uuid4()),
                "name": "Singr Admin",
                "email": admin_email.strip().lower(),
                "password_hash": admin_password_hash,
                "now": now,
            },
        )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in (
        "support_ticket_audits",
        "support_message_attachments",
        "support_ticket_messages",
        "support_tickets",
        "stripe_webhook_events",
        "stripe_checkout_sessions",
        "subscriptions",
        "stripe_prices",
        "stripe_products",
        "api_keys",
        "state",
        "songdb",
        "systems",
        "requests",
        "venues",
        "user_notes",
        "customers",
        "users",
    ):
        op.drop_table(table)
