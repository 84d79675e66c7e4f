"""
Database entity models.

This package contains all database entity models organized by business domain.

Modules:
- users: User accounts and Stripe-linked customers
- venues: Venues and queued singer requests
- systems: OpenKJ systems, songbooks and the per-user serial
- api_keys: Hashed desktop API credentials
- billing: Stripe products, prices, subscriptions, checkout sessions, webhook log
- support: Support tickets, messages, attachments and audits
- user_notes: Staff notes about customers
"""

from . import (
    api_keys,
    billing,
    support,
    systems,
    user_notes,
    users,
    venues,
)

__all__ = [
    "api_keys",
    "billing",
    "support",
    "systems",
    "user_notes",
    "users",
    "venues",
]
