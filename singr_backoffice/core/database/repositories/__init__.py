"""
Repository layer.

Modules:
- base: Generic repository and query helpers
- state: Per-user serial management
- venues: Owner-scoped venue and request lookups
- api_keys: API key lookups, authentication and status transitions
- support: Ticket searches, threads, attachments and audits
- billing: Mirrored subscriptions and prices
"""

from .api_keys import ApiKeyRepository
from .base import BaseRepository, QueryBuilder
from .billing import PriceRepository, SubscriptionRepository
from .state import StateRepository
from .support import SupportTicketRepository
from .venues import VenueRepository

__all__ = [
    "ApiKeyRepository",
    "BaseRepository",
    "PriceRepository",
    "QueryBuilder",
    "StateRepository",
    "SubscriptionRepository",
    "SupportTicketRepository",
    "VenueRepository",
]
