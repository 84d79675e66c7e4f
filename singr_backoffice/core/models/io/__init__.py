"""
I/O models for API requests and responses.

This package contains Pydantic-based I/O schemas that define the contract
between API endpoints and clients. These models are separate from database
entities to allow independent evolution of API contracts.

Modules:
- auth: Sign-up, sign-in and profile models
- dashboard: Customer dashboard summary, cross-venue requests and songbook rows
- venues: Venue CRUD, accepting toggle, request queue and place search
- systems: OpenKJ system CRUD
- api_keys: API key listing and issuance
- billing: Checkout, subscription management, prices and webhook acks
- support: Ticket threads, audits and admin ticket actions
- admin: Admin console activity, customer, venue and note models
- openkj: OpenKJ desktop API envelope
"""

from .api_keys import ApiKeyCreate, ApiKeyIssued, ApiKeyRead
from .auth import SignInRequest, SignUpRequest, SignUpResponse, TokenResponse, UserRead, UserSummary
from .systems import SystemCreate, SystemEnvelope, SystemRead, SystemUpdate
from .venues import VenueCreate, VenueRead, VenueUpdate

__all__ = [
    "ApiKeyCreate",
    "ApiKeyIssued",
    "ApiKeyRead",
    "SignInRequest",
    "SignUpRequest",
    "SignUpResponse",
    "SystemCreate",
    "SystemEnvelope",
    "SystemRead",
    "SystemUpdate",
    "TokenResponse",
    "UserRead",
    "UserSummary",
    "VenueCreate",
    "VenueRead",
    "VenueUpdate",
]
