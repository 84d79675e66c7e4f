"""Singr Back Office.

Multi-tenant back office for the Singr karaoke venue product.

High-level architecture
-----------------------

- ``singr_backoffice.core``:

  - Logging and Logfire monitoring setup.
  - SQLModel entities, repositories and the async session factory.
  - Pydantic I/O models shared by the API layer.
  - Credential hashing, session tokens and input normalization helpers.

- ``singr_backoffice.server``:

  - The FastAPI application and its versioned routers (dashboard, venues,
    systems, API keys, billing, Stripe webhooks, support tickets, admin tools
    and the OpenKJ desktop API).
  - Service classes wrapping Stripe, HERE geocoding, attachment storage,
    support workflows and subscription-driven access control.

Typical workflow
----------------

1. A customer signs up: a Stripe customer, the first System and the serial
   State row are created together.
2. The customer creates venues and API keys from the dashboard.
3. The OpenKJ desktop client polls ``/api/v1/openkj`` with an API key,
   syncing songbooks and pulling singer requests.
4. Stripe webhooks keep subscription state mirrored; lapsed subscriptions
   suspend API keys and stop venues from accepting requests.
"""
