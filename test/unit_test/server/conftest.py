from __future__ import annotations

from typing import Any, AsyncGenerator, Callable, Dict, List, Optional
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
import stripe
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.pool import StaticPool

from test.settings import test_settings

TEST_DATABASE_URL = test_settings.database.url


class FakeBillingGateway:
    """In-memory stand-in for ``StripeGateway`` recording every call."""

    def __init__(self) -> None:
        self.webhook_secret: Optional[str] = test_settings.third_party.stripe_webhook_secret
        self.calls: List[tuple] = []
        self.fail = False
        self.active_subscription = True
        self.subscription_status = "active"
        self._customers = 0
        self.products: List[Dict[str, Any]] = []
        self.prices: List[Dict[str, Any]] = []

    def _record(self, name: str, /, **kwargs: Any) -> None:
        from singr_backoffice.server.services.billing import BillingGatewayError

        self.calls.append((name, kwargs))
        if self.fail:
            raise BillingGatewayError("Stripe is unavailable")

    def called(self, name: str) -> List[Dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def create_customer(self, email: str, name: Optional[str], user_id: str) -> str:
        self._record("create_customer", email=email, name=name, user_id=user_id)
        self._customers += 1
        return f"cus_test_{self._customers}"

    async def create_checkout_session(self, **params: Any) -> Dict[str, Any]:
        self._record("create_checkout_session", **params)
        return {
            "id": "cs_test_1",
            "url": "https://checkout.stripe.test/cs_test_1",
            "payment_status": "unpaid",
            "mode": "subscription",
            "amount_total": 2900,
            "currency": "usd",
            "expires_at": None,
            "metadata": {"userId": params["user_id"]},
        }

    async def modify_subscription(self, subscription_id: str, **params: Any) -> Dict[str, Any]:
        self._record("modify_subscription", subscription_id=subscription_id, **params)
        cancel_at_period_end = params.get("cancel_at_period_end", False)
        return {
            "id": subscription_id,
            "status": self.subscription_status,
            "cancel_at_period_end": cancel_at_period_end,
            "cancel_at": None,
        }

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        self._record("create_portal_session", customer_id=customer_id, return_url=return_url)
        return "https://billing.stripe.test/portal"

    async def has_active_subscription(self, customer_id: str) -> bool:
        self._record("has_active_subscription", customer_id=customer_id)
        return self.active_subscription

    async def list_active_products(self) -> List[Dict[str, Any]]:
        self._record("list_active_products")
        return list(self.products)

    async def list_active_prices(self) -> List[Dict[str, Any]]:
        self._record("list_active_prices")
        return list(self.prices)

    def construct_event(self, payload: bytes, signature: str) -> Any:
        if signature != "valid-signature":
            raise stripe.SignatureVerificationError("No signatures found matching the expected signature", signature)
        return payload


@pytest_asyncio.fixture
async def test_engine():
    """Create a fresh in-memory database for each test."""
    from singr_backoffice.core.database import entities  # noqa: F401
    from singr_backoffice.core.database.base import Base

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(name="session")
async def session_fixture(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new session for each test."""
    async_session_maker = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session_maker() as session:  # type: ignore[attr-defined]
        yield session


@pytest.fixture
def billing_gateway() -> FakeBillingGateway:
    return FakeBillingGateway()


@pytest.fixture
def here_handler() -> Dict[str, Any]:
    """Mutable routing table of the mocked HERE API.

    ``geocode`` and ``discover`` hold either a JSON payload or an HTTP status
    code; ``requests`` collects every request the client made.
    """
    return {
        "geocode": {"items": [{"position": {"lat": 40.7128, "lng": -74.006}}]},
        "discover": {"items": []},
        "requests": [],
    }


@pytest.fixture
def here_client(here_handler: Dict[str, Any]):
    from singr_backoffice.server.services.geocoding import HereClient

    def handler(request: httpx.Request) -> httpx.Response:
        here_handler["requests"].append(request)
        route = "geocode" if request.url.path.endswith("/geocode") else "discover"
        answer = here_handler[route]
        if isinstance(answer, int):
            return httpx.Response(answer, json={"error": "failure"})
        return httpx.Response(200, json=answer)

    base_url = test_settings.third_party.here_base_url
    return HereClient(
        api_key=test_settings.third_party.here_api_key,
        geocode_url=f"{base_url}/v1/geocode",
        discover_url=f"{base_url}/v1/discover",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def attachment_storage(tmp_path):
    from singr_backoffice.server.services.support_attachments import AttachmentStorage

    return AttachmentStorage(root=str(tmp_path), max_bytes=1024 * 1024)


@pytest.fixture
def rate_limiter():
    from singr_backoffice.server.services.rate_limit import FixedWindowRateLimiter

    return FixedWindowRateLimiter(limit=100)


@pytest_asyncio.fixture(name="client")
async def client_fixture(
    session: AsyncSession,
    billing_gateway: FakeBillingGateway,
    here_client,
    attachment_storage,
    rate_limiter,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with mocked lifespan and overridden dependencies."""
    from singr_backoffice.core.database import get_session
    from singr_backoffice.server.main import app
    from singr_backoffice.server.services.billing import get_billing_gateway
    from singr_backoffice.server.services.geocoding import get_here_client
    from singr_backoffice.server.services.rate_limit import get_openkj_rate_limiter
    from singr_backoffice.server.services.support_attachments import get_attachment_storage

    async def get_session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_billing_gateway] = lambda: billing_gateway
    app.dependency_overrides[get_here_client] = lambda: here_client
    app.dependency_overrides[get_attachment_storage] = lambda: attachment_storage
    app.dependency_overrides[get_openkj_rate_limiter] = lambda: rate_limiter

    # Mock the lifespan to prevent database initialization during tests
    async def mock_lifespan(app):
        yield

    with patch("singr_backoffice.server.main.lifespan", mock_lifespan):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
            yield client

    app.dependency_overrides.clear()


# ----------------------------------------------------------------------
# Accounts
# ----------------------------------------------------------------------

DEFAULT_PASSWORD = "secret-password"


@pytest.fixture
def make_customer(session: AsyncSession) -> Callable:
    """Factory creating a customer with its Stripe link, first system and serial."""
    from singr_backoffice.core.database.entities.systems import State, System
    from singr_backoffice.core.database.entities.users import Customer, User
    from singr_backoffice.core.security import hash_secret

    async def _make(email: str = "host@example.com", name: str = "Karaoke Host", **fields: Any) -> User:
        user = User(email=email, name=name, password_hash=hash_secret(DEFAULT_PASSWORD), **fields)
        session.add(user)
        await session.flush()
        session.add(Customer(id=user.id, stripe_customer_id=f"cus_{user.id[:8]}"))
        session.add(System(user_id=user.id, name="Main System", openkj_system_id=1))
        session.add(State(user_id=user.id, serial=1))
        await session.commit()
        return user

    return _make


@pytest.fixture
def make_admin(session: AsyncSession) -> Callable:
    from singr_backoffice.core.database.entities.users import AccountType, AdminLevel, User
    from singr_backoffice.core.security import hash_secret

    async def _make(
        email: str = "admin@singr.test", level: str = AdminLevel.SUPER_ADMIN.value, account_type: str = AccountType.ADMIN.value
    ) -> User:
        user = User(
            email=email,
            name="Singr Staff",
            password_hash=hash_secret(DEFAULT_PASSWORD),
            account_type=account_type,
            admin_level=level,
        )
        session.add(user)
        await session.commit()
        return user

    return _make


def bearer(user) -> Dict[str, str]:
    from singr_backoffice.core.security import issue_session_token

    return {"Authorization": f"Bearer {issue_session_token(user.id)}"}


@pytest_asyncio.fixture
async def customer(make_customer):
    return await make_customer()


@pytest.fixture
def auth_headers(customer) -> Dict[str, str]:
    return bearer(customer)


@pytest_asyncio.fixture
async def admin(make_admin):
    return await make_admin()


@pytest.fixture
def admin_headers(admin) -> Dict[str, str]:
    return bearer(admin)


@pytest_asyncio.fixture
async def support_admin(make_admin):
    from singr_backoffice.core.database.entities.users import AdminLevel

    return await make_admin(email="support@singr.test", level=AdminLevel.SUPPORT.value)


@pytest.fixture
def support_headers(support_admin) -> Dict[str, str]:
    return bearer(support_admin)


@pytest.fixture
def headers_for() -> Callable:
    """Bearer headers for any user."""
    return bearer
