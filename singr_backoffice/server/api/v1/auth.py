"""
Authentication Endpoints.

Customer sign-up and email/password sign-in. Sign-in returns a signed bearer
token that every other authenticated route expects in the ``Authorization``
header.
"""

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from singr_backoffice.core.database.base import new_id
from singr_backoffice.core.database.entities.systems import State, System
from singr_backoffice.core.database.entities.users import Customer, User
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.auth import (
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    TokenResponse,
    UserRead,
    UserSummary,
)
from singr_backoffice.core.security import hash_secret_async, issue_session_token, verify_secret_async
from singr_backoffice.server.services.billing import BillingGatewayError
from singr_backoffice.server.services.deps import BillingGatewayDep, SessionDep

logger = get_logger(__name__)
router = APIRouter()

FIRST_SYSTEM_NAME = "Main System"


@router.post(
    "/signup",
    response_model=SignUpResponse,
    status_code=201,
    summary="Sign Up",
    description="Create a customer account together with its Stripe customer, first system and serial.",
    response_description="The created user.",
    responses={400: {"description": "Validation failed or the email is already registered"}},
)
async def signup(payload: SignUpRequest, session: SessionDep, gateway: BillingGatewayDep) -> SignUpResponse:
    """
    Register a new customer.

    The Stripe customer is created first; the user, customer link, System #1
    and the serial row are then written in a single transaction.
    """
    existing = await session.execute(select(User.id).where(User.email == payload.email))
    if existing.first() is not None:
        raise HTTPException(status_code=400, detail="User with this email already exists")

    user_id = new_id()
    try:
        stripe_customer_id = await gateway.create_customer(payload.email, payload.name, user_id)
    except BillingGatewayError as e:
        logger.error(f"Signup failed creating Stripe customer for {payload.email}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error") from e

    user = User(
        id=user_id,
        name=payload.name,
        email=payload.email,
        password_hash=await hash_secret_async(payload.password),
        business_name=payload.business_name or None,
        phone_number=payload.phone_number or None,
    )
    session.add(user)
    session.add(Customer(id=user_id, stripe_customer_id=stripe_customer_id))
    session.add(System(user_id=user_id, name=FIRST_SYSTEM_NAME, openkj_system_id=1))
    session.add(State(user_id=user_id, serial=1))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=400, detail="User with this email already exists")

    logger.info(f"Created customer account {user_id} ({payload.email})")
    return SignUpResponse(message="User created successfully", user=UserSummary.model_validate(user))


@router.post(
    "/signin",
    response_model=TokenResponse,
    summary="Sign In",
    description="Exchange email and password for a bearer session token.",
    response_description="The session token and the signed-in user.",
    responses={401: {"description": "Invalid email or password"}},
)
async def signin(payload: SignInRequest, session: SessionDep) -> TokenResponse:
    result = await session.execute(select(User).where(User.email == payload.email))
    user = result.scalars().first()
    if user is None or not await verify_secret_async(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    return TokenResponse(access_token=issue_session_token(user.id), user=UserRead.model_validate(user))
