"""
Request Dependencies.

Authentication guards and service providers shared by the API routers.
Bearer tokens are the signed session tokens issued by ``/auth/signin``.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from singr_backoffice.core.database import get_session
from singr_backoffice.core.database.entities.users import AccountType, AdminLevel, User
from singr_backoffice.core.security import read_session_token
from singr_backoffice.server.services.billing import StripeGateway, get_billing_gateway
from singr_backoffice.server.services.geocoding import HereClient, get_here_client
from singr_backoffice.server.services.support_attachments import AttachmentStorage, get_attachment_storage

bearer_scheme = HTTPBearer(auto_error=False)

SessionDep = Annotated[AsyncSession, Depends(get_session)]
BillingGatewayDep = Annotated[StripeGateway, Depends(get_billing_gateway)]
HereClientDep = Annotated[HereClient, Depends(get_here_client)]
AttachmentStorageDep = Annotated[AttachmentStorage, Depends(get_attachment_storage)]


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def get_current_user(
    session: SessionDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    """Resolve the signed-in user from the bearer token."""
    if credentials is None:
        raise _unauthorized()
    user_id = read_session_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized()
    user = await session.get(User, user_id)
    if user is None:
        raise _unauthorized()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def require_customer(user: CurrentUser) -> User:
    if user.account_type != AccountType.CUSTOMER:
        raise _unauthorized()
    return user


async def require_admin(user: CurrentUser) -> User:
    """Any admin account; ``support`` is the lowest admin level."""
    if user.account_type != AccountType.ADMIN:
        raise _unauthorized()
    return user


async def require_super_admin(user: Annotated[User, Depends(require_admin)]) -> User:
    if user.admin_level != AdminLevel.SUPER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


CustomerUser = Annotated[User, Depends(require_customer)]
AdminUser = Annotated[User, Depends(require_admin)]
SuperAdminUser = Annotated[User, Depends(require_super_admin)]
