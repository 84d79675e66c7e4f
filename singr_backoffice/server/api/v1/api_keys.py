"""
API Key Endpoints.

Customers issue keys here for the OpenKJ desktop client. Keys are stored as
bcrypt hashes, so the plaintext is returned exactly once, on create or roll.
"""

from typing import List

from fastapi import APIRouter, HTTPException

from singr_backoffice.core.database.entities.api_keys import ApiKey, ApiKeyStatus
from singr_backoffice.core.database.repositories import ApiKeyRepository
from singr_backoffice.core.models.io.api_keys import ApiKeyCreate, ApiKeyIssued, ApiKeyRead
from singr_backoffice.core.models.io.support import SuccessResponse
from singr_backoffice.server.services.api_keys import ApiKeyService
from singr_backoffice.server.services.deps import CustomerUser, SessionDep

router = APIRouter()


async def _owned_key(session: SessionDep, key_id: str, user_id: str) -> ApiKey:
    api_key = await ApiKeyRepository(session).get_for_customer(key_id, user_id)
    if api_key is None:
        raise HTTPException(status_code=404, detail="API key not found")
    return api_key


@router.get(
    "",
    response_model=List[ApiKeyRead],
    summary="List API Keys",
    description="The customer's API keys, newest first. Hashes are never returned.",
    response_description="List of API keys.",
)
async def list_api_keys(user: CustomerUser, session: SessionDep) -> List[ApiKeyRead]:
    keys = await ApiKeyRepository(session).list_for_customer(user.id)
    return [ApiKeyRead.model_validate(key) for key in keys]


@router.post(
    "",
    response_model=ApiKeyIssued,
    summary="Create API Key",
    description="Issue a new API key. The plaintext key is only included in this response.",
    response_description="The issued key.",
)
async def create_api_key(payload: ApiKeyCreate, user: CustomerUser, session: SessionDep) -> ApiKeyIssued:
    issued = await ApiKeyService(session).issue(user.id, payload.description)
    await session.commit()
    return issued


@router.post(
    "/{key_id}/revoke",
    response_model=SuccessResponse,
    summary="Revoke API Key",
    description="Revoke a key. Revoking an already revoked key succeeds and keeps the original time.",
    response_description="Success flag.",
    responses={404: {"description": "API key not found"}},
)
async def revoke_api_key(key_id: str, user: CustomerUser, session: SessionDep) -> SuccessResponse:
    api_key = await _owned_key(session, key_id, user.id)
    await ApiKeyService(session).revoke(api_key)
    await session.commit()
    return SuccessResponse()


@router.post(
    "/{key_id}/roll",
    response_model=ApiKeyIssued,
    summary="Roll API Key",
    description="Replace the key's secret and reactivate it.",
    response_description="The key with its new plaintext value.",
    responses={
        400: {"description": "Cannot roll a revoked API key"},
        404: {"description": "API key not found"},
    },
)
async def roll_api_key(key_id: str, user: CustomerUser, session: SessionDep) -> ApiKeyIssued:
    api_key = await _owned_key(session, key_id, user.id)
    if api_key.status == ApiKeyStatus.REVOKED:
        raise HTTPException(status_code=400, detail="Cannot roll a revoked API key")
    issued = await ApiKeyService(session).roll(api_key)
    await session.commit()
    return issued
