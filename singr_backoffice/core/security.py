"""
Credential helpers.

- bcrypt hashing for passwords and API keys
- random API key generation
- signed bearer session tokens (itsdangerous)
"""

from __future__ import annotations

import secrets
import string
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.concurrency import run_in_threadpool

from singr_backoffice.server.core.config import settings

API_KEY_LENGTH = 64
API_KEY_ALPHABET = string.ascii_letters + string.digits
SESSION_SALT = "singr-session"


def hash_secret(secret: str, rounds: Optional[int] = None) -> str:
    """Hash a password or API key with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")


def verify_secret(secret: str, hashed: Optional[str]) -> bool:
    """Check ``secret`` against a bcrypt hash; malformed hashes never match."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


async def hash_secret_async(secret: str, rounds: Optional[int] = None) -> str:
    """Run ``hash_secret`` in the threadpool so the event loop keeps serving."""
    return await run_in_threadpool(hash_secret, secret, rounds)


async def verify_secret_async(secret: str, hashed: Optional[str]) -> bool:
    return await run_in_threadpool(verify_secret, secret, hashed)


def generate_api_key() -> str:
    """Return a new 64 character alphanumeric API key."""
    return "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(API_KEY_LENGTH))


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.session_secret_key, salt=SESSION_SALT)


def issue_session_token(user_id: str) -> str:
    """Sign a bearer token carrying ``user_id``."""
    return _serializer().dumps({"uid": user_id})


def read_session_token(token: str, max_age: Optional[int] = None) -> Optional[str]:
    """Return the user id carried by ``token``, or None if it is invalid or expired."""
    try:
        payload = _serializer().loads(token, max_age=max_age or settings.session_max_age_seconds)
    except SignatureExpired:
        return None
    except BadSignature:
        return None
    if not isinstance(payload, dict):
        return None
    user_id = payload.get("uid")
    return user_id if isinstance(user_id, str) else None
