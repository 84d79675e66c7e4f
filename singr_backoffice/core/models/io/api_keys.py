"""
API key I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ApiKeyRead(BaseModel):
    """Schema for listing API keys; the hash is never exposed."""

    id: str
    description: Optional[str] = None
    status: str
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApiKeyCreate(BaseModel):
    description: str = Field(description="Label shown in the dashboard")

    @field_validator("description")
    @classmethod
    def check_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Description is required")
        return value


class ApiKeyIssued(BaseModel):
    """A freshly issued or rolled key; ``api_key`` is the only copy of the plaintext."""

    id: str
    api_key: str
    description: Optional[str] = None
    status: str
    created_at: datetime
