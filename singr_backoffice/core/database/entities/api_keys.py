"""
API key entity model.

Only the bcrypt hash of a key is stored; the plaintext is returned once at
issue or roll time.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from ..base import Base, UTCDateTime, new_id, utc_now


class ApiKeyStatus(str, Enum):
    """Lifecycle state of an API key."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    REVOKED = "revoked"


class ApiKey(Base, table=True):
    """Bearer credential used by desktop software.

    Table: api_keys
    """

    __tablename__ = "api_keys"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    customer_id: str = Field(foreign_key="customers.id", index=True, max_length=36)
    description: Optional[str] = Field(default=None, max_length=255)
    api_key_hash: str
    status: str = Field(default=ApiKeyStatus.ACTIVE, max_length=16, index=True)
    last_used_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    revoked_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"ApiKey(id={self.id}, customer_id={self.customer_id}, status={self.status})"
