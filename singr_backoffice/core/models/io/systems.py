"""
OpenKJ system I/O models.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _validate_system_name(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("Name is required")
    if len(value) > 100:
        raise ValueError("Name must be 100 characters or fewer")
    return value


class SystemRead(BaseModel):
    """Schema for reading a system."""

    id: str
    name: str
    openkj_system_id: int = Field(description="Sequential per-user id used by OpenKJ")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SystemCreate(BaseModel):
    """Schema for creating a system; the OpenKJ id is assigned by the server."""

    name: str

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _validate_system_name(value)


class SystemUpdate(BaseModel):
    """Schema for renaming a system."""

    name: str

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _validate_system_name(value)


class SystemEnvelope(BaseModel):
    system: SystemRead
