"""
Admin console I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from singr_backoffice.core.validation import (
    VENUE_SLUG_PATTERN,
    blank_to_none,
    is_complete_us_phone,
)

from .api_keys import ApiKeyRead
from .billing import SubscriptionRead
from .systems import SystemRead
from .venues import VenueRead


def _admin_phone(value: Optional[str]) -> Optional[str]:
    value = blank_to_none(value)
    if value is not None and not is_complete_us_phone(value):
        raise ValueError("Phone number must include 10 digits (US format) or be blank")
    return value


class AdminUserSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    business_name: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserNoteRead(BaseModel):
    id: str
    subject: str
    note: str
    important: bool
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class AdminUserDetail(BaseModel):
    """Everything the admin customer page shows for one account."""

    user: AdminUserSummary
    stripe_customer_id: Optional[str] = None
    serial: int
    venues: list[VenueRead]
    systems: list[SystemRead]
    api_keys: list[ApiKeyRead]
    subscription: Optional[SubscriptionRead] = None
    notes: list[UserNoteRead]


class ProfileUpdate(BaseModel):
    """Partial profile update; supplied blanks clear the field."""

    name: Optional[str] = None
    business_name: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator("name", "business_name", "phone_number")
    @classmethod
    def check_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class AdminVenueCreate(BaseModel):
    """Schema for creating a venue on a customer's behalf."""

    name: str
    url_name: str
    accepting_requests: bool = True
    here_place_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "US"
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    website: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Venue name is required")
        return value

    @field_validator("url_name")
    @classmethod
    def check_url_name(cls, value: str) -> str:
        if not value:
            raise ValueError("URL name is required")
        if not VENUE_SLUG_PATTERN.fullmatch(value):
            raise ValueError("URL name can only contain lowercase letters and hyphens")
        return value

    @field_validator(
        "here_place_id", "address", "city", "state", "state_code", "postal_code", "country_code", "website"
    )
    @classmethod
    def check_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        return _admin_phone(value)


class AdminVenueUpdate(BaseModel):
    """Partial venue update; omitted fields are left untouched."""

    name: Optional[str] = None
    accepting_requests: Optional[bool] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    postal_code: Optional[str] = None
    phone_number: Optional[str] = None
    website: Optional[str] = None

    @field_validator("address", "city", "state", "state_code", "postal_code", "phone_number", "website")
    @classmethod
    def check_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class UserNoteCreate(BaseModel):
    subject: str
    note: str
    important: bool = False

    @field_validator("subject")
    @classmethod
    def check_subject(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Subject is required")
        if len(value) > 200:
            raise ValueError("Subject must be 200 characters or fewer")
        return value

    @field_validator("note")
    @classmethod
    def check_note(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Note is required")
        return value


class UserNoteImportance(BaseModel):
    """Set ``important`` explicitly, or leave it null to toggle."""

    important: Optional[bool] = None


class UserNoteCreated(BaseModel):
    id: str
    important: bool


class ActivityItem(BaseModel):
    """One row of the admin activity feed."""

    id: str
    type: str
    detail: str
    account: Optional[str] = None
    meta: Optional[str] = None
    timestamp: datetime
