"""
Venue I/O models.

Blank strings coming from dashboard forms are stored as NULL.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from singr_backoffice.core.validation import (
    URL_NAME_PATTERN,
    blank_to_none,
    format_us_phone,
    is_complete_us_phone,
    is_valid_url,
)


def _validate_phone(value: Optional[str]) -> Optional[str]:
    value = blank_to_none(value)
    if value is None:
        return None
    if not is_complete_us_phone(value):
        raise ValueError("Phone number must be a complete US number")
    return format_us_phone(value)


def _validate_website(value: Optional[str]) -> Optional[str]:
    value = blank_to_none(value)
    if value is None:
        return None
    if not is_valid_url(value):
        raise ValueError("Invalid website URL")
    return value


class VenueRead(BaseModel):
    """Schema for reading a venue."""

    id: str
    name: str
    url_name: str
    accepting_requests: bool
    here_place_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    website: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VenueCreate(BaseModel):
    """Schema for creating a venue from the customer dashboard."""

    name: str
    url_name: str = Field(description="Lowercase letters, numbers and hyphens")
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
    accepting_requests: bool = True

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("url_name")
    @classmethod
    def check_url_name(cls, value: str) -> str:
        if not URL_NAME_PATTERN.fullmatch(value):
            raise ValueError("URL name can only contain lowercase letters, numbers, and hyphens")
        return value

    @field_validator("here_place_id", "address", "city", "state", "state_code", "postal_code", "country_code")
    @classmethod
    def check_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        return _validate_phone(value)

    @field_validator("website")
    @classmethod
    def check_website(cls, value: Optional[str]) -> Optional[str]:
        return _validate_website(value)


class VenueUpdate(BaseModel):
    """Schema for editing a venue's contact and address details."""

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    phone_number: Optional[str] = None
    website: Optional[str] = None

    @field_validator("address", "city", "state", "postal_code")
    @classmethod
    def check_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        return _validate_phone(value)

    @field_validator("website")
    @classmethod
    def check_website(cls, value: Optional[str]) -> Optional[str]:
        return _validate_website(value)


class VenueAcceptingUpdate(BaseModel):
    accepting: bool


class VenueAcceptingResponse(BaseModel):
    success: bool = True
    accepting: bool


class SongRequestRead(BaseModel):
    """A queued singer request."""

    request_id: int
    artist: str
    title: str
    singer: str
    key_change: int
    request_time: datetime

    class Config:
        from_attributes = True


class VenueRequestsResponse(BaseModel):
    requests: list[SongRequestRead]


class UserLocation(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class VenueSearchRequest(BaseModel):
    """Free-text venue search, optionally biased to the user's location."""

    query: str
    user_location: Optional[UserLocation] = None

    @field_validator("query")
    @classmethod
    def check_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Search query is required")
        return value


class VenueSearchResponse(BaseModel):
    results: list[dict[str, Any]]
    query: str
    user_location: Optional[UserLocation] = None
    fallback: bool = False
