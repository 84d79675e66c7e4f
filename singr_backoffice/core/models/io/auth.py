"""
Authentication and account I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class SignUpRequest(BaseModel):
    """Schema for creating a customer account."""

    name: str = Field(description="Display name")
    email: EmailStr = Field(description="Sign-in email address")
    password: str = Field(description="Plaintext password (6 to 72 characters)")
    business_name: Optional[str] = Field(default=None, description="Business name shown to admins")
    phone_number: Optional[str] = Field(default=None, description="Contact phone number")

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be 72 bytes or fewer")
        return value


class SignInRequest(BaseModel):
    """Schema for signing in with email and password."""

    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value


class UserSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: str

    class Config:
        from_attributes = True


class UserRead(BaseModel):
    """Schema for reading the signed-in user's profile."""

    id: str
    name: Optional[str] = None
    email: str
    business_name: Optional[str] = None
    phone_number: Optional[str] = None
    image: Optional[str] = None
    account_type: str
    admin_level: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SignUpResponse(BaseModel):
    message: str
    user: UserSummary


class TokenResponse(BaseModel):
    """Bearer session token issued on sign-in."""

    access_token: str
    token_type: str = "bearer"
    user: UserRead
