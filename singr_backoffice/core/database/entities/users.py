"""
User and customer entity models.

A User is any account that can sign in: venue-owning customers as well as
admin and support staff. Customer rows link a customer account to its
Stripe customer record and own API keys.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from ..base import Base, UTCDateTime, new_id, utc_now


class AccountType(str, Enum):
    """Kind of account a user holds."""

    CUSTOMER = "customer"
    ADMIN = "admin"
    SUPPORT = "support"


class AdminLevel(str, Enum):
    """Privilege tier for admin accounts."""

    SUPPORT = "support"
    SUPER_ADMIN = "super_admin"


class UserBase(Base):
    """Base fields for a user account."""

    name: Optional[str] = Field(default=None, max_length=255, description="Display name")
    email: str = Field(max_length=255, unique=True, index=True, description="Sign-in email address")
    business_name: Optional[str] = Field(default=None, max_length=255, description="Customer business name")
    phone_number: Optional[str] = Field(default=None, max_length=32, description="Contact phone number")
    image: Optional[str] = Field(default=None, description="Avatar URL")
    account_type: str = Field(default=AccountType.CUSTOMER, max_length=32, description="customer, admin or support")
    admin_level: Optional[str] = Field(default=None, max_length=32, description="support or super_admin")


class User(UserBase, table=True):
    """Persistent user account.

    Table: users
    """

    __tablename__ = "users"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    password_hash: Optional[str] = Field(default=None, description="bcrypt hash of the password")

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    @property
    def is_admin(self) -> bool:
        return self.account_type in (AccountType.ADMIN, AccountType.SUPPORT)

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email}, account_type={self.account_type})"


class Customer(Base, table=True):
    """Billing identity of a customer account.

    The primary key is the owning user's id.

    Table: customers
    """

    __tablename__ = "customers"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(foreign_key="users.id", primary_key=True, max_length=36)
    stripe_customer_id: str = Field(unique=True, index=True, max_length=255)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Customer(id={self.id}, stripe_customer_id={self.stripe_customer_id})"
