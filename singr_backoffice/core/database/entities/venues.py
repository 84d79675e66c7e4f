"""
Venue and singer request entity models.

Venues are physical karaoke locations owned by a customer. Requests are the
singer song requests queued against a venue and pulled by the OpenKJ client.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from ..base import Base, UTCDateTime, new_id, utc_now


class VenueBase(Base):
    """Base fields for a venue."""

    name: str = Field(max_length=255, description="Venue display name")
    url_name: str = Field(max_length=255, description="Slug used in public request URLs")
    accepting_requests: bool = Field(default=True, description="Whether singers may submit requests")
    here_place_id: Optional[str] = Field(default=None, max_length=255, description="HERE place identifier")
    address: Optional[str] = Field(default=None, description="Street address")
    city: Optional[str] = Field(default=None, max_length=255)
    state: Optional[str] = Field(default=None, max_length=255)
    state_code: Optional[str] = Field(default=None, max_length=16)
    postal_code: Optional[str] = Field(default=None, max_length=32)
    country: Optional[str] = Field(default="US", max_length=64)
    country_code: Optional[str] = Field(default=None, max_length=8)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    website: Optional[str] = Field(default=None)
    latitude: Optional[float] = Field(default=None)
    longitude: Optional[float] = Field(default=None)


class Venue(VenueBase, table=True):
    """Persistent venue owned by a user.

    Table: venues
    """

    __tablename__ = "venues"
    __table_args__ = (
        UniqueConstraint("user_id", "url_name", name="uq_venues_user_url_name"),
        {"extend_existing": True},
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=36)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Venue(id={self.id}, url_name={self.url_name}, accepting={self.accepting_requests})"


class SongRequest(Base, table=True):
    """A singer's song request queued at a venue.

    Table: requests
    """

    __tablename__ = "requests"
    __table_args__ = ({"extend_existing": True},)

    request_id: Optional[int] = Field(default=None, primary_key=True)
    venue_id: str = Field(foreign_key="venues.id", index=True, max_length=36)
    openkj_system_id: int = Field(default=1)
    artist: str
    title: str
    singer: str
    key_change: int = Field(default=0)
    request_time: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)

    def __repr__(self) -> str:
        return f"SongRequest(request_id={self.request_id}, venue_id={self.venue_id}, singer={self.singer})"
