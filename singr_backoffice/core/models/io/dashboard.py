"""
Customer dashboard I/O models.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from .venues import SongRequestRead


class RecentRequestRead(SongRequestRead):
    """A queued request together with the venue it was made at."""

    venue_id: str
    venue_name: str


class DashboardSummary(BaseModel):
    """Counts shown on the dashboard landing page."""

    venue_count: int
    accepting_venue_count: int
    active_api_key_count: int
    system_count: int
    serial: int
    open_ticket_count: int
    song_count: int = 0
    request_count: int = 0
    recent_requests: List[RecentRequestRead] = []
    subscription_status: Optional[str] = None
    plan_label: Optional[str] = None


class DashboardRequests(BaseModel):
    """Requests across every venue of the customer, newest first."""

    total_count: int
    today_count: int
    accepting_venue_count: int
    requests: List[RecentRequestRead]


class SongRead(BaseModel):
    song_id: int
    openkj_system_id: int
    artist: str
    title: str
    combined: str

    class Config:
        from_attributes = True
