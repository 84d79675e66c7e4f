"""
OpenKJ desktop API I/O models.

Field names follow the wire format the OpenKJ client speaks, which is why
some keys (``errorString``, ``entries processed``) are not snake_case.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class OpenKJRequest(BaseModel):
    """Envelope shared by every OpenKJ command; extra keys are command arguments."""

    model_config = ConfigDict(extra="allow")

    api_key: str = Field(min_length=1)
    command: str = Field(min_length=1)
    venue_id: Optional[Any] = None
    system_id: Optional[Any] = None


class SongEntry(BaseModel):
    artist: Any = None
    title: Any = None
