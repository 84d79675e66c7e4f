"""
OpenKJ system, songbook and serial entity models.

Each customer owns gaplessly numbered Systems (1, 2, 3, ...). Songbook rows are
scoped to a (user, system) pair. The State row carries the per-user serial the
desktop client polls to detect changes.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from ..base import Base, UTCDateTime, new_id, utc_now


class System(Base, table=True):
    """A numbered OpenKJ integration slot belonging to a user.

    Table: systems
    """

    __tablename__ = "systems"
    __table_args__ = (
        UniqueConstraint("user_id", "openkj_system_id", name="uq_systems_user_openkj_system_id"),
        {"extend_existing": True},
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    name: str = Field(max_length=100)
    openkj_system_id: int

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"System(id={self.id}, openkj_system_id={self.openkj_system_id}, name={self.name})"


class SongDb(Base, table=True):
    """A song in a user's songbook for one system.

    Table: songdb
    """

    __tablename__ = "songdb"
    __table_args__ = (
        UniqueConstraint("user_id", "openkj_system_id", "combined", name="uq_songdb_combined"),
        UniqueConstraint("user_id", "openkj_system_id", "normalized_combined", name="uq_songdb_normalized"),
        {"extend_existing": True},
    )

    song_id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    openkj_system_id: int = Field(default=1)
    artist: str
    title: str
    combined: str
    normalized_combined: str

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

    def __repr__(self) -> str:
        return f"SongDb(song_id={self.song_id}, combined={self.combined})"


class State(Base, table=True):
    """Per-user change counter polled by OpenKJ.

    Table: state
    """

    __tablename__ = "state"
    __table_args__ = ({"extend_existing": True},)

    user_id: str = Field(foreign_key="users.id", primary_key=True, max_length=36)
    serial: int = Field(default=1)

    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"State(user_id={self.user_id}, serial={self.serial})"
