"""
Admin notes attached to a customer account.
"""

from datetime import datetime

from sqlmodel import Field

from ..base import Base, UTCDateTime, new_id, utc_now


class UserNote(Base, table=True):
    """Internal note written by staff about a user.

    Table: user_notes
    """

    __tablename__ = "user_notes"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    created_by: str = Field(foreign_key="users.id", max_length=36)
    subject: str = Field(max_length=200)
    note: str
    important: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"UserNote(id={self.id}, user_id={self.user_id}, important={self.important})"
