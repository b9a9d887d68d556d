from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Field, SQLModel

ACTIVE_BOOST_ID = 1


class PriorityBoost(SQLModel, table=True):
    """Single-row record; installing a boost overwrites row ACTIVE_BOOST_ID."""

    __tablename__ = "priorityboost"

    id: Optional[int] = Field(default=ACTIVE_BOOST_ID, primary_key=True)
    category: str
    activated_at: datetime
    ttl_minutes: int = Field(default=30)

    def expires_at(self) -> datetime:
        return self.activated_at + timedelta(minutes=self.ttl_minutes)

    def is_active(self, now: datetime) -> bool:
        return now - self.activated_at <= timedelta(minutes=self.ttl_minutes)
