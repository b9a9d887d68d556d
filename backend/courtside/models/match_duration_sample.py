from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class MatchDurationSample(SQLModel, table=True):
    """Append-only history of completed match lengths, one row per match."""

    __tablename__ = "matchdurationsample"

    id: Optional[int] = Field(default=None, primary_key=True)
    category: str = Field(index=True)
    match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    duration_minutes: float
    recorded_at: datetime = Field(default_factory=datetime.utcnow, index=True)
