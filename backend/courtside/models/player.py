from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel


class Gender(str, Enum):
    male = "male"
    female = "female"


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    gender: Gender = Field(sa_column=Column(String, nullable=False))
    division: int = Field(index=True)  # 1-based skill tier
    is_active: bool = Field(default=True)  # false once withdrawn
    total_points: int = Field(default=0)

    # Rest management: stamped when any match this player was in completes
    last_match_finished_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
