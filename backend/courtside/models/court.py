from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Court(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    number: int = Field(index=True)
    is_active: bool = Field(default=True)
    preferred_gender: Optional[str] = Field(default=None)  # "male" | "female" | None (any category)
    # Held by an admin; never filled by dispatch while set
    manually_freed: bool = Field(default=False)

    # At most one non-completed match may reference a court; claimed by conditional update only
    current_match_id: Optional[int] = Field(default=None)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
