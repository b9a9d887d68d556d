from datetime import datetime
from typing import List

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

SYSTEM_CONFIG_ID = "system"


class SystemConfig(SQLModel, table=True):
    __tablename__ = "config"

    id: str = Field(default=SYSTEM_CONFIG_ID, primary_key=True)
    auto_dispatch_enabled: bool = Field(default=False)
    # Empty list = every category may be dispatched
    enabled_tournaments: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    min_rest_minutes: int = Field(default=10)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def allows(self, tournament_type: str, category: str) -> bool:
        """Entries may name a tournament type ("mens_doubles") or a full category ("mens_doubles_1")."""
        allowed = self.enabled_tournaments or []
        if not allowed:
            return True
        return tournament_type in allowed or category in allowed


def get_system_config(session) -> SystemConfig:
    config = session.get(SystemConfig, SYSTEM_CONFIG_ID)
    if config is None:
        config = SystemConfig()
    return config
