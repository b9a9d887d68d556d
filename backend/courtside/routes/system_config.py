"""
API Routes for the process-wide dispatch configuration (config/system)
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from courtside.database import get_session
from courtside.models.system_config import get_system_config
from courtside.utils.categories import TournamentType, parse_category

router = APIRouter()


class SystemConfigUpdate(BaseModel):
    auto_dispatch_enabled: Optional[bool] = None
    enabled_tournaments: Optional[List[str]] = None
    min_rest_minutes: Optional[int] = Field(default=None, ge=0)


class SystemConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    auto_dispatch_enabled: bool
    enabled_tournaments: List[str]
    min_rest_minutes: int
    updated_at: datetime


def _validate_entry(entry: str) -> Optional[str]:
    """Entries are a tournament type or a full category key"""
    try:
        TournamentType(entry)
        return None
    except ValueError:
        pass
    try:
        parse_category(entry)
        return None
    except ValueError:
        return f"Unknown tournament type or category: {entry}"


@router.get("/config/system", response_model=SystemConfigResponse)
def read_system_config(session: Session = Depends(get_session)):
    return get_system_config(session)


@router.patch("/config/system", response_model=SystemConfigResponse)
def update_system_config(payload: SystemConfigUpdate, session: Session = Depends(get_session)):
    config = get_system_config(session)

    if payload.enabled_tournaments is not None:
        errors = [e for e in (_validate_entry(x) for x in payload.enabled_tournaments) if e]
        if errors:
            raise HTTPException(status_code=422, detail=errors)
        config.enabled_tournaments = list(payload.enabled_tournaments)
    if payload.auto_dispatch_enabled is not None:
        config.auto_dispatch_enabled = payload.auto_dispatch_enabled
    if payload.min_rest_minutes is not None:
        config.min_rest_minutes = payload.min_rest_minutes

    config.updated_at = datetime.utcnow()
    session.add(config)
    session.commit()
    session.refresh(config)
    return config
