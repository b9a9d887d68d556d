"""
API Routes for the player roster
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session, select

from courtside.database import get_session
from courtside.models.player import Gender, Player

router = APIRouter()


class PlayerCreate(BaseModel):
    name: str = Field(min_length=1)
    gender: Gender
    division: int = Field(gt=0)
    is_active: bool = True
    total_points: int = 0


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    gender: str
    division: int
    is_active: bool
    total_points: int
    last_match_finished_at: Optional[datetime] = None


@router.get("/players", response_model=List[PlayerResponse])
def list_players(
    division: Optional[int] = Query(default=None),
    active_only: bool = Query(default=False),
    session: Session = Depends(get_session),
):
    stmt = select(Player).order_by(Player.division, Player.name)
    if division is not None:
        stmt = stmt.where(Player.division == division)
    if active_only:
        stmt = stmt.where(Player.is_active == True)  # noqa: E712
    return session.exec(stmt).all()


@router.post("/players", response_model=PlayerResponse, status_code=201)
def create_player(payload: PlayerCreate, session: Session = Depends(get_session)):
    player = Player(
        name=payload.name.strip(),
        gender=payload.gender.value,
        division=payload.division,
        is_active=payload.is_active,
        total_points=payload.total_points,
    )
    session.add(player)
    session.commit()
    session.refresh(player)
    return player
