"""
API Routes for final placings and cumulative player points
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session, select

from courtside.database import get_session
from courtside.models.match import PHASE_KNOCKOUT, Match
from courtside.models.player import Gender
from courtside.services.rankings import (
    RankingError,
    award_points,
    calculate_rankings,
    player_rankings,
)
from courtside.utils.categories import TournamentType

router = APIRouter()


class PlacingResponse(BaseModel):
    player_id: int
    rank: int
    points: int = 0


class AwardPointsRequest(BaseModel):
    points_distribution: Optional[Dict[int, int]] = None


class RankedPlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    gender: str
    division: int
    total_points: int


@router.get("/rankings/categories/{tournament_type}/{division}", response_model=List[PlacingResponse])
def get_category_placings(tournament_type: TournamentType, division: int, session: Session = Depends(get_session)):
    """Placings decided so far; nothing is awarded"""
    matches = session.exec(
        select(Match).where(
            Match.tournament_type == tournament_type.value,
            Match.division == division,
            Match.phase == PHASE_KNOCKOUT,
        )
    ).all()
    ranks = sorted(calculate_rankings(matches).items(), key=lambda r: (r[1], r[0]))
    return [PlacingResponse(player_id=pid, rank=rank) for pid, rank in ranks]


@router.post("/rankings/categories/{tournament_type}/{division}/award", response_model=List[PlacingResponse])
def award_category_points(
    tournament_type: TournamentType,
    division: int,
    payload: Optional[AwardPointsRequest] = None,
    session: Session = Depends(get_session),
):
    distribution = payload.points_distribution if payload is not None else None
    try:
        placings = award_points(session, tournament_type.value, division, distribution)
    except RankingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return [PlacingResponse(**vars(p)) for p in placings]


@router.get("/rankings/players", response_model=List[RankedPlayerResponse])
def get_player_rankings(
    gender: Optional[Gender] = Query(default=None),
    division: Optional[int] = Query(default=None),
    session: Session = Depends(get_session),
):
    return player_rankings(session, gender.value if gender is not None else None, division)
