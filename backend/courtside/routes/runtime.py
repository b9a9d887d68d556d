"""
Runtime: match status + scoring, and explicit walkover resolution.
Completing a match frees its court and fills the downstream bracket slot.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from courtside.database import get_session
from courtside.models.match import Match
from courtside.services.match_runtime import (
    MatchNotFoundError,
    MatchRuntimeError,
    resolve_walkover,
    update_match_status,
)

router = APIRouter()


class MatchRuntimeUpdate(BaseModel):
    status: Optional[str] = None
    score_p1: Optional[int] = Field(default=None, ge=0)
    score_p2: Optional[int] = Field(default=None, ge=0)
    winner_side: Optional[int] = Field(default=None, ge=1, le=2)


class MatchRuntimeState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_type: str
    division: int
    round: int
    match_number: int
    status: str
    court_id: Optional[int] = None
    score_p1: int
    score_p2: int
    winner_id: Optional[int] = None
    next_match_id: Optional[int] = None
    is_walkover: bool
    called_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


def _run(action) -> Match:
    try:
        return action()
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MatchRuntimeError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.patch("/runtime/matches/{match_id}", response_model=MatchRuntimeState)
def update_match_runtime(
    match_id: int,
    payload: MatchRuntimeUpdate,
    session: Session = Depends(get_session),
):
    """Update status/score/winner. Status only moves forward."""
    return _run(
        lambda: update_match_status(
            session,
            match_id,
            new_status=payload.status,
            score_p1=payload.score_p1,
            score_p2=payload.score_p2,
            winner_side=payload.winner_side,
        )
    )


@router.post("/runtime/matches/{match_id}/walkover", response_model=MatchRuntimeState)
def resolve_match_walkover(match_id: int, session: Session = Depends(get_session)):
    return _run(lambda: resolve_walkover(session, match_id))
