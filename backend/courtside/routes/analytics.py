"""
API Routes for ETA, bottleneck analysis and per-player waits
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from courtside.database import get_session
from courtside.models.player import Player
from courtside.services.bottleneck_analyzer import apply_suggestion, detect_bottleneck
from courtside.services.eta_estimator import compute_eta, estimate_player_wait

router = APIRouter()


class CategoryETAResponse(BaseModel):
    category: str
    label: str
    status: str
    waiting_matches: int
    active_matches: int
    remaining_matches: int
    available_courts: int
    mean_duration_minutes: float
    estimated_minutes_remaining: Optional[float] = None
    estimated_end_time: Optional[datetime] = None


class TournamentETAResponse(BaseModel):
    status: str
    remaining_matches: int
    active_matches: int
    total_courts: int
    mean_duration_minutes: float
    estimated_minutes_remaining: Optional[float] = None
    estimated_end_time: Optional[datetime] = None
    by_category: List[CategoryETAResponse]


class CategoryWaitResponse(BaseModel):
    category: str
    label: str
    waiting_matches: int
    available_courts: int
    mean_duration_minutes: float
    estimated_wait_minutes: float


class UtilizationResponse(BaseModel):
    total_courts: int
    occupied_courts: int
    idle_courts: int
    rate: float
    advisory: str
    estimated_idle_minutes: float


class BottleneckResponse(BaseModel):
    has_bottleneck: bool
    category: Optional[str] = None
    label: Optional[str] = None
    estimated_wait_minutes: Optional[float] = None
    average_wait_minutes: Optional[float] = None
    recommendation: Optional[str] = None
    categories: List[CategoryWaitResponse]
    utilization: UtilizationResponse


class ApplySuggestionRequest(BaseModel):
    category: str


class BoostResponse(BaseModel):
    category: str
    activated_at: datetime
    expires_at: datetime


class PlayerWaitResponse(BaseModel):
    player_id: int
    on_court: bool
    match_id: Optional[int] = None
    court_id: Optional[int] = None
    matches_before: int = 0
    estimated_minutes: Optional[float] = None


@router.get("/analytics/eta", response_model=TournamentETAResponse)
def get_eta(session: Session = Depends(get_session)):
    eta = compute_eta(session)
    return TournamentETAResponse(
        status=eta.status,
        remaining_matches=eta.remaining_matches,
        active_matches=eta.active_matches,
        total_courts=eta.total_courts,
        mean_duration_minutes=eta.mean_duration_minutes,
        estimated_minutes_remaining=eta.estimated_minutes_remaining,
        estimated_end_time=eta.estimated_end_time,
        by_category=[CategoryETAResponse(**vars(c)) for c in eta.by_category],
    )


@router.get("/analytics/bottlenecks", response_model=BottleneckResponse)
def get_bottlenecks(session: Session = Depends(get_session)):
    report = detect_bottleneck(session)
    return BottleneckResponse(
        has_bottleneck=report.has_bottleneck,
        category=report.category,
        label=report.label,
        estimated_wait_minutes=report.estimated_wait_minutes,
        average_wait_minutes=report.average_wait_minutes,
        recommendation=report.recommendation,
        categories=[CategoryWaitResponse(**vars(w)) for w in report.categories],
        utilization=UtilizationResponse(**vars(report.utilization)),
    )


@router.post("/analytics/bottlenecks/apply", response_model=BoostResponse)
def apply_bottleneck_suggestion(payload: ApplySuggestionRequest, session: Session = Depends(get_session)):
    try:
        boost = apply_suggestion(session, payload.category)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return BoostResponse(category=boost.category, activated_at=boost.activated_at, expires_at=boost.expires_at())


@router.get("/analytics/players/{player_id}/wait", response_model=PlayerWaitResponse)
def get_player_wait(player_id: int, session: Session = Depends(get_session)):
    if session.get(Player, player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")
    wait = estimate_player_wait(session, player_id)
    if wait is None:
        return PlayerWaitResponse(player_id=player_id, on_court=False)
    return PlayerWaitResponse(**vars(wait))
