"""
API Routes for courts
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session, select

from courtside.database import get_session
from courtside.models.court import Court
from courtside.models.player import Gender

router = APIRouter()


class CourtCreate(BaseModel):
    number: int = Field(gt=0)
    is_active: bool = True
    preferred_gender: Optional[Gender] = None


class CourtUpdate(BaseModel):
    """Partial update; current_match_id is owned by dispatch and runtime"""

    is_active: Optional[bool] = None
    preferred_gender: Optional[Gender] = None
    clear_preferred_gender: bool = False
    manually_freed: Optional[bool] = None


class CourtResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: int
    is_active: bool
    preferred_gender: Optional[str] = None
    manually_freed: bool
    current_match_id: Optional[int] = None
    updated_at: datetime


@router.get("/courts", response_model=List[CourtResponse])
def list_courts(session: Session = Depends(get_session)):
    return session.exec(select(Court).order_by(Court.number)).all()


@router.post("/courts", response_model=CourtResponse, status_code=201)
def create_court(payload: CourtCreate, session: Session = Depends(get_session)):
    existing = session.exec(select(Court).where(Court.number == payload.number)).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Court {payload.number} already exists")
    court = Court(
        number=payload.number,
        is_active=payload.is_active,
        preferred_gender=payload.preferred_gender.value if payload.preferred_gender else None,
    )
    session.add(court)
    session.commit()
    session.refresh(court)
    return court


@router.patch("/courts/{court_id}", response_model=CourtResponse)
def update_court(court_id: int, payload: CourtUpdate, session: Session = Depends(get_session)):
    court = session.get(Court, court_id)
    if not court:
        raise HTTPException(status_code=404, detail="Court not found")

    if payload.is_active is not None:
        court.is_active = payload.is_active
    if payload.clear_preferred_gender:
        court.preferred_gender = None
    elif payload.preferred_gender is not None:
        court.preferred_gender = payload.preferred_gender.value
    if payload.manually_freed is not None:
        court.manually_freed = payload.manually_freed

    court.updated_at = datetime.utcnow()
    session.add(court)
    session.commit()
    session.refresh(court)
    return court
