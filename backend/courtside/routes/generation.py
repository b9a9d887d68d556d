"""
API Routes for category generation (pairings preview + persisted draws)
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session

from courtside.database import get_session
from courtside.services.tournament_builder import (
    FORMAT_KNOCKOUT,
    GenerationRequest,
    GenerationValidationError,
    KnockoutSeedingError,
    build_entrants,
    generate_category,
    seed_knockout_from_groups,
)
from courtside.utils.categories import TournamentType, category_key

router = APIRouter()


class GenerationPayload(BaseModel):
    tournament_type: TournamentType
    division: int
    format: str = FORMAT_KNOCKOUT
    pairing_mode: Optional[str] = None
    manual_pairs: List[List[int]] = Field(default_factory=list)
    group_count: int = 2
    qualifiers_per_group: int = 2
    accommodate_leftovers: bool = False

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            tournament_type=self.tournament_type.value,
            division=self.division,
            format=self.format,
            pairing_mode=self.pairing_mode,
            manual_pairs=self.manual_pairs,
            group_count=self.group_count,
            qualifiers_per_group=self.qualifiers_per_group,
            accommodate_leftovers=self.accommodate_leftovers,
        )


class WarningResponse(BaseModel):
    code: str
    message: str
    player_ids: List[int] = Field(default_factory=list)


class PairingPreviewResponse(BaseModel):
    pairs: List[List[int]]
    warnings: List[WarningResponse]


class GenerationResponse(BaseModel):
    category: str
    matches_created: int
    entrant_count: int
    bracket_size: int
    total_rounds: int
    walkovers: int
    groups: Dict[str, int]
    qualifiers: int = 0
    warnings: List[WarningResponse]


class KnockoutSeedingResponse(BaseModel):
    category: str
    qualifiers_seeded: int


def _warnings(items) -> List[WarningResponse]:
    return [WarningResponse(code=w.code, message=w.message, player_ids=w.player_ids) for w in items]


@router.post("/generation/pairings", response_model=PairingPreviewResponse)
def preview_pairings(payload: GenerationPayload, session: Session = Depends(get_session)):
    """Form entrants without persisting anything"""
    result = build_entrants(session, payload.to_request())
    if not result.ok:
        raise HTTPException(status_code=422, detail=result.errors)
    return PairingPreviewResponse(
        pairs=[list(p) for p in result.id_pairs()],
        warnings=_warnings(result.warnings),
    )


@router.post("/generation/categories", response_model=GenerationResponse, status_code=201)
def create_category(payload: GenerationPayload, session: Session = Depends(get_session)):
    """Generate and persist every match of one category in a single commit"""
    try:
        result = generate_category(session, payload.to_request())
    except GenerationValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    return GenerationResponse(
        category=result.category,
        matches_created=result.matches_created,
        entrant_count=result.entrant_count,
        bracket_size=result.bracket_size,
        total_rounds=result.total_rounds,
        walkovers=result.walkovers,
        groups=result.groups,
        qualifiers=result.qualifiers,
        warnings=_warnings(result.warnings),
    )


@router.post(
    "/generation/categories/{tournament_type}/{division}/knockout", response_model=KnockoutSeedingResponse
)
def seed_knockout(tournament_type: TournamentType, division: int, session: Session = Depends(get_session)):
    """Carry finished group standings into knockout round 1"""
    try:
        seeded = seed_knockout_from_groups(session, tournament_type.value, division)
    except KnockoutSeedingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return KnockoutSeedingResponse(category=category_key(tournament_type.value, division), qualifiers_seeded=seeded)
