"""
Category generation: roster -> entrants -> bracket or groups -> Match rows.

All validation happens before anything is written; a category is persisted
in a single commit or not at all.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from courtside.models.match import PHASE_KNOCKOUT, PHASE_PRELIMINARY, STATUS_COMPLETED, Match
from courtside.models.player import Player
from courtside.services.bracket_generator import Bracket, generate_bracket, placeholder_bracket, points_for_round
from courtside.services.pairing_generator import (
    PairingResult,
    PairingWarning,
    build_manual_pairs,
    eligible_players,
    generate_mixed_pairs,
    generate_random_pairs,
    shuffle_entrants,
)
from courtside.services.round_robin import compute_group_standings, round_robin_pairings, split_into_groups
from courtside.utils.categories import TournamentType, category_gender, category_key, is_doubles

logger = logging.getLogger(__name__)

FORMAT_KNOCKOUT = "knockout"
FORMAT_GROUPS = "groups"
FORMAT_GROUPS_KNOCKOUT = "groups_knockout"
FORMATS = (FORMAT_KNOCKOUT, FORMAT_GROUPS, FORMAT_GROUPS_KNOCKOUT)
GROUP_FORMATS = (FORMAT_GROUPS, FORMAT_GROUPS_KNOCKOUT)

PAIRING_SINGLES = "singles"
PAIRING_RANDOM = "random"
PAIRING_MIXED = "mixed"
PAIRING_MANUAL = "manual"

GROUP_POINTS = 15
MAX_GROUPS = 26


class GenerationError(Exception):
    """Base exception for category generation"""

    pass


class GenerationValidationError(GenerationError):
    """Input problems found before anything was written"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class KnockoutSeedingError(GenerationError):
    """Group results cannot be carried into the knockout yet"""

    pass


@dataclass
class GenerationRequest:
    tournament_type: str
    division: int
    format: str = FORMAT_KNOCKOUT
    pairing_mode: Optional[str] = None
    manual_pairs: List[List[int]] = field(default_factory=list)
    group_count: int = 2
    qualifiers_per_group: int = 2
    accommodate_leftovers: bool = False

    @property
    def category(self) -> str:
        return category_key(self.tournament_type, self.division)

    def resolved_pairing_mode(self) -> str:
        if self.pairing_mode:
            return self.pairing_mode
        if not is_doubles(self.tournament_type):
            return PAIRING_SINGLES
        if category_gender(self.tournament_type) is None:
            return PAIRING_MIXED
        return PAIRING_RANDOM


@dataclass
class GenerationResult:
    category: str
    matches_created: int
    entrant_count: int
    bracket_size: int = 0
    total_rounds: int = 0
    walkovers: int = 0
    groups: Dict[str, int] = field(default_factory=dict)
    qualifiers: int = 0
    warnings: List[PairingWarning] = field(default_factory=list)


def build_entrants(session: Session, request: GenerationRequest, rng: Optional[random.Random] = None) -> PairingResult:
    """Filter the roster and form entrants. Does not write."""
    errors = _validate_request(request)
    if errors:
        return PairingResult(errors=errors)

    players = session.exec(select(Player).order_by(Player.id)).all()
    mode = request.resolved_pairing_mode()
    gender = category_gender(request.tournament_type)

    if mode == PAIRING_MIXED:
        return generate_mixed_pairs(
            eligible_players(players, request.division), rng, accommodate_leftovers=request.accommodate_leftovers
        )

    pool = eligible_players(players, request.division, gender)
    if mode == PAIRING_SINGLES:
        return shuffle_entrants(pool, rng)
    if mode == PAIRING_MANUAL:
        return build_manual_pairs(pool, request.manual_pairs)
    return generate_random_pairs(pool, rng)


def generate_category(
    session: Session,
    request: GenerationRequest,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """Generate and persist every match of one category.

    Raises GenerationValidationError with all messages if the request cannot
    be honoured; nothing is written in that case.
    """
    now = now or datetime.utcnow()
    pairing = build_entrants(session, request, rng)
    errors = list(pairing.errors)

    existing = session.exec(
        select(Match).where(
            Match.tournament_type == _type_value(request.tournament_type),
            Match.division == request.division,
        )
    ).first()
    if existing is not None:
        errors.append(f"Category {request.category} already has matches; clear them before regenerating")

    if not errors and request.format in GROUP_FORMATS:
        errors.extend(_group_errors(request, len(pairing.pairs)))
    if errors:
        logger.warning("Generation of %s rejected: %s", request.category, "; ".join(errors))
        raise GenerationValidationError(errors)

    entrants = [tuple(p.id for p in pair) for pair in pairing.pairs]
    doubles = is_doubles(request.tournament_type)
    result = GenerationResult(
        category=request.category,
        matches_created=0,
        entrant_count=len(entrants),
        warnings=pairing.warnings,
    )

    if request.format in GROUP_FORMATS:
        matches = _group_matches(request, entrants, doubles, now, result)
        if request.format == FORMAT_GROUPS_KNOCKOUT:
            result.qualifiers = request.group_count * request.qualifiers_per_group
            # Group matches first so they keep the lower ids in dispatch order
            session.add_all(matches)
            bracket = placeholder_bracket(result.qualifiers)
            matches += _persist_bracket(session, request, bracket, doubles, now)
            result.bracket_size = bracket.bracket_size
            result.total_rounds = bracket.total_rounds
            result.walkovers = len(bracket.walkovers)
    else:
        bracket = generate_bracket(entrants, is_doubles=doubles)
        matches = _persist_bracket(session, request, bracket, doubles, now)
        result.bracket_size = bracket.bracket_size
        result.total_rounds = bracket.total_rounds
        result.walkovers = len(bracket.walkovers)

    session.add_all(matches)
    session.commit()
    result.matches_created = len(matches)
    logger.info(
        "Generated %d matches for %s (%d entrants, %d warnings)",
        result.matches_created,
        request.category,
        result.entrant_count,
        len(result.warnings),
    )
    return result


def seed_knockout_from_groups(
    session: Session,
    tournament_type: str,
    division: int,
    now: Optional[datetime] = None,
) -> int:
    """Fill knockout round 1 with group qualifiers once every group match is done.

    Qualifiers are taken rank by rank across groups (A1, B1, ..., A2, B2, ...)
    and numbered in that order; each fills the round-1 side reserved for its
    seed. Returns the number of qualifiers placed.
    """
    now = now or datetime.utcnow()
    type_value = _type_value(tournament_type)
    category = category_key(type_value, division)
    matches = session.exec(
        select(Match).where(Match.tournament_type == type_value, Match.division == division)
    ).all()
    preliminary = [m for m in matches if m.phase == PHASE_PRELIMINARY]
    first_round = sorted(
        (m for m in matches if m.phase == PHASE_KNOCKOUT and m.round == 1), key=lambda m: m.match_number
    )

    if not preliminary or not first_round:
        raise KnockoutSeedingError(f"{category} has no group stage feeding a knockout")
    unfinished = [m for m in preliminary if m.status != STATUS_COMPLETED]
    if unfinished:
        raise KnockoutSeedingError(f"{len(unfinished)} group match(es) in {category} are not completed")
    if any(m.player_ids() for m in first_round):
        raise KnockoutSeedingError(f"Knockout of {category} is already seeded")

    labels = sorted({m.group_label for m in preliminary})
    seed_count = sum(1 for m in first_round for s in (m.seed_p1, m.seed_p2) if s is not None)
    per_group = seed_count // len(labels)
    standings = {label: compute_group_standings(preliminary, label) for label in labels}

    by_seed: Dict[int, tuple] = {}
    for rank in range(per_group):
        for label in labels:
            if rank >= len(standings[label]):
                raise KnockoutSeedingError(f"Group {label} of {category} has fewer than {per_group} entrants")
            by_seed[len(by_seed) + 1] = standings[label][rank].side_key

    for match in first_round:
        for side, seed in ((1, match.seed_p1), (2, match.seed_p2)):
            if seed is not None:
                match.set_side(side, list(by_seed[seed]), seed)
        match.updated_at = now
        session.add(match)
    session.commit()
    logger.info("Seeded %d group qualifiers into the %s knockout", len(by_seed), category)
    return len(by_seed)


def _persist_bracket(
    session: Session,
    request: GenerationRequest,
    bracket: Bracket,
    doubles: bool,
    now: datetime,
) -> List[Match]:
    by_slot: Dict[str, Match] = {}
    for slot in bracket.slots:
        p = slot.player_slots()
        by_slot[slot.slot_id] = Match(
            tournament_type=_type_value(request.tournament_type),
            division=request.division,
            round=slot.round_number,
            match_number=slot.match_number,
            phase=PHASE_KNOCKOUT,
            player1_id=p[0],
            player2_id=p[1],
            player3_id=p[2],
            player4_id=p[3],
            player5_id=p[4],
            player6_id=p[5],
            seed_p1=slot.seed_a,
            seed_p2=slot.seed_b,
            is_walkover=slot.is_walkover,
            is_third_place=slot.is_third_place,
            is_doubles=doubles,
            points_per_match=points_for_round(slot.round_number, bracket.total_rounds),
            created_at=now,
            updated_at=now,
        )

    # Ids are needed for next_match_id; flush inside the same transaction
    session.add_all(by_slot.values())
    session.flush()
    for slot in bracket.slots:
        match = by_slot[slot.slot_id]
        if slot.next_slot_id is not None:
            match.next_match_id = by_slot[slot.next_slot_id].id
            match.next_match_position = slot.next_position
        if slot.loser_next_slot_id is not None:
            match.loser_next_match_id = by_slot[slot.loser_next_slot_id].id
            match.loser_next_match_position = slot.loser_next_position
    return list(by_slot.values())


def _group_matches(
    request: GenerationRequest,
    entrants: Sequence[tuple],
    doubles: bool,
    now: datetime,
    result: GenerationResult,
) -> List[Match]:
    matches = []
    for label, members in split_into_groups(entrants, request.group_count).items():
        result.groups[label] = len(members)
        for number, (side_a, side_b) in enumerate(round_robin_pairings(members), start=1):
            a = list(side_a) + [None] * (3 - len(side_a))
            b = list(side_b) + [None] * (3 - len(side_b))
            matches.append(
                Match(
                    tournament_type=_type_value(request.tournament_type),
                    division=request.division,
                    round=1,
                    match_number=number,
                    phase=PHASE_PRELIMINARY,
                    group_label=label,
                    player1_id=a[0],
                    player2_id=b[0],
                    player3_id=a[1],
                    player4_id=b[1],
                    player5_id=a[2],
                    player6_id=b[2],
                    is_doubles=doubles,
                    points_per_match=GROUP_POINTS,
                    created_at=now,
                    updated_at=now,
                )
            )
    return matches


def _group_errors(request: GenerationRequest, entrant_count: int) -> List[str]:
    if request.group_count > entrant_count // 2:
        return [f"Cannot split {entrant_count} entrants into {request.group_count} groups of at least 2"]
    errors = []
    if request.format == FORMAT_GROUPS_KNOCKOUT:
        smallest = entrant_count // request.group_count
        if request.qualifiers_per_group > smallest:
            errors.append(
                f"qualifiers_per_group {request.qualifiers_per_group} exceeds the smallest group size {smallest}"
            )
        elif request.group_count * request.qualifiers_per_group < 2:
            errors.append("A knockout needs at least 2 qualifiers")
    return errors


def _validate_request(request: GenerationRequest) -> List[str]:
    errors = []
    try:
        TournamentType(_type_value(request.tournament_type))
    except ValueError:
        errors.append(f"Unknown tournament type: {request.tournament_type}")
        return errors
    if request.division is None or request.division <= 0:
        errors.append(f"Division must be a positive number, got {request.division}")
    if request.format not in FORMATS:
        errors.append(f"Unknown format: {request.format}")
    mode = request.resolved_pairing_mode()
    if mode not in (PAIRING_SINGLES, PAIRING_RANDOM, PAIRING_MIXED, PAIRING_MANUAL):
        errors.append(f"Unknown pairing mode: {mode}")
    elif is_doubles(request.tournament_type) == (mode == PAIRING_SINGLES):
        errors.append(f"Pairing mode {mode} does not fit {_type_value(request.tournament_type)}")
    if mode == PAIRING_MANUAL and not request.manual_pairs:
        errors.append("Manual pairing requires at least one pair")
    if request.format in GROUP_FORMATS and not 1 <= request.group_count <= MAX_GROUPS:
        errors.append(f"group_count must be between 1 and {MAX_GROUPS}")
    if request.format == FORMAT_GROUPS_KNOCKOUT and request.qualifiers_per_group < 1:
        errors.append("qualifiers_per_group must be at least 1")
    return errors


def _type_value(tournament_type) -> str:
    return getattr(tournament_type, "value", tournament_type)
