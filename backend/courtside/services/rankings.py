"""
Final placings and ranking points for a finished knockout.

A knockout loser in round r of R places 2^(R - r + 1): the final loser is 2,
semifinal losers 4, quarterfinal losers 8. The final winner places 1. When a
third-place match was played its winner places 3 and its loser 4.

Points come from a placing -> points table and are added to each player's
running total once per category.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, select

from courtside.models.match import PHASE_KNOCKOUT, STATUS_COMPLETED, Match
from courtside.models.player import Player
from courtside.utils.categories import category_key

logger = logging.getLogger(__name__)

DEFAULT_POINTS_DISTRIBUTION = {1: 100, 2: 70, 3: 50, 4: 30}


class RankingError(Exception):
    """Base exception for rankings and points"""

    pass


class CategoryNotFinishedError(RankingError):
    pass


class PointsAlreadyAwardedError(RankingError):
    pass


@dataclass
class Placing:
    player_id: int
    rank: int
    points: int = 0


def calculate_rankings(matches: Iterable[Match]) -> Dict[int, int]:
    """player id -> final rank from the knockout matches of one category.

    Unfinished matches are skipped, so a running knockout yields the
    placings decided so far.
    """
    knockout = [m for m in matches if m.phase == PHASE_KNOCKOUT]
    if not knockout:
        return {}
    max_round = max(m.round for m in knockout)
    completed = [m for m in knockout if m.status == STATUS_COMPLETED]
    ranks: Dict[int, int] = {}

    for m in completed:
        if m.is_third_place:
            winner = _winner_side(m)
            if winner is None:
                continue
            for pid in m.side_player_ids(winner):
                ranks[pid] = 3
            for pid in m.side_player_ids(3 - winner):
                ranks[pid] = 4

    for m in completed:
        winner = _winner_side(m)
        if m.is_third_place or winner is None:
            continue
        for pid in m.side_player_ids(3 - winner):
            ranks.setdefault(pid, 2 ** (max_round - m.round + 1))
        if m.round == max_round:
            for pid in m.side_player_ids(winner):
                ranks[pid] = 1
    return ranks


def award_points(
    session: Session,
    tournament_type: str,
    division: int,
    distribution: Optional[Dict[int, int]] = None,
    now: Optional[datetime] = None,
) -> List[Placing]:
    """Add placing points to every ranked player of a finished category.

    Raises CategoryNotFinishedError while the final (or third-place match) is
    still open, and PointsAlreadyAwardedError on a second call.
    """
    now = now or datetime.utcnow()
    distribution = DEFAULT_POINTS_DISTRIBUTION if distribution is None else distribution
    type_value = getattr(tournament_type, "value", tournament_type)
    category = category_key(type_value, division)
    knockout = session.exec(
        select(Match).where(
            Match.tournament_type == type_value,
            Match.division == division,
            Match.phase == PHASE_KNOCKOUT,
        )
    ).all()
    if not knockout:
        raise CategoryNotFinishedError(f"{category} has no knockout matches")

    max_round = max(m.round for m in knockout)
    deciders = [m for m in knockout if m.round == max_round]
    if any(m.status != STATUS_COMPLETED for m in deciders):
        raise CategoryNotFinishedError(f"Final of {category} is not completed")
    if any(m.points_awarded for m in knockout):
        raise PointsAlreadyAwardedError(f"Points for {category} were already awarded")

    placings = [
        Placing(player_id=pid, rank=rank, points=distribution.get(rank, 0))
        for pid, rank in calculate_rankings(knockout).items()
    ]
    placings.sort(key=lambda p: (p.rank, p.player_id))

    players = {p.id: p for p in session.exec(select(Player).where(Player.id.in_([p.player_id for p in placings])))}
    for placing in placings:
        player = players.get(placing.player_id)
        if player is None or not placing.points:
            continue
        player.total_points += placing.points
        session.add(player)
    for m in knockout:
        m.points_awarded = True
        m.updated_at = now
        session.add(m)
    session.commit()
    logger.info(
        "Awarded %d points across %d players for %s",
        sum(p.points for p in placings),
        len(placings),
        category,
    )
    return placings


def player_rankings(
    session: Session, gender: Optional[str] = None, division: Optional[int] = None
) -> List[Player]:
    """Players ordered by cumulative points, highest first."""
    stmt = select(Player)
    if gender is not None:
        stmt = stmt.where(Player.gender == gender)
    if division is not None:
        stmt = stmt.where(Player.division == division)
    stmt = stmt.order_by(Player.total_points.desc(), Player.name.asc(), Player.id.asc())
    return session.exec(stmt).all()


def _winner_side(match: Match) -> Optional[int]:
    if match.winner_id is None:
        return None
    if match.winner_id in match.side_player_ids(1):
        return 1
    if match.winner_id in match.side_player_ids(2):
        return 2
    return None
