"""
Runtime: forward-only match status updates, scoring and bracket advancement.

waiting -> calling -> playing -> completed. Completing a match releases its
court, stamps every player's last_match_finished_at, records a duration
sample and copies the winning side into the downstream bracket slot; a
semifinal loser drops into the third-place match.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from courtside.models.court import Court
from courtside.models.match import (
    STATUS_COMPLETED,
    STATUS_ORDER,
    STATUS_PLAYING,
    STATUS_WAITING,
    Match,
)
from courtside.models.player import Player
from courtside.services.duration_tracker import record_match_duration

logger = logging.getLogger(__name__)

class MatchRuntimeError(Exception):
    """Base exception for runtime updates"""

    pass


class MatchNotFoundError(MatchRuntimeError):
    pass


class MatchTransitionError(MatchRuntimeError):
    """Requested change would move a match backwards or is incomplete"""

    pass


def validate_status_transition(current: str, new: str) -> None:
    if new not in STATUS_ORDER:
        raise MatchTransitionError(f"Invalid status: {new}")
    if current == STATUS_COMPLETED:
        raise MatchTransitionError("completed is terminal; cannot change status")
    if STATUS_ORDER.index(new) < STATUS_ORDER.index(current):
        raise MatchTransitionError(f"Cannot move match from {current} back to {new}")


def update_match_status(
    session: Session,
    match_id: int,
    new_status: Optional[str] = None,
    score_p1: Optional[int] = None,
    score_p2: Optional[int] = None,
    winner_side: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Match:
    now = now or datetime.utcnow()
    match = session.get(Match, match_id)
    if match is None:
        raise MatchNotFoundError(f"Match {match_id} not found")

    if score_p1 is not None:
        match.score_p1 = score_p1
    if score_p2 is not None:
        match.score_p2 = score_p2

    if new_status is not None and new_status != match.status:
        validate_status_transition(match.status, new_status)
        if new_status == STATUS_COMPLETED:
            return _complete(session, match, winner_side, now)
        if new_status == STATUS_PLAYING and match.started_at is None:
            match.started_at = now
        match.status = new_status

    match.updated_at = now
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def resolve_walkover(session: Session, match_id: int, now: Optional[datetime] = None) -> Match:
    """Admin action: give a walkover slot to its only present side and advance it."""
    now = now or datetime.utcnow()
    match = session.get(Match, match_id)
    if match is None:
        raise MatchNotFoundError(f"Match {match_id} not found")
    if not match.is_walkover:
        raise MatchTransitionError(f"Match {match_id} is not a walkover")
    if match.status != STATUS_WAITING:
        raise MatchTransitionError(f"Walkover match {match_id} is already {match.status}")

    has_1 = match.player1_id is not None
    has_2 = match.player2_id is not None
    if has_1 == has_2:
        raise MatchTransitionError(f"Walkover match {match_id} must have exactly one side present")
    return _complete(session, match, 1 if has_1 else 2, now)


def _complete(session: Session, match: Match, winner_side: Optional[int], now: datetime) -> Match:
    if winner_side not in (1, 2):
        raise MatchTransitionError("winner_side (1 or 2) is required to complete a match")
    winner_ids = match.side_player_ids(winner_side)
    if not winner_ids:
        raise MatchTransitionError(f"Side {winner_side} has no players")

    match.status = STATUS_COMPLETED
    match.winner_id = winner_ids[0]
    match.completed_at = now
    match.updated_at = now
    court_id = match.court_id
    session.add(match)

    if court_id is not None:
        session.exec(
            update(Court)
            .where(Court.id == court_id, Court.current_match_id == match.id)
            .values(current_match_id=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )

    if not match.is_walkover:
        for player in session.exec(select(Player).where(Player.id.in_(match.player_ids()))).all():
            player.last_match_finished_at = now
            session.add(player)
        record_match_duration(session, match)

    advanced = _advance_winner(session, match, winner_side)
    # Semifinal loser into the third-place match
    _fill_downstream(
        session, match, 3 - winner_side, match.loser_next_match_id, match.loser_next_match_position
    )
    session.commit()
    session.refresh(match)
    logger.info(
        "Match %s (%s) completed; winner side %d, advanced=%s", match.id, match.category, winner_side, advanced
    )
    return match


def _advance_winner(session: Session, match: Match, winner_side: int) -> bool:
    return _fill_downstream(session, match, winner_side, match.next_match_id, match.next_match_position)


def _fill_downstream(
    session: Session, match: Match, side: int, downstream_id: Optional[int], position: Optional[int]
) -> bool:
    """Copy one side of a finished match into a slot of a later match."""
    if downstream_id is None or position not in (1, 2):
        return False
    players = match.side_player_ids(side)
    if not players:
        return False
    downstream = session.get(Match, downstream_id)
    if downstream is None:
        return False
    if downstream.status != STATUS_WAITING:
        logger.warning(
            "Downstream match %s already %s; side %d of %s not advanced",
            downstream.id,
            downstream.status,
            side,
            match.id,
        )
        return False

    downstream.set_side(position, players, match.seed_p1 if side == 1 else match.seed_p2)
    session.add(downstream)
    return True
