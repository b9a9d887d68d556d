"""
Completion estimates for the whole event and per category.

  remaining minutes = ceil(remaining matches / usable courts) x mean duration

Remaining = waiting + on-court matches. Mean duration is the category's
moving average (DEFAULT_MATCH_MINUTES without history). Degenerate inputs
resolve to defaults: no courts counts as one, no remaining matches reports
"finished" instead of a number.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlmodel import Session, select

from courtside.models.court import Court
from courtside.models.match import ON_COURT_STATUSES, STATUS_COMPLETED, STATUS_WAITING, Match
from courtside.services.duration_tracker import DurationStats
from courtside.utils.categories import category_gender, category_label

ETA_STATUS_FINISHED = "finished"
ETA_STATUS_IN_PROGRESS = "in_progress"


@dataclass
class CategoryETA:
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


@dataclass
class TournamentETA:
    status: str
    remaining_matches: int
    active_matches: int
    total_courts: int
    mean_duration_minutes: float
    estimated_minutes_remaining: Optional[float] = None
    estimated_end_time: Optional[datetime] = None
    by_category: List[CategoryETA] = field(default_factory=list)


@dataclass
class PlayerWait:
    player_id: int
    on_court: bool
    match_id: Optional[int] = None
    court_id: Optional[int] = None
    matches_before: int = 0
    estimated_minutes: Optional[float] = None


def estimate_remaining_minutes(remaining_matches: int, available_courts: int, mean_duration: float) -> float:
    """ceil(remaining / courts) x mean; zero courts is treated as one."""
    if remaining_matches <= 0:
        return 0.0
    courts = max(available_courts, 1)
    return math.ceil(remaining_matches / courts) * mean_duration


def courts_for_category(courts: List[Court], category_gender_value: Optional[str]) -> int:
    active = [c for c in courts if c.is_active]
    if category_gender_value is None:
        return len(active)
    return len([c for c in active if c.preferred_gender in (None, category_gender_value)])


def compute_eta(session: Session, now: Optional[datetime] = None, stats: Optional[DurationStats] = None) -> TournamentETA:
    now = now or datetime.utcnow()
    stats = stats or DurationStats.load(session)
    courts = session.exec(select(Court)).all()
    matches = session.exec(select(Match)).all()

    by_category: Dict[str, List[Match]] = {}
    for m in matches:
        by_category.setdefault(m.category, []).append(m)

    entries: List[CategoryETA] = []
    for category in sorted(by_category):
        group = by_category[category]
        waiting = sum(1 for m in group if m.status == STATUS_WAITING)
        active = sum(1 for m in group if m.status in ON_COURT_STATUSES)
        remaining = waiting + active
        tournament_type = group[0].tournament_type
        usable = courts_for_category(courts, category_gender(tournament_type))
        mean = stats.mean_for(category)
        entry = CategoryETA(
            category=category,
            label=category_label(category),
            status=ETA_STATUS_FINISHED if remaining == 0 else ETA_STATUS_IN_PROGRESS,
            waiting_matches=waiting,
            active_matches=active,
            remaining_matches=remaining,
            available_courts=usable,
            mean_duration_minutes=round(mean, 2),
        )
        if remaining:
            minutes = estimate_remaining_minutes(remaining, usable, mean)
            entry.estimated_minutes_remaining = round(minutes, 1)
            entry.estimated_end_time = now + timedelta(minutes=minutes)
        entries.append(entry)

    total_remaining = sum(e.remaining_matches for e in entries)
    total_active = sum(e.active_matches for e in entries)
    total_courts = len([c for c in courts if c.is_active])
    overall_mean = _weighted_mean(entries, stats.default)

    result = TournamentETA(
        status=ETA_STATUS_FINISHED if total_remaining == 0 else ETA_STATUS_IN_PROGRESS,
        remaining_matches=total_remaining,
        active_matches=total_active,
        total_courts=total_courts,
        mean_duration_minutes=round(overall_mean, 2),
        by_category=entries,
    )
    if total_remaining:
        minutes = estimate_remaining_minutes(total_remaining, total_courts, overall_mean)
        result.estimated_minutes_remaining = round(minutes, 1)
        result.estimated_end_time = now + timedelta(minutes=minutes)
    return result


def estimate_player_wait(session: Session, player_id: int, stats: Optional[DurationStats] = None) -> Optional[PlayerWait]:
    """How long until a player's next waiting match; None if they have nothing left."""
    stats = stats or DurationStats.load(session)
    open_matches = session.exec(
        select(Match).where(Match.status != STATUS_COMPLETED).order_by(Match.created_at, Match.id)
    ).all()
    mine = [m for m in open_matches if player_id in m.player_ids()]
    if not mine:
        return None

    playing = next((m for m in mine if m.status in ON_COURT_STATUSES), None)
    if playing is not None:
        return PlayerWait(player_id=player_id, on_court=True, match_id=playing.id, court_id=playing.court_id, estimated_minutes=0.0)

    target = mine[0]
    waiting = [m for m in open_matches if m.status == STATUS_WAITING]
    before = sum(1 for m in waiting if (m.created_at, m.id) < (target.created_at, target.id))
    courts = session.exec(select(Court)).all()
    usable = courts_for_category(courts, category_gender(target.tournament_type))
    minutes = estimate_remaining_minutes(max(before, 1), usable, stats.mean_for(target.category))
    return PlayerWait(
        player_id=player_id,
        on_court=False,
        match_id=target.id,
        matches_before=before,
        estimated_minutes=round(minutes, 1),
    )


def _weighted_mean(entries: List[CategoryETA], default: float) -> float:
    weight = sum(e.remaining_matches for e in entries)
    if weight == 0:
        return default
    return sum(e.mean_duration_minutes * e.remaining_matches for e in entries) / weight
