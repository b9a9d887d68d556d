"""
Bottleneck detection across categories with waiting matches.

Each category's remaining wait is ceil(waiting / usable courts) x mean
duration. The slowest category is flagged when it is more than
BOTTLENECK_RATIO times the average, or at least BOTTLENECK_GAP_MINUTES
behind the fastest. A flagged category can be turned into a priority boost.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from courtside.models.court import Court
from courtside.models.match import STATUS_WAITING, Match
from courtside.models.priority_boost import PriorityBoost
from courtside.services.duration_tracker import DurationStats
from courtside.services.eta_estimator import courts_for_category
from courtside.services.priority_boost import install_boost
from courtside.utils.categories import category_gender, category_label, parse_category

logger = logging.getLogger(__name__)

BOTTLENECK_RATIO = 1.5
BOTTLENECK_GAP_MINUTES = 20.0
MIN_CATEGORIES = 2

LOW_UTILIZATION = 0.5
HEALTHY_UTILIZATION = 0.7

ADVISORY_LOW = "low"
ADVISORY_MODERATE = "moderate"
ADVISORY_HEALTHY = "healthy"


@dataclass
class CategoryWait:
    category: str
    label: str
    waiting_matches: int
    available_courts: int
    mean_duration_minutes: float
    estimated_wait_minutes: float


@dataclass
class CourtUtilization:
    total_courts: int
    occupied_courts: int
    idle_courts: int
    rate: float
    advisory: str
    estimated_idle_minutes: float = 0.0


@dataclass
class BottleneckReport:
    has_bottleneck: bool
    category: Optional[str] = None
    label: Optional[str] = None
    estimated_wait_minutes: Optional[float] = None
    average_wait_minutes: Optional[float] = None
    recommendation: Optional[str] = None
    categories: List[CategoryWait] = field(default_factory=list)
    utilization: Optional[CourtUtilization] = None


def category_waits(session: Session, stats: Optional[DurationStats] = None) -> List[CategoryWait]:
    stats = stats or DurationStats.load(session)
    courts = session.exec(select(Court)).all()
    waiting = session.exec(select(Match).where(Match.status == STATUS_WAITING)).all()

    counts: Dict[str, int] = {}
    types: Dict[str, str] = {}
    for m in waiting:
        counts[m.category] = counts.get(m.category, 0) + 1
        types[m.category] = m.tournament_type

    waits = []
    for category in sorted(counts):
        usable = courts_for_category(courts, category_gender(types[category]))
        mean = stats.mean_for(category)
        minutes = math.ceil(counts[category] / max(usable, 1)) * mean
        waits.append(
            CategoryWait(
                category=category,
                label=category_label(category),
                waiting_matches=counts[category],
                available_courts=usable,
                mean_duration_minutes=round(mean, 2),
                estimated_wait_minutes=round(minutes, 1),
            )
        )
    return waits


def utilization_advisory(rate: float) -> str:
    if rate < LOW_UTILIZATION:
        return ADVISORY_LOW
    if rate > HEALTHY_UTILIZATION:
        return ADVISORY_HEALTHY
    return ADVISORY_MODERATE


def court_utilization(
    session: Session,
    stats: Optional[DurationStats] = None,
    waits: Optional[List[CategoryWait]] = None,
) -> CourtUtilization:
    """Occupied vs idle active courts. Idle minutes are only estimated when nothing is waiting."""
    stats = stats or DurationStats.load(session)
    courts = session.exec(select(Court).where(Court.is_active == True)).all()  # noqa: E712
    occupied = len([c for c in courts if c.current_match_id is not None])
    idle = len(courts) - occupied
    rate = occupied / len(courts) if courts else 0.0
    if waits is None:
        waits = category_waits(session, stats)

    idle_minutes = 0.0
    if idle and not any(w.waiting_matches for w in waits):
        idle_minutes = idle * stats.default
    return CourtUtilization(
        total_courts=len(courts),
        occupied_courts=occupied,
        idle_courts=idle,
        rate=round(rate, 2),
        advisory=utilization_advisory(rate),
        estimated_idle_minutes=round(idle_minutes, 1),
    )


def detect_bottleneck(session: Session, stats: Optional[DurationStats] = None) -> BottleneckReport:
    stats = stats or DurationStats.load(session)
    waits = category_waits(session, stats)
    report = BottleneckReport(has_bottleneck=False, categories=waits, utilization=court_utilization(session, stats, waits))
    if len(waits) < MIN_CATEGORIES:
        return report

    values = [w.estimated_wait_minutes for w in waits]
    average = sum(values) / len(values)
    slowest = max(waits, key=lambda w: (w.estimated_wait_minutes, w.waiting_matches))
    fastest = min(values)
    report.average_wait_minutes = round(average, 1)

    if slowest.estimated_wait_minutes > BOTTLENECK_RATIO * average or (
        slowest.estimated_wait_minutes - fastest >= BOTTLENECK_GAP_MINUTES
    ):
        report.has_bottleneck = True
        report.category = slowest.category
        report.label = slowest.label
        report.estimated_wait_minutes = slowest.estimated_wait_minutes
        report.recommendation = (
            f"{slowest.label} has {slowest.waiting_matches} waiting matches and about "
            f"{slowest.estimated_wait_minutes:.0f} minutes of play left versus an average of "
            f"{average:.0f}. Prioritize it on the next free courts."
        )
        logger.info("Bottleneck detected in %s (%.1f min vs avg %.1f)", slowest.category, slowest.estimated_wait_minutes, average)
    return report


def apply_suggestion(session: Session, category: str, now: Optional[datetime] = None) -> PriorityBoost:
    """Install a priority boost for the category. Raises ValueError on a malformed key."""
    parse_category(category)
    return install_boost(session, category, now or datetime.utcnow())
