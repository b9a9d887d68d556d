"""
Match duration history: one append-only sample per completed match, and the
per-category moving average the ETA and bottleneck estimators read.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from courtside.models.match import Match
from courtside.models.match_duration_sample import MatchDurationSample
from courtside.settings import DEFAULT_MATCH_MINUTES

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 3.0
MAX_DURATION_MINUTES = 40.0
MOVING_AVERAGE_SIZE = 10


def match_elapsed_minutes(match: Match) -> Optional[float]:
    """Minutes from court start (playing, else calling) to completion; None if unknown."""
    start = match.started_at or match.called_at
    if start is None or match.completed_at is None:
        return None
    return (match.completed_at - start).total_seconds() / 60.0


def record_match_duration(session: Session, match: Match) -> Optional[MatchDurationSample]:
    """Append a sample for a completed match. Outliers are logged and skipped.

    Does not commit; callers commit together with the completion update.
    """
    minutes = match_elapsed_minutes(match)
    if minutes is None:
        logger.debug("Match %s has no start/end timestamps; no duration recorded", match.id)
        return None
    if minutes < MIN_DURATION_MINUTES or minutes > MAX_DURATION_MINUTES:
        logger.warning(
            "Discarding outlier duration %.1f min for match %s (%s)", minutes, match.id, match.category
        )
        return None

    sample = MatchDurationSample(
        category=match.category,
        match_id=match.id,
        duration_minutes=round(minutes, 2),
        recorded_at=match.completed_at or datetime.utcnow(),
    )
    session.add(sample)
    return sample


def recent_durations(session: Session, category: Optional[str] = None) -> Dict[str, List[float]]:
    """Most recent MOVING_AVERAGE_SIZE samples per category, newest first."""
    stmt = select(MatchDurationSample).order_by(
        MatchDurationSample.recorded_at.desc(), MatchDurationSample.id.desc()
    )
    if category is not None:
        stmt = stmt.where(MatchDurationSample.category == category)

    by_category: Dict[str, List[float]] = defaultdict(list)
    for sample in session.exec(stmt).all():
        bucket = by_category[sample.category]
        if len(bucket) < MOVING_AVERAGE_SIZE:
            bucket.append(sample.duration_minutes)
    return dict(by_category)


def mean_duration(samples: Optional[List[float]], default: float = DEFAULT_MATCH_MINUTES) -> float:
    if not samples:
        return default
    return sum(samples) / len(samples)


class DurationStats:
    """Snapshot of per-category moving averages with a fixed fallback."""

    def __init__(self, durations: Dict[str, List[float]], default: float = DEFAULT_MATCH_MINUTES):
        self.durations = durations
        self.default = default

    @classmethod
    def load(cls, session: Session, default: float = DEFAULT_MATCH_MINUTES) -> "DurationStats":
        return cls(recent_durations(session), default=default)

    def mean_for(self, category: str) -> float:
        return mean_duration(self.durations.get(category), self.default)

    def sample_count(self, category: str) -> int:
        return len(self.durations.get(category, []))
