"""
Tests for duration samples: outlier filtering and the per-category moving average.
"""

from datetime import datetime, timedelta

from sqlmodel import Session, select

from courtside.models.match import STATUS_COMPLETED, Match
from courtside.models.match_duration_sample import MatchDurationSample
from courtside.services.duration_tracker import (
    MOVING_AVERAGE_SIZE,
    DurationStats,
    mean_duration,
    record_match_duration,
)

NOW = datetime(2026, 5, 2, 12, 0, 0)


def _completed(minutes: float, called_only: bool = False, tournament_type: str = "mens_doubles") -> Match:
    start = NOW - timedelta(minutes=minutes)
    return Match(
        id=1,
        tournament_type=tournament_type,
        division=1,
        round=1,
        status=STATUS_COMPLETED,
        called_at=start,
        started_at=None if called_only else start,
        completed_at=NOW,
    )


def _sample(session: Session, category: str, minutes: float, age_minutes: int) -> None:
    session.add(
        MatchDurationSample(
            category=category,
            duration_minutes=minutes,
            recorded_at=NOW - timedelta(minutes=age_minutes),
        )
    )


def test_records_sample_tagged_with_category(session: Session):
    sample = record_match_duration(session, _completed(18))
    session.commit()

    assert sample is not None
    stored = session.exec(select(MatchDurationSample)).all()
    assert len(stored) == 1
    assert stored[0].category == "mens_doubles_1"
    assert stored[0].duration_minutes == 18.0


def test_falls_back_to_calling_timestamp(session: Session):
    sample = record_match_duration(session, _completed(12, called_only=True))
    assert sample.duration_minutes == 12.0


def test_outliers_are_discarded(session: Session):
    assert record_match_duration(session, _completed(1)) is None
    assert record_match_duration(session, _completed(55)) is None
    session.commit()
    assert session.exec(select(MatchDurationSample)).all() == []


def test_missing_timestamps_record_nothing(session: Session):
    match = _completed(10)
    match.called_at = None
    match.started_at = None
    assert record_match_duration(session, match) is None


def test_mean_falls_back_to_default():
    assert mean_duration([], default=15.0) == 15.0
    assert mean_duration(None, default=15.0) == 15.0
    assert mean_duration([10.0, 20.0]) == 15.0


def test_moving_average_uses_most_recent_samples(session: Session):
    # Ten recent 10-minute samples, older 30-minute ones must not count
    for age in range(MOVING_AVERAGE_SIZE):
        _sample(session, "mens_doubles_1", 10.0, age_minutes=age)
    for age in range(100, 105):
        _sample(session, "mens_doubles_1", 30.0, age_minutes=age)
    _sample(session, "womens_doubles_1", 20.0, age_minutes=1)
    session.commit()

    stats = DurationStats.load(session, default=15.0)
    assert stats.mean_for("mens_doubles_1") == 10.0
    assert stats.sample_count("mens_doubles_1") == MOVING_AVERAGE_SIZE
    assert stats.mean_for("womens_doubles_1") == 20.0
    assert stats.mean_for("mixed_doubles_1") == 15.0
