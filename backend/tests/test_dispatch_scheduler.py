"""
Tests for court dispatch: selection policy, atomic claims under two
concurrent scheduler instances, and the tick lifecycle with a fake clock.
"""

from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from courtside.models.court import Court
from courtside.models.match import STATUS_CALLING, STATUS_PLAYING, STATUS_WAITING, Match
from courtside.models.player import Player
from courtside.models.priority_boost import PriorityBoost
from courtside.models.system_config import SystemConfig
from courtside.services.dispatch_scheduler import (
    ClaimOutcome,
    DispatchScheduler,
    apply_snapshot,
    claim_court,
    dispatch_once,
    take_snapshot,
)

NOW = datetime(2026, 5, 2, 10, 0, 0)


def _player(session: Session, name: str, gender: str = "male", division: int = 1) -> Player:
    player = Player(name=name, gender=gender, division=division)
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


def _court(session: Session, number: int, **kwargs) -> Court:
    court = Court(number=number, **kwargs)
    session.add(court)
    session.commit()
    session.refresh(court)
    return court


def _match(
    session: Session,
    minutes_ago: int,
    tournament_type: str = "mens_singles",
    division: int = 1,
    players: tuple = None,
    **kwargs,
) -> Match:
    if players is None:
        gender = "female" if tournament_type.startswith("womens") else "male"
        a = _player(session, f"A{minutes_ago}", gender)
        b = _player(session, f"B{minutes_ago}", gender)
        players = (a.id, b.id)
    match = Match(
        tournament_type=tournament_type,
        division=division,
        round=1,
        player1_id=players[0],
        player2_id=players[1],
        created_at=NOW - timedelta(minutes=minutes_ago),
        **kwargs,
    )
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def _config(session: Session, **kwargs) -> SystemConfig:
    config = SystemConfig(**kwargs)
    session.add(config)
    session.commit()
    return config


def _calling(session: Session) -> list[Match]:
    session.expire_all()
    return session.exec(select(Match).where(Match.status == STATUS_CALLING)).all()


class TestSelectionPolicy:
    def test_oldest_waiting_match_first(self, session: Session):
        _court(session, 1)
        newer = _match(session, minutes_ago=5)
        older = _match(session, minutes_ago=30)

        assert dispatch_once(session, NOW) == 1
        calling = _calling(session)
        assert [m.id for m in calling] == [older.id]
        session.refresh(newer)
        assert newer.status == STATUS_WAITING

    def test_assignment_sets_court_and_timestamps(self, session: Session):
        court = _court(session, 1)
        match = _match(session, minutes_ago=10)

        dispatch_once(session, NOW)
        session.expire_all()
        match = session.get(Match, match.id)
        court = session.get(Court, court.id)
        assert match.status == STATUS_CALLING
        assert match.court_id == court.id
        assert match.called_at == NOW
        assert match.updated_at == NOW
        assert court.current_match_id == match.id

    def test_boosted_category_first(self, session: Session):
        _court(session, 1)
        _match(session, minutes_ago=60, tournament_type="mens_singles")
        boosted = _match(session, minutes_ago=1, tournament_type="womens_singles")
        session.add(PriorityBoost(category="womens_singles_1", activated_at=NOW - timedelta(minutes=5)))
        session.commit()

        dispatch_once(session, NOW)
        assert [m.id for m in _calling(session)] == [boosted.id]

    def test_expired_boost_is_ignored_without_deletion(self, session: Session):
        _court(session, 1)
        older = _match(session, minutes_ago=60, tournament_type="mens_singles")
        _match(session, minutes_ago=1, tournament_type="womens_singles")
        session.add(
            PriorityBoost(category="womens_singles_1", activated_at=NOW - timedelta(minutes=31), ttl_minutes=30)
        )
        session.commit()

        dispatch_once(session, NOW)
        assert [m.id for m in _calling(session)] == [older.id]
        assert session.exec(select(PriorityBoost)).first() is not None

    def test_allow_list_restricts_categories(self, session: Session):
        _court(session, 1)
        _court(session, 2)
        _match(session, minutes_ago=60, tournament_type="mens_singles")
        allowed = _match(session, minutes_ago=1, tournament_type="womens_singles")
        _config(session, enabled_tournaments=["womens_singles"])

        assert dispatch_once(session, NOW) == 1
        assert [m.id for m in _calling(session)] == [allowed.id]

    def test_allow_list_accepts_full_category_key(self, session: Session):
        _court(session, 1)
        _court(session, 2)
        _match(session, minutes_ago=60, division=1)
        allowed = _match(session, minutes_ago=1, division=2)
        _config(session, enabled_tournaments=["mens_singles_2"])

        dispatch_once(session, NOW)
        assert [m.id for m in _calling(session)] == [allowed.id]

    def test_unresolved_slots_are_skipped(self, session: Session):
        _court(session, 1)
        p = _player(session, "Solo")
        _match(session, minutes_ago=60, players=(p.id, None))
        ready = _match(session, minutes_ago=1)

        assert dispatch_once(session, NOW) == 1
        assert [m.id for m in _calling(session)] == [ready.id]

    def test_doubles_needs_both_partners(self, session: Session):
        _court(session, 1)
        a, b, c = (_player(session, n) for n in ("A", "B", "C"))
        _match(session, minutes_ago=5, tournament_type="mens_doubles", players=(a.id, b.id), player3_id=c.id, is_doubles=True)

        assert dispatch_once(session, NOW) == 0

    def test_no_courts_or_no_matches_is_zero(self, session: Session):
        assert dispatch_once(session, NOW) == 0
        _court(session, 1)
        assert dispatch_once(session, NOW) == 0

    def test_inactive_and_held_courts_never_filled(self, session: Session):
        _court(session, 1, is_active=False)
        _court(session, 2, manually_freed=True)
        _match(session, minutes_ago=5)

        assert dispatch_once(session, NOW) == 0

    def test_gendered_court_takes_own_gender_and_mixed(self, session: Session):
        _court(session, 1, preferred_gender="female")
        _match(session, minutes_ago=60, tournament_type="mens_singles")
        womens = _match(session, minutes_ago=1, tournament_type="womens_singles")

        dispatch_once(session, NOW)
        assert [m.id for m in _calling(session)] == [womens.id]


class TestPlayerAvailability:
    def test_player_on_court_blocks_other_match(self, session: Session):
        court_busy = _court(session, 1)
        _court(session, 2)
        a, b, c = (_player(session, n) for n in ("A", "B", "C"))
        _match(session, minutes_ago=30, players=(a.id, b.id), status=STATUS_PLAYING, court_id=court_busy.id)
        court_busy.current_match_id = 999
        session.add(court_busy)
        session.commit()
        _match(session, minutes_ago=10, players=(a.id, c.id))

        assert dispatch_once(session, NOW) == 0

    def test_same_player_not_placed_twice_in_one_tick(self, session: Session):
        _court(session, 1)
        _court(session, 2)
        a, b, c = (_player(session, n) for n in ("A", "B", "C"))
        first = _match(session, minutes_ago=30, players=(a.id, b.id))
        _match(session, minutes_ago=10, players=(a.id, c.id))

        assert dispatch_once(session, NOW) == 1
        assert [m.id for m in _calling(session)] == [first.id]

    def test_resting_player_waits(self, session: Session):
        _court(session, 1)
        a, b = _player(session, "A"), _player(session, "B")
        a.last_match_finished_at = NOW - timedelta(minutes=4)
        session.add(a)
        session.commit()
        _match(session, minutes_ago=10, players=(a.id, b.id))
        _config(session, min_rest_minutes=10)

        assert dispatch_once(session, NOW) == 0
        assert dispatch_once(session, NOW + timedelta(minutes=7)) == 1


class TestConcurrentInstances:
    def test_two_instances_never_double_book(self, session: Session, session_factory):
        for number in (1, 2, 3):
            _court(session, number)
        for minutes in (50, 40, 30, 20, 10):
            _match(session, minutes_ago=minutes)

        with session_factory() as first, session_factory() as second:
            # Both instances read the same initial state before either writes
            snap_a = take_snapshot(first, NOW)
            snap_b = take_snapshot(second, NOW)
            assert len(snap_a.free_courts) == len(snap_b.free_courts) == 3

            dispatched = apply_snapshot(first, snap_a, NOW) + apply_snapshot(second, snap_b, NOW)

        assert dispatched == 3
        calling = _calling(session)
        assert len(calling) == 3
        assert len({m.court_id for m in calling}) == 3
        courts = session.exec(select(Court)).all()
        assert sorted(c.current_match_id for c in courts) == sorted(m.id for m in calling)

    def test_lost_match_claim_releases_court(self, session: Session):
        court_a = _court(session, 1)
        court_b = _court(session, 2)
        match = _match(session, minutes_ago=5)

        assert claim_court(session, court_a.id, match.id, NOW) is ClaimOutcome.CLAIMED
        assert claim_court(session, court_b.id, match.id, NOW) is ClaimOutcome.MATCH_TAKEN
        assert claim_court(session, court_a.id, match.id, NOW) is ClaimOutcome.COURT_TAKEN

        session.expire_all()
        assert session.get(Court, court_b.id).current_match_id is None
        assert session.get(Match, match.id).court_id == court_a.id


class TestSchedulerTick:
    def test_tick_respects_auto_dispatch_toggle(self, session: Session, session_factory):
        _court(session, 1)
        _match(session, minutes_ago=5)
        scheduler = DispatchScheduler(session_factory, interval_seconds=60, clock=lambda: NOW, name="test")

        assert scheduler.tick() == 0
        config = _config(session, auto_dispatch_enabled=True)
        assert config.auto_dispatch_enabled
        assert scheduler.tick() == 1
        assert scheduler.tick() == 0

    def test_tick_uses_injected_clock(self, session: Session, session_factory):
        _court(session, 1)
        match = _match(session, minutes_ago=5)
        _config(session, auto_dispatch_enabled=True)
        fixed = NOW + timedelta(hours=2)
        scheduler = DispatchScheduler(session_factory, clock=lambda: fixed)

        scheduler.tick()
        session.expire_all()
        assert session.get(Match, match.id).called_at == fixed

    def test_start_and_stop(self, session: Session, session_factory):
        scheduler = DispatchScheduler(session_factory, interval_seconds=30, name="lifecycle")
        scheduler.start()
        assert scheduler.running
        scheduler.stop(timeout=5)
        assert not scheduler.running
        assert scheduler._thread is None

    def test_store_error_yields_zero_then_recovers(self, session: Session, session_factory):
        _court(session, 1)
        _match(session, minutes_ago=5)
        _config(session, auto_dispatch_enabled=True)

        class LockedSession(Session):
            def get(self, *args, **kwargs):
                raise OperationalError("SELECT system_config", {}, Exception("database is locked"))

            def exec(self, *args, **kwargs):
                raise OperationalError("SELECT match", {}, Exception("database is locked"))

        engine = session.get_bind()
        failing = DispatchScheduler(lambda: LockedSession(engine), clock=lambda: NOW, name="locked")
        assert failing.tick() == 0

        assert _calling(session) == []

        healthy = DispatchScheduler(session_factory, clock=lambda: NOW, name="healthy")
        assert healthy.tick() == 1

    def test_stop_keeps_handle_of_thread_still_running(self, session_factory):
        class BusyThread:
            def __init__(self):
                self.joined_with = None

            def join(self, timeout=None):
                self.joined_with = timeout

            def is_alive(self):
                return True

        scheduler = DispatchScheduler(session_factory, interval_seconds=30, name="busy")
        busy = BusyThread()
        scheduler._thread = busy

        scheduler.stop(timeout=0.01)
        assert busy.joined_with == 0.01
        assert scheduler._thread is busy
        assert scheduler.running

        # A second loop must not be started while the first is still alive
        scheduler.start()
        assert scheduler._thread is busy
