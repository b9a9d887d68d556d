"""
Court dispatch: fill every free court with the highest-priority eligible
waiting match.

Selection, in order:
  1. enabled_tournaments allow-list (empty = everything)
  2. matches in the active priority-boost category first
  3. oldest created_at first (id breaks ties)
  4. only matches whose player slots are all resolved; players already on a
     court, or still inside the rest interval, make a match wait

Several scheduler instances may run against the same database. Exclusion is
never trusted to in-process state: each assignment is a conditional UPDATE
that claims the court (must still be free), then the match (must still be
waiting), inside one transaction. If either claim loses, the transaction is
rolled back and the loser simply moves on.
"""

import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from courtside.models.court import Court
from courtside.models.match import ON_COURT_STATUSES, STATUS_CALLING, STATUS_WAITING, Match
from courtside.models.player import Player
from courtside.models.system_config import SystemConfig, get_system_config
from courtside.services.priority_boost import get_active_boost
from courtside.settings import DISPATCH_INTERVAL_SECONDS
from courtside.utils.categories import category_gender

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
SessionFactory = Callable[[], Session]


class ClaimOutcome(enum.Enum):
    CLAIMED = "claimed"
    COURT_TAKEN = "court_taken"
    MATCH_TAKEN = "match_taken"


@dataclass(frozen=True)
class FreeCourt:
    court_id: int
    number: int
    preferred_gender: Optional[str] = None

    def accepts(self, candidate: "Candidate") -> bool:
        """Gendered courts take their own gender's categories plus mixed ones."""
        if self.preferred_gender is None or candidate.gender is None:
            return True
        return self.preferred_gender == candidate.gender


@dataclass(frozen=True)
class Candidate:
    match_id: int
    category: str
    created_at: datetime
    player_ids: tuple
    gender: Optional[str] = None
    boosted: bool = False

    def sort_key(self):
        return (0 if self.boosted else 1, self.created_at, self.match_id)


@dataclass
class DispatchSnapshot:
    """Detached view of one tick's inputs; safe to apply from any session."""

    free_courts: List[FreeCourt] = field(default_factory=list)
    candidates: List[Candidate] = field(default_factory=list)
    busy_player_ids: Set[int] = field(default_factory=set)
    boost_category: Optional[str] = None


def is_match_eligible(
    match: Match,
    config: SystemConfig,
    busy_player_ids: Set[int],
    resting_player_ids: Set[int],
) -> bool:
    if match.status != STATUS_WAITING or match.court_id is not None:
        return False
    if not config.allows(match.tournament_type, match.category):
        return False
    if not match.has_resolved_players():
        return False
    players = set(match.player_ids())
    if players & busy_player_ids or players & resting_player_ids:
        return False
    return True


def take_snapshot(session: Session, now: datetime) -> DispatchSnapshot:
    config = get_system_config(session)
    snapshot = DispatchSnapshot()

    courts = session.exec(
        select(Court)
        .where(
            Court.is_active == True,  # noqa: E712
            Court.manually_freed == False,  # noqa: E712
            Court.current_match_id.is_(None),
        )
        .order_by(Court.number, Court.id)
    ).all()
    snapshot.free_courts = [FreeCourt(c.id, c.number, c.preferred_gender) for c in courts]
    if not snapshot.free_courts:
        return snapshot

    on_court = session.exec(select(Match).where(Match.status.in_(ON_COURT_STATUSES))).all()
    for m in on_court:
        snapshot.busy_player_ids.update(m.player_ids())

    resting: Set[int] = set()
    if config.min_rest_minutes > 0:
        rested_after = now - timedelta(minutes=config.min_rest_minutes)
        resting = set(
            session.exec(select(Player.id).where(Player.last_match_finished_at > rested_after)).all()
        )

    boost = get_active_boost(session, now)
    snapshot.boost_category = boost.category if boost else None

    waiting = session.exec(select(Match).where(Match.status == STATUS_WAITING)).all()
    for m in waiting:
        if not is_match_eligible(m, config, snapshot.busy_player_ids, resting):
            continue
        snapshot.candidates.append(
            Candidate(
                match_id=m.id,
                category=m.category,
                created_at=m.created_at,
                player_ids=tuple(m.player_ids()),
                gender=category_gender(m.tournament_type),
                boosted=m.category == snapshot.boost_category,
            )
        )
    snapshot.candidates.sort(key=Candidate.sort_key)
    return snapshot


def claim_court(session: Session, court_id: int, match_id: int, now: datetime) -> ClaimOutcome:
    """Atomically assign match_id to court_id. Commits on success, rolls back otherwise."""
    court_result = session.exec(
        update(Court)
        .where(
            Court.id == court_id,
            Court.current_match_id.is_(None),
            Court.is_active == True,  # noqa: E712
            Court.manually_freed == False,  # noqa: E712
        )
        .values(current_match_id=match_id, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if court_result.rowcount != 1:
        session.rollback()
        return ClaimOutcome.COURT_TAKEN

    match_result = session.exec(
        update(Match)
        .where(
            Match.id == match_id,
            Match.status == STATUS_WAITING,
            Match.court_id.is_(None),
        )
        .values(status=STATUS_CALLING, court_id=court_id, called_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if match_result.rowcount != 1:
        # Releases the court claim made above
        session.rollback()
        return ClaimOutcome.MATCH_TAKEN

    session.commit()
    return ClaimOutcome.CLAIMED


def apply_snapshot(session: Session, snapshot: DispatchSnapshot, now: datetime) -> int:
    dispatched = 0
    busy = set(snapshot.busy_player_ids)
    gone: Set[int] = set()

    for court in snapshot.free_courts:
        for candidate in snapshot.candidates:
            if candidate.match_id in gone or not court.accepts(candidate):
                continue
            if busy.intersection(candidate.player_ids):
                continue
            outcome = claim_court(session, court.court_id, candidate.match_id, now)
            if outcome is ClaimOutcome.CLAIMED:
                gone.add(candidate.match_id)
                busy.update(candidate.player_ids)
                dispatched += 1
                break
            if outcome is ClaimOutcome.MATCH_TAKEN:
                logger.debug("Match %s already claimed elsewhere", candidate.match_id)
                gone.add(candidate.match_id)
                continue
            logger.debug("Court %s already claimed elsewhere", court.number)
            break
    return dispatched


def dispatch_once(session: Session, now: Optional[datetime] = None) -> int:
    """One dispatch pass regardless of the auto-dispatch toggle. Returns assignments made."""
    now = now or datetime.utcnow()
    snapshot = take_snapshot(session, now)
    if not snapshot.free_courts or not snapshot.candidates:
        return 0
    return apply_snapshot(session, snapshot, now)


class DispatchScheduler:
    """Polling loop around dispatch_once with an explicit start/stop lifecycle.

    tick() is the unit of work and can be driven directly with a fake clock;
    start() runs it every interval_seconds on a daemon thread. stop() lets an
    in-flight tick finish before returning.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        interval_seconds: float = DISPATCH_INTERVAL_SECONDS,
        clock: Clock = datetime.utcnow,
        name: str = "dispatcher",
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> int:
        """Run one pass if auto-dispatch is enabled. Store failures yield 0 and are retried next tick."""
        now = self.clock()
        with self.session_factory() as session:
            try:
                if not get_system_config(session).auto_dispatch_enabled:
                    return 0
                count = dispatch_once(session, now)
            except SQLAlchemyError:
                session.rollback()
                logger.exception("[%s] dispatch tick failed; retrying next tick", self.name)
                return 0
        if count:
            logger.info("[%s] dispatched %d match(es)", self.name, count)
        return count

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("[%s] started (every %.1fs)", self.name, self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("[%s] loop still running after stop; keeping thread handle", self.name)
                return
        self._thread = None
        logger.info("[%s] stopped", self.name)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.tick()
            except Exception:
                logger.exception("[%s] unexpected error in dispatch loop", self.name)
