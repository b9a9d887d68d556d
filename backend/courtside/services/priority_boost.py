"""
Temporary category priority, installed from a bottleneck suggestion and read
by the dispatcher at the start of each tick.

Expiry is decided by timestamp comparison only; the row is never deleted, so
an expiring boost and a new tick cannot race on a delete/re-create.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from courtside.models.priority_boost import ACTIVE_BOOST_ID, PriorityBoost
from courtside.settings import BOOST_TTL_MINUTES

logger = logging.getLogger(__name__)


def get_active_boost(session: Session, now: datetime) -> Optional[PriorityBoost]:
    boost = session.get(PriorityBoost, ACTIVE_BOOST_ID)
    if boost is None or not boost.is_active(now):
        return None
    return boost


def install_boost(
    session: Session,
    category: str,
    now: datetime,
    ttl_minutes: int = BOOST_TTL_MINUTES,
) -> PriorityBoost:
    """Create or overwrite the single boost record.

    Two first-time installs may race on inserting row 1; the loser retries as
    an overwrite of the row the winner created.
    """
    try:
        boost = _write_boost(session, category, now, ttl_minutes)
    except IntegrityError:
        session.rollback()
        logger.info("Priority boost row created concurrently; overwriting it")
        boost = _write_boost(session, category, now, ttl_minutes)
    logger.info("Priority boost installed for %s until %s", category, boost.expires_at().isoformat())
    return boost


def _write_boost(session: Session, category: str, now: datetime, ttl_minutes: int) -> PriorityBoost:
    boost = session.get(PriorityBoost, ACTIVE_BOOST_ID)
    if boost is None:
        boost = PriorityBoost(id=ACTIVE_BOOST_ID, category=category, activated_at=now, ttl_minutes=ttl_minutes)
    else:
        boost.category = category
        boost.activated_at = now
        boost.ttl_minutes = ttl_minutes
    session.add(boost)
    session.commit()
    session.refresh(boost)
    return boost
