"""
API Routes for court dispatch
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from courtside.database import get_session
from courtside.services.dispatch_scheduler import dispatch_once

logger = logging.getLogger(__name__)

router = APIRouter()


class DispatchResponse(BaseModel):
    dispatched: int


@router.post("/dispatch/run-once", response_model=DispatchResponse)
def run_dispatch_once(session: Session = Depends(get_session)):
    """Fill free courts now, regardless of the auto-dispatch toggle"""
    try:
        dispatched = dispatch_once(session)
    except SQLAlchemyError:
        # Store hiccup: nothing changes this cycle
        session.rollback()
        logger.exception("Manual dispatch failed; no courts filled")
        dispatched = 0
    return DispatchResponse(dispatched=dispatched)
