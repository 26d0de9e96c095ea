"""Monotonic session id generator."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from x4pn_meter.models import SessionSequence, VpnSession
from x4pn_meter.models.system import SESSION_SEQUENCE_ROW_ID


def next_session_id(db: Session) -> int:
    """Return the next strictly increasing session id.

    The increment runs in the caller's transaction and holds the sequence row
    lock until commit, so ids are handed out in commit order and an id from a
    rolled-back start is never observed by anyone else.
    """
    result = db.execute(
        update(SessionSequence)
        .where(SessionSequence.id == SESSION_SEQUENCE_ROW_ID)
        .values(last_value=SessionSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        return int(
            db.execute(
                select(SessionSequence.last_value).where(
                    SessionSequence.id == SESSION_SEQUENCE_ROW_ID
                )
            ).scalar_one()
        )

    # First allocation: continue after any sessions that predate the counter.
    seed = int(db.execute(select(func.coalesce(func.max(VpnSession.id), 0))).scalar_one())
    try:
        with db.begin_nested():
            db.add(SessionSequence(id=SESSION_SEQUENCE_ROW_ID, last_value=seed + 1))
    except IntegrityError:
        # Another transaction seeded the row first.
        return next_session_id(db)
    return seed + 1
