import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select

from ..models import db, AccessCode, AccessSession, utcnow

logger = logging.getLogger(__name__)


def purge_expired(horizon: timedelta, now: datetime | None = None) -> tuple[int, int]:
    """Delete codes and sessions that expired more than ``horizon`` ago.

    Returns ``(codes_deleted, sessions_deleted)``.
    """
    now = now or utcnow()
    cutoff = now - horizon
    stale_codes = select(AccessCode.id).where(AccessCode.effective_expires_at < cutoff)

    sessions_deleted = db.session.execute(
        delete(AccessSession)
        .where(or_(AccessSession.expires_at < cutoff, AccessSession.code_id.in_(stale_codes)))
        .execution_options(synchronize_session=False)
    ).rowcount
    codes_deleted = db.session.execute(
        delete(AccessCode)
        .where(AccessCode.effective_expires_at < cutoff)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.commit()

    logger.info('retention purge before %s: %d codes, %d sessions', cutoff.isoformat(), codes_deleted, sessions_deleted)
    return codes_deleted, sessions_deleted
