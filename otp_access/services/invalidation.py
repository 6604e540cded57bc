import logging
from datetime import datetime

from sqlalchemy import false, func, select, update

from ..models import db, AccessCode, AccessSession, Issuer, Resource, as_utc, utcnow
from . import audit
from .outcomes import Outcome, Rejected
from .retry import retry_once
from .state import code_state, remaining_seconds

logger = logging.getLogger(__name__)


@retry_once
def invalidate(code_id: int, issuer: Issuer, now: datetime | None = None) -> AccessCode | Rejected:
    """Revoke a code for good. Sessions already handed out keep running."""
    now = now or utcnow()
    code = db.session.get(AccessCode, code_id)
    if code is None:
        return Rejected(Outcome.NOT_FOUND)
    if code.issuer_id != issuer.id:
        logger.warning('issuer %s tried to invalidate code %s owned by %s', issuer.id, code.id, code.issuer_id)
        return Rejected(Outcome.FORBIDDEN)
    if code.invalidated:
        return code

    db.session.execute(
        update(AccessCode)
        .where(AccessCode.id == code.id, AccessCode.invalidated == false())
        .values(invalidated=True, invalidated_at=now)
        .execution_options(synchronize_session=False)
    )
    audit.record('code.invalidated', 'issuer', issuer.id, code_id=code.id)
    db.session.commit()
    db.session.refresh(code)
    logger.info('code %s invalidated by issuer %s', code.id, issuer.id)
    return code


def list_active_codes(issuer: Issuer, now: datetime | None = None) -> list[dict]:
    now = now or utcnow()
    session_counts = (
        select(AccessSession.code_id, func.count(AccessSession.id).label('n'))
        .group_by(AccessSession.code_id)
        .subquery()
    )
    rows = db.session.execute(
        select(AccessCode, Resource, session_counts.c.n)
        .join(Resource, Resource.id == AccessCode.resource_id)
        .outerjoin(session_counts, session_counts.c.code_id == AccessCode.id)
        .where(
            AccessCode.issuer_id == issuer.id,
            AccessCode.invalidated == false(),
            AccessCode.effective_expires_at > now,
        )
        .order_by(AccessCode.effective_expires_at)
    ).all()
    return [
        {
            'id': code.id,
            'code': code.code,
            'state': code_state(code, now).value,
            'resource': {'id': resource.id, 'kind': resource.kind, 'slug': resource.slug, 'title': resource.title},
            'used_sessions': code.used_sessions,
            'max_sessions': code.max_sessions,
            'sessions': n or 0,
            'first_used_at': as_utc(code.first_used_at).isoformat() if code.first_used_at else None,
            'expires_at': as_utc(code.effective_expires_at).isoformat(),
            'remaining_seconds': remaining_seconds(code.effective_expires_at, now),
            'recipient_name': code.recipient_name,
        }
        for code, resource, n in rows
    ]
