import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, false, func, literal, select, update

from ..models import db, AccessCode, AccessSession, Resource, as_utc, utcnow
from . import audit
from .codegen import normalize_code
from .outcomes import Outcome, Rejected
from .retry import retry_once
from .sessions import open_session
from .state import CodeState, code_state, remaining_seconds

logger = logging.getLogger(__name__)

_codes = AccessCode.__table__


@dataclass
class Redeemed:
    session: AccessSession
    code: AccessCode
    resource: Resource
    remaining_seconds: int
    first_use: bool

    def to_dict(self):
        content = self.resource.public_dict()
        content['has_media'] = bool(self.resource.asset_ref)
        return {
            'session_token': self.session.session_token,
            'expires_at': as_utc(self.session.expires_at).isoformat(),
            'remaining_seconds': self.remaining_seconds,
            'content': content,
        }


def _consume(code: AccessCode, now: datetime) -> bool:
    """Take one unit of capacity, anchoring the expiry if this is the first use.

    Everything happens in a single guarded UPDATE; the row count says whether
    this caller won. ``effective_expires_at`` is assigned before
    ``first_used_at`` so the CASE sees the pre-update value on every backend.
    """
    ts_type = _codes.c.effective_expires_at.type
    anchored = literal(now + code.validity_window, type_=ts_type)
    stmt = (
        update(_codes)
        .where(
            _codes.c.id == code.id,
            _codes.c.invalidated == false(),
            _codes.c.used_sessions < _codes.c.max_sessions,
            _codes.c.effective_expires_at > literal(now, type_=ts_type),
        )
        .ordered_values(
            (_codes.c.effective_expires_at,
             case((_codes.c.first_used_at.is_(None), anchored), else_=_codes.c.effective_expires_at)),
            (_codes.c.first_used_at, func.coalesce(_codes.c.first_used_at, literal(now, type_=ts_type))),
            (_codes.c.used_sessions, _codes.c.used_sessions + 1),
        )
    )
    return db.session.execute(stmt).rowcount == 1


@retry_once
def redeem(code_string: str | None, device_fingerprint: str | None = None,
           resource_slug: str | None = None, now: datetime | None = None) -> Redeemed | Rejected:
    now = now or utcnow()
    normalized = normalize_code(code_string)
    if not normalized:
        return Rejected(Outcome.NOT_FOUND)

    code = db.session.execute(
        select(AccessCode).where(AccessCode.code == normalized)
    ).scalar_one_or_none()
    if code is None:
        return Rejected(Outcome.NOT_FOUND)
    resource = db.session.get(Resource, code.resource_id)
    if resource is None or not resource.is_active:
        return Rejected(Outcome.NOT_FOUND)
    if resource_slug and resource_slug not in (resource.slug, str(resource.id)):
        return Rejected(Outcome.NOT_FOUND)

    state = code_state(code, now)
    if state is CodeState.INVALIDATED:
        return Rejected(Outcome.INVALIDATED)
    if state is CodeState.EXPIRED:
        return Rejected(Outcome.EXPIRED)

    if not _consume(code, now):
        db.session.rollback()
        db.session.refresh(code)
        state = code_state(code, now)
        if state is CodeState.INVALIDATED:
            return Rejected(Outcome.INVALIDATED)
        if state is CodeState.EXPIRED:
            return Rejected(Outcome.EXPIRED)
        logger.debug('code %s has no capacity left', code.id)
        return Rejected(Outcome.EXHAUSTED)

    # Our UPDATE holds the row until commit, so this read sees our own increment
    db.session.refresh(code)
    first_use = code.used_sessions == 1
    session = open_session(code, device_fingerprint, now)
    resource.view_count = Resource.view_count + 1
    if first_use:
        audit.record('code.first_redeemed', 'recipient', None, code_id=code.id,
                     effective_expires_at=as_utc(code.effective_expires_at).isoformat())
    db.session.commit()

    if first_use:
        logger.info('code %s anchored, expires %s', code.id, as_utc(code.effective_expires_at).isoformat())
    logger.info('code %s redeemed (%d/%d), session %s', code.id, code.used_sessions, code.max_sessions, session.id)
    return Redeemed(
        session=session,
        code=code,
        resource=resource,
        remaining_seconds=remaining_seconds(session.expires_at, now),
        first_use=first_use,
    )
