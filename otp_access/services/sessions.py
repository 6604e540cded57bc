import logging
import secrets
from datetime import datetime

from flask import current_app
from sqlalchemy import select

from ..models import db, AccessCode, AccessSession, _gen_bigint_id, as_utc, utcnow
from .outcomes import Outcome, Rejected

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 48  # 64 url-safe characters


def new_session_token() -> str:
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def open_session(code: AccessCode, device_fingerprint: str | None, now: datetime) -> AccessSession:
    """Stage a session for ``code``; expiry is the code's expiry as it stands now."""
    session = AccessSession(
        id=_gen_bigint_id(),
        code_id=code.id,
        session_token=new_session_token(),
        device_fingerprint=device_fingerprint,
        created_at=now,
        expires_at=as_utc(code.effective_expires_at),
    )
    db.session.add(session)
    return session


def resolve_session(token: str | None, device_fingerprint: str | None = None,
                    now: datetime | None = None) -> AccessSession | Rejected:
    now = now or utcnow()
    if not token:
        return Rejected(Outcome.NOT_FOUND)
    session = db.session.execute(
        select(AccessSession).where(AccessSession.session_token == token)
    ).scalar_one_or_none()
    if session is None:
        return Rejected(Outcome.NOT_FOUND)
    if now >= as_utc(session.expires_at):
        return Rejected(Outcome.EXPIRED)

    if device_fingerprint and session.device_fingerprint and device_fingerprint != session.device_fingerprint:
        if current_app.config.get('ENFORCE_DEVICE_BINDING'):
            return Rejected(Outcome.DEVICE_MISMATCH)
        logger.info('device fingerprint differs for session %s (advisory)', session.id)

    if current_app.config.get('CASCADE_INVALIDATION'):
        code = db.session.get(AccessCode, session.code_id)
        if code is None or code.invalidated:
            return Rejected(Outcome.INVALIDATED)
    return session


def sessions_for_code(code_id: int) -> list[AccessSession]:
    return list(db.session.execute(
        select(AccessSession).where(AccessSession.code_id == code_id).order_by(AccessSession.created_at)
    ).scalars())
