import logging
import secrets
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..models import db, AccessCode, Issuer, Resource, _gen_bigint_id, utcnow
from . import audit
from .outcomes import GenerationExhausted
from .retry import retry_once

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes survive being read aloud or retyped
ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
GROUP_SIZES = (4, 2)


def generate_code(prefix: str) -> str:
    """Return a candidate like ``ZW-K7QM-3X`` drawn from a CSPRNG."""
    groups = [''.join(secrets.choice(ALPHABET) for _ in range(n)) for n in GROUP_SIZES]
    return '-'.join([prefix, *groups])


def normalize_code(raw: str | None) -> str:
    return (raw or '').strip().upper()


def _whole_number(value, name: str, limit: int) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f'{name} must be a whole number')
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be a whole number') from None
    if value <= 0:
        raise ValueError(f'{name} must be positive')
    if value > limit:
        raise ValueError(f'{name} must be at most {limit}')
    return value


def resolve_terms(resource: Resource, validity_hours=None, max_sessions=None) -> tuple[int, int]:
    """Pick the validity window and capacity: request, then resource, then kind default."""
    cfg = current_app.config
    hours = validity_hours or resource.otp_validity_hours or cfg['DEFAULT_VALIDITY_HOURS'].get(resource.kind, 24)
    cap = max_sessions or resource.otp_max_sessions or cfg['DEFAULT_MAX_SESSIONS'].get(resource.kind, 1)
    return (
        _whole_number(hours, 'validity_hours', cfg['MAX_VALIDITY_HOURS']),
        _whole_number(cap, 'max_sessions', cfg['MAX_SESSIONS_LIMIT']),
    )


def _code_exists(candidate: str) -> bool:
    return db.session.execute(
        select(AccessCode.id).where(AccessCode.code == candidate)
    ).first() is not None


@retry_once
def issue(resource: Resource, issuer: Issuer, validity_hours=None, max_sessions=None,
          recipient_name=None, recipient_email=None, now: datetime | None = None) -> AccessCode:
    now = now or utcnow()
    hours, cap = resolve_terms(resource, validity_hours, max_sessions)
    window = timedelta(hours=hours)
    prefix = current_app.config['CODE_PREFIXES'].get(resource.kind, 'XX')
    attempts = current_app.config['CODE_MAX_ATTEMPTS']

    for attempt in range(1, attempts + 1):
        candidate = generate_code(prefix)
        if _code_exists(candidate):
            logger.info('code collision on attempt %d for resource %s', attempt, resource.id)
            continue
        code = AccessCode(
            id=_gen_bigint_id(),
            resource_kind=resource.kind,
            resource_id=resource.id,
            issuer_id=issuer.id,
            code=candidate,
            created_at=now,
            validity_window_seconds=int(window.total_seconds()),
            ceiling_expires_at=now + window,
            effective_expires_at=now + window,
            max_sessions=cap,
            used_sessions=0,
            invalidated=False,
            recipient_name=recipient_name,
            recipient_email=recipient_email,
        )
        db.session.add(code)
        audit.record('code.issued', 'issuer', issuer.id, code_id=code.id,
                     resource_id=resource.id, validity_hours=hours, max_sessions=cap)
        try:
            db.session.commit()
        except IntegrityError:
            # Another issuer inserted the same candidate between check and insert
            db.session.rollback()
            logger.info('code insert raced on attempt %d for resource %s', attempt, resource.id)
            continue
        logger.info('issued code %s for %s %s by issuer %s', code.id, resource.kind, resource.id, issuer.id)
        return code

    logger.error('code generation exhausted after %d attempts for resource %s', attempts, resource.id)
    raise GenerationExhausted(f'no free code after {attempts} attempts')
