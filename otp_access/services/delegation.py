"""Per-fetch pointers to the binary asset behind a resource.

Nothing minted here is stored. Every content fetch gets a fresh pointer that
lives no longer than ``MEDIA_URL_TTL_SECONDS`` and never past the session.
"""
import logging
from datetime import datetime, timedelta

from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

from ..models import AccessSession, Resource, utcnow
from . import storage
from .outcomes import DelegationFailed
from .state import remaining_seconds
from .tokens import sign_media_pointer

logger = logging.getLogger(__name__)


def pointer_ttl(session: AccessSession, now: datetime) -> int:
    ttl = min(current_app.config['MEDIA_URL_TTL_SECONDS'], remaining_seconds(session.expires_at, now))
    return max(ttl, 1)


def delegate(resource: Resource, session: AccessSession, now: datetime | None = None) -> dict | None:
    ref = resource.asset_ref
    if not ref:
        return None
    now = now or utcnow()

    if ref.startswith(('http://', 'https://')):
        # Already public elsewhere; nothing to scope
        return {'url': ref, 'expires_at': None, 'delegated': False}

    ttl = pointer_ttl(session, now)
    expires_at = now + timedelta(seconds=ttl)
    if ref.startswith('s3://'):
        try:
            url = storage.presign_s3(ref, ttl)
        except (BotoCoreError, ClientError, ValueError) as e:
            logger.warning('presign failed for resource %s: %s', resource.id, e)
            raise DelegationFailed(str(e)) from e
    elif ref.startswith('blob:'):
        pointer = sign_media_pointer(ref[len('blob:'):], session.id, int(expires_at.timestamp()))
        url = f"{current_app.config['BASE_URL']}/api/media/{pointer}"
    else:
        logger.warning('unsupported asset ref scheme for resource %s', resource.id)
        raise DelegationFailed('unsupported asset reference')

    return {'url': url, 'expires_at': expires_at.isoformat(), 'expires_in': ttl, 'delegated': True}
