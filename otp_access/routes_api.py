from flask import Blueprint, request, jsonify
import jwt
from .models import db, AccessCode, Resource, as_utc, utcnow
from .services.delegation import delegate
from .services.device import request_fingerprint
from .services.outcomes import DelegationFailed, Outcome, STATUS_FOR
from .services.rate_limit import RateLimited, check_redeem_rate
from .services.redeem import redeem as do_redeem
from .services.sessions import resolve_session
from .services.state import remaining_seconds
from .services.storage import send_blob
from .services.tokens import read_media_pointer

bp = Blueprint('api', __name__)


def _error(reason: str, status: int, **extra):
    return jsonify({'error': reason, **extra}), status


def _bearer() -> str | None:
    auth = request.headers.get('Authorization', '')
    if not auth.startswith('Bearer '):
        return None
    return auth.split(' ', 1)[1].strip() or None


def _session_or_error():
    token = _bearer()
    if token is None:
        return None, _error('missing_token', 401)
    result = resolve_session(token, request.headers.get('X-Device-Fingerprint'))
    if not result:
        status = 403 if result.outcome is Outcome.DEVICE_MISMATCH else 401
        return None, _error(result.outcome.value, status)
    return result, None


@bp.post('/redeem')
def redeem():
    data = request.get_json(silent=True) or {}
    code = data.get('code')
    if not code or not isinstance(code, str):
        return _error('missing_code', 400)
    try:
        check_redeem_rate(request.remote_addr or '0.0.0.0')
    except RateLimited:
        return _error('rate_limited', 429)

    result = do_redeem(
        code,
        device_fingerprint=request_fingerprint(data.get('device_fingerprint')),
        resource_slug=data.get('resource'),
    )
    if not result:
        return _error(result.outcome.value, STATUS_FOR[result.outcome])
    return jsonify(result.to_dict())


@bp.get('/session')
def session_status():
    session, err = _session_or_error()
    if err:
        return err
    return jsonify({
        'expires_at': as_utc(session.expires_at).isoformat(),
        'remaining_seconds': remaining_seconds(session.expires_at, utcnow()),
    })


@bp.get('/content')
def content():
    session, err = _session_or_error()
    if err:
        return err
    code = db.session.get(AccessCode, session.code_id)
    resource = db.session.get(Resource, code.resource_id) if code else None
    if resource is None or not resource.is_active:
        return _error('not_found', 404)

    now = utcnow()
    try:
        media = delegate(resource, session, now)
    except DelegationFailed:
        return _error('delegation_failed', 503, retryable=True)

    resp = jsonify({
        'content': resource.public_dict(),
        'media': media,
        'expires_at': as_utc(session.expires_at).isoformat(),
        'remaining_seconds': remaining_seconds(session.expires_at, now),
    })
    resp.headers['Cache-Control'] = 'no-store'
    return resp


@bp.get('/media/<pointer>')
def media(pointer: str):
    try:
        payload = read_media_pointer(pointer)
    except jwt.ExpiredSignatureError:
        return _error('expired', 401)
    except jwt.InvalidTokenError:
        return _error('invalid', 401)
    return send_blob(payload['sub'])
