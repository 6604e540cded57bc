from flask import Blueprint, jsonify, request, send_file, g
import io
from .models import db, Resource, as_utc
from .services.codegen import issue
from .services.invalidation import invalidate, list_active_codes
from .services.issuers import authenticate_issuer
from .services.messages import share_message, share_url
from .services.outcomes import GenerationExhausted, STATUS_FOR
from .services.qr import make_qr_bytes

bp = Blueprint('issuer', __name__)


@bp.before_request
def require_issuer():
    g.issuer = authenticate_issuer()
    if g.issuer is None:
        return jsonify({'error': 'unauthorized'}), 401


@bp.post('/codes')
def issue_code():
    data = request.get_json(silent=True) or {}
    try:
        resource_id = int(data.get('resource_id'))
    except (TypeError, ValueError):
        return jsonify({'error': 'invalid_request', 'detail': 'resource_id is required'}), 400

    resource = db.session.get(Resource, resource_id)
    if resource is None or not resource.is_active or not resource.shareable:
        return jsonify({'error': 'resource_not_found'}), 404

    try:
        code = issue(
            resource,
            g.issuer,
            validity_hours=data.get('validity_hours'),
            max_sessions=data.get('max_sessions'),
            recipient_name=data.get('recipient_name'),
            recipient_email=data.get('recipient_email'),
        )
    except ValueError as e:
        return jsonify({'error': 'invalid_request', 'detail': str(e)}), 400
    except GenerationExhausted:
        return jsonify({'error': 'generation_exhausted'}), 500

    url = share_url(resource)
    if 'image/png' in request.headers.get('Accept', ''):
        png = make_qr_bytes(f"{url}?code={code.code}")
        return send_file(
            io.BytesIO(png), mimetype='image/png', as_attachment=False, download_name=f"code_{code.id}.png",
            etag=False,
        )
    return jsonify({
        'id': code.id,
        'code': code.code,
        'ceiling_expires_at': as_utc(code.ceiling_expires_at).isoformat(),
        'validity_hours': code.validity_window_seconds // 3600,
        'max_sessions': code.max_sessions,
        'share_url': url,
        'share_message': share_message(code, resource, g.issuer),
    }), 201


@bp.get('/codes')
def active_codes():
    return jsonify({'codes': list_active_codes(g.issuer)})


@bp.post('/codes/<int:code_id>/invalidate')
def invalidate_code(code_id: int):
    result = invalidate(code_id, g.issuer)
    if not result:
        return jsonify({'error': result.outcome.value}), STATUS_FOR[result.outcome]
    return jsonify({'ok': True, 'id': result.id, 'invalidated_at': as_utc(result.invalidated_at).isoformat()})
