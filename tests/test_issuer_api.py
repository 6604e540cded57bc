import logging
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from otp_access import routes_api
from otp_access.models import db, AccessCode, AccessSession, AuditLog, Resource, as_utc
from otp_access.services import codegen
from otp_access.services.codegen import issue
from otp_access.services.invalidation import invalidate, list_active_codes
from otp_access.services.outcomes import Outcome, Rejected, StoreUnavailable
from otp_access.services.redeem import redeem
from otp_access.services.retention import purge_expired
from otp_access.services.retry import retry_once

from conftest import HOUR, ISSUER_KEY, OTHER_ISSUER_KEY, T0

AUTH = {'X-Issuer-Key': ISSUER_KEY}


# ---------------------------------------------------------------------------
# POST /issuer/codes
# ---------------------------------------------------------------------------

def test_issue_requires_issuer_key(client, knowledge):
    assert client.post('/issuer/codes', json={'resource_id': knowledge.id}).status_code == 401
    resp = client.post('/issuer/codes', json={'resource_id': knowledge.id}, headers={'X-Issuer-Key': 'wrong'})
    assert resp.status_code == 401


def test_issue_returns_code_and_share_message(client, issuer, knowledge):
    resp = client.post('/issuer/codes', headers=AUTH, json={
        'resource_id': knowledge.id, 'validity_hours': 12, 'max_sessions': 2, 'recipient_name': 'Ann',
    })

    assert resp.status_code == 201
    body = resp.get_json()
    assert body['code'].startswith('ZW-')
    assert body['validity_hours'] == 12
    assert body['max_sessions'] == 2
    assert body['share_url'] == 'http://testserver/knowledge/sleep-basics'
    assert body['code'] in body['share_message']
    assert 'Partner One' in body['share_message']
    assert db.session.get(AccessCode, body['id']).recipient_name == 'Ann'


def test_issue_uses_resource_message_template(client, issuer, knowledge):
    knowledge.share_message_template = 'Code {otp_code} for {title}, {validity_hours}h. {unknown}'
    db.session.commit()

    body = client.post('/issuer/codes', headers=AUTH, json={'resource_id': knowledge.id}).get_json()

    assert body['share_message'] == f"Code {body['code']} for Sleep basics, 24h. {{unknown}}"


def test_issue_can_return_qr_png(client, issuer, knowledge):
    resp = client.post('/issuer/codes', headers={**AUTH, 'Accept': 'image/png'}, json={'resource_id': knowledge.id})
    assert resp.status_code == 200
    assert resp.mimetype == 'image/png'
    assert resp.data[:8] == b'\x89PNG\r\n\x1a\n'


@pytest.mark.parametrize('payload', [{}, {'resource_id': 'abc'}])
def test_issue_validates_resource_id(client, issuer, payload):
    resp = client.post('/issuer/codes', headers=AUTH, json=payload)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'invalid_request'


@pytest.mark.parametrize('terms', [
    {'max_sessions': -3},
    {'validity_hours': 10**9},
    {'max_sessions': 2**40},
    {'validity_hours': 1.5},
])
def test_issue_rejects_bad_terms(client, issuer, knowledge, terms):
    resp = client.post('/issuer/codes', headers=AUTH, json={'resource_id': knowledge.id, **terms})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'invalid_request'


def test_issue_refuses_unshareable_resources(client, issuer, knowledge):
    assert client.post('/issuer/codes', headers=AUTH, json={'resource_id': 999}).status_code == 404
    knowledge.shareable = False
    db.session.commit()
    resp = client.post('/issuer/codes', headers=AUTH, json={'resource_id': knowledge.id})
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'resource_not_found'


def test_issue_reports_generation_exhausted(client, issuer, knowledge, monkeypatch, caplog):
    monkeypatch.setattr(codegen, 'generate_code', lambda prefix: 'ZW-DDDD-DD')
    assert client.post('/issuer/codes', headers=AUTH, json={'resource_id': knowledge.id}).status_code == 201

    with caplog.at_level(logging.ERROR):
        resp = client.post('/issuer/codes', headers=AUTH, json={'resource_id': knowledge.id})

    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'generation_exhausted'}
    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert 'exhausted' in errors[0].getMessage()


def test_issue_is_audited(client, issuer, knowledge):
    body = client.post('/issuer/codes', headers=AUTH, json={'resource_id': knowledge.id}).get_json()
    entry = AuditLog.query.filter_by(event_type='code.issued').one()
    assert entry.actor_id == str(issuer.id)
    assert entry.payload_json['code_id'] == body['id']


# ---------------------------------------------------------------------------
# POST /api/redeem status mapping
# ---------------------------------------------------------------------------

def test_redeem_status_codes(client, issuer, knowledge):
    code = issue(knowledge, issuer, max_sessions=1)

    assert client.post('/api/redeem', json={}).status_code == 400
    assert client.post('/api/redeem', json={'code': 'ZW-NOPE-XX'}).status_code == 404

    ok = client.post('/api/redeem', json={'code': code.code})
    assert ok.status_code == 200
    assert set(ok.get_json()) == {'session_token', 'expires_at', 'remaining_seconds', 'content'}

    full = client.post('/api/redeem', json={'code': code.code})
    assert full.status_code == 403
    assert full.get_json() == {'error': 'exhausted'}


def test_redeem_invalidated_is_401(client, issuer, knowledge):
    code = issue(knowledge, issuer)
    invalidate(code.id, issuer)
    resp = client.post('/api/redeem', json={'code': code.code})
    assert resp.status_code == 401
    assert resp.get_json() == {'error': 'invalidated'}


def test_redeem_is_rate_limited(app, client, issuer, knowledge):
    app.config['REDEEM_RATE_LIMIT'] = 2
    for _ in range(2):
        client.post('/api/redeem', json={'code': 'ZW-NOPE-XX'})
    resp = client.post('/api/redeem', json={'code': 'ZW-NOPE-XX'})
    assert resp.status_code == 429


def test_store_outage_is_503(client, monkeypatch):
    def down(*args, **kwargs):
        raise StoreUnavailable('connection refused')

    monkeypatch.setattr(routes_api, 'do_redeem', down)
    resp = client.post('/api/redeem', json={'code': 'ZW-AAAA-AA'})
    assert resp.status_code == 503
    assert resp.get_json() == {'error': 'store_unavailable'}


def test_retry_once_recovers_from_one_outage(app):
    calls = []

    @retry_once
    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError('SELECT 1', {}, Exception('server closed the connection'))
        return 'ok'

    assert flaky() == 'ok'
    assert len(calls) == 2


def test_retry_once_gives_up_after_second_outage(app):
    @retry_once
    def down():
        raise OperationalError('SELECT 1', {}, Exception('server closed the connection'))

    with pytest.raises(StoreUnavailable):
        down()


# ---------------------------------------------------------------------------
# invalidation
# ---------------------------------------------------------------------------

def test_invalidate_over_http(client, issuer, other_issuer, knowledge):
    code = issue(knowledge, issuer)

    other = client.post(f'/issuer/codes/{code.id}/invalidate', headers={'X-Issuer-Key': OTHER_ISSUER_KEY})
    assert other.status_code == 403
    assert client.post('/issuer/codes/12345/invalidate', headers=AUTH).status_code == 404

    resp = client.post(f'/issuer/codes/{code.id}/invalidate', headers=AUTH)
    assert resp.status_code == 200
    assert resp.get_json()['ok'] is True
    db.session.expire_all()
    assert db.session.get(AccessCode, code.id).invalidated is True


def test_invalidate_is_one_way_and_idempotent(issuer, knowledge):
    code = issue(knowledge, issuer, now=T0)
    first = invalidate(code.id, issuer, now=T0 + HOUR)
    again = invalidate(code.id, issuer, now=T0 + 2 * HOUR)

    assert first.invalidated and again.invalidated
    assert as_utc(again.invalidated_at) == T0 + HOUR


def test_invalidate_checks_owner(issuer, other_issuer, knowledge):
    code = issue(knowledge, issuer, now=T0)
    assert invalidate(code.id, other_issuer, now=T0) == Rejected(Outcome.FORBIDDEN)
    assert invalidate(424242, issuer, now=T0) == Rejected(Outcome.NOT_FOUND)
    db.session.expire_all()
    assert db.session.get(AccessCode, code.id).invalidated is False


# ---------------------------------------------------------------------------
# active code listing
# ---------------------------------------------------------------------------

def test_list_active_codes(client, issuer, other_issuer, knowledge, infolink):
    now = T0 + HOUR
    live = issue(knowledge, issuer, validity_hours=24, max_sessions=3, now=T0)
    redeem(live.code, now=T0)
    redeem(live.code, now=T0)
    revoked = issue(knowledge, issuer, now=T0)
    invalidate(revoked.id, issuer, now=T0)
    issue(infolink, issuer, validity_hours=1, now=T0 - 2 * HOUR)  # already expired
    issue(infolink, other_issuer, now=T0)

    codes = list_active_codes(issuer, now=now)

    assert [c['id'] for c in codes] == [live.id]
    assert codes[0]['state'] == 'active'
    assert codes[0]['used_sessions'] == 2
    assert codes[0]['sessions'] == 2
    assert codes[0]['remaining_seconds'] == 23 * 3600
    assert codes[0]['resource']['slug'] == 'sleep-basics'


def test_list_active_codes_over_http(client, issuer, knowledge):
    issue(knowledge, issuer)
    resp = client.get('/issuer/codes', headers=AUTH)
    assert resp.status_code == 200
    assert len(resp.get_json()['codes']) == 1
    assert resp.get_json()['codes'][0]['state'] == 'fresh'


# ---------------------------------------------------------------------------
# retention
# ---------------------------------------------------------------------------

def test_purge_expired_respects_horizon(issuer, knowledge):
    old = issue(knowledge, issuer, validity_hours=1, now=T0 - timedelta(days=40))
    redeem(old.code, now=T0 - timedelta(days=40))
    recent = issue(knowledge, issuer, validity_hours=1, now=T0 - timedelta(days=2))
    redeem(recent.code, now=T0 - timedelta(days=2))
    live = issue(knowledge, issuer, now=T0)
    old_id, recent_id, live_id = old.id, recent.id, live.id

    codes, sessions = purge_expired(timedelta(days=30), now=T0)

    assert (codes, sessions) == (1, 1)
    db.session.expire_all()
    assert db.session.get(AccessCode, old_id) is None
    assert db.session.get(AccessCode, recent_id) is not None
    assert db.session.get(AccessCode, live_id) is not None
    assert AccessSession.query.filter_by(code_id=old_id).count() == 0
    assert AccessSession.query.filter_by(code_id=recent_id).count() == 1


def test_purge_cli(app, issuer, knowledge):
    issue(knowledge, issuer, validity_hours=1, now=T0 - timedelta(days=60))

    result = app.test_cli_runner().invoke(args=['purge-expired', '--hours', '24'])

    assert result.exit_code == 0
    assert 'purged 1 codes, 0 sessions' in result.output
    assert db.session.get(Resource, knowledge.id) is not None
