from datetime import datetime, timedelta, timezone

import pytest

from otp_access import create_app
from otp_access.models import db, Resource
from otp_access.services import codegen, rate_limit, storage
from otp_access.services.issuers import create_issuer

ISSUER_KEY = 'partner-one-key'
OTHER_ISSUER_KEY = 'partner-two-key'
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
HOUR = timedelta(hours=1)


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv('USE_REDIS', '0')
    monkeypatch.setattr(rate_limit, '_r', None)
    monkeypatch.setattr(storage, '_s3', None)
    media_root = tmp_path / 'media'
    media_root.mkdir()
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key-that-is-long-enough-for-hs256',
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
        'JWT_PRIVATE_KEY': None,
        'JWT_PUBLIC_KEY': None,
        'MEDIA_ROOT': str(media_root),
        'BASE_URL': 'http://testserver',
        'REDEEM_RATE_LIMIT': 1000,
    })
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def issuer(app):
    return create_issuer('Partner One', ISSUER_KEY)


@pytest.fixture
def other_issuer(app):
    return create_issuer('Partner Two', OTHER_ISSUER_KEY)


@pytest.fixture
def knowledge(app):
    res = Resource(
        kind='knowledge', slug='sleep-basics', title='Sleep basics',
        description='Ten minutes on sleep hygiene', content_type='video',
        asset_ref='s3://media-bucket/knowledge/sleep.mp4',
        otp_validity_hours=24, otp_max_sessions=3,
    )
    db.session.add(res)
    db.session.commit()
    return res


@pytest.fixture
def infolink(app):
    res = Resource(
        kind='infolink', slug='welcome-pack', title='Welcome pack',
        content_type='document', asset_ref='blob:welcome.pdf',
    )
    db.session.add(res)
    db.session.commit()
    return res


@pytest.fixture
def issue_code(issuer):
    """Issue a code with explicit terms at a fixed time."""
    def _issue(resource, hours=24, cap=3, now=T0, by=None):
        return codegen.issue(resource, by or issuer, validity_hours=hours, max_sessions=cap, now=now)
    return _issue
