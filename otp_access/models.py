from datetime import datetime, timedelta, timezone
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func
import time, os


def _gen_bigint_id():
    """Generate a sortable 64-bit int: millis timestamp << 16 | 16 bits randomness."""
    return (int(time.time() * 1000) << 16) | int.from_bytes(os.urandom(2), 'big')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)

db = SQLAlchemy()

class Issuer(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    api_key_hash = db.Column(db.String(64), unique=True, nullable=False)
    status = db.Column(db.String(32), default='active')
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

class Resource(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False, default='knowledge')  # knowledge|infolink
    slug = db.Column(db.String(255), unique=True, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    content_type = db.Column(db.String(32), default='text')  # text|video|audio|document|link
    asset_ref = db.Column(db.Text)
    text_content = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    shareable = db.Column(db.Boolean, default=True, nullable=False)
    otp_validity_hours = db.Column(db.Integer)
    otp_max_sessions = db.Column(db.Integer)
    share_message_template = db.Column(db.Text)
    view_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def public_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'slug': self.slug,
            'title': self.title,
            'description': self.description,
            'content_type': self.content_type,
            'text_content': self.text_content,
        }

class AccessCode(db.Model):
    id = db.Column(db.BigInteger, primary_key=True, default=_gen_bigint_id)
    resource_kind = db.Column(db.String(32), nullable=False)
    resource_id = db.Column(db.Integer, db.ForeignKey('resource.id'), nullable=False, index=True)
    issuer_id = db.Column(db.Integer, db.ForeignKey('issuer.id'), nullable=False, index=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    validity_window_seconds = db.Column(db.Integer, nullable=False)
    ceiling_expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    first_used_at = db.Column(db.DateTime(timezone=True))
    effective_expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    max_sessions = db.Column(db.Integer, nullable=False)
    used_sessions = db.Column(db.Integer, nullable=False, default=0)
    invalidated = db.Column(db.Boolean, nullable=False, default=False)
    invalidated_at = db.Column(db.DateTime(timezone=True))
    recipient_name = db.Column(db.String(255))
    recipient_email = db.Column(db.String(255))

    __table_args__ = (
        db.CheckConstraint('used_sessions >= 0 AND used_sessions <= max_sessions', name='ck_access_code_capacity'),
        db.CheckConstraint('max_sessions > 0', name='ck_access_code_max_sessions'),
    )

    @property
    def validity_window(self) -> timedelta:
        return timedelta(seconds=self.validity_window_seconds)

class AccessSession(db.Model):
    id = db.Column(db.BigInteger, primary_key=True, default=_gen_bigint_id)
    code_id = db.Column(db.BigInteger, db.ForeignKey('access_code.id'), nullable=False, index=True)
    session_token = db.Column(db.String(128), nullable=False, unique=True)
    device_fingerprint = db.Column(db.String(128))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

class AuditLog(db.Model):
    id = db.Column(db.BigInteger, primary_key=True, default=_gen_bigint_id)
    ts = db.Column(db.DateTime(timezone=True), server_default=func.now())
    actor_type = db.Column(db.String(32))
    actor_id = db.Column(db.String(64))
    event_type = db.Column(db.String(64))
    payload_json = db.Column(db.JSON)
