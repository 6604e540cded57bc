import hashlib

from flask import request
from sqlalchemy import select

from ..models import db, Issuer


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()


def create_issuer(name: str, api_key: str) -> Issuer:
    issuer = Issuer(name=name, api_key_hash=hash_api_key(api_key), status='active')
    db.session.add(issuer)
    db.session.commit()
    return issuer


def authenticate_issuer() -> Issuer | None:
    """Resolve the calling issuer from ``X-Issuer-Key``."""
    api_key = request.headers.get('X-Issuer-Key')
    if not api_key:
        return None
    return db.session.execute(
        select(Issuer).where(Issuer.api_key_hash == hash_api_key(api_key), Issuer.status == 'active')
    ).scalar_one_or_none()
