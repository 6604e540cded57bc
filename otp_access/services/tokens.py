import jwt
from flask import current_app

# Media pointer JWT: RS256 with the configured key pair, HS256 over SECRET_KEY otherwise
def _keys():
    cfg = current_app.config
    if cfg.get('JWT_PRIVATE_KEY') and cfg.get('JWT_PUBLIC_KEY'):
        return cfg['JWT_PRIVATE_KEY'], cfg['JWT_PUBLIC_KEY'], 'RS256'
    return cfg['SECRET_KEY'], cfg['SECRET_KEY'], 'HS256'

def sign_media_pointer(path: str, session_id: int, exp_ts: int) -> str:
    payload = {
        'sub': path,
        'sid': str(session_id),
        'exp': exp_ts,
        'scope': 'media',
    }
    key, _, alg = _keys()
    return jwt.encode(payload, key, algorithm=alg)

def read_media_pointer(pointer: str) -> dict:
    """Decode a pointer; raises jwt.ExpiredSignatureError / jwt.InvalidTokenError."""
    _, key, alg = _keys()
    payload = jwt.decode(pointer, key, algorithms=[alg])
    if payload.get('scope') != 'media' or not payload.get('sub'):
        raise jwt.InvalidTokenError('not a media pointer')
    return payload
