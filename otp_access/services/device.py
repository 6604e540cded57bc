import hashlib
from flask import request


def request_fingerprint(supplied: str | None = None) -> str | None:
    """Use the client's fingerprint if it sent one, else derive one from headers.

    The value is advisory only; nothing here is secret.
    """
    if supplied:
        return str(supplied).strip()[:128] or None
    supplied = request.headers.get('X-Device-Fingerprint')
    if supplied:
        return supplied.strip()[:128] or None
    ua = request.headers.get('User-Agent', '')
    if not ua:
        return None
    plat = request.headers.get('Sec-CH-UA-Platform', '')
    lang = request.headers.get('Accept-Language', '')
    raw = f"{ua}|{plat}|{lang}"
    return 'h:' + hashlib.sha256(raw.encode()).hexdigest()[:32]
