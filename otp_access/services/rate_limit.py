import os, time, threading
import redis
from flask import current_app

_r = None
_lock = threading.Lock()


class RateLimited(Exception):
    pass


class _MemStore:
    """Process-local stand-in for the two redis calls the limiter needs."""

    def __init__(self):
        self._data = {}
        self._exp = {}
        self._lock = threading.Lock()

    def _cleanup(self):
        now = time.time()
        expired = [k for k, ts in self._exp.items() if ts <= now]
        for k in expired:
            self._data.pop(k, None)
            self._exp.pop(k, None)

    def incr(self, key):
        with self._lock:
            self._cleanup()
            v = self._data.get(key, 0) + 1
            self._data[key] = v
            return v

    def expire(self, key, ttl):
        with self._lock:
            self._exp[key] = time.time() + ttl


def r():
    global _r
    if _r is not None:
        return _r
    with _lock:
        if _r is not None:
            return _r
        use_redis = os.environ.get('USE_REDIS', '1').lower() not in ('0', 'false', 'no')
        url = current_app.config.get('REDIS_URL')
        if use_redis and url:
            try:
                client = redis.from_url(url, decode_responses=True)
                client.ping()
                _r = client
                return _r
            except redis.RedisError as e:
                current_app.logger.warning('redis unavailable (%s), using in-memory rate limits', e)
        _r = _MemStore()
        return _r


def check_redeem_rate(ip: str):
    limit = current_app.config['REDEEM_RATE_LIMIT']
    window = current_app.config['REDEEM_RATE_WINDOW']
    k = f"rl:redeem:{ip}:{int(time.time() // window)}"
    v = r().incr(k)
    if v == 1:
        r().expire(k, window)
    if v > limit:
        raise RateLimited(ip)
