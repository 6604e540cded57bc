from datetime import datetime
from enum import Enum

from ..models import AccessCode, as_utc


class CodeState(str, Enum):
    FRESH = 'fresh'
    ACTIVE = 'active'
    EXHAUSTED = 'exhausted'
    EXPIRED = 'expired'
    INVALIDATED = 'invalidated'


def code_state(code: AccessCode, now: datetime) -> CodeState:
    """Derive the state from the record's fields.

    Invalidated and expired win over the counters. A code is expired from the
    instant ``now`` reaches ``effective_expires_at``.
    """
    if code.invalidated:
        return CodeState.INVALIDATED
    if now >= as_utc(code.effective_expires_at):
        return CodeState.EXPIRED
    if code.used_sessions >= code.max_sessions:
        return CodeState.EXHAUSTED
    if code.first_used_at is None:
        return CodeState.FRESH
    return CodeState.ACTIVE


def remaining_seconds(expires_at: datetime, now: datetime) -> int:
    return max(0, int((as_utc(expires_at) - now).total_seconds()))
