"""Result types shared by the redemption, session and invalidation paths.

Business outcomes are plain values so routes can map each one to a specific
response. Only infrastructure and generation faults are raised.
"""
from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    NOT_FOUND = 'not_found'
    INVALIDATED = 'invalidated'
    EXPIRED = 'expired'
    EXHAUSTED = 'exhausted'
    DEVICE_MISMATCH = 'device_mismatch'
    FORBIDDEN = 'forbidden'


@dataclass(frozen=True)
class Rejected:
    outcome: Outcome

    def __bool__(self):
        return False


class GenerationExhausted(RuntimeError):
    """No free code was found within the attempt budget."""


class DelegationFailed(RuntimeError):
    """The storage backend could not mint a pointer; the caller may retry."""


class StoreUnavailable(RuntimeError):
    """The database stayed unreachable after one internal retry."""


# HTTP mapping used by the blueprints
STATUS_FOR = {
    Outcome.NOT_FOUND: 404,
    Outcome.INVALIDATED: 401,
    Outcome.EXPIRED: 401,
    Outcome.EXHAUSTED: 403,
    Outcome.DEVICE_MISMATCH: 403,
    Outcome.FORBIDDEN: 403,
}
