import functools
import logging

from sqlalchemy.exc import OperationalError

from ..models import db
from .outcomes import StoreUnavailable

logger = logging.getLogger(__name__)


def retry_once(fn):
    """Run ``fn`` again after a rollback if the store drops the connection."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except OperationalError as e:
            db.session.rollback()
            logger.warning('store error in %s, retrying once: %s', fn.__name__, e)
        try:
            return fn(*args, **kwargs)
        except OperationalError as e:
            db.session.rollback()
            raise StoreUnavailable(str(e)) from e
    return wrapper
