import logging
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import InternalError, SchedulingError

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session, action: str):
    """Commit on success; roll back and translate storage failures otherwise."""
    try:
        yield
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except OperationalError as exc:
        db.rollback()
        logger.exception('Storage unavailable while trying to %s', action)
        raise InternalError(
            f'Storage is temporarily unavailable; could not {action}. Please retry.',
            retryable=True,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while trying to %s', action)
        raise InternalError(f'Could not {action}.') from exc
    except Exception:
        db.rollback()
        raise


@contextmanager
def reading(action: str):
    """Translate storage failures raised by read-only work."""
    try:
        yield
    except OperationalError as exc:
        logger.exception('Storage unavailable while trying to %s', action)
        raise InternalError(
            f'Storage is temporarily unavailable; could not {action}. Please retry.',
            retryable=True,
        ) from exc
    except SQLAlchemyError as exc:
        logger.exception('Storage failure while trying to %s', action)
        raise InternalError(f'Could not {action}.') from exc
