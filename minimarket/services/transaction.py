# minimarket/services/transaction.py
from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..errors import OrderError, StorageError

logger = structlog.get_logger(__name__)


@contextmanager
def atomic(session):
    """Commit everything written inside the block, or nothing.

    Domain errors are re-raised as-is after the rollback; driver and ORM
    failures surface as ``StorageError`` so callers only ever see the
    closed set of error kinds. Anything else is rolled back and re-raised
    unchanged, leaving the session usable.
    """
    try:
        yield session
        session.commit()
    except OrderError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("transaction_rolled_back", error=str(exc))
        raise StorageError("storage failure, nothing was saved") from exc
    except Exception:
        session.rollback()
        raise
