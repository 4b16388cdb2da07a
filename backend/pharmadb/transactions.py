from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ContentionError, StorageFailure

logger = logging.getLogger(__name__)

# Driver messages for conflicts that go away on retry.
_TRANSIENT_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock detected",
    "could not serialize access",
    "could not obtain lock",
    "lock wait timeout",
    "lock not available",
)


def is_transient_db_error(exc: BaseException) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


@contextmanager
def atomic(db: Session, *, operation: str) -> Iterator[Session]:
    """
    Commit on success, roll back on any error.

    Transient database conflicts surface as ContentionError, other
    persistence faults as StorageFailure with the driver error chained.
    Domain errors pass through unchanged after the rollback.
    """
    try:
        yield db
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        if is_transient_db_error(exc):
            logger.info("Transient conflict during %s", operation, extra={"operation": operation})
            raise ContentionError() from exc
        logger.exception("Storage failure during %s", operation, extra={"operation": operation})
        raise StorageFailure() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Storage failure during %s", operation, extra={"operation": operation})
        raise StorageFailure() from exc
    except BaseException:
        db.rollback()
        raise
