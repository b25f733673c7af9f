# Overview: Row locking and bounded retry for write paths that race on the same rows.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the query's rows.

    NOTE: SQLite ignores FOR UPDATE (it serializes writers itself); Postgres
    and MySQL honour it.
    """
    return query.with_for_update()


def run_with_retry(session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a unit of work, rolling back and retrying on lock conflicts
    (OperationalError) and optimistic version conflicts (StaleDataError).

    Any other exception rolls the session back and propagates unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after concurrency conflict (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
