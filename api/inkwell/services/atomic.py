"""
Atomic units of work for engagement writes.

Every engagement mutation (relation row + counter) runs inside ``run_atomic``
so that the pair commits together or not at all. Store conflicts are retried
a bounded number of times and then surfaced as a generic ``StoreConflict``.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from .. import models, settings
from ..errors import BlogNotFound, StoreConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that indicate a lost race rather than a bad request: unique violations
# from a concurrent insert, serialization failures, deadlocks, SQLite lock timeouts.
RETRYABLE_ERRORS = (IntegrityError, OperationalError)


def run_atomic(
    db: Session,
    operation: Callable[[Session], T],
    *,
    attempts: int | None = None,
    label: str = "engagement write",
) -> T:
    """
    Run ``operation(db)`` and commit it as one transaction.

    Args:
        db: Session to run on. Any pending state is rolled back before each attempt.
        operation: Callable performing reads and writes on ``db``; must not commit.
        attempts: Maximum number of attempts (default: STORE_RETRY_ATTEMPTS)
        label: Name used in log messages

    Returns:
        Whatever ``operation`` returned on the attempt that committed.

    Raises:
        StoreConflict: if every attempt hit a retryable store error.
        EngagementError: domain errors raised by ``operation`` propagate unchanged.
    """
    max_attempts = attempts or settings.STORE_RETRY_ATTEMPTS
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            result = operation(db)
            db.commit()
            return result
        except RETRYABLE_ERRORS as e:
            db.rollback()
            last_error = e
            logger.warning(
                f"{label}: store conflict on attempt {attempt}/{max_attempts}: {e.__class__.__name__}"
            )
            if attempt < max_attempts:
                time.sleep(settings.STORE_RETRY_BACKOFF_MS * attempt / 1000.0)
        except Exception:
            db.rollback()
            raise

    logger.error(f"{label}: giving up after {max_attempts} attempts", exc_info=last_error)
    raise StoreConflict("Could not complete the request, please retry") from last_error


def lock_blog(db: Session, blog_id: int) -> models.BlogPost:
    """
    Load a blog row for update inside the current transaction.

    On PostgreSQL this takes a row lock so concurrent engagement writes on the
    same blog serialize. SQLite ignores FOR UPDATE; its transactions already
    hold the database write lock from BEGIN IMMEDIATE.

    Raises:
        BlogNotFound: if the blog does not exist.
    """
    blog = db.execute(
        select(models.BlogPost)
        .where(models.BlogPost.id == blog_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if blog is None:
        raise BlogNotFound(f"Blog {blog_id} not found")
    return blog
