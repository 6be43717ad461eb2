"""
Like and bookmark toggles.

A toggle flips the existence of a (user, blog) relation row and moves the
matching counter by exactly one, in a single transaction with the blog row
locked. The unique constraint on (user_id, blog_id) backs this up: a racing
insert that slips past the lock fails, rolls back and is retried against the
new state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .. import models
from ..cache import invalidate_blog_stats
from ..errors import Unauthorized
from .atomic import lock_blog, run_atomic
from .counters import adjust_counter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToggleResult:
    """New relation state and the counter value after the toggle."""

    active: bool
    count: int


def _toggle_relation(
    db: Session,
    relation: type[models.Like] | type[models.Bookmark],
    counter: str,
    user_id: int | None,
    blog_id: int,
) -> ToggleResult:
    if user_id is None:
        raise Unauthorized("Authentication required")

    def _flip(session: Session) -> ToggleResult:
        blog = lock_blog(session, blog_id)

        removed = session.execute(
            delete(relation)
            .where(relation.user_id == user_id, relation.blog_id == blog_id)
            .execution_options(synchronize_session=False)
        ).rowcount

        if removed:
            count = adjust_counter(session, blog, counter, -removed)
            return ToggleResult(active=False, count=count)

        session.add(relation(user_id=user_id, blog_id=blog_id))
        session.flush()
        count = adjust_counter(session, blog, counter, 1)
        return ToggleResult(active=True, count=count)

    result = run_atomic(db, _flip, label=f"toggle {relation.__tablename__} blog={blog_id} user={user_id}")
    invalidate_blog_stats(blog_id)

    logger.info(
        f"{relation.__tablename__} toggled {'on' if result.active else 'off'} "
        f"for blog {blog_id} by user {user_id} ({counter}={result.count})"
    )
    return result


def toggle_like(db: Session, user_id: int | None, blog_id: int) -> ToggleResult:
    """
    Like the blog if the user has not liked it, otherwise remove the like.

    Raises:
        Unauthorized: if ``user_id`` is None.
        BlogNotFound: if the blog does not exist (no counter is touched).
        StoreConflict: if store conflicts outlast the retry budget.
    """
    return _toggle_relation(db, models.Like, "like_count", user_id, blog_id)


def toggle_bookmark(db: Session, user_id: int | None, blog_id: int) -> ToggleResult:
    """Bookmark counterpart of ``toggle_like``."""
    return _toggle_relation(db, models.Bookmark, "bookmark_count", user_id, blog_id)


def has_relation(
    db: Session,
    relation: type[models.Like] | type[models.Bookmark],
    user_id: int | None,
    blog_id: int,
) -> bool:
    if user_id is None:
        return False
    return db.execute(
        select(relation.id).where(relation.user_id == user_id, relation.blog_id == blog_id)
    ).first() is not None
