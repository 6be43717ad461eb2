"""
Counter projection for blog engagement.

The four counters on BlogPost are cached aggregates of the likes, bookmarks,
comments and views tables. They are only ever changed here: incrementally by
``adjust_counter`` inside an engagement transaction, or by the reconciliation
routines which recount the source tables and correct drift.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from .. import models, settings
from ..cache import invalidate_blog_stats
from ..errors import BlogNotFound, ConsistencyError
from .atomic import lock_blog, run_atomic

logger = logging.getLogger(__name__)

# Counter column -> (relation model) whose row count it must equal
COUNTER_SOURCES: dict[str, type[models.Base]] = {
    "like_count": models.Like,
    "bookmark_count": models.Bookmark,
    "comment_count": models.Comment,
    "view_count": models.ViewEvent,
}


@dataclass
class ReconcileResult:
    """Outcome of reconciling one blog's counters."""

    blog_id: int
    # counter name -> (stored value, true value) for every counter that drifted
    corrections: dict[str, tuple[int, int]] = field(default_factory=dict)
    applied: bool = False

    @property
    def drifted(self) -> bool:
        return bool(self.corrections)


def adjust_counter(db: Session, blog: models.BlogPost, counter: str, delta: int) -> int:
    """
    Apply ``delta`` to one counter of a locked blog row and return the new value.

    Must be called inside the same transaction that changed the relation row,
    after ``lock_blog``. A decrement below zero is an invariant violation: it is
    logged and the counter is clamped at 0 instead of persisting a negative.
    """
    if counter not in COUNTER_SOURCES:
        raise ValueError(f"Unknown counter: {counter}")

    current = getattr(blog, counter) or 0
    if current + delta < 0:
        logger.error(
            "Counter underflow clamped to 0: %s",
            ConsistencyError(blog.id, counter, current, current + delta),
        )

    column = getattr(models.BlogPost, counter)
    db.execute(
        update(models.BlogPost)
        .where(models.BlogPost.id == blog.id)
        .values({counter: case((column + delta < 0, 0), else_=column + delta)})
        .execution_options(synchronize_session=False)
    )
    new_value = db.execute(
        select(column).where(models.BlogPost.id == blog.id)
    ).scalar_one()
    db.expire(blog, [counter])
    return new_value


def count_source_rows(db: Session, blog_id: int) -> dict[str, int]:
    """Count the source-of-truth rows behind every counter for one blog."""
    return {
        counter: db.execute(
            select(func.count(model.id)).where(model.blog_id == blog_id)
        ).scalar_one()
        for counter, model in COUNTER_SOURCES.items()
    }


def reconcile_blog(db: Session, blog_id: int, dry_run: bool = False) -> ReconcileResult:
    """
    Compare a blog's counters against true row counts and correct any drift.

    Runs as its own atomic unit with the blog row locked, so no engagement write
    can interleave between the recount and the correction.

    Raises:
        BlogNotFound: if the blog does not exist.
    """

    def _reconcile(session: Session) -> ReconcileResult:
        blog = lock_blog(session, blog_id)
        actual = count_source_rows(session, blog_id)
        result = ReconcileResult(blog_id=blog_id)

        for counter, true_value in actual.items():
            stored = getattr(blog, counter) or 0
            if stored == true_value:
                continue
            result.corrections[counter] = (stored, true_value)
            logger.warning(
                "Counter drift detected%s: %s",
                " (dry run)" if dry_run else ", correcting",
                ConsistencyError(blog_id, counter, stored, true_value),
            )
            if not dry_run:
                setattr(blog, counter, true_value)

        result.applied = result.drifted and not dry_run
        return result

    result = run_atomic(db, _reconcile, label=f"reconcile blog {blog_id}")
    if result.applied:
        invalidate_blog_stats(blog_id)
    return result


def reconcile_all(
    db: Session,
    dry_run: bool = False,
    batch_size: int | None = None,
) -> list[ReconcileResult]:
    """
    Reconcile every blog, one transaction per blog.

    Returns:
        Results for the blogs whose counters drifted.
    """
    batch_size = batch_size or settings.RECONCILE_BATCH_SIZE
    drifted: list[ReconcileResult] = []
    checked = 0
    last_id = 0

    while True:
        blog_ids = db.execute(
            select(models.BlogPost.id)
            .where(models.BlogPost.id > last_id)
            .order_by(models.BlogPost.id)
            .limit(batch_size)
        ).scalars().all()
        # Release the read transaction between batches
        db.rollback()
        if not blog_ids:
            break

        for blog_id in blog_ids:
            try:
                result = reconcile_blog(db, blog_id, dry_run=dry_run)
            except BlogNotFound:
                logger.debug(f"Blog {blog_id} deleted during reconciliation, skipping")
                continue
            checked += 1
            if result.drifted:
                drifted.append(result)
        last_id = blog_ids[-1]

    logger.info(
        f"Reconciled {checked} blogs: {len(drifted)} drifted"
        f"{' (dry run, nothing written)' if dry_run else ''}"
    )
    return drifted
