"""
View deduplication and recording.

A view is counted only when no view of the same blog exists within the
trailing dedup window from the same user id or from the same network
address. The address stands in for identity when the viewer is anonymous,
and is also matched for signed-in viewers, so a user and an anonymous
visitor sharing an address deduplicate against each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .. import models, settings
from ..cache import invalidate_blog_stats
from ..errors import NotFound
from ..utils.clock import utcnow
from .atomic import lock_blog, run_atomic
from .counters import adjust_counter

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "unknown"
MAX_USER_AGENT_LENGTH = 500


@dataclass(frozen=True)
class ViewOutcome:
    """Whether the view was counted (False means it was a duplicate)."""

    recorded: bool
    view_count: int


def dedup_window() -> timedelta:
    return timedelta(hours=settings.VIEW_DEDUP_WINDOW_HOURS)


def find_recent_view(
    db: Session,
    blog_id: int,
    user_id: int | None,
    ip_address: str,
    now: datetime,
) -> models.ViewEvent | None:
    """Return a view of ``blog_id`` inside the dedup window from this user or address."""
    identity = models.ViewEvent.ip_address == ip_address
    if user_id is not None:
        identity = or_(models.ViewEvent.user_id == user_id, identity)

    return db.execute(
        select(models.ViewEvent)
        .where(
            models.ViewEvent.blog_id == blog_id,
            identity,
            models.ViewEvent.created_at >= now - dedup_window(),
        )
        .limit(1)
    ).scalar_one_or_none()


def record_view(
    db: Session,
    blog_id: int,
    ip_address: str | None,
    user_agent: str | None = None,
    user_id: int | None = None,
    now: datetime | None = None,
) -> ViewOutcome:
    """
    Record a view of a blog unless it duplicates a recent one.

    The dedup check, the ViewEvent insert and the view_count increment run in
    one transaction with the blog row locked, so two identical concurrent
    views count once.

    Args:
        db: Database session
        blog_id: Blog being viewed
        ip_address: Client network address (``"unknown"`` if absent)
        user_agent: User-Agent header, stored for information only
        user_id: Viewer's user id, None for anonymous viewers
        now: Time of the view (default: current UTC time)

    Raises:
        BlogNotFound: if the blog does not exist.
    """
    ip_address = ip_address or UNKNOWN_ADDRESS
    user_agent = (user_agent or UNKNOWN_ADDRESS)[:MAX_USER_AGENT_LENGTH]
    viewed_at = now or utcnow()

    def _record(session: Session) -> ViewOutcome:
        blog = lock_blog(session, blog_id)

        if find_recent_view(session, blog_id, user_id, ip_address, viewed_at) is not None:
            return ViewOutcome(recorded=False, view_count=blog.view_count)

        session.add(
            models.ViewEvent(
                blog_id=blog_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=viewed_at,
            )
        )
        session.flush()
        count = adjust_counter(session, blog, "view_count", 1)
        return ViewOutcome(recorded=True, view_count=count)

    outcome = run_atomic(db, _record, label=f"record view blog={blog_id}")
    if outcome.recorded:
        invalidate_blog_stats(blog_id)
        logger.info(f"Recorded view for blog {blog_id} (user={user_id}, view_count={outcome.view_count})")
    else:
        logger.debug(f"Duplicate view for blog {blog_id} within window, not counted")
    return outcome


def record_view_in_background(
    blog_id: int,
    ip_address: str | None,
    user_agent: str | None = None,
    user_id: int | None = None,
) -> None:
    """
    Fire-and-forget view recording for use as a background task.

    Uses its own session so it never interferes with the request's transaction,
    and never raises: failures are logged and dropped.
    """
    from ..db import SessionLocal

    view_db = SessionLocal()
    try:
        record_view(view_db, blog_id, ip_address, user_agent=user_agent, user_id=user_id)
    except NotFound:
        logger.debug(f"Blog {blog_id} not found, skipping view recording")
    except Exception as e:
        logger.warning(f"Failed to record view for blog {blog_id}: {e}", exc_info=True)
    finally:
        view_db.close()
