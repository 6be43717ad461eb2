"""
Read-side engagement queries: per-caller status, bookmarks, owner analytics.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from .. import models, settings
from ..cache import BLOG_STATS_KEY, cache_get, cache_set
from ..errors import BlogNotFound, Forbidden, Unauthorized
from .toggles import has_relation

logger = logging.getLogger(__name__)


@dataclass
class EngagementStatus:
    liked: bool
    bookmarked: bool
    view_count: int
    like_count: int
    comment_count: int
    bookmark_count: int


@dataclass
class BlogAnalytics:
    blog_id: int
    title: str
    published: bool
    views: int
    likes: int
    comments: int
    bookmarks: int
    published_at: datetime | None
    updated_at: datetime | None


def get_blog(db: Session, blog_id: int) -> models.BlogPost:
    """
    Load a blog with its author.

    Raises:
        BlogNotFound: if the blog does not exist.
    """
    blog = db.execute(
        select(models.BlogPost)
        .options(joinedload(models.BlogPost.author))
        .where(models.BlogPost.id == blog_id)
    ).scalar_one_or_none()
    if blog is None:
        raise BlogNotFound(f"Blog {blog_id} not found")
    return blog


def engagement_status(db: Session, blog_id: int, user_id: int | None = None) -> EngagementStatus:
    """Counters for a blog plus whether the caller liked/bookmarked it."""
    blog = get_blog(db, blog_id)
    return EngagementStatus(
        liked=has_relation(db, models.Like, user_id, blog_id),
        bookmarked=has_relation(db, models.Bookmark, user_id, blog_id),
        view_count=blog.view_count,
        like_count=blog.like_count,
        comment_count=blog.comment_count,
        bookmark_count=blog.bookmark_count,
    )


def is_bookmarked(db: Session, blog_id: int, user_id: int | None) -> bool:
    if user_id is None:
        raise Unauthorized("Authentication required")
    return has_relation(db, models.Bookmark, user_id, blog_id)


def list_bookmarked_blogs(db: Session, user_id: int | None) -> list[models.BlogPost]:
    """The user's bookmarked blogs, most recently bookmarked first."""
    if user_id is None:
        raise Unauthorized("Authentication required")

    return list(
        db.execute(
            select(models.BlogPost)
            .join(models.Bookmark, models.Bookmark.blog_id == models.BlogPost.id)
            .options(joinedload(models.BlogPost.author))
            .where(models.Bookmark.user_id == user_id)
            .order_by(models.Bookmark.created_at.desc(), models.Bookmark.id.desc())
        ).scalars().all()
    )


def blog_analytics(db: Session, blog_id: int, user_id: int | None) -> BlogAnalytics:
    """
    Counter readout for the blog's author.

    Served from the redis cache when present. Entries are dropped after every
    counter change, but a read racing a write can still cache the older
    values; such an entry is bounded by BLOG_STATS_CACHE_TTL.

    Raises:
        Unauthorized: if ``user_id`` is None.
        BlogNotFound: if the blog does not exist.
        Forbidden: if the caller is not the blog's author.
    """
    if user_id is None:
        raise Unauthorized("Authentication required")

    key = BLOG_STATS_KEY.format(blog_id=blog_id)
    cached = cache_get(key)
    if isinstance(cached, dict) and cached.get("author_id") is not None:
        if cached["author_id"] != user_id:
            raise Forbidden("Unauthorized to view analytics for this blog")
        return _analytics_from_cache(cached["analytics"])

    blog = db.get(models.BlogPost, blog_id)
    if blog is None:
        raise BlogNotFound(f"Blog {blog_id} not found")

    analytics = BlogAnalytics(
        blog_id=blog.id,
        title=blog.title,
        published=blog.published,
        views=blog.view_count,
        likes=blog.like_count,
        comments=blog.comment_count,
        bookmarks=blog.bookmark_count,
        published_at=blog.published_at,
        updated_at=blog.updated_at,
    )
    cache_set(
        key,
        {"author_id": blog.author_id, "analytics": _analytics_to_cache(analytics)},
        ttl=settings.BLOG_STATS_CACHE_TTL,
    )

    if blog.author_id != user_id:
        raise Forbidden("Unauthorized to view analytics for this blog")
    return analytics


def _analytics_to_cache(analytics: BlogAnalytics) -> dict:
    data = asdict(analytics)
    for key in ("published_at", "updated_at"):
        if data[key] is not None:
            data[key] = data[key].isoformat()
    return data


def _analytics_from_cache(data: dict) -> BlogAnalytics:
    data = dict(data)
    for key in ("published_at", "updated_at"):
        if data.get(key):
            data[key] = datetime.fromisoformat(data[key])
    return BlogAnalytics(**data)
