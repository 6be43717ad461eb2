"""
Aggregate engagement readouts built on the blog counters.

Totals and rankings read the denormalized counters on BlogPost. Only the
daily activity series goes to the relation tables, since counters carry no
timestamps.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..errors import Unauthorized
from ..utils.clock import utcnow

ACTIVITY_DAYS = 7
RECENT_BLOGS_LIMIT = 5
TOP_BLOGS_LIMIT = 3
TRENDING_DEFAULT_LIMIT = 10
TRENDING_MAX_LIMIT = 20


@dataclass
class EngagementTotals:
    total_blogs: int
    published_blogs: int
    total_views: int
    total_likes: int
    total_comments: int
    total_bookmarks: int


@dataclass
class DailyActivity:
    day: date
    views: int = 0
    likes: int = 0
    comments: int = 0


@dataclass
class TopBlog:
    id: int
    title: str
    view_count: int
    like_count: int
    comment_count: int
    engagement_rate: int  # percent


@dataclass
class AuthorDashboard:
    overview: EngagementTotals
    recent_blogs: list[models.BlogPost] = field(default_factory=list)
    activity: list[DailyActivity] = field(default_factory=list)
    top_blogs: list[TopBlog] = field(default_factory=list)


@dataclass
class PlatformOverview:
    total_users: int
    totals: EngagementTotals


@dataclass
class TrendingBlog:
    blog: models.BlogPost
    trending_score: int


def engagement_rate(likes: int, comments: int, views: int) -> int:
    """(likes + comments) per view as a whole percentage, half rounded up; 0 without views."""
    if views <= 0:
        return 0
    return math.floor((likes + comments) * 100 / views + 0.5)


def trending_score(blog: models.BlogPost) -> int:
    return blog.like_count + blog.comment_count + blog.view_count // 10


def _totals(db: Session, *criteria) -> EngagementTotals:
    row = db.execute(
        select(
            func.count(models.BlogPost.id),
            func.coalesce(func.sum(case((models.BlogPost.published.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(models.BlogPost.view_count), 0),
            func.coalesce(func.sum(models.BlogPost.like_count), 0),
            func.coalesce(func.sum(models.BlogPost.comment_count), 0),
            func.coalesce(func.sum(models.BlogPost.bookmark_count), 0),
        ).where(*criteria)
    ).one()
    return EngagementTotals(*(int(value) for value in row))


def _as_date(value) -> date:
    # func.date() yields a date on PostgreSQL and an ISO string on SQLite
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def daily_activity(db: Session, author_id: int, now: datetime | None = None) -> list[DailyActivity]:
    """
    Views, likes and comments on the author's blogs per UTC day, oldest first.

    Covers the last ACTIVITY_DAYS days including today; days without
    activity are present with zeros.
    """
    now = now or utcnow()
    today = now.astimezone(timezone.utc).date()
    first_day = today - timedelta(days=ACTIVITY_DAYS - 1)
    start = datetime.combine(first_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=timezone.utc)

    days = {
        first_day + timedelta(days=offset): DailyActivity(day=first_day + timedelta(days=offset))
        for offset in range(ACTIVITY_DAYS)
    }

    for attr, model in (("views", models.ViewEvent), ("likes", models.Like), ("comments", models.Comment)):
        day_column = func.date(model.created_at)
        rows = db.execute(
            select(day_column, func.count(model.id))
            .join(models.BlogPost, models.BlogPost.id == model.blog_id)
            .where(
                models.BlogPost.author_id == author_id,
                model.created_at >= start,
                model.created_at < end,
            )
            .group_by(day_column)
        ).all()
        for day_value, count in rows:
            bucket = days.get(_as_date(day_value))
            if bucket is not None:
                setattr(bucket, attr, int(count))

    return [days[day] for day in sorted(days)]


def author_dashboard(db: Session, user_id: int | None, now: datetime | None = None) -> AuthorDashboard:
    """
    Engagement summary across every blog the caller has written.

    Raises:
        Unauthorized: if ``user_id`` is None.
    """
    if user_id is None:
        raise Unauthorized("Authentication required")

    overview = _totals(db, models.BlogPost.author_id == user_id)

    recent_blogs = db.execute(
        select(models.BlogPost)
        .where(models.BlogPost.author_id == user_id)
        .order_by(models.BlogPost.created_at.desc(), models.BlogPost.id.desc())
        .limit(RECENT_BLOGS_LIMIT)
    ).scalars().all()

    top = db.execute(
        select(models.BlogPost)
        .where(models.BlogPost.author_id == user_id, models.BlogPost.published.is_(True))
        .order_by(models.BlogPost.view_count.desc(), models.BlogPost.id.asc())
        .limit(TOP_BLOGS_LIMIT)
    ).scalars().all()

    return AuthorDashboard(
        overview=overview,
        recent_blogs=list(recent_blogs),
        activity=daily_activity(db, user_id, now=now),
        top_blogs=[
            TopBlog(
                id=blog.id,
                title=blog.title,
                view_count=blog.view_count,
                like_count=blog.like_count,
                comment_count=blog.comment_count,
                engagement_rate=engagement_rate(blog.like_count, blog.comment_count, blog.view_count),
            )
            for blog in top
        ],
    )


def platform_overview(db: Session) -> PlatformOverview:
    """Site-wide totals. Engagement sums come from the blog counters."""
    total_users = db.execute(select(func.count(models.User.id))).scalar_one()
    return PlatformOverview(total_users=total_users, totals=_totals(db))


def trending_blogs(db: Session, limit: int | None = None) -> list[TrendingBlog]:
    """Published blogs ranked by likes, then comments, then views."""
    limit = min(limit or TRENDING_DEFAULT_LIMIT, TRENDING_MAX_LIMIT)

    blogs = db.execute(
        select(models.BlogPost)
        .options(joinedload(models.BlogPost.author))
        .where(models.BlogPost.published.is_(True))
        .order_by(
            models.BlogPost.like_count.desc(),
            models.BlogPost.comment_count.desc(),
            models.BlogPost.view_count.desc(),
            models.BlogPost.id.desc(),
        )
        .limit(limit)
    ).scalars().all()

    return [TrendingBlog(blog=blog, trending_score=trending_score(blog)) for blog in blogs]
