"""Aggregate engagement endpoints: author dashboard, platform totals, trending."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user_optional, user_id_of
from ..deps import get_db
from ..services import analytics

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/dashboard", response_model=schemas.AuthorDashboard)
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.AuthorDashboard:
    """
    Engagement summary for the caller's own blogs.

    Totals and top blogs come from the blog counters; ``activity`` is a
    seven-day series of views, likes and comments, oldest day first.
    """
    dashboard = analytics.author_dashboard(db, user_id_of(current_user))
    return schemas.AuthorDashboard.model_validate(dashboard)


@router.get("/platform", response_model=schemas.PlatformOverview)
def get_platform(db: Session = Depends(get_db)) -> schemas.PlatformOverview:
    overview = analytics.platform_overview(db)
    return schemas.PlatformOverview(total_users=overview.total_users, **asdict(overview.totals))


@router.get("/trending", response_model=list[schemas.TrendingBlog])
def get_trending(
    limit: int = Query(analytics.TRENDING_DEFAULT_LIMIT, ge=1),
    db: Session = Depends(get_db),
) -> list[schemas.TrendingBlog]:
    """Published blogs ranked by likes, comments, then views (limit capped at 20)."""
    return [
        schemas.TrendingBlog(
            **schemas.Blog.model_validate(entry.blog).model_dump(),
            trending_score=entry.trending_score,
        )
        for entry in analytics.trending_blogs(db, limit)
    ]
