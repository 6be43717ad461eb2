"""Blog read and engagement endpoints (likes, views, status, analytics)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_client_ip, get_current_user_optional, user_id_of
from ..deps import get_db
from ..errors import NotFound
from ..services import engagement, toggles, views

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blog", tags=["Blogs"])


@router.get("/{id}", response_model=schemas.Blog)
def get_blog(
    id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.Blog:
    """
    Get a blog with its engagement counters.

    Records a view as a background task after the response is sent; view
    recording can never fail this request.
    """
    blog = engagement.get_blog(db, id)
    response = schemas.Blog.model_validate(blog)
    # Read before the rollback expires current_user
    viewer_id = user_id_of(current_user)
    # Release the read transaction before the background view write locks the blog
    db.rollback()

    background_tasks.add_task(
        views.record_view_in_background,
        blog_id=id,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        user_id=viewer_id,
    )
    return response


@router.post("/{id}/like", response_model=schemas.LikeToggleResponse)
def toggle_like(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.LikeToggleResponse:
    """
    Like or unlike a blog.

    Flips the caller's like and returns the new state with the updated count.
    Callers track their own toggle state: sending this twice flips twice.
    """
    result = toggles.toggle_like(db, user_id_of(current_user), id)
    return schemas.LikeToggleResponse(liked=result.active, like_count=result.count)


@router.post("/{id}/view", response_model=schemas.ViewRecordResponse)
def record_view(
    id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.ViewRecordResponse:
    """
    Record a view of a blog.

    **Public endpoint** - works for anonymous callers, identified by address.
    Duplicates inside the dedup window are accepted but not counted.
    Only a missing blog is reported; other failures are logged and dropped.
    """
    try:
        views.record_view(
            db,
            id,
            get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            user_id=user_id_of(current_user),
        )
    except NotFound:
        raise
    except Exception as e:
        logger.warning(f"Failed to record view for blog {id}: {e}", exc_info=True)
        return schemas.ViewRecordResponse(recorded=False)

    return schemas.ViewRecordResponse(recorded=True)


@router.get("/{id}/engagement", response_model=schemas.EngagementStatus)
def get_engagement(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.EngagementStatus:
    """Counters and the caller's liked/bookmarked flags (false for anonymous callers)."""
    status = engagement.engagement_status(db, id, user_id_of(current_user))
    return schemas.EngagementStatus.model_validate(status)


@router.get("/{id}/analytics", response_model=schemas.BlogAnalytics)
def get_analytics(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.BlogAnalytics:
    """Engagement counters for the blog's author only."""
    analytics = engagement.blog_analytics(db, id, user_id_of(current_user))
    return schemas.BlogAnalytics.model_validate(analytics)
