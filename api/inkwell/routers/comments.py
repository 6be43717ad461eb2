"""Comment endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import get_current_user_optional, user_id_of
from ..deps import get_db
from ..pagination import PageParams
from ..services import comments as comment_service

router = APIRouter(prefix="/blog", tags=["Comments"])


@router.get("/{id}/comments", response_model=schemas.CommentPage)
def list_comments(
    id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.COMMENTS_DEFAULT_PAGE_SIZE, ge=1),
    db: Session = Depends(get_db),
) -> schemas.CommentPage:
    """
    List top-level comments for a blog, newest first.

    Each comment carries its thread's replies oldest first. Limit is capped
    at COMMENTS_MAX_PAGE_SIZE.
    """
    result = comment_service.list_comments(db, id, PageParams.clamp(page, limit))

    items = []
    for thread in result.items:
        item = schemas.CommentWithReplies.model_validate(thread.comment)
        item.replies = [schemas.Comment.model_validate(r) for r in thread.replies]
        items.append(item)

    return schemas.CommentPage(
        items=items,
        pagination=schemas.PaginationMeta(
            page=result.page,
            limit=result.limit,
            total=result.total,
            pages=result.pages,
        ),
    )


@router.post(
    "/{id}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.Comment:
    """
    Add a comment or reply to a blog (authenticated users only).
    """
    comment = comment_service.add_comment(
        db,
        id,
        user_id_of(current_user),
        payload.content,
        parent_id=payload.parent_id,
    )
    return schemas.Comment.model_validate(comment)
