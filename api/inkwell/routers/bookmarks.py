"""Bookmark endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user_optional, user_id_of
from ..deps import get_db
from ..services import engagement, toggles

router = APIRouter(prefix="/bookmark", tags=["Bookmarks"])


@router.get("", response_model=list[schemas.BookmarkedBlog])
def list_bookmarks(
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> list[schemas.BookmarkedBlog]:
    """The caller's bookmarked blogs, most recently bookmarked first."""
    blogs = engagement.list_bookmarked_blogs(db, user_id_of(current_user))
    return [schemas.BookmarkedBlog.model_validate(blog) for blog in blogs]


@router.post("/{id}", response_model=schemas.BookmarkToggleResponse)
def toggle_bookmark(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.BookmarkToggleResponse:
    """Bookmark or un-bookmark a blog."""
    result = toggles.toggle_bookmark(db, user_id_of(current_user), id)
    return schemas.BookmarkToggleResponse(bookmarked=result.active, bookmark_count=result.count)


@router.get("/{id}", response_model=schemas.BookmarkStatus)
def check_bookmark(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.BookmarkStatus:
    return schemas.BookmarkStatus(
        bookmarked=engagement.is_bookmarked(db, id, user_id_of(current_user))
    )
