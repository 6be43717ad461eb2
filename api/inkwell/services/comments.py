"""
Comment creation and two-level thread assembly.

Each comment stores its direct parent and its top-level ancestor (root).
Reads return one page of top-level comments, newest first, each carrying
every comment in its thread oldest first, so replies to replies are shown
flattened under the top-level comment they descend from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from .. import models, settings
from ..cache import invalidate_blog_stats
from ..errors import BlogNotFound, Unauthorized, ValidationError
from ..pagination import PageParams, page_count
from .atomic import lock_blog, run_atomic
from .counters import adjust_counter

logger = logging.getLogger(__name__)


@dataclass
class CommentThread:
    """A top-level comment and the replies in its thread."""

    comment: models.Comment
    replies: list[models.Comment] = field(default_factory=list)


@dataclass
class CommentThreadPage:
    items: list[CommentThread]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return page_count(self.total, self.limit)


def normalize_content(content: str | None) -> str:
    """
    Trim comment content and validate it.

    Raises:
        ValidationError: if the content is empty after trimming or too long.
    """
    text = (content or "").strip()
    if not text:
        raise ValidationError("Comment content is required")
    if len(text) > settings.COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Comment exceeds {settings.COMMENT_MAX_LENGTH} characters"
        )
    return text


def add_comment(
    db: Session,
    blog_id: int,
    user_id: int | None,
    content: str | None,
    parent_id: int | None = None,
) -> models.Comment:
    """
    Create a comment (or reply) and bump the blog's comment_count.

    The insert and the counter increment commit together.
    A ``parent_id`` of 0 is treated like None and creates a top-level comment.

    Raises:
        Unauthorized: if ``user_id`` is None.
        ValidationError: on empty content, or a parent that is missing or on another blog.
        BlogNotFound: if the blog does not exist.
    """
    if user_id is None:
        raise Unauthorized("Authentication required")
    text = normalize_content(content)
    parent_id = parent_id or None

    def _insert(session: Session) -> int:
        blog = lock_blog(session, blog_id)

        root_id = None
        if parent_id is not None:
            parent = session.get(models.Comment, parent_id)
            if parent is None or parent.blog_id != blog_id:
                raise ValidationError("Invalid parent comment")
            root_id = parent.root_id or parent.id

        comment = models.Comment(
            blog_id=blog_id,
            user_id=user_id,
            parent_id=parent_id,
            root_id=root_id,
            content=text,
        )
        session.add(comment)
        session.flush()
        adjust_counter(session, blog, "comment_count", 1)
        return comment.id

    comment_id = run_atomic(db, _insert, label=f"add comment blog={blog_id} user={user_id}")
    invalidate_blog_stats(blog_id)
    logger.info(f"Comment {comment_id} added to blog {blog_id} by user {user_id}")

    # Reload with the author relationship so the author summary is available
    return db.execute(
        select(models.Comment)
        .options(joinedload(models.Comment.user))
        .where(models.Comment.id == comment_id)
    ).scalar_one()


def list_comments(db: Session, blog_id: int, params: PageParams | None = None) -> CommentThreadPage:
    """
    List one page of top-level comments with their threads.

    Raises:
        BlogNotFound: if the blog does not exist.
    """
    params = params or PageParams()

    if db.get(models.BlogPost, blog_id) is None:
        raise BlogNotFound(f"Blog {blog_id} not found")

    top_level_filter = (
        models.Comment.blog_id == blog_id,
        models.Comment.parent_id.is_(None),
    )

    total = db.execute(
        select(func.count(models.Comment.id)).where(*top_level_filter)
    ).scalar_one()

    top_level = db.execute(
        select(models.Comment)
        .options(joinedload(models.Comment.user))
        .where(*top_level_filter)
        .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    ).scalars().all()

    threads = {c.id: CommentThread(comment=c) for c in top_level}

    if threads:
        replies = db.execute(
            select(models.Comment)
            .options(joinedload(models.Comment.user))
            .where(
                models.Comment.blog_id == blog_id,
                models.Comment.root_id.in_(list(threads)),
            )
            .order_by(models.Comment.created_at.asc(), models.Comment.id.asc())
        ).scalars().all()
        for reply in replies:
            threads[reply.root_id].replies.append(reply)

    return CommentThreadPage(
        items=[threads[c.id] for c in top_level],
        page=params.page,
        limit=params.limit,
        total=total,
    )
