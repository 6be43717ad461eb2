from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base
from .utils.clock import utcnow


# Counter columns on BlogPost, keyed by the engagement kind that drives them.
COUNTER_FIELDS = ("view_count", "like_count", "comment_count", "bookmark_count")


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """Account that can author blogs and engage with them."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_key = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )  # UUID carried in access tokens
    username = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)  # Display name
    email = Column(String(255), unique=True, nullable=False, index=True)
    roles = Column(JSON, nullable=False, default=list)  # ["user", "moderator"]

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    # Relationships
    blogs = relationship("BlogPost", back_populates="author")
    comments = relationship("Comment", back_populates="user")


class BlogPost(Base):
    """Blog post with denormalized engagement counters."""

    __tablename__ = "blogs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    published = Column(Boolean, nullable=False, default=False, index=True)

    # Cached aggregates. The relation/event tables are the source of truth and
    # these are only written through services.counters.
    view_count = Column(Integer, nullable=False, default=0, server_default="0")
    like_count = Column(Integer, nullable=False, default=0, server_default="0")
    comment_count = Column(Integer, nullable=False, default=0, server_default="0")
    bookmark_count = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
    published_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    author = relationship("User", back_populates="blogs")
    likes = relationship("Like", back_populates="blog", cascade="all, delete-orphan")
    bookmarks = relationship("Bookmark", back_populates="blog", cascade="all, delete-orphan")
    views = relationship("ViewEvent", back_populates="blog", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="blog", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("view_count >= 0", name="ck_blogs_view_count_nonneg"),
        CheckConstraint("like_count >= 0", name="ck_blogs_like_count_nonneg"),
        CheckConstraint("comment_count >= 0", name="ck_blogs_comment_count_nonneg"),
        CheckConstraint("bookmark_count >= 0", name="ck_blogs_bookmark_count_nonneg"),
    )


# ============================================================================
# INTERACTIONS
# ============================================================================


class Like(Base):
    """A user's like on a blog. Existence of the row is the liked state."""

    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    blog_id = Column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    blog = relationship("BlogPost", back_populates="likes")

    # Each user can like a blog at most once
    __table_args__ = (UniqueConstraint("user_id", "blog_id", name="uq_likes_user_blog"),)


class Bookmark(Base):
    """A user's bookmark on a blog. Same shape as Like, independent lifecycle."""

    __tablename__ = "bookmarks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    blog_id = Column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    blog = relationship("BlogPost", back_populates="bookmarks")

    __table_args__ = (UniqueConstraint("user_id", "blog_id", name="uq_bookmarks_user_blog"),)


class ViewEvent(Base):
    """Append-only log of counted blog views."""

    __tablename__ = "views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    blog_id = Column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )  # None for anonymous viewers
    ip_address = Column(String(255), nullable=False)
    user_agent = Column(String(500), nullable=True)  # Informational only
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    blog = relationship("BlogPost", back_populates="views")

    __table_args__ = (
        Index("ix_views_blog_created", blog_id, created_at),
        Index("ix_views_blog_ip_created", blog_id, ip_address, created_at),
    )


class Comment(Base):
    """Comment on a blog. Replies carry a parent and their top-level ancestor."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    blog_id = Column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("comments.id"), nullable=True, index=True)
    root_id = Column(
        Integer, ForeignKey("comments.id"), nullable=True, index=True
    )  # Top-level ancestor; None for top-level comments
    content = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    # Relationships
    blog = relationship("BlogPost", back_populates="comments")
    user = relationship("User", back_populates="comments")

    __table_args__ = (
        Index("ix_comments_blog_parent_created", blog_id, parent_id, created_at),
    )
