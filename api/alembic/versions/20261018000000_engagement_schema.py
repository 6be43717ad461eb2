"""engagement schema: users, blogs, likes, bookmarks, views, comments

Revision ID: 20261018000000
Revises:
Create Date: 2026-10-18 00:00:00.000000

Blog counters (view/like/comment/bookmark) are cached aggregates of the
relation tables created here and are constrained to be non-negative.
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261018000000"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_key", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_user_key", "users", ["user_key"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ========================================================================
    # BLOGS - counters are cached aggregates, never negative
    # ========================================================================

    op.create_table(
        "blogs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bookmark_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("view_count >= 0", name="ck_blogs_view_count_nonneg"),
        sa.CheckConstraint("like_count >= 0", name="ck_blogs_like_count_nonneg"),
        sa.CheckConstraint("comment_count >= 0", name="ck_blogs_comment_count_nonneg"),
        sa.CheckConstraint("bookmark_count >= 0", name="ck_blogs_bookmark_count_nonneg"),
    )
    op.create_index("ix_blogs_id", "blogs", ["id"])
    op.create_index("ix_blogs_author_id", "blogs", ["author_id"])
    op.create_index("ix_blogs_published", "blogs", ["published"])
    op.create_index("ix_blogs_created_at", "blogs", ["created_at"])

    # ========================================================================
    # LIKES / BOOKMARKS - at most one row per (user, blog)
    # ========================================================================

    for table in ("likes", "bookmarks"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("blog_id", sa.Integer(), sa.ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("user_id", "blog_id", name=f"uq_{table}_user_blog"),
        )
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_blog_id", table, ["blog_id"])
    op.create_index("ix_bookmarks_created_at", "bookmarks", ["created_at"])

    # ========================================================================
    # VIEWS - append-only, consulted by the dedup window
    # ========================================================================

    op.create_table(
        "views",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("blog_id", sa.Integer(), sa.ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("ip_address", sa.String(255), nullable=False),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_views_blog_id", "views", ["blog_id"])
    op.create_index("ix_views_user_id", "views", ["user_id"])
    op.create_index("ix_views_blog_created", "views", ["blog_id", "created_at"])
    op.create_index("ix_views_blog_ip_created", "views", ["blog_id", "ip_address", "created_at"])

    # ========================================================================
    # COMMENTS
    # ========================================================================

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("blog_id", sa.Integer(), sa.ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("comments.id"), nullable=True),
        sa.Column("root_id", sa.Integer(), sa.ForeignKey("comments.id"), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_comments_id", "comments", ["id"])
    op.create_index("ix_comments_blog_id", "comments", ["blog_id"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])
    op.create_index("ix_comments_root_id", "comments", ["root_id"])
    op.create_index("ix_comments_blog_parent_created", "comments", ["blog_id", "parent_id", "created_at"])


def downgrade() -> None:
    op.drop_table("comments")
    op.drop_table("views")
    op.drop_table("bookmarks")
    op.drop_table("likes")
    op.drop_table("blogs")
    op.drop_table("users")
