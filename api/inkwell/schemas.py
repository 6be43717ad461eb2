from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Problem(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str
    uptime_s: float


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AuthorSummary(BaseModel):
    """Denormalized author fields shown next to comments and blogs."""

    id: int
    name: str | None = None
    username: str

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# BLOG SCHEMAS
# ============================================================================


class BlogCounters(BaseModel):
    view_count: int
    like_count: int
    comment_count: int
    bookmark_count: int


class Blog(BlogCounters):
    id: int
    title: str
    published: bool
    author: AuthorSummary
    created_at: datetime
    updated_at: datetime | None = None
    published_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BookmarkedBlog(Blog):
    bookmarked: bool = True


class EngagementStatus(BlogCounters):
    """Counters plus the caller's own like/bookmark state."""

    liked: bool
    bookmarked: bool

    model_config = ConfigDict(from_attributes=True)


class BlogAnalytics(BaseModel):
    blog_id: int
    title: str
    published: bool
    views: int
    likes: int
    comments: int
    bookmarks: int
    published_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# ENGAGEMENT SCHEMAS
# ============================================================================


class LikeToggleResponse(BaseModel):
    liked: bool
    like_count: int


class BookmarkToggleResponse(BaseModel):
    bookmarked: bool
    bookmark_count: int


class BookmarkStatus(BaseModel):
    bookmarked: bool


class ViewRecordResponse(BaseModel):
    """Always reports success; duplicates are indistinguishable from new views."""

    recorded: bool = True


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class CommentCreate(BaseModel):
    """Create comment request. Content is trimmed and validated by the service."""

    content: str
    parent_id: int | None = None


class Comment(BaseModel):
    id: int
    blog_id: int
    parent_id: int | None = None
    content: str
    created_at: datetime
    user: AuthorSummary

    model_config = ConfigDict(from_attributes=True)


class CommentWithReplies(Comment):
    replies: list[Comment] = Field(default_factory=list)


class CommentPage(BaseModel):
    items: list[CommentWithReplies]
    pagination: PaginationMeta


# ============================================================================
# DASHBOARD SCHEMAS
# ============================================================================


class EngagementTotals(BaseModel):
    total_blogs: int
    published_blogs: int
    total_views: int
    total_likes: int
    total_comments: int
    total_bookmarks: int

    model_config = ConfigDict(from_attributes=True)


class BlogSummary(BlogCounters):
    id: int
    title: str
    published: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DailyActivity(BaseModel):
    day: date
    views: int
    likes: int
    comments: int

    model_config = ConfigDict(from_attributes=True)


class TopBlog(BaseModel):
    id: int
    title: str
    view_count: int
    like_count: int
    comment_count: int
    engagement_rate: int

    model_config = ConfigDict(from_attributes=True)


class AuthorDashboard(BaseModel):
    overview: EngagementTotals
    recent_blogs: list[BlogSummary]
    activity: list[DailyActivity]
    top_blogs: list[TopBlog]

    model_config = ConfigDict(from_attributes=True)


class PlatformOverview(EngagementTotals):
    total_users: int


class TrendingBlog(Blog):
    trending_score: int


# ============================================================================
# ADMIN SCHEMAS
# ============================================================================


class CounterCorrection(BaseModel):
    counter: str
    stored: int
    actual: int


class ReconcileEntry(BaseModel):
    blog_id: int
    applied: bool
    corrections: list[CounterCorrection]


class ReconcileReport(BaseModel):
    dry_run: bool
    drifted: list[ReconcileEntry]
