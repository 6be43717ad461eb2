"""Engagement error taxonomy.

Services raise these; ``main`` maps the caller-facing ones to Problem
responses. ``ConsistencyError`` is never raised to callers, only logged.
"""

from __future__ import annotations


class EngagementError(Exception):
    """Base class for errors surfaced by the engagement services."""

    status_code = 500
    title = "Engagement error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.title
        super().__init__(self.detail)


class Unauthorized(EngagementError):
    status_code = 401
    title = "Authentication required"


class Forbidden(EngagementError):
    status_code = 403
    title = "Forbidden"


class NotFound(EngagementError):
    status_code = 404
    title = "Not found"


class ValidationError(EngagementError):
    status_code = 400
    title = "Validation error"


class StoreConflict(EngagementError):
    """Store conflicts persisted past the retry budget."""

    status_code = 503
    title = "Temporarily unavailable"


class ConsistencyError(EngagementError):
    """A counter disagreed with its relation table."""

    title = "Counter inconsistency"

    def __init__(self, blog_id: int, counter: str, stored: int, actual: int) -> None:
        self.blog_id = blog_id
        self.counter = counter
        self.stored = stored
        self.actual = actual
        super().__init__(
            f"blog {blog_id} {counter}: stored={stored} actual={actual}"
        )


class BlogNotFound(NotFound):
    title = "Blog not found"
