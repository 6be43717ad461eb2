from __future__ import annotations

import math
from dataclasses import dataclass

from . import settings


@dataclass(frozen=True)
class PageParams:
    """Page-number pagination window (1-based page)."""

    page: int = 1
    limit: int = settings.COMMENTS_DEFAULT_PAGE_SIZE

    @classmethod
    def clamp(cls, page: int | None, limit: int | None, max_limit: int | None = None) -> "PageParams":
        """
        Build params from raw query values, falling back to defaults.

        Pages below 1 become 1; limits are bounded to [1, max_limit].
        """
        max_limit = max_limit or settings.COMMENTS_MAX_PAGE_SIZE
        page = page if page and page > 0 else 1
        limit = limit if limit and limit > 0 else settings.COMMENTS_DEFAULT_PAGE_SIZE
        return cls(page=page, limit=min(limit, max_limit))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_count(total: int, limit: int) -> int:
    """Number of pages needed to show ``total`` items ``limit`` at a time."""
    if limit <= 0:
        return 0
    return math.ceil(total / limit)
