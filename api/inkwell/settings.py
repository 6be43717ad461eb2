"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Trailing window during which a repeat view from the same user or address is not recounted.
VIEW_DEDUP_WINDOW_HOURS: int = _int_env("VIEW_DEDUP_WINDOW_HOURS", 24)

# Bounded retries for store conflicts (unique violations, serialization failures, locks).
STORE_RETRY_ATTEMPTS: int = max(1, _int_env("STORE_RETRY_ATTEMPTS", 3))
STORE_RETRY_BACKOFF_MS: int = _int_env("STORE_RETRY_BACKOFF_MS", 25)

COMMENT_MAX_LENGTH: int = _int_env("COMMENT_MAX_LENGTH", 5000)
COMMENTS_DEFAULT_PAGE_SIZE: int = _int_env("COMMENTS_DEFAULT_PAGE_SIZE", 10)
COMMENTS_MAX_PAGE_SIZE: int = _int_env("COMMENTS_MAX_PAGE_SIZE", 50)

# Seconds an engagement summary stays in redis before it is recomputed.
BLOG_STATS_CACHE_TTL: int = _int_env("BLOG_STATS_CACHE_TTL", 60)

RECONCILE_INTERVAL_SECONDS: int = _int_env("RECONCILE_INTERVAL_SECONDS", 3600)
RECONCILE_BATCH_SIZE: int = _int_env("RECONCILE_BATCH_SIZE", 500)

RUN_MIGRATIONS_ON_STARTUP: bool = _bool_env("RUN_MIGRATIONS_ON_STARTUP", True)
