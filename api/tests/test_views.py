"""Test view deduplication and recording."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inkwell import models
from inkwell.db import SessionLocal
from inkwell.errors import NotFound
from inkwell.services.views import record_view, record_view_in_background
from inkwell.utils.clock import utcnow


def view_rows(db: Session, blog_id: int) -> int:
    db.expire_all()
    return db.execute(
        select(func.count(models.ViewEvent.id)).where(models.ViewEvent.blog_id == blog_id)
    ).scalar_one()


def test_first_view_is_counted(db: Session, blog, reader, reload_blog):
    outcome = record_view(db, blog.id, "10.0.0.1", "pytest-agent", user_id=reader.id)

    assert outcome.recorded is True
    assert outcome.view_count == 1
    assert reload_blog(blog.id).view_count == 1
    assert view_rows(db, blog.id) == 1


def test_same_user_within_window_counts_once(db: Session, blog, reader, reload_blog):
    now = utcnow()
    record_view(db, blog.id, "10.0.0.1", user_id=reader.id, now=now)
    again = record_view(db, blog.id, "10.0.0.1", user_id=reader.id, now=now + timedelta(hours=23))

    assert again.recorded is False
    assert reload_blog(blog.id).view_count == 1
    assert view_rows(db, blog.id) == 1


def test_same_user_after_window_counts_again(db: Session, blog, reader, reload_blog):
    now = utcnow()
    record_view(db, blog.id, "10.0.0.1", user_id=reader.id, now=now)
    later = record_view(db, blog.id, "10.0.0.1", user_id=reader.id, now=now + timedelta(hours=24, minutes=1))

    assert later.recorded is True
    assert reload_blog(blog.id).view_count == 2


def test_user_switching_networks_is_still_deduplicated(db: Session, blog, reader, reload_blog):
    record_view(db, blog.id, "10.0.0.1", user_id=reader.id)
    outcome = record_view(db, blog.id, "192.168.1.7", user_id=reader.id)

    assert outcome.recorded is False
    assert reload_blog(blog.id).view_count == 1


def test_anonymous_viewers_are_keyed_by_address(db: Session, blog, reload_blog):
    record_view(db, blog.id, "10.0.0.1")
    duplicate = record_view(db, blog.id, "10.0.0.1")
    other_address = record_view(db, blog.id, "10.0.0.2")

    assert duplicate.recorded is False
    assert other_address.recorded is True
    assert reload_blog(blog.id).view_count == 2


def test_signed_in_user_matches_prior_anonymous_view_from_same_address(db: Session, blog, reader, reload_blog):
    record_view(db, blog.id, "10.0.0.1")
    outcome = record_view(db, blog.id, "10.0.0.1", user_id=reader.id)

    assert outcome.recorded is False
    assert reload_blog(blog.id).view_count == 1


def test_views_are_deduplicated_per_blog(db: Session, make_blog, author, reader, reload_blog):
    first, second = make_blog(author, "One"), make_blog(author, "Two")

    record_view(db, first.id, "10.0.0.1", user_id=reader.id)
    outcome = record_view(db, second.id, "10.0.0.1", user_id=reader.id)

    assert outcome.recorded is True
    assert reload_blog(first.id).view_count == 1
    assert reload_blog(second.id).view_count == 1


def test_missing_address_falls_back_to_unknown(db: Session, blog):
    record_view(db, blog.id, None)

    db.expire_all()
    event = db.execute(select(models.ViewEvent)).scalar_one()
    assert event.ip_address == "unknown"
    assert event.user_agent == "unknown"


def test_view_of_missing_blog_raises_not_found(db: Session, blog):
    with pytest.raises(NotFound):
        record_view(db, blog.id + 999, "10.0.0.1")
    assert view_rows(db, blog.id + 999) == 0


def test_background_recording_swallows_failures(blog, caplog):
    with patch("inkwell.services.views.record_view", side_effect=RuntimeError("store down")):
        record_view_in_background(blog.id, "10.0.0.1")

    assert "Failed to record view" in caplog.text


def test_background_recording_ignores_missing_blog(blog):
    # Must not raise
    record_view_in_background(blog.id + 999, "10.0.0.1")


def test_concurrent_identical_views_count_once(db: Session, blog, reload_blog):
    def _view(_: int) -> bool:
        session = SessionLocal()
        try:
            return record_view(session, blog.id, "10.0.0.9").recorded
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(_view, range(4)))

    assert results.count(True) == 1
    assert reload_blog(blog.id).view_count == 1
    assert view_rows(db, blog.id) == 1
