"""Test like and bookmark toggles."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inkwell import models
from inkwell.db import SessionLocal
from inkwell.errors import NotFound, Unauthorized
from inkwell.services.toggles import toggle_bookmark, toggle_like


def count_rows(db: Session, model, **filters) -> int:
    db.expire_all()
    query = select(func.count(model.id))
    for name, value in filters.items():
        query = query.where(getattr(model, name) == value)
    return db.execute(query).scalar_one()


def test_first_toggle_likes(db: Session, blog, reader, reload_blog):
    result = toggle_like(db, reader.id, blog.id)

    assert result.active is True
    assert result.count == 1
    assert count_rows(db, models.Like, blog_id=blog.id, user_id=reader.id) == 1
    assert reload_blog(blog.id).like_count == 1


def test_second_toggle_unlikes(db: Session, blog, reader, reload_blog):
    toggle_like(db, reader.id, blog.id)
    result = toggle_like(db, reader.id, blog.id)

    assert result.active is False
    assert result.count == 0
    assert count_rows(db, models.Like, blog_id=blog.id) == 0
    assert reload_blog(blog.id).like_count == 0


@pytest.mark.parametrize("toggles", [1, 2, 3, 6, 7])
def test_like_state_follows_parity(db: Session, blog, reader, reload_blog, toggles):
    """After N toggles the relation exists iff N is odd and the counter matches."""
    for _ in range(toggles):
        toggle_like(db, reader.id, blog.id)

    rows = count_rows(db, models.Like, blog_id=blog.id, user_id=reader.id)
    assert rows == toggles % 2
    assert reload_blog(blog.id).like_count == count_rows(db, models.Like, blog_id=blog.id)


def test_likes_from_different_users_accumulate(db: Session, blog, make_user, reload_blog):
    users = [make_user() for _ in range(4)]
    for user in users:
        toggle_like(db, user.id, blog.id)
    toggle_like(db, users[0].id, blog.id)

    assert reload_blog(blog.id).like_count == 3
    assert count_rows(db, models.Like, blog_id=blog.id) == 3


def test_toggle_requires_identity(db: Session, blog, reload_blog):
    with pytest.raises(Unauthorized):
        toggle_like(db, None, blog.id)
    with pytest.raises(Unauthorized):
        toggle_bookmark(db, None, blog.id)

    assert reload_blog(blog.id).like_count == 0


def test_toggle_missing_blog_changes_nothing(db: Session, blog, reader, reload_blog):
    with pytest.raises(NotFound):
        toggle_like(db, reader.id, blog.id + 999)

    assert count_rows(db, models.Like) == 0
    assert reload_blog(blog.id).like_count == 0


def test_bookmark_round_trip_restores_state(db: Session, blog, reader, make_user, reload_blog):
    other = make_user()
    toggle_bookmark(db, other.id, blog.id)
    before = reload_blog(blog.id).bookmark_count

    on = toggle_bookmark(db, reader.id, blog.id)
    off = toggle_bookmark(db, reader.id, blog.id)

    assert on.active is True and on.count == before + 1
    assert off.active is False and off.count == before
    assert count_rows(db, models.Bookmark, user_id=reader.id) == 0
    assert reload_blog(blog.id).bookmark_count == before


def test_like_and_bookmark_are_independent(db: Session, blog, reader, reload_blog):
    toggle_like(db, reader.id, blog.id)
    toggle_bookmark(db, reader.id, blog.id)
    toggle_like(db, reader.id, blog.id)

    current = reload_blog(blog.id)
    assert current.like_count == 0
    assert current.bookmark_count == 1


def _toggle_in_own_session(user_id: int, blog_id: int) -> bool:
    session = SessionLocal()
    try:
        return toggle_like(session, user_id, blog_id).active
    finally:
        session.close()


@pytest.mark.parametrize("concurrent_requests", [2, 5])
def test_concurrent_toggles_same_pair_stay_consistent(db: Session, blog, reader, reload_blog, concurrent_requests):
    with ThreadPoolExecutor(max_workers=concurrent_requests) as pool:
        results = list(pool.map(lambda _: _toggle_in_own_session(reader.id, blog.id), range(concurrent_requests)))

    rows = count_rows(db, models.Like, blog_id=blog.id, user_id=reader.id)
    assert rows == concurrent_requests % 2
    assert reload_blog(blog.id).like_count == rows
    # Each toggle observed a distinct state: ons and offs alternate
    assert results.count(True) - results.count(False) == rows


def test_concurrent_likes_from_many_users(db: Session, blog, make_user, reload_blog):
    users = [make_user() for _ in range(6)]

    with ThreadPoolExecutor(max_workers=len(users)) as pool:
        list(pool.map(lambda u: _toggle_in_own_session(u.id, blog.id), users))

    assert count_rows(db, models.Like, blog_id=blog.id) == len(users)
    assert reload_blog(blog.id).like_count == len(users)


@pytest.mark.parametrize("concurrent_requests", [4, 5])
def test_concurrent_bookmark_toggles_stay_consistent(db: Session, blog, reader, reload_blog, concurrent_requests):
    def _toggle(_: int) -> bool:
        session = SessionLocal()
        try:
            return toggle_bookmark(session, reader.id, blog.id).active
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=concurrent_requests) as pool:
        list(pool.map(_toggle, range(concurrent_requests)))

    rows = count_rows(db, models.Bookmark, blog_id=blog.id, user_id=reader.id)
    assert rows == concurrent_requests % 2
    assert reload_blog(blog.id).bookmark_count == count_rows(db, models.Bookmark, blog_id=blog.id)
