"""Test comment creation, threading and listing."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inkwell import models, settings
from inkwell.db import SessionLocal
from inkwell.errors import NotFound, Unauthorized, ValidationError
from inkwell.pagination import PageParams
from inkwell.services.comments import add_comment, list_comments


def comment_rows(db: Session, blog_id: int) -> int:
    db.expire_all()
    return db.execute(
        select(func.count(models.Comment.id)).where(models.Comment.blog_id == blog_id)
    ).scalar_one()


def test_add_comment_increments_counter(db: Session, blog, reader, reload_blog):
    comment = add_comment(db, blog.id, reader.id, "Great post!")

    assert comment.id is not None
    assert comment.content == "Great post!"
    assert comment.parent_id is None
    assert comment.user.username == "reader"
    assert reload_blog(blog.id).comment_count == 1


def test_content_is_trimmed(db: Session, blog, reader):
    comment = add_comment(db, blog.id, reader.id, "   spaced out \n")
    assert comment.content == "spaced out"


@pytest.mark.parametrize("content", ["", "   ", "\n\t", None])
def test_empty_content_is_rejected(db: Session, blog, reader, reload_blog, content):
    with pytest.raises(ValidationError):
        add_comment(db, blog.id, reader.id, content)

    assert comment_rows(db, blog.id) == 0
    assert reload_blog(blog.id).comment_count == 0


def test_overlong_content_is_rejected(db: Session, blog, reader):
    with pytest.raises(ValidationError):
        add_comment(db, blog.id, reader.id, "x" * (settings.COMMENT_MAX_LENGTH + 1))


def test_comment_requires_identity(db: Session, blog):
    with pytest.raises(Unauthorized):
        add_comment(db, blog.id, None, "Hello")


def test_comment_on_missing_blog(db: Session, blog, reader):
    with pytest.raises(NotFound):
        add_comment(db, blog.id + 999, reader.id, "Hello")


def test_reply_to_missing_parent_is_rejected(db: Session, blog, reader, reload_blog):
    with pytest.raises(ValidationError, match="Invalid parent comment"):
        add_comment(db, blog.id, reader.id, "Reply", parent_id=424242)

    assert comment_rows(db, blog.id) == 0
    assert reload_blog(blog.id).comment_count == 0


def test_reply_to_comment_on_other_blog_is_rejected(db: Session, make_blog, author, reader, reload_blog):
    first, second = make_blog(author, "One"), make_blog(author, "Two")
    parent = add_comment(db, first.id, reader.id, "On the first blog")

    with pytest.raises(ValidationError, match="Invalid parent comment"):
        add_comment(db, second.id, reader.id, "Wrong blog", parent_id=parent.id)

    assert reload_blog(second.id).comment_count == 0


def test_replies_are_listed_under_their_parent(db: Session, blog, reader, author):
    top = add_comment(db, blog.id, reader.id, "Top level")
    first = add_comment(db, blog.id, author.id, "First reply", parent_id=top.id)
    second = add_comment(db, blog.id, reader.id, "Second reply", parent_id=top.id)

    page = list_comments(db, blog.id)

    assert page.total == 1
    assert len(page.items) == 1
    thread = page.items[0]
    assert thread.comment.id == top.id
    assert [r.id for r in thread.replies] == [first.id, second.id]
    assert all(r.parent_id == top.id for r in thread.replies)


def test_reply_to_reply_is_flattened_under_top_level(db: Session, blog, reader, author, reload_blog):
    top = add_comment(db, blog.id, reader.id, "Top level")
    reply = add_comment(db, blog.id, author.id, "Reply", parent_id=top.id)
    nested = add_comment(db, blog.id, reader.id, "Reply to reply", parent_id=reply.id)

    assert nested.parent_id == reply.id
    assert nested.root_id == top.id

    page = list_comments(db, blog.id)
    assert [r.id for r in page.items[0].replies] == [reply.id, nested.id]
    # Replies count toward the blog's comment_count
    assert reload_blog(blog.id).comment_count == 3
    assert comment_rows(db, blog.id) == 3


def test_top_level_comments_are_newest_first(db: Session, blog, reader):
    ids = [add_comment(db, blog.id, reader.id, f"Comment {i}").id for i in range(3)]

    page = list_comments(db, blog.id)

    assert [t.comment.id for t in page.items] == list(reversed(ids))


def test_comments_are_paginated(db: Session, blog, reader):
    ids = [add_comment(db, blog.id, reader.id, f"Comment {i}").id for i in range(5)]
    newest_first = list(reversed(ids))

    first = list_comments(db, blog.id, PageParams(page=1, limit=2))
    third = list_comments(db, blog.id, PageParams(page=3, limit=2))
    beyond = list_comments(db, blog.id, PageParams(page=4, limit=2))

    assert first.total == 5
    assert first.pages == 3
    assert [t.comment.id for t in first.items] == newest_first[:2]
    assert [t.comment.id for t in third.items] == newest_first[4:]
    assert beyond.items == []


def test_page_size_is_capped():
    params = PageParams.clamp(1, settings.COMMENTS_MAX_PAGE_SIZE + 100)
    assert params.limit == settings.COMMENTS_MAX_PAGE_SIZE


def test_list_comments_for_missing_blog(db: Session, blog):
    with pytest.raises(NotFound):
        list_comments(db, blog.id + 999)


def test_list_comments_empty_blog(db: Session, blog):
    page = list_comments(db, blog.id)
    assert page.items == []
    assert page.total == 0


def test_concurrent_comments_keep_count_in_step(db: Session, blog, reader, make_user, reload_blog):
    users = [reader] + [make_user() for _ in range(5)]

    def _comment(user) -> int:
        session = SessionLocal()
        try:
            return add_comment(session, blog.id, user.id, f"From {user.username}").id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(users)) as pool:
        ids = list(pool.map(_comment, users))

    assert len(set(ids)) == len(users)
    assert comment_rows(db, blog.id) == len(users)
    assert reload_blog(blog.id).comment_count == len(users)


def test_concurrent_double_comment_from_one_user(db: Session, blog, reader, reload_blog):
    def _comment(_: int) -> int:
        session = SessionLocal()
        try:
            return add_comment(session, blog.id, reader.id, "Same thought twice").id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        ids = list(pool.map(_comment, range(2)))

    assert ids[0] != ids[1]
    assert comment_rows(db, blog.id) == 2
    assert reload_blog(blog.id).comment_count == 2


def test_zero_parent_creates_top_level_comment(db: Session, blog, reader):
    comment = add_comment(db, blog.id, reader.id, "Top level after all", parent_id=0)

    assert comment.parent_id is None
    assert comment.root_id is None
    page = list_comments(db, blog.id)
    assert [t.comment.id for t in page.items] == [comment.id]
