from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Generator

# Configure before the app is imported: inkwell.db binds its engine at import time.
_TEST_DB_PATH = Path(tempfile.gettempdir()) / f"inkwell-test-{os.getpid()}.sqlite3"
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", f"sqlite:///{_TEST_DB_PATH}")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-inkwell-at-least-32-chars")
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from inkwell import models
from inkwell.auth import create_access_token
from inkwell.db import Base, engine
from inkwell.main import app

# Fixture data goes through a plain engine so reads made by tests never hold
# the write lock that the app's engine takes at the start of each transaction.
fixture_engine = create_engine(os.environ["DATABASE_URL"], future=True)
FixtureSession = sessionmaker(bind=fixture_engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture(scope="session", autouse=True)
def schema() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    fixture_engine.dispose()
    if _TEST_DB_PATH.exists():
        _TEST_DB_PATH.unlink()


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    yield
    with fixture_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = FixtureSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    counter = {"n": 0}

    def _make(username: str | None = None, roles: list[str] | None = None, name: str | None = None) -> models.User:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = models.User(
            username=username,
            name=name or username.title(),
            email=f"{username}@example.com",
            roles=roles or ["user"],
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def make_blog(db: Session) -> Callable[..., models.BlogPost]:
    def _make(author: models.User, title: str = "Test Blog", **counters: int) -> models.BlogPost:
        blog = models.BlogPost(author_id=author.id, title=title, published=True, **counters)
        db.add(blog)
        db.commit()
        return blog

    return _make


@pytest.fixture()
def author(make_user) -> models.User:
    return make_user("author", name="Ada Author")


@pytest.fixture()
def reader(make_user) -> models.User:
    return make_user("reader", name="Rita Reader")


@pytest.fixture()
def blog(make_blog, author) -> models.BlogPost:
    return make_blog(author)


def auth_headers(user: models.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.user_key)}"}


@pytest.fixture()
def headers_for() -> Callable[[models.User], dict[str, str]]:
    return auth_headers


@pytest.fixture()
def reload_blog(db: Session) -> Callable[[int], models.BlogPost]:
    """Re-read a blog's counters after writes made through other sessions."""

    def _reload(blog_id: int) -> models.BlogPost:
        db.expire_all()
        return db.get(models.BlogPost, blog_id)

    return _reload
