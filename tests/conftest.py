"""
tests/conftest.py
"""
from __future__ import annotations

import base64
import datetime as _dt
import itertools
from pathlib import Path
from typing import Generator

import pytest
from flask.testing import FlaskClient
from pytest import MonkeyPatch

# The single-file app lives here:
from darugi.blog import app, get_db, init_db

ADMIN = ("editor", "s3cret")


@pytest.fixture(scope="session")
def _tmp_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """One temp file for the whole test session (faster than per-test)."""
    return tmp_path_factory.mktemp("data") / "test.sqlite3"


@pytest.fixture(scope="session", autouse=True)
def _configure_app(_tmp_db_path: Path) -> None:
    """
    Configure the Flask app *once* before the first test is collected.
    """
    app.config.update(
        TESTING=True,
        DATABASE=str(_tmp_db_path),
        SITE_URL="https://blog.test",
        TIMEZONE="Asia/Seoul",
        ADMIN_USER=ADMIN[0],
        ADMIN_PASSWORD=ADMIN[1],
        DEPLOY_ENV="development",
    )
    with app.app_context():
        init_db()


@pytest.fixture(autouse=True)
def _empty_tables() -> None:
    """Every test starts with no posts and no comments."""
    with app.app_context():
        db = get_db()
        db.execute("DELETE FROM comments")
        db.execute("DELETE FROM posts")
        db.commit()


@pytest.fixture
def client() -> Generator[FlaskClient, None, None]:
    """
    Gives each test an isolated application context *and* test client.
    """
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture
def db(client):
    """The connection the app itself uses inside the `client` context."""
    return get_db()


def basic_auth(user: str, password: str) -> dict[str, str]:
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return basic_auth(*ADMIN)


@pytest.fixture
def auth():
    """Builds a Basic header for arbitrary credentials."""
    return basic_auth


@pytest.fixture(autouse=True, scope="session")
def _ticking_clock():
    """
    Patch darugi.blog.utc_now for the whole session so every call returns
    a later second than the previous one. Ordering tests need no sleep().
    """
    from darugi import blog

    counter = itertools.count()

    base = _dt.datetime(2099, 1, 1, tzinfo=_dt.timezone.utc)

    def _fake_now():
        return base + _dt.timedelta(seconds=next(counter))

    mp = MonkeyPatch()
    mp.setattr(blog, "utc_now", _fake_now)

    yield

    mp.undo()
