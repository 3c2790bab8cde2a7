"""
tests/test_data_access.py
"""
from __future__ import annotations

import pytest

from darugi.blog import (
    SlugConflict,
    ValidationError,
    delete_post,
    get_post_by_id,
    get_post_by_slug,
    increment_likes,
    increment_shares,
    increment_views,
    insert_comment,
    insert_post,
    list_comments_for_post,
    list_posts,
    update_post,
)


def _post(db, slug: str, **kw) -> int:
    return insert_post(
        kw.get("title", slug.title()),
        slug,
        kw.get("excerpt", ""),
        kw.get("content", f"# {slug}\n\nbody"),
        db=db,
    )


# ───────────────────────── posts ──────────────────────────────────────
def test_list_posts_newest_first(db):
    for slug in ("first", "second", "third"):
        _post(db, slug)
    assert [p["slug"] for p in list_posts(db=db)] == ["third", "second", "first"]

    _post(db, "fourth")
    assert list_posts(db=db)[0]["slug"] == "fourth"


def test_insert_sets_defaults(db):
    pid = _post(db, "defaults")
    row = get_post_by_id(pid, db=db)
    assert (row["views"], row["likes"], row["shares"]) == (0, 0, 0)
    assert row["created_at"] > 0
    assert row["updated_at"] is None
    assert row["excerpt"] is None        # blank excerpt stored as NULL


def test_duplicate_slug_rejected_and_original_untouched(db):
    _post(db, "taken", title="Original")
    with pytest.raises(SlugConflict):
        _post(db, "taken", title="Impostor")

    assert len(list_posts(db=db)) == 1
    assert get_post_by_slug("taken", db=db)["title"] == "Original"


def test_update_overwrites_and_stamps(db):
    pid = _post(db, "old-slug")
    created = get_post_by_id(pid, db=db)["created_at"]

    assert update_post(pid, "New", "new-slug", "short", "new body", db=db)

    row = get_post_by_id(pid, db=db)
    assert (row["title"], row["slug"], row["excerpt"], row["content"]) == (
        "New", "new-slug", "short", "new body",
    )
    assert row["created_at"] == created
    assert row["updated_at"] > created
    assert get_post_by_slug("old-slug", db=db) is None


def test_update_into_existing_slug_conflicts(db):
    _post(db, "a")
    pid = _post(db, "b")
    with pytest.raises(SlugConflict):
        update_post(pid, "B", "a", "", "body", db=db)
    assert get_post_by_id(pid, db=db)["slug"] == "b"


def test_update_unknown_id_is_noop(db):
    assert update_post(9999, "t", "ghost", "", "body", db=db) is False


@pytest.mark.parametrize(
    "title,slug,content",
    [
        ("", "s", "body"),
        ("t", "", "body"),
        ("t", "s", "   "),
        ("t", "has space", "body"),
        ("t", "a/b", "body"),
    ],
)
def test_insert_post_validation(db, title, slug, content):
    with pytest.raises(ValidationError):
        insert_post(title, slug, "", content, db=db)
    assert list_posts(db=db) == []


def test_delete_keeps_comments(db):
    pid = _post(db, "doomed")
    insert_comment(pid, "kim", "hello", db=db)

    assert delete_post(pid, db=db) is True
    assert get_post_by_id(pid, db=db) is None
    # orphaned rows stay behind
    assert len(list_comments_for_post(pid, db=db)) == 1
    assert delete_post(pid, db=db) is False


# ───────────────────────── counters ───────────────────────────────────
def test_counters_increase_by_exactly_n(db):
    a = _post(db, "a")
    b = _post(db, "b")

    for _ in range(5):
        increment_likes(a, db=db)
        increment_likes(b, db=db)
        increment_shares(a, db=db)
    increment_views(b, db=db)

    ra, rb = get_post_by_id(a, db=db), get_post_by_id(b, db=db)
    assert (ra["likes"], ra["shares"], ra["views"]) == (5, 5, 0)
    assert (rb["likes"], rb["shares"], rb["views"]) == (5, 0, 1)


def test_increment_returns_new_value(db):
    pid = _post(db, "counter")
    assert increment_likes(pid, db=db) == 1
    assert increment_likes(pid, db=db) == 2
    assert increment_shares(pid, db=db) == 1
    assert increment_views(pid, db=db) == 1


def test_increment_unknown_post(db):
    assert increment_likes(12345, db=db) is None


# ───────────────────────── comments ───────────────────────────────────
def test_comments_newest_first(db):
    pid = _post(db, "chatty")
    for n in range(3):
        insert_comment(pid, f"user{n}", f"comment {n}", db=db)
    assert [c["author"] for c in list_comments_for_post(pid, db=db)] == [
        "user2", "user1", "user0",
    ]


@pytest.mark.parametrize("author,content", [("", "x"), ("x", ""), (None, "x"), ("  ", "x")])
def test_insert_comment_requires_fields(db, author, content):
    pid = _post(db, "quiet")
    with pytest.raises(ValidationError):
        insert_comment(pid, author, content, db=db)
    assert list_comments_for_post(pid, db=db) == []
