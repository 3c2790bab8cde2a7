"""tests/test_smoke.py"""

import pytest


@pytest.mark.parametrize(
    "path",
    [
        "/",             # index
        "/policy",       # static privacy page
        "/sitemap.xml",  # SEO
        "/robots.txt",
        "/post/nope",    # unknown slug still renders a page
    ],
)
def test_public_routes_ok(client, path):
    """Each public endpoint should return 200."""
    rv = client.get(path)
    assert rv.status_code == 200


def test_not_found(client):
    """Completely unknown URL → 404 page."""
    rv = client.get("/does/not/exist")
    assert rv.status_code == 404
    assert b"Page not found" in rv.data


def test_security_headers(client):
    rv = client.get("/")
    assert rv.headers["X-Frame-Options"] == "DENY"
    assert rv.headers["X-Content-Type-Options"] == "nosniff"
    assert rv.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert rv.headers["Permissions-Policy"] == "interest-cohort=()"
