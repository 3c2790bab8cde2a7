"""
tests/test_seo.py
"""
from __future__ import annotations

import xml.etree.ElementTree as ET

from darugi.blog import build_robots, build_sitemap, insert_post, update_post

NS = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}


def _locs(xml: bytes | str) -> list[str]:
    root = ET.fromstring(xml)
    return [u.findtext("sm:loc", namespaces=NS) for u in root.findall("sm:url", NS)]


def test_sitemap_two_posts(client, db):
    insert_post("A", "a", "", "x", db=db)
    insert_post("B", "b", "", "x", db=db)

    rv = client.get("/sitemap.xml")
    assert rv.status_code == 200
    assert rv.mimetype == "application/xml"

    locs = _locs(rv.data)
    assert len(locs) == 4
    assert locs[:2] == ["https://blog.test/", "https://blog.test/policy"]
    assert set(locs[2:]) == {"https://blog.test/post/a", "https://blog.test/post/b"}


def test_sitemap_empty_has_static_pages(client):
    assert _locs(client.get("/sitemap.xml").data) == [
        "https://blog.test/",
        "https://blog.test/policy",
    ]


def test_sitemap_lastmod_prefers_updated(db):
    pid = insert_post("A", "a", "", "x", db=db)
    update_post(pid, "A", "a", "", "y", db=db)
    post = db.execute("SELECT * FROM posts WHERE id = ?", (pid,)).fetchone()

    root = ET.fromstring(build_sitemap([post], base_url="https://x.test/"))
    url = root.findall("sm:url", NS)[-1]
    assert url.findtext("sm:loc", namespaces=NS) == "https://x.test/post/a"
    assert url.findtext("sm:changefreq", namespaces=NS) == "weekly"
    assert url.findtext("sm:priority", namespaces=NS) == "0.8"
    lastmod = url.findtext("sm:lastmod", namespaces=NS)
    assert lastmod.startswith("2099-01-01T") and lastmod.endswith("Z")


def test_sitemap_quotes_unicode_slug(db):
    insert_post("한글", "한글-제목", "", "x", db=db)
    post = db.execute("SELECT * FROM posts").fetchone()
    xml = build_sitemap([post], base_url="https://x.test")
    assert "https://x.test/post/%ED%95%9C%EA%B8%80-%EC%A0%9C%EB%AA%A9" in xml


def test_robots(client):
    rv = client.get("/robots.txt")
    assert rv.mimetype == "text/plain"
    assert rv.get_data(as_text=True) == build_robots(base_url="https://blog.test")
    assert build_robots(base_url="https://x.test/") == (
        "User-agent: *\nAllow: /\nSitemap: https://x.test/sitemap.xml\n"
    )
