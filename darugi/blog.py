#!/usr/bin/env python3
"""
A single-file server-rendered blog: markdown posts, comments,
like/share/view counters and a basic-auth admin.
"""

import os
import re
import secrets
import sqlite3
from datetime import datetime, timezone
from functools import lru_cache
from html import escape
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from urllib.parse import quote
from zoneinfo import ZoneInfo, available_timezones

import click
import markdown
from flask import (
    Flask,
    Response,
    g,
    redirect,
    render_template_string,
    request,
    url_for,
)
from markupsafe import Markup
from werkzeug.middleware.proxy_fix import ProxyFix

################################################################################
# Imports & constants
################################################################################

ROOT = Path(__file__).parent
DB_FILE = ROOT / "blog.sqlite3"
ENV_FILE = ROOT / ".env"

SITE_NAME_DFLT = "스토리 다루기"
SITE_BRAND_DFLT = "Story Darugi"
SITE_URL_DFLT = "https://story-darugi.com"
SITE_DESCRIPTION_DFLT = "일상의 모든 순간을 기록하고 공유하는 공간, 스토리 다루기입니다."
SITE_IMAGE_DFLT = (
    "https://images.unsplash.com/photo-1499750310159-5b5f2269a2d3"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=1200&h=630&q=80"
)
TZ_DFLT = "Asia/Seoul"

# development-only fallback, refused when DARUGI_ENV=production
ADMIN_USER_DFLT = "admin"
ADMIN_PASSWORD_DFLT = "password"
ADMIN_REALM = "darugi admin"

EXCERPT_LEN = 150
SLUG_RE = re.compile(r"^[^\s/?#]+$")
COUNTERS = ("views", "likes", "shares")

MSG_COMMENT_REQUIRED = "Name and Content are required"
MSG_POST_MISSING = "Post not found"
MSG_POST_REQUIRED = "오류: 제목, 슬러그, 본문은 필수입니다."
MSG_SLUG_INVALID = "오류: 슬러그에는 공백, '/', '?', '#'를 쓸 수 없습니다."
MSG_SLUG_TAKEN = "오류: 이미 존재하는 URL 슬러그입니다. 다른 슬러그를 사용해주세요."
MSG_BAD_ID = "오류: 잘못된 글 번호입니다."

try:
    __version__ = version("darugi")
except PackageNotFoundError:
    __version__ = "0.1.0-dev"


def _read_env_file() -> dict[str, str]:
    env = {}
    if not ENV_FILE.exists():
        return env
    for ln in ENV_FILE.read_text().splitlines():
        ln = ln.strip()
        if not ln or ln.startswith("#") or "=" not in ln:
            continue
        k, v = ln.split("=", 1)
        env[k.strip()] = v.strip()
    return env


_ENV_FILE_VALUES = _read_env_file()


def env_setting(key: str, default: str | None = None) -> str | None:
    """Process env first, then .env beside the module, then *default*."""
    return os.environ.get(key) or _ENV_FILE_VALUES.get(key) or default


class ValidationError(ValueError):
    """Bad client input. The message is shown to the user as-is."""


class SlugConflict(ValidationError):
    pass


################################################################################
# App + template filters
################################################################################
app = Flask(__name__)
app.url_map.strict_slashes = False
app.config.update(
    DATABASE=env_setting("DARUGI_DATABASE", str(DB_FILE)),
    SITE_NAME=env_setting("SITE_NAME", SITE_NAME_DFLT),
    SITE_BRAND=env_setting("SITE_BRAND", SITE_BRAND_DFLT),
    SITE_URL=env_setting("SITE_URL", SITE_URL_DFLT),
    SITE_DESCRIPTION=env_setting("SITE_DESCRIPTION", SITE_DESCRIPTION_DFLT),
    SITE_IMAGE=env_setting("SITE_IMAGE", SITE_IMAGE_DFLT),
    TIMEZONE=env_setting("TIMEZONE", TZ_DFLT),
    ADMIN_USER=env_setting("ADMIN_USER"),
    ADMIN_PASSWORD=env_setting("ADMIN_PASSWORD"),
    DEPLOY_ENV=env_setting("DARUGI_ENV", "development"),
)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

MD_EXTENSIONS = [
    "pymdownx.extra",
    "pymdownx.magiclink",
    "pymdownx.tilde",
    "pymdownx.superfences",
    "pymdownx.highlight",
    "pymdownx.betterem",
    "pymdownx.saneheaders",
]
MD_EXTENSION_CONFIGS = {
    "pymdownx.highlight": {
        "guess_lang": False,
        "noclasses": True,
        "pygments_style": "friendly",
    },
}


class MarkdownRenderer:
    """
    Markdown → HTML for post bodies.

    Anything with a ``render(text) -> str`` method can replace the instance
    stored in ``app.extensions["markdown"]``.
    """

    def __init__(self, extensions=None, extension_configs=None):
        self.extensions = list(MD_EXTENSIONS if extensions is None else extensions)
        self.extension_configs = dict(
            MD_EXTENSION_CONFIGS if extension_configs is None else extension_configs
        )

    def render(self, text: str | None) -> str:
        if not text:
            return ""
        # a fresh Markdown instance per call; they are not safe to share
        return markdown.markdown(
            text,
            extensions=self.extensions,
            extension_configs=self.extension_configs,
        )


app.extensions["markdown"] = MarkdownRenderer()


def render_markdown(text: str | None) -> str:
    return app.extensions["markdown"].render(text)


@app.template_filter("md")
def md_filter(text: str | None) -> Markup:
    return Markup(render_markdown(text))


@lru_cache(maxsize=1)
def _known_timezones() -> frozenset[str]:
    return frozenset(available_timezones())


def tz_name() -> str:
    tz = app.config.get("TIMEZONE") or TZ_DFLT
    return tz if tz in _known_timezones() else TZ_DFLT


def _local(ts: int | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), ZoneInfo(tz_name()))


@app.template_filter("ymd")
def format_date(ts: int | None) -> str:
    """Epoch seconds → ``2024.01.31.`` in the site timezone."""
    dt = _local(ts)
    return dt.strftime("%Y.%m.%d.") if dt else ""


@app.template_filter("ymdhm")
def format_datetime(ts: int | None) -> str:
    """Epoch seconds → ``2024.01.31. 18:05`` in the site timezone."""
    dt = _local(ts)
    return dt.strftime("%Y.%m.%d. %H:%M") if dt else ""


def post_description(post) -> str:
    """The excerpt, or the first 150 characters of content without md marks."""
    if post["excerpt"]:
        return post["excerpt"]
    return re.sub(r"[#*`]", "", (post["content"] or "")[:EXCERPT_LEN]) + "..."


app.jinja_env.globals["version"] = __version__


###############################################################################
# Database helpers
###############################################################################
SCHEMA = """
    CREATE TABLE IF NOT EXISTS posts (
        id          INTEGER PRIMARY KEY,
        title       TEXT    NOT NULL,
        slug        TEXT    NOT NULL UNIQUE,
        excerpt     TEXT,
        content     TEXT    NOT NULL,
        views       INTEGER NOT NULL DEFAULT 0,
        likes       INTEGER NOT NULL DEFAULT 0,
        shares      INTEGER NOT NULL DEFAULT 0,
        created_at  INTEGER NOT NULL,
        updated_at  INTEGER
    );

    -- no FOREIGN KEY: deleting a post leaves its comments in place
    CREATE TABLE IF NOT EXISTS comments (
        id          INTEGER PRIMARY KEY,
        post_id     INTEGER NOT NULL,
        author      TEXT    NOT NULL,
        content     TEXT    NOT NULL,
        created_at  INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_posts_created ON posts(created_at);
    CREATE INDEX IF NOT EXISTS idx_comments_post ON comments(post_id, created_at);
"""

_SCHEMA_READY: set[str] = set()


def get_db():
    if "db" not in g:
        path = app.config["DATABASE"]
        g.db = sqlite3.connect(path)
        g.db.row_factory = sqlite3.Row
        if path not in _SCHEMA_READY:
            ensure_schema(g.db)
            _SCHEMA_READY.add(path)
    return g.db


@app.teardown_appcontext
def close_db(error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def ensure_schema(db) -> None:
    """Create tables and indexes if missing. Safe to run repeatedly."""
    db.executescript(SCHEMA)
    db.commit()


def init_db():
    ensure_schema(get_db())


# -------------------------------------------------------------------------
# Time helpers
# -------------------------------------------------------------------------
def utc_now() -> datetime:
    """Return an *aware* datetime in UTC."""
    return datetime.now(timezone.utc)


def epoch_now() -> int:
    return int(utc_now().timestamp())


###############################################################################
# Data access
###############################################################################
POST_LIST_COLUMNS = "id, title, slug, excerpt, views, likes, shares, created_at, updated_at"


def list_posts(*, db):
    """Every post, newest first."""
    return db.execute(
        f"SELECT {POST_LIST_COLUMNS} FROM posts ORDER BY created_at DESC, id DESC"
    ).fetchall()


def get_post_by_slug(slug: str, *, db):
    return db.execute("SELECT * FROM posts WHERE slug = ?", (slug,)).fetchone()


def get_post_by_id(post_id: int | None, *, db):
    if post_id is None:
        return None
    return db.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()


def list_comments_for_post(post_id: int, *, db):
    return db.execute(
        "SELECT * FROM comments WHERE post_id = ? ORDER BY created_at DESC, id DESC",
        (post_id,),
    ).fetchall()


def _increment(post_id: int, column: str, *, db) -> int | None:
    """
    ``col = col + 1`` in one statement, then read the new value back.
    Returns None when *post_id* matches nothing.
    """
    if column not in COUNTERS:
        raise ValueError(f"unknown counter {column!r}")
    cur = db.execute(
        f"UPDATE posts SET {column} = {column} + 1 WHERE id = ?", (post_id,)
    )
    db.commit()
    if cur.rowcount == 0:
        return None
    row = db.execute(f"SELECT {column} FROM posts WHERE id = ?", (post_id,)).fetchone()
    return row[column] if row else None


def increment_views(post_id: int, *, db) -> int | None:
    return _increment(post_id, "views", db=db)


def increment_likes(post_id: int, *, db) -> int | None:
    return _increment(post_id, "likes", db=db)


def increment_shares(post_id: int, *, db) -> int | None:
    return _increment(post_id, "shares", db=db)


def _clean(value: str | None) -> str:
    return (value or "").strip()


def insert_comment(post_id: int, author: str | None, content: str | None, *, db) -> int:
    author, content = _clean(author), _clean(content)
    if not author or not content:
        raise ValidationError(MSG_COMMENT_REQUIRED)
    cur = db.execute(
        "INSERT INTO comments (post_id, author, content, created_at) VALUES (?,?,?,?)",
        (post_id, author, content, epoch_now()),
    )
    db.commit()
    return cur.lastrowid


def _post_fields(title, slug, excerpt, content) -> tuple[str, str, str | None, str]:
    title, slug = _clean(title), _clean(slug)
    content = content or ""
    if not title or not slug or not content.strip():
        raise ValidationError(MSG_POST_REQUIRED)
    if not SLUG_RE.match(slug):
        raise ValidationError(MSG_SLUG_INVALID)
    return title, slug, _clean(excerpt) or None, content


def insert_post(title, slug, excerpt, content, *, db) -> int:
    fields = _post_fields(title, slug, excerpt, content)
    try:
        cur = db.execute(
            "INSERT INTO posts (title, slug, excerpt, content, created_at) "
            "VALUES (?,?,?,?,?)",
            (*fields, epoch_now()),
        )
    except sqlite3.IntegrityError:
        db.rollback()
        raise SlugConflict(MSG_SLUG_TAKEN) from None
    db.commit()
    return cur.lastrowid


def update_post(post_id: int, title, slug, excerpt, content, *, db) -> bool:
    """Overwrite every editable field. False when *post_id* matches nothing."""
    fields = _post_fields(title, slug, excerpt, content)
    try:
        cur = db.execute(
            "UPDATE posts SET title = ?, slug = ?, excerpt = ?, content = ?, "
            "updated_at = ? WHERE id = ?",
            (*fields, epoch_now(), post_id),
        )
    except sqlite3.IntegrityError:
        db.rollback()
        raise SlugConflict(MSG_SLUG_TAKEN) from None
    db.commit()
    return cur.rowcount > 0


def delete_post(post_id: int, *, db) -> bool:
    # comments stay behind as orphans
    cur = db.execute("DELETE FROM posts WHERE id = ?", (post_id,))
    db.commit()
    return cur.rowcount > 0


def _as_id(value: str | None) -> int | None:
    value = _clean(value)
    return int(value) if value.isdecimal() else None


###############################################################################
# CLI
###############################################################################
@app.cli.command("init-db")
def cli_init_db():
    """Create the posts/comments tables (no-op if they exist)."""
    init_db()
    click.secho(f"\n✅  Database ready at {app.config['DATABASE']}", fg="green")


@app.cli.command("new-post")
@click.option("--title", prompt=True, help="Post title")
@click.option("--slug", prompt=True, help="URL slug, must be unique")
@click.option("--excerpt", default="", help="Optional summary")
@click.option(
    "--content-file",
    type=click.File("r", encoding="utf-8"),
    required=True,
    help="Markdown file with the post body ('-' for stdin)",
)
def cli_new_post(title: str, slug: str, excerpt: str, content_file):
    """Publish a post from a markdown file."""
    try:
        post_id = insert_post(title, slug, excerpt, content_file.read(), db=get_db())
    except ValidationError as exc:
        raise click.ClickException(str(exc)) from None
    click.secho(f"\n✅  Post #{post_id} published at /post/{slug.strip()}", fg="green")


###############################################################################
# SEO emitters
###############################################################################
SITEMAP_STATIC = (
    ("/", "daily", "1.0"),
    ("/policy", "monthly", "0.5"),
)


def _w3c_utc(ts: int) -> str:
    return datetime.fromtimestamp(int(ts), timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_sitemap(posts, *, base_url: str) -> str:
    """
    sitemaps.org urlset: the static pages, then one <url> per post.
    `posts` is an iterable of rows from `list_posts`.
    """
    base = base_url.rstrip("/")
    urls = [
        f"""
  <url>
    <loc>{escape(base + path)}</loc>
    <changefreq>{freq}</changefreq>
    <priority>{prio}</priority>
  </url>"""
        for path, freq, prio in SITEMAP_STATIC
    ]
    for p in posts:
        loc = escape(base + "/post/" + quote(p["slug"]))
        lastmod = _w3c_utc(p["updated_at"] or p["created_at"])
        urls.append(
            f"""
  <url>
    <loc>{loc}</loc>
    <lastmod>{lastmod}</lastmod>
    <changefreq>weekly</changefreq>
    <priority>0.8</priority>
  </url>"""
        )
    body = "".join(urls)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{body}
</urlset>
"""


def build_robots(*, base_url: str) -> str:
    return f"User-agent: *\nAllow: /\nSitemap: {base_url.rstrip('/')}/sitemap.xml\n"


###############################################################################
# Templates + Views
###############################################################################


def wrap(body: str) -> str:
    """Glue prolog + page-specific body + epilog."""
    return TEMPL_PROLOG + body + TEMPL_EPILOG


def page_meta(
    title: str | None = None,
    description: str | None = None,
    image: str | None = None,
    url: str | None = None,
) -> dict:
    """Head metadata shared by every page."""
    site_name = app.config["SITE_NAME"]
    base = app.config["SITE_URL"].rstrip("/")
    return {
        "title": f"{title} - {site_name}" if title else site_name,
        "site_name": site_name,
        "description": description or app.config["SITE_DESCRIPTION"],
        "image": image or app.config["SITE_IMAGE"],
        "url": f"{base}{url}" if url else base,
    }


def render_page(
    template: str, *, title=None, description=None, image=None, url=None, **ctx
) -> str:
    return render_template_string(
        template,
        meta=page_meta(title, description, image, url),
        year=utc_now().astimezone(ZoneInfo(tz_name())).year,
        **ctx,
    )


TEMPL_PROLOG = """<!doctype html>
<html lang="ko">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<meta name="generator" content="darugi {{ version }}">
<title>{{ meta.title }}</title>
<meta name="description" content="{{ meta.description }}">
<link rel="canonical" href="{{ meta.url }}">
<meta property="og:type" content="website">
<meta property="og:url" content="{{ meta.url }}">
<meta property="og:title" content="{{ meta.title }}">
<meta property="og:description" content="{{ meta.description }}">
<meta property="og:image" content="{{ meta.image }}">
<meta property="og:site_name" content="{{ meta.site_name }}">
<meta property="og:locale" content="ko_KR">
<meta property="twitter:card" content="summary_large_image">
<meta property="twitter:url" content="{{ meta.url }}">
<meta property="twitter:title" content="{{ meta.title }}">
<meta property="twitter:description" content="{{ meta.description }}">
<meta property="twitter:image" content="{{ meta.image }}">
<script src="https://cdn.tailwindcss.com"></script>
<script>
tailwind.config = {
  theme: {
    extend: {
      colors: {brand: {yellow: '#FFF787', purple: '#787FFF', 'purple-dark': '#5a5fcf'}},
      fontFamily: {
        sans: ['Pretendard', '-apple-system', 'BlinkMacSystemFont', 'system-ui', 'Roboto', 'Apple SD Gothic Neo', 'Noto Sans KR', 'Malgun Gothic', 'sans-serif'],
        title: ['Montserrat', 'sans-serif']
      }
    }
  }
}
</script>
<link rel="stylesheet" href="https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css">
<link rel="stylesheet" crossorigin="anonymous" href="https://cdn.jsdelivr.net/gh/orioncactus/pretendard@v1.3.9/dist/web/static/pretendard-dynamic-subset.min.css">
<link rel="stylesheet" href="https://fonts.googleapis.com/css2?family=Montserrat:wght@100;200;300;400;500;600&display=swap">
<style>
.markdown-body{color:#4b5563}
.markdown-body h1{font-size:2em;font-weight:700;margin-top:1.5em;margin-bottom:.8em;color:#787FFF}
.markdown-body h2{font-size:1.5em;font-weight:600;margin-top:1.5em;margin-bottom:.8em;color:#4b5563}
.markdown-body p{margin-bottom:1.2em;line-height:1.8}
.markdown-body a{color:#787FFF;text-decoration:underline;text-underline-offset:4px}
.markdown-body a:hover{background-color:#FFF787;color:#5a5fcf}
.markdown-body ul{list-style-type:disc;padding-left:1.5em;margin-bottom:1.2em}
.markdown-body ol{list-style-type:decimal;padding-left:1.5em;margin-bottom:1.2em}
.markdown-body pre{background:#fff;padding:1.2em;border-radius:.8em;overflow-x:auto;margin-bottom:1.5em;border:1px solid #e5e7eb}
.markdown-body code{background:#f3f4f6;padding:.2em .4em;border-radius:.25em;font-family:monospace;color:#787FFF}
.markdown-body pre code{background:transparent;padding:0;color:inherit}
.markdown-body blockquote{border-left:3px solid #FFF787;padding-left:1em;color:#9ca3af;font-style:italic}
.markdown-body img{max-width:100%;height:auto;border-radius:.5em;margin:2em 0;box-shadow:0 10px 15px -3px rgba(0,0,0,.05)}
</style>
</head>
<body class="font-sans min-h-screen text-gray-800 antialiased selection:bg-brand-yellow selection:text-brand-purple">
<div class="fixed inset-0 -z-10 bg-gradient-to-br from-[#FFF787] via-[#F8F8FF] to-[#787FFF]"></div>
<main class="relative w-full">
"""

TEMPL_EPILOG = """
</main>
<footer class="relative z-10 py-10 text-center text-white/40 text-xs tracking-widest font-light">
  &copy; {{ year }} {{ config['SITE_BRAND']|upper }}
</footer>
</body>
</html>
"""


# ─── public pages ───────────────────────────────────────────────────────
@app.route("/")
def index():
    posts = list_posts(db=get_db())
    return render_page(
        TEMPL_HOME,
        posts=posts,
        title="Home",
        description=app.config["SITE_DESCRIPTION"],
        url="/",
    )


TEMPL_HOME = wrap("""
<section class="h-[60vh] flex flex-col justify-center items-center text-center px-4">
  <h1 class="text-5xl md:text-7xl lg:text-8xl font-thin text-[#787FFF] tracking-[0.1em] font-title uppercase mb-4 drop-shadow-sm">
    {{ config['SITE_BRAND'] }}
  </h1>
</section>

<section class="max-w-5xl mx-auto px-4 pb-20 -mt-20 relative z-10">
  <div class="bg-white rounded-t-2xl shadow-lg border border-gray-100 overflow-hidden min-h-[500px]">
    <div class="px-6 py-5 border-b border-gray-100 flex justify-between items-center bg-white">
      <span class="text-sm text-gray-500 font-light">
        전체보기 <strong class="text-[#787FFF] font-medium">{{ posts|length }}</strong>개의 글
      </span>
      <span class="text-xs text-gray-400">목록닫기</span>
    </div>

    <div class="hidden md:flex bg-gray-50 px-6 py-3 border-b border-gray-100 text-xs text-gray-400 font-light">
      <div class="flex-grow pl-2">글 제목</div>
      <div class="w-20 text-center">조회수</div>
      <div class="w-24 text-center">작성일</div>
    </div>

    <div class="divide-y divide-gray-50">
      {% for p in posts %}
      <div class="post-row group hover:bg-gray-50 transition-colors duration-200">
        <a href="{{ url_for('post_detail', slug=p['slug']) }}" class="block px-6 py-4 md:py-3 flex flex-col md:flex-row md:items-center">
          <div class="flex-grow mb-1 md:mb-0 pr-4">
            <span class="text-gray-600 group-hover:text-[#787FFF] transition-colors text-sm font-light truncate block">{{ p['title'] }}</span>
          </div>
          <div class="flex md:hidden text-xs text-gray-300 gap-2 mt-1 font-light">
            <span>{{ p['created_at']|ymd }}</span>
            <span>&bull;</span>
            <span>조회 {{ p['views'] or 0 }}</span>
          </div>
          <div class="hidden md:flex text-xs text-gray-400 font-light items-center">
            <div class="w-20 text-center">{{ p['views'] or 0 }}</div>
            <div class="w-24 text-center">{{ p['created_at']|ymd }}</div>
          </div>
        </a>
      </div>
      {% else %}
      <div class="text-center py-20 text-gray-400 font-light text-sm">
        <p>작성된 글이 없습니다.</p>
      </div>
      {% endfor %}
    </div>

    <div class="px-6 py-4 border-t border-gray-100 flex justify-between items-center bg-gray-50/50">
      <div></div>
      <div class="flex gap-1">
        <span class="w-6 h-6 flex items-center justify-center text-xs text-white bg-[#787FFF] rounded-sm">1</span>
      </div>
      <div class="text-xs text-gray-400 border border-gray-200 bg-white px-2 py-1.5 rounded flex items-center gap-1">
        5줄 보기 <i class="fas fa-chevron-down text-[10px]"></i>
      </div>
    </div>
  </div>
</section>
""")


@app.route("/post/<slug>")
def post_detail(slug):
    db = get_db()
    found = get_post_by_slug(slug, db=db)
    if found is not None:
        increment_views(found["id"], db=db)
    post = get_post_by_slug(slug, db=db)
    if post is None:
        return render_page(TEMPL_POST_NOT_FOUND, title="Not Found")

    comments = list_comments_for_post(post["id"], db=db)
    return render_page(
        TEMPL_POST,
        post=post,
        comments=comments,
        title=post["title"],
        description=post_description(post),
        url=url_for("post_detail", slug=slug),
    )


TEMPL_POST = wrap("""
<article class="pt-10 pb-20">
  <header class="mb-12 text-center">
    <h1 class="text-4xl md:text-6xl font-thin text-gray-800 mb-4 tracking-tight leading-tight">{{ post['title'] }}</h1>
    <div class="flex justify-center items-center gap-4 text-sm text-gray-500 font-light tracking-widest uppercase">
      <span>{{ post['created_at']|ymd }}</span>
      <span class="w-px h-3 bg-gray-300"></span>
      <span><i class="far fa-eye mr-1"></i> <span id="view-count">{{ post['views'] }}</span></span>
    </div>
  </header>

  <div class="max-w-3xl mx-auto bg-white/90 backdrop-blur rounded-xl p-8 md:p-12 shadow-sm">
    <div class="markdown-body font-light">{{ post['content']|md }}</div>

    <div class="mt-16 flex justify-center gap-4">
      <button type="button" onclick="likePost({{ post['id'] }})"
              class="flex items-center gap-2 px-5 py-2.5 bg-white border border-gray-200 text-gray-600 rounded text-sm hover:border-red-300 hover:text-red-500 transition-all">
        <i class="far fa-heart" id="like-icon-{{ post['id'] }}"></i>
        <span class="font-medium">공감</span>
        <span id="like-count-{{ post['id'] }}" class="font-bold ml-1">{{ post['likes'] }}</span>
      </button>
      <button type="button" onclick="sharePost({{ post['id'] }})"
              class="flex items-center gap-2 px-5 py-2.5 bg-white border border-gray-200 text-gray-600 rounded text-sm hover:border-[#787FFF] hover:text-[#787FFF] transition-all">
        <i class="fas fa-share-alt"></i>
        <span class="font-medium">공유</span>
        <span id="share-count-{{ post['id'] }}" class="font-bold ml-1">{{ post['shares'] }}</span>
      </button>
    </div>

    <div class="mt-16 pt-10 border-t border-gray-100" id="comments">
      <h3 class="text-xl font-light text-gray-800 mb-6 flex items-center gap-2">
        <i class="far fa-comment-dots"></i> 댓글 <span class="font-bold text-[#787FFF]">{{ comments|length }}</span>
      </h3>

      <form action="{{ url_for('api_comment') }}" method="post" class="mb-10 bg-gray-50/50 p-6 rounded-lg border border-gray-100">
        <input type="hidden" name="post_id" value="{{ post['id'] }}">
        <input type="hidden" name="slug" value="{{ post['slug'] }}">
        <div class="flex gap-4 mb-4">
          <input type="text" name="author" placeholder="닉네임" required
                 class="flex-1 bg-white border border-gray-200 rounded px-3 py-2 text-sm focus:outline-none focus:border-[#787FFF]">
          <button type="submit" class="px-6 py-2 bg-[#787FFF] text-white text-sm rounded hover:bg-[#686fe0] transition-colors">등록</button>
        </div>
        <textarea name="content" rows="3" placeholder="댓글을 남겨주세요..." required
                  class="w-full bg-white border border-gray-200 rounded px-3 py-2 text-sm focus:outline-none focus:border-[#787FFF] resize-none"></textarea>
      </form>

      <div class="space-y-6">
        {% for c in comments %}
        <div class="comment flex gap-4">
          <div class="flex-shrink-0 w-10 h-10 bg-gray-100 rounded-full flex items-center justify-center text-gray-400">
            <i class="fas fa-user"></i>
          </div>
          <div class="flex-grow">
            <div class="flex items-baseline gap-2 mb-1">
              <span class="font-bold text-gray-700 text-sm">{{ c['author'] }}</span>
              <span class="text-xs text-gray-400">{{ c['created_at']|ymdhm }}</span>
            </div>
            <p class="text-gray-600 text-sm leading-relaxed whitespace-pre-line">{{ c['content'] }}</p>
          </div>
        </div>
        {% else %}
        <p class="text-center text-gray-400 text-sm py-4">첫 번째 댓글을 남겨보세요!</p>
        {% endfor %}
      </div>
    </div>
  </div>

  <div class="mt-16 text-center">
    <a href="{{ url_for('index') }}" class="inline-block px-8 py-3 border border-gray-300 text-gray-500 rounded-full hover:border-[#787FFF] hover:text-[#787FFF] transition-all text-xs tracking-widest uppercase bg-white/50 backdrop-blur-sm">
      Back to List
    </a>
  </div>

  <script>
  async function likePost(id) {
    try {
      const res = await fetch('/api/like/' + id, {method: 'POST'});
      const data = await res.json();
      document.getElementById('like-count-' + id).innerText = data.likes;
      const icon = document.getElementById('like-icon-' + id);
      icon.classList.remove('far');
      icon.classList.add('fas', 'text-red-500');
    } catch (e) { console.error(e); }
  }

  async function sharePost(id) {
    try {
      await navigator.clipboard.writeText(window.location.href);
      alert('링크가 복사되었습니다!');
      const res = await fetch('/api/share/' + id, {method: 'POST'});
      const data = await res.json();
      document.getElementById('share-count-' + id).innerText = data.shares;
    } catch (e) {
      console.error(e);
      alert('공유하기에 실패했습니다.');
    }
  }
  </script>
</article>
""")

TEMPL_POST_NOT_FOUND = wrap("""
<div class="min-h-screen flex flex-col justify-center items-center text-center px-4 -mt-20">
  <h1 class="text-4xl font-thin text-white mb-4">Post Not Found</h1>
  <p class="text-white/70 mb-8 font-light">요청하신 페이지가 존재하지 않습니다.</p>
  <a href="{{ url_for('index') }}" class="px-6 py-2 border border-white/40 text-white rounded-full hover:bg-white hover:text-[#787FFF] transition-all text-sm tracking-widest uppercase">Back Home</a>
</div>
""")


@app.route("/policy")
def policy():
    return render_page(TEMPL_POLICY, title="Privacy Policy", updated=epoch_now())


TEMPL_POLICY = wrap("""
<div class="max-w-3xl mx-auto bg-white/90 backdrop-blur rounded-xl p-10 md:p-14 shadow-sm mt-10 mb-20">
  <h1 class="text-3xl font-light mb-8 pb-4 border-b border-gray-100 text-gray-800">Privacy Policy</h1>
  <div class="prose max-w-none text-gray-600 space-y-6 font-light">
    <p class="text-sm text-gray-400">Last updated: {{ updated|ymd }}</p>
    <p>이 개인정보처리방침은 귀하가 서비스를 이용할 때 귀하의 정보를 수집, 사용 및 공개하는 것에 대한 당사의 정책 및 절차를 설명합니다.</p>
    <h2 class="text-xl font-medium mt-8 text-gray-800">개인 데이터 수집 및 사용</h2>
    <p>당사는 귀하가 댓글 작성 시 명시적으로 입력한 닉네임과 내용 외에는 어떠한 개인 데이터도 저장하지 않습니다.
       쿠키 사용 및 제3자 광고 서비스(Google AdSense)와 관련된 내용은 각 서비스의 정책을 따릅니다.</p>
  </div>
</div>
""")


# ─── SEO ────────────────────────────────────────────────────────────────
@app.route("/sitemap.xml")
def sitemap():
    xml = build_sitemap(list_posts(db=get_db()), base_url=app.config["SITE_URL"])
    return app.response_class(xml, mimetype="application/xml")


@app.route("/robots.txt")
def robots():
    return Response(
        build_robots(base_url=app.config["SITE_URL"]), mimetype="text/plain"
    )


# ─── JSON + form API ────────────────────────────────────────────────────
@app.route("/api/like/<int:post_id>", methods=["POST"])
def api_like(post_id):
    likes = increment_likes(post_id, db=get_db())
    if likes is None:
        return {"error": "not found"}, 404
    return {"likes": likes}


@app.route("/api/share/<int:post_id>", methods=["POST"])
def api_share(post_id):
    shares = increment_shares(post_id, db=get_db())
    if shares is None:
        return {"error": "not found"}, 404
    return {"shares": shares}


@app.route("/api/comment", methods=["POST"])
def api_comment():
    form = request.form
    if not _clean(form.get("author")) or not _clean(form.get("content")):
        raise ValidationError(MSG_COMMENT_REQUIRED)

    db = get_db()
    post = get_post_by_id(_as_id(form.get("post_id")), db=db)
    if post is None:
        raise ValidationError(MSG_POST_MISSING)

    comment_id = insert_comment(post["id"], form["author"], form["content"], db=db)
    app.logger.info("Comment #%s added to post #%s", comment_id, post["id"])
    return redirect(url_for("post_detail", slug=post["slug"], _anchor="comments"))


###############################################################################
# Admin gate
###############################################################################
def admin_credentials() -> tuple[str, str] | None:
    """
    Configured (user, password). Outside production a missing value falls
    back to admin/password; in production the admin stays locked instead.
    """
    user = app.config.get("ADMIN_USER")
    password = app.config.get("ADMIN_PASSWORD")
    if user and password:
        return user, password
    if app.config.get("DEPLOY_ENV") == "production":
        return None
    return user or ADMIN_USER_DFLT, password or ADMIN_PASSWORD_DFLT


def is_admin_path(path: str) -> bool:
    return path == "/admin" or path.startswith("/admin/")


def _credentials_match(auth, expected: tuple[str, str]) -> bool:
    user_ok = secrets.compare_digest(
        (auth.username or "").encode(), expected[0].encode()
    )
    pass_ok = secrets.compare_digest(
        (auth.password or "").encode(), expected[1].encode()
    )
    return user_ok and pass_ok


@app.before_request
def admin_gate():
    if not is_admin_path(request.path):
        return None

    expected = admin_credentials()
    if expected is None:
        app.logger.error("ADMIN_USER/ADMIN_PASSWORD unset in production, admin locked")

    auth = request.authorization
    if (
        expected is not None
        and auth is not None
        and (auth.type or "").lower() == "basic"
        and _credentials_match(auth, expected)
    ):
        return None

    app.logger.warning(
        "Admin auth failed: %s %s from %s",
        request.method,
        request.path,
        request.remote_addr,
    )
    return Response(
        "Unauthorized",
        status=401,
        mimetype="text/plain",
        headers={"WWW-Authenticate": f'Basic realm="{ADMIN_REALM}", charset="UTF-8"'},
    )


@app.after_request
def sec_headers(resp):
    resp.headers.update(
        {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Permissions-Policy": "interest-cohort=()",
        }
    )
    return resp


###############################################################################
# Admin
###############################################################################
@app.route("/admin")
def admin_dashboard():
    posts = list_posts(db=get_db())
    return render_page(TEMPL_ADMIN, posts=posts, title="Admin")


TEMPL_ADMIN = wrap("""
<div class="bg-white/95 backdrop-blur-xl p-8 rounded-xl shadow-lg border border-white/20 mt-10 mb-20 max-w-5xl mx-auto">
  <div class="flex flex-col md:flex-row justify-between items-start md:items-center mb-8 gap-4">
    <div>
      <h1 class="text-3xl font-thin text-gray-900">Admin Dashboard</h1>
      <p class="text-gray-500 mt-1 font-light text-sm">Manage your stories</p>
    </div>
    <a href="{{ url_for('admin_new') }}" class="bg-[#787FFF] text-white px-6 py-2.5 rounded-full text-sm font-medium shadow-md hover:shadow-lg hover:bg-[#686fe0] transition-all">
      <i class="fas fa-plus mr-2"></i> New Post
    </a>
  </div>

  <div class="overflow-x-auto rounded-lg border border-gray-100">
    <table class="w-full text-left">
      <thead class="bg-gray-50">
        <tr class="text-gray-400 text-xs uppercase tracking-widest">
          <th class="py-4 px-6 font-medium">Title</th>
          <th class="py-4 px-6 font-medium">Date</th>
          <th class="py-4 px-6 font-medium text-right">Views</th>
          <th class="py-4 px-6 font-medium text-right">Actions</th>
        </tr>
      </thead>
      <tbody class="divide-y divide-gray-100">
        {% for p in posts %}
        <tr class="hover:bg-gray-50 transition-colors">
          <td class="py-4 px-6 font-medium text-gray-800">
            <a href="{{ url_for('post_detail', slug=p['slug']) }}">{{ p['title'] }}</a>
          </td>
          <td class="py-4 px-6 text-gray-500 text-xs font-light tracking-wide">
            {{ p['created_at']|ymd }}
            {% if p['updated_at'] %}<span class="text-gray-300">(수정 {{ p['updated_at']|ymd }})</span>{% endif %}
          </td>
          <td class="py-4 px-6 text-gray-500 text-xs text-right">{{ p['views'] }}</td>
          <td class="py-4 px-6 text-right space-x-3">
            <a href="{{ url_for('admin_edit', post_id=p['id']) }}" class="text-[#787FFF] font-medium hover:text-[#5a5fcf] text-xs uppercase tracking-wider">Edit</a>
            <form action="{{ url_for('admin_delete', post_id=p['id']) }}" method="post" class="inline" onsubmit="return confirm('Really delete?');">
              <button type="submit" class="text-red-400 font-medium hover:text-red-600 text-xs uppercase tracking-wider ml-2">Delete</button>
            </form>
          </td>
        </tr>
        {% else %}
        <tr><td colspan="4" class="py-10 text-center text-gray-400 text-sm">작성된 글이 없습니다.</td></tr>
        {% endfor %}
      </tbody>
    </table>
  </div>
</div>
""")


@app.route("/admin/new")
def admin_new():
    return render_page(TEMPL_POST_FORM, post=None, title="New Post")


@app.route("/admin/edit/<post_id>")
def admin_edit(post_id):
    post = get_post_by_id(_as_id(post_id), db=get_db())
    if post is None:
        return redirect(url_for("admin_dashboard"))
    return render_page(TEMPL_POST_FORM, post=post, title="Edit Post")


TEMPL_POST_FORM = wrap("""
{% set field = "w-full bg-gray-50 border border-gray-200 rounded-lg px-4 py-3 focus:ring-2 focus:ring-[#787FFF]/20 focus:border-[#787FFF] focus:outline-none transition-all" %}
{% set label = "block text-xs font-bold text-gray-500 uppercase tracking-widest mb-2" %}
<div class="bg-white/95 backdrop-blur-xl p-8 rounded-xl shadow-lg border border-white/20 mt-10 mb-20 max-w-4xl mx-auto">
  <h1 class="text-3xl font-thin mb-8 text-gray-800">{{ 'Edit Story' if post else 'New Story' }}</h1>
  <form action="{{ url_for('admin_save') }}" method="post" class="space-y-6">
    {% if post %}<input type="hidden" name="id" value="{{ post['id'] }}">{% endif %}
    <div>
      <label class="{{ label }}" for="title">Title</label>
      <input type="text" id="title" name="title" required class="{{ field }}" value="{{ post['title'] if post else '' }}">
    </div>
    <div>
      <label class="{{ label }}" for="slug">Slug</label>
      <input type="text" id="slug" name="slug" required class="{{ field }}" value="{{ post['slug'] if post else '' }}">
    </div>
    <div>
      <label class="{{ label }}" for="excerpt">Excerpt</label>
      <textarea id="excerpt" name="excerpt" rows="2" class="{{ field }}">{{ (post['excerpt'] or '') if post else '' }}</textarea>
    </div>
    <div>
      <label class="{{ label }}" for="content">Content</label>
      <textarea id="content" name="content" rows="20" required class="{{ field }} font-mono text-sm">{{ post['content'] if post else '' }}</textarea>
    </div>
    <div class="flex justify-end space-x-4 pt-6 border-t border-gray-100">
      <a href="{{ url_for('admin_dashboard') }}" class="px-6 py-2.5 border border-gray-200 rounded-lg text-gray-500 text-sm font-medium hover:bg-gray-50 transition-colors">Cancel</a>
      <button type="submit" class="bg-[#787FFF] text-white px-8 py-2.5 rounded-lg text-sm font-medium shadow-md hover:bg-[#686fe0] transition-all">{{ 'Update' if post else 'Publish' }}</button>
    </div>
  </form>
</div>
""")


@app.route("/admin/save", methods=["POST"])
def admin_save():
    form = request.form
    db = get_db()
    fields = (form.get("title"), form.get("slug"), form.get("excerpt"), form.get("content"))

    if _clean(form.get("id")):
        post_id = _as_id(form.get("id"))
        if post_id is None:
            raise ValidationError(MSG_BAD_ID)
        if update_post(post_id, *fields, db=db):
            app.logger.info("Post #%s updated", post_id)
    else:
        post_id = insert_post(*fields, db=db)
        app.logger.info("Post #%s created (%s)", post_id, _clean(form.get("slug")))

    return redirect(url_for("admin_dashboard"))


@app.route("/admin/delete/<post_id>", methods=["POST"])
def admin_delete(post_id):
    pid = _as_id(post_id)
    if pid is not None and delete_post(pid, db=get_db()):
        app.logger.info("Post #%s deleted", pid)
    return redirect(url_for("admin_dashboard"))


###############################################################################
# Error pages
###############################################################################
@app.errorhandler(ValidationError)
def validation_failed(exc):
    """Client input problems → short plain-text 400."""
    app.logger.warning("Rejected %s %s: %s", request.method, request.path, exc)
    return Response(str(exc), status=400, mimetype="text/plain")


@app.errorhandler(404)
def not_found(exc):
    """Site-wide “Not Found” page."""
    return render_page(TEMPL_404, title="Not Found"), 404


@app.errorhandler(500)
def internal_error(exc):
    # Flask has already logged the traceback at this point
    return render_page(TEMPL_500, title="Error"), 500


TEMPL_404 = wrap("""
<div class="min-h-screen flex flex-col justify-center items-center text-center px-4 -mt-20">
  <h1 class="text-4xl font-thin text-white mb-4">Page not found</h1>
  <p class="text-white/70 mb-8 font-light">The URL you asked for doesn’t exist.</p>
  <a href="{{ url_for('index') }}" class="px-6 py-2 border border-white/40 text-white rounded-full text-sm tracking-widest uppercase">Back Home</a>
</div>
""")

TEMPL_500 = wrap("""
<div class="min-h-screen flex flex-col justify-center items-center text-center px-4 -mt-20">
  <h1 class="text-4xl font-thin text-white mb-4">Internal Server Error</h1>
  <p class="text-white/70 mb-8 font-light">잠시 후 다시 시도해 주세요.</p>
  <a href="{{ url_for('index') }}" class="px-6 py-2 border border-white/40 text-white rounded-full text-sm tracking-widest uppercase">Back Home</a>
</div>
""")


###############################################################################
# main
###############################################################################
if __name__ == "__main__":
    app.run(debug=True)
