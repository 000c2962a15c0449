"""SQLite database setup and CRUD operations.

Note: Uses a single aiosqlite connection for all operations. This serializes
all DB access, which is fine for a single-author blog. For higher write
concurrency, move to PostgreSQL.
"""
import asyncio
import json
import logging
import time
import uuid
from typing import Any

import aiosqlite

from app.config import settings

logger = logging.getLogger(__name__)

_db: aiosqlite.Connection | None = None
_lock = asyncio.Lock()

POST_COLUMNS = {
    "title", "slug", "excerpt", "content", "cover_image", "category_id",
    "author_name", "reading_time", "published", "published_at",
    "meta_description", "tags", "source",
}
PAGE_COLUMNS = {"title", "slug", "content", "meta_description", "published"}
CATEGORY_COLUMNS = {"name", "slug", "description", "show_on_homepage"}
MENU_COLUMNS = {"label", "url", "page_id", "parent_id", "location", "position", "open_in_new_tab"}
SITE_SETTINGS_COLUMNS = {
    "blog_name", "site_url", "author_name", "author_bio", "contact_email",
    "hero_variant", "card_variant", "hero_title", "hero_subtitle",
    "newsletter_title", "newsletter_description",
}

_POST_SELECT = """
    SELECT p.*, c.name AS category_name, c.slug AS category_slug
    FROM posts p
    LEFT JOIN categories c ON c.id = p.category_id
"""


class DuplicateError(ValueError):
    """A unique constraint (slug, email) rejected the write."""


def run_migrations() -> None:
    """Run Alembic migrations synchronously (called before the async event loop)."""
    from alembic.config import Config
    from alembic import command

    cfg = Config("alembic.ini")
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{settings.db_path}")
    command.upgrade(cfg, "head")


async def get_db() -> aiosqlite.Connection:
    global _db
    if _db is None:
        async with _lock:
            if _db is None:
                _db = await aiosqlite.connect(settings.db_path)
                _db.row_factory = aiosqlite.Row
                await _db.execute("PRAGMA journal_mode=WAL")
                await _db.execute("PRAGMA foreign_keys=ON")
    return _db


async def close_db() -> None:
    global _db
    if _db is not None:
        try:
            await _db.close()
        except Exception as exc:
            logger.warning("Error closing database: %s", exc)
        _db = None


def _assignments(fields: dict[str, Any], allowed: set[str]) -> tuple[str, list[Any]]:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown columns: {', '.join(sorted(unknown))}")
    clause = ", ".join(f"{col} = ?" for col in fields)
    return clause, list(fields.values())


async def _write(sql: str, params: tuple | list) -> None:
    db = await get_db()
    try:
        await db.execute(sql, params)
    except aiosqlite.IntegrityError as exc:
        await db.rollback()
        raise DuplicateError(str(exc)) from exc
    await db.commit()


# ---------------------------------------------------------------------------
# Admin sessions
# ---------------------------------------------------------------------------

async def create_admin_session(ttl_seconds: int) -> str:
    db = await get_db()
    session_id = uuid.uuid4().hex + uuid.uuid4().hex  # 64-char hex
    now = int(time.time())
    await db.execute(
        "INSERT INTO admin_sessions (id, created_at, expires_at) VALUES (?, ?, ?)",
        (session_id, now, now + ttl_seconds),
    )
    await db.commit()
    return session_id


async def get_admin_session(session_id: str) -> aiosqlite.Row | None:
    db = await get_db()
    async with db.execute(
        "SELECT * FROM admin_sessions WHERE id = ? AND expires_at > ?",
        (session_id, int(time.time())),
    ) as cur:
        return await cur.fetchone()


async def delete_admin_session(session_id: str) -> None:
    db = await get_db()
    await db.execute("DELETE FROM admin_sessions WHERE id = ?", (session_id,))
    await db.commit()


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------

async def get_site_settings() -> aiosqlite.Row:
    db = await get_db()
    async with db.execute("SELECT * FROM site_settings WHERE id = 1") as cur:
        return await cur.fetchone()


async def update_site_settings(fields: dict[str, Any]) -> aiosqlite.Row:
    if fields:
        clause, params = _assignments(fields, SITE_SETTINGS_COLUMNS)
        db = await get_db()
        await db.execute(
            f"UPDATE site_settings SET {clause}, updated_at = ? WHERE id = 1",
            (*params, int(time.time())),
        )
        await db.commit()
    return await get_site_settings()


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def list_categories() -> list[aiosqlite.Row]:
    """All categories with the number of published posts in each."""
    db = await get_db()
    async with db.execute(
        """SELECT c.*, COUNT(p.id) AS post_count
           FROM categories c
           LEFT JOIN posts p ON p.category_id = c.id AND p.published = 1
           GROUP BY c.id
           ORDER BY c.name"""
    ) as cur:
        return await cur.fetchall()


async def get_category_by_slug(slug: str) -> aiosqlite.Row | None:
    db = await get_db()
    async with db.execute("SELECT * FROM categories WHERE slug = ?", (slug,)) as cur:
        return await cur.fetchone()


async def get_category_by_id(category_id: str) -> aiosqlite.Row | None:
    db = await get_db()
    async with db.execute("SELECT * FROM categories WHERE id = ?", (category_id,)) as cur:
        return await cur.fetchone()


async def create_category(
    name: str,
    slug: str,
    description: str | None = None,
    show_on_homepage: bool = True,
) -> aiosqlite.Row:
    category_id = str(uuid.uuid4())
    await _write(
        """INSERT INTO categories (id, name, slug, description, show_on_homepage, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (category_id, name, slug, description, int(show_on_homepage), int(time.time())),
    )
    return await get_category_by_id(category_id)  # type: ignore[return-value]


async def update_category(category_id: str, fields: dict[str, Any]) -> aiosqlite.Row | None:
    if fields:
        clause, params = _assignments(fields, CATEGORY_COLUMNS)
        await _write(f"UPDATE categories SET {clause} WHERE id = ?", (*params, category_id))
    return await get_category_by_id(category_id)


async def delete_category(category_id: str) -> None:
    db = await get_db()
    await db.execute("DELETE FROM categories WHERE id = ?", (category_id,))
    await db.commit()


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

async def list_posts(
    published_only: bool = True,
    category_id: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[aiosqlite.Row]:
    db = await get_db()
    where: list[str] = []
    params: list[Any] = []
    if published_only:
        where.append("p.published = 1")
    if category_id is not None:
        where.append("p.category_id = ?")
        params.append(category_id)
    sql = _POST_SELECT
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY COALESCE(p.published_at, p.created_at) DESC"
    if limit is not None:
        sql += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])
    async with db.execute(sql, params) as cur:
        return await cur.fetchall()


async def get_post_by_slug(slug: str, published_only: bool = True) -> aiosqlite.Row | None:
    db = await get_db()
    sql = _POST_SELECT + " WHERE p.slug = ?"
    if published_only:
        sql += " AND p.published = 1"
    async with db.execute(sql, (slug,)) as cur:
        return await cur.fetchone()


async def get_post_by_id(post_id: str) -> aiosqlite.Row | None:
    db = await get_db()
    async with db.execute(_POST_SELECT + " WHERE p.id = ?", (post_id,)) as cur:
        return await cur.fetchone()


async def create_post(
    title: str,
    slug: str,
    content: str,
    author_name: str,
    excerpt: str = "",
    reading_time: int = 1,
    category_id: str | None = None,
    cover_image: str | None = None,
    published: bool = False,
    published_at: int | None = None,
    meta_description: str | None = None,
    tags: list[str] | None = None,
    source: str | None = None,
) -> aiosqlite.Row:
    post_id = str(uuid.uuid4())
    now = int(time.time())
    if published and published_at is None:
        published_at = now
    await _write(
        """INSERT INTO posts
           (id, title, slug, excerpt, content, cover_image, category_id, author_name,
            reading_time, published, published_at, meta_description, tags, source,
            created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            post_id, title, slug, excerpt, content, cover_image, category_id, author_name,
            reading_time, int(published), published_at, meta_description,
            json.dumps(tags) if tags else None, source, now, now,
        ),
    )
    return await get_post_by_id(post_id)  # type: ignore[return-value]


async def update_post(post_id: str, fields: dict[str, Any]) -> aiosqlite.Row | None:
    fields = dict(fields)
    if "tags" in fields:
        fields["tags"] = json.dumps(fields["tags"]) if fields["tags"] else None
    if "published" in fields:
        fields["published"] = int(fields["published"])
        if fields["published"] and "published_at" not in fields:
            row = await get_post_by_id(post_id)
            if row is not None and row["published_at"] is None:
                fields["published_at"] = int(time.time())
    if fields:
        clause, params = _assignments(fields, POST_COLUMNS)
        await _write(
            f"UPDATE posts SET {clause}, updated_at = ? WHERE id = ?",
            (*params, int(time.time()), post_id),
        )
    return await get_post_by_id(post_id)


async def delete_post(post_id: str) -> None:
    db = await get_db()
    await db.execute("DELETE FROM posts WHERE id = ?", (post_id,))
    await db.commit()


async def search_posts(query: str, limit: int = 20) -> list[aiosqlite.Row]:
    db = await get_db()
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    async with db.execute(
        _POST_SELECT
        + """ WHERE p.published = 1
              AND (p.title LIKE ? ESCAPE '\\' OR p.excerpt LIKE ? ESCAPE '\\'
                   OR p.content LIKE ? ESCAPE '\\')
              ORDER BY p.published_at DESC
              LIMIT ?""",
        (pattern, pattern, pattern, limit),
    ) as cur:
        return await cur.fetchall()


async def get_related_posts(post_id: str, category_id: str | None, limit: int = 3) -> list[aiosqlite.Row]:
    if category_id is None:
        return []
    db = await get_db()
    async with db.execute(
        _POST_SELECT
        + """ WHERE p.published = 1 AND p.category_id = ? AND p.id != ?
              ORDER BY p.published_at DESC
              LIMIT ?""",
        (category_id, post_id, limit),
    ) as cur:
        return await cur.fetchall()


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

async def list_pages(published_only: bool = True) -> list[aiosqlite.Row]:
    db = await get_db()
    sql = "SELECT * FROM pages"
    if published_only:
        sql += " WHERE published = 1"
    sql += " ORDER BY title"
    async with db.execute(sql) as cur:
        return await cur.fetchall()


async def get_page_by_slug(slug: str, published_only: bool = True) -> aiosqlite.Row | None:
    db = await get_db()
    sql = "SELECT * FROM pages WHERE slug = ?"
    if published_only:
        sql += " AND published = 1"
    async with db.execute(sql, (slug,)) as cur:
        return await cur.fetchone()


async def get_page_by_id(page_id: str) -> aiosqlite.Row | None:
    db = await get_db()
    async with db.execute("SELECT * FROM pages WHERE id = ?", (page_id,)) as cur:
        return await cur.fetchone()


async def create_page(
    title: str,
    slug: str,
    content: str,
    meta_description: str | None = None,
    published: bool = False,
) -> aiosqlite.Row:
    page_id = str(uuid.uuid4())
    now = int(time.time())
    await _write(
        """INSERT INTO pages (id, title, slug, content, meta_description, published, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (page_id, title, slug, content, meta_description, int(published), now, now),
    )
    return await get_page_by_id(page_id)  # type: ignore[return-value]


async def update_page(page_id: str, fields: dict[str, Any]) -> aiosqlite.Row | None:
    fields = dict(fields)
    if "published" in fields:
        fields["published"] = int(fields["published"])
    if fields:
        clause, params = _assignments(fields, PAGE_COLUMNS)
        await _write(
            f"UPDATE pages SET {clause}, updated_at = ? WHERE id = ?",
            (*params, int(time.time()), page_id),
        )
    return await get_page_by_id(page_id)


async def delete_page(page_id: str) -> None:
    db = await get_db()
    await db.execute("DELETE FROM pages WHERE id = ?", (page_id,))
    await db.commit()


# ---------------------------------------------------------------------------
# Navigation menu
# ---------------------------------------------------------------------------

async def list_menu_items() -> list[aiosqlite.Row]:
    db = await get_db()
    async with db.execute(
        """SELECT m.*, pg.slug AS page_slug, pg.published AS page_published
           FROM menu_items m
           LEFT JOIN pages pg ON pg.id = m.page_id
           ORDER BY m.position, m.created_at"""
    ) as cur:
        return await cur.fetchall()


async def get_menu_item(item_id: str) -> aiosqlite.Row | None:
    db = await get_db()
    async with db.execute("SELECT * FROM menu_items WHERE id = ?", (item_id,)) as cur:
        return await cur.fetchone()


async def create_menu_item(
    label: str,
    url: str = "",
    page_id: str | None = None,
    parent_id: str | None = None,
    location: str = "header",
    open_in_new_tab: bool = False,
    position: int | None = None,
) -> aiosqlite.Row:
    """New items are appended after the existing ones unless a position is given."""
    db = await get_db()
    if position is None:
        async with db.execute("SELECT COUNT(*) FROM menu_items") as cur:
            position = (await cur.fetchone())[0]
    item_id = str(uuid.uuid4())
    await _write(
        """INSERT INTO menu_items
           (id, label, url, page_id, parent_id, location, position, open_in_new_tab, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (item_id, label, url, page_id, parent_id, location, position, int(open_in_new_tab), int(time.time())),
    )
    return await get_menu_item(item_id)  # type: ignore[return-value]


async def update_menu_item(item_id: str, fields: dict[str, Any]) -> aiosqlite.Row | None:
    fields = dict(fields)
    if "open_in_new_tab" in fields:
        fields["open_in_new_tab"] = int(fields["open_in_new_tab"])
    if fields:
        clause, params = _assignments(fields, MENU_COLUMNS)
        await _write(f"UPDATE menu_items SET {clause} WHERE id = ?", (*params, item_id))
    return await get_menu_item(item_id)


async def delete_menu_item(item_id: str) -> bool:
    """Deletes the item and, through the foreign key, its children."""
    db = await get_db()
    cur = await db.execute("DELETE FROM menu_items WHERE id = ?", (item_id,))
    await db.commit()
    return cur.rowcount > 0


async def get_menu(location: str) -> list[dict[str, Any]]:
    """Menu tree for ``header`` or ``footer``, including items placed in ``both``.

    Each item carries ``href`` (None for dropdown parents) and ``children``.
    Links to unpublished pages are left out together with their children.
    """
    items: list[dict[str, Any]] = []
    for row in await list_menu_items():
        if row["location"] not in (location, "both"):
            continue
        item = {**dict(row), "open_in_new_tab": bool(row["open_in_new_tab"]), "children": []}
        if row["page_id"]:
            if not row["page_published"]:
                continue
            item["href"] = f"/page/{row['page_slug']}"
        else:
            item["href"] = row["url"] or None
        items.append(item)

    by_id = {item["id"]: item for item in items}
    roots: list[dict[str, Any]] = []
    for item in items:
        if item["parent_id"] is None:
            roots.append(item)
        elif item["parent_id"] in by_id:
            by_id[item["parent_id"]]["children"].append(item)
    return roots


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

async def create_comment(
    post_id: str,
    author_name: str,
    author_email: str,
    content: str,
    parent_id: str | None = None,
) -> str:
    comment_id = str(uuid.uuid4())
    db = await get_db()
    await db.execute(
        """INSERT INTO comments (id, post_id, parent_id, author_name, author_email, content, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (comment_id, post_id, parent_id, author_name, author_email, content, int(time.time())),
    )
    await db.commit()
    return comment_id


async def list_approved_comments(post_id: str) -> list[dict[str, Any]]:
    """Approved comments for a post as a tree: top-level comments with ``replies``."""
    db = await get_db()
    async with db.execute(
        """SELECT id, post_id, parent_id, author_name, content, created_at
           FROM comments
           WHERE post_id = ? AND is_approved = 1
           ORDER BY created_at, rowid""",
        (post_id,),
    ) as cur:
        rows = await cur.fetchall()

    by_id: dict[str, dict[str, Any]] = {r["id"]: {**dict(r), "replies": []} for r in rows}
    roots: list[dict[str, Any]] = []
    for comment in by_id.values():
        parent = by_id.get(comment["parent_id"]) if comment["parent_id"] else None
        if parent is not None:
            parent["replies"].append(comment)
        elif comment["parent_id"] is None:
            roots.append(comment)
    return roots


async def list_comments(approved: bool | None = None) -> list[aiosqlite.Row]:
    db = await get_db()
    sql = """SELECT cm.*, p.title AS post_title, p.slug AS post_slug
             FROM comments cm
             JOIN posts p ON p.id = cm.post_id"""
    params: tuple = ()
    if approved is not None:
        sql += " WHERE cm.is_approved = ?"
        params = (int(approved),)
    sql += " ORDER BY cm.created_at DESC"
    async with db.execute(sql, params) as cur:
        return await cur.fetchall()


async def get_comment(comment_id: str) -> aiosqlite.Row | None:
    db = await get_db()
    async with db.execute("SELECT * FROM comments WHERE id = ?", (comment_id,)) as cur:
        return await cur.fetchone()


async def set_comment_approved(comment_id: str, approved: bool) -> None:
    db = await get_db()
    await db.execute("UPDATE comments SET is_approved = ? WHERE id = ?", (int(approved), comment_id))
    await db.commit()


async def delete_comment(comment_id: str) -> None:
    db = await get_db()
    await db.execute("DELETE FROM comments WHERE id = ?", (comment_id,))
    await db.commit()


# ---------------------------------------------------------------------------
# Contact submissions
# ---------------------------------------------------------------------------

async def create_contact_submission(name: str, email: str, subject: str, message: str) -> int:
    db = await get_db()
    cur = await db.execute(
        """INSERT INTO contact_submissions (name, email, subject, message, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (name, email, subject, message, int(time.time())),
    )
    await db.commit()
    return cur.lastrowid


async def list_contact_submissions() -> list[aiosqlite.Row]:
    db = await get_db()
    async with db.execute("SELECT * FROM contact_submissions ORDER BY created_at DESC, id DESC") as cur:
        return await cur.fetchall()


async def mark_contact_read(submission_id: int, is_read: bool = True) -> bool:
    db = await get_db()
    cur = await db.execute(
        "UPDATE contact_submissions SET is_read = ? WHERE id = ?",
        (int(is_read), submission_id),
    )
    await db.commit()
    return cur.rowcount > 0


async def delete_contact_submission(submission_id: int) -> bool:
    db = await get_db()
    cur = await db.execute("DELETE FROM contact_submissions WHERE id = ?", (submission_id,))
    await db.commit()
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Newsletter
# ---------------------------------------------------------------------------

async def add_newsletter_subscriber(email: str) -> None:
    """Raises DuplicateError when the address is already subscribed."""
    await _write(
        "INSERT INTO newsletter_subscribers (email, created_at) VALUES (?, ?)",
        (email, int(time.time())),
    )


async def list_newsletter_subscribers() -> list[aiosqlite.Row]:
    db = await get_db()
    async with db.execute("SELECT * FROM newsletter_subscribers ORDER BY created_at DESC, id DESC") as cur:
        return await cur.fetchall()


async def delete_newsletter_subscriber(subscriber_id: int) -> bool:
    db = await get_db()
    cur = await db.execute("DELETE FROM newsletter_subscribers WHERE id = ?", (subscriber_id,))
    await db.commit()
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

async def get_reaction_summary(post_id: str, session_id: str | None = None) -> tuple[dict[str, int], str | None]:
    db = await get_db()
    async with db.execute(
        "SELECT reaction_type, session_id FROM post_reactions WHERE post_id = ?",
        (post_id,),
    ) as cur:
        rows = await cur.fetchall()
    totals: dict[str, int] = {}
    user_reaction: str | None = None
    for r in rows:
        totals[r["reaction_type"]] = totals.get(r["reaction_type"], 0) + 1
        if session_id and r["session_id"] == session_id:
            user_reaction = r["reaction_type"]
    return totals, user_reaction


async def count_reactions_since(ip_hash: str, since: int) -> int:
    db = await get_db()
    async with db.execute(
        "SELECT COUNT(*) FROM post_reactions WHERE ip_hash = ? AND created_at >= ?",
        (ip_hash, since),
    ) as cur:
        row = await cur.fetchone()
    return row[0]


async def set_reaction(post_id: str, session_id: str, reaction_type: str, ip_hash: str) -> None:
    """Insert or replace the session's reaction on a post in a single statement."""
    db = await get_db()
    await db.execute(
        """INSERT INTO post_reactions (post_id, reaction_type, session_id, ip_hash, created_at)
           VALUES (?, ?, ?, ?, ?)
           ON CONFLICT (post_id, session_id) DO UPDATE SET
               reaction_type = excluded.reaction_type,
               ip_hash = excluded.ip_hash,
               created_at = excluded.created_at""",
        (post_id, reaction_type, session_id, ip_hash, int(time.time())),
    )
    await db.commit()


async def remove_reaction(post_id: str, session_id: str) -> None:
    db = await get_db()
    await db.execute(
        "DELETE FROM post_reactions WHERE post_id = ? AND session_id = ?",
        (post_id, session_id),
    )
    await db.commit()


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

async def cleanup_old_data() -> None:
    """Delete expired admin sessions."""
    db = await get_db()
    await db.execute("DELETE FROM admin_sessions WHERE expires_at < ?", (int(time.time()),))
    await db.commit()
