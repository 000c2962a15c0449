"""Tests for database CRUD operations."""
import asyncio
import time

import pytest

from app import database as db


# ---------------------------------------------------------------------------
# Admin sessions
# ---------------------------------------------------------------------------

async def test_create_admin_session(test_db):
    session_id = await db.create_admin_session(ttl_seconds=3600)
    assert len(session_id) == 64  # two uuid4.hex concatenated


async def test_get_expired_admin_session_returns_none(test_db):
    conn = await db.get_db()
    now = int(time.time())
    await conn.execute(
        "INSERT INTO admin_sessions (id, created_at, expires_at) VALUES (?, ?, ?)",
        ("expired-session", now - 100, now - 1),
    )
    await conn.commit()
    assert await db.get_admin_session("expired-session") is None


async def test_cleanup_old_data_removes_expired_sessions(test_db):
    conn = await db.get_db()
    now = int(time.time())
    await conn.execute(
        "INSERT INTO admin_sessions (id, created_at, expires_at) VALUES (?, ?, ?)",
        ("old", now - 100, now - 10),
    )
    await conn.commit()
    live = await db.create_admin_session(ttl_seconds=3600)

    await db.cleanup_old_data()

    async with conn.execute("SELECT id FROM admin_sessions") as cur:
        ids = [r["id"] for r in await cur.fetchall()]
    assert ids == [live]


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------

async def test_migrations_create_schema_and_rerun_cleanly(test_db):
    db.run_migrations()
    async with test_db.execute(
        "SELECT name FROM sqlite_master WHERE name IN ('menu_items', 'idx_post_reactions_session')"
    ) as cur:
        names = {r["name"] for r in await cur.fetchall()}
    assert names == {"menu_items", "idx_post_reactions_session"}
    async with test_db.execute("SELECT version_num FROM alembic_version") as cur:
        assert (await cur.fetchone())[0] == "003"


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------

async def test_site_settings_seeded_with_defaults(test_db):
    site = await db.get_site_settings()
    assert site["hero_variant"] == "centered"
    assert site["card_variant"] == "classic"


async def test_update_site_settings(test_db):
    site = await db.update_site_settings({"hero_variant": "minimal", "blog_name": "Gecko Notes"})
    assert site["hero_variant"] == "minimal"
    assert site["blog_name"] == "Gecko Notes"


async def test_update_site_settings_rejects_unknown_column(test_db):
    with pytest.raises(ValueError):
        await db.update_site_settings({"id": 2})


# ---------------------------------------------------------------------------
# Categories and posts
# ---------------------------------------------------------------------------

async def test_duplicate_category_slug(sample_category):
    with pytest.raises(db.DuplicateError):
        await db.create_category(name="Other", slug="engineering")


async def test_list_categories_counts_only_published(sample_category, sample_post, test_db):
    await db.create_post(
        title="Draft", slug="draft", content="", author_name="Ada",
        category_id=sample_category["id"], published=False,
    )
    rows = await db.list_categories()
    assert [(r["slug"], r["post_count"]) for r in rows] == [("engineering", 1)]


async def test_create_post_sets_published_at(sample_post):
    assert sample_post["published"] == 1
    assert sample_post["published_at"] is not None
    assert sample_post["category_slug"] == "engineering"


async def test_draft_not_visible_publicly(draft_post):
    assert await db.get_post_by_slug("unfinished") is None
    assert (await db.get_post_by_slug("unfinished", published_only=False))["id"] == draft_post["id"]


async def test_publishing_draft_sets_published_at(draft_post):
    assert draft_post["published_at"] is None
    row = await db.update_post(draft_post["id"], {"published": True})
    assert row["published"] == 1
    assert row["published_at"] is not None


async def test_update_post_tags_serialized(sample_post):
    row = await db.update_post(sample_post["id"], {"tags": ["a", "b"]})
    assert row["tags"] == '["a", "b"]'


async def test_duplicate_post_slug(sample_post):
    with pytest.raises(db.DuplicateError):
        await db.create_post(title="Again", slug="hello-gecko", content="", author_name="Ada")


async def test_search_posts_matches_title_and_content(sample_post, draft_post):
    assert [r["slug"] for r in await db.search_posts("glass")] == ["hello-gecko"]
    assert [r["slug"] for r in await db.search_posts("HELLO")] == ["hello-gecko"]
    # drafts never match
    assert await db.search_posts("progress") == []


async def test_search_escapes_like_wildcards(sample_post):
    assert await db.search_posts("%") == []


async def test_related_posts_same_category(sample_category, sample_post):
    other = await db.create_post(
        title="Second", slug="second", content="", author_name="Ada",
        category_id=sample_category["id"], published=True,
    )
    related = await db.get_related_posts(sample_post["id"], sample_category["id"])
    assert [r["id"] for r in related] == [other["id"]]


async def test_deleting_category_keeps_posts(sample_category, sample_post):
    await db.delete_category(sample_category["id"])
    row = await db.get_post_by_id(sample_post["id"])
    assert row is not None
    assert row["category_id"] is None


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

async def test_comments_are_unapproved_until_moderated(sample_post):
    comment_id = await db.create_comment(sample_post["id"], "Grace", "grace@geckomail.org", "Nice")
    assert await db.list_approved_comments(sample_post["id"]) == []

    await db.set_comment_approved(comment_id, True)
    comments = await db.list_approved_comments(sample_post["id"])
    assert [c["id"] for c in comments] == [comment_id]
    assert "author_email" not in comments[0]


async def test_approved_comments_are_threaded(sample_post):
    root = await db.create_comment(sample_post["id"], "Grace", "g@geckomail.org", "Root")
    reply = await db.create_comment(sample_post["id"], "Ada", "a@geckomail.org", "Reply", parent_id=root)
    orphan = await db.create_comment(sample_post["id"], "Lin", "l@geckomail.org", "Hidden parent", parent_id=reply)
    await db.set_comment_approved(root, True)
    await db.set_comment_approved(orphan, True)

    tree = await db.list_approved_comments(sample_post["id"])
    # The orphan's parent is not approved, so it is not shown at all
    assert [c["id"] for c in tree] == [root]
    assert tree[0]["replies"] == []

    await db.set_comment_approved(reply, True)
    tree = await db.list_approved_comments(sample_post["id"])
    assert tree[0]["replies"][0]["id"] == reply
    assert tree[0]["replies"][0]["replies"][0]["id"] == orphan


# ---------------------------------------------------------------------------
# Newsletter, contact, reactions
# ---------------------------------------------------------------------------

async def test_newsletter_duplicate(test_db):
    await db.add_newsletter_subscriber("reader@geckomail.org")
    with pytest.raises(db.DuplicateError):
        await db.add_newsletter_subscriber("reader@geckomail.org")
    assert len(await db.list_newsletter_subscribers()) == 1


async def test_contact_submission_lifecycle(test_db):
    sid = await db.create_contact_submission("Ada", "ada@geckomail.org", "Hi", "A message body")
    assert await db.mark_contact_read(sid) is True
    rows = await db.list_contact_submissions()
    assert rows[0]["is_read"] == 1
    assert await db.delete_contact_submission(sid) is True
    assert await db.delete_contact_submission(sid) is False


async def test_set_reaction_replaces_previous(sample_post):
    await db.set_reaction(sample_post["id"], "session-1", "clap", "hash-a")
    await db.set_reaction(sample_post["id"], "session-1", "fire", "hash-a")
    await db.set_reaction(sample_post["id"], "session-2", "fire", "hash-b")

    totals, mine = await db.get_reaction_summary(sample_post["id"], "session-1")
    assert totals == {"fire": 2}
    assert mine == "fire"


async def test_set_reaction_alongside_other_writes(sample_post):
    submission_id, _ = await asyncio.gather(
        db.create_contact_submission("Ada", "ada@geckomail.org", "Hi", "A message body"),
        db.set_reaction(sample_post["id"], "sess-1", "clap", "hash-a"),
    )
    assert submission_id is not None
    totals, mine = await db.get_reaction_summary(sample_post["id"], "sess-1")
    assert totals == {"clap": 1}
    assert mine == "clap"


async def test_concurrent_reactions_from_one_session_keep_one_row(sample_post):
    await asyncio.gather(
        *(db.set_reaction(sample_post["id"], "sess-1", kind, "hash-a") for kind in ("clap", "fire", "heart"))
    )
    totals, mine = await db.get_reaction_summary(sample_post["id"], "sess-1")
    assert sum(totals.values()) == 1
    assert mine in {"clap", "fire", "heart"}


async def test_count_reactions_since(sample_post):
    await db.set_reaction(sample_post["id"], "s1", "clap", "hash-a")
    await db.set_reaction(sample_post["id"], "s2", "clap", "hash-a")
    await db.set_reaction(sample_post["id"], "s3", "clap", "hash-b")
    now = int(time.time())
    assert await db.count_reactions_since("hash-a", now - 3600) == 2
    assert await db.count_reactions_since("hash-a", now + 10) == 0


async def test_remove_reaction(sample_post):
    await db.set_reaction(sample_post["id"], "s1", "heart", "hash-a")
    await db.remove_reaction(sample_post["id"], "s1")
    totals, mine = await db.get_reaction_summary(sample_post["id"], "s1")
    assert totals == {}
    assert mine is None


# ---------------------------------------------------------------------------
# Navigation menu
# ---------------------------------------------------------------------------

async def test_menu_tree_by_location(test_db):
    about = await db.create_page(title="About", slug="about", content="", published=True)
    more = await db.create_menu_item(label="More", location="header")
    await db.create_menu_item(label="About", page_id=about["id"], parent_id=more["id"], location="header")
    await db.create_menu_item(label="GitHub", url="https://github.com/geckopress", location="both", open_in_new_tab=True)
    await db.create_menu_item(label="Privacy", url="/page/privacy", location="footer")

    header = await db.get_menu("header")
    assert [i["label"] for i in header] == ["More", "GitHub"]
    assert header[0]["href"] is None
    assert [(c["label"], c["href"]) for c in header[0]["children"]] == [("About", "/page/about")]
    assert header[1]["open_in_new_tab"] is True

    footer = await db.get_menu("footer")
    assert [(i["label"], i["href"]) for i in footer] == [
        ("GitHub", "https://github.com/geckopress"),
        ("Privacy", "/page/privacy"),
    ]


async def test_menu_positions_append_and_order(test_db):
    first = await db.create_menu_item(label="First", url="/a")
    second = await db.create_menu_item(label="Second", url="/b")
    assert (first["position"], second["position"]) == (0, 1)

    await db.update_menu_item(second["id"], {"position": 0})
    await db.update_menu_item(first["id"], {"position": 1})
    assert [i["label"] for i in await db.get_menu("header")] == ["Second", "First"]


async def test_menu_hides_unpublished_page_links(test_db):
    draft = await db.create_page(title="Draft", slug="draft", content="")
    await db.create_menu_item(label="Draft", page_id=draft["id"])
    assert await db.get_menu("header") == []


async def test_deleting_menu_parent_removes_children(test_db):
    parent = await db.create_menu_item(label="More")
    child = await db.create_menu_item(label="Docs", url="/docs", parent_id=parent["id"])
    assert await db.delete_menu_item(parent["id"]) is True
    assert await db.get_menu_item(child["id"]) is None
    assert await db.delete_menu_item(parent["id"]) is False


async def test_deleting_page_removes_its_menu_link(test_db):
    page = await db.create_page(title="About", slug="about", content="", published=True)
    item = await db.create_menu_item(label="About", page_id=page["id"])
    await db.delete_page(page["id"])
    assert await db.get_menu_item(item["id"]) is None
