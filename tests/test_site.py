"""Tests for the server-rendered site, sitemap, robots.txt and RSS feed."""
from xml.etree import ElementTree as ET

from app import database as db

SITEMAP_NS = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}


async def test_home_renders_category_sections(client, sample_post):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "Hello Gecko" in resp.text
    assert "Engineering" in resp.text
    assert "hero-centered" in resp.text
    assert "card-classic" in resp.text
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["X-Frame-Options"] == "DENY"


async def test_home_uses_configured_theme_variants(client, sample_post):
    await db.update_site_settings({"hero_variant": "minimal", "card_variant": "modern"})
    resp = await client.get("/")
    assert "hero-minimal" in resp.text
    assert "card-modern" in resp.text
    assert "hero-centered" not in resp.text


async def test_home_falls_back_for_unknown_variant(client, sample_post):
    conn = await db.get_db()
    await conn.execute("UPDATE site_settings SET hero_variant = 'retired' WHERE id = 1")
    await conn.commit()
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "hero-centered" in resp.text


async def test_home_without_posts(client, test_db):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "No posts yet." in resp.text


async def test_blog_post_page(client, sample_post):
    comment_id = await db.create_comment(sample_post["id"], "Grace", "grace@geckomail.org", "<b>bold?</b>")
    await db.set_comment_approved(comment_id, True)

    resp = await client.get("/blog/hello-gecko")
    assert resp.status_code == 200
    assert "<p>Geckos can climb glass.</p>" in resp.text
    assert "reptiles" in resp.text
    # Comments are plain text and escaped on render
    assert "&lt;b&gt;bold?&lt;/b&gt;" in resp.text
    assert 'href="https://blog.test/blog/hello-gecko"' in resp.text


async def test_draft_post_is_404(client, draft_post):
    resp = await client.get("/blog/unfinished")
    assert resp.status_code == 404
    assert "Page not found" in resp.text


async def test_category_pages(client, sample_post):
    resp = await client.get("/categories")
    assert resp.status_code == 200
    assert "/categories/engineering" in resp.text

    resp = await client.get("/categories/engineering")
    assert resp.status_code == 200
    assert "Hello Gecko" in resp.text

    assert (await client.get("/categories/missing")).status_code == 404


async def test_static_page(client, test_db):
    await db.create_page(title="About", slug="about", content="<p>Who we are</p>", published=True)
    await db.create_page(title="Secret", slug="secret", content="<p>Hidden</p>")
    resp = await client.get("/page/about")
    assert resp.status_code == 200
    assert "Who we are" in resp.text
    assert (await client.get("/page/secret")).status_code == 404


async def test_search(client, sample_post):
    resp = await client.get("/search?q=climb")
    assert resp.status_code == 200
    assert "Hello Gecko" in resp.text
    assert "1 result for" in resp.text

    resp = await client.get("/search")
    assert resp.status_code == 200
    assert "result" not in resp.text


async def test_contact_page(client, test_db):
    resp = await client.get("/contact")
    assert resp.status_code == 200
    assert 'data-endpoint="/api/contact"' in resp.text


async def test_sitemap(client, sample_post, draft_post):
    await db.create_page(title="About", slug="about", content="", published=True)
    resp = await client.get("/sitemap.xml")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/xml")

    root = ET.fromstring(resp.text)
    locs = [el.text for el in root.findall("sm:url/sm:loc", SITEMAP_NS)]
    assert locs == [
        "https://blog.test",
        "https://blog.test/categories",
        "https://blog.test/contact",
        "https://blog.test/blog/hello-gecko",
        "https://blog.test/categories/engineering",
        "https://blog.test/page/about",
    ]


async def test_sitemap_prefers_site_settings_url(client, test_db):
    await db.update_site_settings({"site_url": "https://gecko.example/"})
    resp = await client.get("/sitemap.xml")
    assert "<loc>https://gecko.example</loc>" in resp.text


async def test_robots(client, test_db):
    resp = await client.get("/robots.txt")
    assert resp.status_code == 200
    assert "Disallow: /admin/" in resp.text
    assert "Disallow: /api/" in resp.text
    assert "Sitemap: https://blog.test/sitemap.xml" in resp.text


async def test_rss_feed(client, sample_post, draft_post):
    resp = await client.get("/feed.xml")
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "public, max-age=3600, s-maxage=3600"

    channel = ET.fromstring(resp.text).find("channel")
    items = channel.findall("item")
    assert len(items) == 1
    assert items[0].findtext("title") == "Hello Gecko"
    assert items[0].findtext("link") == "https://blog.test/blog/hello-gecko"
    assert items[0].findtext("category") == "Engineering"


async def test_health(client, test_db):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok", "db": "accessible"}


async def test_header_and_footer_menus(client, test_db):
    about = await db.create_page(title="About", slug="about", content="<p>Hi</p>", published=True)
    more = await db.create_menu_item(label="Resources", location="header")
    await db.create_menu_item(label="About us", page_id=about["id"], parent_id=more["id"])
    await db.create_menu_item(label="Source", url="https://github.com/geckopress", location="footer", open_in_new_tab=True)

    resp = await client.get("/page/about")
    assert resp.status_code == 200
    assert "nav-dropdown" in resp.text
    assert "Resources" in resp.text
    assert 'href="/page/about"' in resp.text
    assert 'href="https://github.com/geckopress" target="_blank" rel="noopener noreferrer"' in resp.text


async def test_footer_falls_back_without_menu(client, test_db):
    resp = await client.get("/contact")
    assert 'class="footer-nav"' in resp.text
    assert "footer-link" not in resp.text
