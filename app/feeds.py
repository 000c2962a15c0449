"""Sitemap, robots.txt and RSS feed generation."""
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Iterable, Mapping
from xml.etree import ElementTree as ET

from app.content import strip_html

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
ATOM_NS = "http://www.w3.org/2005/Atom"
FEED_LIMIT = 50
FEED_DESCRIPTION_LENGTH = 300


def _iso(ts: int | None) -> str:
    dt = datetime.fromtimestamp(ts, tz=timezone.utc) if ts else datetime.now(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S+00:00")


def _rfc822(ts: int | None) -> str:
    dt = datetime.fromtimestamp(ts, tz=timezone.utc) if ts else datetime.now(timezone.utc)
    return format_datetime(dt, usegmt=True)


def _to_xml(root: ET.Element) -> str:
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode")


def sitemap_entries(
    base_url: str,
    posts: Iterable[Mapping[str, Any]],
    categories: Iterable[Mapping[str, Any]],
    pages: Iterable[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = [
        {"loc": base_url, "lastmod": None, "changefreq": "daily", "priority": 1.0},
        {"loc": f"{base_url}/categories", "lastmod": None, "changefreq": "weekly", "priority": 0.8},
        {"loc": f"{base_url}/contact", "lastmod": None, "changefreq": "monthly", "priority": 0.5},
    ]
    for post in posts:
        entries.append({
            "loc": f"{base_url}/blog/{post['slug']}",
            "lastmod": post["updated_at"] or post["published_at"],
            "changefreq": "weekly",
            "priority": 0.7,
        })
    for category in categories:
        entries.append({
            "loc": f"{base_url}/categories/{category['slug']}",
            "lastmod": None,
            "changefreq": "weekly",
            "priority": 0.6,
        })
    for page in pages:
        entries.append({
            "loc": f"{base_url}/page/{page['slug']}",
            "lastmod": page["updated_at"],
            "changefreq": "monthly",
            "priority": 0.5,
        })
    return entries


def render_sitemap(entries: Iterable[Mapping[str, Any]]) -> str:
    urlset = ET.Element("urlset", xmlns=SITEMAP_NS)
    for entry in entries:
        url = ET.SubElement(urlset, "url")
        ET.SubElement(url, "loc").text = entry["loc"]
        ET.SubElement(url, "lastmod").text = _iso(entry["lastmod"])
        ET.SubElement(url, "changefreq").text = entry["changefreq"]
        ET.SubElement(url, "priority").text = f"{entry['priority']:.1f}"
    return _to_xml(urlset)


def render_robots(base_url: str) -> str:
    return "\n".join([
        "User-agent: *",
        "Allow: /",
        "Disallow: /admin/",
        "Disallow: /login",
        "Disallow: /api/",
        "",
        f"Sitemap: {base_url}/sitemap.xml",
        "",
    ])


def render_rss(
    base_url: str,
    title: str,
    posts: Iterable[Mapping[str, Any]],
    description: str = "Latest articles and news",
) -> str:
    ET.register_namespace("atom", ATOM_NS)
    rss = ET.Element("rss", version="2.0")
    channel = ET.SubElement(rss, "channel")
    ET.SubElement(channel, "title").text = title
    ET.SubElement(channel, "link").text = base_url
    ET.SubElement(channel, "description").text = description
    ET.SubElement(channel, "language").text = "en"
    ET.SubElement(channel, "lastBuildDate").text = _rfc822(None)
    ET.SubElement(
        channel,
        f"{{{ATOM_NS}}}link",
        href=f"{base_url}/feed.xml",
        rel="self",
        type="application/rss+xml",
    )

    for post in list(posts)[:FEED_LIMIT]:
        post_url = f"{base_url}/blog/{post['slug']}"
        item = ET.SubElement(channel, "item")
        ET.SubElement(item, "title").text = post["title"]
        ET.SubElement(item, "link").text = post_url
        ET.SubElement(item, "guid", isPermaLink="true").text = post_url
        ET.SubElement(item, "description").text = (
            post["excerpt"] or strip_html(post["content"])[:FEED_DESCRIPTION_LENGTH]
        )
        ET.SubElement(item, "pubDate").text = _rfc822(post["published_at"] or post["created_at"])
        if post["category_name"]:
            ET.SubElement(item, "category").text = post["category_name"]
        if post["cover_image"]:
            ET.SubElement(item, "enclosure", url=post["cover_image"], type="image/jpeg")
    return _to_xml(rss)
