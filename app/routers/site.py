"""Public site: server-rendered blog pages, sitemap, robots.txt and RSS feed."""
import json
from typing import Any

from fastapi import APIRouter, Path, Query, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

from app import database as db
from app import feeds
from app.config import settings
from app.models import REACTION_TYPES
from app.theme import card_template, hero_template

router = APIRouter()

templates = Jinja2Templates(directory="templates")

HOME_POSTS_PER_CATEGORY = 6
FEED_CACHE_CONTROL = "public, max-age=3600, s-maxage=3600"


def _base_url(site: Any) -> str:
    return (site["site_url"] or settings.site_url).rstrip("/")


def _post_view(row: Any) -> dict[str, Any]:
    post = dict(row)
    post["tags"] = json.loads(post["tags"]) if post.get("tags") else []
    return post


async def _context(**extra: Any) -> dict[str, Any]:
    site = await db.get_site_settings()
    return {
        "site": site,
        "blog_name": site["blog_name"] or settings.blog_name,
        "base_url": _base_url(site),
        "card_template": card_template(site["card_variant"]),
        "header_menu": await db.get_menu("header"),
        "footer_menu": await db.get_menu("footer"),
        **extra,
    }


async def _not_found(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "not_found.html",
        await _context(),
        status_code=status.HTTP_404_NOT_FOUND,
    )


# ---------------------------------------------------------------------------
# HTML pages
# ---------------------------------------------------------------------------

@router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    context = await _context()
    sections = []
    for category in await db.list_categories():
        if not category["show_on_homepage"] or not category["post_count"]:
            continue
        posts = await db.list_posts(category_id=category["id"], limit=HOME_POSTS_PER_CATEGORY)
        sections.append({"category": category, "posts": [_post_view(p) for p in posts]})
    latest = [_post_view(p) for p in await db.list_posts(limit=HOME_POSTS_PER_CATEGORY)]
    context.update(
        hero_template=hero_template(context["site"]["hero_variant"]),
        sections=sections,
        latest=latest,
    )
    return templates.TemplateResponse(request, "home.html", context)


@router.get("/blog/{slug}", response_class=HTMLResponse)
async def blog_post(request: Request, slug: str = Path(max_length=64)):
    row = await db.get_post_by_slug(slug)
    if not row:
        return await _not_found(request)
    related = await db.get_related_posts(row["id"], row["category_id"])
    return templates.TemplateResponse(
        request,
        "post.html",
        await _context(
            post=_post_view(row),
            related=[_post_view(p) for p in related],
            comments=await db.list_approved_comments(row["id"]),
            reaction_types=REACTION_TYPES,
        ),
    )


@router.get("/categories", response_class=HTMLResponse)
async def categories(request: Request):
    return templates.TemplateResponse(
        request,
        "categories.html",
        await _context(categories=await db.list_categories()),
    )


@router.get("/categories/{slug}", response_class=HTMLResponse)
async def category_page(request: Request, slug: str = Path(max_length=64)):
    category = await db.get_category_by_slug(slug)
    if not category:
        return await _not_found(request)
    posts = await db.list_posts(category_id=category["id"])
    return templates.TemplateResponse(
        request,
        "category.html",
        await _context(category=category, posts=[_post_view(p) for p in posts]),
    )


@router.get("/page/{slug}", response_class=HTMLResponse)
async def static_page(request: Request, slug: str = Path(max_length=64)):
    page = await db.get_page_by_slug(slug)
    if not page:
        return await _not_found(request)
    return templates.TemplateResponse(request, "page.html", await _context(page=page))


@router.get("/search", response_class=HTMLResponse)
async def search(request: Request, q: str = Query(default="", max_length=200)):
    query = q.strip()
    results = [_post_view(p) for p in await db.search_posts(query)] if query else []
    return templates.TemplateResponse(
        request,
        "search.html",
        await _context(query=query, results=results),
    )


@router.get("/contact", response_class=HTMLResponse)
async def contact(request: Request):
    return templates.TemplateResponse(request, "contact.html", await _context())


# ---------------------------------------------------------------------------
# Machine-readable
# ---------------------------------------------------------------------------

@router.get("/sitemap.xml")
async def sitemap():
    site = await db.get_site_settings()
    entries = feeds.sitemap_entries(
        _base_url(site),
        posts=await db.list_posts(),
        categories=await db.list_categories(),
        pages=await db.list_pages(),
    )
    return Response(feeds.render_sitemap(entries), media_type="application/xml")


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots():
    site = await db.get_site_settings()
    return feeds.render_robots(_base_url(site))


@router.get("/feed.xml")
async def rss_feed():
    site = await db.get_site_settings()
    posts = await db.list_posts(limit=feeds.FEED_LIMIT)
    body = feeds.render_rss(
        _base_url(site),
        title=site["author_name"] or settings.author_name,
        posts=posts,
    )
    return Response(
        body,
        media_type="application/xml; charset=utf-8",
        headers={"Cache-Control": FEED_CACHE_CONTROL},
    )
