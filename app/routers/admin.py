"""Admin API router: login, content CRUD, moderation, inbox, site settings."""
import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app import database as db
from app.auth import SESSION_COOKIE, require_admin, verify_password
from app.config import settings
from app.content import calculate_reading_time, make_excerpt, slugify
from app.models import (
    AdminLoginRequest,
    CategoryCreateRequest,
    CategoryUpdateRequest,
    MenuItemCreateRequest,
    MenuItemUpdateRequest,
    PageCreateRequest,
    PageUpdateRequest,
    PostCreateRequest,
    PostUpdateRequest,
    SiteSettingsUpdateRequest,
)
from app.rate_limiter import RateLimiter, rate_limit_key
from app.sanitize import sanitize_html

router = APIRouter(prefix="/admin")

# Admin session lifetime: 24 hours.
ADMIN_SESSION_TTL = 86400

# 5 login attempts per minute per client
LOGIN_MAX_ATTEMPTS = 5
LOGIN_WINDOW_MS = 60 * 1000
_login_limiter = RateLimiter()

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@router.post("/login")
async def login(body: AdminLoginRequest, request: Request, response: Response) -> dict:
    result = await _login_limiter.check(rate_limit_key("login", request), LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_MS)
    if not result.allowed:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many login attempts")

    if body.username != settings.admin_username or not await verify_password(body.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    forwarded_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip()
    is_https = request.url.scheme == "https" or forwarded_proto == "https"
    session_id = await db.create_admin_session(ttl_seconds=ADMIN_SESSION_TTL)
    response.set_cookie(
        SESSION_COOKIE,
        session_id,
        httponly=True,
        samesite="strict",
        secure=is_https,
        max_age=ADMIN_SESSION_TTL,
    )
    return {"ok": True}


@router.post("/logout")
async def logout(response: Response, session_id: str = Depends(require_admin)) -> dict:
    await db.delete_admin_session(session_id)
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _post_to_response(row: Any) -> dict:
    post = dict(row)
    post["published"] = bool(post["published"])
    post["tags"] = json.loads(post["tags"]) if post["tags"] else []
    return post


def _conflict(slug: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Slug '{slug}' already exists")


def _updates(body: Any, *not_null: str) -> dict[str, Any]:
    """Explicitly-set fields, ignoring nulls sent for NOT NULL columns."""
    fields = body.model_dump(exclude_unset=True)
    return {k: v for k, v in fields.items() if not (k in not_null and v is None)}


async def _require_category(category_id: str | None) -> None:
    if category_id is not None and not await db.get_category_by_id(category_id):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown category")


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

@router.get("/posts")
async def list_posts(_: str = Depends(require_admin)) -> list[dict]:
    return [_post_to_response(r) for r in await db.list_posts(published_only=False)]


@router.post("/posts", status_code=status.HTTP_201_CREATED)
async def create_post(body: PostCreateRequest, _: str = Depends(require_admin)) -> dict:
    await _require_category(body.category_id)
    slug = body.slug or slugify(body.title)
    if not slug:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Cannot derive slug from title")
    content = sanitize_html(body.content)
    try:
        row = await db.create_post(
            title=body.title,
            slug=slug,
            content=content,
            excerpt=body.excerpt or make_excerpt(content),
            reading_time=calculate_reading_time(content),
            author_name=body.author_name or settings.author_name,
            category_id=body.category_id,
            cover_image=body.cover_image,
            published=body.published,
            meta_description=body.meta_description,
            tags=body.tags,
        )
    except db.DuplicateError:
        raise _conflict(slug)
    return _post_to_response(row)


@router.get("/posts/{post_id}")
async def get_post(post_id: str, _: str = Depends(require_admin)) -> dict:
    row = await db.get_post_by_id(post_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return _post_to_response(row)


@router.patch("/posts/{post_id}")
async def update_post(post_id: str, body: PostUpdateRequest, _: str = Depends(require_admin)) -> dict:
    if not await db.get_post_by_id(post_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    fields = _updates(body, "title", "slug", "content", "excerpt", "author_name", "published")
    if "category_id" in fields:
        await _require_category(fields["category_id"])
    if "content" in fields:
        fields["content"] = sanitize_html(fields["content"])
        fields["reading_time"] = calculate_reading_time(fields["content"])
    try:
        row = await db.update_post(post_id, fields)
    except db.DuplicateError:
        raise _conflict(fields.get("slug", ""))
    return _post_to_response(row)


@router.delete("/posts/{post_id}")
async def delete_post(post_id: str, _: str = Depends(require_admin)) -> dict:
    if not await db.get_post_by_id(post_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    await db.delete_post(post_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

def _page_to_response(row: Any) -> dict:
    page = dict(row)
    page["published"] = bool(page["published"])
    return page


@router.get("/pages")
async def list_pages(_: str = Depends(require_admin)) -> list[dict]:
    return [_page_to_response(r) for r in await db.list_pages(published_only=False)]


@router.post("/pages", status_code=status.HTTP_201_CREATED)
async def create_page(body: PageCreateRequest, _: str = Depends(require_admin)) -> dict:
    slug = body.slug or slugify(body.title)
    if not slug:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Cannot derive slug from title")
    try:
        row = await db.create_page(
            title=body.title,
            slug=slug,
            content=sanitize_html(body.content),
            meta_description=body.meta_description,
            published=body.published,
        )
    except db.DuplicateError:
        raise _conflict(slug)
    return _page_to_response(row)


@router.patch("/pages/{page_id}")
async def update_page(page_id: str, body: PageUpdateRequest, _: str = Depends(require_admin)) -> dict:
    if not await db.get_page_by_id(page_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    fields = _updates(body, "title", "slug", "content", "published")
    if "content" in fields:
        fields["content"] = sanitize_html(fields["content"])
    try:
        row = await db.update_page(page_id, fields)
    except db.DuplicateError:
        raise _conflict(fields.get("slug", ""))
    return _page_to_response(row)


@router.delete("/pages/{page_id}")
async def delete_page(page_id: str, _: str = Depends(require_admin)) -> dict:
    if not await db.get_page_by_id(page_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    await db.delete_page(page_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@router.get("/categories")
async def list_categories(_: str = Depends(require_admin)) -> list[dict]:
    return [dict(r) for r in await db.list_categories()]


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(body: CategoryCreateRequest, _: str = Depends(require_admin)) -> dict:
    slug = body.slug or slugify(body.name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Cannot derive slug from name")
    try:
        row = await db.create_category(
            name=body.name,
            slug=slug,
            description=body.description,
            show_on_homepage=body.show_on_homepage,
        )
    except db.DuplicateError:
        raise _conflict(slug)
    return dict(row)


@router.patch("/categories/{category_id}")
async def update_category(category_id: str, body: CategoryUpdateRequest, _: str = Depends(require_admin)) -> dict:
    if not await db.get_category_by_id(category_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    fields = _updates(body, "name", "slug", "show_on_homepage")
    if "show_on_homepage" in fields:
        fields["show_on_homepage"] = int(fields["show_on_homepage"])
    try:
        row = await db.update_category(category_id, fields)
    except db.DuplicateError:
        raise _conflict(fields.get("slug", ""))
    return dict(row)


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, _: str = Depends(require_admin)) -> dict:
    if not await db.get_category_by_id(category_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    await db.delete_category(category_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Navigation menu
# ---------------------------------------------------------------------------

def _menu_item_to_response(row: Any) -> dict:
    item = dict(row)
    item["open_in_new_tab"] = bool(item["open_in_new_tab"])
    return item


async def _check_menu_links(page_id: str | None, parent_id: str | None, item_id: str | None = None) -> None:
    if page_id is not None and not await db.get_page_by_id(page_id):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown page")
    if parent_id is None:
        return
    if parent_id == item_id:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="A menu item cannot be its own parent")
    parent = await db.get_menu_item(parent_id)
    # Menus nest one level: children hang off a top-level dropdown.
    if not parent or parent["parent_id"] is not None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown parent menu item")


@router.get("/menu")
async def list_menu_items(_: str = Depends(require_admin)) -> list[dict]:
    return [_menu_item_to_response(r) for r in await db.list_menu_items()]


@router.post("/menu", status_code=status.HTTP_201_CREATED)
async def create_menu_item(body: MenuItemCreateRequest, _: str = Depends(require_admin)) -> dict:
    await _check_menu_links(body.page_id, body.parent_id)
    row = await db.create_menu_item(
        label=body.label,
        url=body.url or "",
        page_id=body.page_id,
        parent_id=body.parent_id,
        location=body.location,
        open_in_new_tab=body.open_in_new_tab,
        position=body.position,
    )
    return _menu_item_to_response(row)


@router.patch("/menu/{item_id}")
async def update_menu_item(item_id: str, body: MenuItemUpdateRequest, _: str = Depends(require_admin)) -> dict:
    if not await db.get_menu_item(item_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    fields = _updates(body, "label", "location", "position", "open_in_new_tab")
    await _check_menu_links(fields.get("page_id"), fields.get("parent_id"), item_id)
    if "url" in fields:
        fields["url"] = fields["url"] or ""
    # Switching the link target clears the other one.
    if fields.get("page_id"):
        fields["url"] = ""
    elif fields.get("url"):
        fields["page_id"] = None
    row = await db.update_menu_item(item_id, fields)
    return _menu_item_to_response(row)


@router.delete("/menu/{item_id}")
async def delete_menu_item(item_id: str, _: str = Depends(require_admin)) -> dict:
    if not await db.delete_menu_item(item_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Comment moderation
# ---------------------------------------------------------------------------

@router.get("/comments")
async def list_comments(approved: bool | None = None, _: str = Depends(require_admin)) -> list[dict]:
    return [{**dict(r), "is_approved": bool(r["is_approved"])} for r in await db.list_comments(approved)]


@router.post("/comments/{comment_id}/approve")
async def approve_comment(comment_id: str, _: str = Depends(require_admin)) -> dict:
    if not await db.get_comment(comment_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    await db.set_comment_approved(comment_id, True)
    return {"ok": True}


@router.post("/comments/{comment_id}/unapprove")
async def unapprove_comment(comment_id: str, _: str = Depends(require_admin)) -> dict:
    if not await db.get_comment(comment_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    await db.set_comment_approved(comment_id, False)
    return {"ok": True}


@router.delete("/comments/{comment_id}")
async def delete_comment(comment_id: str, _: str = Depends(require_admin)) -> dict:
    if not await db.get_comment(comment_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    await db.delete_comment(comment_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Contact inbox and newsletter
# ---------------------------------------------------------------------------

@router.get("/contacts")
async def list_contacts(_: str = Depends(require_admin)) -> list[dict]:
    return [{**dict(r), "is_read": bool(r["is_read"])} for r in await db.list_contact_submissions()]


@router.post("/contacts/{submission_id}/read")
async def mark_contact_read(submission_id: int, _: str = Depends(require_admin)) -> dict:
    if not await db.mark_contact_read(submission_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"ok": True}


@router.delete("/contacts/{submission_id}")
async def delete_contact(submission_id: int, _: str = Depends(require_admin)) -> dict:
    if not await db.delete_contact_submission(submission_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"ok": True}


@router.get("/newsletter")
async def list_subscribers(_: str = Depends(require_admin)) -> list[dict]:
    return [dict(r) for r in await db.list_newsletter_subscribers()]


@router.delete("/newsletter/{subscriber_id}")
async def delete_subscriber(subscriber_id: int, _: str = Depends(require_admin)) -> dict:
    if not await db.delete_newsletter_subscriber(subscriber_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------

@router.get("/settings")
async def get_settings(_: str = Depends(require_admin)) -> dict:
    return dict(await db.get_site_settings())


@router.patch("/settings")
async def update_settings(body: SiteSettingsUpdateRequest, _: str = Depends(require_admin)) -> dict:
    row = await db.update_site_settings(_updates(body, "hero_variant", "card_variant"))
    return dict(row)
