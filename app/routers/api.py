"""Public JSON API: visitor form submissions, reactions, version, publishing webhook."""
import json
import logging
import time
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from app import database as db
from app.auth import verify_webhook
from app.config import settings
from app.content import calculate_reading_time, make_excerpt
from app.models import (
    CommentForm,
    ContactForm,
    NewsletterForm,
    ReactionDeleteRequest,
    ReactionRequest,
    WebhookPostPayload,
)
from app.rate_limiter import derive_client_key, rate_limit_key, rate_limiter
from app.sanitize import sanitize_html

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

HOUR_MS = 60 * 60 * 1000
CONTACT_MAX_REQUESTS = 5
NEWSLETTER_MAX_REQUESTS = 5
COMMENT_MAX_REQUESTS = 10
MAX_REACTIONS_PER_HOUR = 30


class FormError(Exception):
    """Short-circuits a form handler with a JSON error body."""

    def __init__(self, status_code: int, error: str, details: Any = None) -> None:
        self.status_code = status_code
        self.error = error
        self.details = details


def _error(exc: FormError) -> JSONResponse:
    content: dict[str, Any] = {"error": exc.error}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def _enforce_rate_limit(request: Request, action: str, max_requests: int) -> None:
    key = rate_limit_key(action, request)
    result = await rate_limiter.check(key, max_requests, HOUR_MS)
    if not result.allowed:
        logger.info("Rate limit exceeded for %s", key)
        raise FormError(status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited")


async def _parse(request: Request, model: type[BaseModel], with_details: bool = True) -> Any:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise FormError(status.HTTP_400_BAD_REQUEST, "invalid_request")
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        details = exc.errors(include_url=False, include_context=False) if with_details else None
        raise FormError(status.HTTP_400_BAD_REQUEST, "validation_failed", details)


# ---------------------------------------------------------------------------
# Visitor forms
# ---------------------------------------------------------------------------

@router.post("/contact")
async def submit_contact(request: Request):
    try:
        await _enforce_rate_limit(request, "contact", CONTACT_MAX_REQUESTS)
        form: ContactForm = await _parse(request, ContactForm)
        try:
            await db.create_contact_submission(form.name, form.email, form.subject, form.message)
        except Exception:
            logger.exception("Failed to store contact submission")
            raise FormError(status.HTTP_500_INTERNAL_SERVER_ERROR, "insert_failed")
    except FormError as exc:
        return _error(exc)
    return {"success": True}


@router.post("/newsletter")
async def subscribe_newsletter(request: Request):
    try:
        await _enforce_rate_limit(request, "newsletter", NEWSLETTER_MAX_REQUESTS)
        form: NewsletterForm = await _parse(request, NewsletterForm, with_details=False)
        try:
            await db.add_newsletter_subscriber(form.email)
        except db.DuplicateError:
            raise FormError(status.HTTP_409_CONFLICT, "duplicate")
        except Exception:
            logger.exception("Failed to store newsletter subscriber")
            raise FormError(status.HTTP_500_INTERNAL_SERVER_ERROR, "insert_failed")
    except FormError as exc:
        return _error(exc)
    return {"success": True}


@router.post("/comments")
async def submit_comment(request: Request):
    try:
        await _enforce_rate_limit(request, "comment", COMMENT_MAX_REQUESTS)
        form: CommentForm = await _parse(request, CommentForm)
        post_id = str(form.post_id)
        parent_id = str(form.parent_id) if form.parent_id else None

        post = await db.get_post_by_id(post_id)
        if not post or not post["published"]:
            raise FormError(status.HTTP_404_NOT_FOUND, "post_not_found")
        if parent_id:
            parent = await db.get_comment(parent_id)
            if not parent or parent["post_id"] != post_id:
                raise FormError(status.HTTP_400_BAD_REQUEST, "invalid_parent")

        try:
            await db.create_comment(
                post_id=post_id,
                parent_id=parent_id,
                author_name=form.author_name,
                author_email=form.author_email,
                content=form.content,
            )
        except Exception:
            logger.exception("Failed to store comment on post %s", post_id)
            raise FormError(status.HTTP_500_INTERNAL_SERVER_ERROR, "insert_failed")
    except FormError as exc:
        return _error(exc)
    return {"success": True}


@router.get("/comments")
async def list_comments(post_id: str = Query(..., alias="postId", max_length=64)):
    return {"comments": await db.list_approved_comments(post_id)}


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

@router.get("/reactions")
async def get_reactions(
    post_id: str = Query(..., alias="postId", max_length=64),
    session_id: str | None = Query(default=None, alias="sessionId", max_length=128),
):
    totals, user_reaction = await db.get_reaction_summary(post_id, session_id)
    return {"totals": totals, "userReaction": user_reaction}


@router.post("/reactions")
async def add_reaction(request: Request):
    try:
        body: ReactionRequest = await _parse(request, ReactionRequest)
    except FormError as exc:
        return _error(exc)

    if not await db.get_post_by_id(body.post_id):
        return _error(FormError(status.HTTP_404_NOT_FOUND, "post_not_found"))

    # Reactions are throttled against persisted rows so the cap survives restarts.
    ip_hash = derive_client_key(request)
    since = int(time.time()) - HOUR_MS // 1000
    if await db.count_reactions_since(ip_hash, since) >= MAX_REACTIONS_PER_HOUR:
        logger.info("Reaction limit exceeded for %s", ip_hash)
        return _error(FormError(status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited"))

    await db.set_reaction(body.post_id, body.session_id, body.reaction_type, ip_hash)
    return {"success": True}


@router.delete("/reactions")
async def delete_reaction(request: Request):
    try:
        body: ReactionDeleteRequest = await _parse(request, ReactionDeleteRequest)
    except FormError as exc:
        return _error(exc)
    await db.remove_reaction(body.post_id, body.session_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------

@router.get("/version")
async def version():
    try:
        value = Path(settings.version_file).read_text(encoding="utf-8").strip()
    except OSError:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"version": "0.0.0"})
    return {"version": value}


# ---------------------------------------------------------------------------
# Publishing webhook
# ---------------------------------------------------------------------------

@router.post("/webhook/posts")
async def publish_webhook(request: Request):
    if not settings.webhook_secret:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    raw = await request.body()
    if not verify_webhook(
        raw,
        settings.webhook_secret,
        signature=request.headers.get("X-Signature"),
        timestamp=request.headers.get("X-Timestamp"),
        authorization=request.headers.get("Authorization"),
    ):
        logger.warning("Rejected publishing webhook with invalid credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = WebhookPostPayload.model_validate_json(raw)
    except ValidationError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "validation_failed", "details": exc.errors(include_url=False, include_context=False)},
        )

    category_id = None
    category_slug = payload.resolved_category_slug
    if category_slug:
        category = await db.get_category_by_slug(category_slug)
        if category is None:
            logger.warning("Webhook post %s references unknown category %s", payload.slug, category_slug)
        else:
            category_id = category["id"]

    content = sanitize_html(payload.content_html)
    fields = {
        "title": payload.title,
        "content": content,
        "excerpt": make_excerpt(payload.meta_description or content),
        "reading_time": payload.reading_time_minutes or calculate_reading_time(content),
        "category_id": category_id,
        "cover_image": payload.featured_image_url,
        "published": payload.status == "publish",
        "meta_description": payload.meta_description,
        "tags": payload.tags,
        "source": payload.source or "webhook",
    }
    if payload.published_at is not None:
        fields["published_at"] = payload.published_at_epoch

    existing = await db.get_post_by_slug(payload.slug, published_only=False)
    if existing:
        row = await db.update_post(existing["id"], fields)
        action = "updated"
    else:
        row = await db.create_post(slug=payload.slug, author_name=settings.author_name, **fields)
        action = "created"
    logger.info("Webhook %s post %s", action, payload.slug)
    return {"success": True, "action": action, "id": row["id"], "slug": row["slug"]}
