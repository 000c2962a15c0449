"""Pydantic request models."""
import uuid
from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from app.theme import CARD_VARIANTS, HERO_VARIANTS

REACTION_TYPES = ("clap", "heart", "fire", "rocket", "thinking")
SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
EMAIL_MAX_LENGTH = 255


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _normalize_email(value: str) -> str:
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    return value.lower()


Email = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(_normalize_email)]


class _Form(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# ---------------------------------------------------------------------------
# Public forms
# ---------------------------------------------------------------------------

class ContactForm(_Form):
    name: str = Field(..., min_length=2, max_length=100)
    email: Email
    subject: str = Field(..., min_length=3, max_length=200)
    message: str = Field(..., min_length=10, max_length=5000)


class CommentForm(_Form):
    author_name: str = Field(..., min_length=2, max_length=100)
    author_email: Email
    content: str = Field(..., min_length=3, max_length=2000)
    post_id: uuid.UUID
    parent_id: uuid.UUID | None = None


class NewsletterForm(_Form):
    email: Email


class ReactionRequest(BaseModel):
    post_id: str = Field(..., alias="postId", min_length=1)
    reaction_type: Literal["clap", "heart", "fire", "rocket", "thinking"] = Field(..., alias="reactionType")
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)


class ReactionDeleteRequest(BaseModel):
    post_id: str = Field(..., alias="postId", min_length=1)
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class AdminLoginRequest(BaseModel):
    username: str
    password: str


class CategoryCreateRequest(_Form):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str | None = Field(default=None, pattern=SLUG_PATTERN, max_length=64)
    description: str | None = Field(default=None, max_length=500)
    show_on_homepage: bool = True


class CategoryUpdateRequest(_Form):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    slug: str | None = Field(default=None, pattern=SLUG_PATTERN, max_length=64)
    description: str | None = Field(default=None, max_length=500)
    show_on_homepage: bool | None = None


class PostCreateRequest(_Form):
    title: str = Field(..., min_length=1, max_length=300)
    slug: str | None = Field(default=None, pattern=SLUG_PATTERN, max_length=64)
    content: str = ""
    excerpt: str | None = Field(default=None, max_length=500)
    cover_image: str | None = None
    category_id: str | None = None
    author_name: str | None = Field(default=None, max_length=100)
    published: bool = False
    meta_description: str | None = Field(default=None, max_length=320)
    tags: list[str] = Field(default_factory=list)


class PostUpdateRequest(_Form):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    slug: str | None = Field(default=None, pattern=SLUG_PATTERN, max_length=64)
    content: str | None = None
    excerpt: str | None = Field(default=None, max_length=500)
    cover_image: str | None = None
    category_id: str | None = None
    author_name: str | None = Field(default=None, max_length=100)
    published: bool | None = None
    meta_description: str | None = Field(default=None, max_length=320)
    tags: list[str] | None = None


class PageCreateRequest(_Form):
    title: str = Field(..., min_length=1, max_length=300)
    slug: str | None = Field(default=None, pattern=SLUG_PATTERN, max_length=64)
    content: str = ""
    meta_description: str | None = Field(default=None, max_length=320)
    published: bool = False


class PageUpdateRequest(_Form):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    slug: str | None = Field(default=None, pattern=SLUG_PATTERN, max_length=64)
    content: str | None = None
    meta_description: str | None = Field(default=None, max_length=320)
    published: bool | None = None


MENU_URL_PATTERN = r"^(https?://|/|#|mailto:)"


class MenuItemCreateRequest(_Form):
    """A page link (``page_id``), an external link (``url``) or, with neither, a dropdown parent."""

    label: str = Field(..., min_length=1, max_length=100)
    url: str | None = Field(default=None, max_length=500, pattern=MENU_URL_PATTERN)
    page_id: str | None = None
    parent_id: str | None = None
    location: Literal["header", "footer", "both"] = "header"
    open_in_new_tab: bool = False
    position: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _single_target(self):
        if self.url and self.page_id:
            raise ValueError("A menu item links to a page or a url, not both")
        return self


class MenuItemUpdateRequest(_Form):
    label: str | None = Field(default=None, min_length=1, max_length=100)
    url: str | None = Field(default=None, max_length=500, pattern=MENU_URL_PATTERN)
    page_id: str | None = None
    parent_id: str | None = None
    location: Literal["header", "footer", "both"] | None = None
    open_in_new_tab: bool | None = None
    position: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _single_target(self):
        if self.url and self.page_id:
            raise ValueError("A menu item links to a page or a url, not both")
        return self


class SiteSettingsUpdateRequest(_Form):
    blog_name: str | None = Field(default=None, max_length=100)
    site_url: str | None = Field(default=None, pattern=r"^https?://")
    author_name: str | None = Field(default=None, max_length=100)
    author_bio: str | None = Field(default=None, max_length=1000)
    contact_email: Email | None = None
    hero_variant: str | None = None
    card_variant: str | None = None
    hero_title: str | None = Field(default=None, max_length=200)
    hero_subtitle: str | None = Field(default=None, max_length=500)
    newsletter_title: str | None = Field(default=None, max_length=200)
    newsletter_description: str | None = Field(default=None, max_length=500)

    @field_validator("hero_variant")
    @classmethod
    def _known_hero(cls, value: str | None) -> str | None:
        if value is not None and value not in HERO_VARIANTS:
            raise ValueError(f"Unknown hero variant: {value}")
        return value

    @field_validator("card_variant")
    @classmethod
    def _known_card(cls, value: str | None) -> str | None:
        if value is not None and value not in CARD_VARIANTS:
            raise ValueError(f"Unknown card variant: {value}")
        return value

    @field_validator("site_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value


# ---------------------------------------------------------------------------
# Publishing webhook
# ---------------------------------------------------------------------------

class WebhookCategoryRef(BaseModel):
    slug: str = Field(..., min_length=1, max_length=64)


class WebhookPostPayload(_Form):
    title: str = Field(..., min_length=1, max_length=300)
    content_html: str = Field(..., min_length=1)
    slug: str = Field(..., pattern=SLUG_PATTERN, max_length=64)
    meta_description: str | None = Field(default=None, max_length=320)
    featured_image_url: str | None = None
    category_slug: str | None = None
    category: WebhookCategoryRef | None = None
    tags: list[str] = Field(default_factory=list)
    status: Literal["publish", "draft"] = "publish"
    published_at: datetime | None = None
    source: str | None = Field(default=None, max_length=100)
    reading_time_minutes: int | None = Field(default=None, ge=1)

    @property
    def resolved_category_slug(self) -> str | None:
        return self.category_slug or (self.category.slug if self.category else None)

    @property
    def published_at_epoch(self) -> int | None:
        """``published_at`` as epoch seconds; naive datetimes are taken as UTC."""
        if self.published_at is None:
            return None
        value = self.published_at
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
