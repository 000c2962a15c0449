"""Allowlist HTML sanitization for CMS-authored and webhook-delivered content."""
from urllib.parse import urlparse

import nh3

ALLOWED_TAGS = {
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "hr",
    "ul", "ol", "li",
    "blockquote", "pre", "code",
    "a", "strong", "em", "u", "s", "mark", "sub", "sup",
    "table", "thead", "tbody", "tr", "th", "td",
    "img", "figure", "figcaption",
    "div", "span",
    "iframe",
    "video", "audio", "source",
}

# nh3 sets rel="noopener noreferrer" on links itself; "rel" may not be allowlisted.
ALLOWED_ATTRIBUTES: dict[str, set[str]] = {
    "a": {"href", "target"},
    "img": {"src", "alt", "title", "width", "height"},
    "iframe": {"src", "width", "height", "frameborder", "allowfullscreen", "allow"},
    "video": {"src", "width", "height", "controls", "autoplay", "loop", "muted", "preload"},
    "audio": {"src", "controls", "autoplay", "loop", "muted", "preload"},
    "source": {"src", "type"},
    "pre": {"data-language"},
    "code": {"data-language"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan"},
    "*": {"class", "id", "style"},
}

ALLOWED_IFRAME_HOSTS = {
    "www.youtube.com",
    "youtube.com",
    "www.vimeo.com",
    "vimeo.com",
    "player.vimeo.com",
}


def _filter_attribute(tag: str, attr: str, value: str) -> str | None:
    if tag == "iframe" and attr == "src":
        host = urlparse(value).hostname or ""
        if host.lower() not in ALLOWED_IFRAME_HOSTS:
            return None
    return value


def sanitize_html(dirty: str | None) -> str:
    if not dirty:
        return ""
    return nh3.clean(
        dirty,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        attribute_filter=_filter_attribute,
    )
