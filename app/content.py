"""Plain-text helpers for post content: stripping, excerpts, reading time, slugs."""
import re
import unicodedata

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 160

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(html: str | None) -> str:
    if not html:
        return ""
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", html)).strip()


def calculate_reading_time(html: str | None) -> int:
    """Minutes to read at 200 words per minute, never less than one."""
    words = strip_html(html).split()
    return max(1, -(-len(words) // WORDS_PER_MINUTE))


def make_excerpt(html: str | None, max_length: int = EXCERPT_LENGTH) -> str:
    text = strip_html(html)
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    value = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return value.strip("-")[:64].rstrip("-")
