"""Article extraction from HTML: title, description, main text, image, OpenGraph/Twitter metadata.

Main text uses trafilatura with a BeautifulSoup fallback. Missing fields stay None;
an empty page is still a successful extraction.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import trafilatura
from bs4 import BeautifulSoup

from apps.linkvault.models.archive import IMAGE_URL_MAX_LENGTH, TITLE_MAX_LENGTH
from apps.linkvault.services.result import Err, Ok, Result

logger = logging.getLogger(__name__)

OPENGRAPH_KEYS = ("title", "description", "image", "type", "url", "site_name")
TWITTER_KEYS = ("card", "title", "description", "image")

_STRIP_TAGS = ["script", "style", "noscript", "iframe", "frame", "frameset", "object", "embed", "form", "template"]
_URL_ATTRS = ("href", "src", "action", "formaction", "xlink:href")


@dataclass(frozen=True)
class ParsedContent:
    title: str | None
    description: str | None
    content_text: str
    content_html: str | None
    image_url: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    v = re.sub(r"\s+", " ", value).strip()
    return v or None


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value[:limit]


def extract_main_text(html: str) -> str:
    """
    Extract main text from HTML.
    Primary: trafilatura.extract(include_comments=False, include_tables=False).
    Fallback: BeautifulSoup get_text if trafilatura returns None/empty.
    """
    result = trafilatura.extract(
        html,
        include_comments=False,
        include_tables=False,
    ) if html and html.strip() else None
    if result and result.strip():
        return result.strip()

    soup = _soup(html)
    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


def extract_title(html: str) -> str | None:
    """Extract <title> from HTML using BeautifulSoup."""
    soup = _soup(html)
    title_tag = soup.find("title")
    return title_tag.get_text(strip=True) if title_tag else None


def _meta_values(soup: BeautifulSoup, prefix: str, keys: tuple[str, ...]) -> dict[str, str]:
    """Collect <meta property|name="prefix:key" content=...>; first occurrence wins."""
    found: dict[str, str] = {}
    for tag in soup.find_all("meta"):
        name = (tag.get("property") or tag.get("name") or "").strip().lower()
        if not name.startswith(prefix + ":"):
            continue
        key = name[len(prefix) + 1:]
        content = _clean(tag.get("content"))
        if key in keys and content and key not in found:
            found[key] = content
    return found


def _named_meta(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find("meta", attrs={"name": re.compile(rf"^{re.escape(name)}$", re.I)})
    return _clean(tag.get("content")) if tag else None


def sanitize_fragment(node) -> str | None:
    """Render node as HTML with scripts, frames, forms, on* handlers and javascript: URLs removed."""
    if node is None:
        return None
    fragment = _soup(str(node))
    for tag in fragment.find_all(_STRIP_TAGS):
        tag.decompose()
    for tag in fragment.find_all(True):
        for attr in list(tag.attrs):
            if attr.lower().startswith("on"):
                del tag.attrs[attr]
            elif attr.lower() in _URL_ATTRS:
                value = str(tag.attrs[attr]).strip().lower()
                if value.startswith(("javascript:", "vbscript:", "data:text/html")):
                    del tag.attrs[attr]
    rendered = str(fragment).strip()
    return rendered or None


class ContentExtractor:
    """Turns fetched HTML into a ParsedContent. Truncates title/image_url to column limits."""

    def __init__(self, title_limit: int = TITLE_MAX_LENGTH, image_url_limit: int = IMAGE_URL_MAX_LENGTH) -> None:
        self.title_limit = title_limit
        self.image_url_limit = image_url_limit

    def extract(self, html: str, url: str) -> Result:
        """Ok(ParsedContent) or Err(kind="extraction_error") when parsing itself blows up."""
        try:
            return Ok(self._extract(html or "", url))
        except Exception as e:
            logger.exception("extraction failed url=%s", url)
            return Err(
                kind="extraction_error",
                message=f"Content extraction error: {e}",
                details={"url": url, "error_class": type(e).__name__},
            )

    def _extract(self, html: str, url: str) -> ParsedContent:
        soup = _soup(html)
        og = _meta_values(soup, "og", OPENGRAPH_KEYS)
        twitter = _meta_values(soup, "twitter", TWITTER_KEYS)

        title = og.get("title") or twitter.get("title") or _clean(extract_title(html))
        if not title:
            h1 = soup.find("h1")
            title = _clean(h1.get_text(" ")) if h1 else None
        description = og.get("description") or twitter.get("description") or _named_meta(soup, "description")

        image = og.get("image") or twitter.get("image")
        if not image:
            img = soup.find("img", src=True)
            image = _clean(img.get("src")) if img else None
        image_url = urljoin(url, image) if image else None

        canonical = None
        link = soup.find("link", rel=lambda v: v and "canonical" in (v if isinstance(v, list) else [v]))
        if link and link.get("href"):
            canonical = urljoin(url, link["href"].strip())

        container = soup.find("article") or soup.find("main") or soup.body
        metadata = {
            "opengraph": og or None,
            "twitter": twitter or None,
            "canonical_url": canonical,
            "final_url": url,
            "content_type": "html",
        }
        parsed = ParsedContent(
            title=_truncate(title, self.title_limit),
            description=description,
            content_text=extract_main_text(html),
            content_html=sanitize_fragment(container),
            image_url=_truncate(image_url, self.image_url_limit),
            metadata=metadata,
        )
        logger.info(
            "Extracted url=%s title=%r text_len=%d image=%s",
            url,
            (parsed.title or "")[:80],
            len(parsed.content_text),
            bool(parsed.image_url),
        )
        return parsed
