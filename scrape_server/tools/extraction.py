"""Extraction pipeline: rendered HTML -> structured page record.

Each step reads the parsed document and returns a plain value. Missing
elements produce empty values instead of errors, so a page without an
article, metadata or JSON-LD still yields a complete record.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment

from scrape_server.models import Article, ExtractionResult, Heading, Image, RenderedDocument
from scrape_server.utils.parser import ContentExtractor, ReadabilityExtractor
from scrape_server.utils.text import count_words, normalize_text, reading_time_minutes

logger = logging.getLogger(__name__)

MAX_LINKS = 2000
MAX_IMAGES = 500

_DESCRIPTION_KEYS = ("description", "og:description", "twitter:description")
_IMAGE_KEYS = ("og:image", "twitter:image")
_NON_TEXT_TAGS = ["script", "style", "noscript", "template"]


def extract(
    rendered: RenderedDocument,
    extractor: Optional[ContentExtractor] = None,
) -> ExtractionResult:
    """Run every extraction step over a rendered document."""
    extractor = extractor or ReadabilityExtractor()
    soup = BeautifulSoup(rendered.html or "", "lxml")
    base_url = document_base_url(soup, rendered.final_url)

    article = _run_extractor(extractor, rendered.html, base_url)
    if article is not None:
        article.plain_text = normalize_text(article.plain_text)

    main_text = (article.plain_text if article else "") or body_text(soup)
    word_count = count_words(main_text)

    return ExtractionResult(
        title=extract_title(soup, article),
        description=meta_content(soup, *_DESCRIPTION_KEYS),
        canonical=extract_canonical(soup, base_url),
        og_image=meta_content(soup, *_IMAGE_KEYS),
        json_ld=extract_json_ld(soup),
        article=article,
        text=main_text,
        links=extract_links(soup, base_url),
        headings=extract_headings(soup),
        images=extract_images(soup, base_url),
        word_count=word_count,
        reading_time_minutes=reading_time_minutes(word_count),
    )


def _run_extractor(extractor: ContentExtractor, html: str, base_url: str) -> Optional[Article]:
    if not html:
        return None
    try:
        return extractor.parse(html, base_url)
    except Exception:
        logger.warning("Content extractor failed for %s", base_url, exc_info=True)
        return None


def document_base_url(soup: BeautifulSoup, final_url: str) -> str:
    """URL relative references resolve against: ``<base href>`` or the page URL."""
    base = soup.find("base", href=True)
    if base is not None and base["href"].strip():
        try:
            return urljoin(final_url, base["href"].strip())
        except ValueError:
            logger.debug("Ignoring malformed <base href> on %s", final_url)
    return final_url


def _resolve(base_url: str, value: str) -> str:
    """Absolute form of ``value``; unparsable references are kept as written."""
    value = value.strip()
    try:
        return urljoin(base_url, value)
    except ValueError:
        return value


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

def meta_content(soup: BeautifulSoup, *keys: str) -> str:
    """First non-empty meta ``content``, trying name= then property= per key."""
    for key in keys:
        for attr in ("name", "property"):
            tag = soup.find("meta", attrs={attr: key})
            content = (tag.get("content") or "").strip() if tag is not None else ""
            if content:
                return content
    return ""


def extract_title(soup: BeautifulSoup, article: Optional[Article]) -> str:
    title = soup.title.get_text().strip() if soup.title is not None else ""
    if not title and article is not None:
        title = article.title.strip()
    return title


def extract_canonical(soup: BeautifulSoup, base_url: str) -> str:
    link = soup.find("link", rel="canonical", href=True)
    if link is None or not link["href"].strip():
        return ""
    return _resolve(base_url, link["href"])


def extract_json_ld(soup: BeautifulSoup) -> list[Any]:
    """Parsed JSON-LD blocks; unparsable blocks are kept as raw text."""
    entries: list[Any] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.get_text().strip()
        if not raw:
            continue
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Keeping unparsable JSON-LD block as text")
            value = raw
        if value is None or value == "":
            continue
        entries.append(value)
    return entries


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def extract_links(soup: BeautifulSoup, base_url: str, limit: int = MAX_LINKS) -> list[str]:
    """Absolute anchor targets in document order, de-duplicated and capped."""
    seen: set[str] = set()
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = _resolve(base_url, anchor["href"])
        if not href or href in seen:
            continue
        seen.add(href)
        links.append(href)
        if len(links) >= limit:
            break
    return links


def extract_headings(soup: BeautifulSoup) -> list[Heading]:
    return [
        Heading(level=int(tag.name[1]), text=tag.get_text().strip())
        for tag in soup.find_all(["h1", "h2", "h3"])
    ]


def extract_images(soup: BeautifulSoup, base_url: str, limit: int = MAX_IMAGES) -> list[Image]:
    images: list[Image] = []
    for img in soup.find_all("img", limit=limit):
        src = (img.get("src") or "").strip()
        images.append(Image(
            src=_resolve(base_url, src) if src else "",
            alt=img.get("alt") or "",
        ))
    return images


def body_text(soup: BeautifulSoup) -> str:
    """Visible-ish text of <body>, used when no article was found."""
    body = soup.body
    if body is None:
        return ""
    chunks = [
        str(string)
        for string in body.find_all(string=True)
        if not isinstance(string, Comment) and string.find_parent(_NON_TEXT_TAGS) is None
    ]
    return " ".join(chunks).strip()
