"""Main-content detection for rendered HTML.

The readability heuristic lives behind the ``ContentExtractor`` protocol so
the extraction pipeline can swap it out (or fake it in tests). The bundled
``ReadabilityExtractor`` works on a BeautifulSoup tree:

- strips boilerplate (scripts, nav, footers, ads, hidden widgets)
- compares a semantic landmark (``<article>``, ``<main>``, ...) against
  candidates scored by class/id hints, text density and paragraph count
- walks up from the winner when a parent holds noticeably more paragraphs
- returns ``None`` when no region carries enough text to be an article
"""

from __future__ import annotations

import math
import re
from typing import Optional, Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from scrape_server.models import Article


class ContentExtractor(Protocol):
    """Locates the primary article of a document."""

    def parse(self, html: str, base_url: str) -> Optional[Article]: ...


# ---------------------------------------------------------------------------
# Scoring patterns
# ---------------------------------------------------------------------------

_POSITIVE_RE = re.compile(
    r"article|body|content|entry|hentry|h-entry|main|page|"
    r"post|text|blog|story|paragraph|prose",
    re.IGNORECASE,
)

# \b on short terms so "navigate" or "menubar-free" class names are not hit
_NEGATIVE_RE = re.compile(
    r"combx|comment|contact|foot|footer|footnote|masthead|"
    r"outbrain|promo|related|shoutbox|sidebar|sponsor|shopping|"
    r"\bnav\b|\bmenu\b|breadcrumb|crumb|pagination|pager|"
    r"popup|modal|overlay|cookie|consent|newsletter|subscribe|signup",
    re.IGNORECASE,
)

_AD_RE = re.compile(
    r"\b(?:ad|ads|advert|advertisement|adsense|ad-slot|ad-wrapper|"
    r"banner-ad|sponsored|tracking|tracker|"
    r"social-share|share-buttons|cookie-banner|cookie-notice)\b",
    re.IGNORECASE,
)

_DROP_TAGS = ["script", "style", "noscript", "iframe", "svg", "form", "template"]
_LAYOUT_NOISE_TAGS = {"footer", "nav", "aside"}
_CANDIDATE_TAGS = ["div", "section", "td", "article", "main", "blockquote"]
_TEXT_BLOCK_TAGS = ["p", "li", "td", "th", "dd", "dt", "blockquote"]
_BLOCK_TAGS = [
    "p", "div", "br", "hr", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "tr", "blockquote", "pre", "table", "section", "article",
    "header", "figure", "figcaption", "dd", "dt",
]

_TAG_BONUS = {"article": 10, "main": 10, "section": 3, "td": 1, "blockquote": 3}

_MIN_TEXT = 50            # chars for a region to count at all
_MIN_PARAGRAPH = 20       # chars for a block to count as a paragraph
_MIN_POOLED = 100         # chars for a candidate to enter the length pool
_MIN_CONFIDENT = 200      # chars for a candidate to win on its own
_LONG_ARTICLE = 800       # chars above which the longest candidate wins
_MAX_LINK_RATIO = 0.55
_HIDDEN_TEXT_LIMIT = 80   # hidden blocks longer than this are collapsed content
_EXCERPT_LIMIT = 300


# ---------------------------------------------------------------------------
# Node measurements
# ---------------------------------------------------------------------------

def _class_id(tag: Tag) -> str:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    return " ".join([*classes, tag.get("id") or ""]).strip()


def _text_len(tag: Tag) -> int:
    return len(tag.get_text(strip=True))


def _link_ratio(tag: Tag) -> float:
    total = _text_len(tag)
    if total == 0:
        return 1.0
    return sum(_text_len(a) for a in tag.find_all("a")) / total


def _paragraphs(tag: Tag) -> int:
    return sum(1 for el in tag.find_all(_TEXT_BLOCK_TAGS) if _text_len(el) >= _MIN_PARAGRAPH)


def _score(tag: Tag) -> float:
    """Likelihood that ``tag`` wraps the article body."""
    hints = _class_id(tag)
    score = float(_TAG_BONUS.get(tag.name, 0))

    if _POSITIVE_RE.search(hints):
        score += 25
    if _NEGATIVE_RE.search(hints):
        score -= 25

    role = (tag.get("role") or "").lower()
    if role in ("main", "article"):
        score += 20
    elif role in ("navigation", "banner", "complementary", "contentinfo"):
        score -= 15

    if (tag.get("itemprop") or "").lower() in ("articlebody", "text"):
        score += 15

    score += _paragraphs(tag) * 3

    text_len = _text_len(tag)
    markup_len = len(str(tag))
    if markup_len:
        score += (text_len / markup_len) * 20

    links = _link_ratio(tag)
    if links > 0.5:
        score -= 30 * links

    if text_len > _MIN_TEXT:
        score += math.log(text_len) * 2
    else:
        score -= 20

    return score


def _expand(tag: Tag) -> Tag:
    """Climb to an ancestor that holds clearly more of the article.

    Articles split into sibling blocks (ads injected between sections) are
    rejoined at their common parent, as long as that parent is not itself
    navigation-like.
    """
    best, best_paras, best_len = tag, _paragraphs(tag), _text_len(tag)
    current = tag
    for _ in range(3):
        parent = current.parent
        if not isinstance(parent, Tag) or parent.name in ("body", "html", "[document]"):
            break
        if _NEGATIVE_RE.search(_class_id(parent)) or _link_ratio(parent) > _MAX_LINK_RATIO:
            break

        paras, length = _paragraphs(parent), _text_len(parent)
        if paras > best_paras * 1.4 and length > best_len * 1.2:
            best, best_paras, best_len = parent, paras, length
        current = parent
    return best


# ---------------------------------------------------------------------------
# Noise removal
# ---------------------------------------------------------------------------

def _inside_article(tag: Tag) -> bool:
    return any(parent.name in ("article", "main") for parent in tag.parents)


def _is_hidden(tag: Tag) -> bool:
    style = (tag.get("style") or "").replace(" ", "").lower()
    return (
        "display:none" in style
        or "visibility:hidden" in style
        or tag.get("aria-hidden") == "true"
    )


def _is_noise(tag: Tag) -> bool:
    if tag.name in ("html", "head", "body"):
        return False
    if tag.name in _LAYOUT_NOISE_TAGS:
        return True
    # Page-level headers are chrome; headers inside an article carry its byline
    if tag.name == "header":
        return not _inside_article(tag)

    hints = _class_id(tag)
    if hints and _AD_RE.search(hints):
        return True
    if hints and _NEGATIVE_RE.search(hints):
        markup_len = len(str(tag))
        if markup_len and _text_len(tag) / markup_len < 0.3:
            return True

    # Collapsed "read more" sections stay, decorative hidden bits go
    if _is_hidden(tag) and _text_len(tag) <= _HIDDEN_TEXT_LIMIT:
        return True
    return False


def _strip_noise(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(_DROP_TAGS):
        tag.decompose()

    noisy = [tag for tag in soup.find_all(True) if _is_noise(tag)]
    for tag in noisy:
        # Children of an already removed ancestor are gone with it
        if not tag.decomposed:
            tag.decompose()


# ---------------------------------------------------------------------------
# Region selection
# ---------------------------------------------------------------------------

def _landmark(soup: BeautifulSoup) -> Optional[Tag]:
    for finder in (
        lambda: soup.find(attrs={"itemprop": "articleBody"}),
        lambda: soup.find("article"),
        lambda: soup.find(attrs={"role": "main"}),
        lambda: soup.find("main"),
    ):
        found = finder()
        if found is not None and _text_len(found) >= _MIN_TEXT:
            return found
    return None


def find_content_root(soup: BeautifulSoup) -> Optional[Tag]:
    """Pick the element most likely to hold the article, or None."""
    landmark = _landmark(soup)
    if landmark is not None:
        landmark = _expand(landmark)
    landmark_len = _text_len(landmark) if landmark is not None else 0

    scored = sorted(
        ((_score(tag), tag) for tag in soup.find_all(_CANDIDATE_TAGS) if _text_len(tag) >= _MIN_TEXT),
        key=lambda pair: pair[0],
        reverse=True,
    )
    top: Optional[Tag] = None
    top_len = 0
    if scored and scored[0][0] > 0:
        top = _expand(scored[0][1])
        top_len = _text_len(top)

    # Prefer the longest plausible region once it is article-sized, so a
    # summary box does not beat the full body
    pool: list[tuple[Tag, int]] = []
    seen: set[int] = set()
    if landmark is not None and landmark_len >= _MIN_POOLED:
        pool.append((landmark, landmark_len))
        seen.add(id(landmark))
    for score, tag in scored[:5]:
        if score <= 0:
            continue
        expanded = _expand(tag)
        if id(expanded) in seen:
            continue
        seen.add(id(expanded))
        length = _text_len(expanded)
        if length >= _MIN_POOLED and _link_ratio(expanded) <= _MAX_LINK_RATIO:
            pool.append((expanded, length))

    if pool:
        longest, longest_len = max(pool, key=lambda pair: pair[1])
        if longest_len >= _LONG_ARTICLE:
            return longest

    if top is not None and top_len > landmark_len * 1.3 and top_len >= _MIN_CONFIDENT:
        return top
    if landmark is not None and landmark_len >= _MIN_CONFIDENT:
        return landmark
    if top is not None and top_len >= max(landmark_len, _MIN_TEXT):
        return top
    if landmark is not None:
        return landmark

    # Pages of bare body-level paragraphs still count when they have prose
    body = soup.body
    if body is not None and _paragraphs(body) and _text_len(body) >= _MIN_TEXT:
        if _link_ratio(body) <= _MAX_LINK_RATIO:
            return body
    return None


# ---------------------------------------------------------------------------
# HTML -> plain text
# ---------------------------------------------------------------------------

def html_to_text(html: str) -> str:
    """Plain text with one line per block-level element."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n")
        tag.insert_after("\n")

    text = re.sub(r"[^\S\n]+", " ", soup.get_text())
    return "\n".join(line.strip() for line in text.splitlines()).strip()


# ---------------------------------------------------------------------------
# Readability extractor
# ---------------------------------------------------------------------------

def _meta(soup: BeautifulSoup, *keys: str) -> str:
    """First non-empty ``content`` among name= then property= metas, per key."""
    for key in keys:
        for attr in ("name", "property"):
            tag = soup.find("meta", attrs={attr: key})
            content = (tag.get("content") or "").strip() if tag else ""
            if content:
                return content
    return ""


def _join(base_url: str, value: str) -> str:
    try:
        return urljoin(base_url, value)
    except ValueError:
        return value


def _absolutize(root: Tag, base_url: str) -> None:
    for tag in root.find_all(href=True):
        href = tag["href"].strip()
        if href and not href.startswith(("#", "javascript:", "mailto:", "data:")):
            tag["href"] = _join(base_url, href)
    for tag in root.find_all(src=True):
        src = tag["src"].strip()
        if src and not src.startswith("data:"):
            tag["src"] = _join(base_url, src)


class ReadabilityExtractor:
    """Scoring-based ``ContentExtractor`` over BeautifulSoup."""

    def __init__(self, parser: str = "lxml"):
        self._parser = parser

    def parse(self, html: str, base_url: str) -> Optional[Article]:
        if not html or not html.strip():
            return None

        soup = BeautifulSoup(html, self._parser)

        # Document-level fields first, noise removal drops <head> helpers
        title = self._title(soup)
        description = _meta(soup, "description", "og:description", "twitter:description")
        byline = _meta(soup, "author", "article:author")
        site_name = _meta(soup, "og:site_name", "application-name")
        published = _meta(soup, "article:published_time", "date", "pubdate")
        if not published:
            time_tag = soup.find("time", attrs={"datetime": True})
            published = time_tag["datetime"].strip() if time_tag else ""
        html_tag = soup.find("html")
        lang = (html_tag.get("lang") or "").strip() if html_tag else ""

        _strip_noise(soup)
        root = find_content_root(soup)
        if root is None:
            return None

        _absolutize(root, base_url)
        content = str(root)
        plain_text = html_to_text(content)
        if not plain_text:
            return None

        if not title:
            heading = root.find("h1")
            title = heading.get_text(" ", strip=True) if heading else ""

        return Article(
            title=title,
            excerpt=description or self._first_paragraph(root),
            content=content,
            plain_text=plain_text,
            byline=byline,
            site_name=site_name,
            published_time=published,
            lang=lang,
            length=len(plain_text),
        )

    @staticmethod
    def _title(soup: BeautifulSoup) -> str:
        og_title = _meta(soup, "og:title", "twitter:title")
        if og_title:
            return og_title
        if soup.title is not None:
            return soup.title.get_text(" ", strip=True)
        return ""

    @staticmethod
    def _first_paragraph(root: Tag) -> str:
        for p in root.find_all("p"):
            text = " ".join(p.get_text(" ", strip=True).split())
            if text:
                return text[:_EXCERPT_LIMIT]
        return ""
