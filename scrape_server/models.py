from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RenderedDocument:
    url: str
    final_url: str
    status: int = 0
    html: str = ""
    screenshot: bytes | None = None


@dataclass
class Article:
    title: str = ""
    excerpt: str = ""
    content: str = ""
    plain_text: str = ""
    byline: str = ""
    site_name: str = ""
    published_time: str = ""
    lang: str = ""
    length: int = 0

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "excerpt": self.excerpt,
            "content": self.content,
            "plainText": self.plain_text,
            "byline": self.byline,
            "siteName": self.site_name,
            "publishedTime": self.published_time,
            "lang": self.lang,
            "length": self.length,
        }


@dataclass
class Heading:
    level: int
    text: str

    @property
    def tag(self) -> str:
        return f"H{self.level}"

    def to_dict(self) -> dict:
        return {"level": self.level, "tag": self.tag, "text": self.text}


@dataclass
class Image:
    src: str
    alt: str = ""

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class ExtractionResult:
    title: str = ""
    description: str = ""
    canonical: str = ""
    og_image: str = ""
    json_ld: list[Any] = field(default_factory=list)
    article: Article | None = None
    text: str = ""
    links: list[str] = field(default_factory=list)
    headings: list[Heading] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    word_count: int = 0
    reading_time_minutes: int = 1


@dataclass
class ScrapeResponse:
    url: str
    final_url: str
    status: int
    extraction: ExtractionResult
    scraped_at: str
    screenshot: str | None = None
    screenshot_mime: str | None = None

    def to_dict(self) -> dict:
        ex = self.extraction
        result = {
            "url": self.url,
            "finalUrl": self.final_url,
            "status": self.status,
            "title": ex.title,
            "description": ex.description,
            "canonical": ex.canonical,
            "ogImage": ex.og_image,
            "jsonLd": list(ex.json_ld),
            "article": ex.article.to_dict() if ex.article else None,
            "links": list(ex.links),
            "headings": [h.to_dict() for h in ex.headings],
            "images": [i.to_dict() for i in ex.images],
            "wordCount": ex.word_count,
            "readingTimeMinutes": ex.reading_time_minutes,
            "scrapedAt": self.scraped_at,
        }
        if self.screenshot is not None:
            result["screenshot"] = self.screenshot
            result["screenshotMime"] = self.screenshot_mime
        return result
