"""End-to-end scrape tests: request boundary through result assembly."""

import asyncio
import base64
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from scrape_server.models import ExtractionResult, RenderedDocument
from scrape_server.schemas import parse_request
from scrape_server.tools.scrape import SCREENSHOT_MIME, assemble, handle_scrape
from scrape_server.utils.errors import SessionUnavailable

URL = "https://example.com/article"

RESPONSE_KEYS = {
    "url", "finalUrl", "status", "title", "description", "canonical", "ogImage",
    "jsonLd", "article", "links", "headings", "images", "wordCount",
    "readingTimeMinutes", "scrapedAt",
}


@pytest.mark.asyncio
async def test_static_article_end_to_end(make_browser, make_manager, article_html):
    manager = make_manager(make_browser({URL: article_html}))
    status, body = await handle_scrape({"url": URL}, manager=manager)

    assert status == 200
    assert set(body) == RESPONSE_KEYS
    assert body["url"] == URL
    assert body["finalUrl"] == URL
    assert body["status"] == 200
    assert body["title"] == "Test"
    assert body["headings"] == [{"level": 1, "tag": "H1", "text": "Heading"}]
    assert body["wordCount"] == 210
    assert body["readingTimeMinutes"] == 2
    assert body["images"] == [{"src": "https://example.com/a.png", "alt": "pic"}]
    assert body["article"]["plainText"].startswith("word0")
    assert set(body["article"]) == {
        "title", "excerpt", "content", "plainText", "byline",
        "siteName", "publishedTime", "lang", "length",
    }
    assert datetime.fromisoformat(body["scrapedAt"]).tzinfo is not None


@pytest.mark.asyncio
async def test_navigation_timeout_still_returns_result(make_browser, make_manager):
    browser = make_browser({URL: "<html></html>"}, goto_error=PlaywrightTimeoutError("Timeout 20000ms exceeded."))
    status, body = await handle_scrape({"url": URL}, manager=make_manager(browser))

    assert status == 200
    assert body["status"] == 0
    assert body["finalUrl"] == URL
    assert body["title"] == ""
    assert body["article"] is None
    assert body["links"] == []
    assert body["wordCount"] == 0
    assert body["readingTimeMinutes"] == 1
    browser.pages_created[0].close.assert_awaited_once()
    browser.contexts_created[0].close.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("payload,message", [
    ({}, "Missing `url` in request body"),
    ({"url": ""}, "Missing `url` in request body"),
    ({"url": "example.com/no-scheme"}, "Invalid URL"),
])
async def test_validation_errors_never_touch_the_browser(make_manager, payload, message):
    manager = make_manager(MagicMock())
    status, body = await handle_scrape(payload, manager=manager)

    assert status == 400
    assert body == {"error": message}
    manager.acquire.assert_not_awaited()


@pytest.mark.asyncio
async def test_session_unavailable_is_server_error():
    manager = MagicMock()
    manager.acquire = AsyncMock(side_effect=SessionUnavailable("Browser failed to launch: no chromium"))
    status, body = await handle_scrape({"url": URL}, manager=manager)

    assert status == 503
    assert body == {"error": "Browser failed to launch: no chromium"}


@pytest.mark.asyncio
async def test_unexpected_error_is_generic_server_error(make_browser, make_manager):
    def dead_context(context):
        context.new_page = AsyncMock(side_effect=PlaywrightError("Target page, context or browser has been closed"))

    browser = make_browser({URL: "<html></html>"}, context_hook=dead_context)
    status, body = await handle_scrape({"url": URL}, manager=make_manager(browser))

    assert status == 500
    assert body == {"error": "Target page, context or browser has been closed"}
    browser.contexts_created[0].close.assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_error_without_message(make_manager):
    manager = make_manager(MagicMock())
    manager.acquire = AsyncMock(side_effect=RuntimeError())
    status, body = await handle_scrape({"url": URL}, manager=manager)

    assert status == 500
    assert body == {"error": "unknown error"}


@pytest.mark.asyncio
async def test_screenshot_included_when_requested(make_browser, make_manager, article_html):
    manager = make_manager(make_browser({URL: article_html}))
    status, body = await handle_scrape({"url": URL, "options": {"screenshot": True}}, manager=manager)

    assert status == 200
    assert base64.b64decode(body["screenshot"]) == b"\x89PNG fake"
    assert body["screenshotMime"] == SCREENSHOT_MIME


@pytest.mark.asyncio
async def test_screenshot_failure_keeps_rest_of_result(make_browser, make_manager, article_html):
    browser = make_browser({URL: article_html}, screenshot_error=PlaywrightError("Page crashed"))
    status, body = await handle_scrape({"url": URL, "options": {"screenshot": True}}, manager=make_manager(browser))

    assert status == 200
    assert "screenshot" not in body
    assert "screenshotMime" not in body
    assert body["title"] == "Test"


@pytest.mark.asyncio
async def test_concurrent_requests_are_isolated(make_browser, make_manager):
    site = {
        f"https://site{i}.example/": (
            f"<html><body>"
            f"<a href='/only-{i}'>link</a><a href='https://shared.example/'>shared</a>"
            f"<img src='/img-{i}.png' alt='{i}'>"
            f"</body></html>"
        )
        for i in range(5)
    }
    browser = make_browser(site)
    manager = make_manager(browser)

    results = await asyncio.gather(*(handle_scrape({"url": url}, manager=manager) for url in site))

    for i, (status, body) in enumerate(results):
        assert status == 200
        assert body["links"] == [f"https://site{i}.example/only-{i}", "https://shared.example/"]
        assert body["images"] == [{"src": f"https://site{i}.example/img-{i}.png", "alt": str(i)}]

    assert len(browser.contexts_created) == 5
    assert len({id(context) for context in browser.contexts_created}) == 5
    for context in browser.contexts_created:
        context.close.assert_awaited_once()


def test_assemble_without_screenshot():
    request = parse_request({"url": URL})
    rendered = RenderedDocument(url=URL, final_url=URL + "?ref=1", status=203, html="")
    response = assemble(request, rendered, ExtractionResult(title="T"))
    body = response.to_dict()

    assert body["url"] == URL
    assert body["finalUrl"] == URL + "?ref=1"
    assert body["status"] == 203
    assert body["title"] == "T"
    assert body["article"] is None
    assert "screenshot" not in body


@pytest.mark.asyncio
async def test_malformed_urls_on_page_still_succeed(make_browser, make_manager):
    html = (
        '<html><head><base href="http://[broken/"><link rel="canonical" href="http://[broken/c">'
        '</head><body><a href="http://[broken/x">x</a><img src="http://[broken/i.png" alt="i">'
        '</body></html>'
    )
    manager = make_manager(make_browser({URL: html}))
    status, body = await handle_scrape({"url": URL}, manager=manager)

    assert status == 200
    assert body["links"] == ["http://[broken/x"]
    assert body["canonical"] == "http://[broken/c"
    assert body["images"] == [{"src": "http://[broken/i.png", "alt": "i"}]
