"""Fixtures — Playwright doubles and HTML fixtures."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest


ARTICLE_WORDS = " ".join(f"word{i}" for i in range(210))

ARTICLE_HTML = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <title>Test</title>
</head>
<body>
  <h1>Heading</h1>
  <article>
    <p>{ARTICLE_WORDS}</p>
  </article>
  <img src="/a.png" alt="pic">
</body>
</html>
"""


def _make_page(site: dict, status: int, goto_error, screenshot_error):
    page = MagicMock()
    page.url = "about:blank"
    page.html = "<html><head></head><body></body></html>"

    async def goto(target, **kwargs):
        # Yield so concurrent renders interleave
        await asyncio.sleep(0)
        if goto_error is not None:
            raise goto_error
        page.url = target
        page.html = site.get(target, page.html)
        response = MagicMock()
        response.status = status
        return response

    async def content():
        await asyncio.sleep(0)
        return page.html

    page.goto = AsyncMock(side_effect=goto)
    page.content = AsyncMock(side_effect=content)
    page.wait_for_timeout = AsyncMock()
    page.close = AsyncMock()
    if screenshot_error is not None:
        page.screenshot = AsyncMock(side_effect=screenshot_error)
    else:
        page.screenshot = AsyncMock(return_value=b"\x89PNG fake")
    return page


@pytest.fixture
def make_browser():
    """Factory for a fake Playwright Browser serving ``site`` (url -> html).

    Every context and page created is recorded on ``browser.contexts_created``
    and ``browser.pages_created``. ``page_hook`` and ``context_hook`` can
    rewire a double right after it is created.
    """

    def factory(site=None, status=200, goto_error=None, screenshot_error=None,
                page_hook=None, context_hook=None):
        site = site or {}
        browser = MagicMock()
        browser.is_connected.return_value = True
        browser.contexts_created = []
        browser.pages_created = []

        async def new_context(**kwargs):
            context = MagicMock()
            context.options = kwargs
            context.route = AsyncMock()
            context.close = AsyncMock()

            async def new_page():
                page = _make_page(site, status, goto_error, screenshot_error)
                if page_hook is not None:
                    page_hook(page)
                browser.pages_created.append(page)
                return page

            context.new_page = AsyncMock(side_effect=new_page)
            if context_hook is not None:
                context_hook(context)
            browser.contexts_created.append(context)
            return context

        browser.new_context = AsyncMock(side_effect=new_context)
        return browser

    return factory


@pytest.fixture
def make_manager():
    """Factory for a stand-in BrowserManager handing out ``browser``."""

    def factory(browser):
        manager = MagicMock()
        manager.acquire = AsyncMock(return_value=browser)
        return manager

    return factory


@pytest.fixture
def article_html():
    return ARTICLE_HTML
