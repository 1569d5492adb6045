"""Navigation controller: render one URL in an isolated browser context."""

from __future__ import annotations

import logging

from playwright.async_api import Browser, Error as PlaywrightError, Route

from scrape_server.models import RenderedDocument
from scrape_server.schemas import ScrapeOptions

logger = logging.getLogger(__name__)

# Sub-resources skipped when blockResources is on. Documents, scripts and
# XHR/fetch always load so the page can still render itself.
BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font", "stylesheet"})

DEFAULT_VIEWPORT = {"width": 1200, "height": 800}

_BLANK_URLS = ("", "about:blank")


async def block_heavy_resources(route: Route) -> None:
    """Request interception rule: abort heavy sub-resources, pass the rest."""
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


async def render(
    browser: Browser,
    url: str,
    options: ScrapeOptions,
    viewport: dict | None = None,
) -> RenderedDocument:
    """Navigate to ``url`` and return whatever the page rendered.

    Navigation failures (timeouts, DNS errors, refused connections) do not
    abort the render: the document is captured as-is with status 0. The page
    and its context are closed on every exit path.
    """
    context = await browser.new_context(
        viewport=viewport or DEFAULT_VIEWPORT,
        user_agent=options.user_agent,
    )
    page = None
    try:
        if options.block_resources:
            await context.route("**/*", block_heavy_resources)

        page = await context.new_page()

        response = None
        try:
            response = await page.goto(url, wait_until="networkidle", timeout=options.timeout)
        except PlaywrightError as e:
            logger.warning("Navigation to %s failed, keeping current document: %s", url, e)

        # SPAs keep fetching after the network first goes idle
        if options.post_wait:
            await page.wait_for_timeout(options.post_wait)

        final_url = page.url
        if final_url in _BLANK_URLS:
            final_url = url
        status = response.status if response is not None else 0

        try:
            html = await page.content()
        except PlaywrightError as e:
            logger.warning("Could not serialize document for %s: %s", url, e)
            html = ""

        screenshot = None
        if options.screenshot:
            try:
                screenshot = await page.screenshot(full_page=True, type="png")
            except PlaywrightError as e:
                logger.warning("Screenshot failed for %s: %s", url, e)

        logger.debug("Rendered %s -> %s (status %s, %d chars)", url, final_url, status, len(html))
        return RenderedDocument(
            url=url,
            final_url=final_url,
            status=status,
            html=html,
            screenshot=screenshot,
        )
    finally:
        await _close_quietly(page, context, url)


async def _close_quietly(page, context, url: str) -> None:
    for resource in (page, context):
        if resource is None:
            continue
        try:
            await resource.close()
        except PlaywrightError as e:
            logger.debug("Cleanup failed for %s: %s", url, e)
