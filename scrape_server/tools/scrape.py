"""Scrape tool: request boundary, orchestration and result assembly."""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from typing import Optional

from scrape_server.browser_manager import BrowserManager
from scrape_server.config import get_config
from scrape_server.models import ExtractionResult, RenderedDocument, ScrapeResponse
from scrape_server.schemas import ScrapeRequest, parse_request
from scrape_server.tools.extraction import extract
from scrape_server.tools.navigation import render
from scrape_server.utils.errors import RequestValidationError, SessionUnavailable, error_body, status_for
from scrape_server.utils.parser import ContentExtractor

logger = logging.getLogger(__name__)

SCREENSHOT_MIME = "image/png"


def assemble(
    request: ScrapeRequest,
    rendered: RenderedDocument,
    extraction: ExtractionResult,
) -> ScrapeResponse:
    """Merge render and extraction output into the response record."""
    response = ScrapeResponse(
        url=request.url,
        final_url=rendered.final_url,
        status=rendered.status,
        extraction=extraction,
        scraped_at=datetime.now(timezone.utc).isoformat(),
    )
    if rendered.screenshot is not None:
        response.screenshot = base64.b64encode(rendered.screenshot).decode("ascii")
        response.screenshot_mime = SCREENSHOT_MIME
    return response


async def scrape(
    request: ScrapeRequest,
    manager: Optional[BrowserManager] = None,
    extractor: Optional[ContentExtractor] = None,
) -> ScrapeResponse:
    """Render ``request.url`` and extract its content."""
    manager = manager or await BrowserManager.get_instance()
    browser = await manager.acquire()

    rendered = await render(
        browser,
        request.url,
        request.options,
        viewport=get_config().viewport,
    )
    extraction = extract(rendered, extractor)
    return assemble(request, rendered, extraction)


async def handle_scrape(
    arguments,
    manager: Optional[BrowserManager] = None,
    extractor: Optional[ContentExtractor] = None,
) -> tuple[int, dict]:
    """Serve one scrape request, returning ``(http_status, json_body)``.

    Validation problems are rejected before any browser work. A browser that
    cannot be launched and any unexpected failure become error bodies; every
    other failure mode already degrades inside the pipeline.
    """
    try:
        request = parse_request(arguments)
    except RequestValidationError as e:
        logger.debug("Rejected scrape request: %s", e)
        return status_for(e), error_body(e)

    try:
        response = await scrape(request, manager=manager, extractor=extractor)
    except SessionUnavailable as e:
        logger.error("Scrape of %s aborted: %s", request.url, e)
        return status_for(e), error_body(e)
    except Exception as e:
        logger.exception("Scrape of %s failed", request.url)
        return status_for(e), error_body(e)

    return 200, response.to_dict()
