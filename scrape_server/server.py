"""FastMCP server exposing the page scraper as a tool and an HTTP route."""

import json
import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from scrape_server.browser_manager import BrowserManager
from scrape_server.config import get_config
from scrape_server.schemas import DEFAULT_POST_WAIT_MS, DEFAULT_TIMEOUT_MS
from scrape_server.tools import scrape

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP):
    yield
    manager = await BrowserManager.get_instance()
    await manager.close()


mcp = FastMCP("page-scraper", lifespan=lifespan)


@mcp.tool()
async def scrape_page(
    url: str,
    timeout: int = DEFAULT_TIMEOUT_MS,
    block_resources: bool = True,
    screenshot: bool = False,
    post_wait: int = DEFAULT_POST_WAIT_MS,
    user_agent: str = None,
) -> str:
    """Render a page in headless Chromium and extract its content.

    Returns title, description, canonical URL, JSON-LD, the main article
    (via a readability heuristic), links, headings, images, word count and
    reading time as JSON. On failure returns {"error": "..."}.

    Args:
        url: Absolute http(s) URL to render
        timeout: Navigation deadline in milliseconds
        block_resources: Skip images, media, fonts and stylesheets while rendering
        screenshot: Include a base64 full-page PNG in the result
        post_wait: Extra settle delay in milliseconds after the network goes idle
        user_agent: User-agent override (defaults to desktop Chrome)
    """
    _, body = await scrape.handle_scrape({
        "url": url,
        "options": {
            "timeout": timeout,
            "blockResources": block_resources,
            "screenshot": screenshot,
            "postWait": post_wait,
            "userAgent": user_agent,
        },
    })
    return json.dumps(body, indent=2, ensure_ascii=False)


@mcp.custom_route("/scrape", methods=["POST"])
async def scrape_route(request: Request) -> JSONResponse:
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    status, body = await scrape.handle_scrape(payload)
    return JSONResponse(body, status_code=status)


@mcp.custom_route("/health", methods=["GET"])
async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def main() -> None:
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    logger.info("Starting page-scraper (%s transport)", config.transport)

    if config.transport == "http":
        mcp.run(transport="http", host=config.host, port=config.port)
    else:
        mcp.run()


# Run the server
if __name__ == "__main__":
    main()
