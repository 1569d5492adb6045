"""Pydantic schemas for scrape request validation."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from scrape_server.utils.errors import RequestValidationError


DEFAULT_TIMEOUT_MS = 20000
DEFAULT_POST_WAIT_MS = 600

# Desktop Chrome identifier sent when the request does not override it
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120 Safari/537.36"
)

_ALLOWED_SCHEMES = ("http", "https")


class ScrapeOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    timeout: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        gt=0,
        description="Navigation deadline in milliseconds",
    )
    block_resources: bool = Field(
        default=True,
        alias="blockResources",
        description="Abort image, media, font and stylesheet requests",
    )
    screenshot: bool = Field(default=False, description="Capture a full-page PNG")
    post_wait: int = Field(
        default=DEFAULT_POST_WAIT_MS,
        ge=0,
        alias="postWait",
        description="Extra settle delay in milliseconds after network idle",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        alias="userAgent",
        description="User-agent override",
    )

    @field_validator("user_agent", mode="before")
    @classmethod
    def _default_user_agent(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_USER_AGENT
        return value


class ScrapeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Absolute http(s) URL to render")
    options: ScrapeOptions = Field(default_factory=ScrapeOptions)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_url(value):
            raise ValueError("Invalid URL")
        return value

    @field_validator("options", mode="before")
    @classmethod
    def _default_options(cls, value):
        return {} if value is None else value


def is_valid_url(value: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(value)
        # Accessing .port validates the authority section
        parsed.port
    except ValueError:
        return False
    return parsed.scheme.lower() in _ALLOWED_SCHEMES and bool(parsed.hostname)


def parse_request(payload) -> ScrapeRequest:
    """Validate a raw request body, raising RequestValidationError on failure."""
    if not isinstance(payload, dict):
        raise RequestValidationError("Missing `url` in request body")

    url = payload.get("url")
    if not isinstance(url, str) or not url.strip():
        raise RequestValidationError("Missing `url` in request body")
    if not is_valid_url(url.strip()):
        raise RequestValidationError("Invalid URL")

    try:
        return ScrapeRequest.model_validate(
            {"url": url, "options": payload.get("options")}
        )
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise RequestValidationError(f"Invalid options: {problems}") from e
