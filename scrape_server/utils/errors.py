"""Error taxonomy and error-body formatting."""


class ScrapeError(Exception):
    """Base class for errors raised while serving a scrape request."""

    status_code = 500


class RequestValidationError(ScrapeError):
    """The request body is missing a URL or carries malformed options."""

    status_code = 400


class SessionUnavailable(ScrapeError):
    """The shared browser process could not be launched."""

    status_code = 503


def status_for(error: Exception) -> int:
    """Map an exception onto the HTTP status reported to the caller."""
    if isinstance(error, ScrapeError):
        return error.status_code
    return 500


def error_body(error: Exception) -> dict:
    """Render the JSON body returned for a failed request."""
    message = str(error).strip()
    return {"error": message or "unknown error"}
