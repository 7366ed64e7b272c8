"""
Exceptions raised by the Intervals.icu coach MCP server.

Everything a tool can fail with derives from IntervalsError so the dispatcher can
turn it into an error-flagged tool result. ConfigurationError is the only one that
is allowed to stop the process.
"""

from http import HTTPStatus


class IntervalsError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(IntervalsError):
    """Required configuration is missing or invalid."""


class ValidationError(IntervalsError):
    """Tool arguments did not match the tool's parameter schema."""


class TransportError(IntervalsError):
    """The HTTP request could not be completed (DNS, connection, timeout)."""


class MalformedResponseError(IntervalsError):
    """The upstream body was not JSON, or not the shape the tool expects."""

    def __init__(self, message: str, raw_text: str | None = None):
        super().__init__(message)
        self.raw_text = raw_text


def _get_error_message(status_code: int) -> str | None:
    """Return a user-friendly explanation for a well-known HTTP status code."""
    error_messages = {
        HTTPStatus.UNAUTHORIZED: "Please check your API key.",
        HTTPStatus.FORBIDDEN: "You may not have permission to access this resource.",
        HTTPStatus.NOT_FOUND: "The requested endpoint or ID doesn't exist.",
        HTTPStatus.UNPROCESSABLE_ENTITY: "The server couldn't process the request (invalid parameters or unsupported operation).",
        HTTPStatus.TOO_MANY_REQUESTS: "Too many requests in a short time period.",
        HTTPStatus.INTERNAL_SERVER_ERROR: "The Intervals.icu server encountered an internal error.",
        HTTPStatus.SERVICE_UNAVAILABLE: "The Intervals.icu server might be down or undergoing maintenance.",
    }
    try:
        return error_messages.get(HTTPStatus(status_code))
    except ValueError:
        return None


class UpstreamError(IntervalsError):
    """Intervals.icu answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str, reason: str = ""):
        self.status_code = status_code
        self.body = body
        self.reason = reason
        parts = [f"intervals.icu API request failed: {status_code}"]
        if reason:
            parts[0] += f" {reason}"
        if hint := _get_error_message(status_code):
            parts.append(hint.rstrip("."))
        if body:
            parts.append(body)
        super().__init__(". ".join(parts))


class NotFoundError(IntervalsError):
    """A delete affected no events, so the event most likely does not exist."""


class PartialFailureError(IntervalsError):
    """update_workout deleted the original event but could not create its replacement."""

    def __init__(self, event_id: int, cause: Exception):
        self.event_id = event_id
        self.cause = cause
        super().__init__(
            f"CRITICAL: Workout {event_id} was deleted but failed to create replacement. "
            f"Original workout is lost. Error: {cause}"
        )
