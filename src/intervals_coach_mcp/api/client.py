"""
HTTP client for the Intervals.icu REST API.

A thin wrapper around a single httpx.AsyncClient. Each call performs exactly one
request, with no retries, and returns whatever JSON value the server sent back:
some endpoints answer with a bare integer rather than an object, so callers must
not assume a dict or list.
"""

import json
import logging
from typing import Any

import httpx  # pylint: disable=import-error

from intervals_coach_mcp import __version__
from intervals_coach_mcp.config import Config
from intervals_coach_mcp.exceptions import (
    MalformedResponseError,
    TransportError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

USER_AGENT = f"intervals-coach-mcp/{__version__}"
ALLOWED_METHODS = ("GET", "POST", "PUT")
PREVIEW_LENGTH = 200


class IntervalsClient:
    """Authenticated access to one Intervals.icu account.

    Args:
        config: The server configuration (API key, base URL, timeout)
        transport: Optional httpx transport, used by tests to stub the network
    """

    def __init__(self, config: Config, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._auth = httpx.BasicAuth("API_KEY", config.api_key)
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make a request to the Intervals.icu API.

        Args:
            endpoint (str): The API path (e.g., '/athlete/{id}/activities').
            method (str): GET, POST or PUT. Defaults to GET.
            body (Any): Optional JSON-serialisable request body.
            params (dict[str, Any] | None): Optional query parameters.

        Returns:
            Any: The parsed JSON value, which may be a dict, a list or a bare scalar.

        Raises:
            UpstreamError: on a non-success HTTP status
            MalformedResponseError: if the body is not valid JSON
            TransportError: if the request could not be completed
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        content = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            content = json.dumps(body)

        logger.debug(
            "Making API request: %s %s params=%s has_body=%s",
            method,
            endpoint,
            params,
            body is not None,
        )

        try:
            response = await self._http.request(
                method=method,
                url=endpoint,
                headers=headers,
                params=params,
                auth=self._auth,
                content=content,
            )
        except httpx.TimeoutException as e:
            logger.error("Request timed out: %s %s", method, endpoint)
            raise TransportError(f"Request to {endpoint} timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Request error: %s", str(e))
            raise TransportError(f"Request error: {e}") from e

        response_text = response.text
        logger.debug(
            "API response received: %s %s -> %s, %d chars: %s",
            method,
            endpoint,
            response.status_code,
            len(response_text),
            response_text[:PREVIEW_LENGTH],
        )

        if not response.is_success:
            logger.error("HTTP error: %s - %s", response.status_code, response_text)
            raise UpstreamError(response.status_code, response_text, response.reason_phrase)

        try:
            data = json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in response from: %s", endpoint)
            raise MalformedResponseError(
                f"Failed to parse response as JSON: {response_text}", raw_text=response_text
            ) from e

        logger.debug("JSON parsing successful: %s", type(data).__name__)
        return data
