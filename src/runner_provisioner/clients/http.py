"""HTTP client wrapper shared by the API clients.

Provides a clean interface for HTTP requests with:
- Typed response objects
- Consistent error handling
- Centralized logging with secrets redacted
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from runner_provisioner.errors import HTTPError, TimeoutError

logger = logging.getLogger(__name__)

_SECRET_PARAM_MARKERS = ("token", "key", "secret", "password")


@dataclass(frozen=True)
class HTTPResponse:
    """Structured HTTP response.

    Attributes:
        status_code: HTTP status code (200, 404, etc.)
        body: Response body as string
        json: Parsed JSON body (None if not JSON)
        headers: Response headers as dict
        elapsed_ms: Request duration in milliseconds
        ok: True if status code is 2xx
    """

    status_code: int
    body: str
    json: dict[str, Any] | list[Any] | None
    headers: dict[str, str]
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        """True if response has 2xx status code."""
        return 200 <= self.status_code < 300


def request(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    json_body: dict[str, Any] | list[Any] | None = None,
    params: dict[str, Any] | None = None,
    timeout: float | None = None,
) -> HTTPResponse:
    """Make an HTTP request with consistent error handling.

    Non-2xx responses are returned, not raised; callers decide which
    statuses are fatal.

    Args:
        client: httpx.Client instance (from deps)
        method: HTTP method (GET, POST, PUT, PATCH, DELETE)
        url: Target URL
        headers: Optional request headers
        json_body: Optional JSON body for POST/PUT/PATCH
        params: Optional query parameters
        timeout: Optional timeout override (uses client default if not set)

    Returns:
        HTTPResponse with status, body, and parsed JSON

    Raises:
        HTTPError: If the request could not be sent or no response arrived
        TimeoutError: If request times out
    """
    method = method.upper()
    log_url = redact_url(url)
    logger.debug(f"HTTP {method} {log_url}")

    kwargs: dict[str, Any] = {
        "method": method,
        "url": url,
        "headers": headers,
        "json": json_body,
        "timeout": timeout,
    }
    if params:
        kwargs["params"] = params

    try:
        response = client.request(**kwargs)
    except httpx.TimeoutException as e:
        raise TimeoutError(
            f"Request timed out: {method} {log_url}",
            timeout_seconds=timeout or client.timeout.connect,
        ) from e
    except httpx.RequestError as e:
        raise HTTPError(
            f"Request failed: {e}",
            url=log_url,
            method=method,
        ) from e

    # Parse JSON if content-type indicates JSON
    json_data = None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        with contextlib.suppress(ValueError):
            json_data = response.json()

    elapsed_ms = 0.0
    with contextlib.suppress(RuntimeError, AttributeError):
        elapsed_ms = round(response.elapsed.total_seconds() * 1000, 2)

    result = HTTPResponse(
        status_code=response.status_code,
        body=response.text,
        json=json_data,
        headers=dict(response.headers),
        elapsed_ms=elapsed_ms,
    )

    logger.debug(f"HTTP {method} {log_url} -> {result.status_code} in {elapsed_ms}ms")
    return result


def bearer_headers(token: str, **extra: str) -> dict[str, str]:
    """Authorization headers for a bearer token."""
    headers = {"Authorization": f"Bearer {token}"}
    headers.update(extra)
    return headers


def redact_url(url: str) -> str:
    """Redact sensitive query parameters for logging."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, "***" if any(m in k.lower() for m in _SECRET_PARAM_MARKERS) else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="*")))
