"""
Gerrit REST API client with backoff support.

Only performs GET requests (read-only, safe operations). Authenticated
calls go through Gerrit's "/a" prefix with HTTP basic auth.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import requests
from requests.auth import HTTPBasicAuth
from requests.exceptions import RequestException

from . import __version__
from .credentials import Credential
from .endpoint import ServerEndpoint
from .logging_config import log_api_call

logger = logging.getLogger(__name__)

# Gerrit prefixes every JSON response with this line to defeat XSSI
XSSI_PREFIX = ")]}'"


@dataclass
class APICallStats:
    """Track API call statistics."""
    total_calls: int = 0
    successful_calls: int = 0
    retried_calls: int = 0
    failed_calls: int = 0


class GerritClientError(Exception):
    """Base exception for Gerrit client errors."""
    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def decode_body(text: str) -> Any:
    """
    Decode a Gerrit REST response body.

    Strips the anti-XSSI prefix line before parsing JSON.

    Raises:
        ValueError: If the remaining body is not valid JSON
    """
    body = text.lstrip()
    if body.startswith(XSSI_PREFIX):
        body = body[len(XSSI_PREFIX):]
    return json.loads(body)


class GerritClient:
    """
    Gerrit REST API client with exponential backoff.

    Features:
    - Strips the ")]}'" prefix from JSON responses
    - Exponential backoff for rate limits (429) and server errors (5xx)
    - Respects Retry-After header
    - Basic auth against the "/a" REST prefix when a credential is given
    - API call tracking/statistics

    Usage:
        endpoint = resolve("https://review.example.org")
        with GerritClient(endpoint, credential=Credential("bot", "secret")) as client:
            status, data, headers = client.get("/projects/", {"n": 25})
    """

    DEFAULT_TIMEOUT = 30
    MAX_RETRIES = 3
    BASE_BACKOFF_SECONDS = 1.0
    MAX_BACKOFF_SECONDS = 60.0

    def __init__(
        self,
        endpoint: ServerEndpoint,
        credential: Credential | None = None,
        insecure_https: bool = False,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        """
        Initialize Gerrit client.

        Args:
            endpoint: Resolved server endpoint
            credential: Username / HTTP password, or None for anonymous access
            insecure_https: Skip TLS certificate verification
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per request
            log: Diagnostics sink, defaults to this module's logger
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.endpoint = endpoint
        self.authenticated = credential is not None
        self.base_url = endpoint.rest_uri(self.authenticated)
        self.timeout = timeout
        self.max_retries = max_retries
        self.insecure_https = insecure_https
        self.stats = APICallStats()
        self.log = log or logger
        self._closed = False

        # Create session for connection pooling
        self._session = requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"Gerrit-Discovery/{__version__}",
        })
        if credential is not None:
            self._session.auth = HTTPBasicAuth(credential.username, credential.password)
        self._session.verify = not insecure_https

        if insecure_https:
            self.log.warning(f"TLS certificate verification disabled for {self.base_url}")

    @property
    def closed(self) -> bool:
        return self._closed

    def _build_url(self, path: str) -> str:
        """Build full URL from path."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = "/" + path
        # Keep the server path prefix, e.g. "/gerrit/a"
        return self.base_url + path

    def _calculate_backoff(self, attempt: int, retry_after: int | None = None) -> float:
        """Calculate backoff time with exponential increase."""
        if retry_after is not None:
            return min(float(retry_after), self.MAX_BACKOFF_SECONDS)
        # Exponential backoff: 1, 2, 4, 8, 16, ...
        backoff = self.BASE_BACKOFF_SECONDS * (2 ** attempt)
        return min(backoff, self.MAX_BACKOFF_SECONDS)

    def _should_retry(self, status_code: int) -> bool:
        """Retry on rate limit (429) or server errors (5xx)."""
        return status_code == 429 or (500 <= status_code < 600)

    def _get_retry_after(self, headers: dict[str, str]) -> int | None:
        """Extract Retry-After header value."""
        retry_after = headers.get("Retry-After") or headers.get("retry-after")
        if retry_after:
            try:
                return int(retry_after)
            except ValueError:
                pass
        return None

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> tuple[int, Any, dict[str, str]]:
        """
        Perform GET request with automatic retry and backoff.

        Args:
            path: API path relative to the REST base (e.g., "/projects/")
            params: Query parameters

        Returns:
            Tuple of (status_code, json_or_text, headers). The body is the raw
            text when it does not decode as JSON.

        Raises:
            GerritClientError: On transport errors after retries, or when the
                client is closed
        """
        if self._closed:
            raise GerritClientError("Client is closed")

        url = self._build_url(path)
        params = params or {}

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            self.stats.total_calls += 1

            try:
                self.log.debug(f"GET {url} params={params} (attempt {attempt + 1})")
                started = time.monotonic()
                response = self._session.get(
                    url,
                    params=params,
                    timeout=self.timeout,
                )
                duration_ms = (time.monotonic() - started) * 1000

                headers = dict(response.headers)
                try:
                    data = decode_body(response.text)
                except ValueError:
                    data = response.text

                log_api_call(self.log, "GET", url, response.status_code, duration_ms)

                if self._should_retry(response.status_code) and attempt < self.max_retries - 1:
                    retry_after = self._get_retry_after(headers)
                    backoff = self._calculate_backoff(attempt, retry_after)
                    self.stats.retried_calls += 1
                    self.log.warning(
                        f"Request failed with {response.status_code}, "
                        f"retrying in {backoff:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(backoff)
                    continue

                # Success or non-retryable error
                if response.status_code < 400:
                    self.stats.successful_calls += 1
                else:
                    self.stats.failed_calls += 1

                return response.status_code, data, headers

            except RequestException as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    self.stats.retried_calls += 1
                    backoff = self._calculate_backoff(attempt)
                    self.log.warning(
                        f"Request error: {e}, retrying in {backoff:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(backoff)
                else:
                    self.log.error(f"Request failed after {self.max_retries} attempts: {e}")

        self.stats.failed_calls += 1
        raise GerritClientError(
            f"Request to {url} failed after {self.max_retries} attempts: {last_error}"
        ) from last_error

    def close(self) -> None:
        """Close the HTTP session. Safe to call more than once."""
        if self._closed:
            return
        self._session.close()
        self._closed = True

    def __enter__(self) -> "GerritClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
