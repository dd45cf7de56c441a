"""Shared HTTP client for package index access.

A thin wrapper around ``httpx.Client`` with standard timeouts, a
user-agent header and bounded retry. Index providers use it so HTTP
behaviour is consistent and testable (pass ``transport=httpx.MockTransport``
in tests).

Errors are classified, never swallowed:

- 404 returns None so the caller can raise ``PackageNotFound`` with the
  right name.
- Timeouts, connection errors, 429 and 5xx are retried ``retries`` times
  and then raised as ``TransientFetchError``.
- Any other status, or a body that is not JSON, raises ``MetadataError``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from lockstep import __version__
from lockstep.exceptions import MetadataError, TransientFetchError

logger = logging.getLogger(__name__)

# Timeout for all index HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

DEFAULT_RETRIES: int = 3

# Seconds before the first retry; doubled on each further attempt.
DEFAULT_BACKOFF: float = 0.5

USER_AGENT: str = f"lockstep/{__version__}"

_RETRY_STATUS = frozenset({429, 500, 502, 503, 504})


class IndexClient:
    """Synchronous JSON client, safe to share between threads.

    Args:
        timeout: Per-request timeout in seconds.
        retries: Extra attempts after the first for retryable failures.
        backoff: Initial delay between attempts in seconds.
        transport: Optional ``httpx`` transport (tests use ``MockTransport``).
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        backoff: float = DEFAULT_BACKOFF,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._retries = max(0, retries)
        self._backoff = backoff
        self._client = httpx.Client(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )

    def get_json(self, url: str) -> dict[str, Any] | None:
        """GET ``url`` and parse the body as a JSON object.

        Returns:
            The parsed object, or None when the server answered 404.

        Raises:
            TransientFetchError: Retryable failure persisted after retries.
            MetadataError: Unexpected status or malformed body.
        """
        attempts = self._retries + 1
        last_error = ""
        for attempt in range(attempts):
            if attempt:
                delay = self._backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Retrying %s in %.1fs (attempt %d/%d): %s",
                    url, delay, attempt + 1, attempts, last_error,
                )
                if delay > 0:
                    time.sleep(delay)
            try:
                resp = self._client.get(url)
            except httpx.TimeoutException:
                last_error = "timeout"
                continue
            except httpx.TransportError as exc:
                last_error = f"connection error: {exc}"
                continue

            if resp.status_code == 404:
                return None
            if resp.status_code in _RETRY_STATUS:
                last_error = f"HTTP {resp.status_code}"
                continue
            if resp.status_code >= 400:
                raise MetadataError(f"HTTP {resp.status_code} from {url}")
            try:
                data = resp.json()
            except ValueError as exc:
                raise MetadataError(f"Invalid JSON from {url}: {exc}") from exc
            if not isinstance(data, dict):
                raise MetadataError(f"Expected a JSON object from {url}")
            return data

        raise TransientFetchError(f"Failed to fetch {url} after {attempts} attempts: {last_error}")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> IndexClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
