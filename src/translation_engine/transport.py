# SPDX-License-Identifier: Apache-2.0
"""HTTP transport with per-attempt timeouts and exponential backoff."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from translation_engine.errors import TranslatorError

logger = logging.getLogger(__name__)


def default_status_ok(status: int) -> bool:
    """Accept any 2xx status."""
    return 200 <= status < 300


class TransportError(TranslatorError):
    """Network failure, timeout or rejected HTTP status.

    Attributes:
        status: HTTP status, or None when no response was received.
        body: Decoded response body, if any.
        retryable: Whether another attempt may succeed.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: Any = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        if retryable is None:
            retryable = status is not None and status >= 500
        self.retryable = retryable


@dataclass
class TransportResponse:
    """Decoded HTTP response."""

    data: Any
    status: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)


class Transport:
    """Sends HTTP requests through an aiohttp session, retrying transient failures.

    Connection errors, timeouts and 5xx responses are retried up to
    ``retries`` times, sleeping ``retry_delay * 2**attempt`` seconds between
    attempts. Other failures (4xx included) are raised at once.
    """

    DEFAULT_TIMEOUT = 30.0
    DEFAULT_RETRIES = 3
    DEFAULT_RETRY_DELAY = 1.0

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        default_headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize Transport.

        Args:
            session: Session to reuse. When omitted one is created lazily
                and closed by ``close()``.
            default_headers: Headers sent with every request.
            timeout: Default per-attempt timeout in seconds.
        """
        self._session = session
        self._owns_session = session is None
        self._default_headers: dict[str, str] = dict(default_headers or {})
        self._timeout = timeout if timeout is not None else self.DEFAULT_TIMEOUT

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def set_default_headers(self, headers: Mapping[str, str]) -> None:
        self._default_headers.update(headers)

    def set_default_timeout(self, timeout: float) -> None:
        self._timeout = timeout

    async def send(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        params: Mapping[str, str] | None = None,
        timeout: float | None = None,
        retries: int | None = None,
        retry_delay: float | None = None,
        is_status_ok: Callable[[int], bool] | None = None,
    ) -> TransportResponse:
        """Send a request, retrying transient failures.

        Args:
            url: Request URL.
            method: HTTP method.
            headers: Extra headers, merged over the defaults.
            body: Request body; non-string values are JSON encoded.
                Ignored for GET requests.
            params: Query string parameters.
            timeout: Per-attempt timeout in seconds.
            retries: Extra attempts after the first one.
            retry_delay: Base delay in seconds for exponential backoff.
            is_status_ok: Predicate deciding which statuses succeed.

        Returns:
            The decoded response.

        Raises:
            TransportError: When the request fails and retries are exhausted
                or the failure is not retryable.
        """
        method = method.upper()
        timeout = self._timeout if timeout is None else timeout
        retries = self.DEFAULT_RETRIES if retries is None else max(0, retries)
        retry_delay = self.DEFAULT_RETRY_DELAY if retry_delay is None else retry_delay
        is_status_ok = is_status_ok or default_status_ok

        merged_headers = {
            "Content-Type": "application/json",
            **self._default_headers,
            **(headers or {}),
        }
        data: str | None = None
        if body is not None and method != "GET":
            data = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)

        last_error: TransportError | None = None
        for attempt in range(retries + 1):
            try:
                return await self._attempt(
                    url, method, merged_headers, data, params, timeout, is_status_ok
                )
            except TransportError as exc:
                last_error = exc
                if attempt == retries or not exc.retryable:
                    raise
                delay = retry_delay * (2**attempt)
                logger.debug(
                    "Request to %s failed (%s), retrying in %.2fs (%d/%d)",
                    url, exc, delay, attempt + 1, retries,
                )
                await asyncio.sleep(delay)

        assert last_error is not None
        raise last_error

    async def _attempt(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        data: str | None,
        params: Mapping[str, str] | None,
        timeout: float,
        is_status_ok: Callable[[int], bool],
    ) -> TransportResponse:
        session = self._ensure_session()
        # A fresh timeout per attempt; aiohttp aborts the request when it fires.
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        try:
            async with session.request(
                method,
                url,
                headers=headers,
                data=data,
                params=params,
                timeout=client_timeout,
            ) as response:
                raw = await response.text(errors="replace")
                content_type = response.headers.get("Content-Type", "")
                payload: Any = raw
                if "application/json" in content_type:
                    try:
                        payload = json.loads(raw) if raw else None
                    except ValueError:
                        payload = raw

                status_text = response.reason or ""
                if not is_status_ok(response.status):
                    raise TransportError(
                        f"Request failed with status {response.status}: {status_text}",
                        status=response.status,
                        body=payload,
                    )
                return TransportResponse(
                    data=payload,
                    status=response.status,
                    status_text=status_text,
                    headers=dict(response.headers),
                )
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"Request timeout after {timeout}s: {method} {url}", retryable=True
            ) from exc
        except aiohttp.ClientConnectionError as exc:
            raise TransportError(
                f"Network error: unable to connect to {url}: {exc}", retryable=True
            ) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request failed: {exc}") from exc

    async def get(self, url: str, **kwargs: Any) -> TransportResponse:
        return await self.send(url, method="GET", **kwargs)

    async def post(self, url: str, body: Any = None, **kwargs: Any) -> TransportResponse:
        return await self.send(url, method="POST", body=body, **kwargs)

    async def check_connection(self, url: str = "https://www.google.com") -> bool:
        """Return True if ``url`` answers with a 2xx status."""
        try:
            await self.get(url, timeout=5.0, retries=0)
        except TransportError:
            return False
        return True

    async def close(self) -> None:
        """Close the HTTP session if this transport created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
