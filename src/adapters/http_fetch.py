"""Retrying JSON fetch over aiohttp.

Every upstream call in tokenscope goes through fetch_with_retry so the retry
budget and failure taxonomy are applied consistently.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from core.config import RetryConfig
from core.errors import TransientUpstreamFailure

LOGGER = logging.getLogger(__name__)


class UpstreamHTTPError(Exception):
    """Non-2xx response from an upstream endpoint."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"HTTP {status}: {body}")
        self.status = status
        self.body = body


@dataclass(frozen=True)
class FetchRequest:
    """Request descriptor for a single upstream call."""

    url: str
    method: str = "GET"
    headers: Optional[dict[str, str]] = None
    params: Optional[dict[str, Any]] = None
    json: Any = None


async def fetch_with_retry(
    session: aiohttp.ClientSession,
    request: FetchRequest,
    max_attempts: int = 3,
    delay: float = 1.0,
    *,
    timeout: float = 10.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """Fetch and decode a JSON body, retrying sequentially on failure.

    Network errors, timeouts, non-2xx statuses and undecodable bodies are all
    retried up to max_attempts total attempts with a fixed delay in between.
    When the budget is spent, TransientUpstreamFailure is raised carrying the
    last error so callers can tell an unreachable host (aiohttp.ClientError,
    TimeoutError) from an error status (UpstreamHTTPError) or a malformed body
    (ValueError).
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if delay < 0:
        raise ValueError("delay must not be negative")

    client_timeout = aiohttp.ClientTimeout(total=timeout)
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            await sleep(delay)
        try:
            async with session.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                json=request.json,
                timeout=client_timeout,
            ) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise UpstreamHTTPError(response.status, body[:300])
                # content_type=None: several upstreams mislabel their JSON.
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, UpstreamHTTPError, ValueError) as exc:
            last_error = exc
            LOGGER.warning(
                "Request to %s failed (attempt %s/%s): %s",
                request.url,
                attempt,
                max_attempts,
                exc,
            )

    raise TransientUpstreamFailure(request.url, last_error) from last_error


async def fetch_json(
    session: aiohttp.ClientSession,
    request: FetchRequest,
    retry: RetryConfig,
) -> Any:
    """fetch_with_retry driven by a RetryConfig."""

    return await fetch_with_retry(
        session,
        request,
        max_attempts=retry.max_attempts,
        delay=retry.delay_seconds,
        timeout=retry.timeout_seconds,
    )
