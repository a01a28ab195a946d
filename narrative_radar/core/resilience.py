from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx

from narrative_radar.core.exceptions import RateLimitError

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
MAX_RETRY_AFTER_SECONDS = 30.0


def _is_retryable(exc: httpx.RequestError | httpx.HTTPStatusError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ReadTimeout))


def _retry_after(exc: httpx.RequestError | httpx.HTTPStatusError) -> float | None:
    if not isinstance(exc, httpx.HTTPStatusError):
        return None
    header = exc.response.headers.get("Retry-After")
    if not header:
        return None
    try:
        return min(float(header), MAX_RETRY_AFTER_SECONDS)
    except ValueError:
        return None


def retry_with_backoff(
    retries: int = 3,
    delay: float = 1.0,
    service: str = "upstream",
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry async HTTP operations with exponential backoff for transient failures.

    A 429 that is still failing after the last retry surfaces as ``RateLimitError``.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            current_delay = delay
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                    attempt += 1
                    if not _is_retryable(exc):
                        raise
                    if attempt > retries:
                        if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
                            retry_after = _retry_after(exc)
                            raise RateLimitError(
                                service,
                                retry_after=int(retry_after) if retry_after is not None else None,
                            ) from exc
                        raise
                    wait = _retry_after(exc) or current_delay
                    logger.info("%s: retrying %s in %.1fs (attempt %d)", service, func.__name__, wait, attempt)
                    await asyncio.sleep(wait)
                    current_delay *= 2

        return wrapper

    return decorator
