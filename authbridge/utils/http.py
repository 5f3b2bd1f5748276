"""HTTP utilities providing retry/backoff semantics for read-only upstream calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({502, 503, 504})


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 0.2) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` until it yields a non-retryable response.

    Only transport failures and gateway statuses are retried. Any other
    response, successful or not, is returned for the caller to interpret.
    Never wrap non-idempotent calls with this helper.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None
    response: httpx.Response | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            last_exception = exc
            response = None
        else:
            if response.status_code not in RETRYABLE_STATUSES:
                return response
            last_exception = None

        attempt += 1
        if attempt >= config.attempts:
            break
        logger.debug("Retrying upstream call (attempt %s/%s)", attempt + 1, config.attempts)
        await asyncio.sleep(config.backoff_seconds * attempt)

    if response is not None:
        return response
    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RETRYABLE_STATUSES", "RetryConfig", "request_with_retry"]
