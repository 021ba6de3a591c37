from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from scanventory.errors import ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_rate_limited(exc: BaseException) -> bool:
    return getattr(exc, "kind", None) is ErrorKind.RATE_LIMIT


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    initial_delay: int = 1000,
) -> T:
    """Run ``operation``, retrying rate-limited attempts with exponential backoff.

    ``max_retries`` is the total number of attempts. Attempt ``n`` (zero based)
    that hits a rate limit waits ``initial_delay * 2**n`` milliseconds before the
    next one. Any other error, and a rate limit on the final attempt, is raised
    unchanged.
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1; got {max_retries}, so no attempts are permitted")

    for attempt in range(max_retries):
        try:
            return await operation()
        except Exception as exc:
            if not _is_rate_limited(exc) or attempt >= max_retries - 1:
                raise
            delay_ms = initial_delay * 2**attempt
            logger.warning(
                "shopify.rate_limited_retrying",
                extra={"attempt": attempt + 1, "max_retries": max_retries, "delay_ms": delay_ms},
            )
            await asyncio.sleep(delay_ms / 1000)

    raise RuntimeError("Unreachable: retry loop exhausted without a result.")
