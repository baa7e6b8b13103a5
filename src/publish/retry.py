# src/publish/retry.py — v1
"""Bounded retry policy for publish attempts.

Only a rejected push is retried; the caller re-runs the whole publish
attempt (fresh fetch, re-apply, commit, push) rather than patching up the
failed one.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from docspublisher.core.errors import DocsPublisherError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PublishRetryExhausted(DocsPublisherError):
    """Every publish attempt was rejected."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Publish failed after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class RetryConfig:
    """Retry bound and exponential backoff."""

    max_retries: int = 3
    base_delay_s: float = 2.0
    backoff_factor: float = 2.0
    jitter: bool = True


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[[int], Awaitable[T]],
    retry_on: tuple[type[Exception], ...],
    config: RetryConfig,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn(attempt)`` until it succeeds or retries run out.

    Exceptions outside ``retry_on`` propagate immediately.

    Raises:
        PublishRetryExhausted: After ``config.max_retries`` retried failures.
    """
    attempt = 0
    while True:
        try:
            return await fn(attempt)
        except retry_on as e:
            if attempt >= config.max_retries:
                raise PublishRetryExhausted(attempt + 1, e) from e
            delay = compute_delay(config, attempt)
            attempt += 1
            logger.warning(
                "Publish attempt %d rejected (%s), retrying in %.1fs",
                attempt, e, delay,
            )
            await sleep(delay)
