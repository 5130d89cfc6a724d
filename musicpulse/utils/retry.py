"""Retry helper with exponential backoff for upstream API calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> None:
        self.attempts = max(1, attempts)
        self.backoff_seconds = backoff_seconds
        self.retry_on = retry_on

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        return self.backoff_seconds * (2 ** (attempt - 1))


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args,
    retry_config: RetryConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs,
) -> T:
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: BaseException | None = None

    while attempt < config.attempts:
        try:
            return await func(*args, **kwargs)
        except config.retry_on as exc:
            last_exception = exc
            attempt += 1
            logger.warning(
                "Attempt %d/%d of %s failed: %s",
                attempt,
                config.attempts,
                getattr(func, "__name__", repr(func)),
                exc,
            )
            if attempt >= config.attempts:
                break
            await sleep(config.delay_for(attempt))

    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Operation failed without raising an exception")


__all__ = ["RetryConfig", "call_with_retry"]
