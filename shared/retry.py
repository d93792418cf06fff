"""
Retry mechanism for resilient operations.
"""

import asyncio
import random
from typing import Any, Optional, Callable, Awaitable

from shared.logging import get_logger, set_attempt


class RetryConfig:
    """Configuration for retry behavior.

    The defaults reproduce the fixed schedule used by the transport
    executor: 1s, 2s, 4s, ... with no jitter and no cap.
    """

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: Optional[float] = None,
                 exponential_base: float = 2.0,
                 jitter: bool = False,
                 backoff_strategy: str = "exponential"):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate the wait after failed attempt number ``attempt`` (1-based)."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    if config.max_delay is not None:
        delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)


async def retry_async(func: Callable[[int], Awaitable[Any]],
                      config: RetryConfig,
                      should_retry: Callable[[Exception], bool] = lambda exc: True,
                      sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                      name: str = "operation") -> Any:
    """
    Run ``func(attempt)`` until it succeeds or the policy gives up.

    The last exception is re-raised unchanged so callers keep the error
    classification of the final attempt.
    """
    logger = get_logger("content_access.retry").bind(function=name)

    for attempt in range(1, config.max_attempts + 1):
        set_attempt(attempt)
        try:
            result = await func(attempt)
            if attempt > 1:
                logger.debug("Retry succeeded", attempt=attempt)
            return result

        except Exception as exc:
            if attempt >= config.max_attempts or not should_retry(exc):
                logger.debug(
                    "Giving up",
                    attempt=attempt,
                    max_attempts=config.max_attempts,
                    error=str(exc)
                )
                raise

            delay = calculate_delay(attempt, config)
            logger.debug(
                "Attempt failed, waiting before next attempt",
                attempt=attempt,
                delay=delay,
                error=str(exc)
            )
            await sleep(delay)

    # max_attempts is always >= 1, so the loop either returns or raises
    raise RuntimeError(f"Retry loop for {name} exited without a result")
