"""Retry with exponential backoff for idempotent reads.

Provides automatic retry for transient RPC failures with:
- Configurable retry count
- Exponential backoff, doubling from the initial delay
- Last error re-raised unchanged when every attempt fails

Never wrap a transaction send with this: a retried send can duplicate a
submission the node already accepted.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..errors import BlockchainError
from ..monitoring.metrics import rpc_failures_total, rpc_retries_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Raised straight through: these errors are already classified
NON_RETRYABLE_EXCEPTIONS = (BlockchainError,)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 5  # Retries after the first attempt
    initial_delay: float = 1.0  # Seconds before the first retry
    exponential_base: float = 2.0
    max_delay: Optional[float] = None  # None means uncapped
    jitter: float = 0.0  # Random jitter factor (0-1)
    non_retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: NON_RETRYABLE_EXCEPTIONS
    )

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


def calculate_backoff(retry_index: int, config: RetryConfig) -> float:
    """Calculate the delay before a retry.

    Args:
        retry_index: Number of failures so far minus one (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = config.initial_delay * (config.exponential_base**retry_index)

    if config.jitter:
        jitter_range = delay * config.jitter
        delay += random.uniform(-jitter_range, jitter_range)

    if config.max_delay is not None:
        delay = min(delay, config.max_delay)
    return delay


async def with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    name: Optional[str] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> T:
    """Run a repeatable async operation, retrying failures with backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per call
        config: Retry configuration (defaults: 5 retries, 1s doubling)
        name: Operation name for logs and metrics
        on_retry: Optional callback on retry (exception, retry_number)

    Returns:
        The first successful result

    Raises:
        Exception: The last error raised by ``operation``, unchanged
        BlockchainError: Immediately, without retrying
    """
    config = config or RetryConfig()
    name = name or getattr(operation, "__name__", "operation")
    retries = 0

    while True:
        try:
            return await operation()
        except Exception as e:
            if isinstance(e, config.non_retryable_exceptions):
                logger.warning(f"Not retrying {name}: {type(e).__name__}: {e}")
                raise

            if retries >= config.max_retries:
                logger.error(f"All {config.max_attempts} attempts failed for {name}: {e}")
                rpc_failures_total.inc(operation=name)
                raise

            delay = calculate_backoff(retries, config)
            retries += 1
            logger.warning(
                f"Attempt {retries}/{config.max_attempts} failed for {name}: {e}. "
                f"Retrying in {delay:.2f}s"
            )
            rpc_retries_total.inc(operation=name)

            if on_retry:
                try:
                    on_retry(e, retries)
                except Exception as callback_error:
                    logger.warning(f"on_retry callback failed for {name}: {callback_error}")

            await asyncio.sleep(delay)


def retry_with_backoff(
    max_retries: int = 5,
    initial_delay: float = 1.0,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
):
    """Decorator form of ``with_backoff`` for async functions.

    Usage:
        @retry_with_backoff(max_retries=3)
        async def fetch_block():
            ...
    """
    config = RetryConfig(max_retries=max_retries, initial_delay=initial_delay)

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"{func.__name__} must be a coroutine function")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            return await with_backoff(
                lambda: func(*args, **kwargs),
                config=config,
                name=func.__name__,
                on_retry=on_retry,
            )

        return wrapper

    return decorator
