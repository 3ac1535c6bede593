"""Retry policy for Drive operations.

Retry decisions are made from the ErrorInfo category only, so the same
policy applies to folder provisioning and uploads regardless of where the
failure came from.

Example:
    policy = RetryPolicy.from_config(config.retry)

    @with_retry(policy)
    async def upload():
        ...
"""

import asyncio
import functools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, FrozenSet, TypeVar

import structlog

from sipandai.gdrive.config import RetryConfig
from sipandai.gdrive.errors import RETRYABLE_CATEGORIES, DriveClientError, ErrorCategory

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff over retryable categories.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay_seconds: Delay before the first retry.
        max_delay_seconds: Upper bound for any single delay.
        retry_on: Categories worth retrying.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    retry_on: FrozenSet[ErrorCategory] = field(default=RETRYABLE_CATEGORIES)

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, config.max_attempts),
            base_delay_seconds=config.base_delay_seconds,
            max_delay_seconds=config.max_delay_seconds,
        )

    def should_retry(self, error: DriveClientError, attempt: int) -> bool:
        """Whether to retry after the given zero-based attempt failed."""
        return attempt + 1 < self.max_attempts and error.category in self.retry_on

    def delay_for(self, attempt: int) -> float:
        """Delay after the given zero-based attempt failed."""
        return min(self.base_delay_seconds * (2**attempt), self.max_delay_seconds)


def with_retry(
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorate an async callable with the retry policy.

    Only DriveClientError is retried; anything else propagates at once.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except DriveClientError as e:
                    if not policy.should_retry(e, attempt):
                        raise
                    delay = policy.delay_for(attempt)
                    logger.warning(
                        "drive_operation_retry",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=policy.max_attempts,
                        category=e.category.value,
                        delay_seconds=delay,
                    )
                    await sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
