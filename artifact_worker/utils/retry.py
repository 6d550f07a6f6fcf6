"""Retry helpers with exponential backoff."""

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


def backoff_delay(
    attempt: int, base_delay: float = 1.0, max_delay: Optional[float] = None
) -> float:
    """Delay before retry number ``attempt + 1``: base * 2^attempt, capped."""
    delay = base_delay * (2**attempt)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: Optional[float] = None,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> T:
    """
    Await ``func()`` until it succeeds or ``max_attempts`` is reached.

    Args:
        func: Zero-argument coroutine factory
        max_attempts: Maximum number of attempts (including the first)
        base_delay: Base delay in seconds (doubles each attempt)
        max_delay: Upper bound for a single delay
        exceptions: Exception types that trigger another attempt

    Returns:
        The result of the first successful attempt

    Raises:
        The last exception once attempts are exhausted. Exceptions not
        listed in ``exceptions`` propagate immediately.
    """
    last_exception: Exception | None = None

    for attempt in range(max_attempts):
        try:
            return await func()
        except exceptions as e:
            last_exception = e
            if attempt < max_attempts - 1:
                delay = backoff_delay(attempt, base_delay, max_delay)
                logger.warning(
                    f"Attempt {attempt + 1}/{max_attempts} failed: {e}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"All {max_attempts} attempts failed: {e}")

    raise last_exception  # type: ignore


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: Optional[float] = None,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator form of :func:`retry_async`.

    Args:
        max_attempts: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubles each attempt)
        max_delay: Upper bound for a single delay
        exceptions: Tuple of exception types to catch

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_async(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts,
                base_delay=base_delay,
                max_delay=max_delay,
                exceptions=exceptions,
            )

        return wrapper

    return decorator
