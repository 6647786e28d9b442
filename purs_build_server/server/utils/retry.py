import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

__all__ = ["RetryOutcome", "retry"]

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    succeeded: bool
    attempts: int
    value: T | None = None
    error: BaseException | None = None


async def retry(
    operation: Callable[[], Awaitable[T]],
    retries: int,
    delay: float,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> RetryOutcome[T]:
    """Run `operation` until it succeeds, at most `retries + 1` times.

    Attempts are spaced by a fixed `delay` in seconds. Exhaustion is reported
    through the returned outcome instead of raising.
    """
    attempts = 0
    error: BaseException | None = None

    while attempts <= retries:
        if attempts > 0:
            await sleep(delay)

        attempts += 1
        try:
            value = await operation()
            return RetryOutcome(True, attempts, value=value)
        except Exception as exc:
            logging.debug(f"Attempt {attempts}/{retries + 1} failed: {exc}")
            error = exc

    return RetryOutcome(False, attempts, error=error)
