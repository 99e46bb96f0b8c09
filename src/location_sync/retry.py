# src/location_sync/retry.py
"""
A small retry policy shared by the lister and the copy executor.

`attempt` runs an idempotent coroutine factory until it succeeds or the
attempt budget is spent, and reports the outcome as a value instead of
raising, so callers decide whether exhaustion is fatal.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AttemptResult(Generic[T]):
    """
    Outcome of a retried operation.

    Attributes:
        value (T, optional): The operation's result on success.
        error (BaseException, optional): The last error when every attempt failed.
        attempts (int): How many times the operation was called.
    """

    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        """True if one of the attempts succeeded."""
        return self.error is None

    def unwrap(self) -> T:
        """
        Returns the value, re-raising the stored error on failure.

        Returns:
            T: The operation's result.
        """
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


async def attempt(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    delay_s: float = 0.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = "operation",
) -> AttemptResult[T]:
    """
    Calls `operation` up to `max_retries` times.

    Args:
        operation (Callable[[], Awaitable[T]]): Zero-argument factory returning
            a fresh awaitable for each attempt. Must be safe to repeat.
        max_retries (int): Maximum number of attempts, at least 1.
        delay_s (float): Pause between attempts. 0 retries immediately.
        retry_on (Tuple[Type[BaseException], ...]): Errors that count as a
            failed attempt. Anything else propagates at once.
        description (str): Used in log messages.

    Returns:
        AttemptResult[T]: The value of the first successful attempt, or the
            last error once the budget is exhausted.
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1, got {max_retries}.")

    last_error: Optional[BaseException] = None
    for attempt_number in range(1, max_retries + 1):
        try:
            value: T = await operation()
            return AttemptResult(value=value, attempts=attempt_number)
        except retry_on as e:
            last_error = e
            logger.warning(
                f"Attempt {attempt_number}/{max_retries} of {description} failed: "
                f"{type(e).__name__} - {e}"
            )
        if attempt_number < max_retries and delay_s > 0:
            await asyncio.sleep(delay_s)

    return AttemptResult(error=last_error, attempts=max_retries)
