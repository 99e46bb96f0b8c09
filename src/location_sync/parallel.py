# src/location_sync/parallel.py
"""
Bounded fan-out over a fixed list of work items.

A queue is filled up front and drained by at most `max_concurrency`
long-lived worker tasks, so no more than that many calls are ever in
flight. A failing item is recorded and never cancels the others.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class TaskOutcome(Generic[T, R]):
    """
    The result of running one item through `run_bounded`.

    Attributes:
        item (T): The work item.
        result (R, optional): What the callable returned.
        error (Exception, optional): What the callable raised, if anything.
    """

    item: T
    result: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        """True if the callable returned without raising."""
        return self.error is None


async def run_bounded(
    func: Callable[[T], Awaitable[R]],
    items: Sequence[T],
    max_concurrency: int,
    on_done: Optional[Callable[[TaskOutcome[T, R]], None]] = None,
) -> List[TaskOutcome[T, R]]:
    """
    Applies `func` to every item with at most `max_concurrency` calls in flight.

    Args:
        func (Callable[[T], Awaitable[R]]): The coroutine function to apply.
        items (Sequence[T]): The work items.
        max_concurrency (int): Upper bound on simultaneous calls.
        on_done (Callable, optional): Invoked with each outcome as it completes.

    Returns:
        List[TaskOutcome[T, R]]: One outcome per item, in completion order.
    """
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}.")

    queue: asyncio.Queue[T] = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)

    outcomes: List[TaskOutcome[T, R]] = []

    async def worker(worker_id: int) -> None:
        """Pulls items until the queue is empty."""
        logger.debug(f"Worker {worker_id} started.")
        while True:
            try:
                item: T = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            try:
                outcome: TaskOutcome[T, R] = TaskOutcome(item=item, result=await func(item))
            except Exception as e:
                logger.exception(f"Worker {worker_id} failed on {item!r}")
                outcome = TaskOutcome(item=item, error=e)
            outcomes.append(outcome)
            queue.task_done()
            if on_done is not None:
                on_done(outcome)
        logger.debug(f"Worker {worker_id} finished.")

    num_workers: int = min(max_concurrency, len(items))
    await asyncio.gather(*(worker(i) for i in range(num_workers)))
    return outcomes
