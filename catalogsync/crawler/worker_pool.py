"""Bounded worker pool and rate-limit circuit breaker for batch fetches."""

import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Iterator, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class WorkResult(Generic[T, R]):
    """Outcome of one unit of work: either a value or the raised exception."""
    item: T
    value: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RateLimitBreaker:
    """Counts rate-limited responses and trips once the threshold is reached."""

    def __init__(self, threshold: int = 5):
        self.threshold = threshold
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def tripped(self) -> bool:
        with self._lock:
            return self._count >= self.threshold

    def record(self) -> bool:
        """Record one rate-limited response; return True if now tripped."""
        with self._lock:
            self._count += 1
            return self._count >= self.threshold


class BoundedWorkerPool(Generic[T, R]):
    """Runs ``worker`` over a FIFO queue with at most ``parallelism`` calls in flight.

    Slots are refilled one by one as calls complete rather than batch by
    batch. Results are yielded to the single consumer in completion order;
    when ``should_continue`` returns False no further items are dequeued, but
    every call already in flight is still awaited and yielded.
    """

    def __init__(self, worker: Callable[[T], R], parallelism: int = 5):
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        self.worker = worker
        self.parallelism = parallelism

    def run(
        self,
        items: Iterable[T],
        should_continue: Callable[[], bool] = lambda: True,
    ) -> Iterator[WorkResult[T, R]]:
        queue: deque[T] = deque(items)
        in_flight: dict[Future, T] = {}

        with ThreadPoolExecutor(max_workers=self.parallelism) as executor:

            def fill() -> None:
                while queue and len(in_flight) < self.parallelism and should_continue():
                    item = queue.popleft()
                    in_flight[executor.submit(self.worker, item)] = item

            fill()
            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    item = in_flight.pop(future)
                    error = future.exception()
                    if error is None:
                        yield WorkResult(item=item, value=future.result())
                    else:
                        yield WorkResult(item=item, error=error)
                fill()
