# ─── Standard library imports ───
import heapq
import itertools
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

# ─── Project imports ───
from .logger import get_logger


logger = get_logger("scheduler")


class SystemClock:
    """Wall clock (unix seconds) with a real sleep."""

    def time(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class ManualClock:
    """Virtual clock for tests: sleeping advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = float(start)

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("time cannot move backwards")
        self.now += seconds


@dataclass(eq=False)
class Task:
    name: str
    callback: Callable[[], Any]
    due: float
    period: Optional[float] = None
    cancelled: bool = False
    runs: int = 0

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled


class Scheduler:
    """
    Single-threaded timer queue.

    Tasks run to completion one at a time in due-time order, so no two
    callbacks ever interleave. Periodic tasks re-arm from their previous due
    time; if the clock has already passed that slot they re-arm from now.
    A failing callback is logged and never stops the loop.
    """

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()
        self._queue: list[tuple[float, int, Task]] = []
        self._seq = itertools.count()
        self._stopped = False

    def _push(self, task: Task) -> Task:
        heapq.heappush(self._queue, (task.due, next(self._seq), task))
        return task

    def call_later(self, delay: float, callback: Callable[[], Any], name: str = "once") -> Task:
        return self._push(Task(name, callback, self.clock.time() + max(0.0, delay)))

    def every(
        self,
        period: float,
        callback: Callable[[], Any],
        name: str = "periodic",
        delay: Optional[float] = None,
    ) -> Task:
        if period <= 0:
            raise ValueError("period must be positive")
        first = period if delay is None else max(0.0, delay)
        return self._push(Task(name, callback, self.clock.time() + first, period))

    def pending(self) -> list[Task]:
        return [task for _, _, task in sorted(self._queue) if task.active]

    def next_due(self) -> Optional[float]:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
        return self._queue[0][0] if self._queue else None

    def _run(self, task: Task) -> None:
        start = time.perf_counter()
        try:
            task.callback()
        except Exception as e:
            logger.exception(f"Unhandled exception in task {task.name!r}: {e}")
        finally:
            task.runs += 1
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.timing(f"Timing | {task.name:<24} [{elapsed_ms:8.1f} ms]")

    def run_pending(self) -> int:
        """Run every task due at the current clock time. Returns tasks run."""
        ran = 0
        while True:
            due = self.next_due()
            if due is None or due > self.clock.time():
                return ran

            _, _, task = heapq.heappop(self._queue)
            self._run(task)
            ran += 1

            if task.period is not None and task.active:
                task.due += task.period
                now = self.clock.time()
                if task.due <= now:
                    task.due = now + task.period
                self._push(task)

    def run_for(self, seconds: float) -> int:
        """Advance through every due time within the next `seconds`."""
        target = self.clock.time() + seconds
        ran = self.run_pending()
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            self.clock.sleep(max(0.0, due - self.clock.time()))
            ran += self.run_pending()
        self.clock.sleep(max(0.0, target - self.clock.time()))
        return ran + self.run_pending()

    def run_forever(self) -> None:
        """Block, running tasks as they come due, until stop() or no tasks remain."""
        self._stopped = False
        while not self._stopped:
            self.run_pending()
            due = self.next_due()
            if due is None:
                return
            self.clock.sleep(max(0.0, due - self.clock.time()))

    def stop(self) -> None:
        self._stopped = True
