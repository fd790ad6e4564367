"""Background fetches with results marshalled back to the event-loop thread."""

import queue
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class Completion:
    """Immutable outcome of one background fetch."""
    scope: Any
    generation: int
    result: Any = None
    error: Optional[BaseException] = None
    on_done: Optional[Callable[["Completion"], None]] = None


class FetchDispatcher:
    """Runs fetch callables on a worker pool.

    Workers only produce Completion objects; they are queued and applied
    when the owning thread calls ``pump()``. Nothing is cancelled: a caller
    that has moved on simply ignores the completion when it arrives.
    """

    def __init__(self, executor: Optional[Executor] = None, max_workers: int = 4):
        self._own_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=max_workers,
                                                       thread_name_prefix="fetch")
        self._completed: "queue.Queue[Completion]" = queue.Queue()
        self.in_flight = 0

    def submit(self, scope, generation: int, fn: Callable[[], Any],
               on_done: Callable[[Completion], None]) -> Future:
        self.in_flight += 1
        future = self.executor.submit(fn)
        future.add_done_callback(
            lambda f: self._completed.put(self._outcome(scope, generation, f, on_done)))
        return future

    @staticmethod
    def _outcome(scope, generation, future: Future, on_done) -> Completion:
        error = future.exception()
        if error is not None:
            return Completion(scope, generation, error=error, on_done=on_done)
        return Completion(scope, generation, result=future.result(), on_done=on_done)

    def pump(self, block: bool = False, timeout: Optional[float] = None) -> int:
        """Apply queued completions on the calling thread. Returns how many ran."""
        applied = 0
        while True:
            try:
                if block and applied == 0:
                    item = self._completed.get(timeout=timeout)
                else:
                    item = self._completed.get_nowait()
            except queue.Empty:
                return applied
            self.in_flight -= 1
            applied += 1
            if item.on_done is not None:
                item.on_done(item)

    def shutdown(self, wait: bool = False):
        if self._own_executor:
            self.executor.shutdown(wait=wait)
